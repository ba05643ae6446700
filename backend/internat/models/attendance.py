"""
Modèle SQLAlchemy pour les appels du soir (une ligne par élève et par jour).

Un lot d'appel (niveau, jour) est toujours remplacé en bloc lors d'une nouvelle
soumission : voir attendance_service.replace_for_group_and_day.
"""

import uuid
from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, Uuid, func

from internat.database import Base


class AttendanceRecord(Base):
    """Statut d'un élève lors de l'appel d'un jour donné."""
    __tablename__ = "attendance_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    staff_id = Column(Uuid, ForeignKey("staff_users.id", ondelete="CASCADE"), nullable=False)

    grade_level = Column(String(10), nullable=False)
    cohort = Column(String(1), nullable=False)         # Cohorte de l'élève au moment de l'appel
    day = Column(Date, nullable=False)                 # Jour UTC normalisé
    status = Column(String(10), nullable=False)        # present, acf, absent

    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_attendance_records_grade_level_day", "grade_level", "day"),
    )
