"""
Modèle SQLAlchemy pour l'observation libre d'un groupe (niveau × cohorte) sur une nuit.
La clé (day, grade_level, cohort) est unique : une nouvelle saisie écrase l'ancienne.
"""

import uuid
from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid, func

from internat.database import Base


class GroupObservation(Base):
    __tablename__ = "group_observations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    day = Column(Date, nullable=False)
    grade_level = Column(String(10), nullable=False)
    cohort = Column(String(1), nullable=False)
    text = Column(Text, nullable=False)
    staff_id = Column(Uuid, ForeignKey("staff_users.id", ondelete="CASCADE"), nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("day", "grade_level", "cohort", name="uq_group_observations_day_group"),
    )
