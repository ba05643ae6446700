"""
Modèle SQLAlchemy pour la table students (registre des internes).
Un élève n'est jamais supprimé pour cause de départ : on le désactive (active=False)
afin que les appels historiques restent valides.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Index, String, Uuid, func

from internat.database import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    last_name = Column(String(100), nullable=False)
    first_name = Column(String(100), nullable=False)
    grade_level = Column(String(10), nullable=False)   # 6eme, 5eme, ..., Term
    cohort = Column(String(1), nullable=False)         # F, M
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_students_grade_level_cohort", "grade_level", "cohort"),
    )

    @property
    def display_name(self) -> str:
        """Nom affiché dans les récaps : 'Nom, Prénom'."""
        return f"{self.last_name}, {self.first_name}"
