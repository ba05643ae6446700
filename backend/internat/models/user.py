"""
Modèle SQLAlchemy pour le personnel (AED, CPE, manager, superadmin).
Seul un AED est rattaché à un groupe : niveau et cohorte sont renseignés
si et seulement si role = 'aed' (NULL = accès à tous les groupes).
"""

import uuid
from sqlalchemy import CheckConstraint, Column, DateTime, String, Uuid, func

from internat.database import Base


class User(Base):
    __tablename__ = "staff_users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False)          # aed, cpe, manager, superadmin
    grade_level = Column(String(10), nullable=True)    # AED uniquement
    cohort = Column(String(1), nullable=True)          # AED uniquement
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "(role = 'aed' AND grade_level IS NOT NULL AND cohort IS NOT NULL) "
            "OR (role <> 'aed' AND grade_level IS NULL AND cohort IS NULL)",
            name="ck_staff_users_scope",
        ),
    )

    @property
    def display_name(self) -> str:
        names = " ".join(n for n in (self.first_name, self.last_name) if n)
        return names or self.email
