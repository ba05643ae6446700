"""
Schémas Pydantic pour le registre des élèves (lecture seule côté cœur applicatif).
"""

import uuid

from pydantic import BaseModel


class StudentResponse(BaseModel):
    """Élève tel qu'affiché sur l'écran d'appel."""
    id: uuid.UUID
    last_name: str
    first_name: str
    grade_level: str
    cohort: str
    active: bool

    model_config = {"from_attributes": True}
