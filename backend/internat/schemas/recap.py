"""
Schémas Pydantic pour l'agrégation des données d'une nuit et les récaps quotidiens.
"""

import uuid
import datetime as dt
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, field_validator

from internat.constants import group_key, group_label
from internat.dates import normalize_day


class GroupSummary(BaseModel):
    """Un groupe actif de la nuit et son observation (texte neutre si aucune)."""
    grade_level: str
    cohort: str
    observation: str
    has_observation: bool
    student_count: int

    @property
    def key(self) -> str:
        return group_key(self.grade_level, self.cohort)

    @property
    def label(self) -> str:
        return group_label(self.grade_level, self.cohort)


class DayData(BaseModel):
    """Données agrégées d'une nuit, triées dans l'ordre canonique des groupes."""
    day: dt.date
    groups: List[GroupSummary] = []
    absences: Dict[str, List[str]] = {}   # clé de groupe → 'Nom, Prénom' triés
    acf: Dict[str, List[str]] = {}

    @property
    def is_empty(self) -> bool:
        return not self.groups

    @property
    def total_absences(self) -> int:
        return sum(len(names) for names in self.absences.values())

    @property
    def total_acf(self) -> int:
        return sum(len(names) for names in self.acf.values())

    def absences_for(self, group: GroupSummary) -> List[str]:
        return self.absences.get(group.key, [])

    def acf_for(self, group: GroupSummary) -> List[str]:
        return self.acf.get(group.key, [])


class RecapResponse(BaseModel):
    id: uuid.UUID
    day: dt.date
    content: str
    source: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RecapGenerateRequest(BaseModel):
    """Corps optionnel de POST /api/v1/recaps/generate (par défaut : la veille)."""
    day: Optional[dt.date] = None

    @field_validator("day", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_day(v) if v is not None else None


class RecapGenerateResult(BaseModel):
    recap: RecapResponse
    created: bool                 # False = récap existant régénéré
    source: str
    groups_count: int
    absences_count: int
