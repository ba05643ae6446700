"""
Schémas Pydantic pour l'appel du soir.
Endpoints : POST/GET /api/v1/roll-calls, GET /api/v1/roll-calls/history
"""

import uuid
import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, field_validator

from internat.constants import MAX_OBSERVATION_LENGTH, MAX_ROLL_CALL_SIZE, NIVEAUX, SEXES, STATUTS
from internat.dates import normalize_day


def _check_grade_level(v: str) -> str:
    if v not in NIVEAUX:
        raise ValueError(f"Niveau invalide. Valeurs acceptées : {', '.join(NIVEAUX)}")
    return v


def _check_cohort(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in SEXES:
        raise ValueError("La cohorte doit être F ou M.")
    return v


class RollCallEntry(BaseModel):
    """Statut d'un élève saisi par l'AED."""
    student_id: uuid.UUID
    status: str  # present, acf, absent

    @field_validator("status")
    @classmethod
    def valid_status(cls, v: str) -> str:
        if v not in STATUTS:
            raise ValueError("Le statut doit être present, acf ou absent.")
        return v


class AttendanceRecordIn(BaseModel):
    """Ligne prête à être insérée dans un lot d'appel."""
    student_id: uuid.UUID
    staff_id: uuid.UUID
    status: str


class RollCallSave(BaseModel):
    """Corps de la sauvegarde d'un appel complet (un niveau, éventuellement une cohorte)."""

    staff_id: uuid.UUID
    grade_level: str
    cohort: Optional[str] = None        # None = lot du niveau entier
    day: Optional[dt.date] = None       # None = aujourd'hui (UTC)
    entries: List[RollCallEntry]
    observation: Optional[str] = None

    @field_validator("grade_level")
    @classmethod
    def valid_grade_level(cls, v: str) -> str:
        return _check_grade_level(v)

    @field_validator("cohort")
    @classmethod
    def valid_cohort(cls, v: Optional[str]) -> Optional[str]:
        return _check_cohort(v)

    @field_validator("day", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_day(v) if v is not None else None

    @field_validator("entries")
    @classmethod
    def entries_size(cls, v: List[RollCallEntry]) -> List[RollCallEntry]:
        if not v:
            raise ValueError("Au moins un appel est requis.")
        if len(v) > MAX_ROLL_CALL_SIZE:
            raise ValueError(f"Maximum {MAX_ROLL_CALL_SIZE} appels par soumission.")
        seen = set()
        for entry in v:
            if entry.student_id in seen:
                raise ValueError(f"Élève {entry.student_id} présent plusieurs fois dans l'appel.")
            seen.add(entry.student_id)
        return v

    @field_validator("observation")
    @classmethod
    def observation_length(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > MAX_OBSERVATION_LENGTH:
            raise ValueError(
                f"L'observation ne peut pas dépasser {MAX_OBSERVATION_LENGTH} caractères."
            )
        return v


class RollCallSaveResult(BaseModel):
    count: int
    day: dt.date
    grade_level: str
    cohort: Optional[str]
    observation_saved: bool


class RollCallRecord(BaseModel):
    """Ligne d'appel jointe à l'identité de l'élève, pour l'affichage."""
    student_id: uuid.UUID
    last_name: str
    first_name: str
    cohort: str
    status: str


class StaffSummary(BaseModel):
    id: uuid.UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {"from_attributes": True}


class RollCallResponse(BaseModel):
    """Appel existant d'un niveau pour un jour. exists=False si rien n'a encore été saisi."""
    exists: bool
    day: dt.date
    grade_level: str
    cohort: Optional[str] = None
    entries: List[RollCallRecord] = []
    observation: Optional[str] = None
    recorded_by: Optional[StaffSummary] = None


class RollCallHistoryGroup(BaseModel):
    """Lot d'appel historique regroupé par (niveau, jour)."""
    grade_level: str
    day: dt.date
    recorded_by: Optional[StaffSummary] = None
    entries: List[RollCallRecord]
    absent_count: int
    acf_count: int


class RollCallHistory(BaseModel):
    groups: List[RollCallHistoryGroup]
    total: int
