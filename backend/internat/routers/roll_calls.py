"""
Router pour l'appel du soir.
Sauvegarde et relecture de l'appel d'un groupe, historique pour l'administration.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from internat.constants import NIVEAUX, SEXES
from internat.database import get_db
from internat.dates import normalize_day
from internat.schemas.roll_call import RollCallHistory, RollCallResponse, RollCallSave, RollCallSaveResult
from internat.services import attendance_service

router = APIRouter(prefix="/api/v1/roll-calls", tags=["Appel du soir"])


def parse_day(value: Optional[str]):
    """Paramètre de requête 'day' → jour UTC normalisé (400 si invalide)."""
    if value is None:
        return None
    try:
        return normalize_day(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def check_group_params(grade_level: Optional[str], cohort: Optional[str]) -> None:
    if grade_level is not None and grade_level not in NIVEAUX:
        raise HTTPException(status_code=400, detail=f"Niveau invalide : '{grade_level}'.")
    if cohort is not None and cohort not in SEXES:
        raise HTTPException(status_code=400, detail="La cohorte doit être F ou M.")


@router.post(
    "",
    response_model=RollCallSaveResult,
    status_code=201,
    summary="Enregistrer l'appel d'un groupe",
)
def save_roll_call(data: RollCallSave, db: Session = Depends(get_db)):
    """
    Enregistre l'appel complet d'un niveau (ou d'une cohorte) et l'observation du groupe.

    Comportement :
    - Idempotent : renvoyer le même appel remplace le lot, sans doublon
    - Atomique : l'ancien lot reste intact si l'enregistrement échoue
    - Une observation vide n'est pas enregistrée

    Retourne 400 si les données sont incohérentes, 404 si le membre du personnel
    est introuvable, 409 si la transaction a échoué (l'appel peut être renvoyé).
    """
    try:
        return attendance_service.save_roll_call(db, data)
    except attendance_service.RollCallSaveError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        msg = str(e)
        if "introuvable" in msg:
            raise HTTPException(status_code=404, detail=msg)
        raise HTTPException(status_code=400, detail=msg)


@router.get("", response_model=RollCallResponse, summary="Appel d'un niveau pour un jour")
def get_roll_call(
    grade_level: str,
    day: Optional[str] = None,
    cohort: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Retourne l'appel existant (aujourd'hui par défaut). exists=false si rien n'a été saisi."""
    check_group_params(grade_level, cohort)
    return attendance_service.get_roll_call(db, grade_level, parse_day(day), cohort)


@router.get("/history", response_model=RollCallHistory, summary="Historique des appels")
def list_history(
    day: Optional[str] = None,
    grade_level: Optional[str] = None,
    cohort: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Historique des appels regroupés par niveau et par jour, filtres optionnels."""
    check_group_params(grade_level, cohort)
    return attendance_service.list_roll_call_history(db, parse_day(day), grade_level, cohort)
