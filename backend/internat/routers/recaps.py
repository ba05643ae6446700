"""
Router pour les récapitulatifs quotidiens.
La génération est déclenchée chaque matin par le scheduler, ou à la demande.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from internat.database import get_db
from internat.routers.roll_calls import parse_day
from internat.schemas.recap import RecapGenerateRequest, RecapGenerateResult, RecapResponse
from internat.services import recap_service

router = APIRouter(prefix="/api/v1/recaps", tags=["Récaps"])


@router.get("", response_model=List[RecapResponse], summary="Lister les récaps")
def list_recaps(db: Session = Depends(get_db)):
    """Tous les récaps quotidiens, du plus récent au plus ancien."""
    return recap_service.list_recaps(db)


@router.get("/{day}", response_model=RecapResponse, summary="Récap d'un jour")
def get_recap(day: str, db: Session = Depends(get_db)):
    recap = recap_service.get_recap(db, parse_day(day))
    if recap is None:
        raise HTTPException(status_code=404, detail="Aucun récap pour cette date.")
    return recap


@router.post("/generate", response_model=RecapGenerateResult, summary="Générer ou régénérer un récap")
def generate_recap(data: Optional[RecapGenerateRequest] = None, db: Session = Depends(get_db)):
    """
    Génère le récap d'un jour (la veille si aucune date n'est fournie).

    Un récap existant est mis à jour en place : son identifiant et sa date
    de première génération sont conservés.
    Retourne 404 si aucun appel n'a été enregistré ce jour-là.
    """
    day = data.day if data is not None else None
    result = recap_service.generate_recap(db, day)
    if result is None:
        raise HTTPException(status_code=404, detail="Aucun appel trouvé pour cette date.")
    return result
