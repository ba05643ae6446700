"""
Router pour les compteurs du tableau de bord administrateur.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from internat.database import get_db
from internat.schemas.stats import DashboardStats
from internat.services import roster_service

router = APIRouter(prefix="/api/v1/stats", tags=["Tableau de bord"])


@router.get("", response_model=DashboardStats, summary="Statistiques globales")
def get_stats(db: Session = Depends(get_db)):
    return roster_service.count_dashboard_stats(db)
