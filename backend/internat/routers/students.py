"""
Router pour le registre des élèves : liste des internes à appeler.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from internat.database import get_db
from internat.routers.roll_calls import check_group_params
from internat.schemas.student import StudentResponse
from internat.services import roster_service

router = APIRouter(prefix="/api/v1/students", tags=["Élèves"])


@router.get("", response_model=List[StudentResponse], summary="Élèves actifs d'un groupe")
def list_active_students(
    grade_level: str,
    cohort: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Élèves actifs d'un niveau (et d'une cohorte), triés par nom puis prénom."""
    check_group_params(grade_level, cohort)
    return roster_service.get_active_students(db, grade_level, cohort)
