"""
Registre des élèves et du personnel : lectures utilisées par l'appel et le tableau de bord.
Les écrans CRUD (création, modification, désactivation) sont gérés hors de ce service.
"""

import uuid
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from internat.constants import NIVEAUX, ROLE_AED, ROLES, SEXES, is_admin_role
from internat.models.attendance import AttendanceRecord
from internat.models.recap import DailyRecap
from internat.models.student import Student
from internat.models.user import User
from internat.schemas.stats import DashboardStats


def get_active_students(db: Session, grade_level: str, cohort: Optional[str] = None) -> List[Student]:
    """Élèves actifs d'un niveau (et d'une cohorte si fournie), triés par nom puis prénom."""
    query = select(Student).where(Student.grade_level == grade_level, Student.active.is_(True))
    if cohort is not None:
        query = query.where(Student.cohort == cohort)
    return list(
        db.execute(query.order_by(Student.last_name, Student.first_name)).scalars().all()
    )


def get_students_by_ids(db: Session, student_ids: List[uuid.UUID]) -> List[Student]:
    if not student_ids:
        return []
    return list(db.execute(select(Student).where(Student.id.in_(student_ids))).scalars().all())


def get_staff(db: Session, staff_id: uuid.UUID) -> Optional[User]:
    """Retourne un membre du personnel par son ID, ou None si inexistant."""
    return db.get(User, staff_id)


def check_staff_scope(role: str, grade_level: Optional[str], cohort: Optional[str]) -> None:
    """
    Vérifie l'invariant de rattachement du personnel :
    niveau et cohorte renseignés si et seulement si le rôle est 'aed'.
    Lève ValueError sinon.
    """
    if role not in ROLES:
        raise ValueError(f"Rôle invalide : '{role}'.")

    if role == ROLE_AED:
        if grade_level is None or cohort is None:
            raise ValueError("Un AED doit être rattaché à un niveau et à une cohorte.")
        if grade_level not in NIVEAUX:
            raise ValueError(f"Niveau invalide : '{grade_level}'.")
        if cohort not in SEXES:
            raise ValueError(f"Cohorte invalide : '{cohort}'.")
    elif grade_level is not None or cohort is not None:
        raise ValueError("Seul un AED peut être rattaché à un niveau et à une cohorte.")


def check_can_record(staff: User, grade_level: str, cohort: Optional[str]) -> None:
    """
    Un AED ne peut faire l'appel que de son propre groupe ;
    les rôles administratifs ont accès à tous les groupes.
    """
    check_staff_scope(staff.role, staff.grade_level, staff.cohort)
    if is_admin_role(staff.role):
        return
    if staff.grade_level != grade_level:
        raise ValueError(
            f"Cet AED est rattaché au niveau {staff.grade_level}, pas au niveau {grade_level}."
        )
    if cohort is not None and staff.cohort != cohort:
        raise ValueError(
            f"Cet AED est rattaché à la cohorte {staff.cohort}, pas à la cohorte {cohort}."
        )


def count_dashboard_stats(db: Session) -> DashboardStats:
    """Compteurs globaux du tableau de bord administrateur."""
    total_aed = db.execute(
        select(func.count()).select_from(User).where(User.role == ROLE_AED)
    ).scalar() or 0
    total_students = db.execute(
        select(func.count()).select_from(Student).where(Student.active.is_(True))
    ).scalar() or 0
    total_records = db.execute(
        select(func.count()).select_from(AttendanceRecord)
    ).scalar() or 0
    total_recaps = db.execute(
        select(func.count()).select_from(DailyRecap)
    ).scalar() or 0

    return DashboardStats(
        total_aed=total_aed,
        total_students=total_students,
        total_attendance_records=total_records,
        total_recaps=total_recaps,
    )
