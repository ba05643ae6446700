"""
Service de l'appel du soir : registre des présences et observations de groupe.

Stratégie de resoumission : remplacement complet (pas de fusion)
- Un lot d'appel est identifié par (niveau, jour), ou (niveau, cohorte, jour) quand
  l'appel porte sur une seule cohorte
- Resoumettre un lot supprime l'ancien et insère le nouveau dans UNE transaction :
  un lecteur voit l'ancien lot complet ou le nouveau lot complet, jamais un mélange
- Deux soumissions concurrentes : la dernière transaction commitée gagne
- L'observation du groupe est un upsert sur (jour, niveau, cohorte)
"""

import logging
import uuid
from collections import OrderedDict
from datetime import date
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from internat.constants import (
    MAX_OBSERVATION_LENGTH,
    MAX_ROLL_CALL_SIZE,
    NIVEAUX,
    ROLE_AED,
    SEXES,
    STATUT_ABSENT,
    STATUT_ACF,
    STATUTS,
)
from internat.dates import DayLike, normalize_day
from internat.models.attendance import AttendanceRecord
from internat.models.observation import GroupObservation
from internat.models.student import Student
from internat.models.user import User
from internat.schemas.roll_call import (
    AttendanceRecordIn,
    RollCallHistory,
    RollCallHistoryGroup,
    RollCallRecord,
    RollCallResponse,
    RollCallSave,
    RollCallSaveResult,
    StaffSummary,
)
from internat.services import roster_service

logger = logging.getLogger(__name__)


class RollCallSaveError(Exception):
    """La transaction d'enregistrement a échoué : rien n'a été modifié, l'appel peut être renvoyé."""


# ----------------------------------------------------------------
# Lot d'appel : remplacement atomique
# ----------------------------------------------------------------

def _batch_conditions(grade_level: str, day: date, cohort: Optional[str]) -> list:
    conditions = [AttendanceRecord.grade_level == grade_level, AttendanceRecord.day == day]
    if cohort is not None:
        conditions.append(AttendanceRecord.cohort == cohort)
    return conditions


def _check_batch(grade_level: str, cohort: Optional[str], records: Sequence[AttendanceRecordIn]) -> None:
    if grade_level not in NIVEAUX:
        raise ValueError(f"Niveau invalide : '{grade_level}'.")
    if cohort is not None and cohort not in SEXES:
        raise ValueError(f"Cohorte invalide : '{cohort}'.")
    if not records:
        raise ValueError("Au moins un appel est requis.")
    if len(records) > MAX_ROLL_CALL_SIZE:
        raise ValueError(f"Maximum {MAX_ROLL_CALL_SIZE} appels par soumission.")
    for record in records:
        if record.status not in STATUTS:
            raise ValueError(f"Statut invalide : '{record.status}'.")


def _replace_records(
    db: Session,
    grade_level: str,
    day: date,
    records: Sequence[AttendanceRecordIn],
    cohort: Optional[str],
    cohort_by_student: Dict[uuid.UUID, str],
) -> int:
    """Supprime le lot existant puis insère le nouveau, sans commit (transaction de l'appelant)."""
    db.execute(
        delete(AttendanceRecord).where(*_batch_conditions(grade_level, day, cohort))
    )
    db.add_all([
        AttendanceRecord(
            student_id=record.student_id,
            staff_id=record.staff_id,
            grade_level=grade_level,
            cohort=cohort_by_student[record.student_id],
            day=day,
            status=record.status,
        )
        for record in records
    ])
    db.flush()
    return len(records)


def _load_student_cohorts(
    db: Session,
    grade_level: str,
    cohort: Optional[str],
    student_ids: List[uuid.UUID],
) -> Dict[uuid.UUID, str]:
    """
    Vérifie que tous les élèves existent et appartiennent au lot (niveau, cohorte),
    puis retourne la cohorte de chacun. Lève ValueError sinon.
    """
    students = {s.id: s for s in roster_service.get_students_by_ids(db, student_ids)}

    unknown = [str(sid) for sid in student_ids if sid not in students]
    if unknown:
        raise ValueError(f"Élève(s) inconnu(s) : {', '.join(unknown)}")

    for student in students.values():
        if student.grade_level != grade_level:
            raise ValueError(
                f"L'élève {student.display_name} est en {student.grade_level}, pas en {grade_level}."
            )
        if cohort is not None and student.cohort != cohort:
            raise ValueError(
                f"L'élève {student.display_name} n'appartient pas à la cohorte {cohort}."
            )

    return {sid: s.cohort for sid, s in students.items()}


def replace_for_group_and_day(
    db: Session,
    grade_level: str,
    day: DayLike,
    records: Sequence[AttendanceRecordIn],
    cohort: Optional[str] = None,
) -> int:
    """
    Remplace le lot d'appel (niveau, jour), ou (niveau, cohorte, jour) si cohort est fourni.

    1. Valide le lot (1 à 100 lignes, statuts connus, élèves du bon niveau)
    2. Supprime toutes les lignes existantes du lot
    3. Insère les nouvelles lignes
    4. Commit unique

    En cas d'échec, la transaction est annulée : l'ancien lot reste intact
    et RollCallSaveError est levée. Retourne le nombre de lignes insérées.
    """
    day = normalize_day(day)
    _check_batch(grade_level, cohort, records)
    try:
        cohort_by_student = _load_student_cohorts(
            db, grade_level, cohort, [r.student_id for r in records]
        )
        count = _replace_records(db, grade_level, day, records, cohort, cohort_by_student)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec du remplacement de l'appel %s du %s : %s", grade_level, day, exc)
        raise RollCallSaveError("L'appel n'a pas pu être enregistré, veuillez réessayer.") from exc

    logger.info("Appel %s (%s) du %s remplacé : %d ligne(s)", grade_level, cohort or "tous", day, count)
    return count


# ----------------------------------------------------------------
# Observation de groupe : upsert sur (jour, niveau, cohorte)
# ----------------------------------------------------------------

def _check_observation(grade_level: str, cohort: str, text: str) -> None:
    if grade_level not in NIVEAUX:
        raise ValueError(f"Niveau invalide : '{grade_level}'.")
    if cohort not in SEXES:
        raise ValueError(f"Cohorte invalide : '{cohort}'.")
    if text is None or len(text) > MAX_OBSERVATION_LENGTH:
        raise ValueError(
            f"L'observation ne peut pas dépasser {MAX_OBSERVATION_LENGTH} caractères."
        )


def _upsert_observation(
    db: Session,
    day: date,
    grade_level: str,
    cohort: str,
    text: str,
    staff_id: uuid.UUID,
) -> GroupObservation:
    """Insère ou met à jour l'observation, sans commit."""
    observation = find_group_observation(db, day, grade_level, cohort)
    if observation is None:
        observation = GroupObservation(
            day=day,
            grade_level=grade_level,
            cohort=cohort,
            text=text,
            staff_id=staff_id,
        )
        db.add(observation)
    else:
        observation.text = text
        observation.staff_id = staff_id
    db.flush()
    return observation


def upsert_group_observation(
    db: Session,
    day: DayLike,
    grade_level: str,
    cohort: str,
    text: str,
    staff_id: uuid.UUID,
) -> GroupObservation:
    """
    Enregistre l'observation d'un groupe pour une nuit.
    Une seule ligne par (jour, niveau, cohorte) : la dernière saisie écrase la précédente.

    Si un INSERT concurrent a gagné la course sur la clé unique, l'opération
    est rejouée une fois en mise à jour.
    """
    day = normalize_day(day)
    _check_observation(grade_level, cohort, text)

    try:
        observation = _upsert_observation(db, day, grade_level, cohort, text, staff_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Observation %s-%s du %s créée en parallèle, mise à jour", grade_level, cohort, day)
        observation = _upsert_observation(db, day, grade_level, cohort, text, staff_id)
        db.commit()

    db.refresh(observation)
    return observation


def find_group_observation(
    db: Session,
    day: DayLike,
    grade_level: str,
    cohort: str,
) -> Optional[GroupObservation]:
    """Observation enregistrée pour un groupe et une nuit, ou None."""
    return db.execute(
        select(GroupObservation).where(
            GroupObservation.day == normalize_day(day),
            GroupObservation.grade_level == grade_level,
            GroupObservation.cohort == cohort,
        )
    ).scalar_one_or_none()


# ----------------------------------------------------------------
# Lectures
# ----------------------------------------------------------------

def find_by_grade_level_and_day(
    db: Session,
    grade_level: str,
    day: DayLike,
    cohort: Optional[str] = None,
) -> list:
    """
    Lot d'appel actif joint à l'identité des élèves, trié par nom puis prénom.
    Retourne une liste de lignes (AttendanceRecord, Student), vide si aucun appel.
    """
    day = normalize_day(day)
    return list(
        db.execute(
            select(AttendanceRecord, Student)
            .join(Student, Student.id == AttendanceRecord.student_id)
            .where(*_batch_conditions(grade_level, day, cohort))
            .order_by(Student.last_name, Student.first_name)
        ).all()
    )


def _to_record(record: AttendanceRecord, student: Student) -> RollCallRecord:
    return RollCallRecord(
        student_id=student.id,
        last_name=student.last_name,
        first_name=student.first_name,
        cohort=record.cohort,
        status=record.status,
    )


def get_roll_call(
    db: Session,
    grade_level: str,
    day: DayLike = None,
    cohort: Optional[str] = None,
) -> RollCallResponse:
    """
    Appel existant d'un niveau pour un jour (aujourd'hui par défaut).
    Aucun appel saisi → exists=False, liste vide (ce n'est pas une erreur).
    """
    day = normalize_day(day)
    rows = find_by_grade_level_and_day(db, grade_level, day, cohort)

    observation = None
    if cohort is not None:
        saved = find_group_observation(db, day, grade_level, cohort)
        observation = saved.text if saved is not None else None

    if not rows:
        return RollCallResponse(
            exists=False, day=day, grade_level=grade_level, cohort=cohort, observation=observation
        )

    staff = roster_service.get_staff(db, rows[0][0].staff_id)
    return RollCallResponse(
        exists=True,
        day=day,
        grade_level=grade_level,
        cohort=cohort,
        entries=[_to_record(record, student) for record, student in rows],
        observation=observation,
        recorded_by=StaffSummary.model_validate(staff) if staff is not None else None,
    )


def list_roll_call_history(
    db: Session,
    day: DayLike = None,
    grade_level: Optional[str] = None,
    cohort: Optional[str] = None,
) -> RollCallHistory:
    """
    Historique des appels, regroupés par (niveau, jour).
    Tous les filtres sont optionnels ; sans filtre de jour, tout l'historique est retourné.
    """
    query = (
        select(AttendanceRecord, Student, User)
        .join(Student, Student.id == AttendanceRecord.student_id)
        .join(User, User.id == AttendanceRecord.staff_id)
    )
    if day is not None:
        query = query.where(AttendanceRecord.day == normalize_day(day))
    if grade_level is not None:
        query = query.where(AttendanceRecord.grade_level == grade_level)
    if cohort is not None:
        query = query.where(AttendanceRecord.cohort == cohort)

    rows = db.execute(
        query.order_by(AttendanceRecord.day.desc(), Student.last_name, Student.first_name)
    ).all()

    grouped: "OrderedDict[tuple, RollCallHistoryGroup]" = OrderedDict()
    for record, student, staff in rows:
        key = (record.grade_level, record.day)
        if key not in grouped:
            grouped[key] = RollCallHistoryGroup(
                grade_level=record.grade_level,
                day=record.day,
                recorded_by=StaffSummary.model_validate(staff),  # Premier AED trouvé pour ce lot
                entries=[],
                absent_count=0,
                acf_count=0,
            )
        group = grouped[key]
        group.entries.append(_to_record(record, student))
        if record.status == STATUT_ABSENT:
            group.absent_count += 1
        elif record.status == STATUT_ACF:
            group.acf_count += 1

    niveau_rank = {niveau: i for i, niveau in enumerate(NIVEAUX)}
    groups = sorted(
        grouped.values(),
        key=lambda g: (niveau_rank.get(g.grade_level, len(NIVEAUX)), -g.day.toordinal()),
    )
    return RollCallHistory(groups=groups, total=len(rows))


# ----------------------------------------------------------------
# Sauvegarde complète (contrat exposé à l'interface)
# ----------------------------------------------------------------

def save_roll_call(db: Session, data: RollCallSave) -> RollCallSaveResult:
    """
    Enregistre l'appel d'un groupe et son observation en une seule transaction.

    - Le jour par défaut est aujourd'hui (UTC)
    - Un AED n'enregistre que son propre groupe ; sans cohorte explicite,
      le lot est restreint à la cohorte de l'AED
    - Une observation vide n'est pas enregistrée (l'observation existante est conservée)

    Lève ValueError (validation, rien n'est écrit) ou RollCallSaveError (transaction annulée).
    """
    day = data.day or normalize_day()

    staff = roster_service.get_staff(db, data.staff_id)
    if staff is None:
        raise ValueError(f"Membre du personnel {data.staff_id} introuvable.")
    roster_service.check_can_record(staff, data.grade_level, data.cohort)

    cohort = data.cohort
    if cohort is None and staff.role == ROLE_AED:
        cohort = staff.cohort

    observation = (data.observation or "").strip()
    if observation and cohort is None:
        raise ValueError("Une observation concerne un groupe : précisez la cohorte.")

    records = [
        AttendanceRecordIn(student_id=entry.student_id, staff_id=staff.id, status=entry.status)
        for entry in data.entries
    ]
    _check_batch(data.grade_level, cohort, records)
    try:
        cohort_by_student = _load_student_cohorts(
            db, data.grade_level, cohort, [r.student_id for r in records]
        )
        count = _replace_records(db, data.grade_level, day, records, cohort, cohort_by_student)
        if observation:
            _upsert_observation(db, day, data.grade_level, cohort, observation, staff.id)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Échec de l'enregistrement de l'appel %s du %s : %s", data.grade_level, day, exc)
        raise RollCallSaveError("L'appel n'a pas pu être enregistré, veuillez réessayer.") from exc

    logger.info(
        "Appel %s (%s) du %s enregistré par %s : %d élève(s), observation=%s",
        data.grade_level, cohort or "tous", day, staff.display_name, count, bool(observation),
    )

    return RollCallSaveResult(
        count=count,
        day=day,
        grade_level=data.grade_level,
        cohort=cohort,
        observation_saved=bool(observation),
    )
