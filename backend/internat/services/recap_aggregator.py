"""
Agrégation des données d'une nuit pour le récapitulatif quotidien.

Lecture seule, aucun effet de bord :
- un groupe (niveau × cohorte) est actif s'il a au moins une ligne d'appel ce jour-là
- chaque groupe actif apparaît exactement une fois, avec son observation
  ou le texte neutre « Rien à signaler »
- une observation saisie pour un groupe sans appel est ignorée
- groupes triés dans l'ordre canonique : 6ème → Terminale, puis filles → garçons
"""

import logging
from collections import defaultdict
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from internat.constants import NOTHING_TO_REPORT, STATUT_ABSENT, STATUT_ACF, group_key, group_sort_key
from internat.dates import DayLike, normalize_day
from internat.models.attendance import AttendanceRecord
from internat.models.observation import GroupObservation
from internat.models.student import Student
from internat.schemas.recap import DayData, GroupSummary

logger = logging.getLogger(__name__)


def collect_day_data(db: Session, day: DayLike) -> DayData:
    """
    Rassemble, pour un jour, les groupes actifs, leurs observations et les élèves absents / ACF.
    Aucun groupe actif → DayData vide (is_empty), ce n'est pas une erreur.
    """
    day = normalize_day(day)

    rows = db.execute(
        select(
            AttendanceRecord.grade_level,
            AttendanceRecord.cohort,
            AttendanceRecord.status,
            Student.last_name,
            Student.first_name,
        )
        .join(Student, Student.id == AttendanceRecord.student_id)
        .where(AttendanceRecord.day == day)
    ).all()

    student_counts: Dict[tuple, int] = defaultdict(int)
    absences: Dict[str, List[str]] = defaultdict(list)
    acf: Dict[str, List[str]] = defaultdict(list)

    for grade_level, cohort, status, last_name, first_name in rows:
        student_counts[(grade_level, cohort)] += 1
        name = f"{last_name}, {first_name}"
        if status == STATUT_ABSENT:
            absences[group_key(grade_level, cohort)].append(name)
        elif status == STATUT_ACF:
            acf[group_key(grade_level, cohort)].append(name)

    if not student_counts:
        logger.info("Aucun appel enregistré pour le %s", day)
        return DayData(day=day)

    observations = {
        (obs.grade_level, obs.cohort): obs.text
        for obs in db.execute(
            select(GroupObservation).where(GroupObservation.day == day)
        ).scalars().all()
    }

    groups = []
    for grade_level, cohort in sorted(student_counts, key=lambda g: group_sort_key(*g)):
        text = (observations.get((grade_level, cohort)) or "").strip()
        groups.append(GroupSummary(
            grade_level=grade_level,
            cohort=cohort,
            observation=text or NOTHING_TO_REPORT,
            has_observation=bool(text),
            student_count=student_counts[(grade_level, cohort)],
        ))

    ignored = set(observations) - set(student_counts)
    if ignored:
        logger.warning(
            "Observation(s) sans appel ignorée(s) le %s : %s",
            day, ", ".join(group_key(*g) for g in sorted(ignored)),
        )

    data = DayData(
        day=day,
        groups=groups,
        absences={key: sorted(names, key=str.casefold) for key, names in absences.items()},
        acf={key: sorted(names, key=str.casefold) for key, names in acf.items()},
    )
    logger.info(
        "Données du %s : %d groupe(s) actif(s), %d absence(s), %d ACF",
        day, len(groups), data.total_absences, data.total_acf,
    )
    return data
