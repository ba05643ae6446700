"""
Service des récapitulatifs quotidiens : stockage (un récap par jour) et génération.

Régénérer un récap existant met à jour son contenu en place :
l'id et created_at (date de première génération) sont conservés, updated_at est rafraîchi.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from internat.config import settings
from internat.dates import DayLike, normalize_day, yesterday
from internat.models.recap import DailyRecap
from internat.schemas.recap import RecapGenerateResult, RecapResponse
from internat.services.recap_aggregator import collect_day_data
from internat.services.report_generator import ReportGenerator, build_report_generator

logger = logging.getLogger(__name__)


def get_recap(db: Session, day: DayLike) -> Optional[DailyRecap]:
    """Récap d'un jour, ou None s'il n'a pas encore été généré."""
    return db.execute(
        select(DailyRecap).where(DailyRecap.day == normalize_day(day))
    ).scalar_one_or_none()


def list_recaps(db: Session) -> List[DailyRecap]:
    """Tous les récaps, du plus récent au plus ancien."""
    return list(
        db.execute(select(DailyRecap).order_by(DailyRecap.day.desc())).scalars().all()
    )


def _write_recap(db: Session, day, content: str, source: Optional[str]) -> tuple:
    recap = get_recap(db, day)
    created = recap is None
    if created:
        recap = DailyRecap(day=day, content=content, source=source)
        db.add(recap)
    else:
        recap.content = content
        recap.source = source
    db.commit()
    return recap, created


def upsert_daily_recap(
    db: Session,
    day: DayLike,
    content: str,
    source: Optional[str] = None,
) -> tuple:
    """
    Crée le récap du jour ou écrase son contenu s'il existe déjà.
    Retourne (récap, created). Si une génération concurrente a créé la ligne
    entre-temps (clé unique sur day), l'écriture est rejouée en mise à jour.
    """
    day = normalize_day(day)
    try:
        recap, created = _write_recap(db, day, content, source)
    except IntegrityError:
        db.rollback()
        logger.info("Récap du %s créé en parallèle, mise à jour", day)
        recap, created = _write_recap(db, day, content, source)

    db.refresh(recap)
    logger.info("Récap du %s %s", day, "créé" if created else "mis à jour")
    return recap, created


def generate_recap(
    db: Session,
    day: DayLike = None,
    generator: Optional[ReportGenerator] = None,
) -> Optional[RecapGenerateResult]:
    """
    Génère (ou régénère) le récap d'un jour, la veille par défaut.

    1. Agrège les groupes actifs, observations et absences du jour
    2. Aucun groupe actif → None (pas de données, rien n'est écrit)
    3. Génère le texte (fournisseurs IA puis modèle déterministe)
    4. Enregistre ou met à jour le récap du jour
    """
    day = normalize_day(day) if day is not None else yesterday()
    logger.info("[Génération récap] Date : %s", day)

    data = collect_day_data(db, day)
    if data.is_empty:
        logger.info("[Génération récap] Aucun appel trouvé pour le %s", day)
        return None

    generator = generator or build_report_generator(settings)
    report = generator.generate(data, day)
    recap, created = upsert_daily_recap(db, day, report.text, report.source)

    return RecapGenerateResult(
        recap=RecapResponse.model_validate(recap),
        created=created,
        source=report.source,
        groups_count=len(data.groups),
        absences_count=data.total_absences,
    )
