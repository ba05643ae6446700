"""
Planificateur APScheduler pour la génération automatique du récap quotidien.

Le job s'exécute chaque matin (06:00 par défaut, fuseau SCHEDULER_TIMEZONE)
et génère le récap de la veille. Le même traitement reste disponible à la demande
via POST /api/v1/recaps/generate.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from internat.config import settings
from internat.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()

JOB_ID = "daily_recap"


def _generate_daily_recap_scheduled() -> None:
    """
    Tâche planifiée : génère le récap de la veille avec sa propre session.
    Import local pour éviter les imports circulaires.
    """
    from internat.services.recap_service import generate_recap

    db = SessionLocal()
    try:
        result = generate_recap(db)
        if result is None:
            logger.info("Récap automatique : aucun appel la veille, rien à générer.")
        else:
            logger.info(
                "Récap automatique du %s : %d groupe(s), %d absence(s), source=%s",
                result.recap.day, result.groups_count, result.absences_count, result.source,
            )
    except Exception as exc:
        logger.error("Erreur lors de la génération automatique du récap : %s", exc, exc_info=True)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler désactivé (SCHEDULER_ENABLED=false).")
        return
    scheduler.add_job(
        _generate_daily_recap_scheduled,
        trigger="cron",
        hour=settings.RECAP_CRON_HOUR,
        minute=settings.RECAP_CRON_MINUTE,
        timezone=settings.SCHEDULER_TIMEZONE,
        id=JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré — récap quotidien à %02d:%02d (%s).",
        settings.RECAP_CRON_HOUR, settings.RECAP_CRON_MINUTE, settings.SCHEDULER_TIMEZONE,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
