"""
Point d'entrée principal de l'API Internat (appel du soir et récaps quotidiens).
Démarrage : uvicorn internat.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import internat.models  # noqa: F401 — enregistre tous les modèles dans Base.metadata avant les routers
from internat.config import settings
from internat.database import init_db
from internat.routers import recaps, roll_calls, stats, students
from internat.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie de l'application : tables (dev), puis scheduler APScheduler."""
    if settings.AUTO_CREATE_TABLES:
        init_db()
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Internat API",
    description="Appel du soir des internes et récapitulatif quotidien pour la vie scolaire",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS — autorise tous les ports localhost en développement (à restreindre en production).
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(roll_calls.router)
app.include_router(students.router)
app.include_router(recaps.router)
app.include_router(stats.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées : le détail reste dans les logs,
    le client reçoit un message générique (pas de fuite d'information).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Internat API", "version": "0.1.0"}
