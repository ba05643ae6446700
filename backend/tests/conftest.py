"""
Configuration partagée pour tous les tests.

- client : override de la dépendance get_db par un MagicMock (aucune BDD réelle)
- db_session : base SQLite en mémoire, pour vérifier les invariants du registre d'appel
- file_engine : base SQLite sur disque, pour ouvrir deux sessions concurrentes
"""

import os

# Avant tout import de l'application : pas de PostgreSQL, pas de scheduler, pas d'IA
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""

import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import MagicMock

from internat.database import Base, get_db
from internat.main import app
from internat.models.student import Student
from internat.models.user import User

DAY = date(2024, 1, 15)


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Session sur une base SQLite en mémoire, tables créées à partir des modèles."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """Moteur SQLite sur fichier : plusieurs connexions réelles, comme en production."""
    engine = create_engine(f"sqlite:///{tmp_path / 'internat.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


# --- Fabriques ---

def add_student(db, last_name, first_name, grade_level="6eme", cohort="M", active=True) -> Student:
    student = Student(
        id=uuid.uuid4(),
        last_name=last_name,
        first_name=first_name,
        grade_level=grade_level,
        cohort=cohort,
        active=active,
    )
    db.add(student)
    db.commit()
    return student


def add_staff(db, role="aed", grade_level="6eme", cohort="M", email=None) -> User:
    if role != "aed":
        grade_level = cohort = None
    staff = User(
        id=uuid.uuid4(),
        email=email or f"{uuid.uuid4().hex[:8]}@internat.fr",
        password_hash="x",
        first_name="Camille",
        last_name="Martin",
        role=role,
        grade_level=grade_level,
        cohort=cohort,
    )
    db.add(staff)
    db.commit()
    return staff
