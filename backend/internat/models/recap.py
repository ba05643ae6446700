"""
Modèle SQLAlchemy pour le récapitulatif quotidien (un seul par jour).
Une régénération met à jour content en place : l'id et created_at ne changent pas.
"""

import uuid
from sqlalchemy import Column, Date, DateTime, String, Text, Uuid, func

from internat.database import Base


class DailyRecap(Base):
    __tablename__ = "daily_recaps"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    day = Column(Date, unique=True, nullable=False)
    content = Column(Text, nullable=False)
    source = Column(String(20), nullable=True)         # openai, anthropic, fallback
    created_at = Column(DateTime, server_default=func.now())   # Première génération
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
