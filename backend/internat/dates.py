"""
Normalisation des jours d'appel.

Toutes les entrées qui acceptent un jour passent par normalize_day() :
un jour d'appel est une date calendaire UTC, jamais un horodatage local.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union

DayLike = Union[None, str, date, datetime]

_JOURS = ("lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche")
_MOIS = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_day(value: DayLike = None) -> date:
    """
    Ramène une valeur quelconque au jour calendaire UTC.

    - None          → aujourd'hui (UTC)
    - date          → inchangée
    - datetime      → convertie en UTC (naïve = déjà UTC) puis tronquée
    - str           → 'YYYY-MM-DD' ou datetime ISO 8601 ('Z' accepté)

    Lève ValueError si la chaîne n'est pas une date valide.
    """
    if value is None:
        return utc_now().date()

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValueError("Date vide.")
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            if len(raw) == 10:
                return date.fromisoformat(raw)
            return normalize_day(datetime.fromisoformat(raw))
        except ValueError:
            raise ValueError(f"Date invalide : '{value}'. Format attendu : YYYY-MM-DD.")

    raise ValueError(f"Type de date non supporté : {type(value).__name__}")


def yesterday(now: Optional[datetime] = None) -> date:
    """Veille du jour UTC courant : jour ciblé par le récap du matin."""
    return normalize_day(now or utc_now()) - timedelta(days=1)


def format_day_fr(day: DayLike, with_year: bool = True) -> str:
    """Date longue en français, indépendante de la locale système : 'lundi 15 janvier 2024'."""
    d = normalize_day(day)
    text = f"{_JOURS[d.weekday()]} {d.day} {_MOIS[d.month - 1]}"
    if with_year:
        text += f" {d.year}"
    return text
