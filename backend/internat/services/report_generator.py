"""
Génération du texte du récapitulatif quotidien.

Chaîne de stratégies, dans l'ordre fourni à la construction :
1. fournisseurs externes (OpenAI, Anthropic, ...) : tout échec passe au suivant
2. modèle déterministe sans IA, qui ne peut pas échouer

Le personnel reçoit donc toujours un récap, même si aucun service d'IA ne répond.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from internat.config import Settings
from internat.constants import NOTHING_TO_REPORT
from internat.dates import DayLike, format_day_fr, normalize_day
from internat.schemas.recap import DayData, GroupSummary
from internat.services.text_providers import AnthropicProvider, OpenAIProvider, ProviderError, TextProvider

logger = logging.getLogger(__name__)

FALLBACK_SOURCE = "fallback"


@dataclass(frozen=True)
class GeneratedReport:
    text: str
    source: str  # nom du fournisseur ou "fallback"


def _group_lines(data: DayData, group: GroupSummary) -> List[str]:
    lines = [f"Observation : {group.observation}"]
    absents = data.absences_for(group)
    if absents:
        lines.append(f"Absents ({len(absents)}) : {' ; '.join(absents)}")
    acf = data.acf_for(group)
    if acf:
        lines.append(f"ACF ({len(acf)}) : {' ; '.join(acf)}")
    return lines


def build_prompt(data: DayData, day: DayLike = None) -> str:
    """Prompt décrivant chaque groupe actif : observation, absents et ACF."""
    day = normalize_day(day or data.day)

    sections = []
    for group in data.groups:
        sections.append(f"## {group.label} ({group.student_count} élève(s) à l'appel)")
        sections.extend(f"- {line}" for line in _group_lines(data, group))
        sections.append("")
    observations_text = "\n".join(sections)

    return f"""Tu dois générer un récapitulatif professionnel et concis de la nuit du {format_day_fr(day)} à l'internat.

{len(data.groups)} groupe(s) ont fait l'appel, {data.total_absences} absence(s) au total.
« {NOTHING_TO_REPORT} » signifie qu'aucune observation n'a été saisie pour le groupe.

Voici les données par groupe (niveau et cohorte) :

{observations_text}
Génère un récapitulatif structuré qui :
1. Commence par un résumé général (1-2 phrases max)
2. Reprend chaque groupe dans l'ordre ci-dessus (6ème → Terminale, filles puis garçons)
3. Résume pour chaque groupe les points importants de manière concise
4. Utilise des emojis pour la lisibilité : 🔴 Absents, 🟠 ACF, ✅ Rien à signaler
5. Liste nommément les élèves absents
6. Met en avant les situations nécessitant une attention particulière

Format attendu :
📊 Récapitulatif - [résumé global en 1-2 phrases]

🎓 [GROUPE]
[Résumé concis des points clés]

⚠️ Points d'attention : [s'il y en a]

Reste factuel, professionnel et concis. Maximum 300 mots."""


def render_fallback(data: DayData, day: DayLike = None) -> str:
    """
    Récap sans IA : ligne de synthèse, puis pour chaque groupe dans l'ordre canonique
    son en-tête, son observation et la liste alphabétique des absents (et ACF).
    """
    day = normalize_day(day or data.day)

    lines = [
        f"📊 Récapitulatif de la nuit du {format_day_fr(day)} — "
        f"{len(data.groups)} groupe(s) actif(s), {data.total_absences} absence(s)"
    ]
    if data.is_empty:
        lines.append("")
        lines.append("Aucun appel n'a été enregistré pour cette nuit.")
        return "\n".join(lines)

    for group in data.groups:
        lines.append("")
        lines.append(f"🎓 {group.label} ({group.student_count} élève(s))")
        if group.has_observation:
            lines.append(f"  📝 {group.observation}")
        else:
            lines.append(f"  ✅ {NOTHING_TO_REPORT}")

        absents = data.absences_for(group)
        if absents:
            lines.append(f"  🔴 Absents ({len(absents)})")
            lines.extend(f"    • {name}" for name in absents)

        acf = data.acf_for(group)
        if acf:
            lines.append(f"  🟠 ACF ({len(acf)})")
            lines.extend(f"    • {name}" for name in acf)

    return "\n".join(lines)


class ReportGenerator:
    """Essaie chaque fournisseur dans l'ordre, puis le modèle déterministe."""

    def __init__(self, providers: Sequence[TextProvider] = ()):
        self.providers = list(providers)

    def generate(self, data: DayData, day: DayLike = None) -> GeneratedReport:
        day = normalize_day(day or data.day)

        if self.providers and not data.is_empty:
            prompt = build_prompt(data, day)
            for provider in self.providers:
                try:
                    text = provider.generate(prompt)
                    if not isinstance(text, str) or not text.strip():
                        raise ProviderError(f"{provider.name} : réponse vide ou invalide")
                except Exception as exc:  # Quelle que soit la cause, on passe au suivant
                    logger.warning("[Récap] Fournisseur %s en échec : %s", provider.name, exc)
                    continue
                logger.info("[Récap] Texte du %s généré par %s", day, provider.name)
                return GeneratedReport(text=text.strip(), source=provider.name)

        logger.info("[Récap] Texte du %s généré sans IA (fallback)", day)
        return GeneratedReport(text=render_fallback(data, day), source=FALLBACK_SOURCE)


def build_report_generator(config: Settings) -> ReportGenerator:
    """
    Construit la chaîne de fournisseurs depuis la configuration :
    ordre de RECAP_PROVIDERS, fournisseur retenu seulement si sa clé API est renseignée.
    """
    common = {"timeout": config.LLM_TIMEOUT_SECONDS, "max_tokens": config.LLM_MAX_TOKENS}
    factories = {
        "openai": lambda: OpenAIProvider(
            config.OPENAI_API_KEY, model=config.OPENAI_MODEL, base_url=config.OPENAI_BASE_URL, **common
        ) if config.OPENAI_API_KEY else None,
        "anthropic": lambda: AnthropicProvider(
            config.ANTHROPIC_API_KEY, model=config.ANTHROPIC_MODEL, base_url=config.ANTHROPIC_BASE_URL, **common
        ) if config.ANTHROPIC_API_KEY else None,
    }

    providers: List[TextProvider] = []
    for name in config.recap_provider_order:
        factory = factories.get(name)
        if factory is None:
            logger.warning("[Récap] Fournisseur inconnu ignoré : %s", name)
            continue
        provider: Optional[TextProvider] = factory()
        if provider is None:
            logger.debug("[Récap] Fournisseur %s sans clé API, ignoré", name)
            continue
        providers.append(provider)

    logger.info(
        "[Récap] Chaîne de génération : %s",
        " → ".join([p.name for p in providers] + [FALLBACK_SOURCE]),
    )
    return ReportGenerator(providers)
