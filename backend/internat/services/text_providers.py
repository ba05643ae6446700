"""
Fournisseurs de génération de texte (OpenAI, Anthropic) appelés en HTTP via httpx.

Chaque fournisseur expose generate(prompt) -> str et lève ProviderError pour
tout échec : délai dépassé, erreur réseau, statut HTTP non 2xx, JSON illisible,
réponse vide. Le timeout du client httpx borne chaque appel.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Tu es un assistant de vie scolaire professionnel dans un internat. "
    "Tu génères des récapitulatifs clairs, concis et structurés."
)


class ProviderError(Exception):
    """Échec d'un fournisseur de texte : la chaîne passe au fournisseur suivant."""


class TextProvider(ABC):
    """Stratégie de génération de texte à partir d'un prompt."""

    name: str = "provider"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float = 30.0,
        max_tokens: int = 1024,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout, connect=min(timeout, 10.0))
        self.max_tokens = max_tokens
        self._transport = transport  # injecté par les tests (httpx.MockTransport)

    @abstractmethod
    def generate(self, prompt: str) -> str:
        raise NotImplementedError

    def _post(self, path: str, payload: dict, headers: dict) -> dict:
        """POST JSON et retourne le corps décodé ; toute anomalie devient ProviderError."""
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self._transport) as client:
                logger.info("[%s] Envoi de la requête (modèle %s)", self.name, self.model)
                response = client.post(path, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise ProviderError(f"{self.name} : délai dépassé") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} : erreur réseau ({exc})") from exc

        if response.status_code != 200:
            raise ProviderError(f"{self.name} : statut HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} : réponse JSON illisible") from exc

    def _clean(self, content) -> str:
        if not isinstance(content, str) or not content.strip():
            raise ProviderError(f"{self.name} : réponse vide")
        return content.strip()


class OpenAIProvider(TextProvider):
    """Chat Completions d'OpenAI."""

    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o",
                 base_url: str = "https://api.openai.com", temperature: float = 0.7, **kwargs):
        super().__init__(api_key, model, base_url, **kwargs)
        self.temperature = temperature

    def generate(self, prompt: str) -> str:
        data = self._post(
            "/v1/chat/completions",
            payload={
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "max_tokens": self.max_tokens,
                "temperature": self.temperature,
            },
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError("openai : format de réponse inattendu")
        return self._clean(content)


class AnthropicProvider(TextProvider):
    """Messages API d'Anthropic."""

    name = "anthropic"
    API_VERSION = "2023-06-01"

    def __init__(self, api_key: str, model: str = "claude-3-5-sonnet-20241022",
                 base_url: str = "https://api.anthropic.com", **kwargs):
        super().__init__(api_key, model, base_url, **kwargs)

    def generate(self, prompt: str) -> str:
        data = self._post(
            "/v1/messages",
            payload={
                "model": self.model,
                "max_tokens": self.max_tokens,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": self.API_VERSION,
            },
        )
        try:
            blocks = data["content"]
            texts = [b["text"] for b in blocks if b.get("type") == "text"]
        except (KeyError, TypeError, AttributeError):
            raise ProviderError("anthropic : format de réponse inattendu")
        return self._clean("\n".join(texts))
