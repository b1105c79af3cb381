"""Provider registry - Dependency Injection / Wiring.

Architecture Hexagonale: assemble les adapters LLM avec leurs ports
concrets (key store, chiffrement) et les expose par identifiant.
"""

import logging
from typing import Any, Optional

from chatrelay.adapters.llm import (
    AnthropicAdapter,
    BaseProviderAdapter,
    ChutesAdapter,
    GeminiAdapter,
    OpenAIAdapter,
    OpenRouterAdapter,
)
from chatrelay.core.exceptions import ProviderNotFoundError
from chatrelay.ports.encryption import EncryptionPort
from chatrelay.ports.key_store import KeyStorePort

logger = logging.getLogger(__name__)


PROVIDER_CLASSES: dict[str, type[BaseProviderAdapter]] = {
    OpenAIAdapter.IDENTIFIER: OpenAIAdapter,
    AnthropicAdapter.IDENTIFIER: AnthropicAdapter,
    GeminiAdapter.IDENTIFIER: GeminiAdapter,
    ChutesAdapter.IDENTIFIER: ChutesAdapter,
    OpenRouterAdapter.IDENTIFIER: OpenRouterAdapter,
}


def get_provider(identifier: str, **kwargs: Any) -> BaseProviderAdapter:
    """Retourne une nouvelle instance du provider demandé.

    Args:
        identifier: Identifiant du provider (openai, anthropic, gemini, chutes, openrouter)
        **kwargs: Arguments transmis au constructeur de l'adapter

    Raises:
        ProviderNotFoundError: Si l'identifiant est inconnu
    """
    provider_class = PROVIDER_CLASSES.get((identifier or "").strip().lower())
    if provider_class is None:
        raise ProviderNotFoundError(f"Invalid AI provider: {identifier}", provider=identifier)
    return provider_class(**kwargs)


def list_providers() -> dict[str, str]:
    """Identifiant -> nom affiché, pour tous les providers connus."""
    return {identifier: cls.DISPLAY_NAME for identifier, cls in PROVIDER_CLASSES.items()}


class ProviderRegistry:
    """Cache d'adapters partageant le même key store et le même chiffrement."""

    def __init__(
        self,
        key_store: Optional[KeyStorePort] = None,
        cipher: Optional[EncryptionPort] = None,
        **adapter_kwargs: Any,
    ):
        self._key_store = key_store
        self._cipher = cipher
        self._adapter_kwargs = adapter_kwargs
        self._instances: dict[str, BaseProviderAdapter] = {}

    def get(self, identifier: str) -> BaseProviderAdapter:
        key = (identifier or "").strip().lower()
        if key not in self._instances:
            self._instances[key] = get_provider(
                key,
                key_store=self._key_store,
                cipher=self._cipher,
                **self._adapter_kwargs,
            )
            logger.debug(f"Provider instance created: {key}")
        return self._instances[key]

    def all(self) -> list[BaseProviderAdapter]:
        return [self.get(identifier) for identifier in PROVIDER_CLASSES]

    def configured(self) -> list[BaseProviderAdapter]:
        """Providers dont la clé API est disponible."""
        return [provider for provider in self.all() if provider.has_api_key()]

    def all_models(self) -> dict[str, dict[str, str]]:
        return {provider.identifier: provider.get_available_models() for provider in self.all()}


__all__ = [
    "PROVIDER_CLASSES",
    "ProviderRegistry",
    "get_provider",
    "list_providers",
]
