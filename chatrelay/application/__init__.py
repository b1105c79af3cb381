"""Application Layer - Provider wiring.

Architecture Hexagonale: La couche Application assemble les adapters LLM
avec le key store et le chiffrement choisis par l'appelant.
"""

from chatrelay.application.providers import (
    PROVIDER_CLASSES,
    ProviderRegistry,
    get_provider,
    list_providers,
)


__all__ = [
    "PROVIDER_CLASSES",
    "ProviderRegistry",
    "get_provider",
    "list_providers",
]
