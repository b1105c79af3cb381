"""Key Store Port - Interface abstraite pour le stockage des clés API.

Architecture Hexagonale: Port que les adapters de stockage implémentent.
Les valeurs retournées sont chiffrées; le déchiffrement passe par
EncryptionPort.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyStorePort(ABC):
    """Port abstrait pour la recherche des clés API des providers."""

    @abstractmethod
    def lookup(self, identifier: str) -> Optional[str]:
        """Recherche une clé par identifiant.

        Args:
            identifier: Identifiant de la clé (ex: "openai_api_key")

        Returns:
            Valeur stockée (chiffrée) ou None si absente
        """
        ...

    @staticmethod
    def key_name(provider_identifier: str) -> str:
        """Nom de la clé stockée pour un provider."""
        return f"{provider_identifier}_api_key"
