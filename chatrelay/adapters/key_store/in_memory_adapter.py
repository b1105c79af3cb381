"""Key Store Adapters.

Architecture Hexagonale: Implémentations du KeyStorePort.
"""

from typing import Optional

from chatrelay.core.config import Settings, settings as default_settings
from chatrelay.ports.key_store import KeyStorePort


class InMemoryKeyStore(KeyStorePort):
    """Dict-backed key store, values stored as given (usually encrypted)."""

    def __init__(self, values: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(values or {})

    def lookup(self, identifier: str) -> Optional[str]:
        return self._values.get(identifier) or None

    def set(self, identifier: str, value: str) -> None:
        """Seed or rotate a key; for tests and single-process setups."""
        self._values[identifier] = value

    def delete(self, identifier: str) -> None:
        """Forget a key; for tests and single-process setups."""
        self._values.pop(identifier, None)


class SettingsKeyStore(KeyStorePort):
    """Reads plaintext vendor keys from CHATRELAY_<PROVIDER>_API_KEY settings."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or default_settings

    def lookup(self, identifier: str) -> Optional[str]:
        return getattr(self._settings, identifier, None) or None
