"""Key Store Adapters.

Architecture Hexagonale: Implémentations du KeyStorePort.
"""

from chatrelay.adapters.key_store.in_memory_adapter import InMemoryKeyStore, SettingsKeyStore

__all__ = [
    "InMemoryKeyStore",
    "SettingsKeyStore",
]
