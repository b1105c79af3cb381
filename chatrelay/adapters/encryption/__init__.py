"""Encryption Adapters.

Architecture Hexagonale: Implémentations du EncryptionPort.
"""

from chatrelay.adapters.encryption.fernet_adapter import (
    FernetEncryptionAdapter,
    PlaintextEncryptionAdapter,
)
from chatrelay.core.config import settings


def create_encryption_adapter() -> FernetEncryptionAdapter | PlaintextEncryptionAdapter:
    """Build the cipher configured in settings (plaintext when none is set)."""
    if settings.encryption_key:
        return FernetEncryptionAdapter(key=settings.encryption_key)
    if settings.encryption_secret:
        return FernetEncryptionAdapter(derive_from_secret=settings.encryption_secret)
    return PlaintextEncryptionAdapter()


__all__ = [
    "FernetEncryptionAdapter",
    "PlaintextEncryptionAdapter",
    "create_encryption_adapter",
]
