"""API key encryption commands."""

import typer

from chatrelay.adapters.encryption import (
    FernetEncryptionAdapter,
    PlaintextEncryptionAdapter,
    create_encryption_adapter,
)
from chatrelay.cli.utils import console


def encrypt_key(
    key: str = typer.Argument(..., help="Plaintext vendor API key"),
):
    """Encrypt an API key for storage in a key store."""
    cipher = create_encryption_adapter()
    if isinstance(cipher, PlaintextEncryptionAdapter):
        console.print(
            "[red]No encryption key configured.[/red] "
            "Set CHATRELAY_ENCRYPTION_KEY or CHATRELAY_ENCRYPTION_SECRET."
        )
        raise typer.Exit(1)

    console.print(cipher.encrypt_api_key(key), markup=False, highlight=False, soft_wrap=True)


def generate_key():
    """Generate a new Fernet key for CHATRELAY_ENCRYPTION_KEY."""
    console.print(FernetEncryptionAdapter().generate_key(), markup=False, highlight=False, soft_wrap=True)
