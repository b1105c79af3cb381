"""Shared CLI helpers."""

import asyncio
import logging

from rich.console import Console

from chatrelay.adapters.encryption import PlaintextEncryptionAdapter
from chatrelay.adapters.key_store import SettingsKeyStore
from chatrelay.application.providers import ProviderRegistry
from chatrelay.core.config import settings

console = Console()


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs full request URLs at INFO; Gemini sends its key as ?key=
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def build_registry() -> ProviderRegistry:
    """Registry reading plaintext keys from CHATRELAY_<PROVIDER>_API_KEY."""
    return ProviderRegistry(key_store=SettingsKeyStore(), cipher=PlaintextEncryptionAdapter())
