"""Ports Layer - Abstract Interfaces.

Architecture Hexagonale: Les Ports définissent les interfaces abstraites
que les Adapters implémentent.
"""

from chatrelay.ports.llm_provider import (
    LLMProviderPort,
    Message,
    CompletionOptions,
    coerce_messages,
    MessagesInput,
    OptionsInput,
    ChunkCallback,
)
from chatrelay.ports.key_store import KeyStorePort
from chatrelay.ports.encryption import EncryptionPort


__all__ = [
    "LLMProviderPort",
    "Message",
    "CompletionOptions",
    "coerce_messages",
    "MessagesInput",
    "OptionsInput",
    "ChunkCallback",
    "KeyStorePort",
    "EncryptionPort",
]
