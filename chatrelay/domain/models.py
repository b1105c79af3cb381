"""Domain Models - Pure Python, aucune dépendance externe.

Résultats, chunks de streaming, configuration des providers et images.
INTERDIT: Pydantic, httpx, imports de chatrelay.*
AUTORISÉ: dataclasses, enum, typing, types, re

Les entrées de l'appelant (Message, CompletionOptions) sont validées par
les modèles pydantic de chatrelay.ports.llm_provider.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


_DATA_URL_RE = re.compile(r"^data:(image/[a-z]+);base64,(.+)$", re.IGNORECASE | re.DOTALL)

# Leading base64 characters of common image formats
_BASE64_SIGNATURES = (
    ("iVBORw0KGgo", "image/png"),
    ("/9j/", "image/jpeg"),
    ("R0lGOD", "image/gif"),
    ("UklGR", "image/webp"),
)


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class CompletionResult:
    """Final result of a blocking completion."""

    content: str
    model: str
    usage: Optional[dict[str, Any]] = None


class ChunkType(str, Enum):
    """Kinds of streamed chunks."""

    CONTENT = "content"
    SOURCES = "sources"
    ERROR = "error"
    DONE = "done"
    CANCELLED = "cancelled"


_TERMINAL_TYPES = frozenset({ChunkType.ERROR, ChunkType.DONE, ChunkType.CANCELLED})


@dataclass(frozen=True)
class StreamChunk:
    """One incremental unit of a streamed completion."""

    type: ChunkType
    text: str = ""
    message: str = ""
    sources: tuple[dict[str, Any], ...] = ()

    @classmethod
    def content(cls, text: str) -> "StreamChunk":
        return cls(type=ChunkType.CONTENT, text=text)

    @classmethod
    def with_sources(cls, sources: list[dict[str, Any]]) -> "StreamChunk":
        return cls(type=ChunkType.SOURCES, sources=tuple(sources))

    @classmethod
    def error(cls, message: str) -> "StreamChunk":
        return cls(type=ChunkType.ERROR, message=message)

    @classmethod
    def done(cls) -> "StreamChunk":
        return cls(type=ChunkType.DONE)

    @classmethod
    def cancelled(cls) -> "StreamChunk":
        return cls(type=ChunkType.CANCELLED)

    @property
    def is_terminal(self) -> bool:
        return self.type in _TERMINAL_TYPES

    def to_dict(self) -> dict[str, Any]:
        """Render the chunk in the {"type", "content"} shape relayed to browsers."""
        if self.type == ChunkType.CONTENT:
            return {"type": self.type.value, "content": self.text}
        if self.type == ChunkType.ERROR:
            return {"type": self.type.value, "content": self.message}
        if self.type == ChunkType.SOURCES:
            return {"type": self.type.value, "sources": list(self.sources)}
        return {"type": self.type.value}


# =============================================================================
# Provider identity
# =============================================================================


@dataclass(frozen=True)
class ProviderConfig:
    """Snapshot of an adapter's identity and current model map."""

    id: str
    display_name: str
    api_base_url: str
    models: Mapping[str, str] = field(default_factory=dict)
    api_key: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "models", MappingProxyType(dict(self.models)))


# =============================================================================
# Image helpers
# =============================================================================


@dataclass(frozen=True)
class InlineImage:
    """Image split into MIME type and base64 payload."""

    mime_type: str
    data: str


def parse_image(value: str) -> Optional[InlineImage]:
    """Split a data URL (or a bare base64 payload) into mime type and data.

    Returns None when the value is neither a base64 image data URL nor a
    payload whose leading bytes identify a known image format.
    """
    if not value:
        return None
    match = _DATA_URL_RE.match(value.strip())
    if match:
        return InlineImage(mime_type=match.group(1).lower(), data=match.group(2))
    if value.startswith("data:"):
        return None
    for prefix, mime_type in _BASE64_SIGNATURES:
        if value.startswith(prefix):
            return InlineImage(mime_type=mime_type, data=value)
    return None


def to_data_url(value: str) -> Optional[str]:
    """Normalize an image reference to a data URL."""
    image = parse_image(value)
    if image is None:
        return None
    return f"data:{image.mime_type};base64,{image.data}"
