from chatrelay.domain.models import (
    CompletionResult,
    ChunkType,
    StreamChunk,
    ProviderConfig,
    InlineImage,
    parse_image,
    to_data_url,
)


__all__ = [
    "CompletionResult",
    "ChunkType",
    "StreamChunk",
    "ProviderConfig",
    "InlineImage",
    "parse_image",
    "to_data_url",
]
