"""LLM Adapters.

Architecture Hexagonale: Implémentations natives du LLMProviderPort.
"""

from chatrelay.adapters.llm.anthropic_adapter import AnthropicAdapter
from chatrelay.adapters.llm.base import BaseProviderAdapter
from chatrelay.adapters.llm.chutes_adapter import ChutesAdapter
from chatrelay.adapters.llm.gemini_adapter import GeminiAdapter
from chatrelay.adapters.llm.openai_adapter import OpenAIAdapter
from chatrelay.adapters.llm.openai_compatible import OpenAICompatibleAdapter
from chatrelay.adapters.llm.openrouter_adapter import OpenRouterAdapter
from chatrelay.adapters.llm.sse import FrameDelimiter, SSEEvent, SSEParser

__all__ = [
    "AnthropicAdapter",
    "BaseProviderAdapter",
    "ChutesAdapter",
    "FrameDelimiter",
    "GeminiAdapter",
    "OpenAIAdapter",
    "OpenAICompatibleAdapter",
    "OpenRouterAdapter",
    "SSEEvent",
    "SSEParser",
]
