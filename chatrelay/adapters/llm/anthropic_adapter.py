"""Anthropic Adapter - Implémentation native du port LLMProviderPort.

Architecture Hexagonale: Adapter natif qui implémente directement
l'interface LLMProviderPort via httpx (Messages API).
"""

import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Optional

from chatrelay.adapters.llm.base import BaseProviderAdapter
from chatrelay.adapters.llm.sse import FrameDelimiter
from chatrelay.core.config import settings
from chatrelay.core.exceptions import NoResponseError
from chatrelay.domain.models import CompletionResult, StreamChunk, parse_image
from chatrelay.ports.llm_provider import CompletionOptions, Message

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseProviderAdapter):
    """Adapter natif pour Anthropic Claude API.

    Note: Les messages "system" ne sont pas acceptés dans la liste des
    messages; ils sont fusionnés avec les instructions dans le champ "system".
    """

    IDENTIFIER = "anthropic"
    DISPLAY_NAME = "Anthropic Claude"
    BASE_URL_SETTING = "anthropic_api_url"
    DEFAULT_MAX_TOKENS = 4096
    VALIDATION_MODEL = "claude-3-haiku-20240307"
    DEFAULT_MODELS = {
        "claude-opus-4-5-20251101": "Claude Opus 4.5",
        "claude-sonnet-4-5-20250929": "Claude Sonnet 4.5",
        "claude-haiku-4-5-20251001": "Claude Haiku 4.5",
        "claude-3-5-sonnet-20241022": "Claude 3.5 Sonnet",
        "claude-3-5-haiku-20241022": "Claude 3.5 Haiku",
    }

    async def _complete(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> CompletionResult:
        """Envoie une requête à la Messages API.

        Raises:
            ApiError: Si l'API retourne une erreur
            NoResponseError: Si content[0].text est absent
        """
        data = await self._request(
            "POST",
            self._url("messages"),
            body=self._build_payload(messages, model, options),
            headers=self._build_headers(self._api_key),
        )
        return self._parse_response(data, model)

    async def _stream_chunks(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> AsyncGenerator[StreamChunk, None]:
        payload = self._build_payload(messages, model, options)
        payload["stream"] = True

        events = self._stream_events(
            self._url("messages"),
            payload,
            self._build_headers(self._api_key),
            FrameDelimiter.BLANK_LINE,
        )
        async with aclosing(events):
            async for event in events:
                chunk = self._convert_stream_event(event.event, event.data)
                if chunk is not None:
                    yield chunk
                    if chunk.is_terminal:
                        return

    def _build_validation_request(self, api_key: str) -> tuple[str, str, dict[str, Any]]:
        body = {
            "model": self.VALIDATION_MODEL,
            "max_tokens": 10,
            "messages": [{"role": "user", "content": "Hi"}],
        }
        return "POST", self._url("messages"), {"headers": self._build_headers(api_key), "json": body}

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    def _build_headers(self, api_key: Optional[str]) -> dict[str, str]:
        """Construit les headers pour l'API Anthropic."""
        return {
            "x-api-key": api_key or "",
            "anthropic-version": settings.anthropic_version,
            "Content-Type": "application/json",
        }

    def _convert_messages(
        self, messages: list[Message], instructions: Optional[str]
    ) -> tuple[Optional[str], list[dict[str, Any]]]:
        """Convertit les messages au format Anthropic.

        Returns:
            Tuple (system, messages) où system regroupe les instructions
            et le contenu des messages system
        """
        system_parts = [instructions] if instructions else []
        converted = []

        for message in messages:
            if message.role == "system":
                if message.content:
                    system_parts.append(message.content)
                continue

            if not message.has_images:
                converted.append({"role": message.role, "content": message.content})
                continue

            # Images avant le texte
            parts: list[dict[str, Any]] = []
            for value in message.images:
                image = parse_image(value)
                if image is None:
                    logger.debug("anthropic: dropping unparseable image reference")
                    continue
                parts.append(
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": image.mime_type,
                            "data": image.data,
                        },
                    }
                )
            if message.content:
                parts.append({"type": "text", "text": message.content})
            converted.append({"role": message.role, "content": parts})

        system = "\n\n".join(system_parts) if system_parts else None
        return system, converted

    def _build_payload(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> dict[str, Any]:
        """Construit le payload pour l'API Anthropic."""
        system, converted = self._convert_messages(messages, options.instructions)

        payload: dict[str, Any] = {
            "model": model,
            "messages": converted,
            "max_tokens": options.max_tokens or self.DEFAULT_MAX_TOKENS,
            "temperature": options.temperature_or_default(),
        }
        if system:
            payload["system"] = system
        return payload

    # -------------------------------------------------------------------------
    # Response parsing
    # -------------------------------------------------------------------------

    def _parse_response(self, data: Any, model: str) -> CompletionResult:
        content = None
        if isinstance(data, dict):
            blocks = data.get("content")
            if isinstance(blocks, list) and blocks and isinstance(blocks[0], dict):
                content = blocks[0].get("text")

        if not content:
            raise NoResponseError("No response from Claude.", provider=self.identifier)

        return CompletionResult(
            content=content,
            model=model,
            usage=data.get("usage"),
        )

    @staticmethod
    def _convert_stream_event(event_type: Optional[str], data: Any) -> Optional[StreamChunk]:
        """Convertit un événement SSE Anthropic en StreamChunk."""
        if not isinstance(data, dict):
            return None

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else None
            return StreamChunk.error(message or "Unknown Anthropic error")

        if (event_type or data.get("type")) == "content_block_delta":
            delta = data.get("delta") or {}
            text = delta.get("text") if isinstance(delta, dict) else None
            if text:
                return StreamChunk.content(text)
        return None
