"""Gemini Adapter - Implémentation native du port LLMProviderPort.

Architecture Hexagonale: Adapter natif pour l'API Google Generative Language.
La clé API est passée en paramètre de requête ("key"), jamais en header.
"""

import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Optional

from chatrelay.adapters.llm.base import BaseProviderAdapter
from chatrelay.adapters.llm.sse import FrameDelimiter
from chatrelay.core.exceptions import NoResponseError
from chatrelay.domain.models import CompletionResult, StreamChunk, parse_image
from chatrelay.ports.llm_provider import CompletionOptions, Message

logger = logging.getLogger(__name__)


class GeminiAdapter(BaseProviderAdapter):
    """Adapter natif pour Google Gemini.

    Le streaming utilise alt=sse: une ligne "data:" par événement.
    """

    IDENTIFIER = "gemini"
    DISPLAY_NAME = "Google Gemini"
    BASE_URL_SETTING = "gemini_api_url"
    DEFAULT_MAX_TOKENS = 2048
    DEFAULT_MODELS = {
        "gemini-3-pro-preview": "Gemini 3 Pro (Preview)",
        "gemini-2.5-pro": "Gemini 2.5 Pro",
        "gemini-2.5-flash": "Gemini 2.5 Flash",
        "gemini-2.5-flash-lite": "Gemini 2.5 Flash Lite",
        "gemini-2.0-flash": "Gemini 2.0 Flash",
        "gemini-2.0-flash-lite": "Gemini 2.0 Flash Lite",
    }

    async def _complete(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> CompletionResult:
        data = await self._request(
            "POST",
            self._url(f"models/{model}:generateContent"),
            body=self._build_payload(messages, options),
            headers={"Content-Type": "application/json"},
            params={"key": self._api_key},
        )

        content = None
        if isinstance(data, dict):
            parts = self._candidate_parts(data)
            if parts and isinstance(parts[0], dict):
                content = parts[0].get("text")

        if not content:
            raise NoResponseError("No response from Gemini.", provider=self.identifier)

        return CompletionResult(
            content=content,
            model=model,
            usage=data.get("usageMetadata"),
        )

    async def _stream_chunks(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> AsyncGenerator[StreamChunk, None]:
        events = self._stream_events(
            self._url(f"models/{model}:streamGenerateContent"),
            self._build_payload(messages, options),
            {"Content-Type": "application/json"},
            FrameDelimiter.LINE,
            params={"alt": "sse", "key": self._api_key},
        )
        async with aclosing(events):
            async for event in events:
                data = event.data
                if not isinstance(data, dict):
                    continue

                error = data.get("error")
                if error:
                    message = error.get("message") if isinstance(error, dict) else None
                    yield StreamChunk.error(message or "Unknown Gemini error")
                    return

                for part in self._candidate_parts(data):
                    if isinstance(part, dict) and part.get("text"):
                        yield StreamChunk.content(part["text"])

    def _build_validation_request(self, api_key: str) -> tuple[str, str, dict[str, Any]]:
        return "GET", self._url("models"), {"params": {"key": api_key}}

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    def _convert_messages(
        self, messages: list[Message], instructions: Optional[str]
    ) -> tuple[Optional[str], list[dict[str, Any]]]:
        """Convertit les messages au format "contents" de Gemini.

        Returns:
            Tuple (system_instruction, contents)
        """
        system_parts = [instructions] if instructions else []
        contents = []

        for message in messages:
            if message.role == "system":
                if message.content:
                    system_parts.append(message.content)
                continue

            role = "model" if message.role == "assistant" else "user"
            parts: list[dict[str, Any]] = []
            if message.has_images:
                if message.content:
                    parts.append({"text": message.content})
                for value in message.images:
                    image = parse_image(value)
                    if image is None:
                        logger.debug("gemini: dropping unparseable image reference")
                        continue
                    parts.append({"inline_data": {"mime_type": image.mime_type, "data": image.data}})
            if not parts:
                parts = [{"text": message.content}]
            contents.append({"role": role, "parts": parts})

        system = "\n\n".join(system_parts) if system_parts else None
        return system, contents

    def _build_payload(self, messages: list[Message], options: CompletionOptions) -> dict[str, Any]:
        system, contents = self._convert_messages(messages, options.instructions)

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": options.temperature_or_default(),
                "maxOutputTokens": options.max_tokens or self.DEFAULT_MAX_TOKENS,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    @staticmethod
    def _candidate_parts(data: dict) -> list:
        candidates = data.get("candidates")
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            return []
        content = candidates[0].get("content")
        if not isinstance(content, dict):
            return []
        parts = content.get("parts")
        return parts if isinstance(parts, list) else []
