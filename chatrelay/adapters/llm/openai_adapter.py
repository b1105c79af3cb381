"""OpenAI Adapter - Implémentation native du port LLMProviderPort.

Architecture Hexagonale: Adapter natif qui implémente directement
l'interface LLMProviderPort via httpx.

Deux APIs sont utilisées:
- Responses API (/responses) pour les complétions bloquantes
- Chat Completions API (/chat/completions) pour le streaming SSE
"""

import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, Optional

from chatrelay.adapters.llm.base import BaseProviderAdapter
from chatrelay.adapters.llm.sse import FrameDelimiter
from chatrelay.core.exceptions import NoResponseError
from chatrelay.domain.models import CompletionResult, StreamChunk, to_data_url
from chatrelay.ports.llm_provider import CompletionOptions, Message

logger = logging.getLogger(__name__)


class OpenAIAdapter(BaseProviderAdapter):
    """Adapter natif pour OpenAI API.

    Les modèles récents (gpt-5*, o1*) refusent le paramètre temperature;
    il n'est donc envoyé que pour les autres modèles.
    """

    IDENTIFIER = "openai"
    DISPLAY_NAME = "OpenAI"
    BASE_URL_SETTING = "openai_api_url"
    NEWER_MODEL_PREFIXES = ("gpt-5", "o1")
    DEFAULT_MODELS = {
        "gpt-5.2": "GPT-5.2 (Latest)",
        "gpt-5.2-pro": "GPT-5.2 Pro",
        "gpt-5.2-chat-latest": "GPT-5.2 Instant",
        "gpt-5-mini": "GPT-5 Mini",
        "gpt-5-nano": "GPT-5 Nano",
        "gpt-5.1": "GPT-5.1",
        "gpt-5.1-codex-max": "GPT-5.1 Codex Max",
        "gpt-5": "GPT-5",
        "o1-preview": "O1 Preview",
        "o1-mini": "O1 Mini",
        "gpt-4o": "GPT-4o",
        "gpt-4o-mini": "GPT-4o Mini",
        "gpt-4-turbo": "GPT-4 Turbo",
        "gpt-4": "GPT-4",
        "gpt-3.5-turbo": "GPT-3.5 Turbo",
    }

    def is_newer_model(self, model: str) -> bool:
        """Vérifie si le modèle refuse le paramètre temperature."""
        return model.startswith(self.NEWER_MODEL_PREFIXES)

    async def _complete(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> CompletionResult:
        """Envoie une requête à la Responses API.

        Raises:
            ApiError: Si l'API retourne une erreur
            NoResponseError: Si la réponse ne contient aucun texte
        """
        data = await self._request(
            "POST",
            self._url("responses"),
            body=self._build_responses_payload(messages, model, options),
            headers=self._build_headers(self._api_key),
        )

        content = self._extract_response_text(data)
        if not content:
            raise NoResponseError("No response from OpenAI.", provider=self.identifier)

        return CompletionResult(
            content=content,
            model=model,
            usage=data.get("usage") if isinstance(data, dict) else None,
        )

    async def _stream_chunks(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> AsyncGenerator[StreamChunk, None]:
        """Stream une réponse depuis la Chat Completions API.

        Yields:
            StreamChunk CONTENT pour chaque delta non vide
        """
        events = self._stream_events(
            self._url("chat/completions"),
            self._build_chat_payload(messages, model, options),
            self._build_headers(self._api_key),
            FrameDelimiter.BLANK_LINE,
        )
        async with aclosing(events):
            async for event in events:
                if event.done:
                    return
                chunk = self._convert_stream_event(event.data)
                if chunk is not None:
                    yield chunk
                    if chunk.is_terminal:
                        return

    def _build_validation_request(self, api_key: str) -> tuple[str, str, dict[str, Any]]:
        return "GET", self._url("models"), {"headers": self._build_headers(api_key)}

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    def _build_headers(self, api_key: Optional[str]) -> dict[str, str]:
        """Construit les headers pour l'API OpenAI."""
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_responses_payload(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "input": [self._convert_input_message(m) for m in messages],
        }
        if options.instructions:
            payload["instructions"] = options.instructions
        if options.temperature is not None and not self.is_newer_model(model):
            payload["temperature"] = options.temperature
        if options.max_tokens is not None:
            payload["max_output_tokens"] = options.max_tokens
        return payload

    def _build_chat_payload(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> dict[str, Any]:
        chat_messages = [self._convert_chat_message(m) for m in messages]
        if options.instructions:
            chat_messages.insert(0, {"role": "system", "content": options.instructions})

        payload: dict[str, Any] = {
            "model": model,
            "messages": chat_messages,
            "stream": True,
        }
        if options.temperature is not None and not self.is_newer_model(model):
            payload["temperature"] = options.temperature
        if options.max_tokens is not None:
            payload["max_tokens"] = options.max_tokens
        return payload

    @staticmethod
    def _image_reference(value: str) -> str:
        # Remote URLs are passed through, bare base64 becomes a data URL
        return to_data_url(value) or value

    def _convert_input_message(self, message: Message) -> dict[str, Any]:
        """Convertit un Message au format Responses API."""
        if not message.has_images:
            return {"role": message.role, "content": message.content}

        parts: list[dict[str, Any]] = []
        if message.content:
            parts.append({"type": "input_text", "text": message.content})
        for image in message.images:
            parts.append({"type": "input_image", "image_url": self._image_reference(image)})
        return {"role": message.role, "content": parts}

    def _convert_chat_message(self, message: Message) -> dict[str, Any]:
        """Convertit un Message au format Chat Completions API."""
        if not message.has_images:
            return {"role": message.role, "content": message.content}

        parts: list[dict[str, Any]] = []
        if message.content:
            parts.append({"type": "text", "text": message.content})
        for image in message.images:
            parts.append({"type": "image_url", "image_url": {"url": self._image_reference(image)}})
        return {"role": message.role, "content": parts}

    # -------------------------------------------------------------------------
    # Response parsing
    # -------------------------------------------------------------------------

    @staticmethod
    def _extract_response_text(data: Any) -> str:
        """Concatène les blocs output_text des items de type message."""
        if not isinstance(data, dict):
            return ""

        text = ""
        for item in data.get("output") or []:
            if not isinstance(item, dict) or item.get("type") != "message":
                continue
            for part in item.get("content") or []:
                if isinstance(part, dict) and part.get("type") == "output_text":
                    text += part.get("text") or ""
        return text

    @staticmethod
    def _convert_stream_event(data: Any) -> Optional[StreamChunk]:
        if not isinstance(data, dict):
            return None

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                return StreamChunk.error(error.get("message") or "Unknown OpenAI error")
            return StreamChunk.error(str(error))

        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta") or {}
        content = delta.get("content") if isinstance(delta, dict) else None
        if content:
            return StreamChunk.content(content)
        return None
