"""Shared behaviour of the OpenAI-compatible gateways (Chutes.ai, OpenRouter).

Both expose /chat/completions with bearer auth and a /models listing.
Neither is streamed incrementally: they rely on the base adapter's
non-streaming fallback.
"""

import logging
from typing import Any, Optional

from chatrelay.adapters.llm.base import BaseProviderAdapter
from chatrelay.core.exceptions import NoResponseError, ProviderError
from chatrelay.domain.models import CompletionResult
from chatrelay.ports.llm_provider import CompletionOptions, Message

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(BaseProviderAdapter):
    """Base adapter for gateways speaking the Chat Completions dialect.

    Subclasses choose how instructions are sent and how a model entry is
    labelled in the live model list.
    """

    DEFAULT_MAX_TOKENS = 2000
    MODELS_TIMEOUT = 10.0

    async def _complete(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> CompletionResult:
        data = await self._request(
            "POST",
            self._url("chat/completions"),
            body=self._build_payload(messages, model, options),
            headers=self._build_headers(self._api_key),
        )

        content = self._extract_content(data)
        if not content:
            raise NoResponseError(f"No response from {self.name}.", provider=self.identifier)

        return CompletionResult(
            content=content,
            model=model,
            usage=data.get("usage") if isinstance(data, dict) else None,
        )

    def _build_validation_request(self, api_key: str) -> tuple[str, str, dict[str, Any]]:
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        return "GET", self._url("models"), {"headers": headers}

    def _build_headers(self, api_key: Optional[str]) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> dict[str, Any]:
        # Text only: images are not forwarded to these gateways
        return {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": options.temperature_or_default(),
            "max_tokens": options.max_tokens or self.DEFAULT_MAX_TOKENS,
        }

    @staticmethod
    def _extract_content(data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None

        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict) and message.get("content"):
                return message["content"]

        response = data.get("response")
        return response if isinstance(response, str) else None

    # -------------------------------------------------------------------------
    # Live model list
    # -------------------------------------------------------------------------

    def _model_label(self, entry: dict) -> Optional[str]:
        raise NotImplementedError

    async def fetch_available_models(self) -> dict[str, str]:
        """Replace the model map with the vendor's live list.

        Returns the previous map (same object) when the key is missing,
        the request fails or the payload holds no usable entry.
        """
        if not self.has_api_key():
            logger.info(f"{self.identifier}: cannot fetch models without an API key")
            return self._models

        async with self._models_lock:
            try:
                data = await self._request(
                    "GET",
                    self._url("models"),
                    headers=self._build_headers(self._api_key),
                    timeout=self.MODELS_TIMEOUT,
                )
            except ProviderError as e:
                logger.warning(f"{self.identifier}: model list unavailable: {e.message}")
                return self._models

            models = self._parse_model_list(data)
            if not models:
                logger.warning(f"{self.identifier}: model list response had no usable entries")
                return self._models

            self._models = models
            logger.info(f"{self.identifier}: loaded {len(models)} models")
            return self._models

    def _parse_model_list(self, data: Any) -> dict[str, str]:
        if not isinstance(data, dict):
            return {}

        entries = data.get("data") or data.get("models")
        if not isinstance(entries, list):
            return {}

        models = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            model_id = entry.get("id") or entry.get("name")
            label = self._model_label(entry)
            if model_id and label:
                models[str(model_id)] = str(label)

        return dict(sorted(models.items(), key=lambda item: item[1]))
