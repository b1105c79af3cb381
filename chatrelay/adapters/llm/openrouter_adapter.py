"""OpenRouter Adapter - gateway compatible OpenAI.

Architecture Hexagonale: Adapter natif qui implémente LLMProviderPort.
"""

from typing import Any, Optional

from chatrelay.adapters.llm.openai_compatible import OpenAICompatibleAdapter
from chatrelay.core.config import settings
from chatrelay.ports.llm_provider import CompletionOptions, Message


class OpenRouterAdapter(OpenAICompatibleAdapter):
    """Adapter pour OpenRouter.

    OpenRouter identifie l'application appelante via les headers
    HTTP-Referer et X-Title. Les instructions sont ajoutées en tête
    de conversation sous forme de message system.
    """

    IDENTIFIER = "openrouter"
    DISPLAY_NAME = "OpenRouter"
    BASE_URL_SETTING = "openrouter_api_url"
    MODELS_TIMEOUT = 15.0
    DEFAULT_MODELS = {"default": "OpenRouter Default Model"}

    def _build_headers(self, api_key: Optional[str]) -> dict[str, str]:
        headers = super()._build_headers(api_key)
        headers["HTTP-Referer"] = settings.openrouter_referer
        headers["X-Title"] = settings.openrouter_title
        return headers

    def _build_payload(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> dict[str, Any]:
        payload = super()._build_payload(messages, model, options)
        if options.instructions:
            payload["messages"].insert(0, {"role": "system", "content": options.instructions})
        return payload

    def _model_label(self, entry: dict) -> Optional[str]:
        return entry.get("name") or entry.get("id")
