"""Chutes.ai Adapter - gateway compatible OpenAI.

Architecture Hexagonale: Adapter natif qui implémente LLMProviderPort.
"""

from typing import Any, Optional

from chatrelay.adapters.llm.openai_compatible import OpenAICompatibleAdapter
from chatrelay.ports.llm_provider import CompletionOptions, Message


class ChutesAdapter(OpenAICompatibleAdapter):
    """Adapter pour Chutes.ai.

    Les instructions sont envoyées dans le champ "system" du payload.
    """

    IDENTIFIER = "chutes"
    DISPLAY_NAME = "Chutes.ai"
    BASE_URL_SETTING = "chutes_api_url"
    MODELS_TIMEOUT = 10.0
    DEFAULT_MODELS = {"default": "Chutes Default Model"}

    def _build_payload(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> dict[str, Any]:
        payload = super()._build_payload(messages, model, options)
        if options.instructions:
            payload["system"] = options.instructions
        return payload

    def _model_label(self, entry: dict) -> Optional[str]:
        return entry.get("id") or entry.get("name")
