"""LLM Provider Port - Interface abstraite pour les providers LLM.

Architecture Hexagonale: Port (interface) que les Adapters implémentent.

Les modèles de requête (Message, CompletionOptions) sont des modèles
pydantic: ils valident les entrées peu typées de l'appelant avant
qu'elles n'atteignent un adapter.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Literal, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from chatrelay.core.exceptions import InvalidOptionsError
from chatrelay.domain.models import (
    CompletionResult,
    ProviderConfig,
    StreamChunk,
)


DEFAULT_TEMPERATURE = 0.7


# =============================================================================
# Request models
# =============================================================================


class Message(BaseModel):
    """Single immutable message in a conversation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    role: Literal["user", "assistant", "system"] = "user"
    content: str = ""
    images: tuple[str, ...] = ()

    @field_validator("role", mode="before")
    @classmethod
    def default_role(cls, v: Any) -> Any:
        return v or "user"

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("images", mode="before")
    @classmethod
    def default_images(cls, v: Any) -> Any:
        if v is None:
            return ()
        if isinstance(v, str):
            return (v,)
        return v

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    @classmethod
    def coerce(cls, value: "Message | Mapping[str, Any]") -> "Message":
        """Build a Message from a Message or a loosely typed mapping."""
        if isinstance(value, Message):
            return value
        try:
            return cls.model_validate(dict(value))
        except (ValidationError, TypeError, ValueError) as e:
            raise InvalidOptionsError(f"Invalid message: {e}") from e


def coerce_messages(messages: Any) -> list[Message]:
    """Copy a caller-owned conversation into a list of Message objects."""
    if not messages:
        return []
    return [Message.coerce(m) for m in messages]


class CompletionOptions(BaseModel):
    """Recognized completion options. Unknown keys are ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    instructions: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)

    def temperature_or_default(self) -> float:
        return DEFAULT_TEMPERATURE if self.temperature is None else self.temperature

    @classmethod
    def coerce(cls, options: "CompletionOptions | Mapping[str, Any] | None") -> "CompletionOptions":
        if options is None:
            return cls()
        if isinstance(options, CompletionOptions):
            return options
        try:
            return cls.model_validate(dict(options))
        except ValidationError as e:
            raise InvalidOptionsError(
                f"Invalid completion options: {e.error_count()} error(s)",
                errors=e.errors(include_url=False),
            ) from e
        except (TypeError, ValueError) as e:
            raise InvalidOptionsError(f"Invalid completion options: {e}") from e


MessagesInput = Sequence[Union[Message, Mapping[str, Any]]]
OptionsInput = Union[CompletionOptions, Mapping[str, Any], None]
ChunkCallback = Callable[[StreamChunk], Union[None, Awaitable[None]]]


class LLMProviderPort(ABC):
    """Interface abstraite pour les providers LLM.

    Cette interface définit le contrat que tous les providers LLM
    doivent respecter. Les adapters concrets (OpenAI, Anthropic, Gemini,
    Chutes, OpenRouter) implémentent cette interface.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Nom affiché du provider (ex: "OpenAI", "Google Gemini")."""
        pass

    @property
    @abstractmethod
    def identifier(self) -> str:
        """Identifiant du provider (openai, anthropic, gemini, chutes, openrouter)."""
        pass

    @property
    @abstractmethod
    def config(self) -> ProviderConfig:
        """Instantané de la configuration du provider."""
        pass

    def get_name(self) -> str:
        return self.name

    def get_identifier(self) -> str:
        return self.identifier

    @abstractmethod
    def has_api_key(self) -> bool:
        """Vérifie si une clé API est configurée."""
        pass

    @abstractmethod
    def get_available_models(self) -> dict[str, str]:
        """Retourne les modèles disponibles (id => nom affiché)."""
        pass

    @abstractmethod
    async def run_completion(
        self,
        messages: MessagesInput,
        model: str,
        options: OptionsInput = None,
    ) -> CompletionResult:
        """Envoie une requête de completion bloquante.

        Args:
            messages: Conversation (Message ou dict role/content/images)
            model: Identifiant du modèle
            options: instructions, temperature, max_tokens

        Returns:
            CompletionResult avec le contenu final

        Raises:
            NoApiKeyError, NoMessagesError, NoResponseError,
            TransportError, ApiError, InvalidOptionsError
        """
        pass

    @abstractmethod
    def stream(
        self,
        messages: MessagesInput,
        model: str,
        options: OptionsInput = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Envoie une requête de completion en streaming.

        Yields:
            Zéro ou plusieurs chunks CONTENT, puis exactement un chunk
            terminal (DONE, ERROR ou CANCELLED). Ne lève jamais d'exception
            pour une erreur du provider.
        """
        pass

    @abstractmethod
    async def stream_completion(
        self,
        messages: MessagesInput,
        model: str,
        callback: ChunkCallback,
        options: OptionsInput = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        """Variante callback de stream(): appelle callback(chunk) dans l'ordre."""
        pass

    @abstractmethod
    async def validate_api_key(self, api_key: str) -> bool:
        """Valide une clé API candidate (et non la clé stockée).

        Returns:
            True si le provider répond HTTP 200

        Raises:
            InvalidApiKeyError: Si le provider rejette la clé
            TransportError: Si le provider est injoignable
        """
        pass
