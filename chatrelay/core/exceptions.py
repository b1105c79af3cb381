"""Provider error taxonomy.

Every failure a provider adapter can report derives from ProviderError.
Blocking calls raise these; streaming calls turn them into ERROR chunks.
"""

from typing import Optional, Dict, Any


class ProviderError(Exception):
    """Base exception for provider adapters."""

    code = "provider_error"

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider

    def __str__(self) -> str:
        return self.message


class NoApiKeyError(ProviderError):
    """Raised when the adapter has no API key configured."""

    code = "no_api_key"


class NoMessagesError(ProviderError):
    """Raised when an empty conversation is submitted."""

    code = "no_messages"


class NoResponseError(ProviderError):
    """Raised when the vendor replied but the envelope holds no text."""

    code = "no_response"


class TransportError(ProviderError):
    """Raised on DNS, connect or timeout failures."""

    code = "transport_error"


class ApiError(ProviderError):
    """Raised when the vendor answers with HTTP status >= 400."""

    code = "api_error"

    def __init__(
        self,
        message: str,
        status_code: int,
        response_body: Optional[Any] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message, provider=provider)
        self.status_code = status_code
        self.response_body = response_body

    def __str__(self) -> str:
        return f"[{self.status_code}] {self.message}"


class InvalidApiKeyError(ProviderError):
    """Raised when a candidate API key is rejected by the vendor."""

    code = "invalid_api_key"


class StreamInitError(ProviderError):
    """Raised when the streaming connection cannot be opened."""

    code = "stream_init_error"


class InvalidOptionsError(ProviderError):
    """Raised when messages or completion options fail validation."""

    code = "invalid_options"

    def __init__(
        self,
        message: str,
        errors: Optional[list[Dict[str, Any]]] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message, provider=provider)
        self.errors = errors or []


class ProviderNotFoundError(ProviderError):
    """Raised when no adapter is registered for an identifier."""

    code = "invalid_provider"
