from chatrelay.core.config import settings, get_settings, Settings
from chatrelay.core.exceptions import (
    ProviderError,
    NoApiKeyError,
    NoMessagesError,
    NoResponseError,
    TransportError,
    ApiError,
    InvalidApiKeyError,
    StreamInitError,
    InvalidOptionsError,
    ProviderNotFoundError,
)


__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "ProviderError",
    "NoApiKeyError",
    "NoMessagesError",
    "NoResponseError",
    "TransportError",
    "ApiError",
    "InvalidApiKeyError",
    "StreamInitError",
    "InvalidOptionsError",
    "ProviderNotFoundError",
]
