"""Base Provider Adapter - utilitaires partagés par tous les adapters LLM.

Architecture Hexagonale: classe de base qui implémente LLMProviderPort.
Les adapters concrets ne fournissent que la mise en forme des requêtes
et le décodage des réponses de leur vendor.

Shared here:
- API key loading from a KeyStorePort + EncryptionPort
- blocking JSON dispatch with error-envelope extraction
- streaming dispatch through SSEParser
- the stream guard that guarantees exactly one terminal chunk
- the non-streaming fallback for vendors without a streaming override
"""

import asyncio
import inspect
import json
import logging
from contextlib import aclosing
from typing import Any, AsyncGenerator, AsyncIterator, Optional

import httpx

from chatrelay.adapters.llm.sse import FrameDelimiter, SSEEvent, aiter_sse_events
from chatrelay.core.config import settings
from chatrelay.core.exceptions import (
    ApiError,
    InvalidApiKeyError,
    NoApiKeyError,
    NoMessagesError,
    ProviderError,
    StreamInitError,
    TransportError,
)
from chatrelay.domain.models import CompletionResult, ProviderConfig, StreamChunk
from chatrelay.ports.encryption import EncryptionPort
from chatrelay.ports.key_store import KeyStorePort
from chatrelay.ports.llm_provider import (
    ChunkCallback,
    CompletionOptions,
    LLMProviderPort,
    Message,
    MessagesInput,
    OptionsInput,
    coerce_messages,
)

logger = logging.getLogger(__name__)

_END = object()
_CANCELLED = object()


async def _anext_or_end(producer: AsyncIterator[StreamChunk]) -> Any:
    try:
        return await producer.__anext__()
    except StopAsyncIteration:
        return _END


async def _next_chunk(
    producer: AsyncIterator[StreamChunk], cancel: Optional[asyncio.Event]
) -> Any:
    """Wait for the next chunk, or for the cancel event, whichever comes first."""
    if cancel is None:
        return await _anext_or_end(producer)
    if cancel.is_set():
        return _CANCELLED

    next_task = asyncio.ensure_future(_anext_or_end(producer))
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancel_task.cancel()
        if not next_task.done():
            next_task.cancel()
            try:
                await next_task
            except asyncio.CancelledError:
                pass

    if next_task.cancelled():
        return _CANCELLED
    return next_task.result()


class BaseProviderAdapter(LLMProviderPort):
    """Common behaviour of every vendor adapter."""

    IDENTIFIER: str = ""
    DISPLAY_NAME: str = ""
    BASE_URL_SETTING: str = ""
    DEFAULT_MODELS: dict[str, str] = {}

    def __init__(
        self,
        key_store: Optional[KeyStorePort] = None,
        cipher: Optional[EncryptionPort] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        stream_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialise l'adapter.

        Args:
            key_store: Stockage des clés API (chiffrées)
            cipher: Déchiffrement des clés lues dans key_store
            api_key: Clé explicite, prioritaire sur key_store
            base_url: URL de base de l'API (défaut: settings)
            timeout: Timeout par opération (connexion, lecture) des requêtes
                bloquantes, en secondes (défaut: 120)
            stream_timeout: Délai maximal entre deux lectures du flux, en
                secondes (défaut: 300). Ne borne pas la durée totale du flux.
            transport: Transport httpx (tests, proxies)
        """
        self._base_url = (base_url or getattr(settings, self.BASE_URL_SETTING)).rstrip("/")
        self._timeout = timeout or settings.request_timeout
        self._stream_timeout = stream_timeout or settings.stream_timeout
        self._transport = transport
        self._models: dict[str, str] = dict(self.DEFAULT_MODELS)
        self._models_lock = asyncio.Lock()
        self._api_key: Optional[str] = api_key or self._load_api_key(key_store, cipher)

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.DISPLAY_NAME

    @property
    def identifier(self) -> str:
        return self.IDENTIFIER

    @property
    def config(self) -> ProviderConfig:
        return ProviderConfig(
            id=self.identifier,
            display_name=self.name,
            api_base_url=self._base_url,
            models=self._models,
            api_key=self._api_key,
        )

    def has_api_key(self) -> bool:
        return bool(self._api_key)

    def get_available_models(self) -> dict[str, str]:
        return dict(self._models)

    def _load_api_key(
        self, key_store: Optional[KeyStorePort], cipher: Optional[EncryptionPort]
    ) -> Optional[str]:
        if key_store is None:
            return None

        stored = key_store.lookup(KeyStorePort.key_name(self.identifier))
        if not stored:
            logger.debug(f"{self.identifier}: no API key in key store")
            return None
        if cipher is None:
            return stored

        try:
            return cipher.decrypt_api_key(stored) or None
        except ValueError:
            logger.warning(f"{self.identifier}: stored API key could not be decrypted")
            return None

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _client(self, timeout: float | httpx.Timeout) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        url: str,
        body: Optional[dict] = None,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Issue one buffered request and return the decoded JSON body.

        Raises:
            TransportError: DNS, connect, timeout or body decoding failure
            ApiError: HTTP status >= 400
        """
        kwargs: dict[str, Any] = {"headers": headers or {}}
        if params:
            kwargs["params"] = params
        if method.upper() != "GET" and body:
            kwargs["json"] = body

        try:
            async with self._client(timeout or self._timeout) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            detail = str(e) or type(e).__name__
            logger.error(f"{self.identifier}: API request failed: {detail}")
            raise TransportError(f"Connection error: {detail}", provider=self.identifier) from e

        data = self._decode_json(response.content)

        if response.status_code >= 400:
            message = self._extract_error_message(data, response.status_code)
            logger.error(f"{self.identifier}: API error (status {response.status_code}): {message}")
            raise ApiError(
                message,
                status_code=response.status_code,
                response_body=data if data is not None else response.text,
                provider=self.identifier,
            )

        return data

    async def _stream_events(
        self,
        url: str,
        body: dict,
        headers: dict[str, str],
        delimiter: FrameDelimiter,
        params: Optional[dict[str, str]] = None,
    ) -> AsyncIterator[SSEEvent]:
        """Open a chunked POST and yield SSE events in arrival order.

        Raises:
            StreamInitError: the request could not be built or sent
            TransportError: connection failure before or during the stream
            ApiError: HTTP status >= 400
        """
        timeout = httpx.Timeout(self._stream_timeout, connect=settings.stream_connect_timeout)

        async with self._client(timeout) as client:
            try:
                request = client.build_request(
                    "POST",
                    url,
                    json=body,
                    headers={**headers, "Accept": "text/event-stream"},
                    params=params,
                )
            except (httpx.InvalidURL, TypeError, ValueError) as e:
                logger.error(f"{self.identifier}: could not build streaming request: {e}")
                raise StreamInitError("Failed to initialize streaming.", provider=self.identifier) from e

            try:
                response = await client.send(request, stream=True)
            except httpx.UnsupportedProtocol as e:
                raise StreamInitError("Failed to initialize streaming.", provider=self.identifier) from e
            except httpx.HTTPError as e:
                detail = str(e) or type(e).__name__
                logger.error(f"{self.identifier}: streaming connection failed: {detail}")
                raise TransportError(f"Connection error: {detail}", provider=self.identifier) from e

            try:
                if response.status_code >= 400:
                    raw = await response.aread()
                    data = self._decode_json(raw)
                    message = self._extract_error_message(data, response.status_code, stream=True)
                    logger.error(
                        f"{self.identifier}: streaming API error (status {response.status_code}): {message}"
                    )
                    raise ApiError(
                        message,
                        status_code=response.status_code,
                        response_body=data if data is not None else raw.decode("utf-8", "replace"),
                        provider=self.identifier,
                    )

                async with aclosing(aiter_sse_events(response.aiter_bytes(), delimiter)) as events:
                    async for event in events:
                        yield event
            except httpx.HTTPError as e:
                detail = str(e) or type(e).__name__
                logger.error(f"{self.identifier}: stream interrupted: {detail}")
                raise TransportError(f"Connection error: {detail}", provider=self.identifier) from e
            finally:
                await response.aclose()

    @staticmethod
    def _decode_json(raw: bytes) -> Any:
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    @classmethod
    def _extract_error_message(cls, data: Any, status: int, stream: bool = False) -> str:
        """Pull a readable message out of a vendor error envelope."""
        if isinstance(data, list) and data:
            return cls._extract_error_message(data[0], status, stream)
        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
            message = data.get("message")
            if isinstance(message, str) and message:
                return message
        if stream:
            return f"API error (HTTP {status})"
        return f"API request failed with status {status}"

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    def _prepare(
        self, messages: MessagesInput, options: OptionsInput
    ) -> tuple[list[Message], CompletionOptions]:
        if not self.has_api_key():
            raise NoApiKeyError(f"{self.name} API key is not configured.", provider=self.identifier)
        prepared = coerce_messages(messages)
        if not prepared:
            raise NoMessagesError("No messages provided.", provider=self.identifier)
        return prepared, CompletionOptions.coerce(options)

    async def run_completion(
        self,
        messages: MessagesInput,
        model: str,
        options: OptionsInput = None,
    ) -> CompletionResult:
        prepared, opts = self._prepare(messages, options)
        return await self._complete(prepared, model, opts)

    async def _complete(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> CompletionResult:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Streaming
    # -------------------------------------------------------------------------

    def stream(
        self,
        messages: MessagesInput,
        model: str,
        options: OptionsInput = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[StreamChunk, None]:
        return self._guarded_stream(self._produce(messages, model, options), cancel)

    async def stream_completion(
        self,
        messages: MessagesInput,
        model: str,
        callback: ChunkCallback,
        options: OptionsInput = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> None:
        chunks = self.stream(messages, model, options, cancel)
        try:
            async for chunk in chunks:
                try:
                    outcome = callback(chunk)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception:
                    logger.exception(f"{self.identifier}: stream callback raised, closing stream")
                    return
        finally:
            await chunks.aclose()

    async def _produce(
        self, messages: MessagesInput, model: str, options: OptionsInput
    ) -> AsyncGenerator[StreamChunk, None]:
        prepared, opts = self._prepare(messages, options)
        async with aclosing(self._stream_chunks(prepared, model, opts)) as chunks:
            async for chunk in chunks:
                yield chunk

    async def _stream_chunks(
        self, messages: list[Message], model: str, options: CompletionOptions
    ) -> AsyncGenerator[StreamChunk, None]:
        """Default: run a blocking completion and deliver it as one chunk."""
        result = await self._complete(messages, model, options)
        if result.content:
            yield StreamChunk.content(result.content)

    async def _guarded_stream(
        self,
        producer: AsyncGenerator[StreamChunk, None],
        cancel: Optional[asyncio.Event],
    ) -> AsyncGenerator[StreamChunk, None]:
        """Ensure exactly one terminal chunk closes the stream."""
        try:
            while True:
                chunk = await _next_chunk(producer, cancel)
                if chunk is _END:
                    break
                if chunk is _CANCELLED:
                    logger.info(f"{self.identifier}: stream cancelled by caller")
                    yield StreamChunk.cancelled()
                    return
                yield chunk
                if chunk.is_terminal:
                    return
            yield StreamChunk.done()
        except ProviderError as e:
            logger.warning(f"{self.identifier}: stream failed: {e.message}")
            yield StreamChunk.error(e.message)
        except httpx.HTTPError as e:
            logger.warning(f"{self.identifier}: stream failed: {e}")
            yield StreamChunk.error(f"Connection error: {e}")
        finally:
            await producer.aclose()

    # -------------------------------------------------------------------------
    # Key validation
    # -------------------------------------------------------------------------

    def _build_validation_request(self, api_key: str) -> tuple[str, str, dict[str, Any]]:
        """Return (method, url, httpx kwargs) for a minimal authenticated call."""
        raise NotImplementedError

    async def validate_api_key(self, api_key: str) -> bool:
        if not api_key:
            raise InvalidApiKeyError(f"Invalid {self.name} API key.", provider=self.identifier)

        method, url, kwargs = self._build_validation_request(api_key)
        try:
            async with self._client(settings.validation_timeout) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            detail = str(e) or type(e).__name__
            logger.error(f"{self.identifier}: key validation request failed: {detail}")
            raise TransportError(f"Connection error: {detail}", provider=self.identifier) from e

        if response.status_code == 200:
            return True

        logger.info(f"{self.identifier}: API key rejected (status {response.status_code})")
        raise InvalidApiKeyError(f"Invalid {self.name} API key.", provider=self.identifier)
