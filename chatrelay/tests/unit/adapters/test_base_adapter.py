"""Tests unitaires pour BaseProviderAdapter.

Tests couvrant:
- Chargement de la clé API (key store + chiffrement)
- Requêtes bloquantes et extraction des messages d'erreur
- Garde du streaming (un seul chunk terminal)
- Annulation et callbacks de stream_completion
- Validation de clé
"""

import asyncio

import httpx
import pytest

from chatrelay.adapters.encryption import FernetEncryptionAdapter, PlaintextEncryptionAdapter
from chatrelay.adapters.key_store import InMemoryKeyStore
from chatrelay.adapters.llm.base import BaseProviderAdapter
from chatrelay.core.exceptions import (
    ApiError,
    InvalidApiKeyError,
    InvalidOptionsError,
    NoApiKeyError,
    NoMessagesError,
    StreamInitError,
    TransportError,
)
from chatrelay.domain.models import ChunkType, CompletionResult, StreamChunk
from chatrelay.ports.llm_provider import LLMProviderPort


class EchoAdapter(BaseProviderAdapter):
    """Adapter minimal: POST /echo et renvoie le champ "text"."""

    IDENTIFIER = "echo"
    DISPLAY_NAME = "Echo"
    BASE_URL_SETTING = "openai_api_url"
    DEFAULT_MODELS = {"echo-1": "Echo 1"}

    async def _complete(self, messages, model, options):
        data = await self._request("POST", self._url("echo"), body={"model": model})
        return CompletionResult(content=data["text"], model=model)

    def _build_validation_request(self, api_key):
        return "GET", self._url("models"), {"headers": {"Authorization": f"Bearer {api_key}"}}


class ScriptedAdapter(EchoAdapter):
    """Adapter dont le flux rejoue un script (chunks, exceptions, attente)."""

    def __init__(self, script, **kwargs):
        super().__init__(api_key="sk-test", **kwargs)
        self.script = script
        self.closed = False

    async def _stream_chunks(self, messages, model, options):
        try:
            for step in self.script:
                if isinstance(step, BaseException):
                    raise step
                if step == "block":
                    await asyncio.Event().wait()
                yield step
        finally:
            self.closed = True


def undecodable_reply(request):
    """Réponse 200 annoncée gzip dont le corps n'est pas du gzip."""

    async def body():
        yield b"not gzip at all"

    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=body())


# =============================================================================
# Tests: Identity & key loading
# =============================================================================


class TestKeyLoading:
    """Tests pour le chargement de la clé API."""

    def test_implements_port(self):
        """Vérifie que l'adapter implémente le port."""
        assert isinstance(EchoAdapter(), LLMProviderPort)

    def test_no_key_by_default(self):
        """Sans key store ni clé explicite, aucune clé."""
        adapter = EchoAdapter()
        assert adapter.has_api_key() is False
        assert adapter.config.api_key is None

    def test_explicit_key(self):
        """Une clé explicite est utilisée telle quelle."""
        adapter = EchoAdapter(api_key="sk-explicit")
        assert adapter.has_api_key() is True
        assert adapter.config.api_key == "sk-explicit"

    def test_key_from_store_plaintext(self):
        """La clé est lue sous le nom <identifier>_api_key."""
        store = InMemoryKeyStore({"echo_api_key": "sk-stored"})
        adapter = EchoAdapter(key_store=store, cipher=PlaintextEncryptionAdapter())
        assert adapter.config.api_key == "sk-stored"

    def test_key_from_store_encrypted(self):
        """Une clé chiffrée est déchiffrée à la construction."""
        cipher = FernetEncryptionAdapter()
        store = InMemoryKeyStore({"echo_api_key": cipher.encrypt_api_key("secret-value")})

        adapter = EchoAdapter(key_store=store, cipher=cipher)

        assert adapter.config.api_key == "secret-value"

    def test_undecryptable_key_is_ignored(self):
        """Une clé indéchiffrable laisse l'adapter sans clé."""
        store = InMemoryKeyStore({"echo_api_key": "not-a-fernet-token"})
        adapter = EchoAdapter(key_store=store, cipher=FernetEncryptionAdapter())
        assert adapter.has_api_key() is False

    def test_explicit_key_wins_over_store(self):
        """La clé explicite est prioritaire."""
        store = InMemoryKeyStore({"echo_api_key": "sk-stored"})
        adapter = EchoAdapter(key_store=store, api_key="sk-explicit")
        assert adapter.config.api_key == "sk-explicit"

    def test_config_snapshot(self):
        """La config expose l'identité et masque la clé dans repr."""
        adapter = EchoAdapter(api_key="sk-hidden", base_url="https://example.test/v1/")
        config = adapter.config

        assert config.id == "echo"
        assert config.display_name == "Echo"
        assert config.api_base_url == "https://example.test/v1"
        assert dict(config.models) == {"echo-1": "Echo 1"}
        assert "sk-hidden" not in repr(config)
        with pytest.raises(TypeError):
            config.models["other"] = "Other"

    def test_get_available_models_returns_copy(self):
        """Modifier la copie ne change pas l'adapter."""
        adapter = EchoAdapter()
        models = adapter.get_available_models()
        models["extra"] = "Extra"
        assert "extra" not in adapter.get_available_models()

    def test_name_and_identifier(self):
        adapter = EchoAdapter()
        assert adapter.get_name() == "Echo"
        assert adapter.get_identifier() == "echo"


# =============================================================================
# Tests: Error envelope extraction
# =============================================================================


class TestErrorExtraction:
    """Tests pour _extract_error_message."""

    @pytest.mark.parametrize(
        "data,expected",
        [
            ({"error": {"message": "Bad key"}}, "Bad key"),
            ({"error": "rate limited"}, "rate limited"),
            ({"message": "Not found"}, "Not found"),
            ([{"error": {"message": "From list"}}], "From list"),
            ({"error": {"code": 500}}, "API request failed with status 418"),
            (None, "API request failed with status 418"),
            ("plain text", "API request failed with status 418"),
        ],
    )
    def test_blocking_messages(self, data, expected):
        assert BaseProviderAdapter._extract_error_message(data, 418) == expected

    def test_stream_fallback(self):
        """En streaming, le message par défaut cite le code HTTP."""
        assert BaseProviderAdapter._extract_error_message(None, 503, stream=True) == "API error (HTTP 503)"


# =============================================================================
# Tests: Blocking requests
# =============================================================================


class TestRunCompletion:
    """Tests pour run_completion via l'adapter de base."""

    @pytest.mark.asyncio
    async def test_success(self, recorder, json_reply, user_hello):
        rec = recorder(json_reply({"text": "pong"}))
        adapter = EchoAdapter(api_key="sk-test", transport=rec.transport)

        result = await adapter.run_completion(user_hello, "echo-1")

        assert result == CompletionResult(content="pong", model="echo-1")
        assert str(rec.last_request.url) == "https://api.openai.com/v1/echo"
        assert rec.last_json == {"model": "echo-1"}

    @pytest.mark.asyncio
    async def test_no_key_makes_no_request(self, recorder, json_reply, user_hello):
        """Sans clé: NoApiKeyError et aucun appel HTTP."""
        rec = recorder(json_reply({"text": "pong"}))
        adapter = EchoAdapter(transport=rec.transport)

        with pytest.raises(NoApiKeyError) as exc_info:
            await adapter.run_completion(user_hello, "echo-1")

        assert exc_info.value.message == "Echo API key is not configured."
        assert exc_info.value.code == "no_api_key"
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_no_messages_makes_no_request(self, recorder, json_reply):
        """Conversation vide: NoMessagesError et aucun appel HTTP."""
        rec = recorder(json_reply({"text": "pong"}))
        adapter = EchoAdapter(api_key="sk-test", transport=rec.transport)

        with pytest.raises(NoMessagesError, match="No messages provided."):
            await adapter.run_completion([], "echo-1")

        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_invalid_options(self, user_hello):
        adapter = EchoAdapter(api_key="sk-test")

        with pytest.raises(InvalidOptionsError):
            await adapter.run_completion(user_hello, "echo-1", {"temperature": 5})

    @pytest.mark.asyncio
    async def test_api_error(self, recorder, json_reply, user_hello):
        """HTTP >= 400: ApiError avec le message du vendor."""
        rec = recorder(json_reply({"error": {"message": "Incorrect API key"}}, status_code=401))
        adapter = EchoAdapter(api_key="sk-test", transport=rec.transport)

        with pytest.raises(ApiError) as exc_info:
            await adapter.run_completion(user_hello, "echo-1")

        error = exc_info.value
        assert error.status_code == 401
        assert error.message == "Incorrect API key"
        assert error.response_body == {"error": {"message": "Incorrect API key"}}
        assert error.provider == "echo"
        assert str(error) == "[401] Incorrect API key"

    @pytest.mark.asyncio
    async def test_api_error_non_json_body(self, recorder, user_hello):
        rec = recorder(lambda request: httpx.Response(502, text="Bad Gateway"))
        adapter = EchoAdapter(api_key="sk-test", transport=rec.transport)

        with pytest.raises(ApiError) as exc_info:
            await adapter.run_completion(user_hello, "echo-1")

        assert exc_info.value.message == "API request failed with status 502"
        assert exc_info.value.response_body == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_transport_error(self, failing_transport, user_hello):
        adapter = EchoAdapter(api_key="sk-test", transport=failing_transport.transport)

        with pytest.raises(TransportError) as exc_info:
            await adapter.run_completion(user_hello, "echo-1")

        assert exc_info.value.message.startswith("Connection error: ")

    @pytest.mark.asyncio
    async def test_undecodable_body(self, user_hello):
        """Une erreur httpx hors transport (DecodingError) devient TransportError."""
        adapter = EchoAdapter(api_key="sk-test", transport=httpx.MockTransport(undecodable_reply))

        with pytest.raises(TransportError) as exc_info:
            await adapter.run_completion(user_hello, "echo-1")

        assert exc_info.value.provider == "echo"
        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)

    @pytest.mark.asyncio
    async def test_caller_messages_not_mutated(self, recorder, json_reply):
        rec = recorder(json_reply({"text": "pong"}))
        adapter = EchoAdapter(api_key="sk-test", transport=rec.transport)
        messages = [{"content": "Hello"}]

        await adapter.run_completion(messages, "echo-1")

        assert messages == [{"content": "Hello"}]


# =============================================================================
# Tests: Stream guard
# =============================================================================


class TestStreamGuard:
    """Tests pour le flux: exactement un chunk terminal, en dernier."""

    @pytest.mark.asyncio
    async def test_fallback_stream(self, recorder, json_reply, user_hello, drain):
        """Le flux par défaut livre CONTENT puis DONE."""
        rec = recorder(json_reply({"text": "pong"}))
        adapter = EchoAdapter(api_key="sk-test", transport=rec.transport)

        chunks = await drain(adapter.stream(user_hello, "echo-1"))

        assert chunks == [StreamChunk.content("pong"), StreamChunk.done()]

    @pytest.mark.asyncio
    async def test_fallback_stream_error(self, recorder, json_reply, user_hello, drain):
        """Une erreur bloquante devient un unique chunk ERROR."""
        rec = recorder(json_reply({"error": {"message": "Overloaded"}}, status_code=529))
        adapter = EchoAdapter(api_key="sk-test", transport=rec.transport)

        chunks = await drain(adapter.stream(user_hello, "echo-1"))

        assert chunks == [StreamChunk.error("Overloaded")]

    @pytest.mark.asyncio
    async def test_no_key_stream(self, recorder, json_reply, user_hello, drain):
        rec = recorder(json_reply({"text": "pong"}))
        adapter = EchoAdapter(transport=rec.transport)

        chunks = await drain(adapter.stream(user_hello, "echo-1"))

        assert chunks == [StreamChunk.error("Echo API key is not configured.")]
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_done_appended(self, user_hello, drain):
        """Un producteur qui se termine reçoit un DONE final."""
        adapter = ScriptedAdapter([StreamChunk.content("a"), StreamChunk.content("b")])

        chunks = await drain(adapter.stream(user_hello, "echo-1"))

        assert [c.type for c in chunks] == [ChunkType.CONTENT, ChunkType.CONTENT, ChunkType.DONE]

    @pytest.mark.asyncio
    async def test_stops_after_first_terminal(self, user_hello, drain):
        """Rien n'est livré après un chunk terminal."""
        adapter = ScriptedAdapter(
            [StreamChunk.content("a"), StreamChunk.error("boom"), StreamChunk.content("late")]
        )

        chunks = await drain(adapter.stream(user_hello, "echo-1"))

        assert chunks == [StreamChunk.content("a"), StreamChunk.error("boom")]
        assert adapter.closed is True

    @pytest.mark.asyncio
    async def test_exception_after_content(self, user_hello, drain):
        """Le contenu déjà livré n'est pas retiré; l'erreur termine le flux."""
        adapter = ScriptedAdapter(
            [StreamChunk.content("partial"), StreamInitError("Failed to initialize streaming.")]
        )

        chunks = await drain(adapter.stream(user_hello, "echo-1"))

        assert chunks == [
            StreamChunk.content("partial"),
            StreamChunk.error("Failed to initialize streaming."),
        ]

    @pytest.mark.asyncio
    async def test_httpx_error(self, user_hello, drain):
        adapter = ScriptedAdapter([httpx.ReadError("reset by peer")])

        chunks = await drain(adapter.stream(user_hello, "echo-1"))

        assert chunks == [StreamChunk.error("Connection error: reset by peer")]

    @pytest.mark.asyncio
    async def test_exactly_one_terminal(self, user_hello, drain):
        adapter = ScriptedAdapter([StreamChunk.content(str(i)) for i in range(5)])

        chunks = await drain(adapter.stream(user_hello, "echo-1"))

        assert sum(1 for c in chunks if c.is_terminal) == 1
        assert chunks[-1].is_terminal


# =============================================================================
# Tests: Cancellation
# =============================================================================


class TestCancellation:
    """Tests pour l'annulation via asyncio.Event."""

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, recorder, json_reply, user_hello, drain):
        """Un événement déjà levé: CANCELLED seul, aucun appel HTTP."""
        rec = recorder(json_reply({"text": "pong"}))
        adapter = EchoAdapter(api_key="sk-test", transport=rec.transport)
        cancel = asyncio.Event()
        cancel.set()

        chunks = await drain(adapter.stream(user_hello, "echo-1", cancel=cancel))

        assert chunks == [StreamChunk.cancelled()]
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self, user_hello):
        """L'annulation interrompt un producteur bloqué."""
        adapter = ScriptedAdapter([StreamChunk.content("first"), "block"])
        cancel = asyncio.Event()
        received = []

        async def consume():
            async for chunk in adapter.stream(user_hello, "echo-1", cancel=cancel):
                received.append(chunk)
                if chunk.type == ChunkType.CONTENT:
                    asyncio.get_running_loop().call_later(0.05, cancel.set)

        await asyncio.wait_for(consume(), timeout=5)

        assert received == [StreamChunk.content("first"), StreamChunk.cancelled()]
        assert adapter.closed is True

    @pytest.mark.asyncio
    async def test_cancel_between_chunks(self, user_hello):
        adapter = ScriptedAdapter([StreamChunk.content("a"), StreamChunk.content("b")])
        cancel = asyncio.Event()
        received = []

        async for chunk in adapter.stream(user_hello, "echo-1", cancel=cancel):
            received.append(chunk)
            cancel.set()

        assert received == [StreamChunk.content("a"), StreamChunk.cancelled()]


# =============================================================================
# Tests: stream_completion
# =============================================================================


class TestStreamCompletion:
    """Tests pour la forme callback du streaming."""

    @pytest.mark.asyncio
    async def test_sync_callback(self, user_hello):
        adapter = ScriptedAdapter([StreamChunk.content("a"), StreamChunk.content("b")])
        received = []

        await adapter.stream_completion(user_hello, "echo-1", received.append)

        assert [c.type for c in received] == [ChunkType.CONTENT, ChunkType.CONTENT, ChunkType.DONE]

    @pytest.mark.asyncio
    async def test_async_callback(self, user_hello):
        adapter = ScriptedAdapter([StreamChunk.content("a")])
        received = []

        async def callback(chunk):
            await asyncio.sleep(0)
            received.append(chunk.to_dict())

        await adapter.stream_completion(user_hello, "echo-1", callback)

        assert received == [{"type": "content", "content": "a"}, {"type": "done"}]

    @pytest.mark.asyncio
    async def test_callback_error_stops_delivery(self, user_hello):
        """Une exception du callback ferme le flux sans se propager."""
        adapter = ScriptedAdapter([StreamChunk.content("a"), StreamChunk.content("b")])
        received = []

        def callback(chunk):
            received.append(chunk)
            raise RuntimeError("consumer went away")

        await adapter.stream_completion(user_hello, "echo-1", callback)

        assert received == [StreamChunk.content("a")]
        assert adapter.closed is True

    @pytest.mark.asyncio
    async def test_errors_become_chunks(self, user_hello):
        adapter = EchoAdapter()
        received = []

        await adapter.stream_completion(user_hello, "echo-1", received.append)

        assert received == [StreamChunk.error("Echo API key is not configured.")]


# =============================================================================
# Tests: Key validation
# =============================================================================


class TestValidateApiKey:
    """Tests pour validate_api_key."""

    @pytest.mark.asyncio
    async def test_valid_key(self, recorder, json_reply):
        rec = recorder(json_reply({"data": []}))
        adapter = EchoAdapter(transport=rec.transport)

        assert await adapter.validate_api_key("sk-candidate") is True
        assert rec.last_request.headers["Authorization"] == "Bearer sk-candidate"

    @pytest.mark.asyncio
    async def test_rejected_key(self, recorder, json_reply):
        rec = recorder(json_reply({"error": {"message": "invalid"}}, status_code=401))
        adapter = EchoAdapter(transport=rec.transport)

        with pytest.raises(InvalidApiKeyError, match="Invalid Echo API key."):
            await adapter.validate_api_key("sk-candidate")

    @pytest.mark.asyncio
    async def test_empty_key(self, recorder, json_reply):
        rec = recorder(json_reply({}))
        adapter = EchoAdapter(transport=rec.transport)

        with pytest.raises(InvalidApiKeyError):
            await adapter.validate_api_key("")
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_transport_failure(self, failing_transport):
        adapter = EchoAdapter(transport=failing_transport.transport)

        with pytest.raises(TransportError):
            await adapter.validate_api_key("sk-candidate")

    @pytest.mark.asyncio
    async def test_undecodable_body(self):
        adapter = EchoAdapter(transport=httpx.MockTransport(undecodable_reply))

        with pytest.raises(TransportError) as exc_info:
            await adapter.validate_api_key("sk-candidate")

        assert isinstance(exc_info.value.__cause__, httpx.DecodingError)
