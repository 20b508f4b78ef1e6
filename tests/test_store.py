"""
Tests for O8 Content Store

Tests cover:
- IPFS client requests and failure handling (mock transport)
- In-memory store
- Fetch-time validation of declarations
- Publishing a declaration (pending ID stored, published ID returned)
"""

import asyncio
import json

import httpx
import pytest

from o8.config import StoreConfig
from o8.core.errors import FormatError, NotFoundError, StoreError, ValidationError
from o8.core.ids import (
    content_address_for,
    generate_declaration_id,
    is_pending_id,
    is_published_id,
)
from o8.core.store import IPFSClient, MemoryStore, publish_declaration

from tests.conftest import CIDV0, MISSING_CIDV0


HELLO_RAW_CID = "bafkreibm6jg3ux5qumhcn2b3flc3tyu6dmlb4xa7u5bf44yegnrjhc4yeq"


class FakeSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def make_client(handler, sleep=None, **config):
    """IPFS client whose HTTP traffic goes to ``handler``."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IPFSClient(StoreConfig(**config), client=http, sleep=sleep or FakeSleep())


def run_with(client, operation):
    async def runner():
        async with client:
            return await operation(client)
    return asyncio.run(runner())


class TestIPFSPublish:
    """Test adding bytes through the IPFS API."""

    def test_add_request(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"Name": "declaration.json", "Hash": HELLO_RAW_CID, "Size": "5"})

        cid = run_with(make_client(handler), lambda c: c.publish(b"hello"))

        assert cid == HELLO_RAW_CID
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v0/add"
        assert request.url.params["cid-version"] == "1"
        assert request.url.params["raw-leaves"] == "true"
        assert b"hello" in request.content

    def test_retries_transient_failures(self):
        responses = [
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json={"Hash": HELLO_RAW_CID}),
        ]
        sleep = FakeSleep()

        cid = run_with(make_client(lambda request: responses.pop(0), sleep=sleep), lambda c: c.publish(b"hello"))

        assert cid == HELLO_RAW_CID
        assert sleep.delays == [1.0, 2.0]

    def test_exhausts_budget(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StoreError) as exc_info:
            run_with(make_client(handler, retries=2), lambda c: c.publish(b"hello"))

        assert exc_info.value.attempts == 2
        assert len(calls) == 2

    def test_invalid_hash_is_terminal(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"Hash": "not-a-cid"})

        with pytest.raises(StoreError):
            run_with(make_client(handler), lambda c: c.publish(b"hello"))

        assert len(calls) == 1

    def test_client_error_is_terminal(self):
        with pytest.raises(StoreError) as exc_info:
            run_with(make_client(lambda request: httpx.Response(400)), lambda c: c.publish(b"hello"))

        assert exc_info.value.attempts == 1


class TestIPFSFetch:
    """Test reads through the gateway."""

    def test_fetch_bytes(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"hello")

        client = make_client(handler, gateway_url="https://gateway.example.org/")
        data = run_with(client, lambda c: c.fetch_bytes(HELLO_RAW_CID))

        assert data == b"hello"
        assert str(seen[0].url) == f"https://gateway.example.org/ipfs/{HELLO_RAW_CID}"

    def test_not_found(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        with pytest.raises(NotFoundError):
            run_with(make_client(handler), lambda c: c.fetch_bytes(MISSING_CIDV0))

        assert len(calls) == 1

    def test_malformed_address(self):
        with pytest.raises(FormatError):
            run_with(make_client(lambda request: httpx.Response(200)), lambda c: c.fetch_bytes("nope"))

    def test_fetch_validates_declaration(self, declaration):
        client = make_client(lambda request: httpx.Response(200, content=declaration.to_bytes()))
        fetched = run_with(client, lambda c: c.fetch(CIDV0))
        assert fetched == declaration


class TestGatewayRedirects:
    """Subdomain gateways answer path requests with a redirect."""

    @staticmethod
    def handler(request):
        if request.url.host == "dweb.link":
            return httpx.Response(301, headers={"Location": f"https://{CIDV0}.ipfs.dweb.link/"})
        return httpx.Response(200, content=b"hello")

    def test_fetch_follows_redirect(self):
        client = make_client(self.handler, gateway_url="https://dweb.link")
        assert run_with(client, lambda c: c.fetch_bytes(CIDV0)) == b"hello"

    def test_exists_follows_redirect(self):
        client = make_client(self.handler, gateway_url="https://dweb.link")
        assert run_with(client, lambda c: c.exists(CIDV0))


class TestIPFSBestEffort:
    """Test exists() and pin(), which never raise."""

    def test_exists(self):
        client = make_client(lambda request: httpx.Response(200))
        assert run_with(client, lambda c: c.exists(CIDV0))

    def test_missing(self):
        client = make_client(lambda request: httpx.Response(404))
        assert not run_with(client, lambda c: c.exists(CIDV0))

    def test_exists_swallows_transport_errors(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        assert not run_with(make_client(handler), lambda c: c.exists(CIDV0))

    def test_exists_with_malformed_address(self):
        assert not run_with(make_client(lambda request: httpx.Response(200)), lambda c: c.exists("nope"))

    def test_pin(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"Pins": [CIDV0]})

        result = run_with(make_client(handler), lambda c: c.pin(CIDV0))

        assert result.pinned
        assert seen[0].url.path == "/api/v0/pin/add"
        assert seen[0].url.params["arg"] == CIDV0

    def test_pin_failure_is_reported(self):
        result = run_with(make_client(lambda request: httpx.Response(500)), lambda c: c.pin(CIDV0))

        assert not result.pinned
        assert result.error

    def test_caller_owned_client_stays_open(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))

        async def runner():
            async with IPFSClient(client=http):
                pass
            closed = http.is_closed
            await http.aclose()
            return closed

        assert asyncio.run(runner()) is False


class TestMemoryStore:
    """Test the in-process store."""

    def test_publish_uses_content_address(self):
        store = MemoryStore()
        cid = asyncio.run(store.publish(b"hello"))

        assert cid == HELLO_RAW_CID
        assert asyncio.run(store.fetch_bytes(cid)) == b"hello"
        assert len(store) == 1

    def test_same_bytes_same_address(self):
        store = MemoryStore()
        assert asyncio.run(store.publish(b"x")) == asyncio.run(store.publish(b"x"))
        assert len(store) == 1

    def test_missing(self):
        with pytest.raises(NotFoundError):
            asyncio.run(MemoryStore().fetch_bytes(MISSING_CIDV0))

    def test_exists(self):
        store = MemoryStore()
        store.put(CIDV0, b"data")

        assert asyncio.run(store.exists(CIDV0))
        assert not asyncio.run(store.exists(MISSING_CIDV0))

    def test_pin_unknown_address(self):
        result = asyncio.run(MemoryStore().pin(CIDV0))
        assert not result.pinned

    def test_put_rejects_malformed_address(self):
        with pytest.raises(FormatError):
            MemoryStore().put("nope", b"data")

    def test_gateway_url(self):
        store = MemoryStore(gateway="http://localhost:8080")
        assert store.gateway_url(CIDV0) == f"http://localhost:8080/ipfs/{CIDV0}"

    def test_publish_file(self, wav_file):
        store = MemoryStore()
        cid = asyncio.run(store.publish_file(wav_file))
        assert cid == content_address_for(wav_file.read_bytes())

    def test_publish_missing_file(self, tmp_path):
        with pytest.raises(NotFoundError):
            asyncio.run(MemoryStore().publish_file(tmp_path / "missing.wav"))


class TestFetchValidation:
    """Test that fetch() re-validates every payload."""

    def test_not_json(self):
        store = MemoryStore()
        store.put(CIDV0, b"\x00\x01 definitely not json")

        with pytest.raises(StoreError):
            asyncio.run(store.fetch(CIDV0))

    def test_invalid_declaration(self, declaration_dict):
        declaration_dict["audio_fingerprint"]["sha256"] = "short"
        store = MemoryStore()
        store.put(CIDV0, json.dumps(declaration_dict).encode())

        with pytest.raises(StoreError) as exc_info:
            asyncio.run(store.fetch(CIDV0))

        assert isinstance(exc_info.value.cause, ValidationError)
        assert "audio_fingerprint.sha256" in str(exc_info.value)

    def test_non_finite_number(self, declaration_dict):
        declaration_dict["production_intelligence"]["ai_contribution"]["composition"] = float("nan")
        store = MemoryStore()
        store.put(CIDV0, json.dumps(declaration_dict).encode())

        with pytest.raises(StoreError) as exc_info:
            asyncio.run(store.fetch(CIDV0))

        assert isinstance(exc_info.value.cause, ValidationError)
        assert "ai_contribution.composition" in str(exc_info.value)


class TestPublishDeclaration:
    """Test the publish flow."""

    def test_published_id_matches_address(self, declaration):
        store = MemoryStore()
        result = asyncio.run(publish_declaration(declaration, store))

        assert result.declaration_id == generate_declaration_id(result.cid)
        assert result.declaration.declaration_id == result.declaration_id
        assert is_published_id(result.declaration_id)
        assert result.gateway_url == f"https://ipfs.io/ipfs/{result.cid}"
        assert result.pin is None

    def test_stored_bytes_carry_pending_id(self, declaration):
        store = MemoryStore()
        result = asyncio.run(publish_declaration(declaration, store))

        stored = json.loads(asyncio.run(store.fetch_bytes(result.cid)))

        assert is_pending_id(stored["declaration_id"])
        assert result.cid == content_address_for(asyncio.run(store.fetch_bytes(result.cid)))

    def test_rest_of_declaration_unchanged(self, declaration):
        result = asyncio.run(publish_declaration(declaration, MemoryStore()))

        before = declaration.to_dict()
        after = result.declaration.to_dict()
        before.pop("declaration_id")
        after.pop("declaration_id")
        assert before == after

    def test_republishing_published_declaration(self, declaration):
        store = MemoryStore()
        first = asyncio.run(publish_declaration(declaration, store))
        second = asyncio.run(publish_declaration(first.declaration, store))

        stored = json.loads(asyncio.run(store.fetch_bytes(second.cid)))
        assert is_pending_id(stored["declaration_id"])
        assert second.cid != first.cid

    def test_pin(self, declaration):
        store = MemoryStore()
        result = asyncio.run(publish_declaration(declaration, store, pin=True))

        assert result.pin.pinned
        assert store.is_pinned(result.cid)

    def test_failed_pin_keeps_publish(self, declaration):
        pins = []

        def handler(request):
            if request.url.path == "/api/v0/add":
                return httpx.Response(200, json={"Hash": HELLO_RAW_CID})
            pins.append(request)
            return httpx.Response(500)

        result = run_with(make_client(handler), lambda c: publish_declaration(declaration, c, pin=True))

        assert [request.url.path for request in pins] == ["/api/v0/pin/add"]
        assert pins[0].url.params["arg"] == HELLO_RAW_CID
        assert result.cid == HELLO_RAW_CID
        assert result.pin is not None
        assert not result.pin.pinned

    def test_publish_failure(self, declaration):
        with pytest.raises(StoreError):
            run_with(make_client(lambda request: httpx.Response(500)), lambda c: publish_declaration(declaration, c))

    def test_to_dict(self, declaration):
        data = asyncio.run(publish_declaration(declaration, MemoryStore(), pin=True)).to_dict()
        assert set(data) == {"cid", "declaration_id", "gateway_url", "pin"}
        assert data["pin"]["pinned"] is True
