"""
O8 Content Store Client

Publishes and fetches immutable, content-addressed bytes.

The store is an opaque blob service with four operations:

    publish(bytes)  -> content address   (retried with backoff)
    fetch(address)  -> bytes             (retried; 404 raises NotFoundError)
    exists(address) -> bool              (best-effort; errors collapse to False)
    pin(address)    -> PinResult         (best-effort; never retried or raised)

Two implementations are provided:

    - ``IPFSClient``: IPFS HTTP API for add/pin plus a gateway for reads,
      over ``httpx.AsyncClient``
    - ``MemoryStore``: in-process dictionary keyed by the raw CIDv1 of the
      bytes, for offline use and tests

``publish_declaration`` implements the two-phase commit that binds a
declaration's identity to its content: the bytes are stored with a pending
ID, and the returned declaration carries the published ID ``o8-<address>``.

Usage:
    >>> import asyncio
    >>> from o8.core.store import IPFSClient, publish_declaration
    >>>
    >>> async def main():
    ...     async with IPFSClient() as client:
    ...         result = await publish_declaration(declaration, client, pin=True)
    ...         print(result.declaration_id, result.gateway_url)
    >>>
    >>> asyncio.run(main())
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
import json
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Union

import httpx
import structlog

from o8.config import StoreConfig
from o8.core.declaration import Declaration
from o8.core.errors import FormatError, NotFoundError, StoreError, ValidationError
from o8.core.ids import (
    DEFAULT_GATEWAY,
    content_address_for,
    create_pending_id,
    generate_declaration_id,
    get_gateway_url,
    is_pending_id,
    validate_cid,
)
from o8.core.retry import RetryPolicy, retry_async
from o8.core.validator import validate_declaration


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PinResult:
    """
    Outcome of a pin request.

    Attributes:
        cid: Content address that was pinned
        pinned: True if the store acknowledged the pin
        error: Failure description when not pinned
    """
    cid: str
    pinned: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"cid": self.cid, "pinned": self.pinned, "error": self.error}


@dataclass(frozen=True)
class PublishResult:
    """
    Result of publishing a declaration.

    Attributes:
        cid: Content address of the stored bytes
        declaration_id: Published ID (``o8-<cid>``)
        gateway_url: Public URL of the stored bytes
        declaration: The declaration carrying the published ID
        pin: Pin outcome, if pinning was requested
    """
    cid: str
    declaration_id: str
    gateway_url: str
    declaration: Declaration
    pin: Optional[PinResult] = None

    def to_dict(self) -> dict:
        return {
            "cid": self.cid,
            "declaration_id": self.declaration_id,
            "gateway_url": self.gateway_url,
            "pin": self.pin.to_dict() if self.pin else None,
        }


def _require_cid(cid: str) -> None:
    if not validate_cid(cid):
        raise FormatError(f"Invalid CID format: {cid!r}")


class ContentStore(ABC):
    """
    Immutable blob store addressed by content.

    Subclasses implement the raw operations; ``fetch`` and ``publish_file``
    are built on top of them.
    """

    gateway: str = DEFAULT_GATEWAY

    @abstractmethod
    async def publish(self, data: bytes) -> str:
        """Store bytes and return their content address."""

    @abstractmethod
    async def fetch_bytes(self, cid: str) -> bytes:
        """Return the bytes stored under an address."""

    @abstractmethod
    async def exists(self, cid: str) -> bool:
        """Probe whether an address resolves. Never raises."""

    @abstractmethod
    async def pin(self, cid: str) -> PinResult:
        """Request durable retention of an address. Never raises."""

    def gateway_url(self, cid: str) -> str:
        return get_gateway_url(cid, self.gateway)

    async def fetch(self, cid: str) -> Declaration:
        """
        Fetch and validate a declaration.

        Every call re-validates the payload; nothing is cached.

        Args:
            cid: Content address of the declaration

        Returns:
            Declaration: The schema-valid declaration

        Raises:
            NotFoundError: If nothing is stored under the address
            StoreError: If the store fails, or the payload is not JSON or
                not a valid declaration
        """
        data = await self.fetch_bytes(cid)

        try:
            payload = json.loads(data)
        except ValueError as e:
            raise StoreError(f"Payload at {cid} is not valid JSON", cause=e) from e

        result = validate_declaration(payload)
        if not result.valid:
            error = ValidationError(result.errors)
            raise StoreError(f"Invalid declaration at {cid}: {'; '.join(result.errors)}", cause=error) from error

        return result.declaration

    async def publish_file(self, file_path: Union[str, Path]) -> str:
        """
        Store the contents of a local file, e.g. the audio itself.

        Raises:
            NotFoundError: If the file does not exist
            StoreError: If publishing fails
        """
        path = Path(file_path)
        if not path.is_file():
            raise NotFoundError(f"File not found: {path}")
        data = await asyncio.to_thread(path.read_bytes)
        return await self.publish(data)


class IPFSClient(ContentStore):
    """
    Content store backed by an IPFS node and a public gateway.

    Publishing uses ``/api/v0/add`` with CIDv1 raw leaves, so a small payload
    gets an address that can be recomputed from its bytes
    (see ``o8.core.ids.content_address_for``).

    Args:
        config: Endpoints, timeouts and retry budget
        client: Optional pre-built ``httpx.AsyncClient`` (e.g. with a mock
            transport); the client is then owned by the caller
        sleep: Backoff sleeper passed to the retry combinator
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.config = config or StoreConfig()
        self.gateway = self.config.gateway_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout, follow_redirects=True)
        self._sleep = sleep
        self._policy = RetryPolicy(
            max_attempts=self.config.retries,
            base_delay=self.config.base_delay,
            attempt_timeout=self.config.timeout,
        )

    async def __aenter__(self) -> "IPFSClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _api(self, endpoint: str) -> str:
        return f"{self.config.api_url.rstrip('/')}/api/v0/{endpoint}"

    async def _add_once(self, data: bytes) -> str:
        response = await self._client.post(
            self._api("add"),
            params={"cid-version": "1", "raw-leaves": "true", "pin": "false"},
            files={"file": ("declaration.json", data, "application/octet-stream")},
        )
        response.raise_for_status()
        payload = response.json()
        cid = payload.get("Hash") if isinstance(payload, dict) else None
        if not isinstance(cid, str) or not validate_cid(cid):
            raise ValueError(f"IPFS API returned an invalid CID: {cid!r}")
        return cid

    async def _get_once(self, cid: str) -> bytes:
        response = await self._client.get(self.gateway_url(cid), follow_redirects=True)
        if response.status_code == 404:
            raise NotFoundError(f"No content at {cid}")
        response.raise_for_status()
        return response.content

    async def publish(self, data: bytes) -> str:
        """
        Add bytes to IPFS.

        Returns:
            str: Content address reported by the node

        Raises:
            StoreError: On a terminal failure or after the retry budget
        """
        cid = await retry_async(
            lambda: self._add_once(data),
            self._policy,
            sleep=self._sleep,
            operation_name="publish",
        )
        logger.info("Published to IPFS", cid=cid, size=len(data))
        return cid

    async def fetch_bytes(self, cid: str) -> bytes:
        """
        Retrieve bytes through the gateway.

        Raises:
            FormatError: If the address is malformed
            NotFoundError: If the gateway answers 404
            StoreError: On a terminal failure or after the retry budget
        """
        _require_cid(cid)
        data = await retry_async(
            lambda: self._get_once(cid),
            self._policy,
            sleep=self._sleep,
            operation_name="fetch",
        )
        logger.debug("Fetched from IPFS", cid=cid, size=len(data))
        return data

    async def exists(self, cid: str) -> bool:
        if not validate_cid(cid):
            return False
        try:
            response = await self._client.head(
                self.gateway_url(cid),
                timeout=self.config.exists_timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            logger.debug("Existence probe failed", cid=cid, error=repr(e))
            return False
        return response.is_success

    async def pin(self, cid: str) -> PinResult:
        try:
            response = await self._client.post(self._api("pin/add"), params={"arg": cid})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Pin failed", cid=cid, error=repr(e))
            return PinResult(cid=cid, pinned=False, error=str(e) or type(e).__name__)

        logger.info("Pinned", cid=cid)
        return PinResult(cid=cid, pinned=True)


class MemoryStore(ContentStore):
    """
    In-process content store.

    Addresses are the raw CIDv1 of the stored bytes, so anything published
    here can be re-verified by recomputing the address.
    """

    def __init__(self, gateway: str = DEFAULT_GATEWAY):
        self.gateway = gateway
        self._blobs: Dict[str, bytes] = {}
        self._pinned = set()

    def __len__(self) -> int:
        return len(self._blobs)

    def put(self, cid: str, data: bytes) -> None:
        """Store bytes under an explicit address without checking it."""
        _require_cid(cid)
        self._blobs[cid] = bytes(data)

    def is_pinned(self, cid: str) -> bool:
        return cid in self._pinned

    async def publish(self, data: bytes) -> str:
        cid = content_address_for(data)
        self._blobs[cid] = bytes(data)
        logger.debug("Stored in memory", cid=cid, size=len(data))
        return cid

    async def fetch_bytes(self, cid: str) -> bytes:
        _require_cid(cid)
        try:
            return self._blobs[cid]
        except KeyError:
            raise NotFoundError(f"No content at {cid}") from None

    async def exists(self, cid: str) -> bool:
        return cid in self._blobs

    async def pin(self, cid: str) -> PinResult:
        if cid not in self._blobs:
            return PinResult(cid=cid, pinned=False, error="Unknown content address")
        self._pinned.add(cid)
        return PinResult(cid=cid, pinned=True)


async def publish_declaration(
    declaration: Declaration,
    store: ContentStore,
    pin: bool = False
) -> PublishResult:
    """
    Store a declaration and bind its ID to the resulting content address.

    The stored bytes carry a pending ID (bytes cannot embed their own
    address); the returned declaration carries the published ID. A failed
    pin is reported on the result and does not undo the publish.

    Args:
        declaration: Validated declaration
        store: Content store to publish to
        pin: Request durable retention after publishing

    Returns:
        PublishResult: Address, published ID, gateway URL and declaration

    Raises:
        ValidationError: If the declaration does not validate
        StoreError: If the store fails to publish
    """
    result = validate_declaration(declaration.to_dict())
    if not result.valid:
        raise ValidationError(result.errors)

    staged = declaration
    if not is_pending_id(declaration.declaration_id):
        staged = declaration.with_declaration_id(create_pending_id())

    cid = await store.publish(staged.to_bytes())
    declaration_id = generate_declaration_id(cid)
    published = staged.with_declaration_id(declaration_id)

    pin_result = None
    if pin:
        pin_result = await store.pin(cid)

    logger.info(
        "Declaration published",
        declaration_id=declaration_id,
        pinned=pin_result.pinned if pin_result else None,
    )

    return PublishResult(
        cid=cid,
        declaration_id=declaration_id,
        gateway_url=store.gateway_url(cid),
        declaration=published,
        pin=pin_result,
    )
