"""
O8 Declaration Identifiers

A declaration ID is in one of two states:

    - pending:   ``o8-pending-<token>``  (random, not resolvable to content)
    - published: ``o8-<cid>``            (embeds the content address of the
                                          stored declaration bytes)

A declaration receives a pending ID when it is built and is upgraded to the
published form once its bytes are durably stored. From then on identity is
a pure function of content: refetching the bytes by the embedded address
and recomputing the address proves the record has not changed.

Content addresses are accepted in the two canonical IPFS text forms:

    - CIDv0: ``Qm`` + 44 base58btc characters
    - CIDv1: ``ba`` + 57 lowercase base32 characters

Usage:
    >>> from o8.core.ids import generate_declaration_id, parse_declaration_id
    >>>
    >>> declaration_id = generate_declaration_id("QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG")
    >>> parse_declaration_id(declaration_id).cid
    'QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG'
"""

import base64
import hashlib
import re
import secrets
from typing import Callable, List, NamedTuple, Optional

from o8.core.errors import FormatError


O8_PREFIX = "o8-"
O8_PENDING_PREFIX = "o8-pending-"

DEFAULT_GATEWAY = "https://ipfs.io"

IPFS_CID_REGEX = re.compile(r"^(Qm[1-9A-HJ-NP-Za-km-z]{44}|ba[a-z2-7]{57})$")
ETHEREUM_ADDRESS_REGEX = re.compile(r"^0x[a-fA-F0-9]{40}$")

_GATEWAY_PATH_REGEX = re.compile(r"/ipfs/([A-Za-z0-9]+)")
_IPFS_URI_REGEX = re.compile(r"^ipfs://([A-Za-z0-9]+)")

# CIDv1 header: version 1, raw codec, sha2-256 multihash of 32 bytes
_CIDV1_RAW_SHA256_HEADER = bytes([0x01, 0x55, 0x12, 0x20])


class ParsedDeclarationId(NamedTuple):
    """
    Components of a declaration ID.

    Attributes:
        prefix: ``o8-`` or ``o8-pending-``
        cid: Content address (published) or opaque token (pending)
        is_pending: True for pending IDs
    """
    prefix: str
    cid: str
    is_pending: bool


def validate_cid(cid: str) -> bool:
    """Check that a string is a content address in one of the canonical forms."""
    return isinstance(cid, str) and bool(IPFS_CID_REGEX.fullmatch(cid))


def validate_wallet_address(address: str) -> bool:
    """Check that a string is a 0x-prefixed 20-byte hex wallet address."""
    return isinstance(address, str) and bool(ETHEREUM_ADDRESS_REGEX.fullmatch(address))


def generate_declaration_id(cid: str) -> str:
    """
    Generate a published declaration ID from a content address.

    Args:
        cid: Content address of the stored declaration

    Returns:
        str: ``o8-<cid>``

    Raises:
        FormatError: If the content address is malformed
    """
    if not validate_cid(cid):
        raise FormatError(f"Invalid CID format: {cid!r}")
    return f"{O8_PREFIX}{cid}"


def create_pending_id() -> str:
    """
    Create a pending declaration ID with a 128-bit random token.

    Returns:
        str: ``o8-pending-<32 hex chars>``
    """
    return f"{O8_PENDING_PREFIX}{secrets.token_hex(16)}"


def parse_declaration_id(declaration_id: str) -> ParsedDeclarationId:
    """
    Split a declaration ID into prefix and payload.

    Args:
        declaration_id: Pending or published declaration ID

    Returns:
        ParsedDeclarationId: prefix, payload and pending flag

    Raises:
        FormatError: If no known prefix matches, or a published ID does not
            embed a valid content address
    """
    if not isinstance(declaration_id, str) or not declaration_id.startswith(O8_PREFIX):
        raise FormatError(f'Invalid declaration ID format. Must start with "{O8_PREFIX}"')

    if declaration_id.startswith(O8_PENDING_PREFIX):
        token = declaration_id[len(O8_PENDING_PREFIX):]
        if not token:
            raise FormatError("Pending declaration ID has an empty token")
        return ParsedDeclarationId(prefix=O8_PENDING_PREFIX, cid=token, is_pending=True)

    cid = declaration_id[len(O8_PREFIX):]
    if not validate_cid(cid):
        raise FormatError("Invalid CID in declaration ID. Expected valid IPFS CID.")

    return ParsedDeclarationId(prefix=O8_PREFIX, cid=cid, is_pending=False)


def is_pending_id(declaration_id: str) -> bool:
    """Check if a declaration ID is in pending state."""
    return isinstance(declaration_id, str) and declaration_id.startswith(O8_PENDING_PREFIX)


def is_published_id(declaration_id: str) -> bool:
    """Check if a declaration ID is published (embeds a valid content address)."""
    if not isinstance(declaration_id, str) or not declaration_id.startswith(O8_PREFIX):
        return False
    if declaration_id.startswith(O8_PENDING_PREFIX):
        return False
    return validate_cid(declaration_id[len(O8_PREFIX):])


def get_gateway_url(cid: str, gateway: str = DEFAULT_GATEWAY) -> str:
    """Build the gateway URL for a content address."""
    return f"{gateway.rstrip('/')}/ipfs/{cid}"


def _match_bare(text: str) -> Optional[str]:
    return text if validate_cid(text) else None


def _match_declaration_id(text: str) -> Optional[str]:
    if is_published_id(text):
        return text[len(O8_PREFIX):]
    return None


def _match_gateway_url(text: str) -> Optional[str]:
    match = _GATEWAY_PATH_REGEX.search(text)
    if match and validate_cid(match.group(1)):
        return match.group(1)
    return None


def _match_ipfs_uri(text: str) -> Optional[str]:
    match = _IPFS_URI_REGEX.match(text)
    if match and validate_cid(match.group(1)):
        return match.group(1)
    return None


# Tried in order; the first matcher that returns an address wins.
_ADDRESS_MATCHERS: List[Callable[[str], Optional[str]]] = [
    _match_bare,
    _match_declaration_id,
    _match_gateway_url,
    _match_ipfs_uri,
]


def extract_content_address(reference: str) -> str:
    """
    Normalize a reference to a bare content address.

    Accepts a bare address, a published declaration ID (``o8-<cid>``),
    a gateway URL (``https://<host>/ipfs/<cid>[/...]``) or an
    ``ipfs://<cid>`` URI. All forms of the same address normalize to the
    same result.

    Args:
        reference: Address, declaration ID or URL

    Returns:
        str: Bare content address

    Raises:
        FormatError: If no supported form matches
    """
    if isinstance(reference, str):
        text = reference.strip()
        for matcher in _ADDRESS_MATCHERS:
            cid = matcher(text)
            if cid is not None:
                return cid

    raise FormatError(
        "Could not extract CID from input. Expected CID, o8-[CID], or IPFS gateway URL."
    )


def content_address_for(data: bytes) -> str:
    """
    Compute the CIDv1 (raw codec, sha2-256, base32) content address of bytes.

    This is the address an IPFS node assigns to a single-block file added
    with ``cid-version=1`` and ``raw-leaves=true``.

    Args:
        data: Raw bytes

    Returns:
        str: ``b``-prefixed lowercase base32 CID
    """
    digest = hashlib.sha256(data).digest()
    encoded = base64.b32encode(_CIDV1_RAW_SHA256_HEADER + digest).decode("ascii")
    return "b" + encoded.rstrip("=").lower()


def is_recomputable(cid: str) -> bool:
    """
    Check whether an address is a raw sha2-256 CIDv1.

    Only such addresses can be recomputed locally from refetched bytes.
    """
    if not validate_cid(cid) or not cid.startswith("b"):
        return False
    body = cid[1:].upper()
    padded = body + "=" * (-len(body) % 8)
    try:
        raw = base64.b32decode(padded)
    except ValueError:
        return False
    return raw[:4] == _CIDV1_RAW_SHA256_HEADER and len(raw) == 36
