"""
O8 Verification Module

Verifies a published declaration end to end:

1. Reference resolution - content address, published ID or gateway URL
2. Fetch - raw bytes from the content store
3. Schema - full validation; failure short-circuits every other check
4. Identity - the stored ID agrees with the address it was fetched from
5. Fingerprint (opt-in) - a local audio file matches the declared fingerprint
6. Signatures (opt-in) - every party with a wallet carries a signature
7. Provenance (opt-in) - every referenced content address resolves

The overall verdict is the conjunction of the schema check, the identity
check and every check that was requested. A check that was not requested is
absent from the report; it never counts as a failure.

Only the first two steps raise (``InvalidReferenceError``,
``FetchFailedError``). Everything after them is reported as data.

Identity policy:
    Stored bytes cannot embed their own address, so a record published by
    ``publish_declaration`` carries a pending ID. Such a record is accepted,
    and the identity sub-result says so (``pending=True``). A record
    carrying a published ID must name the address it was fetched from. In
    both cases, when the address is a raw CIDv1 it is recomputed from the
    fetched bytes and must match.

Usage:
    >>> import asyncio
    >>> from o8.core.verifier import verify_declaration, format_verification_result
    >>>
    >>> report = asyncio.run(verify_declaration("o8-bafkrei...", store, check_provenance=True))
    >>> print(format_verification_result(report))
"""

import asyncio
from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any, List, Optional, Union

import structlog

from o8.core.declaration import Declaration
from o8.core.errors import (
    FetchFailedError,
    FormatError,
    InvalidReferenceError,
    NotFoundError,
    StoreError,
    UnsupportedFormatError,
)
from o8.core.fingerprint import FingerprintMismatch, verify_fingerprint
from o8.core.ids import (
    O8_PREFIX,
    content_address_for,
    extract_content_address,
    is_pending_id,
    is_recomputable,
)
from o8.core.store import ContentStore
from o8.core.validator import validate_declaration
from o8.utils.helpers import format_timestamp


logger = structlog.get_logger(__name__)


@dataclass
class SchemaCheck:
    """
    Result of schema validation.

    Attributes:
        valid: True if the record passed the schema and invariant checks
        errors: Field-qualified violations
    """
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {"valid": self.valid}
        if self.errors:
            data["errors"] = list(self.errors)
        return data


@dataclass
class IdentityCheck:
    """
    Result of the identity consistency check.

    Attributes:
        valid: True if the stored ID and bytes agree with the fetch address
        declaration_id: ID stored in the record
        expected_id: Published ID derived from the fetch address
        pending: True if the record carries a pending ID
        content_match: Whether the bytes hash to the address (None when the
            address form cannot be recomputed locally)
        errors: Description of each disagreement
    """
    valid: bool
    declaration_id: str
    expected_id: str
    pending: bool = False
    content_match: Optional[bool] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            "valid": self.valid,
            "declaration_id": self.declaration_id,
            "expected_id": self.expected_id,
            "pending": self.pending,
            "content_match": self.content_match,
        }
        if self.errors:
            data["errors"] = list(self.errors)
        return data


@dataclass
class FingerprintCheck:
    """
    Result of comparing a local audio file with the declared fingerprint.

    Attributes:
        valid: True if hash, duration and format all match
        declared: Declared SHA-256
        computed: SHA-256 of the local file (None if it could not be read)
        mismatch: Diverging fields
        error: Why the file could not be fingerprinted
    """
    valid: bool
    declared: str
    computed: Optional[str] = None
    mismatch: Optional[FingerprintMismatch] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"valid": self.valid, "declared": self.declared, "computed": self.computed}
        if self.mismatch is not None:
            data["mismatch"] = self.mismatch.to_dict()
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class SignatureCheck:
    """
    Result of the signature presence check.

    Attributes:
        valid: True if no party with a wallet lacks a signature
        verified: Names of parties with wallet and signature
        failed: Parties with a wallet but no signature
    """
    valid: bool
    verified: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "verified": list(self.verified), "failed": list(self.failed)}


@dataclass
class ProvenanceCheck:
    """
    Result of probing every referenced content address.

    Attributes:
        valid: True if every referenced address resolves
        sources_checked: Number of addresses probed
        sources_valid: Number that resolved
        missing: Addresses that did not resolve
    """
    valid: bool
    sources_checked: int = 0
    sources_valid: int = 0
    missing: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "sources_checked": self.sources_checked,
            "sources_valid": self.sources_valid,
            "missing": list(self.missing),
        }


@dataclass
class VerificationReport:
    """
    Aggregated verification result.

    The structure itself is the audit record: one sub-result per check that
    ran, the overall verdict and when it was reached.
    """
    valid: bool
    timestamp: str
    schema: SchemaCheck
    cid: Optional[str] = None
    declaration: Optional[Declaration] = None
    identity: Optional[IdentityCheck] = None
    fingerprint: Optional[FingerprintCheck] = None
    signatures: Optional[SignatureCheck] = None
    provenance: Optional[ProvenanceCheck] = None

    @property
    def checks(self) -> dict:
        """Sub-results that ran, keyed by check name."""
        checks = {"schema": self.schema}
        for name in ("identity", "fingerprint", "signatures", "provenance"):
            check = getattr(self, name)
            if check is not None:
                checks[name] = check
        return checks

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "timestamp": self.timestamp,
            "cid": self.cid,
            "declaration": self.declaration.to_dict() if self.declaration else None,
            "checks": {name: check.to_dict() for name, check in self.checks.items()},
        }


def verify_identity(declaration: Declaration, cid: str, data: bytes) -> IdentityCheck:
    """
    Check that a fetched record agrees with the address it was fetched from.

    Args:
        declaration: The schema-valid record
        cid: Address used for the fetch
        data: Bytes returned by the store
    """
    expected_id = f"{O8_PREFIX}{cid}"
    pending = is_pending_id(declaration.declaration_id)
    errors = []

    if not pending and declaration.declaration_id != expected_id:
        errors.append(
            f"Declaration ID mismatch: expected {expected_id}, got {declaration.declaration_id}"
        )

    content_match = None
    if is_recomputable(cid):
        recomputed = content_address_for(data)
        content_match = recomputed == cid
        if not content_match:
            errors.append(f"Content address mismatch: bytes hash to {recomputed}")

    return IdentityCheck(
        valid=not errors,
        declaration_id=declaration.declaration_id,
        expected_id=expected_id,
        pending=pending,
        content_match=content_match,
        errors=errors,
    )


async def verify_audio_fingerprint(
    audio_file: Union[str, Path],
    declaration: Declaration
) -> FingerprintCheck:
    """Compare a local audio file with the declared fingerprint."""
    declared = declaration.audio_fingerprint
    try:
        result = await verify_fingerprint(audio_file, declared)
    except (NotFoundError, UnsupportedFormatError, OSError) as e:
        return FingerprintCheck(valid=False, declared=declared.sha256, error=str(e))

    return FingerprintCheck(
        valid=result.valid,
        declared=declared.sha256,
        computed=result.computed.sha256,
        mismatch=result.mismatch,
    )


def verify_signatures(declaration: Declaration) -> SignatureCheck:
    """
    Check signature presence for every party with a wallet.

    Parties without a wallet are untracked: neither verified nor failed.
    The signature itself is not cryptographically checked.
    """
    verified = []
    failed = []

    parties = [declaration.identity.primary_artist, *declaration.identity.collaborators]
    for party in parties:
        if not party.wallet:
            continue
        if party.signature:
            verified.append(party.name)
        else:
            failed.append(f"{party.name} (missing signature)")

    return SignatureCheck(valid=not failed, verified=verified, failed=failed)


async def verify_provenance(declaration: Declaration, store: ContentStore) -> ProvenanceCheck:
    """
    Probe every content address the provenance section references.

    Probes run concurrently and are best-effort: a probe that raises counts
    as unresolved.
    """
    sources = declaration.provenance.referenced_cids()
    if not sources:
        return ProvenanceCheck(valid=True)

    outcomes = await asyncio.gather(
        *(store.exists(cid) for cid in sources),
        return_exceptions=True,
    )
    missing = [cid for cid, ok in zip(sources, outcomes) if ok is not True]

    return ProvenanceCheck(
        valid=not missing,
        sources_checked=len(sources),
        sources_valid=len(sources) - len(missing),
        missing=missing,
    )


def _resolve(reference: str) -> str:
    try:
        return extract_content_address(reference)
    except FormatError as e:
        raise InvalidReferenceError(f"Invalid declaration ID or CID: {reference!r}") from e


async def _fetch_payload(store: ContentStore, cid: str) -> tuple:
    try:
        data = await store.fetch_bytes(cid)
    except (StoreError, NotFoundError, FormatError) as e:
        raise FetchFailedError(f"Failed to fetch declaration {cid}: {e}", cause=e) from e

    try:
        payload = json.loads(data)
    except ValueError as e:
        raise FetchFailedError(f"Payload at {cid} is not valid JSON", cause=e) from e

    return data, payload


async def verify_declaration(
    reference: str,
    store: ContentStore,
    audio_file: Optional[Union[str, Path]] = None,
    check_signatures: bool = False,
    check_provenance: bool = False
) -> VerificationReport:
    """
    Verify a published declaration.

    Args:
        reference: Content address, published ID or gateway URL
        store: Content store to fetch from and probe
        audio_file: Local audio file to compare with the declared fingerprint
        check_signatures: Run the signature presence check
        check_provenance: Probe every referenced content address

    Returns:
        VerificationReport: Per-check sub-results plus the overall verdict

    Raises:
        InvalidReferenceError: If the reference names no content address
        FetchFailedError: If the bytes cannot be retrieved or are not JSON
    """
    cid = _resolve(reference)
    timestamp = format_timestamp()
    data, payload = await _fetch_payload(store, cid)

    validation = validate_declaration(payload)
    if not validation.valid:
        logger.info("Verification failed schema check", cid=cid, errors=len(validation.errors))
        return VerificationReport(
            valid=False,
            timestamp=timestamp,
            cid=cid,
            schema=SchemaCheck(valid=False, errors=validation.errors),
        )

    declaration = validation.declaration
    report = VerificationReport(
        valid=True,
        timestamp=timestamp,
        cid=cid,
        declaration=declaration,
        schema=SchemaCheck(valid=True),
        identity=verify_identity(declaration, cid, data),
    )

    if audio_file is not None:
        report.fingerprint = await verify_audio_fingerprint(audio_file, declaration)

    if check_signatures:
        report.signatures = verify_signatures(declaration)

    if check_provenance:
        report.provenance = await verify_provenance(declaration, store)

    report.valid = all(check.valid for check in report.checks.values())

    logger.info(
        "Verification complete",
        cid=cid,
        valid=report.valid,
        checks=sorted(report.checks),
    )
    return report


def verify_declaration_object(data: Any) -> VerificationReport:
    """
    Verify a declaration held in memory (schema check only, no fetch).

    Args:
        data: Untrusted, already JSON-decoded declaration

    Returns:
        VerificationReport: Report with only the schema sub-result
    """
    validation = validate_declaration(data)
    return VerificationReport(
        valid=validation.valid,
        timestamp=format_timestamp(),
        declaration=validation.declaration,
        schema=SchemaCheck(valid=validation.valid, errors=validation.errors),
    )


def format_verification_result(report: VerificationReport) -> str:
    """Render a verification report for display."""
    lines = [
        f"Verification Result: {'VALID' if report.valid else 'INVALID'}",
        f"Timestamp: {report.timestamp}",
    ]
    if report.cid:
        lines.append(f"CID: {report.cid}")
    lines.append("")

    lines.append(f"Schema: {'Valid' if report.schema.valid else 'Invalid'}")
    for error in report.schema.errors:
        lines.append(f"  - {error}")

    if report.identity:
        status = "Consistent" if report.identity.valid else "Mismatch"
        if report.identity.valid and report.identity.pending:
            status += " (pending ID)"
        lines.append(f"Identity: {status}")
        for error in report.identity.errors:
            lines.append(f"  - {error}")

    if report.fingerprint:
        fp = report.fingerprint
        lines.append(f"Fingerprint: {'Match' if fp.valid else 'Mismatch'}")
        if fp.error:
            lines.append(f"  Error: {fp.error}")
        elif not fp.valid:
            lines.append(f"  Fields: {', '.join(fp.mismatch.fields)}")
            lines.append(f"  Computed: {fp.computed}")
            lines.append(f"  Declared: {fp.declared}")

    if report.signatures:
        sig = report.signatures
        lines.append(f"Signatures: {'Verified' if sig.valid else 'Failed'}")
        if sig.verified:
            lines.append(f"  Verified: {', '.join(sig.verified)}")
        if sig.failed:
            lines.append(f"  Failed: {', '.join(sig.failed)}")

    if report.provenance:
        prov = report.provenance
        status = "All sources available" if prov.valid else "Some sources missing"
        lines.append(f"Provenance: {status}")
        lines.append(f"  Sources: {prov.sources_valid}/{prov.sources_checked} available")
        for cid in prov.missing:
            lines.append(f"  Missing: {cid}")

    return "\n".join(lines)
