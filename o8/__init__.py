"""
O8: Creative Provenance Declarations

Machine-verifiable records of how a piece of audio was produced.

This library provides:
- A validating builder for declarations (tools, AI contribution,
  collaborators, source lineage)
- Audio fingerprinting (SHA-256 plus technical metadata)
- Content-addressed identifiers bound to the stored declaration bytes
- A retrying content store client (IPFS) and an in-memory store
- A verification pipeline with schema, identity, fingerprint, signature
  and provenance checks

Example:
    >>> import asyncio
    >>> from o8 import DeclarationBuilder, MemoryStore, fingerprint_audio
    >>> from o8 import publish_declaration, verify_declaration
    >>>
    >>> fingerprint = asyncio.run(fingerprint_audio("track.wav"))
    >>> declaration = (
    ...     DeclarationBuilder()
    ...     .set_artist("Producer X")
    ...     .set_methodology("Human-composed, AI-assisted mastering")
    ...     .set_ai_contribution(mastering=0.8)
    ...     .set_audio_fingerprint(fingerprint)
    ...     .build()
    ... )
    >>>
    >>> store = MemoryStore()
    >>> published = asyncio.run(publish_declaration(declaration, store))
    >>> report = asyncio.run(verify_declaration(published.declaration_id, store, audio_file="track.wav"))
    >>> print(f"Valid: {report.valid}")
"""

__version__ = "1.0.0"
__author__ = "O8 Contributors"
__license__ = "MIT"

from o8.core.errors import (
    O8Error,
    FormatError,
    InvalidReferenceError,
    ValidationError,
    NotFoundError,
    UnsupportedFormatError,
    StoreError,
    FetchFailedError,
    BuilderError,
)
from o8.core.declaration import Declaration, AudioFingerprint
from o8.core.validator import validate_declaration, parse_declaration
from o8.core.ids import (
    generate_declaration_id,
    create_pending_id,
    parse_declaration_id,
    extract_content_address,
)
from o8.core.fingerprint import fingerprint_audio, verify_fingerprint
from o8.core.builder import DeclarationBuilder, create_declaration
from o8.core.store import IPFSClient, MemoryStore, publish_declaration
from o8.core.verifier import (
    VerificationReport,
    verify_declaration,
    verify_declaration_object,
    format_verification_result,
)
from o8.core.scoring import transparency_score
from o8.config import StoreConfig

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Errors
    "O8Error",
    "FormatError",
    "InvalidReferenceError",
    "ValidationError",
    "NotFoundError",
    "UnsupportedFormatError",
    "StoreError",
    "FetchFailedError",
    "BuilderError",
    # Model and validation
    "Declaration",
    "AudioFingerprint",
    "validate_declaration",
    "parse_declaration",
    # Identifiers
    "generate_declaration_id",
    "create_pending_id",
    "parse_declaration_id",
    "extract_content_address",
    # Fingerprint
    "fingerprint_audio",
    "verify_fingerprint",
    # Builder
    "DeclarationBuilder",
    "create_declaration",
    # Store
    "StoreConfig",
    "IPFSClient",
    "MemoryStore",
    "publish_declaration",
    # Verification
    "VerificationReport",
    "verify_declaration",
    "verify_declaration_object",
    "format_verification_result",
    "transparency_score",
]
