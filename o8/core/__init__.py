"""
O8 Core Module

Submodules:
    - declaration: Typed, immutable declaration model
    - validator: Schema and invariant validation
    - ids: Pending/published declaration identifiers and content addresses
    - fingerprint: Audio hashing and metadata
    - builder: Validating declaration builder
    - retry: Retry-with-backoff combinator
    - store: Content store clients and the publish flow
    - verifier: Verification pipeline
    - scoring: Transparency score
    - errors: Exception types
"""

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

from o8.core.declaration import (
    Declaration,
    Identity,
    PrimaryArtist,
    Collaborator,
    Contributor,
    CreativeStack,
    AIModel,
    Sample,
    AIContribution,
    ProductionIntelligence,
    SourceMaterial,
    SampleReference,
    Stem,
    Provenance,
    Revision,
    AudioFingerprint,
    Relationship,
    StemType,
    SCHEMA_VERSION,
)

from o8.core.validator import (
    ValidationResult,
    validate_declaration,
    validate_fragment,
    parse_declaration,
)

from o8.core.ids import (
    ParsedDeclarationId,
    validate_cid,
    validate_wallet_address,
    generate_declaration_id,
    create_pending_id,
    parse_declaration_id,
    extract_content_address,
    is_pending_id,
    is_published_id,
    get_gateway_url,
    content_address_for,
    is_recomputable,
)

from o8.core.fingerprint import (
    AudioMetadata,
    FingerprintMismatch,
    FingerprintVerification,
    SUPPORTED_FORMATS,
    is_supported_format,
    hash_file,
    extract_metadata,
    fingerprint_audio,
    verify_fingerprint,
)

from o8.core.builder import BuildResult, DeclarationBuilder, create_declaration

from o8.core.retry import RetryPolicy, retry_async, is_retryable

from o8.core.store import (
    ContentStore,
    IPFSClient,
    MemoryStore,
    PinResult,
    PublishResult,
    publish_declaration,
)

from o8.core.verifier import (
    VerificationReport,
    SchemaCheck,
    IdentityCheck,
    FingerprintCheck,
    SignatureCheck,
    ProvenanceCheck,
    verify_declaration,
    verify_declaration_object,
    format_verification_result,
)

from o8.core.scoring import calculate_average_ai, transparency_score

__all__ = [
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
    # Model
    "Declaration",
    "Identity",
    "PrimaryArtist",
    "Collaborator",
    "Contributor",
    "CreativeStack",
    "AIModel",
    "Sample",
    "AIContribution",
    "ProductionIntelligence",
    "SourceMaterial",
    "SampleReference",
    "Stem",
    "Provenance",
    "Revision",
    "AudioFingerprint",
    "Relationship",
    "StemType",
    "SCHEMA_VERSION",
    # Validation
    "ValidationResult",
    "validate_declaration",
    "validate_fragment",
    "parse_declaration",
    # Identifiers
    "ParsedDeclarationId",
    "validate_cid",
    "validate_wallet_address",
    "generate_declaration_id",
    "create_pending_id",
    "parse_declaration_id",
    "extract_content_address",
    "is_pending_id",
    "is_published_id",
    "get_gateway_url",
    "content_address_for",
    "is_recomputable",
    # Fingerprint
    "AudioMetadata",
    "FingerprintMismatch",
    "FingerprintVerification",
    "SUPPORTED_FORMATS",
    "is_supported_format",
    "hash_file",
    "extract_metadata",
    "fingerprint_audio",
    "verify_fingerprint",
    # Builder
    "BuildResult",
    "DeclarationBuilder",
    "create_declaration",
    # Store
    "RetryPolicy",
    "retry_async",
    "is_retryable",
    "ContentStore",
    "IPFSClient",
    "MemoryStore",
    "PinResult",
    "PublishResult",
    "publish_declaration",
    # Verification
    "VerificationReport",
    "SchemaCheck",
    "IdentityCheck",
    "FingerprintCheck",
    "SignatureCheck",
    "ProvenanceCheck",
    "verify_declaration",
    "verify_declaration_object",
    "format_verification_result",
    # Scoring
    "calculate_average_ai",
    "transparency_score",
]
