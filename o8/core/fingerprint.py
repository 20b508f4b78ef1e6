"""
O8 Audio Fingerprinting

SHA-256 hashing and technical metadata extraction for audio files.

The hash is computed strictly over the raw file bytes, so any change to the
file changes it. Metadata (duration, container, sample rate, bit depth) is
read with ``soundfile`` and compared separately during verification, which
lets a caller tell "different file" apart from "same audio, re-encoded".

Hashing never degrades: a missing file is an error. Metadata extraction
does degrade: if the container cannot be parsed, a zero-duration record
tagged with the file extension is returned instead.

Usage:
    >>> import asyncio
    >>> from o8.core.fingerprint import fingerprint_audio, verify_fingerprint
    >>>
    >>> fingerprint = asyncio.run(fingerprint_audio("track.wav"))
    >>> result = asyncio.run(verify_fingerprint("track.wav", fingerprint))
    >>> result.valid
    True
"""

import asyncio
from dataclasses import dataclass
import hashlib
from pathlib import Path
from typing import List, Optional, Union

import soundfile as sf
import structlog

from o8.core.declaration import AudioFingerprint
from o8.core.errors import NotFoundError, UnsupportedFormatError


logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]

SUPPORTED_FORMATS = (
    ".wav",
    ".mp3",
    ".flac",
    ".aiff",
    ".aif",
    ".m4a",
    ".ogg",
    ".opus",
)

CHUNK_SIZE = 64 * 1024

_SUBTYPE_BIT_DEPTH = {
    "PCM_S8": 8,
    "PCM_U8": 8,
    "PCM_16": 16,
    "PCM_24": 24,
    "PCM_32": 32,
    "FLOAT": 32,
    "DOUBLE": 64,
}


@dataclass(frozen=True)
class AudioMetadata:
    """Technical metadata of an audio file."""
    duration_ms: int
    format: str
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None


@dataclass(frozen=True)
class FingerprintMismatch:
    """
    Which fingerprint fields diverged.

    A hash-only mismatch means different bytes with the same technical
    shape; hash plus format usually means the audio was re-encoded.
    """
    hash: bool = False
    duration: bool = False
    format: bool = False

    @property
    def fields(self) -> List[str]:
        """Names of the diverging fields."""
        return [name for name in ("hash", "duration", "format") if getattr(self, name)]

    def to_dict(self) -> dict:
        return {"hash": self.hash, "duration": self.duration, "format": self.format}


@dataclass(frozen=True)
class FingerprintVerification:
    """
    Result of comparing an audio file against a declared fingerprint.

    Attributes:
        valid: True if hash, duration and format all match
        computed: Fingerprint computed from the file
        declared: Fingerprint from the declaration
        mismatch: Per-field divergence (all False when valid)
    """
    valid: bool
    computed: AudioFingerprint
    declared: AudioFingerprint
    mismatch: FingerprintMismatch

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "computed": self.computed.to_dict(),
            "declared": self.declared.to_dict(),
            "mismatch": self.mismatch.to_dict(),
        }


def _extension(path: Path) -> str:
    return path.suffix.lower()


def is_supported_format(file_path: PathLike) -> bool:
    """Check if a file's extension is a supported audio container."""
    return _extension(Path(file_path)) in SUPPORTED_FORMATS


def _require_file(path: Path) -> None:
    if not path.is_file():
        raise NotFoundError(f"File not found: {path}")


def _hash_file_sync(path: Path) -> str:
    hasher = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            hasher.update(chunk)
    return hasher.hexdigest()


def _read_metadata_sync(path: Path) -> AudioMetadata:
    ext = _extension(path).lstrip(".")
    try:
        info = sf.info(str(path))
    except (RuntimeError, OSError) as e:
        # Unparseable container: keep going with what the name tells us
        logger.info("Metadata extraction fell back to extension", path=str(path), error=str(e))
        return AudioMetadata(duration_ms=0, format=ext)

    duration_ms = 0
    if info.samplerate:
        duration_ms = int(round(info.frames / info.samplerate * 1000))

    return AudioMetadata(
        duration_ms=duration_ms,
        format=(info.format or ext).lower(),
        sample_rate=int(info.samplerate) if info.samplerate else None,
        bit_depth=_SUBTYPE_BIT_DEPTH.get(info.subtype),
    )


async def hash_file(file_path: PathLike) -> str:
    """
    Compute the SHA-256 of a file's raw bytes.

    Args:
        file_path: Path to the file

    Returns:
        str: Lowercase hex digest (64 characters)

    Raises:
        NotFoundError: If the file does not exist
    """
    path = Path(file_path)
    _require_file(path)
    return await asyncio.to_thread(_hash_file_sync, path)


async def extract_metadata(file_path: PathLike) -> AudioMetadata:
    """
    Read duration, container format, sample rate and bit depth.

    Falls back to ``duration_ms=0`` and the file extension as format when
    the file cannot be parsed.

    Raises:
        NotFoundError: If the file does not exist
    """
    path = Path(file_path)
    _require_file(path)
    return await asyncio.to_thread(_read_metadata_sync, path)


async def fingerprint_audio(file_path: PathLike) -> AudioFingerprint:
    """
    Generate a complete audio fingerprint.

    Hashing and metadata extraction run concurrently; the file is only read.

    Args:
        file_path: Path to the audio file

    Returns:
        AudioFingerprint: Hash plus technical metadata

    Raises:
        NotFoundError: If the file does not exist
        UnsupportedFormatError: If the extension is not supported
    """
    path = Path(file_path)
    _require_file(path)

    if not is_supported_format(path):
        raise UnsupportedFormatError(
            f"Unsupported format: {path.suffix or '(none)'}. "
            f"Supported formats: {', '.join(SUPPORTED_FORMATS)}"
        )

    sha256, metadata = await asyncio.gather(hash_file(path), extract_metadata(path))

    logger.debug("Fingerprinted audio", path=str(path), sha256=sha256, duration_ms=metadata.duration_ms)

    return AudioFingerprint(
        sha256=sha256,
        duration_ms=metadata.duration_ms,
        format=metadata.format,
        sample_rate=metadata.sample_rate,
        bit_depth=metadata.bit_depth,
    )


async def verify_fingerprint(file_path: PathLike, declared: AudioFingerprint) -> FingerprintVerification:
    """
    Verify that an audio file matches a declared fingerprint.

    Hash and duration are compared exactly, format case-insensitively.

    Args:
        file_path: Path to the audio file
        declared: Fingerprint recorded in the declaration

    Returns:
        FingerprintVerification: Verdict plus the fields that diverged

    Raises:
        NotFoundError: If the file does not exist
        UnsupportedFormatError: If the extension is not supported
    """
    computed = await fingerprint_audio(file_path)

    mismatch = FingerprintMismatch(
        hash=computed.sha256.lower() != declared.sha256.lower(),
        duration=computed.duration_ms != declared.duration_ms,
        format=computed.format.lower() != declared.format.lower(),
    )

    return FingerprintVerification(
        valid=not mismatch.fields,
        computed=computed,
        declared=declared,
        mismatch=mismatch,
    )
