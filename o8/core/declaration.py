"""
O8 Declaration Model

Typed, immutable representation of a creative provenance declaration.

A declaration records how a piece of audio was produced:

    - identity: primary artist, collaborators (with optional revenue split),
      contributors
    - creative_stack: DAWs, plugins, hardware, AI models, samples
    - production_intelligence: AI contribution per production phase plus a
      methodology description
    - provenance: content addresses of the audio, source material, sample
      references and stems
    - revision_history: ordered revisions
    - audio_fingerprint: SHA-256 and technical metadata of the audio file

Instances are only constructed from data that already passed
``o8.core.validator.validate_declaration``; ``from_dict`` does not check
invariants itself.

Serialization omits optional fields that are unset rather than writing
``null``, which keeps the JSON accepted by the schema.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple
import json


SCHEMA_VERSION = "1.0"

AI_PHASES = ("composition", "arrangement", "production", "mixing", "mastering")


class Relationship(Enum):
    """How a work relates to a referenced source."""

    SAMPLE = "sample"
    REMIX = "remix"
    COVER = "cover"
    INTERPOLATION = "interpolation"


class StemType(Enum):
    """Stem classification."""

    VOCALS = "vocals"
    DRUMS = "drums"
    BASS = "bass"
    MELODY = "melody"
    HARMONY = "harmony"
    FX = "fx"
    OTHER = "other"


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class PrimaryArtist:
    name: str
    wallet: Optional[str] = None
    signature: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({"name": self.name, "wallet": self.wallet, "signature": self.signature})

    @classmethod
    def from_dict(cls, data: dict) -> "PrimaryArtist":
        return cls(name=data["name"], wallet=data.get("wallet"), signature=data.get("signature"))


@dataclass(frozen=True)
class Collaborator:
    """
    Collaborator with a role and an optional revenue split.

    Attributes:
        split: Share of revenue in [0, 1]
        signature: Proof of wallet ownership, checked by signature verification
    """
    name: str
    role: str
    wallet: Optional[str] = None
    split: Optional[float] = None
    signature: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "role": self.role,
            "wallet": self.wallet,
            "split": self.split,
            "signature": self.signature,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "Collaborator":
        return cls(
            name=data["name"],
            role=data["role"],
            wallet=data.get("wallet"),
            split=data.get("split"),
            signature=data.get("signature"),
        )


@dataclass(frozen=True)
class Contributor:
    """Someone who took part in the production without a revenue split."""
    name: str
    role: str
    contribution: str

    def to_dict(self) -> dict:
        return {"name": self.name, "role": self.role, "contribution": self.contribution}

    @classmethod
    def from_dict(cls, data: dict) -> "Contributor":
        return cls(name=data["name"], role=data["role"], contribution=data["contribution"])


@dataclass(frozen=True)
class Identity:
    primary_artist: PrimaryArtist
    collaborators: Tuple[Collaborator, ...] = ()
    contributors: Tuple[Contributor, ...] = ()

    def to_dict(self) -> dict:
        return {
            "primary_artist": self.primary_artist.to_dict(),
            "collaborators": [c.to_dict() for c in self.collaborators],
            "contributors": [c.to_dict() for c in self.contributors],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        return cls(
            primary_artist=PrimaryArtist.from_dict(data["primary_artist"]),
            collaborators=tuple(Collaborator.from_dict(c) for c in data.get("collaborators", [])),
            contributors=tuple(Contributor.from_dict(c) for c in data.get("contributors", [])),
        )


@dataclass(frozen=True)
class AIModel:
    """AI model used during production, e.g. a melody generator."""
    name: str
    provider: str
    usage: str
    version: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "provider": self.provider,
            "version": self.version,
            "usage": self.usage,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "AIModel":
        return cls(
            name=data["name"],
            provider=data["provider"],
            usage=data["usage"],
            version=data.get("version"),
        )


@dataclass(frozen=True)
class Sample:
    name: str
    source: str
    license: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({"name": self.name, "source": self.source, "license": self.license})

    @classmethod
    def from_dict(cls, data: dict) -> "Sample":
        return cls(name=data["name"], source=data["source"], license=data.get("license"))


@dataclass(frozen=True)
class CreativeStack:
    daws: Tuple[str, ...] = ()
    plugins: Tuple[str, ...] = ()
    ai_models: Tuple[AIModel, ...] = ()
    hardware: Tuple[str, ...] = ()
    samples: Tuple[Sample, ...] = ()

    def to_dict(self) -> dict:
        return {
            "daws": list(self.daws),
            "plugins": list(self.plugins),
            "ai_models": [m.to_dict() for m in self.ai_models],
            "hardware": list(self.hardware),
            "samples": [s.to_dict() for s in self.samples],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CreativeStack":
        return cls(
            daws=tuple(data.get("daws", [])),
            plugins=tuple(data.get("plugins", [])),
            ai_models=tuple(AIModel.from_dict(m) for m in data.get("ai_models", [])),
            hardware=tuple(data.get("hardware", [])),
            samples=tuple(Sample.from_dict(s) for s in data.get("samples", [])),
        )


@dataclass(frozen=True)
class AIContribution:
    """
    Fraction of each production phase performed by AI.

    Every value lies in [0, 1]: 0 is fully human, 1 is fully AI.
    """
    composition: float = 0.0
    arrangement: float = 0.0
    production: float = 0.0
    mixing: float = 0.0
    mastering: float = 0.0

    def to_dict(self) -> dict:
        return {phase: getattr(self, phase) for phase in AI_PHASES}

    @classmethod
    def from_dict(cls, data: dict) -> "AIContribution":
        return cls(**{phase: data[phase] for phase in AI_PHASES})


@dataclass(frozen=True)
class ProductionIntelligence:
    ai_contribution: AIContribution
    methodology: str
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({
            "ai_contribution": self.ai_contribution.to_dict(),
            "methodology": self.methodology,
            "notes": self.notes,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "ProductionIntelligence":
        return cls(
            ai_contribution=AIContribution.from_dict(data["ai_contribution"]),
            methodology=data["methodology"],
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class SourceMaterial:
    cid: str
    description: str
    relationship: Relationship

    def to_dict(self) -> dict:
        return {"cid": self.cid, "description": self.description, "relationship": self.relationship.value}

    @classmethod
    def from_dict(cls, data: dict) -> "SourceMaterial":
        return cls(
            cid=data["cid"],
            description=data["description"],
            relationship=Relationship(data["relationship"]),
        )


@dataclass(frozen=True)
class SampleReference:
    """A sample stored in the content store, optionally with its position in the track."""
    cid: str
    name: str
    timestamp: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({"cid": self.cid, "name": self.name, "timestamp": self.timestamp})

    @classmethod
    def from_dict(cls, data: dict) -> "SampleReference":
        return cls(cid=data["cid"], name=data["name"], timestamp=data.get("timestamp"))


@dataclass(frozen=True)
class Stem:
    cid: str
    name: str
    type: StemType

    def to_dict(self) -> dict:
        return {"cid": self.cid, "name": self.name, "type": self.type.value}

    @classmethod
    def from_dict(cls, data: dict) -> "Stem":
        return cls(cid=data["cid"], name=data["name"], type=StemType(data["type"]))


@dataclass(frozen=True)
class Provenance:
    """
    Source lineage of the work.

    Attributes:
        ipfs_cid: Content address of the final audio file
        source_material: Works this one derives from
        samples: Samples stored in the content store
        stems: Exported stems
    """
    ipfs_cid: Optional[str] = None
    source_material: Tuple[SourceMaterial, ...] = ()
    samples: Tuple[SampleReference, ...] = ()
    stems: Tuple[Stem, ...] = ()

    def referenced_cids(self) -> Tuple[str, ...]:
        """Every content address this section references, root first."""
        cids = []
        if self.ipfs_cid:
            cids.append(self.ipfs_cid)
        cids.extend(m.cid for m in self.source_material)
        cids.extend(s.cid for s in self.samples)
        cids.extend(s.cid for s in self.stems)
        return tuple(cids)

    def to_dict(self) -> dict:
        return _compact({
            "ipfs_cid": self.ipfs_cid,
            "source_material": [m.to_dict() for m in self.source_material],
            "samples": [s.to_dict() for s in self.samples],
            "stems": [s.to_dict() for s in self.stems],
        })

    @classmethod
    def from_dict(cls, data: dict) -> "Provenance":
        return cls(
            ipfs_cid=data.get("ipfs_cid"),
            source_material=tuple(SourceMaterial.from_dict(m) for m in data.get("source_material", [])),
            samples=tuple(SampleReference.from_dict(s) for s in data.get("samples", [])),
            stems=tuple(Stem.from_dict(s) for s in data.get("stems", [])),
        )


@dataclass(frozen=True)
class Revision:
    version: str
    timestamp: str
    changes: str
    previous_cid: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({
            "version": self.version,
            "timestamp": self.timestamp,
            "changes": self.changes,
            "previous_cid": self.previous_cid,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "Revision":
        return cls(
            version=data["version"],
            timestamp=data["timestamp"],
            changes=data["changes"],
            previous_cid=data.get("previous_cid"),
        )


@dataclass(frozen=True)
class AudioFingerprint:
    """
    Audio file fingerprint.

    Attributes:
        sha256: Hex SHA-256 of the raw file bytes
        duration_ms: Duration in milliseconds
        format: Container format, e.g. "wav", "flac"
        sample_rate: Sample rate in Hz, if known
        bit_depth: Bits per sample, if known
    """
    sha256: str
    duration_ms: int
    format: str
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None

    def to_dict(self) -> dict:
        return _compact({
            "sha256": self.sha256,
            "duration_ms": self.duration_ms,
            "format": self.format,
            "sample_rate": self.sample_rate,
            "bit_depth": self.bit_depth,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "AudioFingerprint":
        return cls(
            sha256=data["sha256"],
            duration_ms=int(data["duration_ms"]),
            format=data["format"],
            sample_rate=data.get("sample_rate"),
            bit_depth=data.get("bit_depth"),
        )


@dataclass(frozen=True)
class Declaration:
    """
    Complete O8 declaration.

    A validated declaration carries a pending ID; once its bytes are stored
    the ID is rewritten to embed the resulting content address
    (see ``o8.core.store.publish_declaration``).
    """
    declaration_id: str
    created_at: str
    updated_at: str
    identity: Identity
    creative_stack: CreativeStack
    production_intelligence: ProductionIntelligence
    provenance: Provenance
    audio_fingerprint: AudioFingerprint
    revision_history: Tuple[Revision, ...] = ()
    version: str = SCHEMA_VERSION

    def with_declaration_id(self, declaration_id: str) -> "Declaration":
        """Return a copy carrying a different declaration ID."""
        return replace(self, declaration_id=declaration_id)

    def to_dict(self) -> dict:
        """Convert declaration to dictionary for serialization."""
        return {
            "version": self.version,
            "declaration_id": self.declaration_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "identity": self.identity.to_dict(),
            "creative_stack": self.creative_stack.to_dict(),
            "production_intelligence": self.production_intelligence.to_dict(),
            "provenance": self.provenance.to_dict(),
            "revision_history": [r.to_dict() for r in self.revision_history],
            "audio_fingerprint": self.audio_fingerprint.to_dict(),
        }

    def to_json(self) -> str:
        """Convert declaration to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def to_bytes(self) -> bytes:
        """UTF-8 JSON bytes as stored in the content store."""
        return self.to_json().encode("utf-8")

    @classmethod
    def from_dict(cls, data: dict) -> "Declaration":
        """
        Build a declaration from a dictionary that already passed validation.

        Use ``o8.core.validator.parse_declaration`` for untrusted input.
        """
        return cls(
            version=data["version"],
            declaration_id=data["declaration_id"],
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            identity=Identity.from_dict(data["identity"]),
            creative_stack=CreativeStack.from_dict(data["creative_stack"]),
            production_intelligence=ProductionIntelligence.from_dict(data["production_intelligence"]),
            provenance=Provenance.from_dict(data["provenance"]),
            revision_history=tuple(Revision.from_dict(r) for r in data.get("revision_history", [])),
            audio_fingerprint=AudioFingerprint.from_dict(data["audio_fingerprint"]),
        )

    @classmethod
    def from_json(cls, json_str: str) -> "Declaration":
        """Create declaration from a JSON string that already passed validation."""
        return cls.from_dict(json.loads(json_str))
