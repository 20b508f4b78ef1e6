"""
O8 Declaration Builder

Chainable accumulator that turns a sequence of field edits into a validated
``Declaration``.

Validation happens in two layers:

    1. Every setter checks only the field it touches (against the same schema
       definition the full pass uses) and raises ``ValidationError`` with a
       single field-qualified message. A rejected edit leaves the draft as it
       was.
    2. ``build()`` runs one full-schema pass over the whole draft, which also
       catches aggregate problems such as revenue splits summing past 1.

A builder produces at most one declaration. Once ``build()`` succeeds the
builder is closed: further edits raise ``BuilderError`` and calling
``build()`` again returns the same value.

Usage:
    >>> from o8.core.builder import DeclarationBuilder
    >>>
    >>> declaration = (
    ...     DeclarationBuilder()
    ...     .set_artist("Producer X", wallet="0x" + "ab" * 20)
    ...     .add_collaborator("Vocalist", "vocals", split=0.3)
    ...     .add_daw("Ableton Live 12")
    ...     .add_ai_model("Suno v3", "Suno", "melody generation")
    ...     .set_ai_contribution(composition=0.4, arrangement=0.2)
    ...     .set_methodology("AI-assisted composition with human arrangement")
    ...     .set_audio_fingerprint(fingerprint)
    ...     .build()
    ... )
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

import structlog

from o8.core.declaration import (
    AI_PHASES,
    SCHEMA_VERSION,
    AudioFingerprint,
    Declaration,
    Relationship,
    StemType,
)
from o8.core.errors import BuilderError, FormatError, ValidationError
from o8.core.ids import create_pending_id, parse_declaration_id
from o8.core.validator import SPLIT_TOLERANCE, validate_declaration, validate_fragment
from o8.utils.helpers import format_timestamp


logger = structlog.get_logger(__name__)


@dataclass
class BuildResult:
    """
    Outcome of finalizing a builder.

    Attributes:
        valid: True if the draft passed full validation
        declaration: The validated declaration (only when valid)
        errors: Every violation found (only when invalid)
    """
    valid: bool
    declaration: Optional[Declaration] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "declaration": self.declaration.to_dict() if self.declaration else None,
            "errors": list(self.errors),
        }


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, (Relationship, StemType)) else value


def _optional(**values: Any) -> Dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


class DeclarationBuilder:
    """
    Mutable draft of a declaration.

    Not safe for concurrent mutation; a builder is owned by one creation flow.

    Attributes:
        is_closed: True once ``build()`` has succeeded
    """

    def __init__(self):
        now = format_timestamp()
        self._draft: Dict[str, Any] = {
            "version": SCHEMA_VERSION,
            "declaration_id": create_pending_id(),
            "created_at": now,
            "updated_at": now,
            "identity": {
                "primary_artist": {"name": ""},
                "collaborators": [],
                "contributors": [],
            },
            "creative_stack": {
                "daws": [],
                "plugins": [],
                "ai_models": [],
                "hardware": [],
                "samples": [],
            },
            "production_intelligence": {
                "ai_contribution": {phase: 0.0 for phase in AI_PHASES},
                "methodology": "",
            },
            "provenance": {
                "source_material": [],
                "samples": [],
                "stems": [],
            },
            "revision_history": [],
            "audio_fingerprint": {
                "sha256": "",
                "duration_ms": 0,
                "format": "",
            },
        }
        self._result: Optional[Declaration] = None

    @property
    def is_closed(self) -> bool:
        return self._result is not None

    def _ensure_open(self) -> None:
        if self._result is not None:
            raise BuilderError("Builder already produced a declaration; start a new builder")

    def _check(self, definition: str, value: Any, path: str) -> None:
        """Raise with the first violation of one schema definition."""
        errors = validate_fragment(definition, value, path)
        if errors:
            raise ValidationError([errors[0]])

    def _touch(self) -> "DeclarationBuilder":
        self._draft["updated_at"] = format_timestamp()
        return self

    def _append(self, section: str, key: str, definition: str, item: Any) -> "DeclarationBuilder":
        self._ensure_open()
        items = self._draft[section][key]
        self._check(definition, item, f"{section}.{key}.{len(items)}")
        items.append(item)
        return self._touch()

    def _replace_names(self, key: str, names: Iterable[str]) -> "DeclarationBuilder":
        self._ensure_open()
        cleaned = [n.strip() for n in names if isinstance(n, str) and n.strip()]
        self._draft["creative_stack"][key] = cleaned
        return self._touch()

    def set_artist(
        self,
        name: str,
        wallet: Optional[str] = None,
        signature: Optional[str] = None
    ) -> "DeclarationBuilder":
        """
        Set the primary artist.

        Args:
            name: Artist name (non-empty)
            wallet: Optional 0x-prefixed wallet address
            signature: Optional proof of wallet ownership

        Raises:
            ValidationError: If the name is blank or the wallet is malformed
        """
        self._ensure_open()
        artist = _optional(name=_strip(name), wallet=wallet, signature=signature)
        self._check("primary_artist", artist, "identity.primary_artist")
        self._draft["identity"]["primary_artist"] = artist
        return self._touch()

    def add_collaborator(
        self,
        name: str,
        role: str,
        wallet: Optional[str] = None,
        split: Optional[float] = None,
        signature: Optional[str] = None
    ) -> "DeclarationBuilder":
        """
        Add a collaborator with an optional revenue split.

        Args:
            name: Collaborator name
            role: Role in the production, e.g. "vocals"
            wallet: Optional wallet address receiving the split
            split: Optional share of revenue in [0, 1]
            signature: Optional proof of wallet ownership

        Raises:
            ValidationError: If a field is invalid, or the split would push
                the collaborators' total past 1
        """
        self._ensure_open()
        collaborators = self._draft["identity"]["collaborators"]
        path = f"identity.collaborators.{len(collaborators)}"
        collaborator = _optional(
            name=_strip(name),
            role=_strip(role),
            wallet=wallet,
            split=split,
            signature=signature,
        )
        self._check("collaborator", collaborator, path)

        if split is not None:
            total = sum(c.get("split", 0) for c in collaborators) + split
            if total > 1 + SPLIT_TOLERANCE:
                raise ValidationError(
                    [f"{path}.split: Revenue splits would sum to {total:g}, exceeding 1"]
                )

        collaborators.append(collaborator)
        return self._touch()

    def add_contributor(self, name: str, role: str, contribution: str) -> "DeclarationBuilder":
        """Add a contributor who takes no revenue split."""
        contributor = {
            "name": _strip(name),
            "role": _strip(role),
            "contribution": _strip(contribution),
        }
        return self._append("identity", "contributors", "contributor", contributor)

    def add_daw(self, daw: str) -> "DeclarationBuilder":
        return self._append("creative_stack", "daws", "tool_name", _strip(daw))

    def set_daws(self, daws: Iterable[str]) -> "DeclarationBuilder":
        """Replace the DAW list; blank entries are dropped."""
        return self._replace_names("daws", daws)

    def add_plugin(self, plugin: str) -> "DeclarationBuilder":
        return self._append("creative_stack", "plugins", "tool_name", _strip(plugin))

    def set_plugins(self, plugins: Iterable[str]) -> "DeclarationBuilder":
        """Replace the plugin list; blank entries are dropped."""
        return self._replace_names("plugins", plugins)

    def add_hardware(self, hardware: str) -> "DeclarationBuilder":
        return self._append("creative_stack", "hardware", "tool_name", _strip(hardware))

    def add_ai_model(
        self,
        name: str,
        provider: str,
        usage: str,
        version: Optional[str] = None
    ) -> "DeclarationBuilder":
        """
        Add an AI model used during production.

        Args:
            name: Model name, e.g. "Suno v3"
            provider: Vendor or project providing the model
            usage: What the model was used for
            version: Optional model version
        """
        model = _optional(
            name=_strip(name),
            provider=_strip(provider),
            version=version,
            usage=_strip(usage),
        )
        return self._append("creative_stack", "ai_models", "ai_model", model)

    def add_sample(self, name: str, source: str, license: Optional[str] = None) -> "DeclarationBuilder":
        sample = _optional(name=_strip(name), source=_strip(source), license=license)
        return self._append("creative_stack", "samples", "sample", sample)

    def set_ai_contribution(
        self,
        composition: float = 0.0,
        arrangement: float = 0.0,
        production: float = 0.0,
        mixing: float = 0.0,
        mastering: float = 0.0
    ) -> "DeclarationBuilder":
        """
        Set the AI share of every production phase.

        Phases not given are recorded as fully human (0).

        Raises:
            ValidationError: If any value lies outside [0, 1]
        """
        self._ensure_open()
        contribution = {
            "composition": composition,
            "arrangement": arrangement,
            "production": production,
            "mixing": mixing,
            "mastering": mastering,
        }
        self._check("ai_contribution", contribution, "production_intelligence.ai_contribution")
        self._draft["production_intelligence"]["ai_contribution"] = contribution
        return self._touch()

    def set_methodology(self, methodology: str) -> "DeclarationBuilder":
        """Describe how the work was made (required before building)."""
        self._ensure_open()
        methodology = _strip(methodology)
        self._check(
            "production_intelligence",
            {"ai_contribution": self._draft["production_intelligence"]["ai_contribution"],
             "methodology": methodology},
            "production_intelligence",
        )
        self._draft["production_intelligence"]["methodology"] = methodology
        return self._touch()

    def set_notes(self, notes: str) -> "DeclarationBuilder":
        self._ensure_open()
        if not isinstance(notes, str):
            raise ValidationError(["production_intelligence.notes: Notes must be a string"])
        self._draft["production_intelligence"]["notes"] = notes.strip()
        return self._touch()

    def set_root_cid(self, cid: str) -> "DeclarationBuilder":
        """Set the content address of the final audio file."""
        self._ensure_open()
        cid = _strip(cid)
        self._check("cid", cid, "provenance.ipfs_cid")
        self._draft["provenance"]["ipfs_cid"] = cid
        return self._touch()

    def add_source_material(
        self,
        cid: str,
        description: str,
        relationship: Union[Relationship, str]
    ) -> "DeclarationBuilder":
        """
        Reference a work this one derives from.

        Args:
            cid: Content address of the source
            description: What the source is
            relationship: sample, remix, cover or interpolation
        """
        source = {
            "cid": _strip(cid),
            "description": _strip(description),
            "relationship": _enum_value(relationship),
        }
        return self._append("provenance", "source_material", "source_material", source)

    def add_sample_reference(
        self,
        cid: str,
        name: str,
        timestamp: Optional[str] = None
    ) -> "DeclarationBuilder":
        reference = _optional(cid=_strip(cid), name=_strip(name), timestamp=timestamp)
        return self._append("provenance", "samples", "sample_reference", reference)

    def add_stem(self, cid: str, name: str, stem_type: Union[StemType, str]) -> "DeclarationBuilder":
        stem = {"cid": _strip(cid), "name": _strip(name), "type": _enum_value(stem_type)}
        return self._append("provenance", "stems", "stem", stem)

    def set_audio_fingerprint(
        self,
        fingerprint: Union[AudioFingerprint, Dict[str, Any]]
    ) -> "DeclarationBuilder":
        """
        Set the audio fingerprint.

        Args:
            fingerprint: Output of ``fingerprint_audio`` or an equivalent dict

        Raises:
            ValidationError: If the hash, duration or format is invalid
        """
        self._ensure_open()
        if isinstance(fingerprint, AudioFingerprint):
            data = fingerprint.to_dict()
        else:
            data = _optional(**fingerprint)
        self._check("audio_fingerprint", data, "audio_fingerprint")
        self._draft["audio_fingerprint"] = data
        return self._touch()

    def add_revision(
        self,
        version: str,
        changes: str,
        previous_cid: Optional[str] = None
    ) -> "DeclarationBuilder":
        """
        Append a revision entry stamped with the current time.

        Args:
            version: Revision label, e.g. "1.1"
            changes: What changed
            previous_cid: Content address of the previous published revision
        """
        self._ensure_open()
        revisions = self._draft["revision_history"]
        revision = _optional(
            version=_strip(version),
            timestamp=format_timestamp(),
            changes=_strip(changes),
            previous_cid=_strip(previous_cid),
        )
        self._check("revision", revision, f"revision_history.{len(revisions)}")
        revisions.append(revision)
        return self._touch()

    def set_declaration_id(self, declaration_id: str) -> "DeclarationBuilder":
        """
        Override the declaration ID (pending or published form).

        Raises:
            ValidationError: If the ID matches neither form
        """
        self._ensure_open()
        declaration_id = _strip(declaration_id)
        try:
            parse_declaration_id(declaration_id)
        except FormatError as e:
            raise ValidationError([f"declaration_id: {e}"]) from e
        self._draft["declaration_id"] = declaration_id
        return self._touch()

    def to_dict(self) -> dict:
        """Current draft without validation (a copy, for inspection)."""
        if self._result is not None:
            return self._result.to_dict()
        return copy.deepcopy(self._draft)

    def _missing_fields(self) -> List[str]:
        errors = []
        if not self._draft["identity"]["primary_artist"].get("name"):
            errors.append("identity.primary_artist.name: Artist name must be set before building")
        if not self._draft["production_intelligence"]["methodology"]:
            errors.append("production_intelligence.methodology: Methodology must be set before building")
        if not self._draft["audio_fingerprint"]["sha256"]:
            errors.append("audio_fingerprint.sha256: Audio fingerprint must be set before building")
        return errors

    def try_build(self) -> BuildResult:
        """
        Validate the complete draft without raising.

        Returns:
            BuildResult: The validated declaration, or every violation found
        """
        if self._result is not None:
            return BuildResult(valid=True, declaration=self._result)

        missing = self._missing_fields()
        if missing:
            return BuildResult(valid=False, errors=missing)

        candidate = copy.deepcopy(self._draft)
        candidate["updated_at"] = format_timestamp()

        result = validate_declaration(candidate)
        if not result.valid:
            logger.debug("Declaration draft rejected", errors=len(result.errors))
            return BuildResult(valid=False, errors=result.errors)

        self._draft = candidate
        self._result = result.declaration
        logger.debug("Declaration built", declaration_id=self._result.declaration_id)
        return BuildResult(valid=True, declaration=self._result)

    def build(self) -> Declaration:
        """
        Validate the complete draft and return the immutable declaration.

        Returns:
            Declaration: Validated declaration carrying a pending ID

        Raises:
            ValidationError: With every violation found
        """
        result = self.try_build()
        if not result.valid:
            raise ValidationError(result.errors)
        return result.declaration


def create_declaration() -> DeclarationBuilder:
    """Create a new declaration builder."""
    return DeclarationBuilder()
