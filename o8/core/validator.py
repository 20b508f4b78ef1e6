"""
O8 Declaration Validation

Validates untrusted input (parsed JSON) against the declaration schema and
converts valid input into a typed ``Declaration``.

Validation is two-tiered:

1. JSON Schema (Draft 2020-12) evaluated with ``jsonschema``. Every
   violation is collected, not just the first, and rendered as
   ``path.to.field: message``.
2. Cross-field invariants the schema cannot express:
   - the declaration ID prefix decides whether its payload must be a valid
     content address (published) or an opaque token (pending)
   - collaborator revenue splits sum to at most 1

Individual schema definitions (``$defs``) are also exposed through
``validate_fragment`` so that the builder can check a single field with the
same rules the full pass applies.

Usage:
    >>> from o8.core.validator import validate_declaration
    >>>
    >>> result = validate_declaration(data)
    >>> if not result.valid:
    ...     for error in result.errors:
    ...         print(error)
"""

from dataclasses import dataclass, field
from functools import lru_cache
import math
import re
from typing import Any, Iterable, List, Optional

from jsonschema import Draft202012Validator, validators

from o8.core.declaration import Declaration, SCHEMA_VERSION
from o8.core.errors import FormatError, ValidationError
from o8.core.ids import parse_declaration_id, ETHEREUM_ADDRESS_REGEX, IPFS_CID_REGEX


ISO8601_PATTERN = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d{1,6})?(Z|[+-]\d{2}:\d{2})?\Z"
SHA256_PATTERN = r"^[a-fA-F0-9]{64}\Z"

# Splits are floats; allow for rounding when several shares add up to 1.
SPLIT_TOLERANCE = 1e-9


def _schema_pattern(regex: re.Pattern) -> str:
    """Anchor a fullmatch regex for jsonschema, which tests patterns with re.search."""
    return regex.pattern.rstrip("$") + r"\Z"


def _is_finite_number(checker, instance) -> bool:
    if isinstance(instance, bool):
        return False
    if isinstance(instance, int):
        return True
    return isinstance(instance, float) and math.isfinite(instance)


# NaN and Infinity parse from JSON but are not numbers a declaration may hold.
DeclarationValidator = validators.extend(
    Draft202012Validator,
    type_checker=Draft202012Validator.TYPE_CHECKER.redefine("number", _is_finite_number),
)


def _required_text(message: str) -> dict:
    """String that is non-empty after trimming."""
    return {
        "type": "string",
        "pattern": r"\S",
        "errorMessage": {"pattern": message, "type": message},
    }


def _fraction(message: str) -> dict:
    return {
        "type": "number",
        "minimum": 0,
        "maximum": 1,
        "errorMessage": message,
    }


_CID = {
    "type": "string",
    "pattern": _schema_pattern(IPFS_CID_REGEX),
    "errorMessage": "Invalid IPFS CID format",
}

_WALLET = {
    "type": "string",
    "pattern": _schema_pattern(ETHEREUM_ADDRESS_REGEX),
    "errorMessage": "Invalid Ethereum address format",
}

_TIMESTAMP = {
    "type": "string",
    "pattern": ISO8601_PATTERN,
    "errorMessage": "Invalid ISO-8601 timestamp format",
}

_OPTIONAL_TEXT = {"type": "string"}


DECLARATION_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://o8.dev/schemas/declaration-1.0.json",
    "title": "O8 Declaration",
    "type": "object",
    "required": [
        "version",
        "declaration_id",
        "created_at",
        "updated_at",
        "identity",
        "creative_stack",
        "production_intelligence",
        "provenance",
        "revision_history",
        "audio_fingerprint",
    ],
    "properties": {
        "version": {"const": SCHEMA_VERSION, "errorMessage": f'Version must be "{SCHEMA_VERSION}"'},
        "declaration_id": _required_text("Declaration ID is required"),
        "created_at": _TIMESTAMP,
        "updated_at": _TIMESTAMP,
        "identity": {"$ref": "#/$defs/identity"},
        "creative_stack": {"$ref": "#/$defs/creative_stack"},
        "production_intelligence": {"$ref": "#/$defs/production_intelligence"},
        "provenance": {"$ref": "#/$defs/provenance"},
        "revision_history": {"type": "array", "items": {"$ref": "#/$defs/revision"}},
        "audio_fingerprint": {"$ref": "#/$defs/audio_fingerprint"},
    },
    "$defs": {
        "cid": _CID,
        "wallet": _WALLET,
        "primary_artist": {
            "type": "object",
            "required": ["name"],
            "properties": {
                "name": _required_text("Artist name is required"),
                "wallet": _WALLET,
                "signature": _OPTIONAL_TEXT,
            },
        },
        "collaborator": {
            "type": "object",
            "required": ["name", "role"],
            "properties": {
                "name": _required_text("Collaborator name is required"),
                "role": _required_text("Collaborator role is required"),
                "wallet": _WALLET,
                "split": _fraction("Split must be between 0 and 1"),
                "signature": _OPTIONAL_TEXT,
            },
        },
        "contributor": {
            "type": "object",
            "required": ["name", "role", "contribution"],
            "properties": {
                "name": _required_text("Contributor name is required"),
                "role": _required_text("Contributor role is required"),
                "contribution": _required_text("Contribution description is required"),
            },
        },
        "identity": {
            "type": "object",
            "required": ["primary_artist", "collaborators", "contributors"],
            "properties": {
                "primary_artist": {"$ref": "#/$defs/primary_artist"},
                "collaborators": {"type": "array", "items": {"$ref": "#/$defs/collaborator"}},
                "contributors": {"type": "array", "items": {"$ref": "#/$defs/contributor"}},
            },
        },
        "tool_name": _required_text("Name is required"),
        "ai_model": {
            "type": "object",
            "required": ["name", "provider", "usage"],
            "properties": {
                "name": _required_text("AI model name is required"),
                "provider": _required_text("AI model provider is required"),
                "version": _OPTIONAL_TEXT,
                "usage": _required_text("AI model usage description is required"),
            },
        },
        "sample": {
            "type": "object",
            "required": ["name", "source"],
            "properties": {
                "name": _required_text("Sample name is required"),
                "source": _required_text("Sample source is required"),
                "license": _OPTIONAL_TEXT,
            },
        },
        "creative_stack": {
            "type": "object",
            "required": ["daws", "plugins", "ai_models", "hardware", "samples"],
            "properties": {
                "daws": {"type": "array", "items": {"$ref": "#/$defs/tool_name"}},
                "plugins": {"type": "array", "items": {"$ref": "#/$defs/tool_name"}},
                "ai_models": {"type": "array", "items": {"$ref": "#/$defs/ai_model"}},
                "hardware": {"type": "array", "items": {"$ref": "#/$defs/tool_name"}},
                "samples": {"type": "array", "items": {"$ref": "#/$defs/sample"}},
            },
        },
        "ai_contribution": {
            "type": "object",
            "required": ["composition", "arrangement", "production", "mixing", "mastering"],
            "properties": {
                "composition": _fraction("AI contribution for composition must be between 0 and 1"),
                "arrangement": _fraction("AI contribution for arrangement must be between 0 and 1"),
                "production": _fraction("AI contribution for production must be between 0 and 1"),
                "mixing": _fraction("AI contribution for mixing must be between 0 and 1"),
                "mastering": _fraction("AI contribution for mastering must be between 0 and 1"),
            },
        },
        "production_intelligence": {
            "type": "object",
            "required": ["ai_contribution", "methodology"],
            "properties": {
                "ai_contribution": {"$ref": "#/$defs/ai_contribution"},
                "methodology": _required_text("Methodology description is required"),
                "notes": _OPTIONAL_TEXT,
            },
        },
        "source_material": {
            "type": "object",
            "required": ["cid", "description", "relationship"],
            "properties": {
                "cid": _CID,
                "description": _required_text("Source description is required"),
                "relationship": {
                    "enum": ["sample", "remix", "cover", "interpolation"],
                    "errorMessage": "Relationship must be one of sample, remix, cover, interpolation",
                },
            },
        },
        "sample_reference": {
            "type": "object",
            "required": ["cid", "name"],
            "properties": {
                "cid": _CID,
                "name": _required_text("Sample name is required"),
                "timestamp": _OPTIONAL_TEXT,
            },
        },
        "stem": {
            "type": "object",
            "required": ["cid", "name", "type"],
            "properties": {
                "cid": _CID,
                "name": _required_text("Stem name is required"),
                "type": {
                    "enum": ["vocals", "drums", "bass", "melody", "harmony", "fx", "other"],
                    "errorMessage": "Stem type must be one of vocals, drums, bass, melody, harmony, fx, other",
                },
            },
        },
        "provenance": {
            "type": "object",
            "required": ["source_material", "samples", "stems"],
            "properties": {
                "ipfs_cid": _CID,
                "source_material": {"type": "array", "items": {"$ref": "#/$defs/source_material"}},
                "samples": {"type": "array", "items": {"$ref": "#/$defs/sample_reference"}},
                "stems": {"type": "array", "items": {"$ref": "#/$defs/stem"}},
            },
        },
        "revision": {
            "type": "object",
            "required": ["version", "timestamp", "changes"],
            "properties": {
                "version": _required_text("Version is required"),
                "timestamp": _TIMESTAMP,
                "changes": _required_text("Changes description is required"),
                "previous_cid": _CID,
            },
        },
        "audio_fingerprint": {
            "type": "object",
            "required": ["sha256", "duration_ms", "format"],
            "properties": {
                "sha256": {
                    "type": "string",
                    "pattern": SHA256_PATTERN,
                    "errorMessage": "Invalid SHA-256 hash format",
                },
                "duration_ms": {
                    "type": "integer",
                    "exclusiveMinimum": 0,
                    "errorMessage": "Duration must be a positive integer",
                },
                "format": _required_text("Audio format is required"),
                "sample_rate": {
                    "type": "integer",
                    "exclusiveMinimum": 0,
                    "errorMessage": "Sample rate must be a positive integer",
                },
                "bit_depth": {
                    "type": "integer",
                    "exclusiveMinimum": 0,
                    "errorMessage": "Bit depth must be a positive integer",
                },
            },
        },
    },
}

_REQUIRED_MESSAGE = re.compile(r"^'(?P<name>.+)' is a required property$")


@dataclass
class ValidationResult:
    """
    Result of validating a declaration.

    Attributes:
        valid: True if no violation was found
        declaration: Typed declaration (only when valid)
        errors: Field-qualified violation messages
    """
    valid: bool
    declaration: Optional[Declaration] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors)}


def _render_path(parts: Iterable[Any]) -> str:
    return ".".join(str(p) for p in parts)


def _format_error(error, prefix: str = "") -> str:
    """Render a jsonschema error as ``path: message``."""
    path = list(error.absolute_path)
    custom = error.schema.get("errorMessage") if isinstance(error.schema, dict) else None
    if isinstance(custom, dict):
        custom = custom.get(error.validator)

    if error.validator == "required":
        match = _REQUIRED_MESSAGE.match(error.message)
        if match:
            path.append(match.group("name"))
        message = "Required"
    elif custom:
        message = custom
    else:
        message = error.message

    rendered = _render_path(path)
    if prefix:
        rendered = f"{prefix}.{rendered}" if rendered else prefix
    return f"{rendered}: {message}" if rendered else message


@lru_cache(maxsize=None)
def _validator_for(definition: Optional[str]) -> Draft202012Validator:
    if definition is None:
        return DeclarationValidator(DECLARATION_SCHEMA)
    if definition not in DECLARATION_SCHEMA["$defs"]:
        raise KeyError(f"Unknown schema definition: {definition}")
    fragment = {
        "$schema": DECLARATION_SCHEMA["$schema"],
        "$defs": DECLARATION_SCHEMA["$defs"],
        "$ref": f"#/$defs/{definition}",
    }
    return DeclarationValidator(fragment)


def _schema_errors(validator: Draft202012Validator, data: Any, prefix: str = "") -> List[str]:
    errors = sorted(validator.iter_errors(data), key=lambda e: _render_path(e.absolute_path))
    return [_format_error(e, prefix) for e in errors]


def _invariant_errors(data: Any) -> List[str]:
    """Cross-field checks evaluated after the schema pass."""
    errors: List[str] = []
    if not isinstance(data, dict):
        return errors

    declaration_id = data.get("declaration_id")
    if isinstance(declaration_id, str) and declaration_id.strip():
        try:
            parse_declaration_id(declaration_id)
        except FormatError as e:
            errors.append(f"declaration_id: {e}")

    identity = data.get("identity")
    collaborators = identity.get("collaborators") if isinstance(identity, dict) else None
    if isinstance(collaborators, list):
        splits = [
            c["split"] for c in collaborators
            if isinstance(c, dict)
            and isinstance(c.get("split"), (int, float))
            and not isinstance(c.get("split"), bool)
            and math.isfinite(c["split"])
        ]
        total = sum(splits)
        if total > 1 + SPLIT_TOLERANCE:
            errors.append(
                f"identity.collaborators: Revenue splits sum to {total:g}, exceeding 1"
            )

    return errors


def validate_fragment(definition: str, data: Any, path: str = "") -> List[str]:
    """
    Validate a value against one schema definition.

    Args:
        definition: Name under ``$defs`` (e.g. ``"collaborator"``)
        data: Value to check
        path: Field path used to qualify messages

    Returns:
        List[str]: Violation messages, empty when valid
    """
    return _schema_errors(_validator_for(definition), data, path)


def validate_declaration(data: Any) -> ValidationResult:
    """
    Validate a complete declaration.

    Args:
        data: Untrusted, already JSON-decoded input

    Returns:
        ValidationResult: The typed declaration, or every violation found
    """
    errors = _schema_errors(_validator_for(None), data)
    errors.extend(_invariant_errors(data))

    if errors:
        return ValidationResult(valid=False, errors=errors)

    return ValidationResult(valid=True, declaration=Declaration.from_dict(data))


def parse_declaration(data: Any) -> Declaration:
    """
    Validate and convert input into a ``Declaration``.

    Raises:
        ValidationError: With every violation found
    """
    result = validate_declaration(data)
    if not result.valid:
        raise ValidationError(result.errors)
    return result.declaration
