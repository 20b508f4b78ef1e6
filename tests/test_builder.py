"""
Tests for O8 Declaration Builder

Tests cover:
- Per-field validation on every setter
- Rejected edits leave the draft unchanged
- build() / try_build() full validation
- Single-use lifecycle after a successful build
"""

import time

import pytest

from o8.core.builder import BuildResult, DeclarationBuilder, create_declaration
from o8.core.declaration import AudioFingerprint, Declaration, Relationship, StemType
from o8.core.errors import BuilderError, ValidationError
from o8.core.ids import is_pending_id
from o8.core.validator import validate_declaration

from tests.conftest import CIDV0, MISSING_CIDV0, SHA256, WALLET


def single_error(exc_info) -> str:
    errors = exc_info.value.errors
    assert len(errors) == 1
    return errors[0]


class TestBuild:
    """Test finalizing a builder."""

    def test_minimal_build(self, builder):
        declaration = builder.build()

        assert isinstance(declaration, Declaration)
        assert declaration.version == "1.0"
        assert is_pending_id(declaration.declaration_id)

    def test_build_revalidates(self, declaration):
        assert validate_declaration(declaration.to_dict()).valid

    def test_full_build(self):
        declaration = (
            create_declaration()
            .set_artist("Producer X", wallet=WALLET)
            .add_collaborator("Vocalist", "vocals", wallet=WALLET, split=0.3)
            .add_collaborator("Engineer", "mixing", split=0.2)
            .add_contributor("Session Player", "guitar", "Rhythm guitar on the bridge")
            .add_daw("  Ableton Live 12  ")
            .add_plugin("Serum")
            .add_hardware("Moog Sub 37")
            .add_ai_model("Suno v3", "Suno", "melody generation", version="3.0")
            .add_sample("Amen Break", "The Winstons", license="CC0")
            .set_ai_contribution(composition=0.4, arrangement=0.2)
            .set_methodology("AI-assisted composition with human arrangement")
            .set_notes("  Recorded at home  ")
            .set_root_cid(CIDV0)
            .add_source_material(CIDV0, "Original demo", Relationship.REMIX)
            .add_sample_reference(MISSING_CIDV0, "Vocal chop", timestamp="0:42")
            .add_stem(CIDV0, "Drums", StemType.DRUMS)
            .add_stem(CIDV0, "Bass", "bass")
            .set_audio_fingerprint(AudioFingerprint(SHA256, 180000, "wav", 44100, 24))
            .add_revision("1.1", "Remastered", previous_cid=CIDV0)
            .build()
        )

        assert declaration.creative_stack.daws == ("Ableton Live 12",)
        assert declaration.production_intelligence.notes == "Recorded at home"
        assert declaration.production_intelligence.ai_contribution.composition == 0.4
        assert declaration.production_intelligence.ai_contribution.mastering == 0.0
        assert [c.split for c in declaration.identity.collaborators] == [0.3, 0.2]
        assert declaration.provenance.stems[1].type is StemType.BASS
        assert declaration.provenance.referenced_cids() == (CIDV0, CIDV0, MISSING_CIDV0, CIDV0, CIDV0)
        assert declaration.revision_history[0].previous_cid == CIDV0
        assert declaration.audio_fingerprint.bit_depth == 24

    def test_missing_required_fields(self):
        result = DeclarationBuilder().try_build()

        assert not result.valid
        assert result.declaration is None
        assert len(result.errors) == 3

    def test_build_raises_with_all_messages(self):
        builder = DeclarationBuilder().set_artist("Producer X")

        with pytest.raises(ValidationError) as exc_info:
            builder.build()

        assert len(exc_info.value.errors) == 2
        assert not builder.is_closed

    def test_aggregate_violation_caught_at_build(self, builder):
        builder._draft["identity"]["collaborators"] = [
            {"name": "A", "role": "x", "split": 0.8},
            {"name": "B", "role": "y", "split": 0.8},
        ]

        result = builder.try_build()

        assert not result.valid
        assert any("Revenue splits" in e for e in result.errors)

    def test_try_build_result(self, builder):
        result = builder.try_build()

        assert isinstance(result, BuildResult)
        assert result.valid
        assert result.to_dict()["declaration"]["identity"]["primary_artist"]["name"] == "Producer X"


class TestLifecycle:
    """Test that a builder produces at most one declaration."""

    def test_repeated_build_returns_same_value(self, builder):
        first = builder.build()
        second = builder.build()

        assert first is second
        assert builder.is_closed

    def test_mutation_after_build_raises(self, builder):
        builder.build()

        with pytest.raises(BuilderError):
            builder.add_daw("Logic Pro")
        with pytest.raises(BuilderError):
            builder.set_artist("Someone Else")

    def test_to_dict_after_build_matches_declaration(self, builder):
        declaration = builder.build()
        assert builder.to_dict() == declaration.to_dict()


class TestFieldValidation:
    """Test per-field checks on setters."""

    def test_blank_artist_name(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().set_artist("   ")
        assert single_error(exc_info) == "identity.primary_artist.name: Artist name is required"

    def test_bad_artist_wallet(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().set_artist("Producer X", wallet="0xnope")
        assert single_error(exc_info) == "identity.primary_artist.wallet: Invalid Ethereum address format"

    def test_collaborator_split_out_of_range(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().add_collaborator("Vocalist", "vocals", split=1.5)
        assert single_error(exc_info) == "identity.collaborators.0.split: Split must be between 0 and 1"

    def test_collaborator_split_sum(self):
        builder = DeclarationBuilder().add_collaborator("A", "vocals", split=0.7)

        with pytest.raises(ValidationError) as exc_info:
            builder.add_collaborator("B", "mixing", split=0.4)

        assert single_error(exc_info).startswith("identity.collaborators.1.split: Revenue splits")
        assert len(builder.to_dict()["identity"]["collaborators"]) == 1

    def test_contributor_requires_contribution(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().add_contributor("Player", "guitar", " ")
        assert single_error(exc_info) == "identity.contributors.0.contribution: Contribution description is required"

    def test_blank_tool_names(self):
        builder = DeclarationBuilder()
        for add in (builder.add_daw, builder.add_plugin, builder.add_hardware):
            with pytest.raises(ValidationError):
                add("")

    def test_set_daws_drops_blank_entries(self):
        builder = DeclarationBuilder().set_daws(["Ableton", "  ", "", " Logic "])
        assert builder.to_dict()["creative_stack"]["daws"] == ["Ableton", "Logic"]

    def test_set_plugins_replaces(self):
        builder = DeclarationBuilder().add_plugin("Serum").set_plugins(["Massive"])
        assert builder.to_dict()["creative_stack"]["plugins"] == ["Massive"]

    def test_ai_model_requires_usage(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().add_ai_model("Suno", "Suno", "")
        assert single_error(exc_info) == "creative_stack.ai_models.0.usage: AI model usage description is required"

    def test_ai_contribution_range(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().set_ai_contribution(mastering=-0.1)
        assert "mastering" in single_error(exc_info)

    def test_ai_contribution_nan(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().set_ai_contribution(composition=float("nan"))
        assert single_error(exc_info) == (
            "production_intelligence.ai_contribution.composition: "
            "AI contribution for composition must be between 0 and 1"
        )

    def test_blank_methodology(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().set_methodology("  ")
        assert single_error(exc_info) == "production_intelligence.methodology: Methodology description is required"

    def test_bad_root_cid(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().set_root_cid("Qm123")
        assert single_error(exc_info) == "provenance.ipfs_cid: Invalid IPFS CID format"

    def test_bad_relationship(self):
        with pytest.raises(ValidationError):
            DeclarationBuilder().add_source_material(CIDV0, "Original", "parody")

    def test_bad_stem_cid(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().add_stem("nope", "Drums", StemType.DRUMS)
        assert single_error(exc_info) == "provenance.stems.0.cid: Invalid IPFS CID format"

    def test_bad_fingerprint_hash(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().set_audio_fingerprint({"sha256": "abc", "duration_ms": 1, "format": "wav"})
        assert single_error(exc_info) == "audio_fingerprint.sha256: Invalid SHA-256 hash format"

    def test_non_positive_duration(self):
        with pytest.raises(ValidationError):
            DeclarationBuilder().set_audio_fingerprint(AudioFingerprint(SHA256, 0, "wav"))

    def test_revision_previous_cid(self):
        with pytest.raises(ValidationError) as exc_info:
            DeclarationBuilder().add_revision("1.1", "Fixes", previous_cid="bad")
        assert single_error(exc_info) == "revision_history.0.previous_cid: Invalid IPFS CID format"

    def test_declaration_id_forms(self):
        builder = DeclarationBuilder()
        builder.set_declaration_id(f"o8-{CIDV0}")
        assert builder.to_dict()["declaration_id"] == f"o8-{CIDV0}"

        with pytest.raises(ValidationError) as exc_info:
            builder.set_declaration_id("o8-garbage")
        assert single_error(exc_info).startswith("declaration_id:")
        assert builder.to_dict()["declaration_id"] == f"o8-{CIDV0}"


class TestDraftState:
    """Test the mutable draft."""

    def test_failed_mutation_leaves_draft_unchanged(self, builder):
        before = builder.to_dict()

        with pytest.raises(ValidationError):
            builder.set_artist("", wallet=WALLET)
        with pytest.raises(ValidationError):
            builder.add_stem("bad", "Drums", "drums")

        assert builder.to_dict() == before

    def test_successful_mutation_refreshes_updated_at(self):
        builder = DeclarationBuilder()
        created = builder.to_dict()["updated_at"]

        time.sleep(0.01)
        builder.add_daw("Ableton")

        assert builder.to_dict()["updated_at"] > created
        assert builder.to_dict()["created_at"] == created

    def test_to_dict_is_a_copy(self, builder):
        snapshot = builder.to_dict()
        snapshot["creative_stack"]["daws"].append("Injected")
        assert "Injected" not in builder.to_dict()["creative_stack"]["daws"]

    def test_new_builder_has_pending_id(self):
        assert is_pending_id(DeclarationBuilder().to_dict()["declaration_id"])
