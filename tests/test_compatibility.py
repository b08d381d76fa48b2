"""
Tests for compatibility resolution.
"""
from itertools import permutations

import pytest

from avatar_catalog.config.loader import DEFAULT_MATRIX, freeze_matrix
from avatar_catalog.core.compatibility import (
    CompatibilityMode,
    CompatibilityStatus,
    NotFound,
    check_compatibility,
    compatible_assets,
    overall_status,
    resolve,
    transfer_table,
)
from avatar_catalog.storage.models import Asset, Avatar, CompatibilityFact


def fact(bones="yes", materials="yes", animations="yes", notes="test notes"):
    return CompatibilityFact(
        bone_structure=bones,
        materials=materials,
        animations=animations,
        notes=notes,
    )


def matrix_with(source, target, compatibility_fact):
    return freeze_matrix({source: {target: compatibility_fact}})


class TestOverallStatus:
    """Test the worst-wins rule."""

    def test_worst_of_mixed_ratings(self):
        """A partial aspect outranks mostly and yes."""
        assert overall_status(fact("yes", "partial", "mostly")) == CompatibilityStatus.PARTIAL

    def test_order_independent(self):
        """Moving the worst rating to another aspect gives the same result."""
        for ratings in permutations(["yes", "partial", "mostly"]):
            assert overall_status(fact(*ratings)) == CompatibilityStatus.PARTIAL

    def test_any_no_wins(self):
        assert overall_status(fact("yes", "yes", "no")) == CompatibilityStatus.NO

    def test_mostly(self):
        assert overall_status(fact("mostly", "yes", "yes")) == CompatibilityStatus.MOSTLY

    def test_all_yes(self):
        assert overall_status(fact()) == CompatibilityStatus.YES

    def test_invalid_rating_rejected(self):
        with pytest.raises(ValueError):
            overall_status(fact("info", "yes", "yes"))


class TestAssetToAvatar:
    """Test binary asset compatibility."""

    def test_direct_match_is_yes(self):
        """An asset made for the avatar's base is fully compatible."""
        result = resolve(CompatibilityMode.ASSET_TO_AVATAR, DEFAULT_MATRIX, ["Fantasy2.0"], "Fantasy2.0")

        assert result.overall == CompatibilityStatus.YES
        assert [d.aspect for d in result.details] == [
            "Avatar Base", "File Format", "Animation Rigging", "Material System",
        ]
        assert all(d.status == CompatibilityStatus.YES for d in result.details)

    def test_no_match_is_partial(self):
        """A non-matching base may work with adjustments."""
        result = resolve(CompatibilityMode.ASSET_TO_AVATAR, DEFAULT_MATRIX, ["Fantasy2.0"], "Toon1.0")

        assert result.overall == CompatibilityStatus.PARTIAL
        assert result.aspect("Avatar Base").status == CompatibilityStatus.PARTIAL
        assert result.aspect("Animation Rigging").status == CompatibilityStatus.PARTIAL
        assert "may work with adjustments" in result.aspect("Avatar Base").message

    @pytest.mark.parametrize("base", ["Fantasy2.0", "Toon1.0"])
    def test_format_and_materials_always_yes(self, base):
        result = resolve(CompatibilityMode.ASSET_TO_AVATAR, DEFAULT_MATRIX, ["Fantasy2.0"], base)

        assert result.aspect("File Format").status == CompatibilityStatus.YES
        assert result.aspect("Material System").status == CompatibilityStatus.YES

    def test_match_is_case_sensitive(self):
        result = resolve(CompatibilityMode.ASSET_TO_AVATAR, DEFAULT_MATRIX, ["fantasy2.0"], "Fantasy2.0")
        assert result.overall == CompatibilityStatus.PARTIAL

    def test_matrix_not_consulted(self):
        """Asset checks ignore even a matrix entry saying no."""
        matrix = matrix_with("Toon1.0", "Toon1.0", fact("no", "no", "no"))
        result = resolve(CompatibilityMode.ASSET_TO_AVATAR, matrix, ["Toon1.0"], "Toon1.0")
        assert result.overall == CompatibilityStatus.YES


class TestAvatarToAvatar:
    """Test matrix-based avatar compatibility."""

    def test_fact_found(self):
        """Stored ratings are reported per aspect with notes as info."""
        result = resolve(
            CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "Feline3.0", "Fantasy2.0"
        )

        assert result.overall == CompatibilityStatus.MOSTLY
        assert result.aspect("Bone Structure").status == CompatibilityStatus.MOSTLY
        assert result.aspect("Materials").status == CompatibilityStatus.YES
        assert result.aspect("Animations").status == CompatibilityStatus.MOSTLY
        notes = result.aspect("Notes")
        assert notes.status == CompatibilityStatus.INFO
        assert notes.message == "Good compatibility overall with minor adjustments"

    def test_notes_do_not_affect_overall(self):
        matrix = matrix_with("A", "B", fact(notes="totally incompatible, no"))
        result = resolve(CompatibilityMode.AVATAR_TO_AVATAR, matrix, "A", "B")
        assert result.overall == CompatibilityStatus.YES

    def test_missing_pair_is_unknown_not_no(self):
        """Silence in the matrix is never read as incompatibility."""
        result = resolve(
            CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "Robot2.4", "Toon1.0"
        )

        assert result.overall == CompatibilityStatus.UNKNOWN
        assert result.overall != CompatibilityStatus.NO
        assert result.aspect("Compatibility Data").status == CompatibilityStatus.UNKNOWN
        assert "Robot2.4" in result.aspect("Compatibility Data").message
        assert result.aspect("General Advice").status == CompatibilityStatus.INFO

    def test_lookup_is_directional(self):
        """A fact for (A, B) does not answer (B, A)."""
        forward = resolve(
            CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "HumanMale4.2", "HumanFemale4.2"
        )
        reverse = resolve(
            CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "HumanFemale4.2", "HumanMale4.2"
        )

        assert forward.overall == CompatibilityStatus.YES
        assert reverse.overall == CompatibilityStatus.UNKNOWN

    def test_self_pair_defaults_to_yes(self):
        result = resolve(CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "Toon1.0", "Toon1.0")
        assert result.overall == CompatibilityStatus.YES
        assert result.aspect("Notes").message == "Same avatar base"

    def test_self_pair_can_require_matrix_entry(self):
        result = resolve(
            CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "Toon1.0", "Toon1.0",
            self_pair_compatible=False,
        )
        assert result.overall == CompatibilityStatus.UNKNOWN

    def test_explicit_self_pair_entry_wins(self):
        matrix = matrix_with("Toon1.0", "Toon1.0", fact("yes", "partial", "yes"))
        result = resolve(CompatibilityMode.AVATAR_TO_AVATAR, matrix, "Toon1.0", "Toon1.0")
        assert result.overall == CompatibilityStatus.PARTIAL

    def test_summary_sentences(self):
        known = resolve(CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "HumanMale4.2", "HumanFemale4.2")
        unknown = resolve(CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "A", "B")

        assert known.summary == "These avatars have excellent compatibility!"
        assert unknown.summary == "Compatibility is unknown - you may need to test manually."


class TestCheckCompatibility:
    """Test id lookups before resolution."""

    assets = [
        Asset(id=1, name="Wings", creator="Aether", type="accessory", compatible_with=("Fantasy2.0",)),
    ]
    avatars = [
        Avatar(id=10, name="Elf", base="Fantasy2.0"),
        Avatar(id=11, name="Pip", base="Toon1.0"),
        Avatar(id=12, name="Mochi", base="Feline3.0"),
    ]

    def test_asset_mode(self):
        result = check_compatibility(
            CompatibilityMode.ASSET_TO_AVATAR, DEFAULT_MATRIX, self.assets, self.avatars, 1, 11
        )
        assert result.overall == CompatibilityStatus.PARTIAL

    def test_avatar_mode(self):
        result = check_compatibility(
            CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, self.assets, self.avatars, 12, 10
        )
        assert result.overall == CompatibilityStatus.MOSTLY

    def test_missing_asset_raises(self):
        with pytest.raises(NotFound) as excinfo:
            check_compatibility(
                CompatibilityMode.ASSET_TO_AVATAR, DEFAULT_MATRIX, self.assets, self.avatars, 99, 10
            )
        assert excinfo.value.kind == "asset"
        assert excinfo.value.entity_id == 99

    def test_missing_avatar_raises_instead_of_unknown(self):
        """An absent id fails fast rather than resolving to unknown."""
        with pytest.raises(NotFound) as excinfo:
            check_compatibility(
                CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, self.assets, self.avatars, 12, 404
            )
        assert excinfo.value.kind == "avatar"
        assert excinfo.value.entity_id == 404


class TestCompatibleAssets:
    def test_filters_by_exact_base(self):
        assets = [
            Asset(id=1, name="A", creator="c", type="prop", compatible_with=("Toon1.0",)),
            Asset(id=2, name="B", creator="c", type="prop", compatible_with=("toon1.0",)),
            Asset(id=3, name="C", creator="c", type="prop"),
        ]
        assert [a.id for a in compatible_assets(assets, "Toon1.0")] == [1]


class TestTransferTable:
    """Test the asset transfer reference table."""

    def test_levels_follow_result(self):
        matrix = matrix_with("A", "B", fact("mostly", "partial", "mostly"))
        result = resolve(CompatibilityMode.AVATAR_TO_AVATAR, matrix, "A", "B")

        levels = {row.asset_type: row.level for row in transfer_table(result)}
        assert levels == {
            "Clothing": "Low",
            "Props/Accessories": "High",
            "Animations": "Medium",
            "Materials/Textures": "Medium",
        }

    def test_fully_compatible(self):
        result = resolve(CompatibilityMode.AVATAR_TO_AVATAR, DEFAULT_MATRIX, "HumanMale4.2", "HumanFemale4.2")
        assert all(row.level == "High" for row in transfer_table(result))

    def test_empty_for_incompatible_pairs(self):
        matrix = matrix_with("A", "B", fact("no", "yes", "yes"))
        result = resolve(CompatibilityMode.AVATAR_TO_AVATAR, matrix, "A", "B")
        assert transfer_table(result) == []

    def test_empty_for_asset_checks(self):
        result = resolve(CompatibilityMode.ASSET_TO_AVATAR, DEFAULT_MATRIX, ["A"], "A")
        assert transfer_table(result) == []
