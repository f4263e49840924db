"""
Tests for FIA species code -> RP NC-250 species group assignment.
"""
import numpy as np
import pytest

from pync250.exceptions import InvalidParameterError, UnresolvedSpeciesError
from pync250.species_groups import (
    MatchKind,
    SpeciesGroupResolver,
    assign_species_group,
    normalize_species_code,
)

# Unique species codes of a northern Minnesota FIA plot extract
MINNESOTA_SPECIES = [95, 71, 746, 12, 375, 316, 94, 543, 701, 743]
MINNESOTA_GROUPS = [
    "Black spruce", "Tamarack", "Quaking aspen", "Balsam fir", "Paper birch",
    "Soft maple", "White spruce", "Black ash", "Noncommercial spp.", "Bigtooth aspen",
]


@pytest.fixture
def resolver(reference):
    return SpeciesGroupResolver(reference)


class TestClassify:
    """Tests for single code classification."""

    def test_listed_species(self, resolver):
        resolution = resolver.classify(318)
        assert resolution.kind is MatchKind.DIRECT
        assert resolution.species_group == "Hard maple"
        assert resolution.is_resolved

    @pytest.mark.parametrize("code", [97, 110])
    def test_unlisted_softwood(self, resolver, code):
        resolution = resolver.classify(code)
        assert resolution.kind is MatchKind.FALLBACK_SOFTWOOD
        assert resolution.species_group == "Other softwoods"

    @pytest.mark.parametrize("code", [409, 931, 970])
    def test_unlisted_hardwood(self, resolver, code):
        resolution = resolver.classify(code)
        assert resolution.kind is MatchKind.FALLBACK_HARDWOOD
        assert resolution.species_group == "Other hardwoods"

    def test_unknown_code(self, resolver):
        resolution = resolver.classify(999)
        assert resolution.kind is MatchKind.UNRESOLVED
        assert resolution.species_group is None
        assert not resolution.is_resolved

    @pytest.mark.parametrize("code, group", [
        (802, "White oak"),
        (833, "Red oak"),
        (407, "Hickory"),
    ])
    def test_select_groups_use_crosswalk_labels(self, resolver, code, group):
        assert resolver.resolve_one(code) == group


class TestResolve:
    """Tests for batch resolution."""

    def test_minnesota_species(self):
        groups = assign_species_group(MINNESOTA_SPECIES)
        assert list(groups) == MINNESOTA_GROUPS

    def test_fallback_examples(self):
        groups = assign_species_group([97, 110, 409, 970])
        assert list(groups) == ["Other softwoods", "Other softwoods",
                                "Other hardwoods", "Other hardwoods"]

    def test_species_outside_the_lake_states(self):
        # sassafras and loblolly pine are FIA species without an Appendix III listing
        assert list(assign_species_group([931])) == ["Other hardwoods"]
        assert list(assign_species_group([131, 931])) == ["Other softwoods", "Other hardwoods"]

    def test_preserves_order_and_duplicates(self, resolver):
        groups = resolver.resolve([318, 95, 318, 97, 95])
        assert list(groups) == ["Hard maple", "Black spruce", "Hard maple",
                                "Other softwoods", "Black spruce"]

    def test_scalar_input(self, resolver):
        groups = resolver.resolve(318)
        assert groups.shape == (1,)
        assert groups[0] == "Hard maple"

    def test_nested_codes_rejected(self, resolver):
        with pytest.raises(InvalidParameterError):
            resolver.resolve([[318, 95], [746, 97]])

    def test_idempotent(self, resolver):
        first = resolver.resolve(MINNESOTA_SPECIES)
        second = resolver.resolve(MINNESOTA_SPECIES)
        assert np.array_equal(first, second)

    def test_matches_single_resolution(self, resolver):
        codes = MINNESOTA_SPECIES + [97, 409]
        assert list(resolver.resolve(codes)) == [resolver.resolve_one(c) for c in codes]

    def test_every_group_is_in_reference(self, resolver, reference):
        codes = list(reference.species)
        groups = set(resolver.resolve(codes))
        assert groups <= set(reference.species_groups)

    def test_unresolved_single(self, resolver):
        with pytest.raises(UnresolvedSpeciesError) as exc_info:
            resolver.resolve([999])
        assert exc_info.value.species_codes == [999]
        assert "999" in str(exc_info.value)

    def test_unresolved_in_batch(self, resolver):
        with pytest.raises(UnresolvedSpeciesError) as exc_info:
            resolver.resolve([318, 999, 95, 0, 999])
        assert exc_info.value.species_codes == [0, 999]

    def test_resolve_one_unresolved(self, resolver):
        with pytest.raises(UnresolvedSpeciesError):
            resolver.resolve_one(999)

    def test_float_and_string_codes(self, resolver):
        groups = resolver.resolve([318.0, "95", np.int64(746)])
        assert list(groups) == ["Hard maple", "Black spruce", "Quaking aspen"]

    def test_empty_input(self, resolver):
        groups = resolver.resolve([])
        assert groups.shape == (0,)


class TestNormalizeSpeciesCode:
    """Tests for species code conversion."""

    @pytest.mark.parametrize("value, expected", [
        (318, 318),
        (318.0, 318),
        (" 318 ", 318),
        (np.int32(95), 95),
        (np.float64(12.0), 12),
    ])
    def test_valid(self, value, expected):
        assert normalize_species_code(value) == expected

    @pytest.mark.parametrize("value", [318.5, float('nan'), "sugar maple", "", None, "-5"])
    def test_invalid(self, value):
        with pytest.raises(InvalidParameterError):
            normalize_species_code(value)
