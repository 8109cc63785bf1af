"""Tests for class group parsing and the disjointness check."""
import pytest

from landcover_pipeline.errors import ConfigError
from landcover_pipeline.zonal.groups import ClassGroup, GroupingScheme, canonical_scheme


def test_canonical_groups():
    scheme = canonical_scheme()
    assert scheme.names == ["Forest", "Savanna", "Agriculture"]
    by_name = {g.name: g for g in scheme}
    assert by_name["Forest"].codes() == [1, 2, 3, 4, 5]
    assert by_name["Savanna"].codes() == [6, 7, 8, 9]
    assert by_name["Agriculture"].codes() == [12, 14]


def test_discrete_values_do_not_include_gap():
    scheme = canonical_scheme()
    assert scheme.group_for(12) == "Agriculture"
    assert scheme.group_for(13) is None
    assert scheme.group_for(14) == "Agriculture"


@pytest.mark.parametrize("spec, codes", [
    ([3], [3]),
    (["1-3"], [1, 2, 3]),
    ([[4, 6]], [4, 5, 6]),
    (["7", 9], [7, 9]),
])
def test_spec_forms(spec, codes):
    assert ClassGroup.from_spec("g", spec).codes() == codes


@pytest.mark.parametrize("bad", [["x"], ["5-1"], ["1-2-3"], [True], [None]])
def test_bad_spec_rejected(bad):
    with pytest.raises(ConfigError):
        ClassGroup.from_spec("g", bad)


def test_empty_group_rejected():
    with pytest.raises(ConfigError, match="no codes"):
        ClassGroup.from_spec("g", [])


def test_overlapping_groups_rejected():
    with pytest.raises(ConfigError, match="overlap on code 5"):
        GroupingScheme.from_mapping({"Forest": ["1-5"], "Shrub": ["5-7"]})


def test_to_dict_round_trips():
    scheme = canonical_scheme()
    again = GroupingScheme.from_mapping(scheme.to_dict())
    assert [g.codes() for g in again] == [g.codes() for g in scheme]
