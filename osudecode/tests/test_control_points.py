import pytest

from osudecode.control_points import (
    ControlPointCollection,
    ControlPointGroup,
    DifficultyPoint,
    EffectPoint,
    SamplePoint,
    SampleSet,
    TimingPoint,
    parse_sample_set,
)
from osudecode.errors import ParseError, ValidationError


def test_group_add_replaces_the_same_kind():
    group = ControlPointGroup(1000)
    first = SamplePoint(volume=10)
    second = SamplePoint(volume=20)

    assert group.add(first) is None
    assert group.add(second) is first
    assert group.sample_point is second
    assert len(group) == 1
    assert second.start_time == 1000


def test_group_keeps_one_slot_per_kind():
    group = ControlPointGroup(0)
    group.add(SamplePoint())
    group.add(TimingPoint())
    group.add(EffectPoint())
    group.add(DifficultyPoint())

    assert [type(point) for point in group.control_points] == [
        TimingPoint,
        DifficultyPoint,
        EffectPoint,
        SamplePoint,
    ]


def test_uncommitted_point_has_no_start_time():
    assert TimingPoint().start_time is None


def test_groups_are_kept_sorted():
    control_points = ControlPointCollection()
    control_points.add(TimingPoint(), 3000)
    control_points.add(TimingPoint(), 1000)
    control_points.add(EffectPoint(), 2000)
    control_points.add(SamplePoint(), 1000)

    assert [group.start_time for group in control_points] == [1000, 2000, 3000]
    assert [point.start_time for point in control_points.timing_points] == [1000, 3000]
    assert len(control_points.groups[0]) == 2


def test_group_at():
    control_points = ControlPointCollection()
    control_points.add(TimingPoint(), 1000)

    assert control_points.group_at(1000) is control_points.groups[0]
    assert control_points.group_at(500) is None
    assert len(control_points) == 1

    group = control_points.ensure_group(500)
    assert group.start_time == 500
    assert control_points.groups[0] is group
    assert control_points.ensure_group(1000) is control_points.groups[1]
    assert len(control_points) == 2


def test_point_lookup_by_time():
    control_points = ControlPointCollection()
    control_points.add(TimingPoint(500), 1000)
    control_points.add(TimingPoint(250), 2000)
    control_points.add(EffectPoint(kiai=True), 1500)

    assert control_points.timing_point_at(1000).beat_length == 500
    assert control_points.timing_point_at(1999).beat_length == 500
    assert control_points.timing_point_at(2000).beat_length == 250
    assert control_points.timing_point_at(5000).beat_length == 250

    assert control_points.effect_point_at(1499).kiai is False
    assert control_points.effect_point_at(1500).kiai is True


def test_timing_point_before_the_first_uses_the_first():
    control_points = ControlPointCollection()
    control_points.add(TimingPoint(400), 1000)

    assert control_points.timing_point_at(0).beat_length == 400


def test_lookups_on_empty_collection_return_defaults():
    control_points = ControlPointCollection()

    assert control_points.timing_point_at(0).beat_length == 1000
    assert control_points.difficulty_point_at(0).speed_multiplier == 1
    assert control_points.effect_point_at(0).kiai is False

    sample_point = control_points.sample_point_at(0)
    assert sample_point.sample_set == SampleSet.Normal
    assert sample_point.volume == 100


def test_sample_set_names():
    assert SampleSet("None") == SampleSet.Default
    assert SampleSet("Normal") == SampleSet.Normal
    assert SampleSet("Soft") == SampleSet.Soft
    assert SampleSet("Drum") == SampleSet.Drum

    with pytest.raises(ValueError):
        SampleSet("Piano")


def test_parse_sample_set():
    assert parse_sample_set("2") == SampleSet.Soft

    with pytest.raises(ValidationError):
        parse_sample_set("4")

    with pytest.raises(ParseError):
        parse_sample_set("soft")
