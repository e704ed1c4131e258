import io
import os
from datetime import datetime

import pytest

import osudecode
from osudecode import (
    BeatmapDecoder,
    FormatError,
    ParseError,
    ParsingOptions,
    SampleSet,
    ValidationError,
)
from osudecode.decoder import _SECTION_HANDLERS
from osudecode.events import Background, Break
from osudecode.hit_objects import Circle, Slider, Spinner
from osudecode.sections import Section


def make_map(version=14, general=(), events=(), timing_points=(), hit_objects=()):
    lines = [f"osu file format v{version}", ""]
    lines += ["[General]", *general, ""]
    lines += ["[Events]", *events, ""]
    lines += ["[TimingPoints]", *timing_points, ""]
    lines += ["[HitObjects]", *hit_objects]
    return "\n".join(lines)


MAP_WITH_TIMES = dict(
    general=["PreviewTime: 5000"],
    events=['0,100,"bg.jpg",0,0', "2,2000,3000"],
    timing_points=["0,500,4,1,0,100,1,0", "1500,-100,4,1,0,100,0,0"],
    hit_objects=["256,192,1000,1,0", "256,192,1500,12,0,1800"],
)


def test_version_header_is_required():
    with pytest.raises(FormatError):
        osudecode.decode("[General]\nMode: 0\n")


@pytest.mark.parametrize(
    "data",
    [
        "",
        "\n\n   \n",
        "osu file format\n[General]\n",
        "osu file format vX\n[General]\n",
        "// osu file format v14\n",
    ],
)
def test_invalid_or_missing_version_header(data):
    with pytest.raises(FormatError):
        osudecode.decode(data)


def test_version_header_may_follow_blank_lines_and_a_bom():
    beatmap = osudecode.decode("\ufeff\n  \n osu file format v9 \n[General]\nMode: 1\n")
    assert beatmap.file_format == 9
    assert beatmap.mode == osudecode.GameMode.taiko


def test_version_header_with_bom_on_the_same_line():
    beatmap = osudecode.decode(b"\xef\xbb\xbfosu file format v12\r\n")
    assert beatmap.file_format == 12


def test_legacy_offset_for_old_versions():
    old = osudecode.decode(make_map(version=4, **MAP_WITH_TIMES))
    new = osudecode.decode(make_map(version=14, **MAP_WITH_TIMES))

    assert old.general.preview_time == new.general.preview_time + 24

    old_times = [hit_object.start_time for hit_object in old.hit_objects]
    new_times = [hit_object.start_time for hit_object in new.hit_objects]
    assert old_times == [time + 24 for time in new_times]
    assert old.hit_objects[1].end_time == new.hit_objects[1].end_time + 24

    old_groups = [group.start_time for group in old.control_points]
    new_groups = [group.start_time for group in new.control_points]
    assert old_groups == [time + 24 for time in new_groups]

    old_events = [event.start_time for event in old.events]
    new_events = [event.start_time for event in new.events]
    assert old_events == [time + 24 for time in new_events]
    assert old.events.breaks[0].end_time == new.events.breaks[0].end_time + 24


@pytest.mark.parametrize("version, offset", [(3, 24), (4, 24), (5, 0), (14, 0)])
def test_legacy_offset_threshold(version, offset):
    beatmap = osudecode.decode(
        make_map(version=version, hit_objects=["0,0,1000,1,0"]),
    )
    assert beatmap.hit_objects[0].start_time == 1000 + offset


def test_editor_times_do_not_get_the_offset():
    beatmap = osudecode.decode(
        "osu file format v3\n[Editor]\nBookmarks: 1000,2000\n",
    )
    assert beatmap.editor.bookmarks == [1000, 2000]


def test_hit_objects_are_sorted_stably():
    beatmap = osudecode.decode(
        make_map(
            hit_objects=[
                "0,0,2000,1,0",
                "1,1,1000,1,0",
                "2,2,1000,1,0",
                "3,3,500,1,0",
                "4,4,1000,1,0",
            ],
        ),
    )

    assert [hit_object.position.x for hit_object in beatmap.hit_objects] == [3, 1, 2, 4, 0]
    times = [hit_object.start_time for hit_object in beatmap.hit_objects]
    assert times == sorted(times)


def test_final_timing_point_line_is_committed():
    beatmap = osudecode.decode(
        "osu file format v14\n[TimingPoints]\n1000,500,4,1,0,100,1,0",
    )

    assert len(beatmap.control_points) == 1
    group = beatmap.control_points.groups[0]
    assert group.start_time == 1000
    assert group.timing_point.beat_length == 500


def test_same_time_timing_lines_in_a_beatmap():
    beatmap = osudecode.decode(
        make_map(
            timing_points=[
                "1000,500,4,1,0,60,1,0",
                "1000,-50,4,1,0,90,0,1",
            ],
        ),
    )

    assert len(beatmap.control_points) == 1
    group = beatmap.control_points.groups[0]
    assert group.timing_point.beat_length == 500
    assert group.sample_point.volume == 90
    assert group.effect_point.kiai is True


def test_time_signature_below_one_aborts_the_decode():
    with pytest.raises(ValidationError):
        osudecode.decode(make_map(timing_points=["1000,500,0,0,0,100,1,0"]))

    beatmap = osudecode.decode(make_map(timing_points=["1000,500,4,0,0,100,1,0"]))
    assert beatmap.control_points.timing_points[0].time_signature == 4


def test_non_numeric_field_aborts_the_decode():
    with pytest.raises(ParseError):
        osudecode.decode(make_map(hit_objects=["0,0,soon,1,0"]))


def test_unknown_sections_are_ignored():
    beatmap = osudecode.decode(
        "osu file format v14\n"
        "[Fruits]\n"
        "Mode: 2\n"
        "0,0,1000,1,0\n"
        "[General]\n"
        "Mode: 1\n"
        "[Mystery]\n"
        "1000,500,4,1,0,100,1,0\n",
    )

    assert beatmap.mode == osudecode.GameMode.taiko
    assert beatmap.hit_objects == []
    assert len(beatmap.control_points) == 0


def test_lines_before_the_first_section_are_ignored():
    beatmap = osudecode.decode(
        "osu file format v14\nMode: 3\nosu file format v3\n[General]\nMode: 1\n",
    )
    assert beatmap.file_format == 14
    assert beatmap.mode == osudecode.GameMode.taiko


def test_comments_and_blank_lines_are_ignored():
    beatmap = osudecode.decode(
        make_map(
            events=["//Background and Video events", "   ", '0,0,"bg.jpg",0,0'],
            hit_objects=["// first object", "0,0,1000,1,0"],
        ),
    )

    assert len(beatmap.events) == 1
    assert len(beatmap.hit_objects) == 1


@pytest.mark.parametrize(
    "options, attribute",
    [
        (ParsingOptions(parse_hit_objects=False), "hit_objects"),
        (ParsingOptions(parse_timing_points=False), "control_points"),
        (ParsingOptions(parse_events=False), "events"),
    ],
)
def test_disabled_sections_are_skipped(options, attribute):
    beatmap = osudecode.decode(make_map(**MAP_WITH_TIMES), options)
    assert len(getattr(beatmap, attribute)) == 0


def test_disabled_general_section():
    beatmap = osudecode.decode(
        make_map(general=["Mode: 3", "PreviewTime: 100"]),
        ParsingOptions(parse_general=False),
    )
    assert beatmap.mode == osudecode.GameMode.standard
    assert beatmap.general.preview_time == -1


def test_disabled_metadata_difficulty_and_editor():
    beatmap = osudecode.decode(
        "osu file format v14\n"
        "[Editor]\nGridSize: 32\n"
        "[Metadata]\nTitle:Hidden\n"
        "[Difficulty]\nCircleSize:7\n",
        ParsingOptions(parse_editor=False, parse_metadata=False, parse_difficulty=False),
    )
    assert beatmap.editor.grid_size == 4
    assert beatmap.metadata.title == ""
    assert beatmap.difficulty.circle_size == 5


def test_colours_are_always_decoded():
    beatmap = osudecode.decode(
        "osu file format v14\n[Colours]\nCombo2 : 1,2,3\nCombo1 : 4,5,6\n",
        ParsingOptions(
            parse_general=False,
            parse_editor=False,
            parse_metadata=False,
            parse_difficulty=False,
            parse_events=False,
            parse_timing_points=False,
            parse_hit_objects=False,
            parse_storyboard=False,
        ),
    )
    assert beatmap.colors.combo_colors == [(4, 5, 6), (1, 2, 3)]


STORYBOARD_EVENTS = [
    '0,0,"bg.jpg",0,0',
    'Sprite,Foreground,Centre,"star.png",320,240',
    " F,0,1000,2000,0,1",
    "_M,0,1000,2000,320,240,320,200",
    "2,4000,5000",
    '5,3000,0,"hit.wav",80',
]


def test_storyboard_lines_are_captured_and_decoded():
    beatmap = osudecode.decode(
        make_map(general=["UseSkinSprites: 1"], events=STORYBOARD_EVENTS)
        + "\n[Colours]\nCombo1 : 10,20,30\n",
    )

    events = beatmap.events
    assert [type(event) for event in events] == [Background, Break]
    assert events.storyboard_lines == [
        'Sprite,Foreground,Centre,"star.png",320,240',
        " F,0,1000,2000,0,1",
        "_M,0,1000,2000,320,240,320,200",
        '5,3000,0,"hit.wav",80',
    ]

    storyboard = events.storyboard
    assert storyboard is not None
    assert len(storyboard) == 2
    assert storyboard.use_skin_sprites is True
    assert storyboard.colors is beatmap.colors
    assert storyboard.colors.combo_colors == [(10, 20, 30)]
    assert storyboard.file_format == 14

    sprite, = [element for element in storyboard if element.filename == "star.png"]
    assert [command.command_type for command in sprite.commands] == ["F", "M"]
    assert storyboard.samples[0].volume == 80


def test_storyboard_disabled_keeps_ordinary_events():
    beatmap = osudecode.decode(make_map(events=STORYBOARD_EVENTS), False)

    assert [type(event) for event in beatmap.events] == [Background, Break]
    assert beatmap.events.storyboard is None
    assert beatmap.events.storyboard_lines == []


def test_storyboard_needs_events():
    options = ParsingOptions(parse_events=False, parse_storyboard=True)
    beatmap = osudecode.decode(make_map(events=STORYBOARD_EVENTS), options)

    assert len(beatmap.events) == 0
    assert beatmap.events.storyboard is None


def test_no_storyboard_without_storyboard_lines():
    beatmap = osudecode.decode(make_map(events=['0,0,"bg.jpg",0,0']))
    assert beatmap.events.storyboard is None


def test_hit_object_defaults_come_from_control_points():
    beatmap = osudecode.decode(
        make_map(
            general=["SampleSet: Drum"],
            timing_points=[
                "0,500,4,0,0,60,1,0",
                "2000,-100,4,2,3,40,0,1",
            ],
            hit_objects=[
                "0,0,1000,1,0",
                "0,0,2500,1,0",
                "0,0,3000,1,0,1:0:0:70:",
            ],
        ),
    )

    first, second, third = beatmap.hit_objects

    # sample set 0 in the timing point falls back to [General]
    assert first.sample_set == SampleSet.Drum
    assert first.volume == 60
    assert first.kiai is False

    assert second.sample_set == SampleSet.Soft
    assert second.addition_set == SampleSet.Soft
    assert second.custom_index == 3
    assert second.volume == 40
    assert second.kiai is True

    assert third.sample_set == SampleSet.Normal
    assert third.volume == 70


def test_hit_object_defaults_use_the_whole_timing_section():
    # the timing points come after the hit objects in this file
    beatmap = osudecode.decode(
        "osu file format v14\n"
        "[HitObjects]\n"
        "0,0,1000,2,0,L|100:0,1,140\n"
        "[TimingPoints]\n"
        "0,500,4,1,0,100,1,0\n",
    )

    slider = beatmap.hit_objects[0]
    assert isinstance(slider, Slider)
    assert slider.end_time == 1500


def test_decoder_can_be_reused():
    decoder = BeatmapDecoder()
    first = decoder.decode_from_string(
        make_map(timing_points=["1000,500,4,1,0,100,1,0"]),
    )
    second = decoder.decode_from_string(
        make_map(timing_points=["2000,250,4,1,0,100,1,0"]),
    )

    assert [group.start_time for group in first.control_points] == [1000]
    assert [group.start_time for group in second.control_points] == [2000]


def test_decode_accepts_lines_and_bytes():
    data = make_map(**MAP_WITH_TIMES)

    from_text = osudecode.decode(data)
    from_lines = osudecode.decode(io.StringIO(data).readlines())
    from_bytes = osudecode.decode(data.replace("\n", "\r\n").encode("utf-8"))

    for beatmap in (from_lines, from_bytes):
        assert [h.start_time for h in beatmap.hit_objects] == [
            h.start_time for h in from_text.hit_objects
        ]
        assert len(beatmap.control_points) == len(from_text.control_points)
        assert beatmap.general.preview_time == from_text.general.preview_time


def test_invalid_utf8_is_a_format_error():
    with pytest.raises(FormatError):
        osudecode.decode(b"osu file format v14\n[Metadata]\nTitle:\xff\xfe\n")


def test_beatmap_parse_and_from_file():
    data = make_map(**MAP_WITH_TIMES)

    parsed = osudecode.Beatmap.parse(data)
    from_file = osudecode.Beatmap.from_file(io.StringIO(data))

    assert isinstance(parsed.hit_objects[0], Circle)
    assert isinstance(from_file.hit_objects[1], Spinner)
    assert parsed.file_update_date is None


def test_decode_path(tmp_path):
    path = tmp_path / "map.osu"
    path.write_text(make_map(**MAP_WITH_TIMES), encoding="utf-8")

    beatmap = osudecode.decode_path(path)

    assert len(beatmap.hit_objects) == 2
    assert beatmap.file_update_date == datetime.fromtimestamp(os.stat(path).st_mtime)


def test_from_path_accepts_str(tmp_path):
    path = tmp_path / "map.osu"
    path.write_text(make_map(**MAP_WITH_TIMES), encoding="utf-8-sig")

    beatmap = osudecode.Beatmap.from_path(str(path), False)
    assert beatmap.file_format == 14
    assert isinstance(beatmap.file_update_date, datetime)


def test_decode_path_rejects_other_extensions(tmp_path):
    path = tmp_path / "map.txt"
    path.write_text(make_map(), encoding="utf-8")

    with pytest.raises(FormatError):
        osudecode.decode_path(path)


def test_decode_path_rejects_missing_files(tmp_path):
    with pytest.raises(FormatError):
        osudecode.decode_path(tmp_path / "missing.osu")


def test_decode_path_rejects_directories(tmp_path):
    directory = tmp_path / "folder.osu"
    directory.mkdir()

    with pytest.raises(FormatError):
        osudecode.decode_path(directory)


@pytest.mark.parametrize(
    "data, error",
    [
        ("[General]\nMode: 0\n", FormatError),
        (make_map(timing_points=["1000,500,0,0,0,100,1,0"]), ValidationError),
        (make_map(hit_objects=["x,0,1000,1,0"]), ParseError),
    ],
)
def test_decode_path_wraps_errors(tmp_path, data, error):
    path = tmp_path / "broken.osu"
    path.write_text(data, encoding="utf-8")

    with pytest.raises(error) as excinfo:
        osudecode.decode_path(path)

    message = str(excinfo.value)
    assert message.startswith("failed to decode beatmap: ")
    assert message == f"failed to decode beatmap: {excinfo.value.__cause__}"
    assert isinstance(excinfo.value.__cause__, error)


def test_decode_path_wraps_unicode_errors(tmp_path):
    path = tmp_path / "latin1.osu"
    path.write_bytes(b"osu file format v14\n[Metadata]\nTitle:caf\xe9\n")

    with pytest.raises(FormatError) as excinfo:
        osudecode.decode_path(path)

    assert str(excinfo.value).startswith("failed to decode beatmap: ")
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)


def test_only_cr_and_lf_end_lines():
    beatmap = osudecode.decode(
        "osu file format v14\r\n"
        "[Metadata]\r"
        "Title:Foo\u2028Bar\n"
        "Version:Hard\x0cX\n"
        "[HitObjects]\n"
        "0,0,1000,1,0,0:0:0:0:a\x85b.wav\n",
    )

    assert beatmap.metadata.title == "Foo\u2028Bar"
    assert beatmap.metadata.version == "Hard\x0cX"
    assert beatmap.hit_objects[0].hit_sample.filename == "a\x85b.wav"


def test_unknown_section_lines_reach_the_no_op_handler(monkeypatch):
    seen = []
    monkeypatch.setitem(
        _SECTION_HANDLERS,
        Section.Unknown,
        lambda line, context: seen.append(line),
    )

    osudecode.decode("osu file format v14\n[Fonts]\nHitCirclePrefix: x\n")
    assert seen == ["HitCirclePrefix: x"]


def test_decode_path_wraps_unexpected_errors(tmp_path, monkeypatch):
    path = tmp_path / "map.osu"
    path.write_text(make_map(), encoding="utf-8")

    def explode(self, data, options=None):
        raise RuntimeError("boom")

    monkeypatch.setattr(BeatmapDecoder, "decode_from_string", explode)

    with pytest.raises(FormatError) as excinfo:
        osudecode.decode_path(path)

    assert str(excinfo.value) == "failed to decode beatmap: boom"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_non_ascii_digits_in_event_types():
    beatmap = osudecode.decode("osu file format v14\n[Events]\n²,0,0\n")

    event, = beatmap.events
    assert event.event_type is None
    assert event.raw_data == "²,0,0"
