"""Line handlers for the simple sections of a ``.osu`` file.

Each handler takes one preprocessed line of its section and writes the
values it finds into the beatmap being decoded. Unknown keys are ignored.
"""
from __future__ import annotations

from typing import List

import numpy as np

from .beatmap import Beatmap, ColorTuple, GameMode
from .control_points import SampleSet
from .errors import ValidationError
from .events import Event, is_storyboard_line
from .hit_objects import HitObject
from .utils import parse_bool, parse_float, parse_int, split_key_value


def _parse_sample_set_name(raw: str) -> SampleSet:
    try:
        return SampleSet(raw)
    except ValueError:
        raise ValidationError(f"unknown sample set {raw!r}")


def _parse_mode(raw: str) -> GameMode:
    value = parse_int(raw, "Mode")
    try:
        return GameMode(value)
    except ValueError:
        raise ValidationError(f"unknown game mode {raw!r}")


def handle_general_line(line: str, beatmap: Beatmap, offset: float = 0) -> None:
    key, value = split_key_value(line)
    general = beatmap.general

    if key == "AudioFilename":
        general.audio_filename = value
    elif key == "AudioHash":
        general.audio_hash = value
    elif key == "AudioLeadIn":
        general.audio_lead_in = parse_float(value, key)
    elif key == "PreviewTime":
        general.preview_time = parse_float(value, key) + offset
    elif key == "Countdown":
        general.countdown = parse_int(value, key)
    elif key == "SampleSet":
        general.sample_set = _parse_sample_set_name(value)
    elif key == "SampleVolume":
        general.sample_volume = parse_int(value, key)
    elif key == "StackLeniency":
        general.stack_leniency = parse_float(value, key)
    elif key == "Mode":
        general.mode = _parse_mode(value)
    elif key == "LetterboxInBreaks":
        general.letterbox_in_breaks = parse_bool(value, key)
    elif key == "StoryFireInFront":
        general.story_fire_in_front = parse_bool(value, key)
    elif key == "UseSkinSprites":
        general.use_skin_sprites = parse_bool(value, key)
    elif key == "AlwaysShowPlayfield":
        general.always_show_playfield = parse_bool(value, key)
    elif key == "OverlayPosition":
        general.overlay_position = value
    elif key == "SkinPreference":
        general.skin_preference = value
    elif key == "EpilepsyWarning":
        general.epilepsy_warning = parse_bool(value, key)
    elif key == "CountdownOffset":
        general.countdown_offset = parse_int(value, key)
    elif key == "SpecialStyle":
        general.special_style = parse_bool(value, key)
    elif key == "WidescreenStoryboard":
        general.widescreen_storyboard = parse_bool(value, key)
    elif key == "SamplesMatchPlaybackRate":
        general.samples_match_playback_rate = parse_bool(value, key)


def _parse_bookmarks(raw: str) -> List[float]:
    # comma delimited list
    return [parse_float(e, "Bookmarks") for e in raw.split(",") if e.strip()]


def handle_editor_line(line: str, beatmap: Beatmap) -> None:
    key, value = split_key_value(line)
    editor = beatmap.editor

    if key == "Bookmarks":
        editor.bookmarks = _parse_bookmarks(value)
    elif key == "DistanceSpacing":
        editor.distance_spacing = max(0.0, parse_float(value, key))
    elif key == "BeatDivisor":
        editor.beat_divisor = parse_int(value, key)
    elif key == "GridSize":
        editor.grid_size = parse_int(value, key)
    elif key == "TimelineZoom":
        editor.timeline_zoom = max(0.0, parse_float(value, key))


def handle_metadata_line(line: str, beatmap: Beatmap) -> None:
    key, value = split_key_value(line)
    metadata = beatmap.metadata

    if key == "Title":
        metadata.title = value
    elif key == "TitleUnicode":
        metadata.title_unicode = value
    elif key == "Artist":
        metadata.artist = value
    elif key == "ArtistUnicode":
        metadata.artist_unicode = value
    elif key == "Creator":
        metadata.creator = value
    elif key == "Version":
        metadata.version = value
    elif key == "Source":
        metadata.source = value
    elif key == "Tags":
        # space delimited list
        metadata.tags = value.split()
    elif key == "BeatmapID":
        metadata.beatmap_id = parse_int(value, key)
    elif key == "BeatmapSetID":
        metadata.beatmap_set_id = parse_int(value, key)


def handle_difficulty_line(line: str, beatmap: Beatmap) -> None:
    key, value = split_key_value(line)
    difficulty = beatmap.difficulty

    if key == "HPDrainRate":
        difficulty.hp_drain_rate = parse_float(value, key)
    elif key == "CircleSize":
        difficulty.circle_size = parse_float(value, key)
    elif key == "OverallDifficulty":
        difficulty.overall_difficulty = parse_float(value, key)
    elif key == "ApproachRate":
        difficulty.approach_rate = parse_float(value, key)
    elif key == "SliderMultiplier":
        difficulty.slider_multiplier = float(np.clip(parse_float(value, key), 0.4, 3.6))
    elif key == "SliderTickRate":
        difficulty.slider_tick_rate = float(np.clip(parse_float(value, key), 0.5, 8))


def _parse_color(key: str, value: str) -> ColorTuple:
    rgb = [part.strip() for part in value.split(",")]
    if len(rgb) not in (3, 4):
        raise ValidationError(
            f"Invalid color value for {key!r}: expected 3 channels, got {value!r}",
        )

    red, green, blue = (parse_int(channel, key) for channel in rgb[:3])
    return red, green, blue


def handle_colours_line(line: str, beatmap: Beatmap) -> None:
    key, value = split_key_value(line)
    colors = beatmap.colors

    if key.startswith("Combo"):
        try:
            combo_index = int(key[5:])
        except ValueError:
            return

        colors.numbered_combo_colors[combo_index] = _parse_color(key, value)
    elif key == "SliderTrackOverride":
        colors.slider_track_color = _parse_color(key, value)
    elif key == "SliderBorder":
        colors.slider_border_color = _parse_color(key, value)


def handle_event_line(
    line: str,
    beatmap: Beatmap,
    storyboard_lines: List[str] | None,
    offset: float = 0,
) -> None:
    """Handle one ``[Events]`` line.

    Storyboard lines are appended verbatim to ``storyboard_lines``, or
    dropped when that is None. Every other line is parsed into
    ``beatmap.events``.
    """
    if is_storyboard_line(line):
        if storyboard_lines is not None:
            storyboard_lines.append(line)
        return

    beatmap.events.append(Event.parse(line.strip(), offset))


def handle_hit_object_line(line: str, beatmap: Beatmap, offset: float = 0) -> None:
    beatmap.hit_objects.append(HitObject.parse(line, offset))
