from __future__ import annotations

from datetime import datetime
from enum import IntEnum, unique
from typing import IO, TYPE_CHECKING, Dict, List, Tuple

from .control_points import ControlPointCollection, SampleSet
from .events import EventCollection
from .hit_objects import HitObject, Slider
from .utils import lazyval

if TYPE_CHECKING:
    from .sections import OptionsLike


ColorTuple = Tuple[int, int, int]


@unique
class GameMode(IntEnum):
    """The game modes a beatmap can be played in."""

    standard = 0
    taiko = 1
    ctb = 2
    mania = 3


class BeatmapGeneral:
    """The ``[General]`` section.

    Parameters
    ----------
    audio_filename : str
        The location of the audio file relative to the unpacked ``.osz``
        directory.
    audio_lead_in : float
        The amount of time added before the audio file begins playing.
    preview_time : float
        When the audio file should begin playing when selected in the song
        selection menu, -1 for the middle of the song.
    countdown : int
        The countdown speed, 0 for none.
    sample_set : SampleSet
        The set of hit sounds to use through the beatmap.
    stack_leniency : float
        How often closely placed hit objects will be placed together.
    mode : GameMode
        The game mode.
    """

    def __init__(self) -> None:
        self.audio_filename = ""
        self.audio_hash = ""
        self.audio_lead_in = 0.0
        self.preview_time = -1.0
        self.countdown = 1
        self.sample_set = SampleSet.Normal
        self.sample_volume = 100
        self.stack_leniency = 0.7
        self.mode = GameMode.standard
        self.letterbox_in_breaks = False
        self.story_fire_in_front = True
        self.use_skin_sprites = False
        self.always_show_playfield = False
        self.overlay_position = "NoChange"
        self.skin_preference = ""
        self.epilepsy_warning = False
        self.countdown_offset = 0
        self.special_style = False
        self.widescreen_storyboard = False
        self.samples_match_playback_rate = False


class BeatmapEditor:
    def __init__(self) -> None:
        self.bookmarks: List[float] = []
        self.distance_spacing = 1.0
        self.beat_divisor = 4
        self.grid_size = 4
        self.timeline_zoom = 1.0


class BeatmapMetadata:
    """The ``[Metadata]`` section.

    The unicode variants of the title and artist fall back to the ascii ones
    when they are not set.
    """

    def __init__(self) -> None:
        self.title = ""
        self._title_unicode: str | None = None
        self.artist = ""
        self._artist_unicode: str | None = None
        self.creator = ""
        self.version = ""
        self.source = ""
        self.tags: List[str] = []
        self.beatmap_id: int | None = None
        self.beatmap_set_id: int | None = None

    @property
    def title_unicode(self) -> str:
        return self.title if self._title_unicode is None else self._title_unicode

    @title_unicode.setter
    def title_unicode(self, value: str) -> None:
        self._title_unicode = value

    @property
    def artist_unicode(self) -> str:
        return self.artist if self._artist_unicode is None else self._artist_unicode

    @artist_unicode.setter
    def artist_unicode(self, value: str) -> None:
        self._artist_unicode = value


class BeatmapDifficulty:
    """The ``[Difficulty]`` section.

    Old maps didn't have an approach rate so the overall difficulty is used
    until one is set.
    """

    def __init__(self) -> None:
        self.hp_drain_rate = 5.0
        self.circle_size = 5.0
        self.overall_difficulty = 5.0
        self._approach_rate: float | None = None
        self.slider_multiplier = 1.4
        self.slider_tick_rate = 1.0

    @property
    def approach_rate(self) -> float:
        if self._approach_rate is None:
            return self.overall_difficulty
        return self._approach_rate

    @approach_rate.setter
    def approach_rate(self, value: float) -> None:
        self._approach_rate = value


class BeatmapColors:
    """The ``[Colours]`` section."""

    def __init__(self) -> None:
        self.numbered_combo_colors: Dict[int, ColorTuple] = {}
        self.slider_track_color: ColorTuple | None = None
        self.slider_border_color: ColorTuple | None = None

    @property
    def combo_colors(self) -> List[ColorTuple]:
        """The ``ComboN`` colours ordered by ``N``."""
        numbered = self.numbered_combo_colors
        return [numbered[index] for index in sorted(numbered)]


class Beatmap:
    """A decoded ``.osu`` beatmap.

    Parameters
    ----------
    file_format : int
        The version of the beatmap file.

    Notes
    -----
    ``hit_objects`` is sorted by start time, keeping file order among objects
    that start together. ``file_update_date`` is only set when the beatmap
    was read from disk.
    """

    def __init__(self, file_format: int = 14) -> None:
        self.file_format = file_format
        self.file_update_date: datetime | None = None
        self.general = BeatmapGeneral()
        self.editor = BeatmapEditor()
        self.metadata = BeatmapMetadata()
        self.difficulty = BeatmapDifficulty()
        self.colors = BeatmapColors()
        self.events = EventCollection()
        self.control_points = ControlPointCollection()
        self.hit_objects: List[HitObject] = []

    @property
    def display_name(self) -> str:
        """The name of the map as it appears in game."""
        metadata = self.metadata
        return f"{metadata.artist} - {metadata.title} [{metadata.version}]"

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {self.display_name}>"

    @property
    def mode(self) -> GameMode:
        return self.general.mode

    @lazyval
    def bpm_min(self) -> float | None:
        """The minimum BPM in this beatmap, None without timing points."""
        bpms = [tp.bpm for tp in self.control_points.timing_points if tp.beat_length > 0]
        return min(bpms, default=None)

    @lazyval
    def bpm_max(self) -> float | None:
        """The maximum BPM in this beatmap, None without timing points."""
        bpms = [tp.bpm for tp in self.control_points.timing_points if tp.beat_length > 0]
        return max(bpms, default=None)

    @lazyval
    def max_combo(self) -> int:
        """The highest combo that can be achieved on this beatmap."""
        max_combo = 0

        for hit_object in self.hit_objects:
            if isinstance(hit_object, Slider):
                max_combo += hit_object.ticks
            else:
                max_combo += 1

        return max_combo

    @property
    def length(self) -> float:
        """The time from the first hit object's start to the last end."""
        if not self.hit_objects:
            return 0.0
        last_end = max(hit_object.end_time for hit_object in self.hit_objects)
        return last_end - self.hit_objects[0].start_time

    @classmethod
    def from_path(cls, path: str, options: "OptionsLike" = None) -> "Beatmap":
        """Read in a ``Beatmap`` object from a file on disk.

        Parameters
        ----------
        path : str or pathlib.Path
            The path to the ``.osu`` file to read from.
        options : ParsingOptions or bool, optional
            Which sections to decode.

        Returns
        -------
        beatmap : Beatmap
            The parsed beatmap object.

        Raises
        ------
        BeatmapDecodeError
            Raised when the file cannot be parsed as a ``.osu`` file.
        """
        from .decoder import BeatmapDecoder

        return BeatmapDecoder().decode_from_path(path, options)

    @classmethod
    def from_file(cls, file: IO[str], options: "OptionsLike" = None) -> "Beatmap":
        """Read in a ``Beatmap`` object from an open file object."""
        return cls.parse(file.read(), options)

    @classmethod
    def parse(cls, data: str, options: "OptionsLike" = None) -> "Beatmap":
        """Parse a ``Beatmap`` from text in the ``.osu`` format.

        Raises
        ------
        BeatmapDecodeError
            Raised when the data cannot be parsed in the ``.osu`` format.
        """
        from .decoder import BeatmapDecoder

        return BeatmapDecoder().decode_from_string(data, options)
