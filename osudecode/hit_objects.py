from __future__ import annotations

import math
from enum import Enum, unique
from typing import TYPE_CHECKING, Callable, ClassVar, List, NamedTuple, Sequence

import numpy as np

from .control_points import ControlPointCollection, SampleSet, parse_sample_set
from .errors import ParseError, ValidationError
from .utils import get_field, parse_float, parse_int

if TYPE_CHECKING:
    from .beatmap import BeatmapDifficulty


class Position(NamedTuple):
    """A position on the osu! screen.

    Parameters
    ----------
    x : int or float
        The x coordinate in the range.
    y : int or float
        The y coordinate in the range.

    Notes
    -----
    The visible region of the osu! standard playfield is [0, 512] by [0, 384].
    Positions may fall outside of this range for slider curve control points.
    """

    x: float
    y: float


def difficulty_range(value: float, min_: float, mid: float, max_: float) -> float:
    """Map a 0-10 difficulty setting onto the range it controls."""
    if value > 5:
        return mid + (max_ - mid) * (value - 5) / 5
    if value < 5:
        return mid - (mid - min_) * (5 - value) / 5
    return mid


class HitSample:
    """The ``normalSet:additionSet:index:volume:filename`` hit sample field.

    Zero values mean "inherit": they are resolved by
    :meth:`HitObject.apply_defaults`.
    """

    def __init__(
        self,
        normal_set: SampleSet = SampleSet.Default,
        addition_set: SampleSet = SampleSet.Default,
        index: int = 0,
        volume: int = 0,
        filename: str = "",
    ) -> None:
        self.normal_set = normal_set
        self.addition_set = addition_set
        self.index = index
        self.volume = volume
        self.filename = filename

    def __repr__(self) -> str:
        return (
            f"<{type(self).__qualname__}: {self.normal_set.name}:"
            f"{self.addition_set.name}:{self.index}:{self.volume}:{self.filename!r}>"
        )

    @classmethod
    def parse(cls, data: str) -> "HitSample":
        """Parse a hit sample; missing trailing fields keep their defaults."""
        if not data:
            return cls()

        fields = data.split(":")
        return cls(
            normal_set=parse_sample_set(get_field(fields, 0, "0") or "0", "normalSet"),
            addition_set=parse_sample_set(get_field(fields, 1, "0") or "0", "additionSet"),
            index=parse_int(get_field(fields, 2, "0") or "0", "index"),
            volume=parse_int(get_field(fields, 3, "0") or "0", "volume"),
            filename=get_field(fields, 4, ""),
        )


class HitObject:
    """An abstract hit element.

    Parameters
    ----------
    position : Position
        Where this element appears on the screen.
    start_time : float
        When this element appears in the map, in milliseconds.
    hit_sound : int
        The hitsound to play when this object is hit.
    hit_sample : HitSample, optional
        The sample overrides of this object.
    new_combo : bool
        Whether this element is the start of a new combo.
    combo_skip : int
        How many combo colors to skip if this element is the start of a new
        combo.

    Notes
    -----
    The attributes ``kiai``, ``sample_set``, ``addition_set``,
    ``custom_index``, ``volume``, ``time_preempt`` and ``time_fade_in`` are
    only meaningful after :meth:`apply_defaults` ran, which the decoder does
    once every control point is known.
    """

    # must be set by subclasses
    type_code: ClassVar[int] = 0

    def __init__(
        self,
        position: Position,
        start_time: float,
        hit_sound: int,
        hit_sample: HitSample | None = None,
        new_combo: bool = False,
        combo_skip: int = 0,
    ) -> None:
        self.position = position
        self.start_time = start_time
        self.hit_sound = hit_sound
        self.hit_sample = hit_sample if hit_sample is not None else HitSample()
        self.new_combo = new_combo
        self.combo_skip = combo_skip

        self.kiai = False
        self.sample_set = SampleSet.Default
        self.addition_set = SampleSet.Default
        self.custom_index = 0
        self.volume = 0
        self.time_preempt = 0.0
        self.time_fade_in = 0.0

    def __repr__(self):
        return f"<{type(self).__qualname__}: {self.position}, {self.start_time:g}ms>"

    @property
    def end_time(self) -> float:
        return self.start_time

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def apply_defaults(
        self,
        control_points: ControlPointCollection,
        difficulty: "BeatmapDifficulty",
        default_sample_set: SampleSet = SampleSet.Normal,
    ) -> None:
        """Resolve the attributes that depend on the surrounding control
        points and the difficulty settings.

        Parameters
        ----------
        control_points : ControlPointCollection
            The fully flushed control points of the beatmap.
        difficulty : BeatmapDifficulty
            The difficulty settings of the beatmap.
        default_sample_set : SampleSet, optional
            The ``SampleSet`` of the ``[General]`` section, used when neither
            the hit sample nor the sample point name one.
        """
        self.kiai = control_points.effect_point_at(self.start_time).kiai

        sample_point = control_points.sample_point_at(self.start_time)
        point_set = sample_point.sample_set or default_sample_set
        self.sample_set = self.hit_sample.normal_set or point_set
        self.addition_set = self.hit_sample.addition_set or self.sample_set
        self.custom_index = self.hit_sample.index or sample_point.custom_index
        self.volume = self.hit_sample.volume or sample_point.volume

        self.time_preempt = difficulty_range(difficulty.approach_rate, 1800, 1200, 450)
        self.time_fade_in = 400 * min(1.0, self.time_preempt / 450)

    @classmethod
    def parse(cls, data: str, offset: float = 0) -> "HitObject":
        """Parse a HitObject object from a line in a ``.osu`` file.

        Parameters
        ----------
        data : str
            The line to parse.
        offset : float, optional
            The legacy offset added to every time in the line.

        Returns
        -------
        hit_objects : HitObject
            The parsed hit object. This will be the concrete subclass given
            the type.

        Raises
        ------
        ParseError
            Raised when a field is missing or not numeric.
        ValidationError
            Raised when the type does not name a known hit object.
        """
        try:
            x_raw, y_raw, time_raw, type_raw, hitsound_raw, *rest = data.split(",")
        except ValueError:
            raise ParseError(f"not enough elements in line, got {data!r}")

        # in old beatmaps (and potentially newer ones which were manually
        # edited?), x and y can be floats. The game truncates them.
        x = int(parse_float(x_raw, "x"))
        y = int(parse_float(y_raw, "y"))
        start_time = parse_float(time_raw, "time") + offset
        type_code = parse_int(type_raw, "type")
        hitsound = parse_int(hitsound_raw, "hitSound")

        parser: Callable[
            [Position, float, int, bool, int, Sequence[str], float],
            HitObject,
        ]

        if type_code & Circle.type_code:
            parser = Circle._parse
        elif type_code & Slider.type_code:
            parser = Slider._parse
        elif type_code & Spinner.type_code:
            parser = Spinner._parse
        elif type_code & HoldNote.type_code:
            parser = HoldNote._parse
        else:
            raise ValidationError(f"unknown type code {type_code!r}")

        # new combo info is in second bit (0-indexed)
        new_combo = bool(type_code & 0b00000100)
        # 3 bit int for combo skip is held in 4th, 5th, and 6th bits
        combo_skip = (type_code & 0b01110000) >> 4
        return parser(
            Position(x, y),
            start_time,
            hitsound,
            new_combo,
            combo_skip,
            rest,
            offset,
        )


class Circle(HitObject):
    """A circle hit element."""

    type_code = 1

    @classmethod
    def _parse(
        cls,
        position: Position,
        start_time: float,
        hitsound: int,
        new_combo: bool,
        combo_skip: int,
        rest: Sequence[str],
        offset: float,
    ) -> "Circle":
        hit_sample = HitSample.parse(rest[0]) if rest else HitSample()
        return cls(position, start_time, hitsound, hit_sample, new_combo, combo_skip)


class Spinner(HitObject):
    """A spinner hit element

    Parameters
    ----------
    end_time : float
        When this spinner ends in the map. Never before ``start_time``.
    """

    type_code = 8

    def __init__(
        self,
        position: Position,
        start_time: float,
        hit_sound: int,
        end_time: float,
        hit_sample: HitSample | None = None,
        new_combo: bool = False,
        combo_skip: int = 0,
    ) -> None:
        super().__init__(position, start_time, hit_sound, hit_sample, new_combo, combo_skip)
        self._end_time = max(start_time, end_time)

    @property
    def end_time(self) -> float:
        return self._end_time

    @classmethod
    def _parse(
        cls,
        position: Position,
        start_time: float,
        hitsound: int,
        new_combo: bool,
        combo_skip: int,
        rest: Sequence[str],
        offset: float,
    ) -> "Spinner":
        try:
            end_time_raw, *rest_values = rest
        except ValueError:
            raise ParseError("missing end_time")

        end_time = parse_float(end_time_raw, "endTime") + offset
        hit_sample = HitSample.parse(rest_values[0]) if rest_values else HitSample()
        return cls(
            position,
            start_time,
            hitsound,
            end_time,
            hit_sample,
            new_combo,
            combo_skip,
        )


class HoldNote(HitObject):
    """A HoldNote hit element.

    Notes
    -----
    A ``HoldNote`` can only appear in an osu!mania map. Its end time shares a
    field with the hit sample: ``endTime:normalSet:additionSet:...``.
    """

    type_code = 128

    def __init__(
        self,
        position: Position,
        start_time: float,
        hit_sound: int,
        end_time: float,
        hit_sample: HitSample | None = None,
        new_combo: bool = False,
        combo_skip: int = 0,
    ) -> None:
        super().__init__(position, start_time, hit_sound, hit_sample, new_combo, combo_skip)
        self._end_time = max(start_time, end_time)

    @property
    def end_time(self) -> float:
        return self._end_time

    @classmethod
    def _parse(
        cls,
        position: Position,
        start_time: float,
        hitsound: int,
        new_combo: bool,
        combo_skip: int,
        rest: Sequence[str],
        offset: float,
    ) -> "HoldNote":
        if not rest:
            raise ParseError("missing end_time")

        end_time_raw, _, hit_sample_raw = rest[0].partition(":")
        end_time = parse_float(end_time_raw, "endTime") + offset
        return cls(
            position,
            start_time,
            hitsound,
            end_time,
            HitSample.parse(hit_sample_raw),
            new_combo,
            combo_skip,
        )


@unique
class PathType(Enum):
    Bezier = "B"
    Catmull = "C"
    Linear = "L"
    PerfectCurve = "P"


class Slider(HitObject):
    """A slider hit element.

    Parameters
    ----------
    path_type : PathType
        The kind of curve through ``control_points``.
    control_points : list[Position]
        The points of the curve, starting with ``position``.
    repeat : int
        The number of times the slider is traversed.
    length : float
        The length of this slider in osu! pixels.
    edge_sounds : list[int]
        A list of hitsounds for each edge.
    edge_additions : list[str]
        A list of additions for each edge.

    Notes
    -----
    ``velocity``, ``tick_distance``, ``ms_per_beat``, ``num_beats``,
    ``ticks`` and ``end_time`` are computed by :meth:`apply_defaults`.
    Before that the slider has no duration.
    """

    type_code = 2
    BASE_SCORING_DISTANCE = 100
    MAX_REPEAT = 9000

    def __init__(
        self,
        position: Position,
        start_time: float,
        hit_sound: int,
        path_type: PathType,
        control_points: Sequence[Position],
        repeat: int,
        length: float,
        edge_sounds: Sequence[int] = (),
        edge_additions: Sequence[str] = (),
        hit_sample: HitSample | None = None,
        new_combo: bool = False,
        combo_skip: int = 0,
    ) -> None:
        super().__init__(position, start_time, hit_sound, hit_sample, new_combo, combo_skip)
        self.path_type = path_type
        self.control_points: List[Position] = list(control_points)
        self.repeat = repeat
        self.length = length
        self.edge_sounds: List[int] = list(edge_sounds)
        self.edge_additions: List[str] = list(edge_additions)

        self.velocity = 0.0
        self.tick_distance = 0.0
        self.ms_per_beat = 0.0
        self.num_beats = 0.0
        self.ticks = 0
        self._end_time = start_time

    @property
    def end_time(self) -> float:
        return self._end_time

    def apply_defaults(
        self,
        control_points: ControlPointCollection,
        difficulty: "BeatmapDifficulty",
        default_sample_set: SampleSet = SampleSet.Normal,
    ) -> None:
        super().apply_defaults(control_points, difficulty, default_sample_set)

        timing_point = control_points.timing_point_at(self.start_time)
        difficulty_point = control_points.difficulty_point_at(self.start_time)

        velocity_multiplier = float(np.clip(difficulty_point.speed_multiplier, 0.1, 10))
        pixels_per_beat = (
            self.BASE_SCORING_DISTANCE * difficulty.slider_multiplier * velocity_multiplier
        )

        self.ms_per_beat = timing_point.beat_length
        self.tick_distance = pixels_per_beat / difficulty.slider_tick_rate
        self.velocity = pixels_per_beat / self.ms_per_beat if self.ms_per_beat else 0.0

        num_beats = (self.length * self.repeat) / pixels_per_beat
        if math.isnan(num_beats):
            num_beats = 0
        self.num_beats = num_beats

        self._end_time = self.start_time + num_beats * self.ms_per_beat
        self.ticks = int(
            (np.ceil((num_beats - 0.1) / self.repeat * difficulty.slider_tick_rate) - 1)
            * self.repeat
            + self.repeat
            + 1
        )

    @classmethod
    def _parse(
        cls,
        position: Position,
        start_time: float,
        hitsound: int,
        new_combo: bool,
        combo_skip: int,
        rest: Sequence[str],
        offset: float,
    ) -> "Slider":
        rest_list = list(rest)
        try:
            group_1, *rest_list = rest_list
        except ValueError:
            raise ParseError(f"missing required slider data in {rest_list!r}")

        path_type_raw, *raw_points = group_1.split("|")
        try:
            path_type = PathType(path_type_raw)
        except ValueError:
            raise ValidationError(f"unknown slider path type {path_type_raw!r}")

        points = [position]
        for point in raw_points:
            try:
                x_str, y_str = point.split(":")
            except ValueError:
                raise ParseError(f"expected points in the form x:y, got {point!r}")

            points.append(
                Position(int(parse_float(x_str, "x")), int(parse_float(y_str, "y"))),
            )

        try:
            repeat_raw, *rest_list = rest_list
        except ValueError:
            raise ParseError("missing repeat")

        repeat = parse_int(repeat_raw, "slides")
        if not 1 <= repeat <= cls.MAX_REPEAT:
            raise ValidationError(
                f"slides should be in the range [1, {cls.MAX_REPEAT}], got {repeat}",
            )

        try:
            length_raw, *rest_list = rest_list
        except ValueError:
            raise ParseError("missing length")

        length = max(0.0, parse_float(length_raw, "length"))

        edge_sounds_raw = rest_list.pop(0) if rest_list else ""
        edge_sounds = [
            parse_int(edge_sound, "edgeSound")
            for edge_sound in edge_sounds_raw.split("|")
            if edge_sound
        ]

        edge_additions_raw = rest_list.pop(0) if rest_list else ""
        edge_additions = edge_additions_raw.split("|") if edge_additions_raw else []

        hit_sample = HitSample.parse(rest_list[0]) if rest_list else HitSample()

        return cls(
            position,
            start_time,
            hitsound,
            path_type,
            points,
            repeat,
            length,
            edge_sounds,
            edge_additions,
            hit_sample,
            new_combo=new_combo,
            combo_skip=combo_skip,
        )

