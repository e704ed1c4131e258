from __future__ import annotations

from bisect import bisect_left, bisect_right
from enum import IntEnum, IntFlag, unique
from operator import attrgetter
from typing import ClassVar, Dict, Iterator, List, Optional

from .errors import ValidationError
from .utils import lazyval, parse_int


@unique
class ControlPointType(IntEnum):
    Timing = 0
    Difficulty = 1
    Effect = 2
    Sample = 3


@unique
class SampleSet(IntEnum):
    """The bank of hit sounds used by a sample point or hit object.

    ``Default`` means "not specified here": it is resolved against the
    enclosing sample point and finally the ``SampleSet`` in ``[General]``.
    """

    Default = 0
    Normal = 1
    Soft = 2
    Drum = 3

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            return {
                "None": SampleSet.Default,
                "Normal": SampleSet.Normal,
                "Soft": SampleSet.Soft,
                "Drum": SampleSet.Drum,
            }.get(value)
        return None


class EffectType(IntFlag):
    NoEffect = 0
    Kiai = 1
    OmitFirstBarLine = 8


class ControlPoint:
    """A change of some beatmap property that takes effect at ``start_time``.

    ``start_time`` is ``None`` until the point has been added to a
    :class:`ControlPointGroup`.
    """

    point_type: ClassVar[ControlPointType]

    def __init__(self) -> None:
        self.start_time: float | None = None

    def __repr__(self) -> str:
        if self.start_time is None:
            return f"<{type(self).__qualname__}: uncommitted>"
        return f"<{type(self).__qualname__}: {self.start_time:g}ms>"


class TimingPoint(ControlPoint):
    """An uninherited control point that sets the beat length and meter.

    Parameters
    ----------
    beat_length : float
        The milliseconds per beat, this is another representation of BPM.
    time_signature : int
        The number of beats per measure.
    """

    point_type = ControlPointType.Timing

    def __init__(self, beat_length: float = 1000.0, time_signature: int = 4) -> None:
        super().__init__()
        self.beat_length = beat_length
        self.time_signature = time_signature

    @lazyval
    def bpm(self) -> float:
        """The beats per minute of this timing point."""
        return 60000 / self.beat_length


class DifficultyPoint(ControlPoint):
    """Scroll speed changes produced by every timing point line.

    Parameters
    ----------
    bpm_multiplier : float
        The legacy bpm multiplier in the range [0.1, 100].
    speed_multiplier : float
        The slider velocity multiplier, ``100 / -beat_length`` for
        inherited points.
    """

    point_type = ControlPointType.Difficulty

    def __init__(self, bpm_multiplier: float = 1.0, speed_multiplier: float = 1.0) -> None:
        super().__init__()
        self.bpm_multiplier = bpm_multiplier
        self.speed_multiplier = speed_multiplier


class EffectPoint(ControlPoint):
    point_type = ControlPointType.Effect

    def __init__(self, kiai: bool = False, omit_first_bar_line: bool = False) -> None:
        super().__init__()
        self.kiai = kiai
        self.omit_first_bar_line = omit_first_bar_line


class SamplePoint(ControlPoint):
    """Default hit sound settings for the hit objects that follow.

    Parameters
    ----------
    sample_set : SampleSet
        The default sample bank.
    custom_index : int
        The custom sample index, 0 for the skin's samples.
    volume : int
        The volume of hit sounds, nominally in the range [0, 100]. The value
        is kept as written in the file.
    """

    point_type = ControlPointType.Sample

    def __init__(
        self,
        sample_set: SampleSet = SampleSet.Normal,
        custom_index: int = 0,
        volume: int = 100,
    ) -> None:
        super().__init__()
        self.sample_set = sample_set
        self.custom_index = custom_index
        self.volume = volume


class ControlPointGroup:
    """All control points sharing one start time, at most one per kind."""

    def __init__(self, start_time: float) -> None:
        self.start_time = start_time
        self._points: Dict[ControlPointType, ControlPoint] = {}

    def add(self, point: ControlPoint) -> ControlPoint | None:
        """Put ``point`` in its slot.

        Returns
        -------
        replaced : ControlPoint or None
            The point of the same kind that was in the slot before.
        """
        replaced = self._points.get(point.point_type)
        point.start_time = self.start_time
        self._points[point.point_type] = point
        return replaced

    def get(self, point_type: ControlPointType) -> ControlPoint | None:
        return self._points.get(point_type)

    @property
    def timing_point(self) -> Optional[TimingPoint]:
        return self._points.get(ControlPointType.Timing)  # type: ignore[return-value]

    @property
    def difficulty_point(self) -> Optional[DifficultyPoint]:
        return self._points.get(ControlPointType.Difficulty)  # type: ignore[return-value]

    @property
    def effect_point(self) -> Optional[EffectPoint]:
        return self._points.get(ControlPointType.Effect)  # type: ignore[return-value]

    @property
    def sample_point(self) -> Optional[SamplePoint]:
        return self._points.get(ControlPointType.Sample)  # type: ignore[return-value]

    @property
    def control_points(self) -> List[ControlPoint]:
        """The points in this group ordered by kind."""
        return [self._points[kind] for kind in sorted(self._points)]

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        kinds = ", ".join(kind.name for kind in sorted(self._points))
        return f"<{type(self).__qualname__}: {self.start_time:g}ms [{kinds}]>"


_start_time = attrgetter("start_time")


class ControlPointCollection:
    """Every control point of a beatmap, grouped by start time.

    Groups are kept sorted by ascending time; adding a point at a time that
    already has a group merges the point into that group.
    """

    def __init__(self) -> None:
        self.groups: List[ControlPointGroup] = []
        self._points: Dict[ControlPointType, List[ControlPoint]] = {
            kind: [] for kind in ControlPointType
        }

    def __iter__(self) -> Iterator[ControlPointGroup]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {len(self.groups)} groups>"

    def group_at(self, time: float) -> ControlPointGroup | None:
        """Look up the group starting exactly at ``time``.

        Parameters
        ----------
        time : float
            The start time of the group in milliseconds.
        """
        ix = bisect_left(self.groups, time, key=_start_time)
        if ix < len(self.groups) and self.groups[ix].start_time == time:
            return self.groups[ix]
        return None

    def ensure_group(self, time: float) -> ControlPointGroup:
        """The group starting at ``time``, inserting an empty one if needed."""
        ix = bisect_left(self.groups, time, key=_start_time)
        if ix < len(self.groups) and self.groups[ix].start_time == time:
            return self.groups[ix]

        group = ControlPointGroup(time)
        self.groups.insert(ix, group)
        return group

    def add(self, point: ControlPoint, time: float) -> ControlPointGroup:
        """Insert ``point`` at ``time``, merging it into an existing group.

        A point of the same kind already in that group is replaced.
        """
        group = self.ensure_group(time)
        replaced = group.add(point)

        points = self._points[point.point_type]
        ix = bisect_left(points, time, key=_start_time)
        if replaced is not None:
            points[ix] = point
        else:
            points.insert(ix, point)

        return group

    @property
    def timing_points(self) -> List[TimingPoint]:
        return self._points[ControlPointType.Timing]  # type: ignore[return-value]

    @property
    def difficulty_points(self) -> List[DifficultyPoint]:
        return self._points[ControlPointType.Difficulty]  # type: ignore[return-value]

    @property
    def effect_points(self) -> List[EffectPoint]:
        return self._points[ControlPointType.Effect]  # type: ignore[return-value]

    @property
    def sample_points(self) -> List[SamplePoint]:
        return self._points[ControlPointType.Sample]  # type: ignore[return-value]

    @staticmethod
    def _point_at(points: List[ControlPoint], time: float) -> ControlPoint | None:
        ix = bisect_right(points, time, key=_start_time) - 1
        if ix < 0:
            return None
        return points[ix]

    def timing_point_at(self, time: float) -> TimingPoint:
        """Get the timing point active at ``time``.

        Times before the first timing point use the first timing point.
        """
        point = self._point_at(self.timing_points, time)
        if point is not None:
            return point  # type: ignore[return-value]

        if self.timing_points:
            return self.timing_points[0]

        return TimingPoint()

    def difficulty_point_at(self, time: float) -> DifficultyPoint:
        point = self._point_at(self.difficulty_points, time)
        return point or DifficultyPoint()  # type: ignore[return-value]

    def effect_point_at(self, time: float) -> EffectPoint:
        point = self._point_at(self.effect_points, time)
        return point or EffectPoint()  # type: ignore[return-value]

    def sample_point_at(self, time: float) -> SamplePoint:
        point = self._point_at(self.sample_points, time)
        return point or SamplePoint()  # type: ignore[return-value]


def parse_sample_set(raw: str, field: str = "sampleSet") -> SampleSet:
    """Parse a numeric sample set.

    Raises
    ------
    ParseError
        Raised when ``raw`` is not an integer.
    ValidationError
        Raised when ``raw`` is not one of the known sample sets.
    """
    value = parse_int(raw, field)
    try:
        return SampleSet(value)
    except ValueError:
        raise ValidationError(f"{field} should be in the range [0, 3], got {raw!r}")
