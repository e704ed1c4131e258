from __future__ import annotations

from typing import Any, Callable, List, NamedTuple, Set

import numpy as np

from .control_points import (
    ControlPoint,
    ControlPointCollection,
    ControlPointType,
    DifficultyPoint,
    EffectPoint,
    EffectType,
    SamplePoint,
    SampleSet,
    TimingPoint,
    parse_sample_set,
)
from .errors import ParseError, ValidationError
from .utils import parse_float, parse_int

# the omitted first bar line is read from bit 1 as well as bit 3
_OMIT_FIRST_BAR_LINE_BITS = EffectType.OmitFirstBarLine | 0b10


def _parse_uninherited(raw: str) -> bool:
    return raw == "1"


def _parse_effects(raw: str) -> int:
    return parse_int(raw, "effects")


class _OptionalField(NamedTuple):
    rank: int
    name: str
    parse: Callable[[str], Any]
    default: Any


# time,beatLength,meter,sampleSet,sampleIndex,volume,uninherited,effects
#
# Each optional field is read iff the line is long enough to hold it.
_OPTIONAL_FIELDS = (
    _OptionalField(2, "time_signature", lambda raw: parse_int(raw, "meter"), 4),
    _OptionalField(3, "sample_set", parse_sample_set, SampleSet.Default),
    _OptionalField(4, "custom_index", lambda raw: parse_int(raw, "sampleIndex"), 0),
    _OptionalField(5, "volume", lambda raw: parse_int(raw, "volume"), 100),
    _OptionalField(6, "uninherited", _parse_uninherited, True),
    _OptionalField(7, "effects", _parse_effects, int(EffectType.NoEffect)),
)


def bpm_multiplier_for(beat_length: float) -> float:
    """The legacy bpm multiplier of an inherited timing point.

    The beat length is rounded to single precision, capped at 10000, raised
    to at least 10 and then scaled down by 100, in that order.
    """
    multiplier = min(float(np.float32(-beat_length)), 10000.0)
    return max(10.0, multiplier) / 100


class TimingPointDecoder:
    """Decodes ``[TimingPoints]`` lines into grouped control points.

    Points decoded from a line are not added to the collection right away.
    They are buffered until a point with a different start time arrives (or
    :meth:`flush` is called), then the buffer is committed as one group in
    which the most recently added point of each kind wins.

    One instance belongs to exactly one decode; call :meth:`flush` after the
    last line or the final group is lost.

    Parameters
    ----------
    control_points : ControlPointCollection
        The collection of the beatmap being decoded.
    """

    def __init__(self, control_points: ControlPointCollection) -> None:
        self.control_points = control_points
        self.pending_time: float | None = None
        self.pending_points: List[ControlPoint] = []

    def handle_line(self, line: str, offset: float = 0) -> None:
        """Decode one timing point line.

        Parameters
        ----------
        line : str
            The line to decode.
        offset : float, optional
            The legacy offset added to the time.

        Raises
        ------
        ParseError
            Raised when a numeric field is not numeric or the line has fewer
            than two fields.
        ValidationError
            Raised when the time signature is below one.
        """
        data = [field.strip() for field in line.split(",")]
        if len(data) < 2:
            raise ParseError(f"expected at least time and beatLength, got {line!r}")

        values = {}
        for field in _OPTIONAL_FIELDS:
            if len(data) > field.rank:
                values[field.name] = field.parse(data[field.rank])
            else:
                values[field.name] = field.default

        time_signature = values["time_signature"]
        if time_signature < 1:
            raise ValidationError(
                f"the numerator of a time signature must be positive, got {time_signature}",
            )

        beat_length = parse_float(data[1], "beatLength")
        start_time = parse_float(data[0], "time") + offset

        bpm_multiplier = 1.0
        speed_multiplier = 1.0

        if beat_length < 0:
            speed_multiplier = 100 / -beat_length
            bpm_multiplier = bpm_multiplier_for(beat_length)

        if values["uninherited"]:
            self.add(TimingPoint(beat_length, time_signature), start_time)

        self.add(DifficultyPoint(bpm_multiplier, speed_multiplier), start_time)

        effects = values["effects"]
        self.add(
            EffectPoint(
                kiai=bool(effects & EffectType.Kiai),
                omit_first_bar_line=bool(effects & _OMIT_FIRST_BAR_LINE_BITS),
            ),
            start_time,
        )

        self.add(
            SamplePoint(values["sample_set"], values["custom_index"], values["volume"]),
            start_time,
        )

    def add(self, point: ControlPoint, time: float) -> None:
        """Buffer ``point``, flushing the buffer first if ``time`` changed."""
        if time != self.pending_time:
            self.flush()

        self.pending_points.append(point)
        self.pending_time = time

    def flush(self) -> None:
        """Commit the buffered points to the group at the pending time.

        The buffer is scanned newest first; only the first point seen of each
        kind is committed, the rest are discarded.
        """
        time = self.pending_time
        if time is None or not self.pending_points:
            return

        committed: Set[ControlPointType] = set()
        for point in reversed(self.pending_points):
            if point.point_type in committed:
                continue

            committed.add(point.point_type)
            self.control_points.add(point, time)

        self.pending_points = []
