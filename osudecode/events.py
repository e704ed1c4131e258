from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Iterator, List, Sequence

from .errors import ParseError
from .utils import get_field, parse_float, parse_int

if TYPE_CHECKING:
    from .storyboard import Storyboard


class EventType(IntEnum):
    Background = 0
    Video = 1
    Break = 2
    ColourTransformation = 3
    Sprite = 4
    Sample = 5
    Animation = 6

    @classmethod
    def _missing_(cls, value):
        return {
            "Background": EventType.Background,
            "Video": EventType.Video,
            "Break": EventType.Break,
            "Colour": EventType.ColourTransformation,
            "Color": EventType.ColourTransformation,
            "ColourTransformation": EventType.ColourTransformation,
            "ColorTransformation": EventType.ColourTransformation,
            "Sprite": EventType.Sprite,
            "Animation": EventType.Animation,
            "Sample": EventType.Sample,
        }.get(value)

    @classmethod
    def from_field(cls, raw: str) -> "EventType | None":
        """Parse the first field of an event line.

        Event types are allowed to be specified as either integers or
        strings. Returns None for anything unknown.
        """
        raw = raw.strip()
        value: int | str = int(raw) if raw.isdecimal() else raw
        try:
            return cls(value)
        except ValueError:
            return None


#: Event types that belong to the storyboard rather than the beatmap.
STORYBOARD_EVENT_TYPES = frozenset(
    {EventType.Sprite, EventType.Animation, EventType.Sample}
)


def is_storyboard_line(line: str) -> bool:
    """Whether a raw ``[Events]`` line is part of the storyboard.

    Storyboard commands are indented with spaces or underscores; storyboard
    objects are sprites, animations and sound samples.
    """
    if line.startswith((" ", "_")):
        return True

    return EventType.from_field(line.split(",", 1)[0]) in STORYBOARD_EVENT_TYPES


class Event:
    """Base class for all beatmap events."""

    def __init__(
        self,
        event_type: EventType | None,
        start_time: float,
        raw_data: str | None = None,
    ):
        self.event_type = event_type
        self.start_time = start_time
        self.raw_data = raw_data

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {self.start_time:g}ms>"

    @classmethod
    def parse(cls, data: str, offset: float = 0) -> "Event":
        """Parse a non-storyboard event line.

        Parameters
        ----------
        data : str
            The line to parse.
        offset : float, optional
            The legacy offset added to every time in the line.

        Returns
        -------
        event : Event
            The parsed event. Lines of unknown or storyboard types come back
            as :class:`GenericEvent`.
        """
        event_type_raw, *event_params = data.split(",")
        event_params = [param.strip() for param in event_params]
        event_type = EventType.from_field(event_type_raw)

        if event_type is None or event_type in STORYBOARD_EVENT_TYPES:
            return GenericEvent(data, event_type)

        parser = {
            EventType.Background: Background.parse,
            EventType.Video: Video.parse,
            EventType.Break: Break.parse,
            EventType.ColourTransformation: ColourTransformation.parse,
        }
        return parser[event_type](event_params, offset)


class GenericEvent(Event):
    """
    A generic event that just stores the raw data, for event types we don't know how to parse.
    """

    def __init__(self, raw_data: str, event_type: EventType | None = None) -> None:
        super().__init__(event_type, 0, raw_data=raw_data)


def _parse_offsets(event_params: Sequence[str], name: str) -> tuple[float, float]:
    if len(event_params) > 4:
        raise ParseError(
            f"expected no more than 4 params for {name}, but got params {list(event_params)}"
        )

    x_offset = parse_float(get_field(event_params, 2, "0"), "x_offset")
    y_offset = parse_float(get_field(event_params, 3, "0"), "y_offset")
    return x_offset, y_offset


class Background(Event):
    def __init__(
        self,
        filename: str,
        x_offset: float = 0,
        y_offset: float = 0,
        start_time: float = 0,
    ) -> None:
        super().__init__(EventType.Background, start_time)
        self.filename = filename
        self.x_offset = x_offset
        self.y_offset = y_offset

    @classmethod
    def parse(cls, event_params: List[str], offset: float = 0) -> "Background":
        if len(event_params) < 2:
            raise ParseError("expected start_time and filename parameters for Background")

        start_time = parse_float(event_params[0], "start_time") + offset
        filename = event_params[1].strip('"')
        x_offset, y_offset = _parse_offsets(event_params, "Background")
        return cls(filename, x_offset, y_offset, start_time)


class Video(Event):
    def __init__(
        self,
        start_time: float,
        filename: str,
        x_offset: float = 0,
        y_offset: float = 0,
    ) -> None:
        super().__init__(EventType.Video, start_time)
        self.filename = filename
        self.x_offset = x_offset
        self.y_offset = y_offset

    @classmethod
    def parse(cls, event_params: List[str], offset: float = 0) -> "Video":
        if len(event_params) < 2:
            raise ParseError("expected start_time and filename parameters for Video")

        start_time = parse_float(event_params[0], "start_time") + offset
        filename = event_params[1].strip('"')
        x_offset, y_offset = _parse_offsets(event_params, "Video")
        return cls(start_time, filename, x_offset, y_offset)


class Break(Event):
    """A break period. ``end_time`` is never before ``start_time``."""

    def __init__(self, start_time: float, end_time: float) -> None:
        super().__init__(EventType.Break, start_time)
        self.end_time = max(start_time, end_time)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @classmethod
    def parse(cls, event_params: List[str], offset: float = 0) -> "Break":
        if len(event_params) < 2:
            raise ParseError("expected start_time and end_time parameters for Break")

        start_time = parse_float(event_params[0], "start_time") + offset
        end_time = parse_float(event_params[1], "end_time") + offset
        return cls(start_time, end_time)


class ColourTransformation(Event):
    def __init__(self, start_time: float, red: int, green: int, blue: int) -> None:
        super().__init__(EventType.ColourTransformation, start_time)
        self.red = red
        self.green = green
        self.blue = blue

    @classmethod
    def parse(cls, event_params: List[str], offset: float = 0) -> "ColourTransformation":
        if len(event_params) < 4:
            raise ParseError(
                "expected start_time, red, green and blue parameters "
                "for ColourTransformation"
            )

        start_time, red, green, blue = event_params[:4]
        return cls(
            parse_float(start_time, "start_time") + offset,
            parse_int(red, "red"),
            parse_int(green, "green"),
            parse_int(blue, "blue"),
        )


class EventCollection:
    """The ``[Events]`` section of a beatmap.

    Parameters
    ----------
    events : list[Event]
        The ordinary (non-storyboard) events, in file order.

    Notes
    -----
    ``storyboard_lines`` holds the raw storyboard lines captured while
    decoding and ``storyboard`` the storyboard decoded from them; both stay
    empty when storyboard parsing is disabled.
    """

    def __init__(self, events: List[Event] | None = None):
        self.events: List[Event] = [] if events is None else events
        self.storyboard_lines: List[str] = []
        self.storyboard: "Storyboard | None" = None

    def __iter__(self) -> Iterator[Event]:
        return iter(self.events)

    def __len__(self):
        return len(self.events)

    def __getitem__(self, index):
        return self.events[index]

    def append(self, event: Event):
        self.events.append(event)

    @property
    def breaks(self) -> List[Break]:
        return [event for event in self.events if isinstance(event, Break)]

    @property
    def background_path(self) -> str | None:
        for event in self.events:
            if isinstance(event, Background):
                return event.filename
        return None

    @property
    def video_path(self) -> str | None:
        for event in self.events:
            if isinstance(event, Video):
                return event.filename
        return None

    @property
    def video_offset(self) -> float:
        for event in self.events:
            if isinstance(event, Video):
                return event.start_time
        return 0

