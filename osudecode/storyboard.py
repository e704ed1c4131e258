from __future__ import annotations

import logging
from enum import IntEnum
from itertools import chain
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, List, Sequence, Tuple

from .errors import ParseError, ValidationError
from .events import EventType
from .sections import classify_line, LineType, split_lines
from .utils import parse_float, parse_int

if TYPE_CHECKING:
    from .beatmap import BeatmapColors


log = logging.getLogger(__name__)


class LayerType(IntEnum):
    Background = 0
    Fail = 1
    Pass = 2
    Foreground = 3
    Overlay = 4

    @classmethod
    def _missing_(cls, value):
        return {
            "Background": LayerType.Background,
            "Fail": LayerType.Fail,
            "Failing": LayerType.Fail,
            "Pass": LayerType.Pass,
            "Passing": LayerType.Pass,
            "Foreground": LayerType.Foreground,
            "Overlay": LayerType.Overlay,
        }.get(value)


def _parse_layer(layer: str) -> LayerType:
    # Similar to event types, layers can be specified
    # as either integers or strings
    layer = layer.strip()
    value: int | str = int(layer) if layer.isdecimal() else layer
    try:
        return LayerType(value)
    except ValueError:
        raise ValidationError(f"Invalid layer provided, got {layer!r}")


class StoryboardCommand:
    """One command line of a storyboard object, e.g. `` F,0,1000,2000,0,1``.

    The parameters are kept as written; ``L`` (loop) and ``T`` (trigger)
    commands own the more deeply indented commands that follow them.
    """

    BLOCK_COMMANDS = frozenset(
        {"L", "T"}
    )
    COMMAND_TYPES = frozenset(
        {"F", "M", "MX", "MY", "S", "V", "R", "C", "P", "L", "T"}
    )

    def __init__(
        self,
        command_type: str,
        parameters: List[str],
        subcommands: List["StoryboardCommand"] | None = None,
    ) -> None:
        self.command_type = command_type
        self.parameters = parameters
        self.subcommands = [] if subcommands is None else subcommands

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {self.command_type},{','.join(self.parameters)}>"

    @property
    def is_block(self) -> bool:
        return self.command_type in self.BLOCK_COMMANDS

    @classmethod
    def parse_line(cls, data: str) -> Tuple["StoryboardCommand", int]:
        """Parse a command line.

        Returns
        -------
        command : StoryboardCommand
            The parsed command.
        indent_level : int
            The number of leading spaces or underscores.
        """
        stripped = data.lstrip(" _")
        indent_level = len(data) - len(stripped)
        command_type, *parameters = stripped.split(",")
        command_type = command_type.strip()
        if command_type not in cls.COMMAND_TYPES:
            raise ValidationError(f"unknown storyboard command {command_type!r}")
        return cls(command_type, [p.strip() for p in parameters]), indent_level


class StoryboardObject:
    def __init__(
        self,
        event_type: EventType,
        layer: LayerType,
        origin: str,
        filename: str,
        x_offset: float,
        y_offset: float,
        commands: List[StoryboardCommand] | None = None,
    ) -> None:
        self.event_type = event_type
        self.layer = layer
        self.origin = origin
        self.filename = filename
        self.x_offset = x_offset
        self.y_offset = y_offset
        self.commands = commands or []

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {self.filename!r} on {self.layer.name}>"

    @classmethod
    def parse_base_fields(
        cls,
        event_params: Sequence[str],
    ) -> Tuple[LayerType, str, str, float, float]:
        if len(event_params) < 5:
            raise ParseError(
                f"expected at least 5 params for {cls.__name__}, got {list(event_params)}"
            )

        layer, origin, filename, x_offset, y_offset, *_ = event_params
        return (
            _parse_layer(layer),
            origin.strip(),
            filename.strip().strip('"'),
            parse_float(x_offset, "x_offset"),
            parse_float(y_offset, "y_offset"),
        )


class Sprite(StoryboardObject):
    def __init__(
        self,
        layer: LayerType,
        origin: str,
        filename: str,
        x_offset: float,
        y_offset: float,
        commands: List[StoryboardCommand] | None = None,
    ) -> None:
        super().__init__(
            EventType.Sprite,
            layer,
            origin,
            filename,
            x_offset,
            y_offset,
            commands,
        )

    @classmethod
    def parse(cls, event_params: List[str]) -> "Sprite":
        layer, origin, filename, x_offset, y_offset = cls.parse_base_fields(event_params)
        return cls(layer, origin, filename, x_offset, y_offset)


class Animation(StoryboardObject):
    def __init__(
        self,
        layer: LayerType,
        origin: str,
        filename: str,
        x_offset: float,
        y_offset: float,
        frame_count: int,
        frame_delay: float,
        loop_type: str = "LoopForever",
        commands: List[StoryboardCommand] | None = None,
    ) -> None:
        super().__init__(
            EventType.Animation,
            layer,
            origin,
            filename,
            x_offset,
            y_offset,
            commands,
        )
        self.frame_count = frame_count
        self.frame_delay = frame_delay
        self.loop_type = loop_type

    @classmethod
    def parse(cls, event_params: List[str]) -> "Animation":
        layer, origin, filename, x_offset, y_offset = cls.parse_base_fields(event_params)
        if len(event_params) < 7:
            raise ParseError(
                "expected at least 7 params for Animation "
                "(layer, origin, filename, x, y, frame_count, frame_delay)"
            )

        loop_type = event_params[7].strip() if len(event_params) > 7 else "LoopForever"
        return cls(
            layer,
            origin,
            filename,
            x_offset,
            y_offset,
            parse_int(event_params[5], "frame_count"),
            parse_float(event_params[6], "frame_delay"),
            loop_type,
        )


class Sample:
    """A sound sample played by the storyboard."""

    def __init__(
        self,
        start_time: float,
        layer: LayerType,
        filename: str,
        volume: int = 100,
    ) -> None:
        self.event_type = EventType.Sample
        self.start_time = start_time
        self.layer = layer
        self.filename = filename
        self.volume = volume

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {self.filename!r} at {self.start_time:g}ms>"

    @classmethod
    def parse(cls, event_params: List[str]) -> "Sample":
        if len(event_params) < 3:
            raise ParseError(
                "expected start_time, layer, and filename parameters for Sample"
            )

        start_time, layer, filename, *rest = event_params
        volume = parse_int(rest[0], "volume") if rest else 100
        return cls(
            parse_float(start_time, "start_time"),
            _parse_layer(layer),
            filename.strip().strip('"'),
            volume,
        )


StoryboardElement = StoryboardObject | Sample


class Storyboard:
    """A decoded storyboard.

    Notes
    -----
    ``use_skin_sprites``, ``colors`` and ``file_format`` are declared in the
    ``.osu`` file outside of ``[Events]``. The beatmap decoder copies them
    over after decoding an embedded storyboard.
    """

    def __init__(self) -> None:
        self.layers: Dict[LayerType, List[StoryboardElement]] = {
            layer: [] for layer in LayerType
        }
        self.variables: Dict[str, str] = {}
        self.use_skin_sprites = False
        self.colors: "BeatmapColors | None" = None
        self.file_format = 14

    def __iter__(self) -> Iterator[StoryboardElement]:
        return chain.from_iterable(self.layers.values())

    def __len__(self) -> int:
        return sum(len(elements) for elements in self.layers.values())

    def __repr__(self) -> str:
        return f"<{type(self).__qualname__}: {len(self)} elements>"

    @property
    def samples(self) -> List[Sample]:
        return [element for element in self if isinstance(element, Sample)]


class _StoryboardContext:
    """The state of a single storyboard decode."""

    def __init__(self) -> None:
        self.storyboard = Storyboard()
        self.section = "Events"
        self.current_object: StoryboardObject | None = None
        self.command_stack: List[Tuple[int, StoryboardCommand]] = []


class StoryboardDecoder:
    """Decodes storyboard scripts.

    Used both for standalone ``.osb`` files and for the storyboard lines the
    beatmap decoder captured from ``[Events]``, which come without any
    section header.
    """

    def decode_from_string(self, data: str) -> Storyboard:
        data = data.removeprefix("\ufeff")
        return self.decode_from_lines(split_lines(data))

    def decode_from_lines(self, lines: Iterable[str]) -> Storyboard:
        """Decode storyboard lines.

        Raises
        ------
        ParseError
            Raised when a numeric field is not numeric or a line lacks fields.
        ValidationError
            Raised for unknown layers or commands.
        """
        context = _StoryboardContext()
        for line in lines:
            self._parse_line(line.rstrip(), context)

        return context.storyboard

    def _parse_line(self, line: str, context: _StoryboardContext) -> None:
        line_type = classify_line(line)
        if line_type in (LineType.Empty, LineType.Comment):
            return

        if line_type is LineType.Header:
            context.section = line.strip()[1:-1]
            context.current_object = None
            return

        if context.section == "Variables":
            self._parse_variable(line, context)
        elif context.section == "Events":
            self._parse_event(line, context)

    @staticmethod
    def _parse_variable(line: str, context: _StoryboardContext) -> None:
        name, sep, value = line.strip().partition("=")
        if not sep or not name.startswith("$"):
            raise ParseError(f"expected a variable in the form $name=value, got {line!r}")
        context.storyboard.variables[name] = value

    @staticmethod
    def _substitute(line: str, variables: Dict[str, str]) -> str:
        if "$" not in line:
            return line

        # longest first so that $ab is not replaced by the value of $a
        for name in sorted(variables, key=len, reverse=True):
            line = line.replace(name, variables[name])
        return line

    def _parse_event(self, line: str, context: _StoryboardContext) -> None:
        line = self._substitute(line, context.storyboard.variables)

        if line.startswith((" ", "_")):
            self._parse_command(line, context)
            return

        event_type_raw, *event_params = line.split(",")
        event_type = EventType.from_field(event_type_raw)
        context.current_object = None
        context.command_stack = []

        if event_type in (EventType.Sprite, EventType.Animation):
            obj: StoryboardObject
            if event_type is EventType.Sprite:
                obj = Sprite.parse(event_params)
            else:
                obj = Animation.parse(event_params)
            context.storyboard.layers[obj.layer].append(obj)
            context.current_object = obj
        elif event_type is EventType.Sample:
            sample = Sample.parse(event_params)
            context.storyboard.layers[sample.layer].append(sample)
        else:
            log.debug("ignoring non-storyboard event line %r", line)

    @staticmethod
    def _parse_command(line: str, context: _StoryboardContext) -> None:
        storyboard_object = context.current_object
        if storyboard_object is None:
            log.debug("ignoring storyboard command without an object: %r", line)
            return

        command, indent_level = StoryboardCommand.parse_line(line)
        stack = context.command_stack

        while stack and indent_level <= stack[-1][0]:
            stack.pop()

        if stack:
            stack[-1][1].subcommands.append(command)
        else:
            storyboard_object.commands.append(command)

        if command.is_block:
            stack.append((indent_level, command))
