from __future__ import annotations

import re
from enum import Enum, unique
from typing import FrozenSet, List, Union


@unique
class Section(Enum):
    """The bracketed sections of a ``.osu`` file.

    ``Unknown`` stands for any bracketed name not listed here; lines inside
    such a section are ignored.
    """

    General = "General"
    Editor = "Editor"
    Metadata = "Metadata"
    Difficulty = "Difficulty"
    Events = "Events"
    TimingPoints = "TimingPoints"
    Colours = "Colours"
    HitObjects = "HitObjects"
    Unknown = "Unknown"

    @classmethod
    def from_header(cls, name: str) -> "Section":
        try:
            section = cls(name)
        except ValueError:
            return cls.Unknown
        return section


@unique
class LineType(Enum):
    Empty = "empty"
    Comment = "comment"
    Header = "header"
    Data = "data"


_version_regex = re.compile(r"^osu file format v(\d+)$")
_line_ending_regex = re.compile(r"\r\n|\r|\n")


def parse_version_header(line: str) -> int | None:
    """Get the format version from an ``osu file format v<N>`` line.

    A leading byte order mark and surrounding whitespace are ignored.

    Returns
    -------
    version : int or None
        The declared version, or None if ``line`` is not a version header.
    """
    match = _version_regex.match(line.removeprefix("\ufeff").strip())
    if match is None:
        return None
    return int(match.group(1))


def split_lines(data: str) -> List[str]:
    """Split text on CRLF, CR or LF.

    Other characters that ``str.splitlines`` treats as line boundaries, such
    as form feeds or ``\\u2028``, are ordinary text in a beatmap.
    """
    return _line_ending_regex.split(data)


def classify_line(line: str) -> LineType:
    """Classify one preprocessed line."""
    stripped = line.strip()
    if not stripped:
        return LineType.Empty

    if stripped.startswith("//"):
        return LineType.Comment

    if stripped[0] == "[" and stripped[-1] == "]":
        return LineType.Header

    return LineType.Data


def header_section(line: str) -> Section:
    """The section named by a header line such as ``[General]``."""
    return Section.from_header(line.strip()[1:-1])


def preprocess_line(line: str, section: Section | None) -> str:
    """Strip the whitespace that carries no meaning in ``section``.

    Leading whitespace is kept in ``[Events]`` because it nests storyboard
    commands.
    """
    if section is Section.Events:
        return line.rstrip()
    return line.strip()


class ParsingOptions:
    """Which sections of a beatmap get decoded.

    Every flag defaults to ``True``. ``[Colours]`` is always decoded, and
    lines of unknown sections always reach their no-op handler.

    Parameters
    ----------
    parse_general : bool, optional
    parse_editor : bool, optional
    parse_metadata : bool, optional
    parse_difficulty : bool, optional
    parse_events : bool, optional
    parse_timing_points : bool, optional
    parse_hit_objects : bool, optional
    parse_storyboard : bool, optional
        Capture and decode the storyboard embedded in ``[Events]``. This only
        takes effect when ``parse_events`` is enabled too.
    """

    def __init__(
        self,
        *,
        parse_general: bool = True,
        parse_editor: bool = True,
        parse_metadata: bool = True,
        parse_difficulty: bool = True,
        parse_events: bool = True,
        parse_timing_points: bool = True,
        parse_hit_objects: bool = True,
        parse_storyboard: bool = True,
    ) -> None:
        self.parse_general = parse_general
        self.parse_editor = parse_editor
        self.parse_metadata = parse_metadata
        self.parse_difficulty = parse_difficulty
        self.parse_events = parse_events
        self.parse_timing_points = parse_timing_points
        self.parse_hit_objects = parse_hit_objects
        self.parse_storyboard = parse_storyboard

    def __repr__(self) -> str:
        flags = ", ".join(f"{name}={value}" for name, value in vars(self).items())
        return f"{type(self).__qualname__}({flags})"

    @classmethod
    def coerce(cls, options: "ParsingOptions | bool | None") -> "ParsingOptions":
        """Normalize the ``options`` argument of the decode functions.

        A bare bool only sets ``parse_storyboard``.
        """
        if options is None:
            return cls()
        if isinstance(options, bool):
            return cls(parse_storyboard=options)
        return options

    @property
    def should_parse_storyboard(self) -> bool:
        return self.parse_storyboard and self.parse_events

    @property
    def enabled_sections(self) -> FrozenSet[Section]:
        flags = {
            Section.General: self.parse_general,
            Section.Editor: self.parse_editor,
            Section.Metadata: self.parse_metadata,
            Section.Difficulty: self.parse_difficulty,
            Section.Events: self.parse_events,
            Section.TimingPoints: self.parse_timing_points,
            Section.Colours: True,
            Section.HitObjects: self.parse_hit_objects,
            Section.Unknown: True,
        }
        return frozenset(section for section, enabled in flags.items() if enabled)


OptionsLike = Union[ParsingOptions, bool, None]
