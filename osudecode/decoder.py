"""Decoding of whole ``.osu`` files.

:class:`BeatmapDecoder` drives one pass over the lines of a beatmap. It
checks the version header, routes every line to the handler of its section,
then finishes the beatmap: the last control point group is flushed, hit
objects pick up their defaults and get sorted, and the storyboard lines
captured from ``[Events]`` are decoded.
"""
from __future__ import annotations

import logging
import os
import pathlib
from datetime import datetime
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Union

from .beatmap import Beatmap
from .errors import BeatmapDecodeError, FormatError
from .handlers import (
    handle_colours_line,
    handle_difficulty_line,
    handle_editor_line,
    handle_event_line,
    handle_general_line,
    handle_hit_object_line,
    handle_metadata_line,
)
from .sections import (
    LineType,
    OptionsLike,
    ParsingOptions,
    Section,
    classify_line,
    header_section,
    parse_version_header,
    preprocess_line,
    split_lines,
)
from .storyboard import StoryboardDecoder
from .timing import TimingPointDecoder


log = logging.getLogger(__name__)

#: Beatmaps of this version and older are 24ms early.
LEGACY_OFFSET_VERSION = 4
LEGACY_OFFSET = 24


def legacy_offset(version: int) -> float:
    """The offset added to every time in a beatmap of ``version``."""
    return LEGACY_OFFSET if version <= LEGACY_OFFSET_VERSION else 0


class DecodeContext:
    """The mutable state of one decode.

    A context is created at the start of a decode and dropped when it
    returns, so a decoder can be reused and decodes never see each other's
    state.

    Parameters
    ----------
    beatmap : Beatmap
        The beatmap being filled in.
    options : ParsingOptions
        Which sections get decoded.
    """

    def __init__(self, beatmap: Beatmap, options: ParsingOptions) -> None:
        self.beatmap = beatmap
        self.options = options
        self.enabled_sections: FrozenSet[Section] = options.enabled_sections
        self.section: Section | None = None
        self.offset = legacy_offset(beatmap.file_format)
        self.storyboard_lines: List[str] | None = (
            [] if options.should_parse_storyboard else None
        )
        self.timing_points = TimingPointDecoder(beatmap.control_points)


def _decode_general(line: str, context: DecodeContext) -> None:
    handle_general_line(line, context.beatmap, context.offset)


def _decode_editor(line: str, context: DecodeContext) -> None:
    handle_editor_line(line, context.beatmap)


def _decode_metadata(line: str, context: DecodeContext) -> None:
    handle_metadata_line(line, context.beatmap)


def _decode_difficulty(line: str, context: DecodeContext) -> None:
    handle_difficulty_line(line, context.beatmap)


def _decode_events(line: str, context: DecodeContext) -> None:
    handle_event_line(line, context.beatmap, context.storyboard_lines, context.offset)


def _decode_timing_points(line: str, context: DecodeContext) -> None:
    context.timing_points.handle_line(line, context.offset)


def _decode_colours(line: str, context: DecodeContext) -> None:
    handle_colours_line(line, context.beatmap)


def _decode_hit_objects(line: str, context: DecodeContext) -> None:
    handle_hit_object_line(line, context.beatmap, context.offset)


def _ignore(line: str, context: DecodeContext) -> None:
    pass


_SECTION_HANDLERS: Dict[Section, Callable[[str, DecodeContext], None]] = {
    Section.General: _decode_general,
    Section.Editor: _decode_editor,
    Section.Metadata: _decode_metadata,
    Section.Difficulty: _decode_difficulty,
    Section.Events: _decode_events,
    Section.TimingPoints: _decode_timing_points,
    Section.Colours: _decode_colours,
    Section.HitObjects: _decode_hit_objects,
    Section.Unknown: _ignore,
}


class BeatmapDecoder:
    """Decodes beatmaps in the ``.osu`` format.

    The decoder keeps no state between calls; every method may be called
    any number of times, from any number of threads.
    """

    def decode_from_path(
        self,
        path: Union[str, os.PathLike],
        options: OptionsLike = None,
    ) -> Beatmap:
        """Read in a ``Beatmap`` object from a file on disk.

        Parameters
        ----------
        path : str or pathlib.Path
            The path to the ``.osu`` file to read from.
        options : ParsingOptions or bool, optional
            Which sections to decode. A bool only toggles the storyboard.

        Returns
        -------
        beatmap : Beatmap
            The parsed beatmap, with ``file_update_date`` set to the
            modification time of the file.

        Raises
        ------
        FormatError
            Raised when the path does not name an existing ``.osu`` file.
            Any other failure while reading or decoding that is not a
            ``BeatmapDecodeError`` is also re-raised as a ``FormatError``.
        BeatmapDecodeError
            Raised when the contents cannot be decoded. The error has the
            same class as the underlying one.
        """
        path = pathlib.Path(path)
        if path.suffix != ".osu":
            raise FormatError(f"only .osu files are supported, got {str(path)!r}")

        if not path.is_file():
            raise FormatError(f"beatmap file does not exist: {str(path)!r}")

        try:
            with open(path, encoding="utf-8-sig") as file:
                beatmap = self.decode_from_string(file.read(), options)
            beatmap.file_update_date = datetime.fromtimestamp(path.stat().st_mtime)
        except BeatmapDecodeError as e:
            raise type(e)(f"failed to decode beatmap: {e}") from e
        except Exception as e:
            raise FormatError(f"failed to decode beatmap: {e}") from e

        return beatmap

    def decode_from_bytes(self, data: bytes, options: OptionsLike = None) -> Beatmap:
        """Decode UTF-8 encoded beatmap data. A byte order mark is allowed.

        Raises
        ------
        FormatError
            Raised when ``data`` is not valid UTF-8.
        """
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise FormatError(f"beatmap data is not valid UTF-8: {e}") from e

        return self.decode_from_string(text, options)

    def decode_from_string(self, data: str, options: OptionsLike = None) -> Beatmap:
        """Decode beatmap text, splitting it on any line ending."""
        return self.decode_from_lines(split_lines(data.removeprefix("\ufeff")), options)

    def decode_from_lines(
        self,
        lines: Iterable[str],
        options: OptionsLike = None,
    ) -> Beatmap:
        """Decode a beatmap from its lines.

        Parameters
        ----------
        lines : iterable[str]
            The lines of the ``.osu`` file. Trailing line endings are
            ignored.
        options : ParsingOptions or bool, optional
            Which sections to decode. A bool only toggles the storyboard.

        Returns
        -------
        beatmap : Beatmap
            The decoded beatmap.

        Raises
        ------
        FormatError
            Raised when the first non-blank line is not an
            ``osu file format v<N>`` header.
        ValidationError
            Raised when a field holds a value that is not allowed.
        ParseError
            Raised when a field is missing or not a number.
        """
        options = ParsingOptions.coerce(options)
        lines = iter(lines)

        version = self._read_version(lines)
        log.debug("decoding beatmap of format version %d", version)

        beatmap = Beatmap(file_format=version)
        context = DecodeContext(beatmap, options)

        for line in lines:
            self._decode_line(line, context)

        # the last group is only committed by an explicit flush
        context.timing_points.flush()

        control_points = beatmap.control_points
        difficulty = beatmap.difficulty
        sample_set = beatmap.general.sample_set
        for hit_object in beatmap.hit_objects:
            hit_object.apply_defaults(control_points, difficulty, sample_set)

        # list.sort is stable so objects that start together keep file order
        beatmap.hit_objects.sort(key=lambda hit_object: hit_object.start_time)

        if context.storyboard_lines:
            self._decode_storyboard(context.storyboard_lines, beatmap)

        log.debug(
            "decoded %r: %d hit objects, %d control point groups, %d events",
            beatmap,
            len(beatmap.hit_objects),
            len(beatmap.control_points),
            len(beatmap.events),
        )
        return beatmap

    @staticmethod
    def _read_version(lines: Iterator[str]) -> int:
        for line in lines:
            if not line.strip():
                continue

            version = parse_version_header(line)
            if version is None:
                raise FormatError(
                    f"expected an 'osu file format v<N>' header, got {line.strip()!r}",
                )
            return version

        raise FormatError("beatmap data is empty")

    @staticmethod
    def _decode_line(raw_line: str, context: DecodeContext) -> None:
        line = preprocess_line(raw_line, context.section)
        line_type = classify_line(line)

        if line_type in (LineType.Empty, LineType.Comment):
            return

        if line_type is LineType.Header:
            context.section = header_section(line)
            if context.section is Section.Unknown:
                log.debug("ignoring unknown section %s", line.strip())
            return

        if context.section is None:
            log.debug("ignoring line outside of any section: %r", line)
            return

        if parse_version_header(line) is not None:
            log.debug("ignoring repeated version header %r", line)
            return

        if context.section not in context.enabled_sections:
            return

        _SECTION_HANDLERS[context.section](line, context)

    @staticmethod
    def _decode_storyboard(lines: List[str], beatmap: Beatmap) -> None:
        events = beatmap.events
        events.storyboard_lines = lines

        storyboard = StoryboardDecoder().decode_from_lines(lines)
        # the storyboard decoder never sees [General] or [Colours]
        storyboard.use_skin_sprites = beatmap.general.use_skin_sprites
        storyboard.colors = beatmap.colors
        storyboard.file_format = beatmap.file_format
        events.storyboard = storyboard


def decode(
    text_or_lines: Union[str, bytes, Iterable[str]],
    options: OptionsLike = None,
) -> Beatmap:
    """Decode a beatmap.

    Parameters
    ----------
    text_or_lines : str, bytes or iterable[str]
        The whole ``.osu`` file as text or UTF-8 bytes, or its lines.
    options : ParsingOptions or bool, optional
        Which sections to decode. A bool only toggles the storyboard.

    Returns
    -------
    beatmap : Beatmap
        The decoded beatmap.
    """
    decoder = BeatmapDecoder()
    if isinstance(text_or_lines, str):
        return decoder.decode_from_string(text_or_lines, options)
    if isinstance(text_or_lines, (bytes, bytearray)):
        return decoder.decode_from_bytes(bytes(text_or_lines), options)
    return decoder.decode_from_lines(text_or_lines, options)


def decode_path(path: Union[str, os.PathLike], options: OptionsLike = None) -> Beatmap:
    """Decode the ``.osu`` file at ``path``.

    See :meth:`BeatmapDecoder.decode_from_path`.
    """
    return BeatmapDecoder().decode_from_path(path, options)
