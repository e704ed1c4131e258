class BeatmapDecodeError(ValueError):
    """Base class for every error raised while decoding a beatmap.

    Decoding never recovers from one of these: the first error aborts the
    whole decode and no partial beatmap is returned.
    """


class FormatError(BeatmapDecodeError):
    """The input is not a ``.osu`` beatmap at all.

    Raised for a missing or malformed ``osu file format v<N>`` header and,
    at the path boundary, for files with the wrong extension or files that
    do not exist.
    """


class ValidationError(BeatmapDecodeError):
    """A field parsed fine but holds a value that makes no sense, e.g. a
    time signature numerator below one.
    """


class ParseError(BeatmapDecodeError):
    """A field that should be numeric is not."""
