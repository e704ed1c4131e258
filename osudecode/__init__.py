from .beatmap import Beatmap, GameMode
from .control_points import (
    ControlPointCollection,
    ControlPointGroup,
    DifficultyPoint,
    EffectPoint,
    SamplePoint,
    SampleSet,
    TimingPoint,
)
from .decoder import BeatmapDecoder, decode, decode_path
from .errors import BeatmapDecodeError, FormatError, ParseError, ValidationError
from .hit_objects import Circle, HitObject, HoldNote, Position, Slider, Spinner
from .sections import ParsingOptions
from .storyboard import Storyboard, StoryboardDecoder

__version__ = "0.1.0"

__all__ = [
    "Beatmap",
    "BeatmapDecoder",
    "BeatmapDecodeError",
    "Circle",
    "ControlPointCollection",
    "ControlPointGroup",
    "DifficultyPoint",
    "EffectPoint",
    "FormatError",
    "GameMode",
    "HitObject",
    "HoldNote",
    "ParseError",
    "ParsingOptions",
    "Position",
    "SamplePoint",
    "SampleSet",
    "Slider",
    "Spinner",
    "Storyboard",
    "StoryboardDecoder",
    "TimingPoint",
    "ValidationError",
    "decode",
    "decode_path",
]
