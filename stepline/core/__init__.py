from .chart import TrackPosition, Tracks, Note, Offset, SetBPM, Stop, TrackValue, ChartLevel, Chart
from .tails import Tail, resolve_tails
from .judgement import Judgement, DropPolicy, TimingWindow, ScoringSystem, STANDARD_TIMING_WINDOWS
from .config import GameConfig, load_config
from .input import InputProbe, LaneState
from .results import Results
from .engine import NoteState, TailMeta, RhythmEngine
from .parsers import SSCParser, parse, parse_path


__all__ = [
    "TrackPosition",
    "Tracks",
    "Note",
    "Offset",
    "SetBPM",
    "Stop",
    "TrackValue",
    "ChartLevel",
    "Chart",
    "Tail",
    "resolve_tails",
    "Judgement",
    "DropPolicy",
    "TimingWindow",
    "ScoringSystem",
    "STANDARD_TIMING_WINDOWS",
    "GameConfig",
    "load_config",
    "InputProbe",
    "LaneState",
    "Results",
    "NoteState",
    "TailMeta",
    "RhythmEngine",
    "SSCParser",
    "parse",
    "parse_path"
]
