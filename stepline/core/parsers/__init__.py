from .grid import TrackAutomaton, parse_grid
from .ssc import SSCParser, parse, parse_path

__all__ = [
    "TrackAutomaton",
    "parse_grid",
    "SSCParser",
    "parse",
    "parse_path"
]
