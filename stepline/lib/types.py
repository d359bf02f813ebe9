"""
These are meant for clarity ONLY.
They don't differentiate between different identical aliases.
They do no bounds checking.
It's just for readability in function signatures.
"""

from typing import Literal


type Seconds = float
type Milliseconds = float
type Beats = float
type BPM = float

type Track = Literal["left", "down", "up", "right"]
TRACKS: tuple[Track, ...] = ("left", "down", "up", "right")
