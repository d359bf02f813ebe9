from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from stepline.lib.types import BPM, Beats, Milliseconds, Seconds, Track, TRACKS


class TrackPosition(StrEnum):
    EMPTY = "none"
    STEP = "step"
    HOLD_HEAD = "hold_head"
    HOLD_TAIL = "hold_tail"
    HOLD_TAIL_END = "hold_tail_end"
    ROLL_HEAD = "roll_head"
    ROLL_TAIL = "roll_tail"
    ROLL_TAIL_END = "roll_tail_end"
    MINE = "mine"

    @property
    def is_head(self) -> bool:
        return self in (TrackPosition.HOLD_HEAD, TrackPosition.ROLL_HEAD)

    @property
    def is_tail_end(self) -> bool:
        return self in (TrackPosition.HOLD_TAIL_END, TrackPosition.ROLL_TAIL_END)

    @property
    def is_playable(self) -> bool:
        """Can this cell be judged against player input?"""
        return self in (TrackPosition.STEP, TrackPosition.HOLD_HEAD, TrackPosition.ROLL_HEAD)

    @property
    def in_hold(self) -> bool:
        return self in (TrackPosition.HOLD_HEAD, TrackPosition.HOLD_TAIL)

    @property
    def in_roll(self) -> bool:
        return self in (TrackPosition.ROLL_HEAD, TrackPosition.ROLL_TAIL)


@dataclass(frozen=True)
class Tracks:
    """One grid row, a `TrackPosition` per lane."""
    left: TrackPosition = TrackPosition.EMPTY
    down: TrackPosition = TrackPosition.EMPTY
    up: TrackPosition = TrackPosition.EMPTY
    right: TrackPosition = TrackPosition.EMPTY

    def __getitem__(self, track: Track) -> TrackPosition:
        if track not in TRACKS:
            raise KeyError(track)
        return getattr(self, track)

    def items(self) -> Iterator[tuple[Track, TrackPosition]]:
        for track in TRACKS:
            yield track, self[track]

    @property
    def has_playable(self) -> bool:
        return any(p.is_playable for _, p in self.items())

    def __repr__(self) -> str:
        return "<Tracks " + " ".join(f"{t[0].upper()}:{p}" for t, p in self.items() if p != TrackPosition.EMPTY) + ">"


@dataclass(frozen=True)
class Note:
    """Something that happens at a beat on a chart.

    - `beat: float`: absolute position in beats.
    - `value: float`: meaning depends on the kind of note, see the subclasses."""
    beat: Beats
    value: float

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}@{self.beat:.3f} v:{self.value:g}>"

    def __str__(self) -> str:
        return self.__repr__()


@dataclass(frozen=True, repr=False)
class Offset(Note):
    """Shifts the current beat by `value` when reached."""


@dataclass(frozen=True, repr=False)
class SetBPM(Note):
    """Changes the tempo to `value` beats per minute."""

    @property
    def bpm(self) -> BPM:
        return self.value


@dataclass(frozen=True, repr=False)
class Stop(Note):
    """Pauses the clock for `value` seconds."""

    @property
    def duration(self) -> Seconds:
        return self.value


@dataclass(frozen=True, repr=False)
class TrackValue(Note):
    """A playable grid row. `value` is the row's width in beats."""
    tracks: Tracks = field(default_factory=Tracks)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}@{self.beat:.3f} w:{self.value:g} {self.tracks!r}>"


type ControlNote = Offset | SetBPM | Stop
type AnyNote = Offset | SetBPM | Stop | TrackValue


@dataclass(frozen=True)
class ChartLevel:
    label: str
    meter: int
    notes: tuple[AnyNote, ...]

    @property
    def track_values(self) -> list[TrackValue]:
        return [n for n in self.notes if isinstance(n, TrackValue)]

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.label} ({self.meter}) {len(self.notes)} notes>"


@dataclass(frozen=True)
class Chart:
    """A parsed song and all of its difficulty levels.

    Media paths are already joined onto the chart's directory.
    `levels` are sorted by meter, easiest first."""
    title: str
    music: Path
    levels: tuple[ChartLevel, ...]
    subtitle: str | None = None
    artist: str = ""
    genre: str | None = None
    author: str = ""
    background: Path | None = None
    banner: Path | None = None
    lyrics: Path | None = None
    cd_image: Path | None = None
    sample_start: Milliseconds = 0
    sample_end: Milliseconds = 0
    selectable: bool = True

    @property
    def sample_level(self) -> str:
        return self.levels[0].label if self.levels else ""

    def get_level(self, label: str) -> ChartLevel | None:
        for level in self.levels:
            if level.label.lower() == label.lower():
                return level
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.title}' [{', '.join(l.label for l in self.levels)}]>"
