from __future__ import annotations

import logging
import warnings
from collections.abc import Sequence
from dataclasses import dataclass

from stepline.core.chart import AnyNote, TrackPosition, TrackValue
from stepline.lib.errors import UnterminatedTailWarning
from stepline.lib.types import Beats, Track

logger = logging.getLogger("stepline")


@dataclass(frozen=True)
class Tail:
    """The sustained body of a hold or roll.

    - `type`: `TrackPosition.HOLD_HEAD` or `TrackPosition.ROLL_HEAD`
    - `track`: the lane it sits on
    - `beat`: where the head is
    - `length`: beats from the head to the tail end
    - `terminated`: False if the chart never closed it"""
    type: TrackPosition
    track: Track
    beat: Beats
    length: Beats
    terminated: bool = True

    @property
    def end(self) -> Beats:
        return self.beat + self.length

    @property
    def is_hold(self) -> bool:
        return self.type == TrackPosition.HOLD_HEAD

    @property
    def is_roll(self) -> bool:
        return self.type == TrackPosition.ROLL_HEAD

    def contains(self, beat: Beats) -> bool:
        return self.beat <= beat <= self.end

    def __repr__(self) -> str:
        kind = "Hold" if self.is_hold else "Roll"
        open_marker = "" if self.terminated else " (unterminated)"
        return f"<{kind}Tail {self.track}@{self.beat:.3f}-{self.end:.3f}{open_marker}>"


def find_tail_end(notes: Sequence[AnyNote], track: Track, start: int) -> tuple[Beats, bool]:
    """Measure the tail whose head row is `notes[start]`, from the head row up
    to (not including) the row that closes it on `track`.

    Returns the length and whether a closing row was found. An unclosed tail
    runs to the end of the last row."""
    head = notes[start]
    end = head.beat
    for note in notes[start:]:
        if not isinstance(note, TrackValue):
            continue
        if note.tracks[track].is_tail_end:
            return note.beat - head.beat, True
        # Empty measures leave gaps between rows.
        end = note.beat + note.value
    return end - head.beat, False


def resolve_tails(notes: Sequence[AnyNote]) -> list[Tail]:
    """Find every hold/roll head in `notes` and measure its tail."""
    tails: list[Tail] = []
    for index, note in enumerate(notes):
        if not isinstance(note, TrackValue):
            continue
        for track, position in note.tracks.items():
            if not position.is_head:
                continue
            length, terminated = find_tail_end(notes, track, index)
            tail = Tail(position, track, note.beat, length, terminated)
            if not terminated:
                logger.warning(f"Found unterminated tail: {tail!r}")
                warnings.warn(f"{tail!r} never reaches a tail end", UnterminatedTailWarning, stacklevel=2)
            tails.append(tail)
    return tails
