from __future__ import annotations

import logging

from stepline.core.chart import TrackPosition, Tracks, TrackValue
from stepline.lib.errors import MalformedChartError, UnknownCellCodeError
from stepline.lib.types import Beats, Track, TRACKS

logger = logging.getLogger("stepline")

BEATS_PER_MEASURE = 4


class TrackAutomaton:
    """The note grammar of a single lane.

    What a cell means depends on the cell before it on the same lane:
    a `0` inside an open hold or roll is that hold or roll's body, and
    a `3` closes whichever one is open. Feed cells in row order."""
    def __init__(self, track: Track | None = None) -> None:
        self.track = track
        self.state = TrackPosition.EMPTY

    def reset(self) -> None:
        self.state = TrackPosition.EMPTY

    def feed(self, code: str, beat: Beats | None = None) -> TrackPosition:
        previous = self.state
        match code:
            case "0":
                if previous.in_hold:
                    position = TrackPosition.HOLD_TAIL
                elif previous.in_roll:
                    position = TrackPosition.ROLL_TAIL
                else:
                    position = TrackPosition.EMPTY
            case "1":
                position = TrackPosition.STEP
            case "2":
                position = TrackPosition.HOLD_HEAD
            case "3" if previous.in_hold:
                position = TrackPosition.HOLD_TAIL_END
            case "3" if previous.in_roll:
                position = TrackPosition.ROLL_TAIL_END
            case "4":
                position = TrackPosition.ROLL_HEAD
            case "M":
                position = TrackPosition.MINE
            case _:
                # Includes a `3` with nothing open to close.
                raise UnknownCellCodeError(code, previous, self.track, beat)
        self.state = position
        return position


def split_measures(notes_data: str) -> list[list[str]]:
    """Split raw note data into measures of non-blank rows.

    An empty measure still takes up its four beats, so it is kept as an
    empty list. Only an empty segment after the final comma is dropped."""
    measures = []
    for measure in notes_data.split(","):
        rows = [row.strip() for row in measure.splitlines()]
        measures.append([row for row in rows if row])
    if len(measures) > 1 and not measures[-1]:
        measures.pop()
    return measures


def parse_grid(notes_data: str) -> list[TrackValue]:
    """Decode a note grid into one `TrackValue` per row.

    Each measure spans four beats, split evenly between its rows. Only the
    first four columns are read; any extra (doubles) columns are ignored."""
    automata = [TrackAutomaton(track) for track in TRACKS]
    notes: list[TrackValue] = []
    current_beat: Beats = 0.0

    for measure in split_measures(notes_data):
        if not measure:
            logger.debug(f"Empty measure at beat {current_beat:.3f}.")
            current_beat += BEATS_PER_MEASURE
            continue
        row_value = BEATS_PER_MEASURE / len(measure)
        for row in measure:
            if len(row) < len(TRACKS):
                raise MalformedChartError("NOTES", f"Row '{row}' at beat {current_beat:.3f} has fewer than {len(TRACKS)} columns.")
            positions = [automaton.feed(code, current_beat) for automaton, code in zip(automata, row)]
            notes.append(TrackValue(current_beat, row_value, Tracks(*positions)))
            current_beat += row_value

    return notes
