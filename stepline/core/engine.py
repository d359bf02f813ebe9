from __future__ import annotations

import dataclasses
import logging
import warnings
from dataclasses import dataclass
from operator import attrgetter
from typing import Any

from stepline.core.chart import AnyNote, Chart, ChartLevel, Offset, SetBPM, Stop, TrackValue
from stepline.core.config import GameConfig
from stepline.core.input import InputProbe
from stepline.core.judgement import Judgement, ScoringSystem
from stepline.core.results import Results
from stepline.core.tails import Tail, resolve_tails
from stepline.lib.errors import InvalidLevelIndexError, UnmatchedTailHeadWarning
from stepline.lib.signals import (BeatUpdateEvent, ComboChangeEvent, FinishedEvent, HitEvent, Listener, MissCause,
                                  MissEvent, PauseStateEvent, ScoreChangeEvent, Signal, SignalHub, TailUpdateEvent,
                                  TempoChangeEvent)
from stepline.lib.types import BPM, Beats, Milliseconds, Track, TRACKS

logger = logging.getLogger("stepline")


@dataclass
class NoteState:
    hit: bool = False
    missed: bool = False
    judgement: Judgement | None = None

    @property
    def resolved(self) -> bool:
        return self.hit or self.missed


@dataclass
class TailMeta:
    active: bool = True
    available: bool = True
    holding: bool = False
    dropped: bool = False
    completed: bool = False


class RhythmEngine:
    def __init__(self, config: GameConfig | None = None):
        """Judges player input against a loaded chart level, one frame at a time.

        Nothing here runs on its own: the caller drives it with `update()`
        every frame and `handle_input()` on every lane press, and listens to
        the results through `on()`."""
        self.config = config or GameConfig()
        self.scoring = ScoringSystem(self.config.timing_windows, self.config.hold_tick_score, self.config.drop_policy)
        self.signals = SignalHub()

        self.chart: Chart | None = None
        self.level: ChartLevel | None = None

        # Clock
        self.bpm: BPM = self.config.initial_bpm
        self.current_beat: Beats = 0
        self.next_beat: Beats = 0
        self.chart_index: int = 0
        self.stop_until: Milliseconds | None = None
        self.paused = False
        self.is_playing = False
        self.is_finished = False

        # Chart data, read only once loaded
        self.notes: list[AnyNote] = []
        self.tails: list[Tail] = []
        self.tail_head_indices: list[int] = []

        # Runtime state, index-matched to the lists above
        self.note_states: list[NoteState] = []
        self.tail_meta: list[TailMeta] = []

    # --- Signals ---
    def on[L: Listener](self, signal: Signal | str, listener: L) -> L:
        return self.signals.on(signal, listener)

    def off(self, signal: Signal | str, listener: Listener) -> None:
        self.signals.off(signal, listener)

    # --- Lifecycle ---
    def load_chart(self, chart: Chart, level_index: int) -> None:
        if not 0 <= level_index < len(chart.levels):
            logger.error(f"Invalid difficulty index {level_index} for {chart!r}")
            raise InvalidLevelIndexError(level_index, len(chart.levels))
        level = chart.levels[level_index]

        self.chart = chart
        self.level = level
        # Control notes and grid rows come out of the parser separately.
        # sorted() is stable, so control notes stay ahead of a row on the same beat.
        self.notes = sorted(level.notes, key=attrgetter("beat"))
        self.tails = resolve_tails(self.notes)
        self.tail_head_indices = [self._find_head_index(tail) for tail in self.tails]

        self.reset()
        logger.info(f"Loaded {chart.title} [{level.label}]: {len(self.notes)} notes, {len(self.tails)} tails.")

    def _find_head_index(self, tail: Tail) -> int:
        for i, note in enumerate(self.notes):
            if isinstance(note, TrackValue) and note.beat == tail.beat and note.tracks[tail.track] == tail.type:
                return i
        logger.warning(f"No head note found for {tail!r}")
        warnings.warn(f"{tail!r} has no matching head note", UnmatchedTailHeadWarning, stacklevel=3)
        return -1

    def start(self) -> None:
        if self.is_finished:
            logger.debug("Chart already finished, reset() before starting again.")
            return
        self.is_playing = True

    def stop(self) -> None:
        self.is_playing = False

    def reset(self) -> None:
        self.is_playing = False
        self.is_finished = False
        self.bpm = self.config.initial_bpm
        self.current_beat = 0
        self.next_beat = 0
        self.chart_index = 0
        self.stop_until = None
        self.paused = False
        self.scoring.reset()

        self.note_states = [NoteState() for _ in self.notes]
        self.tail_meta = [TailMeta() for _ in self.tails]

        self.signals.emit(ScoreChangeEvent(0))
        self.signals.emit(ComboChangeEvent(0, 0))

    # --- Main update loop ---
    def update(self, delta_time: Milliseconds, clock_time: Milliseconds, input_probe: InputProbe) -> None:
        """Step the simulation.

        `delta_time` is the time since the last update, `clock_time` the
        current wall/audio clock, both in milliseconds."""
        if not self.is_playing or self.is_finished:
            return

        self._advance_beat(delta_time, clock_time)
        self._check_misses()
        self._check_holds(delta_time, input_probe)
        self._check_finished()

    @property
    def ms_per_beat(self) -> Milliseconds:
        return 60000 / self.bpm

    def time_until(self, beat: Beats) -> Milliseconds:
        """Signed distance from the current beat to `beat` at the current tempo. Negative means late."""
        return (beat - self.current_beat) * self.ms_per_beat

    def _pause_blocks(self, clock_time: Milliseconds) -> bool:
        return self.stop_until is not None and self.stop_until > clock_time

    def _advance_beat(self, delta_time: Milliseconds, clock_time: Milliseconds) -> None:
        if self._pause_blocks(clock_time):
            self.paused = True
            self.signals.emit(PauseStateEvent(True))
            return
        if self.stop_until is not None:
            self.stop_until = None
            if self.paused:
                self.paused = False
                self.signals.emit(PauseStateEvent(False))

        if self.current_beat >= self.next_beat:
            self._drain_notes(clock_time)

        # A STOP drained just now holds the beat where it is.
        if not self._pause_blocks(clock_time):
            self.current_beat += self.bpm / 60000 * delta_time
            self.signals.emit(BeatUpdateEvent(self.current_beat))

    def _drain_notes(self, clock_time: Milliseconds) -> None:
        """Apply due control notes, up to and including the next grid row."""
        while self.chart_index < len(self.notes):
            note = self.notes[self.chart_index]
            # Past an empty measure; wait for the beat to reach the next note.
            if note.beat > self.next_beat:
                self.next_beat = note.beat
                break
            self.chart_index += 1
            match note:
                case Offset():
                    self.current_beat += note.value
                case SetBPM():
                    if note.bpm <= 0:
                        logger.warning(f"Ignoring non-positive tempo change {note!r}")
                        continue
                    self.bpm = note.bpm
                    self.signals.emit(TempoChangeEvent(self.bpm))
                case Stop():
                    self.stop_until = clock_time + note.duration * 1000
                case TrackValue():
                    self.next_beat += note.value
                    break

    def _check_misses(self) -> None:
        for i, note in enumerate(self.notes):
            state = self.note_states[i]
            if state.resolved or not isinstance(note, TrackValue):
                continue
            # Notes are beat-sorted, so nothing after this one is late either.
            if self.time_until(note.beat) >= -self.config.miss_window:
                break

            state.missed = True
            if not note.tracks.has_playable:
                continue

            self.scoring.add_miss()
            self.signals.emit(MissEvent(MissCause.TIMEOUT, note_index=i))
            self._emit_score_state()

            # A missed head takes its tails with it.
            for tail_index, head_index in enumerate(self.tail_head_indices):
                if head_index == i:
                    self._update_tail(tail_index, active=False)

    def _check_holds(self, delta_time: Milliseconds, input_probe: InputProbe) -> None:
        for index, tail in enumerate(self.tails):
            meta = self.tail_meta[index]
            if meta.dropped or meta.completed:
                continue

            head_index = self.tail_head_indices[index]
            if head_index == -1:
                if meta.active:
                    self._update_tail(index, active=False, available=False)
                continue

            head = self.note_states[head_index]
            if head.missed:
                if meta.active:
                    self._update_tail(index, active=False)
                continue

            if head.hit and self.current_beat > tail.end:
                self._update_tail(index, holding=False, available=False, completed=True)
                continue

            # Rolls are kept alive by tapping, see handle_input().
            if not tail.is_hold:
                continue

            if tail.contains(self.current_beat):
                if not head.hit:
                    continue
                if input_probe.is_down(tail.track):
                    if not meta.holding:
                        self._update_tail(index, holding=True)
                    self.scoring.add_hold_tick(delta_time)
                    self.signals.emit(ScoreChangeEvent(self.scoring.score))
                elif self.current_beat > tail.beat + self.config.hold_grace_beats:
                    self._update_tail(index, holding=False, dropped=True, active=False, available=False)
                    if self.scoring.dropped_hold():
                        self._emit_score_state()
            elif meta.holding:
                self._update_tail(index, holding=False)

    def _check_finished(self) -> None:
        if self.chart_index < len(self.notes):
            return
        for note, state in zip(self.notes, self.note_states):
            if isinstance(note, TrackValue) and not state.resolved:
                return
        if any(self.current_beat <= tail.end for tail in self.tails):
            return

        self.is_finished = True
        self.is_playing = False
        logger.info(f"Finished with {self.scoring!r}")
        self.signals.emit(FinishedEvent())

    # --- Input ---
    def handle_input(self, track: Track) -> None:
        """Judge one lane press."""
        if not self.is_playing:
            return
        if track not in TRACKS:
            logger.warning(f"Ignoring input on unknown track '{track}'")
            return

        # 1. Hit the next note on this lane, if it's close enough
        note_index = self._next_judgeable_note(track)
        if note_index != -1:
            note = self.notes[note_index]
            judgement = self.scoring.classify(self.time_until(note.beat))
            if judgement is not None and self.scoring.is_scorable(judgement):
                state = self.note_states[note_index]
                state.hit = True
                state.judgement = judgement
                self.scoring.add_hit(judgement)
                self.signals.emit(HitEvent(track, judgement, self.scoring.score))
                self._emit_score_state()
                return

        # 2. Keep a roll going
        roll_index = self._active_roll(track)
        if roll_index != -1:
            head_state = self.note_states[self.tail_head_indices[roll_index]]
            judgement = head_state.judgement or self.scoring.best_judgement
            self.scoring.add_hit(judgement)
            self.signals.emit(HitEvent(track, judgement, self.scoring.score))
            self._emit_score_state()
            return

        # 3. Ghost tap
        self.scoring.add_miss()
        self.signals.emit(MissEvent(MissCause.GHOST, track=track))
        self._emit_score_state()

    def _next_judgeable_note(self, track: Track) -> int:
        for i, note in enumerate(self.notes):
            if self.note_states[i].resolved or not isinstance(note, TrackValue):
                continue
            if note.tracks[track].is_playable:
                return i
        return -1

    def _active_roll(self, track: Track) -> int:
        for index, tail in enumerate(self.tails):
            if tail.track != track or not tail.is_roll:
                continue
            head_index = self.tail_head_indices[index]
            if head_index == -1 or not self.note_states[head_index].hit:
                continue
            if tail.contains(self.current_beat):
                return index
        return -1

    # --- Helpers ---
    def _emit_score_state(self) -> None:
        self.signals.emit(ScoreChangeEvent(self.scoring.score))
        self.signals.emit(ComboChangeEvent(self.scoring.combo, self.scoring.max_combo))

    def _update_tail(self, index: int, **changes: Any) -> None:
        meta = self.tail_meta[index]
        for k, v in changes.items():
            setattr(meta, k, v)
        self.signals.emit(TailUpdateEvent(index, **dataclasses.asdict(meta)))

    def results(self) -> Results:
        notes_hit = 0
        notes_missed = 0
        for note, state in zip(self.notes, self.note_states):
            if not isinstance(note, TrackValue) or not note.tracks.has_playable:
                continue
            notes_hit += state.hit
            notes_missed += state.missed

        return Results(
            title = self.chart.title if self.chart else "",
            level = self.level.label if self.level else "",
            score = self.scoring.score,
            combo = self.scoring.combo,
            max_combo = self.scoring.max_combo,
            tallies = dict(self.scoring.tallies),
            notes_hit = notes_hit,
            notes_missed = notes_missed,
            holds_completed = sum(m.completed for m in self.tail_meta),
            holds_dropped = sum(m.dropped for m in self.tail_meta)
        )

    def __repr__(self) -> str:
        state = "finished" if self.is_finished else "playing" if self.is_playing else "stopped"
        return f"<{self.__class__.__name__} {state} beat:{self.current_beat:.3f} bpm:{self.bpm:g}>"
