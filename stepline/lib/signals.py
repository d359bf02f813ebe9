from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from stepline.core.judgement import Judgement
    from stepline.lib.types import BPM, Beats, Track

logger = logging.getLogger("stepline")


class Signal(StrEnum):
    HIT = "hit"
    MISS = "miss"
    COMBO_CHANGE = "combo_change"
    SCORE_CHANGE = "score_change"
    BEAT_UPDATE = "beat_update"
    TAIL_UPDATE = "tail_update"
    TEMPO_CHANGE = "tempo_change"
    PAUSE_STATE = "pause_state"
    FINISHED = "finished"


class MissCause(StrEnum):
    TIMEOUT = "timeout"
    GHOST = "ghost"


@dataclass(frozen=True)
class SignalPayload:
    signal: ClassVar[Signal]


@dataclass(frozen=True)
class HitEvent(SignalPayload):
    signal = Signal.HIT
    track: Track
    judgement: Judgement
    score: float


@dataclass(frozen=True)
class MissEvent(SignalPayload):
    signal = Signal.MISS
    cause: MissCause
    track: Track | None = None
    note_index: int | None = None


@dataclass(frozen=True)
class ComboChangeEvent(SignalPayload):
    signal = Signal.COMBO_CHANGE
    combo: int
    max_combo: int


@dataclass(frozen=True)
class ScoreChangeEvent(SignalPayload):
    signal = Signal.SCORE_CHANGE
    score: float


@dataclass(frozen=True)
class BeatUpdateEvent(SignalPayload):
    signal = Signal.BEAT_UPDATE
    beat: Beats


@dataclass(frozen=True)
class TailUpdateEvent(SignalPayload):
    signal = Signal.TAIL_UPDATE
    index: int
    active: bool
    available: bool
    holding: bool
    dropped: bool
    completed: bool


@dataclass(frozen=True)
class TempoChangeEvent(SignalPayload):
    signal = Signal.TEMPO_CHANGE
    bpm: BPM


@dataclass(frozen=True)
class PauseStateEvent(SignalPayload):
    signal = Signal.PAUSE_STATE
    active: bool


@dataclass(frozen=True)
class FinishedEvent(SignalPayload):
    signal = Signal.FINISHED


type Listener = Callable[[SignalPayload], None]


class SignalHub:
    """Synchronous publish/subscribe for engine signals.

    Listeners for a signal are called in registration order. The listener list
    is copied before each dispatch, so a listener may add or remove listeners
    (itself included) and the change applies from the next emission on."""
    def __init__(self) -> None:
        self._listeners: defaultdict[Signal, list[Listener]] = defaultdict(list)

    def on[L: Listener](self, signal: Signal | str, listener: L) -> L:
        self._listeners[Signal(signal)].append(listener)
        return listener

    def off(self, signal: Signal | str, listener: Listener) -> None:
        listeners = self._listeners[Signal(signal)]
        if listener in listeners:
            listeners.remove(listener)

    def clear(self, signal: Signal | str | None = None) -> None:
        if signal is None:
            self._listeners.clear()
        else:
            self._listeners[Signal(signal)].clear()

    def listeners(self, signal: Signal | str) -> list[Listener]:
        return self._listeners[Signal(signal)][:]

    def emit(self, payload: SignalPayload) -> None:
        for listener in self._listeners[payload.signal][:]:
            try:
                listener(payload)
            except Exception:
                logger.exception(f"Listener {listener!r} failed while handling {payload!r}")
