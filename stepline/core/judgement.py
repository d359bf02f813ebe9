from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from stepline.lib.types import Milliseconds, Seconds


class Judgement(StrEnum):
    MARVELOUS = "marvelous"
    PERFECT = "perfect"
    GREAT = "great"
    GOOD = "good"
    BOO = "boo"
    MISS = "miss"


class DropPolicy(StrEnum):
    """What letting go of a hold early costs."""
    NONE = "none"
    BREAK_COMBO = "break_combo"


@dataclass(frozen=True)
class TimingWindow:
    """How far from the beat a hit can land and still earn `judgement`.

    `ms` is the half-width of the window, so a hit 30ms early and one 30ms
    late are judged the same."""
    judgement: Judgement
    ms: Milliseconds
    score: int

    @property
    def seconds(self) -> Seconds:
        return self.ms / 1000

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.judgement}: {self.ms}ms>"


# Standard StepMania 4 / ITG windows.
STANDARD_TIMING_WINDOWS: tuple[TimingWindow, ...] = (
    #            judgement           ms     score
    TimingWindow(Judgement.MARVELOUS, 22.5, 5),
    TimingWindow(Judgement.PERFECT,   45,   4),
    TimingWindow(Judgement.GREAT,     90,   3),
    TimingWindow(Judgement.GOOD,      135,  2),
    TimingWindow(Judgement.BOO,       180,  0)
)


class ScoringSystem:
    def __init__(self, timing_windows: Sequence[TimingWindow] = STANDARD_TIMING_WINDOWS,
                 hold_tick_score: float = 10, drop_policy: DropPolicy = DropPolicy.NONE):
        """Score, combo and judgement tallies for one play.

        `timing_windows` must be ordered tightest first. `hold_tick_score` is
        the score earned per second a hold is held down."""
        if not timing_windows:
            raise ValueError("At least one timing window is required.")
        self.timing_windows = tuple(timing_windows)
        self.hold_tick_score = hold_tick_score
        self.drop_policy = DropPolicy(drop_policy)

        self.score: float = 0
        self.combo: int = 0
        self.max_combo: int = 0
        self.tallies: dict[Judgement, int] = dict.fromkeys(Judgement, 0)

    @property
    def best_judgement(self) -> Judgement:
        return self.timing_windows[0].judgement

    @property
    def worst_judgement(self) -> Judgement:
        return self.timing_windows[-1].judgement

    def reset(self) -> None:
        self.score = 0
        self.combo = 0
        self.max_combo = 0
        self.tallies = dict.fromkeys(Judgement, 0)

    def classify(self, time_diff: Milliseconds) -> Judgement | None:
        """The judgement for a hit `time_diff` ms away from its note, or None if it's outside every window."""
        distance = abs(time_diff)
        for window in self.timing_windows:
            if distance <= window.ms:
                return window.judgement
        return None

    def is_scorable(self, judgement: Judgement | None) -> bool:
        """Only judgements better than the widest window count as hits."""
        return judgement is not None and judgement not in (self.worst_judgement, Judgement.MISS)

    def window_for(self, judgement: Judgement) -> TimingWindow | None:
        for window in self.timing_windows:
            if window.judgement == judgement:
                return window
        return None

    def add_hit(self, judgement: Judgement) -> None:
        self.combo += 1
        self.max_combo = max(self.combo, self.max_combo)
        self.tallies[judgement] += 1

        window = self.window_for(judgement)
        if window is not None:
            self.score += window.score

    def add_miss(self) -> None:
        self.combo = 0
        self.tallies[Judgement.MISS] += 1

    def add_hold_tick(self, delta_time: Milliseconds) -> None:
        self.score += self.hold_tick_score * (delta_time / 1000)

    def dropped_hold(self) -> bool:
        """Apply the drop policy. Returns whether combo or score changed."""
        if self.drop_policy == DropPolicy.BREAK_COMBO and self.combo:
            self.combo = 0
            return True
        return False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} score:{self.score:.2f} combo:{self.combo}/{self.max_combo}>"
