from dataclasses import dataclass, field
from typing import TypedDict

from stepline.core.judgement import Judgement


class ScoreJSON(TypedDict):
    score: float
    max_combo: int
    judgements: dict[str, int]
    holds_completed: int
    holds_dropped: int


@dataclass
class Results:
    """The raw totals of a play on a chart level."""
    title: str
    level: str
    score: float
    combo: int
    max_combo: int
    tallies: dict[Judgement, int] = field(default_factory=dict)
    notes_hit: int = 0
    notes_missed: int = 0
    holds_completed: int = 0
    holds_dropped: int = 0

    @property
    def full_combo(self) -> bool:
        return self.tallies.get(Judgement.MISS, 0) == 0 and self.holds_dropped == 0

    def to_score_json(self) -> ScoreJSON:
        return {
            "score": self.score,
            "max_combo": self.max_combo,
            "judgements": {str(j): n for j, n in self.tallies.items()},
            "holds_completed": self.holds_completed,
            "holds_dropped": self.holds_dropped
        }
