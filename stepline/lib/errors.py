from __future__ import annotations
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from stepline.core.chart import TrackPosition
    from stepline.lib.types import Beats, Track


class StepLineError(Exception):
    def __init__(self, *, title: str, message: str):
        self.title = title
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.title}: {self.message}>"


class ChartError(StepLineError):
    """Anything that stops a chart from loading at all."""


class MalformedChartError(ChartError):
    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(title="Malformed chart!", message=message or f"Required field '{field}' is missing or empty.")


class UnknownCellCodeError(ChartError):
    def __init__(self, code: str, previous: TrackPosition, track: Track | None = None, beat: Beats | None = None):
        self.code = code
        self.previous = previous
        self.track = track
        self.beat = beat
        where = "" if track is None else f" on track '{track}'"
        when = "" if beat is None else f" at beat {beat:.3f}"
        super().__init__(
            title="Unknown note type!",
            message=f"Encountered unknown note type '{code}' with previous input '{previous}'{where}{when}."
        )


class NoChartsError(ChartError):
    def __init__(self, song_name: str):
        super().__init__(title="No charts found!", message=f"No charts found for song '{song_name}'")


class InvalidLevelIndexError(StepLineError, IndexError):
    def __init__(self, index: int, level_count: int):
        self.index = index
        self.level_count = level_count
        super().__init__(
            title="Invalid difficulty!",
            message=f"Level index {index} is out of range for a chart with {level_count} level(s)."
        )


class ConfigError(StepLineError):
    def __init__(self, message: str):
        super().__init__(title="Config error!", message=message)


# Recoverable chart problems. These are issued through `warnings`, never raised
# from the frame loop.

class StepLineWarning(UserWarning):
    pass


class UnterminatedTailWarning(StepLineWarning):
    pass


class UnmatchedTailHeadWarning(StepLineWarning):
    pass
