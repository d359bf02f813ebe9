from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from stepline.lib.types import Track, TRACKS

logger = logging.getLogger("stepline")

type LaneCallback = Callable[[Track], None]


@runtime_checkable
class InputProbe(Protocol):
    """Anything that can answer "is this lane held right now?"."""
    def is_down(self, track: Track) -> bool:
        ...


class LaneState:
    def __init__(self, on_press: LaneCallback | None = None, on_release: LaneCallback | None = None):
        """Which lanes are currently held.

        Whatever maps physical keys to lanes calls `press` and `release`;
        `on_press` fires once per new press (repeats are ignored), which is
        where an engine's `handle_input` usually goes."""
        self.held: set[Track] = set()
        self.on_press = on_press
        self.on_release = on_release

    def press(self, track: Track) -> bool:
        """Returns False if the lane was already held."""
        if track not in TRACKS:
            logger.warning(f"Ignoring press on unknown lane '{track}'")
            return False
        if track in self.held:
            return False
        self.held.add(track)
        if self.on_press is not None:
            self.on_press(track)
        return True

    def release(self, track: Track) -> None:
        if track not in self.held:
            return
        self.held.discard(track)
        if self.on_release is not None:
            self.on_release(track)

    def release_all(self) -> None:
        for track in list(self.held):
            self.release(track)

    def is_down(self, track: Track) -> bool:
        return track in self.held

    @property
    def state(self) -> tuple[bool, bool, bool, bool]:
        left, down, up, right = (t in self.held for t in TRACKS)
        return (left, down, up, right)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {''.join('X' if s else '-' for s in self.state)}>"
