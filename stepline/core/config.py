from __future__ import annotations

import dataclasses
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from stepline.core.judgement import DropPolicy, Judgement, STANDARD_TIMING_WINDOWS, TimingWindow
from stepline.lib.errors import ConfigError
from stepline.lib.types import BPM, Beats, Milliseconds

logger = logging.getLogger("stepline")

TIMING_FIELDS = ["miss_window", "hold_grace_beats", "initial_bpm"]
SCORING_FIELDS = ["hold_tick_score", "drop_policy"]


@dataclass
class GameConfig:
    """Tunables for the engine.

    - `timing_windows`: tightest first
    - `miss_window`: how late (ms) a note can be before it's abandoned as missed
    - `hold_tick_score`: score per second a hold is held
    - `hold_grace_beats`: how long after a hold's head the player has to start holding
    - `drop_policy`: what dropping a hold costs
    - `initial_bpm`: tempo used before the chart's first BPM change is reached"""
    timing_windows: tuple[TimingWindow, ...] = STANDARD_TIMING_WINDOWS
    miss_window: Milliseconds = 180
    hold_tick_score: float = 10
    hold_grace_beats: Beats = 0.1
    drop_policy: DropPolicy = DropPolicy.NONE
    initial_bpm: BPM = 100

    def __post_init__(self) -> None:
        if not self.timing_windows:
            raise ConfigError("At least one timing window is required.")
        widths = [w.ms for w in self.timing_windows]
        if widths != sorted(widths):
            raise ConfigError("Timing windows must be ordered tightest first.")
        if self.initial_bpm <= 0:
            raise ConfigError(f"Initial BPM must be positive, got {self.initial_bpm}.")
        self.drop_policy = DropPolicy(self.drop_policy)

    def replace(self, **changes: Any) -> GameConfig:
        return dataclasses.replace(self, **changes)


def _check_keys(table: dict[str, Any], allowed: list[str], name: str) -> None:
    unknown = set(table) - set(allowed)
    if unknown:
        raise ConfigError(f"Unknown key(s) in [{name}]: {', '.join(sorted(unknown))}")


def _read_windows(windows: list[dict[str, Any]]) -> tuple[TimingWindow, ...]:
    out = []
    for w in windows:
        _check_keys(w, ["judgement", "ms", "score"], "timing.windows")
        try:
            out.append(TimingWindow(Judgement(w["judgement"].lower()), float(w["ms"]), int(w["score"])))
        except (KeyError, ValueError, TypeError, AttributeError) as err:
            raise ConfigError(f"Bad timing window {w!r}") from err
    return tuple(out)


def config_from_dict(data: dict[str, Any]) -> GameConfig:
    """Build a `GameConfig` from a parsed TOML document.

    ```toml
    [timing]
    miss_window = 180
    hold_grace_beats = 0.1

    [[timing.windows]]
    judgement = "marvelous"
    ms = 22.5
    score = 5

    [scoring]
    hold_tick_score = 10
    drop_policy = "none"
    ```
    Missing keys keep their defaults."""
    _check_keys(data, ["timing", "scoring"], "root")
    timing = dict(data.get("timing", {}))
    scoring = dict(data.get("scoring", {}))

    windows = timing.pop("windows", None)
    _check_keys(timing, TIMING_FIELDS, "timing")
    _check_keys(scoring, SCORING_FIELDS, "scoring")

    kwargs: dict[str, Any] = {**timing, **scoring}
    if windows is not None:
        kwargs["timing_windows"] = _read_windows(windows)
    if "drop_policy" in kwargs:
        try:
            kwargs["drop_policy"] = DropPolicy(kwargs["drop_policy"])
        except ValueError as err:
            raise ConfigError(f"Unknown drop policy '{kwargs['drop_policy']}'") from err
    return GameConfig(**kwargs)


def load_config(path: Path | str) -> GameConfig:
    path = Path(path)
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as err:
        raise ConfigError(f"Couldn't read {path.name}: {err}") from err
    logger.debug(f"Loaded config from {path}.")
    return config_from_dict(data)
