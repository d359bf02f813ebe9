import argparse
import logging
from pathlib import Path

from stepline.core import RhythmEngine, load_config, parse_path
from stepline.lib import logging as stepline_logging
from stepline.lib.errors import StepLineError

logger = logging.getLogger("stepline")


def describe(path: Path, config_path: Path | None = None) -> None:
    chart = parse_path(path)
    engine = RhythmEngine(load_config(config_path) if config_path else None)
    logger.info(f"{chart.title} - {chart.artist or 'Unknown Artist'}")
    for i, level in enumerate(chart.levels):
        engine.load_chart(chart, i)
        steps = sum(1 for n in level.track_values if n.tracks.has_playable)
        holds = sum(1 for t in engine.tails if t.is_hold)
        rolls = sum(1 for t in engine.tails if t.is_roll)
        logger.info(f"  [{i}] {level.label} ({level.meter}): {steps} steps, {holds} holds, {rolls} rolls")


def main() -> None:
    parser = argparse.ArgumentParser(prog="stepline", description="Inspect a .ssc/.sm chart.")
    parser.add_argument("path", type=Path, help="chart file, or a folder containing one")
    parser.add_argument("--config", type=Path, default=None, help="engine config (TOML)")
    args = parser.parse_args()

    stepline_logging.setup()
    try:
        describe(args.path, args.config)
    except StepLineError as err:
        logger.error(f"{err.title} {err.message}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
