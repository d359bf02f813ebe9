from __future__ import annotations

import itertools
import logging
import re
from pathlib import Path

from simfile.sm import SMChart, SMSimfile
from simfile.ssc import SSCChart, SSCSimfile
from simfile.timing import BeatValue, TimingData

from stepline.core.chart import AnyNote, Chart, ChartLevel, Offset, SetBPM, Stop
from stepline.core.parsers.grid import parse_grid
from stepline.lib.errors import MalformedChartError, NoChartsError
from stepline.lib.types import Milliseconds

logger = logging.getLogger("stepline")

_NOTEDATA = re.compile(r"#\s*NOTEDATA\s*:", re.IGNORECASE)

MEDIA_FIELDS = {
    "background": "BACKGROUND",
    "banner": "BANNER",
    "lyrics": "LYRICSPATH",
    "cd_image": "CDIMAGE"
}


def _value(source: SSCSimfile | SMSimfile, key: str) -> str | None:
    """Empty and missing fields are the same thing."""
    value = source.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _required(source: SSCSimfile | SMSimfile, key: str) -> str:
    value = _value(source, key)
    if value is None:
        raise MalformedChartError(key)
    return value


def _float(value: str | None, field: str, default: float = 0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as err:
        raise MalformedChartError(field, f"Field '{field}' has non-numeric value '{value}'.") from err


def read_timing(sim: SSCSimfile | SMSimfile, chart: SSCChart | SMChart, index: int) -> TimingData:
    """Timing for one level. SSC charts with their own timing fields override the song's."""
    try:
        timing = TimingData(sim, chart)
    except (ValueError, ArithmeticError) as err:
        raise MalformedChartError("BPMS", f"Level {index} has unreadable timing data ({err}).") from err
    if not timing.bpms:
        raise MalformedChartError("BPMS")
    return timing


def parse_notes(notes_data: str, timing: TimingData) -> list[AnyNote]:
    """Build one level's notes. Control notes come first, unsorted against the grid."""
    notes: list[AnyNote] = []

    if timing.offset:
        notes.append(Offset(0, -float(timing.offset)))

    for stop in timing.stops:
        stop: BeatValue = stop
        notes.append(Stop(float(stop.beat), float(stop.value)))

    for bpm in timing.bpms:
        bpm: BeatValue = bpm
        notes.append(SetBPM(float(bpm.beat), float(bpm.value)))

    notes.extend(parse_grid(notes_data))
    return notes



class SSCParser:
    @staticmethod
    def is_parsable_chart(path: Path) -> bool:
        """Is this a file this parser can read?"""
        return path.is_file() and path.suffix.lower() in (".ssc", ".sm")

    @staticmethod
    def find_chart_file(path: Path) -> Path:
        if path.is_file():
            return path
        try:
            return next(itertools.chain(path.glob("*.ssc"), path.glob("*.sm")))
        except StopIteration as err:
            raise NoChartsError(path.stem) from err

    @staticmethod
    def load_simfile(source: str) -> SSCSimfile | SMSimfile:
        # Real charts often have stray text between fields.
        if _NOTEDATA.search(source):
            return SSCSimfile(string=source, strict=False)
        return SMSimfile(string=source, strict=False)

    @classmethod
    def parse(cls, source: str, base_path: Path | str = ".") -> Chart:
        base_path = Path(base_path)
        sim = cls.load_simfile(source)

        title = _required(sim, "TITLE")
        music = _required(sim, "MUSIC")

        levels = [cls.parse_level(sim, c, i) for i, c in enumerate(sim.charts)]
        if not levels:
            raise MalformedChartError("NOTES", f"Chart '{title}' has no levels.")
        # sorted() is stable, so equal meters keep their file order.
        levels.sort(key=lambda level: level.meter)

        sample_start: Milliseconds = _float(_value(sim, "SAMPLESTART"), "SAMPLESTART") * 1000
        sample_end: Milliseconds = sample_start + _float(_value(sim, "SAMPLELENGTH"), "SAMPLELENGTH") * 1000

        media = {}
        for attr, key in MEDIA_FIELDS.items():
            value = _value(sim, key)
            media[attr] = None if value is None else base_path / value

        chart = Chart(
            title = title,
            music = base_path / music,
            levels = tuple(levels),
            subtitle = _value(sim, "SUBTITLE"),
            artist = _value(sim, "ARTIST") or "",
            genre = _value(sim, "GENRE"),
            author = _value(sim, "CREDIT") or "",
            sample_start = sample_start,
            sample_end = sample_end,
            selectable = _value(sim, "SELECTABLE") != "NO",
            **media
        )
        logger.debug(f"Parsed {chart!r}.")
        return chart

    @staticmethod
    def parse_level(sim: SSCSimfile | SMSimfile, chart: SSCChart | SMChart, index: int) -> ChartLevel:
        notes_data = chart.notes
        if not notes_data or not notes_data.strip():
            raise MalformedChartError("NOTES", f"Level {index} has no note data.")

        label = (chart.difficulty or "").strip()
        meter_text = (chart.meter or "").strip()
        try:
            meter = int(meter_text)
        except ValueError:
            logger.warning(f"Level {index} ({label}) has unreadable meter '{meter_text}', using 0.")
            meter = 0

        notes = parse_notes(notes_data, read_timing(sim, chart, index))
        return ChartLevel(label, meter, tuple(notes))

    @classmethod
    def parse_path(cls, path: Path | str) -> Chart:
        """Parse a chart file, or the first chart file found in a folder."""
        chart_file = cls.find_chart_file(Path(path))
        with chart_file.open("r", encoding="utf-8") as f:
            source = f.read()
        logger.info(f"Loading chart from {chart_file}...")
        return cls.parse(source, chart_file.parent)


parse = SSCParser.parse
parse_path = SSCParser.parse_path
