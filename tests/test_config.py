from importlib.resources import files, as_file

import pytest

from stepline.core import DropPolicy, GameConfig, Judgement, RhythmEngine, load_config
from stepline.core.config import config_from_dict
from stepline.core.judgement import STANDARD_TIMING_WINDOWS
from stepline.lib.errors import ConfigError
import stepline.data.tests


def test_defaults() -> None:
    config = GameConfig()
    assert config.timing_windows == STANDARD_TIMING_WINDOWS
    assert config.miss_window == 180
    assert config.hold_tick_score == 10
    assert config.hold_grace_beats == 0.1
    assert config.drop_policy == DropPolicy.NONE
    assert config.initial_bpm == 100


def test_empty_document_is_default() -> None:
    assert config_from_dict({}) == GameConfig()


def test_load_toml() -> None:
    with as_file(files(stepline.data.tests) / "engine.toml") as p:
        config = load_config(p)
    assert config.miss_window == 150
    assert config.hold_grace_beats == 0.25
    assert config.hold_tick_score == 20
    assert config.drop_policy == DropPolicy.BREAK_COMBO
    assert [w.judgement for w in config.timing_windows] == [Judgement.PERFECT, Judgement.GREAT, Judgement.BOO]
    assert config.timing_windows[1].ms == 80


def test_config_reaches_engine() -> None:
    with as_file(files(stepline.data.tests) / "engine.toml") as p:
        engine = RhythmEngine(load_config(p))
    assert engine.scoring.best_judgement == Judgement.PERFECT
    assert engine.scoring.hold_tick_score == 20
    assert engine.scoring.drop_policy == DropPolicy.BREAK_COMBO
    assert engine.scoring.classify(100) == Judgement.BOO


def test_replace() -> None:
    config = GameConfig().replace(initial_bpm=140)
    assert config.initial_bpm == 140
    assert config.miss_window == 180


@pytest.mark.parametrize("data", [
    {"timing": {"miss_windw": 100}},
    {"scoring": {"score_per_hold": 1}},
    {"audio": {}},
    {"scoring": {"drop_policy": "explode"}},
    {"timing": {"windows": [{"judgement": "fantastic", "ms": 10, "score": 1}]}},
    {"timing": {"windows": [{"judgement": "great", "ms": 10}]}},
    {"timing": {"windows": [{"judgement": "great", "ms": 90, "score": 3, "color": "green"}]}},
    {"timing": {"windows": [{"judgement": "great", "ms": [1], "score": 3}]}},
])
def test_bad_config(data: dict) -> None:
    with pytest.raises(ConfigError):
        config_from_dict(data)


def test_window_order() -> None:
    windows = [
        {"judgement": "great", "ms": 90, "score": 3},
        {"judgement": "perfect", "ms": 45, "score": 4}
    ]
    with pytest.raises(ConfigError):
        config_from_dict({"timing": {"windows": windows}})


def test_no_windows() -> None:
    with pytest.raises(ConfigError):
        config_from_dict({"timing": {"windows": []}})


def test_bad_bpm() -> None:
    with pytest.raises(ConfigError):
        GameConfig(initial_bpm=0)


def test_bad_toml(tmp_path) -> None:
    path = tmp_path / "broken.toml"
    path.write_text("[timing\nmiss_window = ")
    with pytest.raises(ConfigError):
        load_config(path)
