from collections import defaultdict

import pytest

from stepline.core import Chart, DropPolicy, GameConfig, Judgement, LaneState, RhythmEngine, Tail, TailMeta, parse
from stepline.core.chart import TrackPosition
from stepline.lib.errors import InvalidLevelIndexError, UnmatchedTailHeadWarning
from stepline.lib.signals import (ComboChangeEvent, FinishedEvent, HitEvent, MissCause, MissEvent, PauseStateEvent,
                                  ScoreChangeEvent, Signal, SignalPayload, TailUpdateEvent, TempoChangeEvent)

from conftest import load_chart

# 120 BPM: 125ms is a quarter beat
QUARTER = 125


class Recorder:
    def __init__(self, engine: RhythmEngine):
        self.events: defaultdict[Signal, list[SignalPayload]] = defaultdict(list)
        for signal in Signal:
            engine.on(signal, self.record)

    def record(self, payload: SignalPayload) -> None:
        self.events[payload.signal].append(payload)


class Player:
    """Drives an engine with a fixed frame time."""
    def __init__(self, engine: RhythmEngine, delta: float = QUARTER):
        self.engine = engine
        self.delta = delta
        self.clock: float = 0
        self.lanes = LaneState(on_press=engine.handle_input)

    def step(self, frames: int = 1) -> None:
        for _ in range(frames):
            self.clock += self.delta
            self.engine.update(self.delta, self.clock, self.lanes)


def play(chart: Chart, level: int = 0, config: GameConfig | None = None) -> tuple[RhythmEngine, Recorder]:
    engine = RhythmEngine(config)
    recorder = Recorder(engine)
    engine.load_chart(chart, level)
    engine.start()
    return engine, recorder


def test_load_emits_zeroed_score(simple: Chart) -> None:
    engine = RhythmEngine()
    recorder = Recorder(engine)
    engine.load_chart(simple, 0)
    assert recorder.events[Signal.SCORE_CHANGE] == [ScoreChangeEvent(0)]
    assert recorder.events[Signal.COMBO_CHANGE] == [ComboChangeEvent(0, 0)]
    assert not engine.is_playing


def test_invalid_level_index(simple: Chart) -> None:
    engine = RhythmEngine()
    engine.load_chart(simple, 0)
    notes = engine.notes
    for index in (2, -1):
        with pytest.raises(InvalidLevelIndexError):
            engine.load_chart(simple, index)
    assert engine.level is simple.levels[0]
    assert engine.notes is notes


def test_invalid_level_index_is_index_error(simple: Chart) -> None:
    with pytest.raises(IndexError):
        RhythmEngine().load_chart(simple, 10)


def test_notes_sorted_by_beat(simple: Chart) -> None:
    engine = RhythmEngine()
    engine.load_chart(simple, 1)
    beats = [n.beat for n in engine.notes]
    assert beats == sorted(beats)
    assert len(engine.note_states) == len(engine.notes)


def test_first_update_sets_tempo(simple: Chart) -> None:
    engine, recorder = play(simple)
    assert engine.bpm == 100
    Player(engine).step()
    assert recorder.events[Signal.TEMPO_CHANGE] == [TempoChangeEvent(120)]
    assert engine.current_beat == 0.25
    assert recorder.events[Signal.BEAT_UPDATE][-1].beat == 0.25


def test_update_does_nothing_until_started(simple: Chart) -> None:
    engine = RhythmEngine()
    engine.load_chart(simple, 0)
    Player(engine).step(4)
    assert engine.current_beat == 0
    engine.handle_input("down")
    assert engine.scoring.tallies[Judgement.MARVELOUS] == 0


def test_hit_on_time(simple: Chart) -> None:
    engine, recorder = play(simple)
    engine.handle_input("down")
    assert recorder.events[Signal.HIT] == [HitEvent("down", Judgement.MARVELOUS, 5)]
    assert engine.scoring.combo == 1
    assert recorder.events[Signal.COMBO_CHANGE][-1] == ComboChangeEvent(1, 1)


def test_ghost_tap(simple: Chart) -> None:
    engine, recorder = play(simple)
    engine.handle_input("down")
    engine.handle_input("down")
    assert recorder.events[Signal.MISS] == [MissEvent(MissCause.GHOST, track="down")]
    assert engine.scoring.combo == 0
    assert engine.scoring.max_combo == 1


def test_unknown_track_is_ignored(simple: Chart) -> None:
    engine, recorder = play(simple)
    engine.handle_input("middle")  # type: ignore[arg-type]
    assert not recorder.events[Signal.HIT]
    assert not recorder.events[Signal.MISS]


def test_timeout_miss(simple: Chart) -> None:
    engine, recorder = play(simple)
    player = Player(engine)
    player.step()
    assert not recorder.events[Signal.MISS]
    player.step()
    # The tempo change sorts ahead of the first row.
    assert recorder.events[Signal.MISS] == [MissEvent(MissCause.TIMEOUT, note_index=1)]
    assert engine.note_states[1].missed
    assert engine.scoring.tallies[Judgement.MISS] == 1


def test_early_hit_is_judged_by_distance(simple: Chart) -> None:
    engine, recorder = play(simple, 1)
    player = Player(engine)
    player.step(7)
    # Left step at beat 2, we're at 1.75: 125ms early
    engine.handle_input("left")
    assert recorder.events[Signal.HIT] == [HitEvent("left", Judgement.GOOD, 2)]


def test_too_early_is_a_ghost_tap(simple: Chart) -> None:
    engine, recorder = play(simple, 1)
    Player(engine).step(4)
    engine.handle_input("left")
    assert recorder.events[Signal.MISS][-1] == MissEvent(MissCause.GHOST, track="left")
    assert not any(s.resolved for n, s in zip(engine.notes, engine.note_states) if n.beat == 2)


def test_worst_window_does_not_count(simple: Chart) -> None:
    engine, recorder = play(simple, 1)
    Player(engine).step()
    # 160ms early on the beat 2 step
    engine.current_beat = 2 - 0.32
    engine.handle_input("left")
    assert not recorder.events[Signal.HIT]
    assert recorder.events[Signal.MISS][-1].cause == MissCause.GHOST


def test_stop_pauses_the_beat(stops: Chart) -> None:
    engine, recorder = play(stops)
    player = Player(engine)
    player.step(4)
    assert engine.current_beat == 1.0

    # Draining the STOP at beat 1 holds the beat for 500ms.
    player.step()
    assert engine.stop_until == player.clock + 500
    assert engine.current_beat == 1.0
    player.step(3)
    assert engine.current_beat == 1.0
    assert engine.paused
    assert recorder.events[Signal.PAUSE_STATE] == [PauseStateEvent(True)] * 3

    player.step()
    assert recorder.events[Signal.PAUSE_STATE][-1] == PauseStateEvent(False)
    assert not engine.paused
    assert engine.current_beat == 1.25


def test_offset_shifts_beat() -> None:
    legacy = load_chart("legacy.sm")
    engine, recorder = play(legacy)
    engine.update(0, 0, LaneState())
    assert engine.current_beat == 0.5
    assert engine.bpm == 150


def test_finishes_once(simple: Chart) -> None:
    engine, recorder = play(simple)
    player = Player(engine)
    engine.handle_input("down")
    player.step(13)
    assert not engine.is_finished
    player.step()
    assert engine.is_finished
    assert not engine.is_playing
    player.step(10)
    assert recorder.events[Signal.FINISHED] == [FinishedEvent()]

    engine.start()
    assert not engine.is_playing


def test_results(simple: Chart) -> None:
    engine, _ = play(simple)
    engine.handle_input("down")
    Player(engine).step(14)
    results = engine.results()
    assert results.title == "Simple"
    assert results.level == "Beginner"
    assert results.notes_hit == 1
    assert results.notes_missed == 0
    assert results.full_combo
    assert results.to_score_json()["judgements"]["marvelous"] == 1


def test_hold_completed(holds: Chart) -> None:
    engine, recorder = play(holds)
    player = Player(engine, 10)
    player.lanes.press("left")
    assert engine.scoring.combo == 1
    player.step(60)

    meta = engine.tail_meta[0]
    assert meta.completed
    assert not meta.dropped
    assert not meta.holding
    updates = [e for e in recorder.events[Signal.TAIL_UPDATE] if e.index == 0]
    assert updates[0].holding
    assert updates[-1].completed
    assert engine.scoring.score > 5 + 4


def test_hold_dropped(holds: Chart) -> None:
    engine, recorder = play(holds)
    player = Player(engine, 10)
    drops: list[float] = []

    def on_tail(event: TailUpdateEvent) -> None:
        if event.dropped:
            drops.append(engine.current_beat)
    engine.on(Signal.TAIL_UPDATE, on_tail)

    engine.handle_input("left")
    player.step(100)
    assert len(drops) == 1
    assert drops[0] > engine.config.hold_grace_beats
    # One 10ms frame is 0.02 beats at 120 BPM.
    assert drops[0] <= engine.config.hold_grace_beats + 0.02 + 1e-9
    assert engine.tail_meta[0].dropped
    assert not engine.tail_meta[0].completed
    # Dropping under the default policy costs nothing.
    assert engine.scoring.combo == 1
    assert engine.results().holds_dropped == 1


def test_hold_dropped_breaks_combo(holds: Chart) -> None:
    engine, recorder = play(holds, config=GameConfig(drop_policy=DropPolicy.BREAK_COMBO))
    engine.handle_input("left")
    Player(engine, 10).step(20)
    assert engine.tail_meta[0].dropped
    assert engine.scoring.combo == 0
    assert recorder.events[Signal.COMBO_CHANGE][-1] == ComboChangeEvent(0, 1)


def test_missed_head_deactivates_tail(holds: Chart) -> None:
    engine, recorder = play(holds)
    Player(engine).step(2)
    assert not engine.tail_meta[0].active
    assert not engine.tail_meta[0].dropped
    assert TailUpdateEvent(0, False, True, False, False, False) in recorder.events[Signal.TAIL_UPDATE]


def test_roll_taps(holds: Chart) -> None:
    engine, recorder = play(holds)
    player = Player(engine)
    player.step(20)
    assert engine.current_beat == 5.0

    player.lanes.press("up")
    player.lanes.release("up")
    player.step(2)
    player.lanes.press("up")
    hits = recorder.events[Signal.HIT]
    assert [h.judgement for h in hits] == [Judgement.MARVELOUS, Judgement.MARVELOUS]
    assert engine.scoring.combo == 2

    player.lanes.release("up")
    player.step(8)
    assert engine.tail_meta[1].completed


def test_roll_tap_after_roll_is_ghost(holds: Chart) -> None:
    engine, recorder = play(holds)
    player = Player(engine)
    player.step(20)
    engine.handle_input("up")
    player.step(9)
    engine.handle_input("up")
    assert recorder.events[Signal.MISS][-1] == MissEvent(MissCause.GHOST, track="up")


def test_unmatched_tail(holds: Chart) -> None:
    engine, recorder = play(holds)
    stray = Tail(TrackPosition.HOLD_HEAD, "right", 2.0, 1.0)
    with pytest.warns(UnmatchedTailHeadWarning):
        assert engine._find_head_index(stray) == -1

    engine.tails.append(stray)
    engine.tail_head_indices.append(-1)
    engine.tail_meta.append(TailMeta())
    Player(engine).step()
    assert engine.tail_meta[2] == TailMeta(active=False, available=False)


def test_reset_matches_fresh_load(holds: Chart) -> None:
    engine, _ = play(holds)
    player = Player(engine)
    engine.handle_input("left")
    player.step(12)
    engine.handle_input("right")
    engine.reset()

    fresh = RhythmEngine()
    fresh.load_chart(holds, 0)
    for attr in ("current_beat", "next_beat", "chart_index", "bpm", "stop_until", "note_states", "tail_meta"):
        assert getattr(engine, attr) == getattr(fresh, attr)
    assert engine.scoring.score == 0
    assert engine.scoring.tallies == fresh.scoring.tallies
    assert not engine.is_playing

    engine.load_chart(holds, 0)
    assert engine.tails == fresh.tails
    assert engine.tail_head_indices == fresh.tail_head_indices


def test_score_signals_follow_scoring(simple: Chart) -> None:
    engine, recorder = play(simple, 1)
    player = Player(engine)
    player.step(8)
    engine.handle_input("left")
    player.step(20)
    scores = [e.score for e in recorder.events[Signal.SCORE_CHANGE]]
    assert scores[-1] == engine.scoring.score
    assert scores == sorted(scores)


GAP_CHART = """#VERSION:0.83;
#TITLE:Gap;
#MUSIC:gap.ogg;
#BPMS:0.000=120.000,6.000=240.000;

#NOTEDATA:;
#STEPSTYPE:dance-single;
#DIFFICULTY:Easy;
#METER:1;
#NOTES:
1000
0000
0000
0000
,
,
0100
0000
0000
0000
;
"""


def test_empty_measure_keeps_timing() -> None:
    engine, recorder = play(parse(GAP_CHART))
    player = Player(engine)
    player.step(24)
    assert engine.current_beat == 6.0
    assert engine.bpm == 120

    # The tempo change inside the empty measure lands on its own beat.
    player.step()
    assert recorder.events[Signal.TEMPO_CHANGE][-1] == TempoChangeEvent(240)
    assert engine.current_beat == 6.5
    player.step(3)
    assert engine.current_beat == 8.0

    engine.handle_input("down")
    assert recorder.events[Signal.HIT] == [HitEvent("down", Judgement.MARVELOUS, 5)]
