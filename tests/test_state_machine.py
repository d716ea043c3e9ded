import random

import pytest

from config.settings import MODE_MAIN, MODE_PRACTICE, RunConfig, TimingConfig, TrialCounts
from data.models import TrialSpec
from experiment.clock import TrialClock
from experiment.state_machine import (
    PHASE_ABORTED,
    PHASE_AWAITING,
    PHASE_COMPLETED,
    PHASE_COUNTDOWN,
    PHASE_FEEDBACK,
    PHASE_ITI,
    RunContext,
    TrialStateMachine,
)


FIXED = TimingConfig(
    stimulus_min_ms=600,
    stimulus_max_ms=600,
    fixation_ms=500,
    feedback_ms=1000,
    countdown_steps=0,
)

TRIALS = [
    TrialSpec("visual", 5),
    TrialSpec("visual", 3),
    TrialSpec("audio1", "sound1"),
]


def _machine(fake_time, mode=MODE_MAIN, timing=FIXED, trials=TRIALS, **hooks):
    config = RunConfig(group=2, mode=mode, counts=TrialCounts(visual=2, audio1=1), timing=timing)
    ctx = RunContext(
        config=config,
        trials=list(trials),
        clock=TrialClock(fake_time),
        rng=random.Random(0),
        **hooks,
    )
    return TrialStateMachine(ctx)


def _step(sm, fake_time, to_ms):
    fake_time.now = to_ms
    sm.update(to_ms)


def test_full_main_run(fake_time):
    presented = []
    completed = []
    sm = _machine(
        fake_time,
        on_present=lambda i, spec: presented.append((i, fake_time.now)),
        on_complete=completed.append,
    )
    sm.start()
    assert sm.phase == PHASE_AWAITING
    assert presented == [(0, 0)]

    fake_time.now = 200
    assert sm.handle_input("spacebar", 200)
    assert sm.phase == PHASE_ITI

    _step(sm, fake_time, 700)
    assert presented[-1] == (1, 700)
    _step(sm, fake_time, 1300)      # digit 3 times out
    _step(sm, fake_time, 1800)
    assert presented[-1] == (2, 1800)
    _step(sm, fake_time, 2400)      # tone times out
    _step(sm, fake_time, 2900)

    assert sm.phase == PHASE_COMPLETED
    cats = [o.sdt_category for o in sm.ctx.outcomes]
    assert cats == ["hit", "correct_rejection", "miss"]
    first = sm.ctx.outcomes[0]
    assert first.reaction_time_ms == 200
    assert first.stimulus_start_ms == 0
    assert first.stimulus_end_ms == 200
    assert sm.ctx.outcomes[1].stimulus_end_ms - sm.ctx.outcomes[1].stimulus_start_ms == 600

    assert len(completed) == 1
    summary = completed[0]
    assert (summary.hits, summary.misses, summary.false_alarms, summary.correct_rejections) == (1, 1, 0, 1)
    assert summary.average_reaction_time_ms == 200


def test_second_press_is_ignored(fake_time):
    sm = _machine(fake_time)
    sm.start()
    fake_time.now = 100
    assert sm.handle_input("spacebar", 100)
    assert not sm.handle_input("arrowleft", 150)
    assert len(sm.ctx.outcomes) == 1
    assert sm.ctx.outcomes[0].response == "spacebar"


def test_repeated_primary_press_keeps_first_rt(fake_time):
    sm = _machine(fake_time)
    sm.start()
    fake_time.now = 100
    assert sm.handle_input("spacebar", 100)
    fake_time.now = 110
    assert not sm.handle_input("spacebar", 110)
    assert len(sm.ctx.outcomes) == 1
    assert sm.ctx.outcomes[0].reaction_time_ms == 100
    assert sm.ctx.outcomes[0].stimulus_end_ms == 100


def test_input_outside_response_window_is_ignored(fake_time):
    sm = _machine(fake_time)
    sm.start()
    _step(sm, fake_time, 600)
    assert sm.phase == PHASE_ITI
    assert not sm.handle_input("spacebar", 650)
    assert not sm.handle_input("enter", 650)
    assert [o.response for o in sm.ctx.outcomes] == [None]


def test_unknown_key_keeps_window_open(fake_time):
    sm = _machine(fake_time)
    sm.start()
    assert not sm.handle_input("enter", 50)
    assert sm.phase == PHASE_AWAITING
    assert sm.handle_input("spacebar", 80)


def test_canceled_timeout_never_fires(fake_time):
    sm = _machine(fake_time)
    sm.start()
    fake_time.now = 100
    sm.handle_input("spacebar", 100)
    _step(sm, fake_time, 600)
    _step(sm, fake_time, 601)
    assert len(sm.ctx.outcomes) == 1


def test_abort_mid_trial(fake_time):
    completed = []
    sm = _machine(fake_time, on_complete=completed.append)
    sm.start()
    fake_time.now = 300
    sm.abort()
    assert sm.phase == PHASE_ABORTED
    assert sm.ctx.clock.pending() == 0
    assert not sm.ctx.gate.is_armed
    _step(sm, fake_time, 10_000)
    assert sm.ctx.outcomes == []
    assert completed == []
    assert not sm.handle_input("spacebar", 10_000)


def test_abort_from_outcome_hook_stops_run(fake_time):
    holder = {}
    sm = _machine(fake_time, on_outcome=lambda o: holder["sm"].abort())
    holder["sm"] = sm
    sm.start()
    _step(sm, fake_time, 600)
    assert sm.phase == PHASE_ABORTED
    _step(sm, fake_time, 5000)
    assert len(sm.ctx.outcomes) == 1


def test_abort_from_present_hook_stops_run(fake_time):
    holder = {}
    sm = _machine(fake_time, on_present=lambda i, spec: holder["sm"].abort())
    holder["sm"] = sm
    sm.start()
    assert sm.phase == PHASE_ABORTED
    assert sm.is_finished()
    assert sm.ctx.clock.pending() == 0
    _step(sm, fake_time, 700)
    assert sm.phase == PHASE_ABORTED
    assert sm.ctx.outcomes == []


def test_practice_shows_feedback_and_keeps_metrics_empty(fake_time):
    completed = []
    sm = _machine(fake_time, mode=MODE_PRACTICE, on_complete=completed.append)
    sm.start()
    fake_time.now = 250
    sm.handle_input("spacebar", 250)
    assert sm.phase == PHASE_FEEDBACK
    assert sm.last_outcome.is_correct

    _step(sm, fake_time, 1250)
    assert sm.phase == PHASE_ITI
    _step(sm, fake_time, 1750)
    assert sm.phase == PHASE_AWAITING
    assert sm.trial_index == 1

    for t in (2350, 3350, 3850, 4450, 5450, 5950):
        _step(sm, fake_time, t)
    assert sm.phase == PHASE_COMPLETED
    assert sm.ctx.metrics.processed == 0
    assert completed == [None]
    assert len(sm.ctx.outcomes) == 3


def test_countdown_before_first_trial(fake_time):
    timing = TimingConfig(stimulus_min_ms=600, stimulus_max_ms=600, countdown_steps=3, countdown_step_ms=1000)
    sm = _machine(fake_time, timing=timing)
    sm.start()
    assert sm.phase == PHASE_COUNTDOWN
    assert sm.countdown_remaining == 3
    _step(sm, fake_time, 1000)
    assert sm.countdown_remaining == 2
    assert not sm.handle_input("spacebar", 1500)
    _step(sm, fake_time, 2000)
    _step(sm, fake_time, 3000)
    assert sm.phase == PHASE_AWAITING
    assert sm.stimulus_start_ms == 3000


def test_empty_run_completes_immediately(fake_time):
    completed = []
    sm = _machine(fake_time, trials=[], on_complete=completed.append)
    sm.start()
    assert sm.phase == PHASE_COMPLETED
    assert completed[0].total == 0


def test_start_twice_raises(fake_time):
    sm = _machine(fake_time)
    sm.start()
    with pytest.raises(RuntimeError):
        sm.start()


def test_epoch_anchor(fake_time):
    fake_time.now = 5000
    sm = _machine(fake_time)
    sm.start()
    assert sm.ctx.to_epoch_ms(5000) > 1_600_000_000_000
    assert sm.ctx.to_epoch_ms(5100) - sm.ctx.to_epoch_ms(5000) == 100
