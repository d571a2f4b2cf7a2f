import random

import numpy as np
import pytest

from dice_roller.dice import catalog, dice_engine
from dice_roller.dice.dice_engine import GroupResult, RollOutcome
from dice_roller.dice.dice_models import rotation_matrix
from dice_roller.dice.dice_preferences import RollSettings
from dice_roller.dice.errors import InvalidDieError
from dice_roller.dice.roll_service import RollService
from dice_roller.dice.roll_state import RollPhase

FRAME = 1 / 60


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeScheduler:
    def __init__(self):
        self.pending = {}
        self.cancelled = []
        self._ids = 0

    def after(self, delay_ms, callback):
        self._ids += 1
        after_id = f"after#{self._ids}"
        self.pending[after_id] = callback
        return after_id

    def after_cancel(self, after_id):
        self.cancelled.append(after_id)
        self.pending.pop(after_id, None)

    def run_pending(self):
        jobs = list(self.pending.items())
        self.pending.clear()
        for _after_id, callback in jobs:
            callback()
        return len(jobs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(clock):
    settings = RollSettings(spin_duration=1.0, history_size=3)
    return RollService(settings, rng=random.Random(42), clock=clock)


def _run_until_settled(service, clock, max_frames=600):
    for _ in range(max_frames):
        clock.now += FRAME
        if service.tick() is RollPhase.SETTLED:
            return
    pytest.fail("roll never settled")


def test_full_roll_reports_phases_orientation_and_outcome(service, clock):
    phases, poses, outcomes = [], [], []
    service.on_phase_change(phases.append)
    service.on_orientation_tick(poses.append)
    service.on_outcome(outcomes.append)

    request = service.compose_request([("d20", 1)], modifier=2)
    assert service.begin_roll(request) is True
    assert service.current_outcome is None

    _run_until_settled(service, clock)

    assert phases == [RollPhase.SPINNING, RollPhase.SETTLING, RollPhase.SETTLED]
    assert len(outcomes) == 1
    outcome = outcomes[0]
    assert service.current_outcome == outcome
    assert outcome.total == outcome.per_group[0].results[0] + 2
    assert len(poses) > 60

    history = service.get_history()
    assert len(history) == 1
    assert history[0].expression_label == "1d20 + 2"
    assert history[0].outcome == outcome

    expected = catalog.lookup("d20").orientation_for(outcome.primary_face)
    np.testing.assert_allclose(rotation_matrix(service.orientation), rotation_matrix(expected), atol=1e-2)


def test_outcome_is_hidden_until_settled(service, clock):
    service.begin_roll(service.compose_request([("d6", 1)]))

    clock.now += 1.0
    assert service.tick() is RollPhase.SETTLING
    assert service.current_outcome is None
    assert service.current_request is not None


def test_begin_during_roll_is_a_no_op(service, clock):
    request = service.compose_request([("d6", 2), ("d4", 1)], modifier=3)
    service.begin_roll(request)
    clock.now += 0.5
    service.tick()

    assert service.begin_roll(service.compose_request([("d20", 1)])) is False
    assert service.current_request is request
    assert service.rejected_begins == 1

    _run_until_settled(service, clock)
    outcome = service.current_outcome
    assert 6 <= outcome.total <= 19
    assert service.active_die == "d6"


def test_invalid_request_leaves_state_untouched(service):
    with pytest.raises(InvalidDieError):
        service.compose_request([("d7", 1)])

    assert service.phase is RollPhase.IDLE
    assert service.get_history() == ()


def test_reset_cancels_roll_without_touching_history(service, clock):
    service.begin_roll(service.compose_request([("d8", 1)]))
    _run_until_settled(service, clock)

    service.begin_roll(service.compose_request([("d12", 1)]))
    clock.now += 0.5
    service.tick()
    service.reset()
    for _ in range(120):
        clock.now += FRAME
        service.tick()

    assert service.phase is RollPhase.IDLE
    assert service.current_outcome is None
    assert len(service.get_history()) == 1


def test_history_is_capped_by_settings(service, clock):
    for _ in range(5):
        service.begin_roll(service.compose_request([("d4", 1)]))
        _run_until_settled(service, clock)

    assert len(service.get_history()) == 3


def test_unknown_face_holds_orientation_and_still_completes(service, clock, monkeypatch):
    def fake_evaluate(request, *, rng=None):
        return RollOutcome(per_group=(GroupResult("d6", (9,)),), modifier=0)

    monkeypatch.setattr(dice_engine, "evaluate", fake_evaluate)
    service.begin_roll(service.compose_request([("d6", 1)]))
    clock.now += 0.4
    service.tick()
    held = service.orientation

    clock.now += 0.6
    assert service.tick() is RollPhase.SETTLED

    assert service.current_outcome.total == 9
    assert len(service.get_history()) == 1
    np.testing.assert_allclose(service.orientation, held)


def test_subscriber_errors_do_not_stop_the_roll(service, clock):
    def broken(_payload):
        raise RuntimeError("render failed")

    service.on_orientation_tick(broken)
    service.on_phase_change(broken)
    seen = []
    unsubscribe = service.on_outcome(seen.append)

    service.begin_roll(service.compose_request([("d10", 1)]))
    _run_until_settled(service, clock)
    unsubscribe()
    service.begin_roll(service.compose_request([("d10", 1)]))
    _run_until_settled(service, clock)

    assert len(seen) == 1
    assert len(service.get_history()) == 2


def test_select_die_only_while_idle(service, clock):
    assert service.select_die("d%") is True
    assert service.active_die == "d100"

    service.begin_roll(service.compose_request([("d4", 1)]))
    assert service.select_die("d20") is False
    assert service.active_die == "d4"


def test_scheduler_drives_ticks_only_while_rolling(clock):
    scheduler = FakeScheduler()
    service = RollService(RollSettings(spin_duration=0.5), scheduler=scheduler, rng=random.Random(1), clock=clock)

    assert scheduler.pending == {}
    service.begin_roll(service.compose_request([("d6", 1)]))
    assert len(scheduler.pending) == 1

    for _ in range(600):
        clock.now += FRAME
        if not scheduler.run_pending():
            break

    assert service.phase is RollPhase.SETTLED
    assert scheduler.pending == {}


def test_reset_cancels_scheduled_tick(clock):
    scheduler = FakeScheduler()
    service = RollService(RollSettings(), scheduler=scheduler, clock=clock)
    service.begin_roll(service.compose_request([("d20", 1)]))

    service.reset()

    assert scheduler.pending == {}
    assert len(scheduler.cancelled) == 1


def test_list_dice_kinds_comes_from_catalog(service):
    assert service.list_dice_kinds() == catalog.list_dice_kinds()
