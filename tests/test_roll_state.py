import random

import pytest

from dice_roller.dice import dice_engine
from dice_roller.dice.errors import RollAlreadyInProgressError
from dice_roller.dice.roll_state import (
    IDLE_STATE,
    RollPhase,
    RollStateMachine,
    begin_roll,
    complete_settle,
    reset_roll,
    resolve_spin,
)


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now


class CountingGenerator:
    def __init__(self, seed=5):
        self.calls = 0
        self._rng = random.Random(seed)

    def __call__(self, request):
        self.calls += 1
        return dice_engine.evaluate(request, rng=self._rng)


@pytest.fixture
def request_2d6():
    return dice_engine.compose_request([("d6", 2)], modifier=1)


def test_pure_transitions_walk_the_full_lifecycle(request_2d6):
    generator = CountingGenerator()

    spinning = begin_roll(IDLE_STATE, request_2d6, now=10.0)
    assert spinning.phase is RollPhase.SPINNING
    assert spinning.request is request_2d6
    assert spinning.outcome is None

    assert resolve_spin(spinning, 11.0, 2.0, generator) is spinning
    assert generator.calls == 0

    settling = resolve_spin(spinning, 12.0, 2.0, generator)
    assert settling.phase is RollPhase.SETTLING
    assert settling.outcome is not None
    assert generator.calls == 1

    assert resolve_spin(settling, 20.0, 2.0, generator) is settling
    assert generator.calls == 1

    settled = complete_settle(settling)
    assert settled.phase is RollPhase.SETTLED
    assert settled.outcome is settling.outcome

    assert reset_roll(settled) == IDLE_STATE


@pytest.mark.parametrize("phase", [RollPhase.SPINNING, RollPhase.SETTLING])
def test_begin_roll_rejects_in_flight_states(request_2d6, phase):
    state = begin_roll(IDLE_STATE, request_2d6, now=0.0)
    if phase is RollPhase.SETTLING:
        state = resolve_spin(state, 5.0, 1.0)
    other = dice_engine.compose_request([("d20", 1)])

    with pytest.raises(RollAlreadyInProgressError):
        begin_roll(state, other, now=6.0)

    assert state.request is request_2d6


def test_complete_settle_only_applies_to_settling(request_2d6):
    spinning = begin_roll(IDLE_STATE, request_2d6, now=0.0)

    assert complete_settle(spinning) is spinning
    assert complete_settle(IDLE_STATE) is IDLE_STATE


def test_machine_ignores_begin_while_rolling(request_2d6):
    clock = FakeClock()
    generator = CountingGenerator()
    machine = RollStateMachine(spin_duration=2.0, generator=generator, clock=clock)

    assert machine.begin(request_2d6) is True
    assert machine.begin(dice_engine.compose_request([("d20", 1)])) is False
    assert machine.request is request_2d6
    assert machine.rejected_begins == 1

    clock.now = 2.5
    assert machine.poll() is RollPhase.SETTLING
    outcome = machine.outcome

    assert machine.begin(dice_engine.compose_request([("d4", 3)])) is False
    assert machine.outcome is outcome
    assert machine.request is request_2d6
    assert generator.calls == 1


def test_machine_strict_begin_raises(request_2d6):
    machine = RollStateMachine(clock=FakeClock())
    machine.begin(request_2d6)

    with pytest.raises(RollAlreadyInProgressError):
        machine.begin(request_2d6, strict=True)


@pytest.mark.parametrize("in_flight", [False, True])
def test_machine_rejects_non_request_with_type_error(request_2d6, in_flight):
    machine = RollStateMachine(clock=FakeClock())
    if in_flight:
        machine.begin(request_2d6)

    with pytest.raises(TypeError):
        machine.begin("2d6")

    assert machine.rejected_begins == 0
    assert machine.request is (request_2d6 if in_flight else None)


def test_machine_allows_next_roll_after_settled(request_2d6):
    clock = FakeClock()
    machine = RollStateMachine(spin_duration=1.0, generator=CountingGenerator(), clock=clock)
    machine.begin(request_2d6)
    clock.now = 1.0
    machine.poll()
    outcome = machine.complete()

    assert machine.phase is RollPhase.SETTLED
    assert outcome is machine.outcome

    clock.now = 3.0
    assert machine.begin(request_2d6) is True
    assert machine.phase is RollPhase.SPINNING
    assert machine.outcome is None


def test_reset_discards_in_flight_roll(request_2d6):
    clock = FakeClock()
    generator = CountingGenerator()
    machine = RollStateMachine(spin_duration=1.0, generator=generator, clock=clock)
    machine.begin(request_2d6)

    machine.reset()
    clock.now = 5.0
    machine.poll()

    assert machine.phase is RollPhase.IDLE
    assert machine.outcome is None
    assert machine.request is None
    assert generator.calls == 0


def test_machine_notifies_listeners_on_phase_changes(request_2d6):
    clock = FakeClock()
    machine = RollStateMachine(spin_duration=1.0, generator=CountingGenerator(), clock=clock)
    phases = []

    def broken_listener(_state):
        raise RuntimeError("boom")

    machine.add_listener(broken_listener)
    unsubscribe = machine.add_listener(lambda state: phases.append(state.phase))

    machine.begin(request_2d6)
    machine.poll()
    clock.now = 1.5
    machine.poll()
    machine.complete()
    unsubscribe()
    machine.reset()

    assert phases == [RollPhase.SPINNING, RollPhase.SETTLING, RollPhase.SETTLED]


def test_spin_duration_is_configurable(request_2d6):
    clock = FakeClock()
    machine = RollStateMachine(spin_duration=0.25, generator=CountingGenerator(), clock=clock)
    machine.begin(request_2d6)

    clock.now = 0.2
    assert machine.poll() is RollPhase.SPINNING
    clock.now = 0.25
    assert machine.poll() is RollPhase.SETTLING


def test_negative_spin_duration_is_rejected():
    with pytest.raises(ValueError):
        RollStateMachine(spin_duration=-1)
