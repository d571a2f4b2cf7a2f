"""Lifecycle of a single roll: Idle -> Spinning -> Settling -> Settled."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Set

from dice_roller.dice import dice_engine
from dice_roller.dice.dice_engine import RollOutcome, RollRequest
from dice_roller.dice.errors import RollAlreadyInProgressError
from dice_roller.helpers.logging_helper import log_info, log_module_import, log_warning

log_module_import(__name__)

logger = logging.getLogger(__name__)

DEFAULT_SPIN_DURATION = 2.0

OutcomeGenerator = Callable[[RollRequest], RollOutcome]
PhaseCallback = Callable[["RollState"], None]


class RollPhase(Enum):
    IDLE = "idle"
    SPINNING = "spinning"
    SETTLING = "settling"
    SETTLED = "settled"

    @property
    def in_flight(self) -> bool:
        return self in (RollPhase.SPINNING, RollPhase.SETTLING)


@dataclass(frozen=True)
class RollState:
    phase: RollPhase = RollPhase.IDLE
    request: Optional[RollRequest] = None
    outcome: Optional[RollOutcome] = None
    started_at: Optional[float] = None


IDLE_STATE = RollState()


def begin_roll(state: RollState, request: RollRequest, now: float) -> RollState:
    if not isinstance(request, RollRequest):
        raise TypeError("begin_roll expects a RollRequest.")
    if state.phase.in_flight:
        raise RollAlreadyInProgressError(f"Cannot start a roll while {state.phase.value}.")
    return RollState(phase=RollPhase.SPINNING, request=request, outcome=None, started_at=now)


def resolve_spin(
    state: RollState,
    now: float,
    spin_duration: float,
    generator: OutcomeGenerator = dice_engine.evaluate,
) -> RollState:
    """Produce the outcome once the spin has run for ``spin_duration`` seconds."""

    if state.phase is not RollPhase.SPINNING or state.request is None:
        return state
    started_at = state.started_at if state.started_at is not None else now
    if now - started_at < spin_duration:
        return state
    return replace(state, phase=RollPhase.SETTLING, outcome=generator(state.request))


def complete_settle(state: RollState) -> RollState:
    if state.phase is not RollPhase.SETTLING:
        return state
    return replace(state, phase=RollPhase.SETTLED)


def reset_roll(state: RollState) -> RollState:
    return IDLE_STATE


class RollStateMachine:
    """Owns the current :class:`RollState` and notifies listeners on phase changes."""

    def __init__(
        self,
        *,
        spin_duration: float = DEFAULT_SPIN_DURATION,
        generator: OutcomeGenerator = dice_engine.evaluate,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if spin_duration < 0:
            raise ValueError("spin_duration cannot be negative.")
        self.spin_duration = float(spin_duration)
        self._generator = generator
        self._clock = clock
        self._state = IDLE_STATE
        self._listeners: Set[PhaseCallback] = set()
        self.rejected_begins = 0

    @property
    def state(self) -> RollState:
        return self._state

    @property
    def phase(self) -> RollPhase:
        return self._state.phase

    @property
    def outcome(self) -> Optional[RollOutcome]:
        return self._state.outcome

    @property
    def request(self) -> Optional[RollRequest]:
        return self._state.request

    def add_listener(self, callback: PhaseCallback) -> Callable[[], None]:
        if not callable(callback):
            raise TypeError("callback must be callable")
        self._listeners.add(callback)

        def _unsubscribe() -> None:
            self._listeners.discard(callback)

        return _unsubscribe

    def begin(self, request: RollRequest, *, strict: bool = False) -> bool:
        try:
            next_state = begin_roll(self._state, request, self._clock())
        except RollAlreadyInProgressError:
            self.rejected_begins += 1
            log_warning(f"Ignoring roll of {request.label}: a roll is already {self.phase.value}")
            if strict:
                raise
            return False
        log_info(f"Rolling {request.label}")
        self._transition(next_state)
        return True

    def poll(self, now: Optional[float] = None) -> RollPhase:
        """Check the spin timer; moves to Settling once the spin duration has elapsed."""

        current = self._clock() if now is None else now
        self._transition(resolve_spin(self._state, current, self.spin_duration, self._generator))
        return self.phase

    def complete(self) -> Optional[RollOutcome]:
        self._transition(complete_settle(self._state))
        return self.outcome if self.phase is RollPhase.SETTLED else None

    def reset(self) -> None:
        self._transition(reset_roll(self._state))

    def _transition(self, next_state: RollState) -> None:
        if next_state is self._state:
            return
        previous = self._state.phase
        self._state = next_state
        if next_state.phase is not previous:
            self._notify(next_state)

    def _notify(self, state: RollState) -> None:
        for callback in tuple(self._listeners):
            try:
                callback(state)
            except Exception:
                logger.exception("Roll phase listener failed")


__all__ = [
    "DEFAULT_SPIN_DURATION",
    "IDLE_STATE",
    "RollPhase",
    "RollState",
    "RollStateMachine",
    "begin_roll",
    "complete_settle",
    "reset_roll",
    "resolve_spin",
]
