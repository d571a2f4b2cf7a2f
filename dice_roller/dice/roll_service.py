"""Facade the presentation layer talks to: composes rolls, runs the frame tick, exposes hooks."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Iterable, Optional, Protocol, Set, Tuple

import numpy as np

from dice_roller.dice import catalog, dice_engine
from dice_roller.dice.dice_engine import GroupLike, RollOutcome, RollRequest
from dice_roller.dice.dice_preferences import RollSettings
from dice_roller.dice.errors import UnknownFaceError
from dice_roller.dice.history import HistoryEntry, HistoryLedger
from dice_roller.dice.orientation import OrientationResolver
from dice_roller.dice.roll_state import RollPhase, RollState, RollStateMachine
from dice_roller.helpers.logging_helper import log_debug, log_error, log_info, log_module_import

log_module_import(__name__)

logger = logging.getLogger(__name__)


class TkAfterScheduler(Protocol):
    def after(self, delay_ms: int, callback: Callable[[], None]) -> str: ...

    def after_cancel(self, after_id: str) -> None: ...


PhaseSubscriber = Callable[[RollPhase], None]
OrientationSubscriber = Callable[[np.ndarray], None]
OutcomeSubscriber = Callable[[RollOutcome], None]


class RollService:
    def __init__(
        self,
        settings: Optional[RollSettings] = None,
        *,
        scheduler: Optional[TkAfterScheduler] = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or RollSettings()
        self._scheduler = scheduler
        self._rng = rng
        self._clock = clock
        self._tick_ms = max(1, int(self.settings.tick_ms))

        self._machine = RollStateMachine(
            spin_duration=self.settings.spin_duration,
            generator=self._generate,
            clock=clock,
        )
        self._resolver = OrientationResolver(
            self.settings.default_die,
            decay=self.settings.spin_decay,
            settle_factor=self.settings.settle_factor,
            tolerance=self.settings.convergence_tolerance,
            rng=rng,
        )
        self._history = HistoryLedger(self.settings.history_size)

        self._phase_subscribers: Set[PhaseSubscriber] = set()
        self._orientation_subscribers: Set[OrientationSubscriber] = set()
        self._outcome_subscribers: Set[OutcomeSubscriber] = set()

        self._after_id: Optional[str] = None
        self._last_tick_ts: Optional[float] = None

        self._machine.add_listener(self._on_state_change)

    # Queries -----------------------------------------------------------
    @property
    def phase(self) -> RollPhase:
        return self._machine.phase

    @property
    def current_outcome(self) -> Optional[RollOutcome]:
        """Outcome on display; hidden until the die has settled."""

        if self._machine.phase is RollPhase.SETTLED:
            return self._machine.outcome
        return None

    @property
    def current_request(self) -> Optional[RollRequest]:
        return self._machine.request

    @property
    def orientation(self) -> np.ndarray:
        return self._resolver.orientation

    @property
    def active_die(self) -> str:
        return self._resolver.die_id

    @property
    def rejected_begins(self) -> int:
        return self._machine.rejected_begins

    def list_dice_kinds(self) -> Tuple[catalog.DieKind, ...]:
        return catalog.list_dice_kinds()

    def get_history(self) -> Tuple[HistoryEntry, ...]:
        return self._history.list()

    # Commands ----------------------------------------------------------
    def compose_request(self, groups: Iterable[GroupLike], modifier: int = 0) -> RollRequest:
        return dice_engine.compose_request(groups, modifier)

    def begin_roll(self, request: RollRequest) -> bool:
        accepted = self._machine.begin(request)
        if accepted:
            self._ensure_tick_loop()
        return accepted

    def select_die(self, die_id: str) -> bool:
        """Show ``die_id`` on screen; ignored while a roll is in flight."""

        if self._machine.phase.in_flight:
            return False
        self._machine.reset()
        self._resolver.set_die(die_id)
        return True

    def reset(self) -> None:
        self._machine.reset()
        self._resolver.hold()
        self._cancel_tick_loop()

    def set_scheduler(self, scheduler: TkAfterScheduler) -> None:
        self._scheduler = scheduler
        self._ensure_tick_loop()

    # Hooks -------------------------------------------------------------
    def on_phase_change(self, callback: PhaseSubscriber) -> Callable[[], None]:
        return self._subscribe(self._phase_subscribers, callback)

    def on_orientation_tick(self, callback: OrientationSubscriber) -> Callable[[], None]:
        return self._subscribe(self._orientation_subscribers, callback)

    def on_outcome(self, callback: OutcomeSubscriber) -> Callable[[], None]:
        return self._subscribe(self._outcome_subscribers, callback)

    # Frame clock -------------------------------------------------------
    def tick(self, now: Optional[float] = None) -> RollPhase:
        """Advance the roll by one animation frame."""

        current = self._clock() if now is None else now
        delta = max(0.0, current - (self._last_tick_ts if self._last_tick_ts is not None else current))
        self._last_tick_ts = current

        if not self._machine.phase.in_flight:
            return self._machine.phase

        self._machine.poll(current)
        pose = self._resolver.tick(delta)
        self._publish(self._orientation_subscribers, pose)

        if self._machine.phase is RollPhase.SETTLING and self._resolver.has_converged():
            self._resolver.snap_to_target()
            self._machine.complete()
        return self._machine.phase

    def _tick(self) -> None:
        self._after_id = None
        self.tick()
        self._ensure_tick_loop()

    def _ensure_tick_loop(self) -> None:
        if self._scheduler is None:
            return
        if self._after_id is not None:
            return
        if not self._machine.phase.in_flight:
            self._last_tick_ts = None
            return
        self._after_id = self._scheduler.after(self._tick_ms, self._tick)

    def _cancel_tick_loop(self) -> None:
        if self._after_id is not None and self._scheduler is not None:
            self._scheduler.after_cancel(self._after_id)
        self._after_id = None
        self._last_tick_ts = None

    # Internals ---------------------------------------------------------
    def _generate(self, request: RollRequest) -> RollOutcome:
        return dice_engine.evaluate(request, rng=self._rng)

    def _on_state_change(self, state: RollState) -> None:
        if state.phase is RollPhase.SPINNING and state.request is not None:
            self._last_tick_ts = None
            self._resolver.set_die(state.request.primary_die)
            self._resolver.begin_free_spin()
        elif state.phase is RollPhase.SETTLING and state.outcome is not None:
            self._aim_at(state.outcome)
        elif state.phase is RollPhase.SETTLED and state.outcome is not None and state.request is not None:
            entry = self._history.record(state.outcome, state.request.label)
            log_info(f"{entry.expression_label} = {entry.total} ({state.outcome.breakdown()})")
            self._publish(self._outcome_subscribers, state.outcome)
        self._publish(self._phase_subscribers, state.phase)

    def _aim_at(self, outcome: RollOutcome) -> None:
        face = outcome.primary_face
        try:
            target = self._resolver.set_target_face(face)
        except UnknownFaceError as exc:
            log_error(f"{exc}; holding the current orientation")
            self._resolver.hold()
            return
        log_debug(f"Settling {self._resolver.die_id} on {face} at {target.round(3).tolist()}")

    @staticmethod
    def _subscribe(subscribers: Set[Callable], callback: Callable) -> Callable[[], None]:
        if not callable(callback):
            raise TypeError("callback must be callable")
        subscribers.add(callback)

        def _unsubscribe() -> None:
            subscribers.discard(callback)

        return _unsubscribe

    @staticmethod
    def _publish(subscribers: Set[Callable], payload: object) -> None:
        for callback in tuple(subscribers):
            try:
                callback(payload)
            except Exception:
                logger.exception("Roll subscriber failed")


__all__ = ["RollService", "TkAfterScheduler"]
