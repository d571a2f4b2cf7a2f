"""Orientation resolver: free spin with decaying velocity, then damped settle onto a face.

The step functions are pure so they can be exercised without a render loop;
:class:`OrientationResolver` keeps the per-die state between animation ticks.
"""

from __future__ import annotations

import math
import random
from typing import Iterable, Optional, Tuple

import numpy as np

from dice_roller.dice import catalog
from dice_roller.dice.errors import UnknownFaceError
from dice_roller.helpers.logging_helper import log_debug, log_module_import

log_module_import(__name__)

DEFAULT_SPIN_DECAY = 0.992
DEFAULT_SETTLE_FACTOR = 0.05
DEFAULT_TOLERANCE = 1e-3
MAX_SPIN_SPEED = 4.0
TWO_PI = 2.0 * math.pi
RESTING_ORIENTATION: Tuple[float, float, float] = (0.2, 0.2, 0.0)


def as_orientation(values: Iterable[float]) -> np.ndarray:
    array = np.asarray(tuple(values), dtype=float)
    if array.shape != (3,):
        raise ValueError(f"Orientation must have exactly three axes, got shape {array.shape}.")
    return array


def spin_step(
    orientation: np.ndarray,
    velocity: np.ndarray,
    delta: float,
    decay: float = DEFAULT_SPIN_DECAY,
) -> Tuple[np.ndarray, np.ndarray]:
    """Advance a free spin by ``delta`` seconds and decay the angular velocity once."""

    next_orientation = orientation + velocity * float(delta)
    return next_orientation, velocity * float(decay)


def settle_step(current: np.ndarray, target: np.ndarray, factor: float = DEFAULT_SETTLE_FACTOR) -> np.ndarray:
    """Move ``current`` a fixed fraction of the remaining distance towards ``target``."""

    return current * (1.0 - factor) + target * factor


def angular_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.max(np.abs(np.asarray(a, dtype=float) - np.asarray(b, dtype=float))))


def nearest_equivalent(target: np.ndarray, current: np.ndarray) -> np.ndarray:
    """Shift each axis of ``target`` by whole turns so it lies closest to ``current``."""

    turns = np.round((current - target) / TWO_PI)
    return target + turns * TWO_PI


def random_velocity(rng: random.Random | None = None, speed: float = MAX_SPIN_SPEED) -> np.ndarray:
    generator = rng or random
    return np.array([generator.random() * 2 * speed - speed for _ in range(3)], dtype=float)


class OrientationResolver:
    """Tracks the animated pose of the die currently on screen."""

    def __init__(
        self,
        die_id: str = "d20",
        *,
        decay: float = DEFAULT_SPIN_DECAY,
        settle_factor: float = DEFAULT_SETTLE_FACTOR,
        tolerance: float = DEFAULT_TOLERANCE,
        rng: random.Random | None = None,
    ) -> None:
        if not 0.0 < decay < 1.0:
            raise ValueError("decay must be between 0 and 1.")
        if not 0.0 < settle_factor <= 1.0:
            raise ValueError("settle_factor must be in (0, 1].")
        if tolerance <= 0:
            raise ValueError("tolerance must be positive.")
        self._spec = catalog.lookup(die_id)
        self.decay = float(decay)
        self.settle_factor = float(settle_factor)
        self.tolerance = float(tolerance)
        self._rng = rng
        self._orientation = as_orientation(RESTING_ORIENTATION)
        self._velocity = np.zeros(3, dtype=float)
        self._target: Optional[np.ndarray] = None
        self._target_face: Optional[int] = None

    @property
    def die_id(self) -> str:
        return self._spec.id

    @property
    def orientation(self) -> np.ndarray:
        return self._orientation.copy()

    @property
    def velocity(self) -> np.ndarray:
        return self._velocity.copy()

    @property
    def target(self) -> Optional[np.ndarray]:
        return None if self._target is None else self._target.copy()

    @property
    def target_face(self) -> Optional[int]:
        return self._target_face

    def set_die(self, die_id: str) -> None:
        spec = catalog.lookup(die_id)
        if spec.id != self._spec.id:
            self._spec = spec
            self._target = None
            self._target_face = None

    def begin_free_spin(self, velocity: Iterable[float] | None = None) -> np.ndarray:
        self._velocity = as_orientation(velocity) if velocity is not None else random_velocity(self._rng)
        self._target = None
        self._target_face = None
        log_debug(f"{self.die_id} spinning at {self._velocity.round(3).tolist()}")
        return self._velocity.copy()

    def set_target_face(self, face: int) -> np.ndarray:
        """Aim the settle at ``face``; an unknown face keeps the previous target."""

        terminal = as_orientation(self._spec.orientation_for(face))
        self._target = nearest_equivalent(terminal, self._orientation)
        self._target_face = face
        self._velocity = np.zeros(3, dtype=float)
        return self._target.copy()

    def tick(self, delta: float) -> np.ndarray:
        if self._target is not None:
            self._orientation = settle_step(self._orientation, self._target, self.settle_factor)
        else:
            self._orientation, self._velocity = spin_step(self._orientation, self._velocity, delta, self.decay)
        return self._orientation.copy()

    def remaining_distance(self) -> float:
        if self._target is None:
            return math.inf
        return angular_distance(self._orientation, self._target)

    def has_converged(self) -> bool:
        return self._target is not None and self.remaining_distance() < self.tolerance

    def snap_to_target(self) -> None:
        if self._target is not None:
            self._orientation = self._target.copy()

    def hold(self) -> None:
        """Freeze the die where it is, used when a target cannot be resolved."""

        self._velocity = np.zeros(3, dtype=float)
        self._target = self._orientation.copy()


__all__ = [
    "OrientationResolver",
    "UnknownFaceError",
    "angular_distance",
    "as_orientation",
    "nearest_equivalent",
    "random_velocity",
    "settle_step",
    "spin_step",
]
