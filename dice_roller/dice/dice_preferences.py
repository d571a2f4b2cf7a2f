"""Helpers that read roll timings and limits from the application configuration."""

from __future__ import annotations

from dataclasses import dataclass

from dice_roller.dice import catalog, history, orientation, roll_state
from dice_roller.dice.errors import InvalidDieError
from dice_roller.helpers.config_helper import ConfigHelper
from dice_roller.helpers.logging_helper import log_function, log_module_import, log_warning

log_module_import(__name__)

SECTION = "Dice"


@dataclass(frozen=True)
class RollSettings:
    spin_duration: float = roll_state.DEFAULT_SPIN_DURATION
    tick_ms: int = 16
    spin_decay: float = orientation.DEFAULT_SPIN_DECAY
    settle_factor: float = orientation.DEFAULT_SETTLE_FACTOR
    convergence_tolerance: float = orientation.DEFAULT_TOLERANCE
    history_size: int = history.DEFAULT_HISTORY_SIZE
    default_die: str = "d20"


_DEFAULTS = RollSettings()


def _bounded_float(key: str, fallback: float, *, low: float, high: float | None = None, inclusive_low: bool = False) -> float:
    value = ConfigHelper.getfloat(SECTION, key, fallback=fallback)
    too_low = value < low if inclusive_low else value <= low
    if too_low or (high is not None and value >= high):
        log_warning(f"[{SECTION}] {key}={value} is out of range, using {fallback}")
        return fallback
    return value


def _positive_int(key: str, fallback: int) -> int:
    value = ConfigHelper.getint(SECTION, key, fallback=fallback)
    if value < 1:
        log_warning(f"[{SECTION}] {key}={value} must be positive, using {fallback}")
        return fallback
    return value


def get_default_die() -> str:
    raw = ConfigHelper.get(SECTION, "default_die", fallback=_DEFAULTS.default_die) or _DEFAULTS.default_die
    try:
        return catalog.lookup(raw).id
    except InvalidDieError:
        log_warning(f"[{SECTION}] default_die={raw!r} is not a known die, using {_DEFAULTS.default_die}")
        return _DEFAULTS.default_die


@log_function
def get_roll_settings() -> RollSettings:
    """Return the roll settings for the current configuration, with safe fallbacks."""

    spin_ms = _bounded_float(
        "spin_duration_ms",
        _DEFAULTS.spin_duration * 1000.0,
        low=0.0,
        inclusive_low=True,
    )
    return RollSettings(
        spin_duration=spin_ms / 1000.0,
        tick_ms=_positive_int("tick_ms", _DEFAULTS.tick_ms),
        spin_decay=_bounded_float("spin_decay", _DEFAULTS.spin_decay, low=0.0, high=1.0),
        settle_factor=_bounded_float("settle_factor", _DEFAULTS.settle_factor, low=0.0, high=1.0 + 1e-9),
        convergence_tolerance=_bounded_float("convergence_tolerance", _DEFAULTS.convergence_tolerance, low=0.0),
        history_size=_positive_int("history_size", _DEFAULTS.history_size),
        default_die=get_default_die(),
    )


__all__ = ["RollSettings", "get_default_die", "get_roll_settings"]
