from __future__ import annotations

from typing import Optional

from dice_roller.dice.dice_preferences import get_roll_settings
from dice_roller.dice.roll_service import RollService, TkAfterScheduler

_roll_service: Optional[RollService] = None


def get_roll_service(scheduler: Optional[TkAfterScheduler] = None) -> RollService:
    global _roll_service
    if _roll_service is None:
        _roll_service = RollService(get_roll_settings(), scheduler=scheduler)
    elif scheduler is not None:
        _roll_service.set_scheduler(scheduler)
    return _roll_service


__all__ = ["RollService", "get_roll_service"]
