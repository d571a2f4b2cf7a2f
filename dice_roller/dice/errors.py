"""Exception hierarchy shared by the dice catalog, engine and roll lifecycle."""

from __future__ import annotations


class DiceEngineError(Exception):
    """Base class for dice engine related errors."""


class InvalidDieError(ValueError, DiceEngineError):
    """Raised when a die id is not part of the catalog."""

    def __init__(self, die_id: object) -> None:
        super().__init__(f"Unknown die type: {die_id!r}")
        self.die_id = die_id


class InvalidCountError(ValueError, DiceEngineError):
    """Raised when a dice group asks for fewer than one die."""


class FormulaError(ValueError, DiceEngineError):
    """Raised when a dice formula cannot be parsed."""


class UnknownFaceError(KeyError, DiceEngineError):
    """Raised when a face value has no orientation on the given die."""

    def __init__(self, die_id: str, face: object) -> None:
        super().__init__(f"{die_id} has no face {face!r}")
        self.die_id = die_id
        self.face = face

    def __str__(self) -> str:
        return str(self.args[0])


class RollAlreadyInProgressError(DiceEngineError):
    """Raised when a roll is started while another one is still in flight."""


__all__ = [
    "DiceEngineError",
    "FormulaError",
    "InvalidCountError",
    "InvalidDieError",
    "RollAlreadyInProgressError",
    "UnknownFaceError",
]
