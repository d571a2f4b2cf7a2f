"""Non-UI dice rolling engine: request composition, parsing and outcome generation."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterable, Sequence, Tuple, Union

from dice_roller.dice import catalog
from dice_roller.dice.errors import (
    DiceEngineError,
    FormulaError,
    InvalidCountError,
    InvalidDieError,
)
from dice_roller.helpers.logging_helper import log_debug, log_function, log_module_import

log_module_import(__name__)

GroupLike = Union["DiceGroup", Tuple[object, int]]


def _integral(value: object) -> int:
    """Convert ``value`` to ``int`` without truncating fractional input."""

    if isinstance(value, bool):
        raise TypeError(f"Expected an integer, got {value!r}.")
    if isinstance(value, str):
        return int(value.strip())
    number = int(value)  # type: ignore[call-overload]
    if number != value:
        raise ValueError(f"Expected a whole number, got {value!r}.")
    return number


def _modifier(value: object) -> int:
    try:
        return _integral(value)
    except (TypeError, ValueError):
        raise FormulaError(f"Modifier must be an integer, got {value!r}.") from None


@dataclass(frozen=True)
class DiceGroup:
    """One ``NdX`` segment of a roll expression."""

    die_id: str
    count: int = 1

    def __post_init__(self) -> None:
        spec = catalog.lookup(self.die_id)
        try:
            count = _integral(self.count)
        except (TypeError, ValueError):
            raise InvalidCountError(f"Dice count must be an integer, got {self.count!r}.") from None
        if count < 1:
            raise InvalidCountError(f"Dice count must be positive (got {count} for {spec.id}).")
        object.__setattr__(self, "die_id", spec.id)
        object.__setattr__(self, "count", count)

    @property
    def label(self) -> str:
        return f"{self.count}{self.die_id}"


@dataclass(frozen=True)
class RollRequest:
    """Frozen dice selection plus a flat modifier."""

    groups: Tuple[DiceGroup, ...]
    modifier: int = 0

    def __post_init__(self) -> None:
        groups = tuple(self.groups)
        if not groups:
            raise InvalidCountError("Please include at least one die in the roll.")
        object.__setattr__(self, "groups", groups)
        object.__setattr__(self, "modifier", _modifier(self.modifier))

    @property
    def primary_die(self) -> str:
        return self.groups[0].die_id

    @property
    def label(self) -> str:
        return format_expression(self.groups, self.modifier)


@dataclass(frozen=True)
class GroupResult:
    die_id: str
    results: Tuple[int, ...]

    @property
    def total(self) -> int:
        return sum(self.results)

    @property
    def display_values(self) -> Tuple[str, ...]:
        return tuple(catalog.format_face_value(self.die_id, value) for value in self.results)


@dataclass(frozen=True)
class RollOutcome:
    """Structured outcome of evaluating a :class:`RollRequest`."""

    per_group: Tuple[GroupResult, ...]
    modifier: int = 0
    total: int = field(default=0)

    def __post_init__(self) -> None:
        per_group = tuple(self.per_group)
        object.__setattr__(self, "per_group", per_group)
        object.__setattr__(self, "total", sum(group.total for group in per_group) + int(self.modifier))

    @property
    def subtotal(self) -> int:
        return self.total - self.modifier

    @property
    def primary_face(self) -> int | None:
        """First result of the first group, the face the rendered die settles on."""

        for group in self.per_group:
            if group.results:
                return group.results[0]
        return None

    @property
    def primary_die(self) -> str | None:
        return self.per_group[0].die_id if self.per_group else None

    def breakdown(self) -> str:
        parts = [f"{group.die_id}: {', '.join(group.display_values)}" for group in self.per_group]
        if self.modifier:
            parts.append(f"Modifier: {self.modifier:+d}")
        return " | ".join(parts)


def _as_group(group: GroupLike) -> DiceGroup:
    if isinstance(group, DiceGroup):
        return group
    try:
        die_id, count = group  # type: ignore[misc]
    except (TypeError, ValueError):
        raise InvalidDieError(group) from None
    return DiceGroup(die_id=die_id, count=count)


def compose_request(groups: Iterable[GroupLike], modifier: int = 0) -> RollRequest:
    """Validate ``groups`` and freeze them into a :class:`RollRequest`."""

    normalized = tuple(_as_group(group) for group in groups)
    return RollRequest(groups=normalized, modifier=_modifier(modifier))


def format_expression(groups: Sequence[DiceGroup], modifier: int) -> str:
    """Return the human readable roll expression, e.g. ``2d20 + 1d6 + 3``."""

    formatted = " + ".join(group.label for group in groups)
    if not modifier:
        return formatted or "0"
    sign = "+" if modifier > 0 else "-"
    if not formatted:
        return f"{modifier}"
    return f"{formatted} {sign} {abs(modifier)}"


@log_function
def parse_formula(formula: str) -> RollRequest:
    """Parse a textual dice formula such as ``2d20 + 1d6 - 1`` into a request.

    Groups keep the order they are written in; repeated die kinds are not merged.
    """

    cleaned = (formula or "").replace(" ", "").lower()
    if not cleaned:
        raise FormulaError("Please provide a dice formula.")

    tokens: list[tuple[str, str]] = []
    current = ""
    sign = "+"
    for char in cleaned:
        if char in "+-":
            if current:
                tokens.append((sign, current))
            elif tokens or sign == "-":
                raise FormulaError("Formula contains an empty segment.")
            current = ""
            sign = char
        else:
            current += char
    if not current:
        raise FormulaError("Formula contains an empty segment.")
    tokens.append((sign, current))

    groups: list[DiceGroup] = []
    modifier = 0
    for sign, token in tokens:
        if "d" in token:
            if sign == "-":
                raise FormulaError("Dice cannot be subtracted.")
            count_str, _, faces_str = token.partition("d")
            if not faces_str:
                raise FormulaError("Missing die size in formula.")
            try:
                count = int(count_str) if count_str else 1
            except ValueError:
                raise FormulaError(f"Invalid dice count: {count_str!r}") from None
            try:
                groups.append(DiceGroup(die_id=f"d{faces_str}", count=count))
            except InvalidDieError:
                raise FormulaError(f"d{faces_str} is not supported.") from None
            except InvalidCountError as exc:
                raise FormulaError(str(exc)) from None
        else:
            try:
                value = int(token)
            except ValueError:
                raise FormulaError(f"Invalid modifier: {token!r}") from None
            modifier += -value if sign == "-" else value

    if not groups:
        raise FormulaError("Please include at least one die in the formula.")
    return RollRequest(groups=tuple(groups), modifier=modifier)


def _generator(rng: random.Random | None):
    generator = rng or random
    if not hasattr(generator, "randint") or not hasattr(generator, "randrange"):
        raise TypeError("rng must provide randint and randrange methods.")
    return generator


def roll_one(die_id: str, *, rng: random.Random | None = None) -> int:
    """Return a uniformly distributed face value for ``die_id``."""

    spec = catalog.lookup(die_id)
    generator = _generator(rng)
    if spec.is_percentile:
        return generator.randrange(0, 100, 10)
    return generator.randint(1, spec.sides)


def roll_group(group: GroupLike, *, rng: random.Random | None = None) -> Tuple[int, ...]:
    dice_group = _as_group(group)
    return tuple(roll_one(dice_group.die_id, rng=rng) for _ in range(dice_group.count))


def evaluate(request: RollRequest, *, rng: random.Random | None = None) -> RollOutcome:
    """Roll every group of ``request`` and total them with the modifier."""

    if not isinstance(request, RollRequest):
        raise DiceEngineError("evaluate expects a RollRequest.")

    per_group = tuple(
        GroupResult(die_id=group.die_id, results=roll_group(group, rng=rng))
        for group in request.groups
    )
    outcome = RollOutcome(per_group=per_group, modifier=request.modifier)
    log_debug(f"{request.label} => {outcome.breakdown()} = {outcome.total}")
    return outcome


def roll_formula(formula: str, *, rng: random.Random | None = None) -> RollOutcome:
    """Convenience helper that parses and rolls a formula in one go."""

    return evaluate(parse_formula(formula), rng=rng)


__all__ = [
    "DiceGroup",
    "GroupResult",
    "RollOutcome",
    "RollRequest",
    "compose_request",
    "evaluate",
    "format_expression",
    "parse_formula",
    "roll_formula",
    "roll_group",
    "roll_one",
]
