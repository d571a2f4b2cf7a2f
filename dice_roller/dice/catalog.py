"""Static catalog of die kinds and the orientation each face settles to."""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Tuple

from dice_roller.dice.errors import InvalidDieError, UnknownFaceError
from dice_roller.helpers.logging_helper import log_module_import

log_module_import(__name__)

Orientation = Tuple[float, float, float]

PERCENTILE_ALIASES = {"d%": "d100", "d00": "d100"}


@dataclass(frozen=True)
class DieKind:
    """Entry used to build a die selection UI."""

    id: str
    display_label: str
    sides: int


@dataclass(frozen=True)
class DieSpec:
    """Immutable description of one die kind.

    ``face_table`` maps every value the die can show to the Euler XYZ rotation
    (radians) that brings that face to the top.
    """

    id: str
    sides: int
    label: str
    face_table: Mapping[int, Orientation]

    def __post_init__(self) -> None:
        normalized = {int(face): tuple(float(axis) for axis in rotation) for face, rotation in dict(self.face_table).items()}
        object.__setattr__(self, "face_table", MappingProxyType(normalized))

    @property
    def faces(self) -> Tuple[int, ...]:
        return tuple(sorted(self.face_table))

    @property
    def is_percentile(self) -> bool:
        return self.sides == 100

    def orientation_for(self, face: int) -> Orientation:
        try:
            return self.face_table[face]
        except (KeyError, TypeError):
            raise UnknownFaceError(self.id, face) from None

    def as_kind(self) -> DieKind:
        return DieKind(id=self.id, display_label=self.label, sides=self.sides)


def _settled(mounts: Iterable[Tuple[int, Orientation]]) -> Dict[int, Orientation]:
    # A face mounted at rotation r is brought to the top by rotating the die by -r.
    return {number: (-rx, -ry, -rz) for number, (rx, ry, rz) in mounts}


def _d4_faces() -> Dict[int, Orientation]:
    return _settled(
        [
            (1, (0.0, 0.0, 0.0)),
            (2, (0.0, 2.1, 0.0)),
            (3, (0.0, -2.1, 0.0)),
            (4, (math.pi, 0.0, 0.0)),
        ]
    )


def _d6_faces() -> Dict[int, Orientation]:
    return {
        1: (math.pi / 2, 0.0, 0.0),
        2: (0.0, 0.0, 0.0),
        3: (0.0, 0.0, -math.pi / 2),
        4: (0.0, 0.0, math.pi / 2),
        5: (math.pi, 0.0, 0.0),
        6: (-math.pi / 2, 0.0, 0.0),
    }


def _d8_faces() -> Dict[int, Orientation]:
    return _settled(
        (i + 1, (((i % 2) * 2 - 1) * math.pi / 3, i * math.pi / 4, 0.0))
        for i in range(8)
    )


def _d10_faces(step: int = 1, start: int = 1) -> Dict[int, Orientation]:
    return _settled(
        (start + i * step, (((i % 2) * 2 - 1) * math.pi / 6, i * math.pi / 5, 0.0))
        for i in range(10)
    )


def _d12_faces() -> Dict[int, Orientation]:
    return _settled(
        (i + 1, (((i % 3) - 1) * math.pi / 4, i * math.pi / 6, 0.0))
        for i in range(12)
    )


def _d20_faces() -> Dict[int, Orientation]:
    return _settled(
        [
            (1, (0.0, 0.0, 0.0)),
            (2, (0.6, 0.8, 0.0)),
            (3, (-0.6, 0.8, 0.0)),
            (4, (-1.2, 0.0, 0.0)),
            (5, (-0.6, -0.8, 0.0)),
            (6, (0.6, -0.8, 0.0)),
            (7, (1.2, 0.0, 0.0)),
            (8, (2.5, 0.8, 0.0)),
            (9, (-2.5, 0.8, 0.0)),
            (10, (-1.9, 0.0, 0.0)),
            (11, (-2.5, -0.8, 0.0)),
            (12, (2.5, -0.8, 0.0)),
            (13, (1.9, 0.0, 0.0)),
            (14, (math.pi, 0.0, 0.0)),
            (15, (0.8, 0.6, 0.0)),
            (16, (0.8, -0.6, 0.0)),
            (17, (0.0, -math.pi / 2, 0.0)),
            (18, (-0.8, -0.6, 0.0)),
            (19, (-0.8, 0.6, 0.0)),
            (20, (0.0, math.pi / 2, 0.0)),
        ]
    )


def _build_catalog() -> Mapping[str, DieSpec]:
    specs = (
        DieSpec(id="d4", sides=4, label="D4", face_table=_d4_faces()),
        DieSpec(id="d6", sides=6, label="D6", face_table=_d6_faces()),
        DieSpec(id="d8", sides=8, label="D8", face_table=_d8_faces()),
        DieSpec(id="d10", sides=10, label="D10", face_table=_d10_faces()),
        DieSpec(id="d12", sides=12, label="D12", face_table=_d12_faces()),
        DieSpec(id="d20", sides=20, label="D20", face_table=_d20_faces()),
        DieSpec(id="d100", sides=100, label="D%", face_table=_d10_faces(step=10, start=0)),
    )
    return MappingProxyType({spec.id: spec for spec in specs})


DIE_CATALOG: Mapping[str, DieSpec] = _build_catalog()


def normalize_die_id(die_id: object) -> str:
    """Return the catalog key for ``die_id`` (``"D20"`` -> ``"d20"``, ``"d%"`` -> ``"d100"``)."""

    if isinstance(die_id, int) and not isinstance(die_id, bool):
        text = f"d{die_id}"
    elif isinstance(die_id, str):
        text = die_id.strip().lower()
        if text.isdigit():
            text = f"d{text}"
    else:
        raise InvalidDieError(die_id)
    return PERCENTILE_ALIASES.get(text, text)


def lookup(die_id: object) -> DieSpec:
    try:
        return DIE_CATALOG[normalize_die_id(die_id)]
    except KeyError:
        raise InvalidDieError(die_id) from None


def list_dice_kinds() -> Tuple[DieKind, ...]:
    return tuple(spec.as_kind() for spec in DIE_CATALOG.values())


def format_face_value(die_id: object, value: int) -> str:
    """Return ``value`` as it should be displayed on ``die_id`` ("00" for a percentile zero)."""

    if lookup(die_id).is_percentile and value == 0:
        return "00"
    return str(value)


__all__ = [
    "DIE_CATALOG",
    "DieKind",
    "DieSpec",
    "Orientation",
    "format_face_value",
    "list_dice_kinds",
    "lookup",
    "normalize_die_id",
]
