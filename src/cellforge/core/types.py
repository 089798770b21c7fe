"""Canonical domain types shared across Cellforge layers."""

from __future__ import annotations

from enum import StrEnum

Vector3 = tuple[float, float, float]
"""Position, scale or point in millimetres (or inches, per project units)."""

Euler = tuple[float, float, float]
"""XYZ rotation in radians."""


class FormFactor(StrEnum):
    F18650 = "18650"
    F21700 = "21700"
    F26650 = "26650"
    F4680 = "4680"
    PRISMATIC = "prismatic"
    POUCH = "pouch"


class Chemistry(StrEnum):
    NMC = "NMC"
    NCA = "NCA"
    LFP = "LFP"
    LTO = "LTO"
    LCO = "LCO"


class MaterialType(StrEnum):
    NICKEL_STRIP = "nickel_strip"
    COPPER_STRIP = "copper_strip"
    BUSBAR = "busbar"
    WIRE = "wire"


class ShapeCategory(StrEnum):
    ENCLOSURE = "enclosure"
    BRACKET = "bracket"
    SPACER = "spacer"
    VENT = "vent"
    TERMINAL = "terminal"


class ConnectionType(StrEnum):
    SERIES = "series"
    PARALLEL = "parallel"
    BUSBAR = "busbar"


class Terminal(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class ComponentType(StrEnum):
    BMS = "bms"
    SHAPE = "shape"
    CUSTOM = "custom"


class Units(StrEnum):
    MM = "mm"
    IN = "in"


def sql_enum_values(enum_type: type[StrEnum]) -> str:
    """Render enum members as a SQL ``IN (...)`` list for CHECK constraints."""
    return ", ".join(f"'{member.value}'" for member in enum_type)
