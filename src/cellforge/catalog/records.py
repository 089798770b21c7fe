"""Catalog record models returned to callers."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cellforge.core.types import Chemistry, FormFactor, MaterialType, ShapeCategory, Vector3


class _Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class Cell(_Record):
    """Cell datasheet entry."""

    id: int | None = None
    manufacturer: str = Field(min_length=1)
    model: str = Field(min_length=1)
    form_factor: FormFactor
    chemistry: Chemistry
    nominal_voltage: float
    max_voltage: float
    min_voltage: float
    capacity_mah: int = Field(ge=0)
    max_discharge_a: float = Field(ge=0.0)
    max_charge_a: float = Field(ge=0.0)
    internal_res_mohm: float | None = None
    weight_g: float = Field(ge=0.0)
    diameter_mm: float | None = None
    length_mm: float
    width_mm: float | None = None
    height_mm: float | None = None
    datasheet_url: str | None = None
    thermal_limit_c: float | None = 60.0
    cycle_life: int | None = None


class Bms(_Record):
    """Battery management board entry; ``pinout_json`` is opaque to the catalog."""

    id: int | None = None
    manufacturer: str = Field(min_length=1)
    model: str = Field(min_length=1)
    series_count: int = Field(ge=1)
    max_current_a: float = Field(ge=0.0)
    balance_current_ma: float | None = None
    length_mm: float
    width_mm: float
    height_mm: float
    pinout_json: str | None = None


class Material(_Record):
    id: int | None = None
    name: str = Field(min_length=1)
    material_type: MaterialType
    thickness_mm: float | None = None
    width_mm: float | None = None
    resistance_mohm_per_m: float = Field(ge=0.0)
    max_current_a: float = Field(ge=0.0)


class Shape(_Record):
    """Mesh asset entry; ``default_scale`` is stored as ``"x,y,z"`` text."""

    id: int | None = None
    name: str = Field(min_length=1)
    category: ShapeCategory
    file_path: str = Field(min_length=1)
    default_scale: Vector3 = (1.0, 1.0, 1.0)

    @field_validator("default_scale", mode="before")
    @classmethod
    def _parse_scale(cls, value: Any) -> Any:
        if value is None:
            return (1.0, 1.0, 1.0)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(",")]
            if len(parts) != 3:
                raise ValueError(f"default_scale must have three components, got {value!r}")
            return tuple(float(part) for part in parts)
        return value

    @staticmethod
    def scale_to_text(scale: Vector3) -> str:
        return ",".join(f"{component:g}" for component in scale)
