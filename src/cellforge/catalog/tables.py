"""Catalog tables backed by SQLite via SQLAlchemy."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Float, Integer, Text, UniqueConstraint, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from cellforge.core.types import Chemistry, FormFactor, MaterialType, ShapeCategory, sql_enum_values


class Base(DeclarativeBase):
    """Declarative base for catalog tables."""


class CellRow(Base):
    """One purchasable cell model."""

    __tablename__ = "cells"
    __table_args__ = (
        CheckConstraint(f"form_factor IN ({sql_enum_values(FormFactor)})", name="ck_cells_form_factor"),
        CheckConstraint(f"chemistry IN ({sql_enum_values(Chemistry)})", name="ck_cells_chemistry"),
        UniqueConstraint("manufacturer", "model", name="uq_cells_manufacturer_model"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    manufacturer: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    form_factor: Mapped[str] = mapped_column(Text, nullable=False)
    chemistry: Mapped[str] = mapped_column(Text, nullable=False)
    nominal_voltage: Mapped[float] = mapped_column(Float, nullable=False)
    max_voltage: Mapped[float] = mapped_column(Float, nullable=False)
    min_voltage: Mapped[float] = mapped_column(Float, nullable=False)
    capacity_mah: Mapped[int] = mapped_column(Integer, nullable=False)
    max_discharge_a: Mapped[float] = mapped_column(Float, nullable=False)
    max_charge_a: Mapped[float] = mapped_column(Float, nullable=False)
    internal_res_mohm: Mapped[float | None] = mapped_column(Float)
    weight_g: Mapped[float] = mapped_column(Float, nullable=False)
    diameter_mm: Mapped[float | None] = mapped_column(Float)
    length_mm: Mapped[float] = mapped_column(Float, nullable=False)
    width_mm: Mapped[float | None] = mapped_column(Float)
    height_mm: Mapped[float | None] = mapped_column(Float)
    datasheet_url: Mapped[str | None] = mapped_column(Text)
    thermal_limit_c: Mapped[float | None] = mapped_column(Float, server_default=text("60"))
    cycle_life: Mapped[int | None] = mapped_column(Integer)


class BmsRow(Base):
    """Battery management board."""

    __tablename__ = "bms"
    __table_args__ = (UniqueConstraint("manufacturer", "model", name="uq_bms_manufacturer_model"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    manufacturer: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(Text, nullable=False)
    series_count: Mapped[int] = mapped_column(Integer, nullable=False)
    max_current_a: Mapped[float] = mapped_column(Float, nullable=False)
    balance_current_ma: Mapped[float | None] = mapped_column(Float)
    length_mm: Mapped[float] = mapped_column(Float, nullable=False)
    width_mm: Mapped[float] = mapped_column(Float, nullable=False)
    height_mm: Mapped[float] = mapped_column(Float, nullable=False)
    pinout_json: Mapped[str | None] = mapped_column(Text)


class MaterialRow(Base):
    """Interconnect material (strip, busbar or wire)."""

    __tablename__ = "materials"
    __table_args__ = (
        CheckConstraint(f"type IN ({sql_enum_values(MaterialType)})", name="ck_materials_type"),
        UniqueConstraint("name", "type", name="uq_materials_name_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    material_type: Mapped[str] = mapped_column("type", Text, nullable=False)
    thickness_mm: Mapped[float | None] = mapped_column(Float)
    width_mm: Mapped[float | None] = mapped_column(Float)
    resistance_mohm_per_m: Mapped[float] = mapped_column(Float, nullable=False)
    max_current_a: Mapped[float] = mapped_column(Float, nullable=False)


class ShapeRow(Base):
    """Mountable mesh asset (enclosure, bracket, ...)."""

    __tablename__ = "shapes"
    __table_args__ = (
        CheckConstraint(f"category IN ({sql_enum_values(ShapeCategory)})", name="ck_shapes_category"),
        UniqueConstraint("name", name="uq_shapes_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    default_scale: Mapped[str | None] = mapped_column(Text, server_default="1,1,1")


# External-content FTS5 index over the searchable cell columns. The update and
# delete triggers must feed the old values through the 'delete' command, or
# the index keeps tokens for rows that no longer carry them.
SEARCH_INDEX_DDL: tuple[str, ...] = (
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS cells_fts USING fts5(
        manufacturer, model, form_factor, chemistry,
        content='cells',
        content_rowid='id'
    )
    """,
    "DROP TRIGGER IF EXISTS cells_fts_insert",
    "DROP TRIGGER IF EXISTS cells_fts_delete",
    "DROP TRIGGER IF EXISTS cells_fts_update",
    """
    CREATE TRIGGER cells_fts_insert AFTER INSERT ON cells
    BEGIN
        INSERT INTO cells_fts(rowid, manufacturer, model, form_factor, chemistry)
        VALUES (new.id, new.manufacturer, new.model, new.form_factor, new.chemistry);
    END
    """,
    """
    CREATE TRIGGER cells_fts_delete AFTER DELETE ON cells
    BEGIN
        INSERT INTO cells_fts(cells_fts, rowid, manufacturer, model, form_factor, chemistry)
        VALUES ('delete', old.id, old.manufacturer, old.model, old.form_factor, old.chemistry);
    END
    """,
    """
    CREATE TRIGGER cells_fts_update AFTER UPDATE ON cells
    BEGIN
        INSERT INTO cells_fts(cells_fts, rowid, manufacturer, model, form_factor, chemistry)
        VALUES ('delete', old.id, old.manufacturer, old.model, old.form_factor, old.chemistry);
        INSERT INTO cells_fts(rowid, manufacturer, model, form_factor, chemistry)
        VALUES (new.id, new.manufacturer, new.model, new.form_factor, new.chemistry);
    END
    """,
)

SEARCH_INDEX_REBUILD = "INSERT INTO cells_fts(cells_fts) VALUES ('rebuild')"
SEARCH_INDEX_CHECK = "INSERT INTO cells_fts(cells_fts, rank) VALUES ('integrity-check', 1)"
SEARCH_INDEX_MATCH = "SELECT rowid FROM cells_fts WHERE cells_fts MATCH :query"
