"""Baseline part library inserted into an empty catalog."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from cellforge.catalog.records import Cell, Material
from cellforge.catalog.store import CatalogStore
from cellforge.catalog.tables import CellRow, MaterialRow
from cellforge.core.errors import StoreError
from cellforge.core.types import Chemistry, FormFactor, MaterialType

logger = logging.getLogger(__name__)


def _cylindrical(
    cell_id: int,
    manufacturer: str,
    model: str,
    form_factor: FormFactor,
    capacity_mah: int,
    max_discharge_a: float,
    max_charge_a: float,
    internal_res_mohm: float,
    weight_g: float,
    cycle_life: int,
) -> Cell:
    diameter, length = (18.3, 65.2) if form_factor is FormFactor.F18650 else (21.1, 70.2)
    return Cell(
        id=cell_id,
        manufacturer=manufacturer,
        model=model,
        form_factor=form_factor,
        chemistry=Chemistry.NMC,
        nominal_voltage=3.6,
        max_voltage=4.2,
        min_voltage=2.5,
        capacity_mah=capacity_mah,
        max_discharge_a=max_discharge_a,
        max_charge_a=max_charge_a,
        internal_res_mohm=internal_res_mohm,
        weight_g=weight_g,
        diameter_mm=diameter,
        length_mm=length,
        thermal_limit_c=60.0,
        cycle_life=cycle_life,
    )


BASELINE_CELLS: tuple[Cell, ...] = (
    _cylindrical(1, "Samsung", "30Q", FormFactor.F18650, 3000, 15.0, 4.0, 20.0, 48.0, 250),
    _cylindrical(2, "Samsung", "40T", FormFactor.F21700, 4000, 35.0, 6.0, 12.0, 70.0, 300),
    _cylindrical(3, "Molicel", "P42A", FormFactor.F21700, 4200, 45.0, 6.0, 10.0, 70.0, 800),
    _cylindrical(4, "LG", "HG2", FormFactor.F18650, 3000, 20.0, 4.0, 18.0, 48.0, 300),
    _cylindrical(5, "EVE", "40P", FormFactor.F21700, 4000, 10.0, 4.0, 15.0, 68.0, 1000),
)

BASELINE_MATERIALS: tuple[Material, ...] = (
    Material(
        id=1,
        name="Pure Nickel 0.15x8mm",
        material_type=MaterialType.NICKEL_STRIP,
        thickness_mm=0.15,
        width_mm=8.0,
        resistance_mohm_per_m=70.0,
        max_current_a=15.0,
    ),
    Material(
        id=2,
        name="Pure Nickel 0.2x10mm",
        material_type=MaterialType.NICKEL_STRIP,
        thickness_mm=0.2,
        width_mm=10.0,
        resistance_mohm_per_m=50.0,
        max_current_a=25.0,
    ),
    Material(
        id=3,
        name="Copper Busbar 2mm",
        material_type=MaterialType.BUSBAR,
        thickness_mm=2.0,
        width_mm=20.0,
        resistance_mohm_per_m=8.5,
        max_current_a=100.0,
    ),
)


class CatalogSeeder:
    """Populates a freshly created catalog with the baseline library."""

    def __init__(
        self,
        store: CatalogStore,
        cells: tuple[Cell, ...] = BASELINE_CELLS,
        materials: tuple[Material, ...] = BASELINE_MATERIALS,
    ) -> None:
        self._store = store
        self._cells = cells
        self._materials = materials

    def seed_if_empty(self) -> bool:
        """Insert the baseline rows in one transaction when ``cells`` is empty.

        Returns ``True`` when rows were inserted. A catalog holding any cell
        (including one copied from the bundled library) is left untouched.
        """

        existing = self._store.count_cells()
        if existing > 0:
            logger.info("catalog_seed_skipped existing_cells=%d", existing)
            return False

        try:
            with self._store.session() as session:
                session.add_all(
                    CellRow(**cell.model_dump(mode="json", exclude_none=True)) for cell in self._cells
                )
                present = list(session.execute(select(MaterialRow)).scalars())
                taken_keys = {(row.name, row.material_type) for row in present}
                taken_ids = {row.id for row in present}
                for material in self._materials:
                    if (material.name, material.material_type.value) in taken_keys:
                        continue
                    values = material.model_dump(mode="json", exclude_none=True)
                    if material.id in taken_ids:
                        values.pop("id")
                    session.add(MaterialRow(**values))
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to seed baseline catalog: {exc}", details={"operation": "seed"}) from exc

        logger.info("catalog_seeded cells=%d materials=%d", len(self._cells), len(self._materials))
        return True
