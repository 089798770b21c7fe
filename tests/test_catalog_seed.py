from pathlib import Path

from cellforge.catalog.records import Material
from cellforge.catalog.seed import BASELINE_CELLS, CatalogSeeder
from cellforge.catalog.store import CatalogStore, open_catalog
from cellforge.core.config import Settings
from cellforge.core.types import MaterialType


def test_seed_runs_once(tmp_path: Path) -> None:
    store = open_catalog(tmp_path)

    assert CatalogSeeder(store).seed_if_empty() is False
    assert store.count_cells() == len(BASELINE_CELLS)
    assert len(store.list_materials()) == 3


def test_reopen_keeps_existing_rows(tmp_path: Path) -> None:
    first = open_catalog(tmp_path)
    first.add_material(
        Material(
            name="Nickel-plated steel 0.1x6mm",
            material_type=MaterialType.NICKEL_STRIP,
            resistance_mohm_per_m=140.0,
            max_current_a=6.0,
        )
    )
    first.close()

    second = open_catalog(tmp_path)
    assert second.count_cells() == len(BASELINE_CELLS)
    assert len(second.list_materials()) == 4


def test_seed_fills_fresh_store_without_touching_existing_material(tmp_path: Path) -> None:
    store = CatalogStore(f"sqlite:///{tmp_path / 'bare.db'}")
    store.initialize_schema()
    custom = store.add_material(
        Material(
            name="Pure Nickel 0.15x8mm",
            material_type=MaterialType.NICKEL_STRIP,
            thickness_mm=0.15,
            width_mm=8.0,
            resistance_mohm_per_m=71.0,
            max_current_a=14.0,
        )
    )

    assert CatalogSeeder(store).seed_if_empty() is True

    materials = {material.name: material for material in store.list_materials()}
    assert len(materials) == 3
    assert materials["Pure Nickel 0.15x8mm"] == custom
    assert store.count_cells() == 5
    store.check_search_index()


def test_bundled_library_is_copied_and_not_reseeded(tmp_path: Path) -> None:
    bundled_path = tmp_path / "bundle" / "library.db"
    bundled_path.parent.mkdir()
    bundled = CatalogStore(f"sqlite:///{bundled_path}")
    bundled.initialize_schema()
    CatalogSeeder(store=bundled, cells=BASELINE_CELLS[:2], materials=()).seed_if_empty()
    bundled.close()

    settings = Settings(data_dir=tmp_path / "app", bundled_library_path=bundled_path)
    store = CatalogStore.open(settings)

    assert settings.library_path.is_file()
    assert [cell.model for cell in store.list_cells()] == ["30Q", "40T"]
    assert store.list_materials() == []
    assert [cell.model for cell in store.list_cells("40")] == ["40T"]
