import pytest

from cellforge.core.errors import SceneValidationError
from cellforge.core.types import ComponentType, ConnectionType, Terminal
from cellforge.scene.document import SceneDocument
from cellforge.scene.models import CellInstance, Component, Connection, Group, Scene


def _cell(uuid: str, cell_id: int = 1, group_id: str | None = None) -> CellInstance:
    return CellInstance(uuid=uuid, cell_id=cell_id, group_id=group_id)


def _link(uuid: str, source: str, target: str, material_id: int | None = None) -> Connection:
    return Connection(
        uuid=uuid,
        connection_type=ConnectionType.SERIES,
        source_uuid=source,
        source_terminal=Terminal.POSITIVE,
        target_uuid=target,
        target_terminal=Terminal.NEGATIVE,
        material_id=material_id,
    )


class _Catalog:
    def __init__(self, cells=(), bms=(), materials=(), shapes=()) -> None:
        self.tables = {"cells": set(cells), "bms": set(bms), "materials": set(materials), "shapes": set(shapes)}
        self.calls: list[tuple[str, int]] = []

    def _get(self, table: str, ref: int) -> object | None:
        self.calls.append((table, ref))
        return object() if ref in self.tables[table] else None

    def get_cell(self, cell_id: int) -> object | None:
        return self._get("cells", cell_id)

    def get_bms(self, bms_id: int) -> object | None:
        return self._get("bms", bms_id)

    def get_material(self, material_id: int) -> object | None:
        return self._get("materials", material_id)

    def get_shape(self, shape_id: int) -> object | None:
        return self._get("shapes", shape_id)


def test_empty_scene_is_valid() -> None:
    assert SceneDocument().validate() == []


def test_dangling_source_is_reported_once() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("c1"))
    doc.add_connection(_link("k1", "ghost", "c1"))

    violations = doc.validate()

    assert len(violations) == 1
    assert violations[0].code == "dangling_reference"
    assert violations[0].entity_uuid == "k1"
    assert violations[0].related == ["ghost"]


def test_connection_between_terminals_of_one_cell_is_accepted() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("c1"))
    doc.add_connection(_link("k1", "c1", "c1"))

    assert doc.validate() == []


def test_connection_may_target_component() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("c1"))
    doc.add_component(Component(uuid="b1", component_type=ComponentType.BMS, reference_id=1))
    doc.add_connection(_link("k1", "c1", "b1"))

    assert doc.validate() == []


def test_uuid_is_unique_across_entity_kinds() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("same"))

    with pytest.raises(SceneValidationError) as excinfo:
        doc.add_group(Group(uuid="same", name="dup"))

    assert excinfo.value.violations[0].code == "duplicate_uuid"
    assert "same" not in doc.scene.groups


def test_key_mismatch_and_cross_map_duplicates_are_detected() -> None:
    doc = SceneDocument()
    doc.scene.cells["a"] = _cell("b")
    doc.scene.groups["a"] = Group(uuid="a", name="g")

    codes = sorted(item.code for item in doc.validate())

    assert codes == ["duplicate_uuid", "key_mismatch"]


@pytest.mark.parametrize("length", [1, 2, 3, 5])
def test_group_cycle_of_any_length_is_reported_once(length: int) -> None:
    doc = SceneDocument()
    names = [f"g{index}" for index in range(length)]
    for index, name in enumerate(names):
        doc.add_group(Group(uuid=name, name=name, member_uuids=[names[(index + 1) % length]]))

    violations = doc.validate()

    assert [item.code for item in violations] == ["group_cycle"]
    assert violations[0].related == names
    assert violations[0].entity_uuid == "g0"


def test_nested_groups_without_cycle_are_valid() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("c1", group_id="inner"))
    doc.add_group(Group(uuid="inner", name="inner", member_uuids=["c1"]))
    doc.add_group(Group(uuid="outer", name="outer", member_uuids=["inner"]))
    doc.add_group(Group(uuid="top", name="top", member_uuids=["outer", "inner"]))

    assert doc.validate() == []


def _group_chain(depth: int, close_loop: bool = False) -> Scene:
    names = [f"g{index:05d}" for index in range(depth)]
    groups = {
        name: Group(uuid=name, name=name, member_uuids=[names[index + 1]] if index + 1 < depth else [])
        for index, name in enumerate(names)
    }
    if close_loop:
        groups[names[-1]] = Group(uuid=names[-1], name=names[-1], member_uuids=[names[0]])
    return Scene(groups=groups)


def test_deep_group_nesting_validates_without_recursion_limit() -> None:
    doc = SceneDocument(_group_chain(5000))

    assert doc.validate() == []
    doc.ensure_valid()


def test_deep_group_loop_is_reported_with_full_path() -> None:
    doc = SceneDocument(_group_chain(5000, close_loop=True))

    violations = doc.validate()

    assert [item.code for item in violations] == ["group_cycle"]
    assert len(violations[0].related) == 5000
    assert violations[0].entity_uuid == "g00000"


def test_dangling_member_and_unknown_group() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("c1", group_id="missing"))
    doc.add_group(Group(uuid="g1", name="g", member_uuids=["c1", "nobody"]))

    codes = sorted(item.code for item in doc.validate())

    assert codes == ["dangling_member", "unknown_group"]


def test_custom_mesh_path_requires_custom_component() -> None:
    doc = SceneDocument()
    doc.add_component(
        Component(uuid="s1", component_type=ComponentType.SHAPE, reference_id=2, custom_mesh_path="/tmp/x.stl")
    )
    doc.add_component(Component(uuid="m1", component_type=ComponentType.CUSTOM, custom_mesh_path="/tmp/y.stl"))

    violations = doc.validate()

    assert [(item.code, item.entity_uuid) for item in violations] == [("custom_mesh_requires_custom_kind", "s1")]


def test_ensure_valid_raises_with_all_violations() -> None:
    doc = SceneDocument()
    doc.add_connection(_link("k1", "x", "y"))

    with pytest.raises(SceneValidationError) as excinfo:
        doc.ensure_valid()

    assert len(excinfo.value.violations) == 2
    assert excinfo.value.to_dict()["kind"] == "validation_error"
    assert len(excinfo.value.details["violations"]) == 2


def test_remove_cascades_references() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("c1", group_id="g1"))
    doc.add_cell(_cell("c2", group_id="g1"))
    doc.add_connection(_link("k1", "c1", "c2"))
    doc.add_group(Group(uuid="g1", name="pack", member_uuids=["c1", "c2"]))
    doc.add_group(Group(uuid="g2", name="outer", member_uuids=["g1"]))

    assert doc.remove("c1") is True
    assert "k1" not in doc.scene.connections
    assert doc.scene.groups["g1"].member_uuids == ["c2"]

    assert doc.remove("g1") is True
    assert doc.scene.cells["c2"].group_id is None
    assert doc.scene.groups["g2"].member_uuids == []
    assert doc.remove("g1") is False
    assert doc.validate() == []


def test_new_uuid_never_collides() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("c1"))

    fresh = {doc.new_uuid() for _ in range(20)}

    assert len(fresh) == 20
    assert "c1" not in fresh
    assert doc.get("c1") is not None
    assert doc.get(next(iter(fresh))) is None


def test_catalog_warnings_report_unresolved_weak_references() -> None:
    doc = SceneDocument()
    doc.add_cell(_cell("c1", cell_id=1))
    doc.add_cell(_cell("c2", cell_id=99))
    doc.add_cell(_cell("c3", cell_id=99))
    doc.add_connection(_link("k1", "c1", "c2", material_id=42))
    doc.add_component(Component(uuid="b1", component_type=ComponentType.BMS, reference_id=7))
    doc.add_component(Component(uuid="s1", component_type=ComponentType.SHAPE))
    doc.add_component(Component(uuid="m1", component_type=ComponentType.CUSTOM, custom_mesh_path="a.stl"))
    catalog = _Catalog(cells=[1], materials=[1])

    warnings = doc.catalog_warnings(catalog)

    assert sorted((item.entity_uuid, item.table, item.reference_id) for item in warnings) == [
        ("b1", "bms", 7),
        ("c2", "cells", 99),
        ("c3", "cells", 99),
        ("k1", "materials", 42),
        ("s1", "shapes", None),
    ]
    assert catalog.calls.count(("cells", 99)) == 1
    assert doc.validate() == []
