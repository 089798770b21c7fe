"""In-memory scene document with referential integrity checks."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Protocol
from uuid import uuid4

from pydantic import BaseModel, Field

from cellforge.core.errors import SceneValidationError
from cellforge.core.types import ComponentType
from cellforge.scene.models import CellInstance, Component, Connection, Group, Scene

logger = logging.getLogger(__name__)

SceneEntity = CellInstance | Connection | Component | Group


class Violation(BaseModel):
    """One integrity problem found in a scene."""

    code: str
    entity_uuid: str
    message: str
    related: list[str] = Field(default_factory=list)


class CatalogWarning(BaseModel):
    """A weak catalog reference that does not resolve in the current catalog."""

    entity_uuid: str
    table: str
    reference_id: int | None
    message: str


class CatalogLookup(Protocol):
    def get_cell(self, cell_id: int) -> object | None: ...

    def get_bms(self, bms_id: int) -> object | None: ...

    def get_material(self, material_id: int) -> object | None: ...

    def get_shape(self, shape_id: int) -> object | None: ...


class SceneDocument:
    """Mutable wrapper around one :class:`Scene`.

    Mutators keep uuids unique across the four entity maps. Referential checks
    (connection endpoints, group members, group cycles) are deferred to
    :meth:`validate` because an editing session passes through intermediate
    states that are not yet consistent.
    """

    def __init__(self, scene: Scene | None = None) -> None:
        self._scene = scene if scene is not None else Scene()

    @property
    def scene(self) -> Scene:
        return self._scene

    def all_uuids(self) -> set[str]:
        scene = self._scene
        return set(scene.cells) | set(scene.connections) | set(scene.components) | set(scene.groups)

    def new_uuid(self) -> str:
        """Generate a token that collides with no entity in this document."""
        taken = self.all_uuids()
        while True:
            candidate = str(uuid4())
            if candidate not in taken:
                return candidate

    def get(self, uuid: str) -> SceneEntity | None:
        scene = self._scene
        for mapping in (scene.cells, scene.connections, scene.components, scene.groups):
            if uuid in mapping:
                return mapping[uuid]
        return None

    def _claim(self, uuid: str) -> None:
        if uuid in self.all_uuids():
            raise SceneValidationError(
                [
                    Violation(
                        code="duplicate_uuid",
                        entity_uuid=uuid,
                        message=f"uuid {uuid} is already used in this scene",
                    )
                ]
            )

    def add_cell(self, cell: CellInstance) -> CellInstance:
        self._claim(cell.uuid)
        self._scene.cells[cell.uuid] = cell
        return cell

    def add_connection(self, connection: Connection) -> Connection:
        self._claim(connection.uuid)
        self._scene.connections[connection.uuid] = connection
        return connection

    def add_component(self, component: Component) -> Component:
        self._claim(component.uuid)
        self._scene.components[component.uuid] = component
        return component

    def add_group(self, group: Group) -> Group:
        self._claim(group.uuid)
        self._scene.groups[group.uuid] = group
        return group

    def remove(self, uuid: str) -> bool:
        """Remove an entity and every reference to it held by other entities.

        Connections touching a removed cell/component are dropped, the uuid is
        stripped from group memberships and cells pointing at a removed group
        lose their ``group_id``.
        """

        scene = self._scene
        removed = False
        for mapping in (scene.cells, scene.connections, scene.components, scene.groups):
            if mapping.pop(uuid, None) is not None:
                removed = True
        if not removed:
            return False

        for conn_uuid in [
            key
            for key, conn in scene.connections.items()
            if uuid in (conn.source_uuid, conn.target_uuid)
        ]:
            del scene.connections[conn_uuid]
        for group in scene.groups.values():
            if uuid in group.member_uuids:
                group.member_uuids = [member for member in group.member_uuids if member != uuid]
        for cell in scene.cells.values():
            if cell.group_id == uuid:
                cell.group_id = None
        return True

    def validate(self) -> list[Violation]:
        """Collect every integrity violation; an empty list means valid."""
        scene = self._scene
        violations: list[Violation] = []

        seen: dict[str, str] = {}
        for kind, mapping in (
            ("cell", scene.cells),
            ("connection", scene.connections),
            ("component", scene.components),
            ("group", scene.groups),
        ):
            for key, entity in mapping.items():
                if key != entity.uuid:
                    violations.append(
                        Violation(
                            code="key_mismatch",
                            entity_uuid=key,
                            message=f"{kind} stored under {key} declares uuid {entity.uuid}",
                            related=[entity.uuid],
                        )
                    )
                if key in seen:
                    violations.append(
                        Violation(
                            code="duplicate_uuid",
                            entity_uuid=key,
                            message=f"uuid {key} is used by both a {seen[key]} and a {kind}",
                        )
                    )
                else:
                    seen[key] = kind

        endpoints = set(scene.cells) | set(scene.components)
        for conn in scene.connections.values():
            for role, ref in (("source", conn.source_uuid), ("target", conn.target_uuid)):
                if ref not in endpoints:
                    violations.append(
                        Violation(
                            code="dangling_reference",
                            entity_uuid=conn.uuid,
                            message=f"connection {conn.uuid} {role} {ref} does not exist",
                            related=[ref],
                        )
                    )

        members_pool = endpoints | set(scene.groups)
        for group in scene.groups.values():
            for member in group.member_uuids:
                if member not in members_pool:
                    violations.append(
                        Violation(
                            code="dangling_member",
                            entity_uuid=group.uuid,
                            message=f"group {group.uuid} member {member} does not exist",
                            related=[member],
                        )
                    )
        violations.extend(self._group_cycles())

        for cell in scene.cells.values():
            if cell.group_id is not None and cell.group_id not in scene.groups:
                violations.append(
                    Violation(
                        code="unknown_group",
                        entity_uuid=cell.uuid,
                        message=f"cell {cell.uuid} belongs to missing group {cell.group_id}",
                        related=[cell.group_id],
                    )
                )

        for component in scene.components.values():
            if component.custom_mesh_path and component.component_type is not ComponentType.CUSTOM:
                violations.append(
                    Violation(
                        code="custom_mesh_requires_custom_kind",
                        entity_uuid=component.uuid,
                        message=(
                            f"component {component.uuid} of type {component.component_type.value} "
                            "cannot carry a custom mesh path"
                        ),
                    )
                )

        if violations:
            logger.warning("scene_invalid violations=%d", len(violations))
        return violations

    def ensure_valid(self) -> None:
        violations = self.validate()
        if violations:
            raise SceneValidationError(violations)

    def _group_cycles(self) -> list[Violation]:
        """Depth-first walk over group-in-group membership.

        A group met again while still on the current path closes a cycle. Each
        cycle is reported once, rotated to start at its smallest uuid.
        """

        groups = self._scene.groups
        done: set[str] = set()
        found: dict[tuple[str, ...], Violation] = {}

        for root in sorted(groups):
            if root in done:
                continue
            # Explicit stack: nesting depth is user data, not bounded by the interpreter.
            on_path: list[str] = [root]
            on_path_set: set[str] = {root}
            stack: list[tuple[str, Iterator[str]]] = [(root, iter(groups[root].member_uuids))]
            while stack:
                node, members = stack[-1]
                member = next(members, None)
                if member is None:
                    stack.pop()
                    on_path.pop()
                    on_path_set.discard(node)
                    done.add(node)
                    continue
                if member not in groups:
                    continue
                if member in on_path_set:
                    cycle = on_path[on_path.index(member):]
                    pivot = cycle.index(min(cycle))
                    canonical = tuple(cycle[pivot:] + cycle[:pivot])
                    if canonical not in found:
                        found[canonical] = Violation(
                            code="group_cycle",
                            entity_uuid=canonical[0],
                            message="group membership cycle: " + " -> ".join(canonical + canonical[:1]),
                            related=list(canonical),
                        )
                elif member not in done:
                    on_path.append(member)
                    on_path_set.add(member)
                    stack.append((member, iter(groups[member].member_uuids)))
        return list(found.values())

    def catalog_warnings(self, lookup: CatalogLookup) -> list[CatalogWarning]:
        """Resolve weak catalog references; absence is reported, never raised."""
        scene = self._scene
        warnings: list[CatalogWarning] = []
        cache: dict[tuple[str, int], bool] = {}

        def resolves(table: str, ref: int) -> bool:
            key = (table, ref)
            if key not in cache:
                getter = {
                    "cells": lookup.get_cell,
                    "bms": lookup.get_bms,
                    "materials": lookup.get_material,
                    "shapes": lookup.get_shape,
                }[table]
                cache[key] = getter(ref) is not None
            return cache[key]

        def warn(entity_uuid: str, table: str, ref: int | None, message: str) -> None:
            warnings.append(
                CatalogWarning(entity_uuid=entity_uuid, table=table, reference_id=ref, message=message)
            )

        for cell in scene.cells.values():
            if not resolves("cells", cell.cell_id):
                warn(cell.uuid, "cells", cell.cell_id, f"cell {cell.uuid} references missing cell {cell.cell_id}")
        for conn in scene.connections.values():
            if conn.material_id is not None and not resolves("materials", conn.material_id):
                warn(
                    conn.uuid,
                    "materials",
                    conn.material_id,
                    f"connection {conn.uuid} references missing material {conn.material_id}",
                )
        for component in scene.components.values():
            if component.component_type is ComponentType.CUSTOM:
                continue
            table = "bms" if component.component_type is ComponentType.BMS else "shapes"
            if component.reference_id is None:
                warn(component.uuid, table, None, f"component {component.uuid} has no catalog reference")
            elif not resolves(table, component.reference_id):
                warn(
                    component.uuid,
                    table,
                    component.reference_id,
                    f"component {component.uuid} references missing {table} row {component.reference_id}",
                )

        for item in warnings:
            logger.warning(
                "catalog_reference_missing entity=%s table=%s id=%s",
                item.entity_uuid,
                item.table,
                item.reference_id,
            )
        return warnings
