"""Scene graph and project file models.

Field names are the persisted JSON keys. Unknown keys in loaded documents are
ignored so newer writers can add fields without breaking older readers.
Floats must be finite: NaN and infinities have no JSON representation.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cellforge.core.types import ComponentType, ConnectionType, Euler, Terminal, Units, Vector3

ORIGIN: Vector3 = (0.0, 0.0, 0.0)
UNIT_SCALE: Vector3 = (1.0, 1.0, 1.0)


class _SceneModel(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_assignment=True, allow_inf_nan=False)


class CellInstance(_SceneModel):
    """A placed cell; ``cell_id`` is a weak reference into the catalog."""

    uuid: str = Field(min_length=1)
    cell_id: int
    position: Vector3 = ORIGIN
    rotation: Euler = ORIGIN
    custom_label: str | None = None
    group_id: str | None = None


class Connection(_SceneModel):
    """Electrical link between two terminals of cells or components."""

    uuid: str = Field(min_length=1)
    connection_type: ConnectionType
    source_uuid: str
    source_terminal: Terminal
    target_uuid: str
    target_terminal: Terminal
    material_id: int | None = None
    path: list[Vector3] | None = None


class Component(_SceneModel):
    """Non-cell part: a catalog BMS, a catalog shape or an imported mesh."""

    uuid: str = Field(min_length=1)
    component_type: ComponentType
    reference_id: int | None = None
    position: Vector3 = ORIGIN
    rotation: Euler = ORIGIN
    scale: Vector3 = UNIT_SCALE
    custom_mesh_path: str | None = None


class Group(_SceneModel):
    uuid: str = Field(min_length=1)
    name: str
    member_uuids: list[str] = Field(default_factory=list)
    color: str | None = None
    locked: bool = False
    visible: bool = True


class Scene(_SceneModel):
    cells: dict[str, CellInstance] = Field(default_factory=dict)
    connections: dict[str, Connection] = Field(default_factory=dict)
    components: dict[str, Component] = Field(default_factory=dict)
    groups: dict[str, Group] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.cells or self.connections or self.components or self.groups)


class ProjectSettings(_SceneModel):
    units: Units = Units.MM
    grid_size: float = Field(default=1.0, gt=0.0)
    snap_enabled: bool = True
    hex_packing_enabled: bool = False


class Camera(_SceneModel):
    position: Vector3 = (100.0, 100.0, 100.0)
    target: Vector3 = ORIGIN
    zoom: float = Field(default=1.0, gt=0.0)


def timestamp_now() -> str:
    """Current UTC time in the persisted ISO-8601 form."""
    return datetime.now(UTC).isoformat()


class ProjectMetadata(_SceneModel):
    name: str
    created: str = Field(default_factory=timestamp_now)
    modified: str = Field(default_factory=timestamp_now)
    author: str | None = None

    @field_validator("created", "modified")
    @classmethod
    def _check_timestamp(cls, value: str) -> str:
        try:
            datetime.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"timestamp {value!r} is not ISO-8601") from exc
        return value


class ProjectFile(_SceneModel):
    """Persisted unit: everything needed to restore one design session."""

    version: str
    metadata: ProjectMetadata
    scene: Scene
    settings: ProjectSettings
    camera: Camera
