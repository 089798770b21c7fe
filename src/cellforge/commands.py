"""Command boundary consumed by the UI layer.

Each command returns a :class:`CommandResult`; no :class:`CellforgeError`
escapes, so callers branch on ``ok`` instead of catching exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, TypeVar

from cellforge.archive.project import ProjectArchive
from cellforge.catalog.records import Bms, Cell, Material, Shape
from cellforge.catalog.store import CatalogStore
from cellforge.core.errors import CellforgeError
from cellforge.export.gateway import ExportGateway
from cellforge.scene.document import CatalogWarning, SceneDocument
from cellforge.scene.models import ProjectFile

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


@dataclass(slots=True)
class CommandResult(Generic[_T]):
    """Success value or structured error, never both."""

    ok: bool
    value: _T | None = None
    error: dict[str, Any] | None = None
    warnings: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class LoadedProject:
    project: ProjectFile
    catalog_warnings: list[CatalogWarning]


class CommandService:
    """Dispatches UI commands to the explicitly owned store, archive and gateway."""

    def __init__(self, catalog: CatalogStore, archive: ProjectArchive, exporter: ExportGateway) -> None:
        self.catalog = catalog
        self.archive = archive
        self.exporter = exporter

    @staticmethod
    def _run(name: str, fn: Callable[[], _T]) -> CommandResult[_T]:
        try:
            return CommandResult(ok=True, value=fn())
        except CellforgeError as exc:
            logger.warning("command_failed command=%s kind=%s message=%s", name, exc.kind, exc.message)
            return CommandResult(ok=False, error=exc.to_dict())

    def list_cells(self, search: str | None = None) -> CommandResult[list[Cell]]:
        return self._run("list_cells", lambda: self.catalog.list_cells(search))

    def get_cell(self, cell_id: int) -> CommandResult[Cell | None]:
        return self._run("get_cell", lambda: self.catalog.get_cell(cell_id))

    def list_materials(self) -> CommandResult[list[Material]]:
        return self._run("list_materials", self.catalog.list_materials)

    def list_shapes(self) -> CommandResult[list[Shape]]:
        return self._run("list_shapes", self.catalog.list_shapes)

    def list_bms(self) -> CommandResult[list[Bms]]:
        return self._run("list_bms", self.catalog.list_bms)

    def create_new_project(self, name: str) -> CommandResult[ProjectFile]:
        return self._run("create_new_project", lambda: self.archive.create_new(name))

    def save_project(self, project: ProjectFile, path: Path) -> CommandResult[None]:
        return self._run("save_project", lambda: self.archive.save(project, path))

    def autosave_project(self, project: ProjectFile) -> CommandResult[Path]:
        return self._run("autosave_project", lambda: self.archive.autosave(project))

    def load_project(self, path: Path, *, validate: bool = True) -> CommandResult[ProjectFile]:
        """Load a project and attach unresolved catalog references as warnings."""

        def _load() -> LoadedProject:
            project = self.archive.load(path, validate=validate)
            warnings = SceneDocument(project.scene).catalog_warnings(self.catalog)
            return LoadedProject(project=project, catalog_warnings=warnings)

        result = self._run("load_project", _load)
        if not result.ok or result.value is None:
            return CommandResult(ok=False, error=result.error)
        return CommandResult(
            ok=True,
            value=result.value.project,
            warnings=[item.model_dump(mode="json") for item in result.value.catalog_warnings],
        )

    def export_stl(
        self,
        data: bytes,
        path: Path,
        options: Mapping[str, Any] | None = None,
    ) -> CommandResult[None]:
        return self._run("export_stl", lambda: self.exporter.export_stl(data, path, options))

    def export_three_mf(
        self,
        data: bytes,
        path: Path,
        options: Mapping[str, Any] | None = None,
    ) -> CommandResult[None]:
        return self._run("export_three_mf", lambda: self.exporter.export_three_mf(data, path, options))

    def import_mesh(self, path: Path) -> CommandResult[bytes]:
        return self._run("import_mesh", lambda: self.archive.import_mesh(path))
