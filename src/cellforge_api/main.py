"""FastAPI interface for Cellforge with an explicit dependency container."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import Base64Bytes, BaseModel, Field

from cellforge.archive.project import ProjectArchive
from cellforge.catalog.store import CatalogStore
from cellforge.commands import CommandResult, CommandService
from cellforge.core.config import Settings
from cellforge.export.gateway import ExportGateway
from cellforge.scene.models import ProjectFile

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: dict[str, int] = {
    "duplicate_part": 409,
    "search_query_error": 422,
    "validation_error": 422,
    "decode_error": 422,
    "option_error": 422,
    "decompress_error": 415,
    "unsupported_version": 415,
    "io_error": 500,
    "encode_error": 500,
    "store_error": 500,
    "schema_error": 500,
}


class NewProjectIn(BaseModel):
    name: str = Field(min_length=1)


class SaveProjectIn(BaseModel):
    project: ProjectFile
    path: str = Field(min_length=1)


class AutosaveIn(BaseModel):
    project: ProjectFile


class PathIn(BaseModel):
    path: str = Field(min_length=1)


class ExportIn(BaseModel):
    """Opaque mesh bytes (base64) plus optional option record."""

    data: Base64Bytes
    path: str = Field(min_length=1)
    options: dict[str, Any] | None = None


class LoadedProjectOut(BaseModel):
    project: ProjectFile
    warnings: list[dict[str, Any]]


def _unwrap(result: CommandResult[Any]) -> Any:
    if result.ok:
        return result.value
    error = result.error or {"kind": "cellforge_error", "message": "unknown failure", "details": {}}
    raise HTTPException(status_code=_STATUS_BY_KIND.get(str(error.get("kind")), 500), detail=error)


def build_app(settings: Settings | None = None, catalog: CatalogStore | None = None) -> FastAPI:
    """Build FastAPI app with an explicit dependency container in ``app.state``.

    Opening the catalog happens here, before any route is served; a
    ``SchemaError`` propagates and the app is never built.
    """

    settings = settings or Settings()
    store = catalog or CatalogStore.open(settings)

    app = FastAPI(title=f"{settings.app_name} API", version="0.1.0")
    app.state.settings = settings
    app.state.catalog = store
    app.state.archive = ProjectArchive(settings.data_dir, settings.autosave_filename)
    app.state.exporter = ExportGateway()
    app.state.commands = CommandService(store, app.state.archive, app.state.exporter)

    @app.get("/v1/cells")
    def list_cells(request: Request, search: str | None = Query(None, max_length=200)) -> dict[str, Any]:
        cells = _unwrap(request.app.state.commands.list_cells(search))
        return {"items": [cell.model_dump(mode="json") for cell in cells]}

    @app.get("/v1/cells/{cell_id}")
    def get_cell(request: Request, cell_id: int) -> dict[str, Any]:
        cell = _unwrap(request.app.state.commands.get_cell(cell_id))
        if cell is None:
            raise HTTPException(status_code=404, detail="cell_not_found")
        return cell.model_dump(mode="json")

    @app.get("/v1/materials")
    def list_materials(request: Request) -> dict[str, Any]:
        materials = _unwrap(request.app.state.commands.list_materials())
        return {"items": [item.model_dump(mode="json") for item in materials]}

    @app.get("/v1/shapes")
    def list_shapes(request: Request) -> dict[str, Any]:
        shapes = _unwrap(request.app.state.commands.list_shapes())
        return {"items": [item.model_dump(mode="json") for item in shapes]}

    @app.get("/v1/bms")
    def list_bms(request: Request) -> dict[str, Any]:
        boards = _unwrap(request.app.state.commands.list_bms())
        return {"items": [item.model_dump(mode="json") for item in boards]}

    @app.post("/v1/projects/new", response_model=ProjectFile)
    def create_new_project(request: Request, body: NewProjectIn) -> ProjectFile:
        return _unwrap(request.app.state.commands.create_new_project(body.name))

    @app.post("/v1/projects/save")
    def save_project(request: Request, body: SaveProjectIn) -> dict[str, str]:
        _unwrap(request.app.state.commands.save_project(body.project, Path(body.path)))
        return {"status": "saved", "path": body.path}

    @app.post("/v1/projects/autosave")
    def autosave_project(request: Request, body: AutosaveIn) -> dict[str, str]:
        location = _unwrap(request.app.state.commands.autosave_project(body.project))
        return {"status": "saved", "path": str(location)}

    @app.post("/v1/projects/load", response_model=LoadedProjectOut)
    def load_project(request: Request, body: PathIn) -> dict[str, Any]:
        result = request.app.state.commands.load_project(Path(body.path))
        project = _unwrap(result)
        return {"project": project, "warnings": result.warnings}

    @app.get("/v1/export/formats")
    def export_formats(request: Request) -> dict[str, Any]:
        exporter: ExportGateway = request.app.state.exporter
        return {
            "formats": exporter.supported_formats(),
            "extensions": exporter.format_extensions(),
            "descriptions": exporter.format_descriptions(),
        }

    @app.post("/v1/export/stl")
    def export_stl(request: Request, body: ExportIn) -> dict[str, Any]:
        _unwrap(request.app.state.commands.export_stl(body.data, Path(body.path), body.options))
        return {"status": "written", "path": body.path, "bytes": len(body.data)}

    @app.post("/v1/export/3mf")
    def export_three_mf(request: Request, body: ExportIn) -> dict[str, Any]:
        _unwrap(request.app.state.commands.export_three_mf(body.data, Path(body.path), body.options))
        return {"status": "written", "path": body.path, "bytes": len(body.data)}

    @app.post("/v1/mesh/import")
    def import_mesh(request: Request, body: PathIn) -> dict[str, Any]:
        data = _unwrap(request.app.state.commands.import_mesh(Path(body.path)))
        return {"path": body.path, "data": base64.b64encode(data).decode("ascii"), "bytes": len(data)}

    logger.info("api_ready data_dir=%s", settings.data_dir)
    return app


__all__ = ["build_app"]
