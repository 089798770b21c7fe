"""CLI entrypoint for catalog browsing and project file workflows."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from cellforge.archive.project import ProjectArchive
from cellforge.catalog.store import CatalogStore
from cellforge.commands import CommandResult, CommandService
from cellforge.core.config import Settings
from cellforge.core.errors import SchemaError
from cellforge.export.gateway import ExportGateway
from cellforge.scene.document import SceneDocument


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cellforge", description="Cellforge battery pack design CLI")
    parser.add_argument("--data-dir", default=None, help="Override the app data directory")
    sub = parser.add_subparsers(dest="command", required=True)

    cells = sub.add_parser("cells", help="List catalog cells")
    cells.add_argument("--search", default=None, help="Token-prefix filter over manufacturer/model/chemistry/form factor")

    cell = sub.add_parser("cell", help="Show one catalog cell")
    cell.add_argument("cell_id", type=int)

    sub.add_parser("materials", help="List interconnect materials")
    sub.add_parser("shapes", help="List shape primitives")
    sub.add_parser("bms", help="List BMS boards")

    new = sub.add_parser("new", help="Write an empty project file")
    new.add_argument("name")
    new.add_argument("path")

    inspect = sub.add_parser("inspect", help="Load a project and report its contents")
    inspect.add_argument("path")

    return parser


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _fail(result: CommandResult[Any]) -> int:
    _emit({"error": result.error})
    return 1


def _dump_all(items: list[Any]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings() if args.data_dir is None else Settings(data_dir=Path(args.data_dir))
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    try:
        catalog = CatalogStore.open(settings)
    except SchemaError as exc:
        _emit({"error": exc.to_dict()})
        return 2
    commands = CommandService(catalog, ProjectArchive(settings.data_dir, settings.autosave_filename), ExportGateway())
    try:
        if args.command == "cells":
            result = commands.list_cells(args.search)
            if not result.ok:
                return _fail(result)
            _emit({"cells": _dump_all(result.value or [])})
            return 0

        if args.command == "cell":
            result = commands.get_cell(args.cell_id)
            if not result.ok:
                return _fail(result)
            if result.value is None:
                _emit({"error": {"kind": "not_found", "message": f"cell {args.cell_id} not found", "details": {}}})
                return 1
            _emit(result.value.model_dump(mode="json"))
            return 0

        if args.command in ("materials", "shapes", "bms"):
            listing = {
                "materials": commands.list_materials,
                "shapes": commands.list_shapes,
                "bms": commands.list_bms,
            }[args.command]()
            if not listing.ok:
                return _fail(listing)
            _emit({args.command: _dump_all(listing.value or [])})
            return 0

        if args.command == "new":
            created = commands.create_new_project(args.name)
            if not created.ok or created.value is None:
                return _fail(created)
            saved = commands.save_project(created.value, Path(args.path))
            if not saved.ok:
                return _fail(saved)
            _emit({"path": args.path, "name": args.name, "version": created.value.version})
            return 0

        if args.command == "inspect":
            loaded = commands.load_project(Path(args.path), validate=False)
            if not loaded.ok or loaded.value is None:
                return _fail(loaded)
            project = loaded.value
            scene = project.scene
            _emit(
                {
                    "name": project.metadata.name,
                    "version": project.version,
                    "empty": scene.is_empty(),
                    "modified": project.metadata.modified,
                    "counts": {
                        "cells": len(scene.cells),
                        "connections": len(scene.connections),
                        "components": len(scene.components),
                        "groups": len(scene.groups),
                    },
                    "violations": [item.model_dump(mode="json") for item in SceneDocument(scene).validate()],
                    "warnings": loaded.warnings,
                }
            )
            return 0
    finally:
        catalog.close()

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
