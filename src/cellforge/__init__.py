"""Cellforge package."""

from cellforge.archive.project import FORMAT_VERSION, PROJECT_EXTENSION, ProjectArchive
from cellforge.catalog.records import Bms, Cell, Material, Shape
from cellforge.catalog.store import CatalogStore, open_catalog
from cellforge.commands import CommandResult, CommandService
from cellforge.core.config import Settings
from cellforge.export.gateway import ExportGateway, StlExportOptions, ThreeMfExportOptions
from cellforge.scene.document import CatalogWarning, SceneDocument, Violation
from cellforge.scene.models import ProjectFile, Scene

__all__ = [
    "Bms",
    "CatalogStore",
    "CatalogWarning",
    "Cell",
    "CommandResult",
    "CommandService",
    "ExportGateway",
    "FORMAT_VERSION",
    "Material",
    "PROJECT_EXTENSION",
    "ProjectArchive",
    "ProjectFile",
    "Scene",
    "SceneDocument",
    "Settings",
    "Shape",
    "StlExportOptions",
    "ThreeMfExportOptions",
    "Violation",
    "open_catalog",
]
