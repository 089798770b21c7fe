"""Export gateway: option validation and byte passthrough to disk.

Mesh generation happens in the rendering layer; this module never inspects
the bytes it is handed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from pydantic import BaseModel

from cellforge.archive.project import atomic_write_bytes
from cellforge.core.errors import ExportOptionError, FileIOError

logger = logging.getLogger(__name__)

_CONTRACTS_DIR = Path(__file__).resolve().parent / "contracts"

_FORMATS: dict[str, tuple[str, str]] = {
    "stl": ("stl", "STL (Binary)"),
    "3mf": ("3mf", "3MF (3D Manufacturing Format)"),
}


class StlExportOptions(BaseModel):
    selection: str = "all"
    merge_geometries: bool = True
    apply_transforms: bool = True
    scale: float = 1.0
    file_name: str


class ThreeMfExportOptions(BaseModel):
    selection: str = "all"
    include_colors: bool = True
    include_materials: bool = True
    separate_objects: bool = False
    build_plate_origin: bool = True
    file_name: str


def _load_validator(name: str) -> Draft202012Validator:
    schema = json.loads((_CONTRACTS_DIR / name).read_text(encoding="utf-8"))
    return Draft202012Validator(schema)


class ExportGateway:
    """Validates export requests against their JSON Schema contracts."""

    def __init__(self) -> None:
        self._stl_validator = _load_validator("stl_export.schema.json")
        self._three_mf_validator = _load_validator("three_mf_export.schema.json")

    @staticmethod
    def _check(validator: Draft202012Validator, raw: Mapping[str, Any]) -> None:
        errors = sorted(validator.iter_errors(dict(raw)), key=str)
        if errors:
            messages = [
                f"{'.'.join(str(part) for part in err.absolute_path) or 'options'}: {err.message}"
                for err in errors
            ]
            raise ExportOptionError(messages)

    def validate_stl_request(self, options: StlExportOptions | Mapping[str, Any]) -> StlExportOptions:
        raw = options.model_dump() if isinstance(options, StlExportOptions) else options
        self._check(self._stl_validator, raw)
        return StlExportOptions.model_validate(raw)

    def validate_three_mf_request(
        self, options: ThreeMfExportOptions | Mapping[str, Any]
    ) -> ThreeMfExportOptions:
        raw = options.model_dump() if isinstance(options, ThreeMfExportOptions) else options
        self._check(self._three_mf_validator, raw)
        return ThreeMfExportOptions.model_validate(raw)

    @staticmethod
    def supported_formats() -> list[str]:
        return list(_FORMATS)

    @staticmethod
    def format_extensions() -> dict[str, str]:
        return {name: extension for name, (extension, _) in _FORMATS.items()}

    @staticmethod
    def format_descriptions() -> dict[str, str]:
        return {name: label for name, (_, label) in _FORMATS.items()}

    @staticmethod
    def write_exported(data: bytes, path: Path) -> None:
        """Write *data* to *path* byte-for-byte."""
        try:
            atomic_write_bytes(path, data)
        except FileIOError as exc:
            raise FileIOError(f"Failed to write export file: {exc.message}", details=exc.details) from exc
        logger.info("export_written path=%s bytes=%d", path, len(data))

    def export_stl(
        self,
        data: bytes,
        path: Path,
        options: StlExportOptions | Mapping[str, Any] | None = None,
    ) -> None:
        if options is not None:
            self.validate_stl_request(options)
        self.write_exported(data, path)

    def export_three_mf(
        self,
        data: bytes,
        path: Path,
        options: ThreeMfExportOptions | Mapping[str, Any] | None = None,
    ) -> None:
        if options is not None:
            self.validate_three_mf_request(options)
        self.write_exported(data, path)
