"""Project archive: gzip-compressed JSON project files with atomic writes."""

from __future__ import annotations

import gzip
import json
import logging
import os
import re
import tempfile
import zlib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cellforge.core.errors import (
    DecodeError,
    DecompressError,
    EncodeError,
    FileIOError,
    UnsupportedVersionError,
)
from cellforge.scene.document import SceneDocument
from cellforge.scene.models import (
    Camera,
    ProjectFile,
    ProjectMetadata,
    ProjectSettings,
    Scene,
    timestamp_now,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0.0"
SUPPORTED_VERSIONS: frozenset[str] = frozenset({FORMAT_VERSION})
PROJECT_EXTENSION = ".cellforge"

_GZIP_MAGIC = b"\x1f\x8b"
_SEMVER_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:[-+].*)?$")


def _semver(version: str) -> tuple[int, int, int] | None:
    match = _SEMVER_RE.match(version)
    if match is None:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch)


def check_version(version: object) -> str:
    """Gate a document on its declared format version.

    Raises:
        UnsupportedVersionError: For a well-formed version newer than any supported one.
        DecodeError: For a missing, malformed or older-but-unknown version.
    """

    if not isinstance(version, str):
        raise DecodeError("Project file has no version string", details={"version": version})
    if version in SUPPORTED_VERSIONS:
        return version
    parsed = _semver(version)
    supported = sorted(SUPPORTED_VERSIONS)
    if parsed is None:
        raise DecodeError(f"Project version {version!r} is not a semantic version", details={"version": version})
    newest = max(_semver(item) or (0, 0, 0) for item in supported)
    if parsed > newest:
        raise UnsupportedVersionError(version, supported)
    raise DecodeError(
        f"Project version {version} predates every supported version",
        details={"version": version, "supported": supported},
    )


def validate_project_payload(payload: Any) -> bool:
    """Quick structural check of a decoded document before full model validation."""
    return (
        isinstance(payload, dict)
        and isinstance(payload.get("version"), str)
        and isinstance(payload.get("metadata"), dict)
        and isinstance(payload["metadata"].get("name"), str)
        and isinstance(payload.get("scene"), dict)
        and isinstance(payload.get("settings"), dict)
        and isinstance(payload.get("camera"), dict)
    )


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* via a sibling temp file and ``os.replace``.

    Either the previous content or the complete new content is on disk; the
    temp file never outlives a failed write.
    """

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileIOError(f"Failed to create directory {path.parent}: {exc}", details={"path": str(path)}) from exc

    try:
        fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    except OSError as exc:
        raise FileIOError(f"Failed to write file {path}: {exc}", details={"path": str(path)}) from exc
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        # mkstemp creates 0600; saved files get the usual umask-derived mode.
        os.chmod(tmp, _default_file_mode())
        os.replace(tmp, path)
    except OSError as exc:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise FileIOError(f"Failed to write file {path}: {exc}", details={"path": str(path)}) from exc


def read_bytes(path: Path, what: str = "file") -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FileIOError(f"Failed to read {what} {path}: {exc}", details={"path": str(path)}) from exc


class ProjectArchive:
    """Serializes :class:`ProjectFile` documents to and from disk."""

    def __init__(self, data_dir: Path, autosave_filename: str = f"autosave{PROJECT_EXTENSION}") -> None:
        self._data_dir = data_dir
        self._autosave_filename = autosave_filename

    @staticmethod
    def create_new(name: str) -> ProjectFile:
        """Empty, valid document with default settings and camera."""
        now = timestamp_now()
        return ProjectFile(
            version=FORMAT_VERSION,
            metadata=ProjectMetadata(name=name, created=now, modified=now, author=None),
            scene=Scene(),
            settings=ProjectSettings(),
            camera=Camera(),
        )

    @staticmethod
    def touch(project: ProjectFile) -> ProjectFile:
        """Copy of *project* with ``metadata.modified`` set to now."""
        metadata = project.metadata.model_copy(update={"modified": timestamp_now()})
        return project.model_copy(update={"metadata": metadata})

    @staticmethod
    def encode(project: ProjectFile) -> bytes:
        """Canonical JSON text, gzip-compressed at the default level."""
        try:
            text = project.model_dump_json(indent=2)
        except (ValueError, TypeError) as exc:
            raise EncodeError(f"Failed to serialize project: {exc}") from exc
        return gzip.compress(text.encode("utf-8"))

    @staticmethod
    def decode(blob: bytes, *, validate: bool = True) -> ProjectFile:
        if not blob.startswith(_GZIP_MAGIC):
            raise DecompressError(
                "Data is not a gzip-compressed project file",
                details={"reason": "not_gzip"},
            )
        try:
            raw = gzip.decompress(blob)
        except (OSError, EOFError, zlib.error) as exc:
            raise DecompressError(
                f"Failed to decompress project data: {exc}",
                details={"reason": "corrupt_stream"},
            ) from exc

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DecodeError(f"Project content is not UTF-8 JSON: {exc}") from exc
        except RecursionError as exc:
            raise DecodeError("Project content is nested too deeply to decode") from exc
        if not isinstance(payload, dict):
            raise DecodeError("Project content root must be a JSON object")

        check_version(payload.get("version"))
        if not validate_project_payload(payload):
            raise DecodeError(
                "Project content is missing required sections",
                details={"required": ["version", "metadata", "scene", "settings", "camera"]},
            )
        try:
            project = ProjectFile.model_validate(payload)
        except ValidationError as exc:
            raise DecodeError(
                f"Project content does not match the project schema: {exc.error_count()} error(s)",
                details={"errors": [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in exc.errors()]},
            ) from exc

        if validate:
            SceneDocument(project.scene).ensure_valid()
        return project

    def save(self, project: ProjectFile, destination: Path) -> None:
        """Validate, encode and atomically write *project* to *destination*.

        Raises:
            SceneValidationError: Before anything touches the disk.
            EncodeError: If serialization fails.
            FileIOError: If the directory or file cannot be written.
        """

        SceneDocument(project.scene).ensure_valid()
        blob = self.encode(project)
        atomic_write_bytes(destination, blob)
        logger.info("project_saved path=%s bytes=%d", destination, len(blob))

    def load(self, source: Path, *, validate: bool = True) -> ProjectFile:
        blob = read_bytes(source, "project file")
        project = self.decode(blob, validate=validate)
        logger.info("project_loaded path=%s name=%s", source, project.metadata.name)
        return project

    def autosave_location(self) -> Path:
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FileIOError(
                f"Failed to create app data directory {self._data_dir}: {exc}",
                details={"path": str(self._data_dir)},
            ) from exc
        return self._data_dir / self._autosave_filename

    def autosave(self, project: ProjectFile) -> Path:
        location = self.autosave_location()
        self.save(project, location)
        return location

    @staticmethod
    def import_mesh(path: Path) -> bytes:
        """Read a user mesh file verbatim; the bytes are not interpreted."""
        return read_bytes(path, "mesh file")
