"""Error taxonomy shared by the catalog, scene, archive and export layers.

Every error is a :class:`CellforgeError` so the command boundary can turn any
failure into a structured ``{"kind", "message", "details"}`` value without
knowing which layer raised it.
"""

from __future__ import annotations

from typing import Any


class CellforgeError(Exception):
    """Base class for all recoverable and fatal Cellforge failures."""

    kind = "cellforge_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class SchemaError(CellforgeError):
    """Catalog storage could not be created, opened or migrated."""

    kind = "schema_error"


class StoreError(CellforgeError):
    """Catalog read or write failed in the underlying storage."""

    kind = "store_error"


class DuplicatePartError(StoreError):
    """A catalog insert collided with an existing natural key."""

    kind = "duplicate_part"


class SearchQueryError(CellforgeError):
    """Catalog filter text contained nothing searchable."""

    kind = "search_query_error"


class FileIOError(CellforgeError):
    """Filesystem access failed for a project, export or import path."""

    kind = "io_error"


class EncodeError(CellforgeError):
    kind = "encode_error"


class DecompressError(CellforgeError):
    """Persisted bytes are not a gzip stream or the stream is corrupt."""

    kind = "decompress_error"


class DecodeError(CellforgeError):
    """Decompressed content is not a well-formed project document."""

    kind = "decode_error"


class UnsupportedVersionError(CellforgeError):
    """Project file declares a format version newer than this build understands."""

    kind = "unsupported_version"

    def __init__(self, version: str, supported: list[str]) -> None:
        super().__init__(
            f"Project format version {version} is not supported "
            f"(supported: {', '.join(supported)})",
            details={"version": version, "supported": supported},
        )
        self.version = version
        self.supported = supported


class SceneValidationError(CellforgeError):
    """Scene failed referential integrity checks; carries every violation."""

    kind = "validation_error"

    def __init__(self, violations: list[Any]) -> None:
        count = len(violations)
        summary = "; ".join(str(getattr(item, "message", item)) for item in violations)
        super().__init__(
            f"Scene has {count} integrity violation{'s' if count != 1 else ''}: {summary}",
            details={"violations": [_violation_payload(item) for item in violations]},
        )
        self.violations = list(violations)


class ExportOptionError(CellforgeError):
    """Export option record was rejected by its contract."""

    kind = "option_error"

    def __init__(self, messages: list[str]) -> None:
        super().__init__(f"Invalid export options: {'; '.join(messages)}", details={"errors": messages})
        self.messages = list(messages)


def _violation_payload(item: Any) -> Any:
    dump = getattr(item, "model_dump", None)
    if callable(dump):
        return dump(mode="json")
    return str(item)
