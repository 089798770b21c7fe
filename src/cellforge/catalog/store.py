"""Catalog store: embedded parts library with full-text cell search."""

from __future__ import annotations

import logging
import re
import shutil
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import Engine, create_engine, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cellforge.catalog.records import Bms, Cell, Material, Shape
from cellforge.catalog.tables import (
    SEARCH_INDEX_CHECK,
    SEARCH_INDEX_DDL,
    SEARCH_INDEX_MATCH,
    SEARCH_INDEX_REBUILD,
    Base,
    BmsRow,
    CellRow,
    MaterialRow,
    ShapeRow,
)
from cellforge.core.config import Settings
from cellforge.core.errors import DuplicatePartError, SchemaError, SearchQueryError, StoreError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# Mirrors the unicode61 tokenizer: letters and digits are token characters,
# everything else (including "_" and "-") separates tokens.
_TOKEN_RE = re.compile(r"[^\W_]+")


def build_match_query(search: str) -> str:
    """Translate free text into an FTS5 token-prefix query.

    Every token must match (implicit AND) as a prefix, so ``"sam 217"`` finds
    Samsung 21700 cells. Raises :class:`SearchQueryError` when the text holds
    no token at all, e.g. ``"--"``.
    """

    tokens = _TOKEN_RE.findall(search)
    if not tokens:
        raise SearchQueryError(
            f"Search text {search!r} contains no searchable characters",
            details={"search": search},
        )
    return " AND ".join(f'"{token}"*' for token in tokens)


class CatalogStore:
    """Gateway for catalog reads and seeding writes.

    One instance owns one engine; every public operation runs under a single
    lock so at most one catalog statement is in flight at a time.
    """

    def __init__(self, db_url: str) -> None:
        self._db_url = db_url
        self._engine: Engine = create_engine(
            db_url, future=True, connect_args={"check_same_thread": False}
        )
        self._lock = threading.Lock()

    @classmethod
    def open(cls, settings: Settings) -> CatalogStore:
        """Run the startup sequence: data dir, bundled copy, schema, seed.

        Raises:
            SchemaError: If any step fails; the catalog must not serve reads.
        """

        library_path = settings.library_path
        try:
            library_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SchemaError(
                f"Failed to create catalog directory {library_path.parent}: {exc}",
                details={"path": str(library_path.parent)},
            ) from exc

        bundled = settings.bundled_library_path
        if not library_path.exists() and bundled is not None and bundled.is_file():
            try:
                shutil.copyfile(bundled, library_path)
            except OSError as exc:
                raise SchemaError(
                    f"Failed to copy bundled catalog {bundled}: {exc}",
                    details={"path": str(bundled)},
                ) from exc
            logger.info("catalog_bundled_copy source=%s target=%s", bundled, library_path)

        store = cls(settings.catalog_db_url)
        store.initialize_schema()
        try:
            # Imported here: the seeder depends on this module.
            from cellforge.catalog.seed import CatalogSeeder

            CatalogSeeder(store).seed_if_empty()
        except StoreError as exc:
            raise SchemaError(f"Failed to seed catalog: {exc.message}", details=exc.details) from exc
        logger.info("catalog_opened path=%s", library_path)
        return store

    def close(self) -> None:
        self._engine.dispose()

    def initialize_schema(self) -> None:
        """Create tables, the cell search index and its sync triggers."""
        try:
            with self._lock:
                Base.metadata.create_all(self._engine)
                with self._engine.begin() as conn:
                    for statement in SEARCH_INDEX_DDL:
                        conn.exec_driver_sql(statement)
                    try:
                        conn.exec_driver_sql(SEARCH_INDEX_CHECK)
                    except SQLAlchemyError:
                        logger.warning("search_index_divergent action=rebuild")
                        conn.exec_driver_sql(SEARCH_INDEX_REBUILD)
        except SQLAlchemyError as exc:
            raise SchemaError(f"Failed to initialize catalog schema: {exc}") from exc
        logger.info("catalog_schema_ready url=%s", self._db_url)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Locked ORM session for callers that need direct table access."""
        with self._lock, Session(self._engine) as session:
            yield session

    def _read(self, operation: str, fn: Callable[[Session], _T]) -> _T:
        try:
            with self.session() as session:
                return fn(session)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to {operation}: {exc}", details={"operation": operation}) from exc

    def _insert(
        self,
        operation: str,
        row: CellRow | BmsRow | MaterialRow | ShapeRow,
        natural_key: dict[str, object],
    ) -> int:
        try:
            with self.session() as session:
                session.add(row)
                session.commit()
                return int(row.id)
        except IntegrityError as exc:
            raise DuplicatePartError(
                f"Failed to {operation}: {natural_key} already exists or violates a constraint",
                details={"operation": operation, "key": natural_key},
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to {operation}: {exc}", details={"operation": operation}) from exc

    # Cells

    def list_cells(self, search: str | None = None) -> list[Cell]:
        """List cells ordered by (manufacturer, model), optionally filtered.

        ``None`` or blank text means no filter. Any other text is matched
        through the search index; no matches is an empty list, not an error.
        """

        match_query = build_match_query(search) if search and search.strip() else None

        def _query(session: Session) -> list[Cell]:
            stmt = select(CellRow).order_by(CellRow.manufacturer, CellRow.model)
            if match_query is not None:
                ids = session.execute(text(SEARCH_INDEX_MATCH), {"query": match_query}).scalars().all()
                logger.debug("cell_search query=%s hits=%d", match_query, len(ids))
                if not ids:
                    return []
                stmt = stmt.where(CellRow.id.in_(ids))
            return [Cell.model_validate(row) for row in session.execute(stmt).scalars()]

        return self._read("list cells", _query)

    def get_cell(self, cell_id: int) -> Cell | None:
        def _query(session: Session) -> Cell | None:
            row = session.get(CellRow, cell_id)
            return Cell.model_validate(row) if row is not None else None

        return self._read("get cell", _query)

    def count_cells(self) -> int:
        return self._read(
            "count cells",
            lambda session: int(session.execute(select(func.count()).select_from(CellRow)).scalar_one()),
        )

    def add_cell(self, cell: Cell) -> Cell:
        values = cell.model_dump(mode="json", exclude_none=True)
        row = CellRow(**values)
        cell_id = self._insert(
            "add cell", row, {"manufacturer": cell.manufacturer, "model": cell.model}
        )
        stored = self.get_cell(cell_id)
        if stored is None:
            raise StoreError(f"Cell {cell_id} vanished after insert", details={"id": cell_id})
        return stored

    # BMS boards

    def list_bms(self) -> list[Bms]:
        return self._read(
            "list bms",
            lambda session: [
                Bms.model_validate(row)
                for row in session.execute(
                    select(BmsRow).order_by(BmsRow.manufacturer, BmsRow.model)
                ).scalars()
            ],
        )

    def get_bms(self, bms_id: int) -> Bms | None:
        def _query(session: Session) -> Bms | None:
            row = session.get(BmsRow, bms_id)
            return Bms.model_validate(row) if row is not None else None

        return self._read("get bms", _query)

    def add_bms(self, bms: Bms) -> Bms:
        row = BmsRow(**bms.model_dump(mode="json", exclude_none=True))
        bms_id = self._insert("add bms", row, {"manufacturer": bms.manufacturer, "model": bms.model})
        return bms.model_copy(update={"id": bms_id})

    # Materials

    def list_materials(self) -> list[Material]:
        return self._read(
            "list materials",
            lambda session: [
                Material.model_validate(row)
                for row in session.execute(select(MaterialRow).order_by(MaterialRow.name)).scalars()
            ],
        )

    def get_material(self, material_id: int) -> Material | None:
        def _query(session: Session) -> Material | None:
            row = session.get(MaterialRow, material_id)
            return Material.model_validate(row) if row is not None else None

        return self._read("get material", _query)

    def add_material(self, material: Material) -> Material:
        row = MaterialRow(**material.model_dump(mode="json", exclude_none=True))
        material_id = self._insert(
            "add material", row, {"name": material.name, "type": material.material_type.value}
        )
        return material.model_copy(update={"id": material_id})

    # Shapes

    def list_shapes(self) -> list[Shape]:
        return self._read(
            "list shapes",
            lambda session: [
                Shape.model_validate(row)
                for row in session.execute(select(ShapeRow).order_by(ShapeRow.name)).scalars()
            ],
        )

    def get_shape(self, shape_id: int) -> Shape | None:
        def _query(session: Session) -> Shape | None:
            row = session.get(ShapeRow, shape_id)
            return Shape.model_validate(row) if row is not None else None

        return self._read("get shape", _query)

    def add_shape(self, shape: Shape) -> Shape:
        values = shape.model_dump(mode="json", exclude_none=True)
        values["default_scale"] = Shape.scale_to_text(shape.default_scale)
        shape_id = self._insert("add shape", ShapeRow(**values), {"name": shape.name})
        return shape.model_copy(update={"id": shape_id})

    # Search index maintenance

    def rebuild_search_index(self) -> None:
        try:
            with self._lock, self._engine.begin() as conn:
                conn.exec_driver_sql(SEARCH_INDEX_REBUILD)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to rebuild search index: {exc}") from exc
        logger.info("search_index_rebuilt")

    def check_search_index(self) -> None:
        """Raise :class:`StoreError` if the search index diverges from ``cells``."""
        try:
            with self._lock, self._engine.begin() as conn:
                conn.exec_driver_sql(SEARCH_INDEX_CHECK)
        except SQLAlchemyError as exc:
            raise StoreError(f"Search index integrity check failed: {exc}") from exc


def open_catalog(data_dir: Path, bundled_library_path: Path | None = None) -> CatalogStore:
    """Convenience wrapper around :meth:`CatalogStore.open` for scripts and tests."""
    return CatalogStore.open(Settings(data_dir=data_dir, bundled_library_path=bundled_library_path))
