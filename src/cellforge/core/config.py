"""Cellforge runtime configuration definitions."""

from pathlib import Path
from typing import ClassVar

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from env and .env files."""

    app_name: str = "cellforge"
    _package_root: ClassVar[Path] = Path(__file__).resolve().parents[1]
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".cellforge")
    library_filename: str = Field(default="library.db", min_length=1)
    bundled_library_path: Path | None = _package_root / "assets" / "library.db"
    autosave_filename: str = Field(default="autosave.cellforge", min_length=1)
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CELLFORGE_")

    @property
    def library_path(self) -> Path:
        return self.data_dir / self.library_filename

    @property
    def autosave_path(self) -> Path:
        return self.data_dir / self.autosave_filename

    @property
    def catalog_db_url(self) -> str:
        return f"sqlite:///{self.library_path}"

    @model_validator(mode="after")
    def _normalize_paths(self) -> "Settings":
        """Resolve user-relative and cwd-relative directories once, up front."""
        self.data_dir = self.data_dir.expanduser()
        if not self.data_dir.is_absolute():
            self.data_dir = (Path.cwd() / self.data_dir).resolve()
        if self.bundled_library_path is not None:
            self.bundled_library_path = self.bundled_library_path.expanduser()
        return self
