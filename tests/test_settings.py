from pathlib import Path

import pytest
from pydantic import ValidationError

from cellforge.core.config import Settings


def test_settings_read_prefixed_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CELLFORGE_DATA_DIR", str(tmp_path / "forge"))
    monkeypatch.setenv("CELLFORGE_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("CELLFORGE_LIBRARY_FILENAME", "parts.db")

    settings = Settings()

    assert settings.data_dir == tmp_path / "forge"
    assert settings.log_level == "DEBUG"
    assert settings.library_path == tmp_path / "forge" / "parts.db"
    assert settings.catalog_db_url == f"sqlite:///{tmp_path / 'forge' / 'parts.db'}"
    assert settings.autosave_path == tmp_path / "forge" / "autosave.cellforge"


def test_settings_resolve_relative_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    settings = Settings(data_dir=Path("relative"))

    assert settings.data_dir == (tmp_path / "relative").resolve()


def test_settings_default_to_home_directory() -> None:
    settings = Settings()

    assert settings.data_dir.is_absolute()
    assert settings.bundled_library_path is not None
    assert settings.bundled_library_path.name == "library.db"


def test_settings_reject_unknown_log_level() -> None:
    with pytest.raises(ValidationError):
        Settings(log_level="LOUD")
