"""Tests for settings and logging configuration."""

import logging
import tomllib
from pathlib import Path

import pytest

from patientstore.config import Settings, configure_logging


class TestSettings:
    """Tests for Settings."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./patients.db")
        monkeypatch.setenv("AUTO_CREATE_SCHEMA", "true")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        config = Settings()

        assert config.database_url == "sqlite+aiosqlite:///./patients.db"
        assert config.auto_create_schema is True
        assert config.log_level == "DEBUG"

    def test_unconfigured_database_warns(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.warns(UserWarning, match="DATABASE_URL not configured"):
            Settings(_env_file=None)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_installs_single_root_handler(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
        root_logger = logging.getLogger()
        saved_handlers = root_logger.handlers[:]
        saved_level = root_logger.level
        try:
            config = Settings(log_level="WARNING")
            configure_logging(config)
            configure_logging(config)

            assert len(root_logger.handlers) == 1
            assert root_logger.level == logging.WARNING
            assert logging.getLogger("aiosqlite").level == logging.WARNING
        finally:
            root_logger.handlers[:] = saved_handlers
            root_logger.setLevel(saved_level)


class TestPackaging:
    """Tests for the distribution layout in pyproject.toml."""

    ROOT = Path(__file__).parent.parent

    def test_package_discovery_includes_namespace_packages(self):
        config = tomllib.loads((self.ROOT / "pyproject.toml").read_text())
        find = config["tool"]["setuptools"]["packages"]["find"]

        assert find["namespaces"] is True
        assert find["include"] == ["patientstore*"]

    def test_subpackages_without_init_hold_modules(self):
        """Directories relying on namespace discovery still contain modules."""
        package_root = self.ROOT / "patientstore"
        namespace_dirs = [
            path
            for path in [package_root, *package_root.iterdir()]
            if path.is_dir() and path.name != "__pycache__" and not (path / "__init__.py").exists()
        ]

        assert {path.name for path in namespace_dirs} >= {"patientstore", "routes", "services"}
        for path in namespace_dirs:
            assert list(path.glob("*.py")), path
