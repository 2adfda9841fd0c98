"""Unit tests for settings defaults, validation and environment overrides."""

from __future__ import annotations

import platformdirs
import pytest
from pydantic import ValidationError

from dotpack.config import (
    _DEFAULT_DATA_DIR,
    _DEFAULT_DB_PATH,
    CacheSettings,
    RegistrySettings,
    Settings,
)


class TestPlatformDefaults:
    """Verify config defaults use platformdirs instead of hardcoded Unix paths."""

    def test_default_data_dir_matches_platformdirs(self) -> None:
        assert platformdirs.user_data_dir("dotpack") == _DEFAULT_DATA_DIR

    def test_default_db_path_under_data_dir(self) -> None:
        assert _DEFAULT_DB_PATH.startswith(_DEFAULT_DATA_DIR)
        assert _DEFAULT_DB_PATH.endswith("sources.db")

    def test_cache_settings_uses_platform_default(self) -> None:
        assert CacheSettings().db_path == _DEFAULT_DB_PATH


class TestRegistryDefaults:
    def test_defaults(self) -> None:
        settings = RegistrySettings()
        assert settings.root_dir == "."
        assert settings.source_suffix == ".py"
        assert settings.listing_name == "__listing__"
        assert settings.separator_substitute == "-"
        assert settings.propagate_failures is True


class TestConfigValidation:
    def test_wrong_type_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(fetcher={"max_redirects": "many"})  # type: ignore[arg-type]

    def test_unknown_top_level_field_raises_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            Settings(completely_unknown_field="oops")  # type: ignore[call-arg]

    def test_unknown_nested_field_raises_validation_error(self) -> None:
        """A typo like 'db_paht' is rejected rather than silently ignored."""
        with pytest.raises(ValidationError):
            CacheSettings(db_paht="/intended/path/sources.db")  # type: ignore[call-arg]

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(logging={"level": "LOUD"})  # type: ignore[arg-type]


class TestEnvironmentOverrides:
    def test_nested_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOTPACK__REGISTRY__ROOT_DIR", "lib")
        monkeypatch.setenv("DOTPACK__CACHE__ENABLED", "false")
        settings = Settings()
        assert settings.registry.root_dir == "lib"
        assert settings.cache.enabled is False

    def test_init_args_beat_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOTPACK__FETCHER__MAX_REDIRECTS", "7")
        settings = Settings(fetcher={"max_redirects": 1})  # type: ignore[arg-type]
        assert settings.fetcher.max_redirects == 1
