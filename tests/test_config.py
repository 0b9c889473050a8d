from pathlib import Path

import pytest
from pydantic import ValidationError

from bookshelf.config import DEFAULT_ENV, config_path, load_config, resolve_env
from bookshelf.exceptions import ConfigError


def test_load_config_reads_environment_specific_file(tmp_path: Path, make_config) -> None:
    make_config(tmp_path, env="staging", port=9001, static_contents_path="public")

    settings, env = load_config("staging", tmp_path)

    assert env == "staging"
    assert settings.app_env == "staging"
    assert settings.port == 9001
    assert settings.static_contents_path == "public"
    assert settings.metrics_path == "/prometheus"


def test_environment_variables_override_file_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, make_config) -> None:
    make_config(tmp_path, port=9001)
    monkeypatch.setenv("PORT", "9100")

    settings, _ = load_config("test", tmp_path)

    assert settings.port == 9100


def test_env_tag_falls_back_to_app_env_then_default(monkeypatch: pytest.MonkeyPatch) -> None:
    assert resolve_env() == DEFAULT_ENV == "develop"
    monkeypatch.setenv("APP_ENV", "docker")
    assert resolve_env() == "docker"
    assert resolve_env("test") == "test"


def test_config_dir_falls_back_to_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    assert config_path("test") == tmp_path / "application.test.env"


def test_missing_file_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config("nowhere", tmp_path)


@pytest.mark.parametrize("tag", ["../etc", "a b", "prod;rm"])
def test_invalid_env_tag_is_rejected(tag: str, tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tag, tmp_path)


def test_invalid_value_is_a_config_error(tmp_path: Path, make_config) -> None:
    make_config(tmp_path, port="not-a-port")
    with pytest.raises(ConfigError, match="Invalid configuration"):
        load_config("test", tmp_path)


def test_settings_are_immutable(tmp_path: Path, make_config) -> None:
    make_config(tmp_path)
    settings, _ = load_config("test", tmp_path)
    with pytest.raises(ValidationError):
        settings.port = 1


def test_empty_static_path_means_disabled(tmp_path: Path, make_config) -> None:
    make_config(tmp_path, static_contents_path="")
    settings, _ = load_config("test", tmp_path)
    assert settings.static_path is None
