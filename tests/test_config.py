from pathlib import Path

import pytest

from delta_viewer.config import CONFIG_ENV_VAR, ViewerConfig, load_config


def test_defaults() -> None:
    config = ViewerConfig()
    assert config.formula.error_color == "#f00"
    assert config.formula.expand_inline_math is False
    assert (config.image.width, config.image.height, config.image.alt) == (300, 200, "Embedded content")
    assert config.logging.level == "INFO"


def test_load_partial_file(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("formula:\n  error_color: '#c00'\nimage:\n  width: 640\nlogging:\n  level: debug\n",
                    encoding="utf-8")
    config = load_config(path)
    assert config.formula.error_color == "#c00"
    assert config.image.width == 640
    assert config.image.height == 200
    assert config.logging.level == "DEBUG"


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.yaml") == ViewerConfig()


def test_empty_file_uses_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == ViewerConfig()


@pytest.mark.parametrize("content", [
    "formula: [unclosed",
    "image:\n  width: wide\n",
    "logging:\n  level: LOUD\n",
    "- just\n- a list\n",
])
def test_malformed_file_uses_defaults(tmp_path: Path, content: str, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")
    assert load_config(path) == ViewerConfig()
    assert "[CONFIG]" in caplog.text


def test_environment_variable_selects_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "viewer.yaml"
    path.write_text("formula:\n  expand_inline_math: true\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
    assert load_config().formula.expand_inline_math is True


def test_repository_config_matches_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    assert load_config() == ViewerConfig()
