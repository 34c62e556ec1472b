# delta_viewer/config.py

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .logger import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = "DELTA_VIEWER_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


class FormulaSettings(BaseModel):
    error_color: str = "#f00"
    expand_inline_math: bool = False


class ImageSettings(BaseModel):
    width: int = 300
    height: int = 200
    alt: str = "Embedded content"


class LoggingSettings(BaseModel):
    level: str = "INFO"

    @field_validator('level')
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"unknown log level: {value}")
        return value


class ViewerConfig(BaseModel):
    formula: FormulaSettings = Field(default_factory=FormulaSettings)
    image: ImageSettings = Field(default_factory=ImageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    return data or {}


def load_config(path: Optional[os.PathLike] = None) -> ViewerConfig:
    """
    Loads the viewer configuration from a YAML file.

    Args:
        path: Explicit file to read. Defaults to $DELTA_VIEWER_CONFIG, then the
            config.yaml at the repository root.

    Returns:
        ViewerConfig: The parsed settings, or the built-in defaults when the file
        is missing or malformed.
    """
    config_path = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    try:
        config = ViewerConfig.model_validate(_read_yaml(config_path))
    except FileNotFoundError:
        logger.info("[CONFIG] %s not found, using built-in defaults.", config_path)
        return ViewerConfig()
    except (yaml.YAMLError, ValidationError) as e:
        logger.warning("[CONFIG] %s is malformed, using built-in defaults: %s", config_path, e)
        return ViewerConfig()
    logger.debug("[CONFIG] loaded %s", config_path)
    return config


_config: Optional[ViewerConfig] = None


def get_config() -> ViewerConfig:
    """Process-wide default configuration, read once."""
    global _config
    if _config is None:
        _config = load_config()
        get_logger("delta_viewer", _config.logging.level)
    return _config
