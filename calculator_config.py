# calculator_config.py
"""
User settings for the calculator.

Settings live in a JSON file (notenoughcalculator.json by default, or the path in
the CALCULATOR_CONFIG environment variable, which may come from a .env file).
A missing file is created with defaults; a broken one is reported and ignored.

Note: history size is hardcoded at 15 entries and is not configurable.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CALCULATOR_CONFIG"
DEFAULT_CONFIG_FILE = "notenoughcalculator.json"

# Division and power always use at least this many significant digits
MIN_INTERNAL_PRECISION = 50


class CalculatorConfig(BaseModel):
    """Calculator settings. Unknown keys in the file are ignored."""
    model_config = ConfigDict(extra="ignore")

    decimal_precision: int = 10
    show_unit_suggestions: bool = True
    enable_history_navigation: bool = True
    show_inline_results: bool = True
    enable_comma_formatting: bool = True

    @field_validator('decimal_precision')
    @classmethod
    def precision_must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError('decimal_precision cannot be negative')
        return v

    @property
    def internal_precision(self) -> int:
        """Precision actually used for division and powers."""
        return max(self.decimal_precision, MIN_INTERNAL_PRECISION)


def default_config_path() -> Path:
    load_dotenv()
    return Path(os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE))


def save_config(config: CalculatorConfig, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.model_dump(), indent=4), encoding="utf-8")
    logger.info(f"Saved config to {path}")


def load_config(path: Optional[Union[str, Path]] = None) -> CalculatorConfig:
    """
    Load settings from `path` (or the default location).

    Returns:
        The loaded settings, or defaults when the file is missing or invalid.
        A missing file is written out with the defaults.
    """
    path = Path(path) if path is not None else default_config_path()

    if not path.exists():
        config = CalculatorConfig()
        try:
            save_config(config, path)
        except OSError as e:
            logger.warning(f"Could not write default config to {path}: {e}")
        return config

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        config = CalculatorConfig.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Failed to load config from {path}, using defaults: {e}")
        return CalculatorConfig()

    logger.info(f"Loaded config from {path}")
    return config
