# tabletop_engine/config.py
"""
Engine settings and logging setup.

Settings are read from an optional JSON file and then overridden from the
environment (a ``.env`` file is honoured through python-dotenv). Every
component receives an ``EngineSettings`` instance explicitly; nothing in the
package reads these values from module-level state.
"""
import json
import logging
import os
import sys
from enum import Enum
from typing import Optional, Dict, Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from tabletop_engine.exceptions import ConfigurationError

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
ROOT_LOGGER_NAME = 'tabletop_engine'

ENV_SETTINGS_PATH = "TABLETOP_SETTINGS_PATH"
ENV_HOOK_ERROR_MODE = "TABLETOP_HOOK_ERROR_MODE"
ENV_CRIT_THRESHOLD = "TABLETOP_CRIT_THRESHOLD"
ENV_LOG_LEVEL = "TABLETOP_LOG_LEVEL"

logger = logging.getLogger(__name__)


class HookErrorMode(str, Enum):
    LENIENT = "lenient"  # log and keep going
    STRICT = "strict"    # re-raise as HookError


class EngineSettings(BaseModel):
    """
    Tunable constants for the check pipeline and the effect engine.
    """
    default_crit_threshold: int = Field(7, description="Crit threshold used when an actor has no 'crit' stat.")
    success_min: int = Field(4, description="Lowest die face that counts as a success in a dice pool.")
    success_max: int = Field(6, description="Highest die face that counts as a success in a dice pool.")
    auto_success_result: int = Field(999, description="Final result reported for auto-success (infinity) items.")
    fumble_total: int = Field(2, description="A 2d6 roll total at or below this value is a fumble.")
    critical_total: int = Field(12, description="A 2d6 roll total equal to this value counts as a critical against targets.")
    default_avoid: int = Field(10, description="Avoid value used for targets without an 'avoid' stat.")
    hook_error_mode: HookErrorMode = Field(HookErrorMode.LENIENT, description="How exceptions raised by hook callbacks are handled.")
    flag_scope: str = Field("tabletop", description="Namespace of the persisted effect flag bag.")
    default_effect_name: str = "Unnamed Effect"
    default_effect_icon: str = "icons/svg/aura.svg"
    max_dice: int = Field(1000, description="Upper bound on dice per term accepted by the formula parser.")
    max_faces: int = Field(1000, description="Upper bound on faces per die accepted by the formula parser.")
    log_level: str = "INFO"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attaches a stdout handler to the package logger once and sets its level."""
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel((level or "INFO").upper())
    if not any(getattr(h, "_tabletop_handler", False) for h in package_logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        console_handler._tabletop_handler = True  # type: ignore[attr-defined]
        package_logger.addHandler(console_handler)
    return package_logger


def _read_settings_file(settings_path: str) -> Dict[str, Any]:
    try:
        with open(settings_path, 'r') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning(f"Config: Settings file not found at {settings_path}. Using defaults.")
        return {}
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Could not decode JSON from {settings_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {settings_path} must contain a JSON object.")
    return data


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    hook_mode = os.getenv(ENV_HOOK_ERROR_MODE)
    if hook_mode:
        overrides["hook_error_mode"] = hook_mode.strip().lower()
    crit_threshold = os.getenv(ENV_CRIT_THRESHOLD)
    if crit_threshold:
        try:
            overrides["default_crit_threshold"] = int(crit_threshold)
        except ValueError as e:
            raise ConfigurationError(f"{ENV_CRIT_THRESHOLD} must be an integer, got '{crit_threshold}'.") from e
    log_level = os.getenv(ENV_LOG_LEVEL)
    if log_level:
        overrides["log_level"] = log_level.strip().upper()
    return overrides


def load_settings(settings_path: Optional[str] = None, use_env: bool = True) -> EngineSettings:
    """
    Builds EngineSettings from a JSON file plus environment overrides.

    Args:
        settings_path: Path to a JSON settings file. Falls back to
                       TABLETOP_SETTINGS_PATH when not given; no file means defaults.
        use_env: Whether to apply TABLETOP_* environment overrides.

    Returns:
        The validated settings.

    Raises:
        ConfigurationError: If the file is not valid JSON or the values do not validate.
    """
    if use_env:
        load_dotenv()
        settings_path = settings_path or os.getenv(ENV_SETTINGS_PATH)

    data: Dict[str, Any] = _read_settings_file(settings_path) if settings_path else {}
    if use_env:
        data.update(_env_overrides())

    try:
        settings = EngineSettings(**data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid engine settings: {e}") from e
    logger.debug(f"Config: Loaded settings (hook_error_mode={settings.hook_error_mode.value}).")
    return settings
