# capgit: Lightweight YAML settings loader plus validation of the numeric run options; settings.yaml values override
# the environment but not explicit arguments.

from __future__ import annotations

import pathlib
from typing import Any, Dict

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import config
from .errors import SettingsError


def load_settings(app_dir: pathlib.Path) -> Dict[str, Any]:
    """
    Load capgit settings from <app_dir>/settings.yaml or settings.yml.

    Returns an empty dict {} when the settings file is missing, unreadable, or
    does not contain a mapping. The function never raises.
    """
    candidates = [pathlib.Path(app_dir) / "settings.yaml", pathlib.Path(app_dir) / "settings.yml"]
    for p in candidates:
        try:
            if not (p.exists() and p.is_file()):
                continue
            data = yaml.safe_load(p.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError):
            # capgit: Unreadable or malformed files fall through to the next candidate.
            continue
        if isinstance(data, dict):
            return data
        # capgit: Non-mapping YAML is treated as empty settings.
        return {}
    return {}


def api_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Return the `api` section of the settings, or {} when absent or malformed."""
    api_cfg = settings.get("api") if isinstance(settings, dict) else None
    return api_cfg if isinstance(api_cfg, dict) else {}


class RunSettings(BaseModel):
    """Numeric run options; settings.yaml values win over the environment defaults in config."""

    model_config = ConfigDict(extra="ignore", validate_default=True)

    temperature: float = Field(default_factory=lambda: config.TEMPERATURE, gt=0)
    max_rounds: int = Field(default_factory=lambda: config.MAX_ROUNDS, ge=0)
    timeout_sec: int = Field(default_factory=lambda: config.TIMEOUT_SEC, gt=0)


def run_settings(settings: Dict[str, Any]) -> RunSettings:
    """
    Validate the numeric options once, falling back to config for absent or null keys.

    Raises:
        SettingsError: a value is not a number or is out of range.
    """
    data = {k: v for k, v in (settings or {}).items() if k in RunSettings.model_fields and v is not None}
    try:
        return RunSettings.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}" for err in e.errors()
        )
        raise SettingsError(f"Invalid settings: {problems}") from e
