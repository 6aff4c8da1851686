"""
Dynaconf-powered launcher settings with Pydantic validation.

These settings describe how the launcher runs (where the fleet file lives,
logging, statically known serials); the fleet file itself is handled by
:mod:`stereofleet.core.store`. Values come from optional ``settings.yaml`` /
``settings.local.yaml`` files and ``STEREOFLEET_*`` environment variables.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .core.codec import ConfigError

SETTINGS_FILENAMES = ("settings.yaml", "settings.local.yaml")
ENVVAR_PREFIX = "STEREOFLEET"
DEFAULT_CONFIG_FILE = "fleet_config.ini"


class RuntimeSettings(BaseModel):
    """Validated launcher settings."""

    model_config = ConfigDict(extra="ignore")

    config_file: str = Field(default=DEFAULT_CONFIG_FILE)
    config_dir: Path | None = Field(default=None)
    log_level: str = Field(default="INFO")
    log_file: Path | None = Field(default=None)
    detected_serials: list[str] = Field(default_factory=list)
    save_on_change: bool = Field(default=True)

    @field_validator("detected_serials", mode="before")
    @classmethod
    def _split_serials(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (int, float)):
            return [str(value)]
        return [str(item).strip() for item in value]

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return value.strip().upper() or "INFO"

    def resolve_config_path(self, search_dirs: Sequence[Path] = ()) -> Path:
        """
        Locate the fleet file.

        An absolute ``config_file`` or an explicit ``config_dir`` wins. Otherwise
        the first of ``search_dirs`` (default: the working directory) that
        already holds the file is used, falling back to the first directory.
        """

        candidate = Path(self.config_file)
        if candidate.is_absolute():
            return candidate
        if self.config_dir is not None:
            return self.config_dir / candidate
        dirs = list(search_dirs) or [Path.cwd()]
        for directory in dirs:
            path = directory / candidate
            if path.exists():
                return path
        return dirs[0] / candidate


def _lower_keys(raw: dict[str, Any]) -> dict[str, Any]:
    return {str(key).lower(): value for key, value in raw.items()}


class SettingsService:
    """Loads launcher settings from files and environment."""

    def __init__(
        self,
        *,
        settings_dir: str | Path | None = None,
        settings: Dynaconf | None = None,
    ) -> None:
        self._settings_dir = Path(settings_dir) if settings_dir else Path.cwd()
        settings_files = [self._settings_dir / name for name in SETTINGS_FILENAMES]
        existing_files = [str(path) for path in settings_files if path.exists()]
        self._settings = settings or Dynaconf(
            envvar_prefix=ENVVAR_PREFIX,
            settings_files=existing_files,
            environments=False,
            load_dotenv=False,
        )
        self._runtime = self._build()

    @property
    def settings_dir(self) -> Path:
        return self._settings_dir

    @property
    def runtime(self) -> RuntimeSettings:
        return self._runtime

    def refresh(self) -> RuntimeSettings:
        self._settings.reload()
        self._runtime = self._build()
        return self._runtime

    def _build(self) -> RuntimeSettings:
        data = _lower_keys(self._settings.as_dict())
        try:
            return RuntimeSettings.model_validate(data)
        except ValidationError as exc:
            raise ConfigError("Launcher settings validation failed") from exc


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ENVVAR_PREFIX",
    "RuntimeSettings",
    "SETTINGS_FILENAMES",
    "SettingsService",
]
