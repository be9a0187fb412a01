"""
Allocation settings - persisted algorithm configuration

The settings decide which fairness policy a new distribution uses when the
caller does not pass one explicitly. They live in a small JSON file next to
the database so that they survive database imports.
"""

import json
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from partshare.kernel.errors import ConfigurationError
from partshare.kernel.logging import get_logger

logger = get_logger(__name__)

SETTINGS_ENV_VAR = "PARTSHARE_SETTINGS"


class AllocationSettings(BaseModel):
    """
    Global allocation parameters

    The defaults share as many full rounds as the pool allows and hand out
    the leftovers to the least-loaded participants.
    """

    algorithm_type: Literal["random", "less", "share_less", "share_random"] = Field(
        default="share_less",
        description="Fairness policy used when a distribution does not specify one",
    )

    algorithm_count: int = Field(
        default=0,
        ge=0,
        description="Share rounds for share_* policies (0 = as many as possible)",
    )

    allocation_timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=3600,
        description="Caller-level deadline for a single allocation run",
    )

    model_config = {
        "extra": "ignore",
        "json_schema_extra": {
            "description": "Algorithm settings for new distributions"
        },
    }


def resolve_settings_path(db_path: str | Path) -> Path:
    """
    Settings file location for a database

    PARTSHARE_SETTINGS wins when set; otherwise the file sits next to the
    database (``share.db`` -> ``share.settings.json``).
    """
    override = os.getenv(SETTINGS_ENV_VAR)
    if override:
        return Path(override)
    db_path = Path(db_path)
    return db_path.with_name(f"{db_path.stem}.settings.json")


class SettingsStore:
    """JSON file persistence for AllocationSettings"""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> AllocationSettings:
        """
        Load settings, writing defaults on first use

        Unreadable or invalid files fall back to defaults rather than
        blocking distributions; the problem is logged.
        """
        defaults = AllocationSettings()
        if not self.path.exists():
            self._write(defaults)
            return defaults

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            merged: dict[str, Any] = {**defaults.model_dump(), **raw}
            return AllocationSettings.model_validate(merged)
        except (OSError, ValueError, TypeError) as e:
            # ValidationError and JSONDecodeError are both ValueErrors
            logger.warning(
                "Failed to read settings, using defaults",
                path=str(self.path),
                error=str(e),
            )
            return defaults

    def save(self, **changes: Any) -> AllocationSettings:
        """
        Merge changes over the current settings and persist them

        Raises:
            ConfigurationError: If the merged settings are invalid or cannot be written
        """
        current = self.load()
        try:
            updated = AllocationSettings.model_validate(
                {**current.model_dump(), **changes}
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e

        self._write(updated)
        logger.info("Settings saved", path=str(self.path), **updated.model_dump())
        return updated

    def _write(self, settings: AllocationSettings) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(settings.model_dump(), indent=2), encoding="utf-8"
            )
        except OSError as e:
            raise ConfigurationError(
                f"Failed to write settings to {self.path}: {e}"
            ) from e
