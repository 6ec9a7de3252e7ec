"""
Settings loader — reads dna.yml into ComposerSettings.

Settings are a static schema. ``validate_settings`` is the dedicated
validation pass: it returns field-level issues instead of raising, so
callers (``dnacomposer config check``, tests) can report every
problem at once. ``load_settings`` is the strict entry point used at
startup and raises ConfigError listing those issues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dnacomposer.core.services.catalog import LatestPolicy

logger = logging.getLogger(__name__)

# Default settings filename
SETTINGS_FILE = "dna.yml"


class ConfigError(Exception):
    """Raised when settings are invalid or unreadable."""


class SourceKind(StrEnum):
    """Where module definitions are loaded from."""

    LOCAL = "local"
    REMOTE = "remote"
    PACKAGE = "package"


class SourceSpec(BaseModel):
    """One module source entry in dna.yml."""

    model_config = ConfigDict(extra="forbid")

    kind: SourceKind = SourceKind.LOCAL
    location: str = Field(min_length=1)   # directory, URL, or "package[/subdir]"


class ComposerSettings(BaseModel):
    """Everything that tunes composition and migration behaviour."""

    model_config = ConfigDict(extra="forbid")

    allow_experimental: bool = False
    latest_policy: LatestPolicy = LatestPolicy.LAST_REGISTERED
    symmetric_conflicts: bool = True
    best_practices: bool = True
    measure_memory: bool = False
    script_timeout_s: float = Field(default=300.0, gt=0)
    backup_timeout_s: float = Field(default=600.0, gt=0)
    max_source_workers: int = Field(default=4, ge=1)
    sources: list[SourceSpec] = Field(default_factory=list)
    migrations: str | None = None   # path to a migration registry file


@dataclass(frozen=True)
class SettingsIssue:
    """One problem found while validating settings."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def validate_settings(data: Any) -> list[SettingsIssue]:
    """Check raw settings data without raising.

    Returns:
        Every issue found, empty when the data is acceptable.
    """
    if data is None:
        return []
    if not isinstance(data, dict):
        return [SettingsIssue("<root>", f"expected a mapping, got {type(data).__name__}")]

    issues: list[SettingsIssue] = []
    try:
        ComposerSettings.model_validate(data)
    except ValidationError as e:
        for err in e.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
            issues.append(SettingsIssue(loc, err.get("msg", "invalid value")))

    return issues


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for dna.yml starting from ``start_dir`` (default: cwd), walking up."""
    current = (start_dir or Path.cwd()).resolve()
    while True:
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def load_settings(path: Path | None = None) -> ComposerSettings:
    """Load and validate settings.

    A missing dna.yml is not an error when no explicit path was given:
    defaults apply.

    Args:
        path: Explicit settings file. If None, searches upward.

    Raises:
        ConfigError: The file is unreadable, not YAML, or invalid.
    """
    if path is None:
        path = find_settings_file()
        if path is None:
            logger.debug("No %s found, using default settings", SETTINGS_FILE)
            return ComposerSettings()

    if not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    issues = validate_settings(data)
    if issues:
        detail = "; ".join(str(i) for i in issues)
        raise ConfigError(f"Invalid settings in {path}: {detail}")

    settings = ComposerSettings.model_validate(data or {})

    # Relative paths are relative to the settings file
    base = path.parent.resolve()
    if settings.migrations and not Path(settings.migrations).is_absolute():
        settings = settings.model_copy(update={"migrations": str(base / settings.migrations)})
    sources = []
    for src in settings.sources:
        if src.kind == SourceKind.LOCAL and not Path(src.location).is_absolute():
            src = src.model_copy(update={"location": str(base / src.location)})
        sources.append(src)
    settings = settings.model_copy(update={"sources": sources})

    logger.info("Loaded settings with %d module sources", len(settings.sources))
    return settings
