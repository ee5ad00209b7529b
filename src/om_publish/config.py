"""Configuration models and loading logic."""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "OM_PUBLISH_SETTINGS_FILE"


class ProjectConfig(BaseModel):
    """Project metadata settings."""

    name: str = "om_publish"
    env: str = "dev"


class PathsConfig(BaseModel):
    """Filesystem locations for sources, published outputs and run bookkeeping."""

    source_root: Path = Path("./releases")
    output_root: Path = Path("./publish")
    local_temp_root: Path = Path("./tmp")
    artifacts_root: Path = Path("./artifacts")
    logs_root: Path = Path("./logs")

    def resolved(self, project_root: Path) -> "PathsConfig":
        """Return a copy with project-relative paths resolved to absolute paths."""

        updates: dict[str, Path] = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)
            updates[field_name] = value if value.is_absolute() else (project_root / value).resolve()
        return self.model_copy(update=updates)


class ArchiverConfig(BaseModel):
    """How the external 7-Zip utility is located and driven."""

    executable: Path | None = None
    search_names: list[str] = Field(default_factory=lambda: ["7z", "7za", "7zz"])
    well_known_locations: list[Path] = Field(
        default_factory=lambda: [
            Path("C:/Program Files/7-Zip/7z.exe"),
            Path("C:/Program Files (x86)/7-Zip/7z.exe"),
            Path("/usr/bin/7z"),
            Path("/usr/lib/p7zip/7z"),
            Path("/opt/homebrew/bin/7zz"),
        ]
    )
    compression_level: int = Field(default=5, ge=0, le=9)


class StagingConfig(BaseModel):
    """Polling policy for archives moved onto networked storage."""

    visibility_attempts: int = Field(default=20, ge=1)
    visibility_interval_sec: float = Field(default=0.5, ge=0.0)


class PublishSettingsConfig(BaseModel):
    """Release selection and alias behavior."""

    alias_name: str = "OM_latest.zip"
    min_major: int = Field(default=15, ge=0)
    unstable_sentinel: str = "9999"
    use_lock: bool = True
    write_run_summary: bool = True


class AppSettings(BaseSettings):
    """Top-level application settings."""

    _yaml_file_override: ClassVar[Path | None] = None

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    archiver: ArchiverConfig = Field(default_factory=ArchiverConfig)
    staging: StagingConfig = Field(default_factory=StagingConfig)
    publish: PublishSettingsConfig = Field(default_factory=PublishSettingsConfig)

    model_config = SettingsConfigDict(
        env_prefix="OM_PUBLISH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Use YAML defaults while allowing env vars to override values."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a standard nested dictionary."""

        return self.model_dump(mode="json")


def find_project_root(start: Path | None = None) -> Path:
    """Locate the project root by traversing upward for config markers."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / "configs/settings.yaml").exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Resolve settings file from explicit override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> AppSettings:
    """Load settings with YAML defaults and environment variable overrides."""

    settings_file = resolve_settings_file(config_file)
    project_root = settings_file.parent.parent.resolve()
    AppSettings._yaml_file_override = settings_file
    try:
        settings = AppSettings()
    finally:
        AppSettings._yaml_file_override = None
    resolved_paths = settings.paths.resolved(project_root=project_root)
    return settings.model_copy(update={"paths": resolved_paths})
