"""Watcher Engine — Configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/watcher-engine/config.yaml
    3. User config:   ~/.watcher-engine/config.yaml
    4. An explicit config file passed to ``Settings.load()``
    5. Environment variables prefixed with WATCHER_

Call ``Settings.load()`` once at startup and inject the instance into the
engine.  Tests replace the module singleton with ``override_settings()``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, EnvSettingsSource, SettingsConfigDict


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class SearchConfig(BaseModel):
    url: str = "http://127.0.0.1:9200"
    timeout_seconds: Annotated[float, Field(gt=0, le=600)] = 30.0
    verify_tls: bool = True
    username: str | None = None
    password: str | None = Field(
        default=None,
        description="Basic-auth password.  Prefer WATCHER_SEARCH__PASSWORD over the config file.",
    )


class AuthenticationConfig(BaseModel):
    impersonate: bool = Field(
        default=False,
        description="Run every watcher search as the watcher's owner, not only those flagged on the task.",
    )
    script_roles: list[str] = Field(
        default_factory=lambda: ["sirenalert"],
        description="Roles presented to the script store when looking up templates.",
    )


class FederationConfig(BaseModel):
    enabled: bool = Field(
        default=True,
        description="Probe the backend for the federation plugin and prefer its transport when present.",
    )
    plugin_name: str = "siren-federate"
    version_specifier: str = Field(
        default=">=10.0",
        description="PEP 440 specifier the plugin version must satisfy (e.g. '>=10.0,<30').",
    )


class TemplateConfig(BaseModel):
    scripts_dir: Path | None = Field(
        default=None,
        description="Directory of saved script documents (*.json / *.yaml) used by the CLI.",
    )
    load_entry_points: bool = Field(
        default=True,
        description="Discover third-party template plugins in the 'watcher_engine.templates' group.",
    )

    @field_validator("scripts_dir", mode="before")
    @classmethod
    def expand_scripts_dir(cls, v: object) -> object:
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class AlarmConfig(BaseModel):
    sink: Literal["log", "index", "null"] = "log"
    index: str = "watcher_alarms"


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WATCHER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    search: SearchConfig = Field(default_factory=SearchConfig)
    authentication: AuthenticationConfig = Field(default_factory=AuthenticationConfig)
    federation: FederationConfig = Field(default_factory=FederationConfig)
    templates: TemplateConfig = Field(default_factory=TemplateConfig)
    alarms: AlarmConfig = Field(default_factory=AlarmConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from file + environment variables."""
        data: dict[str, Any] = {}

        candidates = [
            Path("/etc/watcher-engine/config.yaml"),
            Path.home() / ".watcher-engine" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data = _deep_merge(data, loaded)

        # WATCHER_* variables take precedence over every YAML file.
        data = _deep_merge(data, EnvSettingsSource(cls)())
        return cls(**data)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# Module-level singleton, replaced by ``Settings.load()`` at startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
