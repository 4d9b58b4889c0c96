"""Configuration management with YAML, environment variables and CLI overrides."""
import os
from pathlib import Path
from typing import Optional, List, Dict, Any, Union
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(ValueError):
    """Raised when the configuration is missing or invalid."""


class PlexConfig(BaseModel):
    url: str
    token: str
    timeout: float = 90.0

    @field_validator("url")
    @classmethod
    def add_scheme(cls, value: str) -> str:
        # Accept bare "host:port" the way Plex shows it in its settings page
        value = value.strip().rstrip("/")
        if "://" not in value:
            value = f"http://{value}"
        return value


class ExportConfig(BaseModel):
    website_header: str = "Plex Census"
    libraries: Union[List[str], str] = Field(default_factory=list)  # list or "Films,TV Shows"
    web_root: str
    watch_status: bool = False
    jpeg_fallback: bool = True
    avif_quality: int = 30
    jpeg_quality: int = 70
    image_timeout: float = 30.0
    request_delay: float = 0.005  # seconds between per-item API calls

    @field_validator("libraries", mode="before")
    @classmethod
    def split_libraries(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return [str(title).strip() for title in value if str(title).strip()]
        return value


class SchedulerConfig(BaseModel):
    enabled: bool = False
    cadence: str = "1 day"
    hour: int = 2
    minute: int = 0
    timezone: str = "UTC"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"
    debug: bool = False


class Config(BaseSettings):
    plex: Optional[PlexConfig] = None
    export: Optional[ExportConfig] = None
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__", extra="ignore")

    @staticmethod
    def _read_yaml(yaml_path: str) -> Dict[str, Any]:
        config_path = Path(yaml_path)
        if not config_path.exists():
            raise ConfigError(
                f"Config file not found: {yaml_path}\n"
                f"Please create config.yaml from config.example.yaml"
            )
        with open(config_path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def _env_overrides(cls) -> Dict[str, Dict[str, str]]:
        """Collect SECTION__KEY environment variables for known sections."""
        overrides: Dict[str, Dict[str, str]] = {}
        for env_key, env_value in os.environ.items():
            if "__" not in env_key or not env_value:
                continue
            section, _, subkey = env_key.lower().partition("__")
            if section in cls.model_fields and subkey:
                overrides.setdefault(section, {})[subkey] = env_value
        return overrides

    @classmethod
    def load_from_yaml(cls, yaml_path: str) -> "Config":
        """Load configuration from YAML file, override with env vars."""
        return cls.load(yaml_path)

    @classmethod
    def load(
        cls,
        yaml_path: Optional[str] = None,
        overrides: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> "Config":
        """Build the config from an optional YAML file, env vars, then CLI overrides.

        ``None`` values in ``overrides`` are ignored so unset CLI options
        never mask the file or the environment.
        """
        data = cls._read_yaml(yaml_path) if yaml_path else {}

        layers = [cls._env_overrides(), overrides or {}]
        for layer in layers:
            for section, values in layer.items():
                clean = {k: v for k, v in values.items() if v is not None}
                if not clean:
                    continue
                current = data.get(section) or {}
                current.update(clean)
                data[section] = current

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def require_plex(self) -> PlexConfig:
        if not self.plex:
            raise ConfigError("Plex configuration not found (plex.url and plex.token are required)")
        return self.plex

    def require_export(self) -> ExportConfig:
        if not self.export:
            raise ConfigError("Export configuration not found (export.web_root and export.libraries are required)")
        if not self.export.libraries:
            raise ConfigError("export.libraries is empty, list at least one Plex library title")
        return self.export


# Global config instance (initialized by the CLI)
config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance."""
    if config is None:
        raise RuntimeError("Config not initialized. Call init_config() first.")
    return config


def init_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Config:
    """Initialize global config from an optional YAML file plus overrides."""
    global config
    config = Config.load(config_path, overrides)
    return config
