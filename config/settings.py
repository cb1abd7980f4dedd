"""
Configuration management using Pydantic Settings.
Loads configuration from environment variables (and a .env file) with
validation, optionally overlaid with a JSON config file.
"""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from prtg_exporter.common.exceptions import ConfigurationError
from prtg_exporter.common.secrets import resolve_secret

# Load .env file into os.environ so all nested BaseSettings pick up values
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)


class PrtgSettings(BaseSettings):
    """PRTG server and credentials"""
    server: str
    username: str = Field(default="")
    # Passhash forwarded verbatim; may be a file:/env: secret reference
    password: str = Field(default="")
    timeout_seconds: float = Field(default=30.0, gt=0)
    verify_tls: bool = Field(default=True)

    @field_validator("server")
    @classmethod
    def server_must_be_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"server must be an http(s) URL, got {value!r}")
        return value

    class Config:
        env_prefix = "PRTG_"


class ExporterSettings(BaseSettings):
    """Scrape endpoint and refresh scheduling"""
    port: int = Field(default=9705, ge=1, le=65535)
    refresh_interval_seconds: float = Field(default=120.0, gt=0)
    skip_overlapping_ticks: bool = Field(default=True)
    # 0 keeps samples forever
    stale_after_cycles: int = Field(default=0, ge=0)

    class Config:
        env_prefix = "EXPORTER_"


class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: str = Field(default="INFO")
    format: str = Field(default="json")

    class Config:
        env_prefix = "LOG_"


class Settings(BaseSettings):
    """Main settings aggregating all configuration sections"""
    prtg: PrtgSettings
    exporter: ExporterSettings = Field(default_factory=ExporterSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        extra = "ignore"


# Keys used by the JSON config file of the original deployment
_JSON_KEY_ALIASES = {
    "refreshinterval": "refresh_interval_seconds",
    "passhash": "password",
    "timeout": "timeout_seconds",
}


def _normalize_section(section: Dict[str, Any]) -> Dict[str, Any]:
    normalized = {}
    for key, value in section.items():
        key = str(key).lower()
        normalized[_JSON_KEY_ALIASES.get(key, key)] = value
    return normalized


def read_config_file(path: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    """
    Read a JSON config file into ``{section: {field: value}}``.

    Section and key names are case-insensitive, so both
    ``{"PRTG": {"Server": ...}, "Exporter": {"RefreshInterval": 120}}`` and
    ``{"prtg": {"server": ...}, "exporter": {"refresh_interval_seconds": 120}}``
    are accepted.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except ValueError as e:
        raise ConfigurationError(f"Config file is not valid JSON: {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file must contain a JSON object: {path}")

    sections: Dict[str, Dict[str, Any]] = {}
    for name, section in raw.items():
        if isinstance(section, dict):
            sections[str(name).lower()] = _normalize_section(section)
    return sections


def load_settings(
    config_file: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Settings:
    """
    Build the settings from environment, config file and explicit overrides
    (later sources win), then resolve the passhash secret reference.

    Raises:
        ConfigurationError: If a value is missing or invalid
    """
    sections = read_config_file(config_file) if config_file else {}
    for name, values in (overrides or {}).items():
        sections.setdefault(name, {}).update(
            {k: v for k, v in values.items() if v is not None}
        )

    try:
        settings = Settings(
            prtg=PrtgSettings(**sections.get("prtg", {})),
            exporter=ExporterSettings(**sections.get("exporter", {})),
            logging=LoggingSettings(**sections.get("logging", {})),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    settings.prtg.password = resolve_secret(settings.prtg.password)
    return settings
