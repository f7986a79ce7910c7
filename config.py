"""Configuration management for the ledger.

Reads configuration from ~/.config/ledger.toml and creates default config if needed.
"""

from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import tomllib
import tomli_w


@dataclass
class Config:
    """Application configuration."""

    base_dir: Path
    db_data_dir: Path
    db_filename: str
    log_level: str
    log_dir: Path
    ingest_batch_size: int = 50
    date_format: str = "UK"  # "UK" (day first) or "US" (month first)
    llm_enabled: bool = False
    llm_provider: Optional[str] = None
    llm_openai_api_key: Optional[str] = None
    llm_openai_model: Optional[str] = None
    llm_timeout_seconds: float = 45.0

    @property
    def db_path(self) -> Path:
        """Get the full database path (data_dir/filename)."""
        return self.db_data_dir / self.db_filename

    @classmethod
    def default(cls) -> "Config":
        """Create a Config with default values."""
        home = Path.home()
        base_dir = home / "data" / "ledger"
        return cls(
            base_dir=base_dir,
            db_data_dir=base_dir / "db",
            db_filename="local-ledger.db",
            log_level="INFO",
            log_dir=base_dir / "logs",
        )


def get_config_path() -> Path:
    """Get the path to the config file."""
    return Path.home() / ".config" / "ledger.toml"


def get_migrations_dir() -> Path:
    """Get the path to the migrations directory.

    This is always relative to the code location, not configurable.
    """
    return Path(__file__).parent / "db" / "migrations"


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file, creating default if it doesn't exist.

    Args:
        config_path: Optional override of the config file location.

    Returns:
        Config object with loaded or default values.
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        config = Config.default()
        _write_config(config, config_path)
        return config

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    return _config_from_dict(data)


def _config_from_dict(data: dict) -> Config:
    """Build a Config from parsed TOML, filling in defaults for missing keys."""
    defaults = Config.default()
    base_dir = Path(data.get("base_dir", defaults.base_dir))

    db_config = data.get("database", {})
    db_data_dir = Path(db_config.get("data_dir", base_dir / "db"))
    db_filename = db_config.get("filename", defaults.db_filename)

    log_config = data.get("logging", {})
    log_level = log_config.get("level", defaults.log_level)
    log_dir = Path(log_config.get("log_dir", base_dir / "logs"))

    ingest_config = data.get("ingestion", {})
    ingest_batch_size = int(
        ingest_config.get("batch_size", defaults.ingest_batch_size)
    )
    date_format = ingest_config.get("date_format", defaults.date_format).upper()
    if date_format not in ("UK", "US"):
        raise ValueError(
            f"Invalid ingestion.date_format '{date_format}' (expected UK or US)"
        )

    llm_config = data.get("llm", {})

    return Config(
        base_dir=base_dir,
        db_data_dir=db_data_dir,
        db_filename=db_filename,
        log_level=log_level,
        log_dir=log_dir,
        ingest_batch_size=max(1, ingest_batch_size),
        date_format=date_format,
        llm_enabled=llm_config.get("enabled", defaults.llm_enabled),
        llm_provider=llm_config.get("provider") or None,
        llm_openai_api_key=llm_config.get("openai_api_key") or None,
        llm_openai_model=llm_config.get("openai_model") or None,
        llm_timeout_seconds=float(
            llm_config.get("timeout_seconds", defaults.llm_timeout_seconds)
        ),
    )


def _write_config(config: Config, config_path: Path) -> None:
    """Write config to the config file.

    Args:
        config: Config object to write.
        config_path: Destination file.
    """
    config_path.parent.mkdir(parents=True, exist_ok=True)

    # TOML has no null, so unset optional values are written as empty strings
    data = {
        "base_dir": str(config.base_dir),
        "database": {
            "data_dir": str(config.db_data_dir),
            "filename": config.db_filename,
        },
        "logging": {
            "level": config.log_level,
            "log_dir": str(config.log_dir),
        },
        "ingestion": {
            "batch_size": config.ingest_batch_size,
            "date_format": config.date_format,
        },
        "llm": {
            "enabled": config.llm_enabled,
            "provider": config.llm_provider or "",
            "openai_api_key": config.llm_openai_api_key or "",
            "openai_model": config.llm_openai_model or "",
            "timeout_seconds": config.llm_timeout_seconds,
        },
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
