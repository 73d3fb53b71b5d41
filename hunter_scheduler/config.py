"""
Hunter Scheduler Configuration Management.

Handles loading and validating configuration from:
- Default values
- Configuration file (TOML)
- Environment variables
"""

from __future__ import annotations

import json
import logging
import os
import socket
import tomllib
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional, List


DEFAULT_CONFIG_DIR = Path.home() / ".config" / "hunter"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "hunter"

logger = logging.getLogger(__name__)


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class SchedulerConfig:
    """Configuration for the scan cycle and the lease sweep."""

    # Due-job selection
    batch_cap: int = 50

    # Leases and execution budget (seconds)
    lease_timeout: int = 900
    scan_timeout: float = 300.0

    # Minimum spacing between external calls within one cycle (seconds)
    throttle_interval: float = 2.0

    # Backoff after consecutive failures
    max_backoff_multiplier: int = 16

    # Cadence applied to newly created integrations (minutes)
    default_scan_frequency: int = 15

    # Daemon trigger cadence (seconds)
    scan_interval: int = 900
    sweep_interval: int = 300

    # Run units of different platforms concurrently
    parallel_platforms: bool = False

    # Scan log retention
    history_retention_days: int = 30


@dataclass
class ServerConfig:
    """Configuration for the HTTP trigger endpoints."""

    host: str = "127.0.0.1"
    port: int = 8080
    cron_secret: Optional[str] = None


@dataclass
class StrategyConfig:
    """Configuration for hunter strategy discovery."""

    # Load strategies advertised by installed packages
    load_entry_points: bool = True

    # Restrict scanning to these platforms (empty = all registered)
    enabled: list[str] = field(default_factory=list)

    # Platform-wide settings merged under each integration's own config
    settings: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass
class HunterConfig:
    """Main configuration container for the Hunter scheduler."""

    # Paths
    config_dir: Path = DEFAULT_CONFIG_DIR
    data_dir: Path = DEFAULT_DATA_DIR

    # Sub-configurations
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    strategies: StrategyConfig = field(default_factory=StrategyConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Database
    database_url: str = ""

    # Lease owner identity for this process
    worker_id: str = ""

    def __post_init__(self):
        """Initialize derived values."""
        if not self.database_url:
            self.database_url = f"sqlite:///{self.data_dir}/hunter.db"
        if not self.worker_id:
            self.worker_id = f"{socket.gethostname()}-{os.getpid()}"


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = "HUNTER_"
) -> HunterConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/hunter/config.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration
    """
    config = HunterConfig()

    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    if config_path.exists():
        config = _load_from_file(config_path, config)

    config = _load_from_env(config, env_prefix)

    return config


def _apply_section(target: Any, values: dict[str, Any]) -> None:
    for key, value in values.items():
        if hasattr(target, key):
            setattr(target, key, value)
        else:
            logger.warning(f"Ignoring unknown configuration key: {key}")


def _load_from_file(path: Path, config: HunterConfig) -> HunterConfig:
    """Load configuration from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return config

    if "scheduler" in data:
        _apply_section(config.scheduler, data["scheduler"])

    if "server" in data:
        _apply_section(config.server, data["server"])

    if "strategies" in data:
        for key, value in data["strategies"].items():
            if key == "settings" and isinstance(value, dict):
                # [strategies.settings.<platform>] tables
                for platform, platform_settings in value.items():
                    if isinstance(platform_settings, dict):
                        config.strategies.settings[platform] = platform_settings
            elif hasattr(config.strategies, key):
                setattr(config.strategies, key, value)

    if "logging" in data:
        _apply_section(config.logging, data["logging"])
        if isinstance(config.logging.file, str):
            config.logging.file = Path(config.logging.file)

    # Top-level settings
    if "config_dir" in data:
        config.config_dir = Path(data["config_dir"])
    if "data_dir" in data:
        config.data_dir = Path(data["data_dir"])
        if "database_url" not in data:
            config.database_url = f"sqlite:///{config.data_dir}/hunter.db"
    if "database_url" in data:
        config.database_url = data["database_url"]
    if "worker_id" in data:
        config.worker_id = data["worker_id"]

    return config


def _env_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _load_from_env(config: HunterConfig, prefix: str) -> HunterConfig:
    """Load configuration from environment variables."""

    # Scheduler settings
    if env_val := os.environ.get(f"{prefix}BATCH_CAP"):
        config.scheduler.batch_cap = int(env_val)
    if env_val := os.environ.get(f"{prefix}LEASE_TIMEOUT"):
        config.scheduler.lease_timeout = int(env_val)
    if env_val := os.environ.get(f"{prefix}SCAN_TIMEOUT"):
        config.scheduler.scan_timeout = float(env_val)
    if env_val := os.environ.get(f"{prefix}THROTTLE_INTERVAL"):
        config.scheduler.throttle_interval = float(env_val)
    if env_val := os.environ.get(f"{prefix}MAX_BACKOFF_MULTIPLIER"):
        config.scheduler.max_backoff_multiplier = int(env_val)
    if env_val := os.environ.get(f"{prefix}PARALLEL_PLATFORMS"):
        config.scheduler.parallel_platforms = _env_bool(env_val)

    # Server settings
    if env_val := os.environ.get(f"{prefix}HOST"):
        config.server.host = env_val
    if env_val := os.environ.get(f"{prefix}PORT"):
        config.server.port = int(env_val)
    # CRON_SECRET without prefix matches what hosted cron services inject
    if env_val := os.environ.get("CRON_SECRET"):
        config.server.cron_secret = env_val
    if env_val := os.environ.get(f"{prefix}CRON_SECRET"):
        config.server.cron_secret = env_val

    # Logging settings
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()

    # Paths
    if env_val := os.environ.get(f"{prefix}CONFIG_DIR"):
        config.config_dir = Path(env_val)
    if env_val := os.environ.get(f"{prefix}DATA_DIR"):
        config.data_dir = Path(env_val)
        config.database_url = f"sqlite:///{config.data_dir}/hunter.db"
    if env_val := os.environ.get(f"{prefix}DATABASE_URL"):
        config.database_url = env_val
    if env_val := os.environ.get(f"{prefix}WORKER_ID"):
        config.worker_id = env_val

    return config


def ensure_directories(config: HunterConfig) -> None:
    """Ensure all required directories exist."""
    config.config_dir.mkdir(parents=True, exist_ok=True)
    config.data_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance (lazy-loaded)
_global_config: Optional[HunterConfig] = None


def get_config() -> HunterConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: HunterConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def clear_config_cache() -> None:
    """Clear the global configuration cache."""
    global _global_config
    _global_config = None


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def validate_config(
    config: Optional[HunterConfig] = None,
    serving_http: bool = False,
) -> List[ValidationError]:
    """
    Validate a configuration.

    Args:
        config: Configuration to validate (uses global if not provided)
        serving_http: Whether the HTTP trigger endpoints will be exposed

    Returns:
        List of validation errors and warnings (empty if valid)
    """
    if config is None:
        config = get_config()

    errors: List[ValidationError] = []
    sched = config.scheduler

    positive_fields = {
        "scheduler.batch_cap": sched.batch_cap,
        "scheduler.lease_timeout": sched.lease_timeout,
        "scheduler.scan_timeout": sched.scan_timeout,
        "scheduler.default_scan_frequency": sched.default_scan_frequency,
        "scheduler.scan_interval": sched.scan_interval,
        "scheduler.sweep_interval": sched.sweep_interval,
        "scheduler.max_backoff_multiplier": sched.max_backoff_multiplier,
    }
    for name, value in positive_fields.items():
        if value <= 0:
            errors.append(ValidationError(
                field=name,
                message=f"Must be positive (got {value})",
                severity="error",
            ))

    if sched.throttle_interval < 0:
        errors.append(ValidationError(
            field="scheduler.throttle_interval",
            message="Must not be negative",
            severity="error",
        ))

    if 0 < sched.lease_timeout <= sched.scan_timeout:
        errors.append(ValidationError(
            field="scheduler.scan_timeout",
            message=(
                f"scan_timeout ({sched.scan_timeout:g}s) should be shorter than "
                f"lease_timeout ({sched.lease_timeout}s); a hung scan would "
                "outlive its lease"
            ),
            severity="warning",
        ))

    if config.logging.level.upper() not in VALID_LOG_LEVELS:
        errors.append(ValidationError(
            field="logging.level",
            message=f"Invalid log level '{config.logging.level}'",
            severity="error",
        ))

    if not 0 < config.server.port < 65536:
        errors.append(ValidationError(
            field="server.port",
            message=f"Invalid port {config.server.port}",
            severity="error",
        ))

    if serving_http and not config.server.cron_secret:
        errors.append(ValidationError(
            field="server.cron_secret",
            message="No cron secret set; trigger endpoints are unauthenticated",
            severity="warning",
        ))

    return errors


SECRET_KEYS = ("cron_secret",)


def _config_to_dict(config: HunterConfig, mask_secrets: bool = True) -> dict[str, Any]:
    """Convert configuration to a JSON-serializable dictionary."""
    data = asdict(config)

    def convert(value: Any) -> Any:
        if isinstance(value, Path):
            return str(value)
        if isinstance(value, dict):
            return {
                k: ("********" if mask_secrets and k in SECRET_KEYS and v else convert(v))
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value

    return convert(data)


def export_config_json(config: HunterConfig, mask_secrets: bool = True) -> str:
    """Export configuration as a JSON string."""
    return json.dumps(_config_to_dict(config, mask_secrets), indent=2)
