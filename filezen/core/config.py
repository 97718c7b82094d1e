"""Configuration management for FileZen."""

import logging
from pathlib import Path
from typing import Any, List, Optional
from dataclasses import dataclass, field, fields
import configparser


DEFAULT_EXCLUDED_NAMES = ["node_modules", ".git", "tmp", ".DS_Store", "AppData"]


@dataclass
class RuleStoreConfig:
    """Rule store configuration settings."""
    path: Optional[Path] = None
    timeout: float = 30.0

    def __post_init__(self):
        if self.path is None:
            self.path = Path.home() / ".filezen" / "rules.db"


@dataclass
class ScanConfig:
    """Scanning configuration settings."""
    excluded_names: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_NAMES))
    follow_symlinks: bool = False


@dataclass
class OracleConfig:
    """Remote categorization oracle settings."""
    enabled: bool = True
    model: str = "gemini-1.5-flash"
    api_key_env: str = "GOOGLE_API_KEY"
    api_key: str = ""
    timeout: float = 30.0
    failure_threshold: int = 3
    recovery_timeout: float = 60.0


@dataclass
class OrganizeConfig:
    """Move batch settings."""
    audit_capacity: int = 100
    rescan_after_organize: bool = True


@dataclass
class WebConfig:
    """Web API configuration settings."""
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False
    secret_key: str = "dev-key-change-in-production"


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_enabled: bool = True
    file_path: Optional[Path] = None
    file_max_size_mb: int = 10
    file_backup_count: int = 5
    console_enabled: bool = True

    def __post_init__(self):
        if self.file_path is None:
            self.file_path = Path.home() / ".filezen" / "logs" / "app.log"


@dataclass
class AppConfig:
    """Main application configuration."""
    rules: RuleStoreConfig = field(default_factory=RuleStoreConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    organize: OrganizeConfig = field(default_factory=OrganizeConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    app_name: str = "FileZen"
    version: str = "0.1.0"
    data_dir: Path = field(default_factory=lambda: Path.home() / ".filezen")

    def __post_init__(self):
        self.data_dir.mkdir(parents=True, exist_ok=True)

        if self.logging.file_enabled and self.logging.file_path:
            self.logging.file_path.parent.mkdir(parents=True, exist_ok=True)


SECTIONS = ("rules", "scan", "oracle", "organize", "web", "logging")


def _split_names(value: str) -> List[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def coerce_value(current: Any, raw: str) -> Any:
    """
    Convert an INI or command line string to the type of the current setting.

    Raises:
        ValueError: If raw cannot be converted
    """
    if isinstance(current, bool):
        lowered = raw.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"Not a boolean: {raw!r}")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, Path):
        return Path(raw).expanduser()
    if isinstance(current, list):
        return _split_names(raw)
    return raw


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(value)
    return str(value)


class ConfigManager:
    """Manages application configuration stored in an INI file.

    Each dataclass section of AppConfig maps to an INI section of the same
    name; unknown keys are ignored.
    """

    def __init__(self, config_file: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to configuration file. If None, uses default location.
        """
        if config_file is None:
            config_file = Path.home() / ".filezen" / "config.ini"

        self.config_file = Path(config_file)
        self.config = AppConfig()
        self.logger = logging.getLogger(__name__)

        if self.config_file.exists():
            self.load_from_file()
        else:
            self.save_to_file()

    def load_from_file(self) -> None:
        """Load configuration from INI file, keeping defaults for bad values."""
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(self.config_file)
        except configparser.Error as e:
            self.logger.error(f"Error loading configuration from {self.config_file}: {e}")
            return

        for section_name in SECTIONS:
            if section_name not in parser:
                continue
            section = getattr(self.config, section_name)
            for item in fields(section):
                if item.name not in parser[section_name]:
                    continue
                raw = parser[section_name][item.name]
                try:
                    setattr(section, item.name, coerce_value(getattr(section, item.name), raw))
                except ValueError as e:
                    self.logger.error(f"Ignoring [{section_name}] {item.name} = {raw!r}: {e}")

        self.logger.info(f"Configuration loaded from {self.config_file}")

    def save_to_file(self) -> None:
        """Save current configuration to INI file."""
        parser = configparser.ConfigParser(interpolation=None)
        for section_name in SECTIONS:
            section = getattr(self.config, section_name)
            parser[section_name] = {
                item.name: _format_value(getattr(section, item.name)) for item in fields(section)
            }

        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w') as f:
                parser.write(f)
        except OSError as e:
            self.logger.error(f"Error saving configuration to {self.config_file}: {e}")
            return

        self.logger.info(f"Configuration saved to {self.config_file}")

    def get_config(self) -> AppConfig:
        """Get the current configuration."""
        return self.config

    def reset_to_defaults(self) -> None:
        """Reset configuration to default values."""
        self.config = AppConfig()
        self.save_to_file()
        self.logger.info("Configuration reset to defaults")


# Global configuration instance
_config_manager = None


def get_config() -> AppConfig:
    """Get the global application configuration."""
    return get_config_manager().get_config()


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def setup_config(config_file: Optional[Path] = None) -> ConfigManager:
    """
    Set up global configuration.

    Args:
        config_file: Optional path to configuration file

    Returns:
        ConfigManager instance
    """
    global _config_manager
    _config_manager = ConfigManager(config_file)
    return _config_manager
