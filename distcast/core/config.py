'''
Configuration management for distcast.

Settings are layered:
1. Defaults built into the package
2. An optional user configuration file (JSON)
3. Environment variables named ``DISTCAST_<SECTION>_<OPTION>``
4. Runtime modifications through ``set_config``

The forecast pipeline reads its defaults (number of simulated paths,
parallel dispatch, worker count) from here whenever a caller leaves the
corresponding argument as ``None``.
'''

import os
import json
import logging
from dataclasses import dataclass, field, asdict, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .exceptions import ConfigurationError

# Set up module-level logger
logger = logging.getLogger("distcast.core.config")

# Constants for configuration paths and environment variables
CONFIG_ENV_PREFIX = "DISTCAST_"
DEFAULT_CONFIG_FILENAME = "distcast_config.json"
USER_CONFIG_DIR_ENV = "DISTCAST_CONFIG_DIR"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigSection(Enum):
    """Enumeration of configuration sections."""
    CORE = "core"
    FORECAST = "forecast"
    PERFORMANCE = "performance"
    LOGGING = "logging"


@dataclass
class CoreConfig:
    """
    Core configuration settings.

    Attributes:
        version: The version of the configuration format
        user_config_dir: Directory searched for the user configuration file
        random_seed: Seed for random number generation (None for random seed)
    """
    version: str = "1.0.0"
    user_config_dir: Path = field(default_factory=lambda: Path.home() / ".distcast")
    random_seed: Optional[int] = None


@dataclass
class ForecastConfig:
    """
    Default settings for producing forecasts.

    Attributes:
        times: Number of simulated paths for simulation or bootstrap forecasts
        simulate: Whether forecasts are based on simulated paths by default
        bootstrap: Whether simulated innovations are bootstrapped by default
        point_forecast: Name of the default point forecast aggregator
    """
    times: int = 5000
    simulate: bool = False
    bootstrap: bool = False
    point_forecast: str = "mean"


@dataclass
class PerformanceConfig:
    """
    Settings controlling how model tables are dispatched.

    Attributes:
        parallel: Whether model table cells are forecast on a worker pool
        max_workers: Maximum number of worker threads
    """
    parallel: bool = False
    max_workers: int = 4


@dataclass
class LoggingConfig:
    """
    Logging configuration settings.

    Attributes:
        log_level: Default logging level
        log_format: Format string for log messages
        log_date_format: Format string for log message timestamps
        console_logging: Whether to log to console
        log_file: Path to log file (None for no file logging)
    """
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    console_logging: bool = True
    log_file: Optional[Path] = None


@dataclass
class DistcastConfig:
    """Complete configuration combining all sections."""
    core: CoreConfig = field(default_factory=CoreConfig)
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTION_TYPES = {
    "core": CoreConfig,
    "forecast": ForecastConfig,
    "performance": PerformanceConfig,
    "logging": LoggingConfig,
}


class ConfigManager:
    """
    Configuration manager.

    Attributes:
        _config: The current configuration object
        _initialized: Whether the configuration manager has been initialized
        _config_file: Path to the user configuration file
    """

    def __init__(self):
        """Initialize the configuration manager with default settings."""
        self._config = DistcastConfig()
        self._initialized = False
        self._config_file: Optional[Path] = None
        self._modified_keys = set()

    def initialize(self) -> None:
        """
        Initialize the configuration manager.

        Loads the user configuration file if one exists, applies environment
        variable overrides, validates the result and configures logging.
        """
        if self._initialized:
            return

        env_config_dir = os.environ.get(USER_CONFIG_DIR_ENV)
        config_dir = Path(env_config_dir) if env_config_dir else self._config.core.user_config_dir
        self._config.core.user_config_dir = config_dir
        self._config_file = config_dir / DEFAULT_CONFIG_FILENAME

        self._load_user_config()
        self._apply_env_overrides()
        self._validate_config()
        self._setup_logging()

        self._initialized = True
        logger.debug("Configuration manager initialized")

    def _load_user_config(self) -> None:
        """Load user configuration from file, if present."""
        if not self._config_file or not self._config_file.exists():
            logger.debug("No user configuration file found")
            return

        try:
            with open(self._config_file, 'r') as f:
                user_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load user configuration: {e}")
            return

        self._update_from_dict(user_config)
        logger.debug(f"Loaded user configuration from {self._config_file}")

    def _apply_env_overrides(self) -> None:
        """Apply ``DISTCAST_<SECTION>_<OPTION>`` environment variables."""
        for env_var, value in os.environ.items():
            if not env_var.startswith(CONFIG_ENV_PREFIX):
                continue

            key = env_var[len(CONFIG_ENV_PREFIX):]
            parts = key.lower().split('_', 1)
            if len(parts) != 2:
                continue

            section, option = parts
            try:
                ConfigSection(section)
            except ValueError:
                continue

            section_obj = getattr(self._config, section)
            if not hasattr(section_obj, option):
                continue

            try:
                typed_value = self._coerce(section_obj, option, value)
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to apply environment override {env_var}: {e}")
                continue

            setattr(section_obj, option, typed_value)
            logger.debug(f"Applied environment override: {env_var}={value}")

    @staticmethod
    def _coerce(section_obj: Any, option: str, value: str) -> Any:
        """Convert a string value to the type of the current option value."""
        current_value = getattr(section_obj, option)
        if isinstance(current_value, bool):
            return value.lower() in ('true', 'yes', '1', 'y')
        if isinstance(current_value, int):
            return int(value)
        if isinstance(current_value, float):
            return float(value)
        if isinstance(current_value, Path) or option.endswith(("_dir", "_file")):
            return Path(value)
        if current_value is None and option == "random_seed":
            return int(value)
        return value

    def _setup_logging(self) -> None:
        """Configure the package logger from the logging section."""
        root_logger = logging.getLogger("distcast")

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        root_logger.setLevel(getattr(logging, self._config.logging.log_level))

        formatter = logging.Formatter(
            fmt=self._config.logging.log_format,
            datefmt=self._config.logging.log_date_format
        )

        if self._config.logging.console_logging:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        if self._config.logging.log_file:
            try:
                log_file = Path(self._config.logging.log_file)
                log_file.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_file)
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)
            except OSError as e:
                logger.warning(f"Failed to set up file logging: {e}")

    def _validate_config(self) -> None:
        """Validate constraints on configuration values.

        Raises:
            ConfigurationError: If a value violates its constraint
        """
        forecast = self._config.forecast
        if not isinstance(forecast.times, int) or forecast.times <= 0:
            raise ConfigurationError(
                "Number of simulated paths must be a positive integer",
                config_file=self._config_file, setting="forecast.times",
                value=forecast.times
            )

        performance = self._config.performance
        if not isinstance(performance.max_workers, int) or performance.max_workers <= 0:
            raise ConfigurationError(
                "Maximum number of workers must be a positive integer",
                config_file=self._config_file, setting="performance.max_workers",
                value=performance.max_workers
            )

        if self._config.logging.log_level not in LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log level: {self._config.logging.log_level}",
                config_file=self._config_file, setting="logging.log_level",
                value=self._config.logging.log_level,
                details=f"Valid levels are: {', '.join(LOG_LEVELS)}"
            )

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Update the configuration from a nested dictionary."""
        for section, options in config_dict.items():
            if section not in _SECTION_TYPES or not isinstance(options, dict):
                logger.warning(f"Ignoring unknown configuration section: {section}")
                continue
            section_obj = getattr(self._config, section)
            for option, value in options.items():
                if not hasattr(section_obj, option):
                    logger.warning(f"Ignoring unknown configuration option: {section}.{option}")
                    continue
                if isinstance(getattr(section_obj, option), Path) and value is not None:
                    value = Path(value)
                setattr(section_obj, option, value)

    def save_user_config(self) -> None:
        """Save the current configuration to the user configuration file."""
        if self._config_file is None:
            raise ConfigurationError("Configuration manager has not been initialized")

        try:
            self._config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._config_file, 'w') as f:
                json.dump(self.to_dict(), f, indent=4)
        except OSError as e:
            raise ConfigurationError(
                f"Failed to save configuration: {e}",
                config_file=self._config_file
            ) from e
        logger.debug(f"Saved user configuration to {self._config_file}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert the configuration to a JSON-serialisable dictionary."""
        result = asdict(self._config)
        for options in result.values():
            for option, value in options.items():
                if isinstance(value, Path):
                    options[option] = str(value)
        return result

    def get(self, section: str, option: str, default: Any = None) -> Any:
        """Get a configuration value, or ``default`` if it does not exist."""
        section_obj = getattr(self._config, section, None)
        if section_obj is None:
            return default
        return getattr(section_obj, option, default)

    def set(self, section: str, option: str, value: Any) -> None:
        """Set a configuration value.

        Raises:
            ConfigurationError: If the section or option is not found, or the
                new value is invalid
        """
        if section not in _SECTION_TYPES:
            raise ConfigurationError(
                f"Unknown configuration section: {section}",
                setting=section,
                details=f"Valid sections are: {', '.join(_SECTION_TYPES)}"
            )
        section_obj = getattr(self._config, section)
        if not hasattr(section_obj, option):
            raise ConfigurationError(
                f"Unknown configuration option: {section}.{option}",
                setting=f"{section}.{option}"
            )

        previous = getattr(section_obj, option)
        setattr(section_obj, option, value)
        try:
            self._validate_config()
        except ConfigurationError:
            setattr(section_obj, option, previous)
            raise

        self._modified_keys.add(f"{section}.{option}")
        if section == "logging":
            self._setup_logging()

    def reset(self, section: Optional[str] = None, option: Optional[str] = None) -> None:
        """Reset configuration to default values.

        Args:
            section: The section to reset, or None to reset everything
            option: The option to reset, or None to reset the entire section
        """
        if section is None:
            self._config = DistcastConfig()
            self._modified_keys.clear()
            self._setup_logging()
            return

        if section not in _SECTION_TYPES:
            raise ConfigurationError(f"Unknown configuration section: {section}", setting=section)

        defaults = _SECTION_TYPES[section]()
        if option is None:
            setattr(self._config, section, defaults)
            self._modified_keys = {k for k in self._modified_keys if not k.startswith(f"{section}.")}
        else:
            if not hasattr(defaults, option):
                raise ConfigurationError(
                    f"Unknown configuration option: {section}.{option}",
                    setting=f"{section}.{option}"
                )
            setattr(getattr(self._config, section), option, getattr(defaults, option))
            self._modified_keys.discard(f"{section}.{option}")

        if section == "logging":
            self._setup_logging()

    def get_modified_options(self) -> List[str]:
        """Return the ``section.option`` names modified at runtime."""
        return sorted(self._modified_keys)

    def get_sections(self) -> List[str]:
        """Return the names of all configuration sections."""
        return list(_SECTION_TYPES)

    def get_options(self, section: str) -> List[str]:
        """Return the option names of a configuration section."""
        if section not in _SECTION_TYPES:
            raise ConfigurationError(f"Unknown configuration section: {section}", setting=section)
        return [f.name for f in fields(_SECTION_TYPES[section])]

    def get_section(self, section: str) -> Any:
        """Return a configuration section object."""
        if section not in _SECTION_TYPES:
            raise ConfigurationError(f"Unknown configuration section: {section}", setting=section)
        return getattr(self._config, section)


# Singleton instance of the configuration manager
_config_manager = ConfigManager()


def initialize_config() -> None:
    """Initialize the configuration system."""
    _config_manager.initialize()


def get_config_manager() -> ConfigManager:
    """Get the (initialized) configuration manager instance."""
    if not _config_manager._initialized:
        initialize_config()
    return _config_manager


def get_config(section: str, option: str, default: Any = None) -> Any:
    """
    Get a configuration value.

    Args:
        section: The configuration section
        option: The configuration option
        default: Default value if the option is not found

    Returns:
        The configuration value, or the default if not found
    """
    return get_config_manager().get(section, option, default)


def set_config(section: str, option: str, value: Any) -> None:
    """
    Set a configuration value.

    Raises:
        ConfigurationError: If the section or option is not found
    """
    get_config_manager().set(section, option, value)


def reset_config(section: Optional[str] = None, option: Optional[str] = None) -> None:
    """Reset configuration to default values."""
    get_config_manager().reset(section, option)


def save_config() -> None:
    """Save the current configuration to the user configuration file."""
    get_config_manager().save_user_config()


def get_forecast_config() -> ForecastConfig:
    """Get the forecast configuration section."""
    return get_config_manager().get_section("forecast")


def get_performance_config() -> PerformanceConfig:
    """Get the performance configuration section."""
    return get_config_manager().get_section("performance")


def to_dict() -> Dict[str, Any]:
    """Get the full configuration as a dictionary."""
    return get_config_manager().to_dict()
