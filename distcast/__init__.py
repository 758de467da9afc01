# distcast/__init__.py
"""
distcast - Probabilistic forecasts from fitted time series models

Turns fitted time series models and a forecast horizon (or explicit future
covariates) into forecast distributions aligned with future time points,
together with point forecasts derived from them.

The package provides tools for:
- Resolving forecast horizons, including durations such as "2 years"
- Analytical and simulation or bootstrap based forecast distributions
- Undoing response transformations, including covariate-dependent ones
- Point forecasts from named or user-supplied summary functions
- Forecasting tables of models sequentially or in parallel

This module serves as the main entry point for the distcast package.
"""

import os
import logging
import importlib
from typing import Union
import warnings

# Set up package-wide logger
logger = logging.getLogger("distcast")
logger.setLevel(logging.INFO)
_handler = logging.StreamHandler()
_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
logger.addHandler(_handler)

from .version import __version__, __title__, __description__, __license__, __dependencies__

# Import subpackages to make them available in the distcast namespace
try:
    from . import core
    from . import utils
    from . import models
except ImportError as e:
    logger.error(f"Error importing distcast components: {e}")
    raise ImportError(
        "Failed to import distcast components. Please ensure the package "
        "is correctly installed. You can install it using: "
        "pip install distcast"
    ) from e

from .models.time_series import (
    FittedModel, ModelTable, Transformation, fit_arx, forecast, forecast_model,
    forecast_model_table, forecast_model_table_async, scenarios
)


def _check_dependencies() -> None:
    """
    Check for required dependencies and their versions.

    Warns if dependencies are outdated.
    """
    required_packages = {name: req.lstrip(">=") for name, req in __dependencies__.items()}

    outdated_packages = []

    for package, min_version in required_packages.items():
        imported = importlib.import_module(package)
        if not hasattr(imported, "__version__"):
            logger.warning(f"Cannot determine version for {package}")
            continue

        pkg_version = imported.__version__
        if _version_tuple(pkg_version) < _version_tuple(min_version):
            outdated_packages.append((package, pkg_version, min_version))

    for package, current, required in outdated_packages:
        warnings.warn(
            f"{package} version {current} is older than the recommended "
            f"version {required}. This may cause compatibility issues.",
            UserWarning
        )


def _version_tuple(version: str) -> tuple:
    parts = []
    for part in version.split(".")[:3]:
        digits = "".join(ch for ch in part if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


def _initialize_config() -> None:
    """
    Initialize package configuration on first import.

    Loads the user configuration and applies the ``DISTCAST_LOG_LEVEL``
    environment variable on top of it.
    """
    core.config.initialize_config()

    log_level = os.environ.get("DISTCAST_LOG_LEVEL")
    if log_level:
        logger.setLevel(getattr(logging, log_level.upper()))


# Public API functions

def get_version() -> str:
    """
    Return the version of distcast.

    Returns:
        str: Version string in format MAJOR.MINOR.PATCH
    """
    return __version__


def set_log_level(level: Union[str, int]) -> None:
    """
    Set the logging level for distcast.

    Args:
        level: Logging level, either as string ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
              or as an integer constant from the logging module
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    logger.setLevel(level)
    logger.info(f"Log level set to {logging.getLevelName(level)}")


# Initialize the package
_check_dependencies()
_initialize_config()

__all__ = [
    # Subpackages
    'core',
    'models',
    'utils',

    # Forecasting
    'FittedModel',
    'ModelTable',
    'Transformation',
    'fit_arx',
    'forecast',
    'forecast_model',
    'forecast_model_table',
    'forecast_model_table_async',
    'scenarios',

    # Public functions
    'get_version',
    'set_log_level',

    # Version info
    '__version__',
]

logger.debug(f"distcast v{__version__} initialized successfully")
