"""
Core components of distcast: exceptions, configuration, types and validation.
"""

from .exceptions import (
    DistcastError, ParameterError, DimensionError, PointForecastError,
    NumericError, DataError, DistributionError, ForecastError,
    SpecialsEvaluationError, TransformationError, UnsupportedTransformError,
    ConfigurationError, ForecastCancelled,
    DistcastWarning, ForecastWarning, DeprecationWarning,
    warn_forecast, warn_deprecation
)
from .config import (
    get_config, set_config, reset_config, save_config,
    get_forecast_config, get_performance_config
)

__all__ = [
    'DistcastError', 'ParameterError', 'DimensionError', 'PointForecastError',
    'NumericError', 'DataError', 'DistributionError', 'ForecastError',
    'SpecialsEvaluationError', 'TransformationError', 'UnsupportedTransformError',
    'ConfigurationError', 'ForecastCancelled',
    'DistcastWarning', 'ForecastWarning', 'DeprecationWarning',
    'warn_forecast', 'warn_deprecation',
    'get_config', 'set_config', 'reset_config', 'save_config',
    'get_forecast_config', 'get_performance_config',
]
