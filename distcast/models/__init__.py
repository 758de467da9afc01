# distcast/models/__init__.py
"""
distcast models module.

Forecast distributions (``distributions``) and the time series forecasting
pipeline built on them (``time_series``).
"""

import logging

from . import distributions
from . import time_series

from .distributions import (
    ForecastDistribution, NormalDistribution, SampleDistribution,
    TransformedDistribution, CompositeDistribution
)
from .time_series import (
    FittedModel, ModelTable, ARXFit, fit_arx, forecast, forecast_model,
    forecast_model_table, forecast_model_table_async
)

logger = logging.getLogger("distcast.models")

__all__ = [
    'distributions', 'time_series',
    'ForecastDistribution', 'NormalDistribution', 'SampleDistribution',
    'TransformedDistribution', 'CompositeDistribution',
    'FittedModel', 'ModelTable', 'ARXFit', 'fit_arx',
    'forecast', 'forecast_model', 'forecast_model_table', 'forecast_model_table_async',
]
