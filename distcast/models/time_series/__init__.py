# distcast/models/time_series/__init__.py
"""
Time series forecasting pipeline.

This package turns fitted time series models into probabilistic forecasts:

- Fitted model container and regressor term evaluation (``base``)
- Response transformations and their binding to future data
  (``transformations``)
- Horizon resolution against explicit future data (``horizon``)
- The single-model forecast pipeline (``forecast``)
- Forecasting tables of models, sequentially or in parallel (``dispatch``)
- A reference ARX model estimated by least squares (``arx``)
"""

import logging

from .base import FittedModel, Special, SpecialsEvaluator, regressor
from .transformations import (
    BoundTransformation, Transformation, TransformationBinding,
    apply_binding, bind_transformation, bind_transformations,
    box_cox, identity, log_transformation, scaled_by, transformation
)
from .horizon import make_future_data, resolve_future_data
from .forecast import (
    back_transform, build_forecast_table, check_transformations,
    classify_transformations, compute_forecast_distribution,
    compute_point_forecasts, forecast_distribution, forecast_model,
    is_forecast_table
)
from .dispatch import (
    ModelTable, Scenarios, forecast, forecast_model_table,
    forecast_model_table_async, scenarios
)
from .arx import ARXFit, fit_arx

logger = logging.getLogger("distcast.models.time_series")

__all__ = [
    # Models
    'FittedModel', 'Special', 'SpecialsEvaluator', 'regressor',
    'ARXFit', 'fit_arx',

    # Transformations
    'Transformation', 'BoundTransformation', 'TransformationBinding',
    'bind_transformation', 'bind_transformations', 'apply_binding',
    'identity', 'transformation', 'log_transformation', 'box_cox', 'scaled_by',

    # Horizon
    'make_future_data', 'resolve_future_data',

    # Forecasting
    'compute_forecast_distribution', 'classify_transformations',
    'check_transformations', 'back_transform', 'compute_point_forecasts',
    'build_forecast_table', 'forecast_distribution', 'is_forecast_table',
    'forecast_model',

    # Model tables
    'ModelTable', 'Scenarios', 'scenarios', 'forecast_model_table',
    'forecast_model_table_async', 'forecast',
]

logger.debug("Time series forecasting module initialized")
