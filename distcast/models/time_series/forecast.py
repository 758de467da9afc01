# distcast/models/time_series/forecast.py
"""
Forecast production for a single fitted model.

This module turns a ``FittedModel`` and a horizon (or explicit future data)
into a forecast table: one row per future time point holding the forecast
distribution of the response, the requested point forecasts and the future
covariates.

The pipeline has four stages:
- the forecast distribution is computed on the model scale, either
  analytically from the fit handle or from simulated (optionally
  bootstrapped) future paths
- the response transformation is undone, with per-row inverses where the
  transformation depends on future covariates
- point forecasts are extracted from the distribution with named or
  user-supplied summary functions
- everything is assembled into a pandas DataFrame whose ``attrs`` describe
  the forecast (response, distribution column, index, key, interval)
"""

import logging
from functools import partial
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from distcast.core.config import get_forecast_config
from distcast.core.exceptions import (
    DimensionError, ForecastCancelled, ForecastError, ParameterError,
    PointForecastError, SpecialsEvaluationError, UnsupportedTransformError,
    warn_deprecation
)
from distcast.core.types import PointForecastSpec
from distcast.core.validation import (
    validate_horizon, validate_point_forecast, validate_times
)
from distcast.models.distributions import (
    ForecastDistribution, SampleDistribution, TransformedDistribution,
    concat_distributions, empty_distribution, get_aggregator, mean, median
)
from distcast.models.time_series.base import FittedModel
from distcast.models.time_series.horizon import data_interval, resolve_future_data
from distcast.models.time_series.transformations import (
    Transformation, TransformationBinding, apply_binding, bind_transformations
)
from distcast.utils.date_utils import TimeInterval

logger = logging.getLogger("distcast.models.time_series.forecast")

MULTIVARIATE_DISTRIBUTION_COLUMN = ".distribution"

SPECIALS_HINT = (
    "Unable to compute required variables from provided `future_data`. "
    "Does your model require extra variables to produce forecasts?"
)


def classify_transformations(transformations: Sequence[Union[Transformation, TransformationBinding]]) -> List[bool]:
    """Return, for each transformation, whether it is the identity."""
    return [t.is_identity for t in transformations]


def check_transformations(transformations: Sequence[Union[Transformation, TransformationBinding]]) -> int:
    """
    Check that at most one response is transformed.

    Returns:
        int: Position of the transformed response, or -1 if none is

    Raises:
        UnsupportedTransformError: If more than one response is transformed
    """
    transformed = [i for i, is_identity in enumerate(classify_transformations(transformations))
                   if not is_identity]
    if len(transformed) > 1:
        raise UnsupportedTransformError(
            "Transformations of multivariate forecasts are not yet supported",
            transformation=", ".join(str(getattr(transformations[i], "transformation",
                                                 transformations[i])) for i in transformed)
        )
    return transformed[0] if transformed else -1


def _evaluate_specials(model: FittedModel, future_data: pd.DataFrame) -> Dict[str, np.ndarray]:
    try:
        return model.evaluate_specials("forecast", future_data)
    except KeyboardInterrupt:
        raise ForecastCancelled("Terminated by user") from None
    except Exception as e:
        cause = getattr(e, "message", None) or str(e)
        missing = [c for c in model.specials.required_columns if c not in future_data.columns]
        raise SpecialsEvaluationError(
            f"{cause}\n{SPECIALS_HINT}",
            missing=missing,
            model_type=model.model_name
        ) from e


def _sample_distribution(model: FittedModel,
                         future_data: pd.DataFrame,
                         bindings: Sequence[TransformationBinding],
                         bootstrap: bool,
                         times: int,
                         **kwargs: Any) -> SampleDistribution:
    sims = model.generate(future_data, bootstrap=bootstrap, times=times, **kwargs)
    value_columns = model.value_columns
    rows = pd.Index(future_data[model.index]).get_indexer(sims[model.index])

    values = sims[value_columns].to_numpy(dtype=float)
    for j, binding in enumerate(bindings):
        if not binding.is_identity:
            values[:, j] = apply_binding(binding, values[:, j], rows=rows, direction="forward")

    order = np.argsort(rows, kind="stable")
    rows = rows[order]
    values = values[order]
    n = len(future_data)
    bounds = np.searchsorted(rows, np.arange(n + 1))

    samples = []
    for i in range(n):
        draws = values[bounds[i]:bounds[i + 1]]
        if draws.shape[0] == 0:
            raise DimensionError(
                f"No simulated values were generated for future row {i}",
                array_name="simulated paths"
            )
        samples.append(draws[:, 0] if len(value_columns) == 1 else draws)
    return SampleDistribution(samples)


def compute_forecast_distribution(model: FittedModel,
                                  future_data: pd.DataFrame,
                                  simulate: bool = False,
                                  bootstrap: bool = False,
                                  times: int = 5000,
                                  bindings: Optional[Sequence[TransformationBinding]] = None,
                                  **kwargs: Any) -> ForecastDistribution:
    """
    Compute the model-scale forecast distribution for each future row.

    The regressor terms are evaluated against ``future_data`` on both paths
    and handed to the fit handle as ``specials``.

    Args:
        model: Fitted model
        future_data: Future index values and covariates
        simulate: Whether to build the distribution from simulated paths
        bootstrap: Whether simulated innovations are bootstrapped residuals
            (implies ``simulate``)
        times: Number of simulated paths
        bindings: Transformations bound against ``future_data``. Computed
            when not given.
        **kwargs: Passed to the fit handle

    Returns:
        ForecastDistribution: One element per row of ``future_data``

    Raises:
        SpecialsEvaluationError: If the regressor terms cannot be evaluated
        ForecastCancelled: If the evaluation is interrupted
        DimensionError: If the fit handle returns the wrong number of elements
    """
    specials = _evaluate_specials(model, future_data)
    if simulate or bootstrap:
        if bindings is None:
            bindings = bind_transformations(model.transformation, future_data)
        logger.debug(f"Simulating {times} {'bootstrapped ' if bootstrap else ''}paths "
                     f"for {len(future_data)} periods ({model.model_name})")
        distribution = _sample_distribution(model, future_data, bindings, bootstrap, times,
                                            specials=specials, **kwargs)
    else:
        logger.debug(f"Computing analytical forecasts for {len(future_data)} periods ({model.model_name})")
        distribution = model.fit.forecast(future_data, specials=specials, times=times, **kwargs)
        if not isinstance(distribution, ForecastDistribution):
            raise ForecastError(
                f"Fit handle returned {type(distribution).__name__}, expected a ForecastDistribution",
                model_type=model.model_name
            )

    if len(distribution) != len(future_data):
        raise DimensionError(
            f"Forecast distribution has {len(distribution)} elements but future_data has "
            f"{len(future_data)} rows",
            array_name="forecast distribution",
            expected_shape=(len(future_data),),
            actual_shape=(len(distribution),)
        )
    return distribution


def _map_column(draws: np.ndarray, column: int, func) -> np.ndarray:
    out = np.array(draws, dtype=float, copy=True)
    out[:, column] = func(out[:, column])
    return out


def back_transform(distribution: ForecastDistribution,
                   bindings: Sequence[TransformationBinding],
                   response: Sequence[str]) -> ForecastDistribution:
    """
    Move a model-scale forecast distribution back to the response scale.

    Args:
        distribution: Model-scale forecast distribution
        bindings: Bound transformation of each response
        response: Response variable names

    Returns:
        ForecastDistribution: Response-scale distribution labelled with
        ``response``

    Raises:
        UnsupportedTransformError: If more than one response is transformed,
            or an analytical distribution needs a per-row or multivariate
            back-transformation
    """
    position = check_transformations(bindings)
    response = list(response)

    if position < 0:
        result = distribution
    elif distribution.is_sample:
        binding = bindings[position]
        if binding.row_varying and len(binding) != len(distribution):
            raise DimensionError(
                f"Transformation is bound to {len(binding)} rows but the distribution has "
                f"{len(distribution)} elements",
                array_name="transformation binding"
            )
        multivariate = len(response) > 1
        if not binding.row_varying and not multivariate:
            result = distribution.map(binding.shared.inverse)
        else:
            mapped = []
            for i, element in enumerate(distribution):
                inverse = binding.for_row(i).inverse
                if multivariate:
                    inverse = partial(_map_column, column=position, func=inverse)
                mapped.append(element.map(inverse))
            result = concat_distributions(mapped)
    else:
        binding = bindings[position]
        if len(response) > 1 or binding.row_varying:
            raise UnsupportedTransformError(
                "Back-transformation of analytical forecasts is only supported for univariate "
                "transformations that do not vary by row. Use `simulate=True` to forecast "
                "this model.",
                transformation=binding.transformation.name
            )
        result = TransformedDistribution(distribution,
                                         transform=binding.shared.inverse,
                                         inverse=binding.shared.forward)

    result.dimnames = response
    return result


def compute_point_forecasts(distribution: ForecastDistribution,
                            point_forecast: PointForecastSpec) -> Dict[str, np.ndarray]:
    """
    Summarise a forecast distribution into point forecasts.

    Args:
        distribution: Forecast distribution
        point_forecast: Mapping of output names to summary functions or
            registered summary names (``"mean"``, ``"median"``,
            ``"variance"``)

    Returns:
        Dict[str, np.ndarray]: Point forecasts in declaration order

    Raises:
        ParameterError: If a summary name is not registered
        PointForecastError: If a summary returns the wrong number of values
    """
    validate_point_forecast(point_forecast)
    results: Dict[str, np.ndarray] = {}
    for name, aggregator in point_forecast.items():
        if isinstance(aggregator, str):
            try:
                aggregator = get_aggregator(aggregator)
            except KeyError as e:
                raise ParameterError(str(e.args[0]), param_name="point_forecast",
                                     param_value=aggregator) from e
        values = np.asarray(aggregator(distribution))
        if values.ndim == 0 and len(distribution) == 1:
            values = values.reshape(1)
        length = 1 if values.ndim == 0 else values.shape[0]
        if values.ndim == 0 or length != len(distribution):
            raise PointForecastError(
                f"Point forecast '{name}' returned {length} value(s) for a forecast of "
                f"length {len(distribution)}",
                summary=name,
                expected_length=len(distribution),
                actual_length=length
            )
        results[name] = values
    return results


def resolve_point_forecast(point_forecast: Optional[PointForecastSpec] = None,
                           bias_adjust: Optional[bool] = None) -> PointForecastSpec:
    """Resolve the point forecast summaries requested by a forecast call."""
    if bias_adjust is not None:
        warn_deprecation(
            "The `bias_adjust` argument for forecast() has been deprecated. "
            "Please specify the desired point forecasts using `point_forecast`.",
            feature="bias_adjust",
            alternative="point_forecast"
        )
        return {".mean": mean} if bias_adjust else {".median": median}
    if point_forecast is None:
        default = get_forecast_config().point_forecast
        return {f".{default}": default}
    return point_forecast


def build_forecast_table(future_data: pd.DataFrame,
                         distribution: ForecastDistribution,
                         point_forecasts: Mapping[str, np.ndarray],
                         response: Sequence[str],
                         index: str,
                         key: Optional[Sequence[str]] = None,
                         interval: Optional[TimeInterval] = None) -> pd.DataFrame:
    """
    Assemble a forecast table.

    Columns are the index, the distribution column (named after the
    response, or ``.distribution`` for several responses), the point
    forecasts, then the remaining columns of ``future_data``.

    Returns:
        pd.DataFrame: Forecast table, described by its ``attrs``
    """
    response = list(response)
    n = len(future_data)
    if len(distribution) != n:
        raise DimensionError(
            f"Distribution length ({len(distribution)}) does not match future_data ({n} rows)",
            array_name="distribution", expected_shape=(n,), actual_shape=(len(distribution),)
        )

    dist_column = response[0] if len(response) == 1 else MULTIVARIATE_DISTRIBUTION_COLUMN
    cells = np.empty(n, dtype=object)
    for i, element in enumerate(distribution):
        cells[i] = element

    columns: Dict[str, Any] = {index: future_data[index].reset_index(drop=True)}
    columns[dist_column] = cells
    for name, values in point_forecasts.items():
        if name in columns:
            raise ParameterError(f"Point forecast name '{name}' clashes with another column",
                                 param_name="point_forecast", param_value=name)
        columns[name] = list(values) if np.ndim(values) > 1 else np.asarray(values, dtype=float)
    for column in future_data.columns:
        if column not in columns:
            columns[column] = future_data[column].reset_index(drop=True)

    table = pd.DataFrame(columns)
    table.attrs.update(
        response=response,
        distribution=dist_column,
        index=index,
        key=list(key or []),
        interval=interval,
        ordered=True
    )
    return table


def is_forecast_table(obj: Any) -> bool:
    """Whether ``obj`` is a table built by ``build_forecast_table``."""
    return isinstance(obj, pd.DataFrame) and "distribution" in obj.attrs and "response" in obj.attrs


def forecast_distribution(table: pd.DataFrame) -> ForecastDistribution:
    """Reassemble the distribution column of a forecast table into one vector."""
    if not is_forecast_table(table):
        raise ParameterError("Expected a forecast table", param_name="table")
    return concat_distributions(list(table[table.attrs["distribution"]]),
                                dimnames=table.attrs["response"])


def forecast_model(model: FittedModel,
                   h: Any = None,
                   future_data: Optional[pd.DataFrame] = None,
                   simulate: Optional[bool] = None,
                   bootstrap: Optional[bool] = None,
                   times: Optional[int] = None,
                   point_forecast: Optional[PointForecastSpec] = None,
                   bias_adjust: Optional[bool] = None,
                   key: Optional[Sequence[str]] = None,
                   warn_horizon: bool = True,
                   **kwargs: Any) -> pd.DataFrame:
    """
    Forecast a single fitted model.

    Args:
        model: Fitted model
        h: Number of periods or a duration such as ``"2 years"``. Ignored
            (with a warning) when ``future_data`` is given.
        future_data: Future index values and covariates
        simulate: Build the distribution from simulated paths
        bootstrap: Simulate with bootstrapped residuals
        times: Number of simulated paths
        point_forecast: Mapping of output column names to summaries.
            Defaults to ``{".mean": "mean"}``.
        bias_adjust: Deprecated. ``True`` for the mean, ``False`` for the
            median.
        key: Key columns recorded in the table's ``attrs``
        warn_horizon: Whether to warn when ``h`` is ignored
        **kwargs: Passed to the fit handle

    Returns:
        pd.DataFrame: Forecast table with one row per future period

    Examples:
        >>> fc = forecast_model(model, h=2)  # doctest: +SKIP
        >>> list(fc.columns)  # doctest: +SKIP
        ['time', 'y', '.mean']
    """
    if not isinstance(model, FittedModel):
        raise ParameterError(f"Expected a FittedModel, got {type(model).__name__}",
                             param_name="model")

    config = get_forecast_config()
    simulate = config.simulate if simulate is None else simulate
    bootstrap = config.bootstrap if bootstrap is None else bootstrap
    times = validate_times(config.times if times is None else times)
    point_forecast = resolve_point_forecast(point_forecast, bias_adjust)
    validate_point_forecast(point_forecast)
    validate_horizon(h)

    future_data = resolve_future_data(model.data, model.index, h, future_data, warn=warn_horizon)
    check_transformations(model.transformation)
    interval = data_interval(model.data, model.index)

    if len(future_data) == 0:
        logger.debug(f"No future periods to forecast for {model.model_name}")
        distribution = empty_distribution(model.response)
        points = {name: np.array([], dtype=float) for name in point_forecast}
    else:
        bindings = bind_transformations(model.transformation, future_data)
        distribution = compute_forecast_distribution(
            model, future_data, simulate=simulate, bootstrap=bootstrap, times=times,
            bindings=bindings, **kwargs
        )
        distribution = back_transform(distribution, bindings, model.response)
        points = compute_point_forecasts(distribution, point_forecast)

    return build_forecast_table(future_data, distribution, points,
                                response=model.response, index=model.index,
                                key=key, interval=interval)
