# distcast/models/time_series/horizon.py
"""
Forecast horizon resolution.

Reconciles the two ways of saying how far ahead to forecast: a horizon
``h`` (a number of periods, or a duration such as ``"3 years"``) or an
explicit table of future index values and covariates. Exactly one of them is
used; when only a horizon is given, a future table is built by continuing the
interval of the fitting data's index.
"""

import logging
from typing import Any, Optional

import numpy as np
import pandas as pd

from distcast.core.exceptions import ConfigurationError, warn_forecast
from distcast.core.types import Horizon
from distcast.core.validation import validate_future_data
from distcast.utils.date_utils import (
    TimeInterval, infer_interval, last_index_value, parse_duration
)

logger = logging.getLogger("distcast.models.time_series.horizon")

REDUNDANT_HORIZON_MESSAGE = (
    "Input forecast horizon `h` will be ignored as `future_data` has been provided."
)


def data_interval(data: pd.DataFrame, index: str) -> Optional[TimeInterval]:
    """Return the sampling interval of ``data[index]``, or None if it is irregular."""
    try:
        return infer_interval(data[index])
    except ValueError as e:
        logger.debug(f"Interval of '{index}' could not be inferred: {e}")
        return None


def _horizon_periods(h: Any, interval: TimeInterval, last: Any) -> int:
    if isinstance(h, str):
        try:
            duration = parse_duration(h)
        except ValueError as e:
            raise ConfigurationError(f"Unable to parse forecast horizon: {e}",
                                     setting="h", value=h, issue="unparsable duration") from e
        try:
            n, exact = interval.periods_within(last, duration)
        except ValueError as e:
            raise ConfigurationError(str(e), setting="h", value=h,
                                     issue="duration against non-temporal index") from e
        if not exact:
            n += 1
            warn_forecast(
                f"Forecast horizon '{h}' is not a whole number of periods of the data "
                f"interval ({interval}); rounding up to {n} periods.",
                setting="h",
                stacklevel=4
            )
        return n

    if isinstance(h, (bool, np.bool_)) or not isinstance(h, (int, np.integer)):
        raise ConfigurationError(f"Forecast horizon must be an integer or a duration, got {type(h).__name__}",
                                 setting="h", value=h)
    if h < 0:
        raise ConfigurationError(f"Forecast horizon must be non-negative, got {h}",
                                 setting="h", value=h)
    return int(h)


def make_future_data(data: pd.DataFrame, index: str, h: Horizon) -> pd.DataFrame:
    """
    Build the future table implied by a horizon.

    Args:
        data: Fitting data
        index: Name of the time index column of ``data``
        h: Number of periods or a duration string

    Returns:
        pd.DataFrame: Table with only the index column, one row per future
        period

    Raises:
        ConfigurationError: If the horizon cannot be resolved against the
            data's index
    """
    if h is None:
        raise ConfigurationError("A forecast horizon is required to build future data", setting="h")
    if index not in data.columns:
        raise ConfigurationError(f"Fitting data has no index column '{index}'", setting="index",
                                 value=index)
    try:
        interval = infer_interval(data[index])
    except ValueError as e:
        raise ConfigurationError(f"Unable to determine the interval of the data: {e}",
                                 setting="h", value=h, issue="unknown interval") from e

    last = last_index_value(data[index])
    n = _horizon_periods(h, interval, last)
    logger.debug(f"Resolved horizon {h!r} to {n} periods of {interval}")
    return pd.DataFrame({index: interval.future(last, n)})


def resolve_future_data(data: pd.DataFrame,
                        index: str,
                        h: Horizon = None,
                        future_data: Optional[pd.DataFrame] = None,
                        warn: bool = True) -> pd.DataFrame:
    """
    Reconcile a horizon with explicit future data.

    Args:
        data: Fitting data
        index: Name of the time index column
        h: Forecast horizon, ignored when ``future_data`` is given
        future_data: Explicit future index values and covariates
        warn: Whether to warn when ``h`` is ignored

    Returns:
        pd.DataFrame: The future data to forecast onto

    Raises:
        ConfigurationError: If neither input can be resolved
        DataError: If ``future_data`` is malformed
    """
    if future_data is not None:
        if h is not None and warn:
            warn_forecast(REDUNDANT_HORIZON_MESSAGE, setting="h", stacklevel=4)
        return validate_future_data(future_data, index)

    if h is None:
        raise ConfigurationError(
            "Either a forecast horizon `h` or `future_data` must be provided.",
            setting="h", issue="no horizon"
        )
    return make_future_data(data, index, h)
