'''
Input validation helpers for distcast.

These functions check the arguments of forecast calls before any work is
done, so that invalid input fails early with a toolbox exception carrying the
offending parameter and the constraint it violated.
'''

import logging
from typing import Any, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .exceptions import DataError, ParameterError

logger = logging.getLogger("distcast.core.validation")


def validate_times(times: Any) -> int:
    """Validate the number of simulated paths.

    Args:
        times: Requested number of paths

    Returns:
        int: The validated number of paths

    Raises:
        ParameterError: If ``times`` is not a positive integer
    """
    if isinstance(times, (bool, np.bool_)) or not isinstance(times, (int, np.integer)):
        raise ParameterError(
            f"Number of simulated paths must be an integer, got {type(times).__name__}",
            param_name="times", param_value=times, constraint="times > 0"
        )
    if times <= 0:
        raise ParameterError(
            f"Number of simulated paths must be positive, got {times}",
            param_name="times", param_value=times, constraint="times > 0"
        )
    return int(times)


def validate_horizon(h: Any) -> None:
    """Validate the type of a forecast horizon.

    Only the type is checked here; resolving a horizon against the data's
    interval happens in ``distcast.models.time_series.horizon``.

    Raises:
        ParameterError: If ``h`` is neither None, an integer nor a string
    """
    if h is None or isinstance(h, str):
        return
    if isinstance(h, (bool, np.bool_)) or not isinstance(h, (int, np.integer)):
        raise ParameterError(
            f"Forecast horizon must be an integer or a duration string, got {type(h).__name__}",
            param_name="h", param_value=h
        )


def validate_future_data(future_data: Any,
                         index: str,
                         name: str = "future_data") -> pd.DataFrame:
    """Validate a future covariate table.

    Args:
        future_data: Table of future index values and covariates
        index: Name of the required index column
        name: Name used in error messages

    Returns:
        pd.DataFrame: The validated table

    Raises:
        DataError: If the table is not a DataFrame, lacks the index column,
            or repeats index values
    """
    if not isinstance(future_data, pd.DataFrame):
        raise DataError(
            f"{name} must be a pandas DataFrame, got {type(future_data).__name__}",
            data_name=name, issue="type"
        )
    if index not in future_data.columns:
        raise DataError(
            f"{name} must contain the index column '{index}'",
            data_name=name, issue="missing index",
            details=f"Available columns: {', '.join(map(str, future_data.columns)) or '<none>'}"
        )
    duplicated = future_data[index].duplicated()
    if duplicated.any():
        raise DataError(
            f"{name} contains duplicated index values",
            data_name=name, issue="duplicated index",
            index=str(future_data.loc[duplicated, index].iloc[0])
        )
    return future_data


def validate_point_forecast(point_forecast: Any) -> None:
    """Validate the requested point forecast summaries.

    Raises:
        ParameterError: If the request is not a mapping of names to
            callables or registered aggregator names
    """
    if not isinstance(point_forecast, Mapping):
        raise ParameterError(
            "point_forecast must be a mapping of column names to aggregators",
            param_name="point_forecast", param_value=type(point_forecast).__name__
        )
    for name, aggregator in point_forecast.items():
        if not isinstance(name, str) or not name:
            raise ParameterError(
                "Point forecast names must be non-empty strings",
                param_name="point_forecast", param_value=name
            )
        if not (callable(aggregator) or isinstance(aggregator, str)):
            raise ParameterError(
                f"Point forecast '{name}' must be callable or the name of an aggregator",
                param_name="point_forecast", param_value=aggregator
            )


def validate_column_names(data: pd.DataFrame,
                          columns: Sequence[str],
                          name: str) -> None:
    """Check that ``data`` contains every column in ``columns``.

    Raises:
        DataError: If any column is missing
    """
    missing = [c for c in columns if c not in data.columns]
    if missing:
        raise DataError(
            f"{name} is missing column(s): {', '.join(map(str, missing))}",
            data_name=name, issue="missing columns"
        )
