# distcast/models/time_series/dispatch.py
"""
Forecasting tables of fitted models.

A ``ModelTable`` holds one row per series (identified by its key columns)
and one column per candidate model, each cell a ``FittedModel``.
``forecast_model_table`` runs the single-model pipeline on every cell,
sequentially or on a thread pool, and stacks the resulting forecast tables
into one long table in (row, model column) order, whatever order the cells
finish in.

Future data can be shared by every series, split per series (when it
contains the key columns), or given as named scenarios.
"""

import asyncio
import logging
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from distcast.core.config import get_performance_config
from distcast.core.exceptions import (
    DistcastError, ForecastCancelled, ForecastError, ParameterError, warn_forecast
)
from distcast.core.validation import validate_column_names
from distcast.models.time_series.base import FittedModel
from distcast.models.time_series.forecast import forecast_model, is_forecast_table
from distcast.models.time_series.horizon import REDUNDANT_HORIZON_MESSAGE

logger = logging.getLogger("distcast.models.time_series.dispatch")

MODEL_COLUMN = ".model"


@dataclass
class ModelTable:
    """Table of fitted models.

    Attributes:
        data: One row per series with the key columns and one column per
            candidate model
        key: Names of the key columns identifying each series
        models: Names of the model columns
    """

    data: pd.DataFrame
    key: List[str] = field(default_factory=list)
    models: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.data, pd.DataFrame):
            raise ParameterError("Model table data must be a pandas DataFrame",
                                 param_name="data", param_value=type(self.data).__name__)
        self.key = list(self.key)
        self.models = list(self.models)
        if not self.models:
            raise ParameterError("A model table needs at least one model column", param_name="models")
        validate_column_names(self.data, self.key + self.models, "model table")
        for column in self.models:
            for value in self.data[column]:
                if not isinstance(value, FittedModel):
                    raise ParameterError(
                        f"Model column '{column}' contains {type(value).__name__}, expected FittedModel",
                        param_name="models", param_value=column
                    )

    def __len__(self) -> int:
        return len(self.data)

    def key_values(self, row: int) -> Dict[str, Any]:
        """Key column values of row ``row``."""
        return {k: self.data[k].iloc[row] for k in self.key}

    def cells(self) -> List[Tuple[Dict[str, Any], str, FittedModel]]:
        """All (key values, model column, model) cells in row, then column, order."""
        return [(self.key_values(row), column, self.data[column].iloc[row])
                for row in range(len(self.data))
                for column in self.models]


@dataclass(frozen=True)
class Scenarios:
    """Named alternative future data sets.

    Attributes:
        frames: Future data of each scenario, in declaration order
        names_to: Name of the output column identifying the scenario
    """

    frames: Dict[str, pd.DataFrame]
    names_to: str = ".scenario"


def scenarios(names_to: str = ".scenario", **frames: pd.DataFrame) -> Scenarios:
    """Declare named future scenarios.

    Examples:
        >>> import pandas as pd
        >>> s = scenarios(high=pd.DataFrame({"t": [1]}), low=pd.DataFrame({"t": [1]}))
        >>> list(s.frames)
        ['high', 'low']
    """
    if not frames:
        raise ParameterError("At least one scenario is required", param_name="frames")
    for name, frame in frames.items():
        if not isinstance(frame, pd.DataFrame):
            raise ParameterError(f"Scenario '{name}' must be a pandas DataFrame",
                                 param_name=name, param_value=type(frame).__name__)
    return Scenarios(dict(frames), names_to)


def _future_for_key(future_data: Optional[pd.DataFrame],
                    key_values: Dict[str, Any]) -> Optional[pd.DataFrame]:
    if future_data is None or not key_values:
        return future_data
    if not all(k in future_data.columns for k in key_values):
        return future_data
    mask = np.logical_and.reduce([(future_data[k] == v).to_numpy() for k, v in key_values.items()])
    return future_data.loc[mask].drop(columns=list(key_values)).reset_index(drop=True)


def _forecast_cell(model: FittedModel,
                   key_values: Dict[str, Any],
                   model_name: str,
                   h: Any,
                   future_data: Optional[pd.DataFrame],
                   key: Sequence[str],
                   kwargs: Dict[str, Any]) -> pd.DataFrame:
    logger.debug(f"Forecasting model '{model_name}' for key {key_values}")
    try:
        return forecast_model(model, h=None if future_data is not None else h,
                              future_data=future_data, key=key, warn_horizon=False, **kwargs)
    except DistcastError as e:
        raise e.attribute_to(key_values, model_name)
    except Exception as e:
        raise ForecastError(
            f"Forecasting model '{model_name}' failed: {e}",
            model_type=model.model_name
        ).attribute_to(key_values, model_name) from e


def _run_sequential(jobs: List[Tuple]) -> List[pd.DataFrame]:
    return [_forecast_cell(*job) for job in jobs]


def _raise_cancellation(futures: List[Future]) -> None:
    """Re-raise an interrupt from any finished cell, ahead of computation errors."""
    for f in futures:
        if f.done() and not f.cancelled() and isinstance(f.exception(), KeyboardInterrupt):
            raise f.exception()


def _run_parallel(jobs: List[Tuple], max_workers: int) -> List[pd.DataFrame]:
    executor = ThreadPoolExecutor(max_workers=max_workers)
    try:
        futures = [executor.submit(_forecast_cell, *job) for job in jobs]
        wait(futures, return_when=FIRST_EXCEPTION)
        _raise_cancellation(futures)
        # A failed cell stops scheduling; cells already running finish first
        executor.shutdown(wait=True, cancel_futures=True)
        _raise_cancellation(futures)
    except BaseException as e:
        # Queued cells never start; cells still running are abandoned
        executor.shutdown(wait=False, cancel_futures=True)
        logger.debug(f"Parallel forecast of {len(jobs)} cells cancelled")
        if isinstance(e, KeyboardInterrupt) and not isinstance(e, ForecastCancelled):
            raise ForecastCancelled("Terminated by user") from None
        raise

    # Report the first failure in input order, not completion order
    for f in futures:
        if not f.cancelled() and f.exception() is not None:
            logger.debug(f"Discarding results of {len(futures)} cells after a failure")
            raise f.exception()
    return [f.result() for f in futures]


def _stack_tables(tables: List[pd.DataFrame],
                  cells: List[Tuple[Dict[str, Any], str, FittedModel]],
                  key: List[str]) -> pd.DataFrame:
    frames = []
    for table, (key_values, model_name, _) in zip(tables, cells):
        prefix = pd.DataFrame({k: [v] * len(table) for k, v in key_values.items()})
        prefix[MODEL_COLUMN] = [model_name] * len(table)
        body = table.drop(columns=[c for c in prefix.columns if c in table.columns])
        frames.append(pd.concat([prefix, body.reset_index(drop=True)], axis=1))

    if not frames:
        out = pd.DataFrame({c: [] for c in key + [MODEL_COLUMN]})
        out.attrs.update(key=key + [MODEL_COLUMN])
        return out

    out = pd.concat(frames, ignore_index=True)
    out.attrs = {**tables[0].attrs, "key": key + [MODEL_COLUMN]}
    return out


def _forecast_frames(table: ModelTable,
                     h: Any,
                     future_data: Optional[pd.DataFrame],
                     parallel: bool,
                     max_workers: int,
                     kwargs: Dict[str, Any]) -> pd.DataFrame:
    cells = table.cells()
    jobs = [
        (model, key_values, model_name, h, _future_for_key(future_data, key_values), table.key, kwargs)
        for key_values, model_name, model in cells
    ]
    if parallel and len(jobs) > 1:
        logger.debug(f"Forecasting {len(jobs)} cells on up to {max_workers} threads")
        tables = _run_parallel(jobs, max_workers)
    else:
        tables = _run_sequential(jobs)
    return _stack_tables(tables, cells, table.key)


def forecast_model_table(table: ModelTable,
                         h: Any = None,
                         future_data: Optional[Any] = None,
                         point_forecast: Optional[Dict[str, Any]] = None,
                         parallel: Optional[bool] = None,
                         max_workers: Optional[int] = None,
                         **kwargs: Any) -> pd.DataFrame:
    """
    Forecast every model in a model table.

    Args:
        table: Table of fitted models
        h: Forecast horizon, ignored when ``future_data`` is given
        future_data: Future data shared by all series, future data holding
            the key columns (split per series), or ``Scenarios``
        point_forecast: Point forecasts to compute for every cell
        parallel: Forecast cells on a thread pool. Defaults to the
            ``performance.parallel`` setting.
        max_workers: Maximum number of threads. Defaults to the
            ``performance.max_workers`` setting.
        **kwargs: Passed to ``forecast_model`` for every cell

    Returns:
        pd.DataFrame: Forecast table with the key columns and ``.model``
        first, rows in (series, model column) order

    Raises:
        DistcastError: The failure of the first failing cell in input order,
            attributed to its key and model
        ForecastCancelled: If the computation is interrupted
    """
    if not isinstance(table, ModelTable):
        raise ParameterError(f"Expected a ModelTable, got {type(table).__name__}", param_name="table")

    performance = get_performance_config()
    parallel = performance.parallel if parallel is None else parallel
    max_workers = performance.max_workers if max_workers is None else max_workers
    if max_workers < 1:
        raise ParameterError("max_workers must be positive", param_name="max_workers",
                             param_value=max_workers)

    if h is not None and future_data is not None:
        warn_forecast(REDUNDANT_HORIZON_MESSAGE, setting="h")

    kwargs = dict(kwargs, point_forecast=point_forecast)

    if isinstance(future_data, Scenarios):
        frames = []
        for name, frame in future_data.frames.items():
            result = _forecast_frames(table, h, frame, parallel, max_workers, kwargs)
            result.insert(0, future_data.names_to, name)
            frames.append(result)
        out = pd.concat(frames, ignore_index=True)
        out.attrs = {**frames[0].attrs, "key": [future_data.names_to] + frames[0].attrs["key"]}
        return out

    if future_data is not None and not isinstance(future_data, pd.DataFrame):
        raise ParameterError("future_data must be a pandas DataFrame or Scenarios",
                             param_name="future_data", param_value=type(future_data).__name__)

    return _forecast_frames(table, h, future_data, parallel, max_workers, kwargs)


async def forecast_model_table_async(table: ModelTable, **kwargs: Any) -> pd.DataFrame:
    """Asynchronously forecast every model in a model table.

    Runs ``forecast_model_table`` in the default executor so that the event
    loop stays responsive.
    """
    loop = asyncio.get_event_loop()
    result = await loop.run_in_executor(
        None, lambda: forecast_model_table(table, **kwargs)
    )
    return result


def forecast(obj: Any, h: Any = None, future_data: Optional[Any] = None, **kwargs: Any) -> pd.DataFrame:
    """
    Forecast a fitted model or a table of fitted models.

    Args:
        obj: ``FittedModel`` or ``ModelTable``
        h: Forecast horizon
        future_data: Future index values and covariates
        **kwargs: Passed to ``forecast_model`` or ``forecast_model_table``

    Returns:
        pd.DataFrame: Forecast table
    """
    if isinstance(obj, ModelTable):
        return forecast_model_table(obj, h=h, future_data=future_data, **kwargs)
    if isinstance(obj, FittedModel):
        return forecast_model(obj, h=h, future_data=future_data, **kwargs)
    if is_forecast_table(obj):
        raise ForecastError(
            "Did you try to forecast a forecast table? "
            "Forecasts can only be computed from fitted models or model tables."
        )
    raise ParameterError(f"Cannot forecast an object of type {type(obj).__name__}",
                         param_name="obj")
