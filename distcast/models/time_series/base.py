# distcast/models/time_series/base.py
"""
Fitted model container and regressor ("specials") evaluation.

A ``FittedModel`` bundles everything the forecast pipeline needs from an
estimated model: the fitting data and its time index column, the response
variable names with the transformation applied to each of them, the
estimated fit handle that actually produces forecasts, and the evaluator for
the model's regressor terms.

Regressor terms are evaluated against future data through a staged,
stateful evaluator. ``FittedModel.evaluate_specials`` wraps the whole
sequence (set the stage, bind covariates, evaluate, unbind, clear the stage)
in one call guarded by a per-model lock, so the evaluator is always left
clean even when evaluation fails.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from distcast.core.exceptions import DataError, ForecastError, ParameterError
from distcast.core.types import FitHandle, Specials
from distcast.core.validation import validate_column_names
from distcast.models.time_series.transformations import (
    Transformation, apply_binding, bind_transformations, identity
)

logger = logging.getLogger("distcast.models.time_series.base")


@dataclass(frozen=True)
class Special:
    """A regressor term computed from one or more data columns.

    Attributes:
        name: Name of the evaluated term
        columns: Data columns the term reads
        func: Combines the column values into the term. Defaults to stacking
              the columns into a ``(rows, len(columns))`` matrix.
    """

    name: str
    columns: Tuple[str, ...]
    func: Optional[Callable[..., np.ndarray]] = None

    def evaluate(self, data: pd.DataFrame) -> np.ndarray:
        missing = [c for c in self.columns if c not in data.columns]
        if missing:
            raise DataError(
                f"object '{missing[0]}' not found",
                data_name="future_data", issue="missing covariates",
                details=f"Term '{self.name}' requires: {', '.join(self.columns)}"
            )
        values = [data[c].to_numpy(dtype=float) for c in self.columns]
        if self.func is not None:
            return np.asarray(self.func(*values), dtype=float)
        return np.column_stack(values) if values else np.empty((len(data), 0))


def regressor(*columns: str,
              name: Optional[str] = None,
              func: Optional[Callable[..., np.ndarray]] = None) -> Special:
    """Declare a regressor term reading ``columns``.

    Examples:
        >>> regressor("temperature")
        Special(name='temperature', columns=('temperature',), func=None)
    """
    if not columns:
        raise ParameterError("A regressor must read at least one column", param_name="columns")
    return Special(name or "_".join(columns), tuple(columns), func)


class SpecialsEvaluator:
    """Staged evaluator for a model's regressor terms.

    The evaluator must be moved through ``set_stage`` and
    ``bind_covariates`` before ``evaluate`` can be called, and returned to
    its idle state with ``unbind`` and ``clear_stage`` afterwards.
    """

    def __init__(self, terms: Sequence[Special] = ()):
        self.terms: List[Special] = list(terms)
        self._stage: Optional[str] = None
        self._covariates: Optional[pd.DataFrame] = None

    @property
    def stage(self) -> Optional[str]:
        return self._stage

    @property
    def bound(self) -> bool:
        return self._covariates is not None

    @property
    def required_columns(self) -> List[str]:
        """Data columns read by any term, in declaration order."""
        seen: List[str] = []
        for term in self.terms:
            seen.extend(c for c in term.columns if c not in seen)
        return seen

    def set_stage(self, stage: str) -> None:
        if self._stage is not None:
            raise ForecastError(f"Specials are already being evaluated for stage '{self._stage}'")
        self._stage = stage

    def bind_covariates(self, covariates: pd.DataFrame) -> None:
        if self._stage is None:
            raise ForecastError("A stage must be set before covariates are bound")
        self._covariates = covariates

    def evaluate(self) -> Specials:
        if self._covariates is None:
            raise ForecastError("Covariates must be bound before specials are evaluated")
        return {term.name: term.evaluate(self._covariates) for term in self.terms}

    def unbind(self) -> None:
        self._covariates = None

    def clear_stage(self) -> None:
        self._stage = None


class FittedModel:
    """An estimated model ready to forecast.

    Attributes:
        fit: Estimated fit handle producing model-scale forecasts
        data: Fitting data
        index: Name of the time index column in ``data``
        response: Names of the response variables
        transformation: Transformation of each response, aligned with ``response``
        specials: Evaluator for the model's regressor terms
    """

    def __init__(self,
                 fit: FitHandle,
                 data: pd.DataFrame,
                 index: str,
                 response: Union[str, Sequence[str]],
                 transformation: Optional[Union[Transformation, Sequence[Transformation]]] = None,
                 specials: Optional[SpecialsEvaluator] = None,
                 model_name: Optional[str] = None):
        if not isinstance(fit, FitHandle):
            raise ParameterError(
                "fit must provide forecast() and generate()",
                param_name="fit", param_value=type(fit).__name__
            )
        if not isinstance(data, pd.DataFrame):
            raise ParameterError("data must be a pandas DataFrame", param_name="data",
                                 param_value=type(data).__name__)
        validate_column_names(data, [index], "data")

        response = [response] if isinstance(response, str) else list(response)
        if not response:
            raise ParameterError("At least one response variable is required", param_name="response")

        if transformation is None:
            transformation = [identity() for _ in response]
        elif isinstance(transformation, Transformation):
            transformation = [transformation]
        else:
            transformation = list(transformation)
        if len(transformation) != len(response):
            raise ParameterError(
                f"Expected one transformation per response ({len(response)}), got {len(transformation)}",
                param_name="transformation"
            )

        self.fit = fit
        self.data = data
        self.index = index
        self.response = response
        self.transformation = transformation
        self.specials = specials if specials is not None else SpecialsEvaluator()
        self.model_name = model_name or type(fit).__name__
        self._lock = threading.RLock()

    def evaluate_specials(self, stage: str, covariates: pd.DataFrame) -> Specials:
        """Evaluate the regressor terms against ``covariates`` for ``stage``.

        The evaluator is returned to its idle state before this method
        returns, whether or not evaluation succeeded.
        """
        with self._lock:
            self.specials.set_stage(stage)
            try:
                self.specials.bind_covariates(covariates)
                try:
                    return self.specials.evaluate()
                finally:
                    self.specials.unbind()
            finally:
                self.specials.clear_stage()

    def generate(self,
                 future_data: pd.DataFrame,
                 bootstrap: bool = False,
                 times: int = 5000,
                 **kwargs: Any) -> pd.DataFrame:
        """
        Simulate future paths on the response scale.

        Args:
            future_data: Future index values and covariates
            bootstrap: Whether innovations are resampled from the residuals
            times: Number of paths
            **kwargs: Passed to the fit handle

        Returns:
            pd.DataFrame: Long table with the index column, ``.rep`` and the
            simulated values (``.sim`` for a single response, otherwise one
            column per response)
        """
        sims = self.fit.generate(future_data, bootstrap=bootstrap, times=times, **kwargs)
        value_columns = self.value_columns
        validate_column_names(sims, [self.index, ".rep", *value_columns], "simulated paths")

        rows = pd.Index(future_data[self.index]).get_indexer(sims[self.index])
        if np.any(rows < 0):
            raise DataError("Simulated paths contain index values that are not in future_data",
                            data_name="simulated paths", issue="unknown index values")

        sims = sims.copy()
        bindings = bind_transformations(self.transformation, future_data)
        for column, binding in zip(value_columns, bindings):
            sims[column] = apply_binding(binding, sims[column], rows=rows, direction="inverse")
        return sims

    @property
    def value_columns(self) -> List[str]:
        """Columns holding simulated values in ``generate`` output."""
        return [".sim"] if len(self.response) == 1 else list(self.response)

    def __repr__(self) -> str:
        return f"<FittedModel {self.model_name}: {', '.join(self.response)}>"
