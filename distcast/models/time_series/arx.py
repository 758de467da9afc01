# distcast/models/time_series/arx.py
"""
Autoregressive model with exogenous regressors (ARX).

A compact reference model for the forecast pipeline. The (possibly
transformed) response follows

    y[t] = c + a[1] y[t-1] + ... + a[p] y[t-p] + b' x[t] + e[t]

with Gaussian innovations, estimated by ordinary least squares with
statsmodels. ``ARXFit`` implements the fit handle protocol: ``forecast``
returns analytical normal forecasts using the psi-weight representation of
the forecast error variance, and ``generate`` simulates future paths with
normal or bootstrapped innovations. The recursions are Numba-accelerated.
"""

import logging
from typing import Any, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm
from numba import jit

from distcast.core.config import get_config
from distcast.core.exceptions import DataError, NumericError, ParameterError
from distcast.core.types import Specials
from distcast.models.distributions import NormalDistribution
from distcast.models.distributions.base import RandomState, as_generator
from distcast.models.time_series.base import (
    FittedModel, Special, SpecialsEvaluator, regressor
)
from distcast.models.time_series.transformations import (
    Transformation, apply_binding, bind_transformation, identity
)

logger = logging.getLogger("distcast.models.time_series.arx")


@jit(nopython=True, cache=True)
def _forecast_arx_numba(ar_params, constant, history, exog_effect):
    """Numba-accelerated ARX mean forecast recursion.

    Args:
        ar_params: Autoregressive parameters
        constant: Constant term
        history: Last ``len(ar_params)`` observations, oldest first
        exog_effect: Contribution of the regressors at each future step

    Returns:
        np.ndarray: Point forecasts
    """
    ar_order = len(ar_params)
    steps = len(exog_effect)
    n_hist = len(history)
    forecasts = np.zeros(steps)

    for h in range(steps):
        forecasts[h] = constant + exog_effect[h]
        for i in range(ar_order):
            if h - i - 1 >= 0:
                # Use previous forecasts
                forecasts[h] += ar_params[i] * forecasts[h - i - 1]
            else:
                # Use historical data
                idx = n_hist - 1 - i + h
                if idx >= 0:
                    forecasts[h] += ar_params[i] * history[idx]

    return forecasts


@jit(nopython=True, cache=True)
def _simulate_arx_paths_numba(ar_params, constant, history, exog_effect, innovations):
    """Numba-accelerated simulation of ARX forecast paths.

    Args:
        ar_params: Autoregressive parameters
        constant: Constant term
        history: Last ``len(ar_params)`` observations, oldest first
        exog_effect: Contribution of the regressors at each future step
        innovations: Innovations with shape (n_paths, steps)

    Returns:
        np.ndarray: Simulated paths with shape (n_paths, steps)
    """
    ar_order = len(ar_params)
    n_paths, steps = innovations.shape
    n_hist = len(history)
    paths = np.zeros((n_paths, steps))

    for p in range(n_paths):
        for h in range(steps):
            paths[p, h] = constant + exog_effect[h] + innovations[p, h]
            for i in range(ar_order):
                if h - i - 1 >= 0:
                    paths[p, h] += ar_params[i] * paths[p, h - i - 1]
                else:
                    idx = n_hist - 1 - i + h
                    if idx >= 0:
                        paths[p, h] += ar_params[i] * history[idx]

    return paths


@jit(nopython=True, cache=True)
def _psi_weights_numba(ar_params, steps):
    """Moving average representation coefficients of an AR polynomial."""
    psi = np.zeros(steps)
    if steps == 0:
        return psi
    psi[0] = 1.0
    for i in range(1, steps):
        for j in range(min(i, len(ar_params))):
            psi[i] += ar_params[j] * psi[i - j - 1]
    return psi


def forecast_error_variance_arx(ar_params: np.ndarray, sigma2: float, steps: int) -> np.ndarray:
    """Compute h-step forecast error variances of an ARX model.

    Args:
        ar_params: Autoregressive parameters
        sigma2: Innovation variance
        steps: Number of steps to forecast

    Returns:
        np.ndarray: Forecast error variance at each horizon

    Raises:
        NumericError: If the variances are not finite
    """
    psi = _psi_weights_numba(np.asarray(ar_params, dtype=np.float64), steps)
    variances = sigma2 * np.cumsum(psi ** 2)
    if not np.all(np.isfinite(variances)):
        raise NumericError(
            "Forecast error variances are not finite",
            operation="ARX forecast error variance",
            error_type="overflow"
        )
    return variances


class ARXFit:
    """Estimated ARX model implementing the fit handle protocol.

    Attributes:
        ar_params: Autoregressive parameters
        exog_params: Regressor coefficients, in the column order of the
            evaluated terms
        constant: Constant term
        sigma2: Innovation variance
        history: Last observations of the model-scale response
        residuals: In-sample residuals, used for bootstrapping
        terms: Regressor terms
        index: Name of the time index column
    """

    def __init__(self,
                 ar_params: np.ndarray,
                 exog_params: np.ndarray,
                 constant: float,
                 sigma2: float,
                 history: np.ndarray,
                 residuals: np.ndarray,
                 terms: Sequence[Special],
                 index: str):
        self.ar_params = np.asarray(ar_params, dtype=np.float64)
        self.exog_params = np.asarray(exog_params, dtype=np.float64)
        self.constant = float(constant)
        self.sigma2 = float(sigma2)
        self.history = np.asarray(history, dtype=np.float64)
        self.residuals = np.asarray(residuals, dtype=np.float64)
        self.terms = list(terms)
        self.index = index

    @property
    def order(self) -> int:
        return len(self.ar_params)

    def _exog_effect(self, specials: Optional[Specials], n: int) -> np.ndarray:
        if not self.terms:
            return np.zeros(n)
        if specials is None:
            raise ParameterError("Regressor values are required to forecast this model",
                                 param_name="specials")
        X = np.column_stack([np.asarray(specials[t.name], dtype=float).reshape(n, -1)
                             for t in self.terms])
        if X.shape[1] != len(self.exog_params):
            raise ParameterError(
                f"Expected {len(self.exog_params)} regressor columns, got {X.shape[1]}",
                param_name="specials"
            )
        return X @ self.exog_params

    def forecast(self,
                 future_data: pd.DataFrame,
                 specials: Optional[Specials] = None,
                 times: int = 5000,
                 **kwargs: Any) -> NormalDistribution:
        """Analytical normal forecasts on the model scale."""
        n = len(future_data)
        exog_effect = self._exog_effect(specials, n)
        mu = _forecast_arx_numba(self.ar_params, self.constant, self.history, exog_effect)
        variances = forecast_error_variance_arx(self.ar_params, self.sigma2, n)
        return NormalDistribution(mu, np.sqrt(variances))

    def generate(self,
                 future_data: pd.DataFrame,
                 bootstrap: bool = False,
                 times: int = 5000,
                 random_state: RandomState = None,
                 specials: Optional[Specials] = None,
                 **kwargs: Any) -> pd.DataFrame:
        """
        Simulate future paths on the model scale.

        Args:
            future_data: Future index values and covariates
            bootstrap: Resample the in-sample residuals instead of drawing
                normal innovations
            times: Number of paths
            random_state: Seed or generator. Defaults to the configured seed.
            specials: Evaluated regressor terms. The forecast pipeline always
                passes them; direct callers may leave them to be evaluated
                from ``future_data``.

        Returns:
            pd.DataFrame: Columns ``index``, ``.rep`` and ``.sim``
        """
        n = len(future_data)
        if random_state is None:
            random_state = get_config("core", "random_seed")
        rng = as_generator(random_state)

        if specials is None:
            specials = {t.name: t.evaluate(future_data) for t in self.terms}
        exog_effect = self._exog_effect(specials, n)

        if bootstrap:
            innovations = rng.choice(self.residuals, size=(times, n), replace=True)
        else:
            innovations = rng.normal(0.0, np.sqrt(self.sigma2), size=(times, n))

        paths = _simulate_arx_paths_numba(self.ar_params, self.constant, self.history,
                                          exog_effect, np.ascontiguousarray(innovations))
        return pd.DataFrame({
            self.index: np.tile(future_data[self.index].to_numpy(), times),
            ".rep": np.repeat(np.arange(times), n),
            ".sim": paths.ravel(),
        })

    def __repr__(self) -> str:
        return (f"ARXFit(order={self.order}, regressors={[t.name for t in self.terms]}, "
                f"sigma2={self.sigma2:.4g})")


def fit_arx(data: pd.DataFrame,
            response: str,
            index: str,
            order: int = 1,
            regressors: Sequence[Union[str, Special]] = (),
            transformation: Optional[Transformation] = None,
            constant: bool = True) -> FittedModel:
    """
    Estimate an ARX model by ordinary least squares.

    Args:
        data: Fitting data containing the index, response and regressor columns
        response: Name of the response column
        index: Name of the time index column
        order: Autoregressive order
        regressors: Regressor column names or terms
        transformation: Transformation applied to the response before
            estimation. Covariates it requires are read from ``data``.
        constant: Whether to include a constant term

    Returns:
        FittedModel: The fitted model

    Raises:
        ParameterError: If the order is invalid
        DataError: If the data are insufficient or the transformed response
            is not finite

    Examples:
        >>> import pandas as pd
        >>> from distcast.models.time_series import fit_arx, log_transformation
        >>> df = pd.DataFrame({"t": range(50), "y": [10.0 + (i % 7) for i in range(50)]})
        >>> model = fit_arx(df, "y", "t", order=1, transformation=log_transformation())
    """
    if isinstance(order, bool) or not isinstance(order, (int, np.integer)) or order < 0:
        raise ParameterError(f"AR order must be a non-negative integer, got {order}",
                             param_name="order", param_value=order)

    transformation = transformation or identity()
    terms = [regressor(r) if isinstance(r, str) else r for r in regressors]

    data = data.sort_values(index).reset_index(drop=True)
    binding = bind_transformation(transformation, data, data_name="data")
    y = apply_binding(binding, data[response].to_numpy(dtype=float), direction="forward")
    if not np.all(np.isfinite(y)):
        raise DataError(
            f"Transformed response '{response}' contains non-finite values",
            data_name=response, issue="non-finite",
            details=f"Transformation: {transformation.name}"
        )

    n = len(y)
    if n <= order:
        raise DataError(f"At least {order + 1} observations are required, got {n}",
                        data_name="data", issue="too few observations")
    columns: List[np.ndarray] = []
    if constant:
        columns.append(np.ones(n - order))
    for i in range(1, order + 1):
        columns.append(y[order - i:n - i])
    for term in terms:
        values = term.evaluate(data).reshape(n, -1)
        columns.extend(values[order:, k] for k in range(values.shape[1]))

    n_params = len(columns)
    if n_params == 0:
        raise ParameterError("An ARX model needs a constant, an AR term or a regressor",
                             param_name="order", param_value=order)
    if n - order <= n_params:
        raise DataError(
            f"Insufficient data to estimate an ARX({order}) model with {n_params} parameters",
            data_name="data", issue="too few observations"
        )

    design = np.column_stack(columns) if columns else np.empty((n - order, 0))
    result = sm.OLS(y[order:], design).fit()
    params = np.asarray(result.params, dtype=float)

    offset = 1 if constant else 0
    fit = ARXFit(
        ar_params=params[offset:offset + order],
        exog_params=params[offset + order:],
        constant=params[0] if constant else 0.0,
        sigma2=float(result.scale),
        history=y[n - order:] if order > 0 else np.empty(0),
        residuals=np.asarray(result.resid, dtype=float),
        terms=terms,
        index=index
    )
    logger.debug(f"Estimated {fit!r} on {n} observations")

    return FittedModel(
        fit, data, index, response,
        transformation=transformation,
        specials=SpecialsEvaluator(terms),
        model_name=f"ARX({order})"
    )
