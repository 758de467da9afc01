'''
Pytest configuration and fixtures for the distcast test suite.

This module provides seeded random number generators, synthetic series with
regular integer and calendar indices, fitted reference models, and a
deterministic fit handle whose forecasts and simulated paths are known in
closed form, so that pipeline tests can check exact values.
'''

import time
from typing import Any, Callable, List, Optional, Sequence

import numpy as np
import pandas as pd
import pytest

from distcast.core.config import reset_config
from distcast.models.distributions import NormalDistribution
from distcast.models.time_series import (
    FittedModel, ModelTable, SpecialsEvaluator, fit_arx, log_transformation
)


class StubFit:
    """Fit handle with closed-form output.

    The analytical forecast of future row ``i`` is N(level + i, sigma^2).
    Simulated path ``r`` takes the model-scale value ``level + i + step * r``
    at row ``i``; with several responses, response ``j`` is shifted by ``j``.
    """

    def __init__(self,
                 index: str = "t",
                 level: float = 10.0,
                 sigma: float = 1.0,
                 step: float = 0.01,
                 responses: Optional[Sequence[str]] = None,
                 delay: float = 0.0,
                 error: Optional[BaseException] = None):
        self.index = index
        self.level = level
        self.sigma = sigma
        self.step = step
        self.responses = list(responses) if responses else None
        self.delay = delay
        self.error = error
        self.calls: List[str] = []

    def _run(self, name: str) -> None:
        self.calls.append(name)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error

    def forecast(self, future_data, specials=None, times=5000, **kwargs):
        self._run("forecast")
        return NormalDistribution(self.level + np.arange(len(future_data)), self.sigma)

    def generate(self, future_data, bootstrap=False, times=5000, **kwargs):
        self._run("generate")
        n = len(future_data)
        rows = np.tile(np.arange(n), times)
        reps = np.repeat(np.arange(times), n)
        values = self.level + rows + self.step * reps
        sims = pd.DataFrame({
            self.index: np.tile(future_data[self.index].to_numpy(), times),
            ".rep": reps,
        })
        if self.responses is None:
            sims[".sim"] = values
        else:
            for j, name in enumerate(self.responses):
                sims[name] = values + j
        return sims


def simulate_ar1(rng: np.random.Generator,
                 n: int,
                 constant: float = 4.0,
                 phi: float = 0.6,
                 beta: float = 0.5,
                 sigma: float = 0.5) -> pd.DataFrame:
    """Simulate y[t] = constant + phi y[t-1] + beta x[t] + e[t] with a burn-in."""
    burn = 100
    x = rng.standard_normal(n + burn)
    e = rng.normal(0.0, sigma, n + burn)
    y = np.zeros(n + burn)
    y[0] = constant / (1 - phi)
    for t in range(1, n + burn):
        y[t] = constant + phi * y[t - 1] + beta * x[t] + e[t]
    return pd.DataFrame({
        "t": np.arange(n),
        "y": y[burn:],
        "x": x[burn:],
        "pop": 1000.0 + 10.0 * np.arange(n),
    })


# ---- Configuration ----

@pytest.fixture(autouse=True)

def clean_config():
    """Restore the default configuration after every test."""
    yield
    reset_config()


# ---- Basic Data Generation Fixtures ----

@pytest.fixture

def rng() -> np.random.Generator:
    """Provide a seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture

def ar_series(rng: np.random.Generator) -> pd.DataFrame:
    """AR(1) series with a regressor ``x`` and a population column on an integer index."""
    return simulate_ar1(rng, 300)


@pytest.fixture

def monthly_series(ar_series: pd.DataFrame) -> pd.DataFrame:
    """The AR(1) series on a month-start calendar index."""
    data = ar_series.drop(columns="t").copy()
    data.insert(0, "month", pd.date_range("2000-01-01", periods=len(data), freq="MS"))
    return data


@pytest.fixture

def stub_data() -> pd.DataFrame:
    """Fitting data for stub models: 20 periods on an integer index."""
    return pd.DataFrame({
        "t": np.arange(20),
        "y": np.linspace(5.0, 15.0, 20),
        "pop": np.full(20, 2.0),
    })


# ---- Model Fixtures ----

@pytest.fixture

def make_stub_model(stub_data: pd.DataFrame) -> Callable[..., FittedModel]:
    """Factory for fitted models backed by a ``StubFit``."""
    def _make(response: Any = "y",
              transformation: Any = None,
              specials: Optional[SpecialsEvaluator] = None,
              model_name: Optional[str] = None,
              **fit_kwargs: Any) -> FittedModel:
        fit = StubFit(responses=None if isinstance(response, str) else response, **fit_kwargs)
        return FittedModel(fit, stub_data, "t", response,
                           transformation=transformation, specials=specials,
                           model_name=model_name)
    return _make


@pytest.fixture

def arx_model(ar_series: pd.DataFrame) -> FittedModel:
    """ARX(1) model without regressors or transformation."""
    return fit_arx(ar_series, "y", "t", order=1)


@pytest.fixture

def log_arx_model(ar_series: pd.DataFrame) -> FittedModel:
    """ARX(1) model of log(y) with the regressor ``x``."""
    return fit_arx(ar_series, "y", "t", order=1, regressors=["x"],
                   transformation=log_transformation())


@pytest.fixture

def model_table(make_stub_model: Callable[..., FittedModel]) -> ModelTable:
    """Two series ("north", "south") with two stub models each."""
    data = pd.DataFrame({
        "region": ["north", "south"],
        "base": [make_stub_model(level=10.0), make_stub_model(level=30.0)],
        "high": [make_stub_model(level=20.0), make_stub_model(level=40.0)],
    })
    return ModelTable(data, key=["region"], models=["base", "high"])
