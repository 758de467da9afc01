# distcast/core/types.py

"""
Core type annotations and protocols for distcast.

This module defines the type aliases and protocol classes that describe the
contract between the forecast pipeline and its collaborators: the fitted
model's fit handle, aggregator functions used for point forecasts, and the
shapes of horizon and covariate inputs.
"""

from typing import (
    TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Protocol,
    Union, runtime_checkable
)

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from distcast.models.distributions.base import ForecastDistribution

# Forecast inputs
Horizon = Optional[Union[int, str]]  # Count of periods or a duration such as "3 years"
Specials = Dict[str, np.ndarray]  # Evaluated regressor terms keyed by term name

# Point forecast aggregators map a distribution to one value per element
Aggregator = Callable[["ForecastDistribution"], Any]
PointForecastSpec = Mapping[str, Union[str, Aggregator]]

# Transformation functions take the values to transform plus the bound context
TransformFunction = Callable[..., np.ndarray]


@runtime_checkable
class FitHandle(Protocol):
    """Protocol for the estimated model object held by a FittedModel.

    Fit handles produce forecast distributions on the model's internal
    (transformed) scale, either analytically or by simulating future paths.
    """

    def forecast(self,
                 future_data: pd.DataFrame,
                 specials: Optional[Specials] = None,
                 times: int = 5000,
                 **kwargs: Any) -> "ForecastDistribution":
        """Return one distribution element per row of ``future_data``."""
        ...

    def generate(self,
                 future_data: pd.DataFrame,
                 bootstrap: bool = False,
                 times: int = 5000,
                 **kwargs: Any) -> pd.DataFrame:
        """Return simulated paths as a long table with the future index,
        a ``.rep`` replicate identifier and the simulated ``.sim`` values."""
        ...
