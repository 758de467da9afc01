"""
Forecast distribution representations.

Vectors of per-time-point distributions produced by forecasting: analytical
normal distributions, empirical sample distributions, lazily transformed
distributions and heterogeneous composites, together with the named summary
functions used for point forecasts.
"""

from .base import ForecastDistribution
from .normal import NormalDistribution
from .sample import SampleDistribution
from .transformed import TransformedDistribution
from .utils import (
    AGGREGATORS, CompositeDistribution, concat_distributions, empty_distribution,
    get_aggregator, mean, median, quantile, variance
)

__all__ = [
    'ForecastDistribution', 'NormalDistribution', 'SampleDistribution',
    'TransformedDistribution', 'CompositeDistribution',
    'concat_distributions', 'empty_distribution',
    'AGGREGATORS', 'get_aggregator', 'mean', 'median', 'variance', 'quantile',
]
