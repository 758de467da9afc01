# distcast/models/distributions/utils.py
"""
Helpers for combining and summarising forecast distributions.

Includes positional concatenation of distributions of any representation
(falling back to a heterogeneous ``CompositeDistribution``), construction of
empty distributions, and the registry of named summary functions used to
compute point forecasts.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from distcast.core.exceptions import DistributionError
from distcast.models.distributions.base import (
    ForecastDistribution, RandomState, as_generator, broadcast_to_length
)
from distcast.models.distributions.sample import SampleDistribution

logger = logging.getLogger("distcast.models.distributions.utils")


class CompositeDistribution(ForecastDistribution):
    """Positional concatenation of single-element distributions of mixed kinds.

    Attributes:
        elements: Single-element distributions, one per position
    """

    kind = "composite"

    def __init__(self,
                 elements: Sequence[ForecastDistribution],
                 dimnames: Optional[Union[str, Sequence[str]]] = None):
        flat: List[ForecastDistribution] = []
        for dist in elements:
            if isinstance(dist, CompositeDistribution):
                flat.extend(dist.elements)
            else:
                flat.extend(dist[i] for i in range(len(dist)))
        self.elements = flat
        super().__init__(dimnames)

    @property
    def is_sample(self) -> bool:
        return bool(self.elements) and all(e.is_sample for e in self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    def _take(self, indices: np.ndarray) -> ForecastDistribution:
        if len(indices) == 1:
            element = self.elements[indices[0]]._take(np.arange(1))
            element.dimnames = self._dimnames
            return element
        return CompositeDistribution([self.elements[i] for i in indices], dimnames=self._dimnames)

    @classmethod
    def _concat_same(cls, dists: Sequence[ForecastDistribution]) -> "CompositeDistribution":
        return cls([e for d in dists for e in d.elements])

    def format_elements(self) -> List[str]:
        return [e.format_elements()[0] for e in self.elements]

    def _collect(self, func: Callable[[ForecastDistribution], np.ndarray]) -> np.ndarray:
        if not self.elements:
            return np.array([], dtype=float)
        return np.concatenate([np.atleast_1d(func(e)) for e in self.elements])

    def generate(self, times: int, random_state: RandomState = None) -> List[np.ndarray]:
        rng = as_generator(random_state)
        return [e.generate(times, rng)[0] for e in self.elements]

    def map(self, func, inverse=None) -> "CompositeDistribution":
        return CompositeDistribution([e.map(func, inverse) for e in self.elements],
                                     dimnames=self._dimnames)

    def mean(self) -> np.ndarray:
        return self._collect(lambda e: e.mean())

    def median(self) -> np.ndarray:
        return self._collect(lambda e: e.median())

    def variance(self) -> np.ndarray:
        return self._collect(lambda e: e.variance())

    def quantile(self, p: float) -> np.ndarray:
        return self._collect(lambda e: e.quantile(p))

    def cdf(self, q: Any) -> np.ndarray:
        q = broadcast_to_length(q, len(self), "q")
        return self._collect_at(q, lambda e, v: e.cdf(v))

    def density(self, x: Any) -> np.ndarray:
        x = broadcast_to_length(x, len(self), "x")
        return self._collect_at(x, lambda e, v: e.density(v))

    def _collect_at(self, values: np.ndarray, func) -> np.ndarray:
        if not self.elements:
            return np.array([], dtype=float)
        return np.concatenate([np.atleast_1d(func(e, v)) for e, v in zip(self.elements, values)])


def empty_distribution(dimnames: Optional[Union[str, Sequence[str]]] = None) -> SampleDistribution:
    """Return a distribution with no elements."""
    return SampleDistribution([], dimnames=dimnames)


def concat_distributions(dists: Sequence[ForecastDistribution],
                         dimnames: Optional[Union[str, Sequence[str]]] = None) -> ForecastDistribution:
    """
    Concatenate distributions positionally.

    Distributions of the same class are merged directly where the class
    supports it; otherwise the result is a ``CompositeDistribution``.
    Empty distributions contribute nothing.

    Args:
        dists: Distributions to concatenate
        dimnames: Labels for the result. Defaults to the first non-empty
                  labels among ``dists``.

    Returns:
        ForecastDistribution: Concatenated distribution
    """
    dists = list(dists)
    for d in dists:
        if not isinstance(d, ForecastDistribution):
            raise DistributionError(f"Cannot concatenate object of type {type(d).__name__}",
                                    operation="concat")

    if dimnames is None:
        dimnames = next((d.dimnames for d in dists if d.dimnames), None)

    non_empty = [d for d in dists if len(d) > 0]
    if not non_empty:
        return empty_distribution(dimnames)

    if len(non_empty) == 1:
        result = non_empty[0]._take(np.arange(len(non_empty[0])))
    else:
        result = None
        cls = type(non_empty[0])
        if all(type(d) is cls for d in non_empty):
            result = cls._concat_same(non_empty)
        if result is None:
            logger.debug(f"Concatenating {len(non_empty)} distributions of mixed kinds")
            result = CompositeDistribution(non_empty)

    result.dimnames = dimnames
    return result


# Named summaries available for point forecasts

def mean(dist: ForecastDistribution) -> np.ndarray:
    """Expected value of each element."""
    return dist.mean()


def median(dist: ForecastDistribution) -> np.ndarray:
    """Median of each element."""
    return dist.median()


def variance(dist: ForecastDistribution) -> np.ndarray:
    """Variance of each element."""
    return dist.variance()


def quantile(p: float) -> Callable[[ForecastDistribution], np.ndarray]:
    """Return a summary computing quantile ``p`` of each element."""
    def _quantile(dist: ForecastDistribution) -> np.ndarray:
        return dist.quantile(p)
    _quantile.__name__ = f"quantile_{p:g}"
    return _quantile


AGGREGATORS: Dict[str, Callable[[ForecastDistribution], np.ndarray]] = {
    "mean": mean,
    "median": median,
    "variance": variance,
}


def get_aggregator(name: str) -> Callable[[ForecastDistribution], np.ndarray]:
    """Look up a named summary function.

    Raises:
        KeyError: If ``name`` is not registered
    """
    try:
        return AGGREGATORS[name]
    except KeyError:
        raise KeyError(
            f"Unknown point forecast '{name}'. Available: {', '.join(sorted(AGGREGATORS))}"
        ) from None
