# distcast/models/distributions/normal.py
"""
Normal forecast distributions.

``NormalDistribution`` is the analytical representation produced by linear
Gaussian models: one mean and one standard deviation per future time point.
Density, distribution and quantile functions are delegated to SciPy.
"""

from typing import Any, List, Optional, Sequence, Union

import numpy as np
from scipy import stats

from distcast.core.exceptions import DistributionError
from distcast.models.distributions.base import (
    ForecastDistribution, RandomState, as_generator, broadcast_to_length
)


class NormalDistribution(ForecastDistribution):
    """Vector of univariate normal distributions.

    Attributes:
        mu: Mean of each element
        sigma: Standard deviation of each element (non-negative)
    """

    kind = "analytical"

    def __init__(self,
                 mu: Union[float, Sequence[float], np.ndarray],
                 sigma: Union[float, Sequence[float], np.ndarray],
                 dimnames: Optional[Union[str, Sequence[str]]] = None):
        mu = np.atleast_1d(np.asarray(mu, dtype=float))
        sigma = np.asarray(sigma, dtype=float)
        sigma = broadcast_to_length(sigma, len(mu), "sigma") if sigma.ndim else np.full(len(mu), float(sigma))

        if np.any(sigma < 0) or np.any(np.isnan(sigma)):
            raise DistributionError(
                "Standard deviations must be non-negative",
                dist_type="normal", operation="init"
            )

        self.mu = mu
        self.sigma = sigma
        super().__init__(dimnames)

    def __len__(self) -> int:
        return len(self.mu)

    def _take(self, indices: np.ndarray) -> "NormalDistribution":
        return NormalDistribution(self.mu[indices], self.sigma[indices], dimnames=self._dimnames)

    @classmethod
    def _concat_same(cls, dists: Sequence[ForecastDistribution]) -> "NormalDistribution":
        return cls(
            np.concatenate([d.mu for d in dists]),
            np.concatenate([d.sigma for d in dists])
        )

    def format_elements(self) -> List[str]:
        return [f"N({m:.4g}, {s * s:.4g})" for m, s in zip(self.mu, self.sigma)]

    def generate(self, times: int, random_state: RandomState = None) -> List[np.ndarray]:
        rng = as_generator(random_state)
        return [rng.normal(m, s, size=times) for m, s in zip(self.mu, self.sigma)]

    def mean(self) -> np.ndarray:
        return self.mu.copy()

    def median(self) -> np.ndarray:
        return self.mu.copy()

    def variance(self) -> np.ndarray:
        return self.sigma ** 2

    def quantile(self, p: float) -> np.ndarray:
        if not 0 <= p <= 1:
            raise DistributionError(f"Probability must be in [0, 1], got {p}",
                                    dist_type="normal", operation="quantile")
        return stats.norm.ppf(p, loc=self.mu, scale=self.sigma)

    def cdf(self, q: Any) -> np.ndarray:
        q = broadcast_to_length(q, len(self), "q")
        return stats.norm.cdf(q, loc=self.mu, scale=self.sigma)

    def density(self, x: Any) -> np.ndarray:
        x = broadcast_to_length(x, len(self), "x")
        return stats.norm.pdf(x, loc=self.mu, scale=self.sigma)
