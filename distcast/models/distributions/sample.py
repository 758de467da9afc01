# distcast/models/distributions/sample.py
"""
Sample-based forecast distributions.

Each element of a ``SampleDistribution`` holds the simulated draws for one
future time point: a 1-D array for univariate responses or a 2-D
``(draws, responses)`` array for multivariate responses. Summary statistics
are computed empirically from the draws, and the density of univariate
elements is estimated with a Gaussian kernel.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence, Union

import numpy as np
from scipy import stats

from distcast.core.exceptions import DistributionError
from distcast.models.distributions.base import (
    ForecastDistribution, RandomState, as_generator, broadcast_to_length
)

logger = logging.getLogger("distcast.models.distributions.sample")


class SampleDistribution(ForecastDistribution):
    """Vector of empirical distributions built from simulated draws.

    Attributes:
        samples: List of draw arrays, one per element
    """

    kind = "sample"

    def __init__(self,
                 samples: Sequence[Union[Sequence[float], np.ndarray]],
                 dimnames: Optional[Union[str, Sequence[str]]] = None):
        converted = []
        for i, draws in enumerate(samples):
            draws = np.asarray(draws, dtype=float)
            if draws.ndim not in (1, 2):
                raise DistributionError(
                    f"Draws for element {i} must be 1-D or 2-D, got {draws.ndim} dimensions",
                    dist_type="sample", operation="init"
                )
            converted.append(draws)
        self.samples: List[np.ndarray] = converted
        super().__init__(dimnames)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def is_multivariate(self) -> bool:
        return any(s.ndim == 2 for s in self.samples)

    def _take(self, indices: np.ndarray) -> "SampleDistribution":
        return SampleDistribution([self.samples[i] for i in indices], dimnames=self._dimnames)

    @classmethod
    def _concat_same(cls, dists: Sequence[ForecastDistribution]) -> "SampleDistribution":
        return cls([s for d in dists for s in d.samples])

    def format_elements(self) -> List[str]:
        out = []
        for s in self.samples:
            if s.ndim == 1:
                out.append(f"sample[{s.shape[0]}]")
            else:
                out.append(f"sample[{s.shape[0]}x{s.shape[1]}]")
        return out

    def _summarise(self, func: Callable[[np.ndarray], Any]) -> np.ndarray:
        if not self.samples:
            return np.array([], dtype=float)
        return np.array([func(s) for s in self.samples], dtype=float)

    def _require_univariate(self, operation: str) -> None:
        if self.is_multivariate:
            raise DistributionError(
                f"{operation} is not defined for multivariate sample distributions",
                dist_type="sample", operation=operation
            )

    def generate(self, times: int, random_state: RandomState = None) -> List[np.ndarray]:
        rng = as_generator(random_state)
        out = []
        for s in self.samples:
            if s.shape[0] == 0:
                raise DistributionError("Cannot resample an element without draws",
                                        dist_type="sample", operation="generate")
            out.append(s[rng.integers(0, s.shape[0], size=times)])
        return out

    def map(self,
            func: Callable[[np.ndarray], np.ndarray],
            inverse: Optional[Callable[[np.ndarray], np.ndarray]] = None) -> "SampleDistribution":
        """Apply ``func`` to the draws of every element."""
        mapped = []
        for s in self.samples:
            out = np.asarray(func(s), dtype=float)
            if out.shape != s.shape:
                raise DistributionError(
                    f"Mapped draws have shape {out.shape}, expected {s.shape}",
                    dist_type="sample", operation="map"
                )
            mapped.append(out)
        return SampleDistribution(mapped, dimnames=self._dimnames)

    def mean(self) -> np.ndarray:
        return self._summarise(lambda s: np.mean(s, axis=0))

    def median(self) -> np.ndarray:
        return self._summarise(lambda s: np.median(s, axis=0))

    def variance(self) -> np.ndarray:
        return self._summarise(lambda s: np.var(s, axis=0, ddof=1) if s.shape[0] > 1 else np.zeros(s.shape[1:]))

    def quantile(self, p: float) -> np.ndarray:
        if not 0 <= p <= 1:
            raise DistributionError(f"Probability must be in [0, 1], got {p}",
                                    dist_type="sample", operation="quantile")
        return self._summarise(lambda s: np.quantile(s, p, axis=0))

    def cdf(self, q: Any) -> np.ndarray:
        self._require_univariate("cdf")
        q = broadcast_to_length(q, len(self), "q")
        return np.array([np.mean(s <= qi) for s, qi in zip(self.samples, q)], dtype=float)

    def density(self, x: Any) -> np.ndarray:
        self._require_univariate("density")
        x = broadcast_to_length(x, len(self), "x")
        out = np.empty(len(self))
        for i, (s, xi) in enumerate(zip(self.samples, x)):
            if s.shape[0] < 2 or np.ptp(s) == 0:
                out[i] = np.nan
            else:
                out[i] = stats.gaussian_kde(s)(xi)[0]
        return out
