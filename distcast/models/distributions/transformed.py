# distcast/models/distributions/transformed.py
"""
Lazily transformed forecast distributions.

``TransformedDistribution`` represents ``f(X)`` for an analytical base
distribution ``X`` without simulating it. Quantiles and the median are exact
for monotone ``f``; the mean uses a second-order Taylor expansion and the
variance the delta method, both with numerical derivatives. The distribution
and density functions need the inverse of ``f``.
"""

import logging
from typing import Any, Callable, List, Optional, Sequence, Union

import numpy as np

from distcast.core.exceptions import DistributionError
from distcast.models.distributions.base import (
    ForecastDistribution, RandomState, broadcast_to_length
)
from distcast.utils.differentiation import numerical_derivative

logger = logging.getLogger("distcast.models.distributions.transformed")

ElementFunction = Callable[[np.ndarray], np.ndarray]


class TransformedDistribution(ForecastDistribution):
    """Distribution of ``transform(base)``.

    Attributes:
        base: Untransformed distribution
        transform: Element-wise function applied to the base distribution
        inverse: Inverse of ``transform``, if known
    """

    kind = "transformed"

    def __init__(self,
                 base: ForecastDistribution,
                 transform: ElementFunction,
                 inverse: Optional[ElementFunction] = None,
                 dimnames: Optional[Union[str, Sequence[str]]] = None):
        if not isinstance(base, ForecastDistribution):
            raise DistributionError("Base of a transformed distribution must be a ForecastDistribution",
                                    dist_type="transformed", operation="init")
        self.base = base
        self.transform = transform
        self.inverse = inverse
        super().__init__(dimnames if dimnames is not None else base.dimnames)

    def __len__(self) -> int:
        return len(self.base)

    def _take(self, indices: np.ndarray) -> "TransformedDistribution":
        return TransformedDistribution(self.base._take(indices), self.transform, self.inverse,
                                       dimnames=self._dimnames)

    @classmethod
    def _concat_same(cls, dists: Sequence[ForecastDistribution]) -> Optional["TransformedDistribution"]:
        first = dists[0]
        if any(d.transform != first.transform or d.inverse != first.inverse for d in dists):
            return None
        from distcast.models.distributions.utils import concat_distributions
        return cls(concat_distributions([d.base for d in dists]), first.transform, first.inverse)

    def format_elements(self) -> List[str]:
        name = getattr(self.transform, "__name__", "f")
        return [f"{name}({e})" for e in self.base.format_elements()]

    def _apply(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(self.transform(np.asarray(values, dtype=float)), dtype=float)

    def _increasing(self) -> np.ndarray:
        """Whether ``transform`` is increasing over the bulk of each element."""
        lower = self._apply(self.base.quantile(0.25))
        upper = self._apply(self.base.quantile(0.75))
        return upper >= lower

    def generate(self, times: int, random_state: RandomState = None) -> List[np.ndarray]:
        return [self._apply(draws) for draws in self.base.generate(times, random_state)]

    def mean(self) -> np.ndarray:
        mu = self.base.mean()
        second = numerical_derivative(self._apply, mu, order=2)
        return self._apply(mu) + 0.5 * second * self.base.variance()

    def variance(self) -> np.ndarray:
        mu = self.base.mean()
        first = numerical_derivative(self._apply, mu, order=1)
        return first ** 2 * self.base.variance()

    def median(self) -> np.ndarray:
        return self._apply(self.base.median())

    def quantile(self, p: float) -> np.ndarray:
        if not 0 <= p <= 1:
            raise DistributionError(f"Probability must be in [0, 1], got {p}",
                                    dist_type="transformed", operation="quantile")
        increasing = self._increasing()
        upper = self._apply(self.base.quantile(p))
        lower = self._apply(self.base.quantile(1 - p))
        return np.where(increasing, upper, lower)

    def _require_inverse(self, operation: str) -> ElementFunction:
        if self.inverse is None:
            raise DistributionError(
                f"The {operation} of a transformed distribution requires the inverse transformation",
                dist_type="transformed", operation=operation
            )
        return self.inverse

    def cdf(self, q: Any) -> np.ndarray:
        inverse = self._require_inverse("cdf")
        q = broadcast_to_length(q, len(self), "q")
        p = self.base.cdf(np.asarray(inverse(q), dtype=float))
        return np.where(self._increasing(), p, 1 - p)

    def density(self, x: Any) -> np.ndarray:
        inverse = self._require_inverse("density")
        x = broadcast_to_length(x, len(self), "x")
        inv = lambda v: np.asarray(inverse(v), dtype=float)
        jacobian = np.abs(numerical_derivative(inv, x, order=1))
        return self.base.density(inv(x)) * jacobian
