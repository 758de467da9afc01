'''
Base class for forecast distributions.

A forecast distribution is a *vector* of univariate (or, for sample-based
distributions, multivariate) distributions with one element per future time
point. The base class fixes the interface every representation provides:
random generation, summary statistics, quantiles, distribution and density
functions, element selection, positional concatenation, mapping through a
function, and labelling with the response variable names (``dimnames``).

Representations are either sample-based (a finite set of simulated draws per
element) or analytical-family (closed-form parameters, possibly seen through
a lazily applied transformation). Callers branch on ``is_sample`` rather than
on concrete classes.
'''

import abc
import logging
from typing import (
    Any, Callable, ClassVar, Iterator, List, Optional, Sequence, Union
)

import numpy as np

from distcast.core.exceptions import DistributionError

logger = logging.getLogger("distcast.models.distributions.base")

RandomState = Optional[Union[int, np.random.Generator]]


def as_generator(random_state: RandomState = None) -> np.random.Generator:
    """Return a NumPy Generator for ``random_state``."""
    if isinstance(random_state, np.random.Generator):
        return random_state
    return np.random.default_rng(random_state)


def broadcast_to_length(values: Any, n: int, name: str = "values") -> np.ndarray:
    """Broadcast a scalar or length-``n`` array to a float array of length ``n``.

    Raises:
        DistributionError: If ``values`` has an incompatible length
    """
    arr = np.asarray(values, dtype=float)
    if arr.ndim == 0:
        return np.full(n, float(arr))
    if arr.shape[0] != n:
        raise DistributionError(
            f"Length of {name} ({arr.shape[0]}) does not match the distribution length ({n})",
            operation=name
        )
    return arr


class ForecastDistribution(abc.ABC):
    """Abstract vector of forecast distributions.

    Attributes:
        kind: Representation kind, ``"sample"``, ``"analytical"``,
              ``"transformed"`` or ``"composite"``
        dimnames: Names of the response variable(s) the distribution describes
    """

    kind: ClassVar[str] = "analytical"

    def __init__(self, dimnames: Optional[Union[str, Sequence[str]]] = None):
        self._dimnames: List[str] = []
        self.dimnames = dimnames

    @property
    def dimnames(self) -> List[str]:
        """Names of the response variable(s) described by the distribution."""
        return list(self._dimnames)

    @dimnames.setter
    def dimnames(self, value: Optional[Union[str, Sequence[str]]]) -> None:
        if value is None:
            self._dimnames = []
        elif isinstance(value, str):
            self._dimnames = [value]
        else:
            self._dimnames = [str(v) for v in value]

    @property
    def is_sample(self) -> bool:
        """Whether the distribution is represented by simulated draws."""
        return self.kind == "sample"

    @abc.abstractmethod
    def __len__(self) -> int:
        pass

    @abc.abstractmethod
    def _take(self, indices: np.ndarray) -> "ForecastDistribution":
        """Return the elements at ``indices`` as a new distribution."""
        pass

    @abc.abstractmethod
    def format_elements(self) -> List[str]:
        """Return a short textual description of each element."""
        pass

    @abc.abstractmethod
    def generate(self, times: int, random_state: RandomState = None) -> List[np.ndarray]:
        """Draw ``times`` random values from every element.

        Args:
            times: Number of draws per element
            random_state: Random number generator or seed

        Returns:
            List[np.ndarray]: One array of draws per element
        """
        pass

    @abc.abstractmethod
    def mean(self) -> np.ndarray:
        """Expected value of every element."""
        pass

    @abc.abstractmethod
    def variance(self) -> np.ndarray:
        """Variance of every element."""
        pass

    @abc.abstractmethod
    def quantile(self, p: float) -> np.ndarray:
        """Quantile ``p`` of every element."""
        pass

    @abc.abstractmethod
    def cdf(self, q: Any) -> np.ndarray:
        """Cumulative probability of every element at ``q`` (scalar or per element)."""
        pass

    @abc.abstractmethod
    def density(self, x: Any) -> np.ndarray:
        """Density of every element at ``x`` (scalar or per element)."""
        pass

    def median(self) -> np.ndarray:
        """Median of every element."""
        return self.quantile(0.5)

    def map(self,
            func: Callable[[np.ndarray], np.ndarray],
            inverse: Optional[Callable[[np.ndarray], np.ndarray]] = None) -> "ForecastDistribution":
        """Return the distribution of ``func`` applied to this distribution.

        Analytical distributions are wrapped lazily; ``inverse`` enables the
        distribution and density functions of the result.
        """
        from distcast.models.distributions.transformed import TransformedDistribution
        return TransformedDistribution(self, func, inverse, dimnames=self._dimnames)

    def concat(self, *others: "ForecastDistribution") -> "ForecastDistribution":
        """Concatenate this distribution positionally with ``others``."""
        from distcast.models.distributions.utils import concat_distributions
        return concat_distributions([self, *others])

    @classmethod
    def _concat_same(cls, dists: Sequence["ForecastDistribution"]) -> Optional["ForecastDistribution"]:
        """Concatenate distributions of this class without a composite wrapper.

        Returns None when the distributions cannot be merged directly.
        """
        return None

    def __getitem__(self, item: Union[int, slice, Sequence[int], np.ndarray]) -> "ForecastDistribution":
        n = len(self)
        if isinstance(item, (int, np.integer)):
            if not -n <= item < n:
                raise IndexError(f"Index {item} out of range for distribution of length {n}")
            indices = np.array([item % n])
        else:
            indices = np.arange(n)[item]
        return self._take(np.atleast_1d(indices))

    def __iter__(self) -> Iterator["ForecastDistribution"]:
        for i in range(len(self)):
            yield self[i]

    def __repr__(self) -> str:
        elements = self.format_elements()
        shown = ", ".join(elements[:5])
        if len(elements) > 5:
            shown += ", ..."
        dims = f" dimnames={self._dimnames}" if self._dimnames else ""
        return f"<{self.__class__.__name__}[{len(self)}]{dims}: {shown}>"
