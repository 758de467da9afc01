# distcast/models/time_series/transformations.py
"""
Response transformations and their binding to evaluation contexts.

A model may be estimated on a transformed response, for example ``log(y)`` or
``y / population``. The transformation records both directions, the names of
the covariates its functions read, and the context (constants) captured when
it was declared. Before forecasts can be moved between the model scale and
the response scale the transformation has to be *bound*: once for all rows
when it only needs its declaring context, or once per future row when it
reads covariates that vary over time.

Transformation functions are called as ``f(x, **env)`` where ``env`` holds
one entry per required covariate and per context name. Values from a future
row take precedence over the declaring context.
"""

import logging
from collections import ChainMap
from dataclasses import dataclass, field
from typing import (
    Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple
)

import numpy as np
import pandas as pd
from scipy import special

from distcast.core.exceptions import TransformationError
from distcast.core.types import TransformFunction

logger = logging.getLogger("distcast.models.time_series.transformations")


@dataclass(frozen=True)
class Transformation:
    """Invertible transformation of a response variable.

    Attributes:
        forward: Maps response-scale values to the model scale
        inverse: Maps model-scale values back to the response scale
        required_covariates: Names of the covariates ``forward`` and
            ``inverse`` read, which must be supplied per row
        context: Constants captured when the transformation was declared
        name: Short description used in messages
        is_identity: Whether the transformation leaves values unchanged
    """

    forward: TransformFunction
    inverse: TransformFunction
    required_covariates: FrozenSet[str] = frozenset()
    context: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    name: str = "transformation"
    is_identity: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "required_covariates", frozenset(self.required_covariates))

    @property
    def names(self) -> FrozenSet[str]:
        """All names that are passed to the transformation functions."""
        return self.required_covariates | frozenset(self.context)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BoundTransformation:
    """A transformation bound to an explicit evaluation environment."""

    transformation: Transformation
    env: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_identity(self) -> bool:
        return self.transformation.is_identity

    def forward(self, x: Any) -> np.ndarray:
        """Map response-scale values to the model scale."""
        return np.asarray(self.transformation.forward(np.asarray(x, dtype=float), **self.env),
                          dtype=float)

    def inverse(self, x: Any) -> np.ndarray:
        """Map model-scale values to the response scale."""
        return np.asarray(self.transformation.inverse(np.asarray(x, dtype=float), **self.env),
                          dtype=float)


@dataclass(frozen=True)
class TransformationBinding:
    """Result of binding one transformation against a table of rows.

    Exactly one of ``shared`` and ``rows`` is set: ``shared`` when the
    transformation is the same for every row, ``rows`` (one bound
    transformation per row, in row order) when it reads row covariates.
    """

    transformation: Transformation
    shared: Optional[BoundTransformation] = None
    rows: Optional[Tuple[BoundTransformation, ...]] = None

    @property
    def row_varying(self) -> bool:
        return self.rows is not None

    @property
    def is_identity(self) -> bool:
        return self.transformation.is_identity

    def __len__(self) -> int:
        return len(self.rows) if self.rows is not None else 1

    def for_row(self, i: int) -> BoundTransformation:
        """Return the bound transformation that applies to row ``i``."""
        if self.rows is None:
            return self.shared
        return self.rows[i]


def _environment(transformation: Transformation,
                 scope: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: scope[name] for name in transformation.names if name in scope}


def bind_transformation(transformation: Transformation,
                        data: Optional[pd.DataFrame] = None,
                        data_name: str = "future_data") -> TransformationBinding:
    """
    Bind a transformation against the rows of ``data``.

    Args:
        transformation: Transformation to bind
        data: Table whose columns may supply the required covariates
        data_name: Name of ``data`` used in error messages

    Returns:
        TransformationBinding: Shared or per-row binding

    Raises:
        TransformationError: If a required covariate is available neither
            in ``data`` nor in the transformation's context
    """
    required = transformation.required_covariates
    columns = set(data.columns) if data is not None else set()
    from_data = required & columns

    missing = sorted(required - from_data - set(transformation.context))
    if missing:
        raise TransformationError(
            f"Unable to find all required variables to back-transform the forecasts "
            f"(missing {', '.join(missing)}). These required variables can be provided "
            f"by specifying `{data_name}`.",
            transformation=transformation.name,
            missing=missing
        )

    if not from_data:
        env = _environment(transformation, transformation.context)
        return TransformationBinding(transformation, shared=BoundTransformation(transformation, env))

    logger.debug(f"Binding transformation '{transformation.name}' per row "
                 f"({len(data)} rows, covariates: {', '.join(sorted(from_data))})")
    rows = tuple(
        BoundTransformation(transformation,
                            _environment(transformation, ChainMap(record, transformation.context)))
        for record in data[sorted(from_data)].to_dict(orient="records")
    )
    return TransformationBinding(transformation, rows=rows)


def bind_transformations(transformations: Sequence[Transformation],
                         data: Optional[pd.DataFrame] = None,
                         data_name: str = "future_data") -> List[TransformationBinding]:
    """Bind each of ``transformations`` against ``data``."""
    return [bind_transformation(t, data, data_name) for t in transformations]


def apply_binding(binding: TransformationBinding,
                  values: Any,
                  rows: Optional[Iterable[int]] = None,
                  direction: str = "forward") -> np.ndarray:
    """
    Apply a bound transformation to values attached to rows.

    Args:
        binding: Binding to apply
        values: 1-D values to transform
        rows: Row position of each value. Required when the binding varies
              by row; defaults to ``range(len(values))``.
        direction: ``"forward"`` or ``"inverse"``

    Returns:
        np.ndarray: Transformed values in the input order
    """
    if direction not in ("forward", "inverse"):
        raise ValueError("direction must be 'forward' or 'inverse'")

    values = np.asarray(values, dtype=float)
    if binding.is_identity:
        return values.copy()
    if not binding.row_varying:
        return getattr(binding.shared, direction)(values)

    rows = np.arange(len(values)) if rows is None else np.asarray(list(rows))
    out = np.empty_like(values)
    for row in np.unique(rows):
        mask = rows == row
        out[mask] = getattr(binding.for_row(int(row)), direction)(values[mask])
    return out


# Transformation factories

def _identity(x, **env):
    return x


def identity() -> Transformation:
    """The identity transformation."""
    return Transformation(_identity, _identity, name="identity", is_identity=True)


def transformation(forward: TransformFunction,
                   inverse: TransformFunction,
                   required_covariates: Iterable[str] = (),
                   context: Optional[Mapping[str, Any]] = None,
                   name: Optional[str] = None) -> Transformation:
    """Declare a transformation from a pair of functions.

    Examples:
        >>> per_capita = transformation(lambda x, pop: x / pop,
        ...                             lambda x, pop: x * pop,
        ...                             required_covariates=["pop"])
    """
    return Transformation(
        forward, inverse,
        required_covariates=frozenset(required_covariates),
        context=dict(context or {}),
        name=name or getattr(forward, "__name__", "transformation")
    )


def log_transformation(base: Optional[float] = None) -> Transformation:
    """Natural (or base ``base``) logarithm."""
    if base is None:
        return Transformation(lambda x, **env: np.log(x), lambda x, **env: np.exp(x), name="log")
    scale = np.log(base)
    return Transformation(lambda x, **env: np.log(x) / scale,
                          lambda x, **env: np.power(base, x),
                          name=f"log{base:g}")


def box_cox(lmbda: float) -> Transformation:
    """Box-Cox transformation with parameter ``lmbda``."""
    return Transformation(
        lambda x, lmbda: special.boxcox(x, lmbda),
        lambda x, lmbda: special.inv_boxcox(x, lmbda),
        context={"lmbda": float(lmbda)},
        name=f"box_cox({lmbda:g})"
    )


def scaled_by(column: str) -> Transformation:
    """Divide the response by the covariate ``column``."""
    return Transformation(
        lambda x, **env: x / np.asarray(env[column], dtype=float),
        lambda x, **env: x * np.asarray(env[column], dtype=float),
        required_covariates=frozenset([column]),
        name=f"scaled_by({column})"
    )
