"""
Numerical differentiation utilities.

Finite-difference derivatives of element-wise functions. They are used by
transformed forecast distributions to approximate moments and densities
without requiring the transformation to supply analytical derivatives.
"""

import logging
from typing import Callable, Optional, Union

import numpy as np

from distcast.core.exceptions import raise_numeric_error

logger = logging.getLogger("distcast.utils.differentiation")


def _default_step(x: np.ndarray, order: int) -> np.ndarray:
    """Step size scaled to the magnitude of ``x`` and the derivative order."""
    eps = np.finfo(float).eps
    base = np.power(eps, 1 / (order + 1))
    return np.maximum(np.abs(x), 1.0) * base


def numerical_derivative(func: Callable[[np.ndarray], np.ndarray],
                         x: Union[float, np.ndarray],
                         order: int = 1,
                         epsilon: Optional[Union[float, np.ndarray]] = None) -> np.ndarray:
    """
    Compute the element-wise numerical derivative of ``func`` at ``x``.

    ``func`` must be vectorised: applied to an array it returns an array of
    the same shape, each output depending only on the matching input.

    Args:
        func: Function to differentiate
        x: Point(s) at which to compute the derivative
        order: Order of the derivative (1 or 2)
        epsilon: Step size for finite difference. If None, an appropriate value
                is selected based on machine precision and input scale

    Returns:
        np.ndarray: Derivative values with the shape of ``x``

    Raises:
        ValueError: If order is not 1 or 2
        NumericError: If the function evaluation fails

    Examples:
        >>> from distcast.utils.differentiation import numerical_derivative
        >>> float(numerical_derivative(lambda x: x**3, 2.0))  # doctest: +ELLIPSIS
        12.0...
    """
    if order not in (1, 2):
        raise ValueError("Order must be 1 or 2")

    x = np.asarray(x, dtype=float)
    step = _default_step(x, order) if epsilon is None else np.asarray(epsilon, dtype=float)

    try:
        if order == 1:
            # Central difference
            f_plus = np.asarray(func(x + step), dtype=float)
            f_minus = np.asarray(func(x - step), dtype=float)
            return (f_plus - f_minus) / (2.0 * step)

        f_plus = np.asarray(func(x + step), dtype=float)
        f = np.asarray(func(x), dtype=float)
        f_minus = np.asarray(func(x - step), dtype=float)
        return (f_plus - 2.0 * f + f_minus) / (step * step)
    except (ArithmeticError, TypeError, ValueError) as e:
        raise_numeric_error(
            f"Function evaluation failed in numerical_derivative: {str(e)}",
            operation="numerical_derivative",
            error_type="function_evaluation_error"
        )
