"""
Utility functions for distcast: time index handling and numerical
differentiation.
"""

from .date_utils import TimeInterval, infer_interval, parse_duration, last_index_value
from .differentiation import numerical_derivative

__all__ = [
    'TimeInterval', 'infer_interval', 'parse_duration', 'last_index_value',
    'numerical_derivative',
]
