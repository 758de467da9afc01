"""
Date and time index utilities.

This module infers the sampling interval of a time index, parses duration
expressions such as ``"2 years 6 months"`` into pandas offsets, and builds
future index values that continue an observed series. It supports datetime
indices (regular pandas frequencies or a constant ``Timedelta`` step), period
indices, and plain numeric indices with a constant step.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple, Union

import numpy as np
import pandas as pd
from pandas.tseries.frequencies import to_offset

logger = logging.getLogger("distcast.utils.date_utils")

# Units accepted in duration expressions, mapped to pandas.DateOffset keywords
_DURATION_UNITS = {
    "year": ("years", 1),
    "yr": ("years", 1),
    "quarter": ("months", 3),
    "month": ("months", 1),
    "week": ("weeks", 1),
    "day": ("days", 1),
    "hour": ("hours", 1),
    "minute": ("minutes", 1),
    "min": ("minutes", 1),
    "second": ("seconds", 1),
    "sec": ("seconds", 1),
}

_DURATION_TERM = re.compile(r"\s*(\d+)\s*([a-z]+)\s*(?:,|and\b)?", re.IGNORECASE)

# Upper bound on steps walked when counting periods within a duration
_MAX_PERIODS = 1_000_000


def parse_duration(text: str) -> pd.DateOffset:
    """Parse a duration expression into a calendar offset.

    Args:
        text: Expression made of ``<integer> <unit>`` terms, e.g. ``"3 years"``
              or ``"2 years 6 months"``. Units may be singular or plural.

    Returns:
        pd.DateOffset: The equivalent calendar offset

    Raises:
        ValueError: If the expression cannot be parsed

    Examples:
        >>> parse_duration("2 years 6 months")
        <DateOffset: months=6, years=2>
    """
    if not isinstance(text, str) or not text.strip():
        raise ValueError("Duration must be a non-empty string")

    kwargs = {}
    position = 0
    remaining = text.strip()
    for match in _DURATION_TERM.finditer(remaining):
        if match.start() != position:
            break
        position = match.end()
        unit = match.group(2).lower()
        if unit not in _DURATION_UNITS and unit.endswith("s"):
            unit = unit[:-1]
        if unit not in _DURATION_UNITS:
            raise ValueError(f"Unknown duration unit '{match.group(2)}' in '{text}'")
        keyword, multiplier = _DURATION_UNITS[unit]
        kwargs[keyword] = kwargs.get(keyword, 0) + int(match.group(1)) * multiplier

    if position != len(remaining) or not kwargs:
        raise ValueError(f"Unable to parse duration '{text}'")

    return pd.DateOffset(**kwargs)


@dataclass(frozen=True)
class TimeInterval:
    """Sampling interval of a time index.

    Attributes:
        kind: One of ``"datetime"``, ``"period"`` or ``"numeric"``
        step: Offset (datetime with a regular frequency), ``Timedelta``
              (datetime without a named frequency), period frequency or
              numeric step
    """

    kind: str
    step: Any

    def __str__(self) -> str:
        if self.kind == "datetime" and isinstance(self.step, pd.DateOffset):
            return self.step.freqstr
        if self.kind == "period":
            return str(self.step)
        return str(self.step)

    def future(self, last: Any, n: int) -> pd.Index:
        """Return the ``n`` index values following ``last``.

        Args:
            last: Last observed index value
            n: Number of future values

        Returns:
            pd.Index: Future index values, one interval apart
        """
        steps = range(1, n + 1)
        if self.kind == "datetime":
            values = [pd.Timestamp(last) + self.step * k for k in steps]
            if not values:
                return pd.DatetimeIndex([], tz=getattr(pd.Timestamp(last), "tz", None))
            return pd.DatetimeIndex(values)
        if self.kind == "period":
            return pd.PeriodIndex([last + k for k in steps], freq=self.step)
        return pd.Index(last + self.step * np.arange(1, n + 1))

    def periods_within(self, last: Any, duration: pd.DateOffset) -> Tuple[int, bool]:
        """Count whole intervals after ``last`` that fit within ``duration``.

        Args:
            last: Last observed index value
            duration: Calendar offset measured from ``last``

        Returns:
            Tuple[int, bool]: Number of periods, and whether the duration is
            an exact multiple of the interval

        Raises:
            ValueError: If the index is not temporal
        """
        if self.kind == "numeric":
            raise ValueError("Durations cannot be resolved against a numeric index")

        if self.kind == "period":
            start = last.to_timestamp(how="start")
            position = lambda k: (last + k).to_timestamp(how="start")
        else:
            start = pd.Timestamp(last)
            position = lambda k: start + self.step * k

        end = start + duration
        if isinstance(self.step, pd.Timedelta):
            ratio = (end - start) / self.step
            n = int(np.floor(ratio))
            return n, bool(np.isclose(ratio, n))

        n = 0
        while n < _MAX_PERIODS and position(n + 1) <= end:
            n += 1
        return n, position(n) == end


def infer_interval(values: Union[pd.Series, pd.Index, np.ndarray]) -> TimeInterval:
    """Infer the sampling interval of an observed time index.

    Args:
        values: Observed index values, in time order

    Returns:
        TimeInterval: The inferred interval

    Raises:
        ValueError: If fewer than two observations are available or the
            index is irregular
    """
    values = pd.Index(values)

    if isinstance(values, pd.PeriodIndex):
        return TimeInterval("period", values.freq)

    if len(values) < 2:
        raise ValueError("At least two observations are required to infer the interval")

    values = values.sort_values()

    if isinstance(values, pd.DatetimeIndex):
        freq = pd.infer_freq(values) if len(values) >= 3 else None
        if freq is not None:
            return TimeInterval("datetime", to_offset(freq))
        diffs = values[1:] - values[:-1]
        if len(set(diffs)) != 1:
            raise ValueError("Unable to infer a regular interval from an irregular datetime index")
        return TimeInterval("datetime", pd.Timedelta(diffs[0]))

    if not pd.api.types.is_numeric_dtype(values.dtype):
        raise ValueError(f"Unsupported index type: {values.dtype}")

    diffs = np.diff(values.to_numpy())
    if not np.allclose(diffs, diffs[0]) or diffs[0] == 0:
        raise ValueError("Unable to infer a regular interval from an irregular numeric index")
    step = diffs[0]
    if pd.api.types.is_integer_dtype(values.dtype):
        step = int(step)
    return TimeInterval("numeric", step)


def last_index_value(values: Union[pd.Series, pd.Index]) -> Any:
    """Return the latest value of an index column."""
    return pd.Index(values).max()
