"""
Bucket grid over the (day-of-year, hour-of-day) calendar.

Every observation is filed under its exact (day, hour) cell so that the
neighbourhood of any observation can be read off cell by cell. The grid is
dense: days 0..366 (row 0 is allocated but always empty, which keeps
day-of-year usable as a row index) times hours 0..23.
"""

import numpy as np

from .helpers import DAYS_IN_YEAR, HOURS_IN_DAY


N_CELLS = (DAYS_IN_YEAR + 1) * HOURS_IN_DAY


def _as_int_array(x, name):
    x = np.asarray(x)
    if x.ndim != 1:
        raise ValueError(f"{name} must be one-dimensional, got shape {x.shape}")
    if x.dtype == bool or x.dtype.kind not in ["i", "u", "f"]:
        raise TypeError(f"{name} must hold integers, got dtype {x.dtype}")
    if x.dtype.kind == "f":
        if not np.all(np.isfinite(x)):
            raise ValueError(f"{name} must not contain NaN or infinite values")
        if not np.all(x == np.floor(x)):
            raise ValueError(f"{name} must hold whole numbers")
    return x.astype(np.int64)


def validate_observations(day_of_year, hour_of_day):
    """
    Check and coerce the two calendar keys of a set of observations.

    Parameters
    ----------
    day_of_year : array-like of int
        Day of year of each observation, in 1..366.
    hour_of_day : array-like of int
        Hour of day of each observation, in 0..23.

    Returns
    -------
    tuple of ndarray
        Both keys as 1-D int64 arrays.

    Raises
    ------
    ValueError
        On mismatched lengths, non-integral values or values out of range.
    TypeError
        On non-numeric input.
    """
    doy = _as_int_array(day_of_year, "day_of_year")
    hod = _as_int_array(hour_of_day, "hour_of_day")

    if len(doy) != len(hod):
        raise ValueError(
            f"day_of_year and hour_of_day must have the same length, "
            f"got {len(doy)} and {len(hod)}"
        )
    if len(doy) > 0:
        if doy.min() < 1 or doy.max() > DAYS_IN_YEAR:
            raise ValueError(
                f"day_of_year values must lie in [1, {DAYS_IN_YEAR}], "
                f"got range [{doy.min()}, {doy.max()}]"
            )
        if hod.min() < 0 or hod.max() > HOURS_IN_DAY - 1:
            raise ValueError(
                f"hour_of_day values must lie in [0, {HOURS_IN_DAY - 1}], "
                f"got range [{hod.min()}, {hod.max()}]"
            )
    return doy, hod


def cell_id(day, hour):
    """Flat position of (day, hour) in the dense grid."""
    return np.asarray(day) * HOURS_IN_DAY + np.asarray(hour)


def _axis_weights(window, size):
    # how often the offsets -window..window land on each circular shift
    return np.bincount(np.arange(-window, window + 1) % size, minlength=size)


class BucketGrid:
    """
    Dense (day, hour) grid of observation buckets.

    Buckets are stored CSR style: `order` lists the 0-based observation
    positions sorted by cell (a stable sort, so input order survives within a
    cell) and `offsets[c]:offsets[c + 1]` is the slice of `order` belonging
    to flat cell `c`. Indices handed out by `bucket` are 1-based.

    Parameters
    ----------
    order : ndarray
        Observation positions grouped by cell.
    offsets : ndarray
        Start of each cell in `order`, length `N_CELLS + 1`.

    Examples
    --------
    >>> grid = BucketGrid.build([1, 1, 2], [5, 5, 5])
    >>> grid.bucket(1, 5)
    array([1, 2])
    """

    def __init__(self, order, offsets):
        self.order = order
        self.offsets = offsets

    @classmethod
    def build(cls, day_of_year, hour_of_day):
        doy, hod = validate_observations(day_of_year, hour_of_day)
        cells = cell_id(doy, hod)
        order = np.argsort(cells, kind="stable")
        offsets = np.zeros(N_CELLS + 1, dtype=np.int64)
        np.cumsum(np.bincount(cells, minlength=N_CELLS), out=offsets[1:])
        return cls(order, offsets)

    def __len__(self):
        return len(self.order)

    @property
    def cell_counts(self):
        """Flat per-cell bucket sizes."""
        return np.diff(self.offsets)

    @property
    def counts(self):
        """Bucket sizes as a (367, 24) table."""
        return self.cell_counts.reshape(DAYS_IN_YEAR + 1, HOURS_IN_DAY)

    def window_counts(self, day_window, hour_window):
        """
        Number of candidates in the window around every cell.

        Shifted copies of the count table are summed, one per distinct
        circular offset and weighted by how many offsets land on it. A
        window wider than an axis therefore counts buckets more than once,
        exactly like walking the offsets one by one.

        Returns
        -------
        ndarray
            Flat per-cell totals, length `N_CELLS`; day row 0 stays zero.
        """
        table = self.counts[1:]
        by_hour = np.zeros_like(table)
        for shift, weight in enumerate(_axis_weights(hour_window, HOURS_IN_DAY)):
            if weight:
                by_hour += weight * np.roll(table, -shift, axis=1)
        totals = np.zeros((DAYS_IN_YEAR + 1, HOURS_IN_DAY), dtype=np.int64)
        for shift, weight in enumerate(_axis_weights(day_window, DAYS_IN_YEAR)):
            if weight:
                totals[1:] += weight * np.roll(by_hour, -shift, axis=0)
        return totals.ravel()

    def bucket(self, day, hour):
        """1-based indices of the observations filed under (day, hour)."""
        if not (0 <= day <= DAYS_IN_YEAR and 0 <= hour < HOURS_IN_DAY):
            raise ValueError(f"cell ({day}, {hour}) lies outside the grid")
        c = int(cell_id(day, hour))
        return self.order[self.offsets[c]:self.offsets[c + 1]] + 1
