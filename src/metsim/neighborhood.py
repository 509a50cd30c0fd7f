"""
Calendar-neighbourhood resampling of observations.

For every observation, all observations within `day_window` days and
`hour_window` hours of it (both axes circular) form its candidate list, and
one candidate is drawn uniformly at random. Swapping each observation for
its draw gives a stochastic resample that keeps the seasonal and diurnal
cycle of a weather series.
"""

import numbers
import warnings

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from .grid import BucketGrid, cell_id, validate_observations
from .helpers import (
    HOURS_IN_DAY,
    check_random_state,
    spawn_streams,
    wrap_day,
    wrap_hour,
)


# observations per parallel task, fixed so results do not depend on the host
CHUNK_SIZE = 4096


def window_cells(day, hour, day_window, hour_window):
    """
    Grid cells around (day, hour), in traversal order.

    Day offsets run from -day_window to +day_window in the outer loop, hour
    offsets from -hour_window to +hour_window in the inner loop. Coordinates
    are wrapped onto 1..366 and 0..23, whatever the window size, so a window
    wider than an axis visits some cells more than once. A negative window
    gives no cells at all.

    Returns:
        tuple of two int arrays (days, hours), each of length
        (2 * day_window + 1) * (2 * hour_window + 1).
    """
    day_offsets = np.arange(-day_window, day_window + 1)
    hour_offsets = np.arange(-hour_window, hour_window + 1)
    days = np.repeat(wrap_day(day + day_offsets), len(hour_offsets))
    hours = np.tile(wrap_hour(hour + hour_offsets), len(day_offsets))
    return days, hours


def _check_window(window, name):
    if isinstance(window, bool) or not isinstance(window, numbers.Integral):
        raise TypeError(f"{name} must be an integer, got {window!r}")
    if window < 0:
        warnings.warn(
            f"{name}={window} is negative: the window is empty and every "
            "observation will be left without a candidate"
        )
    return int(window)


class NeighborhoodSampler:
    """
    Draws, for each observation, a random neighbour in the calendar.

    Parameters
    ----------
    day_window : int, default=0
        Number of days considered on either side of an observation's day of
        year (circular over 366 days).
    hour_window : int, default=0
        Number of hours considered on either side of an observation's hour
        of day (circular over 24 hours).
    random_state : None, int, SeedSequence or Generator, optional
        Source of the uniform draws. An int gives reproducible samples; a
        Generator is consumed in place.
    n_jobs : int, optional
        If set, observations are split into chunks of `CHUNK_SIZE` that
        are sampled in parallel with joblib, each chunk with its own child
        random stream. Results depend on the seed only, not on `n_jobs` or
        on the host, but differ from a serial run with the same seed.
    verbose : bool, default=False
        Whether to print progress.

    Attributes
    ----------
    grid_ : BucketGrid
        Observations filed by (day, hour).
    day_of_year_ : ndarray
        Validated days of year.
    hour_of_day_ : ndarray
        Validated hours of day.
    cell_counts_ : ndarray
        Bucket size of every flat grid cell.
    window_counts_ : ndarray
        Candidate-list size of every flat grid cell.
    is_fitted_ : bool
        Whether `fit` has been called.

    Notes
    -----
    An observation always lies in its own window, so with non-negative
    windows every candidate list is non-empty. A list can only be empty
    with a negative window, in which case the result is missing (`pd.NA`)
    and no random number is consumed.

    Examples
    --------
    >>> sampler = NeighborhoodSampler(day_window=0, hour_window=0, random_state=42)
    >>> int(sampler.fit_sample([1, 1, 2], [5, 5, 5])[2])
    3
    """

    def __init__(
        self,
        day_window=0,
        hour_window=0,
        random_state=None,
        n_jobs=None,
        verbose=False,
    ):
        self.day_window = _check_window(day_window, "day_window")
        self.hour_window = _check_window(hour_window, "hour_window")
        if n_jobs is not None and not isinstance(n_jobs, numbers.Integral):
            raise TypeError(f"n_jobs must be None or an integer, got {n_jobs!r}")
        self.random_state = random_state
        self.n_jobs = n_jobs
        self.verbose = verbose

        self.grid_ = None
        self.day_of_year_ = None
        self.hour_of_day_ = None
        self.is_fitted_ = False
        self.cell_counts_ = None
        self.window_counts_ = None

    def fit(self, day_of_year, hour_of_day):
        self.day_of_year_, self.hour_of_day_ = validate_observations(
            day_of_year, hour_of_day
        )
        self.grid_ = BucketGrid.build(self.day_of_year_, self.hour_of_day_)
        self.cell_counts_ = self.grid_.cell_counts
        self.window_counts_ = self.grid_.window_counts(self.day_window, self.hour_window)
        self.is_fitted_ = True
        if self.verbose:
            n_cells = max(2 * self.day_window + 1, 0) * max(2 * self.hour_window + 1, 0)
            print(f"Indexed {len(self.grid_)} observations")
            print(f"Window of {n_cells} cells per observation")
        return self

    def _check_fitted(self):
        if not self.is_fitted_:
            raise ValueError("Sampler must be fitted before sampling. Call fit() first.")

    def _neighborhood(self, key):
        # built on demand and never kept: its size grows with the window
        day, hour = divmod(int(key), HOURS_IN_DAY)
        days, hours = window_cells(day, hour, self.day_window, self.hour_window)
        cells = cell_id(days, hours)
        return cells, np.cumsum(self.cell_counts_[cells])

    def candidates(self, i):
        """1-based indices of the candidates of observation `i` (0-based)."""
        self._check_fitted()
        if not 0 <= i < len(self.grid_):
            raise IndexError(f"observation {i} out of range for {len(self.grid_)} observations")
        cells, _ = self._neighborhood(cell_id(self.day_of_year_[i], self.hour_of_day_[i]))
        order, offsets = self.grid_.order, self.grid_.offsets
        if len(cells) == 0:
            return np.zeros(0, dtype=np.int64)
        return np.concatenate([order[offsets[c]:offsets[c + 1]] for c in cells]) + 1

    def _sample_chunk(self, indices, rng, progress=False):
        """
        Draw for the observations at `indices`.

        Positions are drawn in input order, one `rng.integers(0, k)` per
        observation with `k > 0` candidates, so the result equals
        `candidates(i)[r]`. Positions are then resolved cell by cell through
        the cumulative bucket sizes of the window, without building the
        candidate lists.
        """
        values = np.zeros(len(indices), dtype=np.int64)
        if len(indices) == 0:
            return values
        keys = cell_id(self.day_of_year_[indices], self.hour_of_day_[indices])
        sizes = self.window_counts_[keys]
        draws = np.zeros(len(indices), dtype=np.int64)
        for pos, k in enumerate(sizes):
            if k > 0:
                draws[pos] = rng.integers(0, k)

        by_cell = np.argsort(keys, kind="stable")
        groups = np.split(by_cell, np.flatnonzero(np.diff(keys[by_cell])) + 1)
        if progress:
            groups = tqdm(groups)
        order, offsets = self.grid_.order, self.grid_.offsets
        for positions in groups:
            if sizes[positions[0]] == 0:
                continue
            cells, cumulative = self._neighborhood(keys[positions[0]])
            r = draws[positions]
            j = np.searchsorted(cumulative, r, side="right")
            start = cumulative[j] - self.cell_counts_[cells[j]]
            values[positions] = order[offsets[cells[j]] + r - start] + 1
        return values

    def sample(self):
        """
        Draw one candidate per observation.

        Returns
        -------
        pandas.arrays.IntegerArray
            1-based indices aligned with the input, `pd.NA` where an
            observation had no candidate.
        """
        self._check_fitted()
        n_obs = len(self.grid_)
        rng = check_random_state(self.random_state)

        if self.n_jobs is None or n_obs == 0:
            if self.verbose is True:
                print("Sampling...")
            values = self._sample_chunk(np.arange(n_obs), rng, progress=self.verbose is True)

        else:  # parallel execution
            n_chunks = -(-n_obs // CHUNK_SIZE)
            chunks = np.array_split(np.arange(n_obs), n_chunks)
            streams = spawn_streams(rng, n_chunks)
            results = Parallel(n_jobs=self.n_jobs, return_as="generator")(
                delayed(self._sample_chunk)(chunk, stream)
                for chunk, stream in zip(chunks, streams)
            )
            if self.verbose is True:
                print(f"Sampling in {n_chunks} chunks...")
                results = tqdm(results, total=n_chunks)
            values = np.concatenate(list(results))

        return pd.arrays.IntegerArray(values, values == 0)

    def fit_sample(self, day_of_year, hour_of_day):
        return self.fit(day_of_year, hour_of_day).sample()


def get_constrained_indices(
    day_of_year,
    hour_of_day,
    day_window,
    hour_window,
    random_state=None,
    n_jobs=None,
    verbose=False,
):
    """
    For each observation, the 1-based index of a random calendar neighbour.

    Parameters:
        day_of_year (array-like of int): day of year of each observation, 1..366.
        hour_of_day (array-like of int): hour of day of each observation, 0..23.
        day_window (int): days considered on either side, circular over 366.
        hour_window (int): hours considered on either side, circular over 24.
        random_state: None, int, SeedSequence or numpy Generator.
        n_jobs (int): number of joblib workers, None for a serial run. Parallel
            results are reproducible for a seed whatever the number of workers.
        verbose (bool): whether to print progress.

    Returns:
        pandas.arrays.IntegerArray of length n, `pd.NA` where no candidate
        was found.
    """
    sampler = NeighborhoodSampler(
        day_window=day_window,
        hour_window=hour_window,
        random_state=random_state,
        n_jobs=n_jobs,
        verbose=verbose,
    )
    return sampler.fit_sample(day_of_year, hour_of_day)
