import numbers

import numpy as np
import pandas as pd


DAYS_IN_YEAR = 366
HOURS_IN_DAY = 24


def check_random_state(random_state=None):
    """
    Turn `random_state` into a numpy Generator.

    Parameters:
        random_state (None, int, np.random.SeedSequence or np.random.Generator):
            None draws fresh entropy, an int or a SeedSequence seeds a new
            Generator, a Generator is returned untouched so that callers can
            share one stream across calls.

    Returns:
        np.random.Generator
    """
    if isinstance(random_state, np.random.Generator):
        return random_state
    if random_state is None or isinstance(
        random_state, (numbers.Integral, np.random.SeedSequence)
    ):
        return np.random.default_rng(random_state)
    raise TypeError(
        f"random_state must be None, an int, a SeedSequence or a Generator, "
        f"got {type(random_state).__name__}"
    )


def spawn_streams(rng, n_streams):
    """Independent child generators for parallel chunks, derived from `rng`."""
    seed = np.random.SeedSequence(rng.integers(0, 2**63 - 1))
    return [np.random.default_rng(child) for child in seed.spawn(n_streams)]


# circular normalisation: day-of-year lives on 1..366, hour-of-day on 0..23
def wrap_day(day):
    return (np.asarray(day) - 1) % DAYS_IN_YEAR + 1


def wrap_hour(hour):
    return np.asarray(hour) % HOURS_IN_DAY


def calendar_keys(timestamps):
    """
    Derive the (day_of_year, hour_of_day) keys of a series of datetimes.

    Parameters:
        timestamps: anything `pd.DatetimeIndex` accepts (strings, datetimes,
            a datetime64 array or Series).

    Returns:
        tuple of two int64 arrays, day-of-year in 1..366 and hour in 0..23.
    """
    index = pd.DatetimeIndex(timestamps)
    if index.hasnans:
        raise ValueError("timestamps must not contain missing values")
    return (
        np.asarray(index.dayofyear, dtype=np.int64),
        np.asarray(index.hour, dtype=np.int64),
    )
