import numpy as np
import pandas as pd
from metsim import NeighborhoodSampler, calendar_keys, get_constrained_indices

# Example 1: Resample an hourly temperature series
print("=== Example 1: Hourly temperature resampling ===")
rng = np.random.default_rng(42)

# Two years of synthetic hourly temperatures with a seasonal and a daily cycle
times = pd.date_range("2019-01-01", "2020-12-31 23:00", freq="h")
doy, hod = calendar_keys(times)
temperature = (
    10
    - 8 * np.cos(2 * np.pi * doy / 366)
    - 4 * np.cos(2 * np.pi * hod / 24)
    + rng.normal(0, 2, len(times))
)

# every hour is replaced by an observation within 15 days and 1 hour of it
idx = get_constrained_indices(doy, hod, day_window=15, hour_window=1, random_state=42)
resampled = temperature[idx.to_numpy(dtype="int64") - 1]

print(f"Observations: {len(times)}")
print(f"Original mean / std:  {temperature.mean():.3f} / {temperature.std():.3f}")
print(f"Resampled mean / std: {resampled.mean():.3f} / {resampled.std():.3f}")

monthly = pd.DataFrame(
    {"original": temperature, "resampled": resampled}, index=times
).groupby(times.month).mean()
print("\nMonthly means:")
print(monthly.round(2))

# Example 2: Candidate lists
print("\n=== Example 2: Candidate lists ===")
sampler = NeighborhoodSampler(day_window=2, hour_window=0, random_state=0)
sampler.fit([366, 364, 365, 1, 2, 3], [5, 5, 5, 5, 5, 5])
print(f"Candidates of day 366: {sampler.candidates(0)}")
print(f"Draws: {list(sampler.sample())}")

# Example 3: Parallel sampling
print("\n=== Example 3: Parallel sampling ===")
idx_parallel = get_constrained_indices(
    doy, hod, day_window=15, hour_window=1, random_state=42, n_jobs=2, verbose=True
)
print(f"Missing draws: {int(idx_parallel.isna().sum())}")
