import numpy as np
import pandas as pd
import pytest
from scipy import stats

from metsim import NeighborhoodSampler, calendar_keys, get_constrained_indices, window_cells
from metsim import neighborhood


@pytest.fixture
def observations():
    rng = np.random.default_rng(2024)
    return rng.integers(1, 367, size=300), rng.integers(0, 24, size=300)


def test_day_window_wraps_past_year_end():
    days, hours = window_cells(366, 5, 2, 0)

    np.testing.assert_array_equal(days, [364, 365, 366, 1, 2])
    np.testing.assert_array_equal(hours, [5] * 5)


def test_hour_window_wraps_past_midnight():
    days, hours = window_cells(10, 0, 0, 1)

    np.testing.assert_array_equal(days, [10, 10, 10])
    np.testing.assert_array_equal(hours, [23, 0, 1])


def test_day_offsets_outer_hour_offsets_inner():
    days, hours = window_cells(1, 0, 1, 1)

    np.testing.assert_array_equal(days, [366, 366, 366, 1, 1, 1, 2, 2, 2])
    np.testing.assert_array_equal(hours, [23, 0, 1] * 3)


def test_large_windows_stay_in_range():
    days, hours = window_cells(100, 12, 400, 30)

    assert len(days) == len(hours) == 801 * 61
    assert days.min() >= 1 and days.max() <= 366
    assert hours.min() >= 0 and hours.max() <= 23


def test_negative_window_has_no_cells():
    days, hours = window_cells(5, 5, -1, 3)

    assert len(days) == len(hours) == 0


@pytest.mark.parametrize("seed", range(20))
def test_shared_bucket_example(seed):
    result = get_constrained_indices([1, 1, 2], [5, 5, 5], 0, 0, random_state=seed)

    assert str(result.dtype) == "Int64"
    assert result[0] in {1, 2}
    assert result[1] in {1, 2}
    assert result[2] == 3


def test_every_observation_is_its_own_candidate(observations):
    sampler = NeighborhoodSampler(day_window=3, hour_window=2).fit(*observations)

    for i in range(len(observations[0])):
        assert i + 1 in sampler.candidates(i)


def test_result_is_aligned_and_never_missing(observations):
    result = get_constrained_indices(*observations, 5, 1, random_state=0)

    assert len(result) == len(observations[0])
    assert not result.isna().any()
    values = result.to_numpy(dtype="int64")
    assert values.min() >= 1 and values.max() <= len(observations[0])


def test_draws_come_from_the_neighbourhood(observations):
    sampler = NeighborhoodSampler(day_window=2, hour_window=1, random_state=5)
    result = sampler.fit_sample(*observations)

    for i in range(len(result)):
        assert result[i] in sampler.candidates(i)


def test_neighbourhood_across_year_end():
    doy = [366, 364, 365, 1, 2, 363, 3, 366]
    hod = [5, 5, 5, 5, 5, 5, 5, 6]
    sampler = NeighborhoodSampler(day_window=2, hour_window=0).fit(doy, hod)

    assert sorted(sampler.candidates(0)) == [1, 2, 3, 4, 5]


def test_neighbourhood_across_midnight():
    doy = [50, 50, 50, 50, 50]
    hod = [0, 23, 1, 22, 2]
    sampler = NeighborhoodSampler(day_window=0, hour_window=1).fit(doy, hod)

    np.testing.assert_array_equal(sampler.candidates(0), [2, 1, 3])


def test_wider_windows_never_shrink_candidates(observations):
    narrow = NeighborhoodSampler(day_window=1, hour_window=1).fit(*observations)
    wider_days = NeighborhoodSampler(day_window=4, hour_window=1).fit(*observations)
    wider_hours = NeighborhoodSampler(day_window=1, hour_window=3).fit(*observations)

    for i in range(0, len(observations[0]), 7):
        base = set(narrow.candidates(i))
        assert base <= set(wider_days.candidates(i))
        assert base <= set(wider_hours.candidates(i))
        assert len(narrow.candidates(i)) <= len(wider_days.candidates(i))
        assert len(narrow.candidates(i)) <= len(wider_hours.candidates(i))


def test_zero_window_is_exact_match(observations):
    doy, hod = observations
    sampler = NeighborhoodSampler(random_state=11)
    result = sampler.fit_sample(doy, hod)

    for i in range(len(doy)):
        bucket = sampler.grid_.bucket(doy[i], hod[i])
        np.testing.assert_array_equal(sampler.candidates(i), bucket)
        assert result[i] in bucket


def test_window_larger_than_the_year():
    sampler = NeighborhoodSampler(day_window=400, hour_window=0, random_state=1)
    result = sampler.fit_sample([200], [7])

    # the day itself is reached at offsets -366, 0 and +366
    np.testing.assert_array_equal(sampler.candidates(0), [1, 1, 1])
    assert result[0] == 1


def test_negative_window_leaves_results_missing():
    with pytest.warns(UserWarning):
        sampler = NeighborhoodSampler(day_window=-1, hour_window=0, random_state=0)
    result = sampler.fit_sample([1, 2, 3], [0, 0, 0])

    assert len(result) == 3
    assert result.isna().all()
    assert len(sampler.candidates(0)) == 0


def test_seeded_runs_are_reproducible(observations):
    a = get_constrained_indices(*observations, 7, 2, random_state=123)
    b = get_constrained_indices(*observations, 7, 2, random_state=123)

    assert a.equals(b)


def test_draw_matches_indexing_the_candidate_list(observations):
    sampler = NeighborhoodSampler(
        day_window=3, hour_window=1, random_state=np.random.default_rng(9)
    )
    result = sampler.fit_sample(*observations)

    rng = np.random.default_rng(9)
    for i in range(len(result)):
        candidates = sampler.candidates(i)
        assert result[i] == candidates[rng.integers(0, len(candidates))]


def test_draws_are_uniform_over_the_bucket():
    rng = np.random.default_rng(77)
    sampler = NeighborhoodSampler(random_state=rng).fit([10] * 5, [3] * 5)

    draws = [sampler.sample()[0] for _ in range(2000)]
    counts = np.bincount(draws, minlength=6)[1:]

    assert stats.chisquare(counts).pvalue > 0.001


def test_parallel_sampling(observations):
    a = get_constrained_indices(*observations, 2, 1, random_state=3, n_jobs=2)
    b = get_constrained_indices(*observations, 2, 1, random_state=3, n_jobs=2)

    assert a.equals(b)
    assert len(a) == len(observations[0])
    assert not a.isna().any()

    sampler = NeighborhoodSampler(day_window=2, hour_window=1).fit(*observations)
    for i in range(len(a)):
        assert a[i] in sampler.candidates(i)


def test_empty_input():
    result = get_constrained_indices([], [], 3, 3, random_state=0)

    assert len(result) == 0


def test_accepts_pandas_series():
    frame = pd.DataFrame({"doy": [1, 1, 2], "hod": [5, 5, 5]})
    result = get_constrained_indices(frame["doy"], frame["hod"], 0, 0, random_state=0)

    assert result[2] == 3


def test_verbose_prints_progress(capsys):
    NeighborhoodSampler(day_window=1, hour_window=1, verbose=True).fit([1], [0])

    out = capsys.readouterr().out
    assert "Indexed 1 observations" in out
    assert "Window of 9 cells" in out


def test_sample_before_fit():
    with pytest.raises(ValueError):
        NeighborhoodSampler().sample()


def test_candidates_out_of_range():
    sampler = NeighborhoodSampler().fit([1], [0])

    with pytest.raises(IndexError):
        sampler.candidates(1)


@pytest.mark.parametrize("window", [1.5, True, "2", None])
def test_windows_must_be_integers(window):
    with pytest.raises(TypeError):
        NeighborhoodSampler(day_window=window)


def test_mismatched_lengths_fail_before_sampling():
    with pytest.raises(ValueError):
        get_constrained_indices([1, 2, 3], [0, 0], 1, 1)


def _array_bytes(obj):
    return sum(v.nbytes for v in vars(obj).values() if isinstance(v, np.ndarray))


def test_sampler_state_does_not_grow_with_the_window():
    doy, hod = calendar_keys(pd.date_range("2020-01-01", "2020-12-31 23:00", freq="h"))
    small = NeighborhoodSampler(day_window=1, hour_window=0, random_state=0)
    large = NeighborhoodSampler(day_window=183, hour_window=12, random_state=0)

    small.fit_sample(doy, hod)
    result = large.fit_sample(doy, hod)

    assert not result.isna().any()
    assert _array_bytes(large) == _array_bytes(small)
    assert _array_bytes(large.grid_) == _array_bytes(small.grid_)
    assert _array_bytes(large) + _array_bytes(large.grid_) < 1_000_000


def test_window_counts_are_candidate_list_sizes(observations):
    sampler = NeighborhoodSampler(day_window=400, hour_window=13).fit(*observations)

    for i in range(0, len(observations[0]), 29):
        key = observations[0][i] * 24 + observations[1][i]
        assert sampler.window_counts_[key] == len(sampler.candidates(i))


def test_parallel_results_do_not_depend_on_worker_count(monkeypatch, observations):
    monkeypatch.setattr(neighborhood, "CHUNK_SIZE", 64)

    one = get_constrained_indices(*observations, 3, 1, random_state=21, n_jobs=1)
    two = get_constrained_indices(*observations, 3, 1, random_state=21, n_jobs=2)

    assert one.equals(two)
    sampler = NeighborhoodSampler(day_window=3, hour_window=1).fit(*observations)
    for i in range(0, len(one), 11):
        assert one[i] in sampler.candidates(i)


def test_verbose_parallel_run_reports_chunks(monkeypatch, capsys, observations):
    monkeypatch.setattr(neighborhood, "CHUNK_SIZE", 100)

    result = get_constrained_indices(*observations, 1, 1, random_state=0, n_jobs=2, verbose=True)

    assert len(result) == len(observations[0])
    assert "Sampling in 3 chunks" in capsys.readouterr().out
