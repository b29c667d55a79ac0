import numpy as np

from voice_pitch.core.smoothing import clean_track, iqr_bounds
from voice_pitch.core.types import PitchTrack

from conftest import make_track

STEP = 512 / 44100


def _steady(count, start=0.0, pitch=150.0):
    times = start + np.arange(count) * STEP
    return times, np.full(count, pitch)


def test_none_and_empty_are_absent():
    assert clean_track(None) is None
    assert clean_track(PitchTrack.empty()) is None


def test_everything_out_of_range_is_absent():
    track = make_track([0.0, STEP, 2 * STEP], [60.0, 400.0, 74.9])
    assert clean_track(track) is None


def test_range_filter_is_inclusive():
    times, _ = _steady(4)
    track = make_track(times, [75.0, 350.0, 80.0, 350.01])
    cleaned = clean_track(track)
    assert cleaned is not None
    assert set(cleaned.frequency) <= {75.0, 350.0, 80.0}
    assert 350.01 not in cleaned.frequency


def test_single_extreme_outlier_is_removed():
    times, pitches = _steady(12)
    pitches = pitches + np.linspace(-1, 1, 12)
    pitches[6] = 340.0
    cleaned = clean_track(make_track(times, pitches))
    assert cleaned is not None
    assert 340.0 not in cleaned.frequency
    assert len(cleaned) == 11


def test_iqr_bounds_use_nearest_rank():
    values = np.array([100.0, 110.0, 120.0, 130.0, 140.0, 150.0, 160.0, 170.0])
    low, high = iqr_bounds(values)
    # q1 = sorted[2] = 120, q3 = sorted[6] = 160
    assert low == 120.0 - 1.5 * 40.0
    assert high == 160.0 + 1.5 * 40.0


def test_isolated_points_dropped_when_segments_exist():
    run_times, run_pitches = _steady(5)
    times = np.concatenate([run_times, [1.0, 2.0]])
    pitches = np.concatenate([run_pitches, [150.0, 150.0]])
    cleaned = clean_track(make_track(times, pitches))
    assert cleaned is not None
    np.testing.assert_array_equal(cleaned.time, run_times)


def test_multiple_segments_concatenated_in_order():
    first_times, first = _steady(3, start=0.0)
    second_times, second = _steady(4, start=1.0, pitch=152.0)
    times = np.concatenate([first_times, [0.5], second_times])
    pitches = np.concatenate([first, [151.0], second])
    cleaned = clean_track(make_track(times, pitches))
    np.testing.assert_array_equal(cleaned.time, np.concatenate([first_times, second_times]))
    np.testing.assert_array_equal(cleaned.frequency, np.concatenate([first, second]))


def test_no_segment_keeps_all_survivors():
    track = make_track([0.0, 0.5, 1.0, 1.5], [150.0, 152.0, 151.0, 149.0])
    cleaned = clean_track(track)
    assert cleaned is not None
    assert len(cleaned) == 4


def test_gap_of_exactly_threshold_breaks_run():
    track = make_track([0.0, 0.1, 0.15, 0.2], [150.0] * 4)
    cleaned = clean_track(track)
    np.testing.assert_array_equal(cleaned.time, [0.1, 0.15, 0.2])


def test_cleaner_is_idempotent():
    rng = np.random.default_rng(5)
    times = np.append(np.arange(60) * STEP, 5.0)
    pitches = rng.uniform(150, 160, size=61)
    pitches[[10, 40]] = 330.0
    once = clean_track(make_track(times, pitches))
    twice = clean_track(once)
    assert once is not None
    np.testing.assert_array_equal(twice.time, once.time)
    np.testing.assert_array_equal(twice.frequency, once.frequency)
    np.testing.assert_array_equal(twice.confidence, once.confidence)


def test_input_track_untouched():
    times, pitches = _steady(6)
    pitches[3] = 300.0
    track = make_track(times, pitches)
    clean_track(track)
    assert track.frequency[3] == 300.0
    assert len(track) == 6
