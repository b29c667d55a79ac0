import numpy as np
import pytest

from voice_pitch.core.pitch_engine import TrackEstimator, accept_estimate, estimate_track
from voice_pitch.core.pitch_pipeline import FileOutcome
from voice_pitch.core.types import AnalysisRequest
from voice_pitch.core.utils import HOP_SIZE


def _run(request, batch_hops):
    events = []
    track = estimate_track(request, emit=events.append, batch_hops=batch_hops)
    return track, events


@pytest.mark.parametrize(
    "frequency, confidence, accepted",
    [
        (150.0, 0.9, True),
        (75.0, 0.61, True),
        (350.0, 0.99, True),
        (150.0, 0.6, False),
        (74.9, 0.9, False),
        (351.0, 0.9, False),
    ],
)
def test_acceptance_gate(frequency, confidence, accepted):
    assert accept_estimate(frequency, confidence) is accepted


def test_150hz_sine_scenario(sine_request):
    request = sine_request(frequency=150.0)
    track, events = _run(request, batch_hops=200)
    assert len(track) >= 1
    assert np.all((track.frequency >= 147) & (track.frequency <= 153))
    assert np.all(track.confidence > 0.6)
    assert np.all(np.diff(track.time) >= 0)
    np.testing.assert_allclose(np.diff(track.time), HOP_SIZE / 44100)

    stats = FileOutcome(file_slot=1, status="completed", track=track).statistics()
    assert stats is not None
    assert abs(stats.median - 150) <= 1
    assert 147 <= stats.min <= stats.max <= 153
    assert stats.speaking_range_high - stats.speaking_range_low <= 10


def test_stereo_is_downmixed(sine_request):
    mono_track, _ = _run(sine_request(channels=1), batch_hops=200)
    stereo_track, _ = _run(sine_request(channels=2), batch_hops=200)
    np.testing.assert_array_equal(mono_track.frequency, stereo_track.frequency)


def test_silence_scenario(silence_request):
    track, events = _run(silence_request, batch_hops=200)
    assert track.is_empty
    outcome = FileOutcome(file_slot=2, status="completed", track=track)
    assert outcome.cleaned() is None
    assert outcome.statistics() is None
    assert outcome.is_empty
    assert events[-1].percent == 100.0


def test_gate_holds_for_noisy_input():
    rng = np.random.default_rng(1)
    noisy = rng.standard_normal(44100).astype(np.float32) * 0.2
    noisy += np.sin(2 * np.pi * 200 * np.arange(44100) / 44100).astype(np.float32) * 0.1
    track, _ = _run(AnalysisRequest(file_slot=1, channels=noisy, sample_rate=44100), batch_hops=50)
    assert np.all((track.frequency >= 75) & (track.frequency <= 350))
    assert np.all(track.confidence > 0.6)


def test_progress_for_zero_frames():
    request = AnalysisRequest(file_slot=1, channels=np.zeros(1000, dtype=np.float32), sample_rate=44100)
    track, events = _run(request, batch_hops=200)
    assert track.is_empty
    assert [event.percent for event in events] == [0.0, 100.0]
    assert all(event.file_slot == 1 for event in events)


def test_progress_is_monotonic_and_bounded(sine_request):
    request = sine_request(duration=3.0, file_slot=2)
    _, events = _run(request, batch_hops=37)
    percents = [event.percent for event in events]
    assert percents[0] == 0.0
    assert percents[-1] == 100.0
    assert all(later >= earlier for earlier, later in zip(percents, percents[1:]))
    # 254 frames, one event every 2nd frame, plus the last frame and both terminal events
    assert len(percents) == 127 + 1 + 2
    assert all(event.file_slot == 2 for event in events)


def test_batch_size_does_not_change_result(sine_request):
    request = sine_request(frequency=210.0, duration=2.0)
    small_track, small_events = _run(request, batch_hops=1)
    large_track, large_events = _run(request, batch_hops=10_000)
    np.testing.assert_array_equal(small_track.time, large_track.time)
    np.testing.assert_array_equal(small_track.frequency, large_track.frequency)
    np.testing.assert_array_equal(small_track.confidence, large_track.confidence)
    assert small_events == large_events


def test_estimator_refuses_to_finish_early(sine_request):
    estimator = TrackEstimator(sine_request())
    estimator.advance(3)
    assert estimator.position == 3
    with pytest.raises(RuntimeError):
        estimator.finish()


def test_cap_limits_frames():
    sr = 8000
    request = AnalysisRequest(file_slot=1, channels=np.zeros(65 * sr, dtype=np.float32), sample_rate=sr)
    estimator = TrackEstimator(request)
    assert estimator.total == (60 * sr - 2048) // 512
