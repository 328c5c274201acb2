from __future__ import annotations

import statistics

import pytest

from annealctl.control.stability import MIN_STABILITY_SAMPLES, is_stable


def test_too_few_samples_is_not_stable():
    """Below ten samples the detector never certifies, even for flat data."""
    assert MIN_STABILITY_SAMPLES == 10
    for n in range(0, 10):
        assert is_stable([50.0] * n, 0.06) is False


def test_flat_window_is_stable():
    assert is_stable([50.0] * 10, 0.06) is True


def test_noisy_window_is_not_stable():
    samples = [50.0, 50.2] * 10
    assert is_stable(samples, 0.06) is False


def test_stdev_equal_to_threshold_is_not_stable():
    """The comparison is strict: stdev must be below the threshold."""
    samples = [0.0, 1.0] * 5
    threshold = statistics.stdev(samples)
    assert is_stable(samples, threshold) is False
    assert is_stable(samples, threshold + 1e-9) is True


def test_small_oscillation_within_threshold():
    samples = [50.0 + (0.02 if i % 2 else -0.02) for i in range(60)]
    assert is_stable(samples, 0.06) is True


@pytest.mark.parametrize("min_samples", [3, 20])
def test_custom_min_samples(min_samples):
    flat = [50.0] * min_samples
    assert is_stable(flat, 0.06, min_samples=min_samples) is True
    assert is_stable(flat[:-1], 0.06, min_samples=min_samples) is False
