from __future__ import annotations

import statistics
from collections.abc import Sequence

# Fewer samples than this cannot certify stability
MIN_STABILITY_SAMPLES = 10


def is_stable(
    samples: Sequence[float],
    stdev_threshold: float,
    min_samples: int = MIN_STABILITY_SAMPLES,
) -> bool:
    """
    Decide whether a window of temperatures has settled.

    Returns False while the window is too short to judge. Otherwise the
    window is stable iff its sample standard deviation is strictly below
    the threshold.

    Args:
        samples: Temperatures collected over the observation window (°C)
        stdev_threshold: Maximum allowed sample standard deviation (°C)
        min_samples: Minimum window length before judging

    Returns:
        True if the window is stable
    """
    if len(samples) < max(min_samples, 2):
        return False
    return statistics.stdev(samples) < stdev_threshold
