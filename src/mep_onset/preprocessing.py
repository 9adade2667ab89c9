#  Copyright (C) 2026 by Tobias Hoffmann
#  thoffmann-ml@proton.me
#  https://github.com/thfmn/xjtu-sy-bearing
#
#  This work is licensed under the MIT License. You are free to use, copy, modify, merge, publish, distribute, sublicense, and/or sell copies of the Software,
#  and to permit persons to whom the Software is furnished to do so, subject to the condition that the above copyright notice and this permission notice shall be included in all
#  copies or substantial portions of the Software.
#
#  For more information, visit: https://opensource.org/licenses/MIT
#
#  Author:    Tobias Hoffmann
#  Email:     thoffmann-ml@proton.me
#  License:   MIT
#  Date:      2025-2026
#  Package:   mep-onset MEP onset latency detection

"""Blanking and baseline noise estimation.

The detector works on a blanked copy of the waveform (samples before the
earliest allowed onset set to zero) and scales its threshold by the noise
level of the pre-stimulus baseline of the *original* waveform.
"""

from __future__ import annotations

import math

import numpy as np


def samples_for_duration(duration_s: float, sampling_rate_hz: float) -> int:
    """Convert a duration to a whole number of samples (at least 1).

    Rounds half away from zero, so 2.5 samples become 3.

    Args:
        duration_s: Duration in seconds.
        sampling_rate_hz: Sampling rate in Hz.

    Returns:
        Number of samples, never less than 1.
    """
    n = duration_s * sampling_rate_hz
    return max(1, int(math.floor(abs(n) + 0.5)))


def blank_before(
    signal: np.ndarray,
    time_s: np.ndarray,
    t_min: float,
) -> np.ndarray:
    """Zero every sample earlier than ``t_min``.

    Args:
        signal: Waveform samples.
        time_s: Time of each sample in seconds (same length as signal).
        t_min: Earliest allowed onset time in seconds.

    Returns:
        New float array; the input is left untouched.
    """
    blanked = np.array(signal, dtype=float, copy=True)
    blanked[np.asarray(time_s) < t_min] = 0.0
    return blanked


def first_nonzero_index(signal: np.ndarray) -> int | None:
    """Index of the first non-zero sample, or None for an all-zero record.

    NaN counts as non-zero.
    """
    nonzero = np.flatnonzero(signal)
    if nonzero.size == 0:
        return None
    return int(nonzero[0])


def baseline_noise_scale(
    signal: np.ndarray,
    time_s: np.ndarray,
    baseline_limit_s: float,
) -> tuple[float, int]:
    """Standard deviation of the rectified baseline, ignoring NaNs.

    The baseline window is every sample with ``time_s < baseline_limit_s``.
    Uses the sample standard deviation (N - 1 denominator).

    Args:
        signal: Unblanked waveform.
        time_s: Time of each sample in seconds.
        baseline_limit_s: Upper bound of the baseline window in seconds.

    Returns:
        Tuple of (sd, n_samples). sd is NaN when the window holds no valid
        samples and 0.0 when it holds exactly one.
    """
    window = np.abs(np.asarray(signal, dtype=float)[np.asarray(time_s) < baseline_limit_s])
    valid = window[~np.isnan(window)]

    if valid.size == 0:
        return math.nan, 0
    if valid.size == 1:
        return 0.0, 1
    return float(np.std(valid, ddof=1)), int(valid.size)
