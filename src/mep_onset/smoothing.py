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

"""Moving-average filters used by the excursion detector."""

from __future__ import annotations

import numpy as np
from scipy.signal import lfilter


def causal_moving_average(x: np.ndarray, n: int) -> np.ndarray:
    """Trailing moving average with an n-tap FIR filter.

    Output has the same length as the input. Samples before the start are
    treated as zeros, so the first ``n - 1`` outputs average over a
    zero-padded window. NaNs propagate.

    Args:
        x: 1-D input sequence (booleans are converted to float).
        n: Window length in samples (>= 1).

    Returns:
        Filtered sequence as float array.
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    b = np.ones(n) / n
    return lfilter(b, 1.0, np.asarray(x, dtype=float))


def zero_phase_moving_average(x: np.ndarray, n: int) -> np.ndarray:
    """Zero-phase moving average: causal pass, reverse, causal pass, reverse.

    The two passes cancel each other's delay, giving a triangular kernel
    centred on each sample. Near the ends the window is zero-padded rather
    than truncated.

    Args:
        x: 1-D input sequence.
        n: Window length of each pass in samples (>= 1).

    Returns:
        Smoothed sequence, same length as x.
    """
    forward = causal_moving_average(x, n)
    return causal_moving_average(forward[::-1], n)[::-1]
