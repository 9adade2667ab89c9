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

"""Stable-excursion onset detection for motor evoked potentials.

The detector locates the earliest sample where the rectified waveform
crosses a noise-scaled threshold and then stays above it for a minimum
persistence window. The crossing is refined in two steps:

- Traceback: walk back on a zero-phase smoothed envelope to the local
  minimum that starts the rising deflection.
- Wiggle skip: advance past leading deflections that are small compared
  to the global peak, up to a bounded number of times.

Every stage returns ``int | None``; None means "no onset" and is passed
through without arithmetic on it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from src.mep_onset.smoothing import causal_moving_average, zero_phase_moving_average


@dataclass
class ExcursionResult:
    """Intermediate indices of one excursion detection.

    Attributes:
        candidate_idx: First threshold crossing that leads into a stable
            excursion. None if no crossing persists.
        traceback_idx: Start of the rising deflection found by traceback.
            None if traceback failed (or no candidate).
        onset_idx: Final onset after wiggle skipping and the end-of-record
            guard. None on any failure.
        n_wiggle_skips: Number of wiggle skips applied.
        too_close_to_end: True if a refined onset was dropped because too
            few samples follow it.
    """

    candidate_idx: int | None = None
    traceback_idx: int | None = None
    onset_idx: int | None = None
    n_wiggle_skips: int = 0
    too_close_to_end: bool = False


def find_persistent_crossing(
    above: np.ndarray,
    n_stable: int,
    stable_tolerance: float = 1e-9,
) -> int | None:
    """First threshold crossing that runs into a stable excursion.

    A stable index is one where the trailing ``n_stable``-sample mean of
    the above-threshold mask is 1. A crossing is accepted when the next
    stable index after it is reached without the trailing mean dropping
    to zero, i.e. without a full window of sub-threshold samples in between.

    Args:
        above: Boolean mask of samples above threshold.
        n_stable: Persistence window in samples.
        stable_tolerance: Tolerance on "mean equals 1".

    Returns:
        Index of the accepted crossing, or None.
    """
    lasting = causal_moving_average(above, n_stable)
    stable_idx = np.flatnonzero(lasting > 1.0 - stable_tolerance)
    if stable_idx.size == 0:
        return None

    positive = lasting > 0
    for cand in np.flatnonzero(above):
        k = np.searchsorted(stable_idx, cand, side="right")
        if k == stable_idx.size:
            # Later crossings cannot have a stable index after them either
            break
        if positive[cand : stable_idx[k] + 1].all():
            return int(cand)

    return None


def traceback_onset(
    envelope: np.ndarray,
    candidate_idx: int | None,
    smoothing_n: int,
) -> int | None:
    """Move an onset back to the start of its rising deflection.

    Smooths the rectified envelope with a zero-phase moving average, takes
    the sign of its slope and returns the last local minimum (slope -1
    followed by slope +1) strictly before ``candidate_idx``.

    Args:
        envelope: Rectified waveform.
        candidate_idx: Threshold crossing to refine.
        smoothing_n: Moving-average window in samples.

    Returns:
        Index of the local minimum, or None if there is none before the
        candidate.
    """
    if candidate_idx is None:
        return None

    smoothed = zero_phase_moving_average(envelope, smoothing_n)
    slope = np.sign(np.concatenate(([0.0], np.diff(smoothed))))
    slope[candidate_idx:] = 0

    is_rise_start = (slope[:-1] == -1) & (slope[1:] == 1)
    hits = np.flatnonzero(is_rise_start)
    if hits.size == 0:
        return None
    return int(hits[-1])


def skip_wiggle(
    signal: np.ndarray,
    onset_idx: int | None,
    wiggle_percentage_cutoff: float,
) -> int | None:
    """Skip one small deflection at the onset.

    The deflection runs from ``onset_idx`` to the next sign change of the
    waveform (searched from ``onset_idx + 2``). If its peak magnitude is
    below ``wiggle_percentage_cutoff`` percent of the global peak, the
    onset moves to that sign change.

    Args:
        signal: Blanked waveform (signed).
        onset_idx: Current onset.
        wiggle_percentage_cutoff: Percent of global peak. Non-finite values
            disable skipping.

    Returns:
        The advanced onset, or ``onset_idx`` unchanged.
    """
    if not math.isfinite(wiggle_percentage_cutoff) or onset_idx is None:
        return onset_idx

    signs = np.sign(signal)
    changes = (signs[1:] != signs[:-1]) & ~np.isnan(signs[1:]) & ~np.isnan(signs[:-1])
    changes[: onset_idx + 2] = False

    next_change = np.flatnonzero(changes)
    if next_change.size == 0:
        return onset_idx
    next_idx = int(next_change[0])

    global_max = np.nanmax(np.abs(signal))
    if global_max == 0:
        return onset_idx

    initial_deflection = np.nanmax(np.abs(signal[onset_idx : next_idx + 1]))
    if initial_deflection / global_max < wiggle_percentage_cutoff * 1e-2:
        return next_idx
    return onset_idx


def skip_wiggles(
    signal: np.ndarray,
    onset_idx: int | None,
    wiggle_percentage_cutoff: float,
    max_skips: int = 5,
) -> tuple[int | None, int]:
    """Apply skip_wiggle repeatedly until it stops moving the onset.

    Returns:
        Tuple of (onset_idx, number of skips applied).
    """
    n_skips = 0
    while onset_idx is not None and n_skips < max_skips:
        new_idx = skip_wiggle(signal, onset_idx, wiggle_percentage_cutoff)
        if new_idx is None or new_idx == onset_idx:
            break
        onset_idx = new_idx
        n_skips += 1
    return onset_idx, n_skips


class StableExcursionDetector:
    """Threshold-and-persistence onset detector with traceback refinement.

    Attributes:
        n_stable: Persistence window in samples.
        smoothing_n: Traceback smoothing window in samples.
        wiggle_percentage_cutoff: Wiggle skip cutoff in percent (NaN disables).
        max_wiggle_skips: Upper bound on wiggle skips.
        stable_tolerance: Tolerance on "trailing mean equals 1".
    """

    def __init__(
        self,
        n_stable: int,
        smoothing_n: int = 1,
        wiggle_percentage_cutoff: float = math.nan,
        max_wiggle_skips: int = 5,
        stable_tolerance: float = 1e-9,
    ) -> None:
        if n_stable < 1:
            raise ValueError("n_stable must be at least 1")
        if smoothing_n < 1:
            raise ValueError("smoothing_n must be at least 1")
        if max_wiggle_skips < 0:
            raise ValueError("max_wiggle_skips must be non-negative")

        self.n_stable = n_stable
        self.smoothing_n = smoothing_n
        self.wiggle_percentage_cutoff = wiggle_percentage_cutoff
        self.max_wiggle_skips = max_wiggle_skips
        self.stable_tolerance = stable_tolerance

    def detect(self, blanked: np.ndarray, threshold: float) -> ExcursionResult:
        """Find the refined onset index in a blanked waveform.

        A NaN threshold leaves no sample above it, so it yields no onset.

        Args:
            blanked: Waveform with pre-window samples set to zero.
            threshold: Absolute threshold on the rectified waveform.

        Returns:
            ExcursionResult with the intermediate and final indices.
        """
        blanked = np.asarray(blanked, dtype=float)
        if blanked.size == 0:
            return ExcursionResult()

        envelope = np.abs(blanked)
        with np.errstate(invalid="ignore"):
            above = envelope > threshold

        result = ExcursionResult()
        result.candidate_idx = find_persistent_crossing(
            above, self.n_stable, self.stable_tolerance
        )
        if result.candidate_idx is None:
            return result

        result.traceback_idx = traceback_onset(
            envelope, result.candidate_idx, self.smoothing_n
        )
        if result.traceback_idx is None:
            return result

        onset_idx, result.n_wiggle_skips = skip_wiggles(
            blanked,
            result.traceback_idx,
            self.wiggle_percentage_cutoff,
            self.max_wiggle_skips,
        )

        if onset_idx is not None and onset_idx >= len(blanked) - self.n_stable - 1:
            result.too_close_to_end = True
            return result

        result.onset_idx = onset_idx
        return result
