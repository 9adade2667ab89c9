"""Tests for the stable-excursion detector and its refinement stages.

Covers:
- find_persistent_crossing: persistence window and dropout rejection
- traceback_onset: last rising transition before the candidate
- skip_wiggle / skip_wiggles: relative-amplitude wiggle skipping and its bound
- StableExcursionDetector: stage chaining and the end-of-record guard
"""

from __future__ import annotations

import math

import numpy as np
import pytest

from src.mep_onset.detectors import (
    ExcursionResult,
    StableExcursionDetector,
    find_persistent_crossing,
    skip_wiggle,
    skip_wiggles,
    traceback_onset,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def wiggly_tail_signal() -> np.ndarray:
    """Short record whose rise is followed by two small opposite-sign lobes.

    With threshold 1 and a 3-sample window the crossing is at 13, traceback
    lands on the local minimum at 11, and two wiggle skips carry the onset
    to 18, which is too close to the end of a 20-sample record.
    """
    y = np.zeros(20)
    y[10:13] = [0.3, 0.1, 0.2]
    y[13:16] = 1.5
    y[16:19] = -1.5
    y[19] = 100.0
    return y


# ============================================================================
# find_persistent_crossing
# ============================================================================


class TestFindPersistentCrossing:
    """Tests for the threshold-and-persistence stage."""

    def test_crossing_leading_into_stable_run(self):
        above = np.array([0, 0, 1, 1, 1, 1, 0], dtype=bool)
        assert find_persistent_crossing(above, 3) == 2

    def test_dropout_rejects_early_crossing(self):
        """A full window below threshold separates the crossing from the stable run."""
        above = np.array([0, 1, 0, 0, 0, 1, 1, 1, 0], dtype=bool)
        assert find_persistent_crossing(above, 3) == 5

    def test_short_dropout_keeps_early_crossing(self):
        """A gap shorter than the window does not break the excursion."""
        above = np.array([0, 1, 0, 0, 1, 1, 1], dtype=bool)
        assert find_persistent_crossing(above, 3) == 1

    def test_no_stable_region(self):
        above = np.array([0, 1, 1, 0, 1, 1, 0], dtype=bool)
        assert find_persistent_crossing(above, 3) is None

    def test_no_crossing(self):
        assert find_persistent_crossing(np.zeros(10, dtype=bool), 3) is None

    def test_stable_index_must_follow_crossing(self):
        """With a 1-sample window a lone crossing has no stable index after it."""
        above = np.array([0, 1, 0], dtype=bool)
        assert find_persistent_crossing(above, 1) is None

    def test_crossing_at_index_zero(self):
        above = np.ones(6, dtype=bool)
        assert find_persistent_crossing(above, 3) == 0


# ============================================================================
# traceback_onset
# ============================================================================


class TestTracebackOnset:
    """Tests for traceback to the start of the rising deflection."""

    def test_finds_local_minimum_before_candidate(self):
        envelope = np.array([0.0, 0.5, 0.3, 0.1, 0.2, 5.0, 6.0])
        assert traceback_onset(envelope, 5, smoothing_n=1) == 3

    def test_takes_last_minimum_not_first(self):
        envelope = np.array([0.0, 0.4, 0.1, 0.4, 0.2, 0.3, 5.0, 6.0])
        assert traceback_onset(envelope, 6, smoothing_n=1) == 4

    def test_ignores_minima_at_or_after_candidate(self):
        envelope = np.array([0.0, 0.4, 0.1, 0.3, 5.0, 2.0, 6.0])
        assert traceback_onset(envelope, 4, smoothing_n=1) == 2

    def test_monotonic_rise_has_no_transition(self):
        """A rise out of a perfectly flat baseline has no local minimum."""
        envelope = np.concatenate([np.zeros(20), np.linspace(1.0, 10.0, 10)])
        assert traceback_onset(envelope, 22, smoothing_n=3) is None

    def test_candidate_at_zero(self):
        assert traceback_onset(np.array([1.0, 0.0, 1.0]), 0, smoothing_n=1) is None

    def test_none_candidate_passes_through(self):
        assert traceback_onset(np.ones(5), None, smoothing_n=1) is None

    def test_smoothing_moves_minimum(self):
        """Smoothing spreads the rise, so the minimum is found earlier."""
        envelope = np.zeros(30)
        envelope[1::2] = 1.0
        envelope[20:] = 100.0

        raw = traceback_onset(envelope, 20, smoothing_n=1)
        smoothed = traceback_onset(envelope, 20, smoothing_n=3)

        assert raw == 18
        assert smoothed == 16


# ============================================================================
# skip_wiggle / skip_wiggles
# ============================================================================


class TestSkipWiggle:
    """Tests for a single wiggle skip."""

    def test_small_wiggle_is_skipped(self):
        y = np.array([0.0, 0.5, 0.5, 0.5, -1.0, -50.0, -40.0])
        # first sign change searched from onset + 2 = 2: between 3 and 4
        assert skip_wiggle(y, 0, 2.0) == 3

    def test_large_deflection_is_kept(self):
        y = np.array([0.0, 5.0, 5.0, 5.0, -1.0, -50.0])
        assert skip_wiggle(y, 0, 2.0) == 0

    def test_ratio_must_be_strictly_below_cutoff(self):
        """A deflection of exactly the cutoff fraction is kept."""
        y = np.array([0.0, 1.0, 1.0, 1.0, -1.0, -50.0])
        assert skip_wiggle(y, 0, 2.0) == 0

    def test_nan_cutoff_disables(self):
        y = np.array([0.0, 0.1, 0.1, 0.1, -1.0, -50.0])
        assert skip_wiggle(y, 0, math.nan) == 0
        assert skip_wiggle(y, 0, math.inf) == 0

    def test_none_onset_passes_through(self):
        assert skip_wiggle(np.ones(5), None, 2.0) is None

    def test_no_later_sign_change(self):
        y = np.array([0.0, 0.1, 0.2, 50.0, 40.0])
        assert skip_wiggle(y, 0, 2.0) == 0

    def test_sign_change_right_after_onset_ignored(self):
        """Changes at onset and onset + 1 are masked."""
        y = np.array([0.1, -0.1, 0.1, 0.1, 0.1, 50.0])
        assert skip_wiggle(y, 0, 2.0) == 0

    def test_all_zero_signal(self):
        assert skip_wiggle(np.zeros(8), 1, 2.0) == 1

    def test_nan_samples_are_not_sign_changes(self):
        y = np.array([0.0, 0.5, 0.5, np.nan, 0.5, 0.5, -50.0])
        assert skip_wiggle(y, 0, 2.0) == 5


class TestSkipWiggles:
    """Tests for the bounded wiggle-skip loop."""

    def test_skips_until_stable(self, wiggly_tail_signal):
        onset, n_skips = skip_wiggles(wiggly_tail_signal, 11, 2.0, max_skips=5)
        assert onset == 18
        assert n_skips == 2

    def test_bound_limits_skips(self, wiggly_tail_signal):
        onset, n_skips = skip_wiggles(wiggly_tail_signal, 11, 2.0, max_skips=1)
        assert onset == 15
        assert n_skips == 1

    def test_zero_bound_disables(self, wiggly_tail_signal):
        assert skip_wiggles(wiggly_tail_signal, 11, 2.0, max_skips=0) == (11, 0)

    def test_none_onset(self):
        assert skip_wiggles(np.ones(5), None, 2.0) == (None, 0)


# ============================================================================
# StableExcursionDetector
# ============================================================================


class TestStableExcursionDetector:
    """Tests for the chained detector."""

    def test_invalid_windows_raise(self):
        with pytest.raises(ValueError, match="n_stable"):
            StableExcursionDetector(n_stable=0)
        with pytest.raises(ValueError, match="smoothing_n"):
            StableExcursionDetector(n_stable=3, smoothing_n=0)
        with pytest.raises(ValueError, match="max_wiggle_skips"):
            StableExcursionDetector(n_stable=3, max_wiggle_skips=-1)

    def test_detects_refined_onset(self):
        y = np.zeros(30)
        y[5:8] = [0.4, 0.1, 0.2]
        y[8:20] = 3.0

        result = StableExcursionDetector(n_stable=3).detect(y, threshold=1.0)

        assert result.candidate_idx == 8
        assert result.traceback_idx == 6
        assert result.onset_idx == 6
        assert not result.too_close_to_end

    def test_too_close_to_end(self, wiggly_tail_signal):
        detector = StableExcursionDetector(
            n_stable=3, smoothing_n=1, wiggle_percentage_cutoff=2.0
        )

        result = detector.detect(wiggly_tail_signal, threshold=1.0)

        assert result.candidate_idx == 13
        assert result.traceback_idx == 11
        assert result.n_wiggle_skips == 2
        assert result.too_close_to_end
        assert result.onset_idx is None

    def test_wiggle_disabled_keeps_traceback(self, wiggly_tail_signal):
        detector = StableExcursionDetector(n_stable=3, smoothing_n=1)

        result = detector.detect(wiggly_tail_signal, threshold=1.0)

        assert result.onset_idx == 11
        assert result.n_wiggle_skips == 0

    def test_nan_threshold_detects_nothing(self):
        y = np.concatenate([np.zeros(10), np.full(10, 5.0)])
        result = StableExcursionDetector(n_stable=3).detect(y, threshold=math.nan)
        assert result == ExcursionResult()

    def test_no_traceback_stops_chain(self):
        y = np.concatenate([np.zeros(10), np.full(10, 5.0)])

        result = StableExcursionDetector(n_stable=3).detect(y, threshold=0.0)

        assert result.candidate_idx == 10
        assert result.traceback_idx is None
        assert result.onset_idx is None

    def test_empty_signal(self):
        assert StableExcursionDetector(n_stable=3).detect(np.array([]), 1.0).onset_idx is None

    def test_input_not_mutated(self, wiggly_tail_signal):
        original = wiggly_tail_signal.copy()
        StableExcursionDetector(n_stable=3, wiggle_percentage_cutoff=2.0).detect(
            wiggly_tail_signal, 1.0
        )
        np.testing.assert_array_equal(wiggly_tail_signal, original)
