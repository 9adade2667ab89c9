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

"""End-to-end MEP onset latency detection.

Chains the stages for a single waveform:

1. **Blanking:** samples before the earliest allowed onset are zeroed.
2. **Baseline:** noise scale = SD of the rectified signal before -1 ms.
3. **Detection:** stable excursion above ``threshold_sd_multiplier * SD``,
   traceback to the start of the rise and wiggle skipping.
4. **Validity:** amplitude gates on the first non-zero sample and a
   late-artifact latency cutoff.

Usage:
    onset_ms = detect_onset_ms(
        signal, time_s, onset_bounds=(0.0, 0.06), sampling_rate_hz=5000,
        threshold_sd_multiplier=4, wiggle_percentage_cutoff=2,
        first_sample_amplitude_gate=20,
    )

Any failure yields NaN. ``MepOnsetDetector.detect`` returns an
``OnsetResult`` with the reason for diagnostics.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from src.mep_onset.config import OnsetConfig, OnsetParameters
from src.mep_onset.detectors import ExcursionResult, StableExcursionDetector
from src.mep_onset.preprocessing import (
    baseline_noise_scale,
    blank_before,
    first_nonzero_index,
    samples_for_duration,
)
from src.mep_onset.validity import ValidityReport, check_validity

logger = logging.getLogger(__name__)


class FailureReason(Enum):
    """Why a waveform produced no valid onset."""
    EMPTY_AFTER_BLANKING = "empty_after_blanking"
    UNDEFINED_BASELINE = "undefined_baseline"
    NO_PERSISTENT_EXCURSION = "no_persistent_excursion"
    NO_RISING_TRANSITION = "no_rising_transition"
    TOO_CLOSE_TO_END = "too_close_to_end"
    FIRST_SAMPLE_ABOVE_GATE = "first_sample_above_gate"
    LATE_ONSET = "late_onset"
    FIRST_NONZERO_ABOVE_FIXED_GATE = "first_nonzero_above_fixed_gate"


@dataclass
class OnsetResult:
    """Result container for MEP onset detection.

    Attributes:
        onset_idx: Refined onset index, or None if detection failed. Kept
            even when a validity gate rejects the onset.
        onset_ms: Onset latency in milliseconds; NaN unless valid.
        failure_reason: First reason the onset was rejected, None if valid.
        baseline: Baseline statistics:
            - 'sd': SD of the rectified baseline
            - 'threshold': Absolute detection threshold
            - 'n_samples': Number of baseline samples used
        gates: Validity gate outcomes.
        excursion: Intermediate detector indices.
    """

    onset_idx: int | None
    onset_ms: float
    failure_reason: FailureReason | None
    baseline: dict[str, float] = field(default_factory=dict)
    gates: ValidityReport | None = None
    excursion: ExcursionResult | None = None

    @property
    def is_valid(self) -> bool:
        return self.failure_reason is None


def _validate_inputs(signal: np.ndarray, time_s: np.ndarray) -> None:
    if signal.ndim != 1 or time_s.ndim != 1:
        raise ValueError(
            f"signal and time_s must be 1-D, got shapes {signal.shape} and {time_s.shape}"
        )
    if signal.shape != time_s.shape:
        raise ValueError(
            f"signal and time_s must have same length. Got {len(signal)} and {len(time_s)}"
        )


def _first_failure(
    first_nonzero_idx: int | None,
    sd: float,
    excursion: ExcursionResult,
    gates: ValidityReport,
) -> FailureReason | None:
    if first_nonzero_idx is None:
        return FailureReason.EMPTY_AFTER_BLANKING
    if math.isnan(sd):
        return FailureReason.UNDEFINED_BASELINE
    if excursion.candidate_idx is None:
        return FailureReason.NO_PERSISTENT_EXCURSION
    if excursion.traceback_idx is None:
        return FailureReason.NO_RISING_TRANSITION
    if excursion.too_close_to_end:
        return FailureReason.TOO_CLOSE_TO_END
    if not gates.first_sample_below_gate:
        return FailureReason.FIRST_SAMPLE_ABOVE_GATE
    if not gates.onset_before_max_latency:
        return FailureReason.LATE_ONSET
    if not gates.first_nonzero_below_fixed_gate:
        return FailureReason.FIRST_NONZERO_ABOVE_FIXED_GATE
    return None


class MepOnsetDetector:
    """Onset latency detector for single MEP waveforms.

    Holds the fixed algorithm constants; per-waveform values come in as
    ``OnsetParameters``. Instances carry no state between calls.

    Args:
        config: Algorithm constants. Uses defaults if None.
    """

    def __init__(self, config: OnsetConfig | None = None) -> None:
        self.config = config if config is not None else OnsetConfig()

    def detect(
        self,
        signal: np.ndarray,
        time_s: np.ndarray,
        params: OnsetParameters,
    ) -> OnsetResult:
        """Detect the onset latency of one waveform.

        Args:
            signal: Waveform samples (not modified).
            time_s: Time of each sample in seconds, same length as signal.
            params: Per-call detection parameters.

        Returns:
            OnsetResult; ``onset_ms`` is NaN whenever ``failure_reason`` is set.

        Raises:
            ValueError: If signal and time_s are not 1-D arrays of equal length.
        """
        signal = np.asarray(signal, dtype=float)
        time_s = np.asarray(time_s, dtype=float)
        _validate_inputs(signal, time_s)
        cfg = self.config

        blanked = blank_before(signal, time_s, params.t_min)
        first_nonzero_idx = first_nonzero_index(blanked)

        sd, n_baseline = baseline_noise_scale(signal, time_s, cfg.baseline_limit_s)
        threshold = sd * params.threshold_sd_multiplier

        detector = StableExcursionDetector(
            n_stable=samples_for_duration(cfg.stable_excursion_s, params.sampling_rate_hz),
            smoothing_n=samples_for_duration(cfg.smoothing_window_s, params.sampling_rate_hz),
            wiggle_percentage_cutoff=params.wiggle_percentage_cutoff,
            max_wiggle_skips=cfg.max_wiggle_skips,
            stable_tolerance=cfg.stable_tolerance,
        )
        excursion = detector.detect(blanked, threshold)

        gates = check_validity(
            blanked,
            time_s,
            first_nonzero_idx,
            excursion.onset_idx,
            first_sample_amplitude_gate=params.first_sample_amplitude_gate,
            max_latency_ms=cfg.max_latency_ms,
            first_nonzero_gate=cfg.first_nonzero_gate,
        )

        reason = _first_failure(first_nonzero_idx, sd, excursion, gates)
        onset_idx = excursion.onset_idx
        if reason is None:
            onset_ms = float(time_s[onset_idx]) * 1e3
            logger.debug("Onset at index %d (%.3f ms)", onset_idx, onset_ms)
        else:
            onset_ms = math.nan
            logger.debug("No valid onset: %s (onset_idx=%s)", reason.value, onset_idx)

        return OnsetResult(
            onset_idx=onset_idx,
            onset_ms=onset_ms,
            failure_reason=reason,
            baseline={"sd": sd, "threshold": threshold, "n_samples": n_baseline},
            gates=gates,
            excursion=excursion,
        )


def detect_onset_ms(
    signal: np.ndarray,
    time_seconds: np.ndarray,
    onset_bounds: tuple[float, float],
    sampling_rate_hz: float,
    threshold_sd_multiplier: float,
    wiggle_percentage_cutoff: float,
    first_sample_amplitude_gate: float,
    config: OnsetConfig | None = None,
) -> float:
    """Detect the MEP onset latency in milliseconds.

    Args:
        signal: Waveform samples.
        time_seconds: Time of each sample in seconds (same length).
        onset_bounds: (t_min, t_max) in seconds; only t_min is used.
        sampling_rate_hz: Sampling rate in Hz.
        threshold_sd_multiplier: Threshold in units of baseline SD.
        wiggle_percentage_cutoff: Percent of global peak below which leading
            wiggles are skipped. NaN or inf disables.
        first_sample_amplitude_gate: Gate on the first non-zero sample after
            blanking (signal units).
        config: Algorithm constants. Uses defaults if None.

    Returns:
        Onset latency in ms, or NaN if no valid onset was found.
    """
    params = OnsetParameters(
        onset_bounds=tuple(onset_bounds),
        sampling_rate_hz=sampling_rate_hz,
        threshold_sd_multiplier=threshold_sd_multiplier,
        wiggle_percentage_cutoff=wiggle_percentage_cutoff,
        first_sample_amplitude_gate=first_sample_amplitude_gate,
    )
    return MepOnsetDetector(config).detect(signal, time_seconds, params).onset_ms
