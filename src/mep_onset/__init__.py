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

"""Motor evoked potential onset latency detection.

Locates the onset of an MEP in a single EMG trace by thresholding the
rectified signal against the pre-stimulus noise level, requiring the
excursion to persist, and refining the crossing back to the start of the
rising deflection.

Components:
- Config: per-call parameters and fixed algorithm constants
- Preprocessing: blanking and baseline noise estimation
- Smoothing: causal and zero-phase moving averages
- Detectors: stable-excursion detection, traceback and wiggle skipping
- Validity: sanity gates on the detected onset
- Pipeline: single-call entry point returning the onset in ms
"""

from src.mep_onset.config import (
    OnsetConfig,
    OnsetParameters,
    load_onset_config,
)
from src.mep_onset.preprocessing import (
    baseline_noise_scale,
    blank_before,
    first_nonzero_index,
    samples_for_duration,
)
from src.mep_onset.smoothing import (
    causal_moving_average,
    zero_phase_moving_average,
)
from src.mep_onset.detectors import (
    ExcursionResult,
    StableExcursionDetector,
    find_persistent_crossing,
    skip_wiggle,
    skip_wiggles,
    traceback_onset,
)
from src.mep_onset.validity import (
    ValidityReport,
    check_validity,
)
from src.mep_onset.pipeline import (
    FailureReason,
    MepOnsetDetector,
    OnsetResult,
    detect_onset_ms,
)

__all__: list[str] = [
    # Config
    "OnsetConfig",
    "OnsetParameters",
    "load_onset_config",
    # Preprocessing
    "baseline_noise_scale",
    "blank_before",
    "first_nonzero_index",
    "samples_for_duration",
    # Smoothing
    "causal_moving_average",
    "zero_phase_moving_average",
    # Detectors
    "ExcursionResult",
    "StableExcursionDetector",
    "find_persistent_crossing",
    "skip_wiggle",
    "skip_wiggles",
    "traceback_onset",
    # Validity
    "ValidityReport",
    "check_validity",
    # Pipeline
    "FailureReason",
    "MepOnsetDetector",
    "OnsetResult",
    "detect_onset_ms",
]
