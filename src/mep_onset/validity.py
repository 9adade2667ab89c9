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

"""Sanity gates applied to a detected onset."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class ValidityReport:
    """Outcome of the three validity gates.

    Attributes:
        first_sample_below_gate: First non-zero blanked sample is below the
            caller's amplitude gate.
        onset_before_max_latency: Onset latency is below the late-artifact
            cutoff.
        first_nonzero_below_fixed_gate: First non-zero blanked sample is
            below the fixed internal gate.
    """

    first_sample_below_gate: bool
    onset_before_max_latency: bool
    first_nonzero_below_fixed_gate: bool

    @property
    def all_passed(self) -> bool:
        return (
            self.first_sample_below_gate
            and self.onset_before_max_latency
            and self.first_nonzero_below_fixed_gate
        )


def check_validity(
    blanked: np.ndarray,
    time_s: np.ndarray,
    first_nonzero_idx: int | None,
    onset_idx: int | None,
    first_sample_amplitude_gate: float,
    max_latency_ms: float,
    first_nonzero_gate: float,
) -> ValidityReport:
    """Evaluate the validity gates. A missing index fails its gate.

    Args:
        blanked: Blanked waveform.
        time_s: Time vector in seconds.
        first_nonzero_idx: First non-zero sample of ``blanked``.
        onset_idx: Detected onset index.
        first_sample_amplitude_gate: Caller's gate on the first sample.
        max_latency_ms: Late-artifact cutoff in milliseconds.
        first_nonzero_gate: Fixed gate on the first non-zero sample.

    Returns:
        ValidityReport with one flag per gate.
    """
    first_amplitude = None
    if first_nonzero_idx is not None:
        first_amplitude = abs(float(blanked[first_nonzero_idx]))

    # NaN amplitudes compare False and fail the gates
    first_ok = first_amplitude is not None and first_amplitude < first_sample_amplitude_gate
    fixed_ok = first_amplitude is not None and first_amplitude < first_nonzero_gate
    latency_ok = onset_idx is not None and float(time_s[onset_idx]) * 1e3 < max_latency_ms

    return ValidityReport(
        first_sample_below_gate=bool(first_ok),
        onset_before_max_latency=bool(latency_ok),
        first_nonzero_below_fixed_gate=bool(fixed_ok),
    )
