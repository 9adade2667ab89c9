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

"""Parameters and fixed constants for MEP onset detection.

Two dataclasses split the knobs of the detector:

- OnsetParameters: per-call values supplied by the caller (bounds, sampling
  rate, threshold multiplier, wiggle cutoff, first-sample gate).
- OnsetConfig: internal constants of the algorithm. The defaults reproduce
  the reference behaviour and should only be changed deliberately.

Functions:
    load_onset_config: Parse mep_onset.yaml into an OnsetConfig
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

# Default path to the detector configuration YAML
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "configs" / "mep_onset.yaml"

STABLE_EXCURSION_S = 2e-3
BASELINE_LIMIT_S = -1e-3
MAX_LATENCY_MS = 50.0
FIRST_NONZERO_GATE = 2.0
MAX_WIGGLE_SKIPS = 5
SMOOTHING_WINDOW_S = 0.5e-3


@dataclass(frozen=True)
class OnsetParameters:
    """Caller-supplied parameters for one onset detection.

    Attributes:
        onset_bounds: (t_min, t_max) in seconds. Samples earlier than t_min
            are blanked; t_max is carried but not used by the detector.
        sampling_rate_hz: Sampling rate of the waveform.
        threshold_sd_multiplier: Detection threshold in units of the
            baseline noise scale. Not validated: a zero, negative or NaN
            multiplier flows into the threshold and at worst yields no onset.
        wiggle_percentage_cutoff: Deflections smaller than this percentage
            of the global peak are skipped. NaN or inf disables skipping.
        first_sample_amplitude_gate: The first non-zero sample after
            blanking must be strictly below this absolute amplitude.
    """

    onset_bounds: tuple[float, float]
    sampling_rate_hz: float
    threshold_sd_multiplier: float
    wiggle_percentage_cutoff: float
    first_sample_amplitude_gate: float

    def __post_init__(self) -> None:
        if len(self.onset_bounds) != 2:
            raise ValueError(
                f"onset_bounds must be a (t_min, t_max) pair, got {self.onset_bounds!r}"
            )
        if not self.sampling_rate_hz > 0:
            raise ValueError("sampling_rate_hz must be positive")

    @property
    def t_min(self) -> float:
        return float(self.onset_bounds[0])

    @property
    def wiggle_skip_enabled(self) -> bool:
        return math.isfinite(self.wiggle_percentage_cutoff)


@dataclass(frozen=True)
class OnsetConfig:
    """Internal constants of the onset detector.

    Attributes:
        stable_excursion_s: Minimum time the rectified signal must stay
            above threshold (persistence window).
        baseline_limit_s: Upper time bound of the baseline window.
        max_latency_ms: Onsets at or after this latency are rejected as
            late artifacts.
        first_nonzero_gate: Fixed absolute gate on the first non-zero
            sample of the blanked signal.
        max_wiggle_skips: Maximum number of wiggle skips per detection.
        smoothing_window_s: Moving-average window of the traceback envelope.
        stable_tolerance: A persistence moving average above
            ``1 - stable_tolerance`` counts as fully above threshold.
    """

    stable_excursion_s: float = STABLE_EXCURSION_S
    baseline_limit_s: float = BASELINE_LIMIT_S
    max_latency_ms: float = MAX_LATENCY_MS
    first_nonzero_gate: float = FIRST_NONZERO_GATE
    max_wiggle_skips: int = MAX_WIGGLE_SKIPS
    smoothing_window_s: float = SMOOTHING_WINDOW_S
    stable_tolerance: float = 1e-9

    def __post_init__(self) -> None:
        if self.stable_excursion_s <= 0:
            raise ValueError("stable_excursion_s must be positive")
        if self.smoothing_window_s <= 0:
            raise ValueError("smoothing_window_s must be positive")
        if self.max_wiggle_skips < 0:
            raise ValueError("max_wiggle_skips must be non-negative")
        if not 0 < self.stable_tolerance < 1:
            raise ValueError("stable_tolerance must be in (0, 1)")


def load_onset_config(yaml_path: str | Path | None = None) -> OnsetConfig:
    """Load detector constants from a YAML configuration file.

    The file must contain a top-level ``onset`` mapping. Keys that are
    absent keep their defaults.

    Args:
        yaml_path: Path to YAML file. If None, uses default configs/mep_onset.yaml.

    Returns:
        OnsetConfig populated from the file.

    Raises:
        FileNotFoundError: If YAML file doesn't exist.
        yaml.YAMLError: If YAML parsing fails.
        KeyError: If the ``onset`` key is missing or an unknown field is given.

    Example:
        >>> config = load_onset_config()
        >>> config.max_latency_ms
        50.0
    """
    if yaml_path is None:
        yaml_path = DEFAULT_CONFIG_PATH
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Onset config file not found: {yaml_path}")

    with open(yaml_path, encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f)

    if data is None or "onset" not in data:
        raise KeyError("YAML file must contain 'onset' key with detector constants")

    entry = data["onset"] or {}
    known = {f.name for f in fields(OnsetConfig)}
    unknown = sorted(set(entry) - known)
    if unknown:
        raise KeyError(f"Unknown onset config fields: {unknown}")

    return OnsetConfig(**entry)
