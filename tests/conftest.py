"""Pytest fixtures for MEP onset detection tests.

Provides synthetic MEP waveforms with a known deflection start.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

# Project root and config paths
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "configs" / "mep_onset.yaml"

# Constants for test assertions
SAMPLING_RATE = 5000.0
T_START = -0.05
N_SAMPLES = 1250  # -50 ms .. 200 ms
PEAK_AMPLITUDE = 50.0
DECAY_TAU = 0.01


def make_time_vector(
    n_samples: int = N_SAMPLES,
    fs: float = SAMPLING_RATE,
    t_start: float = T_START,
) -> np.ndarray:
    """Time vector in seconds starting at ``t_start``."""
    return np.arange(n_samples) / fs + t_start


def make_mep(
    onset_s: float,
    baseline_amplitude: float = 0.5,
    peak: float = PEAK_AMPLITUDE,
    tau: float = DECAY_TAU,
    n_samples: int = N_SAMPLES,
    fs: float = SAMPLING_RATE,
    t_start: float = T_START,
) -> tuple[np.ndarray, np.ndarray, int]:
    """Synthetic MEP: step with exponential decay on a deterministic baseline.

    The baseline is zero on even samples and alternates between +a and -a
    on odd samples, so its rectified SD is about a/2 and a threshold of
    4 SD stays above it. The deflection starts at the sample closest to
    ``onset_s`` and decays with time constant ``tau``.

    Returns:
        Tuple of (signal, time_s, deflection_start_idx).
    """
    t = make_time_vector(n_samples, fs, t_start)
    k = np.arange(n_samples)
    baseline = np.where(k % 2 == 1, baseline_amplitude * (-1.0) ** (k // 2), 0.0)

    start_idx = int(round((onset_s - t_start) * fs))
    deflection = np.zeros(n_samples)
    deflection[start_idx:] = peak * np.exp(-(t[start_idx:] - t[start_idx]) / tau)

    return baseline + deflection, t, start_idx


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def config_path() -> Path:
    """Get path to the default detector config."""
    return CONFIG_PATH


@pytest.fixture
def mep_28ms() -> tuple[np.ndarray, np.ndarray, int]:
    """MEP whose deflection starts at 28 ms (sample 390)."""
    return make_mep(0.028)


@pytest.fixture
def detection_kwargs() -> dict:
    """Standard detection parameters for the synthetic MEPs."""
    return {
        "onset_bounds": (0.0, 0.06),
        "sampling_rate_hz": SAMPLING_RATE,
        "threshold_sd_multiplier": 4.0,
        "wiggle_percentage_cutoff": 2.0,
        "first_sample_amplitude_gate": 20.0,
    }
