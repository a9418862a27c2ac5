"""
Pytest fixtures for tuner engine tests.
"""
import pytest
import numpy as np

from pitchengine.tuning_session import DEFAULT_SETTINGS


@pytest.fixture
def sample_rate():
    """Standard sample rate."""
    return DEFAULT_SETTINGS["sample_rate"]


@pytest.fixture
def frame_size():
    """Standard analysis frame length."""
    return DEFAULT_SETTINGS["frame_size"]


@pytest.fixture
def make_sine(sample_rate, frame_size):
    """Factory for a single sine frame."""
    def _make(freq, amplitude=0.5, length=None, rate=None, phase=0.0):
        rate = rate or sample_rate
        n = length or frame_size
        t = np.arange(n, dtype=np.float64) / rate
        return (amplitude * np.sin(2 * np.pi * freq * t + phase)).astype(np.float32)
    return _make


@pytest.fixture
def make_pluck(sample_rate, frame_size):
    """Factory for a harmonic-rich, plucked-string-like frame."""
    def _make(freq, amplitude=0.5):
        t = np.arange(frame_size, dtype=np.float64) / sample_rate
        wave = (np.sin(2 * np.pi * freq * t)
                + 0.6 * np.sin(2 * np.pi * 2 * freq * t)
                + 0.3 * np.sin(2 * np.pi * 3 * freq * t))
        return (amplitude * wave / np.max(np.abs(wave))).astype(np.float32)
    return _make


@pytest.fixture
def silence_frame(frame_size):
    """Silent frame."""
    return np.zeros(frame_size, dtype=np.float32)


@pytest.fixture
def quiet_noise_frame(frame_size):
    """Uniform noise well below the noise floor."""
    rng = np.random.default_rng(1234)
    return rng.uniform(-0.005, 0.005, frame_size).astype(np.float32)
