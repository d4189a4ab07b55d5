"""
Shared fixtures and configuration for pitch tracker tests.
"""

import pytest
import json
import numpy as np
from pathlib import Path
from unittest.mock import patch
import tempfile
import shutil
import sys

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


SAMPLE_RATE = 44100
BLOCK_SIZE = 2048

# Frequencies with a whole number of periods per 2048-sample block at 44.1 kHz,
# so consecutive blocks start at the same phase
ALIGNED_258_HZ = SAMPLE_RATE * 12 / BLOCK_SIZE   # ~258.40 Hz (C4)
ALIGNED_150_HZ = SAMPLE_RATE * 7 / BLOCK_SIZE    # ~150.73 Hz (D3)


def make_tone(frequency, num_samples, sr=SAMPLE_RATE, harmonics=None, amplitude=0.5, phase=0.0):
    """Sine tone with optional harmonics (relative amplitudes of 2f, 3f, ...)."""
    t = np.arange(num_samples) / sr
    tone = np.sin(2 * np.pi * frequency * t + phase)
    for i, level in enumerate(harmonics or [], start=2):
        tone += level * np.sin(2 * np.pi * frequency * i * t + i * phase)
    return amplitude * tone


def split_blocks(audio, block_size=BLOCK_SIZE):
    """Split audio into whole blocks, dropping any remainder."""
    n = len(audio) // block_size
    return [audio[i * block_size:(i + 1) * block_size] for i in range(n)]


# ============== Utility Fixtures ==============

@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


# ============== Audio Fixtures ==============

@pytest.fixture
def silent_block():
    """One block of digital silence."""
    return np.zeros(BLOCK_SIZE)


@pytest.fixture
def tone_blocks():
    """Thirty block-aligned blocks of a ~258 Hz tone."""
    audio = make_tone(ALIGNED_258_HZ, BLOCK_SIZE * 30)
    return split_blocks(audio)


@pytest.fixture
def harmonic_tone_blocks():
    """Thirty blocks of ~150 Hz with a strong (60%) second harmonic."""
    audio = make_tone(ALIGNED_150_HZ, BLOCK_SIZE * 30, harmonics=[0.6])
    return split_blocks(audio)


@pytest.fixture
def noise_blocks():
    """Low-level deterministic background noise."""
    rng = np.random.default_rng(42)
    audio = rng.normal(0, 0.005, BLOCK_SIZE * 20)
    return split_blocks(audio)


@pytest.fixture
def sample_audio_array():
    """One second of ~258 Hz tone followed by one second of silence."""
    sr = SAMPLE_RATE
    audio = np.concatenate([
        make_tone(ALIGNED_258_HZ, sr),
        np.zeros(sr)
    ]).astype(np.float32)
    return audio, sr


# ============== JSON Data Fixtures ==============

@pytest.fixture
def sample_config_data():
    """Tracker parameter overrides as stored in a JSON config."""
    return {
        'smoothing': 8.0,
        'hold_duration': 1.0,
        'lp_cutoff': 2000.0,
        'gate_ratio': 1.6
    }


@pytest.fixture
def config_file(temp_dir, sample_config_data):
    """Write the sample config to disk."""
    path = temp_dir / "tracker_config.json"
    with open(path, 'w') as f:
        json.dump(sample_config_data, f)
    return path


# ============== Mock Fixtures ==============

@pytest.fixture
def mock_librosa_load(sample_audio_array):
    """Mock librosa.load to avoid reading actual audio files."""
    with patch('librosa.load') as mock_load:
        mock_load.return_value = sample_audio_array
        yield mock_load


@pytest.fixture
def mock_soundfile_write():
    """Mock soundfile.write to avoid writing actual audio files."""
    with patch('soundfile.write') as mock_write:
        yield mock_write
