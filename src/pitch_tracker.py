#!/usr/bin/env python3
"""
Pitch Tracker

Runs the per-block pipeline and keeps the state that spans blocks:

    raw block -> BandpassFilter -> AdaptiveNoiseGate -> PitchEstimator
              -> smoothing -> note name

Voiced blocks move the displayed frequency toward the new estimate.
Silent blocks hold the last result for `hold_duration` seconds, after
which the tracker reports that it is listening again.

One tracker owns all of its state and scratch buffers; it is not
thread-safe.
"""

import json
import numpy as np
from pathlib import Path
from typing import Optional

from bandpass_filter import BandpassFilter
from noise_gate import AdaptiveNoiseGate
from autocorr_pitch import PitchEstimator
from pitch_utils import frequency_to_note, cents_from_nearest_note


LISTENING_TEXT = "Listening..."


class TrackerConfig:
    """Tunable parameters for PitchTracker."""

    DEFAULTS = {
        'smoothing': 10.0,             # higher = faster reaction, more jitter
        'hold_duration': 1.5,          # seconds to hold the last note after sound stops
        'hp_cutoff': 80.0,
        'lp_cutoff': 1500.0,           # raise to 2000 if whistles read low
        'gate_ratio': 1.8,
        'noise_adapt': 0.01,
        'min_frequency': 50.0,
        'max_frequency': 1000.0,
        'peak_norm_threshold': 0.3,
        'clip_frac': 0.3,
        'initial_noise_floor': 0.01,
    }

    def __init__(self, **kwargs):
        unknown = set(kwargs) - set(self.DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        for key, default in self.DEFAULTS.items():
            setattr(self, key, float(kwargs.get(key, default)))

        self.validate()

    def validate(self):
        """Raise ValueError if any parameter is out of range."""
        if self.smoothing < 0:
            raise ValueError(f"smoothing must be >= 0 (got {self.smoothing})")
        if self.hold_duration < 0:
            raise ValueError(f"hold_duration must be >= 0 (got {self.hold_duration})")
        if self.hp_cutoff <= 0 or self.lp_cutoff <= self.hp_cutoff:
            raise ValueError(
                f"Need 0 < hp_cutoff < lp_cutoff (got {self.hp_cutoff}, {self.lp_cutoff})"
            )
        if self.gate_ratio <= 0:
            raise ValueError(f"gate_ratio must be positive (got {self.gate_ratio})")
        if not (0 < self.noise_adapt <= 1):
            raise ValueError(f"noise_adapt must be in (0, 1] (got {self.noise_adapt})")
        if self.min_frequency <= 0 or self.max_frequency <= self.min_frequency:
            raise ValueError(
                f"Need 0 < min_frequency < max_frequency "
                f"(got {self.min_frequency}, {self.max_frequency})"
            )
        for key in ('peak_norm_threshold', 'clip_frac'):
            value = getattr(self, key)
            if not (0 <= value <= 1):
                raise ValueError(f"{key} must be in [0, 1] (got {value})")
        if self.initial_noise_floor <= 0:
            raise ValueError(f"initial_noise_floor must be positive (got {self.initial_noise_floor})")

    def to_dict(self) -> dict:
        return {key: getattr(self, key) for key in self.DEFAULTS}

    @classmethod
    def from_dict(cls, data: dict) -> 'TrackerConfig':
        return cls(**data)

    @classmethod
    def from_json(cls, path: str) -> 'TrackerConfig':
        """Load a config from a JSON file of parameter overrides."""
        with open(path, 'r') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a JSON object: {path}")
        return cls.from_dict(data)

    def save_json(self, path: str):
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def __eq__(self, other):
        return isinstance(other, TrackerConfig) and self.to_dict() == other.to_dict()

    def __repr__(self):
        params = ", ".join(f"{k}={v}" for k, v in self.to_dict().items())
        return f"TrackerConfig({params})"


class TrackerResult:
    """What the tracker reports for one block."""

    VOICED = 'voiced'
    HELD = 'held'
    IDLE = 'idle'

    def __init__(self, state: str, frequency: float = 0.0, note: str = "",
                 is_voice: bool = False, raw_pitch: float = 0.0,
                 energy: float = 0.0, noise_floor: float = 0.0):
        self.state = state
        self.frequency = frequency
        self.note = note
        self.is_voice = is_voice
        self.raw_pitch = raw_pitch
        self.energy = energy
        self.noise_floor = noise_floor

    @property
    def is_idle(self) -> bool:
        return self.state == self.IDLE

    @property
    def cents(self) -> float:
        """Deviation of the displayed frequency from its note (0 when idle)."""
        if self.is_idle or not self.note:
            return 0.0
        return cents_from_nearest_note(self.frequency)

    def display_text(self) -> str:
        if self.is_idle:
            return LISTENING_TEXT
        return f"Frequency: {self.frequency:.2f} Hz\nNote: {self.note}"

    def to_dict(self) -> dict:
        return {
            'state': self.state,
            'frequency': self.frequency,
            'note': self.note,
            'cents': self.cents,
            'is_voice': self.is_voice,
            'raw_pitch': self.raw_pitch,
            'energy': self.energy,
            'noise_floor': self.noise_floor,
        }

    def __repr__(self):
        return (f"TrackerResult(state={self.state!r}, frequency={self.frequency:.2f}, "
                f"note={self.note!r})")


class PitchTracker:
    """Stateful per-block pitch tracker for a fixed block length and sample rate."""

    def __init__(self, sample_rate: int, block_length: int = 2048,
                 config: Optional[TrackerConfig] = None):
        """
        Initialize tracker.

        Args:
            sample_rate: Sample rate of every block (Hz)
            block_length: Number of samples in every block
            config: Tuning parameters (defaults if None)
        """
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive (got {sample_rate})")
        if block_length < 0:
            raise ValueError(f"Block length must be >= 0 (got {block_length})")

        self.sample_rate = int(sample_rate)
        self.block_length = int(block_length)
        self.config = config if config is not None else TrackerConfig()

        self.filter = BandpassFilter(self.config.hp_cutoff, self.config.lp_cutoff)
        self.gate = AdaptiveNoiseGate(
            gate_ratio=self.config.gate_ratio,
            noise_adapt=self.config.noise_adapt,
            initial_floor=self.config.initial_noise_floor
        )
        self.estimator = PitchEstimator(
            min_frequency=self.config.min_frequency,
            max_frequency=self.config.max_frequency,
            peak_norm_threshold=self.config.peak_norm_threshold,
            clip_frac=self.config.clip_frac,
            block_length=self.block_length
        )

        self._filtered = np.zeros(self.block_length)
        self.displayed_frequency = 0.0
        self.silence_timer = 0.0
        self.last_result = self._idle_result(False, 0.0, 0.0)

    @property
    def block_duration(self) -> float:
        return self.block_length / self.sample_rate

    def reset(self):
        """Return to the freshly constructed state."""
        self.filter.reset()
        self.gate.reset()
        self._filtered[:] = 0.0
        self.displayed_frequency = 0.0
        self.silence_timer = 0.0
        self.last_result = self._idle_result(False, 0.0, 0.0)

    def _idle_result(self, is_voice: bool, energy: float, noise_floor: float) -> TrackerResult:
        return TrackerResult(TrackerResult.IDLE, is_voice=is_voice,
                             energy=energy, noise_floor=noise_floor)

    def process_block(self, block: np.ndarray, dt: Optional[float] = None) -> TrackerResult:
        """
        Run one block through the pipeline.

        Args:
            block: Mono samples, exactly block_length long
            dt: Seconds since the previous call (default: block duration)

        Returns:
            TrackerResult for this block
        """
        block = np.asarray(block, dtype=np.float64)
        if block.ndim != 1 or len(block) != self.block_length:
            raise ValueError(
                f"Expected a 1-D block of {self.block_length} samples, got shape {block.shape}"
            )
        if dt is None:
            dt = self.block_duration
        dt = max(0.0, float(dt))

        filtered, energy = self.filter.process(block, self.sample_rate, out=self._filtered)
        is_voice = self.gate.update(energy)
        noise_floor = self.gate.noise_floor

        if is_voice:
            self.silence_timer = 0.0

            pitch = self.estimator.estimate(filtered, self.sample_rate)
            if self.config.min_frequency < pitch < self.config.max_frequency:
                factor = float(np.clip(dt * self.config.smoothing, 0.0, 1.0))
                self.displayed_frequency += factor * (pitch - self.displayed_frequency)

            result = TrackerResult(
                TrackerResult.VOICED,
                frequency=self.displayed_frequency,
                note=frequency_to_note(self.displayed_frequency, self.config.min_frequency),
                is_voice=True,
                raw_pitch=pitch,
                energy=energy,
                noise_floor=noise_floor
            )
        else:
            self.silence_timer += dt
            if self.silence_timer > self.config.hold_duration or self.last_result.is_idle:
                result = self._idle_result(False, energy, noise_floor)
            else:
                last = self.last_result
                result = TrackerResult(
                    TrackerResult.HELD,
                    frequency=last.frequency,
                    note=last.note,
                    is_voice=False,
                    energy=energy,
                    noise_floor=noise_floor
                )

        self.last_result = result
        return result
