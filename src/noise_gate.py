#!/usr/bin/env python3
"""
Adaptive Noise Gate

Tracks a slowly adapting noise floor from block energy and decides whether
a block is loud enough, relative to that floor, to contain voice.

The floor also adapts while someone is humming, so it creeps upward during
long notes. That keeps the gate responsive to changing background noise.
"""

import numpy as np


class AdaptiveNoiseGate:
    """Exponential-moving-average noise floor with a ratio threshold."""

    def __init__(self, gate_ratio: float = 1.8, noise_adapt: float = 0.01,
                 initial_floor: float = 0.01):
        """
        Initialize gate.

        Args:
            gate_ratio: How much louder than the floor a block must be (1.5-2 typical)
            noise_adapt: Floor adaptation rate per block (0.005-0.03 typical)
            initial_floor: Starting noise floor (must be > 0)
        """
        if gate_ratio <= 0:
            raise ValueError(f"gate_ratio must be positive (got {gate_ratio})")
        if not (0 < noise_adapt <= 1):
            raise ValueError(f"noise_adapt must be in (0, 1] (got {noise_adapt})")
        if initial_floor <= 0:
            raise ValueError(f"initial_floor must be positive (got {initial_floor})")

        self.gate_ratio = float(gate_ratio)
        self.noise_adapt = float(noise_adapt)
        self.initial_floor = float(initial_floor)
        self.noise_floor = self.initial_floor

    @property
    def threshold(self) -> float:
        """Energy a block must exceed to count as voice."""
        return self.noise_floor * self.gate_ratio

    def reset(self):
        self.noise_floor = self.initial_floor

    def update(self, energy: float) -> bool:
        """
        Feed one block's energy into the floor and gate it.

        Args:
            energy: RMS energy of the filtered block

        Returns:
            True if the block is voiced
        """
        if not np.isfinite(energy) or energy < 0:
            energy = 0.0

        self.noise_floor += self.noise_adapt * (energy - self.noise_floor)
        return bool(energy > self.threshold)
