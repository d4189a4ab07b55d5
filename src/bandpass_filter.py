#!/usr/bin/env python3
"""
Band-pass Filter Module

Isolates the voice/whistle band from a raw block of mono samples using two
cascaded one-pole filters:
- High-pass (default 80 Hz) removes rumble and DC offset
- Low-pass (default 1500 Hz) removes hiss and upper harmonics

Filter state carries over from one block to the next, except for the
high-pass "previous input" which restarts at silence on every block.
"""

import numpy as np
from scipy.signal import lfilter, lfiltic
from typing import Tuple


class BandpassFilter:
    """Cascaded one-pole high-pass / low-pass filter with block RMS."""

    def __init__(self, hp_cutoff: float = 80.0, lp_cutoff: float = 1500.0):
        """
        Initialize filter.

        Args:
            hp_cutoff: High-pass cutoff frequency in Hz
            lp_cutoff: Low-pass cutoff frequency in Hz
        """
        if hp_cutoff <= 0 or lp_cutoff <= 0:
            raise ValueError(f"Cutoff frequencies must be positive (got {hp_cutoff}, {lp_cutoff})")

        self.hp_cutoff = float(hp_cutoff)
        self.lp_cutoff = float(lp_cutoff)

        self.hp_state = 0.0
        self.lp_state = 0.0

    def reset(self):
        """Clear both filter states."""
        self.hp_state = 0.0
        self.lp_state = 0.0

    def coefficients(self, sample_rate: int) -> Tuple[float, float]:
        """
        Compute smoothing coefficients for a sample rate.

        Args:
            sample_rate: Sample rate in Hz

        Returns:
            (hp_alpha, lp_alpha)
        """
        if sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive (got {sample_rate})")

        dt = 1.0 / sample_rate
        hp_rc = 1.0 / (2.0 * np.pi * self.hp_cutoff)
        lp_rc = 1.0 / (2.0 * np.pi * self.lp_cutoff)

        hp_alpha = hp_rc / (hp_rc + dt)
        lp_alpha = dt / (lp_rc + dt)
        return hp_alpha, lp_alpha

    def process(self, block: np.ndarray, sample_rate: int,
                out: np.ndarray = None) -> Tuple[np.ndarray, float]:
        """
        Filter one block of samples and measure its energy.

        hp[i] = a_hp * (hp[i-1] + x[i] - x[i-1]), with x[-1] = 0
        lp[i] = lp[i-1] + a_lp * (hp[i] - lp[i-1])

        Args:
            block: Raw mono samples
            sample_rate: Sample rate in Hz
            out: Optional array of the same length to receive the output

        Returns:
            (filtered samples, RMS energy of the filtered block)
        """
        x = np.nan_to_num(np.asarray(block, dtype=np.float64),
                          nan=0.0, posinf=0.0, neginf=0.0)
        hp_alpha, lp_alpha = self.coefficients(sample_rate)

        if out is None:
            out = np.empty(len(x), dtype=np.float64)

        if len(x) == 0:
            return out, 0.0

        # High-pass as y[i] = a*y[i-1] + a*x[i] - a*x[i-1]
        hp_b = [hp_alpha, -hp_alpha]
        hp_a = [1.0, -hp_alpha]
        hp_zi = lfiltic(hp_b, hp_a, y=[self.hp_state], x=[0.0])
        hp, _ = lfilter(hp_b, hp_a, x, zi=hp_zi)

        # Low-pass as y[i] = (1-a)*y[i-1] + a*hp[i]
        lp_b = [lp_alpha]
        lp_a = [1.0, -(1.0 - lp_alpha)]
        lp_zi = lfiltic(lp_b, lp_a, y=[self.lp_state])
        lp, _ = lfilter(lp_b, lp_a, hp, zi=lp_zi)

        self.hp_state = float(hp[-1])
        self.lp_state = float(lp[-1])

        out[:] = lp
        energy = float(np.sqrt(np.mean(lp * lp)))
        return out, energy
