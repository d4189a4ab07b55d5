#!/usr/bin/env python3
"""
Autocorrelation Pitch Estimator

Estimates the fundamental frequency of one filtered block:
1. Center-clips the block to flatten harmonic structure
2. Computes the raw autocorrelation over the lags of the voice range
3. Picks the FIRST local maximum reaching a fraction of the strongest
   correlation (falls back to the tallest local maximum)
4. Refines the peak position with parabolic interpolation

Taking the earliest strong peak favors the fundamental over its
sub-harmonics, which show up at longer lags and are sometimes taller.
Returns 0.0 whenever no usable peak exists.
"""

import numpy as np
from typing import Tuple, Optional


class PitchEstimator:
    """Center-clipped autocorrelation with first-significant-peak selection."""

    def __init__(self, min_frequency: float = 50.0, max_frequency: float = 1000.0,
                 peak_norm_threshold: float = 0.3, clip_frac: float = 0.3,
                 block_length: Optional[int] = None):
        """
        Initialize estimator.

        Args:
            min_frequency: Lowest detectable pitch (Hz)
            max_frequency: Highest detectable pitch (Hz)
            peak_norm_threshold: First peak needs corr >= threshold * r0
            clip_frac: Center-clipping level as a fraction of the block's peak amplitude
            block_length: Pre-allocate scratch buffers for this block length
        """
        if min_frequency <= 0 or max_frequency <= min_frequency:
            raise ValueError(f"Invalid frequency range: {min_frequency}-{max_frequency} Hz")

        self.min_frequency = float(min_frequency)
        self.max_frequency = float(max_frequency)
        self.peak_norm_threshold = float(peak_norm_threshold)
        self.clip_frac = float(clip_frac)

        self._clipped = np.zeros(0)
        self._corr = np.zeros(0)
        if block_length is not None:
            self._allocate(block_length)

    def _allocate(self, block_length: int):
        if len(self._clipped) != block_length:
            self._clipped = np.zeros(block_length)
            self._corr = np.zeros(block_length // 2)

    @property
    def last_correlation(self) -> np.ndarray:
        """Autocorrelation buffer from the most recent estimate (read-only view)."""
        view = self._corr.view()
        view.flags.writeable = False
        return view

    def lag_range(self, block_length: int, sample_rate: int) -> Tuple[int, int]:
        """
        Lags (in samples) that cover the frequency range.

        Returns:
            (min_lag, max_lag); min_lag > max_lag means the block is too short
        """
        half = block_length // 2
        min_lag = max(2, int(np.floor(sample_rate / self.max_frequency)))
        max_lag = min(half - 2, int(np.ceil(sample_rate / self.min_frequency)))
        return min_lag, max_lag

    def center_clip(self, block: np.ndarray) -> np.ndarray:
        """Center-clip a block into the scratch buffer."""
        self._allocate(len(block))
        if len(block) == 0:
            return self._clipped

        clip_level = self.clip_frac * float(np.max(np.abs(block)))
        clipped = self._clipped
        clipped[:] = 0.0
        above = block > clip_level
        below = block < -clip_level
        clipped[above] = block[above] - clip_level
        clipped[below] = block[below] + clip_level
        return clipped

    def autocorrelate(self, clipped: np.ndarray, min_lag: int, max_lag: int) -> np.ndarray:
        """
        Raw (unnormalized) autocorrelation for lags min_lag..max_lag.

        Every other lag of the returned buffer is zero.
        """
        n = len(clipped)
        corr = self._corr
        corr[:] = 0.0
        for lag in range(min_lag, max_lag + 1):
            corr[lag] = np.dot(clipped[:n - lag], clipped[lag:])
        return corr

    def pick_peak(self, corr: np.ndarray, min_lag: int, max_lag: int) -> int:
        """
        Choose the lag of the fundamental.

        Scans lags min_lag+1 .. max_lag-2 and returns the first local maximum
        with corr[lag] / r0 >= peak_norm_threshold, r0 being the largest
        correlation in range. Falls back to the tallest local maximum.

        Returns:
            Best lag, or -1 if there is no local maximum at all
        """
        r0 = float(np.max(corr[min_lag:max_lag + 1]))

        lags = np.arange(min_lag + 1, max_lag - 1)
        if len(lags) == 0:
            return -1

        values = corr[lags]
        is_peak = (values > corr[lags - 1]) & (values > corr[lags + 1])
        if not np.any(is_peak):
            return -1

        if r0 > 1e-9:
            norm = values / r0
        else:
            norm = np.zeros_like(values)

        strong = np.flatnonzero(is_peak & (norm >= self.peak_norm_threshold))
        if len(strong) > 0:
            # First strong peak = fundamental
            return int(lags[strong[0]])

        peak_lags = lags[is_peak]
        return int(peak_lags[np.argmax(corr[peak_lags])])

    @staticmethod
    def parabolic_offset(y1: float, y2: float, y3: float) -> float:
        """Sub-sample offset of a peak from three neighbouring values."""
        denom = y1 - 2.0 * y2 + y3
        if abs(denom) > 1e-9:
            return 0.5 * (y1 - y3) / denom
        return 0.0

    def estimate(self, block: np.ndarray, sample_rate: int) -> float:
        """
        Estimate the fundamental frequency of a filtered block.

        Args:
            block: Filtered mono samples
            sample_rate: Sample rate in Hz

        Returns:
            Frequency in Hz, or 0.0 if no pitch was found
        """
        block = np.asarray(block, dtype=np.float64)
        min_lag, max_lag = self.lag_range(len(block), sample_rate)
        if min_lag > max_lag:
            self._allocate(len(block))
            self._corr[:] = 0.0
            return 0.0

        clipped = self.center_clip(block)
        corr = self.autocorrelate(clipped, min_lag, max_lag)

        best_lag = self.pick_peak(corr, min_lag, max_lag)
        if best_lag < 0:
            return 0.0

        offset = self.parabolic_offset(corr[best_lag - 1], corr[best_lag], corr[best_lag + 1])
        refined_lag = float(np.clip(best_lag + offset, min_lag, max_lag))

        return sample_rate / refined_lag
