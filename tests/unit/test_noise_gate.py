"""
Unit tests for noise_gate.py - Adaptive noise floor and voice gate.
"""

import pytest
import numpy as np
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from noise_gate import AdaptiveNoiseGate


class TestAdaptiveNoiseGate:
    """Test noise floor tracking and gating."""

    def test_initial_floor(self):
        gate = AdaptiveNoiseGate()
        assert gate.noise_floor == pytest.approx(0.01)
        assert gate.threshold == pytest.approx(0.018)

    def test_floor_moves_toward_energy(self):
        gate = AdaptiveNoiseGate(noise_adapt=0.1, initial_floor=0.01)
        gate.update(0.11)
        assert gate.noise_floor == pytest.approx(0.02)

    def test_floor_converges(self):
        gate = AdaptiveNoiseGate()
        for _ in range(2000):
            gate.update(0.05)
        assert gate.noise_floor == pytest.approx(0.05, rel=1e-3)

    def test_silence_is_not_voice(self):
        gate = AdaptiveNoiseGate()
        assert gate.update(0.0) is False

    def test_loud_block_is_voice(self):
        gate = AdaptiveNoiseGate()
        assert gate.update(0.5) is True

    def test_first_block_does_not_trigger_on_low_energy(self):
        """The non-zero starting floor prevents a false trigger."""
        gate = AdaptiveNoiseGate()
        assert gate.update(0.005) is False

    def _settled_gate(self):
        gate = AdaptiveNoiseGate()
        for _ in range(500):
            gate.update(0.002)
        return gate

    def test_just_above_threshold_is_voice(self):
        gate = self._settled_gate()
        energy = gate.noise_floor * gate.gate_ratio * 1.1
        assert gate.update(energy) is True

    def test_just_below_threshold_is_silence(self):
        gate = self._settled_gate()
        energy = gate.noise_floor * gate.gate_ratio * 0.9
        assert gate.update(energy) is False

    def test_floor_drifts_up_during_voice(self):
        """Long notes slowly raise the floor until the gate closes."""
        gate = AdaptiveNoiseGate()
        results = [gate.update(0.3) for _ in range(300)]
        assert results[0] is True
        assert results[-1] is False
        assert gate.noise_floor > 0.1

    @pytest.mark.parametrize("energy", [np.nan, np.inf, -1.0])
    def test_invalid_energy_treated_as_silence(self, energy):
        gate = AdaptiveNoiseGate()
        assert gate.update(energy) is False
        assert np.isfinite(gate.noise_floor)
        assert gate.noise_floor >= 0

    def test_reset(self):
        gate = AdaptiveNoiseGate()
        gate.update(1.0)
        gate.reset()
        assert gate.noise_floor == pytest.approx(0.01)

    @pytest.mark.parametrize("kwargs", [
        {'gate_ratio': 0},
        {'noise_adapt': 0},
        {'noise_adapt': 1.5},
        {'initial_floor': 0},
    ])
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            AdaptiveNoiseGate(**kwargs)
