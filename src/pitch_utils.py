#!/usr/bin/env python3
"""
Pitch Utilities Module

Conversions between frequency, MIDI note numbers and note names:
- Hz -> nearest equal-tempered note name (A4 = 440 Hz)
- Hz <-> MIDI note number
- Deviation from the nearest note in cents
- Summary statistics for a tracked pitch sequence
"""

import numpy as np
from typing import Union, Optional


# MIDI note names (C0 = MIDI 12, A4 = MIDI 69 = 440 Hz)
NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

A4_HZ = 440.0
A4_MIDI = 69


def hz_to_midi(frequency_hz: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert frequency in Hz to a (fractional) MIDI note number.

    MIDI = 69 + 12 * log2(f / 440). Non-positive frequencies give NaN.

    Examples:
        >>> hz_to_midi(440.0)
        69.0
    """
    if isinstance(frequency_hz, np.ndarray):
        result = np.full(frequency_hz.shape, np.nan)
        valid = frequency_hz > 0
        result[valid] = A4_MIDI + 12 * np.log2(frequency_hz[valid] / A4_HZ)
        return result

    if frequency_hz <= 0:
        return np.nan
    return A4_MIDI + 12 * np.log2(frequency_hz / A4_HZ)


def midi_to_hz(midi_note: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert a MIDI note number to frequency: f = 440 * 2^((MIDI - 69) / 12)."""
    return A4_HZ * np.power(2.0, (midi_note - A4_MIDI) / 12.0)


def midi_to_note_name(midi_note: int) -> str:
    """
    Convert MIDI note number to note name with octave.

    Octave numbering follows MIDI: C4 (middle C) = 60. Works for any
    integer, including negative notes far below the audible range.

    Examples:
        >>> midi_to_note_name(69)
        'A4'
        >>> midi_to_note_name(61)
        'C#4'
    """
    octave = midi_note // 12 - 1
    pitch_class = ((midi_note % 12) + 12) % 12
    return f"{NOTE_NAMES[pitch_class]}{octave}"


def frequency_to_note(frequency_hz: float, min_frequency: float = 50.0) -> str:
    """
    Map a frequency to the nearest equal-tempered note name.

    Args:
        frequency_hz: Frequency in Hz
        min_frequency: Frequencies below this have no note

    Returns:
        Note name such as 'A4', or '' if below min_frequency

    Examples:
        >>> frequency_to_note(440.0)
        'A4'
        >>> frequency_to_note(261.63)
        'C4'
        >>> frequency_to_note(30.0)
        ''
    """
    if not np.isfinite(frequency_hz) or frequency_hz < min_frequency or frequency_hz <= 0:
        return ""

    note_index = int(round(12 * np.log2(frequency_hz / A4_HZ))) + A4_MIDI
    return midi_to_note_name(note_index)


def pitch_distance_cents(freq1_hz: float, freq2_hz: float) -> float:
    """
    Pitch distance from freq1 to freq2 in cents (100 cents = 1 semitone).

    Returns NaN if either frequency is not positive.
    """
    if freq1_hz <= 0 or freq2_hz <= 0:
        return np.nan
    return 1200 * np.log2(freq2_hz / freq1_hz)


def cents_from_nearest_note(frequency_hz: float) -> float:
    """
    How far a frequency sits from its nearest note, in cents (-50 to +50).

    Positive = sharp, negative = flat. Returns 0.0 for non-positive input.
    """
    if not np.isfinite(frequency_hz) or frequency_hz <= 0:
        return 0.0

    nearest = round(hz_to_midi(frequency_hz))
    return float(pitch_distance_cents(midi_to_hz(nearest), frequency_hz))


def calculate_pitch_statistics(pitch_values_hz: np.ndarray,
                               voiced: Optional[np.ndarray] = None) -> dict:
    """
    Calculate statistics for a tracked pitch sequence.

    Args:
        pitch_values_hz: Per-block frequencies in Hz (0 = no pitch)
        voiced: Optional per-block voice flags; unvoiced blocks are ignored

    Returns:
        Dictionary with:
        - median_hz, mean_hz, std_hz
        - min_hz, max_hz
        - note_name: Note of the median pitch
        - stability: 0-1, higher = steadier pitch
        - num_valid_frames: Blocks that contributed
    """
    pitch_values_hz = np.asarray(pitch_values_hz, dtype=np.float64)
    valid_mask = pitch_values_hz > 0
    if voiced is not None:
        valid_mask &= np.asarray(voiced, dtype=bool)
    valid = pitch_values_hz[valid_mask]

    if len(valid) == 0:
        return {
            'median_hz': 0.0,
            'mean_hz': 0.0,
            'std_hz': 0.0,
            'min_hz': 0.0,
            'max_hz': 0.0,
            'note_name': '',
            'stability': 0.0,
            'num_valid_frames': 0
        }

    median_hz = float(np.median(valid))
    mean_hz = float(np.mean(valid))
    std_hz = float(np.std(valid))

    # Inverse coefficient of variation, scaled to 0-1
    stability = float(1.0 / (1.0 + (std_hz / mean_hz) * 10))

    return {
        'median_hz': median_hz,
        'mean_hz': mean_hz,
        'std_hz': std_hz,
        'min_hz': float(np.min(valid)),
        'max_hz': float(np.max(valid)),
        'note_name': frequency_to_note(median_hz, min_frequency=0.0),
        'stability': stability,
        'num_valid_frames': int(len(valid))
    }
