#!/usr/bin/env python3
"""
Track Pitch From File

Replays an audio file through PitchTracker one fixed-size block at a time,
the way a live microphone feed would arrive, and reports the notes found.

Usage:
    python track_pitch_file.py --audio hum.wav
    python track_pitch_file.py --audio whistle.wav --lp-cutoff 2000 --visualize
    python track_pitch_file.py --write-tone 220 --output a3.wav
"""

import argparse
import numpy as np
import librosa
import soundfile as sf
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from pitch_tracker import PitchTracker, TrackerConfig, TrackerResult
from pitch_utils import calculate_pitch_statistics


def load_mono_audio(audio_path: str, sr: Optional[int] = None) -> Tuple[np.ndarray, int]:
    """
    Load an audio file as mono float samples.

    Args:
        audio_path: Path to any file librosa can read
        sr: Target sample rate (None = keep the file's native rate)

    Returns:
        (samples, sample_rate)
    """
    audio_path = Path(audio_path)
    if not audio_path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    audio, sample_rate = librosa.load(str(audio_path), sr=sr, mono=True)
    return audio, int(sample_rate)


def iter_blocks(audio: np.ndarray, block_size: int) -> Iterator[np.ndarray]:
    """Yield consecutive blocks of block_size samples, zero-padding the last one."""
    if block_size <= 0:
        raise ValueError(f"Block size must be positive (got {block_size})")

    for start in range(0, len(audio), block_size):
        block = audio[start:start + block_size]
        if len(block) < block_size:
            block = np.pad(block, (0, block_size - len(block)))
        yield block


def synthesize_tone(frequency: float, duration: float, sr: int = 44100,
                    harmonics: Optional[List[float]] = None,
                    amplitude: float = 0.5) -> np.ndarray:
    """
    Generate a test tone.

    Args:
        frequency: Fundamental in Hz
        duration: Length in seconds
        sr: Sample rate
        harmonics: Relative amplitudes of harmonics 2, 3, ... (e.g. [0.6] adds
                   the second harmonic at 60%)
        amplitude: Peak amplitude of the fundamental

    Returns:
        float32 samples
    """
    t = np.arange(int(round(duration * sr))) / sr
    tone = np.sin(2 * np.pi * frequency * t)
    for i, level in enumerate(harmonics or [], start=2):
        tone += level * np.sin(2 * np.pi * frequency * i * t)
    return (amplitude * tone).astype(np.float32)


class FilePitchTracker:
    """Feeds an audio file through PitchTracker block by block."""

    def __init__(self, audio_path: str, block_size: int = 2048, sr: Optional[int] = None,
                 config: Optional[TrackerConfig] = None):
        """
        Initialize file tracker.

        Args:
            audio_path: Path to audio file
            block_size: Samples per block
            sr: Sample rate to resample to (None = native)
            config: Tracker parameters
        """
        self.audio_path = Path(audio_path)
        self.block_size = block_size
        self.config = config if config is not None else TrackerConfig()

        print(f"Loading audio file: {self.audio_path}")
        self.audio, self.sr = load_mono_audio(audio_path, sr=sr)
        print(f"Loaded audio: {len(self.audio) / self.sr:.2f}s @ {self.sr}Hz")

        self.tracker = PitchTracker(self.sr, block_length=block_size, config=self.config)
        self.frames = None

    def track(self) -> List[dict]:
        """
        Run the whole file through a fresh tracker.

        Returns:
            One dict per block: 'time' (block start, seconds) plus the
            TrackerResult fields
        """
        self.tracker.reset()
        frames = []
        for i, block in enumerate(iter_blocks(self.audio, self.block_size)):
            result = self.tracker.process_block(block)
            frame = {'time': i * self.block_size / self.sr}
            frame.update(result.to_dict())
            frames.append(frame)

        self.frames = frames
        voiced = sum(1 for f in frames if f['is_voice'])
        print(f"Tracked {len(frames)} blocks, {voiced} voiced")
        return frames

    def _require_frames(self):
        if self.frames is None:
            raise ValueError("Must track the file first")

    def note_changes(self) -> List[Tuple[float, str]]:
        """
        Times at which the reported note changes.

        Returns:
            List of (time, note) with note = '' when the tracker goes idle
        """
        self._require_frames()

        changes = []
        current = None
        for frame in self.frames:
            note = '' if frame['state'] == TrackerResult.IDLE else frame['note']
            if note != current:
                changes.append((frame['time'], note))
                current = note
        return changes

    def get_statistics(self) -> dict:
        """Pitch statistics over the voiced blocks."""
        self._require_frames()

        raw = np.array([f['raw_pitch'] for f in self.frames])
        voiced = np.array([f['is_voice'] for f in self.frames], dtype=bool)
        in_range = (raw > self.config.min_frequency) & (raw < self.config.max_frequency)

        stats = calculate_pitch_statistics(raw, voiced & in_range)
        stats['num_blocks'] = len(self.frames)
        stats['voiced_blocks'] = int(np.sum(voiced))
        stats['duration'] = len(self.audio) / self.sr
        return stats

    def visualize(self, output_path: Optional[str] = None, figsize: tuple = (14, 8)):
        """
        Plot the waveform and the tracked frequency.

        Args:
            output_path: Save to this path (None = show interactively)
            figsize: Figure size
        """
        import matplotlib.pyplot as plt
        import librosa.display

        self._require_frames()

        times = np.array([f['time'] for f in self.frames])
        shown = np.array([np.nan if f['state'] == TrackerResult.IDLE else f['frequency']
                          for f in self.frames])
        raw = np.array([f['raw_pitch'] if f['raw_pitch'] > 0 else np.nan
                        for f in self.frames])

        fig, axes = plt.subplots(2, 1, figsize=figsize, sharex=True)

        librosa.display.waveshow(self.audio, sr=self.sr, ax=axes[0], color='royalblue', alpha=0.6)
        axes[0].set_title('Audio Waveform')
        axes[0].set_ylabel('Amplitude')

        axes[1].plot(times, raw, '.', color='gray', alpha=0.5, label='Raw estimate')
        axes[1].plot(times, shown, color='crimson', linewidth=2, label='Displayed')
        axes[1].set_title(f'Tracked Pitch (block = {self.block_size} samples)')
        axes[1].set_ylabel('Frequency (Hz)')
        axes[1].set_xlabel('Time (s)')
        axes[1].set_ylim([0, self.config.max_frequency * 1.05])
        axes[1].legend()
        axes[1].grid(True, alpha=0.3)

        plt.tight_layout()

        if output_path:
            plt.savefig(output_path, dpi=150, bbox_inches='tight')
            print(f"Visualization saved to: {output_path}")
        else:
            plt.show()

        plt.close()


def build_config(args) -> TrackerConfig:
    """Merge a JSON config file with command-line overrides."""
    params = {}
    if args.config:
        params.update(TrackerConfig.from_json(args.config).to_dict())

    overrides = {
        'smoothing': args.smoothing,
        'hold_duration': args.hold,
        'hp_cutoff': args.hp_cutoff,
        'lp_cutoff': args.lp_cutoff,
        'gate_ratio': args.gate_ratio,
        'noise_adapt': args.noise_adapt,
    }
    params.update({k: v for k, v in overrides.items() if v is not None})
    return TrackerConfig(**params)


def main():
    parser = argparse.ArgumentParser(
        description='Track the pitch of a hummed or whistled recording block by block'
    )
    parser.add_argument('--audio', help='Path to audio file')
    parser.add_argument('--block-size', type=int, default=2048,
                       help='Samples per analysis block (default: 2048)')
    parser.add_argument('--sr', type=int, default=None,
                       help='Resample to this rate (default: native)')
    parser.add_argument('--config', default=None,
                       help='JSON file with tracker parameters')
    parser.add_argument('--smoothing', type=float, default=None,
                       help='Reaction speed, higher = faster but jumpier (default: 10)')
    parser.add_argument('--hold', type=float, default=None,
                       help='Seconds to hold the last note after silence (default: 1.5)')
    parser.add_argument('--hp-cutoff', type=float, default=None,
                       help='High-pass cutoff in Hz (default: 80)')
    parser.add_argument('--lp-cutoff', type=float, default=None,
                       help='Low-pass cutoff in Hz (default: 1500, try 2000 for whistles)')
    parser.add_argument('--gate-ratio', type=float, default=None,
                       help='Voice must be this many times the noise floor (default: 1.8)')
    parser.add_argument('--noise-adapt', type=float, default=None,
                       help='Noise floor adaptation rate (default: 0.01)')
    parser.add_argument('--quiet', action='store_true',
                       help='Only print the summary')
    parser.add_argument('--visualize', action='store_true',
                       help='Plot waveform and tracked pitch')
    parser.add_argument('--viz-output', default=None,
                       help='Path to save visualization')
    parser.add_argument('--write-tone', type=float, default=None, metavar='HZ',
                       help='Write a test tone at this frequency instead of tracking')
    parser.add_argument('--duration', type=float, default=2.0,
                       help='Test tone duration in seconds (default: 2.0)')
    parser.add_argument('--output', default=None,
                       help='Output WAV path for --write-tone')

    args = parser.parse_args()

    if args.write_tone is not None:
        if not args.output:
            parser.error('--write-tone requires --output')
        sr = args.sr or 44100
        tone = synthesize_tone(args.write_tone, args.duration, sr=sr)
        sf.write(args.output, tone, sr)
        print(f"Wrote {args.duration:.2f}s tone at {args.write_tone:.2f} Hz to: {args.output}")
        return

    if not args.audio:
        parser.error('--audio is required')

    try:
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    file_tracker = FilePitchTracker(args.audio, block_size=args.block_size,
                                    sr=args.sr, config=config)
    file_tracker.track()

    if not args.quiet:
        print("\n=== Note Changes ===")
        for time, note in file_tracker.note_changes():
            print(f"{time:8.3f}s  {note or '(listening)'}")

    stats = file_tracker.get_statistics()
    print("\n=== Pitch Statistics ===")
    for key, value in stats.items():
        if isinstance(value, float):
            print(f"{key}: {value:.3f}")
        else:
            print(f"{key}: {value}")

    if args.visualize:
        file_tracker.visualize(output_path=args.viz_output)

    print("\n✓ Pitch tracking complete!")


if __name__ == '__main__':
    main()
