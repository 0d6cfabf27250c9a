"""
================================================================================
BEAT DETECTOR MODULE
================================================================================
Energy-onset beat tracking tuned for fast partner-dance music (salsa runs at
roughly 180-220 BPM).

Pipeline:
    1. Decode mono audio at 44.1 kHz
    2. RMS energy over 2048-sample windows, 512-sample hop (~86 Hz)
    3. Onset strength = positive first difference of the energy curve
    4. Threshold = mean + 1.5 * std of the onset curve
    5. Beats = local maxima above threshold, at least 0.27 s apart
    6. BPM from the inter-beat intervals inside the tempo band

Missing or undecodable audio is not an error: it yields an empty BeatTrack
with BPM 0, which callers treat as "tempo unavailable".
================================================================================
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import librosa
from scipy.signal import argrelmax

from configs.config import BeatConfig, DanceSageConfig


@dataclass(frozen=True)
class BeatTrack:
    """Beat timestamps (seconds, ascending) and the tempo estimated from them."""
    beats: Tuple[float, ...] = ()
    bpm: float = 0.0

    def __len__(self) -> int:
        return len(self.beats)

    def __iter__(self):
        return iter(self.beats)

    @property
    def is_empty(self) -> bool:
        return not self.beats

    @property
    def bpm_available(self) -> bool:
        return self.bpm > 0

    def to_dict(self) -> Dict[str, Any]:
        return {"bpm": self.bpm, "num_beats": len(self.beats), "beats": list(self.beats)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BeatTrack":
        return cls(beats=tuple(float(b) for b in data["beats"]), bpm=float(data["bpm"]))


# ==============================================================================
# SIGNAL PROCESSING
# ==============================================================================

def onset_strength(
    samples: np.ndarray,
    window_size: int = 2048,
    hop_size: int = 512,
) -> np.ndarray:
    """
    Half-wave rectified first difference of the RMS energy curve.

    Returns an empty array when the signal is too short for two windows.
    """
    samples = np.asarray(samples, dtype=np.float32)
    if len(samples) <= window_size:
        return np.empty(0)

    energy = librosa.feature.rms(
        y=samples, frame_length=window_size, hop_length=hop_size, center=False
    )[0].astype(np.float64)
    if len(energy) < 2:
        return np.empty(0)

    onset = np.zeros_like(energy)
    onset[1:] = np.maximum(0.0, np.diff(energy))
    return onset


def adaptive_threshold(onset: np.ndarray, num_std: float = 1.5) -> float:
    """mean + num_std * (population) standard deviation."""
    if len(onset) == 0:
        return 0.0
    return float(np.mean(onset) + num_std * np.std(onset))


def pick_beats(
    onset: np.ndarray,
    threshold: float,
    min_gap_frames: int,
) -> np.ndarray:
    """
    Frame indices of accepted beats.

    Candidates are strict local maxima above the threshold. They are accepted
    in time order, each at least `min_gap_frames` after the last accepted one.
    """
    if len(onset) < 3:
        return np.empty(0, dtype=int)

    peaks = argrelmax(onset)[0]
    accepted = []
    last_index = -min_gap_frames
    for i in peaks:
        if onset[i] > threshold and (i - last_index) >= min_gap_frames:
            accepted.append(int(i))
            last_index = i
    return np.array(accepted, dtype=int)


def estimate_bpm(
    beats: Sequence[float],
    tempo_band: Tuple[float, float] = (0.27, 0.35),
) -> float:
    """
    Tempo from beat timestamps.

    Intervals inside `tempo_band` are averaged. With none in band, falls back
    to the median of all intervals (upper middle for an even count). Fewer
    than two beats gives 0.
    """
    if len(beats) < 2:
        return 0.0

    intervals = np.diff(np.asarray(beats, dtype=float))
    low, high = tempo_band
    in_band = intervals[(intervals >= low) & (intervals <= high)]

    if len(in_band) > 0:
        return float(60.0 / np.mean(in_band))

    ordered = np.sort(intervals)
    median = ordered[len(ordered) // 2]
    if median <= 0:
        return 0.0
    return float(60.0 / median)


# ==============================================================================
# BEAT DETECTOR CLASS
# ==============================================================================

class BeatDetector:
    """
    Example:
        >>> detector = BeatDetector()
        >>> track = detector.detect_beats("salsa.mp4")
        >>> print(f"{len(track)} beats at {track.bpm:.0f} BPM")
    """

    def __init__(self, config: Optional[DanceSageConfig] = None):
        self.config = config or DanceSageConfig()
        self.is_processing = False

    @property
    def beat_config(self) -> BeatConfig:
        return self.config.beats

    def load_audio(self, audio_path: Union[str, Path]) -> Optional[np.ndarray]:
        """Decode mono samples, or None if the file has no usable audio track."""
        audio_path = Path(audio_path)
        if not audio_path.exists():
            raise FileNotFoundError(f"Media not found: {audio_path}")

        try:
            samples, _ = librosa.load(
                str(audio_path), sr=self.beat_config.sample_rate, mono=True
            )
        except Exception as e:
            print(f"⚠ No audio track decoded from {audio_path.name}: {e}")
            return None
        return samples

    def detect_beats(self, audio_path: Union[str, Path]) -> BeatTrack:
        """Decode the audio of a media file and track its beats."""
        self.is_processing = True
        try:
            samples = self.load_audio(audio_path)
            if samples is None or len(samples) == 0:
                print("⚠ No audio samples, tempo unavailable")
                return BeatTrack()

            if self.config.verbose:
                print(f"🎵 Extracted {len(samples)} audio samples")
            track = self.detect_beats_from_samples(samples, self.beat_config.sample_rate)
        finally:
            self.is_processing = False

        if self.config.verbose:
            print(f"🎵 Beat detection complete: {len(track)} beats at {int(track.bpm)} BPM")
        return track

    def detect_beats_from_samples(self, samples: np.ndarray, sample_rate: int) -> BeatTrack:
        """Beat tracking on already-decoded mono samples."""
        cfg = self.beat_config
        onset = onset_strength(samples, cfg.window_size, cfg.hop_size)
        if len(onset) == 0:
            return BeatTrack()

        threshold = adaptive_threshold(onset, cfg.threshold_std)
        min_gap_frames = int(cfg.min_beat_interval * sample_rate / cfg.hop_size)
        indices = pick_beats(onset, threshold, min_gap_frames)

        beats = tuple(float(i * cfg.hop_size / sample_rate) for i in indices)
        return BeatTrack(beats=beats, bpm=estimate_bpm(beats, cfg.tempo_band))
