"""
================================================================================
DANCESAGE CONFIGURATION
================================================================================
This configuration file centralizes all settings for the dance analysis
pipeline. Modify these values to customize behavior without touching core logic.

Project: Dance pose tracking & beat counting
Backends: Ultralytics YOLO-Pose (COCO-17) or MediaPipe Pose (33 landmarks)

CONFIGURATION SECTIONS:
    1. Device Settings - Hardware acceleration options
    2. Landmark Settings - Pose backend selection
    3. Normalizer Settings - Canonical skeleton mapping
    4. Display Settings - Aspect-fill coordinate mapping
    5. Tracker Settings - Multi-person slot assignment
    6. Video Processing - Frame sampling
    7. Live Settings - Camera stream throttling
    8. Beat Settings - Onset detection and tempo estimation
    9. Output Settings - File paths
================================================================================
"""

from dataclasses import dataclass, field
from typing import Tuple, Optional
from pathlib import Path
import torch


# ==============================================================================
# SECTION 1: DEVICE SETTINGS
# ==============================================================================
# Device Priority:
#   1. MPS (Apple Silicon GPU)
#   2. CUDA (NVIDIA GPU)
#   3. CPU - Fallback, always available
#
# Only the YOLO backend uses this; MediaPipe picks its own delegate.
# ==============================================================================

@dataclass
class DeviceConfig:
    """
    Hardware device configuration for YOLO-Pose inference.

    Attributes:
        preferred_device: Target device string ('mps', 'cuda', 'cpu')
        fallback_to_cpu: If True, falls back to CPU when the device is missing
    """
    preferred_device: str = "mps"
    fallback_to_cpu: bool = True

    def get_device(self, verbose: bool = True) -> str:
        """
        Determines the best available device for inference.

        Returns:
            str: Device string compatible with Ultralytics YOLO

        Raises:
            RuntimeError: If preferred device unavailable and fallback disabled
        """
        if self.preferred_device == "mps":
            if torch.backends.mps.is_available() and torch.backends.mps.is_built():
                if verbose:
                    print("✓ MPS (Metal Performance Shaders) backend available")
                return "mps"

            if self.fallback_to_cpu:
                if verbose:
                    print("⚠ MPS unavailable, falling back to CPU")
                return "cpu"
            raise RuntimeError("MPS device requested but not available")

        if self.preferred_device in ("cuda", "0"):
            if torch.cuda.is_available():
                if verbose:
                    print(f"✓ CUDA available: {torch.cuda.get_device_name(0)}")
                return "cuda"

            if self.fallback_to_cpu:
                if verbose:
                    print("⚠ CUDA unavailable, falling back to CPU")
                return "cpu"
            raise RuntimeError("CUDA device requested but not available")

        if verbose:
            print("→ Using CPU for inference")
        return "cpu"


# ==============================================================================
# SECTION 2: LANDMARK SETTINGS
# ==============================================================================
# Two backends, selected by name:
#   - "yolo":      Ultralytics YOLO-Pose, multi-person, 17 COCO keypoints
#   - "mediapipe": MediaPipe Pose, single person, 33 landmarks
#
# Partner dancing needs "yolo"; "mediapipe" is fine for solo styling work.
# ==============================================================================

LANDMARK_BACKENDS: Tuple[str, ...] = ("yolo", "mediapipe")


@dataclass
class LandmarkConfig:
    """
    Pose backend configuration.

    Attributes:
        backend: One of LANDMARK_BACKENDS
        model_name: YOLO-Pose weights (auto-downloaded on first use)
        confidence_threshold: Minimum person detection confidence (0-1)
        iou_threshold: IoU threshold for NMS
        max_people: Maximum people to detect per frame
        mediapipe_complexity: MediaPipe model complexity (0, 1, 2)
    """
    backend: str = "yolo"
    model_name: str = "yolov8m-pose.pt"
    confidence_threshold: float = 0.5
    iou_threshold: float = 0.7
    max_people: int = 2
    mediapipe_complexity: int = 2
    warmup: bool = True


# ==============================================================================
# SECTION 3: NORMALIZER SETTINGS
# ==============================================================================
# Every backend is mapped onto the same 17-joint canonical skeleton:
#   0: nose          5: left_shoulder   10: right_wrist   15: left_ankle
#   1: left_eye      6: right_shoulder  11: left_hip      16: right_ankle
#   2: right_eye     7: left_elbow      12: right_hip
#   3: left_ear      8: right_elbow     13: left_knee
#   4: right_ear     9: left_wrist      14: right_knee
# Joints below min_confidence become the (-1, -1) sentinel.
# ==============================================================================

@dataclass
class NormalizerConfig:
    """Canonical skeleton mapping."""

    min_confidence: float = 0.1

    joint_names: Tuple[str, ...] = (
        "nose",
        "left_eye",
        "right_eye",
        "left_ear",
        "right_ear",
        "left_shoulder",
        "right_shoulder",
        "left_elbow",
        "right_elbow",
        "left_wrist",
        "right_wrist",
        "left_hip",
        "right_hip",
        "left_knee",
        "right_knee",
        "left_ankle",
        "right_ankle",
    )

    def get_joint_index(self, name: str) -> int:
        """Get canonical index for a joint by name."""
        return self.joint_names.index(name)


# ==============================================================================
# SECTION 4: DISPLAY SETTINGS
# ==============================================================================
# When the display fills its viewport and crops the overflow ("aspect fill"),
# keypoints must be remapped into display space before tracking, otherwise the
# tracker's distance cutoff is measured in the wrong units.
#
# display_aspect = width / height of the viewport (portrait phone ~0.46).
# None disables the crop mapping.
# ==============================================================================

@dataclass
class DisplayConfig:
    """Aspect-fill display mapping."""

    aspect_fill: bool = False
    display_aspect: Optional[float] = None


# ==============================================================================
# SECTION 5: TRACKER SETTINGS
# ==============================================================================
# match_distance is in normalized display units: 0.3 = 30% of the frame.
# Tuned for two dancers at a typical phone-camera distance.
# ==============================================================================

@dataclass
class TrackerConfig:
    """Multi-person slot assignment."""

    match_distance: float = 0.3


# ==============================================================================
# SECTION 6: VIDEO PROCESSING SETTINGS
# ==============================================================================

@dataclass
class VideoConfig:
    """
    Video processing configuration.

    Attributes:
        input_dir: Directory containing source videos
        supported_formats: Video file extensions to process
        target_fps: Sampling rate cap (None = native frame rate)
        detection_workers: Threads for landmark detection (1 = sequential)
        progress_every: Print progress every N sampled frames

    Sampling never exceeds the native rate, so slow-motion sources are not
    oversampled.
    """

    input_dir: Path = field(default_factory=lambda: Path("./videos"))
    supported_formats: Tuple[str, ...] = (".mp4", ".mov", ".avi", ".mkv", ".m4v")
    target_fps: Optional[float] = 30.0
    detection_workers: int = 1
    progress_every: int = 30


# ==============================================================================
# SECTION 7: LIVE SETTINGS
# ==============================================================================
# Camera frames arrive at sensor rate. Frames closer than min_interval_ms to
# the last accepted frame are dropped, never queued.
#   - 50 ms (~20 fps): multi-person tracking
#   - 100 ms (~10 fps): single-person overlay
# ==============================================================================

@dataclass
class LiveConfig:
    """Live camera throttling."""

    min_interval_ms: int = 50
    recording_fps: float = 20.0


# ==============================================================================
# SECTION 8: BEAT SETTINGS
# ==============================================================================
# Energy onsets on a 2048/512 RMS curve (~86 Hz at 44.1 kHz).
# The tempo band targets salsa: 171-220 BPM (0.27-0.35 s per beat).
# ==============================================================================

@dataclass
class BeatConfig:
    """Onset detection and tempo estimation."""

    sample_rate: int = 44100
    window_size: int = 2048
    hop_size: int = 512
    threshold_std: float = 1.5
    min_beat_interval: float = 0.27
    tempo_band: Tuple[float, float] = (0.27, 0.35)


# ==============================================================================
# SECTION 9: OUTPUT SETTINGS
# ==============================================================================

@dataclass
class OutputConfig:
    """Output file configuration."""

    output_dir: Path = field(default_factory=lambda: Path("./output"))
    save_keypoints: bool = True

    @property
    def recordings_dir(self) -> Path:
        return self.output_dir / "recordings"

    def setup_directories(self) -> None:
        """Create output directory structure."""
        for subdir in ["keypoints", "recordings"]:
            (self.output_dir / subdir).mkdir(parents=True, exist_ok=True)


# ==============================================================================
# MASTER CONFIGURATION CLASS
# ==============================================================================

@dataclass
class DanceSageConfig:
    """
    Master configuration class combining all settings.

    Usage:
        >>> config = DanceSageConfig()
        >>> config.tracker.match_distance
        0.3
        >>> config.output.setup_directories()
    """

    device: DeviceConfig = field(default_factory=DeviceConfig)
    landmarks: LandmarkConfig = field(default_factory=LandmarkConfig)
    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    video: VideoConfig = field(default_factory=VideoConfig)
    live: LiveConfig = field(default_factory=LiveConfig)
    beats: BeatConfig = field(default_factory=BeatConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    verbose: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        if self.landmarks.backend not in LANDMARK_BACKENDS:
            raise ValueError(
                f"Unknown landmark backend '{self.landmarks.backend}'. "
                f"Choose from: {list(LANDMARK_BACKENDS)}"
            )
        if not 0 <= self.landmarks.confidence_threshold <= 1:
            raise ValueError("confidence_threshold must be between 0 and 1")
        if not 0 <= self.normalizer.min_confidence <= 1:
            raise ValueError("min_confidence must be between 0 and 1")
        if self.tracker.match_distance <= 0:
            raise ValueError("match_distance must be positive")
        if self.video.target_fps is not None and self.video.target_fps <= 0:
            raise ValueError("target_fps must be positive")
        if self.video.detection_workers < 1:
            raise ValueError("detection_workers must be at least 1")
        if self.display.display_aspect is not None and self.display.display_aspect <= 0:
            raise ValueError("display_aspect must be positive")
        if self.beats.hop_size <= 0 or self.beats.window_size < self.beats.hop_size:
            raise ValueError("window_size must be >= hop_size > 0")
        low, high = self.beats.tempo_band
        if not 0 < low <= high:
            raise ValueError("tempo_band must be (low, high) with 0 < low <= high")

    def print_summary(self) -> None:
        """Print a summary of current configuration."""
        print("\n" + "=" * 60)
        print("DANCESAGE CONFIGURATION SUMMARY")
        print("=" * 60)
        print(f"\n[Landmarks]")
        print(f"  Backend: {self.landmarks.backend}")
        if self.landmarks.backend == "yolo":
            print(f"  Model: {self.landmarks.model_name}")
            print(f"  Device: {self.device.preferred_device}")
        print(f"  Max People: {self.landmarks.max_people}")
        print(f"\n[Tracking]")
        print(f"  Match Distance: {self.tracker.match_distance}")
        print(f"  Aspect Fill: {self.display.aspect_fill} ({self.display.display_aspect})")
        print(f"\n[Video]")
        print(f"  Target FPS: {self.video.target_fps}")
        print(f"  Detection Workers: {self.video.detection_workers}")
        print(f"\n[Beats]")
        print(f"  Min Interval: {self.beats.min_beat_interval}s")
        print(f"  Tempo Band: {self.beats.tempo_band}")
        print(f"\n[Output]")
        print(f"  Directory: {self.output.output_dir}")
        print("=" * 60 + "\n")


# ==============================================================================
# PRESET FACTORIES
# ==============================================================================

def get_fast_config() -> DanceSageConfig:
    """Speed-optimized configuration."""
    config = DanceSageConfig()
    config.landmarks.model_name = "yolov8n-pose.pt"
    config.landmarks.warmup = False
    config.video.target_fps = 15.0
    return config


def get_accurate_config() -> DanceSageConfig:
    """Accuracy-optimized configuration."""
    config = DanceSageConfig()
    config.landmarks.model_name = "yolov8x-pose.pt"
    config.landmarks.confidence_threshold = 0.3
    config.video.target_fps = None
    return config


def get_live_config() -> DanceSageConfig:
    """Live camera configuration (portrait phone preview)."""
    config = DanceSageConfig()
    config.landmarks.model_name = "yolov8n-pose.pt"
    config.display.aspect_fill = True
    config.display.display_aspect = 9 / 19.5
    config.live.min_interval_ms = 50
    config.verbose = False
    return config


if __name__ == "__main__":
    config = DanceSageConfig()
    config.print_summary()
