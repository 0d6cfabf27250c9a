"""
================================================================================
VIDEO PROCESSOR MODULE
================================================================================
Video metadata and random-access frame extraction.

The frame pipeline samples on its own time grid (not every decoded frame), so
frames are fetched by timestamp through a VideoReader rather than iterated.
================================================================================
"""

from pathlib import Path
from typing import Union, List, Optional
from dataclasses import dataclass

import numpy as np
import cv2

from configs.config import DanceSageConfig
from dancesage.errors import NoVideoTrackError, FrameExtractionError


# ==============================================================================
# DATA STRUCTURES
# ==============================================================================

@dataclass
class VideoMetadata:
    """Container for video file metadata."""
    filepath: Path
    width: int
    height: int
    fps: float
    frame_count: int
    duration: float
    codec: str

    def __str__(self) -> str:
        return (
            f"Video: {self.filepath.name}\n"
            f"  Resolution: {self.width}x{self.height}\n"
            f"  FPS: {self.fps:.2f}\n"
            f"  Duration: {self.duration:.2f}s ({self.frame_count} frames)\n"
            f"  Codec: {self.codec}"
        )


def _read_metadata(cap: cv2.VideoCapture, video_path: Path) -> VideoMetadata:
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    fps = cap.get(cv2.CAP_PROP_FPS)
    frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
    duration = frame_count / fps if fps > 0 else 0.0

    fourcc_int = int(cap.get(cv2.CAP_PROP_FOURCC))
    codec = "".join([chr((fourcc_int >> 8 * i) & 0xFF) for i in range(4)])

    if width <= 0 or height <= 0 or frame_count <= 0:
        raise NoVideoTrackError(f"No video track in: {video_path}")

    return VideoMetadata(
        filepath=video_path,
        width=width,
        height=height,
        fps=fps,
        frame_count=frame_count,
        duration=duration,
        codec=codec,
    )


def _open_capture(video_path: Path) -> cv2.VideoCapture:
    if not video_path.exists():
        raise FileNotFoundError(f"Video not found: {video_path}")

    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        cap.release()
        raise NoVideoTrackError(f"Cannot open video: {video_path}")
    return cap


# ==============================================================================
# VIDEO READER
# ==============================================================================

class VideoReader:
    """
    Open handle on one video for timestamp-based frame extraction.

    Example:
        >>> with VideoProcessor().open("salsa.mp4") as reader:
        ...     frame = reader.read_at(1.5)
    """

    def __init__(self, video_path: Union[str, Path]):
        self.video_path = Path(video_path)
        self._cap = _open_capture(self.video_path)
        try:
            self.metadata = _read_metadata(self._cap, self.video_path)
        except NoVideoTrackError:
            self._cap.release()
            raise

    def read_at(self, timestamp: float) -> np.ndarray:
        """Decode the frame shown at `timestamp` seconds (BGR, rotation applied)."""
        if self._cap is None:
            raise FrameExtractionError(timestamp, "reader is closed")

        self._cap.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
        ret, frame = self._cap.read()
        if not ret or frame is None:
            raise FrameExtractionError(timestamp, "decoder returned no image")
        return frame

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self) -> "VideoReader":
        return self

    def __exit__(self, *args) -> None:
        self.close()


# ==============================================================================
# VIDEO PROCESSOR CLASS
# ==============================================================================

class VideoProcessor:
    """Media access for the frame pipeline."""

    def __init__(self, config: Optional[DanceSageConfig] = None):
        self.config = config or DanceSageConfig()

    def get_metadata(self, video_path: Union[str, Path]) -> VideoMetadata:
        """Extract metadata from a video file."""
        video_path = Path(video_path)
        cap = _open_capture(video_path)
        try:
            return _read_metadata(cap, video_path)
        finally:
            cap.release()

    def open(self, video_path: Union[str, Path]) -> VideoReader:
        return VideoReader(video_path)

    def extract_frame(self, video_path: Union[str, Path], timestamp: float) -> np.ndarray:
        """One-off still extraction. Use open() when reading many frames."""
        with self.open(video_path) as reader:
            return reader.read_at(timestamp)

    def find_videos(self, directory: Optional[Union[str, Path]] = None) -> List[Path]:
        """Find all supported video files in a directory."""
        directory = Path(directory or self.config.video.input_dir)

        if not directory.exists():
            return []

        videos = []
        for ext in self.config.video.supported_formats:
            videos.extend(directory.glob(f"*{ext}"))
            videos.extend(directory.glob(f"*{ext.upper()}"))

        return sorted(set(videos))
