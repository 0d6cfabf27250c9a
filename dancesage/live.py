"""
================================================================================
LIVE SESSION
================================================================================
Streaming variant of the frame pipeline for camera input.

Frames are pushed at sensor rate. Only the latest pose matters for an overlay,
so excess input is dropped instead of queued:
    - frames within min_interval_ms of the last accepted frame are dropped
    - frames arriving while a detection is still running are dropped

A session owns one tracker; start_recording() begins a fresh tracking session
and captures every accepted frame until stop_recording().
================================================================================
"""

import threading
from typing import List, Optional

import numpy as np

from configs.config import DanceSageConfig
from dancesage.errors import FrameDetectionError
from dancesage.landmark_sources import LandmarkSource, create_landmark_source
from dancesage.normalizer import KeypointNormalizer, source_flips_y
from dancesage.skeleton import PoseFrame, Timeline
from dancesage.tracker import MultiPersonTracker
from dancesage.transform import display_transform


class LiveSession:
    """
    Example:
        >>> session = LiveSession.from_config(get_live_config())
        >>> session.start_recording()
        >>> for image, ts_ms in camera:
        ...     frame = session.submit(image, ts_ms)
        >>> timeline = session.stop_recording()
    """

    def __init__(
        self,
        source: LandmarkSource,
        normalizer: Optional[KeypointNormalizer] = None,
        tracker: Optional[MultiPersonTracker] = None,
        min_interval_ms: int = 50,
        display_aspect: Optional[float] = None,
        recording_fps: float = 20.0,
    ):
        self.source = source
        self.normalizer = normalizer or KeypointNormalizer(source.source_kind)
        self.tracker = tracker or MultiPersonTracker()
        self.min_interval_ms = min_interval_ms
        self.display_aspect = display_aspect
        self.recording_fps = recording_fps

        self.latest: Optional[PoseFrame] = None
        self.is_recording = False
        self.dropped_frames = 0
        self._recorded: List[PoseFrame] = []
        self._last_timestamp_ms: Optional[int] = None
        self._frame_counter = 0
        self._busy = threading.Lock()
        self._state_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: DanceSageConfig,
        source: Optional[LandmarkSource] = None,
    ) -> "LiveSession":
        source = source or create_landmark_source(config)
        display = config.display
        return cls(
            source,
            normalizer=KeypointNormalizer(source.source_kind, config.normalizer.min_confidence),
            tracker=MultiPersonTracker(config.tracker.match_distance),
            min_interval_ms=config.live.min_interval_ms,
            display_aspect=display.display_aspect if display.aspect_fill else None,
            recording_fps=config.live.recording_fps,
        )

    def close(self) -> None:
        """Stop recording and release the landmark model."""
        with self._state_lock:
            self.is_recording = False
        self.source.close()

    def __enter__(self) -> "LiveSession":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def reset(self) -> None:
        """Begin a new session: tracker and throttle state start over."""
        with self._state_lock:
            self.tracker.reset()
            self._last_timestamp_ms = None
            self._frame_counter = 0
            self.latest = None

    def submit(self, image: np.ndarray, timestamp_ms: int) -> Optional[PoseFrame]:
        """
        Offer a camera frame. Returns the tracked PoseFrame, or None if the
        frame was dropped or detection failed.
        """
        with self._state_lock:
            if (self._last_timestamp_ms is not None
                    and timestamp_ms - self._last_timestamp_ms <= self.min_interval_ms):
                self.dropped_frames += 1
                return None

        if not self._busy.acquire(blocking=False):
            with self._state_lock:
                self.dropped_frames += 1
            return None

        try:
            with self._state_lock:
                self._last_timestamp_ms = timestamp_ms
            try:
                people = self.source.detect(image)
            except FrameDetectionError as e:
                print(f"❌ Detection error: {e}")
                return None

            self.normalizer.set_transform(display_transform(
                image.shape[1], image.shape[0],
                self.display_aspect, source_flips_y(self.source.source_kind),
            ))
            skeletons = self.normalizer.normalize_all(people)

            with self._state_lock:
                ordered = self.tracker.update(skeletons)
                frame = PoseFrame(
                    frame_idx=self._frame_counter,
                    timestamp=timestamp_ms / 1000.0,
                    skeletons=tuple(ordered),
                )
                self._frame_counter += 1
                self.latest = frame
                if self.is_recording:
                    self._recorded.append(PoseFrame(
                        frame_idx=len(self._recorded),
                        timestamp=frame.timestamp,
                        skeletons=frame.skeletons,
                    ))
            return frame
        finally:
            self._busy.release()

    # --------------------------------------------------------------------------
    # Recording controls
    # --------------------------------------------------------------------------

    def start_recording(self) -> None:
        self.reset()
        with self._state_lock:
            self._recorded = []
            self.is_recording = True
        print("🔴 Recording started")

    def stop_recording(self) -> Timeline:
        with self._state_lock:
            self.is_recording = False
        timeline = self.recorded_timeline()
        print(f"⏹️ Recording stopped - captured {len(timeline)} frames")
        return timeline

    def clear_recording(self) -> None:
        with self._state_lock:
            self._recorded = []
        print("🗑️ Recording cleared")

    def recorded_timeline(self, fps: Optional[float] = None) -> Timeline:
        with self._state_lock:
            return Timeline(frames=list(self._recorded), fps=fps or self.recording_fps)
