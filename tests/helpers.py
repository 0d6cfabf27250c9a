"""Fakes and builders shared by the test modules."""

import threading
import time
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional

import numpy as np

from configs.config import DanceSageConfig
from dancesage.errors import (
    FrameDetectionError,
    FrameExtractionError,
    LandmarkSourceUnavailable,
    NoVideoTrackError,
)
from dancesage.landmark_sources import LandmarkSource, RawLandmark, RawPerson
from dancesage.skeleton import INVALID_POINT, L_HIP, NOSE, R_HIP, Point2D, Skeleton


def quiet_config(**video) -> DanceSageConfig:
    config = DanceSageConfig(verbose=False)
    for key, value in video.items():
        setattr(config.video, key, value)
    return config


def skeleton_at(x: float, y: float, nose_y: Optional[float] = None) -> Skeleton:
    """Skeleton with both hips at (x, y) and everything else missing."""
    points = [INVALID_POINT] * 17
    points[L_HIP] = Point2D(x, y)
    points[R_HIP] = Point2D(x, y)
    if nose_y is not None:
        points[NOSE] = Point2D(x, nose_y)
    return Skeleton(tuple(points))


def coco_person(x: float, y: float, nose_y: float = 0.1, confidence: float = 0.9) -> RawPerson:
    """COCO-17 raw person whose hips sit at (x, y)."""
    joints = [RawLandmark(-5.0, -5.0, 0.0) for _ in range(17)]
    joints[NOSE] = RawLandmark(x, nose_y, confidence)
    joints[L_HIP] = RawLandmark(x - 0.02, y, confidence)
    joints[R_HIP] = RawLandmark(x + 0.02, y, confidence)
    return RawPerson(joints=joints)


class FakeSource(LandmarkSource):
    """
    Scripted landmark source. The frame number is read from the first pixel
    of the image so results do not depend on call order.
    """

    source_kind = "coco17"
    thread_safe = True

    def __init__(
        self,
        script: Callable[[int], List[RawPerson]],
        fail_init: bool = False,
        fail_frames: tuple = (),
    ):
        super().__init__()
        self.script = script
        self.fail_init = fail_init
        self.fail_frames = set(fail_frames)
        self.calls = 0
        self._lock = threading.Lock()

    def initialize(self) -> None:
        if self.fail_init:
            raise LandmarkSourceUnavailable("model file missing")
        self.initialized = True

    def _detect(self, image: np.ndarray) -> List[RawPerson]:
        with self._lock:
            self.calls += 1
        frame_no = int(image[0, 0, 0])
        if frame_no in self.fail_frames:
            raise ValueError("backend hiccup")
        return self.script(frame_no)


class SingleThreadSource(FakeSource):
    """
    FakeSource that must not be shared: it records every thread that used it
    and whether two calls ever overlapped.
    """

    thread_safe = False

    def __init__(self, script, **kwargs):
        super().__init__(script, **kwargs)
        self.threads = set()
        self.overlapped = False
        self.closed = False
        self._in_use = threading.Lock()

    def _detect(self, image: np.ndarray) -> List[RawPerson]:
        if not self._in_use.acquire(blocking=False):
            self.overlapped = True
            return super()._detect(image)
        try:
            self.threads.add(threading.get_ident())
            time.sleep(0.002)
            return super()._detect(image)
        finally:
            self._in_use.release()

    def close(self) -> None:
        self.closed = True
        super().close()


class FakeReader:
    def __init__(self, duration, fps, shape=(90, 160), fail_frames=()):
        self.metadata = SimpleNamespace(duration=duration, fps=fps, width=shape[1], height=shape[0])
        self.shape = shape
        self.fail_frames = set(fail_frames)
        self.closed = False

    def read_at(self, timestamp: float) -> np.ndarray:
        frame_no = int(round(timestamp * self.metadata.fps))
        if frame_no in self.fail_frames:
            raise FrameExtractionError(timestamp, "corrupt packet")
        return np.full((self.shape[0], self.shape[1], 3), frame_no, dtype=np.uint8)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class FakeMedia:
    def __init__(self, duration=1.0, fps=10.0, shape=(90, 160), fail_frames=(), has_video=True):
        self.duration = duration
        self.fps = fps
        self.shape = shape
        self.fail_frames = fail_frames
        self.has_video = has_video
        self.readers: List[FakeReader] = []

    def open(self, video_path):
        if not self.has_video:
            raise NoVideoTrackError(f"No video track in: {video_path}")
        reader = FakeReader(self.duration, self.fps, self.shape, self.fail_frames)
        self.readers.append(reader)
        return reader


def two_dancers(frame_no: int) -> List[RawPerson]:
    """
    Dancer A starts left and moves right along y=0.4; dancer B starts right
    and moves left along y=0.6. Their x positions cross at frame ~7. A's nose
    is at y=0.1 and B's at y=0.2. Detection order alternates every frame.
    """
    a = coco_person(0.3 + 0.03 * frame_no, 0.4, nose_y=0.1)
    b = coco_person(0.7 - 0.03 * frame_no, 0.6, nose_y=0.2)
    return [a, b] if frame_no % 2 == 0 else [b, a]


SR = 44100


def click_track(period=0.3, count=15, start=0.5, burst=1024, amplitude=0.8):
    """Silence with short constant-amplitude bursts every `period` seconds."""
    length = int((start + period * count + 0.5) * SR)
    samples = np.zeros(length, dtype=np.float32)
    for k in range(count):
        s = int((start + k * period) * SR)
        samples[s:s + burst] = amplitude
    return samples
