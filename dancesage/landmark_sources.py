"""
================================================================================
LANDMARK SOURCES
================================================================================
Pluggable per-frame pose backends. Each backend takes one BGR image and returns
the people it sees as raw joint lists in its own native ordering, with
coordinates normalized to the image (origin top-left) and a confidence score.

Backends:
    - YoloLandmarkSource:      Ultralytics YOLO-Pose, multi-person, COCO-17
    - MediaPipeLandmarkSource: MediaPipe Pose, single person, 33 landmarks

The backend is picked from configuration with create_landmark_source(); the
Normalizer turns native joints into the canonical skeleton.
================================================================================
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import cv2

from configs.config import DanceSageConfig
from dancesage.errors import LandmarkSourceUnavailable, FrameDetectionError


@dataclass(frozen=True)
class RawLandmark:
    """One native joint: normalized position plus confidence."""
    x: float
    y: float
    confidence: float = 1.0


@dataclass
class RawPerson:
    """One detected person in the backend's native joint ordering."""
    joints: List[RawLandmark] = field(default_factory=list)
    score: Optional[float] = None


class LandmarkSource(ABC):
    """
    Pose backend interface.

    `source_kind` names the joint convention the Normalizer uses to map the
    output onto the canonical skeleton. Backends that keep per-call state
    (MediaPipe graphs, YOLO predictors) leave `thread_safe` False; one
    instance must then only be used from one thread at a time.
    """

    source_kind: str = ""
    thread_safe: bool = False

    def __init__(self):
        self.initialized = False
        self._inference_times: List[float] = []

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def initialize(self) -> None:
        """Load the model. Raises LandmarkSourceUnavailable on failure."""

    @abstractmethod
    def _detect(self, image: np.ndarray) -> List[RawPerson]: ...

    def detect(self, image: np.ndarray) -> List[RawPerson]:
        """Detect people in a BGR image (H, W, 3)."""
        if not self.initialized:
            raise RuntimeError(f"{self.name} not initialized. Call initialize() first.")

        start_time = time.perf_counter()
        try:
            people = self._detect(image)
        except LandmarkSourceUnavailable:
            raise
        except Exception as e:
            raise FrameDetectionError(f"{self.name} failed on frame: {e}") from e
        self._inference_times.append(time.perf_counter() - start_time)
        return people

    def close(self) -> None:
        self.initialized = False

    def get_average_fps(self) -> float:
        if not self._inference_times:
            return 0.0
        avg_time = sum(self._inference_times) / len(self._inference_times)
        return 1.0 / avg_time if avg_time > 0 else 0.0

    def reset_timing_stats(self) -> None:
        self._inference_times.clear()


# ==============================================================================
# YOLO-POSE BACKEND
# ==============================================================================

class YoloLandmarkSource(LandmarkSource):
    """
    Ultralytics YOLO-Pose backend (COCO-17 keypoints, multi-person).

    Example:
        >>> source = YoloLandmarkSource(DanceSageConfig())
        >>> source.initialize()
        >>> people = source.detect(frame)
    """

    source_kind = "coco17"

    def __init__(self, config: Optional[DanceSageConfig] = None):
        super().__init__()
        self.config = config or DanceSageConfig()
        self.device: Optional[str] = None
        self.model = None

    def initialize(self) -> None:
        """Load YOLO model and select a device."""
        verbose = self.config.verbose
        if verbose:
            print("\n" + "=" * 60)
            print("INITIALIZING YOLO-POSE LANDMARK SOURCE")
            print("=" * 60)

        try:
            from ultralytics import YOLO
        except ImportError as e:
            raise LandmarkSourceUnavailable(
                "Ultralytics not installed. Run: pip install ultralytics"
            ) from e

        if verbose:
            print("\n[Step 1/2] Selecting compute device...")
        try:
            self.device = self.config.device.get_device(verbose=verbose)
        except RuntimeError as e:
            raise LandmarkSourceUnavailable(f"No usable compute device: {e}") from e

        if verbose:
            print(f"\n[Step 2/2] Loading YOLO-Pose model...")
            print(f"  Model: {self.config.landmarks.model_name}")
        try:
            self.model = YOLO(self.config.landmarks.model_name)
        except Exception as e:
            raise LandmarkSourceUnavailable(
                f"Cannot load model '{self.config.landmarks.model_name}': {e}"
            ) from e

        if self.config.landmarks.warmup:
            self._warmup()

        self.initialized = True
        if verbose:
            print("\n✓ YOLO-Pose landmark source initialized!")
            print("=" * 60 + "\n")

    def _warmup(self) -> None:
        dummy_img = np.zeros((640, 640, 3), dtype=np.uint8)
        try:
            self.model(dummy_img, device=self.device, verbose=False)
            if self.config.verbose:
                print("  ✓ Warmup complete")
        except Exception as e:
            print(f"  ⚠ Warmup failed: {e}")

    def _detect(self, image: np.ndarray) -> List[RawPerson]:
        results = self.model(
            image,
            device=self.device,
            conf=self.config.landmarks.confidence_threshold,
            iou=self.config.landmarks.iou_threshold,
            max_det=self.config.landmarks.max_people,
            verbose=False,
        )
        result = results[0]

        if result.keypoints is None or len(result.keypoints) == 0:
            return []

        keypoints = result.keypoints.xyn.cpu().numpy()
        if result.keypoints.conf is not None:
            kp_scores = result.keypoints.conf.cpu().numpy()
        else:
            kp_scores = np.ones(keypoints.shape[:2])
        bbox_scores = result.boxes.conf.cpu().numpy() if result.boxes is not None else None

        people = []
        for i in range(len(keypoints)):
            joints = [
                RawLandmark(float(x), float(y), float(c))
                for (x, y), c in zip(keypoints[i], kp_scores[i])
            ]
            score = float(bbox_scores[i]) if bbox_scores is not None else None
            people.append(RawPerson(joints=joints, score=score))
        return people

    def close(self) -> None:
        self.model = None
        super().close()


# ==============================================================================
# MEDIAPIPE BACKEND
# ==============================================================================

class MediaPipeLandmarkSource(LandmarkSource):
    """
    MediaPipe Pose backend (33 landmarks, single person).

    `visibility` is used as the joint confidence.
    """

    source_kind = "mediapipe33"

    def __init__(self, config: Optional[DanceSageConfig] = None):
        super().__init__()
        self.config = config or DanceSageConfig()
        self._pose = None

    def initialize(self) -> None:
        try:
            import mediapipe as mp
        except ImportError as e:
            raise LandmarkSourceUnavailable(
                "MediaPipe not installed. Run: pip install mediapipe"
            ) from e

        try:
            self._pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=int(self.config.landmarks.mediapipe_complexity),
                enable_segmentation=False,
                smooth_landmarks=True,
                min_detection_confidence=float(self.config.landmarks.confidence_threshold),
                min_tracking_confidence=float(self.config.landmarks.confidence_threshold),
            )
        except Exception as e:
            raise LandmarkSourceUnavailable(f"Cannot create MediaPipe Pose: {e}") from e

        self.initialized = True
        if self.config.verbose:
            print("✓ MediaPipe Pose landmark source initialized")

    def _detect(self, image: np.ndarray) -> List[RawPerson]:
        rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        result = self._pose.process(rgb)
        if not result or not getattr(result, "pose_landmarks", None):
            return []

        joints = [
            RawLandmark(float(lm.x), float(lm.y), float(getattr(lm, "visibility", 0.0) or 0.0))
            for lm in result.pose_landmarks.landmark
        ]
        return [RawPerson(joints=joints)]

    def close(self) -> None:
        if self._pose is not None:
            self._pose.close()
            self._pose = None
        super().close()


# ==============================================================================
# FACTORY
# ==============================================================================

def create_landmark_source(
    config: Optional[DanceSageConfig] = None,
    initialize: bool = True,
) -> LandmarkSource:
    """Build the backend named by config.landmarks.backend."""
    config = config or DanceSageConfig()
    backends = {
        "yolo": YoloLandmarkSource,
        "mediapipe": MediaPipeLandmarkSource,
    }
    source = backends[config.landmarks.backend](config)
    if initialize:
        source.initialize()
    return source
