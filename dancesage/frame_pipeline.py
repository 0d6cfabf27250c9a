"""
================================================================================
FRAME PIPELINE
================================================================================
Turns a video into a Timeline of tracked skeletons.

Steps per run:
    1. Open the video and read duration / native frame rate
    2. Sample timestamps every 1 / min(native_fps, target_fps) seconds
    3. For each timestamp: extract still -> detect -> normalize -> track
    4. Return the Timeline with an outcome describing what happened

Tracking depends on the previous frame, so tracker updates always happen in
timestamp order. With detection_workers > 1 only the detector calls run in
parallel.
================================================================================
"""

import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple, Union

import numpy as np

from configs.config import DanceSageConfig
from dancesage.errors import (
    FrameDetectionError,
    FrameExtractionError,
    LandmarkSourceUnavailable,
    NoVideoTrackError,
)
from dancesage.landmark_sources import LandmarkSource, RawPerson, create_landmark_source
from dancesage.normalizer import KeypointNormalizer, source_flips_y
from dancesage.skeleton import PoseFrame, Timeline
from dancesage.tracker import MultiPersonTracker
from dancesage.transform import display_transform
from dancesage.video_processor import VideoMetadata, VideoProcessor

ProgressCallback = Callable[[float], None]
SourceFactory = Callable[[], LandmarkSource]

NO_POSE_MESSAGE = "No poses detected. Try a video with a person clearly visible."


class PipelineOutcome(Enum):
    COMPLETED = "completed"
    NO_POSE_DETECTED = "no_pose_detected"
    NO_VIDEO = "no_video"
    DETECTOR_UNAVAILABLE = "detector_unavailable"
    CANCELLED = "cancelled"


@dataclass
class PipelineResult:
    """
    Result of one pipeline run.

    `timeline` is set only for COMPLETED and NO_POSE_DETECTED; a partial
    timeline is never returned.
    """
    outcome: PipelineOutcome
    timeline: Optional[Timeline] = None
    metadata: Optional[VideoMetadata] = None
    sampling_fps: float = 0.0
    sampled_frames: int = 0
    skipped_frames: int = 0
    processing_time: float = 0.0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome == PipelineOutcome.COMPLETED


def sampling_rate(native_fps: float, target_fps: Optional[float] = None) -> float:
    """Never sample faster than the source was recorded."""
    if target_fps is None:
        return native_fps
    if native_fps <= 0:
        return target_fps
    return min(native_fps, target_fps)


def sample_timestamps(duration: float, rate: float) -> List[float]:
    """Uniform grid 0, 1/rate, 2/rate, ... strictly below `duration`."""
    if rate <= 0 or duration <= 0:
        return []
    timestamps = []
    i = 0
    while i / rate < duration:
        timestamps.append(i / rate)
        i += 1
    return timestamps


class FramePipeline:
    """
    Video -> Timeline driver.

    Example:
        >>> pipeline = FramePipeline(config)
        >>> result = pipeline.process("salsa.mp4", target_fps=30,
        ...                           progress_callback=print)
        >>> result.outcome
        <PipelineOutcome.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        config: Optional[DanceSageConfig] = None,
        landmark_source: Optional[LandmarkSource] = None,
        media: Optional[VideoProcessor] = None,
        source_factory: Optional[SourceFactory] = None,
    ):
        self.config = config or DanceSageConfig()
        self._source = landmark_source
        # Builds extra per-thread backends for parallel detection
        if source_factory is None and landmark_source is None:
            source_factory = self._create_source
        self.source_factory = source_factory
        self.media = media or VideoProcessor(self.config)
        self.tracker = MultiPersonTracker(self.config.tracker.match_distance)
        self.is_processing = False
        self.progress = 0.0
        self._cancel = threading.Event()

    def _create_source(self) -> LandmarkSource:
        return create_landmark_source(self.config, initialize=False)

    @property
    def landmark_source(self) -> LandmarkSource:
        if self._source is None:
            self._source = self.source_factory()
        return self._source

    def cancel(self) -> None:
        """Stop issuing frame requests; the frame in flight still completes."""
        self._cancel.set()

    def close(self) -> None:
        """Release the landmark model."""
        if self._source is not None:
            self._source.close()

    def process(
        self,
        video_path: Union[str, Path],
        target_fps: Optional[float] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        """Process one video into a Timeline."""
        self.is_processing = True
        self.progress = 0.0
        self._cancel.clear()
        start_time = time.time()
        try:
            result = self._process(Path(video_path), target_fps, progress_callback)
        finally:
            self.is_processing = False
        result.processing_time = time.time() - start_time
        return result

    def _process(
        self,
        video_path: Path,
        target_fps: Optional[float],
        progress_callback: Optional[ProgressCallback],
    ) -> PipelineResult:
        verbose = self.config.verbose
        if target_fps is None:
            target_fps = self.config.video.target_fps

        try:
            reader = self.media.open(video_path)
        except NoVideoTrackError as e:
            print(f"❌ {e}")
            return PipelineResult(PipelineOutcome.NO_VIDEO, message=str(e))

        with reader:
            metadata = reader.metadata
            rate = sampling_rate(metadata.fps, target_fps)
            timestamps = sample_timestamps(metadata.duration, rate)

            if verbose:
                print(f"\nProcessing: {video_path.name}")
                print(f"  Duration: {metadata.duration:.2f}s @ {metadata.fps:.1f} FPS")
                print(f"  Sampling at {rate:.1f} FPS ({len(timestamps)} frames)")

            source = self.landmark_source
            try:
                if not source.initialized:
                    source.initialize()
            except LandmarkSourceUnavailable as e:
                print(f"❌ Pose detection unavailable: {e}")
                return PipelineResult(
                    PipelineOutcome.DETECTOR_UNAVAILABLE,
                    metadata=metadata,
                    sampling_fps=rate,
                    message=str(e),
                )

            normalizer = KeypointNormalizer(
                source.source_kind, self.config.normalizer.min_confidence
            )
            self.tracker.reset()
            source.reset_timing_stats()

            frames: List[PoseFrame] = []
            skipped = 0
            try:
                for i, (timestamp, image_shape, people) in enumerate(
                    self._iter_detections(reader, source, timestamps)
                ):
                    if people is None:
                        skipped += 1
                    else:
                        normalizer.set_transform(self._transform_for(image_shape, source.source_kind))
                        skeletons = self.tracker.update(normalizer.normalize_all(people))
                        frames.append(PoseFrame(
                            frame_idx=len(frames),
                            timestamp=timestamp,
                            skeletons=tuple(skeletons),
                        ))

                    self._report(min((timestamp + 1.0 / rate) / metadata.duration, 1.0),
                                 progress_callback)
                    if verbose and (i + 1) % self.config.video.progress_every == 0:
                        print(f"  Processed {i + 1}/{len(timestamps)} frames...")
            except LandmarkSourceUnavailable as e:
                # a detection worker could not load its own backend
                print(f"❌ Pose detection unavailable: {e}")
                return PipelineResult(
                    PipelineOutcome.DETECTOR_UNAVAILABLE,
                    metadata=metadata,
                    sampling_fps=rate,
                    message=str(e),
                )

        if self._cancel.is_set():
            print("⚠ Processing cancelled")
            return PipelineResult(
                PipelineOutcome.CANCELLED,
                metadata=metadata,
                sampling_fps=rate,
                message="cancelled",
            )

        self._report(1.0, progress_callback)
        timeline = Timeline(frames=frames, fps=rate)
        outcome = PipelineOutcome.COMPLETED if timeline.has_pose else PipelineOutcome.NO_POSE_DETECTED

        if verbose:
            with_pose = sum(1 for f in frames if not f.is_empty)
            print(f"  ✓ Processed {len(frames)} frames, poses in {with_pose}, skipped {skipped}")
            if source.get_average_fps() > 0:
                print(f"  Detection speed: {source.get_average_fps():.1f} FPS")
        if outcome == PipelineOutcome.NO_POSE_DETECTED:
            print(f"⚠ {NO_POSE_MESSAGE}")

        return PipelineResult(
            outcome,
            timeline=timeline,
            metadata=metadata,
            sampling_fps=rate,
            sampled_frames=len(frames),
            skipped_frames=skipped,
            message=NO_POSE_MESSAGE if outcome == PipelineOutcome.NO_POSE_DETECTED else "",
        )

    def _transform_for(self, image_shape: Tuple[int, ...], source_kind: str):
        display = self.config.display
        aspect = display.display_aspect if display.aspect_fill else None
        height, width = image_shape[0], image_shape[1]
        return display_transform(width, height, aspect, source_flips_y(source_kind))

    def _report(self, fraction: float, callback: Optional[ProgressCallback]) -> None:
        self.progress = fraction
        if callback is not None:
            callback(fraction)

    # --------------------------------------------------------------------------
    # Detection scheduling
    # --------------------------------------------------------------------------
    # Yields (timestamp, image_shape, people) in timestamp order; people is None
    # when the frame could not be extracted or detection failed.
    # --------------------------------------------------------------------------

    def _iter_detections(
        self, reader, source: LandmarkSource, timestamps: List[float]
    ) -> Iterator[Tuple[float, Tuple[int, ...], Optional[List[RawPerson]]]]:
        workers = self.config.video.detection_workers
        if workers > 1 and not source.thread_safe and self.source_factory is None:
            print(f"⚠ {source.name} cannot be shared across threads, detecting sequentially")
            workers = 1

        if workers <= 1:
            for timestamp in timestamps:
                if self._cancel.is_set():
                    return
                image = self._extract(reader, timestamp)
                if image is None:
                    yield timestamp, (), None
                    continue
                yield timestamp, image.shape, self._detect(source, image, timestamp)
            return

        sources = WorkerSources(source, self.source_factory)
        pending = deque()
        try:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                for timestamp in timestamps:
                    if self._cancel.is_set():
                        break
                    image = self._extract(reader, timestamp)
                    if image is None:
                        pending.append((timestamp, (), None))
                    else:
                        future = executor.submit(self._detect_in_worker, sources, image, timestamp)
                        pending.append((timestamp, image.shape, future))

                    while len(pending) > workers * 2:
                        yield self._resolve(pending.popleft())

                while pending:
                    yield self._resolve(pending.popleft())
        finally:
            sources.close()

    @staticmethod
    def _resolve(entry):
        timestamp, shape, future = entry
        return timestamp, shape, future.result() if future is not None else None

    @staticmethod
    def _extract(reader, timestamp: float) -> Optional[np.ndarray]:
        try:
            return reader.read_at(timestamp)
        except FrameExtractionError as e:
            print(f"❌ {e}")
            return None

    @classmethod
    def _detect_in_worker(
        cls, sources: "WorkerSources", image: np.ndarray, timestamp: float
    ) -> Optional[List[RawPerson]]:
        return cls._detect(sources.get(), image, timestamp)

    @staticmethod
    def _detect(
        source: LandmarkSource, image: np.ndarray, timestamp: float
    ) -> Optional[List[RawPerson]]:
        try:
            return source.detect(image)
        except FrameDetectionError as e:
            print(f"❌ Detection error at {timestamp:.3f}s: {e}")
            return None


class WorkerSources:
    """
    Hands each detection thread its own landmark source.

    Thread-safe backends are shared as-is. Otherwise every worker thread builds
    and initializes a private instance from `factory` on first use; those
    instances are closed with close().
    """

    def __init__(self, shared: LandmarkSource, factory: Optional[SourceFactory]):
        self.shared = shared
        self.factory = factory
        self.created: List[LandmarkSource] = []
        self._local = threading.local()
        self._lock = threading.Lock()

    def get(self) -> LandmarkSource:
        if self.shared.thread_safe:
            return self.shared

        source = getattr(self._local, "source", None)
        if source is None:
            source = self.factory()
            source.initialize()
            self._local.source = source
            with self._lock:
                self.created.append(source)
        return source

    def close(self) -> None:
        with self._lock:
            created, self.created = self.created, []
        for source in created:
            source.close()
