"""
Runs the frame pipeline and the beat detector side by side on one video.

The two share no state. Each runs on its own worker thread, so a slow pose pass
never holds up the tempo estimate (or the other way around).
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from configs.config import DanceSageConfig
from dancesage.beat_detector import BeatDetector, BeatTrack
from dancesage.count_aligner import beat_number_for_frame
from dancesage.frame_pipeline import FramePipeline, PipelineResult, ProgressCallback
from dancesage.skeleton import Timeline

BeatsCallback = Callable[[BeatTrack], None]


@dataclass
class DanceAnalysis:
    pipeline: PipelineResult
    beats: BeatTrack
    partner_mode: bool = True

    @property
    def timeline(self) -> Optional[Timeline]:
        timeline = self.pipeline.timeline
        if timeline is None or self.partner_mode:
            return timeline
        return timeline.first_person_only()

    @property
    def fps(self) -> float:
        return self.pipeline.sampling_fps

    def beat_number_at(self, frame_idx: int) -> int:
        """8-count position for a playback frame; 0 when no tempo is known."""
        if self.fps <= 0:
            return 0
        return beat_number_for_frame(self.beats, frame_idx, self.fps)


class DanceAnalyzer:
    """
    Example:
        >>> analyzer = DanceAnalyzer(config)
        >>> analysis = analyzer.analyze("salsa.mp4", partner_mode=False)
        >>> analysis.beats.bpm, len(analysis.timeline)
    """

    def __init__(
        self,
        config: Optional[DanceSageConfig] = None,
        pipeline: Optional[FramePipeline] = None,
        beat_detector: Optional[BeatDetector] = None,
    ):
        self.config = config or DanceSageConfig()
        self.pipeline = pipeline or FramePipeline(self.config)
        self.beat_detector = beat_detector or BeatDetector(self.config)

    def analyze(
        self,
        video_path: Union[str, Path],
        target_fps: Optional[float] = None,
        partner_mode: bool = True,
        progress_callback: Optional[ProgressCallback] = None,
        on_beats: Optional[BeatsCallback] = None,
    ) -> DanceAnalysis:
        """
        Track poses and beats for one video.

        `on_beats` receives the BeatTrack as soon as beat detection finishes,
        usually well before the pose pass is done. It runs on the beat worker
        thread.
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            frames_future = executor.submit(
                self.pipeline.process, video_path, target_fps, progress_callback
            )
            beats_future = executor.submit(self.beat_detector.detect_beats, video_path)
            if on_beats is not None:
                def deliver(future):
                    if future.exception() is None:
                        on_beats(future.result())

                beats_future.add_done_callback(deliver)
            pipeline_result = frames_future.result()
            beat_track = beats_future.result()

        return DanceAnalysis(
            pipeline=pipeline_result, beats=beat_track, partner_mode=partner_mode
        )

    def cancel(self) -> None:
        self.pipeline.cancel()

    def close(self) -> None:
        self.pipeline.close()
