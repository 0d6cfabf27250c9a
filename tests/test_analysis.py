import threading

import pytest

from dancesage.analysis import DanceAnalyzer
from dancesage.beat_detector import BeatTrack
from dancesage.frame_pipeline import FramePipeline, PipelineOutcome
from main import DanceAnalysisRunner

from helpers import FakeMedia, FakeSource, quiet_config, two_dancers


class FakeBeatDetector:
    def __init__(self, track: BeatTrack):
        self.track = track
        self.thread_names = []

    def detect_beats(self, path):
        self.thread_names.append(threading.current_thread().name)
        return self.track


def make_analyzer(track=None, script=two_dancers, detector_cls=FakeBeatDetector):
    config = quiet_config()
    pipeline = FramePipeline(
        config, landmark_source=FakeSource(script), media=FakeMedia(duration=2.0, fps=10.0)
    )
    if track is None:
        track = BeatTrack(beats=(0.0, 0.3, 0.6, 0.9, 1.2), bpm=200.0)
    detector = detector_cls(track)
    return DanceAnalyzer(config, pipeline=pipeline, beat_detector=detector)


def test_partner_mode_keeps_both_dancers():
    analysis = make_analyzer().analyze("salsa.mp4")

    assert analysis.pipeline.outcome == PipelineOutcome.COMPLETED
    assert analysis.beats.bpm == 200.0
    assert analysis.fps == 10.0
    assert analysis.timeline.max_people == 2


def test_styling_mode_keeps_first_dancer():
    analysis = make_analyzer().analyze("salsa.mp4", partner_mode=False)

    assert analysis.timeline.max_people == 1
    assert len(analysis.timeline) == 20
    assert analysis.pipeline.timeline.max_people == 2


def test_beat_number_for_playback_frame():
    analysis = make_analyzer().analyze("salsa.mp4")

    assert analysis.beat_number_at(0) == 1
    assert analysis.beat_number_at(3) == 2
    assert analysis.beat_number_at(13) == 5


def test_no_tempo_gives_zero_counts():
    analysis = make_analyzer(track=BeatTrack()).analyze("salsa.mp4")

    assert not analysis.beats.bpm_available
    assert analysis.timeline is not None
    assert analysis.beat_number_at(5) == 0


def test_beats_run_off_the_caller_thread():
    analyzer = make_analyzer()
    analyzer.analyze("salsa.mp4")
    assert analyzer.beat_detector.thread_names != [threading.current_thread().name]


def test_no_video_still_returns_beats():
    analyzer = make_analyzer()
    analyzer.pipeline.media = FakeMedia(has_video=False)
    analysis = analyzer.analyze("audio_only.m4a")

    assert analysis.pipeline.outcome == PipelineOutcome.NO_VIDEO
    assert analysis.timeline is None
    assert analysis.fps == 0.0
    assert analysis.beat_number_at(3) == 0
    assert len(analysis.beats) == 5


def test_beats_delivered_while_poses_still_tracking():
    tracking_started = threading.Event()
    beats_delivered = threading.Event()

    def slow_dancers(frame_no):
        if frame_no == 0:
            tracking_started.set()
            beats_delivered.wait(timeout=5)
        return two_dancers(frame_no)

    class GatedBeatDetector(FakeBeatDetector):
        def detect_beats(self, path):
            tracking_started.wait(timeout=5)
            return super().detect_beats(path)

    analyzer = make_analyzer(script=slow_dancers, detector_cls=GatedBeatDetector)
    seen = []

    def on_beats(track):
        seen.append((track, analyzer.pipeline.is_processing,
                     analyzer.pipeline.landmark_source.calls))
        beats_delivered.set()

    analysis = analyzer.analyze("salsa.mp4", on_beats=on_beats)

    assert len(seen) == 1
    track, still_processing, calls = seen[0]
    assert track is analysis.beats
    assert still_processing
    assert calls < 20
    assert len(analysis.timeline) == 20


def test_failed_beat_detection_skips_callback():
    class BrokenBeatDetector(FakeBeatDetector):
        def detect_beats(self, path):
            raise OSError("decoder crashed")

    analyzer = make_analyzer(detector_cls=BrokenBeatDetector)
    seen = []

    with pytest.raises(OSError):
        analyzer.analyze("salsa.mp4", on_beats=seen.append)
    assert seen == []


def test_close_releases_pipeline_source():
    analyzer = make_analyzer()
    analyzer.analyze("salsa.mp4")

    analyzer.close()
    assert not analyzer.pipeline.landmark_source.initialized


def test_runner_context_closes_analyzer(tmp_path):
    config = quiet_config()
    config.output.output_dir = tmp_path

    with DanceAnalysisRunner(config) as runner:
        runner._analyzer = make_analyzer()
        summary = runner.process_video("salsa.mp4")
        assert runner.analyzer.pipeline.landmark_source.initialized

    assert summary["outcome"] == "completed"
    assert summary["bpm"] == 200.0
    assert (tmp_path / "keypoints" / "salsa_keypoints.json").exists()
    assert not runner.analyzer.pipeline.landmark_source.initialized
