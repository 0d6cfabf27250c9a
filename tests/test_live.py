import threading

import numpy as np
import pytest

from configs.config import get_live_config
from dancesage.live import LiveSession
from dancesage.skeleton import NOSE

from helpers import FakeSource, coco_person, two_dancers


def frame(frame_no: int = 0) -> np.ndarray:
    return np.full((90, 160, 3), frame_no, dtype=np.uint8)


def make_session(script=two_dancers, fail_frames=(), **kwargs) -> LiveSession:
    source = FakeSource(script, fail_frames=fail_frames)
    source.initialize()
    return LiveSession(source, **kwargs)


def test_frames_inside_interval_are_dropped():
    session = make_session()
    assert session.submit(frame(0), 0) is not None
    assert session.submit(frame(1), 30) is None
    assert session.submit(frame(1), 50) is None
    accepted = session.submit(frame(1), 51)

    assert accepted is not None
    assert accepted.timestamp == pytest.approx(0.051)
    assert session.dropped_frames == 2
    assert session.latest is accepted


def test_frame_dropped_while_detector_busy():
    entered = threading.Event()
    release = threading.Event()

    class SlowSource(FakeSource):
        def _detect(self, image):
            entered.set()
            release.wait(timeout=5)
            return super()._detect(image)

    source = SlowSource(two_dancers)
    source.initialize()
    session = LiveSession(source)

    results = []
    worker = threading.Thread(target=lambda: results.append(session.submit(frame(0), 0)))
    worker.start()
    assert entered.wait(timeout=5)

    assert session.submit(frame(1), 1000) is None
    assert session.dropped_frames == 1

    release.set()
    worker.join(timeout=5)
    assert results[0] is not None
    assert source.calls == 1


def test_tracking_keeps_slots_across_frames():
    session = make_session()
    for n in range(10):
        result = session.submit(frame(n), n * 100)
        assert result.frame_idx == n
        assert result.skeletons[0][NOSE].y == pytest.approx(0.1)
        assert result.skeletons[1][NOSE].y == pytest.approx(0.2)


def test_recording_captures_accepted_frames():
    session = make_session(recording_fps=10.0)
    session.submit(frame(0), 0)
    session.start_recording()
    assert session.is_recording

    for n in range(5):
        session.submit(frame(n), 1000 + n * 100)
    session.submit(frame(9), 1410)

    timeline = session.stop_recording()
    assert not session.is_recording
    assert len(timeline) == 5
    assert timeline.fps == 10.0
    assert [f.frame_idx for f in timeline] == list(range(5))
    assert timeline[0].timestamp == pytest.approx(1.0)

    session.submit(frame(6), 2000)
    assert len(session.recorded_timeline()) == 5
    assert session.recorded_timeline(fps=30.0).fps == 30.0

    session.clear_recording()
    assert len(session.recorded_timeline()) == 0


def test_start_recording_begins_a_new_session():
    session = make_session()
    session.submit(frame(0), 5000)
    session.submit(frame(1), 5100)
    assert not session.tracker.state.is_fresh

    session.start_recording()
    assert session.tracker.state.is_fresh
    assert session.latest is None

    # throttle state was reset, so an earlier timestamp is accepted
    first = session.submit(frame(0), 0)
    assert first is not None
    assert first.frame_idx == 0


def test_detection_error_returns_none():
    session = make_session(fail_frames=(3,))
    assert session.submit(frame(3), 0) is None
    assert session.latest is None
    assert session.submit(frame(4), 100) is not None


def test_empty_detection_keeps_tracking():
    people = {0: two_dancers(0), 1: [], 2: two_dancers(2)}
    session = make_session(script=lambda n: people[n])
    session.submit(frame(0), 0)
    empty = session.submit(frame(1), 100)
    assert empty.is_empty

    after = session.submit(frame(2), 200)
    assert after.skeletons[0][NOSE].y == pytest.approx(0.1)


def test_from_config_uses_live_settings():
    config = get_live_config()
    source = FakeSource(lambda n: [coco_person(0.5, 0.5)])
    source.initialize()
    session = LiveSession.from_config(config, source=source)

    assert session.min_interval_ms == config.live.min_interval_ms
    assert session.display_aspect == pytest.approx(9 / 19.5)
    assert session.recording_fps == config.live.recording_fps


def test_context_exit_stops_recording_and_closes_source():
    with make_session() as session:
        session.start_recording()
        session.submit(frame(0), 0)
        assert session.source.initialized

    assert not session.is_recording
    assert not session.source.initialized
    assert len(session.recorded_timeline()) == 1
