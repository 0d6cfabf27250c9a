import pytest

from dancesage.beat_detector import BeatTrack
from dancesage.count_aligner import beat_number, beat_number_for_frame, frame_time

BEATS = [1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5, 5.0]


def test_ninth_beat_wraps_to_one():
    assert beat_number(BEATS, 4.2) == 7
    assert beat_number(BEATS, 5.0) == 1
    assert beat_number(BEATS + [5.5], 5.7) == 2


def test_eighth_beat_completes_the_count():
    beats = [1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0, 4.5, 4.1]
    assert beat_number(sorted(beats), 4.2) == 8


def test_before_first_beat():
    assert beat_number(BEATS, 0.0) == 0
    assert beat_number(BEATS, 0.99) == 0
    assert beat_number([], 10.0) == 0


def test_beat_counts_at_its_own_timestamp():
    assert beat_number(BEATS, 1.0) == 1
    assert beat_number(BEATS, 1.49) == 1
    assert beat_number(BEATS, 1.5) == 2


def test_every_position_in_range():
    beats = [i * 0.3 for i in range(40)]
    counts = [beat_number(beats, t / 100) for t in range(0, 1200)]
    assert set(counts) <= set(range(0, 9))
    assert set(counts) == set(range(1, 9))


def test_accepts_beat_track():
    track = BeatTrack(beats=tuple(BEATS), bpm=120.0)
    assert beat_number(track, 2.1) == 3
    assert beat_number(BeatTrack(), 2.1) == 0


def test_frame_helpers():
    assert frame_time(45, 30.0) == pytest.approx(1.5)
    assert beat_number_for_frame(BEATS, 45, 30.0) == 2
    with pytest.raises(ValueError):
        frame_time(10, 0)
