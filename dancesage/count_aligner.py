"""Maps playback time onto the repeating 1-8 dance count."""

from bisect import bisect_right
from typing import Sequence, Union

from dancesage.beat_detector import BeatTrack

COUNT_LENGTH = 8

Beats = Union[BeatTrack, Sequence[float]]


def beat_number(beats: Beats, current_time: float) -> int:
    """
    Position in the 8-count at `current_time`.

    0 before the first beat, then 1..8 repeating. Beats must be ascending.

    Example:
        >>> beat_number([1.0, 1.5, 2.0], 1.7)
        2
    """
    timestamps = beats.beats if isinstance(beats, BeatTrack) else beats
    count = bisect_right(timestamps, current_time)
    if count == 0:
        return 0
    return ((count - 1) % COUNT_LENGTH) + 1


def frame_time(frame_idx: int, fps: float) -> float:
    if fps <= 0:
        raise ValueError("fps must be positive")
    return frame_idx / fps


def beat_number_for_frame(beats: Beats, frame_idx: int, fps: float) -> int:
    return beat_number(beats, frame_time(frame_idx, fps))
