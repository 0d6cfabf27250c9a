"""
================================================================================
SKELETON DATA MODEL
================================================================================
Canonical 17-joint skeletons, per-frame groups of tracked people, and the
timeline a video or recording produces.

All coordinates are normalized to [0, 1]. Joints that were not detected are
stored as the (-1, -1) sentinel rather than omitted, so every skeleton has
exactly 17 entries.
================================================================================
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple, Any, NamedTuple, Sequence

import numpy as np


# Canonical joint indices
NOSE = 0
L_EYE, R_EYE = 1, 2
L_EAR, R_EAR = 3, 4
L_SHOULDER, R_SHOULDER = 5, 6
L_ELBOW, R_ELBOW = 7, 8
L_WRIST, R_WRIST = 9, 10
L_HIP, R_HIP = 11, 12
L_KNEE, R_KNEE = 13, 14
L_ANKLE, R_ANKLE = 15, 16

NUM_JOINTS = 17


class Point2D(NamedTuple):
    """A normalized image coordinate."""
    x: float
    y: float

    @property
    def is_valid(self) -> bool:
        return self.x >= 0 and self.y >= 0


INVALID_POINT = Point2D(-1.0, -1.0)


@dataclass(frozen=True)
class Skeleton:
    """
    One person's 17 joints in canonical order.

    Example:
        >>> skel = Skeleton.empty()
        >>> skel.valid_count
        0
    """
    points: Tuple[Point2D, ...]

    def __post_init__(self):
        if len(self.points) != NUM_JOINTS:
            raise ValueError(
                f"Skeleton needs exactly {NUM_JOINTS} points, got {len(self.points)}"
            )
        object.__setattr__(
            self, "points", tuple(Point2D(float(p[0]), float(p[1])) for p in self.points)
        )

    def __getitem__(self, idx: int) -> Point2D:
        return self.points[idx]

    def __len__(self) -> int:
        return NUM_JOINTS

    def __iter__(self):
        return iter(self.points)

    @classmethod
    def empty(cls) -> "Skeleton":
        return cls((INVALID_POINT,) * NUM_JOINTS)

    def is_valid(self, idx: int) -> bool:
        return self.points[idx].is_valid

    @property
    def valid_count(self) -> int:
        return sum(1 for p in self.points if p.is_valid)

    def to_list(self) -> List[List[float]]:
        return [[p.x, p.y] for p in self.points]

    def to_array(self) -> np.ndarray:
        """Joints as a (17, 2) float array, sentinels included."""
        return np.array(self.to_list(), dtype=float)

    @classmethod
    def from_list(cls, data: Sequence[Sequence[float]]) -> "Skeleton":
        return cls(tuple(Point2D(float(p[0]), float(p[1])) for p in data))


@dataclass(frozen=True)
class PoseFrame:
    """
    Tracked skeletons for a single sampled timestamp.

    Index into `skeletons` is the track slot: slot 0 is the first identity,
    slot 1 the second, and so on.
    """
    frame_idx: int
    timestamp: Optional[float]
    skeletons: Tuple[Skeleton, ...] = ()

    @property
    def num_people(self) -> int:
        return len(self.skeletons)

    @property
    def is_empty(self) -> bool:
        return not self.skeletons

    def to_list(self) -> List[List[List[float]]]:
        return [s.to_list() for s in self.skeletons]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frame_idx": self.frame_idx,
            "timestamp": self.timestamp,
            "num_people": self.num_people,
            "keypoints": self.to_list(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoseFrame":
        return cls(
            frame_idx=data["frame_idx"],
            timestamp=data.get("timestamp"),
            skeletons=tuple(Skeleton.from_list(s) for s in data["keypoints"]),
        )


@dataclass
class Timeline:
    """
    Ordered frames for a processed video or a live recording.

    `fps` is the sampling rate the frames were taken at; playback maps a frame
    index to time as frame_idx / fps.
    """
    frames: List[PoseFrame] = field(default_factory=list)
    fps: float = 0.0

    def __len__(self) -> int:
        return len(self.frames)

    def __getitem__(self, idx: int) -> PoseFrame:
        return self.frames[idx]

    def __iter__(self):
        return iter(self.frames)

    @property
    def has_pose(self) -> bool:
        """True if any frame contains at least one person."""
        return any(not f.is_empty for f in self.frames)

    @property
    def max_people(self) -> int:
        return max((f.num_people for f in self.frames), default=0)

    def first_person_only(self) -> "Timeline":
        """Keep only slot 0 of every frame (solo styling view)."""
        frames = [
            PoseFrame(f.frame_idx, f.timestamp, f.skeletons[:1])
            for f in self.frames
        ]
        return Timeline(frames=frames, fps=self.fps)

    def to_array(self) -> List[List[List[List[float]]]]:
        """Nested numeric arrays: frames x people x 17 x 2."""
        return [f.to_list() for f in self.frames]

    @classmethod
    def from_array(cls, data: Sequence, fps: float = 0.0) -> "Timeline":
        frames = []
        for idx, people in enumerate(data):
            timestamp = idx / fps if fps > 0 else None
            skeletons = tuple(Skeleton.from_list(s) for s in people)
            frames.append(PoseFrame(frame_idx=idx, timestamp=timestamp, skeletons=skeletons))
        return cls(frames=frames, fps=fps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fps": self.fps,
            "num_frames": len(self.frames),
            "frames": [f.to_dict() for f in self.frames],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Timeline":
        return cls(
            frames=[PoseFrame.from_dict(f) for f in data["frames"]],
            fps=float(data.get("fps", 0.0)),
        )
