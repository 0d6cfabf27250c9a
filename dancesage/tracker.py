"""
================================================================================
MULTI-PERSON TRACKER
================================================================================
Keeps each dancer in the same slot (and therefore the same overlay color) from
frame to frame.

Each skeleton is reduced to a reference point (hip midpoint with fallbacks).
The previous frame's slots are matched greedily, in slot order, to the nearest
unclaimed detection; matches farther than `match_distance` are rejected. New
people are appended left-to-right.
================================================================================
"""

import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from dancesage.skeleton import (
    Point2D,
    Skeleton,
    NOSE,
    L_HIP,
    R_HIP,
)

NEUTRAL_CENTER = Point2D(0.5, 0.5)
DEFAULT_MATCH_DISTANCE = 0.3


def reference_point(skeleton: Skeleton) -> Point2D:
    """
    Position used to follow a person between frames.

    Hip midpoint, else the one valid hip, else the nose, else the first valid
    joint, else the frame center.
    """
    left_hip, right_hip = skeleton[L_HIP], skeleton[R_HIP]

    if left_hip.is_valid and right_hip.is_valid:
        return Point2D((left_hip.x + right_hip.x) / 2, (left_hip.y + right_hip.y) / 2)
    if left_hip.is_valid:
        return left_hip
    if right_hip.is_valid:
        return right_hip
    if skeleton[NOSE].is_valid:
        return skeleton[NOSE]

    for point in skeleton:
        if point.is_valid:
            return point
    return NEUTRAL_CENTER


@dataclass
class TrackState:
    """Reference points of the previous frame, one per slot."""
    previous_centers: List[Point2D] = field(default_factory=list)

    @property
    def is_fresh(self) -> bool:
        return not self.previous_centers

    def reset(self) -> None:
        self.previous_centers = []


class MultiPersonTracker:
    """
    Assigns stable slots to the unordered skeletons of each frame.

    Example:
        >>> tracker = MultiPersonTracker()
        >>> tracker.reset()
        >>> ordered = tracker.update(skeletons)
    """

    def __init__(self, match_distance: float = DEFAULT_MATCH_DISTANCE):
        self.match_distance = match_distance
        self.state = TrackState()

    def reset(self) -> None:
        """Start a new tracking session."""
        self.state.reset()

    def update(self, skeletons: Sequence[Skeleton]) -> List[Skeleton]:
        """Order this frame's skeletons by slot and remember their positions."""
        if not skeletons:
            # Keep the previous centers so a person can reappear in their slot
            return []

        candidates = self._by_x([(s, reference_point(s)) for s in skeletons])

        if self.state.is_fresh or len(candidates) == 1:
            ordered = candidates
        else:
            ordered = self._match(candidates)

        self.state.previous_centers = [center for _, center in ordered]
        return [skeleton for skeleton, _ in ordered]

    def _match(
        self, candidates: List[Tuple[Skeleton, Point2D]]
    ) -> List[Tuple[Skeleton, Point2D]]:
        remaining = list(candidates)
        ordered = []

        for prev_center in self.state.previous_centers:
            if not remaining:
                break

            closest_idx = 0
            closest_distance = math.inf
            for idx, (_, center) in enumerate(remaining):
                distance = math.hypot(center.x - prev_center.x, center.y - prev_center.y)
                if distance < closest_distance:
                    closest_distance = distance
                    closest_idx = idx

            if closest_distance < self.match_distance:
                ordered.append(remaining.pop(closest_idx))

        # New people entering the frame
        ordered.extend(remaining)
        return ordered

    @staticmethod
    def _by_x(
        candidates: List[Tuple[Skeleton, Point2D]]
    ) -> List[Tuple[Skeleton, Point2D]]:
        return sorted(candidates, key=lambda c: c[1].x)
