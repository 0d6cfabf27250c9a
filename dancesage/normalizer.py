"""
Keypoint normalization onto the canonical 17-joint skeleton.

Each landmark convention gets one lookup table: entry i is the native index of
canonical joint i. Adding a backend means adding a table here, nothing else.
"""

from typing import Dict, Optional, Sequence, Tuple

from dancesage.landmark_sources import RawLandmark, RawPerson
from dancesage.skeleton import INVALID_POINT, NUM_JOINTS, Point2D, Skeleton
from dancesage.transform import AspectFillTransform


DEFAULT_MIN_CONFIDENCE = 0.1

# COCO-17 (YOLO-Pose) is already canonical.
COCO17_TABLE: Tuple[int, ...] = tuple(range(NUM_JOINTS))

# MediaPipe Pose: 0 nose, 2/5 eyes, 7/8 ears, 11-16 arms, 23-28 legs.
MEDIAPIPE33_TABLE: Tuple[int, ...] = (
    0, 2, 5, 7, 8, 11, 12, 13, 14, 15, 16, 23, 24, 25, 26, 27, 28,
)

# Apple Vision body pose (19 joints): neck at 5 and root at 12 have no
# canonical counterpart.
VISION19_TABLE: Tuple[int, ...] = (
    0, 1, 2, 3, 4, 6, 7, 8, 9, 10, 11, 13, 14, 15, 16, 17, 18,
)

JOINT_TABLES: Dict[str, Tuple[int, ...]] = {
    "coco17": COCO17_TABLE,
    "mediapipe33": MEDIAPIPE33_TABLE,
    "vision19": VISION19_TABLE,
}

# Conventions whose coordinate origin is bottom-left.
BOTTOM_LEFT_ORIGIN = frozenset({"vision19"})


def source_flips_y(source_kind: str) -> bool:
    return source_kind in BOTTOM_LEFT_ORIGIN


def _joint_table(source_kind: str) -> Tuple[int, ...]:
    try:
        return JOINT_TABLES[source_kind]
    except KeyError:
        raise ValueError(
            f"No joint table for '{source_kind}'. Known: {sorted(JOINT_TABLES)}"
        ) from None


def normalize(
    raw: RawPerson,
    source_kind: str,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    transform: Optional[AspectFillTransform] = None,
) -> Skeleton:
    """
    Map one person's native joints onto the canonical skeleton.

    Args:
        raw: Native joints (a RawPerson or a plain sequence of RawLandmark)
        source_kind: Key into JOINT_TABLES
        min_confidence: Joints below this become the sentinel
        transform: Optional display-space mapping applied to valid joints

    Returns:
        A full 17-point Skeleton, possibly all sentinel.
    """
    table = _joint_table(source_kind)
    joints: Sequence[RawLandmark] = raw.joints if isinstance(raw, RawPerson) else raw

    points = []
    for source_idx in table:
        if source_idx >= len(joints):
            points.append(INVALID_POINT)
            continue
        joint = joints[source_idx]
        if joint.confidence < min_confidence:
            points.append(INVALID_POINT)
            continue
        point = Point2D(joint.x, joint.y)
        if transform is not None:
            point = transform(point)
        points.append(point)
    return Skeleton(tuple(points))


class KeypointNormalizer:
    """
    Normalizer bound to one landmark convention.

    Example:
        >>> normalizer = KeypointNormalizer("mediapipe33")
        >>> skeletons = normalizer.normalize_all(people)
    """

    def __init__(
        self,
        source_kind: str,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        transform: Optional[AspectFillTransform] = None,
    ):
        _joint_table(source_kind)
        self.source_kind = source_kind
        self.min_confidence = min_confidence
        self.transform = transform

    def set_transform(self, transform: Optional[AspectFillTransform]) -> None:
        self.transform = transform

    def normalize(self, raw: RawPerson) -> Skeleton:
        return normalize(raw, self.source_kind, self.min_confidence, self.transform)

    def normalize_all(self, people: Sequence[RawPerson]) -> list:
        return [self.normalize(p) for p in people]
