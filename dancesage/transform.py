"""
Aspect-fill coordinate mapping.

A display that fills its viewport crops whichever source dimension overflows.
Keypoints normalized to the source frame have to be remapped into the visible
region, otherwise distances measured on screen (and the tracker cutoff) are off.
"""

from dataclasses import dataclass
from typing import Optional

from dancesage.skeleton import Point2D


@dataclass(frozen=True)
class AspectFillTransform:
    """
    Maps source-normalized points into display-normalized points.

    Args:
        source_width, source_height: Source frame size in pixels (after rotation)
        display_aspect: Viewport width / height (None = no crop)
        flip_y: Source origin is bottom-left and must be flipped to top-left

    Example:
        >>> t = AspectFillTransform(1920, 1080, display_aspect=1.0)
        >>> t.apply(0.5, 0.5)
        Point2D(x=0.5, y=0.5)
    """
    source_width: float
    source_height: float
    display_aspect: Optional[float] = None
    flip_y: bool = False

    def __post_init__(self):
        if self.source_width <= 0 or self.source_height <= 0:
            raise ValueError("source dimensions must be positive")

    @property
    def source_aspect(self) -> float:
        return self.source_width / self.source_height

    @property
    def crops_sides(self) -> bool:
        return self.display_aspect is not None and self.source_aspect > self.display_aspect

    @property
    def visible_fraction(self) -> float:
        """Fraction of the cropped source dimension that stays on screen."""
        if self.display_aspect is None:
            return 1.0
        if self.crops_sides:
            return self.display_aspect / self.source_aspect
        return self.source_aspect / self.display_aspect

    @property
    def crop_margin(self) -> float:
        return (1.0 - self.visible_fraction) / 2.0

    def apply(self, x: float, y: float) -> Point2D:
        y = 1.0 - y if self.flip_y else y

        if self.display_aspect is None:
            return Point2D(x, y)

        visible = self.visible_fraction
        crop = self.crop_margin
        if self.crops_sides:
            x = (x - crop) / visible
        else:
            y = (y - crop) / visible
        return Point2D(x, y)

    def __call__(self, point: Point2D) -> Point2D:
        if not point.is_valid:
            return point
        return self.apply(point.x, point.y)


def display_transform(
    width: float,
    height: float,
    display_aspect: Optional[float] = None,
    flip_y: bool = False,
) -> Optional[AspectFillTransform]:
    """Transform for a source frame, or None when coordinates pass through unchanged."""
    if display_aspect is None and not flip_y:
        return None
    return AspectFillTransform(width, height, display_aspect=display_aspect, flip_y=flip_y)
