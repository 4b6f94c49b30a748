"""
Rectangle geometry shared by macros, blockages, fences and guides.

Coordinate system: (x, y) is the bottom-left corner; the rectangle extends
to (x + width, y + height).
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class Rect:
    """
    An axis-aligned rectangle.

    Attributes:
        x: X coordinate of the bottom-left corner.
        y: Y coordinate of the bottom-left corner.
        width: Extent along x (>= 0).
        height: Extent along y (>= 0).
    """
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(
                f"Rect dimensions must be non-negative, got "
                f"{self.width} x {self.height}"
            )

    # ── Geometric Properties ──────────────────────────────────────────

    @property
    def x_max(self) -> float:
        return self.x + self.width

    @property
    def y_max(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def bbox(self) -> tuple[float, float, float, float]:
        """Bounding box as (x_min, y_min, x_max, y_max)."""
        return (self.x, self.y, self.x_max, self.y_max)

    # ── Queries ───────────────────────────────────────────────────────

    def overlap_area(self, other: Rect) -> float:
        return bbox_overlap_area(self.bbox, other.bbox)

    def overlaps(self, other: Rect) -> bool:
        return self.overlap_area(other) > 0.0

    def contains_point(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x_max and self.y <= py <= self.y_max

    def distance_to_point(self, px: float, py: float) -> float:
        """Manhattan distance from a point to the rectangle (0 inside)."""
        dx = max(self.x - px, 0.0, px - self.x_max)
        dy = max(self.y - py, 0.0, py - self.y_max)
        return dx + dy

    def __repr__(self) -> str:
        return (f"Rect(({self.x:.1f},{self.y:.1f}), "
                f"{self.width:.1f}×{self.height:.1f})")


def bbox_overlap_area(a: tuple[float, float, float, float],
                      b: tuple[float, float, float, float]) -> float:
    """Overlapping area of two (x_min, y_min, x_max, y_max) boxes."""
    dx = min(a[2], b[2]) - max(a[0], b[0])
    dy = min(a[3], b[3]) - max(a[1], b[1])
    if dx <= 0 or dy <= 0:
        return 0.0
    return dx * dy
