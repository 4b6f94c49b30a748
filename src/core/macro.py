"""
Hard and soft macro representations for floorplanning.

A macro is a placeable rectangle. Hard macros have fixed dimensions and a
discrete set of allowed orientations. Soft macros carry a list of
equal-area (width, height) candidates and always take one of them while
the annealer runs.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Hashable, Optional, Protocol, Sequence, Union
import math

import numpy as np

# Relative tolerance used when checking that soft-macro candidates share an area.
AREA_RTOL = 1e-6


class Orientation(Enum):
    """Placement orientations of a hard macro."""
    R0 = "R0"
    R90 = "R90"
    R180 = "R180"
    R270 = "R270"
    MX = "MX"       # mirrored about the x axis
    MY = "MY"       # mirrored about the y axis

    @property
    def swaps_axes(self) -> bool:
        """Whether this orientation exchanges width and height."""
        return self in (Orientation.R90, Orientation.R270)


class Placeable(Protocol):
    """Capabilities the layout and penalty code rely on."""
    name: str
    x: float
    y: float
    width: float
    height: float
    prefer_boundary: bool

    @property
    def area(self) -> float: ...

    @property
    def center(self) -> tuple[float, float]: ...

    @property
    def bbox(self) -> tuple[float, float, float, float]: ...

    @property
    def shape_key(self) -> Hashable: ...

    def set_shape(self, key: Hashable) -> None: ...


class _MacroGeometry:
    """Geometric helpers shared by both macro kinds."""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        """Macro area in μm²."""
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def bbox(self) -> tuple[float, float, float, float]:
        """Bounding box as (x_min, y_min, x_max, y_max)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def place(self, x: float, y: float) -> None:
        self.x = x
        self.y = y


@dataclass
class HardMacro(_MacroGeometry):
    """
    A fixed-shape block (SRAM, IP, a cluster of hard macros).

    ``width`` and ``height`` reflect the current orientation; the area
    never changes.

    Attributes:
        name: Unique macro identifier.
        base_width: Width in the R0 orientation.
        base_height: Height in the R0 orientation.
        orientations: Orientations the annealer may choose from.
        orientation: Current orientation.
        x: X coordinate of the bottom-left corner.
        y: Y coordinate of the bottom-left corner.
        prefer_boundary: Pull the macro toward the outline edges.
    """
    name: str
    base_width: float
    base_height: float
    orientations: tuple[Orientation, ...] = (Orientation.R0,)
    orientation: Orientation = Orientation.R0
    x: float = 0.0
    y: float = 0.0
    prefer_boundary: bool = False
    width: float = field(init=False)
    height: float = field(init=False)

    def __post_init__(self) -> None:
        if self.base_width <= 0 or self.base_height <= 0:
            raise ValueError(
                f"Hard macro '{self.name}' must have positive dimensions, "
                f"got {self.base_width} x {self.base_height}"
            )
        self.orientations = tuple(self.orientations)
        if not self.orientations:
            raise ValueError(f"Hard macro '{self.name}' has no allowed orientation")
        if self.orientation not in self.orientations:
            raise ValueError(
                f"Orientation {self.orientation.value} of '{self.name}' is not "
                f"among its allowed orientations"
            )
        self._apply_orientation()

    def _apply_orientation(self) -> None:
        if self.orientation.swaps_axes:
            self.width, self.height = self.base_height, self.base_width
        else:
            self.width, self.height = self.base_width, self.base_height

    @property
    def shape_key(self) -> Orientation:
        return self.orientation

    @property
    def num_shapes(self) -> int:
        return len(self.orientations)

    def set_shape(self, key: Orientation) -> None:
        if key not in self.orientations:
            raise ValueError(f"Orientation {key} is not allowed for '{self.name}'")
        self.orientation = key
        self._apply_orientation()

    def alternate_shape(self, rng: np.random.Generator) -> Orientation:
        """Switch to another allowed orientation; return the previous one."""
        old = self.orientation
        if self.num_shapes < 2:
            return old
        choices = [o for o in self.orientations if o != old]
        self.set_shape(choices[int(rng.integers(len(choices)))])
        return old

    def __repr__(self) -> str:
        return (f"HardMacro('{self.name}', {self.width:.1f}×{self.height:.1f}, "
                f"pos=({self.x:.1f},{self.y:.1f}), {self.orientation.value})")


@dataclass
class SoftMacro(_MacroGeometry):
    """
    An area-only block whose aspect ratio may vary.

    Every candidate shape has the same area. The current shape is
    ``shapes[shape_index]`` except after :meth:`stretch`, which dead-space
    filling uses to grow the block once annealing is over.
    """
    name: str
    shapes: list[tuple[float, float]]
    shape_index: int = 0
    x: float = 0.0
    y: float = 0.0
    prefer_boundary: bool = False
    width: float = field(init=False)
    height: float = field(init=False)

    def __post_init__(self) -> None:
        self.shapes = [(float(w), float(h)) for w, h in self.shapes]
        if not self.shapes:
            raise ValueError(f"Soft macro '{self.name}' has no candidate shapes")
        for w, h in self.shapes:
            if w <= 0 or h <= 0:
                raise ValueError(
                    f"Soft macro '{self.name}' has a non-positive candidate "
                    f"shape {w} x {h}"
                )
        area = self.shapes[0][0] * self.shapes[0][1]
        for w, h in self.shapes[1:]:
            if not math.isclose(w * h, area, rel_tol=AREA_RTOL):
                raise ValueError(
                    f"Soft macro '{self.name}' candidate {w} x {h} has area "
                    f"{w * h}, expected {area}"
                )
        if not 0 <= self.shape_index < len(self.shapes):
            raise ValueError(
                f"Shape index {self.shape_index} out of range for '{self.name}'"
            )
        self.width, self.height = self.shapes[self.shape_index]

    @classmethod
    def from_area(cls, name: str, area: float,
                  aspect_ratios: Sequence[float] = (1.0,), **kwargs) -> SoftMacro:
        """Build candidates of the given area for each width/height ratio."""
        if area <= 0:
            raise ValueError(f"Soft macro '{name}' must have a positive area")
        shapes = []
        for ar in aspect_ratios:
            if ar <= 0:
                raise ValueError(f"Aspect ratio must be positive, got {ar}")
            width = math.sqrt(area * ar)
            shapes.append((width, area / width))
        return cls(name, shapes, **kwargs)

    @property
    def required_area(self) -> float:
        w, h = self.shapes[0]
        return w * h

    @property
    def shape_key(self) -> int:
        return self.shape_index

    @property
    def num_shapes(self) -> int:
        return len(self.shapes)

    def set_shape(self, key: int) -> None:
        self.shape_index = key
        self.width, self.height = self.shapes[key]

    def resize(self, rng: np.random.Generator) -> int:
        """Take a different candidate shape at random; return the previous index."""
        old = self.shape_index
        if self.num_shapes < 2:
            return old
        new = int(rng.integers(self.num_shapes - 1))
        if new >= old:
            new += 1
        self.set_shape(new)
        return old

    def shrink(self, horizontal: bool) -> Optional[int]:
        """
        Take the next narrower (or shorter) candidate.

        Returns the previous index, or None when no candidate is smaller
        along the requested axis.
        """
        axis = 0 if horizontal else 1
        current = self.shapes[self.shape_index][axis]
        best = None
        for idx, shape in enumerate(self.shapes):
            if shape[axis] < current and (best is None or shape[axis] > self.shapes[best][axis]):
                best = idx
        if best is None:
            return None
        old = self.shape_index
        self.set_shape(best)
        return old

    def stretch(self, x: float, y: float, width: float, height: float) -> None:
        """Set geometry directly (dead-space fill may exceed the required area)."""
        self.x, self.y = x, y
        self.width, self.height = width, height

    def __repr__(self) -> str:
        return (f"SoftMacro('{self.name}', {self.width:.1f}×{self.height:.1f}, "
                f"pos=({self.x:.1f},{self.y:.1f}), shape={self.shape_index})")


Macro = Union[HardMacro, SoftMacro]
