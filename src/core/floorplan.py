"""
Floorplan: the problem handed to the macro annealer.

A Floorplan captures the fixed outline, the macros to place, their nets,
the fixed terminals, the blockages, and per-macro guidance and fence
regions. It also provides quality metrics (utilization, overlap, outline
violations) for a placed solution.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import copy

from .geometry import Rect, bbox_overlap_area
from .macro import Macro
from .net import Net


@dataclass
class Floorplan:
    """
    Inputs of one floorplanning run.

    Attributes:
        outline_width: Width of the fixed outline.
        outline_height: Height of the fixed outline.
        macros: Ordered list of hard and soft macros.
        nets: Connections between macros and terminals.
        terminals: Fixed points (IO pins) keyed by name.
        blockages: Rectangles macros must not overlap.
        guides: Preferred region per macro name.
        fences: Keep-in region per macro name.
    """
    outline_width: float
    outline_height: float
    macros: list[Macro] = field(default_factory=list)
    nets: list[Net] = field(default_factory=list)
    terminals: dict[str, tuple[float, float]] = field(default_factory=dict)
    blockages: list[Rect] = field(default_factory=list)
    guides: dict[str, Rect] = field(default_factory=dict)
    fences: dict[str, Rect] = field(default_factory=dict)

    # ── Validation ────────────────────────────────────────────────────

    def validate(self) -> None:
        """Raise ValueError for inputs no run could make sense of."""
        if self.outline_width <= 0 or self.outline_height <= 0:
            raise ValueError(
                f"Outline must have positive dimensions, got "
                f"{self.outline_width} x {self.outline_height}"
            )

        names = set()
        for macro in self.macros:
            if macro.name in names:
                raise ValueError(f"Duplicate macro name '{macro.name}'")
            names.add(macro.name)

        for name in self.terminals:
            if name in names:
                raise ValueError(f"Terminal '{name}' clashes with a macro name")

        known = names | set(self.terminals)
        for net in self.nets:
            for member in net.members:
                if member not in known:
                    raise ValueError(
                        f"Net '{net.name}' references unknown macro or terminal '{member}'"
                    )

        for kind, regions in (("Guide", self.guides), ("Fence", self.fences)):
            for name, rect in regions.items():
                if name not in names:
                    raise ValueError(f"{kind} references unknown macro '{name}'")
                if rect.width <= 0 or rect.height <= 0:
                    raise ValueError(f"{kind} of '{name}' has an empty region")

    def copy(self) -> Floorplan:
        """Owned deep copy; a run mutates only its own copy."""
        return copy.deepcopy(self)

    # ── Outline Properties ────────────────────────────────────────────

    @property
    def outline_area(self) -> float:
        return self.outline_width * self.outline_height

    @property
    def outline(self) -> Rect:
        return Rect(0.0, 0.0, self.outline_width, self.outline_height)

    @property
    def total_macro_area(self) -> float:
        return sum(m.area for m in self.macros)

    @property
    def utilization(self) -> float:
        """Macro area over outline area (0 to 1 when feasible)."""
        if self.outline_area == 0:
            return 0.0
        return self.total_macro_area / self.outline_area

    def get_macro(self, name: str) -> Macro:
        for macro in self.macros:
            if macro.name == name:
                return macro
        raise KeyError(name)

    # ── Overlap Metrics ───────────────────────────────────────────────

    def total_overlap_area(self) -> float:
        """Total pairwise overlap area between all macros."""
        boxes = [m.bbox for m in self.macros]
        total = 0.0
        for i in range(len(boxes)):
            for j in range(i + 1, len(boxes)):
                total += bbox_overlap_area(boxes[i], boxes[j])
        return total

    def blockage_overlap_area(self) -> float:
        """Total overlap between macros and blockages."""
        return sum(bbox_overlap_area(m.bbox, b.bbox)
                   for m in self.macros for b in self.blockages)

    # ── Outline Violations ────────────────────────────────────────────

    def boundary_violations(self) -> list[tuple[str, float]]:
        """
        Find macros that extend beyond the outline.

        Returns:
            List of (macro_name, overflow_extent) tuples.
        """
        violations = []
        for macro in self.macros:
            x_min, y_min, x_max, y_max = macro.bbox
            left = max(0.0, -x_min)
            bottom = max(0.0, -y_min)
            right = max(0.0, x_max - self.outline_width)
            top = max(0.0, y_max - self.outline_height)

            violation = left + right + bottom + top
            if violation > 0:
                violations.append((macro.name, violation))

        return violations

    def all_within_bounds(self) -> bool:
        return len(self.boundary_violations()) == 0

    # ── Summary ───────────────────────────────────────────────────────

    def summary(self) -> str:
        """Human-readable summary of floorplan quality."""
        overlaps = self.total_overlap_area()
        violations = self.boundary_violations()
        size = f"{self.outline_width:.1f} × {self.outline_height:.1f}"
        lines = [
            f"┌──────────────────────────────────────────┐",
            f"│  Floorplan Summary                       │",
            f"├──────────────────────────────────────────┤",
            f"│  Outline:       {size:<25s}│",
            f"│  Macros:        {len(self.macros):<25d}│",
            f"│  Utilization:   {self.utilization * 100:<24.1f}%│",
            f"│  Overlap Area:  {overlaps:<25.1f}│",
            f"│  Blocked Area:  {self.blockage_overlap_area():<25.1f}│",
            f"│  Violations:    {len(violations):<25d}│",
            f"└──────────────────────────────────────────┘",
        ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (f"Floorplan({self.outline_width:.0f}×{self.outline_height:.0f}, "
                f"macros={len(self.macros)}, util={self.utilization:.1%})")
