"""
Net representation for macro floorplanning.

A Net is a (bundled) connection between macros and fixed terminals such as
IO pins. It drives the wirelength penalty of the annealer.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Net:
    """
    A weighted connection between macros and/or terminals.

    Attributes:
        name: Unique net identifier.
        members: Names of the connected macros or terminals.
        weight: Connection strength (number of bundled signals, criticality).
    """
    name: str
    members: list[str] = field(default_factory=list)
    weight: float = 1.0

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError(f"Net '{self.name}' has negative weight {self.weight}")

    @property
    def degree(self) -> int:
        """Number of members on this net."""
        return len(self.members)

    def add_member(self, name: str) -> None:
        self.members.append(name)

    # ── Wirelength Estimation ─────────────────────────────────────────

    def hpwl(self, positions: dict[str, tuple[float, float]]) -> float:
        """
        Weighted Half-Perimeter Wirelength of the member centers.

        Args:
            positions: Dict mapping macro/terminal names to (x, y) centers.

        Returns:
            HPWL times the net weight; 0 with fewer than two known members.
        """
        box = self.bounding_box(positions)
        if box is None:
            return 0.0
        x_min, y_min, x_max, y_max = box
        return ((x_max - x_min) + (y_max - y_min)) * self.weight

    def bounding_box(self, positions: dict[str, tuple[float, float]]
                     ) -> Optional[tuple[float, float, float, float]]:
        """(x_min, y_min, x_max, y_max) of the members, or None if under two resolve."""
        xs, ys = [], []
        for name in self.members:
            point = positions.get(name)
            if point is not None:
                xs.append(point[0])
                ys.append(point[1])

        if len(xs) < 2:
            return None

        return (min(xs), min(ys), max(xs), max(ys))

    def __repr__(self) -> str:
        member_str = ", ".join(self.members[:4])
        if len(self.members) > 4:
            member_str += f", ... (+{len(self.members) - 4} more)"
        return f"Net('{self.name}', [{member_str}], w={self.weight:g})"
