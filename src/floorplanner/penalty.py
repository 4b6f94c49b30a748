"""
Penalty terms for macro floorplanning.

Eight independent cost terms are computed from the current macro layout:

  - area            packing bounding-box area over outline area
  - outline         macro extent beyond the outline edges
  - wirelength      weighted HPWL of nets between macro centers/terminals
  - guidance        distance of macro centers from their guide regions
  - fence           macro area lying outside the assigned fence
  - boundary        distance of boundary-preferring macros to the outline
  - macro_blockage  overlap area between macros and blockages
  - notch           narrow free strips trapped between macros

Each term is divided by a normalization constant sampled at initialization
and multiplied by its weight; the total cost is the sum.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
from typing import Callable, Sequence

import numpy as np

from core.floorplan import Floorplan
from core.geometry import bbox_overlap_area
from floorplanner.grid import FREE, build_grid
from floorplanner.sequence_pair import SequencePairLayout

TERM_NAMES = (
    "area", "outline", "wirelength", "guidance",
    "fence", "boundary", "macro_blockage", "notch",
)


@dataclass
class PenaltyWeights:
    """Weights for the multi-term cost function. Zero disables a term."""
    area: float = 1.0
    outline: float = 1.0
    wirelength: float = 1.0
    guidance: float = 0.0
    fence: float = 0.0
    boundary: float = 0.0
    macro_blockage: float = 0.0
    notch: float = 0.0

    def validate(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ValueError(f"Penalty weight '{f.name}' must be non-negative, got {value}")

    def scaled(self, factor: float) -> PenaltyWeights:
        """Copy with every weight multiplied by ``factor``."""
        return PenaltyWeights(**{f.name: getattr(self, f.name) * factor for f in fields(self)})


@dataclass
class PenaltyTerm:
    """
    A named cost term.

    Attributes:
        name: One of TERM_NAMES.
        weight: Caller-supplied weight (>= 0).
        raw: Last computed raw value.
        norm: Normalization constant (never zero).
    """
    name: str
    weight: float
    raw: float = 0.0
    norm: float = 1.0

    @property
    def normalized(self) -> float:
        return self.raw / self.norm

    @property
    def cost(self) -> float:
        return self.weight * self.normalized

    @property
    def enabled(self) -> bool:
        return self.weight > 0.0


class PenaltyEvaluator:
    """
    Computes every penalty term from a sequence-pair layout.

    All terms are pure functions of the macro geometry plus the fixed
    inputs of the floorplan (nets, terminals, blockages, guides, fences).
    """

    def __init__(self, layout: SequencePairLayout, floorplan: Floorplan,
                 weights: PenaltyWeights,
                 notch_h_threshold: float = 0.0,
                 notch_v_threshold: float = 0.0):
        if notch_h_threshold < 0 or notch_v_threshold < 0:
            raise ValueError("Notch thresholds must be non-negative")
        weights.validate()

        self.layout = layout
        self.floorplan = floorplan
        self.weights = weights
        self.notch_h_threshold = notch_h_threshold
        self.notch_v_threshold = notch_v_threshold

        self._outline_w = floorplan.outline_width
        self._outline_h = floorplan.outline_height
        self._outline_area = floorplan.outline_area

        index = {m.name: i for i, m in enumerate(layout.macros)}
        self._guides = [(index[name], rect) for name, rect in floorplan.guides.items()]
        self._fences = [(index[name], rect) for name, rect in floorplan.fences.items()]
        self._blockage_boxes = [b.bbox for b in floorplan.blockages]

        self.terms: dict[str, PenaltyTerm] = {
            name: PenaltyTerm(name, getattr(weights, name)) for name in TERM_NAMES
        }
        self._calculators: dict[str, Callable[[], float]] = {
            "area": self._area_penalty,
            "outline": self._outline_penalty,
            "wirelength": self._wirelength_penalty,
            "guidance": self._guidance_penalty,
            "fence": self._fence_penalty,
            "boundary": self._boundary_penalty,
            "macro_blockage": self._macro_blockage_penalty,
            "notch": self._notch_penalty,
        }

    # ── Evaluation ────────────────────────────────────────────────────

    def evaluate(self, all_terms: bool = False) -> None:
        """Recompute raw values (only weighted terms unless ``all_terms``)."""
        for name, term in self.terms.items():
            if all_terms or term.enabled:
                term.raw = self._calculators[name]()

    def total(self) -> float:
        """Weighted sum of normalized terms."""
        return sum(term.cost for term in self.terms.values())

    def cost_of(self, raw_values: Sequence[float]) -> float:
        """Total cost a vector of raw values would have under the current norms."""
        return sum(term.weight * raw / term.norm
                   for term, raw in zip(self.terms.values(), raw_values))

    def raw_values(self) -> tuple[float, ...]:
        return tuple(term.raw for term in self.terms.values())

    def load(self, raw_values: Sequence[float]) -> None:
        for term, raw in zip(self.terms.values(), raw_values):
            term.raw = raw

    def set_norms(self, samples: Sequence[Sequence[float]]) -> None:
        """
        Use the mean of sampled raw values as each term's normalization.

        A term whose samples are all zero keeps a norm of 1.
        """
        if not samples:
            return
        means = np.asarray(samples, dtype=float).mean(axis=0)
        for term, mean in zip(self.terms.values(), means):
            term.norm = float(mean) if mean > 0 else 1.0

    def raw(self) -> dict[str, float]:
        return {name: term.raw for name, term in self.terms.items()}

    def normalized(self) -> dict[str, float]:
        return {name: term.normalized for name, term in self.terms.items()}

    # ── Individual Penalty Terms ──────────────────────────────────────

    def _area_penalty(self) -> float:
        width, height = self.layout.bounding_box()
        return width * height / self._outline_area

    def _outline_penalty(self) -> float:
        overflow = 0.0
        for m in self.layout.macros:
            overflow += max(0.0, -m.x) + max(0.0, m.x + m.width - self._outline_w)
            overflow += max(0.0, -m.y) + max(0.0, m.y + m.height - self._outline_h)
        return overflow

    def _wirelength_penalty(self) -> float:
        if not self.floorplan.nets:
            return 0.0
        positions = dict(self.floorplan.terminals)
        for m in self.layout.macros:
            positions[m.name] = m.center
        return sum(net.hpwl(positions) for net in self.floorplan.nets)

    def _guidance_penalty(self) -> float:
        penalty = 0.0
        for idx, rect in self._guides:
            cx, cy = self.layout.macros[idx].center
            penalty += rect.distance_to_point(cx, cy)
        return penalty

    def _fence_penalty(self) -> float:
        penalty = 0.0
        for idx, rect in self._fences:
            macro = self.layout.macros[idx]
            penalty += macro.area - bbox_overlap_area(macro.bbox, rect.bbox)
        return max(penalty, 0.0)

    def _boundary_penalty(self) -> float:
        penalty = 0.0
        for m in self.layout.macros:
            if not m.prefer_boundary:
                continue
            dist = min(m.x, m.y,
                       self._outline_w - m.x - m.width,
                       self._outline_h - m.y - m.height)
            penalty += max(dist, 0.0)
        return penalty

    def _macro_blockage_penalty(self) -> float:
        penalty = 0.0
        for m in self.layout.macros:
            box = m.bbox
            for blockage in self._blockage_boxes:
                penalty += bbox_overlap_area(box, blockage)
        return penalty

    def _notch_penalty(self) -> float:
        """Area of free cells in strips narrower than the notch thresholds."""
        grid = build_grid(self._outline_w, self._outline_h,
                          [m.bbox for m in self.layout.macros], self._blockage_boxes)
        free = grid.occupancy == FREE
        if not free.any():
            return 0.0
        h_runs = grid.free_runs(axis=1)
        v_runs = grid.free_runs(axis=0)
        notch = free & ((h_runs < self.notch_h_threshold) | (v_runs < self.notch_v_threshold))
        cell_areas = np.outer(grid.cell_heights(), grid.cell_widths())
        return float(cell_areas[notch].sum()) / self._outline_area
