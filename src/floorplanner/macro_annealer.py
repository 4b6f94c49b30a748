"""
Simulated-annealing macro placer.

Places hard and soft macros inside a fixed outline. The layout is a
sequence pair; each trial applies one reversible move (swap, exchange,
resize, shrink, rotate), re-packs only the macros the move can affect, and
re-evaluates the penalty terms. The Fast-SA engine decides acceptance and
this class rolls rejected moves back from their undo records.

After a run, ``fill_dead_space`` grows soft macros into unused area and
``align_macro_clusters`` snaps hard macros onto shared edges.

Usage:
    annealer = MacroAnnealer(floorplan, weights=PenaltyWeights(notch=1.0))
    result = annealer.run()
    print(result.best_cost, result.penalties["outline"])
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Sequence
import logging

import numpy as np

from core.floorplan import Floorplan
from core.geometry import bbox_overlap_area
from core.macro import HardMacro, Macro, SoftMacro
from floorplanner.actions import ActionKind, ActionProbabilities, ActionTable, Move
from floorplanner.annealing import (
    AnnealingTrace, FastSAConfig, FastSimulatedAnnealing, initial_temperature, null_logger,
)
from floorplanner.grid import build_grid
from floorplanner.penalty import PenaltyEvaluator, PenaltyWeights
from floorplanner.sequence_pair import SequencePairLayout

# Share of the total cost above which outline overflow turns Resize into Shrink.
SHRINK_DOMINANCE = 0.5

# Alignment thresholds never exceed this fraction of the outline.
ALIGN_OUTLINE_RATIO = 0.1


@dataclass
class MacroPlacement:
    """Final geometry of one macro."""
    name: str
    x: float
    y: float
    width: float
    height: float
    orientation: Optional[str] = None       # hard macros
    shape_index: Optional[int] = None       # soft macros

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass
class FloorplanResult:
    """Result of one annealing run."""
    seed: Optional[int] = None
    best_cost: float = float('inf')
    final_cost: float = float('inf')
    init_temperature: float = 0.0
    iterations: int = 0
    best_iteration: int = 0
    runtime_seconds: float = 0.0
    penalties: dict[str, float] = field(default_factory=dict)        # normalized
    raw_penalties: dict[str, float] = field(default_factory=dict)
    placements: list[MacroPlacement] = field(default_factory=list)
    cost_history: list[float] = field(default_factory=list)
    temperature_history: list[float] = field(default_factory=list)
    acceptance_history: list[float] = field(default_factory=list)

    @property
    def outline_penalty(self) -> float:
        return self.penalties.get("outline", 0.0)

    @property
    def fits_outline(self) -> bool:
        return self.raw_penalties.get("outline", 0.0) <= 0.0

    def placement(self, name: str) -> MacroPlacement:
        for p in self.placements:
            if p.name == name:
                return p
        raise KeyError(name)


class MacroAnnealer:
    """
    Fast-SA floorplanner over a sequence pair of hard and soft macros.

    The annealer works on its own deep copy of the floorplan, so the
    caller's objects are never mutated and several annealers can run in
    parallel threads.
    """

    def __init__(self, floorplan: Floorplan,
                 weights: PenaltyWeights | None = None,
                 actions: ActionProbabilities | None = None,
                 config: FastSAConfig | None = None,
                 notch_h_threshold: float = 0.0,
                 notch_v_threshold: float = 0.0,
                 initial_sequences: tuple[Sequence[int], Sequence[int]] | None = None,
                 logger: logging.Logger | None = None):
        # Private copies; the caller's objects may be shared across runs.
        self.config = replace(config or FastSAConfig())
        self.config.validate()
        self.weights = replace(weights or PenaltyWeights())
        self.weights.validate()
        self.actions = replace(actions or ActionProbabilities())
        self.action_table = ActionTable(self.actions)

        floorplan.validate()
        self.floorplan = floorplan.copy()
        self.macros: list[Macro] = self.floorplan.macros
        self.outline_width = self.floorplan.outline_width
        self.outline_height = self.floorplan.outline_height

        self.logger = logger or null_logger()
        self.rng = np.random.default_rng(self.config.seed)

        self.layout: SequencePairLayout[Macro] = SequencePairLayout(
            self.macros, self.outline_width, self.outline_height)
        self.penalties = PenaltyEvaluator(
            self.layout, self.floorplan, self.weights,
            notch_h_threshold, notch_v_threshold)
        self.notch_h_threshold = notch_h_threshold
        self.notch_v_threshold = notch_v_threshold

        self._initial_sequences = None
        if initial_sequences is not None:
            self.layout.set_sequences(*initial_sequences)
            self._initial_sequences = (list(initial_sequences[0]), list(initial_sequences[1]))

        self._soft = [i for i, m in enumerate(self.macros)
                      if isinstance(m, SoftMacro) and m.num_shapes > 1]
        self._rotatable = [i for i, m in enumerate(self.macros)
                           if isinstance(m, HardMacro) and m.num_shapes > 1]

        self._actions: dict[ActionKind, Callable[[Move], list[int]]] = {
            ActionKind.POS_SWAP: self._pos_swap,
            ActionKind.NEG_SWAP: self._neg_swap,
            ActionKind.DOUBLE_SWAP: self._double_swap,
            ActionKind.EXCHANGE: self._exchange,
            ActionKind.RESIZE: self._resize,
            ActionKind.SHRINK: self._shrink,
            ActionKind.ROTATE: self._rotate,
        }

        self._last_move: Optional[Move] = None
        self._sampling = False
        self.init_temperature: Optional[float] = None
        self.trace: Optional[AnnealingTrace] = None
        self.engine: FastSimulatedAnnealing[MacroAnnealer] = FastSimulatedAnnealing(
            self, self.config, self.rng, self.logger)

    @property
    def initialized(self) -> bool:
        return self.init_temperature is not None

    # ── Initialization ────────────────────────────────────────────────

    def initialize(self) -> None:
        """
        Build the initial packing and calibrate the cost function.

        A full pack of the initial sequence pair (shelf packing unless the
        caller supplied one) is followed by ``num_perturb_per_step`` random
        moves. Their raw penalties set the normalization constants and
        their cost changes set the initial temperature. The initial
        packing is then restored.
        """
        if self._initial_sequences is None:
            self.layout.set_sequences(*self.layout.initial_sequences())
        else:
            self.layout.set_sequences(*self._initial_sequences)
        self.layout.pack()
        start = self.layout.snapshot()
        self.penalties.evaluate(all_terms=True)

        samples = []
        self._sampling = True
        try:
            for _ in range(self.config.num_perturb_per_step):
                self.perturb()
                samples.append(self.penalties.raw_values())
        finally:
            self._sampling = False

        self.penalties.set_norms(samples)
        costs = [self.penalties.cost_of(raw) for raw in samples]
        self.init_temperature = initial_temperature(
            costs, self.config.init_prob, self.config.min_temperature)

        self.layout.load(start)
        self.penalties.evaluate(all_terms=True)
        self._last_move = None

        if self.logger.isEnabledFor(logging.DEBUG):
            for name, term in self.penalties.terms.items():
                self.logger.debug("norm %-15s %.6g (weight %g)", name, term.norm, term.weight)
        self.logger.info(
            "Initialized %d macros in %.1f × %.1f outline: T_init=%.6g cost=%.6f",
            len(self.macros), self.outline_width, self.outline_height,
            self.init_temperature, self.cost(),
        )

    # ── Annealing State ───────────────────────────────────────────────

    def perturb(self) -> None:
        """Apply one random move, re-pack what it touched, re-evaluate penalties."""
        move = Move(self.action_table.pick(self.rng.random()),
                    penalties=self.penalties.raw_values())
        if move.kind is ActionKind.RESIZE and self._outline_dominates():
            move.kind = ActionKind.SHRINK

        touched = self._actions[move.kind](move)
        if touched:
            pos_from, neg_from = self.layout.dirty_from(touched)
            move.moved = self.layout.repack(pos_from, neg_from)
        self.penalties.evaluate(all_terms=self._sampling)
        self._last_move = move

    def restore(self) -> None:
        """Undo the last move exactly."""
        move = self._last_move
        if move is None:
            return
        for slot_a, slot_b in reversed(move.neg_swaps):
            self.layout.swap_neg(slot_a, slot_b)
        for slot_a, slot_b in reversed(move.pos_swaps):
            self.layout.swap_pos(slot_a, slot_b)
        for idx, key in reversed(move.shapes):
            self.macros[idx].set_shape(key)
        self.layout.restore_positions(move.moved)
        self.penalties.load(move.penalties)
        self._last_move = None

    def cost(self) -> float:
        return self.penalties.total()

    def snapshot(self) -> Any:
        return self.layout.snapshot(), self.penalties.raw_values()

    def load(self, snapshot: Any) -> None:
        layout_snapshot, raw_values = snapshot
        self.layout.load(layout_snapshot)
        self.penalties.load(raw_values)
        self._last_move = None

    # ── Moves ─────────────────────────────────────────────────────────

    def _two_distinct(self, n: int) -> tuple[int, int]:
        first = int(self.rng.integers(n))
        second = int(self.rng.integers(n - 1))
        if second >= first:
            second += 1
        return first, second

    def _pos_swap(self, move: Move) -> list[int]:
        if self.layout.num_macros < 2:
            return []
        slot_a, slot_b = self._two_distinct(self.layout.num_macros)
        self.layout.swap_pos(slot_a, slot_b)
        move.pos_swaps.append((slot_a, slot_b))
        return [self.layout.pos_seq[slot_a], self.layout.pos_seq[slot_b]]

    def _neg_swap(self, move: Move) -> list[int]:
        if self.layout.num_macros < 2:
            return []
        slot_a, slot_b = self._two_distinct(self.layout.num_macros)
        self.layout.swap_neg(slot_a, slot_b)
        move.neg_swaps.append((slot_a, slot_b))
        return [self.layout.neg_seq[slot_a], self.layout.neg_seq[slot_b]]

    def _double_swap(self, move: Move) -> list[int]:
        return self._pos_swap(move) + self._neg_swap(move)

    def _exchange(self, move: Move) -> list[int]:
        if self.layout.num_macros < 2:
            return []
        a, b = self._two_distinct(self.layout.num_macros)
        pos_slots = (self.layout.pos_index[a], self.layout.pos_index[b])
        neg_slots = (self.layout.neg_index[a], self.layout.neg_index[b])
        self.layout.swap_pos(*pos_slots)
        self.layout.swap_neg(*neg_slots)
        move.pos_swaps.append(pos_slots)
        move.neg_swaps.append(neg_slots)
        return [a, b]

    def _resize(self, move: Move) -> list[int]:
        if not self._soft:
            move.kind = ActionKind.POS_SWAP
            return self._pos_swap(move)
        idx = self._soft[int(self.rng.integers(len(self._soft)))]
        move.shapes.append((idx, self.macros[idx].resize(self.rng)))
        return [idx]

    def _shrink(self, move: Move) -> list[int]:
        if not self._soft:
            move.kind = ActionKind.POS_SWAP
            return self._pos_swap(move)

        overflowing = [i for i in self._soft if self._overflow(i) != (0.0, 0.0)]
        pool = overflowing or self._soft
        idx = pool[int(self.rng.integers(len(pool)))]
        macro = self.macros[idx]

        over_x, over_y = self._overflow(idx)
        horizontal = over_x >= over_y
        old = macro.shrink(horizontal)
        if old is None:
            old = macro.shrink(not horizontal)
        if old is None:
            move.kind = ActionKind.RESIZE
            old = macro.resize(self.rng)
        move.shapes.append((idx, old))
        return [idx]

    def _rotate(self, move: Move) -> list[int]:
        if not self._rotatable:
            move.kind = ActionKind.POS_SWAP
            return self._pos_swap(move)
        idx = self._rotatable[int(self.rng.integers(len(self._rotatable)))]
        move.shapes.append((idx, self.macros[idx].alternate_shape(self.rng)))
        return [idx]

    def _overflow(self, idx: int) -> tuple[float, float]:
        m = self.macros[idx]
        return (max(0.0, m.x + m.width - self.outline_width),
                max(0.0, m.y + m.height - self.outline_height))

    def _outline_dominates(self) -> bool:
        term = self.penalties.terms["outline"]
        if not term.enabled or term.raw <= 0:
            return False
        return term.cost > SHRINK_DOMINANCE * self.penalties.total()

    # ── Main Entry Point ──────────────────────────────────────────────

    def run(self, on_progress: Optional[Callable[[int, float, float], None]] = None
            ) -> FloorplanResult:
        """
        Anneal the floorplan and leave the macros at the best layout found.

        Never raises for infeasible outlines; check
        ``result.fits_outline`` or ``result.penalties["outline"]``.
        """
        if not self.initialized:
            self.initialize()
        self.engine.on_progress = on_progress
        self.trace = self.engine.run(self.init_temperature)
        self.penalties.evaluate(all_terms=True)
        return self.result()

    def result(self) -> FloorplanResult:
        """Current macro geometry and penalty values, with the last run's history."""
        trace = self.trace
        result = FloorplanResult(
            seed=self.config.seed,
            final_cost=self.cost(),
            penalties=self.penalties.normalized(),
            raw_penalties=self.penalties.raw(),
            placements=[self._placement(m) for m in self.macros],
        )
        if trace is not None:
            result.best_cost = trace.best_cost
            result.init_temperature = trace.init_temperature
            result.iterations = trace.iterations
            result.best_iteration = trace.best_iteration
            result.runtime_seconds = trace.runtime_seconds
            result.cost_history = trace.cost_history
            result.temperature_history = trace.temperature_history
            result.acceptance_history = trace.acceptance_history
        else:
            result.best_cost = result.final_cost
        return result

    @staticmethod
    def _placement(macro: Macro) -> MacroPlacement:
        if isinstance(macro, HardMacro):
            return MacroPlacement(macro.name, macro.x, macro.y, macro.width, macro.height,
                                  orientation=macro.orientation.value)
        return MacroPlacement(macro.name, macro.x, macro.y, macro.width, macro.height,
                              shape_index=macro.shape_index)

    # ── Penalty Accessors ─────────────────────────────────────────────

    def cal_penalty(self) -> None:
        """Recompute every raw penalty term from the current layout."""
        self.penalties.evaluate(all_terms=True)

    def cal_norm_cost(self) -> float:
        """Weighted sum of normalized penalty terms."""
        return self.penalties.total()

    def get_penalty(self, name: str) -> float:
        return self.penalties.terms[name].raw

    def get_norm_penalty(self, name: str) -> float:
        return self.penalties.terms[name].normalized

    # ── Post-processing ───────────────────────────────────────────────

    def fill_dead_space(self) -> None:
        """
        Grow soft macros into the free area around them.

        Each soft macro lying inside the outline extends left, right, down
        and up, one grid column/row at a time, while the cells it would
        cover are free. Macros and blockages stop the growth.
        """
        blockage_boxes = [b.bbox for b in self.floorplan.blockages]
        grid = build_grid(self.outline_width, self.outline_height,
                          [m.bbox for m in self.macros], blockage_boxes)

        for idx, macro in enumerate(self.macros):
            if not isinstance(macro, SoftMacro) or not self._inside_outline(macro):
                continue
            col_start, col_end, row_start, row_end = grid.span(macro.bbox)
            if col_start >= col_end or row_start >= row_end:
                continue

            rows = slice(row_start, row_end)
            while col_start > 0 and grid.is_free(rows, slice(col_start - 1, col_start)):
                col_start -= 1
                grid.fill(rows, slice(col_start, col_start + 1), idx)
            while col_end < grid.num_cols and grid.is_free(rows, slice(col_end, col_end + 1)):
                grid.fill(rows, slice(col_end, col_end + 1), idx)
                col_end += 1

            cols = slice(col_start, col_end)
            while row_start > 0 and grid.is_free(slice(row_start - 1, row_start), cols):
                row_start -= 1
                grid.fill(slice(row_start, row_start + 1), cols, idx)
            while row_end < grid.num_rows and grid.is_free(slice(row_end, row_end + 1), cols):
                grid.fill(slice(row_end, row_end + 1), cols, idx)
                row_end += 1

            x = grid.x_lines[col_start]
            y = grid.y_lines[row_start]
            macro.stretch(x, y, grid.x_lines[col_end] - x, grid.y_lines[row_end] - y)

        self.penalties.evaluate(all_terms=True)
        self._last_move = None

    def align_macro_clusters(self, h_threshold: float | None = None,
                             v_threshold: float | None = None) -> None:
        """
        Snap hard macros to the outline edges and to each other's edges.

        Thresholds default to the notch thresholds, capped by 10% of the
        outline and by the smallest hard macro dimension. A snap is skipped
        if it would leave the outline or increase the macro's overlap with
        other macros or blockages. Nothing is done when the packing does
        not fit the outline.
        """
        hard = [i for i, m in enumerate(self.macros) if isinstance(m, HardMacro)]
        if not hard:
            return
        width, height = self.layout.bounding_box()
        if width > self.outline_width or height > self.outline_height:
            return

        if h_threshold is None:
            h_threshold = min(self.notch_h_threshold,
                              self.outline_width * ALIGN_OUTLINE_RATIO,
                              min(self.macros[i].width for i in hard))
        if v_threshold is None:
            v_threshold = min(self.notch_v_threshold,
                              self.outline_height * ALIGN_OUTLINE_RATIO,
                              min(self.macros[i].height for i in hard))

        for idx in hard:
            m = self.macros[idx]
            right_gap = self.outline_width - (m.x + m.width)
            if 0 < m.x <= h_threshold:
                self._try_place(idx, 0.0, m.y)
            elif 0 < right_gap <= h_threshold:
                self._try_place(idx, self.outline_width - m.width, m.y)
            top_gap = self.outline_height - (m.y + m.height)
            if 0 < m.y <= v_threshold:
                self._try_place(idx, m.x, 0.0)
            elif 0 < top_gap <= v_threshold:
                self._try_place(idx, m.x, self.outline_height - m.height)

        for pos, ref_idx in enumerate(hard):
            ref = self.macros[ref_idx]
            for idx in hard[pos + 1:]:
                m = self.macros[idx]
                if 0 < abs(m.x - ref.x) <= h_threshold:
                    self._try_place(idx, ref.x, m.y)
                elif 0 < abs((m.x + m.width) - (ref.x + ref.width)) <= h_threshold:
                    self._try_place(idx, ref.x + ref.width - m.width, m.y)
                if 0 < abs(m.y - ref.y) <= v_threshold:
                    self._try_place(idx, m.x, ref.y)
                elif 0 < abs((m.y + m.height) - (ref.y + ref.height)) <= v_threshold:
                    self._try_place(idx, m.x, ref.y + ref.height - m.height)

        self.penalties.evaluate(all_terms=True)
        self._last_move = None

    def _inside_outline(self, macro: Macro) -> bool:
        return (macro.x >= 0 and macro.y >= 0
                and macro.x + macro.width <= self.outline_width
                and macro.y + macro.height <= self.outline_height)

    def _conflict_area(self, idx: int) -> float:
        box = self.macros[idx].bbox
        area = sum(bbox_overlap_area(box, other.bbox)
                   for i, other in enumerate(self.macros) if i != idx)
        area += sum(bbox_overlap_area(box, b.bbox) for b in self.floorplan.blockages)
        return area

    def _try_place(self, idx: int, x: float, y: float) -> bool:
        macro = self.macros[idx]
        old_x, old_y = macro.x, macro.y
        before = self._conflict_area(idx)
        macro.place(x, y)
        if self._inside_outline(macro) and self._conflict_area(idx) <= before:
            return True
        macro.place(old_x, old_y)
        return False

    # ── Summary ───────────────────────────────────────────────────────

    def summary(self) -> str:
        """Per-term penalty table."""
        lines = [f"{'term':<16s}{'weight':>10s}{'raw':>14s}{'norm':>14s}{'cost':>12s}"]
        for name, term in self.penalties.terms.items():
            lines.append(f"{name:<16s}{term.weight:>10.3g}{term.raw:>14.6g}"
                         f"{term.norm:>14.6g}{term.cost:>12.6f}")
        lines.append(f"{'total':<16s}{'':>38s}{self.cost():>12.6f}")
        return "\n".join(lines)
