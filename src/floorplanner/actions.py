"""
Perturbation moves for the sequence-pair annealer.

Each move is drawn from a cumulative probability table built once at
construction and records everything needed to undo it exactly.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass, field, fields
from enum import Enum, auto
from typing import Hashable

# Remainders below this are rounding error, not a Rotate share.
ROTATE_EPS = 1e-12


class ActionKind(Enum):
    """Kinds of perturbation."""
    POS_SWAP = auto()       # swap two slots of pos_seq
    NEG_SWAP = auto()       # swap two slots of neg_seq
    DOUBLE_SWAP = auto()    # one independent swap in each sequence
    EXCHANGE = auto()       # two macros trade places in both sequences
    RESIZE = auto()         # soft macro takes another candidate shape
    SHRINK = auto()         # soft macro narrows along the overflowing axis
    ROTATE = auto()         # hard macro takes another orientation


@dataclass
class ActionProbabilities:
    """
    Relative probabilities of the base moves.

    When they sum to less than 1 the remainder is given to ROTATE;
    otherwise they are scaled to sum to 1 and ROTATE is never drawn.
    """
    pos_swap: float = 0.2
    neg_swap: float = 0.2
    double_swap: float = 0.2
    exchange: float = 0.2
    resize: float = 0.2

    def validate(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ValueError(f"Action probability '{f.name}' must be non-negative, got {value}")
        if sum(getattr(self, f.name) for f in fields(self)) <= 0:
            raise ValueError("At least one action probability must be positive")


class ActionTable:
    """Maps a uniform draw in [0, 1) to an ActionKind."""

    def __init__(self, probs: ActionProbabilities):
        probs.validate()
        weighted = [
            (ActionKind.POS_SWAP, probs.pos_swap),
            (ActionKind.NEG_SWAP, probs.neg_swap),
            (ActionKind.DOUBLE_SWAP, probs.double_swap),
            (ActionKind.EXCHANGE, probs.exchange),
            (ActionKind.RESIZE, probs.resize),
        ]
        total = sum(p for _, p in weighted)
        if total > 1.0:
            weighted = [(kind, p / total) for kind, p in weighted]
        elif 1.0 - total > ROTATE_EPS:
            weighted.append((ActionKind.ROTATE, 1.0 - total))

        self.kinds: list[ActionKind] = []
        self.bounds: list[float] = []
        acc = 0.0
        for kind, p in weighted:
            if p <= 0:
                continue
            acc += p
            self.kinds.append(kind)
            self.bounds.append(acc)
        self.bounds[-1] = 1.0

    def pick(self, draw: float) -> ActionKind:
        idx = bisect_right(self.bounds, draw)
        return self.kinds[min(idx, len(self.kinds) - 1)]

    def probability(self, kind: ActionKind) -> float:
        if kind not in self.kinds:
            return 0.0
        idx = self.kinds.index(kind)
        return self.bounds[idx] - (self.bounds[idx - 1] if idx else 0.0)


@dataclass
class Move:
    """
    Undo record of one perturbation.

    Attributes:
        kind: The action that was applied.
        pos_swaps: pos_seq slot pairs swapped, in application order.
        neg_swaps: neg_seq slot pairs swapped, in application order.
        shapes: (macro index, previous shape key) pairs.
        moved: (macro index, old x, old y) for every macro the re-pack moved.
        penalties: Raw penalty values before the move.
    """
    kind: ActionKind
    pos_swaps: list[tuple[int, int]] = field(default_factory=list)
    neg_swaps: list[tuple[int, int]] = field(default_factory=list)
    shapes: list[tuple[int, Hashable]] = field(default_factory=list)
    moved: list[tuple[int, float, float]] = field(default_factory=list)
    penalties: tuple[float, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not (self.pos_swaps or self.neg_swaps or self.shapes)
