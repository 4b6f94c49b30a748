"""
Sequence-pair layout of a macro set.

A sequence pair (pos_seq, neg_seq) encodes the relative placement of every
pair of macros:

  - a is left of b   iff a precedes b in both sequences
  - a is below b     iff a follows b in pos_seq and precedes it in neg_seq

Coordinates are obtained by a longest-path sweep. Each axis is packed in
O(n log n) with a monotone staircase (a bucket keyed by sequence slot), and
after a local edit only the macros at or after the first edited slot are
re-packed.
"""

from __future__ import annotations
from bisect import bisect_left
from typing import Generic, Hashable, Iterable, Sequence, TypeVar

from core.macro import Placeable

M = TypeVar("M", bound=Placeable)

# (pos_seq, neg_seq, shape keys, positions)
LayoutSnapshot = tuple[list[int], list[int], tuple[Hashable, ...], tuple[tuple[float, float], ...]]


class _Staircase:
    """
    Keys mapped to increasing values.

    ``query(key)`` is the largest value inserted under a smaller key.
    Entries dominated by a new insertion are dropped.
    """

    def __init__(self) -> None:
        self.keys: list[int] = []
        self.values: list[float] = []

    def query(self, key: int) -> float:
        idx = bisect_left(self.keys, key)
        return self.values[idx - 1] if idx > 0 else 0.0

    def insert(self, key: int, value: float) -> None:
        idx = bisect_left(self.keys, key)
        if idx > 0 and self.values[idx - 1] >= value:
            return
        end = idx
        while end < len(self.keys) and self.values[end] <= value:
            end += 1
        del self.keys[idx:end]
        del self.values[idx:end]
        self.keys.insert(idx, key)
        self.values.insert(idx, value)


class SequencePairLayout(Generic[M]):
    """
    Packs a list of placeable macros from a sequence pair.

    Macros are referred to by their index in ``macros``; the sequences hold
    those indices and ``pos_index``/``neg_index`` are the inverse maps.
    """

    def __init__(self, macros: list[M], outline_width: float, outline_height: float):
        self.macros = macros
        self.outline_width = outline_width
        self.outline_height = outline_height
        self.pos_seq: list[int] = list(range(len(macros)))
        self.neg_seq: list[int] = list(range(len(macros)))
        self.pos_index: list[int] = []
        self.neg_index: list[int] = []
        self._reindex()

    @property
    def num_macros(self) -> int:
        return len(self.macros)

    def _reindex(self) -> None:
        n = self.num_macros
        self.pos_index = [0] * n
        self.neg_index = [0] * n
        for slot, idx in enumerate(self.pos_seq):
            self.pos_index[idx] = slot
        for slot, idx in enumerate(self.neg_seq):
            self.neg_index[idx] = slot

    # ── Sequences ─────────────────────────────────────────────────────

    def set_sequences(self, pos_seq: Sequence[int], neg_seq: Sequence[int]) -> None:
        """Install a sequence pair; both must be permutations of the macro indices."""
        expected = list(range(self.num_macros))
        if sorted(pos_seq) != expected or sorted(neg_seq) != expected:
            raise ValueError(
                f"Sequence pair must be two permutations of 0..{self.num_macros - 1}"
            )
        self.pos_seq = list(pos_seq)
        self.neg_seq = list(neg_seq)
        self._reindex()

    def initial_sequences(self) -> tuple[list[int], list[int]]:
        """
        Shelf packing encoded as a sequence pair.

        Macros sorted by decreasing height fill rows up to the outline
        width. pos_seq lists rows top to bottom, neg_seq bottom to top,
        each row left to right.
        """
        order = sorted(range(self.num_macros), key=lambda i: -self.macros[i].height)
        rows: list[list[int]] = []
        row: list[int] = []
        row_width = 0.0
        for idx in order:
            width = self.macros[idx].width
            if row and row_width + width > self.outline_width:
                rows.append(row)
                row, row_width = [], 0.0
            row.append(idx)
            row_width += width
        if row:
            rows.append(row)

        pos_seq = [idx for shelf in reversed(rows) for idx in shelf]
        neg_seq = [idx for shelf in rows for idx in shelf]
        return pos_seq, neg_seq

    def swap_pos(self, slot_a: int, slot_b: int) -> None:
        seq = self.pos_seq
        seq[slot_a], seq[slot_b] = seq[slot_b], seq[slot_a]
        self.pos_index[seq[slot_a]] = slot_a
        self.pos_index[seq[slot_b]] = slot_b

    def swap_neg(self, slot_a: int, slot_b: int) -> None:
        seq = self.neg_seq
        seq[slot_a], seq[slot_b] = seq[slot_b], seq[slot_a]
        self.neg_index[seq[slot_a]] = slot_a
        self.neg_index[seq[slot_b]] = slot_b

    def dirty_from(self, indices: Iterable[int]) -> tuple[int, int]:
        """First pos/neg slot whose coordinates may change when ``indices`` change."""
        indices = list(indices)
        if not indices:
            return self.num_macros, self.num_macros
        return (min(self.pos_index[i] for i in indices),
                min(self.neg_index[i] for i in indices))

    # ── Packing ───────────────────────────────────────────────────────

    def pack(self) -> None:
        """Full re-pack of both axes."""
        self._pack_x(0)
        self._pack_y(0)

    def repack(self, pos_from: int, neg_from: int) -> list[tuple[int, float, float]]:
        """
        Re-pack x from ``pos_seq[pos_from:]`` and y from ``neg_seq[neg_from:]``.

        Returns (index, old_x, old_y) for every macro that moved.
        """
        touched = set(self.pos_seq[pos_from:]) | set(self.neg_seq[neg_from:])
        before = [(idx, self.macros[idx].x, self.macros[idx].y) for idx in sorted(touched)]
        self._pack_x(pos_from)
        self._pack_y(neg_from)
        return [(idx, x, y) for idx, x, y in before
                if self.macros[idx].x != x or self.macros[idx].y != y]

    def _pack_x(self, start: int) -> None:
        # Left neighbours of b precede it in pos_seq and have a smaller neg slot.
        stair = _Staircase()
        for slot, idx in enumerate(self.pos_seq):
            macro = self.macros[idx]
            key = self.neg_index[idx]
            if slot >= start:
                macro.x = stair.query(key)
            stair.insert(key, macro.x + macro.width)

    def _pack_y(self, start: int) -> None:
        # Lower neighbours of b precede it in neg_seq and follow it in pos_seq.
        last = self.num_macros - 1
        stair = _Staircase()
        for slot, idx in enumerate(self.neg_seq):
            macro = self.macros[idx]
            key = last - self.pos_index[idx]
            if slot >= start:
                macro.y = stair.query(key)
            stair.insert(key, macro.y + macro.height)

    def restore_positions(self, moved: list[tuple[int, float, float]]) -> None:
        for idx, x, y in moved:
            self.macros[idx].x = x
            self.macros[idx].y = y

    # ── Metrics ───────────────────────────────────────────────────────

    def bounding_box(self) -> tuple[float, float]:
        """(width, height) of the packed macros."""
        if not self.macros:
            return 0.0, 0.0
        width = max(m.x + m.width for m in self.macros)
        height = max(m.y + m.height for m in self.macros)
        return width, height

    # ── Snapshots ─────────────────────────────────────────────────────

    def snapshot(self) -> LayoutSnapshot:
        return (
            list(self.pos_seq),
            list(self.neg_seq),
            tuple(m.shape_key for m in self.macros),
            tuple((m.x, m.y) for m in self.macros),
        )

    def load(self, snapshot: LayoutSnapshot, positions: bool = True) -> None:
        """Restore sequences, shapes and (by default) positions from a snapshot."""
        pos_seq, neg_seq, shapes, coords = snapshot
        self.pos_seq = list(pos_seq)
        self.neg_seq = list(neg_seq)
        self._reindex()
        for macro, key in zip(self.macros, shapes):
            macro.set_shape(key)
        if positions:
            for macro, (x, y) in zip(self.macros, coords):
                macro.x = x
                macro.y = y
        else:
            self.pack()
