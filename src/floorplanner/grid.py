"""
Non-uniform grid over the outline.

The grid lines are the outline edges plus every rectangle edge that falls
inside the outline, so each grid cell is either fully covered by a
rectangle or fully free. Dead-space filling and notch detection both work
on this grid.
"""

from __future__ import annotations
from bisect import bisect_left, bisect_right
from typing import Iterable

import numpy as np

FREE = -1
BLOCKED = -2


def segment_loc(start: float, end: float, lines: list[float]) -> tuple[int, int]:
    """
    Map a continuous span onto grid cell indices.

    Floor-based: ``start`` falls in the cell whose lower line is the largest
    line <= start; ``end`` maps to the first line >= end. The result is the
    half-open range [start_id, end_id), clamped to the grid; an empty or
    out-of-grid span gives start_id == end_id.
    """
    num_cells = len(lines) - 1
    start_id = min(max(bisect_right(lines, start) - 1, 0), num_cells)
    end_id = min(max(bisect_left(lines, end), 0), num_cells)
    if end_id < start_id:
        end_id = start_id
    return start_id, end_id


class Grid:
    """
    Occupancy grid built from a set of rectangles.

    ``occupancy[row, col]`` holds FREE, BLOCKED, or the index of the macro
    covering the cell.
    """

    def __init__(self, outline_width: float, outline_height: float,
                 boxes: Iterable[tuple[float, float, float, float]]):
        self.outline_width = outline_width
        self.outline_height = outline_height

        x_points = {0.0, float(outline_width)}
        y_points = {0.0, float(outline_height)}
        for x_min, y_min, x_max, y_max in boxes:
            for x in (x_min, x_max):
                if 0.0 < x < outline_width:
                    x_points.add(float(x))
            for y in (y_min, y_max):
                if 0.0 < y < outline_height:
                    y_points.add(float(y))

        self.x_lines = sorted(x_points)
        self.y_lines = sorted(y_points)
        self.occupancy = np.full((self.num_rows, self.num_cols), FREE, dtype=int)

    @property
    def num_cols(self) -> int:
        return len(self.x_lines) - 1

    @property
    def num_rows(self) -> int:
        return len(self.y_lines) - 1

    def span(self, box: tuple[float, float, float, float]) -> tuple[int, int, int, int]:
        """Cell range (col_start, col_end, row_start, row_end) covered by a box."""
        col_start, col_end = segment_loc(box[0], box[2], self.x_lines)
        row_start, row_end = segment_loc(box[1], box[3], self.y_lines)
        return col_start, col_end, row_start, row_end

    def mark(self, box: tuple[float, float, float, float], owner: int) -> None:
        col_start, col_end, row_start, row_end = self.span(box)
        self.occupancy[row_start:row_end, col_start:col_end] = owner

    def is_free(self, rows: slice, cols: slice) -> bool:
        return bool(np.all(self.occupancy[rows, cols] == FREE))

    def fill(self, rows: slice, cols: slice, owner: int) -> None:
        self.occupancy[rows, cols] = owner

    def cell_widths(self) -> np.ndarray:
        return np.diff(np.asarray(self.x_lines))

    def cell_heights(self) -> np.ndarray:
        return np.diff(np.asarray(self.y_lines))

    def cell_area(self, row: int, col: int) -> float:
        return (self.x_lines[col + 1] - self.x_lines[col]) * (self.y_lines[row + 1] - self.y_lines[row])

    def free_runs(self, axis: int) -> np.ndarray:
        """
        Length of the contiguous free run each cell belongs to.

        ``axis=1`` measures runs along rows (horizontal extent), ``axis=0``
        along columns (vertical extent). Occupied cells get 0.
        """
        free = self.occupancy == FREE
        sizes = self.cell_widths() if axis == 1 else self.cell_heights()
        if axis == 0:
            free = free.T
        if not free.any():
            return np.zeros(self.occupancy.shape, dtype=float)

        # +1 where a run starts, -1 one past where it ends
        edges = np.diff(np.pad(free.astype(np.int8), ((0, 0), (1, 1))), axis=1)
        _, start_cols = np.nonzero(edges == 1)
        _, end_cols = np.nonzero(edges == -1)
        offsets = np.concatenate(([0.0], np.cumsum(sizes)))
        lengths = offsets[end_cols] - offsets[start_cols]

        # Runs are numbered in row-major order, matching np.nonzero above
        run_id = np.cumsum(edges[:, :-1] == 1).reshape(free.shape) - 1
        runs = np.where(free, lengths[run_id], 0.0)
        return runs if axis == 1 else runs.T


def build_grid(outline_width: float, outline_height: float,
               macro_boxes: list[tuple[float, float, float, float]],
               blockage_boxes: list[tuple[float, float, float, float]]) -> Grid:
    """Grid with macro cells owned by their index and blockage cells BLOCKED."""
    grid = Grid(outline_width, outline_height, list(macro_boxes) + list(blockage_boxes))
    for idx, box in enumerate(macro_boxes):
        grid.mark(box, idx)
    for box in blockage_boxes:
        grid.mark(box, BLOCKED)
    return grid
