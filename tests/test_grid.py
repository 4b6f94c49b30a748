"""
Tests for the non-uniform occupancy grid.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest
import numpy as np

from floorplanner.grid import BLOCKED, FREE, Grid, build_grid, segment_loc


class TestSegmentLoc:
    """Tests for mapping spans onto grid cells."""

    LINES = [0.0, 10.0, 20.0, 30.0]

    @pytest.mark.parametrize("start, end, expected", [
        (10.0, 20.0, (1, 2)),       # exactly on grid lines
        (5.0, 25.0, (0, 3)),        # partial cells are included
        (0.0, 30.0, (0, 3)),
        (-5.0, 0.0, (0, 0)),        # left of the grid
        (35.0, 40.0, (3, 3)),       # right of the grid
        (20.0, 10.0, (2, 2)),       # reversed span is empty
    ])
    def test_segment_loc(self, start, end, expected):
        assert segment_loc(start, end, self.LINES) == expected


class TestGrid:
    """Tests for grid construction and queries."""

    def test_lines_from_boxes(self):
        grid = Grid(100, 100, [(20, 30, 50, 60), (90, 90, 120, 120)])
        assert grid.x_lines == [0.0, 20.0, 50.0, 90.0, 100.0]
        assert grid.y_lines == [0.0, 30.0, 60.0, 90.0, 100.0]
        assert grid.occupancy.shape == (4, 4)
        assert np.all(grid.occupancy == FREE)

    def test_build_grid_marks_owners(self):
        grid = build_grid(100, 100, [(0, 0, 50, 50)], [(50, 50, 100, 100)])
        assert grid.occupancy[0, 0] == 0
        assert grid.occupancy[1, 1] == BLOCKED
        assert grid.occupancy[0, 1] == FREE
        assert grid.occupancy[1, 0] == FREE
        assert grid.is_free(slice(1, 2), slice(0, 1))
        assert not grid.is_free(slice(0, 2), slice(0, 1))

    def test_cell_sizes(self):
        grid = Grid(100, 50, [(20, 10, 30, 40)])
        assert list(grid.cell_widths()) == [20.0, 10.0, 70.0]
        assert list(grid.cell_heights()) == [10.0, 30.0, 10.0]
        assert grid.cell_area(1, 1) == 300.0
        assert grid.cell_area(0, 2) == 700.0

    def test_free_runs(self):
        grid = build_grid(100, 100, [(0, 0, 50, 50)], [(50, 50, 100, 100)])
        h_runs = grid.free_runs(axis=1)
        v_runs = grid.free_runs(axis=0)
        assert h_runs.tolist() == [[0.0, 50.0], [50.0, 0.0]]
        assert v_runs.tolist() == [[0.0, 50.0], [50.0, 0.0]]

    def test_free_runs_several_per_line(self):
        grid = Grid(100, 20, [(10, 0, 20, 10), (40, 10, 70, 20)])
        assert grid.x_lines == [0.0, 10.0, 20.0, 40.0, 70.0, 100.0]
        grid.fill(slice(0, 1), slice(1, 2), 0)
        grid.fill(slice(1, 2), slice(3, 4), BLOCKED)
        assert grid.free_runs(axis=1).tolist() == [
            [10.0, 0.0, 80.0, 80.0, 80.0],
            [40.0, 40.0, 40.0, 0.0, 30.0],
        ]
        assert grid.free_runs(axis=0).tolist() == [
            [20.0, 0.0, 20.0, 10.0, 20.0],
            [20.0, 10.0, 20.0, 0.0, 20.0],
        ]

    def test_free_runs_fully_occupied(self):
        grid = Grid(100, 100, [(0, 0, 50, 50)])
        grid.fill(slice(0, 2), slice(0, 2), BLOCKED)
        assert not grid.free_runs(axis=1).any()
        assert grid.free_runs(axis=0).shape == (2, 2)

    def test_narrow_channel(self):
        grid = build_grid(100, 100, [(0, 0, 45, 100), (55, 0, 100, 100)], [])
        assert grid.x_lines == [0.0, 45.0, 55.0, 100.0]
        assert grid.free_runs(axis=1)[0, 1] == 10.0
        assert grid.free_runs(axis=0)[0, 1] == 100.0

    def test_fill(self):
        grid = Grid(100, 100, [(0, 0, 50, 50)])
        grid.fill(slice(0, 1), slice(0, 2), 3)
        assert grid.occupancy[0].tolist() == [3, 3]
        assert grid.span((0, 0, 50, 50)) == (0, 1, 0, 1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
