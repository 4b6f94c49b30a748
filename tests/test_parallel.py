"""
Tests for parallel annealing runs.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest

from core import Floorplan, HardMacro, SoftMacro, Net
from floorplanner import (
    ActionProbabilities, FastSAConfig, MacroAnnealer, PenaltyWeights, run_parallel, select_best,
)
from floorplanner.macro_annealer import FloorplanResult


CONFIG = FastSAConfig(max_num_step=20, num_perturb_per_step=15)


def _floorplan():
    return Floorplan(
        80, 80,
        macros=[HardMacro("a", 30, 20), HardMacro("b", 20, 20),
                SoftMacro.from_area("c", 600, (0.5, 1.0, 2.0))],
        nets=[Net("n0", ["a", "b", "c"])],
    )


class TestRunParallel:
    """Tests for run_parallel."""

    def test_results_follow_seed_order(self):
        results = run_parallel(_floorplan(), seeds=[5, 1, 3], config=CONFIG, max_workers=3)
        assert [r.seed for r in results] == [5, 1, 3]
        assert all(len(r.placements) == 3 for r in results)

    def test_matches_sequential_run(self):
        fp = _floorplan()
        parallel = run_parallel(fp, seeds=[2], config=CONFIG)[0]
        config = FastSAConfig(max_num_step=20, num_perturb_per_step=15, seed=2)
        sequential = MacroAnnealer(fp, config=config).run()
        assert parallel.placements == sequential.placements
        assert parallel.cost_history == sequential.cost_history

    def test_input_untouched(self):
        fp = _floorplan()
        run_parallel(fp, seeds=[0, 1], config=CONFIG, post_process=True)
        assert all((m.x, m.y) == (0.0, 0.0) for m in fp.macros)

    def test_shared_settings_not_mutated(self):
        weights = PenaltyWeights(area=1.0, outline=2.0, wirelength=0.5)
        actions = ActionProbabilities(0.3, 0.3, 0.1, 0.1, 0.2)
        results = run_parallel(_floorplan(), seeds=[0, 1, 2], config=CONFIG,
                               max_workers=3, weights=weights, actions=actions)
        assert weights == PenaltyWeights(area=1.0, outline=2.0, wirelength=0.5)
        assert actions == ActionProbabilities(0.3, 0.3, 0.1, 0.1, 0.2)
        config = FastSAConfig(max_num_step=20, num_perturb_per_step=15, seed=1)
        sequential = MacroAnnealer(_floorplan(), weights=weights, actions=actions,
                                   config=config).run()
        assert results[1].placements == sequential.placements

    def test_empty_seeds(self):
        assert run_parallel(_floorplan(), seeds=[]) == []

    def test_invalid_floorplan(self):
        with pytest.raises(ValueError):
            run_parallel(Floorplan(-1, 10), seeds=[0])


class TestSelectBest:
    """Tests for select_best."""

    def test_fitting_run_beats_cheaper_overflowing_run(self):
        overflowing = FloorplanResult(seed=0, final_cost=0.1, raw_penalties={"outline": 5.0})
        fitting = FloorplanResult(seed=1, final_cost=0.9, raw_penalties={"outline": 0.0})
        assert select_best([overflowing, fitting]) is fitting

    def test_lowest_cost_then_earliest(self):
        a = FloorplanResult(seed=0, final_cost=0.5)
        b = FloorplanResult(seed=1, final_cost=0.3)
        c = FloorplanResult(seed=2, final_cost=0.3)
        assert select_best([a, b, c]) is b

    def test_empty(self):
        with pytest.raises(ValueError):
            select_best([])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
