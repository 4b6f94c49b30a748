"""
Tests for the sequence-pair macro annealer.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import logging

import pytest

from core import Floorplan, HardMacro, SoftMacro, Net, Rect, Orientation
from floorplanner import (
    ActionKind, ActionProbabilities, FastSAConfig, MacroAnnealer, PenaltyWeights,
)
from floorplanner.penalty import TERM_NAMES


SMALL = dict(max_num_step=30, num_perturb_per_step=20)


def _config(seed=0, **overrides):
    params = dict(SMALL, seed=seed)
    params.update(overrides)
    return FastSAConfig(**params)


def _mixed_floorplan():
    rot = (Orientation.R0, Orientation.R90)
    macros = [
        HardMacro("ram0", 40, 20, orientations=rot),
        HardMacro("ram1", 30, 30, prefer_boundary=True),
        HardMacro("rom", 25, 10, orientations=rot),
        SoftMacro.from_area("cpu", 900, (0.5, 1.0, 2.0)),
        SoftMacro.from_area("dsp", 400, (0.25, 1.0, 4.0)),
        SoftMacro("io", [(20, 20), (10, 40), (40, 10)]),
    ]
    return Floorplan(
        100, 100, macros=macros,
        nets=[Net("n0", ["ram0", "cpu", "pad"]), Net("n1", ["dsp", "io", "rom"], weight=2.0)],
        terminals={"pad": (0.0, 50.0)},
        blockages=[Rect(80, 80, 20, 20)],
        guides={"dsp": Rect(60, 0, 40, 40)},
        fences={"cpu": Rect(0, 0, 60, 60)},
    )


ALL_ON = PenaltyWeights(**{name: 1.0 for name in TERM_NAMES})


def _state(annealer):
    return (
        [(m.x, m.y, m.width, m.height, m.shape_key) for m in annealer.macros],
        list(annealer.layout.pos_seq),
        list(annealer.layout.neg_seq),
        annealer.penalties.raw_values(),
    )


class TestInitialization:
    """Tests for Initialize."""

    def test_two_hard_macros_fit(self):
        fp = Floorplan(100, 100, macros=[HardMacro("a", 40, 40), HardMacro("b", 30, 30)])
        weights = PenaltyWeights(area=1.0, outline=1.0, wirelength=0.0)
        annealer = MacroAnnealer(fp, weights=weights, config=_config())
        annealer.initialize()
        assert annealer.initialized
        assert annealer.get_penalty("outline") == 0.0
        assert annealer.floorplan.all_within_bounds()
        assert annealer.init_temperature > 0.0

    def test_norms_are_positive(self):
        annealer = MacroAnnealer(_mixed_floorplan(), weights=ALL_ON, config=_config(),
                                 notch_h_threshold=5.0, notch_v_threshold=5.0)
        annealer.initialize()
        assert all(term.norm > 0 for term in annealer.penalties.terms.values())

    def test_initial_sequences_honored(self):
        fp = Floorplan(100, 100, macros=[HardMacro("a", 40, 40), HardMacro("b", 30, 30)])
        annealer = MacroAnnealer(fp, config=_config(), initial_sequences=([1, 0], [0, 1]))
        annealer.initialize()
        b = annealer.floorplan.get_macro("b")
        assert (b.x, b.y) == (0.0, 40.0)

    def test_invalid_inputs(self):
        with pytest.raises(ValueError):
            MacroAnnealer(Floorplan(0, 100, macros=[HardMacro("a", 1, 1)]))
        with pytest.raises(ValueError):
            MacroAnnealer(_mixed_floorplan(), weights=PenaltyWeights(area=-1.0))
        with pytest.raises(ValueError):
            MacroAnnealer(_mixed_floorplan(), config=FastSAConfig(max_num_step=0))
        with pytest.raises(ValueError):
            MacroAnnealer(_mixed_floorplan(), config=FastSAConfig(c=0.3))
        with pytest.raises(ValueError):
            MacroAnnealer(_mixed_floorplan(), actions=ActionProbabilities(0, 0, 0, 0, 0))
        with pytest.raises(ValueError):
            MacroAnnealer(_mixed_floorplan(), initial_sequences=([0, 1], [1, 0]))


    def test_settings_are_private_copies(self):
        weights = PenaltyWeights(area=1.0, outline=2.0)
        actions = ActionProbabilities(0.1, 0.1, 0.1, 0.1, 0.1)
        config = _config()
        annealer = MacroAnnealer(_mixed_floorplan(), weights=weights, actions=actions,
                                 config=config)
        assert annealer.weights is not weights and annealer.weights == weights
        assert annealer.actions is not actions and annealer.actions == actions
        assert annealer.config is not config and annealer.config == config
        weights.outline = 50.0
        config.seed = 99
        assert annealer.weights.outline == 2.0
        assert annealer.config.seed == 0


class TestMoves:
    """Every move must be exactly reversible."""

    def test_perturb_restore_round_trip(self):
        annealer = MacroAnnealer(_mixed_floorplan(), weights=ALL_ON,
                                 actions=ActionProbabilities(0.15, 0.15, 0.15, 0.15, 0.2),
                                 config=_config(seed=5),
                                 notch_h_threshold=5.0, notch_v_threshold=5.0)
        annealer.initialize()
        for _ in range(300):
            before = _state(annealer)
            cost = annealer.cost()
            annealer.perturb()
            annealer.restore()
            assert _state(annealer) == before
            assert annealer.cost() == cost

    def test_resize_conserves_soft_area(self):
        annealer = MacroAnnealer(_mixed_floorplan(),
                                 actions=ActionProbabilities(0, 0, 0, 0, 1.0),
                                 config=_config(seed=2))
        annealer.initialize()
        soft = [m for m in annealer.macros if isinstance(m, SoftMacro)]
        for _ in range(100):
            annealer.perturb()
            for m in soft:
                assert m.area == pytest.approx(m.required_area)

    def test_repeated_resize_keeps_required_area(self):
        fp = Floorplan(50, 50, macros=[SoftMacro("s", [(20, 20), (10, 40), (40, 10)])])
        annealer = MacroAnnealer(fp, actions=ActionProbabilities(0, 0, 0, 0, 1.0),
                                 config=_config(seed=8))
        annealer.initialize()
        for _ in range(200):
            annealer.perturb()
            assert annealer.macros[0].area == pytest.approx(400)

    def test_packing_never_overlaps(self):
        annealer = MacroAnnealer(_mixed_floorplan(), config=_config(seed=9))
        annealer.initialize()
        for _ in range(100):
            annealer.perturb()
            assert annealer.floorplan.total_overlap_area() == pytest.approx(0.0, abs=1e-9)

    def test_shrink_replaces_resize_when_outline_dominates(self):
        fp = Floorplan(30, 100, macros=[SoftMacro("s", [(40, 10), (20, 20), (10, 40)])])
        annealer = MacroAnnealer(fp, weights=PenaltyWeights(area=0.0, outline=1.0,
                                                            wirelength=0.0),
                                 actions=ActionProbabilities(0, 0, 0, 0, 1.0),
                                 config=_config())
        annealer.initialize()
        assert annealer.macros[0].width == 40
        annealer.perturb()
        assert annealer._last_move.kind is ActionKind.SHRINK
        assert annealer.macros[0].width == 20

    def test_rotate_only_changes_orientation(self):
        fp = Floorplan(100, 100, macros=[
            HardMacro("a", 40, 20, orientations=(Orientation.R0, Orientation.R90)),
            HardMacro("b", 30, 30),
        ])
        annealer = MacroAnnealer(fp, actions=ActionProbabilities(0, 0, 0, 0, 0.0001),
                                 config=_config())
        annealer.initialize()
        a = annealer.floorplan.get_macro("a")
        before = a.orientation
        annealer.perturb()
        assert annealer._last_move.kind is ActionKind.ROTATE
        assert a.orientation is not before
        assert a.area == 800

    def test_resize_without_soft_macros_falls_back_to_swap(self):
        fp = Floorplan(100, 100, macros=[HardMacro("a", 40, 40), HardMacro("b", 30, 30)])
        annealer = MacroAnnealer(fp, actions=ActionProbabilities(0, 0, 0, 0, 1.0),
                                 config=_config())
        annealer.initialize()
        annealer.perturb()
        assert annealer._last_move.kind is ActionKind.POS_SWAP


class TestRun:
    """End-to-end annealing runs."""

    def test_same_seed_is_reproducible(self):
        a = MacroAnnealer(_mixed_floorplan(), weights=ALL_ON, config=_config(seed=4),
                          notch_h_threshold=5.0, notch_v_threshold=5.0).run()
        b = MacroAnnealer(_mixed_floorplan(), weights=ALL_ON, config=_config(seed=4),
                          notch_h_threshold=5.0, notch_v_threshold=5.0).run()
        assert a.cost_history == b.cost_history
        assert a.placements == b.placements
        assert a.final_cost == b.final_cost

    def test_soft_macro_fits_small_outline(self):
        fp = Floorplan(50, 50, macros=[SoftMacro("s", [(20, 20), (10, 40), (40, 10)])])
        result = MacroAnnealer(fp, config=_config()).run()
        assert result.fits_outline
        p = result.placement("s")
        assert (p.width, p.height) in [(20, 20), (10, 40), (40, 10)]
        assert p.area == pytest.approx(400)

    def test_blocked_outline_terminates_with_penalty(self):
        fp = Floorplan(50, 50, macros=[HardMacro("a", 10, 10), HardMacro("b", 20, 10)],
                       blockages=[Rect(0, 0, 50, 50)])
        config = _config(max_num_step=15, num_perturb_per_step=10)
        result = MacroAnnealer(fp, weights=PenaltyWeights(macro_blockage=1.0),
                               config=config).run()
        assert result.raw_penalties["macro_blockage"] > 0.0
        assert result.iterations == 15 * 10
        assert len(result.cost_history) == 15

    def test_infeasible_outline_does_not_raise(self):
        fp = Floorplan(20, 20, macros=[HardMacro("a", 30, 30), HardMacro("b", 30, 30)])
        result = MacroAnnealer(fp, config=_config()).run()
        assert not result.fits_outline
        assert result.outline_penalty > 0.0

    def test_best_layout_is_loaded(self):
        annealer = MacroAnnealer(_mixed_floorplan(), weights=ALL_ON, config=_config(seed=1))
        result = annealer.run()
        assert result.final_cost == pytest.approx(result.best_cost)
        assert annealer.cal_norm_cost() == pytest.approx(result.final_cost)
        assert result.best_cost <= result.cost_history[0] + 1e-12

    def test_temperature_never_rises(self):
        config = _config(c=0.6, k=3)
        result = MacroAnnealer(_mixed_floorplan(), config=config).run()
        temps = result.temperature_history
        assert len(temps) == config.max_num_step
        assert all(a >= b for a, b in zip(temps, temps[1:]))

    def test_caller_floorplan_untouched(self):
        fp = _mixed_floorplan()
        MacroAnnealer(fp, config=_config()).run()
        assert all((m.x, m.y) == (0.0, 0.0) for m in fp.macros)

    def test_penalty_accessors(self):
        annealer = MacroAnnealer(_mixed_floorplan(), weights=ALL_ON, config=_config())
        result = annealer.run()
        for name in TERM_NAMES:
            assert annealer.get_penalty(name) == result.raw_penalties[name]
            assert annealer.get_norm_penalty(name) == pytest.approx(result.penalties[name])
        annealer.cal_penalty()
        assert annealer.cal_norm_cost() == pytest.approx(result.final_cost)
        assert "total" in annealer.summary()

    def test_progress_and_logging(self, caplog):
        logger = logging.getLogger("tests.macro_annealer")
        steps = []
        annealer = MacroAnnealer(_mixed_floorplan(), config=_config(log_interval=10),
                                 logger=logger)
        with caplog.at_level(logging.INFO, logger="tests.macro_annealer"):
            annealer.run(on_progress=lambda step, cost, temp: steps.append(step))
        assert len(steps) == SMALL["max_num_step"]
        assert "Initialized 6 macros" in caplog.text


class TestPostProcessing:
    """Tests for dead-space fill and cluster alignment."""

    def test_fill_dead_space_stops_at_blockage(self):
        fp = Floorplan(100, 100, macros=[SoftMacro("s", [(20, 20)])],
                       blockages=[Rect(50, 0, 50, 100)])
        annealer = MacroAnnealer(fp, config=_config())
        annealer.initialize()
        annealer.fill_dead_space()
        s = annealer.macros[0]
        assert (s.x, s.y, s.width, s.height) == (0.0, 0.0, 50.0, 100.0)
        assert annealer.get_penalty("macro_blockage") == 0.0

    def test_fill_dead_space_leaves_hard_macros(self):
        fp = Floorplan(100, 100, macros=[HardMacro("h", 30, 30), SoftMacro("s", [(20, 20)])])
        annealer = MacroAnnealer(fp, config=_config(), initial_sequences=([0, 1], [0, 1]))
        annealer.initialize()
        annealer.fill_dead_space()
        h, s = annealer.macros
        assert (h.width, h.height) == (30, 30)
        assert s.x == 30.0 and s.x + s.width == 100.0
        assert annealer.floorplan.total_overlap_area() == 0.0

    def _aligned(self, placements, blockages=(), **thresholds):
        fp = Floorplan(100, 100, macros=[HardMacro("a", 20, 20), HardMacro("b", 20, 20)],
                       blockages=list(blockages))
        annealer = MacroAnnealer(fp, config=_config())
        annealer.initialize()
        for macro, (x, y) in zip(annealer.macros, placements):
            macro.place(x, y)
        annealer.align_macro_clusters(**thresholds)
        return [(m.x, m.y) for m in annealer.macros]

    def test_align_snaps_to_outline_and_neighbours(self):
        result = self._aligned([(3, 10), (50, 12)], h_threshold=5, v_threshold=5)
        assert result == [(0.0, 10), (50, 10)]

    def test_align_skips_snap_into_blockage(self):
        result = self._aligned([(3, 50), (60, 10)], blockages=[Rect(0, 50, 3, 20)],
                               h_threshold=5, v_threshold=5)
        assert result[0] == (3, 50)

    def test_align_default_thresholds_follow_notch(self):
        result = self._aligned([(3, 10), (50, 12)])
        assert result == [(3, 10), (50, 12)]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
