"""
Macro Floorplanner: Demo Flow
=============================

This script demonstrates a complete floorplanning run:
  1. Build a small design of hard and soft macros, terminals and a blockage
  2. Anneal it once with progress logging
  3. Post-process (dead-space fill, cluster alignment)
  4. Run several seeds in parallel and keep the best
  5. Visualization (floorplan, convergence, dashboard)

Usage:
    cd sa-macro-floorplanner
    python examples/run_floorplan.py
"""

import sys
import os
import logging

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core import Floorplan, HardMacro, SoftMacro, Net, Rect, Orientation
from floorplanner import (
    MacroAnnealer, FastSAConfig, PenaltyWeights, run_parallel, select_best,
)
from visualizer import LayoutViewer


def build_design() -> Floorplan:
    rotatable = (Orientation.R0, Orientation.R90)
    macros = [
        HardMacro("ram0", 120, 80, orientations=rotatable),
        HardMacro("ram1", 120, 80, orientations=rotatable),
        HardMacro("pll", 40, 40, prefer_boundary=True),
        HardMacro("adc", 60, 50, orientations=rotatable, prefer_boundary=True),
        SoftMacro.from_area("cpu", 16000, (0.5, 0.75, 1.0, 1.5, 2.0)),
        SoftMacro.from_area("dsp", 9000, (0.5, 1.0, 2.0)),
        SoftMacro.from_area("io_ctrl", 4000, (0.25, 0.5, 1.0, 2.0, 4.0)),
        SoftMacro.from_area("glue", 6000, (0.5, 1.0, 2.0)),
    ]
    nets = [
        Net("bus0", ["cpu", "ram0", "ram1"], weight=2.0),
        Net("bus1", ["cpu", "dsp"]),
        Net("dsp_mem", ["dsp", "ram1"]),
        Net("clk", ["pll", "cpu", "dsp", "io_ctrl"], weight=0.5),
        Net("analog", ["adc", "dsp"]),
        Net("pads", ["io_ctrl", "PAD_N", "PAD_S"]),
        Net("ctl", ["glue", "cpu", "io_ctrl"]),
    ]
    return Floorplan(
        outline_width=300.0,
        outline_height=260.0,
        macros=macros,
        nets=nets,
        terminals={"PAD_N": (150.0, 260.0), "PAD_S": (150.0, 0.0)},
        blockages=[Rect(250, 200, 50, 60)],
        guides={"pll": Rect(0, 0, 60, 60)},
        fences={"dsp": Rect(150, 0, 150, 200)},
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")
    logger = logging.getLogger("floorplanner.demo")

    print("=" * 60)
    print("  Macro Floorplanner - Demo Flow")
    print("=" * 60)

    # ── Step 1: Design ────────────────────────────────────────────
    print("\n[DESIGN] Step 1: Building demo design...")
    design = build_design()
    print(design.summary())

    weights = PenaltyWeights(area=1.0, outline=2.0, wirelength=1.0, guidance=0.5,
                             fence=0.5, boundary=0.3, macro_blockage=2.0, notch=0.5)
    config = FastSAConfig(max_num_step=400, num_perturb_per_step=60, seed=42,
                          log_interval=50)

    # ── Step 2: Single run ────────────────────────────────────────
    print("\n[SA] Step 2: Fast Simulated Annealing...")
    annealer = MacroAnnealer(design, weights=weights, config=config,
                             notch_h_threshold=10.0, notch_v_threshold=10.0,
                             logger=logger)
    annealer.run()

    # ── Step 3: Post-processing ───────────────────────────────────
    print("\n[POST] Step 3: Dead-space fill and cluster alignment...")
    annealer.fill_dead_space()
    annealer.align_macro_clusters()
    result = annealer.result()
    print(annealer.summary())

    # ── Step 4: Parallel seeds ────────────────────────────────────
    print("\n[PAR] Step 4: Four seeds in parallel...")
    results = run_parallel(design, seeds=[1, 2, 3, 4], config=config,
                           post_process=True, weights=weights,
                           notch_h_threshold=10.0, notch_v_threshold=10.0)
    for r in results:
        print(f"   seed={r.seed}  cost={r.final_cost:.4f}  fits={r.fits_outline}")
    best = select_best([result] + results)

    # ── Step 5: Visualization ─────────────────────────────────────
    print("\n[VIZ] Step 5: Generating visualizations...")
    output_dir = os.path.join(os.path.dirname(__file__), '..', 'output')
    os.makedirs(output_dir, exist_ok=True)

    viewer = LayoutViewer(design)
    viewer.plot_floorplan(
        best,
        save_path=os.path.join(output_dir, 'floorplan.png'),
        show_labels=True, show_nets=True
    )
    viewer.plot_convergence(
        best.cost_history,
        save_path=os.path.join(output_dir, 'convergence.png'),
        temperature_history=best.temperature_history
    )
    viewer.plot_dashboard(best, save_path=os.path.join(output_dir, 'dashboard.png'))

    # ── Summary ───────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("  FLOW COMPLETE - RESULTS SUMMARY")
    print("=" * 60)
    print(f"\n  Best seed:        {best.seed}")
    print(f"  Best cost:        {best.final_cost:.4f}")
    print(f"  Fits outline:     {best.fits_outline}")
    for name, value in best.raw_penalties.items():
        print(f"  {name:<16s}  {value:.4f}")
    print(f"\n  Output saved to: {os.path.abspath(output_dir)}")
    print("=" * 60)


if __name__ == "__main__":
    main()
