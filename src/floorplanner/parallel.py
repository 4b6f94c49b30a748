"""
Independent annealing runs in parallel threads.

Every run builds its own MacroAnnealer, which takes private copies of
the floorplan and its settings and seeds its own RNG, so runs share
nothing mutable and need no locking. The caller picks a winner once
all runs have finished.
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Iterable, Optional, Sequence
import logging

from core.floorplan import Floorplan
from floorplanner.annealing import FastSAConfig
from floorplanner.macro_annealer import FloorplanResult, MacroAnnealer


def _run_one(floorplan: Floorplan, config: FastSAConfig,
             post_process: bool, annealer_kwargs: dict[str, Any]) -> FloorplanResult:
    annealer = MacroAnnealer(floorplan, config=config, **annealer_kwargs)
    annealer.run()
    if post_process:
        annealer.fill_dead_space()
        annealer.align_macro_clusters()
    return annealer.result()


def run_parallel(floorplan: Floorplan,
                 seeds: Iterable[int],
                 config: FastSAConfig | None = None,
                 max_workers: Optional[int] = None,
                 post_process: bool = False,
                 logger: logging.Logger | None = None,
                 **annealer_kwargs: Any) -> list[FloorplanResult]:
    """
    Run one annealer per seed and return the results in seed order.

    Args:
        floorplan: Shared read-only input; each run deep-copies it.
        seeds: One RNG seed per run.
        config: Base schedule; its seed is replaced per run.
        max_workers: Thread pool size (defaults to the executor's choice).
        post_process: Apply dead-space fill and cluster alignment after each run.
        logger: Passed to every annealer.
        **annealer_kwargs: Forwarded to MacroAnnealer (weights, actions, ...).
    """
    base = config or FastSAConfig()
    base.validate()
    floorplan.validate()
    configs = [replace(base, seed=seed) for seed in seeds]
    if not configs:
        return []

    annealer_kwargs = dict(annealer_kwargs, logger=logger)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(_run_one, floorplan, cfg, post_process, annealer_kwargs)
                   for cfg in configs]
        return [f.result() for f in futures]


def select_best(results: Sequence[FloorplanResult]) -> FloorplanResult:
    """
    Pick the winning run.

    Runs that fit the outline beat runs that do not; then the lowest final
    cost wins, and ties go to the earlier run.
    """
    if not results:
        raise ValueError("No results to select from")
    ranked = sorted(enumerate(results),
                    key=lambda item: (not item[1].fits_outline, item[1].final_cost, item[0]))
    return ranked[0][1]
