"""
Fast Simulated Annealing engine.

The engine is generic over any state that can perturb itself, undo the
last perturbation, report its cost and be snapshotted. It owns the
temperature schedule, the Metropolis acceptance rule and best-solution
tracking; it knows nothing about macros.

Temperature schedule (monotonically decreasing):

    T(0)            = T_init
    T(s), 1 <= s < k = T_init / (c * (s + 1))
    T(s), s >= k     = T_init * k / (c * (s + 1)^2)

clamped to [``min_temperature``, T_init]. T_init is derived from the average
cost change of random perturbations and the requested initial acceptance
probability: T_init = -avg|dC| / ln(init_prob).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, Protocol, Sequence, TypeVar
import logging
import math
import time

import numpy as np


@dataclass
class FastSAConfig:
    """Hyperparameters of the Fast-SA schedule."""
    init_prob: float = 0.95             # Acceptance probability of an average uphill move at T_init
    max_num_step: int = 1000            # Number of temperature levels
    num_perturb_per_step: int = 50      # Trials per temperature level
    k: int = 7                          # Last step of the fast-descent phase
    c: float = 100.0                    # Descent rate during the fast-descent phase
    seed: Optional[int] = 0
    min_temperature: float = 1e-10
    log_interval: int = 100             # Log every N temperature steps

    def validate(self) -> None:
        if not 0.0 < self.init_prob <= 1.0:
            raise ValueError(f"init_prob must be in (0, 1], got {self.init_prob}")
        if self.max_num_step < 1:
            raise ValueError(f"max_num_step must be >= 1, got {self.max_num_step}")
        if self.num_perturb_per_step < 1:
            raise ValueError(
                f"num_perturb_per_step must be >= 1, got {self.num_perturb_per_step}"
            )
        if self.k < 1:
            raise ValueError(f"k must be >= 1, got {self.k}")
        if self.c <= 0.5:
            # T(1) = T_init / (2c) must not exceed T_init
            raise ValueError(f"c must be greater than 0.5, got {self.c}")
        if self.min_temperature <= 0:
            raise ValueError(f"min_temperature must be positive, got {self.min_temperature}")
        if self.log_interval < 1:
            raise ValueError(f"log_interval must be >= 1, got {self.log_interval}")


class AnnealingState(Protocol):
    """What the engine needs from the thing being optimized."""

    def perturb(self) -> None: ...

    def restore(self) -> None: ...

    def cost(self) -> float: ...

    def snapshot(self) -> Any: ...

    def load(self, snapshot: Any) -> None: ...


S = TypeVar("S", bound=AnnealingState)


@dataclass
class AnnealingTrace:
    """History of one annealing run."""
    init_temperature: float = 0.0
    best_cost: float = float('inf')
    final_cost: float = float('inf')
    iterations: int = 0
    accepted: int = 0
    best_iteration: int = 0
    runtime_seconds: float = 0.0
    cost_history: list[float] = field(default_factory=list)
    temperature_history: list[float] = field(default_factory=list)
    acceptance_history: list[float] = field(default_factory=list)


def null_logger() -> logging.Logger:
    """A private, unregistered logger that drops every record."""
    logger = logging.Logger("floorplanner.null")
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.CRITICAL + 1)
    return logger


def fast_sa_temperature(step: int, init_temperature: float, k: int, c: float,
                        min_temperature: float = 1e-10) -> float:
    """Temperature of temperature level ``step`` (0-based), never above T_init."""
    if step <= 0:
        temperature = init_temperature
    elif step < k:
        temperature = min(init_temperature / (c * (step + 1)), init_temperature)
    else:
        temperature = min(init_temperature * k / (c * (step + 1) ** 2), init_temperature)
    return max(temperature, min_temperature)


def initial_temperature(costs: Sequence[float], init_prob: float,
                        min_temperature: float = 1e-10) -> float:
    """
    T_init from a sequence of costs observed along random perturbations.

    Uses the mean absolute change between consecutive costs so that an
    average uphill move is accepted with probability ``init_prob``.
    """
    if len(costs) < 2:
        return min_temperature
    deltas = np.abs(np.diff(np.asarray(costs, dtype=float)))
    avg_delta = float(deltas.mean())
    if avg_delta <= 0:
        return min_temperature
    prob = min(init_prob, 1.0 - 1e-9)
    return max(-avg_delta / math.log(prob), min_temperature)


class FastSimulatedAnnealing(Generic[S]):
    """
    Drives a state through the Fast-SA schedule.

    Usage:
        engine = FastSimulatedAnnealing(state, config, rng)
        trace = engine.run(init_temperature)
    """

    def __init__(self, state: S, config: FastSAConfig,
                 rng: np.random.Generator,
                 logger: Optional[logging.Logger] = None):
        config.validate()
        self.state = state
        self.config = config
        self.rng = rng
        self.logger = logger or null_logger()

        # Called at every temperature-step boundary with (step, cost, temperature)
        self.on_progress: Optional[Callable[[int, float, float], None]] = None

    def temperature(self, step: int, init_temperature: float) -> float:
        return fast_sa_temperature(step, init_temperature, self.config.k,
                                   self.config.c, self.config.min_temperature)

    def accept(self, delta: float, temperature: float) -> bool:
        """Metropolis rule; downhill and flat moves never consume a random draw."""
        if delta <= 0:
            return True
        return bool(self.rng.random() < math.exp(-delta / temperature))

    # ── Main Optimization Loop ────────────────────────────────────────

    def run(self, init_temperature: float) -> AnnealingTrace:
        """
        Execute all temperature levels and leave the state at the best solution.

        Returns:
            AnnealingTrace with per-step history.
        """
        cfg = self.config
        trace = AnnealingTrace(init_temperature=init_temperature)
        start_time = time.time()

        cost = self.state.cost()
        best_cost = cost
        best = self.state.snapshot()

        self.logger.info(
            "Fast SA start: steps=%d perturb/step=%d T_init=%.6g cost=%.6f",
            cfg.max_num_step, cfg.num_perturb_per_step, init_temperature, cost,
        )

        iteration = 0
        for step in range(cfg.max_num_step):
            temperature = self.temperature(step, init_temperature)
            accepted_at_step = 0

            for _ in range(cfg.num_perturb_per_step):
                iteration += 1
                self.state.perturb()
                new_cost = self.state.cost()

                if self.accept(new_cost - cost, temperature):
                    cost = new_cost
                    accepted_at_step += 1
                    if cost < best_cost:
                        best_cost = cost
                        best = self.state.snapshot()
                        trace.best_iteration = iteration
                else:
                    self.state.restore()

            acceptance_ratio = accepted_at_step / cfg.num_perturb_per_step
            trace.accepted += accepted_at_step
            trace.cost_history.append(cost)
            trace.temperature_history.append(temperature)
            trace.acceptance_history.append(acceptance_ratio)

            if (step + 1) % cfg.log_interval == 0 or step + 1 == cfg.max_num_step:
                self.logger.info(
                    "step=%d T=%.4g cost=%.6f best=%.6f acc=%.2f",
                    step + 1, temperature, cost, best_cost, acceptance_ratio,
                )

            if self.on_progress:
                self.on_progress(step, cost, temperature)

        self.state.load(best)

        trace.best_cost = best_cost
        trace.final_cost = self.state.cost()
        trace.iterations = iteration
        trace.runtime_seconds = time.time() - start_time

        self.logger.info(
            "Fast SA done: best=%.6f iterations=%d accepted=%d runtime=%.2fs",
            best_cost, iteration, trace.accepted, trace.runtime_seconds,
        )
        return trace
