"""Simulated-annealing macro floorplanning."""
from .annealing import FastSAConfig, FastSimulatedAnnealing
from .actions import ActionKind, ActionProbabilities
from .penalty import PenaltyWeights, PenaltyEvaluator
from .sequence_pair import SequencePairLayout
from .macro_annealer import MacroAnnealer, FloorplanResult, MacroPlacement
from .parallel import run_parallel, select_best

__all__ = [
    "FastSAConfig", "FastSimulatedAnnealing",
    "ActionKind", "ActionProbabilities",
    "PenaltyWeights", "PenaltyEvaluator",
    "SequencePairLayout",
    "MacroAnnealer", "FloorplanResult", "MacroPlacement",
    "run_parallel", "select_best",
]
