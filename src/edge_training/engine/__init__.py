"""Training and evaluation loops."""

from edge_training.engine.eval_loop import run_evaluation
from edge_training.engine.train_loop import (
    LossSmoother,
    TrainLoopOutcome,
    compute_utility,
    run_training,
)

__all__ = [
    "LossSmoother",
    "TrainLoopOutcome",
    "compute_utility",
    "run_evaluation",
    "run_training",
]
