"""Experiment runners and ablations."""

from .runner import run_experiment
from .ablate import run_ablation

__all__ = ["run_experiment", "run_ablation"]
