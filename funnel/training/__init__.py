"""Training Pipeline - Training loop, evaluation and prediction."""

from .evaluate import (
    HirePrediction,
    NextEventPrediction,
    evaluate,
    predict_hire,
    predict_next_event,
)
from .train import FunnelTrainer, compute_loss, count_correct, count_scored, make_loader

__all__ = [
    "FunnelTrainer",
    "make_loader",
    "compute_loss",
    "count_correct",
    "count_scored",
    "evaluate",
    "predict_hire",
    "predict_next_event",
    "HirePrediction",
    "NextEventPrediction",
]
