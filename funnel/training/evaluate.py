"""Evaluation and single-sequence prediction."""

from __future__ import annotations

from dataclasses import dataclass, field

import torch
import torch.nn as nn

from ..config import FunnelConfig
from ..critic.calibration import calibration_report
from ..data.preprocess import LabelMode
from ..encoder.event_encoder import decode_prediction, encode_padded
from ..encoder.vocabulary import EventVocabulary
from .train import count_correct, count_scored


@dataclass(frozen=True)
class HirePrediction:
    probability: float
    hired: bool

    @property
    def label(self) -> str:
        return "hire" if self.hired else "not hire"


@dataclass(frozen=True)
class NextEventPrediction:
    token: str
    probability: float
    top_k: list[tuple[str, float]] = field(default_factory=list)


@torch.no_grad()
def evaluate(
    model: nn.Module,
    inputs: torch.Tensor,
    outputs: torch.Tensor,
    label_mode: LabelMode | str,
    threshold: float = 0.5,
) -> dict[str, float]:
    """Score a model on preprocessed test tensors.

    Returns:
        ``accuracy`` and ``n`` for both modes; binary mode adds ``ece``,
        ``mce`` and ``brier`` for the hire probability. ``n`` counts the
        rows that were scored; all-zero next-event targets are left out.
    """
    label_mode = LabelMode(label_mode)
    n = count_scored(outputs, label_mode)
    if n == 0:
        return {"accuracy": 0.0, "n": 0}

    model.eval()
    device = next(model.parameters()).device
    out = model(inputs.to(device))
    targets = outputs.to(device)

    metrics: dict[str, float] = {
        "accuracy": count_correct(out, targets, label_mode, threshold) / n,
        "n": n,
    }
    if label_mode is LabelMode.BINARY:
        report = calibration_report(out["probs"].cpu(), outputs)
        metrics["ece"] = report["ece"]
        metrics["mce"] = report["mce"]
        metrics["brier"] = report["brier"]
    return metrics


def _encode_one(sequence: str, vocab: EventVocabulary, config: FunnelConfig) -> torch.Tensor:
    x = encode_padded(sequence, vocab, config.max_steps, config.layout, strict=config.strict)
    return x.unsqueeze(0)


@torch.no_grad()
def predict_hire(
    model: nn.Module,
    sequence: str,
    vocab: EventVocabulary,
    config: FunnelConfig,
) -> HirePrediction:
    """Probability that the case described by ``sequence`` ends in a hire."""
    model.eval()
    device = next(model.parameters()).device
    probability = model(_encode_one(sequence, vocab, config).to(device))["probs"].item()
    return HirePrediction(probability=probability, hired=probability > config.threshold)


@torch.no_grad()
def predict_next_event(
    model: nn.Module,
    sequence: str,
    vocab: EventVocabulary,
    config: FunnelConfig,
    k: int = 3,
) -> NextEventPrediction:
    """Most likely next ``entity:event`` token after ``sequence``."""
    model.eval()
    device = next(model.parameters()).device
    probs = model(_encode_one(sequence, vocab, config).to(device))["probs"].squeeze(0).cpu()

    top_probs, top_indices = probs.topk(min(k, probs.numel()))
    top_k = [
        (vocab.decode_token(int(i)), round(float(p), 4))
        for p, i in zip(top_probs.tolist(), top_indices.tolist())
    ]
    token = decode_prediction(probs, vocab)
    return NextEventPrediction(
        token=token,
        probability=float(probs[vocab.token_index(token)].item()),
        top_k=top_k,
    )
