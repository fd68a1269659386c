"""Calibration metrics for the hire probability.

A hire classifier that says 0.7 should be right about 70% of the time.
These metrics compare predicted hire probabilities with observed outcomes
on a held-out split.
"""

from __future__ import annotations

from typing import Iterator, TypedDict

import torch


class CalibrationBucket(TypedDict):
    confidenceLow: float
    confidenceHigh: float
    avgConfidence: float
    avgAccuracy: float
    count: int


class CalibrationReport(TypedDict):
    ece: float
    mce: float
    brier: float
    buckets: list[CalibrationBucket]


def _prepare(
    predictions: torch.Tensor,
    actuals: torch.Tensor,
) -> tuple[torch.Tensor, torch.Tensor]:
    predictions = predictions.detach().float().reshape(-1)
    actuals = actuals.detach().float().reshape(-1)
    if predictions.numel() != actuals.numel():
        raise ValueError(
            f"{predictions.numel()} predictions but {actuals.numel()} actuals"
        )
    return predictions, actuals


def _bins(
    predictions: torch.Tensor,
    n_bins: int,
) -> Iterator[tuple[float, float, torch.Tensor]]:
    """Yield (low, high, mask) per equal-width bin; last bin is closed."""
    edges = torch.linspace(0.0, 1.0, n_bins + 1, device=predictions.device)
    for i in range(n_bins):
        low, high = edges[i], edges[i + 1]
        if i == n_bins - 1:
            mask = (predictions >= low) & (predictions <= high)
        else:
            mask = (predictions >= low) & (predictions < high)
        yield low.item(), high.item(), mask


def compute_ece(
    predictions: torch.Tensor,
    actuals: torch.Tensor,
    n_bins: int = 15,
) -> float:
    """Expected Calibration Error.

    ECE = sum_b (|B_b| / N) * |acc(B_b) - conf(B_b)|

    Args:
        predictions: Hire probabilities (N,) or (N, 1) in [0, 1].
        actuals: 0/1 outcomes, same number of elements.
        n_bins: Number of equal-width confidence bins.

    Returns:
        ECE in [0, 1]; 0.0 for empty input.
    """
    predictions, actuals = _prepare(predictions, actuals)
    n = predictions.numel()
    if n == 0:
        return 0.0

    ece = 0.0
    for _, _, mask in _bins(predictions, n_bins):
        count = mask.sum().item()
        if count:
            gap = actuals[mask].mean().item() - predictions[mask].mean().item()
            ece += (count / n) * abs(gap)
    return ece


def compute_mce(
    predictions: torch.Tensor,
    actuals: torch.Tensor,
    n_bins: int = 15,
) -> float:
    """Maximum Calibration Error (worst bin gap)."""
    predictions, actuals = _prepare(predictions, actuals)
    if predictions.numel() == 0:
        return 0.0

    mce = 0.0
    for _, _, mask in _bins(predictions, n_bins):
        if mask.any():
            gap = actuals[mask].mean().item() - predictions[mask].mean().item()
            mce = max(mce, abs(gap))
    return mce


def compute_brier(predictions: torch.Tensor, actuals: torch.Tensor) -> float:
    """Brier score: mean squared error of the probabilities."""
    predictions, actuals = _prepare(predictions, actuals)
    if predictions.numel() == 0:
        return 0.0
    return ((predictions - actuals) ** 2).mean().item()


def calibration_report(
    predictions: torch.Tensor,
    actuals: torch.Tensor,
    n_bins: int = 10,
) -> CalibrationReport:
    """ECE, MCE, Brier and non-empty reliability buckets in one dict."""
    predictions, actuals = _prepare(predictions, actuals)
    buckets: list[CalibrationBucket] = []
    for low, high, mask in _bins(predictions, n_bins):
        count = int(mask.sum().item())
        if count == 0:
            continue
        buckets.append(CalibrationBucket(
            confidenceLow=round(low, 4),
            confidenceHigh=round(high, 4),
            avgConfidence=round(predictions[mask].mean().item(), 4),
            avgAccuracy=round(actuals[mask].mean().item(), 4),
            count=count,
        ))

    return CalibrationReport(
        ece=compute_ece(predictions, actuals, n_bins),
        mce=compute_mce(predictions, actuals, n_bins),
        brier=compute_brier(predictions, actuals),
        buckets=buckets,
    )
