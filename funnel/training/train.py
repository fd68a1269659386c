"""Training loop for the funnel classifiers.

Trains either head with Adam:
    - binary:      BCE-with-logits against the 0/1 hire flag
    - next_event:  cross-entropy against the one-hot next-event target

Logs loss and accuracy per epoch and keeps the best model (lowest
validation loss) on disk when a checkpoint directory is given.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import torch
import torch.nn as nn
import torch.nn.functional as F
from torch.utils.data import DataLoader, TensorDataset

from ..config import FunnelConfig
from ..data.preprocess import LabelMode
from ..utils.checkpoint import save_model

logger = logging.getLogger(__name__)


def make_loader(
    inputs: torch.Tensor,
    outputs: torch.Tensor,
    batch_size: int = 32,
    shuffle: bool = False,
    seed: int | None = None,
) -> DataLoader:
    """Wrap preprocessed tensors in a DataLoader of (x, y) batches."""
    generator = None
    if shuffle and seed is not None:
        generator = torch.Generator().manual_seed(seed)
    return DataLoader(
        TensorDataset(inputs, outputs),
        batch_size=batch_size,
        shuffle=shuffle,
        generator=generator,
    )


def compute_loss(
    logits: torch.Tensor,
    targets: torch.Tensor,
    label_mode: LabelMode,
) -> torch.Tensor:
    if label_mode is LabelMode.BINARY:
        return F.binary_cross_entropy_with_logits(logits, targets)
    # Probability targets: an all-zero row (lenient unknown token) adds no loss.
    return F.cross_entropy(logits, targets)


def _has_target(targets: torch.Tensor) -> torch.Tensor:
    # All-zero next-event rows come from lenient unknown tokens.
    return targets.sum(dim=-1) > 0


def count_correct(
    outputs: dict[str, torch.Tensor],
    targets: torch.Tensor,
    label_mode: LabelMode,
    threshold: float = 0.5,
) -> int:
    if label_mode is LabelMode.BINARY:
        predicted = outputs["probs"] > threshold
        return int((predicted == (targets > 0.5)).sum().item())
    predicted = outputs["logits"].argmax(dim=-1)
    hits = (predicted == targets.argmax(dim=-1)) & _has_target(targets)
    return int(hits.sum().item())


def count_scored(targets: torch.Tensor, label_mode: LabelMode) -> int:
    """Rows that take part in accuracy; all-zero next-event targets do not."""
    if label_mode is LabelMode.BINARY:
        return targets.shape[0]
    return int(_has_target(targets).sum().item())


class FunnelTrainer:
    """Fits a funnel classifier on preprocessed tensors.

    Args:
        model: HireClassifier or NextEventClassifier.
        config: Run configuration (label mode, lr, threshold).
        device: Torch device (cpu or cuda).
        checkpoint_dir: If set, ``best.safetensors`` is written here whenever
            validation loss improves.
    """

    def __init__(
        self,
        model: nn.Module,
        config: FunnelConfig,
        device: torch.device | str = "cpu",
        checkpoint_dir: Path | str | None = None,
    ) -> None:
        self.device = torch.device(device)
        self.model = model.to(self.device)
        self.config = config
        self.label_mode = config.label_mode
        self.optimizer = torch.optim.Adam(self.model.parameters(), lr=config.lr)

        self.checkpoint_dir = Path(checkpoint_dir) if checkpoint_dir else None
        if self.checkpoint_dir is not None:
            self.checkpoint_dir.mkdir(parents=True, exist_ok=True)

        self._epoch = 0
        self._best_val_loss = float("inf")

    @property
    def epoch(self) -> int:
        return self._epoch

    def train_epoch(self, dataloader: DataLoader) -> dict[str, float]:
        """Train for one epoch.

        Returns:
            Dict with average ``loss`` and ``accuracy`` over the epoch.
        """
        self.model.train()
        total_loss = 0.0
        n_batches = 0
        correct = 0
        seen = 0

        for x, y in dataloader:
            x, y = x.to(self.device), y.to(self.device)
            self.optimizer.zero_grad()
            out = self.model(x)
            loss = compute_loss(out["logits"], y, self.label_mode)

            if torch.isnan(loss) or torch.isinf(loss):
                logger.warning("NaN/Inf loss detected, skipping step")
                continue

            loss.backward()
            self.optimizer.step()

            total_loss += loss.item()
            n_batches += 1
            correct += count_correct(out, y, self.label_mode, self.config.threshold)
            seen += count_scored(y, self.label_mode)

        self._epoch += 1
        metrics = {
            "loss": total_loss / max(n_batches, 1),
            "accuracy": correct / max(seen, 1),
        }
        logger.info(
            f"Epoch {self._epoch}: loss={metrics['loss']:.4f}, "
            f"accuracy={metrics['accuracy']:.4f}"
        )
        return metrics

    @torch.no_grad()
    def validate(self, dataloader: DataLoader) -> dict[str, float]:
        """Average loss and accuracy on held-out data."""
        self.model.eval()
        total_loss = 0.0
        n_batches = 0
        correct = 0
        seen = 0

        for x, y in dataloader:
            x, y = x.to(self.device), y.to(self.device)
            out = self.model(x)
            total_loss += compute_loss(out["logits"], y, self.label_mode).item()
            n_batches += 1
            correct += count_correct(out, y, self.label_mode, self.config.threshold)
            seen += count_scored(y, self.label_mode)

        metrics = {
            "val_loss": total_loss / max(n_batches, 1),
            "val_accuracy": correct / max(seen, 1),
        }
        logger.info(
            f"Validation: loss={metrics['val_loss']:.4f}, "
            f"accuracy={metrics['val_accuracy']:.4f}"
        )
        return metrics

    def train(
        self,
        train_loader: DataLoader,
        val_loader: DataLoader | None = None,
        n_epochs: int | None = None,
    ) -> list[dict[str, float]]:
        """Full training loop.

        Args:
            train_loader: Training batches.
            val_loader: Optional validation batches.
            n_epochs: Number of epochs (defaults to ``config.epochs``).

        Returns:
            List of per-epoch metric dicts.
        """
        n_epochs = n_epochs if n_epochs is not None else self.config.epochs
        history: list[dict[str, float]] = []

        for _ in range(n_epochs):
            metrics = self.train_epoch(train_loader)

            if val_loader is not None and len(val_loader) > 0:
                val_metrics = self.validate(val_loader)
                metrics.update(val_metrics)
                val_loss = val_metrics["val_loss"]
                if not math.isnan(val_loss) and val_loss < self._best_val_loss:
                    self._best_val_loss = val_loss
                    if self.checkpoint_dir is not None:
                        self.save_checkpoint("best.safetensors")

            history.append(metrics)

        return history

    def save_checkpoint(self, filename: str) -> Path:
        """Save the current weights into ``checkpoint_dir``."""
        if self.checkpoint_dir is None:
            raise ValueError("Trainer has no checkpoint_dir configured")
        return save_model(self.checkpoint_dir / filename, self.model, self.config)
