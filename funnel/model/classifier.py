"""Prediction heads over encoded event sequences.

Two model variants, selected by label mode:

    1. Hire outcome   - Will this case end in a hire? (sigmoid, 1 output)
    2. Next event     - Which entity:event happens next? (softmax, F outputs)

Both accept either tensor layout; stepwise input (batch, steps, F) is
flattened before the first layer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import torch
import torch.nn as nn
import torch.nn.functional as F

from ..data.preprocess import LabelMode

if TYPE_CHECKING:
    from ..config import FunnelConfig
    from ..encoder.vocabulary import EventVocabulary


class HireClassifier(nn.Module):
    """Predicts the probability that a case ends in a hire.

    Args:
        input_dim: Scalars per encoded sequence (max_steps × F).
        hidden_dim: Hidden layer width.
    """

    def __init__(self, input_dim: int, hidden_dim: int = 10) -> None:
        super().__init__()
        self.input_dim = input_dim
        self.head = nn.Sequential(
            nn.Flatten(start_dim=1),
            nn.Linear(input_dim, hidden_dim),
            nn.ReLU(),
            nn.Linear(hidden_dim, 1),
        )

    def forward(self, x: torch.Tensor) -> dict[str, torch.Tensor]:
        """Predict hire probability.

        Args:
            x: (batch, input_dim) or (batch, max_steps, F) encoded sequences.

        Returns:
            Dict with:
                - logits: (batch, 1)
                - probs: (batch, 1) sigmoid probabilities
        """
        logits = self.head(x)
        return {"logits": logits, "probs": torch.sigmoid(logits)}


class NextEventClassifier(nn.Module):
    """Predicts a distribution over the next ``entity:event`` token.

    Args:
        input_dim: Scalars per encoded sequence (max_steps × F).
        n_classes: Number of event tokens (F).
        hidden_dim: Hidden layer width.
        dropout: Dropout rate after each hidden layer.
    """

    def __init__(
        self,
        input_dim: int,
        n_classes: int,
        hidden_dim: int = 128,
        dropout: float = 0.4,
    ) -> None:
        super().__init__()
        self.input_dim = input_dim
        self.n_classes = n_classes
        self.head = nn.Sequential(
            nn.Flatten(start_dim=1),
            nn.Linear(input_dim, hidden_dim),
            nn.ReLU(),
            nn.Dropout(dropout),
            nn.Linear(hidden_dim, hidden_dim),
            nn.ReLU(),
            nn.Dropout(dropout),
            nn.Linear(hidden_dim, n_classes),
        )

    def forward(self, x: torch.Tensor) -> dict[str, torch.Tensor]:
        """Predict next-event distribution.

        Args:
            x: (batch, input_dim) or (batch, max_steps, F) encoded sequences.

        Returns:
            Dict with:
                - logits: (batch, n_classes)
                - probs: (batch, n_classes) softmax probabilities
        """
        logits = self.head(x)
        return {"logits": logits, "probs": F.softmax(logits, dim=-1)}


def build_model(config: FunnelConfig, vocab: EventVocabulary | None = None) -> nn.Module:
    """Instantiate the classifier matching the config's label mode."""
    vocab = vocab or config.vocabulary()
    input_dim = config.max_steps * vocab.feature_length

    if config.label_mode is LabelMode.BINARY:
        return HireClassifier(input_dim, hidden_dim=config.hidden_dim or 10)
    return NextEventClassifier(
        input_dim,
        n_classes=vocab.feature_length,
        hidden_dim=config.hidden_dim or 128,
        dropout=config.dropout,
    )
