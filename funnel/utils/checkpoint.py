"""Model checkpoint persistence.

Checkpoints are single SafeTensors files (tensor-only, no pickle):

    model.safetensors
        tensors:   the classifier's state_dict
        metadata:  {"format_version": "1",
                    "config": <FunnelConfig JSON>,
                    "vocabulary": <{"entities": [...], "events": [...]} JSON>}

The vocabulary order is part of the checkpoint because it defines what
each output slot means; a model is only usable with the exact vocabulary
it was trained on.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path

import torch
import torch.nn as nn
from safetensors import safe_open
from safetensors.torch import load_file as safetensors_load
from safetensors.torch import save_file as safetensors_save

from ..config import FunnelConfig
from ..encoder.vocabulary import EventVocabulary
from ..model.classifier import build_model

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1"
REQUIRED_METADATA = ("format_version", "config", "vocabulary")


def _normalize_path(path: Path | str) -> Path:
    path = Path(path)
    if path.suffix != ".safetensors":
        path = path.with_suffix(".safetensors")
    return path


def save_model(
    path: Path | str,
    model: nn.Module,
    config: FunnelConfig,
    vocab: EventVocabulary | None = None,
) -> Path:
    """Save model weights plus the config/vocabulary needed to rebuild it.

    Returns:
        Path of the written ``.safetensors`` file.
    """
    path = _normalize_path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    vocab = vocab or config.vocabulary()

    tensors = {
        key: value.detach().cpu().contiguous()
        for key, value in model.state_dict().items()
    }
    metadata = {
        "format_version": FORMAT_VERSION,
        "config": json.dumps(config.to_dict()),
        "vocabulary": json.dumps(vocab.to_dict()),
    }
    safetensors_save(tensors, str(path), metadata=metadata)
    logger.info(f"Model saved: {path}")
    return path


def read_metadata(path: Path | str) -> tuple[FunnelConfig, EventVocabulary]:
    """Read the config and vocabulary stored in a checkpoint.

    Raises:
        FileNotFoundError: If the checkpoint does not exist.
        ValueError: If metadata is missing or inconsistent.
    """
    path = _normalize_path(path)
    if not path.exists():
        raise FileNotFoundError(f"Checkpoint not found: {path}")

    with safe_open(str(path), framework="pt") as f:
        metadata = f.metadata() or {}

    missing = [key for key in REQUIRED_METADATA if key not in metadata]
    if missing:
        raise ValueError(f"Checkpoint {path} is missing metadata: {', '.join(missing)}")
    if metadata["format_version"] != FORMAT_VERSION:
        raise ValueError(
            f"Unsupported checkpoint format {metadata['format_version']!r} in {path}"
        )

    config = FunnelConfig.from_dict(json.loads(metadata["config"]))
    vocab = EventVocabulary.from_dict(json.loads(metadata["vocabulary"]))
    if config.vocabulary() != vocab:
        raise ValueError(f"Checkpoint {path} has a config/vocabulary mismatch")
    return config, vocab


def load_model(
    path: Path | str,
    device: str | torch.device = "cpu",
) -> tuple[nn.Module, FunnelConfig, EventVocabulary]:
    """Rebuild a classifier from a checkpoint.

    Returns:
        Tuple of (model in eval mode, stored config, stored vocabulary).
    """
    path = _normalize_path(path)
    config, vocab = read_metadata(path)

    model = build_model(config, vocab)
    state_dict = safetensors_load(str(path), device=str(device))
    try:
        model.load_state_dict(state_dict)
    except RuntimeError as e:
        raise ValueError(f"Checkpoint {path} weights do not match its stored config: {e}") from e
    model.to(device)
    model.eval()
    logger.debug(f"Loaded checkpoint {path} ({len(state_dict)} tensors)")
    return model, config, vocab


def load_or_create_model(
    path: Path | str,
    config: FunnelConfig,
    device: str | torch.device = "cpu",
) -> tuple[nn.Module, FunnelConfig]:
    """Load the checkpoint at ``path`` or build a fresh model if none exists.

    Returns:
        Tuple of (model, config the model was built from). For a loaded
        checkpoint this is ``config`` with the stored architecture fields
        (``hidden_dim``, ``dropout``), so saving it again stays loadable.

    Raises:
        ValueError: If the stored model's tensor contract (vocabulary,
            max_steps, layout, label mode) differs from ``config``.
    """
    path = _normalize_path(path)
    if not path.exists():
        logger.info(f"No saved model found at {path}, creating a new one")
        return build_model(config).to(device), config

    model, stored, vocab = load_model(path, device=device)
    if vocab != config.vocabulary():
        raise ValueError(
            f"Checkpoint {path} was trained on vocabulary {vocab.to_dict()}, "
            f"configured vocabulary is {config.vocabulary().to_dict()}"
        )
    for name in ("max_steps", "layout", "label_mode"):
        if getattr(stored, name) != getattr(config, name):
            raise ValueError(
                f"Checkpoint {path} has {name}={getattr(stored, name)!r}, "
                f"configured {name}={getattr(config, name)!r}"
            )
    logger.info(f"Model loaded from {path}")
    return model, dataclasses.replace(
        config, hidden_dim=stored.hidden_dim, dropout=stored.dropout
    )
