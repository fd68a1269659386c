"""Run configuration for the funnel pipeline.

Defaults reproduce the original driver-funnel setup: 2 entities × 5 event
types = 10 one-hot slots, 5 steps per sequence, 70/15/15 data split.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from .data.preprocess import LabelMode
from .encoder.event_encoder import SequenceLayout
from .encoder.vocabulary import DEFAULT_ENTITIES, DEFAULT_EVENTS, EventVocabulary

DEFAULT_DATA_DIR = Path("data")
DEFAULT_MODEL_PATH = DEFAULT_DATA_DIR / "models" / "model.safetensors"


@dataclass
class FunnelConfig:
    """All knobs of a training/prediction run.

    Vocabulary order, ``max_steps``, ``layout`` and ``label_mode`` define the
    tensor contract of a model and are stored with its checkpoint.
    """

    entities: list[str] = field(default_factory=lambda: list(DEFAULT_ENTITIES))
    events: list[str] = field(default_factory=lambda: list(DEFAULT_EVENTS))
    max_steps: int = len(DEFAULT_EVENTS)
    layout: SequenceLayout = SequenceLayout.FLATTENED
    label_mode: LabelMode = LabelMode.NEXT_EVENT
    strict: bool = True

    data_dir: Path = DEFAULT_DATA_DIR
    model_path: Path = DEFAULT_MODEL_PATH
    train_ratio: float = 0.7
    val_ratio: float = 0.15

    epochs: int = 100
    batch_size: int = 32
    lr: float = 1e-3
    hidden_dim: int | None = None
    dropout: float = 0.4
    threshold: float = 0.5
    seed: int = 42

    def __post_init__(self) -> None:
        self.entities = list(self.entities)
        self.events = list(self.events)
        self.layout = SequenceLayout(self.layout)
        self.label_mode = LabelMode(self.label_mode)
        self.data_dir = Path(self.data_dir)
        self.model_path = Path(self.model_path)

        for name in ("max_steps", "epochs", "batch_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.hidden_dim is not None and self.hidden_dim < 1:
            raise ValueError(f"hidden_dim must be positive, got {self.hidden_dim}")
        if self.lr <= 0:
            raise ValueError(f"lr must be positive, got {self.lr}")
        if not 0.0 <= self.dropout < 1.0:
            raise ValueError(f"dropout must be in [0, 1), got {self.dropout}")
        if not 0.0 < self.threshold < 1.0:
            raise ValueError(f"threshold must be in (0, 1), got {self.threshold}")
        if not 0.0 <= self.train_ratio <= 1.0 or not 0.0 <= self.val_ratio <= 1.0:
            raise ValueError("Split ratios must be between 0 and 1")
        if self.train_ratio + self.val_ratio > 1.0:
            raise ValueError("train_ratio + val_ratio must not exceed 1")

    def vocabulary(self) -> EventVocabulary:
        return EventVocabulary(tuple(self.entities), tuple(self.events))

    @property
    def feature_length(self) -> int:
        return len(self.entities) * len(self.events)

    @property
    def input_length(self) -> int:
        """Scalars per encoded sequence (max_steps × feature length)."""
        return self.max_steps * self.feature_length

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["layout"] = self.layout.value
        data["label_mode"] = self.label_mode.value
        data["data_dir"] = str(self.data_dir)
        data["model_path"] = str(self.model_path)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FunnelConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path | str) -> FunnelConfig:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a JSON object")
        return cls.from_dict(data)

    def replace(self, **overrides: Any) -> FunnelConfig:
        """Copy with some fields overridden (``None`` values are ignored)."""
        data = asdict(self)
        data.update({k: v for k, v in overrides.items() if v is not None})
        return FunnelConfig.from_dict(data)
