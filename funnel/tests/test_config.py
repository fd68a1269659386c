"""Tests for FunnelConfig defaults, validation and serialization."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from funnel.config import DEFAULT_MODEL_PATH, FunnelConfig
from funnel.data.preprocess import LabelMode
from funnel.encoder.event_encoder import SequenceLayout


class TestDefaults:
    def test_driver_funnel_defaults(self):
        config = FunnelConfig()
        assert config.entities == ["driver", "us"]
        assert config.events == ["apply", "wait", "sms", "email", "hire"]
        assert config.max_steps == 5
        assert config.feature_length == 10
        assert config.input_length == 50
        assert config.layout is SequenceLayout.FLATTENED
        assert config.label_mode is LabelMode.NEXT_EVENT
        assert config.strict is True
        assert config.model_path == DEFAULT_MODEL_PATH

    def test_strings_are_coerced(self):
        config = FunnelConfig(layout="stepwise", label_mode="binary", data_dir="somewhere")
        assert config.layout is SequenceLayout.STEPWISE
        assert config.label_mode is LabelMode.BINARY
        assert config.data_dir == Path("somewhere")

    def test_vocabulary(self):
        vocab = FunnelConfig(entities=["a"], events=["x", "y"]).vocabulary()
        assert vocab.tokens() == ["a:x", "a:y"]


class TestValidation:
    @pytest.mark.parametrize("overrides", [
        {"max_steps": 0},
        {"epochs": 0},
        {"lr": 0.0},
        {"dropout": 1.0},
        {"threshold": 1.0},
        {"train_ratio": 0.9, "val_ratio": 0.2},
        {"hidden_dim": 0},
    ])
    def test_rejects(self, overrides):
        with pytest.raises(ValueError):
            FunnelConfig(**overrides)

    def test_unknown_layout(self):
        with pytest.raises(ValueError):
            FunnelConfig(layout="diagonal")


class TestSerialization:
    def test_dict_round_trip(self):
        config = FunnelConfig(label_mode="binary", hidden_dim=8, epochs=3)
        data = config.to_dict()
        assert data["label_mode"] == "binary"
        assert isinstance(data["model_path"], str)
        json.dumps(data)
        assert FunnelConfig.from_dict(data) == config

    def test_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown config keys"):
            FunnelConfig.from_dict({"epochs": 3, "learning_rate": 0.1})

    def test_from_json(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"max_steps": 8, "layout": "stepwise"}))
        config = FunnelConfig.from_json(path)
        assert config.max_steps == 8
        assert config.layout is SequenceLayout.STEPWISE

    def test_from_json_requires_object(self, tmp_path: Path):
        path = tmp_path / "config.json"
        path.write_text("[]")
        with pytest.raises(ValueError):
            FunnelConfig.from_json(path)

    def test_replace_ignores_none(self):
        config = FunnelConfig(epochs=3)
        updated = config.replace(epochs=None, seed=7)
        assert updated.epochs == 3
        assert updated.seed == 7
        assert config.seed == 42

    def test_replace_keeps_false(self):
        assert FunnelConfig().replace(strict=False).strict is False
