"""Tests for the classifiers, training loop, evaluation and prediction.

Verifies:
1. Both classifiers accept flattened and stepwise inputs
2. build_model() picks the head from the label mode
3. train_epoch()/validate() return finite metrics
4. Loss decreases on a tiny, learnable dataset
5. evaluate() and the predict helpers produce well-formed results
"""

from __future__ import annotations

import math

import pytest
import torch

from funnel.config import FunnelConfig
from funnel.data.preprocess import LabelMode, preprocess
from funnel.data.records import EventRecord
from funnel.encoder.event_encoder import decode_prediction, encode_padded
from funnel.model.classifier import HireClassifier, NextEventClassifier, build_model
from funnel.training.evaluate import (
    HirePrediction,
    evaluate,
    predict_hire,
    predict_next_event,
)
from funnel.training.train import (
    FunnelTrainer,
    compute_loss,
    count_correct,
    count_scored,
    make_loader,
)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestClassifiers:
    def test_hire_output_shape(self):
        model = HireClassifier(input_dim=50)
        out = model(torch.zeros(3, 50))
        assert out["logits"].shape == (3, 1)
        assert ((out["probs"] >= 0) & (out["probs"] <= 1)).all()

    def test_next_event_output_shape(self):
        model = NextEventClassifier(input_dim=50, n_classes=10, hidden_dim=32)
        model.eval()
        out = model(torch.zeros(4, 50))
        assert out["logits"].shape == (4, 10)
        assert torch.allclose(out["probs"].sum(dim=-1), torch.ones(4), atol=1e-5)

    def test_stepwise_input_is_flattened(self):
        model = NextEventClassifier(input_dim=50, n_classes=10)
        model.eval()
        flat = torch.rand(2, 50)
        with torch.no_grad():
            a = model(flat)["logits"]
            b = model(flat.reshape(2, 5, 10))["logits"]
        assert torch.allclose(a, b)

    def test_build_model_by_mode(self, binary_config, next_event_config):
        assert isinstance(build_model(binary_config), HireClassifier)
        model = build_model(next_event_config)
        assert isinstance(model, NextEventClassifier)
        assert model.input_dim == 50
        assert model.n_classes == 10


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------


def _loaders(records, vocab, config: FunnelConfig):
    x, y = preprocess(records, vocab, config.max_steps, config.layout, config.label_mode)
    return make_loader(x, y, batch_size=config.batch_size, shuffle=True, seed=0), make_loader(x, y)


class TestLoss:
    def test_binary_loss_is_finite(self):
        loss = compute_loss(torch.zeros(4, 1), torch.ones(4, 1), LabelMode.BINARY)
        assert math.isclose(loss.item(), math.log(2), rel_tol=1e-5)

    def test_zero_target_row_adds_no_loss(self):
        logits = torch.randn(2, 10)
        targets = torch.zeros(2, 10)
        targets[0, 3] = 1.0
        both = compute_loss(logits, targets, LabelMode.NEXT_EVENT)
        first = compute_loss(logits[:1], targets[:1], LabelMode.NEXT_EVENT)
        assert math.isclose(both.item() * 2, first.item(), rel_tol=1e-5)

    def test_zero_target_row_is_not_scored(self):
        # Row 1 predicts index 0, which an all-zero target's argmax would also give.
        logits = torch.tensor([[0.0, 1.0], [1.0, 0.0]])
        targets = torch.tensor([[0.0, 1.0], [0.0, 0.0]])
        out = {"logits": logits, "probs": logits.softmax(-1)}
        assert count_correct(out, targets, LabelMode.NEXT_EVENT) == 1
        assert count_scored(targets, LabelMode.NEXT_EVENT) == 1
        assert count_scored(torch.zeros(3, 1), LabelMode.BINARY) == 3

    def test_count_correct_next_event(self):
        logits = torch.tensor([[0.1, 0.9], [0.8, 0.2]])
        targets = torch.tensor([[0.0, 1.0], [0.0, 1.0]])
        out = {"logits": logits, "probs": logits.softmax(-1)}
        assert count_correct(out, targets, LabelMode.NEXT_EVENT) == 1

    def test_count_correct_binary_threshold(self):
        probs = torch.tensor([[0.7], [0.4], [0.55]])
        out = {"logits": probs.logit(), "probs": probs}
        targets = torch.tensor([[1.0], [0.0], [0.0]])
        mode = LabelMode.BINARY
        assert count_correct(out, targets, mode, threshold=0.5) == 2
        assert count_correct(out, targets, mode, threshold=0.6) == 3


class TestFunnelTrainer:
    def test_train_epoch_metrics(self, vocab, next_event_records, next_event_config):
        train_loader, _ = _loaders(next_event_records, vocab, next_event_config)
        trainer = FunnelTrainer(build_model(next_event_config), next_event_config)
        metrics = trainer.train_epoch(train_loader)
        assert set(metrics) == {"loss", "accuracy"}
        assert math.isfinite(metrics["loss"])
        assert 0.0 <= metrics["accuracy"] <= 1.0
        assert trainer.epoch == 1

    def test_validate_metrics(self, vocab, binary_records, binary_config):
        _, val_loader = _loaders(binary_records, vocab, binary_config)
        trainer = FunnelTrainer(build_model(binary_config), binary_config)
        metrics = trainer.validate(val_loader)
        assert set(metrics) == {"val_loss", "val_accuracy"}

    def test_train_history(self, vocab, binary_records, binary_config):
        train_loader, val_loader = _loaders(binary_records, vocab, binary_config)
        trainer = FunnelTrainer(build_model(binary_config), binary_config)
        history = trainer.train(train_loader, val_loader, n_epochs=3)
        assert len(history) == 3
        assert "val_loss" in history[-1]

    def test_loss_decreases(self, vocab, binary_records, binary_config):
        torch.manual_seed(0)
        config = binary_config.replace(lr=0.05, hidden_dim=16)
        x, y = preprocess(binary_records, vocab, config.max_steps, config.layout, config.label_mode)
        loader = make_loader(x, y, batch_size=len(binary_records))
        trainer = FunnelTrainer(build_model(config), config)

        first = trainer.train_epoch(loader)["loss"]
        for _ in range(60):
            last = trainer.train_epoch(loader)["loss"]
        assert last < first

    def test_best_checkpoint_written(self, vocab, binary_records, binary_config, tmp_path):
        train_loader, val_loader = _loaders(binary_records, vocab, binary_config)
        trainer = FunnelTrainer(
            build_model(binary_config), binary_config, checkpoint_dir=tmp_path / "ckpt"
        )
        trainer.train(train_loader, val_loader, n_epochs=1)
        assert (tmp_path / "ckpt" / "best.safetensors").exists()

    def test_save_without_checkpoint_dir(self, binary_config):
        trainer = FunnelTrainer(build_model(binary_config), binary_config)
        with pytest.raises(ValueError):
            trainer.save_checkpoint("best.safetensors")


# ---------------------------------------------------------------------------
# Evaluation and prediction
# ---------------------------------------------------------------------------


class TestEvaluate:
    def test_next_event_accuracy(self, vocab, next_event_records, next_event_config):
        x, y = preprocess(next_event_records, vocab, 5)
        metrics = evaluate(build_model(next_event_config), x, y, "next_event")
        assert 0.0 <= metrics["accuracy"] <= 1.0
        assert metrics["n"] == len(next_event_records)
        assert "ece" not in metrics

    def test_binary_includes_calibration(self, vocab, binary_records, binary_config):
        x, y = preprocess(binary_records, vocab, 5, label_mode="binary")
        metrics = evaluate(build_model(binary_config), x, y, "binary")
        assert {"accuracy", "ece", "mce", "brier"} <= set(metrics)
        assert 0.0 <= metrics["brier"] <= 1.0

    def test_lenient_unknown_targets_excluded(self, vocab, next_event_config):
        records = [
            EventRecord(input="driver:apply", output="us:sms"),
            EventRecord(input="driver:apply|us:sms", output="us:call"),
        ]
        x, y = preprocess(records, vocab, 5, strict=False)
        metrics = evaluate(build_model(next_event_config), x, y, "next_event")
        assert metrics["n"] == 1
        assert metrics["accuracy"] in (0.0, 1.0)

    def test_only_unknown_targets(self, vocab, next_event_config):
        x, y = preprocess(
            [EventRecord(input="driver:apply", output="us:call")], vocab, 5, strict=False
        )
        metrics = evaluate(build_model(next_event_config), x, y, "next_event")
        assert metrics == {"accuracy": 0.0, "n": 0}

    def test_empty_test_set(self, next_event_config):
        metrics = evaluate(
            build_model(next_event_config), torch.zeros(0, 50), torch.zeros(0, 10), "next_event"
        )
        assert metrics == {"accuracy": 0.0, "n": 0}


class TestPredict:
    def test_predict_next_event(self, vocab, next_event_config):
        model = build_model(next_event_config)
        result = predict_next_event(model, "driver:apply|us:sms", vocab, next_event_config, k=3)
        assert result.token in vocab
        assert len(result.top_k) == 3
        assert result.top_k[0][0] == result.token
        assert 0.0 <= result.probability <= 1.0

    def test_next_event_token_is_decoded_argmax(self, vocab, next_event_config):
        model = build_model(next_event_config)
        model.eval()
        x = encode_padded("driver:apply|us:sms", vocab, 5).unsqueeze(0)
        with torch.no_grad():
            probs = model(x)["probs"]
        result = predict_next_event(model, "driver:apply|us:sms", vocab, next_event_config)
        assert result.token == decode_prediction(probs, vocab)
        assert result.probability == pytest.approx(probs.max().item())

    def test_predict_hire(self, vocab, binary_config):
        model = build_model(binary_config)
        result = predict_hire(model, "driver:apply|us:wait|us:sms", vocab, binary_config)
        assert isinstance(result, HirePrediction)
        assert result.hired == (result.probability > 0.5)
        assert result.label in ("hire", "not hire")

    def test_predict_stepwise_layout(self, vocab, next_event_config):
        config = next_event_config.replace(layout="stepwise")
        model = build_model(config)
        result = predict_next_event(model, "driver:apply", vocab, config)
        assert result.token in vocab
