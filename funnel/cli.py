"""Command-line interface for the funnel pipeline.

Usage:
    python -m funnel train [--new]
    python -m funnel add -s 'driver:apply|us:sms|driver:hire' -o 1
    python -m funnel predict -s 'driver:apply|us:sms'
    python -m funnel predict                      # evaluate on test.json
    python -m funnel generate [-n 1400] [--max-length 10]
    python -m funnel split [--source data/events.json]

Common options (--config, --data-dir, --label-mode, ...) may be given
after any subcommand.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

import torch
from pydantic import ValidationError

from .config import FunnelConfig
from .data.preprocess import LabelMode, filter_encodable, parse_label, preprocess
from .data.records import (
    TEST_FILE,
    TRAIN_FILE,
    VALIDATION_FILE,
    EventRecord,
    add_record,
    generate_random_records,
    load_records,
    save_split,
    split_records,
)
from .encoder.errors import EncodingError
from .encoder.event_encoder import SequenceLayout, encode
from .model.classifier import build_model
from .training.evaluate import evaluate, predict_hire, predict_next_event
from .training.train import FunnelTrainer, make_loader
from .utils.checkpoint import load_model, load_or_create_model, save_model

logger = logging.getLogger("funnel.cli")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", type=Path, default=None,
                        help="JSON file with FunnelConfig fields")
    common.add_argument("--data-dir", type=Path, default=None)
    common.add_argument("--model-path", type=Path, default=None)
    common.add_argument("--label-mode", choices=[m.value for m in LabelMode], default=None)
    common.add_argument("--layout", choices=[l.value for l in SequenceLayout], default=None)
    common.add_argument("--max-steps", type=int, default=None)
    common.add_argument("--epochs", type=int, default=None)
    common.add_argument("--seed", type=int, default=None)
    common.add_argument("--lenient", action="store_true",
                        help="Encode unknown tokens as zero vectors instead of failing")
    common.add_argument("-v", "--verbose", action="store_true")
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_options()
    parser = argparse.ArgumentParser(
        prog="funnel",
        description="Encode hiring-funnel event sequences and train/predict with a small classifier",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    train = sub.add_parser("train", parents=[common], help="Train the model")
    train.add_argument("--new", dest="new_model", action="store_true",
                       help="Create a new model instead of loading an existing one")

    add = sub.add_parser("add", parents=[common],
                         help="Add new training data and retrain the model")
    add.add_argument("-s", "--sequence", required=True,
                     help="The sequence of events (driver:apply|us:sms|driver:hire)")
    add.add_argument("-o", "--output", required=True,
                     help="The actual outcome (0/1, or the next event token)")

    predict = sub.add_parser("predict", parents=[common],
                             help="Predict from a sequence, or evaluate on the test set")
    predict.add_argument("-s", "--sequence", default=None,
                         help="The sequence of events (driver:apply|us:sms|driver:hire)")

    generate = sub.add_parser("generate", parents=[common],
                              help="Generate random train/validation/test data")
    generate.add_argument("-n", "--samples", type=int, default=1400)
    generate.add_argument("--max-length", type=int, default=10,
                          help="Maximum number of events per generated sequence")

    split = sub.add_parser("split", parents=[common],
                           help="Shuffle and split a record collection")
    split.add_argument("--source", type=Path, default=None,
                       help="Records to split (default: <data-dir>/events.json)")

    return parser


def resolve_config(args: argparse.Namespace) -> FunnelConfig:
    config = FunnelConfig.from_json(args.config) if args.config else FunnelConfig()
    return config.replace(
        data_dir=args.data_dir,
        model_path=args.model_path,
        label_mode=args.label_mode,
        layout=args.layout,
        max_steps=args.max_steps,
        epochs=args.epochs,
        seed=args.seed,
        strict=False if args.lenient else None,
    )


def _load_encodable(path: Path, config: FunnelConfig) -> list[EventRecord]:
    """Load records, skipping (and reporting) those that cannot be encoded."""
    records = load_records(path)
    good, errors = filter_encodable(
        records, config.vocabulary(), config.label_mode, strict=config.strict
    )
    for error in errors:
        logger.warning(f"Skipping {path.name} record {error.record_index}: {error.error}")
    return good


def _tensors(records: list[EventRecord], config: FunnelConfig) -> tuple[torch.Tensor, torch.Tensor]:
    return preprocess(
        records,
        config.vocabulary(),
        config.max_steps,
        config.layout,
        config.label_mode,
        strict=config.strict,
    )


def train_model(config: FunnelConfig, new_model: bool = False) -> Path:
    """Train a new or existing model on train.json/validation.json and save it."""
    torch.manual_seed(config.seed)
    if new_model:
        model = build_model(config)
    else:
        # Keep the architecture the checkpoint was trained with.
        model, config = load_or_create_model(config.model_path, config)

    train_records = _load_encodable(config.data_dir / TRAIN_FILE, config)
    val_path = config.data_dir / VALIDATION_FILE
    val_records = _load_encodable(val_path, config) if val_path.exists() else []
    logger.info(f"Train: {len(train_records)} records, Val: {len(val_records)} records")
    if not train_records:
        raise ValueError(f"No encodable training records in {config.data_dir / TRAIN_FILE}")

    train_x, train_y = _tensors(train_records, config)
    train_loader = make_loader(
        train_x, train_y, batch_size=config.batch_size, shuffle=True, seed=config.seed
    )
    val_loader = None
    if val_records:
        val_x, val_y = _tensors(val_records, config)
        val_loader = make_loader(val_x, val_y, batch_size=config.batch_size)

    trainer = FunnelTrainer(model, config)
    history = trainer.train(train_loader, val_loader)
    if history:
        last = history[-1]
        logger.info(f"Final metrics: {json.dumps({k: round(v, 4) for k, v in last.items()})}")

    path = save_model(config.model_path, trainer.model, config)
    logger.info(f"Model saved to {path}")
    return path


def add_training_data(config: FunnelConfig, sequence: str, output: str) -> Path:
    """Validate and append one record to train.json, then retrain."""
    label = parse_label(output, config.label_mode)
    encode(sequence, config.vocabulary(), strict=config.strict)
    if config.label_mode is LabelMode.BINARY:
        stored: int | str = int(label.hired)
    else:
        stored = label.token
        encode(stored, config.vocabulary(), strict=config.strict)

    add_record(config.data_dir / TRAIN_FILE, sequence, stored)
    return train_model(config)


def make_prediction(config: FunnelConfig, sequence: str) -> str:
    model, stored, vocab = load_model(config.model_path)
    # The checkpoint's tensor contract wins over command-line settings.
    stored = stored.replace(strict=config.strict)
    if stored.label_mode is LabelMode.BINARY:
        result = predict_hire(model, sequence, vocab, stored)
        print(f"Predicted probability: {result.probability:.4f}")
        print(f"Prediction: {result.label}")
        return result.label

    result = predict_next_event(model, sequence, vocab, stored)
    print(f"Predicted next step: {result.token}")
    for token, prob in result.top_k:
        print(f"  {token:<16} {prob:.4f}")
    return result.token


def evaluate_model(config: FunnelConfig) -> dict[str, float]:
    model, stored, _ = load_model(config.model_path)
    stored = stored.replace(strict=config.strict)
    records = _load_encodable(config.data_dir / TEST_FILE, stored)
    if not records:
        raise ValueError(f"No encodable test records in {config.data_dir / TEST_FILE}")
    inputs, outputs = _tensors(records, stored)
    metrics = evaluate(model, inputs, outputs, stored.label_mode, stored.threshold)
    print(f"Test accuracy: {metrics['accuracy'] * 100:.2f}%")
    if "ece" in metrics:
        print(f"ECE: {metrics['ece']:.4f}  Brier: {metrics['brier']:.4f}")
    return metrics


def generate_data(config: FunnelConfig, n_samples: int, max_length: int) -> None:
    records = generate_random_records(n_samples, max_length, config.vocabulary(), seed=config.seed)
    split = split_records(
        records, config.train_ratio, config.val_ratio, seed=config.seed, shuffle=False
    )
    save_split(split, config.data_dir)
    print(
        f"Generated {len(split.train)} training samples, {len(split.validation)} "
        f"validation samples, and {len(split.test)} test samples."
    )


def split_data(config: FunnelConfig, source: Path | None) -> None:
    source = source or config.data_dir / "events.json"
    records = load_records(source)
    split = split_records(records, config.train_ratio, config.val_ratio, seed=config.seed)
    save_split(split, config.data_dir)
    print(
        f"Split {len(records)} records into {len(split.train)} training, "
        f"{len(split.validation)} validation and {len(split.test)} test samples."
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
    )

    try:
        config = resolve_config(args)
        if args.command == "train":
            train_model(config, new_model=args.new_model)
        elif args.command == "add":
            add_training_data(config, args.sequence, args.output)
        elif args.command == "predict":
            if args.sequence:
                make_prediction(config, args.sequence)
            else:
                evaluate_model(config)
        elif args.command == "generate":
            generate_data(config, args.samples, args.max_length)
        elif args.command == "split":
            split_data(config, args.source)
    except (EncodingError, ValidationError, ValueError, FileNotFoundError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
