"""Dataset records and their JSON persistence.

Records are stored as JSON arrays, one file per split:

    [
        {"input": "driver:apply|us:sms|driver:hire", "output": 1},
        {"input": "driver:apply|us:wait", "output": "us:sms"},
        ...
    ]

``output`` is a 0/1 hire flag for binary datasets and an ``entity:event``
token for next-event datasets. Which one applies is configured, never
guessed from the JSON.
"""

from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Iterable, NamedTuple

from pydantic import BaseModel, ConfigDict

from ..encoder.vocabulary import PART_DELIMITER, TOKEN_DELIMITER, EventVocabulary

logger = logging.getLogger(__name__)

TRAIN_FILE = "train.json"
VALIDATION_FILE = "validation.json"
TEST_FILE = "test.json"


class EventRecord(BaseModel):
    """One labelled event sequence."""

    model_config = ConfigDict(frozen=True)

    input: str
    output: bool | int | str


class DatasetSplit(NamedTuple):
    train: list[EventRecord]
    validation: list[EventRecord]
    test: list[EventRecord]


def load_records(path: Path | str) -> list[EventRecord]:
    """Load a JSON array of records.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the top-level JSON value is not an array.
        pydantic.ValidationError: If an entry lacks ``input``/``output``.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of records")
    return [EventRecord.model_validate(item) for item in data]


def save_records(records: Iterable[EventRecord], path: Path | str) -> Path:
    """Write records as an indented JSON array, replacing the file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [record.model_dump() for record in records]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
        f.write("\n")
    logger.debug("Wrote %d records to %s", len(payload), path)
    return path


def add_record(
    path: Path | str,
    sequence: str,
    output: bool | int | str,
) -> list[EventRecord]:
    """Append one record to a collection file and re-persist all of it.

    A missing file is treated as an empty collection.

    Returns:
        The updated collection.
    """
    path = Path(path)
    records = load_records(path) if path.exists() else []
    records.append(EventRecord(input=sequence, output=output))
    save_records(records, path)
    logger.info("Added record to %s (%d total)", path, len(records))
    return records


def split_records(
    records: list[EventRecord],
    train_ratio: float = 0.7,
    val_ratio: float = 0.15,
    seed: int = 42,
    shuffle: bool = True,
) -> DatasetSplit:
    """Split records into train, validation and test sets.

    Sizes are ``floor(n * train_ratio)`` and ``floor(n * val_ratio)``; the
    test set takes the remainder. Shuffling uses a seeded RNG so splits are
    reproducible.
    """
    if not 0.0 <= train_ratio <= 1.0 or not 0.0 <= val_ratio <= 1.0:
        raise ValueError("Split ratios must be between 0 and 1")
    if train_ratio + val_ratio > 1.0:
        raise ValueError(
            f"train_ratio + val_ratio must not exceed 1 (got {train_ratio + val_ratio:.2f})"
        )

    ordered = list(records)
    if shuffle:
        random.Random(seed).shuffle(ordered)

    train_size = int(len(ordered) * train_ratio)
    val_size = int(len(ordered) * val_ratio)

    split = DatasetSplit(
        train=ordered[:train_size],
        validation=ordered[train_size:train_size + val_size],
        test=ordered[train_size + val_size:],
    )
    logger.info(
        "Split: %d train, %d validation, %d test records.",
        len(split.train),
        len(split.validation),
        len(split.test),
    )
    return split


def save_split(split: DatasetSplit, data_dir: Path | str) -> None:
    data_dir = Path(data_dir)
    save_records(split.train, data_dir / TRAIN_FILE)
    save_records(split.validation, data_dir / VALIDATION_FILE)
    save_records(split.test, data_dir / TEST_FILE)


def load_split(data_dir: Path | str) -> DatasetSplit:
    data_dir = Path(data_dir)
    return DatasetSplit(
        train=load_records(data_dir / TRAIN_FILE),
        validation=load_records(data_dir / VALIDATION_FILE),
        test=load_records(data_dir / TEST_FILE),
    )


# ---------------------------------------------------------------------------
# Synthetic funnel data
# ---------------------------------------------------------------------------

APPLICANT_ENTITY = "driver"
APPLICANT_ONLY_EVENTS = frozenset({"apply", "hire"})
APPLICANT_EXCLUDED_EVENTS = frozenset({"wait"})
TERMINAL_EVENT = "hire"


def _allowed_events(entity: str, vocab: EventVocabulary, first: bool) -> list[str]:
    if entity == APPLICANT_ENTITY:
        excluded = set(APPLICANT_EXCLUDED_EVENTS)
        if first:
            excluded.add(TERMINAL_EVENT)
    else:
        excluded = set(APPLICANT_ONLY_EVENTS)
    allowed = [event for event in vocab.events if event not in excluded]
    return allowed or list(vocab.events)


def _random_token(rng: random.Random, vocab: EventVocabulary, first: bool) -> str:
    entity = rng.choice(vocab.entities)
    event = rng.choice(_allowed_events(entity, vocab, first))
    return f"{entity}{PART_DELIMITER}{event}"


def generate_sequence(
    rng: random.Random,
    vocab: EventVocabulary,
    max_length: int,
) -> str:
    """Random funnel trace of 1..max_length events.

    The applicant never waits and is never hired on the first step; other
    entities never apply or hire. An applicant hire ends the trace.
    """
    if max_length < 1:
        raise ValueError(f"max_length must be positive, got {max_length}")
    length = rng.randint(1, max_length)
    terminal = f"{APPLICANT_ENTITY}{PART_DELIMITER}{TERMINAL_EVENT}"

    tokens: list[str] = []
    for i in range(length):
        token = _random_token(rng, vocab, first=(i == 0))
        tokens.append(token)
        if token == terminal:
            break
    return TOKEN_DELIMITER.join(tokens)


def generate_random_records(
    n_samples: int,
    max_length: int,
    vocab: EventVocabulary,
    seed: int | None = None,
) -> list[EventRecord]:
    """Generate next-event records with a random trace and a random next step."""
    rng = random.Random(seed)
    return [
        EventRecord(
            input=generate_sequence(rng, vocab, max_length),
            output=_random_token(rng, vocab, first=False),
        )
        for _ in range(n_samples)
    ]
