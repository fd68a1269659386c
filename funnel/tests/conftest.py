"""Shared fixtures for funnel tests.

Provides the default driver-funnel vocabulary, record builders and small
configs so individual test files don't duplicate setup code.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from funnel.config import FunnelConfig
from funnel.data.records import EventRecord, save_records
from funnel.encoder.vocabulary import EventVocabulary


# ---------------------------------------------------------------------------
# Standard entity / event lists
# ---------------------------------------------------------------------------

ENTITIES: list[str] = ["driver", "us"]
EVENTS: list[str] = ["apply", "wait", "sms", "email", "hire"]

NEXT_EVENT_RECORDS: list[dict] = [
    {"input": "driver:apply", "output": "us:sms"},
    {"input": "driver:apply|us:sms", "output": "driver:email"},
    {"input": "driver:apply|us:sms|driver:email", "output": "us:email"},
    {"input": "driver:apply|us:wait|us:sms|driver:sms", "output": "driver:hire"},
    {"input": "driver:apply|us:email", "output": "us:wait"},
    {"input": "driver:apply|us:wait", "output": "us:sms"},
]

BINARY_RECORDS: list[dict] = [
    {"input": "driver:apply|us:sms|driver:hire", "output": 1},
    {"input": "driver:apply|us:wait", "output": 0},
    {"input": "driver:apply|us:email|driver:email|driver:hire", "output": 1},
    {"input": "driver:apply", "output": 0},
    {"input": "driver:apply|us:sms|driver:sms|driver:hire", "output": 1},
    {"input": "driver:apply|us:wait|us:wait", "output": 0},
]


def make_records(raw: list[dict]) -> list[EventRecord]:
    """Validate raw dicts into EventRecords."""
    return [EventRecord.model_validate(item) for item in raw]


def write_split(data_dir: Path, raw: list[dict]) -> Path:
    """Write the same records as train, validation and test files."""
    records = make_records(raw)
    for name in ("train.json", "validation.json", "test.json"):
        save_records(records, data_dir / name)
    return data_dir


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def vocab() -> EventVocabulary:
    """The driver funnel vocabulary: 2 entities × 5 events = 10 slots."""
    return EventVocabulary(tuple(ENTITIES), tuple(EVENTS))


@pytest.fixture
def next_event_records() -> list[EventRecord]:
    return make_records(NEXT_EVENT_RECORDS)


@pytest.fixture
def binary_records() -> list[EventRecord]:
    return make_records(BINARY_RECORDS)


@pytest.fixture
def next_event_config(tmp_path: Path) -> FunnelConfig:
    """Small, fast next-event config rooted in a temp directory."""
    return FunnelConfig(
        label_mode="next_event",
        data_dir=tmp_path / "data",
        model_path=tmp_path / "data" / "models" / "model.safetensors",
        epochs=2,
        batch_size=4,
        hidden_dim=16,
    )


@pytest.fixture
def binary_config(tmp_path: Path) -> FunnelConfig:
    """Small, fast binary hire config rooted in a temp directory."""
    return FunnelConfig(
        label_mode="binary",
        data_dir=tmp_path / "data",
        model_path=tmp_path / "data" / "models" / "model.safetensors",
        epochs=2,
        batch_size=4,
    )
