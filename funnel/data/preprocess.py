"""Dataset Preprocessor: records → (inputs, outputs) tensor pairs.

Applies encode + normalize to every record's ``input`` and encodes its
``output`` according to the configured label mode:

    binary:      outputs (batch, 1)  0.0 / 1.0 hire flag
    next_event:  outputs (batch, F)  one-hot of the next event token

Row i of both tensors always belongs to record i. Nothing here logs; bad
records surface as exceptions (or, through :func:`filter_encodable`, as a
list of errors the caller decides what to do with).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Union

import torch

from ..encoder.errors import EncodingError, ShapeMismatchError
from ..encoder.event_encoder import SequenceLayout, encode_padded, one_hot
from ..encoder.vocabulary import EventVocabulary, split_token
from .records import EventRecord


class LabelMode(str, Enum):
    """What a record's ``output`` means."""

    BINARY = "binary"
    NEXT_EVENT = "next_event"


@dataclass(frozen=True)
class BinaryLabel:
    hired: bool


@dataclass(frozen=True)
class NextEventLabel:
    token: str


Label = Union[BinaryLabel, NextEventLabel]


class LabelError(EncodingError):
    """A record's output does not fit the configured label mode."""


class RecordError(EncodingError):
    """Encoding failure attributed to one record of a collection.

    The underlying error is kept as ``__cause__`` and ``error``.
    """

    def __init__(self, record_index: int, error: Exception) -> None:
        self.record_index = record_index
        self.error = error
        super().__init__(f"Record {record_index}: {error}")
        self.__cause__ = error


_BINARY_STRINGS = {"0": False, "1": True, "false": False, "true": True}


def parse_label(raw: bool | int | str, mode: LabelMode | str) -> Label:
    """Interpret a raw ``output`` value under an explicit label mode.

    Raises:
        LabelError: If the value is not valid for ``mode``.
    """
    mode = LabelMode(mode)
    if mode is LabelMode.BINARY:
        if isinstance(raw, bool):
            return BinaryLabel(raw)
        if isinstance(raw, int) and raw in (0, 1):
            return BinaryLabel(bool(raw))
        if isinstance(raw, str) and raw.strip().lower() in _BINARY_STRINGS:
            return BinaryLabel(_BINARY_STRINGS[raw.strip().lower()])
        raise LabelError(f"Binary label must be 0 or 1, got {raw!r}")

    if not isinstance(raw, str):
        raise LabelError(f"Next-event label must be an 'entity:event' token, got {raw!r}")
    token = raw.strip()
    try:
        split_token(token)
    except EncodingError as e:
        raise LabelError(str(e)) from e
    return NextEventLabel(token)


def encode_label(
    label: Label,
    vocab: EventVocabulary,
    strict: bool = True,
) -> torch.Tensor:
    """(1,) hire flag or (F,) one-hot next-event vector."""
    if isinstance(label, BinaryLabel):
        return torch.tensor([1.0 if label.hired else 0.0], dtype=torch.float32)
    return one_hot(label.token, vocab, strict=strict)


def output_width(vocab: EventVocabulary, label_mode: LabelMode | str) -> int:
    return 1 if LabelMode(label_mode) is LabelMode.BINARY else vocab.feature_length


def input_shape(
    vocab: EventVocabulary,
    max_steps: int,
    layout: SequenceLayout | str,
) -> tuple[int, ...]:
    """Per-record input shape (without the batch dimension)."""
    if SequenceLayout(layout) is SequenceLayout.FLATTENED:
        return (max_steps * vocab.feature_length,)
    return (max_steps, vocab.feature_length)


def _encode_record(
    record: EventRecord,
    vocab: EventVocabulary,
    max_steps: int,
    layout: SequenceLayout,
    label_mode: LabelMode,
    strict: bool,
) -> tuple[torch.Tensor, torch.Tensor]:
    x = encode_padded(record.input, vocab, max_steps, layout, strict=strict)
    y = encode_label(parse_label(record.output, label_mode), vocab, strict=strict)
    return x, y


def _stack(rows: list[torch.Tensor], shape: tuple[int, ...], what: str) -> torch.Tensor:
    for i, row in enumerate(rows):
        if tuple(row.shape) != shape:
            raise ShapeMismatchError(
                f"{what} row {i} has shape {tuple(row.shape)}, expected {shape}"
            )
    if not rows:
        return torch.zeros((0, *shape), dtype=torch.float32)
    return torch.stack(rows)


def preprocess(
    records: Sequence[EventRecord],
    vocab: EventVocabulary,
    max_steps: int,
    layout: SequenceLayout | str = SequenceLayout.FLATTENED,
    label_mode: LabelMode | str = LabelMode.NEXT_EVENT,
    strict: bool = True,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Build model-ready input/output tensors from labelled records.

    Args:
        records: Collection of ``{input, output}`` records. Not modified.
        vocab: Encoding vocabulary.
        max_steps: Steps per sequence after padding/truncation.
        layout: Input tensor layout.
        label_mode: How to read each record's ``output``.
        strict: Raise on unknown tokens (True) or zero-fill them (False).

    Returns:
        Tuple ``(inputs, outputs)``:
            - inputs: (batch, max_steps * F) or (batch, max_steps, F)
            - outputs: (batch, 1) for binary, (batch, F) for next_event

    Raises:
        RecordError: If a record cannot be encoded; ``record_index`` says which.
        ShapeMismatchError: If encoded rows disagree in shape.
    """
    layout = SequenceLayout(layout)
    label_mode = LabelMode(label_mode)

    xs: list[torch.Tensor] = []
    ys: list[torch.Tensor] = []
    for i, record in enumerate(records):
        try:
            x, y = _encode_record(record, vocab, max_steps, layout, label_mode, strict)
        except EncodingError as e:
            raise RecordError(i, e) from e
        xs.append(x)
        ys.append(y)

    inputs = _stack(xs, input_shape(vocab, max_steps, layout), "Input")
    outputs = _stack(ys, (output_width(vocab, label_mode),), "Output")
    return inputs, outputs


def filter_encodable(
    records: Sequence[EventRecord],
    vocab: EventVocabulary,
    label_mode: LabelMode | str = LabelMode.NEXT_EVENT,
    strict: bool = True,
) -> tuple[list[EventRecord], list[RecordError]]:
    """Partition records into those that encode cleanly and the errors of the rest.

    Lets a caller skip bad records (and report them) instead of aborting the
    whole dataset build.
    """
    label_mode = LabelMode(label_mode)
    good: list[EventRecord] = []
    errors: list[RecordError] = []
    for i, record in enumerate(records):
        try:
            # max_steps=1 is enough to validate every token of the input.
            _encode_record(record, vocab, 1, SequenceLayout.STEPWISE, label_mode, strict)
        except EncodingError as e:
            errors.append(RecordError(i, e))
            continue
        good.append(record)
    return good, errors
