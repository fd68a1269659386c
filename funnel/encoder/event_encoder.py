"""Event-sequence encoding for the funnel classifier.

Transforms a pipe-delimited event sequence into fixed-shape one-hot tensors:

    "driver:apply|us:sms" → encode → (n_steps, F) → normalize → (max_steps, F)
                                                              or (max_steps * F,)

where F is the vocabulary's feature length. Truncation happens at the step
level before flattening, so a step vector is never cut in half.

Every function here is pure: fresh tensors out, inputs untouched, no logging.
"""

from __future__ import annotations

from enum import Enum

import torch

from .errors import MalformedTokenError, ShapeMismatchError, UnknownTokenError
from .vocabulary import TOKEN_DELIMITER, EventVocabulary


class SequenceLayout(str, Enum):
    """Tensor layout of an encoded sequence."""

    FLATTENED = "flattened"  # (max_steps * F,)
    STEPWISE = "stepwise"  # (max_steps, F)


def split_sequence(sequence: str) -> list[str]:
    """Split a ``|``-delimited sequence into stripped tokens.

    The empty string encodes to zero steps rather than one empty token.

    Raises:
        MalformedTokenError: If a token between delimiters is empty.
    """
    if not sequence.strip():
        return []
    tokens = [token.strip() for token in sequence.split(TOKEN_DELIMITER)]
    for position, token in enumerate(tokens):
        if not token:
            raise MalformedTokenError(token, position)
    return tokens


def one_hot(
    token: str,
    vocab: EventVocabulary,
    strict: bool = True,
    position: int | None = None,
) -> torch.Tensor:
    """One-hot vector of length ``vocab.feature_length`` for a single token.

    Args:
        token: ``entity:event`` token.
        vocab: Encoding vocabulary.
        strict: If False, unknown tokens become an all-zero vector instead
            of raising. Malformed tokens raise either way.
        position: Position in the enclosing sequence, for error messages.

    Returns:
        Float tensor of shape (feature_length,).
    """
    vector = torch.zeros(vocab.feature_length, dtype=torch.float32)
    try:
        vector[vocab.token_index(token, position)] = 1.0
    except UnknownTokenError:
        if strict:
            raise
    return vector


def encode(
    sequence: str,
    vocab: EventVocabulary,
    strict: bool = True,
) -> torch.Tensor:
    """Encode an event sequence into per-step one-hot vectors.

    Args:
        sequence: Pipe-delimited tokens, e.g. ``"driver:apply|us:wait"``.
        vocab: Encoding vocabulary.
        strict: Raise on unknown tokens (True) or zero-fill them (False).

    Returns:
        Float tensor of shape (n_steps, feature_length), rows in input order.
    """
    tokens = split_sequence(sequence)
    steps = torch.zeros(len(tokens), vocab.feature_length, dtype=torch.float32)
    for position, token in enumerate(tokens):
        try:
            steps[position, vocab.token_index(token, position)] = 1.0
        except UnknownTokenError:
            if strict:
                raise
    return steps


def normalize(
    steps: torch.Tensor,
    max_steps: int,
    layout: SequenceLayout | str = SequenceLayout.FLATTENED,
    feature_length: int | None = None,
) -> torch.Tensor:
    """Pad or truncate encoded steps to exactly ``max_steps``.

    Longer sequences keep their first ``max_steps`` steps (trailing events
    are dropped). Shorter ones are extended with all-zero steps.

    Args:
        steps: (n_steps, F) tensor from :func:`encode`.
        max_steps: Number of steps in the output.
        layout: ``stepwise`` keeps (max_steps, F); ``flattened`` returns
            (max_steps * F,).
        feature_length: Expected F. Required only when ``steps`` carries no
            column information.

    Raises:
        ValueError: If ``max_steps`` is not positive.
        ShapeMismatchError: If ``steps`` is not 2-D or its width disagrees
            with ``feature_length``.
    """
    layout = SequenceLayout(layout)
    if max_steps < 1:
        raise ValueError(f"max_steps must be positive, got {max_steps}")

    if steps.dim() != 2:
        if steps.numel() == 0 and feature_length is not None:
            steps = steps.reshape(0, feature_length)
        else:
            raise ShapeMismatchError(
                f"Expected (n_steps, feature_length) tensor, got shape {tuple(steps.shape)}"
            )
    width = steps.shape[1]
    if feature_length is not None and width != feature_length:
        raise ShapeMismatchError(
            f"Step width {width} does not match feature length {feature_length}"
        )

    out = torch.zeros(max_steps, width, dtype=torch.float32)
    kept = steps[:max_steps]
    out[: kept.shape[0]] = kept

    if layout is SequenceLayout.FLATTENED:
        return out.reshape(max_steps * width)
    return out


def encode_padded(
    sequence: str,
    vocab: EventVocabulary,
    max_steps: int,
    layout: SequenceLayout | str = SequenceLayout.FLATTENED,
    strict: bool = True,
) -> torch.Tensor:
    """Encode then normalize a single sequence."""
    return normalize(
        encode(sequence, vocab, strict=strict),
        max_steps,
        layout,
        feature_length=vocab.feature_length,
    )


def decode_prediction(scores: torch.Tensor, vocab: EventVocabulary) -> str:
    """Decode the argmax of a score vector to an ``entity:event`` token.

    Args:
        scores: (feature_length,) or (1, feature_length) logits/probabilities.

    Raises:
        ShapeMismatchError: If the score vector does not span the vocabulary.
    """
    flat = scores.detach().reshape(-1)
    if flat.numel() != vocab.feature_length:
        raise ShapeMismatchError(
            f"Expected {vocab.feature_length} scores, got {flat.numel()}"
        )
    return vocab.decode_token(int(flat.argmax().item()))
