"""Error taxonomy for event encoding and decoding.

Encoding errors are recoverable at the caller's discretion (skip the
record, abort the dataset build). Shape mismatches are never expected and
indicate a bug in the encoder itself.
"""

from __future__ import annotations


class EncodingError(ValueError):
    """Base class for failures turning event tokens into vectors."""


class MalformedTokenError(EncodingError):
    """A token is not of the form ``entity:event``.

    Args:
        token: The offending token text.
        position: 0-based position of the token in its sequence, if known.
    """

    def __init__(self, token: str, position: int | None = None) -> None:
        self.token = token
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(
            f"Malformed event token {token!r}{where}: expected 'entity:event'"
        )


class UnknownTokenError(EncodingError):
    """A token names an entity or event missing from the vocabulary.

    Args:
        token: The offending token text.
        position: 0-based position of the token in its sequence, if known.
        part: Which half was not found ("entity" or "event").
    """

    def __init__(
        self,
        token: str,
        position: int | None = None,
        part: str = "entity",
    ) -> None:
        self.token = token
        self.position = position
        self.part = part
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Unknown {part} in event token {token!r}{where}")


class InvalidClassIndexError(IndexError):
    """A class index falls outside ``[0, feature_length)``."""

    def __init__(self, index: int, feature_length: int) -> None:
        self.index = index
        self.feature_length = feature_length
        super().__init__(
            f"Class index {index} out of range [0, {feature_length})"
        )


class ShapeMismatchError(RuntimeError):
    """Encoded rows disagree in shape. Internal invariant violation."""
