"""Event Encoder - Maps entity:event sequences to one-hot tensors and back."""

from .errors import (
    EncodingError,
    InvalidClassIndexError,
    MalformedTokenError,
    ShapeMismatchError,
    UnknownTokenError,
)
from .event_encoder import (
    SequenceLayout,
    decode_prediction,
    encode,
    encode_padded,
    normalize,
    one_hot,
    split_sequence,
)
from .vocabulary import (
    DEFAULT_ENTITIES,
    DEFAULT_EVENTS,
    PART_DELIMITER,
    TOKEN_DELIMITER,
    EventVocabulary,
    default_vocabulary,
    split_token,
)

__all__ = [
    "EventVocabulary",
    "default_vocabulary",
    "split_token",
    "DEFAULT_ENTITIES",
    "DEFAULT_EVENTS",
    "TOKEN_DELIMITER",
    "PART_DELIMITER",
    "SequenceLayout",
    "split_sequence",
    "one_hot",
    "encode",
    "normalize",
    "encode_padded",
    "decode_prediction",
    "EncodingError",
    "MalformedTokenError",
    "UnknownTokenError",
    "InvalidClassIndexError",
    "ShapeMismatchError",
]
