"""funnel - hiring-funnel event sequence encoding and prediction."""

from .config import FunnelConfig
from .data.preprocess import LabelMode, preprocess
from .encoder.event_encoder import SequenceLayout, encode, encode_padded, normalize
from .encoder.vocabulary import EventVocabulary, default_vocabulary

__version__ = "0.1.0"

__all__ = [
    "FunnelConfig",
    "EventVocabulary",
    "default_vocabulary",
    "SequenceLayout",
    "LabelMode",
    "encode",
    "normalize",
    "encode_padded",
    "preprocess",
]
