"""Checkpoint persistence helpers."""

from .checkpoint import load_model, load_or_create_model, read_metadata, save_model

__all__ = [
    "save_model",
    "load_model",
    "load_or_create_model",
    "read_metadata",
]
