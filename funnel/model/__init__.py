"""Classifiers - Hire outcome and next-event heads over encoded sequences."""

from .classifier import HireClassifier, NextEventClassifier, build_model

__all__ = [
    "HireClassifier",
    "NextEventClassifier",
    "build_model",
]
