"""Calibration Critic - ECE, MCE and Brier scoring of hire probabilities."""

from .calibration import (
    CalibrationBucket,
    CalibrationReport,
    calibration_report,
    compute_brier,
    compute_ece,
    compute_mce,
)

__all__ = [
    "compute_ece",
    "compute_mce",
    "compute_brier",
    "calibration_report",
    "CalibrationBucket",
    "CalibrationReport",
]
