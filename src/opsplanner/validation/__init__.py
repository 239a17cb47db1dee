"""Validation module for verifying schedule correctness."""

from opsplanner.validation.validator import (
    Diagnostic,
    DiagnosticKind,
    ScheduleValidator,
    Severity,
    ValidationResult,
)

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "ScheduleValidator",
    "Severity",
    "ValidationResult",
]
