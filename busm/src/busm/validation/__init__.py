"""Record validation."""

from .validator import ValidationResult, Validator

__all__ = ["ValidationResult", "Validator"]
