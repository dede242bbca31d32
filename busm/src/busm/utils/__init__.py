"""Utility functions for common operations."""

from .ir_io import load_model_from_json, save_model_to_json
from .naming import to_snake_case, to_camel_case, pluralize

__all__ = [
    "load_model_from_json",
    "save_model_to_json",
    "to_snake_case",
    "to_camel_case",
    "pluralize",
]
