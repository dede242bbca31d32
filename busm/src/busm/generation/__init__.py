"""Sample data generation."""

from .mock_generator import GenerationOptions, LabelHeuristic, SampleGenerator
from .providers import FakerProvider, ProviderRegistry

__all__ = [
    "GenerationOptions",
    "LabelHeuristic",
    "SampleGenerator",
    "FakerProvider",
    "ProviderRegistry",
]
