"""Notation parsers that reduce domain-model sources to a CanonicalModel."""

from .block_parser import BlockNotationParser
from .graph_parser import GraphNotationParser
from .json_loader import RegistryDocumentLoader, to_registry_document
from .patterns import NotationPatterns
from .reader import extract_subset, read_content, read_model


def render_block_notation(model) -> str:
    """Serialize a CanonicalModel as block (erDiagram) notation."""
    return BlockNotationParser().render(model)


def render_graph_notation(model) -> str:
    """Serialize a CanonicalModel as graph notation."""
    return GraphNotationParser().render(model)


__all__ = [
    "BlockNotationParser",
    "GraphNotationParser",
    "RegistryDocumentLoader",
    "NotationPatterns",
    "read_model",
    "read_content",
    "extract_subset",
    "render_block_notation",
    "render_graph_notation",
    "to_registry_document",
]
