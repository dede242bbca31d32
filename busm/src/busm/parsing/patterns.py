"""Pattern tables used by the notation parsers.

Parsers receive a NotationPatterns instance at construction, so callers and
tests can substitute their own expressions and glyph tables.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern, Tuple

from busm.ir.model import DEFAULT_TYPE_ALIASES, Cardinality, PrimitiveName, RelationshipKind

_LEFT_GLYPH = r"\|\||\|o|o\||\}\||\}o|\|\{|o\{"
_RIGHT_GLYPH = r"\|\||o\||\|o|\|\{|o\{|\}\||\}o"

BLOCK_START = re.compile(r"^(?P<name>\w+)\s*\{\s*$")
BLOCK_END = re.compile(r"^\}\s*$")
BLOCK_FIELD = re.compile(
    r"^(?P<type>\w+)(?:\((?P<params>[\d\s,]*)\))?\s+(?P<name>\w+)"
    r"(?:\s+(?P<keys>(?:PK|FK|UK)(?:\s*,\s*(?:PK|FK|UK))*))?"
    r'\s*(?:"(?P<desc>[^"]*)")?\s*$'
)
BLOCK_RELATIONSHIP = re.compile(
    rf"^(?P<left>\w+)\s*(?P<lglyph>{_LEFT_GLYPH})(?P<line>--|\.\.)(?P<rglyph>{_RIGHT_GLYPH})\s*(?P<right>\w+)"
    r'(?:\s*:\s*(?P<label>"[^"]*"|.+))?\s*$'
)

GRAPH_HEADER = re.compile(r"^(?:graph|flowchart)(?:\s+(?:TD|TB|BT|LR|RL))?\s*;?$", re.IGNORECASE)
GRAPH_NODE = re.compile(r"(?P<id>\w+)\[(?P<label>[^\]]+)\]")
GRAPH_ENDPOINT = re.compile(r"^\s*(?:\|(?P<label>[^|]*)\|)?\s*(?P<id>\w+)")
GRAPH_CARDINALITY = re.compile(r"\b(?P<left>1|N|M|\*)\s*:\s*(?P<right>1|N|M|\*)\b")
GRAPH_ATTRIBUTE_KEYS = re.compile(r"\s+(?P<keys>(?:PK|FK|UK)(?:\s*,\s*(?:PK|FK|UK))*)\s*$")

COMMENT_PREFIX = "%%"
BLOCK_HEADER = "erDiagram"

# Checked in order; the first arrow found in a line wins
DEFAULT_ARROWS: Tuple[Tuple[str, RelationshipKind], ...] = (
    ("-.->", "dependency"),
    ("==>", "composition"),
    ("--|>", "inheritance"),
    ("-->", "association"),
)

DEFAULT_KIND_CARDINALITY: Dict[RelationshipKind, Cardinality] = {
    "association": "one-to-many",
    "composition": "one-to-many",
    "dependency": "many-to-one",
    "inheritance": "one-to-one",
}

VISIBILITY_PREFIXES: Dict[str, str] = {"+": "public", "-": "private", "#": "protected"}


def glyph_is_many(glyph: str) -> bool:
    """Crow's-foot glyphs ('{' or '}') mean zero-or-many / one-or-many."""
    return "{" in glyph or "}" in glyph


def glyph_is_optional(glyph: str) -> bool:
    """An 'o' terminator means the side may be absent."""
    return "o" in glyph


def cardinality_from_glyphs(left: str, right: str) -> Cardinality:
    """
    Infer cardinality from the terminators either side of a relationship line.

    Args:
        left: Glyph next to the first entity (e.g. '||')
        right: Glyph next to the second entity (e.g. 'o{')

    Returns:
        Cardinality read left to right
    """
    left_many = glyph_is_many(left)
    right_many = glyph_is_many(right)
    if left_many and right_many:
        return "many-to-many"
    if left_many:
        return "many-to-one"
    if right_many:
        return "one-to-many"
    return "one-to-one"


def cardinality_from_label(label: str) -> Optional[Cardinality]:
    """Read an inline '1:N' style token from an edge label."""
    match = GRAPH_CARDINALITY.search(label)
    if not match:
        return None
    left_many = match.group("left") != "1"
    right_many = match.group("right") != "1"
    if left_many and right_many:
        return "many-to-many"
    if left_many:
        return "many-to-one"
    if right_many:
        return "one-to-many"
    return "one-to-one"


CARDINALITY_TOKENS: Dict[Cardinality, str] = {
    "one-to-one": "1:1",
    "one-to-many": "1:N",
    "many-to-one": "N:1",
    "many-to-many": "N:M",
}


@dataclass
class NotationPatterns:
    """Expressions and lookup tables a parser is configured with."""

    block_start: Pattern[str] = BLOCK_START
    block_end: Pattern[str] = BLOCK_END
    block_field: Pattern[str] = BLOCK_FIELD
    block_relationship: Pattern[str] = BLOCK_RELATIONSHIP
    graph_header: Pattern[str] = GRAPH_HEADER
    graph_node: Pattern[str] = GRAPH_NODE
    graph_endpoint: Pattern[str] = GRAPH_ENDPOINT
    arrows: Tuple[Tuple[str, RelationshipKind], ...] = DEFAULT_ARROWS
    kind_cardinality: Dict[RelationshipKind, Cardinality] = field(
        default_factory=lambda: dict(DEFAULT_KIND_CARDINALITY)
    )
    type_aliases: Dict[str, PrimitiveName] = field(
        default_factory=lambda: dict(DEFAULT_TYPE_ALIASES)
    )
    comment_prefix: str = COMMENT_PREFIX
    fallback_type: PrimitiveName = "string"
