"""Single entry point that picks a parser by file extension or content."""

from pathlib import Path
from typing import Iterable, Optional

from busm.errors import ParseError
from busm.ir.model import CanonicalModel
from busm.parsing.base import NotationParser
from busm.parsing.block_parser import BlockNotationParser
from busm.parsing.graph_parser import GraphNotationParser
from busm.parsing.json_loader import RegistryDocumentLoader
from busm.parsing.patterns import BLOCK_HEADER, COMMENT_PREFIX, GRAPH_HEADER

SUPPORTED_EXTENSIONS = (".mmd", ".mermaid", ".erd", ".json")


def sniff_notation(text: str) -> str:
    """
    Decide which notation a diagram source is written in.

    Returns:
        "block" or "graph"

    Raises:
        ParseError: If the first significant line names neither notation
    """
    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue
        if line == BLOCK_HEADER:
            return "block"
        if GRAPH_HEADER.match(line):
            return "graph"
        raise ParseError(f"expected '{BLOCK_HEADER}' or a graph header, got {line!r}", line=line_no)
    raise ParseError("diagram source is empty")


def make_parser(notation: str, strict: bool = False) -> NotationParser:
    if notation == "block":
        return BlockNotationParser(strict=strict)
    if notation == "graph":
        return GraphNotationParser(strict=strict)
    raise ParseError(f"unsupported notation '{notation}'")


def read_content(text: str, fmt: str = "mermaid", strict: bool = False) -> CanonicalModel:
    """
    Parse source text in a named format.

    Args:
        text: Source text
        fmt: "mermaid" (sniffed), "block", "graph" or "json"
        strict: Strict parsing mode

    Returns:
        CanonicalModel
    """
    if fmt == "json":
        return RegistryDocumentLoader(strict=strict).load_text(text)
    if fmt == "mermaid":
        fmt = sniff_notation(text)
    return make_parser(fmt, strict=strict).parse(text)


def _parser_for(path: Path, strict: bool) -> Optional[NotationParser]:
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ParseError(
            f"unsupported file format '{ext}'; supported: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    if not path.exists():
        raise ParseError(f"model file not found: {path}")
    if ext == ".json":
        return None
    if ext == ".erd":
        return BlockNotationParser(strict=strict)
    return make_parser(sniff_notation(path.read_text(encoding="utf-8")), strict=strict)


def read_model(path: Path, strict: bool = False) -> CanonicalModel:
    """
    Read a model file, dispatching on its extension.

    Args:
        path: .mmd/.mermaid (sniffed), .erd (block) or .json (registry document)
        strict: Strict parsing mode

    Returns:
        CanonicalModel

    Raises:
        ParseError: For unsupported extensions, missing files or malformed sources
    """
    path = Path(path)
    parser = _parser_for(path, strict)
    if parser is None:
        return RegistryDocumentLoader(strict=strict).load_file(path)
    return parser.parse_file(path)


def extract_subset(path: Path, entity_names: Iterable[str], strict: bool = False) -> CanonicalModel:
    """Read a model file and keep only the named entities."""
    return read_model(path, strict=strict).extract_subset(entity_names)
