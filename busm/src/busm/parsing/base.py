"""Base class for notation parsers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from busm.config.logging import get_logger
from busm.errors import ParseError
from busm.ir.model import CanonicalModel
from busm.parsing.patterns import NotationPatterns

logger = get_logger(__name__)


class NotationParser(ABC):
    """
    Reduces one textual notation to a CanonicalModel.

    Strict mode turns any line that matches no construct into a ParseError;
    lenient mode logs and skips it.
    """

    notation: str = "base"

    def __init__(self, patterns: Optional[NotationPatterns] = None, strict: bool = False):
        self.patterns = patterns or NotationPatterns()
        self.strict = strict
        self.model: Optional[CanonicalModel] = None

    @abstractmethod
    def parse(self, text: str, source: Optional[str] = None) -> CanonicalModel:
        """
        Parse notation text.

        Args:
            text: Full notation source
            source: Optional description stored on the model

        Returns:
            CanonicalModel

        Raises:
            ParseError: On malformed input
        """
        pass

    @abstractmethod
    def render(self, model: CanonicalModel) -> str:
        """Serialize a model back into this notation."""
        pass

    def parse_file(self, path: Path) -> CanonicalModel:
        """
        Parse a notation file.

        Args:
            path: File to read (UTF-8)

        Returns:
            CanonicalModel

        Raises:
            ParseError: If the file is missing or malformed
        """
        path = Path(path)
        if not path.exists():
            raise ParseError(f"{self.notation} file not found: {path}")
        logger.info(f"Reading {self.notation} notation from {path}")
        return self.parse(path.read_text(encoding="utf-8"), source=str(path))

    def extract_subset(self, entity_names: Iterable[str]) -> CanonicalModel:
        """
        Filter the most recently parsed model to the named entities.

        Relationships survive only when both endpoints are named.

        Raises:
            ValueError: If nothing has been parsed yet
        """
        if self.model is None:
            raise ValueError("extract_subset called before parse")
        return self.model.extract_subset(entity_names)

    def _unrecognized(self, line_no: int, line: str) -> None:
        if self.strict:
            raise ParseError(f"unrecognized {self.notation} syntax: {line!r}", line=line_no)
        logger.debug(f"Skipping unrecognized line {line_no}: {line!r}")
