"""Gap records: omissions discovered while processing a model or rule set."""

from dataclasses import asdict, dataclass
from typing import Dict, Iterator, List, Literal, Optional

from busm.config.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Gap:
    """A missing rule, state or definition that processing had to assume around."""

    category: str  # e.g., "MISSING_RULES", "MISSING_STATE"
    entity: str
    expected: str
    assumption: str
    impact: Literal["LOW", "MEDIUM", "HIGH"] = "MEDIUM"
    field: Optional[str] = None
    state: Optional[str] = None

    @property
    def location(self) -> str:
        suffix = self.field or self.state
        return f"{self.entity}.{suffix}" if suffix else self.entity


class GapLog:
    """Collects gaps in discovery order, one record per (category, location)."""

    def __init__(self):
        self._gaps: List[Gap] = []
        self._seen = set()

    def log(self, gap: Gap) -> None:
        key = (gap.category, gap.location)
        if key in self._seen:
            return
        self._seen.add(key)
        self._gaps.append(gap)
        logger.warning(f"Gap {gap.category} at {gap.location}: assuming {gap.assumption}")

    def for_entity(self, entity: str) -> List[Gap]:
        return [g for g in self._gaps if g.entity == entity]

    def by_category(self) -> Dict[str, List[Gap]]:
        grouped: Dict[str, List[Gap]] = {}
        for gap in self._gaps:
            grouped.setdefault(gap.category, []).append(gap)
        return grouped

    def to_list(self) -> List[dict]:
        return [asdict(g) for g in self._gaps]

    def clear(self) -> None:
        self._gaps.clear()
        self._seen.clear()

    def __iter__(self) -> Iterator[Gap]:
        return iter(self._gaps)

    def __len__(self) -> int:
        return len(self._gaps)
