"""Plausible sample records for registry entities."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from faker import Faker

from busm.config.logging import get_logger
from busm.config.settings import get_settings
from busm.ir.model import EnumType, FieldSpec, ForeignKeyType
from busm.registry.schema_registry import SchemaRegistry

from .providers import ProviderRegistry

logger = get_logger(__name__)


def _bounds(low, high, default_low, span):
    """
    Fill in a missing numeric bound from the one that is declared.

    With only `min` the range runs `span` above it; with only `max` it ends
    there, starting at `default_low` when that still lies below.
    """
    if low is None and high is None:
        return default_low, default_low + span
    if low is None:
        low = default_low if high >= default_low else high - span
    elif high is None:
        high = max(low, default_low) + span
    return min(low, high), max(low, high)


@dataclass(frozen=True)
class LabelHeuristic:
    """Use `provider` for string fields whose lowercased name contains any substring."""

    substrings: Tuple[str, ...]
    provider: str


# First match wins
DEFAULT_HEURISTICS: Tuple[LabelHeuristic, ...] = (
    LabelHeuristic(("email",), "faker.email"),
    LabelHeuristic(("phone", "mobile"), "faker.phone_number"),
    LabelHeuristic(("firstname",), "faker.first_name"),
    LabelHeuristic(("lastname",), "faker.last_name"),
    LabelHeuristic(("company",), "faker.company"),
    LabelHeuristic(("name",), "faker.name"),
    LabelHeuristic(("address", "street"), "faker.street_address"),
    LabelHeuristic(("city",), "faker.city"),
    LabelHeuristic(("state",), "faker.state_abbr"),
    LabelHeuristic(("zip", "postal"), "faker.postcode"),
)

DEFAULT_RELATED_COUNT = 3


@dataclass
class GenerationOptions:
    """What generate_with_relationships fans out into."""

    # Relationship names to follow; None follows every one-to-many relationship
    include_related: Optional[List[str]] = None
    related_counts: Dict[str, int] = field(default_factory=dict)
    default_related_count: int = DEFAULT_RELATED_COUNT


class SampleGenerator:
    """
    Generates records that satisfy an entity's required fields.

    Foreign keys are filled from `context`, a mapping of parent entity name to
    an already generated parent record (or directly to its key value).
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        heuristics: Optional[Sequence[LabelHeuristic]] = None,
        providers: Optional[ProviderRegistry] = None,
        seed: Optional[int] = None,
    ):
        if seed is None:
            seed = get_settings().seed
        self.registry = registry
        self.heuristics = tuple(DEFAULT_HEURISTICS if heuristics is None else heuristics)
        self.rng = np.random.default_rng(seed)
        if providers is None:
            fk = Faker()
            fk.seed_instance(seed)
            providers = ProviderRegistry(fk)
        self.providers = providers

    def generate_mock(
        self,
        entity_name: str,
        overrides: Optional[Mapping[str, Any]] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Generate one record.

        Args:
            entity_name: Entity to generate
            overrides: Values used as-is
            context: Parent records keyed by entity name, used for foreign keys

        Returns:
            Record keyed by field name, in field declaration order

        Raises:
            UnknownEntityError: If the entity is not in the registry
        """
        entity = self.registry.require_entity(entity_name)
        overrides = dict(overrides or {})
        context = context or {}
        record: Dict[str, Any] = {}

        for spec in entity.fields.values():
            if spec.name in overrides:
                record[spec.name] = overrides[spec.name]
                continue
            parent_key = self._from_context(spec, context)
            if parent_key is not None:
                record[spec.name] = parent_key
            elif spec.required:
                record[spec.name] = self._value(spec)
            elif spec.default is not None:
                record[spec.name] = spec.default

        # Overrides for names the entity does not declare are kept so validation can flag them
        for name, value in overrides.items():
            record.setdefault(name, value)
        return record

    def generate_with_relationships(
        self,
        entity_name: str,
        count: int = 1,
        options: Optional[GenerationOptions] = None,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Generate parent records plus related children for each one.

        Every one-to-many relationship out of the entity (or only those named
        in options.include_related) yields related_counts[name] children per
        parent, each carrying the parent's primary key as its foreign key.

        Args:
            entity_name: Parent entity
            count: Number of parent records
            options: Relationship selection and per-relationship counts

        Returns:
            Records keyed by entity name, parents first
        """
        options = options or GenerationOptions()
        parent_pk = self.registry.get_primary_key(entity_name)
        relationships = [
            r
            for r in self.registry.require_entity(entity_name).relationships
            if r.cardinality == "one-to-many"
            and (options.include_related is None or r.name in options.include_related)
        ]
        if options.include_related:
            missing = set(options.include_related) - {r.name for r in relationships}
            for name in sorted(missing):
                logger.warning(f"{entity_name} has no one-to-many relationship named '{name}'")

        result: Dict[str, List[Dict[str, Any]]] = {entity_name: []}
        for _ in range(count):
            parent = self.generate_mock(entity_name)
            result[entity_name].append(parent)
            for rel in relationships:
                n = options.related_counts.get(rel.name, options.default_related_count)
                overrides = {}
                if rel.foreign_key_field and parent_pk:
                    overrides[rel.foreign_key_field] = parent[parent_pk]
                children = result.setdefault(rel.to_entity, [])
                for _ in range(n):
                    children.append(
                        self.generate_mock(rel.to_entity, overrides, context={entity_name: parent})
                    )
        logger.info(
            "Generated " + ", ".join(f"{len(v)} {k}" for k, v in result.items())
        )
        return result

    def _from_context(self, spec: FieldSpec, context: Mapping[str, Any]) -> Any:
        if not isinstance(spec.type, ForeignKeyType) or spec.type.entity not in context:
            return None
        parent = context[spec.type.entity]
        if not isinstance(parent, Mapping):
            return parent
        key = spec.type.field or self.registry.get_primary_key(spec.type.entity)
        return parent.get(key) if key else None

    def _heuristic(self, name: str) -> Optional[str]:
        lowered = name.lower().replace("_", "")
        for h in self.heuristics:
            if any(s in lowered for s in h.substrings):
                return h.provider
        return None

    def _value(self, spec: FieldSpec) -> Any:
        """Type-directed placeholder for a field."""
        if isinstance(spec.type, EnumType):
            values = self.registry.get_enum_values(spec.type.enum)
            return values[0] if values else None

        primitive = spec.type_name
        c = spec.constraints
        if primitive == "uuid":
            return self.providers.one("faker.uuid4")
        if primitive == "integer":
            if spec.is_primary_key or spec.is_foreign_key:
                return int(self.rng.integers(1, 1_000_000))
            low, high = _bounds(
                math.ceil(c.min) if c.min is not None else None,
                math.floor(c.max) if c.max is not None else None,
                default_low=1,
                span=999,
            )
            return int(self.rng.integers(low, high + 1))
        if primitive == "decimal":
            low, high = _bounds(c.min, c.max, default_low=0.0, span=10000.0)
            return round(float(self.rng.uniform(low, high)), 2)
        if primitive == "boolean":
            return bool(self.rng.integers(0, 2))
        if primitive in ("date", "datetime"):
            moment = datetime.now() + timedelta(days=int(self.rng.integers(-30, 31)))
            return moment.date().isoformat() if primitive == "date" else moment.isoformat(timespec="seconds")
        if primitive == "email":
            return self.providers.one("faker.email")

        provider = "faker.phone_number" if primitive == "phone" else self._heuristic(spec.name)
        if provider is not None:
            value = str(self.providers.one(provider))
        elif primitive == "text":
            value = str(self.providers.one("faker.sentence"))
        else:
            value = f"Sample {spec.name}"
        if c.max_length is not None:
            value = value[: c.max_length]
        return value
