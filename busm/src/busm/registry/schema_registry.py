"""Read-only query interface over a CanonicalModel."""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from busm.config.logging import get_logger
from busm.errors import UnknownEntityError
from busm.ir.model import (
    CanonicalModel,
    Constraints,
    Entity,
    Enumeration,
    FieldSpec,
    ForeignKeyType,
    Relationship,
)
from busm.parsing.json_loader import RegistryDocumentLoader
from busm.parsing.reader import read_model

logger = get_logger(__name__)

RegistrySource = Union[str, Path, CanonicalModel, Dict[str, Any]]


class SchemaRegistry:
    """
    Queries over entities, fields, relationships and enumerations.

    Lookups of unknown entities or fields return None (or an empty list)
    instead of raising; use require_entity when absence is an error.
    """

    def __init__(self, model: CanonicalModel):
        self.model = model

    @classmethod
    def load(cls, source: RegistrySource, strict: bool = False) -> "SchemaRegistry":
        """
        Build a registry from a model file, a registry document or a parsed model.

        Args:
            source: Path to a .json/.mmd/.mermaid/.erd file, a decoded registry
                document, or a CanonicalModel
            strict: Strict parsing mode for file sources

        Returns:
            SchemaRegistry
        """
        if isinstance(source, CanonicalModel):
            model = source
        elif isinstance(source, dict):
            model = RegistryDocumentLoader(strict=strict).load(source)
        else:
            model = read_model(Path(source), strict=strict)
        logger.info(f"Registry loaded: {len(model.entities)} entities")
        return cls(model)

    # Entities

    def get_entity(self, name: str) -> Optional[Entity]:
        return self.model.entities.get(name)

    def get_all_entities(self) -> List[Entity]:
        return list(self.model.entities.values())

    def has_entity(self, name: str) -> bool:
        return name in self.model.entities

    def require_entity(self, name: str) -> Entity:
        """
        Get an entity, raising when it is absent.

        Raises:
            UnknownEntityError: If the registry has no such entity
        """
        entity = self.get_entity(name)
        if entity is None:
            raise UnknownEntityError(name)
        return entity

    def get_primary_key(self, name: str) -> Optional[str]:
        """Declared primary key, else the field flagged as one, else 'id' when present."""
        entity = self.get_entity(name)
        if entity is None:
            return None
        if entity.primary_key_field:
            return entity.primary_key_field
        for f in entity.fields.values():
            if f.is_primary_key:
                return f.name
        return "id" if "id" in entity.fields else None

    # Fields

    def get_fields(self, name: str) -> List[FieldSpec]:
        entity = self.get_entity(name)
        return list(entity.fields.values()) if entity else []

    def get_field(self, entity_name: str, path: str) -> Optional[FieldSpec]:
        """
        Resolve a possibly dotted field path.

        Every segment but the last must be a relationship name or a foreign key
        field of the current entity; traversal continues in the entity it
        points to. For example `("Contact", "accountId.accountName")` or
        `("Account", "contacts.email")`.

        Args:
            entity_name: Entity the path starts from
            path: Field name or dotted path

        Returns:
            FieldSpec, or None when any segment does not resolve
        """
        entity = self.get_entity(entity_name)
        if entity is None:
            return None
        *hops, last = path.split(".")
        for hop in hops:
            target = self._hop(entity, hop)
            if target is None:
                return None
            entity = target
        return entity.fields.get(last)

    def _hop(self, entity: Entity, segment: str) -> Optional[Entity]:
        rel = self.get_relationship(entity.name, segment)
        if rel is not None:
            return self.get_entity(rel.to_entity)
        f = entity.fields.get(segment)
        if f is not None and isinstance(f.type, ForeignKeyType):
            return self.get_entity(f.type.entity)
        return None

    def get_field_type(self, entity_name: str, path: str) -> Optional[str]:
        f = self.get_field(entity_name, path)
        return f.type_name if f else None

    def get_field_constraints(self, entity_name: str, path: str) -> Constraints:
        f = self.get_field(entity_name, path)
        return f.constraints if f else Constraints()

    def get_required_fields(self, name: str) -> List[str]:
        return [f.name for f in self.get_fields(name) if f.required]

    def get_unique_fields(self, name: str) -> List[str]:
        return [f.name for f in self.get_fields(name) if f.unique]

    def filter_fields_for_phase(self, name: str, phase: int) -> List[FieldSpec]:
        """
        Select the fields exposed in a rollout phase.

        Phase 1 keeps required fields, plus any field flagged `essential`.
        Phase 2 adds every field whose complexity is not `advanced`. Phase 3
        and beyond keep all fields.

        Raises:
            ValueError: If phase is below 1
        """
        if phase < 1:
            raise ValueError(f"phase must be at least 1, got {phase}")
        fields = self.get_fields(name)
        if phase == 1:
            return [f for f in fields if f.required or f.essential]
        if phase == 2:
            return [f for f in fields if f.required or f.essential or f.complexity != "advanced"]
        return fields

    # Relationships

    def get_relationships(self, name: str) -> List[Relationship]:
        """All relationships the entity takes part in, either direction."""
        return [r for r in self.model.relationships if r.involves(name)]

    def get_relationship(self, from_entity: str, name: str) -> Optional[Relationship]:
        return next(
            (r for r in self.model.relationships if r.from_entity == from_entity and r.name == name),
            None,
        )

    def are_related(self, first: str, second: str) -> bool:
        return any(
            {r.from_entity, r.to_entity} == {first, second}
            or (first == second and r.from_entity == r.to_entity == first)
            for r in self.model.relationships
        )

    def hierarchies(self) -> Dict[str, List[str]]:
        """
        Classify entities by how many parents they have.

        A parent is the "one" side of a one-to-many or many-to-one relationship.
        Entities with no parent are primary, with one parent secondary, and with
        more transaction entities.
        """
        parents: Dict[str, set] = {name: set() for name in self.model.entities}
        for r in self.model.relationships:
            if r.cardinality == "one-to-many":
                parents[r.to_entity].add(r.from_entity)
            elif r.cardinality == "many-to-one":
                parents[r.from_entity].add(r.to_entity)

        result: Dict[str, List[str]] = {"primary": [], "secondary": [], "transaction": []}
        for name, found in parents.items():
            found.discard(name)
            if not found:
                result["primary"].append(name)
            elif len(found) == 1:
                result["secondary"].append(name)
            else:
                result["transaction"].append(name)
        return result

    # Enumerations

    def get_enum(self, name: str) -> Optional[Enumeration]:
        return self.model.enumerations.get(name)

    def get_enum_values(self, name: str) -> List[str]:
        enum = self.get_enum(name)
        return list(enum.allowed_values) if enum else []

    # Module support

    def get_module_entities(
        self, owned: Iterable[str] = (), referenced: Iterable[str] = ()
    ) -> Dict[str, List[Entity]]:
        """Resolve a module's owned and referenced entity names, skipping unknown ones."""
        result: Dict[str, List[Entity]] = {"owned": [], "referenced": []}
        for key, names in (("owned", owned), ("referenced", referenced)):
            for name in names:
                entity = self.get_entity(name)
                if entity is None:
                    logger.warning(f"Module references unknown entity '{name}'")
                    continue
                result[key].append(entity)
        return result

    def export_entity(
        self, name: str, phase: int = 1, include_relationships: bool = True
    ) -> Optional[Dict[str, Any]]:
        """
        Export an entity in module configuration shape.

        Args:
            name: Entity name
            phase: Rollout phase used to filter fields
            include_relationships: Whether to list the entity's relationships

        Returns:
            Dictionary accepted by ModuleConfig, or None for an unknown entity
        """
        if not self.has_entity(name):
            return None
        exported: Dict[str, Any] = {
            "entity": {
                "name": name,
                "source": f"BUSM.{name}",
                "phase": phase,
                "fields": [
                    {
                        "name": f.name,
                        "type": f.type_name,
                        "required": f.required,
                        "unique": f.unique,
                        "constraints": f.constraints.model_dump(exclude_none=True),
                    }
                    for f in self.filter_fields_for_phase(name, phase)
                ],
            }
        }
        if include_relationships:
            exported["relationships"] = [
                r.model_dump() for r in self.get_relationships(name)
            ]
        return exported

    def get_summary(self) -> Dict[str, Any]:
        return {
            "version": self.model.version,
            "entity_count": len(self.model.entities),
            "entities": list(self.model.entities),
            "relationship_count": len(self.model.relationships),
            "enum_count": len(self.model.enumerations),
            "enums": list(self.model.enumerations),
        }

    def extract_subset(self, names: Iterable[str]) -> "SchemaRegistry":
        """Registry restricted to the named entities."""
        return SchemaRegistry(self.model.extract_subset(names))
