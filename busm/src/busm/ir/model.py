"""Canonical entity-relationship model shared by every notation."""

import re
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from busm.errors import ParseError

PrimitiveName = Literal[
    "string",
    "text",
    "integer",
    "decimal",
    "boolean",
    "date",
    "datetime",
    "uuid",
    "email",
    "phone",
]

Cardinality = Literal["one-to-one", "one-to-many", "many-to-one", "many-to-many"]

RelationshipKind = Literal["association", "dependency", "composition", "inheritance"]

PRIMITIVE_NAMES = (
    "string",
    "text",
    "integer",
    "decimal",
    "boolean",
    "date",
    "datetime",
    "uuid",
    "email",
    "phone",
)

# Source spellings accepted for each primitive
DEFAULT_TYPE_ALIASES: Dict[str, PrimitiveName] = {
    "str": "string",
    "varchar": "string",
    "char": "string",
    "int": "integer",
    "bigint": "integer",
    "smallint": "integer",
    "serial": "integer",
    "number": "decimal",
    "float": "decimal",
    "double": "decimal",
    "numeric": "decimal",
    "money": "decimal",
    "bool": "boolean",
    "timestamp": "datetime",
    "timestamptz": "datetime",
    "guid": "uuid",
}


def normalize_primitive(
    token: str, aliases: Optional[Dict[str, PrimitiveName]] = None
) -> Optional[PrimitiveName]:
    """
    Map a type token from a notation source to a primitive name.

    Args:
        token: Type token as written (case-insensitive)
        aliases: Alias table; defaults to DEFAULT_TYPE_ALIASES

    Returns:
        Primitive name, or None when the token is not recognised
    """
    lowered = token.strip().lower()
    if lowered in PRIMITIVE_NAMES:
        return lowered  # type: ignore[return-value]
    table = DEFAULT_TYPE_ALIASES if aliases is None else aliases
    return table.get(lowered)


class PrimitiveType(BaseModel):
    """A scalar value type."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["primitive"] = "primitive"
    name: PrimitiveName


class EnumType(BaseModel):
    """A value drawn from a named Enumeration."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["enum"] = "enum"
    enum: str


class ForeignKeyType(BaseModel):
    """A reference to another entity's primary key."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["foreign_key"] = "foreign_key"
    entity: str
    field: Optional[str] = None
    base: PrimitiveName = "integer"


FieldType = Annotated[
    Union[PrimitiveType, EnumType, ForeignKeyType], Field(discriminator="kind")
]


class Constraints(BaseModel):
    """Declared value constraints for a field."""

    model_config = ConfigDict(frozen=True)

    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid pattern {v!r}: {e}") from e
        return v

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


class FieldSpec(BaseModel):
    """A field of an entity."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: FieldType
    required: bool = False
    unique: bool = False
    is_primary_key: bool = False
    constraints: Constraints = Field(default_factory=Constraints)
    default: Any = None
    description: str = ""
    phase: Optional[int] = None
    essential: bool = False
    complexity: Optional[str] = None
    visibility: Literal["public", "private", "protected"] = "public"

    @model_validator(mode="after")
    def _primary_key_is_required(self) -> "FieldSpec":
        if self.is_primary_key and not self.required:
            raise ValueError(f"primary key field '{self.name}' must be required")
        return self

    @property
    def is_foreign_key(self) -> bool:
        return isinstance(self.type, ForeignKeyType)

    @property
    def type_name(self) -> str:
        """Flat type name: the primitive, 'enum', or the foreign key's base type."""
        if isinstance(self.type, PrimitiveType):
            return self.type.name
        if isinstance(self.type, EnumType):
            return "enum"
        return self.type.base


class Relationship(BaseModel):
    """A directed relationship between two entities."""

    model_config = ConfigDict(frozen=True)

    name: str
    from_entity: str
    to_entity: str
    cardinality: Cardinality = "one-to-many"
    foreign_key_field: Optional[str] = None
    kind: RelationshipKind = "association"
    label: str = ""

    def involves(self, entity: str) -> bool:
        return entity in (self.from_entity, self.to_entity)


class Enumeration(BaseModel):
    """A named, ordered set of allowed values."""

    model_config = ConfigDict(frozen=True)

    name: str
    allowed_values: List[str] = Field(default_factory=list)

    @field_validator("allowed_values")
    @classmethod
    def _dedupe(cls, values: List[str]) -> List[str]:
        return list(dict.fromkeys(values))


class Entity(BaseModel):
    """An entity with its ordered fields and outgoing relationships."""

    model_config = ConfigDict(frozen=True)

    name: str
    table_name: str
    primary_key_field: Optional[str] = None
    fields: Dict[str, FieldSpec] = Field(default_factory=dict)
    relationships: List[Relationship] = Field(default_factory=list)


class CanonicalModel(BaseModel):
    """Notation-independent set of entities, relationships and enumerations."""

    model_config = ConfigDict(frozen=True)

    entities: Dict[str, Entity] = Field(default_factory=dict)
    relationships: List[Relationship] = Field(default_factory=list)
    enumerations: Dict[str, Enumeration] = Field(default_factory=dict)
    source: Optional[str] = None
    version: str = "1.0.0"

    def extract_subset(self, entity_names: Iterable[str]) -> "CanonicalModel":
        """
        Restrict the model to the named entities.

        Only relationships whose both endpoints are named survive; dependent
        entities are not pulled in.

        Args:
            entity_names: Names of entities to keep

        Returns:
            New CanonicalModel containing the subset
        """
        wanted = set(entity_names)
        relationships = [
            r for r in self.relationships if r.from_entity in wanted and r.to_entity in wanted
        ]
        entities = [
            entity.model_copy(
                update={
                    "relationships": [r for r in entity.relationships if r.to_entity in wanted]
                }
            )
            for name, entity in self.entities.items()
            if name in wanted
        ]
        used_enums = {
            f.type.enum
            for e in entities
            for f in e.fields.values()
            if isinstance(f.type, EnumType)
        }
        enumerations = {n: e for n, e in self.enumerations.items() if n in used_enums}
        return build_model(
            entities,
            relationships,
            enumerations.values(),
            source=self.source,
            version=self.version,
            check_foreign_keys=False,
        )


def build_model(
    entities: Iterable[Entity],
    relationships: Iterable[Relationship],
    enumerations: Iterable[Enumeration] = (),
    source: Optional[str] = None,
    version: str = "1.0.0",
    check_foreign_keys: bool = True,
) -> CanonicalModel:
    """
    Canonicalize parsed pieces into a CanonicalModel.

    Every relationship endpoint and enum reference must resolve. Each
    entity's relationship list is rebuilt from the outgoing relationships.

    Args:
        entities: Parsed entities (relationship lists are replaced)
        relationships: All relationships
        enumerations: Enumerations referenced by enum fields
        source: Optional source description (file path or notation name)
        version: Model version string
        check_foreign_keys: Require foreign key targets to resolve

    Returns:
        CanonicalModel

    Raises:
        ParseError: If a reference does not resolve
    """
    entity_list = list(entities)
    rel_list = list(relationships)
    enum_map = {e.name: e for e in enumerations}

    by_name: Dict[str, Entity] = {}
    for entity in entity_list:
        if entity.name in by_name:
            raise ParseError(f"entity '{entity.name}' is declared more than once")
        by_name[entity.name] = entity

    for rel in rel_list:
        for endpoint in (rel.from_entity, rel.to_entity):
            if endpoint not in by_name:
                raise ParseError(
                    f"relationship '{rel.name}' references undeclared entity '{endpoint}'"
                )

    for entity in entity_list:
        for f in entity.fields.values():
            if isinstance(f.type, EnumType) and f.type.enum not in enum_map:
                raise ParseError(
                    f"field '{entity.name}.{f.name}' references unknown enumeration '{f.type.enum}'"
                )
            if check_foreign_keys and isinstance(f.type, ForeignKeyType):
                if f.type.entity not in by_name:
                    raise ParseError(
                        f"foreign key '{entity.name}.{f.name}' references undeclared entity '{f.type.entity}'"
                    )

    final = {
        name: entity.model_copy(
            update={"relationships": [r for r in rel_list if r.from_entity == name]}
        )
        for name, entity in by_name.items()
    }
    return CanonicalModel(
        entities=final,
        relationships=rel_list,
        enumerations=enum_map,
        source=source,
        version=version,
    )
