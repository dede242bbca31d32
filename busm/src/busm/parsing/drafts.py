"""Mutable parse-time drafts and their canonicalization.

Both notation parsers collect drafts while scanning, then hand them to
`finalize`, which resolves foreign keys against declared relationships and
produces the frozen CanonicalModel.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from busm.config.logging import get_logger
from busm.errors import ParseError
from busm.ir.model import (
    Cardinality,
    CanonicalModel,
    Constraints,
    Entity,
    FieldSpec,
    ForeignKeyType,
    PrimitiveName,
    PrimitiveType,
    Relationship,
    RelationshipKind,
    build_model,
)
from busm.utils.naming import pluralize, to_camel_case, to_snake_case

logger = get_logger(__name__)


@dataclass
class FieldDraft:
    name: str
    primitive: PrimitiveName
    line: Optional[int] = None
    markers: Set[str] = field(default_factory=set)
    description: str = ""
    visibility: str = "public"
    max_length: Optional[int] = None
    required: bool = False
    # Filled in by foreign key resolution
    references: Optional[str] = None


@dataclass
class EntityDraft:
    name: str
    line: Optional[int] = None
    fields: Dict[str, FieldDraft] = field(default_factory=dict)

    @property
    def primary_key(self) -> Optional[str]:
        for f in self.fields.values():
            if "PK" in f.markers:
                return f.name
        return None


@dataclass
class RelationshipDraft:
    from_entity: str
    to_entity: str
    cardinality: Cardinality
    line: Optional[int] = None
    kind: RelationshipKind = "association"
    label: str = ""
    # Whether each side's terminator is "exactly one" (None when the notation is silent)
    from_mandatory: Optional[bool] = None
    to_mandatory: Optional[bool] = None
    foreign_key_field: Optional[str] = None


def _norm(name: str) -> str:
    return to_snake_case(name).replace("_", "")


def _names_reference(field_name: str, parent: EntityDraft) -> bool:
    """Whether a field name looks like a reference to the parent's key."""
    candidates = {_norm(parent.name) + "id"}
    pk = parent.primary_key
    if pk:
        candidates.add(_norm(pk))
        candidates.add(_norm(parent.name) + _norm(pk))
    return _norm(field_name) in candidates


def _find_fk_field(child: EntityDraft, parent: EntityDraft) -> Optional[FieldDraft]:
    """Locate the child field that carries the parent's key, FK-marked fields first."""
    own_pk = child.primary_key
    marked = [f for f in child.fields.values() if "FK" in f.markers]
    for f in marked:
        if f.references in (None, parent.name) and _names_reference(f.name, parent):
            return f
    for f in child.fields.values():
        if f.name == own_pk or f.references not in (None, parent.name):
            continue
        if _names_reference(f.name, parent):
            return f
    return None


def _child_and_parent(
    rel: RelationshipDraft, entities: Dict[str, EntityDraft]
) -> Optional[Tuple[EntityDraft, EntityDraft, bool]]:
    """Return (child, parent, parent_is_from_side) or None for many-to-many."""
    src, dst = entities[rel.from_entity], entities[rel.to_entity]
    if rel.cardinality == "one-to-many":
        return dst, src, True
    if rel.cardinality == "many-to-one":
        return src, dst, False
    if rel.cardinality == "one-to-one":
        # Whichever side holds a reference to the other is the child
        if _find_fk_field(dst, src) is not None:
            return dst, src, True
        if _find_fk_field(src, dst) is not None:
            return src, dst, False
    return None


def _relationship_name(rel: RelationshipDraft, taken: Set[str]) -> str:
    base = to_camel_case(rel.to_entity)
    if rel.cardinality in ("one-to-many", "many-to-many"):
        base = pluralize(base)
    name, n = base, 2
    while name in taken:
        name = f"{base}{n}"
        n += 1
    taken.add(name)
    return name


def check_endpoints(relationships: List[RelationshipDraft], declared: Set[str]) -> None:
    """
    Fail on the first relationship whose endpoint was never declared.

    Raises:
        ParseError: Carrying the relationship's source line
    """
    for rel in relationships:
        for endpoint in (rel.from_entity, rel.to_entity):
            if endpoint not in declared:
                raise ParseError(
                    f"relationship endpoint '{endpoint}' is not a declared entity",
                    line=rel.line,
                )


def link_foreign_keys(
    entities: Dict[str, EntityDraft],
    relationships: List[RelationshipDraft],
    strict: bool = False,
) -> None:
    """
    Resolve foreign key fields in place.

    A relationship claims the child field that references the parent's key;
    remaining FK-marked fields are matched against entity names. An FK marker
    that resolves nowhere is a ParseError in strict mode, a warning otherwise.
    """
    for rel in relationships:
        sides = _child_and_parent(rel, entities)
        if sides is None:
            continue
        child, parent, parent_is_from = sides
        fk = _find_fk_field(child, parent)
        if fk is None:
            logger.debug(
                f"No foreign key field in {child.name} for relationship "
                f"{rel.from_entity} -> {rel.to_entity}"
            )
            continue
        fk.references = parent.name
        fk.markers.add("FK")
        if rel.from_mandatory if parent_is_from else rel.to_mandatory:
            fk.required = True
        rel.foreign_key_field = fk.name

    for entity in entities.values():
        for f in entity.fields.values():
            if "FK" not in f.markers or f.references:
                continue
            target = next(
                (
                    e
                    for e in entities.values()
                    if e.name != entity.name and _names_reference(f.name, e)
                ),
                None,
            )
            if target is not None:
                f.references = target.name
                continue
            message = f"foreign key '{entity.name}.{f.name}' does not reference any declared entity"
            if strict:
                raise ParseError(message, line=f.line)
            logger.warning(message)


def finalize(
    entities: Dict[str, EntityDraft],
    relationships: List[RelationshipDraft],
    source: Optional[str] = None,
    strict: bool = False,
) -> CanonicalModel:
    """
    Turn drafts into a CanonicalModel.

    Args:
        entities: Entity drafts keyed by name, in declaration order
        relationships: Relationship drafts in declaration order
        source: Source description stored on the model
        strict: Whether unresolved FK markers are errors

    Returns:
        CanonicalModel
    """
    check_endpoints(relationships, set(entities))
    link_foreign_keys(entities, relationships, strict=strict)

    built: List[Entity] = []
    for draft in entities.values():
        pk = draft.primary_key
        fields: Dict[str, FieldSpec] = {}
        for f in draft.fields.values():
            is_pk = "PK" in f.markers
            if f.references:
                parent = entities[f.references]
                field_type = ForeignKeyType(
                    entity=parent.name, field=parent.primary_key, base=f.primitive
                )
            else:
                field_type = PrimitiveType(name=f.primitive)
            fields[f.name] = FieldSpec(
                name=f.name,
                type=field_type,
                required=is_pk or f.required,
                unique=is_pk or "UK" in f.markers,
                is_primary_key=is_pk,
                constraints=Constraints(max_length=f.max_length),
                description=f.description,
                visibility=f.visibility,
            )
        built.append(
            Entity(
                name=draft.name,
                table_name=to_snake_case(draft.name),
                primary_key_field=pk,
                fields=fields,
            )
        )

    taken: Dict[str, Set[str]] = {}
    rels: List[Relationship] = []
    for rel in relationships:
        name = _relationship_name(rel, taken.setdefault(rel.from_entity, set()))
        rels.append(
            Relationship(
                name=name,
                from_entity=rel.from_entity,
                to_entity=rel.to_entity,
                cardinality=rel.cardinality,
                foreign_key_field=rel.foreign_key_field,
                kind=rel.kind,
                label=rel.label,
            )
        )

    model = build_model(built, rels, source=source)
    logger.info(
        f"Parsed {len(model.entities)} entities and {len(model.relationships)} relationships"
        + (f" from {source}" if source else "")
    )
    return model
