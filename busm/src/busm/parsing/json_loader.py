"""Loader for the BUSM registry JSON document.

    {
      "version": "1.0.0",
      "entities": {
        "Account": {
          "primaryKey": "id",
          "fields": {
            "id": {"type": "uuid", "primaryKey": true},
            "status": {"type": "enum", "enum": "AccountStatus", "required": true}
          }
        }
      },
      "relationships": {
        "Account.contacts": {"type": "one-to-many", "from": "Account", "to": "Contact",
                             "foreignKey": "accountId"}
      },
      "enums": {"AccountStatus": {"values": ["Active", "Inactive"]}}
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from busm.config.logging import get_logger
from busm.errors import ParseError
from busm.ir.model import (
    Cardinality,
    CanonicalModel,
    Constraints,
    Entity,
    EnumType,
    Enumeration,
    FieldSpec,
    ForeignKeyType,
    PrimitiveType,
    Relationship,
    build_model,
    normalize_primitive,
)
from busm.utils.ir_io import is_canonical_dump, model_from_dump
from busm.utils.naming import to_snake_case

logger = get_logger(__name__)

CARDINALITY_ALIASES: Dict[str, Cardinality] = {
    "one-to-many": "one-to-many",
    "1:many": "one-to-many",
    "1:n": "one-to-many",
    "has-many": "one-to-many",
    "many-to-one": "many-to-one",
    "many:1": "many-to-one",
    "n:1": "many-to-one",
    "belongs-to": "many-to-one",
    "one-to-one": "one-to-one",
    "1:1": "one-to-one",
    "many-to-many": "many-to-many",
    "many:many": "many-to-many",
    "m:n": "many-to-many",
    "n:m": "many-to-many",
}

_CONSTRAINT_KEYS = {
    "minLength": "min_length",
    "maxLength": "max_length",
    "min": "min",
    "max": "max",
    "pattern": "pattern",
}


def normalize_cardinality(value: str) -> Cardinality:
    """
    Map a cardinality spelling to its canonical name.

    Raises:
        ParseError: If the spelling is not recognised
    """
    key = str(value).strip().lower().replace("_", "-")
    if key not in CARDINALITY_ALIASES:
        raise ParseError(f"unknown relationship cardinality '{value}'")
    return CARDINALITY_ALIASES[key]


def _enum_name(entity: str, field: str) -> str:
    return entity + field[:1].upper() + field[1:]


def _constraints(raw: Dict[str, Any], where: str) -> Constraints:
    values: Dict[str, Any] = {}
    for key, target in _CONSTRAINT_KEYS.items():
        if raw.get("constraints", {}).get(key) is not None:
            values[target] = raw["constraints"][key]
    if "pattern" not in values:
        for rule in raw.get("validation") or []:
            if isinstance(rule, dict) and rule.get("pattern"):
                values["pattern"] = rule["pattern"]
                break
    try:
        return Constraints(**values)
    except ValidationError as e:
        raise ParseError(f"invalid constraints on {where}: {e.errors()[0]['msg']}") from e


class RegistryDocumentLoader:
    """
    Builds a CanonicalModel from a parsed registry document.

    Unknown field types fall back to `string` with a warning, or raise in
    strict mode.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    def load_file(self, path: Path) -> CanonicalModel:
        """
        Load a registry JSON file.

        Raises:
            ParseError: If the file is missing, not valid JSON, or inconsistent
        """
        path = Path(path)
        if not path.exists():
            raise ParseError(f"registry document not found: {path}")
        logger.info(f"Reading registry document from {path}")
        return self.load_text(path.read_text(encoding="utf-8"), source=str(path))

    def load_text(self, text: str, source: Optional[str] = None) -> CanonicalModel:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid JSON: {e.msg}", line=e.lineno) from e
        return self.load(data, source=source)

    def load(self, data: Dict[str, Any], source: Optional[str] = None) -> CanonicalModel:
        """
        Canonicalize a registry document.

        A canonical model dump (the `parse --format canonical` output) is
        accepted as well.

        Args:
            data: Decoded JSON document
            source: Optional source description stored on the model

        Returns:
            CanonicalModel
        """
        if not isinstance(data, dict) or not isinstance(data.get("entities"), dict):
            raise ParseError("registry document must contain an 'entities' object")
        if is_canonical_dump(data):
            return model_from_dump(data, source=source)

        enumerations: Dict[str, Enumeration] = {}
        for name, raw in (data.get("enums") or {}).items():
            values = raw.get("values", []) if isinstance(raw, dict) else raw
            enumerations[name] = Enumeration(name=name, allowed_values=[str(v) for v in values])

        raw_entities: Dict[str, Dict[str, Any]] = data["entities"]
        primary_keys = {name: self._primary_key(raw) for name, raw in raw_entities.items()}

        relationships = self._relationships(data, raw_entities)
        implied_fks = self._implied_foreign_keys(relationships, raw_entities, primary_keys)

        entities: List[Entity] = []
        for name, raw in raw_entities.items():
            pk = primary_keys[name]
            entity_required = set(raw.get("required") or [])
            fields: Dict[str, FieldSpec] = {}
            for field_name, raw_field in (raw.get("fields") or {}).items():
                field_type = self._field_type(
                    name, field_name, raw_field, enumerations, primary_keys, implied_fks
                )
                is_pk = field_name == pk
                fields[field_name] = FieldSpec(
                    name=field_name,
                    type=field_type,
                    required=is_pk or bool(raw_field.get("required")) or field_name in entity_required,
                    unique=is_pk or bool(raw_field.get("unique")),
                    is_primary_key=is_pk,
                    constraints=_constraints(raw_field, f"{name}.{field_name}"),
                    default=raw_field.get("default"),
                    description=raw_field.get("description", ""),
                    phase=raw_field.get("phase"),
                    essential=bool(raw_field.get("essential")),
                    complexity=raw_field.get("complexity"),
                )
            entities.append(
                Entity(
                    name=name,
                    table_name=raw.get("tableName") or to_snake_case(name),
                    primary_key_field=pk,
                    fields=fields,
                )
            )

        model = build_model(
            entities,
            relationships,
            enumerations.values(),
            source=source,
            version=str(data.get("version", "1.0.0")),
        )
        logger.info(
            f"Loaded {len(model.entities)} entities, {len(model.relationships)} relationships "
            f"and {len(model.enumerations)} enumerations"
        )
        return model

    @staticmethod
    def _primary_key(raw: Dict[str, Any]) -> Optional[str]:
        fields = raw.get("fields") or {}
        if raw.get("primaryKey"):
            return raw["primaryKey"]
        for name, f in fields.items():
            if f.get("primaryKey") or f.get("pk"):
                return name
        return "id" if "id" in fields else None

    def _relationships(
        self, data: Dict[str, Any], raw_entities: Dict[str, Dict[str, Any]]
    ) -> List[Relationship]:
        found: Dict[Tuple[str, str], Relationship] = {}
        for key, raw in (data.get("relationships") or {}).items():
            from_entity = raw.get("from") or key.split(".", 1)[0]
            name = raw.get("name") or key.split(".", 1)[-1]
            if "to" not in raw:
                raise ParseError(f"relationship '{key}' has no 'to' entity")
            found[(from_entity, name)] = Relationship(
                name=name,
                from_entity=from_entity,
                to_entity=raw["to"],
                cardinality=normalize_cardinality(raw.get("type", "one-to-many")),
                foreign_key_field=raw.get("foreignKey"),
                kind=raw.get("kind", "association"),
                label=raw.get("label", ""),
            )

        # Relationships declared inline on an entity
        for entity_name, raw_entity in raw_entities.items():
            for name, raw in (raw_entity.get("relationships") or {}).items():
                if (entity_name, name) in found:
                    continue
                target = raw.get("target") or raw.get("to")
                if not target:
                    raise ParseError(f"relationship '{entity_name}.{name}' has no target")
                found[(entity_name, name)] = Relationship(
                    name=name,
                    from_entity=entity_name,
                    to_entity=target,
                    cardinality=normalize_cardinality(raw.get("type", "one-to-many")),
                    foreign_key_field=raw.get("foreignKey"),
                    kind=raw.get("kind", "association"),
                    label=raw.get("label", ""),
                )
        return list(found.values())

    @staticmethod
    def _implied_foreign_keys(
        relationships: List[Relationship],
        raw_entities: Dict[str, Dict[str, Any]],
        primary_keys: Dict[str, Optional[str]],
    ) -> Dict[Tuple[str, str], Tuple[str, Optional[str]]]:
        """Map (child, field) to (parent, parent key) for relationship foreign keys."""
        implied: Dict[Tuple[str, str], Tuple[str, Optional[str]]] = {}
        for rel in relationships:
            if not rel.foreign_key_field or rel.cardinality == "many-to-many":
                continue
            if rel.cardinality == "many-to-one":
                candidates = [(rel.from_entity, rel.to_entity)]
            else:
                candidates = [(rel.to_entity, rel.from_entity), (rel.from_entity, rel.to_entity)]
            for child, parent in candidates:
                child_fields = (raw_entities.get(child) or {}).get("fields") or {}
                if rel.foreign_key_field in child_fields and parent in raw_entities:
                    implied[(child, rel.foreign_key_field)] = (parent, primary_keys[parent])
                    break
        return implied

    def _primitive(self, entity: str, field: str, token: Any):
        primitive = normalize_primitive(str(token or "string"))
        if primitive is not None:
            return primitive
        message = f"field '{entity}.{field}' has unknown type '{token}'"
        if self.strict:
            raise ParseError(message)
        logger.warning(f"{message}, using string")
        return "string"

    def _field_type(
        self,
        entity: str,
        field: str,
        raw: Dict[str, Any],
        enumerations: Dict[str, Enumeration],
        primary_keys: Dict[str, Optional[str]],
        implied_fks: Dict[Tuple[str, str], Tuple[str, Optional[str]]],
    ):
        token = raw.get("type", "string")

        enum_ref = raw.get("enum")
        if isinstance(enum_ref, list):
            enum_name = _enum_name(entity, field)
            enumerations[enum_name] = Enumeration(
                name=enum_name, allowed_values=[str(v) for v in enum_ref]
            )
            return EnumType(enum=enum_name)
        if enum_ref:
            return EnumType(enum=enum_ref)
        if isinstance(token, str) and token in enumerations:
            return EnumType(enum=token)

        reference = raw.get("foreignKey") or raw.get("fk")
        if reference:
            target, _, target_field = str(reference).partition(".")
            return ForeignKeyType(
                entity=target,
                field=target_field or primary_keys.get(target),
                base=self._primitive(entity, field, token),
            )
        if (entity, field) in implied_fks:
            target, target_field = implied_fks[(entity, field)]
            return ForeignKeyType(
                entity=target, field=target_field, base=self._primitive(entity, field, token)
            )

        primitive = self._primitive(entity, field, token)
        fmt = raw.get("format")
        if primitive == "string" and fmt in ("email", "uuid", "phone", "date", "datetime"):
            primitive = fmt
        return PrimitiveType(name=primitive)


def to_registry_document(model: CanonicalModel) -> Dict[str, Any]:
    """
    Convert a CanonicalModel to the registry JSON document shape.

    Args:
        model: Model to export

    Returns:
        Dictionary ready for json.dumps
    """
    entities: Dict[str, Any] = {}
    for entity in model.entities.values():
        fields: Dict[str, Any] = {}
        for f in entity.fields.values():
            raw: Dict[str, Any] = {"type": f.type_name, "required": f.required}
            if f.is_primary_key:
                raw["primaryKey"] = True
            if f.unique and not f.is_primary_key:
                raw["unique"] = True
            if isinstance(f.type, EnumType):
                raw["enum"] = f.type.enum
            if isinstance(f.type, ForeignKeyType):
                raw["foreignKey"] = (
                    f"{f.type.entity}.{f.type.field}" if f.type.field else f.type.entity
                )
            if not f.constraints.is_empty():
                raw["constraints"] = {
                    key: getattr(f.constraints, attr)
                    for key, attr in _CONSTRAINT_KEYS.items()
                    if getattr(f.constraints, attr) is not None
                }
            for key in ("default", "phase", "complexity"):
                if getattr(f, key) is not None:
                    raw[key] = getattr(f, key)
            if f.essential:
                raw["essential"] = True
            if f.description:
                raw["description"] = f.description
            fields[f.name] = raw
        entities[entity.name] = {
            "tableName": entity.table_name,
            "primaryKey": entity.primary_key_field,
            "fields": fields,
        }

    return {
        "version": model.version,
        "entities": entities,
        "relationships": {
            f"{r.from_entity}.{r.name}": {
                "name": r.name,
                "type": r.cardinality,
                "from": r.from_entity,
                "to": r.to_entity,
                "foreignKey": r.foreign_key_field,
                "kind": r.kind,
                "label": r.label,
            }
            for r in model.relationships
        },
        "enums": {
            e.name: {"values": list(e.allowed_values)} for e in model.enumerations.values()
        },
    }
