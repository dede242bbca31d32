"""Parser for the block (ER diagram) notation.

    erDiagram
        ACCOUNT {
            int AccountID PK "Primary key"
            string AccountName
        }
        CONTACT {
            int ContactID PK
            int AccountID FK
        }
        ACCOUNT ||--o{ CONTACT : "has"
"""

from typing import Dict, List, Optional

from busm.errors import ParseError
from busm.ir.model import (
    CanonicalModel,
    ForeignKeyType,
    PrimitiveName,
    PrimitiveType,
    Relationship,
    normalize_primitive,
)
from busm.parsing.base import NotationParser
from busm.parsing.drafts import EntityDraft, FieldDraft, RelationshipDraft, finalize
from busm.parsing.patterns import (
    BLOCK_HEADER,
    cardinality_from_glyphs,
    glyph_is_optional,
)

_STRING_TYPES = ("string", "email", "phone")


class BlockNotationParser(NotationParser):
    """Two-state line scanner: idle, or inside an entity block."""

    notation = "block"

    def parse(self, text: str, source: Optional[str] = None) -> CanonicalModel:
        p = self.patterns
        entities: Dict[str, EntityDraft] = {}
        relationships: List[RelationshipDraft] = []
        current: Optional[EntityDraft] = None

        for line_no, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith(p.comment_prefix):
                continue

            if current is None:
                if line == BLOCK_HEADER:
                    continue
                start = p.block_start.match(line)
                if start:
                    name = start.group("name")
                    if name in entities:
                        raise ParseError(f"entity '{name}' is declared more than once", line=line_no)
                    current = EntityDraft(name=name, line=line_no)
                    entities[name] = current
                    continue
                if p.block_end.match(line):
                    raise ParseError("closing brace outside any entity block", line=line_no)
                rel = p.block_relationship.match(line)
                if rel:
                    relationships.append(self._relationship(rel, line_no))
                    continue
                self._unrecognized(line_no, line)
                continue

            # inside-entity-block
            if p.block_end.match(line):
                current = None
                continue
            if p.block_start.match(line):
                raise ParseError(
                    f"entity block '{current.name}' opened on line {current.line} is not closed",
                    line=line_no,
                )
            fld = p.block_field.match(line)
            if fld:
                draft = self._field(fld, line_no)
                if draft.name in current.fields:
                    raise ParseError(
                        f"field '{draft.name}' repeated in entity '{current.name}'", line=line_no
                    )
                current.fields[draft.name] = draft
                continue
            self._unrecognized(line_no, line)

        if current is not None:
            raise ParseError(
                f"entity block '{current.name}' is not terminated", line=current.line
            )

        self.model = finalize(entities, relationships, source=source or "block", strict=self.strict)
        return self.model

    def _field(self, match, line_no: int) -> FieldDraft:
        token = match.group("type")
        primitive = self._primitive(token, line_no)
        keys = match.group("keys") or ""
        markers = {k.strip() for k in keys.split(",") if k.strip()}
        max_length = None
        params = [s.strip() for s in (match.group("params") or "").split(",") if s.strip()]
        if len(params) == 1 and primitive in _STRING_TYPES:
            max_length = int(params[0])
        return FieldDraft(
            name=match.group("name"),
            primitive=primitive,
            line=line_no,
            markers=markers,
            description=match.group("desc") or "",
            max_length=max_length,
        )

    def _primitive(self, token: str, line_no: int) -> PrimitiveName:
        primitive = normalize_primitive(token, self.patterns.type_aliases)
        if primitive is not None:
            return primitive
        if self.strict:
            raise ParseError(f"unknown field type '{token}'", line=line_no)
        return self.patterns.fallback_type

    def _relationship(self, match, line_no: int) -> RelationshipDraft:
        left, right = match.group("lglyph"), match.group("rglyph")
        label = (match.group("label") or "").strip().strip('"')
        return RelationshipDraft(
            from_entity=match.group("left"),
            to_entity=match.group("right"),
            cardinality=cardinality_from_glyphs(left, right),
            line=line_no,
            label=label,
            from_mandatory=not glyph_is_optional(left),
            to_mandatory=not glyph_is_optional(right),
        )

    def render(self, model: CanonicalModel) -> str:
        """
        Serialize a model into block notation.

        Enum fields are written as strings since the notation has no
        enumeration syntax.
        """
        lines = [BLOCK_HEADER]
        for entity in model.entities.values():
            lines.append(f"    {entity.name} {{")
            for f in entity.fields.values():
                if isinstance(f.type, PrimitiveType):
                    type_token = f.type.name
                elif isinstance(f.type, ForeignKeyType):
                    type_token = f.type.base
                else:
                    type_token = "string"
                if f.constraints.max_length is not None and type_token in _STRING_TYPES:
                    type_token += f"({f.constraints.max_length})"
                markers = []
                if f.is_primary_key:
                    markers.append("PK")
                if f.is_foreign_key:
                    markers.append("FK")
                if f.unique and not f.is_primary_key:
                    markers.append("UK")
                parts = [type_token, f.name]
                if markers:
                    parts.append(",".join(markers))
                if f.description:
                    parts.append('"' + f.description.replace('"', "'") + '"')
                lines.append("        " + " ".join(parts))
            lines.append("    }")
        for rel in model.relationships:
            lines.append("    " + self._render_relationship(model, rel))
        return "\n".join(lines) + "\n"

    def _render_relationship(self, model: CanonicalModel, rel: Relationship) -> str:
        mandatory = False
        fk_on_from_side = False
        if rel.foreign_key_field:
            for entity_name in (rel.to_entity, rel.from_entity):
                fk = model.entities[entity_name].fields.get(rel.foreign_key_field)
                if fk is not None and fk.is_foreign_key and fk.type.entity != entity_name:
                    mandatory = fk.required
                    fk_on_from_side = entity_name == rel.from_entity
                    break

        if rel.cardinality == "one-to-many":
            glyphs = ("||" if mandatory else "|o") + "--o{"
        elif rel.cardinality == "many-to-one":
            glyphs = "}o--" + ("||" if mandatory else "o|")
        elif rel.cardinality == "many-to-many":
            glyphs = "}o--o{"
        elif fk_on_from_side:
            glyphs = "|o--" + ("||" if mandatory else "o|")
        else:
            glyphs = ("||" if mandatory else "|o") + "--o|"
        text = f"{rel.from_entity} {glyphs} {rel.to_entity}"
        if rel.label:
            text += ' : "' + rel.label.replace('"', "'") + '"'
        return text
