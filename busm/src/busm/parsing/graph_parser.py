"""Parser for the graph (flowchart) notation.

    graph TD
        A[Account|+id: uuid PK|+name: string|-taxId: string]
        C[Contact|+id: uuid PK|+accountId: uuid FK]
        A ==>|owns| C

Arrows map to relationship kinds: `-->` association, `-.->` dependency,
`==>` composition, `--|>` inheritance. A `1:N` style token in the edge label
overrides the kind's default cardinality.
"""

import re
from typing import Dict, List, Optional

from busm.errors import ParseError
from busm.ir.model import CanonicalModel, ForeignKeyType, PrimitiveType, normalize_primitive
from busm.parsing.base import NotationParser
from busm.parsing.drafts import EntityDraft, FieldDraft, RelationshipDraft, finalize
from busm.parsing.patterns import (
    CARDINALITY_TOKENS,
    GRAPH_ATTRIBUTE_KEYS,
    GRAPH_CARDINALITY,
    VISIBILITY_PREFIXES,
    cardinality_from_label,
)


class GraphNotationParser(NotationParser):
    """Scans node declarations and arrow lines."""

    notation = "graph"

    def parse(self, text: str, source: Optional[str] = None) -> CanonicalModel:
        p = self.patterns
        nodes: Dict[str, EntityDraft] = {}
        entities: Dict[str, EntityDraft] = {}
        relationships: List[RelationshipDraft] = []

        for line_no, raw in enumerate(text.splitlines(), start=1):
            line = raw.strip().rstrip(";")
            if not line or line.startswith(p.comment_prefix) or p.graph_header.match(line):
                continue

            matched = False
            for node in p.graph_node.finditer(line):
                matched = True
                self._declare(node.group("id"), node.group("label"), line_no, nodes, entities)

            arrow = next(((a, kind) for a, kind in p.arrows if a in line), None)
            if arrow is not None:
                relationships.append(self._edge(line, arrow, line_no, nodes))
                matched = True

            if not matched:
                self._unrecognized(line_no, line)

        self.model = finalize(entities, relationships, source=source or "graph", strict=self.strict)
        return self.model

    def _declare(
        self,
        node_id: str,
        label: str,
        line_no: int,
        nodes: Dict[str, EntityDraft],
        entities: Dict[str, EntityDraft],
    ) -> None:
        label = re.sub(r"[\"']", "", label)
        parts = [part.strip() for part in label.split("|")]
        name = parts[0]
        if not re.fullmatch(r"\w+", name):
            raise ParseError(f"node '{node_id}' has an invalid entity name {name!r}", line=line_no)

        draft = nodes.get(node_id)
        if draft is not None:
            if draft.name != name:
                raise ParseError(
                    f"node '{node_id}' redeclared as '{name}' (was '{draft.name}')",
                    line=line_no,
                )
            if len(parts) == 1:
                return
            if draft.fields:
                raise ParseError(f"attributes of '{name}' are declared more than once", line=line_no)
        elif name in entities:
            raise ParseError(f"entity '{name}' is declared by more than one node", line=line_no)
        else:
            draft = EntityDraft(name=name, line=line_no)

        for part in parts[1:]:
            if not part:
                continue
            field = self._attribute(part, line_no)
            if field is None:
                self._unrecognized(line_no, part)
                continue
            if field.name in draft.fields:
                raise ParseError(f"attribute '{field.name}' repeated in '{name}'", line=line_no)
            draft.fields[field.name] = field
        if draft.fields and draft.primary_key is None and "id" in draft.fields:
            draft.fields["id"].markers.add("PK")
        nodes[node_id] = draft
        entities[name] = draft

    def _attribute(self, part: str, line_no: int) -> Optional[FieldDraft]:
        visibility = "public"
        if part[0] in VISIBILITY_PREFIXES:
            visibility = VISIBILITY_PREFIXES[part[0]]
            part = part[1:].strip()
        elif ":" not in part:
            return None

        markers = set()
        keys = GRAPH_ATTRIBUTE_KEYS.search(part)
        if keys:
            markers = {k.strip() for k in keys.group("keys").split(",")}
            part = part[: keys.start()]

        name, _, type_token = (s.strip() for s in part.partition(":"))
        if not re.fullmatch(r"\w+", name):
            return None
        primitive = None
        if type_token:
            primitive = normalize_primitive(type_token, self.patterns.type_aliases)
            if primitive is None and self.strict:
                raise ParseError(f"unknown attribute type '{type_token}'", line=line_no)
        return FieldDraft(
            name=name,
            primitive=primitive or self.patterns.fallback_type,
            line=line_no,
            markers=markers,
            visibility=visibility,
        )

    def _edge(self, line: str, arrow, line_no: int, nodes: Dict[str, EntityDraft]) -> RelationshipDraft:
        glyph, kind = arrow
        left, _, right = line.partition(glyph)
        source = re.match(r"^\s*(\w+)", left)
        target = self.patterns.graph_endpoint.match(right)
        if not source or not target:
            raise ParseError(f"malformed arrow line: {line!r}", line=line_no)

        for node_id in (source.group(1), target.group("id")):
            if node_id not in nodes:
                raise ParseError(f"arrow endpoint '{node_id}' is not a declared node", line=line_no)

        label = (target.group("label") or "").strip()
        cardinality = cardinality_from_label(label) or self.patterns.kind_cardinality[kind]
        label = GRAPH_CARDINALITY.sub("", label).strip(" ()")
        return RelationshipDraft(
            from_entity=nodes[source.group(1)].name,
            to_entity=nodes[target.group("id")].name,
            cardinality=cardinality,
            line=line_no,
            kind=kind,
            label=label,
            # Composed children cannot exist without their owner
            from_mandatory=kind == "composition",
            to_mandatory=kind == "composition",
        )

    def render(self, model: CanonicalModel) -> str:
        """Serialize a model into graph notation, using entity names as node ids."""
        prefixes = {v: k for k, v in VISIBILITY_PREFIXES.items()}
        arrows = {kind: glyph for glyph, kind in self.patterns.arrows}
        lines = ["graph TD"]
        for entity in model.entities.values():
            attrs = []
            for f in entity.fields.values():
                if isinstance(f.type, PrimitiveType):
                    type_token = f.type.name
                elif isinstance(f.type, ForeignKeyType):
                    type_token = f.type.base
                else:
                    type_token = "string"
                markers = []
                if f.is_primary_key:
                    markers.append("PK")
                if f.is_foreign_key:
                    markers.append("FK")
                if f.unique and not f.is_primary_key:
                    markers.append("UK")
                attr = f"{prefixes[f.visibility]}{f.name}: {type_token}"
                if markers:
                    attr += " " + ",".join(markers)
                attrs.append(attr)
            label = "|".join([entity.name, *attrs])
            lines.append(f"    {entity.name}[{label}]")

        for rel in model.relationships:
            label = rel.label
            if rel.cardinality != self.patterns.kind_cardinality[rel.kind]:
                token = CARDINALITY_TOKENS[rel.cardinality]
                label = f"{label} ({token})" if label else token
            arrow = arrows[rel.kind]
            if label:
                lines.append(f"    {rel.from_entity} {arrow}|{label}| {rel.to_entity}")
            else:
                lines.append(f"    {rel.from_entity} {arrow} {rel.to_entity}")
        return "\n".join(lines) + "\n"
