"""Tests for the registry document loader and the format dispatching reader."""

import json

import pytest

from busm.errors import ParseError
from busm.ir.model import EnumType, ForeignKeyType
from busm.parsing.json_loader import (
    RegistryDocumentLoader,
    normalize_cardinality,
    to_registry_document,
)
from busm.parsing.reader import read_content, read_model, sniff_notation
from busm.utils.ir_io import is_canonical_dump, load_model_from_json, save_model_to_json


@pytest.mark.parametrize(
    "spelling,expected",
    [
        ("1:many", "one-to-many"),
        ("has_many", "one-to-many"),
        ("belongs-to", "many-to-one"),
        ("1:1", "one-to-one"),
        ("M:N", "many-to-many"),
    ],
)
def test_cardinality_aliases(spelling, expected):
    """Cardinality spellings normalize to the canonical names."""
    assert normalize_cardinality(spelling) == expected


def test_unknown_cardinality():
    """Unrecognised cardinalities are parse errors."""
    with pytest.raises(ParseError):
        normalize_cardinality("some-to-few")


def test_load_document(registry_document):
    """Entities, enums, constraints and relationships are canonicalized."""
    model = RegistryDocumentLoader().load(registry_document)

    account = model.entities["Account"]
    assert account.table_name == "account"
    assert account.primary_key_field == "id"
    assert isinstance(account.fields["status"].type, EnumType)
    assert account.fields["accountName"].constraints.min_length == 3
    assert account.fields["creditLimit"].phase == 2
    assert model.enumerations["AccountStatus"].allowed_values[0] == "Active"

    fk = model.entities["Contact"].fields["accountId"].type
    assert isinstance(fk, ForeignKeyType)
    assert (fk.entity, fk.field, fk.base) == ("Account", "id", "uuid")

    rel = model.relationships[0]
    assert (rel.name, rel.cardinality) == ("contacts", "one-to-many")
    assert account.relationships == [rel]


def test_id_field_becomes_primary_key(registry_document):
    """An entity without a declared key uses its id field."""
    model = RegistryDocumentLoader().load(registry_document)
    note = model.entities["Note"]
    assert note.primary_key_field == "id"
    assert note.fields["id"].required


def test_inline_enum_and_implied_foreign_key():
    """Inline enum lists get generated names; relationship foreign keys are typed."""
    document = {
        "entities": {
            "Order": {
                "fields": {
                    "id": {"type": "integer"},
                    "state": {"type": "string", "enum": ["Open", "Closed", "Open"]},
                }
            },
            "Line": {
                "fields": {
                    "id": {"type": "integer"},
                    "orderId": {"type": "integer"},
                }
            },
        },
        "relationships": {
            "Order.lines": {"type": "has-many", "to": "Line", "foreignKey": "orderId"}
        },
    }
    model = RegistryDocumentLoader().load(document)

    assert model.entities["Order"].fields["state"].type == EnumType(enum="OrderState")
    assert model.enumerations["OrderState"].allowed_values == ["Open", "Closed"]
    fk = model.entities["Line"].fields["orderId"].type
    assert isinstance(fk, ForeignKeyType) and fk.entity == "Order"


def test_format_upgrades_string_type():
    """A string with an email format is an email field."""
    document = {"entities": {"User": {"fields": {"id": {"type": "uuid"}, "mail": {"type": "string", "format": "email"}}}}}
    model = RegistryDocumentLoader().load(document)
    assert model.entities["User"].fields["mail"].type_name == "email"


def test_unknown_type_strict_and_lenient():
    """Unknown types fail strictly and fall back to string otherwise."""
    document = {"entities": {"User": {"fields": {"id": {"type": "uuid"}, "blob": {"type": "binary"}}}}}
    with pytest.raises(ParseError):
        RegistryDocumentLoader(strict=True).load(document)
    model = RegistryDocumentLoader().load(document)
    assert model.entities["User"].fields["blob"].type_name == "string"


def test_unknown_enum_reference():
    """Enum fields must name a declared enumeration."""
    document = {"entities": {"User": {"fields": {"id": {"type": "uuid"}, "role": {"type": "enum", "enum": "Role"}}}}}
    with pytest.raises(ParseError):
        RegistryDocumentLoader().load(document)


@pytest.mark.parametrize(
    "plate",
    [
        {"type": "string", "constraints": {"pattern": "[A-Z"}},
        {"type": "string", "validation": [{"pattern": "("}]},
    ],
)
def test_invalid_pattern_is_a_parse_error(plate):
    """Field patterns must compile when the document loads."""
    document = {"entities": {"Car": {"fields": {"id": {"type": "integer"}, "plate": plate}}}}
    with pytest.raises(ParseError) as exc:
        RegistryDocumentLoader().load(document)
    assert "Car.plate" in str(exc.value)


def test_invalid_json_reports_line():
    """Decoding errors carry the line number."""
    with pytest.raises(ParseError) as exc:
        RegistryDocumentLoader().load_text('{\n  "entities": {\n    oops\n}')
    assert exc.value.line == 3


def test_missing_entities_section():
    """A document without entities is rejected."""
    with pytest.raises(ParseError):
        RegistryDocumentLoader().load({"enums": {}})


def test_document_export_reloads(registry_document):
    """Exported documents load back into the same model."""
    model = RegistryDocumentLoader().load(registry_document)
    exported = json.loads(json.dumps(to_registry_document(model)))
    again = RegistryDocumentLoader().load(exported)
    assert again == model


def test_sniff_notation(block_source, graph_source):
    """The first significant line decides the notation."""
    assert sniff_notation(block_source) == "block"
    assert sniff_notation(graph_source) == "graph"
    with pytest.raises(ParseError):
        sniff_notation("classDiagram\n")


def test_read_content_dispatch(block_source, graph_source, registry_document):
    """Named formats route to the matching parser."""
    assert "ACCOUNT" in read_content(block_source).entities
    assert "Order" in read_content(graph_source, fmt="graph").entities
    assert "Note" in read_content(json.dumps(registry_document), fmt="json").entities


def test_read_model_by_extension(tmp_path, block_source, registry_file):
    """Files are dispatched on their extension."""
    erd = tmp_path / "accounts.erd"
    erd.write_text(block_source, encoding="utf-8")
    assert "CONTACT" in read_model(erd).entities
    assert "Contact" in read_model(registry_file).entities


def test_read_model_rejects_unsupported_extension(tmp_path):
    """Only known extensions are read."""
    path = tmp_path / "model.txt"
    path.write_text("erDiagram\n", encoding="utf-8")
    with pytest.raises(ParseError) as exc:
        read_model(path)
    assert "unsupported" in str(exc.value)


def test_read_model_missing_file(tmp_path):
    """Missing files are parse errors."""
    with pytest.raises(ParseError):
        read_model(tmp_path / "absent.mmd")


def test_canonical_dump_round_trip(tmp_path, graph_source):
    """Canonical dumps load back through ir_io and through the reader."""
    model = read_content(graph_source)
    path = save_model_to_json(model, tmp_path / "out" / "model.json")

    assert load_model_from_json(path).model_dump(exclude={"source"}) == model.model_dump(exclude={"source"})
    assert read_model(path).entities == model.entities


def test_canonical_dump_detection(registry_document, block_source):
    """Registry documents and canonical dumps are told apart."""
    assert not is_canonical_dump(registry_document)
    assert is_canonical_dump(read_content(block_source).model_dump())
    assert not is_canonical_dump({"entities": {}})


def test_load_model_errors(tmp_path):
    """Missing, empty and malformed dumps raise ParseError."""
    with pytest.raises(ParseError):
        load_model_from_json(tmp_path / "absent.json")

    empty = tmp_path / "empty.json"
    empty.write_text("  \n", encoding="utf-8")
    with pytest.raises(ParseError):
        load_model_from_json(empty)

    broken = tmp_path / "broken.json"
    broken.write_text('{"entities": {"A": {"table_name": "a", "fields": 3}}}', encoding="utf-8")
    with pytest.raises(ParseError):
        load_model_from_json(broken)
