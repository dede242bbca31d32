"""Tests for the block (erDiagram) notation parser."""

import pytest

from busm.errors import ParseError
from busm.ir.model import ForeignKeyType
from busm.parsing.block_parser import BlockNotationParser
from busm.parsing.patterns import NotationPatterns


def test_parse_entities_and_fields(block_source):
    """Entities, primary keys, keys markers and descriptions are read."""
    model = BlockNotationParser().parse(block_source)

    assert list(model.entities) == ["ACCOUNT", "CONTACT"]
    account = model.entities["ACCOUNT"]
    assert account.table_name == "account"
    assert account.primary_key_field == "AccountID"
    pk = account.fields["AccountID"]
    assert pk.is_primary_key and pk.required and pk.unique
    assert pk.type_name == "integer"
    assert pk.description == "Primary key"
    assert account.fields["Phone"].constraints.max_length == 20
    assert model.entities["CONTACT"].fields["Email"].unique


def test_relationship_cardinality_and_foreign_key(block_source):
    """A ||--o{ line is one-to-many and claims the child's FK field."""
    model = BlockNotationParser().parse(block_source)

    assert len(model.relationships) == 1
    rel = model.relationships[0]
    assert (rel.from_entity, rel.to_entity) == ("ACCOUNT", "CONTACT")
    assert rel.cardinality == "one-to-many"
    assert rel.name == "contacts"
    assert rel.label == "has"
    assert rel.foreign_key_field == "AccountID"

    fk = model.entities["CONTACT"].fields["AccountID"]
    assert isinstance(fk.type, ForeignKeyType)
    assert fk.type.entity == "ACCOUNT"
    assert fk.type.field == "AccountID"
    # Parent side is "exactly one", so the child must carry the key
    assert fk.required
    assert model.entities["ACCOUNT"].relationships == [rel]


@pytest.mark.parametrize(
    "glyphs,cardinality",
    [
        ("||--o{", "one-to-many"),
        ("}o--||", "many-to-one"),
        ("|o--o|", "one-to-one"),
        ("}o--o{", "many-to-many"),
    ],
)
def test_glyph_cardinalities(glyphs, cardinality):
    """Each terminator pair maps to its cardinality."""
    text = f"erDiagram\n    A {{\n        int id PK\n    }}\n    B {{\n        int id PK\n    }}\n    A {glyphs} B\n"
    model = BlockNotationParser().parse(text)
    assert model.relationships[0].cardinality == cardinality


def test_optional_parent_leaves_foreign_key_optional():
    """A zero-or-one parent terminator keeps the FK field optional."""
    text = """erDiagram
    TEAM {
        int TeamID PK
    }
    PLAYER {
        int PlayerID PK
        int TeamID FK
    }
    TEAM |o--o{ PLAYER : "fields"
"""
    model = BlockNotationParser().parse(text)
    assert not model.entities["PLAYER"].fields["TeamID"].required


def test_unterminated_block_reports_line():
    """A block without a closing brace fails with the block's opening line."""
    text = "erDiagram\n    ACCOUNT {\n        int AccountID PK\n"
    with pytest.raises(ParseError) as exc:
        BlockNotationParser().parse(text)
    assert exc.value.line == 2
    assert "not terminated" in str(exc.value)


def test_nested_block_is_an_error():
    """Opening a second block before closing the first is rejected."""
    text = "erDiagram\n    A {\n        int id PK\n    B {\n    }\n"
    with pytest.raises(ParseError) as exc:
        BlockNotationParser().parse(text)
    assert exc.value.line == 4


def test_undeclared_relationship_endpoint():
    """Relationships must reference declared entities."""
    text = "erDiagram\n    A {\n        int id PK\n    }\n    A ||--o{ GHOST : \"x\"\n"
    with pytest.raises(ParseError) as exc:
        BlockNotationParser().parse(text)
    assert exc.value.line == 5
    assert "GHOST" in exc.value.reason


def test_duplicate_entity_is_an_error():
    """An entity declared twice is rejected."""
    text = "erDiagram\n    A {\n    }\n    A {\n    }\n"
    with pytest.raises(ParseError):
        BlockNotationParser().parse(text)


def test_lenient_mode_skips_unknown_lines(block_source):
    """Lenient mode ignores lines that match no construct."""
    text = block_source.replace("erDiagram", "erDiagram\n    this is not notation")
    model = BlockNotationParser(strict=False).parse(text)
    assert len(model.entities) == 2


def test_strict_mode_rejects_unknown_lines(block_source):
    """Strict mode turns unrecognized lines into errors."""
    text = block_source.replace("erDiagram", "erDiagram\n    this is not notation")
    with pytest.raises(ParseError) as exc:
        BlockNotationParser(strict=True).parse(text)
    assert exc.value.line == 3


def test_strict_mode_rejects_unknown_types():
    """Unknown field types are an error in strict mode and a string otherwise."""
    text = "erDiagram\n    A {\n        blob data\n    }\n"
    with pytest.raises(ParseError):
        BlockNotationParser(strict=True).parse(text)
    model = BlockNotationParser().parse(text)
    assert model.entities["A"].fields["data"].type_name == "string"


def test_custom_type_aliases():
    """Parsers accept substituted pattern tables."""
    patterns = NotationPatterns(type_aliases={"blob": "text"})
    text = "erDiagram\n    A {\n        blob data\n    }\n"
    model = BlockNotationParser(patterns=patterns).parse(text)
    assert model.entities["A"].fields["data"].type_name == "text"


def test_round_trip(block_source):
    """Rendering and re-parsing yields an equivalent model."""
    parser = BlockNotationParser()
    original = parser.parse(block_source)
    again = BlockNotationParser().parse(parser.render(original))

    assert again.model_dump(exclude={"source"}) == original.model_dump(exclude={"source"})


def test_round_trip_one_to_one_with_foreign_key_on_source_side():
    """A one-to-one whose FK lives on the left entity survives rendering."""
    text = """erDiagram
    USER {
        int UserID PK
        int ProfileID FK
    }
    PROFILE {
        int ProfileID PK
    }
    USER |o--|| PROFILE
"""
    parser = BlockNotationParser()
    original = parser.parse(text)
    assert original.relationships[0].cardinality == "one-to-one"
    assert original.entities["USER"].fields["ProfileID"].required
    again = BlockNotationParser().parse(parser.render(original))
    assert again.model_dump(exclude={"source"}) == original.model_dump(exclude={"source"})


def test_extract_subset_requires_both_endpoints():
    """Subset extraction drops relationships leaving the named set."""
    text = """erDiagram
    A {
        int AID PK
    }
    B {
        int BID PK
    }
    C {
        int CID PK
        int AID FK
    }
    A ||--o{ C : "owns"
"""
    parser = BlockNotationParser()
    parser.parse(text)
    subset = parser.extract_subset(["A", "B"])

    assert set(subset.entities) == {"A", "B"}
    assert subset.relationships == []
    assert subset.entities["A"].relationships == []


def test_extract_subset_before_parse():
    """Extracting before parsing is a usage error."""
    with pytest.raises(ValueError):
        BlockNotationParser().extract_subset(["A"])


def test_parse_file_missing(tmp_path):
    """Missing files raise ParseError."""
    with pytest.raises(ParseError):
        BlockNotationParser().parse_file(tmp_path / "nope.erd")
