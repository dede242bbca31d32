"""Tests for SchemaRegistry queries."""

import pytest

from busm.errors import UnknownEntityError
from busm.ir.module_config import ModuleConfig
from busm.registry.schema_registry import SchemaRegistry


def test_entity_lookups(registry):
    """Known entities resolve; unknown ones are None or raise on demand."""
    assert registry.has_entity("Account")
    assert registry.get_entity("Ghost") is None
    assert [e.name for e in registry.get_all_entities()] == ["Account", "Contact", "Note"]
    with pytest.raises(UnknownEntityError) as exc:
        registry.require_entity("Ghost")
    assert str(exc.value) == "Unknown entity: Ghost"


def test_unknown_entity_error_is_a_key_error(registry):
    """Callers catching KeyError still see unknown entities."""
    with pytest.raises(KeyError):
        registry.require_entity("Ghost")


def test_primary_keys(registry):
    """Primary keys come from the model, defaulting to id."""
    assert registry.get_primary_key("Account") == "id"
    assert registry.get_primary_key("Note") == "id"
    assert registry.get_primary_key("Ghost") is None


def test_field_queries(registry):
    """Field, type and constraint lookups."""
    assert registry.get_field_type("Account", "status") == "enum"
    assert registry.get_field_type("Account", "missing") is None
    assert registry.get_field_constraints("Account", "accountName").max_length == 100
    assert registry.get_field_constraints("Account", "missing").is_empty()
    assert registry.get_required_fields("Contact") == ["id", "firstName", "lastName", "email"]
    assert registry.get_unique_fields("Contact") == ["id", "email"]
    assert registry.get_fields("Ghost") == []


def test_dotted_field_paths(registry):
    """Paths hop through foreign keys and relationship names."""
    assert registry.get_field("Contact", "accountId.accountName").name == "accountName"
    assert registry.get_field("Account", "contacts.email").type_name == "email"
    assert registry.get_field("Account", "nowhere.email") is None
    assert registry.get_field("Ghost", "id") is None


def test_phase_filtering(registry):
    """Phases expose required fields first, then non-advanced fields, then all."""
    def names(phase):
        return [f.name for f in registry.filter_fields_for_phase("Account", phase)]

    assert names(1) == ["id", "accountName", "accountType", "status"]
    assert names(2) == [
        "id",
        "accountName",
        "accountType",
        "status",
        "email",
        "phone",
        "creditLimit",
        "createdAt",
    ]
    assert "taxId" in names(3)
    assert len(names(3)) == 9


def test_phase_tags_and_essential_fields(registry_document):
    """Phase 2 keeps later-phase simple fields; essential fields join phase 1."""
    fields = registry_document["entities"]["Account"]["fields"]
    fields["nickname"] = {"type": "string", "phase": 3}
    fields["riskScore"] = {"type": "decimal", "phase": 2, "essential": True, "complexity": "advanced"}
    registry = SchemaRegistry.load(registry_document)

    def names(phase):
        return [f.name for f in registry.filter_fields_for_phase("Account", phase)]

    assert names(1) == ["id", "accountName", "accountType", "status", "riskScore"]
    assert "nickname" in names(2)
    assert "riskScore" in names(2)
    assert "taxId" not in names(2)


def test_phase_below_one(registry):
    """Phase numbers start at 1."""
    with pytest.raises(ValueError):
        registry.filter_fields_for_phase("Account", 0)


def test_relationship_queries(registry):
    """Relationships are reported for both endpoints."""
    assert [r.name for r in registry.get_relationships("Account")] == ["contacts"]
    assert [r.name for r in registry.get_relationships("Contact")] == ["contacts"]
    assert registry.get_relationships("Note") == []
    assert registry.get_relationship("Account", "contacts").to_entity == "Contact"
    assert registry.get_relationship("Contact", "contacts") is None
    assert registry.are_related("Contact", "Account")
    assert not registry.are_related("Contact", "Note")


def test_hierarchies(registry):
    """Entities are grouped by parent count."""
    assert registry.hierarchies() == {
        "primary": ["Account", "Note"],
        "secondary": ["Contact"],
        "transaction": [],
    }


def test_enums(registry):
    """Enumeration values keep their declared order."""
    assert registry.get_enum_values("AccountType") == [
        "Residential",
        "Commercial",
        "Industrial",
        "Other",
    ]
    assert registry.get_enum("Missing") is None
    assert registry.get_enum_values("Missing") == []


def test_module_entities(registry):
    """Unknown module entities are skipped."""
    resolved = registry.get_module_entities(owned=["Account", "Ghost"], referenced=["Contact"])
    assert [e.name for e in resolved["owned"]] == ["Account"]
    assert [e.name for e in resolved["referenced"]] == ["Contact"]


def test_export_entity_is_a_module_config(registry):
    """Exported entities load as module configurations."""
    exported = registry.export_entity("Account", phase=1)
    config = ModuleConfig.model_validate(exported)

    assert config.entity == "Account"
    assert [f.name for f in config.fields] == ["id", "accountName", "accountType", "status"]
    assert config.fields[2].type == "enum"
    assert exported["entity"]["source"] == "BUSM.Account"
    assert registry.export_entity("Ghost") is None


def test_summary(registry):
    """Summary counts what the model holds."""
    summary = registry.get_summary()
    assert summary["entity_count"] == 3
    assert summary["relationship_count"] == 1
    assert summary["enums"] == ["AccountType", "AccountStatus"]


def test_subset(registry):
    """Subsets keep only the named entities."""
    sub = registry.extract_subset(["Contact"])
    assert [e.name for e in sub.get_all_entities()] == ["Contact"]
    assert sub.get_relationships("Contact") == []


def test_load_from_file(registry_file):
    """Registries load from disk by extension."""
    assert SchemaRegistry.load(registry_file).has_entity("Note")
