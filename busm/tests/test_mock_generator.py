"""Tests for sample record generation."""

import pytest
from faker import Faker

from busm.errors import UnknownEntityError
from busm.generation.mock_generator import GenerationOptions, LabelHeuristic, SampleGenerator
from busm.generation.providers import FakerProvider, ProviderRegistry
from busm.registry.schema_registry import SchemaRegistry
from busm.validation.validator import Validator


class ConstantProvider:
    """Provider returning one fixed value."""

    def __init__(self, value):
        self.value = value

    def sample(self, n, ctx=None):
        return [self.value] * n


def test_generated_record_is_valid(registry):
    """Generated records satisfy the registry's constraints."""
    record = SampleGenerator(registry, seed=11).generate_mock("Account")

    assert set(record) == {"id", "accountName", "accountType", "status"}
    assert record["accountType"] == "Residential"
    assert record["status"] == "Active"
    assert Validator(registry).validate("Account", record).valid


def test_same_seed_same_records(registry):
    """Generation is reproducible for a fixed seed."""
    first = SampleGenerator(registry, seed=5).generate_mock("Contact")
    second = SampleGenerator(registry, seed=5).generate_mock("Contact")
    assert first == second


def test_overrides_are_used_verbatim(registry):
    """Overrides replace generated values and unknown keys are kept."""
    record = SampleGenerator(registry, seed=1).generate_mock(
        "Account", overrides={"status": "Pending", "legacyCode": "X1"}
    )
    assert record["status"] == "Pending"
    assert record["legacyCode"] == "X1"


def test_foreign_key_from_context(registry):
    """Foreign keys take the parent's key from context."""
    generator = SampleGenerator(registry, seed=3)
    parent = generator.generate_mock("Account")

    child = generator.generate_mock("Contact", context={"Account": parent})
    assert child["accountId"] == parent["id"]

    child = generator.generate_mock("Contact", context={"Account": "raw-key"})
    assert child["accountId"] == "raw-key"


def test_optional_fields_use_defaults(registry_document):
    """Optional fields are filled only when they declare a default."""
    registry_document["entities"]["Note"]["fields"]["pinned"] = {"type": "boolean", "default": False}
    registry = SchemaRegistry.load(registry_document)
    record = SampleGenerator(registry, seed=2).generate_mock("Note")

    assert record["pinned"] is False
    assert isinstance(record["id"], int)
    assert isinstance(record["body"], str) and record["body"]


def test_unknown_entity(registry):
    """Unknown entities raise."""
    with pytest.raises(UnknownEntityError):
        SampleGenerator(registry).generate_mock("Ghost")


def test_generate_with_relationships(registry):
    """Children carry the parent's primary key."""
    options = GenerationOptions(include_related=["contacts"], related_counts={"contacts": 3})
    result = SampleGenerator(registry, seed=9).generate_with_relationships("Account", 1, options)

    assert len(result["Account"]) == 1
    account = result["Account"][0]
    assert len(result["Contact"]) == 3
    assert all(c["accountId"] == account["id"] for c in result["Contact"])


def test_generate_with_relationships_defaults(registry):
    """Without options every one-to-many relationship gets the default count."""
    result = SampleGenerator(registry, seed=4).generate_with_relationships("Account", 2)
    assert len(result["Account"]) == 2
    assert len(result["Contact"]) == 6


def test_unmatched_relationship_name_generates_parents_only(registry):
    """Naming a relationship that does not exist yields no children."""
    options = GenerationOptions(include_related=["invoices"])
    result = SampleGenerator(registry, seed=4).generate_with_relationships("Account", 1, options)
    assert list(result) == ["Account"]


def test_custom_providers_and_heuristics(registry):
    """Heuristics route field names to registered providers."""
    providers = ProviderRegistry(Faker())
    providers.register("fixed.company", lambda fk: ConstantProvider("Acme Water"))
    heuristics = [LabelHeuristic(("accountname",), "fixed.company")]

    record = SampleGenerator(registry, heuristics=heuristics, providers=providers, seed=1).generate_mock("Account")
    assert record["accountName"] == "Acme Water"


def test_heuristic_values_respect_max_length(registry_document):
    """Generated strings are cut to the field's maximum length."""
    registry_document["entities"]["Account"]["fields"]["accountName"]["constraints"]["maxLength"] = 4
    registry_document["entities"]["Account"]["fields"]["accountName"]["constraints"]["minLength"] = 1
    registry = SchemaRegistry.load(registry_document)
    providers = ProviderRegistry(Faker())
    providers.register("fixed.company", lambda fk: ConstantProvider("Acme Water"))

    record = SampleGenerator(
        registry, heuristics=[LabelHeuristic(("name",), "fixed.company")], providers=providers
    ).generate_mock("Account")
    assert record["accountName"] == "Acme"


def test_provider_registry():
    """Unknown providers raise KeyError; Faker methods are checked up front."""
    providers = ProviderRegistry(Faker())
    assert "faker.email" in providers.names()
    assert "@" in providers.one("faker.email")
    with pytest.raises(KeyError):
        providers.get("faker.nothing")
    with pytest.raises(ValueError):
        FakerProvider(Faker(), field="no_such_method")


def test_one_sided_numeric_bounds(registry_document):
    """A lone min or max still gives values inside the declared range."""
    registry_document["entities"]["Car"] = {
        "fields": {
            "id": {"type": "integer"},
            "year": {"type": "integer", "required": True, "constraints": {"min": 1990}},
            "offset": {"type": "integer", "required": True, "constraints": {"max": -5}},
            "price": {"type": "decimal", "required": True, "constraints": {"min": 50000}},
            "rebate": {"type": "decimal", "required": True, "constraints": {"max": -1}},
        }
    }
    registry = SchemaRegistry.load(registry_document)
    validator = Validator(registry)

    for seed in range(20):
        record = SampleGenerator(registry, seed=seed).generate_mock("Car")
        assert record["year"] >= 1990
        assert record["offset"] <= -5
        assert record["price"] >= 50000
        assert record["rebate"] <= -1
        assert validator.validate("Car", record).valid
