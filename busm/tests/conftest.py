"""Shared fixtures for BUSM tests."""

import copy
import json
from pathlib import Path

import pytest

from busm.config.settings import Settings
from busm.registry.schema_registry import SchemaRegistry

BLOCK_SOURCE = """\
%% Customer accounts
erDiagram
    ACCOUNT {
        int AccountID PK "Primary key"
        string AccountName
        varchar(20) Phone
    }
    CONTACT {
        int ContactID PK
        int AccountID FK
        string Email UK
    }
    ACCOUNT ||--o{ CONTACT : "has"
"""

GRAPH_SOURCE = """\
graph TD
    A[Account|+id: uuid PK|+name: string|-taxId: string]
    C[Contact|+id: uuid PK|+accountId: uuid FK|#email: email UK]
    O[Order|+id: uuid PK|+contactId: uuid]
    A ==>|owns| C
    C -->|places (1:N)| O
"""

REGISTRY_DOCUMENT = {
    "version": "1.0.0",
    "entities": {
        "Account": {
            "primaryKey": "id",
            "fields": {
                "id": {"type": "uuid", "required": True, "primaryKey": True},
                "accountName": {
                    "type": "string",
                    "required": True,
                    "constraints": {"minLength": 3, "maxLength": 100},
                },
                "accountType": {"type": "enum", "enum": "AccountType", "required": True},
                "status": {"type": "enum", "enum": "AccountStatus", "required": True},
                "email": {"type": "email", "required": False},
                "phone": {"type": "phone", "required": False},
                "creditLimit": {
                    "type": "decimal",
                    "phase": 2,
                    "constraints": {"min": 0, "max": 1000000},
                },
                "taxId": {"type": "string", "phase": 3, "complexity": "advanced"},
                "createdAt": {"type": "datetime"},
            },
        },
        "Contact": {
            "primaryKey": "id",
            "fields": {
                "id": {"type": "uuid", "required": True, "primaryKey": True},
                "firstName": {"type": "string", "required": True},
                "lastName": {"type": "string", "required": True},
                "email": {"type": "email", "required": True, "unique": True},
                "phone": {"type": "phone"},
                "accountId": {"type": "uuid", "foreignKey": "Account.id"},
            },
        },
        "Note": {
            "fields": {
                "id": {"type": "integer"},
                "body": {"type": "text", "required": True},
            },
        },
    },
    "relationships": {
        "Account.contacts": {
            "name": "contacts",
            "type": "1:many",
            "from": "Account",
            "to": "Contact",
            "foreignKey": "accountId",
        }
    },
    "enums": {
        "AccountType": {"values": ["Residential", "Commercial", "Industrial", "Other"]},
        "AccountStatus": {"values": ["Active", "Inactive", "Pending", "Suspended"]},
    },
}

RULES_YAML = """\
module:
  id: account-management
business_rules:
  Account:
    validation:
      required: [accountName, status]
      unique: [accountName]
      patterns:
        phone: '^\\+?[0-9 ()-]+$'
      messages:
        accountName:
          required: Every account needs a name
    states:
      Active: [Inactive, Suspended]
      Inactive:
        transitions: [Active]
        color: gray
      Suspended:
        transitions: [Active]
        color: red
        icon: pause
    logic:
      on_create:
        - set_status_active
"""

MODULE_YAML = """\
module:
  id: account-management
  phase: 1
entity:
  name: Account
  fields:
    - id: uuid (required)
    - accountName: string (required)
    - status: enum[AccountStatus] (required)
    - createdAt: datetime
"""


@pytest.fixture
def block_source() -> str:
    return BLOCK_SOURCE


@pytest.fixture
def graph_source() -> str:
    return GRAPH_SOURCE


@pytest.fixture
def registry_document() -> dict:
    return copy.deepcopy(REGISTRY_DOCUMENT)


@pytest.fixture
def registry(registry_document) -> SchemaRegistry:
    return SchemaRegistry.load(registry_document)


@pytest.fixture
def registry_file(tmp_path, registry_document) -> Path:
    path = tmp_path / "busm-model.json"
    path.write_text(json.dumps(registry_document, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def rules_file(tmp_path) -> Path:
    path = tmp_path / "rules.yaml"
    path.write_text(RULES_YAML, encoding="utf-8")
    return path


@pytest.fixture
def module_dir(tmp_path) -> Path:
    directory = tmp_path / "modules"
    directory.mkdir()
    (directory / "account-module-phase1.yaml").write_text(MODULE_YAML, encoding="utf-8")
    return directory


@pytest.fixture
def planner_settings(tmp_path, registry_file, module_dir) -> Settings:
    return Settings(
        registry_path=registry_file,
        module_dir=module_dir,
        snapshot_dir=tmp_path / "database" / "state",
        migrations_dir=tmp_path / "database" / "migrations",
        types_dir=tmp_path / "database" / "types",
    )
