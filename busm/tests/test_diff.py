"""Tests for schema diffing, merging and DDL rendering."""

from busm.ir.snapshot import ColumnSpec, IndexSpec, SchemaSnapshot, TableSchema
from busm.migration.diff import diff, merge
from busm.migration.render import add_column, create_table, render_migration, render_python, render_typescript


def _account(*extra: ColumnSpec, iteration: int = 1) -> SchemaSnapshot:
    columns = [
        ColumnSpec(name="id", sql_type="UUID", required=True, primary_key=True, default="gen_random_uuid()"),
        ColumnSpec(name="account_name", sql_type="VARCHAR(100)", required=True),
        *extra,
    ]
    table = TableSchema(name="account", entity="Account", columns=columns)
    return SchemaSnapshot(iteration=iteration, tables={"account": table})


def test_self_diff_is_empty():
    """Diffing a snapshot with itself plans nothing."""
    snapshot = _account()
    plan = diff(snapshot, snapshot, timestamp="2026-01-05")
    assert plan.is_empty
    assert plan.ignored == []


def test_fresh_baseline_creates_tables():
    """Without a previous snapshot every table is created."""
    plan = diff(None, _account(), timestamp="2026-01-05")
    assert [s.table for s in plan.creates] == ["account"]
    assert plan.alters == []
    assert plan.creates[0].sql.startswith("CREATE TABLE account (")


def test_new_column_is_one_alter():
    """An added column becomes one ADD COLUMN and no CREATE."""
    email = ColumnSpec(name="email", sql_type="VARCHAR(255)", unique=True)
    plan = diff(_account(), _account(email, iteration=2), timestamp="2026-01-05")

    assert plan.creates == []
    assert len(plan.alters) == 1
    assert plan.alters[0].sql == "ALTER TABLE account ADD COLUMN email VARCHAR(255) UNIQUE;"


def test_destructive_changes_are_ignored():
    """Type changes and dropped columns or tables are noted, not emitted."""
    old = _account(ColumnSpec(name="phone", sql_type="VARCHAR(20)"))
    old.tables["legacy"] = TableSchema(name="legacy")
    new = SchemaSnapshot(
        iteration=2,
        tables={
            "account": TableSchema(
                name="account",
                columns=[
                    ColumnSpec(name="id", sql_type="UUID", required=True, primary_key=True),
                    ColumnSpec(name="account_name", sql_type="TEXT", required=True),
                ],
            )
        },
    )
    plan = diff(old, new, timestamp="2026-01-05")

    assert plan.is_empty
    assert plan.ignored == [
        "account.account_name: type change VARCHAR(100) -> TEXT",
        "account.phone: column no longer configured",
        "legacy: table no longer configured",
    ]


def test_merge_keeps_old_columns():
    """Merged snapshots keep every previous column and append new ones."""
    old = _account(ColumnSpec(name="phone", sql_type="VARCHAR(20)"))
    new = _account(ColumnSpec(name="email", sql_type="VARCHAR(255)"), iteration=2)
    merged = merge(old, new)

    assert merged.iteration == 2
    assert merged.tables["account"].column_names == ["id", "account_name", "phone", "email"]


def test_added_required_column_without_default_is_nullable():
    """Existing rows have no value, so NOT NULL needs a default."""
    column = ColumnSpec(name="region", sql_type="VARCHAR(255)", required=True)
    assert add_column("account", column, []) == "ALTER TABLE account ADD COLUMN region VARCHAR(255);"

    status = ColumnSpec(name="status", sql_type="VARCHAR(50)", required=True, default="'Active'")
    assert add_column("account", status, []) == (
        "ALTER TABLE account ADD COLUMN status VARCHAR(50) DEFAULT 'Active' NOT NULL;"
    )


def test_add_column_includes_its_index():
    """Indexes on the added column are created with it."""
    column = ColumnSpec(name="region_id", sql_type="INTEGER")
    indexes = [IndexSpec(name="idx_account_region_id", column="region_id")]
    sql = add_column("account", column, indexes)
    assert sql.splitlines()[1] == "CREATE INDEX IF NOT EXISTS idx_account_region_id ON account(region_id);"


def test_create_table_definition():
    """Column clauses render in key, default, null, unique order."""
    sql = create_table(_account().tables["account"])
    assert "  id UUID PRIMARY KEY DEFAULT gen_random_uuid()," in sql
    assert "  account_name VARCHAR(100) NOT NULL" in sql


def test_render_migration_header():
    """Migration files carry a header and the skipped changes."""
    old = _account(ColumnSpec(name="phone", sql_type="VARCHAR(20)"))
    new = _account(ColumnSpec(name="email", sql_type="VARCHAR(255)"), iteration=2)
    text = render_migration(diff(old, new, timestamp="2026-01-05"), entity="Account", module="accounts", iteration=2)

    assert text.startswith("-- Generated by busm\n-- Module: accounts\n-- Entity: Account\n-- Iteration: 2\n-- Date: 2026-01-05\n")
    assert "-- Not applied: account.phone: column no longer configured" in text
    assert text.endswith("ALTER TABLE account ADD COLUMN email VARCHAR(255);\n")


def test_typescript_bindings():
    """Row fields are nullable unless required; keys and defaults are optional on insert."""
    text = render_typescript(_account(ColumnSpec(name="credit_limit", sql_type="DECIMAL(10, 2)")))
    assert "          credit_limit: number | null" in text
    assert "          id?: string" in text
    assert "          account_name: string" in text


def test_python_bindings():
    """TypedDict classes separate mandatory insert fields."""
    text = render_python(_account())
    assert "class AccountRow(TypedDict):" in text
    assert "class AccountInsertRequired(TypedDict):\n    account_name: str" in text
    assert "class AccountInsert(AccountInsertRequired, total=False):\n    id: str" in text
