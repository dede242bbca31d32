"""DDL and type-binding rendering for tables and migration plans."""

from typing import List, Optional

from busm.ir.snapshot import ColumnSpec, IndexSpec, MigrationPlan, SchemaSnapshot, TableSchema
from busm.utils.naming import to_camel_case


def column_definition(column: ColumnSpec) -> str:
    parts = [column.name, column.sql_type]
    if column.primary_key:
        parts.append("PRIMARY KEY")
    if column.default:
        parts.append(f"DEFAULT {column.default}")
    if column.required and not column.primary_key:
        parts.append("NOT NULL")
    if column.unique and not column.primary_key:
        parts.append("UNIQUE")
    return " ".join(parts)


def create_index(table: str, index: IndexSpec) -> str:
    return f"CREATE INDEX IF NOT EXISTS {index.name} ON {table}({index.column});"


def create_table(table: TableSchema) -> str:
    """CREATE TABLE statement followed by the table's indexes."""
    lines = [f"CREATE TABLE {table.name} ("]
    body = [f"  {column_definition(c)}" for c in table.columns]
    lines.append(",\n".join(body))
    lines.append(");")
    lines.extend(create_index(table.name, i) for i in table.indexes)
    return "\n".join(lines)


def add_column(table: str, column: ColumnSpec, indexes: List[IndexSpec]) -> str:
    """
    ALTER TABLE ... ADD COLUMN for one column, plus any index on it.

    NOT NULL is only emitted with a default, since existing rows have no value.
    """
    definition = column_definition(column)
    if column.required and not column.default:
        definition = definition.replace(" NOT NULL", "")
    lines = [f"ALTER TABLE {table} ADD COLUMN {definition};"]
    lines.extend(create_index(table, i) for i in indexes if i.column == column.name)
    return "\n".join(lines)


def render_migration(
    plan: MigrationPlan,
    entity: Optional[str] = None,
    module: Optional[str] = None,
    iteration: Optional[int] = None,
) -> str:
    """Full migration file text: header comments, then CREATEs, then ALTERs."""
    header = ["-- Generated by busm"]
    if module:
        header.append(f"-- Module: {module}")
    if entity:
        header.append(f"-- Entity: {entity}")
    if iteration is not None:
        header.append(f"-- Iteration: {iteration}")
    header.append(f"-- Date: {plan.timestamp}")
    for note in plan.ignored:
        header.append(f"-- Not applied: {note}")
    body = [s.sql for s in plan.statements()]
    return "\n".join(header) + "\n\n" + "\n\n".join(body) + "\n"


def _scalar(sql_type: str) -> str:
    upper = sql_type.upper()
    if upper.startswith(("INTEGER", "DECIMAL", "NUMERIC", "BIGINT")):
        return "number"
    if upper.startswith("BOOLEAN"):
        return "boolean"
    return "string"


_PYTHON_TYPES = {"number": "float", "boolean": "bool", "string": "str"}


def render_typescript(snapshot: SchemaSnapshot) -> str:
    """`Database` interface with Row and Insert shapes for each table."""
    lines = [
        "// Generated by busm",
        f"// Iteration: {snapshot.iteration}",
        "",
        "export interface Database {",
        "  public: {",
        "    Tables: {",
    ]
    for table in snapshot.tables.values():
        lines.append(f"      {table.name}: {{")
        lines.append("        Row: {")
        for c in table.columns:
            nullable = "" if c.required else " | null"
            lines.append(f"          {c.name}: {_scalar(c.sql_type)}{nullable}")
        lines.append("        }")
        lines.append("        Insert: {")
        for c in table.columns:
            optional = "?" if c.primary_key or c.default or not c.required else ""
            nullable = "" if c.required else " | null"
            lines.append(f"          {c.name}{optional}: {_scalar(c.sql_type)}{nullable}")
        lines.append("        }")
        lines.append("      }")
    lines.extend(["    }", "  }", "}"])
    return "\n".join(lines) + "\n"


def _class_name(table: str) -> str:
    camel = to_camel_case(table)
    return camel[:1].upper() + camel[1:]


def render_python(snapshot: SchemaSnapshot) -> str:
    """TypedDict Row and Insert classes for each table."""
    lines = [
        "# Generated by busm",
        f"# Iteration: {snapshot.iteration}",
        "from typing import Optional, TypedDict",
    ]
    for table in snapshot.tables.values():
        name = _class_name(table.name)
        lines.extend(["", "", f"class {name}Row(TypedDict):"])
        for c in table.columns:
            py = _PYTHON_TYPES[_scalar(c.sql_type)]
            lines.append(f"    {c.name}: {py if c.required else f'Optional[{py}]'}")
        if not table.columns:
            lines.append("    pass")

        mandatory = [c for c in table.columns if c.required and not c.primary_key and not c.default]
        optional = [c for c in table.columns if c not in mandatory]
        lines.extend(["", "", f"class {name}InsertRequired(TypedDict):"])
        for c in mandatory:
            lines.append(f"    {c.name}: {_PYTHON_TYPES[_scalar(c.sql_type)]}")
        if not mandatory:
            lines.append("    pass")
        lines.extend(["", "", f"class {name}Insert({name}InsertRequired, total=False):"])
        for c in optional:
            py = _PYTHON_TYPES[_scalar(c.sql_type)]
            lines.append(f"    {c.name}: {py if c.required else f'Optional[{py}]'}")
        if not optional:
            lines.append("    pass")
    return "\n".join(lines) + "\n"


BINDING_RENDERERS = {
    "typescript": (render_typescript, "ts"),
    "python": (render_python, "py"),
}
