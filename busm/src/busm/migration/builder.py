"""Discovery and table building: module configuration to relational table."""

import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Union

import yaml
from pydantic import BaseModel, ValidationError

from busm.config.logging import get_logger
from busm.errors import ConfigurationError, TypeMismatchWarning
from busm.ir.model import EnumType, FieldSpec, normalize_primitive
from busm.ir.module_config import ModuleConfig
from busm.ir.snapshot import ColumnSpec, IndexSpec, TableSchema
from busm.registry.schema_registry import SchemaRegistry
from busm.utils.naming import to_snake_case

logger = get_logger(__name__)

_ENUM_TOKEN = re.compile(r"^enum\[(?P<name>\w+)\]$", re.IGNORECASE)

SQL_TYPES = {
    "uuid": "UUID",
    "string": "VARCHAR(255)",
    "email": "VARCHAR(255)",
    "phone": "VARCHAR(20)",
    "text": "TEXT",
    "integer": "INTEGER",
    "decimal": "DECIMAL(10, 2)",
    "boolean": "BOOLEAN",
    "datetime": "TIMESTAMPTZ",
    "date": "DATE",
}
ENUM_SQL_TYPE = "VARCHAR(50)"
FALLBACK_SQL_TYPE = "VARCHAR(255)"

TIMESTAMP_FIELDS = ("createdAt", "updatedAt", "created_at", "updated_at")


class PlannerWarning(BaseModel):
    """A non-fatal discrepancy found during discovery."""

    code: str  # "TYPE_MISMATCH" or "UNKNOWN_FIELD"
    field: str
    message: str
    resolution: Optional[str] = None


@dataclass
class ResolvedField:
    """A module field after reconciliation with the registry."""

    name: str
    type: str  # primitive name or enum[Name]
    required: bool = False
    unique: bool = False
    primary_key: bool = False
    foreign_key: bool = False
    max_length: Optional[int] = None
    enum_values: List[str] = field(default_factory=list)
    default: Any = None


@dataclass
class Discovery:
    """Everything the build phase needs, gathered before any write happens."""

    config: ModuleConfig
    entity: str
    table: str
    fields: List[ResolvedField]
    warnings: List[PlannerWarning] = field(default_factory=list)
    source: Optional[Path] = None


def find_module_config(module: Union[str, Path], module_dir: Path, phase: int = 1) -> Path:
    """
    Locate a module configuration file.

    `module` may be a path to a YAML file, or a module name looked up in
    module_dir as `<name>-module-phase<N>-auto.yaml`, then
    `<name>-module-phase<N>.yaml`, then `<name>.yaml`.

    Raises:
        ConfigurationError: If no candidate exists
    """
    direct = Path(module)
    if direct.suffix in (".yaml", ".yml"):
        if direct.exists():
            return direct
        raise ConfigurationError(f"Module configuration not found: {direct}")

    candidates = [
        module_dir / f"{module}-module-phase{phase}-auto.yaml",
        module_dir / f"{module}-module-phase{phase}.yaml",
        module_dir / f"{module}.yaml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    tried = ", ".join(str(c) for c in candidates)
    raise ConfigurationError(f"Module configuration for '{module}' not found (tried {tried})")


def load_module_config(path: Path) -> ModuleConfig:
    """
    Read and validate a module configuration YAML file.

    Raises:
        ConfigurationError: If the file cannot be parsed or lacks an entity
    """
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read module configuration {path}: {e}") from e
    try:
        return ModuleConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid module configuration {path}: {e}") from e


def registry_type_token(spec: FieldSpec) -> str:
    if isinstance(spec.type, EnumType):
        return f"enum[{spec.type.enum}]"
    return spec.type_name


def normalize_type_token(token: str) -> str:
    match = _ENUM_TOKEN.match(token.strip())
    if match:
        return f"enum[{match.group('name')}]"
    return normalize_primitive(token) or token.strip().lower()


def discover(config: ModuleConfig, registry: SchemaRegistry, source: Optional[Path] = None) -> Discovery:
    """
    Reconcile a module configuration with the registry.

    The registry type wins on a type mismatch; a field the registry does not
    know keeps its configured type. Both are recorded as warnings.

    Raises:
        UnknownEntityError: If the module's entity is not in the registry
    """
    entity = registry.require_entity(config.entity)
    pk = registry.get_primary_key(entity.name) or "id"
    found: List[PlannerWarning] = []
    resolved: List[ResolvedField] = []

    for mf in config.fields:
        declared = normalize_type_token(mf.type)
        spec = entity.fields.get(mf.name)
        if spec is None:
            found.append(
                PlannerWarning(
                    code="UNKNOWN_FIELD",
                    field=mf.name,
                    message=f"Field '{mf.name}' not found in registry entity '{entity.name}'",
                    resolution=f"Using configured type {declared}",
                )
            )
            logger.warning(found[-1].message)
            resolved.append(
                ResolvedField(
                    name=mf.name,
                    type=declared,
                    required=mf.required or mf.name == pk,
                    unique=mf.unique,
                    primary_key=mf.name == pk,
                )
            )
            continue

        authoritative = registry_type_token(spec)
        if declared != authoritative:
            message = (
                f"Field '{mf.name}' type mismatch (module: {declared}, registry: {authoritative})"
            )
            found.append(
                PlannerWarning(
                    code="TYPE_MISMATCH",
                    field=mf.name,
                    message=message,
                    resolution="Using registry type",
                )
            )
            logger.warning(message)
            warnings.warn(message, TypeMismatchWarning, stacklevel=2)

        resolved.append(
            ResolvedField(
                name=mf.name,
                type=authoritative,
                required=mf.required or spec.required or spec.is_primary_key,
                unique=mf.unique or (spec.unique and not spec.is_primary_key),
                primary_key=mf.name == pk,
                foreign_key=spec.is_foreign_key,
                max_length=spec.constraints.max_length,
                enum_values=(
                    registry.get_enum_values(spec.type.enum) if isinstance(spec.type, EnumType) else []
                ),
                default=spec.default,
            )
        )

    logger.info(
        f"Discovered {len(resolved)} fields for {entity.name} with {len(found)} warnings"
    )
    return Discovery(
        config=config,
        entity=entity.name,
        table=entity.table_name,
        fields=resolved,
        warnings=found,
        source=source,
    )


def sql_type(f: ResolvedField) -> str:
    if f.type.startswith("enum["):
        return ENUM_SQL_TYPE
    if f.type in ("string", "email") and f.max_length:
        return f"VARCHAR({f.max_length})"
    return SQL_TYPES.get(f.type, FALLBACK_SQL_TYPE)


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def default_value(f: ResolvedField) -> Optional[str]:
    """SQL default inferred from the field's role, else its declared default."""
    if f.primary_key and f.type == "uuid":
        return "gen_random_uuid()"
    if f.name in TIMESTAMP_FIELDS:
        return "NOW()"
    if f.name == "status":
        return _literal(f.enum_values[0] if f.enum_values else "Active")
    if f.default is not None:
        return _literal(f.default)
    return None


def build_table(discovery: Discovery) -> TableSchema:
    """
    Translate resolved fields into a relational table.

    Column names are snake_case. One index is created per foreign-key-shaped
    column (a non-key column ending in `_id`, or a registry foreign key).
    """
    table = discovery.table
    columns: List[ColumnSpec] = []
    indexes: List[IndexSpec] = []
    for f in discovery.fields:
        column = to_snake_case(f.name)
        columns.append(
            ColumnSpec(
                name=column,
                sql_type=sql_type(f),
                required=f.required,
                primary_key=f.primary_key,
                unique=f.unique,
                default=default_value(f),
            )
        )
        if not f.primary_key and (column.endswith("_id") or f.foreign_key):
            indexes.append(IndexSpec(name=f"idx_{table}_{column}", column=column))

    logger.info(f"Built schema for table {table}: {len(columns)} columns, {len(indexes)} indexes")
    return TableSchema(name=table, entity=discovery.entity, columns=columns, indexes=indexes)
