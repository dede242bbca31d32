"""Record validation against registry constraints and business rules."""

import re
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from busm.config.logging import get_logger
from busm.ir.model import EnumType, FieldSpec, ForeignKeyType, PrimitiveType

if TYPE_CHECKING:
    from busm.registry.schema_registry import SchemaRegistry
    from busm.rules.rules_book import RulesBook

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationResult(BaseModel):
    """Outcome of a validation pass. Returned, never raised."""

    valid: bool
    errors: List[str] = Field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_iso(value: Any, parser) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parser(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


class Validator:
    """
    Checks records against an entity's field definitions.

    Every check that fails adds an error; a record's defects are all reported
    in one pass. When a RulesBook is supplied its required fields and
    patterns apply on top of the registry's constraints.
    """

    def __init__(self, registry: "SchemaRegistry", rules: Optional["RulesBook"] = None):
        self.registry = registry
        self.rules = rules

    def validate(self, entity_name: str, record: Mapping[str, Any]) -> ValidationResult:
        """
        Validate one record.

        Args:
            entity_name: Entity the record belongs to
            record: Field values keyed by field name

        Returns:
            ValidationResult with every error found
        """
        entity = self.registry.get_entity(entity_name)
        if entity is None:
            return ValidationResult(
                valid=False, errors=[f"Entity '{entity_name}' not found in registry"]
            )

        errors: List[str] = []
        for name in self._required_fields(entity_name):
            if record.get(name) is None:
                errors.append(self._message(entity_name, name, "required", f"Required field '{name}' is missing"))

        patterns = self.rules.get_field_patterns(entity_name) if self.rules else {}
        for name, value in record.items():
            spec = entity.fields.get(name)
            if spec is None:
                errors.append(f"Field '{name}' not defined in entity '{entity_name}'")
                continue
            if value is None:
                continue
            type_error = self._check_type(spec, value)
            if type_error:
                errors.append(type_error)
                continue
            errors.extend(self._check_value(spec, value))
            if name in patterns and isinstance(value, str) and not re.search(patterns[name], value):
                errors.append(self._message(entity_name, name, "pattern", f"Field '{name}' format is invalid"))

        if errors:
            logger.debug(f"{entity_name} record failed validation with {len(errors)} errors")
        return ValidationResult(valid=not errors, errors=errors)

    def validate_many(self, entity_name: str, records: Iterable[Mapping[str, Any]]) -> ValidationResult:
        """
        Validate a batch, adding cross-record uniqueness checks.

        Errors are prefixed with the record's position, e.g. `record[2]: ...`.
        """
        if not self.registry.has_entity(entity_name):
            return ValidationResult(
                valid=False, errors=[f"Entity '{entity_name}' not found in registry"]
            )

        unique = list(self.registry.get_unique_fields(entity_name))
        if self.rules:
            unique += [f for f in self.rules.get_unique_fields(entity_name) if f not in unique]

        errors: List[str] = []
        seen: Dict[str, Dict[Any, int]] = {name: {} for name in unique}
        for index, record in enumerate(records):
            result = self.validate(entity_name, record)
            errors.extend(f"record[{index}]: {e}" for e in result.errors)
            for name in unique:
                value = record.get(name)
                if value is None:
                    continue
                key = value if isinstance(value, (str, int, float, bool)) else repr(value)
                if key in seen[name]:
                    message = self._message(
                        entity_name,
                        name,
                        "unique",
                        f"Field '{name}' value {value!r} duplicates record[{seen[name][key]}]",
                    )
                    errors.append(f"record[{index}]: {message}")
                else:
                    seen[name][key] = index
        return ValidationResult(valid=not errors, errors=errors)

    def _required_fields(self, entity_name: str) -> List[str]:
        required = self.registry.get_required_fields(entity_name)
        if self.rules:
            required += [f for f in self.rules.get_required_fields(entity_name) if f not in required]
        return required

    def _message(self, entity_name: str, field: str, rule: str, default: str) -> str:
        if self.rules and self.rules.get_entity_rules(entity_name) is not None:
            custom = self.rules.get_validation_rules(entity_name).messages.get(field, {}).get(rule)
            if custom:
                return custom
        return default

    def _check_type(self, spec: FieldSpec, value: Any) -> Optional[str]:
        name = spec.name
        if isinstance(spec.type, EnumType):
            if not isinstance(value, str):
                return f"Field '{name}' must be a string enum value"
            return None

        primitive = spec.type.name if isinstance(spec.type, PrimitiveType) else spec.type.base
        if primitive == "integer":
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif primitive == "decimal":
            ok = _is_number(value)
        elif primitive == "boolean":
            ok = isinstance(value, bool)
        elif primitive == "date":
            ok = isinstance(value, date) or _is_iso(value, date.fromisoformat)
        elif primitive == "datetime":
            ok = isinstance(value, datetime) or _is_iso(value, datetime.fromisoformat)
        elif primitive == "uuid":
            ok = isinstance(value, uuid.UUID) or isinstance(value, str)
        else:
            ok = isinstance(value, str)
        if ok:
            return None
        target = f"foreign key to {spec.type.entity}" if isinstance(spec.type, ForeignKeyType) else ""
        suffix = f" ({target})" if target else ""
        return f"Field '{name}' must be of type {primitive}{suffix}, got {type(value).__name__}"

    def _check_value(self, spec: FieldSpec, value: Any) -> List[str]:
        errors: List[str] = []
        name = spec.name
        c = spec.constraints

        if isinstance(spec.type, EnumType):
            allowed = self.registry.get_enum_values(spec.type.enum)
            if value not in allowed:
                errors.append(f"Field '{name}' must be one of {allowed}, got {value!r}")

        if spec.type_name == "email" and not EMAIL_PATTERN.match(value):
            errors.append(f"Field '{name}' must be a valid email address")
        if spec.type_name == "uuid" and isinstance(value, str):
            try:
                uuid.UUID(value)
            except ValueError:
                errors.append(f"Field '{name}' must be a valid UUID")

        if isinstance(value, str):
            if c.min_length is not None and len(value) < c.min_length:
                errors.append(f"Field '{name}' must be at least {c.min_length} characters")
            if c.max_length is not None and len(value) > c.max_length:
                errors.append(f"Field '{name}' must be at most {c.max_length} characters")
            if c.pattern is not None and not re.search(c.pattern, value):
                errors.append(f"Field '{name}' does not match pattern {c.pattern}")
        elif _is_number(value):
            if c.min is not None and value < c.min:
                errors.append(f"Field '{name}' must be at least {c.min}")
            if c.max is not None and value > c.max:
                errors.append(f"Field '{name}' must be at most {c.max}")
        return errors
