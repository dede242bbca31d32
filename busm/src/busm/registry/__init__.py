"""Schema registry."""

from .schema_registry import SchemaRegistry

__all__ = ["SchemaRegistry"]
