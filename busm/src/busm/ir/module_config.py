"""Module configuration model consumed by the migration planner."""

import re
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, model_validator

# "string (required)" shorthand used by the module authoring tool
_SHORTHAND = re.compile(r"^\s*(?P<type>[\w\[\]]+)\s*(?P<flags>\(.*\))?\s*$")


class ModuleField(BaseModel):
    """A field selected for a module, tagged with its declared type."""

    name: str
    type: str = "string"
    required: bool = False
    unique: bool = False


class ModuleInfo(BaseModel):
    """Module identity block."""

    id: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None
    description: Optional[str] = None
    phase: Optional[int] = None


class ModuleConfig(BaseModel):
    """Entity name plus the ordered field list a module exposes."""

    module: ModuleInfo = Field(default_factory=ModuleInfo)
    entity: str
    fields: List[ModuleField] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        module = data.get("module")
        if isinstance(module, str):
            data["module"] = {"id": module}

        # entity may be a bare name or {name: ..., fields: [...]}
        entity = data.get("entity")
        if isinstance(entity, dict):
            data["entity"] = entity.get("name")
            if "fields" not in data and "fields" in entity:
                data["fields"] = entity["fields"]

        data["fields"] = [_coerce_field(f) for f in data.get("fields") or []]
        return data


def _coerce_field(raw: Any) -> Any:
    """Accept `{name: ..., type: ...}` mappings or `{name: "type (required)"}` shorthand."""
    if not isinstance(raw, dict):
        return raw
    if "name" in raw:
        return raw
    if len(raw) != 1:
        return raw
    name, spec = next(iter(raw.items()))
    if spec is None:
        return {"name": name}
    match = _SHORTHAND.match(str(spec))
    if not match:
        return {"name": name, "type": str(spec).strip()}
    flags = (match.group("flags") or "").lower()
    result: Dict[str, Any] = {
        "name": name,
        "type": match.group("type"),
        "required": "required" in flags,
        "unique": "unique" in flags,
    }
    return result
