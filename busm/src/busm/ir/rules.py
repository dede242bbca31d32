"""Business rule models loaded from rule files."""

import re
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, field_validator


class StateConfig(BaseModel):
    """State entry in object form, with optional display hints."""

    transitions: List[str] = Field(default_factory=list)
    color: Optional[str] = None
    icon: Optional[str] = None


class ValidationRules(BaseModel):
    """Per-entity validation block."""

    required: List[str] = Field(default_factory=list)
    unique: List[str] = Field(default_factory=list)
    patterns: Dict[str, str] = Field(default_factory=dict)
    messages: Dict[str, Dict[str, str]] = Field(default_factory=dict)

    @field_validator("patterns")
    @classmethod
    def _patterns_compile(cls, v: Dict[str, str]) -> Dict[str, str]:
        for field_name, pattern in v.items():
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid pattern for '{field_name}': {pattern!r} ({e})") from e
        return v


class EntityRules(BaseModel):
    """Rules declared for one entity."""

    validation: ValidationRules = Field(default_factory=ValidationRules)
    # Each state maps to a transition list or an object with `transitions`
    states: Dict[str, Union[List[str], StateConfig]] = Field(default_factory=dict)
    logic: Dict[str, List[Any]] = Field(default_factory=dict)


class RulesDocument(BaseModel):
    """Top level of a business-rules file."""

    module: Dict[str, Any] = Field(default_factory=dict)
    business_rules: Dict[str, EntityRules]
