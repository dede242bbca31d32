"""Business rules loaded from YAML, queried by entity."""

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from busm.config.logging import get_logger
from busm.errors import ConfigurationError
from busm.ir.rules import EntityRules, RulesDocument, StateConfig, ValidationRules
from busm.rules.gaps import Gap, GapLog
from busm.validation.validator import ValidationResult

if TYPE_CHECKING:
    from busm.registry.schema_registry import SchemaRegistry

logger = get_logger(__name__)

DEFAULT_MESSAGES = {
    "required": "{field} is required",
    "unique": "{field} must be unique",
    "pattern": "{field} format is invalid",
}


class RulesBook:
    """
    Read-only view over a business rules document.

    Lookups for entities or states without rules return empty values and
    record a Gap instead of raising.
    """

    def __init__(
        self,
        document: RulesDocument,
        gaps: Optional[GapLog] = None,
        source: Optional[str] = None,
    ):
        self.document = document
        self.gaps = gaps if gaps is not None else GapLog()
        self.source = source

    @classmethod
    def from_dict(cls, data: Any, gaps: Optional[GapLog] = None, source: Optional[str] = None) -> "RulesBook":
        """
        Build a RulesBook from decoded YAML.

        Raises:
            ConfigurationError: If there is no business_rules section or it is malformed
        """
        if not isinstance(data, dict) or "business_rules" not in data:
            raise ConfigurationError(f"No business_rules section found in {source or 'rules document'}")
        try:
            document = RulesDocument.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Malformed business rules in {source or 'rules document'}: {e}") from e
        return cls(document, gaps=gaps, source=source)

    @classmethod
    def load(cls, path: Union[str, Path], gaps: Optional[GapLog] = None) -> "RulesBook":
        """
        Load a rules YAML file.

        Args:
            path: YAML file with a `business_rules` section
            gaps: Gap log to record into (a new one by default)

        Returns:
            RulesBook

        Raises:
            ConfigurationError: If the file is missing, not YAML, or malformed
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Rules file not found: {path}")
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse rules file {path}: {e}") from e
        book = cls.from_dict(data, gaps=gaps, source=str(path))
        module_id = book.document.module.get("id", "unknown")
        logger.info(
            f"Loaded business rules for module {module_id}: "
            f"{len(book.document.business_rules)} entities"
        )
        return book

    @property
    def entities(self) -> List[str]:
        return list(self.document.business_rules)

    def get_entity_rules(self, entity: str) -> Optional[EntityRules]:
        return self.document.business_rules.get(entity)

    def get_validation_rules(self, entity: str) -> ValidationRules:
        rules = self.get_entity_rules(entity)
        if rules is None:
            self.gaps.log(
                Gap(
                    category="MISSING_RULES",
                    entity=entity,
                    expected="Business rules definition",
                    assumption="No validation rules",
                    impact="MEDIUM",
                )
            )
            return ValidationRules()
        return rules.validation

    def get_required_fields(self, entity: str) -> List[str]:
        return list(self.get_validation_rules(entity).required)

    def get_unique_fields(self, entity: str) -> List[str]:
        return list(self.get_validation_rules(entity).unique)

    def get_field_patterns(self, entity: str) -> Dict[str, str]:
        return dict(self.get_validation_rules(entity).patterns)

    def is_field_required(self, entity: str, field: str) -> bool:
        return field in self.get_required_fields(entity)

    def is_field_unique(self, entity: str, field: str) -> bool:
        return field in self.get_unique_fields(entity)

    def get_validation_message(self, entity: str, field: str, rule: str) -> str:
        """Custom message for a field's rule, else the default wording."""
        custom = self.get_validation_rules(entity).messages.get(field, {}).get(rule)
        if custom:
            return custom
        return DEFAULT_MESSAGES.get(rule, "{field} validation failed").format(field=field)

    # States

    def get_state_transitions(self, entity: str) -> Dict[str, List[str]]:
        """States of an entity mapped to the states they may move to."""
        rules = self.get_entity_rules(entity)
        if rules is None:
            return {}
        return {
            state: list(config.transitions if isinstance(config, StateConfig) else config)
            for state, config in rules.states.items()
        }

    def get_allowed_transitions(self, entity: str, state: str) -> List[str]:
        states = self.get_state_transitions(entity)
        if state not in states:
            self.gaps.log(
                Gap(
                    category="MISSING_STATE",
                    entity=entity,
                    state=state,
                    expected="State transition definition",
                    assumption="No transitions allowed",
                    impact="LOW",
                )
            )
            return []
        return states[state]

    def get_state_display(self, entity: str, state: str) -> Dict[str, str]:
        rules = self.get_entity_rules(entity)
        config = rules.states.get(state) if rules else None
        color, icon = "gray", "circle"
        if isinstance(config, StateConfig):
            color = config.color or color
            icon = config.icon or icon
        return {"color": color, "icon": icon, "label": state}

    def get_business_logic(self, entity: str, event: str) -> List[Any]:
        rules = self.get_entity_rules(entity)
        if rules is None:
            return []
        return list(rules.logic.get(event, []))

    def summary(self, entity: str) -> Optional[Dict[str, Any]]:
        rules = self.get_entity_rules(entity)
        if rules is None:
            return None
        return {
            "required": self.get_required_fields(entity),
            "unique": self.get_unique_fields(entity),
            "patterns": self.get_field_patterns(entity),
            "states": self.get_state_transitions(entity),
            "logic": dict(rules.logic),
        }

    def check_rules(self, registry: Optional["SchemaRegistry"] = None) -> ValidationResult:
        """
        Check the rule set for internal consistency.

        Transitions must target declared states. With a registry, every
        entity and field a rule names must exist, and registry entities
        without rules are recorded as gaps. Patterns were already compiled
        when the document loaded.

        Returns:
            ValidationResult listing every problem found
        """
        errors: List[str] = []
        for entity, rules in self.document.business_rules.items():
            states = self.get_state_transitions(entity)
            for state, targets in states.items():
                for target in targets:
                    if target not in states:
                        errors.append(f"{entity}.states.{state} transitions to undeclared state '{target}'")

            if registry is None:
                continue
            if not registry.has_entity(entity):
                errors.append(f"Rules reference unknown entity '{entity}'")
                continue
            known = {f.name for f in registry.get_fields(entity)}
            named = [
                *(("required", f) for f in rules.validation.required),
                *(("unique", f) for f in rules.validation.unique),
                *(("patterns", f) for f in rules.validation.patterns),
            ]
            for section, field in named:
                if field not in known:
                    errors.append(f"{entity}.validation.{section} names unknown field '{field}'")

        if registry is not None:
            for entity in registry.model.entities:
                if entity not in self.document.business_rules:
                    self.get_validation_rules(entity)

        return ValidationResult(valid=not errors, errors=errors)
