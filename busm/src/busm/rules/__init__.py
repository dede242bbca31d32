"""Business rules and gap tracking."""

from .gaps import Gap, GapLog
from .rules_book import RulesBook

__all__ = ["Gap", "GapLog", "RulesBook"]
