"""Exception types shared across BUSM components."""

from typing import Optional


class BusmError(Exception):
    """Base class for all BUSM errors."""

    pass


class ParseError(BusmError):
    """Raised when a notation source is malformed."""

    def __init__(self, reason: str, line: Optional[int] = None):
        self.reason = reason
        self.line = line
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.line is None:
            return self.reason
        return f"line {self.line}: {self.reason}"


class UnknownEntityError(BusmError, KeyError):
    """Raised when a query or configuration names an entity the registry lacks."""

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(entity)

    def __str__(self) -> str:
        return f"Unknown entity: {self.entity}"


class ConfigurationError(BusmError):
    """Missing or unreadable module configuration, registry source or rules file."""

    pass


class SnapshotError(BusmError):
    """A persisted schema snapshot could not be read or written."""

    pass


class SnapshotLockedError(SnapshotError):
    """Another planner run holds the snapshot directory lock."""

    pass


class TypeMismatchWarning(UserWarning):
    """Module configuration disagrees with the registry about a field type."""

    pass
