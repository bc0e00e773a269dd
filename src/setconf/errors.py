"""Exception hierarchy for setconf.

All exceptions inherit from SetconfError for consistent handling.
Specific exceptions provide context for different failure modes.
"""
from typing import Any, Optional


class SetconfError(Exception):
    """Base exception for all setconf errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # Set when the discard issued after this error failed too
        self.rollback_error: Optional[BaseException] = None

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Compile-time errors (no I/O done)
class ValidationError(SetconfError):
    """Options tree violates its field model constraints."""

    def __init__(self, errors: list[str], warnings: Optional[list[str]] = None) -> None:
        super().__init__("; ".join(errors), {"errors": len(errors)})
        self.errors = list(errors)
        self.warnings = list(warnings or [])


class ParseError(SetconfError):
    """Caller input cannot be turned into an options tree."""


class AlreadyExistsError(SetconfError):
    """Target object already exists on the device before create."""

    def __init__(self, feature: str, identity: str) -> None:
        super().__init__(
            f"{feature} {identity} already exists",
            {"feature": feature, "identity": identity},
        )
        self.feature = feature
        self.identity = identity


# Decompile errors
class ConversionError(SetconfError):
    """A statement value could not be converted to its field type."""

    def __init__(self, field: str, statement: str, raw: str, expected: str) -> None:
        super().__init__(
            f"failed to convert value {raw!r} of field {field} to {expected} "
            f"in statement {statement!r}",
            {"field": field, "statement": statement},
        )
        self.field = field
        self.statement = statement
        self.raw = raw


class UnrecognizedStatementError(SetconfError):
    """Strict decompile found statements the field model does not describe."""

    def __init__(self, statements: list[str]) -> None:
        super().__init__(
            f"{len(statements)} unrecognized statement(s): " + "; ".join(statements),
        )
        self.statements = list(statements)


# Transport errors (raised after an attempted rollback)
class TransportError(SetconfError):
    """A device session call failed during an apply."""


class DeviceBusyError(SetconfError):
    """Raised by a session when another client holds the configuration lock."""


class LockError(TransportError):
    """Exclusive configuration lock could not be acquired."""


class SendError(TransportError):
    """Sending a statement batch to the candidate configuration failed."""


class CommitError(TransportError):
    """Device refused to commit the candidate configuration."""


class ConsistencyError(SetconfError):
    """Device accepted the commit but the target is not observable."""

    def __init__(self, feature: str, identity: str, path: str) -> None:
        super().__init__(
            f"{feature} {identity} not exists after commit => check your config",
            {"feature": feature, "identity": identity, "path": path},
        )
        self.feature = feature
        self.identity = identity
        self.path = path


class InternalError(SetconfError):
    """Engine reached a state it should never reach."""


# Configuration errors
class ConfigError(SetconfError):
    """Engine settings are missing or invalid."""
