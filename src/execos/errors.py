"""Domain errors.

Three kinds of failure reach a caller: the input is malformed, the action
doesn't fit the current state, or the thing referenced doesn't exist.
All of them are raised before any mutation happens. A fourth, StorageError,
means the database did not hold a row it just wrote.
"""

from __future__ import annotations


class ExecOSError(Exception):
    """Base class for every error the engine raises on purpose."""


class ValidationError(ExecOSError, ValueError):
    """Malformed input shape or range (e.g. a block below the minimum)."""


class StateConflictError(ExecOSError):
    """Action is invalid for the entity's current state."""


class NotFoundError(ExecOSError, LookupError):
    """A referenced task, session, or workspace does not exist."""


class StorageError(ExecOSError):
    """The store lost a row it was expected to hold."""
