"""Error taxonomy for storage and entry operations.

Every transactional operation either commits fully or rolls back and raises
one of these. Nothing here is retried by the library; callers decide.
"""

from __future__ import annotations


class LineperfError(Exception):
    """Base class for all lineperf errors."""


class ValidationError(LineperfError, ValueError):
    """A submitted field is missing, empty or malformed. Nothing was persisted."""


class ConflictError(LineperfError):
    """The operation would break a reference (e.g. deleting a product in use)."""


class NotFoundError(LineperfError, LookupError):
    """The header or product id does not exist."""


class PersistenceError(LineperfError):
    """The underlying transaction failed and was rolled back.

    The original database error is available as ``__cause__``.
    """


class FormatError(LineperfError, ValueError):
    """A backup snapshot could not be parsed or lacks the expected collections."""
