"""Exception taxonomy for the cycle engine.

Handlers map these onto responses: ``InvalidParameter`` is a rejected
request, ``NotFound`` an explicit absent result, ``StorageFailure`` an
internal error.  The engine never retries.
"""

from __future__ import annotations


class CycleEngineError(Exception):
    """Base class for every error raised by the cycle engine."""


class InvalidParameter(CycleEngineError, ValueError):
    """A caller-supplied value is out of range or malformed."""


class NotFound(CycleEngineError, LookupError):
    """No record exists for the requested user."""


class StorageFailure(CycleEngineError):
    """The document store raised while serving a query.

    Attributes:
        collection: Collection the failed query targeted, when known.
    """

    def __init__(self, message: str, collection: str | None = None) -> None:
        super().__init__(message)
        self.collection = collection
