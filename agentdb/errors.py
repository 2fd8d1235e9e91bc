"""
Error taxonomy for agentdb.

Lookups that find nothing return None or an empty list; they never raise.
Everything else surfaces one of these to the caller.
"""


class StoreError(Exception):
    """Base class for every error raised by the store."""


class ConstraintViolation(StoreError):
    """A uniqueness/integrity rule was broken, or an identifier is malformed."""


class EngineFailure(StoreError):
    """The embedded engine failed (lost connection, aborted transaction, I/O)."""


class InvalidInput(StoreError, ValueError):
    """Wrong embedding dimensionality, missing scoping fields, bad field names."""
