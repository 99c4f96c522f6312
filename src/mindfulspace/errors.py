"""Error taxonomy shared by every pillar.

A missing record is not an error: lookups and updates return ``None`` and let
the caller decide how to surface it.
"""


class MindfulSpaceError(Exception):
    """Base class for all errors raised by the package."""


class ValidationError(MindfulSpaceError):
    """Malformed input, rejected before any persistence I/O."""


class StorageError(MindfulSpaceError):
    """The persistence adapter failed to read or write."""


class UpstreamServiceError(MindfulSpaceError):
    """An external service (chat completion, identity provider) failed."""
