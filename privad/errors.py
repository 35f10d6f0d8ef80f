"""
privAD Exceptions
=================

Fatal error types raised by the audit pipeline.

Recoverable conditions (missing privileged groups, circular nesting,
unexpected member classes) are not exceptions: they are recorded in the
WarningsCollector and surface as their own report.
"""


class PrivadError(Exception):
    """Base class for all privAD errors."""


class SchemaConfigurationError(PrivadError, ValueError):
    """The attribute catalog contains a node shape it cannot expand."""


class DirectoryError(PrivadError):
    """Base class for directory-service failures."""


class ObjectNotFoundError(DirectoryError):
    """A lookup by reference did not return an entry."""

    def __init__(self, identity: str, object_class: str = "object"):
        self.identity = identity
        self.object_class = object_class
        super().__init__(f"{object_class} not found: {identity}")


class CollaboratorError(DirectoryError):
    """The directory service failed after a group or member handle was obtained.

    Wraps connectivity and permission errors from the gateway. Aborts the run.
    """


class AuditAbortedError(PrivadError):
    """A fatal directory error stopped the audit.

    Attributes:
        result: AuditResult with the rows and warnings produced before the
            failure (reports for them have already been written)
    """

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result
