"""Exception hierarchy for appproject-governance.

Every error raised by the library derives from :class:`GovernanceError`.
Validation and parse failures additionally derive from ``ValueError`` so
callers that only care about "bad input" can catch the builtin type.

Example
-------
>>> from appproject_governance.errors import GovernanceError, WindowParseError
>>> issubclass(WindowParseError, GovernanceError)
True
"""
from __future__ import annotations


class GovernanceError(Exception):
    """Base class for every error raised by appproject-governance."""


class ProjectValidationError(GovernanceError, ValueError):
    """Raised when a project specification fails validation.

    Attributes
    ----------
    project_name:
        Name of the project that failed validation, if known.
    """

    def __init__(self, message: str, project_name: str | None = None) -> None:
        self.project_name = project_name
        super().__init__(message)


class PolicyValidationError(ProjectValidationError):
    """Raised for malformed policy statements and invalid role/group names."""


class ProjectConfigError(GovernanceError, ValueError):
    """Raised when a project document cannot be read or parsed.

    Attributes
    ----------
    config_path:
        The path to the document that caused the error, if known.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        self.config_path = config_path
        prefix = f"[{config_path}] " if config_path else ""
        super().__init__(f"{prefix}{message}")


class WindowParseError(GovernanceError, ValueError):
    """Raised when a sync window schedule, duration or timezone is malformed."""


class AuthorizationError(GovernanceError):
    """Base class for errors raised while deciding an authorization."""


class ClusterLookupError(AuthorizationError):
    """Raised when the cluster lister callback fails.

    The lister's own exception is always chained as ``__cause__``.

    Attributes
    ----------
    project_name:
        The project whose clusters were being listed.
    """

    def __init__(self, project_name: str, reason: object) -> None:
        self.project_name = project_name
        super().__init__(f"could not retrieve project clusters: {reason}")


class RetryConfigError(GovernanceError, ValueError):
    """Raised when a retry backoff configuration cannot be interpreted."""
