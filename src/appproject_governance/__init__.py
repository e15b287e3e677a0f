"""appproject-governance: project-scoped authorization and sync windows.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import appproject_governance as gov
>>> gov.__version__
'0.1.0'
>>> project = gov.AppProject(name="demo", source_repos=["https://github.com/argoproj/*"])
>>> gov.is_source_permitted(project, "https://github.com/argoproj/argo-cd.git")
True
"""
from __future__ import annotations

__version__: str = "0.1.0"

from appproject_governance.convenience import ProjectGovernor, WindowState
from appproject_governance.config import ConfigLoader, GovernanceConfig

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from appproject_governance.errors import (
    AuthorizationError,
    ClusterLookupError,
    GovernanceError,
    PolicyValidationError,
    ProjectConfigError,
    ProjectValidationError,
    RetryConfigError,
    WindowParseError,
)

# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------
from appproject_governance.matching.glob import glob_match, normalize_git_url

# ---------------------------------------------------------------------------
# Project model
# ---------------------------------------------------------------------------
from appproject_governance.project.schema import (
    Application,
    ApplicationDestination,
    AppProject,
    Cluster,
    DestinationServiceAccount,
    GroupKind,
    JWTToken,
    ProjectRole,
)
from appproject_governance.project.loader import ProjectLoader
from appproject_governance.project.store import ProjectStore
from appproject_governance.project.validation import validate_project, validation_errors

# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------
from appproject_governance.permissions.authorization import (
    AuthorizationResult,
    ProjectAuthorizer,
    is_app_namespace_permitted,
    is_destination_permitted,
    is_group_kind_permitted,
    is_source_permitted,
    rbac_name,
)

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------
from appproject_governance.policies.engine import PolicyDecision, ProjectPolicyEngine
from appproject_governance.policies.parser import (
    PolicyStatement,
    parse_policy,
    validate_group_name,
    validate_policy,
    validate_role_name,
)

# ---------------------------------------------------------------------------
# Sync windows
# ---------------------------------------------------------------------------
from appproject_governance.windows.sync_window import SyncWindow, SyncWindows

# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------
from appproject_governance.retry.backoff import (
    DEFAULT_SYNC_RETRY_MAX_DURATION,
    Backoff,
    RetryStrategy,
)

# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
from appproject_governance.audit.logger import DecisionAuditLogger

__all__ = [
    "__version__",
    # Convenience
    "ProjectGovernor",
    "WindowState",
    "ConfigLoader",
    "GovernanceConfig",
    # Errors
    "AuthorizationError",
    "ClusterLookupError",
    "GovernanceError",
    "PolicyValidationError",
    "ProjectConfigError",
    "ProjectValidationError",
    "RetryConfigError",
    "WindowParseError",
    # Matching
    "glob_match",
    "normalize_git_url",
    # Project model
    "AppProject",
    "Application",
    "ApplicationDestination",
    "Cluster",
    "DestinationServiceAccount",
    "GroupKind",
    "JWTToken",
    "ProjectLoader",
    "ProjectRole",
    "ProjectStore",
    "validate_project",
    "validation_errors",
    # Authorization
    "AuthorizationResult",
    "ProjectAuthorizer",
    "is_app_namespace_permitted",
    "is_destination_permitted",
    "is_group_kind_permitted",
    "is_source_permitted",
    "rbac_name",
    # Policies
    "PolicyDecision",
    "PolicyStatement",
    "ProjectPolicyEngine",
    "parse_policy",
    "validate_group_name",
    "validate_policy",
    "validate_role_name",
    # Sync windows
    "SyncWindow",
    "SyncWindows",
    # Retry
    "DEFAULT_SYNC_RETRY_MAX_DURATION",
    "Backoff",
    "RetryStrategy",
    # Audit
    "DecisionAuditLogger",
]
