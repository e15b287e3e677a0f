"""Source, destination, resource-kind and namespace authorization."""
from __future__ import annotations

from appproject_governance.permissions.authorization import (
    AuthorizationResult,
    ClusterLister,
    ProjectAuthorizer,
    is_app_namespace_permitted,
    is_destination_permitted,
    is_group_kind_permitted,
    is_source_permitted,
    rbac_name,
)

__all__ = [
    "AuthorizationResult",
    "ClusterLister",
    "ProjectAuthorizer",
    "is_app_namespace_permitted",
    "is_destination_permitted",
    "is_group_kind_permitted",
    "is_source_permitted",
    "rbac_name",
]
