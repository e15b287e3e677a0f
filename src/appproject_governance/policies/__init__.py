"""RBAC policy grammar and the project policy engine."""
from __future__ import annotations

from appproject_governance.policies.engine import PolicyDecision, ProjectPolicyEngine
from appproject_governance.policies.parser import (
    VALID_RESOURCES,
    PolicyStatement,
    is_valid_action,
    parse_policy,
    validate_group_name,
    validate_policy,
    validate_role_name,
)

__all__ = [
    "VALID_RESOURCES",
    "PolicyDecision",
    "PolicyStatement",
    "ProjectPolicyEngine",
    "is_valid_action",
    "parse_policy",
    "validate_group_name",
    "validate_policy",
    "validate_role_name",
]
