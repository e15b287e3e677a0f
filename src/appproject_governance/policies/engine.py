"""Project RBAC policy engine.

Evaluates the policies attached to a project's roles.  A request names a
subject (``proj:<project>:<role>`` or an SSO group mapped to a role), a
resource, an action and an object.  Every policy that matches contributes
its effect; a matching ``deny`` always wins, and a request no policy matches
is denied.

Example
-------
>>> from appproject_governance.project.schema import AppProject, ProjectRole
>>> project = AppProject(
...     name="my-proj",
...     roles=[ProjectRole(
...         name="ci",
...         policies=["p, proj:my-proj:ci, applications, sync, my-proj/*, allow"],
...     )],
... )
>>> engine = ProjectPolicyEngine(project)
>>> engine.enforce("proj:my-proj:ci", "applications", "sync", "my-proj/guestbook").allowed
True
"""
from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from appproject_governance.matching.glob import glob_match
from appproject_governance.policies.parser import PolicyStatement

if TYPE_CHECKING:
    from appproject_governance.project.schema import AppProject, ProjectRole

logger = logging.getLogger(__name__)

_SUBJECT_PREFIX = "proj:"


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of a single enforcement request.

    Attributes
    ----------
    allowed:
        Whether the request is granted.
    reason:
        Human-readable explanation.
    matched_policy:
        The policy line that decided the request, if any.
    """

    allowed: bool
    reason: str
    matched_policy: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


@dataclass(frozen=True)
class _RolePolicy:
    role: str
    statement: PolicyStatement


class ProjectPolicyEngine:
    """Evaluates the role policies of one project.

    Every role policy is validated when the engine is built, so a malformed
    project fails here rather than at request time.

    Parameters
    ----------
    project:
        The project whose roles are enforced.

    Raises
    ------
    PolicyValidationError
        If any role policy is malformed.
    """

    def __init__(self, project: AppProject) -> None:
        self._project = project
        self._policies: list[_RolePolicy] = [
            _RolePolicy(role.name, PolicyStatement.from_string(project.name, role.name, line))
            for role in project.roles
            for line in role.policies
        ]

    @property
    def project_name(self) -> str:
        return self._project.name

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def enforce(
        self,
        subject: str,
        resource: str,
        action: str,
        obj: str,
        groups: Sequence[str] = (),
    ) -> PolicyDecision:
        """Decide whether *subject* (or any of its *groups*) may act on *obj*.

        Parameters
        ----------
        subject:
            ``proj:<project>:<role>`` or any other principal name.
        resource:
            RBAC resource, e.g. ``applications``.
        action:
            Requested action, e.g. ``sync`` or ``update/apps/Deployment/web``.
        obj:
            ``<project>/<app>`` or ``<project>/<namespace>/<app>``.
        groups:
            SSO groups of the caller; a role listing one of them applies.

        Returns
        -------
        PolicyDecision
        """
        roles = self._roles_for(subject, groups)
        if not roles:
            return PolicyDecision(
                allowed=False,
                reason=f"subject '{subject}' has no role in project '{self.project_name}'",
            )

        allow_match: _RolePolicy | None = None
        for policy in self._policies:
            if policy.role not in roles or not self._matches(policy.statement, resource, action, obj):
                continue
            if policy.statement.is_deny():
                logger.debug("Denied %s %s %s by %s", subject, action, obj, policy.statement)
                return PolicyDecision(
                    allowed=False,
                    reason=f"denied by role '{policy.role}'",
                    matched_policy=str(policy.statement),
                )
            allow_match = allow_match or policy

        if allow_match is not None:
            return PolicyDecision(
                allowed=True,
                reason=f"allowed by role '{allow_match.role}'",
                matched_policy=str(allow_match.statement),
            )
        return PolicyDecision(allowed=False, reason="no matching policy")

    def enforce_jwt(
        self,
        claims: Mapping[str, object],
        resource: str,
        action: str,
        obj: str,
        now: float | None = None,
    ) -> PolicyDecision:
        """Enforce a request made with a project role token.

        The token's ``sub`` claim names the role; the token must still be
        listed on that role (matched by ``jti``, or by ``iat`` for tokens
        without an id) and must not be expired.

        Parameters
        ----------
        claims:
            Decoded token claims (``sub``, ``iat``, optional ``jti``/``exp``).
        now:
            Current time in epoch seconds (for testing).
        """
        effective_now = time.time() if now is None else now
        subject = str(claims.get("sub", ""))
        role = self._role_from_subject(subject)
        if role is None:
            return PolicyDecision(allowed=False, reason=f"unknown role subject '{subject}'")

        token_id = str(claims.get("jti") or "")
        issued_at = claims.get("iat")
        token = next(
            (
                t
                for t in role.jwt_tokens
                if (token_id and t.id == token_id)
                or (not token_id and issued_at is not None and t.iat == issued_at)
            ),
            None,
        )
        if token is None:
            return PolicyDecision(
                allowed=False, reason=f"token is not issued for role '{role.name}'"
            )

        claim_exp = claims.get("exp")
        expired = token.expired(effective_now) or (
            isinstance(claim_exp, (int, float)) and 0 < claim_exp <= effective_now
        )
        if expired:
            return PolicyDecision(allowed=False, reason="token is expired")
        return self.enforce(subject, resource, action, obj)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _role_from_subject(self, subject: str) -> ProjectRole | None:
        if not subject.startswith(_SUBJECT_PREFIX):
            return None
        project, _, role_name = subject[len(_SUBJECT_PREFIX) :].partition(":")
        if project != self.project_name:
            return None
        try:
            _, role = self._project.get_role_by_name(role_name)
        except KeyError:
            return None
        return role

    def _roles_for(self, subject: str, groups: Sequence[str]) -> set[str]:
        roles: set[str] = set()
        role = self._role_from_subject(subject)
        if role is not None:
            roles.add(role.name)
        for project_role in self._project.roles:
            if any(group in project_role.groups for group in groups):
                roles.add(project_role.name)
        return roles

    @staticmethod
    def _matches(statement: PolicyStatement, resource: str, action: str, obj: str) -> bool:
        if statement.resource not in ("*", resource):
            return False
        if not glob_match(statement.action, action, allow_negation=False):
            return False
        return glob_match(statement.object, obj, allow_negation=False)
