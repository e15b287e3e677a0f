"""Convenience API for appproject-governance: one object per project.

Example
-------
::

    from appproject_governance import AppProject, ProjectGovernor
    governor = ProjectGovernor(AppProject(name="team-a", source_repos=["*"]))
    print(governor.check_source("https://github.com/team-a/app").allowed)

"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from appproject_governance.audit.logger import DecisionAuditLogger
from appproject_governance.config import GovernanceConfig
from appproject_governance.errors import WindowParseError
from appproject_governance.permissions.authorization import (
    AuthorizationResult,
    ClusterLister,
    ProjectAuthorizer,
    rbac_name,
)
from appproject_governance.policies.engine import PolicyDecision, ProjectPolicyEngine
from appproject_governance.project.schema import Application, AppProject, Cluster
from appproject_governance.retry.backoff import RetryStrategy
from appproject_governance.windows.sync_window import SyncWindows

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowState:
    """Sync window summary for one application at one instant.

    Attributes
    ----------
    active:
        Windows governing the application that are open now.
    can_sync_automatic:
        Whether an automated sync would be admitted.
    can_sync_manual:
        Whether a manual sync would be admitted.
    error:
        Parse error that forced both decisions to ``False``, if any.
    """

    active: SyncWindows
    can_sync_automatic: bool
    can_sync_manual: bool
    error: str | None = None


class ProjectGovernor:
    """All project decisions behind one object, with optional auditing.

    Parameters
    ----------
    project:
        The project to govern.
    config:
        Governance configuration; defaults apply when omitted.
    cluster_lister:
        Lister for project-scoped clusters.
    audit_logger:
        Decision log.  When omitted and ``config.audit.enabled`` is set, one
        is created at ``config.audit.log_path``.
    """

    def __init__(
        self,
        project: AppProject,
        config: GovernanceConfig | None = None,
        cluster_lister: ClusterLister | None = None,
        audit_logger: DecisionAuditLogger | None = None,
    ) -> None:
        self._project = project
        self._config = config or GovernanceConfig()
        if audit_logger is None and self._config.audit.enabled:
            audit_logger = DecisionAuditLogger(self._config.audit.log_path)
        self._audit = audit_logger
        self._authorizer = ProjectAuthorizer(
            project,
            cluster_lister=cluster_lister,
            controller_namespace=self._config.controller_namespace,
        )
        self._policy_engine: ProjectPolicyEngine | None = None

    @property
    def project(self) -> AppProject:
        return self._project

    @property
    def config(self) -> GovernanceConfig:
        return self._config

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def check_source(self, repo_url: str) -> AuthorizationResult:
        return self._audited(self._authorizer.check_source(repo_url))

    def check_destination(self, cluster: Cluster, namespace: str) -> AuthorizationResult:
        """Check a destination; ``ClusterLookupError`` propagates."""
        return self._audited(self._authorizer.check_destination(cluster, namespace))

    def check_kind(self, group: str, kind: str, namespaced: bool = True) -> AuthorizationResult:
        return self._audited(self._authorizer.check_kind(group, kind, namespaced))

    def check_app_namespace(self, app: Application) -> AuthorizationResult:
        return self._audited(self._authorizer.check_app_namespace(app))

    def rbac_name(self, app: Application) -> str:
        """RBAC object name of *app* under the configured controller namespace."""
        return rbac_name(app, self._config.controller_namespace, self._config.default_project)

    def enforce(
        self,
        subject: str,
        resource: str,
        action: str,
        obj: str,
        groups: Sequence[str] = (),
    ) -> PolicyDecision:
        """Evaluate the project's role policies for one request."""
        if self._policy_engine is None:
            self._policy_engine = ProjectPolicyEngine(self._project)
        decision = self._policy_engine.enforce(subject, resource, action, obj, groups)
        if self._audit is not None:
            self._audit.log_decision(
                "policy",
                self._project.name,
                f"{subject} {resource} {action} {obj}",
                decision.allowed,
                decision.reason,
            )
        return decision

    # ------------------------------------------------------------------
    # Sync windows
    # ------------------------------------------------------------------

    def windows_for(self, app: Application) -> SyncWindows:
        """The project's windows that govern *app*, with the default timezone applied."""
        default_tz = self._config.windows.default_time_zone
        windows = self._project.windows.matches(app)
        if not default_tz:
            return windows
        return SyncWindows(
            w if w.time_zone else w.model_copy(update={"time_zone": default_tz})
            for w in windows
        )

    def can_sync(
        self,
        app: Application,
        is_manual: bool = False,
        now: datetime | None = None,
    ) -> tuple[bool, str | None]:
        """Decide whether *app* may sync now.

        Returns
        -------
        tuple[bool, str | None]
            ``(allowed, error)``.  A malformed window yields
            ``(False, <message>)``.
        """
        effective_now = now or datetime.now(tz=timezone.utc)
        try:
            allowed = self.windows_for(app).can_sync(is_manual, effective_now)
        except WindowParseError as exc:
            logger.warning(
                "Denying sync of %s in project %s: %s", app.name, self._project.name, exc
            )
            self._audit_window(app, False, str(exc), is_manual)
            return False, str(exc)

        reason = "sync permitted by sync windows" if allowed else "sync blocked by sync windows"
        self._audit_window(app, allowed, reason, is_manual)
        return allowed, None

    def window_state(self, app: Application, now: datetime | None = None) -> WindowState:
        """Summarise the windows governing *app* at *now*."""
        effective_now = now or datetime.now(tz=timezone.utc)
        windows = self.windows_for(app)
        try:
            active = windows.active(effective_now)
            automatic = windows.can_sync(False, effective_now)
            manual = windows.can_sync(True, effective_now)
        except WindowParseError as exc:
            logger.warning(
                "Invalid sync windows in project %s: %s", self._project.name, exc
            )
            return WindowState(
                active=SyncWindows(),
                can_sync_automatic=False,
                can_sync_manual=False,
                error=str(exc),
            )
        return WindowState(active=active, can_sync_automatic=automatic, can_sync_manual=manual)

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------

    def next_retry_at(
        self,
        last_attempt_at: datetime,
        attempt: int,
        strategy: RetryStrategy | None = None,
    ) -> datetime | None:
        """Return when to retry, or ``None`` once the retry limit is used up."""
        effective = strategy or self._config.retry.strategy()
        if effective.is_exhausted(attempt):
            return None
        return effective.next_retry_at(last_attempt_at, attempt)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _audited(self, result: AuthorizationResult) -> AuthorizationResult:
        if self._audit is not None:
            self._audit.log_decision(
                result.check,
                self._project.name,
                result.subject,
                result.allowed,
                result.reason,
            )
        return result

    def _audit_window(self, app: Application, allowed: bool, reason: str, is_manual: bool) -> None:
        if self._audit is not None:
            self._audit.log_decision(
                "sync_window",
                self._project.name,
                app.name,
                allowed,
                reason,
                manual=is_manual,
            )

    def __repr__(self) -> str:
        return f"ProjectGovernor(project={self._project.name!r})"
