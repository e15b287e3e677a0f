"""Source, destination and resource-kind authorization for a project.

These checks answer whether an application of a project may

- pull manifests from a repository (:func:`is_source_permitted`),
- deploy to a cluster and namespace (:func:`is_destination_permitted`),
- manage a resource kind (:func:`is_group_kind_permitted`),
- live in a given namespace at all (:func:`is_app_namespace_permitted`).

All patterns are globs; ``!`` negates.  The functions are pure except for
the optional cluster lister consulted by :func:`is_destination_permitted`.

:class:`ProjectAuthorizer` wraps the functions for one project and returns
:class:`AuthorizationResult` objects suitable for logging and auditing.

Example
-------
>>> from appproject_governance.project.schema import AppProject
>>> project = AppProject(name="demo", source_repos=["https://github.com/argoproj/*"])
>>> is_source_permitted(project, "https://github.com/argoproj/argo-cd.git")
True
>>> is_source_permitted(project, "https://gitlab.com/x")
False
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Literal

from appproject_governance.errors import ClusterLookupError
from appproject_governance.matching.glob import (
    glob_match,
    is_deny_pattern,
    match_any,
    normalize_git_url,
)
from appproject_governance.project.schema import (
    Application,
    AppProject,
    Cluster,
    GroupKind,
)

logger = logging.getLogger(__name__)

ClusterLister = Callable[[str], Sequence[Cluster]]
CheckType = Literal["source", "destination", "kind", "app_namespace"]

_MATCH_ALL = "*"
_URL_SEPARATORS = "/"
DEFAULT_PROJECT = "default"


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def is_source_permitted(project: AppProject, repo_url: str) -> bool:
    """Return True if *repo_url* is an allowed source for *project*.

    Patterns are evaluated in order.  A positive pattern that matches grants
    access; a negated pattern that matches blocks it until a later literal
    ``*`` re-permits everything.  Negations never grant access on their own.
    """
    candidate = normalize_git_url(repo_url)
    any_positive_match = False
    negative_blocked = False

    for pattern in project.source_repos:
        if pattern == _MATCH_ALL:
            any_positive_match = True
            negative_blocked = False
            continue

        if is_deny_pattern(pattern):
            body = normalize_git_url(pattern[1:])
            if glob_match(body, candidate, allow_negation=False, separators=_URL_SEPARATORS):
                negative_blocked = True
        elif glob_match(
            normalize_git_url(pattern),
            candidate,
            allow_negation=False,
            separators=_URL_SEPARATORS,
        ):
            any_positive_match = True

    return any_positive_match and not negative_blocked


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


def is_destination_permitted(
    project: AppProject,
    cluster: Cluster,
    namespace: str,
    cluster_lister: ClusterLister | None = None,
) -> bool:
    """Return True if *project* may deploy to *namespace* on *cluster*.

    Parameters
    ----------
    project:
        The project whose destinations are checked.
    cluster:
        The target cluster; matched by server URL or by name.
    namespace:
        The target namespace.
    cluster_lister:
        Returns the clusters scoped to a project.  Consulted only when the
        project sets ``permit_only_project_scoped_clusters``.

    Raises
    ------
    ClusterLookupError
        If the cluster lister fails.
    """
    if not _destination_globs_match(project, cluster, namespace):
        return False
    if not project.permit_only_project_scoped_clusters:
        return True
    return _is_project_scoped_cluster(project, cluster, cluster_lister)


def _destination_globs_match(project: AppProject, cluster: Cluster, namespace: str) -> bool:
    any_match = False
    for item in project.destinations:
        name_matched = bool(cluster.name) and glob_match(item.name, cluster.name)
        server_matched = bool(cluster.server) and glob_match(item.server, cluster.server)
        cluster_matched = name_matched or server_matched
        namespace_matched = glob_match(item.namespace, namespace)

        if cluster_matched and namespace_matched:
            any_match = True
        elif namespace_matched and (
            (not name_matched and is_deny_pattern(item.name))
            or (not server_matched and is_deny_pattern(item.server))
        ):
            return False
        elif cluster_matched and is_deny_pattern(item.namespace):
            return False
    return any_match


def _is_project_scoped_cluster(
    project: AppProject,
    cluster: Cluster,
    cluster_lister: ClusterLister | None,
) -> bool:
    if cluster_lister is None:
        logger.warning(
            "Project %s only permits project-scoped clusters but no cluster lister is configured",
            project.name,
        )
        return False
    try:
        project_clusters = cluster_lister(project.name)
    except Exception as exc:
        logger.warning("Cluster lister failed for project %s: %s", project.name, exc)
        raise ClusterLookupError(project.name, exc) from exc

    return any(
        (cluster.server and scoped.server == cluster.server)
        or (cluster.name and scoped.name == cluster.name)
        for scoped in project_clusters
    )


# ---------------------------------------------------------------------------
# Resource kinds
# ---------------------------------------------------------------------------


def is_group_kind_permitted(
    project: AppProject,
    group_kind: GroupKind,
    namespaced: bool,
) -> bool:
    """Return True if resources of *group_kind* may be managed.

    An empty whitelist permits every kind; the blacklist always wins.
    """
    if namespaced:
        whitelist = project.namespace_resource_whitelist
        blacklist = project.namespace_resource_blacklist
    else:
        whitelist = project.cluster_resource_whitelist
        blacklist = project.cluster_resource_blacklist

    whitelisted = not whitelist or any(_group_kind_matches(e, group_kind) for e in whitelist)
    blacklisted = any(_group_kind_matches(e, group_kind) for e in blacklist)
    return whitelisted and not blacklisted


def _group_kind_matches(entry: GroupKind, candidate: GroupKind) -> bool:
    return glob_match(entry.group, candidate.group, allow_negation=False) and glob_match(
        entry.kind, candidate.kind, allow_negation=False
    )


# ---------------------------------------------------------------------------
# Application namespaces
# ---------------------------------------------------------------------------


def is_app_namespace_permitted(
    project: AppProject,
    app: Application,
    controller_namespace: str,
) -> bool:
    """Return True if *app* may live in its namespace under *project*.

    Applications in the controller's own namespace, or without a namespace,
    are always permitted.
    """
    if not app.namespace or app.namespace == controller_namespace:
        return True
    return match_any(project.source_namespaces, app.namespace, allow_negation=False)


def rbac_name(
    app: Application,
    controller_namespace: str,
    default_project: str = DEFAULT_PROJECT,
) -> str:
    """Return the RBAC object name of *app*.

    ``<project>/<app>`` for applications in the controller namespace,
    ``<project>/<namespace>/<app>`` otherwise.
    """
    project = app.project or default_project
    if controller_namespace and app.namespace and app.namespace != controller_namespace:
        return f"{project}/{app.namespace}/{app.name}"
    return f"{project}/{app.name}"


# ---------------------------------------------------------------------------
# ProjectAuthorizer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthorizationResult:
    """Immutable result of one authorization check.

    Attributes
    ----------
    allowed:
        Whether the subject is permitted.
    reason:
        Human-readable explanation of the decision.
    subject:
        What was checked (repository URL, ``server/namespace``, ``group/kind``).
    check:
        Which check produced the result.
    """

    allowed: bool
    reason: str
    subject: str
    check: CheckType

    def __bool__(self) -> bool:
        """Return True if the subject is permitted."""
        return self.allowed


class ProjectAuthorizer:
    """Runs authorization checks for a single project.

    Parameters
    ----------
    project:
        The project to authorize against.
    cluster_lister:
        Optional lister for project-scoped clusters.
    controller_namespace:
        Namespace the control plane itself runs in.
    """

    def __init__(
        self,
        project: AppProject,
        cluster_lister: ClusterLister | None = None,
        controller_namespace: str = "argocd",
    ) -> None:
        self._project = project
        self._cluster_lister = cluster_lister
        self._controller_namespace = controller_namespace

    @property
    def project(self) -> AppProject:
        return self._project

    def check_source(self, repo_url: str) -> AuthorizationResult:
        allowed = is_source_permitted(self._project, repo_url)
        reason = (
            "repository matches the project's source repositories"
            if allowed
            else f"repository '{repo_url}' is not permitted in project '{self._project.name}'"
        )
        return self._result(allowed, reason, repo_url, "source")

    def check_destination(self, cluster: Cluster, namespace: str) -> AuthorizationResult:
        """Check a destination; lister failures propagate as ``ClusterLookupError``."""
        target = cluster.server or cluster.name
        subject = f"{target}/{namespace}"
        allowed = is_destination_permitted(
            self._project, cluster, namespace, self._cluster_lister
        )
        reason = (
            "destination matches the project's destinations"
            if allowed
            else (
                f"destination server '{cluster.server}', name '{cluster.name}' and "
                f"namespace '{namespace}' do not match any of the allowed destinations "
                f"in project '{self._project.name}'"
            )
        )
        return self._result(allowed, reason, subject, "destination")

    def check_kind(self, group: str, kind: str, namespaced: bool) -> AuthorizationResult:
        scope = "namespaced" if namespaced else "cluster-scoped"
        subject = f"{group}/{kind}"
        allowed = is_group_kind_permitted(
            self._project, GroupKind(group=group, kind=kind), namespaced
        )
        reason = (
            f"{scope} resource kind is permitted"
            if allowed
            else (
                f"{scope} resource {subject} is not permitted in project "
                f"'{self._project.name}'"
            )
        )
        return self._result(allowed, reason, subject, "kind")

    def check_app_namespace(self, app: Application) -> AuthorizationResult:
        allowed = is_app_namespace_permitted(self._project, app, self._controller_namespace)
        reason = (
            "application namespace is permitted"
            if allowed
            else (
                f"application '{app.name}' in namespace '{app.namespace}' is not "
                f"permitted in project '{self._project.name}'"
            )
        )
        return self._result(allowed, reason, app.namespace, "app_namespace")

    def _result(
        self, allowed: bool, reason: str, subject: str, check: CheckType
    ) -> AuthorizationResult:
        logger.debug(
            "Project %s %s check for %r: allowed=%s",
            self._project.name,
            check,
            subject,
            allowed,
        )
        return AuthorizationResult(allowed=allowed, reason=reason, subject=subject, check=check)
