"""Project schema: pydantic v2 models for projects and applications.

Documents use the camelCase keys of the AppProject resource
(``sourceRepos``, ``clusterResourceWhitelist``, ``syncWindows``...) while
Python code uses snake_case attribute names.  Every model is frozen;
collections are tuples, so "changing" a project means building a new one.

Example
-------
>>> project = AppProject.model_validate({
...     "name": "team-a",
...     "sourceRepos": ["https://github.com/team-a/*"],
...     "destinations": [{"server": "*", "namespace": "team-a-*"}],
... })
>>> project.destinations[0].namespace
'team-a-*'
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from appproject_governance.windows.sync_window import SyncWindow, SyncWindows

_MODEL_CONFIG = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


# ---------------------------------------------------------------------------
# Destinations and resources
# ---------------------------------------------------------------------------


class ApplicationDestination(BaseModel):
    """A permitted (or, with ``!``, excluded) deployment target.

    Each field is a glob pattern.  ``namespace`` may be a brace set such as
    ``!{kube-system,argocd}``.
    """

    model_config = _MODEL_CONFIG

    server: str = ""
    namespace: str = ""
    name: str = ""


class Cluster(BaseModel):
    """A concrete cluster, identified by API server URL and/or name."""

    model_config = _MODEL_CONFIG

    server: str = ""
    name: str = ""


class GroupKind(BaseModel):
    """A Kubernetes API group and kind; either may be a glob pattern."""

    model_config = _MODEL_CONFIG

    group: str = ""
    kind: str = ""


class DestinationServiceAccount(BaseModel):
    """Service account used to sync into a matching destination."""

    model_config = _MODEL_CONFIG

    server: str = ""
    namespace: str = ""
    default_service_account: str = ""


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class JWTToken(BaseModel):
    """A token issued for a project role.

    Attributes
    ----------
    iat:
        Issued-at, seconds since the epoch.
    exp:
        Expiry, seconds since the epoch; ``None`` or ``0`` never expires.
    id:
        Token identifier; defaults to ``str(iat)`` after normalisation.
    """

    model_config = _MODEL_CONFIG

    iat: int
    exp: int | None = None
    id: str = ""

    def expired(self, now_epoch: float) -> bool:
        """Return True if the token has an expiry at or before *now_epoch*."""
        return self.exp is not None and 0 < self.exp <= now_epoch


class ProjectRole(BaseModel):
    """A named role with policies, SSO groups and issued tokens."""

    model_config = _MODEL_CONFIG

    name: str
    description: str = ""
    policies: tuple[str, ...] = Field(default_factory=tuple)
    groups: tuple[str, ...] = Field(default_factory=tuple)
    jwt_tokens: tuple[JWTToken, ...] = Field(default_factory=tuple)


class ProjectStatus(BaseModel):
    """Observed state; currently the tokens issued per role."""

    model_config = _MODEL_CONFIG

    jwt_tokens_by_role: dict[str, tuple[JWTToken, ...]] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Project
# ---------------------------------------------------------------------------


class AppProject(BaseModel):
    """A logical grouping of applications and the rules that bound them.

    Attributes
    ----------
    name:
        Project name; also the first segment of RBAC policy objects.
    source_repos:
        Ordered repository URL globs, optionally ``!``-negated.
    destinations:
        Ordered destination entries; later entries can override earlier ones.
    cluster_resource_whitelist, cluster_resource_blacklist:
        Cluster-scoped kinds.  An empty whitelist permits every kind.
    namespace_resource_whitelist, namespace_resource_blacklist:
        Namespaced kinds.  An empty whitelist permits every kind.
    permit_only_project_scoped_clusters:
        When set, a destination must also be a cluster scoped to the project.
    roles:
        Project roles with their RBAC policies.
    sync_windows:
        Windows gating when syncs may run.
    source_namespaces:
        Globs of namespaces allowed to host applications of this project.
    destination_service_accounts:
        Service accounts to impersonate per destination.
    """

    model_config = _MODEL_CONFIG

    name: str
    description: str = ""
    source_repos: tuple[str, ...] = Field(default_factory=tuple)
    destinations: tuple[ApplicationDestination, ...] = Field(default_factory=tuple)
    cluster_resource_whitelist: tuple[GroupKind, ...] = Field(default_factory=tuple)
    cluster_resource_blacklist: tuple[GroupKind, ...] = Field(default_factory=tuple)
    namespace_resource_whitelist: tuple[GroupKind, ...] = Field(default_factory=tuple)
    namespace_resource_blacklist: tuple[GroupKind, ...] = Field(default_factory=tuple)
    permit_only_project_scoped_clusters: bool = False
    roles: tuple[ProjectRole, ...] = Field(default_factory=tuple)
    sync_windows: tuple[SyncWindow, ...] = Field(default_factory=tuple)
    source_namespaces: tuple[str, ...] = Field(default_factory=tuple)
    destination_service_accounts: tuple[DestinationServiceAccount, ...] = Field(
        default_factory=tuple
    )
    status: ProjectStatus = Field(default_factory=ProjectStatus)

    @property
    def windows(self) -> SyncWindows:
        """The project's sync windows as a :class:`SyncWindows` collection."""
        return SyncWindows(self.sync_windows)

    def with_windows(self, windows: Sequence[SyncWindow]) -> AppProject:
        """Return a copy whose sync windows are replaced by *windows*."""
        return self.model_copy(update={"sync_windows": tuple(windows)})

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def get_role_by_name(self, name: str) -> tuple[int, ProjectRole]:
        """Return ``(index, role)`` for the role called *name*.

        Raises
        ------
        KeyError
            If the project has no such role.
        """
        for index, role in enumerate(self.roles):
            if role.name == name:
                return index, role
        raise KeyError(f"role '{name}' does not exist in project '{self.name}'")

    def add_group_to_role(self, role_name: str, group: str) -> tuple[AppProject, bool]:
        """Return ``(project, changed)`` with *group* added to the role."""
        index, role = self.get_role_by_name(role_name)
        if group in role.groups:
            return self, False
        updated = role.model_copy(update={"groups": (*role.groups, group)})
        return self._replace_role(index, updated), True

    def remove_group_from_role(
        self, role_name: str, group: str
    ) -> tuple[AppProject, bool]:
        """Return ``(project, changed)`` with *group* removed from the role."""
        index, role = self.get_role_by_name(role_name)
        if group not in role.groups:
            return self, False
        remaining = tuple(g for g in role.groups if g != group)
        updated = role.model_copy(update={"groups": remaining})
        return self._replace_role(index, updated), True

    def _replace_role(self, index: int, role: ProjectRole) -> AppProject:
        roles = self.roles[:index] + (role,) + self.roles[index + 1 :]
        return self.model_copy(update={"roles": roles})

    def normalize_jwt_tokens(self) -> tuple[AppProject, bool]:
        """Reconcile role tokens with ``status.jwt_tokens_by_role``.

        Tokens without an id get ``str(iat)``.  Afterwards each role's
        token list and its status entry both hold the union of the two,
        ordered by issue time.

        Returns
        -------
        tuple[AppProject, bool]
            The normalised project and whether anything changed.
        """
        status_tokens = {
            role: _with_ids(tokens)
            for role, tokens in self.status.jwt_tokens_by_role.items()
        }

        roles: list[ProjectRole] = []
        merged_status: dict[str, tuple[JWTToken, ...]] = {}
        for role in self.roles:
            merged = _merge_tokens(_with_ids(role.jwt_tokens), status_tokens.get(role.name, ()))
            roles.append(role.model_copy(update={"jwt_tokens": merged}))
            if merged:
                merged_status[role.name] = merged

        normalised = self.model_copy(
            update={
                "roles": tuple(roles),
                "status": self.status.model_copy(
                    update={"jwt_tokens_by_role": merged_status}
                ),
            }
        )
        return normalised, normalised != self


def _with_ids(tokens: Sequence[JWTToken]) -> tuple[JWTToken, ...]:
    return tuple(
        token if token.id else token.model_copy(update={"id": str(token.iat)})
        for token in tokens
    )


def _merge_tokens(
    first: Sequence[JWTToken], second: Sequence[JWTToken]
) -> tuple[JWTToken, ...]:
    by_id: dict[str, JWTToken] = {}
    for token in (*first, *second):
        by_id.setdefault(token.id, token)
    return tuple(sorted(by_id.values(), key=lambda token: (token.iat, token.id)))


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


class Application(BaseModel):
    """The parts of an application that project checks look at."""

    model_config = _MODEL_CONFIG

    name: str
    namespace: str = ""
    project: str = ""
    destination: ApplicationDestination = Field(default_factory=ApplicationDestination)


def project_from_manifest(manifest: Mapping[str, object]) -> AppProject:
    """Build an :class:`AppProject` from an ``AppProject`` resource manifest.

    ``metadata.name`` supplies the name and ``spec`` the body; a
    ``status`` block is carried over when present.
    """
    metadata = manifest.get("metadata") or {}
    spec = manifest.get("spec") or {}
    if not isinstance(metadata, Mapping) or not isinstance(spec, Mapping):
        raise ValueError("AppProject manifest 'metadata' and 'spec' must be mappings")
    body: dict[str, object] = dict(spec)
    body["name"] = metadata.get("name", "")
    if "status" in manifest:
        body["status"] = manifest["status"]
    return AppProject.model_validate(body)
