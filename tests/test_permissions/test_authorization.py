"""Tests for source, destination, kind and namespace authorization."""
from __future__ import annotations

import logging
from collections.abc import Sequence

import pytest

from appproject_governance.errors import ClusterLookupError
from appproject_governance.permissions.authorization import (
    ProjectAuthorizer,
    is_app_namespace_permitted,
    is_destination_permitted,
    is_group_kind_permitted,
    is_source_permitted,
    rbac_name,
)
from appproject_governance.project.schema import (
    Application,
    ApplicationDestination,
    AppProject,
    Cluster,
    GroupKind,
)

IN_CLUSTER = Cluster(server="https://kubernetes.default.svc", name="in-cluster")


def _dest(server: str = "", namespace: str = "", name: str = "") -> ApplicationDestination:
    return ApplicationDestination(server=server, namespace=namespace, name=name)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


class TestSourcePermitted:
    def test_wildcard(self) -> None:
        project = AppProject(name="p", source_repos=("*",))
        assert is_source_permitted(project, "https://anything.example.com/repo")

    def test_empty_denies(self) -> None:
        assert not is_source_permitted(AppProject(name="p"), "https://github.com/a/b")

    def test_glob(self) -> None:
        project = AppProject(name="p", source_repos=("https://github.com/argoproj/*",))
        assert is_source_permitted(project, "https://github.com/argoproj/argo-cd.git")
        assert not is_source_permitted(project, "https://gitlab.com/argoproj/argo-cd")

    def test_single_star_does_not_cross_path_segments(self) -> None:
        project = AppProject(name="p", source_repos=("https://github.com/argoproj/*",))
        assert not is_source_permitted(project, "https://github.com/argoproj/nested/repo")

    def test_double_star_crosses_path_segments(self) -> None:
        project = AppProject(name="p", source_repos=("https://github.com/argoproj/**",))
        assert is_source_permitted(project, "https://github.com/argoproj/nested/repo")

    def test_host_is_case_insensitive(self) -> None:
        project = AppProject(name="p", source_repos=("https://github.com/argoproj/argo-cd",))
        assert is_source_permitted(project, "https://GitHub.com/argoproj/argo-cd.git")

    def test_negation_blocks(self) -> None:
        project = AppProject(name="p", source_repos=("*", "!https://github.com/bad/*"))
        assert is_source_permitted(project, "https://github.com/good/repo")
        assert not is_source_permitted(project, "https://github.com/bad/repo")

    def test_negation_alone_grants_nothing(self) -> None:
        project = AppProject(name="p", source_repos=("!https://github.com/bad/*",))
        assert not is_source_permitted(project, "https://github.com/good/repo")

    def test_later_wildcard_resets_negation(self) -> None:
        project = AppProject(name="p", source_repos=("!https://github.com/bad/*", "*"))
        assert is_source_permitted(project, "https://github.com/bad/repo")


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


class TestDestinationPermitted:
    def test_wildcard(self) -> None:
        project = AppProject(name="p", destinations=(_dest("*", "*"),))
        assert is_destination_permitted(project, IN_CLUSTER, "anything")

    def test_empty_denies(self) -> None:
        assert not is_destination_permitted(AppProject(name="p"), IN_CLUSTER, "default")

    def test_server_and_namespace_glob(self) -> None:
        project = AppProject(
            name="p", destinations=(_dest("https://kubernetes.default.svc", "team-*"),)
        )
        assert is_destination_permitted(project, IN_CLUSTER, "team-a")
        assert not is_destination_permitted(project, IN_CLUSTER, "prod")
        assert not is_destination_permitted(
            project, Cluster(server="https://other"), "team-a"
        )

    def test_match_by_name(self) -> None:
        project = AppProject(name="p", destinations=(_dest(name="in-cluster", namespace="*"),))
        assert is_destination_permitted(project, Cluster(name="in-cluster"), "default")
        assert not is_destination_permitted(project, Cluster(name="remote"), "default")

    def test_negated_server(self) -> None:
        project = AppProject(
            name="p",
            destinations=(_dest("*", "*"), _dest("!https://bad.example.com", "*")),
        )
        assert is_destination_permitted(project, Cluster(server="https://good.example.com"), "ns")
        assert not is_destination_permitted(
            project, Cluster(server="https://bad.example.com"), "ns"
        )

    def test_negated_namespace_set(self) -> None:
        project = AppProject(
            name="p",
            destinations=(_dest("*", "*"), _dest("*", "!{kube-system,argocd}")),
        )
        assert is_destination_permitted(project, IN_CLUSTER, "team-a")
        assert not is_destination_permitted(project, IN_CLUSTER, "kube-system")
        assert not is_destination_permitted(project, IN_CLUSTER, "argocd")

    def test_negation_for_other_cluster_does_not_apply(self) -> None:
        project = AppProject(
            name="p",
            destinations=(
                _dest("*", "*"),
                _dest("https://prod.example.com", "!kube-system"),
            ),
        )
        assert is_destination_permitted(project, IN_CLUSTER, "kube-system")
        assert not is_destination_permitted(
            project, Cluster(server="https://prod.example.com"), "kube-system"
        )


class TestProjectScopedClusters:
    @pytest.fixture()
    def project(self) -> AppProject:
        return AppProject(
            name="p",
            destinations=(_dest("*", "*"),),
            permit_only_project_scoped_clusters=True,
        )

    def test_scoped_cluster_permitted(self, project: AppProject) -> None:
        requested: list[str] = []

        def lister(name: str) -> Sequence[Cluster]:
            requested.append(name)
            return [Cluster(server="https://scoped.example.com")]

        assert is_destination_permitted(
            project, Cluster(server="https://scoped.example.com"), "ns", lister
        )
        assert not is_destination_permitted(
            project, Cluster(server="https://global.example.com"), "ns", lister
        )
        assert requested == ["p", "p"]

    def test_scoped_cluster_by_name(self, project: AppProject) -> None:
        assert is_destination_permitted(
            project, Cluster(name="scoped"), "ns", lambda _: [Cluster(name="scoped")]
        )

    def test_missing_lister_denies(
        self, project: AppProject, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING):
            assert not is_destination_permitted(project, IN_CLUSTER, "ns")
        assert "no cluster lister" in caplog.text

    def test_lister_failure(self, project: AppProject) -> None:
        def lister(name: str) -> Sequence[Cluster]:
            raise RuntimeError("api unavailable")

        with pytest.raises(ClusterLookupError, match="could not retrieve project clusters") as exc_info:
            is_destination_permitted(project, IN_CLUSTER, "ns", lister)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.project_name == "p"

    def test_lister_not_consulted_without_flag(self) -> None:
        project = AppProject(name="p", destinations=(_dest("*", "*"),))

        def lister(name: str) -> Sequence[Cluster]:
            raise AssertionError("lister should not be called")

        assert is_destination_permitted(project, IN_CLUSTER, "ns", lister)

    def test_lister_not_consulted_when_globs_deny(self, project: AppProject) -> None:
        restricted = project.model_copy(update={"destinations": (_dest("*", "team-*"),)})

        def lister(name: str) -> Sequence[Cluster]:
            raise AssertionError("lister should not be called")

        assert not is_destination_permitted(restricted, IN_CLUSTER, "prod", lister)


# ---------------------------------------------------------------------------
# Resource kinds
# ---------------------------------------------------------------------------


class TestGroupKindPermitted:
    def test_empty_whitelist_permits_all(self) -> None:
        project = AppProject(name="p")
        assert is_group_kind_permitted(project, GroupKind(group="", kind="Namespace"), False)
        assert is_group_kind_permitted(project, GroupKind(group="apps", kind="Deployment"), True)

    def test_cluster_whitelist(self) -> None:
        project = AppProject(
            name="p", cluster_resource_whitelist=(GroupKind(group="", kind="Namespace"),)
        )
        assert is_group_kind_permitted(project, GroupKind(group="", kind="Namespace"), False)
        assert not is_group_kind_permitted(
            project, GroupKind(group="rbac.authorization.k8s.io", kind="ClusterRole"), False
        )

    def test_whitelists_are_per_scope(self) -> None:
        project = AppProject(
            name="p", cluster_resource_whitelist=(GroupKind(group="", kind="Namespace"),)
        )
        assert is_group_kind_permitted(project, GroupKind(group="apps", kind="Deployment"), True)

    def test_blacklist_wins(self) -> None:
        project = AppProject(
            name="p",
            namespace_resource_whitelist=(GroupKind(group="*", kind="*"),),
            namespace_resource_blacklist=(GroupKind(group="*", kind="Secret"),),
        )
        assert is_group_kind_permitted(project, GroupKind(group="", kind="ConfigMap"), True)
        assert not is_group_kind_permitted(project, GroupKind(group="", kind="Secret"), True)

    def test_group_glob(self) -> None:
        project = AppProject(
            name="p",
            cluster_resource_blacklist=(GroupKind(group="*.k8s.io", kind="*"),),
        )
        assert not is_group_kind_permitted(
            project, GroupKind(group="rbac.authorization.k8s.io", kind="ClusterRole"), False
        )
        assert is_group_kind_permitted(project, GroupKind(group="", kind="Namespace"), False)


# ---------------------------------------------------------------------------
# Application namespaces and RBAC names
# ---------------------------------------------------------------------------


class TestAppNamespacePermitted:
    @pytest.fixture()
    def project(self) -> AppProject:
        return AppProject(name="p", source_namespaces=("team-*",))

    def test_controller_namespace(self, project: AppProject) -> None:
        app = Application(name="app", namespace="argocd")
        assert is_app_namespace_permitted(project, app, "argocd")

    def test_no_namespace(self, project: AppProject) -> None:
        assert is_app_namespace_permitted(project, Application(name="app"), "argocd")

    def test_source_namespace_glob(self, project: AppProject) -> None:
        assert is_app_namespace_permitted(project, Application(name="a", namespace="team-a"), "argocd")
        assert not is_app_namespace_permitted(project, Application(name="a", namespace="other"), "argocd")

    def test_negation_is_literal(self) -> None:
        project = AppProject(name="p", source_namespaces=("!team-b",))
        app = Application(name="a", namespace="team-a")
        assert not is_app_namespace_permitted(project, app, "argocd")


class TestRbacName:
    def test_controller_namespace(self) -> None:
        app = Application(name="app", namespace="argocd", project="p")
        assert rbac_name(app, "argocd") == "p/app"

    def test_other_namespace(self) -> None:
        app = Application(name="app", namespace="team-a", project="p")
        assert rbac_name(app, "argocd") == "p/team-a/app"

    def test_default_project(self) -> None:
        assert rbac_name(Application(name="app"), "argocd") == "default/app"
        assert rbac_name(Application(name="app"), "argocd", "fallback") == "fallback/app"

    def test_no_controller_namespace(self) -> None:
        app = Application(name="app", namespace="team-a", project="p")
        assert rbac_name(app, "") == "p/app"


# ---------------------------------------------------------------------------
# ProjectAuthorizer
# ---------------------------------------------------------------------------


class TestProjectAuthorizer:
    @pytest.fixture()
    def authorizer(self) -> ProjectAuthorizer:
        project = AppProject(
            name="team-a",
            source_repos=("https://github.com/team-a/*",),
            destinations=(_dest("https://kubernetes.default.svc", "team-a-*"),),
            namespace_resource_blacklist=(GroupKind(group="", kind="Secret"),),
            source_namespaces=("team-a-apps",),
        )
        return ProjectAuthorizer(project)

    def test_source(self, authorizer: ProjectAuthorizer) -> None:
        allowed = authorizer.check_source("https://github.com/team-a/app")
        assert allowed and allowed.check == "source"
        denied = authorizer.check_source("https://github.com/team-b/app")
        assert not denied
        assert "not permitted in project 'team-a'" in denied.reason

    def test_destination(self, authorizer: ProjectAuthorizer) -> None:
        result = authorizer.check_destination(IN_CLUSTER, "team-a-dev")
        assert result.allowed
        assert result.subject == "https://kubernetes.default.svc/team-a-dev"
        denied = authorizer.check_destination(IN_CLUSTER, "prod")
        assert not denied.allowed
        assert "do not match any of the allowed destinations" in denied.reason

    def test_kind(self, authorizer: ProjectAuthorizer) -> None:
        assert authorizer.check_kind("apps", "Deployment", namespaced=True).allowed
        denied = authorizer.check_kind("", "Secret", namespaced=True)
        assert not denied.allowed
        assert denied.subject == "/Secret"
        assert "namespaced resource" in denied.reason

    def test_app_namespace(self, authorizer: ProjectAuthorizer) -> None:
        assert authorizer.check_app_namespace(Application(name="a", namespace="team-a-apps"))
        denied = authorizer.check_app_namespace(Application(name="a", namespace="elsewhere"))
        assert not denied
        assert denied.check == "app_namespace"
