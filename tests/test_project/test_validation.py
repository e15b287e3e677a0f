"""Tests for validate_project and validation_errors."""
from __future__ import annotations

import pytest

from appproject_governance.errors import ProjectValidationError
from appproject_governance.project.schema import (
    ApplicationDestination,
    AppProject,
    DestinationServiceAccount,
    ProjectRole,
)
from appproject_governance.project.validation import validate_project, validation_errors
from appproject_governance.windows.sync_window import SyncWindow


def _with(project: AppProject, **changes: object) -> AppProject:
    return project.model_copy(update=changes)


def _account(server: str = "https://kubernetes.default.svc", namespace: str = "team-a", sa: str = "deployer") -> DestinationServiceAccount:
    return DestinationServiceAccount(server=server, namespace=namespace, default_service_account=sa)


class TestValidProject:
    def test_valid_project_passes(self, valid_project: AppProject) -> None:
        validate_project(valid_project)
        assert validation_errors(valid_project) == []

    def test_empty_project_passes(self) -> None:
        validate_project(AppProject(name="empty"))


class TestSourceRepos:
    def test_negate_all_rejected(self, valid_project: AppProject) -> None:
        project = _with(valid_project, source_repos=("!*",))
        with pytest.raises(ProjectValidationError, match="source repository has an invalid format"):
            validate_project(project)

    def test_duplicate_rejected(self, valid_project: AppProject) -> None:
        project = _with(valid_project, source_repos=("https://a", "https://a"))
        with pytest.raises(ProjectValidationError, match="already added"):
            validate_project(project)

    def test_error_carries_project_name(self, valid_project: AppProject) -> None:
        project = _with(valid_project, source_repos=("!*",))
        with pytest.raises(ProjectValidationError) as exc_info:
            validate_project(project)
        assert exc_info.value.project_name == "my-proj"


class TestDestinations:
    @pytest.mark.parametrize(
        "destination",
        [
            ApplicationDestination(server="!*", namespace="default"),
            ApplicationDestination(server="*", namespace="!*"),
            ApplicationDestination(name="!*", namespace="default"),
        ],
    )
    def test_negate_all_rejected(self, valid_project: AppProject, destination: ApplicationDestination) -> None:
        project = _with(valid_project, destinations=(destination,))
        with pytest.raises(ProjectValidationError, match="has an invalid format, '!\\*'"):
            validate_project(project)

    def test_duplicate_rejected(self, valid_project: AppProject) -> None:
        dest = ApplicationDestination(server="https://a", namespace="default")
        project = _with(valid_project, destinations=(dest, dest))
        with pytest.raises(ProjectValidationError, match="destination 'https://a/default' already added"):
            validate_project(project)

    def test_same_namespace_different_names(self, valid_project: AppProject) -> None:
        project = _with(
            valid_project,
            destinations=(
                ApplicationDestination(name="cluster-a", namespace="default"),
                ApplicationDestination(name="cluster-b", namespace="default"),
            ),
        )
        validate_project(project)


class TestSourceNamespaces:
    def test_duplicate_rejected(self, valid_project: AppProject) -> None:
        project = _with(valid_project, source_namespaces=("team-a", "team-a"))
        with pytest.raises(ProjectValidationError, match="source namespace 'team-a' already added"):
            validate_project(project)


class TestDestinationServiceAccounts:
    @pytest.mark.parametrize("server", ["!abc", "!*", "[[ech*"])
    def test_invalid_server(self, valid_project: AppProject, server: str) -> None:
        project = _with(valid_project, destination_service_accounts=(_account(server=server),))
        with pytest.raises(ProjectValidationError) as exc_info:
            validate_project(project)
        assert f"server has an invalid format, '{server}'" in str(exc_info.value)

    @pytest.mark.parametrize("namespace", ["!*", "!abc", "[[ech*"])
    def test_invalid_namespace(self, valid_project: AppProject, namespace: str) -> None:
        project = _with(valid_project, destination_service_accounts=(_account(namespace=namespace),))
        with pytest.raises(ProjectValidationError) as exc_info:
            validate_project(project)
        assert f"namespace has an invalid format, '{namespace}'" in str(exc_info.value)

    @pytest.mark.parametrize("sa", ["", "   ", "test\\sa", "test/sa", "[test-sa]", "{test-sa}"])
    def test_invalid_service_account(self, valid_project: AppProject, sa: str) -> None:
        project = _with(valid_project, destination_service_accounts=(_account(sa=sa),))
        with pytest.raises(ProjectValidationError) as exc_info:
            validate_project(project)
        assert f"defaultServiceAccount has an invalid format, '{sa}'" in str(exc_info.value)

    def test_empty_namespace_allowed(self, valid_project: AppProject) -> None:
        project = _with(valid_project, destination_service_accounts=(_account(namespace=""),))
        validate_project(project)

    def test_glob_namespace_allowed(self, valid_project: AppProject) -> None:
        project = _with(valid_project, destination_service_accounts=(_account(namespace="team-*"),))
        validate_project(project)


class TestRoles:
    @pytest.mark.parametrize("name", ["", " ", "my role", "my,role", "my\nrole", "my:role", "my-role-", "-my-role"])
    def test_bad_role_names(self, valid_project: AppProject, name: str) -> None:
        project = _with(valid_project, roles=(ProjectRole(name=name),))
        with pytest.raises(ProjectValidationError):
            validate_project(project)

    def test_duplicate_role(self, valid_project: AppProject) -> None:
        role = ProjectRole(name="dup")
        project = _with(valid_project, roles=(role, role))
        with pytest.raises(ProjectValidationError, match="role 'dup' already exists"):
            validate_project(project)

    def test_duplicate_policy(self, valid_project: AppProject) -> None:
        line = "p, proj:my-proj:ci, applications, get, my-proj/*, allow"
        project = _with(valid_project, roles=(ProjectRole(name="ci", policies=(line, line)),))
        with pytest.raises(ProjectValidationError, match="already exists for role 'ci'"):
            validate_project(project)

    def test_invalid_policy(self, valid_project: AppProject) -> None:
        line = "p, proj:my-proj:ci, applications, get, other-proj/*, allow"
        project = _with(valid_project, roles=(ProjectRole(name="ci", policies=(line,)),))
        with pytest.raises(ProjectValidationError, match="object must be of form"):
            validate_project(project)

    def test_invalid_group(self, valid_project: AppProject) -> None:
        project = _with(valid_project, roles=(ProjectRole(name="ci", groups=("my,group",)),))
        with pytest.raises(ProjectValidationError, match="must be quoted"):
            validate_project(project)


class TestSyncWindows:
    def test_duplicate_window(self, valid_project: AppProject) -> None:
        window = SyncWindow(kind="allow", schedule="0 10 * * *", duration="1h", applications=("*",))
        project = _with(valid_project, sync_windows=(window, window))
        with pytest.raises(ProjectValidationError, match="already exists"):
            validate_project(project)

    def test_windows_differing_in_manual_sync_are_distinct(self, valid_project: AppProject) -> None:
        window = SyncWindow(kind="allow", schedule="0 10 * * *", duration="1h", applications=("*",))
        project = _with(valid_project, sync_windows=(window, window.model_copy(update={"manual_sync": True})))
        validate_project(project)

    def test_windows_differing_in_description_are_distinct(self, valid_project: AppProject) -> None:
        window = SyncWindow(kind="deny", schedule="0 22 * * *", duration="1h", namespaces=("prod",))
        project = _with(valid_project, sync_windows=(window, window.model_copy(update={"description": "CHG-7"})))
        assert validation_errors(project) == []

    def test_window_with_out_of_range_duration(self, valid_project: AppProject) -> None:
        window = SyncWindow(kind="allow", schedule="0 10 * * *", duration="9999999999999h", applications=("*",))
        project = _with(valid_project, sync_windows=(window,))
        with pytest.raises(ProjectValidationError, match="duration out of range"):
            validate_project(project)

    def test_window_without_selectors(self, valid_project: AppProject) -> None:
        window = SyncWindow(kind="allow", schedule="0 10 * * *", duration="1h")
        project = _with(valid_project, sync_windows=(window,))
        with pytest.raises(ProjectValidationError, match="requires one of application, cluster or namespace"):
            validate_project(project)

    def test_window_with_bad_kind(self, valid_project: AppProject) -> None:
        window = SyncWindow(kind="wrong", schedule="0 10 * * *", duration="1h", applications=("*",))
        project = _with(valid_project, sync_windows=(window,))
        with pytest.raises(ProjectValidationError, match="can only be allow or deny"):
            validate_project(project)

    def test_window_with_bad_schedule(self, valid_project: AppProject) -> None:
        window = SyncWindow(kind="allow", schedule="* 10 * * 7", duration="1h", applications=("*",))
        project = _with(valid_project, sync_windows=(window,))
        with pytest.raises(ProjectValidationError, match="cannot parse schedule"):
            validate_project(project)


class TestValidationErrors:
    def test_collects_every_problem(self, valid_project: AppProject) -> None:
        project = _with(
            valid_project,
            source_repos=("!*",),
            source_namespaces=("a", "a"),
            roles=(ProjectRole(name="-bad"),),
        )
        problems = validation_errors(project)
        assert len(problems) == 3
        assert "source repository" in problems[0]
        assert "source namespace" in problems[1]
        assert "invalid role name" in problems[2]
