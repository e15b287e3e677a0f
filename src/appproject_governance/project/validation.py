"""Structural validation of an :class:`AppProject`.

:func:`validation_errors` walks the whole project and reports every problem
it finds; :func:`validate_project` raises on the first.  Checks run in a
fixed order: source repositories, destinations, source namespaces,
destination service accounts, roles, then sync windows.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator

from appproject_governance.errors import (
    PolicyValidationError,
    ProjectValidationError,
    WindowParseError,
)
from appproject_governance.matching.glob import is_valid_pattern
from appproject_governance.policies.parser import (
    validate_group_name,
    validate_policy,
    validate_role_name,
)
from appproject_governance.project.schema import AppProject
from appproject_governance.windows.sync_window import SyncWindow

logger = logging.getLogger(__name__)

_NEGATE_ALL = "!*"
_SERVICE_ACCOUNT_DISALLOWED_CHARS = frozenset("!*[]{}\\/")


def validate_project(project: AppProject) -> None:
    """Raise :class:`ProjectValidationError` for the first problem found."""
    for problem in _iter_problems(project):
        raise ProjectValidationError(problem, project_name=project.name)


def validation_errors(project: AppProject) -> list[str]:
    """Return every validation problem, in check order (empty when valid)."""
    return list(_iter_problems(project))


def _iter_problems(project: AppProject) -> Iterator[str]:
    yield from _check_source_repos(project)
    yield from _check_destinations(project)
    yield from _check_source_namespaces(project)
    yield from _check_destination_service_accounts(project)
    yield from _check_roles(project)
    yield from _check_sync_windows(project)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def _check_source_repos(project: AppProject) -> Iterator[str]:
    seen: set[str] = set()
    for repo in project.source_repos:
        if repo == _NEGATE_ALL:
            yield f"source repository has an invalid format, '{repo}'"
        elif repo in seen:
            yield f"source repository '{repo}' already added"
        seen.add(repo)


def _check_destinations(project: AppProject) -> Iterator[str]:
    seen: set[str] = set()
    for dest in project.destinations:
        if dest.name == _NEGATE_ALL:
            yield f"name has an invalid format, '{dest.name}'"
            continue
        if dest.server == _NEGATE_ALL:
            yield f"server has an invalid format, '{dest.server}'"
            continue
        if dest.namespace == _NEGATE_ALL:
            yield f"namespace has an invalid format, '{dest.namespace}'"
            continue

        target = dest.name if not dest.server and dest.name else dest.server
        key = f"{target}/{dest.namespace}"
        if key in seen:
            yield f"destination '{key}' already added"
        seen.add(key)


def _check_source_namespaces(project: AppProject) -> Iterator[str]:
    seen: set[str] = set()
    for namespace in project.source_namespaces:
        if namespace in seen:
            yield f"source namespace '{namespace}' already added"
        seen.add(namespace)


def _check_destination_service_accounts(project: AppProject) -> Iterator[str]:
    for account in project.destination_service_accounts:
        if "!" in account.server or not is_valid_pattern(account.server):
            yield f"server has an invalid format, '{account.server}'"
        elif "!" in account.namespace or not is_valid_pattern(account.namespace):
            yield f"namespace has an invalid format, '{account.namespace}'"
        elif not account.default_service_account.strip() or (
            _SERVICE_ACCOUNT_DISALLOWED_CHARS & set(account.default_service_account)
        ):
            yield (
                "defaultServiceAccount has an invalid format, "
                f"'{account.default_service_account}'"
            )


def _check_roles(project: AppProject) -> Iterator[str]:
    role_names: set[str] = set()
    for role in project.roles:
        if role.name in role_names:
            yield f"role '{role.name}' already exists"
        role_names.add(role.name)
        try:
            validate_role_name(role.name)
        except PolicyValidationError as exc:
            yield str(exc)
            continue

        policies: set[str] = set()
        for policy in role.policies:
            if policy in policies:
                yield f"policy '{policy}' already exists for role '{role.name}'"
            policies.add(policy)
            try:
                validate_policy(project.name, role.name, policy)
            except PolicyValidationError as exc:
                yield str(exc)

        groups: set[str] = set()
        for group in role.groups:
            if group in groups:
                yield f"group '{group}' already exists for role '{role.name}'"
            groups.add(group)
            try:
                validate_group_name(group)
            except PolicyValidationError as exc:
                yield str(exc)


def _check_sync_windows(project: AppProject) -> Iterator[str]:
    seen: set[SyncWindow] = set()
    for window in project.sync_windows:
        label = f"window '{window.kind}':'{window.schedule}':'{window.duration}'"
        if window in seen:
            yield f"{label} already exists, update or edit"
            continue
        seen.add(window)

        try:
            window.validate()
        except (ProjectValidationError, WindowParseError) as exc:
            yield f"{label}: {exc}"
        if not window.has_selectors():
            yield f"{label} requires one of application, cluster or namespace"
