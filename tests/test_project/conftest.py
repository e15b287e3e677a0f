"""Shared project fixtures."""
from __future__ import annotations

import pytest

from appproject_governance.project.schema import (
    ApplicationDestination,
    AppProject,
    DestinationServiceAccount,
    ProjectRole,
)
from appproject_governance.windows.sync_window import SyncWindow


@pytest.fixture()
def valid_project() -> AppProject:
    return AppProject(
        name="my-proj",
        source_repos=("https://github.com/argoproj/*",),
        destinations=(
            ApplicationDestination(server="https://kubernetes.default.svc", namespace="team-*"),
            ApplicationDestination(name="in-cluster", namespace="team-*"),
        ),
        source_namespaces=("team-a", "team-b"),
        destination_service_accounts=(
            DestinationServiceAccount(
                server="https://kubernetes.default.svc",
                namespace="team-*",
                default_service_account="deployer",
            ),
        ),
        roles=(
            ProjectRole(
                name="my-role",
                groups=("my-org:team",),
                policies=(
                    "p, proj:my-proj:my-role, applications, get, my-proj/*, allow",
                    "p, proj:my-proj:my-role, applications, sync, my-proj/team-a/*, allow",
                ),
            ),
        ),
        sync_windows=(
            SyncWindow(kind="deny", schedule="0 22 * * *", duration="1h", namespaces=("prod",)),
        ),
    )
