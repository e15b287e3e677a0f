"""Project data model, validation, loading and storage."""
from __future__ import annotations

from appproject_governance.project.loader import ProjectLoader
from appproject_governance.project.schema import (
    Application,
    ApplicationDestination,
    AppProject,
    Cluster,
    DestinationServiceAccount,
    GroupKind,
    JWTToken,
    ProjectRole,
    ProjectStatus,
    project_from_manifest,
)
from appproject_governance.project.store import ProjectStore
from appproject_governance.project.validation import validate_project, validation_errors

__all__ = [
    "AppProject",
    "Application",
    "ApplicationDestination",
    "Cluster",
    "DestinationServiceAccount",
    "GroupKind",
    "JWTToken",
    "ProjectLoader",
    "ProjectRole",
    "ProjectStatus",
    "ProjectStore",
    "project_from_manifest",
    "validate_project",
    "validation_errors",
]
