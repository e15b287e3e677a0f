"""YAML loader for project definitions.

Three document shapes are accepted::

    # 1. A bare project spec
    name: team-a
    sourceRepos: ["https://github.com/team-a/*"]
    destinations:
      - server: https://kubernetes.default.svc
        namespace: team-a-*

    # 2. An AppProject resource manifest
    apiVersion: argoproj.io/v1alpha1
    kind: AppProject
    metadata:
      name: team-a
    spec:
      sourceRepos: ["*"]

    # 3. A list of either of the above
    projects:
      - name: team-a
        ...

Example
-------
::

    loader = ProjectLoader()
    projects = loader.load("/etc/governance/projects.yaml")
    team_a = projects[0]
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from appproject_governance.errors import ProjectConfigError, ProjectValidationError
from appproject_governance.project.schema import AppProject, project_from_manifest
from appproject_governance.project.validation import validate_project

logger = logging.getLogger(__name__)

_MANIFEST_KIND = "AppProject"


class ProjectLoader:
    """Loads :class:`AppProject` definitions from YAML files, strings or dicts.

    Parameters
    ----------
    validate:
        When ``True`` (default) every loaded project is passed through
        :func:`validate_project`; failures raise :class:`ProjectConfigError`.
    """

    def __init__(self, validate: bool = True) -> None:
        self._validate = validate

    def load(self, config_path: str | Path) -> list[AppProject]:
        """Load every project defined in a YAML file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ProjectConfigError
            If the YAML is malformed or a project is invalid.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Project config not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ProjectConfigError(
                f"Failed to parse YAML: {exc}", str(config_path)
            ) from exc

        return self._build_projects(raw, config_path=str(config_path))

    def load_from_yaml_string(
        self,
        yaml_string: str,
        config_path: str | None = None,
    ) -> list[AppProject]:
        """Load projects from YAML text."""
        try:
            raw = yaml.safe_load(yaml_string)
        except yaml.YAMLError as exc:
            raise ProjectConfigError(
                f"Failed to parse YAML string: {exc}", config_path
            ) from exc
        return self._build_projects(raw, config_path=config_path)

    def load_from_dict(
        self,
        config: Mapping[str, object],
        config_path: str | None = None,
    ) -> list[AppProject]:
        """Load projects from an already-parsed document."""
        return self._build_projects(config, config_path=config_path)

    def load_one(self, config_path: str | Path) -> AppProject:
        """Load a file that must define exactly one project."""
        projects = self.load(config_path)
        if len(projects) != 1:
            raise ProjectConfigError(
                f"Expected exactly one project, found {len(projects)}.", str(config_path)
            )
        return projects[0]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_projects(
        self,
        raw: object,
        config_path: str | None = None,
    ) -> list[AppProject]:
        if not isinstance(raw, Mapping):
            raise ProjectConfigError(
                "Project config must be a YAML mapping (dict).", config_path
            )

        if "projects" in raw:
            entries = raw["projects"]
            if not isinstance(entries, list):
                raise ProjectConfigError(
                    "Project config 'projects' must be a list.", config_path
                )
        else:
            entries = [raw]

        projects: list[AppProject] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise ProjectConfigError(
                    f"Project at index {index} must be a mapping.", config_path
                )
            projects.append(self._build_project(entry, index, config_path))

        logger.info(
            "Loaded %d project(s) from %s", len(projects), config_path or "<dict>"
        )
        return projects

    def _build_project(
        self,
        entry: Mapping[str, object],
        index: int,
        config_path: str | None,
    ) -> AppProject:
        try:
            if entry.get("kind") == _MANIFEST_KIND or "spec" in entry:
                project = project_from_manifest(entry)
            else:
                project = AppProject.model_validate(dict(entry))
        except (ValidationError, ValueError) as exc:
            raise ProjectConfigError(
                f"Error in project at index {index}: {exc}", config_path
            ) from exc

        if self._validate:
            try:
                validate_project(project)
            except ProjectValidationError as exc:
                raise ProjectConfigError(
                    f"Invalid project '{project.name}': {exc}", config_path
                ) from exc
        return project
