"""In-memory project store with validate-then-swap updates.

Readers always see a complete, validated snapshot: a change is built as a
draft, validated, and only then swapped in under the lock.  A draft that
fails validation is discarded and the previous snapshot stays current.

Example
-------
::

    store = ProjectStore()
    store.apply(AppProject(name="team-a", source_repos=["*"]))
    store.update("team-a", lambda p: p.model_copy(update={"description": "Team A"}))
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from appproject_governance.errors import ProjectValidationError
from appproject_governance.project.schema import AppProject
from appproject_governance.project.validation import validate_project

logger = logging.getLogger(__name__)


class ProjectStore:
    """Thread-safe holder of the current project snapshots, keyed by name.

    Parameters
    ----------
    projects:
        Optional initial projects; each is validated.
    """

    def __init__(self, projects: Iterable[AppProject] = ()) -> None:
        self._projects: dict[str, AppProject] = {}
        self._lock = threading.Lock()
        for project in projects:
            self.apply(project)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def get(self, name: str) -> AppProject:
        """Return the current snapshot of project *name*.

        Raises
        ------
        KeyError
            If no such project is stored.
        """
        with self._lock:
            try:
                return self._projects[name]
            except KeyError:
                raise KeyError(f"project '{name}' not found") from None

    def names(self) -> list[str]:
        """Return the stored project names, sorted."""
        with self._lock:
            return sorted(self._projects)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._projects

    def __len__(self) -> int:
        with self._lock:
            return len(self._projects)

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def apply(self, project: AppProject) -> None:
        """Validate *project* and make it the current snapshot for its name.

        Raises
        ------
        ProjectValidationError
            If the project is invalid; the store is left unchanged.
        """
        validate_project(project)
        with self._lock:
            self._projects[project.name] = project
        logger.info("Applied project %s", project.name)

    def update(
        self,
        name: str,
        mutate: Callable[[AppProject], AppProject],
    ) -> AppProject:
        """Apply *mutate* to project *name* and swap in the validated result.

        *mutate* runs outside the lock, so it may read the store.  The draft
        is swapped in only if the project has not changed since it was read;
        otherwise *mutate* runs again on the newer snapshot.

        Parameters
        ----------
        name:
            Project to change.
        mutate:
            Function returning the new project from the current one.  It may
            be called more than once under contention.

        Returns
        -------
        AppProject
            The new current snapshot.

        Raises
        ------
        KeyError
            If no such project is stored.
        ProjectValidationError
            If the draft is invalid or renames the project.
        """
        while True:
            current = self.get(name)
            draft = mutate(current)
            if draft.name != name:
                raise ProjectValidationError(
                    f"cannot rename project '{name}' to '{draft.name}' in an update",
                    project_name=name,
                )
            validate_project(draft)

            with self._lock:
                if self._projects.get(name) is current:
                    self._projects[name] = draft
                    break
            logger.debug("Project %s changed during update, retrying", name)

        logger.info("Updated project %s", name)
        return draft

    def remove(self, name: str) -> None:
        """Remove project *name*; a missing project is ignored."""
        with self._lock:
            self._projects.pop(name, None)
