"""Stores own the current state value and funnel every change through a reducer."""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from .actions import CreateProject, DeleteProject, DispatchToProject, SelectProject
from .reducer import reduce_app, reduce_project
from .state import AppState, ProjectState

__all__ = ["AppStore", "BoundProjectStore", "ProjectDispatcher", "ProjectStore"]

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class ProjectDispatcher(Protocol):
    """What the executor needs: a readable project state and a dispatch hook."""

    @property
    def state(self) -> ProjectState:  # pragma: no cover - interface
        ...

    def dispatch(self, action: Any) -> ProjectState:  # pragma: no cover - interface
        ...


class _Subscribers:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, value: Any) -> None:
        for listener in list(self._listeners):
            listener(value)


class ProjectStore(_Subscribers):
    """Holds a single project's state."""

    def __init__(self, state: ProjectState) -> None:
        super().__init__()
        self._state = state

    @property
    def state(self) -> ProjectState:
        return self._state

    def dispatch(self, action: Any) -> ProjectState:
        logger.debug("Project %s <- %s", self._state.id, getattr(action, "type", type(action).__name__))
        self._state = reduce_project(self._state, action)
        self._notify(self._state)
        return self._state


class AppStore(_Subscribers):
    """Holds every project; project actions are routed by id."""

    def __init__(self, state: AppState | None = None) -> None:
        super().__init__()
        self._state = state or AppState()

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Any) -> AppState:
        logger.debug("App <- %s", getattr(action, "type", type(action).__name__))
        self._state = reduce_app(self._state, action)
        self._notify(self._state)
        return self._state

    def create_project(self, action: CreateProject) -> "BoundProjectStore":
        self.dispatch(action)
        return self.bind(action.project_id)

    def select_project(self, project_id: str | None) -> AppState:
        return self.dispatch(SelectProject(project_id=project_id))

    def delete_project(self, project_id: str) -> AppState:
        return self.dispatch(DeleteProject(project_id=project_id))

    def bind(self, project_id: str) -> "BoundProjectStore":
        if project_id not in self._state.projects:
            raise KeyError(f"Unknown project '{project_id}'")
        return BoundProjectStore(self, project_id)


class BoundProjectStore:
    """Project-scoped view over an :class:`AppStore`."""

    def __init__(self, app: AppStore, project_id: str) -> None:
        self._app = app
        self.project_id = project_id

    @property
    def state(self) -> ProjectState:
        project = self._app.state.projects.get(self.project_id)
        if project is None:
            raise KeyError(f"Project '{self.project_id}' no longer exists")
        return project

    def dispatch(self, action: Any) -> ProjectState:
        self._app.dispatch(DispatchToProject(project_id=self.project_id, action=action))
        return self.state
