from __future__ import annotations

import pytest

from docgraph.workflow import AppStore, CreateProject, SetActiveNode, StartWorkflow


def test_bound_store_routes_to_its_project(small_graph) -> None:
    app = AppStore()
    first = app.create_project(CreateProject("p1", "first", small_graph))
    app.create_project(CreateProject("p2", "second", small_graph))

    state = first.dispatch(StartWorkflow())

    assert state.id == "p1"
    assert app.state.projects["p2"].workflow_status.value == "IDLE"
    assert app.state.active_project_id == "p2"


def test_set_active_node_is_visible_through_the_project(small_graph) -> None:
    app = AppStore()
    project = app.create_project(CreateProject("p1", "first", small_graph))

    project.dispatch(SetActiveNode("A"))

    assert project.state.active_node.label == "Doc A"
    assert project.dispatch(SetActiveNode(None)).active_node is None


def test_select_and_delete_projects(small_graph) -> None:
    app = AppStore()
    app.create_project(CreateProject("p1", "first", small_graph))
    bound = app.create_project(CreateProject("p2", "second", small_graph))

    assert app.select_project("p1").active_project.id == "p1"
    assert app.delete_project("p2").projects.keys() == {"p1"}
    with pytest.raises(KeyError):
        bound.state
    with pytest.raises(KeyError):
        app.bind("p2")


def test_subscribers_see_every_dispatch_until_unsubscribed(project_store) -> None:
    seen = []
    unsubscribe = project_store.subscribe(lambda state: seen.append(state.workflow_status.value))

    project_store.dispatch(StartWorkflow())
    unsubscribe()
    unsubscribe()
    project_store.dispatch(SetActiveNode("A"))

    assert seen == ["RUNNING"]
