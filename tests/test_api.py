"""Tests for the builder HTTP surface."""
import pytest
from fastapi.testclient import TestClient

from flowbuilder.api.builder import get_sessions
from flowbuilder.generation.client import get_generation_client
from flowbuilder.main import app
from flowbuilder.persistence import get_node_store
from flowbuilder.workflow.session import BuilderSession


@pytest.fixture
def client(store, generation):
    sessions = {}
    app.dependency_overrides[get_node_store] = lambda: store
    app.dependency_overrides[get_generation_client] = lambda: generation
    app.dependency_overrides[get_sessions] = lambda: sessions
    yield TestClient(app)
    app.dependency_overrides.clear()


def open_session(client, workflow_id=42):
    response = client.post(
        "/api/builder/sessions",
        json={"workflow_id": workflow_id, "company_id": 7, "user_id": 3},
    )
    assert response.status_code == 200
    return response.json()


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_build_and_run_workflow(client, generation):
    view = open_session(client)
    assert view["nodes"] == []

    trigger = client.post("/api/builder/sessions/42/nodes", json={"kind": "trigger"}).json()
    action = client.post(
        "/api/builder/sessions/42/nodes",
        json={"parent_id": trigger["id"], "kind": "action"},
    ).json()
    assert action["config"]["sort_order"] == 1

    client.post(f"/api/builder/sessions/42/nodes/{action['id']}/open")
    response = client.patch(
        f"/api/builder/sessions/42/nodes/{action['id']}",
        json={"prompt": "Write a reply"},
    )
    assert response.status_code == 200
    assert response.json()["config"]["prompt"] == "Write a reply"

    response = client.post("/api/builder/sessions/42/run", json={"input": "customer email"})
    assert response.status_code == 200
    assert response.json() == {"workflow_id": 42, "content": "generated text"}

    sent = generation.calls[-1]
    assert [step.id for step in sent.steps] == [action["id"], trigger["id"]]
    assert sent.entry.input == "customer email"

    view = client.get("/api/builder/sessions/42").json()
    assert view["output"] == "generated text"
    assert view["editor"]["state"] == "idle"


def test_deleting_root_is_a_conflict(client):
    open_session(client)
    trigger = client.post("/api/builder/sessions/42/nodes", json={"kind": "trigger"}).json()

    response = client.delete(f"/api/builder/sessions/42/nodes/{trigger['id']}")

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "StructuralError"


def test_structural_edit_refused_while_editor_open(client):
    open_session(client)
    trigger = client.post("/api/builder/sessions/42/nodes", json={"kind": "trigger"}).json()
    client.post(f"/api/builder/sessions/42/nodes/{trigger['id']}/open")

    response = client.post(
        "/api/builder/sessions/42/nodes",
        json={"parent_id": trigger["id"], "kind": "action"},
    )
    assert response.status_code == 409

    client.post("/api/builder/sessions/42/editor/close")
    response = client.post(
        "/api/builder/sessions/42/nodes",
        json={"parent_id": trigger["id"], "kind": "action"},
    )
    assert response.status_code == 200


def test_run_without_nodes_is_unprocessable(client):
    open_session(client)

    response = client.post("/api/builder/sessions/42/run", json={"input": "x"})

    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "CompilationError"


def test_persistence_failure_is_bad_gateway(client, store):
    open_session(client)
    store.fail_on.add("create")

    response = client.post("/api/builder/sessions/42/nodes", json={"kind": "trigger"})

    assert response.status_code == 502
    assert client.get("/api/builder/sessions/42").json()["nodes"] == []


def test_unknown_session(client):
    assert client.get("/api/builder/sessions/999").status_code == 404


def test_closing_session_discards_graph(client):
    open_session(client)
    assert client.delete("/api/builder/sessions/42").json() == {"closed": True}
    assert client.get("/api/builder/sessions/42").status_code == 404


def test_first_node_without_kind_is_the_trigger(client):
    open_session(client)

    response = client.post("/api/builder/sessions/42/nodes", json={})

    assert response.status_code == 200
    assert response.json()["kind"] == "trigger"


def test_shutdown_drops_open_sessions(session_registry_entry):
    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        assert 42 in get_sessions()

    assert get_sessions() == {}


@pytest.fixture
def session_registry_entry(context, store, generation, settings):
    sessions = get_sessions()
    sessions[42] = BuilderSession(context, store, generation, settings)
    yield
    sessions.clear()


def test_publish_toggle(client, store):
    client.post(
        "/api/builder/sessions",
        json={"workflow_id": 42, "company_id": 7, "user_id": 3, "published": True},
    )

    view = client.post("/api/builder/sessions/42/publish").json()

    assert view["published"] is False
    assert store.published[42] is False
