from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from api.routes.webhook import parse_notification
from api.server import create_app
from core.orchestrator import DeploymentOrchestrator
from core.schemas import ContainerInstance, DeploymentOutcome

# ---------------------------------------------------------------------------
# Test client
# ---------------------------------------------------------------------------


@pytest.fixture
def orchestrator(fake_engine, credentials):
    return DeploymentOrchestrator(fake_engine, credentials=credentials)


@pytest.fixture
def client(orchestrator):
    return TestClient(create_app(orchestrator))


@pytest.fixture
def spy_orchestrator():
    orch = MagicMock()
    orch.deploy = AsyncMock(return_value=DeploymentOutcome.ok("abc"))
    return orch


@pytest.fixture
def spy_client(spy_orchestrator):
    return TestClient(create_app(spy_orchestrator))


# ---------------------------------------------------------------------------
# parse_notification
# ---------------------------------------------------------------------------


def test_parse_requires_post():
    assert parse_notification("GET", {"package": "org/svc"}) is None


def test_parse_requires_package():
    assert parse_notification("POST", {"version": "1.0"}) is None
    assert parse_notification("POST", {"package": ""}) is None
    assert parse_notification("POST", {"package": 42}) is None


def test_parse_rejects_non_object_body():
    assert parse_notification("POST", ["org/svc"]) is None


def test_parse_accepts_release_fields():
    n = parse_notification(
        "POST",
        {
            "package": "org/svc",
            "version": "2.0",
            "released": "2024-01-01",
            "release_notes": "fixes",
        },
    )
    assert n is not None
    request = n.to_request()
    assert request.package == "org/svc"
    assert request.version == "2.0"


# ---------------------------------------------------------------------------
# Illegal requests never reach the orchestrator
# ---------------------------------------------------------------------------


def test_empty_post_is_illegal(spy_client, spy_orchestrator):
    r = spy_client.post("/", content=b"")
    assert r.status_code == 400
    assert r.text == "ILLEGAL REQUEST\n"
    spy_orchestrator.deploy.assert_not_called()


def test_invalid_json_is_illegal(spy_client, spy_orchestrator):
    r = spy_client.post("/", content=b"not-json")
    assert r.text == "ILLEGAL REQUEST\n"
    spy_orchestrator.deploy.assert_not_called()


def test_post_without_package_is_illegal(spy_client, spy_orchestrator):
    r = spy_client.post("/hooks/bintray", json={"version": "1.0"})
    assert r.text == "ILLEGAL REQUEST\n"
    spy_orchestrator.deploy.assert_not_called()


@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
def test_other_methods_are_illegal(spy_client, spy_orchestrator, method):
    r = spy_client.request(method, "/", json={"package": "org/svc"})
    assert r.status_code == 400
    assert r.text == "ILLEGAL REQUEST\n"
    spy_orchestrator.deploy.assert_not_called()


# ---------------------------------------------------------------------------
# Deployments
# ---------------------------------------------------------------------------


def test_any_path_triggers_deploy(spy_client, spy_orchestrator):
    r = spy_client.post("/some/where", json={"package": "org/svc", "version": "2.0"})
    assert r.status_code == 200
    assert r.text == "OK\n"
    request = spy_orchestrator.deploy.await_args.args[0]
    assert request.package == "org/svc"
    assert request.version == "2.0"


def test_scenario_fresh_deploy(client, fake_engine):
    r = client.post("/", json={"package": "org/svc"})

    assert r.status_code == 200
    assert r.text == "OK\n"
    assert "stop" not in fake_engine.ops()
    assert ("run", "org/svc", "svc") in fake_engine.calls


def test_scenario_replace_versioned(client, fake_engine):
    fake_engine.containers = [
        ContainerInstance(id="old", image="org/svc", name="svc", state="running")
    ]

    r = client.post("/", json={"package": "org/svc", "version": "2.0"})

    assert r.text == "OK\n"
    assert ("stop", "old") in fake_engine.calls
    assert ("run", "org/svc:2.0", "svc") in fake_engine.calls


def test_scenario_pull_failure(client, fake_engine, runtime_errors):
    fake_engine.fail["pull"] = runtime_errors["pull"]

    r = client.post("/", json={"package": "org/svc"})

    assert r.status_code == 500
    assert r.text == "ERROR\nCould not pull org/svc: unauthorized"
    assert "run" not in fake_engine.ops()
