"""HTTP boundary tests using FastAPI's TestClient."""
import threading
import inspect
import time
from urllib.error import HTTPError

import pytest
from fastapi.testclient import TestClient

from shortify.api import routes
from shortify.api.routes import get_orchestrator
from shortify.conversion.orchestrator import Orchestrator
from shortify.conversion.runner import JobRunner
from shortify.conversion.source import SourceResolver
from shortify.main import app, create_app


@pytest.fixture
def orchestrator(engine):
    return Orchestrator(resolver=SourceResolver(), runner=JobRunner(engine), settle_delay=0.3)


@pytest.fixture
def client(orchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _poll(client, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get("/api/job").json()
        if predicate(body):
            return body
        time.sleep(0.01)
    raise AssertionError("job did not reach expected state")


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_initial_snapshot_is_idle(client):
    body = client.get("/api/job").json()
    assert body["state"] == "idle"
    assert body["submit_enabled"] is True
    assert body["submit_label"] == "Generate short"
    assert body["file_label"] == "Select file"
    assert body["progress"]["visible"] is False
    assert body["result"] is None


def test_submit_without_input_is_rejected(client):
    resp = client.post("/api/shorts", data={"url": "  "})
    assert resp.status_code == 400
    assert "select a video" in resp.json()["detail"]
    assert client.get("/api/job").json()["state"] == "idle"


def test_upload_produces_downloadable_result(client, engine):
    resp = client.post(
        "/api/shorts",
        files={"file": ("clip.mp4", b"source-bytes", "video/mp4")},
    )
    assert resp.status_code == 202
    assert resp.json()["submit_enabled"] is False

    body = _poll(client, lambda b: b["state"] == "done")
    assert body["progress"]["display"] == "100.00%"
    result = body["result"]
    assert result["player_src"] == result["download_href"]
    assert engine.storage == {}

    video = client.get(result["player_src"])
    assert video.status_code == 200
    assert video.content == b"short-clip"
    assert video.headers["content-type"] == "video/mp4"
    assert "short.mp4" in video.headers["content-disposition"]

    idle = _poll(client, lambda b: b["state"] == "idle")
    assert idle["submit_enabled"] is True
    assert idle["progress"]["visible"] is False


def test_busy_submit_returns_409(client, engine):
    engine.gate = threading.Event()
    client.post("/api/shorts", files={"file": ("a.mp4", b"a", "video/mp4")})
    _poll(client, lambda b: b["state"] == "converting")

    resp = client.post("/api/shorts", files={"file": ("b.mp4", b"b", "video/mp4")})
    assert resp.status_code == 409

    engine.gate.set()
    _poll(client, lambda b: b["state"] == "done")
    assert len(engine.invocations) == 1


def test_url_404_reports_notice_and_resets(client, engine, fake_urlopen):
    fake_urlopen(error=HTTPError("https://host/missing", 404, "Not Found", None, None))
    resp = client.post("/api/shorts", data={"url": "https://host/missing"})
    assert resp.status_code == 202

    failed = _poll(client, lambda b: b["state"] == "failed")
    assert "Unable to fetch video" in failed["notice"]
    idle = _poll(client, lambda b: b["state"] == "idle")
    assert idle["submit_enabled"] is True
    assert engine.init_calls == 0


def test_retired_result_returns_404(client, engine):
    client.post("/api/shorts", files={"file": ("a.mp4", b"a", "video/mp4")})
    first = _poll(client, lambda b: b["state"] == "done")["result"]["player_src"]
    _poll(client, lambda b: b["state"] == "idle")

    client.post("/api/shorts", files={"file": ("b.mp4", b"b", "video/mp4")})
    second = _poll(client, lambda b: b["state"] == "done")["result"]["player_src"]

    assert client.get(first).status_code == 404
    assert client.get(second).status_code == 200


def test_unknown_result_returns_404(client):
    assert client.get("/api/results/does-not-exist").status_code == 404


def test_oversized_upload_returns_413(client, engine, monkeypatch):
    monkeypatch.setattr(routes, "MAX_VIDEO_SIZE_BYTES", 4)
    resp = client.post("/api/shorts", files={"file": ("big.mp4", b"more-than-four", "video/mp4")})
    assert resp.status_code == 413
    body = client.get("/api/job").json()
    assert body["state"] == "idle"
    assert body["submit_enabled"] is True
    assert engine.invocations == []


def test_upload_at_size_cap_is_accepted(client, monkeypatch):
    monkeypatch.setattr(routes, "MAX_VIDEO_SIZE_BYTES", 4)
    resp = client.post("/api/shorts", files={"file": ("tiny.mp4", b"four", "video/mp4")})
    assert resp.status_code == 202
    _poll(client, lambda b: b["state"] == "done")


def test_result_reads_run_on_event_loop():
    # The sink is mutated on the loop, so readers must not run in the threadpool
    assert inspect.iscoroutinefunction(routes.job_status)
    assert inspect.iscoroutinefunction(routes.get_result)


def test_create_app_uses_given_orchestrator(orchestrator):
    built = []

    def factory():
        built.append(orchestrator)
        return orchestrator

    with TestClient(create_app(orchestrator_factory=factory, cors_origins=["http://localhost:3000"])) as c:
        assert c.get("/api/job").json()["state"] == "idle"
        resp = c.options(
            "/api/job",
            headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
        )
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert c.app.state.orchestrator is orchestrator
    assert built == [orchestrator]
