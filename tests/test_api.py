"""Tests for the scrape execution API."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.api.routes import scrapes
from src.config import settings
from src.crawler.scheduler import CrawlScheduler
from src.main import app

SEED = "https://www.italist.com/us/women/clothing/2/"


@pytest.fixture
def client(monkeypatch):
    scrapes.runs.clear()
    monkeypatch.setattr(CrawlScheduler, "run", AsyncMock(return_value=[]))
    yield TestClient(app)
    scrapes.runs.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_start_scrape_runs_in_background(client):
    response = client.post(
        "/api/scrapes",
        json={"start_urls": [SEED], "max_products": 5, "execution_id": "exec-42"},
    )

    assert response.status_code == 202
    assert response.json()["execution_id"] == "exec-42"

    status = client.get("/api/scrapes/exec-42").json()
    assert status["status"] == "completed"
    assert status["site"] == "Italist"
    assert status["start_urls"] == [SEED]
    assert status["products_collected"] == 0
    CrawlScheduler.run.assert_awaited_once_with([SEED])


def test_execution_id_is_generated(client):
    response = client.post("/api/scrapes", json={"start_urls": [SEED]})

    execution_id = response.json()["execution_id"]
    assert execution_id in scrapes.runs
    assert scrapes.runs[execution_id].status == "completed"


def test_finished_run_keeps_only_a_snapshot(client):
    """A finished execution drops its scheduler but still reports its counters."""
    client.post("/api/scrapes", json={"start_urls": [SEED], "execution_id": "exec-s"})

    run = scrapes.runs["exec-s"]
    assert run.scheduler is None
    assert run.summary["tasks_dispatched"] == 0

    status = client.get("/api/scrapes/exec-s").json()
    assert status["summary"] == run.summary
    assert status["products_collected"] == 0


def test_finished_runs_are_capped(client, monkeypatch):
    monkeypatch.setattr(settings, "max_tracked_scrapes", 2)

    for execution_id in ("exec-1", "exec-2", "exec-3"):
        client.post("/api/scrapes", json={"start_urls": [SEED], "execution_id": execution_id})

    assert set(scrapes.runs) == {"exec-2", "exec-3"}
    assert client.get("/api/scrapes/exec-1").status_code == 404


def test_failed_run_is_reported(client, monkeypatch):
    monkeypatch.setattr(CrawlScheduler, "run", AsyncMock(side_effect=RuntimeError("chromium crashed")))

    client.post("/api/scrapes", json={"start_urls": [SEED], "execution_id": "exec-err"})

    status = client.get("/api/scrapes/exec-err").json()
    assert status["status"] == "failed"
    assert "chromium crashed" in status["error"]


def test_unknown_site_is_404(client):
    response = client.post("/api/scrapes", json={"site": "nowhere", "start_urls": [SEED]})

    assert response.status_code == 404


@pytest.mark.parametrize(
    "payload",
    [
        {"start_urls": []},
        {"start_urls": [SEED], "max_products": 0},
        {"start_urls": [SEED], "max_concurrency": -2},
    ],
)
def test_invalid_requests_are_rejected(client, payload):
    assert client.post("/api/scrapes", json=payload).status_code == 422


def test_running_execution_conflicts(client):
    client.post("/api/scrapes", json={"start_urls": [SEED], "execution_id": "exec-1"})
    scrapes.runs["exec-1"].status = "running"

    response = client.post("/api/scrapes", json={"start_urls": [SEED], "execution_id": "exec-1"})

    assert response.status_code == 409


def test_list_and_missing_execution(client):
    client.post("/api/scrapes", json={"start_urls": [SEED], "execution_id": "exec-a"})
    client.post("/api/scrapes", json={"start_urls": [SEED], "execution_id": "exec-b"})

    listed = client.get("/api/scrapes").json()

    assert {run["execution_id"] for run in listed} == {"exec-a", "exec-b"}
    assert client.get("/api/scrapes/unknown").status_code == 404
