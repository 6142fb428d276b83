from __future__ import annotations

from collections.abc import Callable

from fastapi.testclient import TestClient

from app.config import AppSettings
from app.web_main import create_app
from tests.helpers.process_fixtures import (
    decision,
    load_process_payload,
    process_payload,
    sequential_steps,
)


def test_health(app_settings: AppSettings) -> None:
    client = TestClient(create_app(app_settings))

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_layout_returns_render_model(app_settings: AppSettings) -> None:
    client = TestClient(create_app(app_settings))

    response = client.post("/api/layout", json=load_process_payload("order_to_cash.json"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["type"] == "process-flow-layout"
    assert payload["columnCount"] == 4
    assert len(payload["cells"]) == 9
    assert [warning["code"] for warning in payload["warnings"]] == ["unresolved_branch"]
    assert payload["metadata"]["bottleneck"] == 3
    assert any(path["connection"]["category"] == "loop_back" for path in payload["connections"])


def test_layout_honours_settings(app_settings_factory: Callable[..., AppSettings]) -> None:
    client = TestClient(create_app(app_settings_factory(columns=5)))

    response = client.post("/api/layout", json=process_payload(sequential_steps(10)))

    assert response.status_code == 200
    assert response.json()["columnCount"] == 5


def test_degenerate_process_is_rejected(app_settings: AppSettings) -> None:
    client = TestClient(create_app(app_settings))

    too_short = client.post("/api/layout", json=process_payload(sequential_steps(2)))
    no_branches = client.post(
        "/api/layout",
        json=process_payload([*sequential_steps(2), {"name": "Check", "isDecision": True}]),
    )

    assert too_short.status_code == 422
    assert no_branches.status_code == 422


def test_unresolved_branch_is_not_an_error(app_settings: AppSettings) -> None:
    client = TestClient(create_app(app_settings))
    steps = sequential_steps(4)
    steps[1] = decision("Escalate?", ("Yes", "Step 99"))

    response = client.post("/api/layout", json=process_payload(steps))

    assert response.status_code == 200
    codes = {warning["code"] for warning in response.json()["warnings"]}
    assert "unresolved_branch" in codes
