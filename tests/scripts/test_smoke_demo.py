from __future__ import annotations

import json
from pathlib import Path

import pytest

from scripts import smoke_demo


def test_process_file_is_read_with_shared_comment_rule(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    path = tmp_path / "inline.json"
    path.write_text(
        '{"steps": [ // three steps\n'
        '  {"name": "Open https://intranet/form"},\n'
        '  {"name": "Fill"}, // inline note\n'
        '  {"name": "Submit"}\n'
        "]}\n",
        encoding="utf-8",
    )
    sent: list[dict] = []

    def fake_fetch(url: str, payload: bytes | None = None) -> tuple[int, bytes]:
        sent.append(json.loads(payload))
        body = {"cells": [{}, {}, {}], "connections": [{}], "rowCount": 1, "columnCount": 3}
        return 200, json.dumps(body).encode("utf-8")

    monkeypatch.setattr(smoke_demo, "wait_for", lambda url, timeout: b"{}")
    monkeypatch.setattr(smoke_demo, "fetch", fake_fetch)
    monkeypatch.setattr("sys.argv", ["smoke_demo", "--process", str(path)])

    smoke_demo.main()

    assert [step["name"] for step in sent[0]["steps"]] == [
        "Open https://intranet/form",
        "Fill",
        "Submit",
    ]
    assert "Smoke test passed: 1x3 grid" in capsys.readouterr().out
