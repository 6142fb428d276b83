from __future__ import annotations

import argparse
import json
import time
import urllib.error
import urllib.request
from pathlib import Path

from adapters.filesystem.json_utils import load_commented_json

DEFAULT_PROCESS = Path(__file__).resolve().parents[1] / "examples" / "processes" / "order_to_cash.json"


def fetch(url: str, payload: bytes | None = None) -> tuple[int, bytes]:
    req = urllib.request.Request(url, data=payload)
    if payload is not None:
        req.add_header("Content-Type", "application/json")
    with urllib.request.urlopen(req, timeout=10) as resp:
        return resp.status, resp.read()


def wait_for(url: str, timeout: int) -> bytes:
    deadline = time.time() + timeout
    last_error: Exception | None = None
    while time.time() < deadline:
        try:
            status, body = fetch(url)
            if status == 200:
                return body
        except (urllib.error.URLError, OSError) as exc:
            last_error = exc
        time.sleep(1)
    raise RuntimeError(f"Timed out waiting for {url}: {last_error}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Smoke test for a running layout API.")
    parser.add_argument("--api", default="http://localhost:8000")
    parser.add_argument("--process", type=Path, default=DEFAULT_PROCESS)
    parser.add_argument("--timeout", type=int, default=60)
    args = parser.parse_args()

    api_base = args.api.rstrip("/")
    wait_for(f"{api_base}/api/health", args.timeout)

    payload = load_commented_json(args.process)
    status, body = fetch(f"{api_base}/api/layout", json.dumps(payload).encode("utf-8"))
    if status != 200:
        raise RuntimeError(f"Layout request failed with status {status}")

    model = json.loads(body.decode("utf-8"))
    if len(model.get("cells", [])) != len(payload["steps"]):
        raise RuntimeError("Layout is missing grid cells")
    if not model.get("connections"):
        raise RuntimeError("Layout has no connections")

    print(
        f"Smoke test passed: {model['rowCount']}x{model['columnCount']} grid, "
        f"{len(model['connections'])} connections, {len(model.get('warnings', []))} warnings."
    )


if __name__ == "__main__":
    main()
