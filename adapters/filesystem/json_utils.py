from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import orjson

DUMP_OPTIONS = orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS


def strip_line_comments(content: str) -> str:
    """Drop ``//`` comments that start outside a JSON string literal."""
    return "\n".join(_strip_line(line) for line in content.splitlines())


def _strip_line(line: str) -> str:
    in_string = False
    escaped = False
    for idx, char in enumerate(line):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif line.startswith("//", idx):
            return line[:idx]
    return line


def load_commented_json(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    return orjson.loads(strip_line_comments(text).encode("utf-8"))


def dump_json_bytes(payload: Any) -> bytes:
    try:
        return orjson.dumps(payload, option=DUMP_OPTIONS)
    except TypeError:
        # orjson rejects ints beyond 64 bits; the stdlib encoder does not.
        return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f"{path.suffix}.tmp")
    tmp_path.write_bytes(dump_json_bytes(payload))
    tmp_path.replace(path)
