from __future__ import annotations

from pathlib import Path

import orjson
import pytest
from pydantic import ValidationError

from adapters.filesystem.json_utils import strip_line_comments
from adapters.filesystem.process_repository import FileSystemProcessRepository
from adapters.filesystem.render_model_repository import FileSystemRenderModelRepository
from adapters.layout.serpentine import SerpentineLayoutEngine
from tests.helpers.process_fixtures import fixture_path


def test_load_by_path_strips_line_comments() -> None:
    process = FileSystemProcessRepository().load_by_path(fixture_path("order_to_cash.json"))

    assert len(process.steps) == 9
    assert process.starts_when == "Customer places an order"
    assert process.annotations.bottleneck == 3


def test_comment_markers_inside_strings_are_kept(tmp_path: Path) -> None:
    path = tmp_path / "urls.json"
    path.write_text(
        '{"steps": [\n'
        '  {"name": "Open https://intranet/form"}, // form\n'
        '  {"name": "Fill"},\n'
        '  {"name": "Submit"}\n'
        "]}\n",
        encoding="utf-8",
    )

    process = FileSystemProcessRepository().load_by_path(path)

    assert process.steps[0].name == "Open https://intranet/form"


def test_load_all_with_paths_is_sorted() -> None:
    pairs = FileSystemProcessRepository().load_all_with_paths(
        fixture_path("order_to_cash.json").parent
    )

    assert [path.name for path, _ in pairs] == ["employee_onboarding.json", "order_to_cash.json"]


def test_invalid_process_raises(tmp_path: Path) -> None:
    path = tmp_path / "short.json"
    path.write_text('{"steps": [{"name": "One"}]}', encoding="utf-8")

    with pytest.raises(ValidationError):
        FileSystemProcessRepository().load_by_path(path)


def test_render_model_is_saved_as_json(tmp_path: Path) -> None:
    process = FileSystemProcessRepository().load_by_path(fixture_path("employee_onboarding.json"))
    model = SerpentineLayoutEngine().build_render_model(process)
    target = tmp_path / "out" / "employee_onboarding.layout.json"

    FileSystemRenderModelRepository().save(model, target)

    payload = orjson.loads(target.read_bytes())
    assert payload["type"] == "process-flow-layout"
    assert payload["columnCount"] == model.column_count
    assert len(payload["nodes"]) == 5
    assert payload["terminals"][0]["text"]["lines"] == ["Offer accepted"]


def test_strip_line_comments_handles_escaped_quotes() -> None:
    text = '{"name": "say \\"hi\\" // not a comment"} // trailing\n// whole line\n'

    assert strip_line_comments(text) == '{"name": "say \\"hi\\" // not a comment"} \n'
