from __future__ import annotations

from pathlib import Path

from filelock import FileLock

from adapters.filesystem.json_utils import write_json_atomic
from domain.models import RenderModel
from domain.ports.repositories import RenderModelRepository


class FileSystemRenderModelRepository(RenderModelRepository):
    def save(self, model: RenderModel, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = path.with_suffix(f"{path.suffix}.lock")
        with FileLock(str(lock_path)):
            write_json_atomic(path, model.to_dict())
