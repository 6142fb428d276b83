from __future__ import annotations

from pathlib import Path
from typing import Any, List

from adapters.filesystem.json_utils import load_commented_json
from domain.models import ProcessFlow
from domain.ports.repositories import ProcessRepository


class FileSystemProcessRepository(ProcessRepository):
    """Reads process JSON files; ``//`` line comments are tolerated."""

    def load_all_with_paths(self, directory: Path) -> List[tuple[Path, ProcessFlow]]:
        return [(path, self.load_by_path(path)) for path in sorted(directory.glob("*.json"))]

    def load_by_path(self, path: Path) -> ProcessFlow:
        return ProcessFlow.model_validate(self.load_raw(path))

    def load_raw(self, path: Path) -> Any:
        return load_commented_json(path)
