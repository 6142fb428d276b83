from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from domain.models import ProcessFlow, RenderModel


class ProcessRepository(Protocol):
    def load_all_with_paths(self, directory: Path) -> Sequence[tuple[Path, ProcessFlow]]: ...

    def load_by_path(self, path: Path) -> ProcessFlow: ...


class RenderModelRepository(Protocol):
    def save(self, model: RenderModel, path: Path) -> None: ...
