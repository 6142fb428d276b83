from __future__ import annotations

from typing import Protocol

from domain.models import ProcessFlow, RenderModel


class FlowLayoutEngine(Protocol):
    def build_render_model(self, process: ProcessFlow) -> RenderModel:
        ...
