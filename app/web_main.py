from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import ORJSONResponse

from adapters.layout.serpentine import SerpentineLayoutEngine
from app.config import AppSettings, load_settings
from domain.models import ProcessFlow
from domain.ports.layout import FlowLayoutEngine

logger = logging.getLogger(__name__)


def create_app(settings: AppSettings) -> FastAPI:
    app = FastAPI(title=settings.api.title, default_response_class=ORJSONResponse)
    app.state.settings = settings
    app.state.layout_engine = SerpentineLayoutEngine(settings.layout.to_layout_config())

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {"status": "ok"}

    @app.post("/api/layout")
    def build_layout(
        process: ProcessFlow,
        engine: FlowLayoutEngine = Depends(get_layout_engine),
    ) -> ORJSONResponse:
        try:
            model = engine.build_render_model(process)
        except Exception as exc:
            logger.exception("Layout failed for a process with %d steps.", len(process.steps))
            raise HTTPException(status_code=500, detail="Layout failed") from exc
        if model.warnings:
            logger.info(
                "Layout produced %d warning(s): %s",
                len(model.warnings),
                ", ".join(sorted({warning.code for warning in model.warnings})),
            )
        return ORJSONResponse(model.to_dict())

    return app


def get_layout_engine(request: Request) -> FlowLayoutEngine:
    return request.app.state.layout_engine


def build_default_app() -> FastAPI:
    settings = load_settings()
    logging.basicConfig(level=settings.api.log_level)
    return create_app(settings)
