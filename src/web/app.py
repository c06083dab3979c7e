"""
FastAPI application factory for Meter Capture.

Routes:
- /api/* -> control API for the capture state machine
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from capture.state_machine import CaptureController
from .routes import api


def create_app(controller: CaptureController) -> FastAPI:
    """Create the FastAPI app around one capture controller."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await controller.startup()
        logging.info(f"Capture controller started: {controller.status()}")
        try:
            yield
        finally:
            await controller.shutdown()
            logging.info("Capture controller stopped")

    app = FastAPI(
        title="Meter Capture",
        version="0.1.0",
        description="Camera capture and image enhancement for meter reading",
        lifespan=lifespan,
    )
    app.state.controller = controller

    # CORS for development (Vite dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")
    return app
