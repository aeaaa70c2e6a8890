"""
FastAPI application entry point for the conference backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from conference_central.config import get_settings
from conference_central.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="Conference Central (FastAPI)", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
