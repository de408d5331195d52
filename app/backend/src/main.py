"""Entrypoint for the FastAPI application."""

import os
from dotenv import load_dotenv

# Load .env locally only; deployments inject env vars
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

from fastapi import FastAPI

from .api import files, health
from .core.config import get_settings
from .core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging(get_settings().log_level)
    app = FastAPI(title="Minio File Storage", version="0.1.0")

    app.include_router(health.router, prefix="/api")
    app.include_router(files.router, prefix="/api")

    return app


app = create_app()
