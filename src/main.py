"""Entry point for the voice call mediation service."""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from api.dependencies import shutdown_assistant
from api.routes import router as api_router
from config.settings import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await shutdown_assistant()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Voice Call Assistant",
    description="Mediates live voice calls between WebSocket audio clients and a conversational assistant.",
    lifespan=lifespan,
)
app.include_router(api_router, prefix="/api")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Voice call WebSocket server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args()


def run() -> None:
    args = _parse_args()
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
