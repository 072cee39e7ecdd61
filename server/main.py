from __future__ import annotations

import argparse
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
import uvicorn

from server.gbcite.app_errors import install_error_handlers
from server.gbcite.cli import add_runtime_args, apply_runtime_overrides
from server.gbcite.config import Settings
from server.gbcite.core.middleware import BodySizeLimitMiddleware, SecurityHeadersMiddleware
from server.gbcite.routes import health, references

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    if settings is None:
        load_dotenv()
        settings = Settings.from_env()

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.info(
        "Model endpoint configured: has_key=%s has_base_url=%s model=%s",
        bool(settings.openai_api_key),
        bool(settings.openai_base_url),
        settings.llm_model,
    )

    app = FastAPI(title="gbcite", version="0.1.0")
    app.state.settings = settings
    app.state.http_session = None

    app.add_middleware(
        BodySizeLimitMiddleware,
        max_body_bytes=settings.max_body_kb * 1024,
        include_paths=("/api",),
    )
    app.add_middleware(SecurityHeadersMiddleware)
    install_error_handlers(app)

    app.include_router(health.router)
    app.include_router(references.router)
    return app


if __name__ != "__main__":
    app = create_app()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the gbcite reference formatting service.")
    add_runtime_args(parser)
    args = parser.parse_args()

    load_dotenv()
    apply_runtime_overrides(args)
    reload = os.getenv("GBCITE_RELOAD", "").strip().lower() in {"1", "true", "yes", "y", "on"}
    uvicorn.run("server.main:app", host=args.host, port=args.port, reload=reload)


if __name__ == "__main__":
    main()
