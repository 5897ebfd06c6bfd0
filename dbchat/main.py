"""
dbchat API
FastAPI server exposing the natural language to SQL pipeline
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dbchat import __version__
from dbchat.api.routes import router as dbchat_router
from dbchat.config import Settings, get_settings
from dbchat.core.log_utils import configure_log_dir, log_info, log_warning
from dbchat.query_pipeline import get_query_pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    settings: Settings = app.state.settings
    configure_log_dir(settings.log_dir)

    logging.getLogger("httpx").setLevel(logging.WARNING)

    log_info("dbchat", "Starting...")

    # The service still starts when the pipeline can't be built; routes
    # report the failure per request.
    try:
        pipeline = get_query_pipeline(settings)
        log_info("dbchat", f"Provider: {pipeline.get_provider()}")
    except Exception as e:
        log_warning("dbchat", f"Pipeline initialization failed: {e}")

    log_info("dbchat", "Started successfully")

    yield

    log_info("dbchat", "Shut down complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title="dbchat",
        description="""
        Ask questions about a relational database in plain language.

        - **Ask**: retrieve relevant schema, generate SQL, run it read-only
        - **Train**: embed table DDL, descriptions, documentation and samples
        - **History**: every question is logged with its SQL and outcome
        """,
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Status", "description": "Health checks"},
            {"name": "dbchat", "description": "Natural language to SQL"},
        ],
    )
    app.state.settings = settings or get_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # dbchat routes: /api/dbchat/ask, /train, /history, /status, /schema, /validate, /samples, /documentation
    app.include_router(dbchat_router)

    @app.get("/health", tags=["Status"])
    def health():
        """Service health, including the training store connection."""
        try:
            pipeline = get_query_pipeline(app.state.settings)
            storage_ok = pipeline.embedding_store.storage.ping()
        except Exception as e:
            return {"status": "degraded", "storage": False, "error": str(e)}
        return {
            "status": "healthy" if storage_ok else "degraded",
            "storage": storage_ok,
            "provider": pipeline.get_provider(),
        }

    return app


app = create_app()


def run() -> None:
    """Run the API server with uvicorn."""
    settings = get_settings()
    log_info("dbchat", f"Starting uvicorn on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "dbchat.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level="warning",
    )


if __name__ == "__main__":
    run()
