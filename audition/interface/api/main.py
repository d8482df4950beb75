from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import structlog

from audition.core.config import Settings, get_settings
from audition.core.exceptions import register_exception_handlers
from audition.core.logging import setup_logging
from .routers import auditions, health, opportunities
from .store import AuditionStore, seed_opportunities

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None,
               store: Optional[AuditionStore] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version="0.1.0"
    )
    app.state.settings = settings
    app.state.store = store if store is not None else AuditionStore(seed_opportunities())

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with actual origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, prefix=settings.API_PREFIX)
    app.include_router(opportunities.router, prefix=settings.API_PREFIX)
    app.include_router(auditions.router, prefix=settings.API_PREFIX)

    logger.info("app_created", environment=settings.ENVIRONMENT.value,
                upload_dir=str(settings.UPLOAD_DIR))
    return app
