import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from crm.api.routes.attachments import router as attachments_router
from crm.api.routes.contacts import router as contacts_router
from crm.api.routes.logs import router as logs_router
from crm.api.routes.tags import router as tags_router
from crm.core.config import settings
from crm.core.exceptions import (
    CRMError,
    crm_exception_handler,
    request_validation_exception_handler,
    unhandled_exception_handler,
)
from crm.db.init_db import init_db
from crm.services.attachment_storage import AttachmentStorageService

logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")
    if app.state.create_tables:
        init_db()
    yield
    logger.info(f"Shutting down {settings.app_name}")


def create_app(
    attachment_storage: AttachmentStorageService | None = None,
    create_tables: bool = True,
) -> FastAPI:
    app = FastAPI(title="Personal CRM", version="0.1.0", lifespan=lifespan)

    app.state.attachment_storage = attachment_storage or AttachmentStorageService()
    app.state.create_tables = create_tables

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials="*" not in settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CRMError, crm_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(contacts_router)
    app.include_router(logs_router)
    app.include_router(tags_router)
    app.include_router(attachments_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
