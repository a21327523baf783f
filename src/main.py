import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from src.api.router import router
from src.config import settings
from src.core.exceptions import AppError, app_error_handler, validation_error_handler
from src.core.logging import setup_logging

setup_logging(settings.log_level, json_logs=not settings.debug)

logger = structlog.get_logger()


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, debug=settings.debug)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(router)
    if not settings.verify_tls:
        logger.warning("tls_verification_disabled")
    return app


app = create_app()


def run() -> None:
    uvicorn.run("src.main:app", host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    run()
