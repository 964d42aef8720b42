"""Stack Chat Backend - FastAPI application.

This module provides the main FastAPI application with routes for:
- Message generation
- Thread retrieval, listing and deletion
- Health checks
"""

from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stack_chat_backend.errors import ChatServiceError, InputValidationError, InternalError
from stack_chat_backend.routes import health_router, messages_router, threads_router
from stack_chat_backend.services.request_context import RequestIdFilter, request_id_middleware
from stack_chat_backend.services.runtime import get_runtime
from stack_chat_backend.services.settings import allowed_origins

# Configure logging
logger = logging.getLogger("stack_chat_backend")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(name)s - %(levelname)s - %(request_id)s - %(message)s")
    )
    handler.addFilter(RequestIdFilter())
    logger.addHandler(handler)

toolkit_logger = logging.getLogger("stack_toolkit")
toolkit_logger.setLevel(logging.INFO)
if not toolkit_logger.handlers:
    toolkit_logger.handlers = list(logger.handlers)

# Create FastAPI app
app = FastAPI(title="Stack Chat Backend", version="1.0.0")
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(error: ChatServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"error": error.message, "category": error.category},
    )


@app.exception_handler(ChatServiceError)
async def chat_service_error_handler(request: Request, exc: ChatServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(loc) for loc in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return _error_response(InputValidationError(f"Invalid request: {details}"))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(InternalError())


@app.on_event("startup")
async def startup_event():
    """Bootstrap services on application startup."""
    logger.info("Starting Stack Chat Backend...")

    # Resolve the model and build the provider before the first request
    try:
        get_runtime()
    except (RuntimeError, ValueError, BotoCoreError) as e:
        logger.warning("Runtime bootstrap failed: %s", e)

    logger.info("Stack Chat Backend startup complete")


# Register routers
app.include_router(health_router)
app.include_router(messages_router)
app.include_router(threads_router)
