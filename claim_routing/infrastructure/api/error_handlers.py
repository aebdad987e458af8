"""Application-wide exception handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from claim_routing.domain.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


def add_error_handlers(app: FastAPI) -> None:
    """Map storage failures that escape a route to 503."""

    @app.exception_handler(PersistenceFailure)
    async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"detail": "Storage temporarily unavailable"},
        )
