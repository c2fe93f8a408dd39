"""Maps tenancy errors to JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tenantry.core.errors import TenancyError

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Service temporarily unavailable. Please try again."


async def tenancy_error_handler(request: Request, exc: TenancyError) -> JSONResponse:
    if exc.expose:
        detail = str(exc)
    else:
        # Transient infrastructure failure: log the cause, keep it from the client
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        detail = GENERIC_FAILURE

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": detail, **exc.extra},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TenancyError, tenancy_error_handler)  # type: ignore[arg-type]
