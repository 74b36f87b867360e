import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lms_core.api.main import api_router
from lms_core.core.config import settings
from lms_core.core.errors import (
    AttemptsExceeded,
    CoreError,
    NotActivityOwner,
    NotSubmitted,
    PastDeadline,
    StaleSubmission,
    UnsafeContent,
)

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Anything not listed is a validation error.
ERROR_STATUS_CODES: dict[type[CoreError], int] = {
    NotActivityOwner: 403,
    PastDeadline: 409,
    NotSubmitted: 409,
    AttemptsExceeded: 409,
    StaleSubmission: 409,
}


def status_code_for(exc: CoreError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 422


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)


@app.exception_handler(CoreError)
async def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
    status_code = status_code_for(exc)
    if isinstance(exc, UnsafeContent):
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            type(exc).__name__,
            exc.message,
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "errors": exc.errors},
    )


app.include_router(api_router, prefix=settings.API_V1_STR)
