"""FastAPI exception handlers producing typed ErrorResponse bodies."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reviewhub.errors.exceptions import InvalidTransitionError, ReviewHubError, StorageUnavailableError
from reviewhub.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(ReviewHubError)
    async def reviewhub_error_handler(request: Request, exc: ReviewHubError):
        trace_id = getattr(request.state, "trace_id", "unknown")
        if isinstance(exc, StorageUnavailableError):
            logger.error(
                "storage_unavailable",
                extra={"path": request.url.path, "trace_id": trace_id, "details": exc.details},
            )
        elif isinstance(exc, InvalidTransitionError):
            user = getattr(request.state, "user", {}) or {}
            logger.info(
                "transition_rejected",
                extra={
                    "path": request.url.path,
                    "trace_id": trace_id,
                    "user_sub": user.get("sub", "anonymous"),
                    "reason": exc.message,
                },
            )
        error_response = ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
                trace_id=trace_id,
                timestamp=datetime.now(timezone.utc),
            ),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json", exclude_none=True),
        )
