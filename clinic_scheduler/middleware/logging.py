"""Logging middleware and configuration."""

import logging
import sys
import time
from collections.abc import Callable
from uuid import uuid4

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from clinic_scheduler.config import settings


def configure_logging() -> None:
    """Configure structured logging."""
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors = shared_processors + [
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )


REQUEST_ID_HEADER = "X-Request-ID"


def _request_context(request: Request) -> dict[str, str]:
    """Context bound to every event logged while the request is handled."""
    context = {
        "request_id": request.headers.get(REQUEST_ID_HEADER) or uuid4().hex,
        "method": request.method,
        "path": request.url.path,
    }
    # Availability checks and list filters name the agenda in the query
    professional_id = request.query_params.get("professional_id")
    if professional_id:
        context["professional_id"] = professional_id
    return context


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware binding request context and logging each request."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable,
    ) -> Response:
        """
        Bind the request context and log the request outcome.

        Authentication and scope checks add the caller and the professional
        to the same context, so booking events logged by the services can be
        traced back to the request that caused them.

        Args:
            request: Request object
            call_next: Next middleware in chain

        Returns:
            Response object carrying the request id and process time
        """
        logger = structlog.get_logger()
        context = _request_context(request)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**context)

        started = time.perf_counter()
        logger.info(
            "request_started",
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration=time.perf_counter() - started,
            )
            raise

        duration = time.perf_counter() - started
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "request_completed",
            status_code=response.status_code,
            duration=duration,
        )

        response.headers[REQUEST_ID_HEADER] = context["request_id"]
        response.headers["X-Process-Time"] = str(duration)
        return response
