"""CORS and request-context middleware."""

import contextvars
import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from approvals.core.config import settings

logger = logging.getLogger("approvals")

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
client_ip_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("client_ip", default=None)


def current_client_ip() -> Optional[str]:
    """Address of the client whose request is being served, if any."""
    return client_ip_var.get()


class RequestContextFilter(logging.Filter):
    """Stamp log records with the id of the request that produced them."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id and client address for the duration of a request.

    An incoming ``X-Request-Id`` is reused so ids can be followed across
    services; otherwise one is generated. Both are echoed on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        id_token = request_id_var.set(request_id)
        ip_token = client_ip_var.set(request.client.host if request.client else None)
        request.state.request_id = request_id
        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            duration = round((time.perf_counter() - started) * 1000, 2)
            response.headers["X-Request-Id"] = request_id
            response.headers["X-Response-Time-Ms"] = str(duration)
            logger.info(
                "%s %s -> %s in %sms",
                request.method, request.url.path, response.status_code, duration,
            )
            return response
        finally:
            client_ip_var.reset(ip_token)
            request_id_var.reset(id_token)


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
