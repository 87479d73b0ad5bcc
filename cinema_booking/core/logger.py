import contextvars
import logging
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    """Attach request_id to every LogRecord so the formatter can include it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get() or "-"
        return True


def setup_logging(level: str | int = logging.INFO) -> None:
    """
    Install a single stream handler on the root logger.
    Call once at startup, does nothing when handlers are already configured.
    """
    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logger.

    Generates a request id (or reuses ``X-Request-Id``), exposes it to log
    records through a context var, and logs start and end of every request.
    """

    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        token = request_id_ctx.set(req_id)
        logger = logging.getLogger("cinema_booking.request")
        start = time.perf_counter()
        try:
            logger.info("request.start %s %s", request.method, request.url.path)
            response = await call_next(request)
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.info("request.end %s %s status=%s duration_ms=%s",
                        request.method, request.url.path, response.status_code, duration_ms)
            response.headers["X-Request-Id"] = req_id
            return response
        except Exception:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.exception("request.error %s %s duration_ms=%s", request.method, request.url.path, duration_ms)
            raise
        finally:
            request_id_ctx.reset(token)
