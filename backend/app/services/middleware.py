"""Request timing and tracing middleware for the Sitebook API."""
import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("sitebook-api.middleware")

SKIP_LOG_PATHS = {"/health"}
REQUEST_ID_HEADER = "X-Request-ID"
WORKSPACE_PREFIX = "/api/workspaces/"


def _request_context(request: Request, request_id: str) -> dict:
    path = request.url.path
    ctx = {"http_method": request.method, "http_path": path, "request_id": request_id}
    if path.startswith(WORKSPACE_PREFIX):
        ctx["project_key"] = path[len(WORKSPACE_PREFIX):].split("/", 1)[0]
    return ctx


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    - Reuses the caller's X-Request-ID, or assigns a uuid4 one.
    - Measures end-to-end request duration in milliseconds (X-Process-Time).
    - Emits one structured log line per request (except /health); unhandled
      errors are logged with the same request id before propagating.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error(
                "request failed",
                exc_info=True,
                extra={**_request_context(request, request_id), "duration_ms": duration_ms},
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)

        if request.url.path not in SKIP_LOG_PATHS:
            logger.info(
                "request completed",
                extra={
                    **_request_context(request, request_id),
                    "http_status": response.status_code,
                    "duration_ms": duration_ms,
                },
            )

        return response
