import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request; leaderboard reads also report how they were served."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.perf_counter()
        method = request.method
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                f"[{request_id}] {method} {path} - ERROR after {_elapsed_ms(start_time)}ms: {exc}",
                extra={"request_id": request_id, "path": path}
            )
            raise

        status_code = response.status_code
        cache_status = getattr(request.state, "cache_status", None)
        cache_msg = f" [CACHE: {cache_status}]" if cache_status else ""

        log_level = logging.WARNING if status_code >= 400 else logging.INFO
        logger.log(
            log_level,
            f"[{request_id}] {method} {path} - {status_code}{cache_msg} in {_elapsed_ms(start_time)}ms",
            extra={
                "request_id": request_id,
                "path": path,
                "status_code": status_code,
                "cache_status": cache_status
            }
        )

        response.headers["X-Request-ID"] = request_id
        if cache_status:
            response.headers["X-Cache"] = cache_status
        return response


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)
