import time
import logging
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable

perf_logger = logging.getLogger("performance")


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Times HTTP requests, tags them with an id and flags slow ones"""

    def __init__(self, app, slow_request_threshold: float = 1.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold
        self.request_count = 0

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        self.request_count += 1
        request_id = f"req_{self.request_count}_{int(start_time)}"
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            perf_logger.error(
                f"Request error: {request.method} {request.url.path} - "
                f"Error: {str(e)} - Time: {process_time:.3f}s"
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(round(process_time, 4))
        response.headers["X-Request-ID"] = request_id

        if process_time > self.slow_request_threshold:
            perf_logger.warning(
                f"Slow request: {request.method} {request.url.path} "
                f"took {process_time:.3f}s (threshold: {self.slow_request_threshold}s)"
            )
        else:
            perf_logger.debug(
                f"{request.method} {request.url.path} - "
                f"{response.status_code} - {process_time:.3f}s"
            )

        return response
