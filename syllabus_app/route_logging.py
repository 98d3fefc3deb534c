from __future__ import annotations

import logging
import time
from contextvars import ContextVar

from fastapi.routing import APIRoute
from starlette.requests import Request

from syllabus_app.config import settings


current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='background')
_request_logger = logging.getLogger('syllabus_app.request')


class EndpointNameRoute(APIRoute):
    """Labels each request with its route template and logs slow handlers."""

    def get_route_handler(self):
        original_handler = super().get_route_handler()
        endpoint_label = f"{','.join(sorted(self.methods or ()))} {self.path}"

        async def timed_handler(request: Request):
            token = current_endpoint.set(endpoint_label)
            started = time.perf_counter()
            try:
                response = await original_handler(request)
            finally:
                current_endpoint.reset(token)
            duration_ms = (time.perf_counter() - started) * 1000.0
            if duration_ms >= settings.metrics_slow_ms:
                _request_logger.info(
                    'request_slow endpoint=%s status_code=%s duration_ms=%.2f',
                    endpoint_label,
                    response.status_code,
                    duration_ms,
                )
            return response

        return timed_handler
