"""
Request size limiting middleware.
Rejects oversized template payloads before they reach the estimate endpoints.
"""
from typing import Any, Dict, Optional, Set
import json
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse


logger = logging.getLogger(__name__)


MAX_REQUEST_BODY_SIZE = 1_048_576  # 1 MB
MAX_TEMPLATE_SIZE = 524_288  # 512 KB

PROTECTED_ENDPOINTS: Set[str] = {
    "/api/estimate",
    "/api/estimate/bootstrap",
}


def _too_large(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={
            "status": "error",
            "error": "request_too_large",
            "message": message,
        }
    )


class RequestSizeLimiterMiddleware(BaseHTTPMiddleware):
    """
    Applies body and template size limits to the estimate endpoints.
    Other routes pass through untouched.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if request.method != "POST" or path not in PROTECTED_ENDPOINTS:
            return await call_next(request)

        content_length = request.headers.get("Content-Length")
        if content_length:
            try:
                if int(content_length) > MAX_REQUEST_BODY_SIZE:
                    logger.info(f"Request body size exceeded for {path}: {content_length} bytes")
                    return _too_large("Request body size exceeds allowed limit of 1 MB.")
            except ValueError:
                # Invalid header, the body is measured below
                pass

        body_bytes = await request.body()
        if len(body_bytes) > MAX_REQUEST_BODY_SIZE:
            logger.info(f"Request body size exceeded for {path}: {len(body_bytes)} bytes")
            return _too_large("Request body size exceeds allowed limit of 1 MB.")

        if body_bytes:
            try:
                body_json = json.loads(body_bytes.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                # Malformed JSON is reported by request validation
                body_json = None

            validation_error = self._validate_payload(body_json)
            if validation_error:
                logger.info(f"Payload validation failed for {path}: {validation_error}")
                return _too_large(validation_error)

        # Downstream handlers read the body again
        async def receive():
            return {"type": "http.request", "body": body_bytes, "more_body": False}

        request._receive = receive
        return await call_next(request)

    def _validate_payload(self, body_json: Any) -> Optional[str]:
        """
        Check the embedded template size.

        Returns:
            Error message if the payload is too large, None otherwise
        """
        if not isinstance(body_json, dict):
            return None

        template = body_json.get("template")
        if isinstance(template, str):
            template_size = len(template.encode("utf-8"))
            if template_size > MAX_TEMPLATE_SIZE:
                return (
                    f"Template size exceeds limit: {template_size} bytes "
                    f"(limit: {MAX_TEMPLATE_SIZE} bytes)"
                )
        return None
