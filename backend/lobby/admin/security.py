"""Shared-secret check for privileged REST endpoints."""
import hmac
from typing import Any

from fastapi.responses import JSONResponse


def is_valid_key(provided: Any, expected: str) -> bool:
    """Return True if ``provided`` matches the configured dev key."""
    if not isinstance(provided, str) or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def invalid_key_response() -> JSONResponse:
    return JSONResponse({"success": False, "error": "Invalid key"}, status_code=403)
