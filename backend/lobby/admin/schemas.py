"""Request models for the admin endpoints.

Fields are optional so that a missing key is reported as 403 by the
endpoint rather than a 422 validation error.
"""
from typing import Optional

from pydantic import BaseModel


class AdminKeyRequest(BaseModel):
    key: Optional[str] = None


class BroadcastMessageRequest(BaseModel):
    message: Optional[str] = None
    key: Optional[str] = None
