"""Request models for the records endpoints.

Fields are optional so the endpoints can report a bad key as 403 and
missing data as 400, matching the responses clients already handle.
"""
from typing import Any, Optional

from pydantic import BaseModel


class KeyedRequest(BaseModel):
    key: Optional[str] = None


class TimerResetRequest(KeyedRequest):
    tier: Optional[str] = None


class WinnerUpdateRequest(KeyedRequest):
    tier: Optional[str] = None
    wallet: Optional[str] = None
    vrf: Optional[str] = None
    amount: Optional[Any] = None
    txid: Optional[str] = None


class ContractUpdateRequest(KeyedRequest):
    address: Optional[str] = None
