"""Persisted JSON records: jackpot timers, winners and contract address."""

from .router import router
from .service import RecordStore, RecordStoreError

__all__ = ["RecordStore", "RecordStoreError", "router"]
