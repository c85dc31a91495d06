"""Records REST API router.

Endpoints:
    GET  /api/timers             - Current jackpot timers
    POST /api/reset-timer        - Restart one tier's timer (dev key)
    POST /api/reset-all-timers   - Restart every default tier (dev key)
    GET  /api/winners            - All winners, newest first
    GET  /api/recent-winners     - Up to 3 recent winners per tier
    POST /api/update-winner      - Add a winner (dev key)
    POST /api/winners            - Sync the latest winner for a tier
    GET  /api/contract           - Current contract address
    POST /api/update-contract    - Change the contract address (dev key)
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from lobby.admin.security import invalid_key_response, is_valid_key
from lobby.presence.controller import LobbyController
from lobby.presence.schemas import LobbyEvent

from .schemas import (
    ContractUpdateRequest,
    KeyedRequest,
    TimerResetRequest,
    WinnerUpdateRequest,
)
from .service import RecordStore, RecordStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["records"])


def _store(request: Request) -> RecordStore:
    return request.app.state.records


def _lobby(request: Request) -> LobbyController:
    return request.app.state.lobby


def _key_ok(request: Request, body: KeyedRequest) -> bool:
    return is_valid_key(body.key, request.app.state.config.secrets.admin.dev_key)


def _error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({**extra, "error": message}, status_code=status_code)


# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------


@router.get("/timers")
async def get_timers(request: Request) -> JSONResponse:
    try:
        return JSONResponse(_store(request).get_timers())
    except RecordStoreError as e:
        logger.error("[Records] Failed to load timers: %s", e)
        return _error("Failed to load timers", 500)


@router.post("/reset-timer")
async def reset_timer(request: Request, body: TimerResetRequest) -> JSONResponse:
    """Restart the timer for ``body.tier``."""
    if not _key_ok(request, body):
        return invalid_key_response()
    if not body.tier:
        return _error("Missing tier", 400, success=False)

    try:
        started_at = _store(request).reset_timer(body.tier)
    except RecordStoreError as e:
        logger.error("[Records] Error resetting timer: %s", e)
        return _error("Failed to reset timer", 500)
    return JSONResponse({"success": True, "tier": body.tier, "startedAt": started_at})


@router.post("/reset-all-timers")
async def reset_all_timers(request: Request, body: KeyedRequest) -> JSONResponse:
    if not _key_ok(request, body):
        return invalid_key_response()

    try:
        started_at = _store(request).reset_all_timers()
    except RecordStoreError as e:
        logger.error("[Records] Failed to reset all timers: %s", e)
        return _error("Failed to reset all timers", 500)
    return JSONResponse({"success": True, "startedAt": started_at})


# ---------------------------------------------------------------------------
# Winners
# ---------------------------------------------------------------------------


@router.get("/winners")
async def get_winners(request: Request) -> JSONResponse:
    try:
        return JSONResponse(_store(request).get_winners())
    except RecordStoreError as e:
        logger.error("[Records] Error reading winners: %s", e)
        return _error("Failed to load winners", 500)


@router.get("/recent-winners")
async def get_recent_winners(request: Request) -> JSONResponse:
    try:
        return JSONResponse(_store(request).get_recent_winners())
    except RecordStoreError:
        return _error("Failed to load recent winners", 500)


@router.post("/update-winner")
async def update_winner(request: Request, body: WinnerUpdateRequest) -> JSONResponse:
    """Add a winner entry.

    Returns:
        403 for a bad key, 400 when tier/wallet/amount are missing,
        ``success: false`` for a duplicate, otherwise the stored entry.
    """
    if not _key_ok(request, body):
        logger.warning("[Records] Invalid dev key attempt on update-winner")
        return invalid_key_response()
    if not body.tier or not body.wallet or not body.amount:
        return _error("Missing data", 400, success=False)

    try:
        entry = _store(request).add_winner(
            tier=body.tier,
            wallet=body.wallet,
            amount=body.amount,
            vrf=body.vrf,
            txid=body.txid,
        )
    except RecordStoreError as e:
        logger.error("[Records] Error updating winners: %s", e)
        return _error("Server error", 500, success=False)

    if entry is None:
        return JSONResponse({"success": False, "error": "Duplicate winner skipped"})
    return JSONResponse({"success": True, "updated": entry})


@router.post("/winners")
async def sync_winner(request: Request, entry: Dict[str, Any] = Body(...)) -> JSONResponse:
    """Replace the stored winner for the entry's tier (or pool)."""
    try:
        _store(request).sync_winner(entry)
    except ValueError as e:
        return _error(str(e), 400)
    except RecordStoreError as e:
        logger.error("[Records] Error syncing winner: %s", e)
        return _error("Server error syncing winner", 500)
    return JSONResponse({"success": True})


# ---------------------------------------------------------------------------
# Contract address
# ---------------------------------------------------------------------------


@router.get("/contract")
async def get_contract(request: Request) -> JSONResponse:
    try:
        return JSONResponse(_store(request).get_contract())
    except RecordStoreError:
        return _error("Failed to load contract address", 500)


@router.post("/update-contract")
async def update_contract(request: Request, body: ContractUpdateRequest) -> JSONResponse:
    """Persist a new contract address and announce ``contractUpdated``."""
    if not _key_ok(request, body):
        return _error("Invalid dev key", 403, success=False)

    try:
        _store(request).set_contract(body.address)
    except ValueError:
        return _error("Invalid contract address format", 400, success=False)
    except RecordStoreError as e:
        logger.error("[Records] Error writing contract address: %s", e)
        return _error("Server error", 500, success=False)

    await _lobby(request).notify(LobbyEvent.CONTRACT_UPDATED)
    return JSONResponse({"success": True})
