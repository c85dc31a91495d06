"""JSON-file record store for jackpot timers, winners and the contract address.

Files live in ``data_dir``:
    timers.json          {tier: {"startedAt": epoch_ms}}
    winner.json          [winner, ...] newest first
    recent-winners.json  at most RECENT_PER_TIER winners per tier (derived)
    contract.json        {"address": "0x..."}

Missing files are created with defaults by ``ensure_defaults()``. These
records are independent of the lobby state; the only link is that a
contract update is announced through the lobby broadcast channel.
"""
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

TIMERS_FILE = "timers.json"
WINNERS_FILE = "winner.json"
RECENT_WINNERS_FILE = "recent-winners.json"
CONTRACT_FILE = "contract.json"

# Winners kept per tier in recent-winners.json
RECENT_PER_TIER = 3

CONTRACT_ADDRESS_LENGTH = 42

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class RecordStoreError(Exception):
    """A record file could not be read or written."""


def is_valid_contract_address(address: Any) -> bool:
    """Contract addresses are 0x-prefixed and 42 characters long."""
    return (
        isinstance(address, str)
        and address.startswith("0x")
        and len(address) == CONTRACT_ADDRESS_LENGTH
    )


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _date_key(entry: Dict[str, Any]) -> datetime:
    raw = entry.get("date")
    if not isinstance(raw, str):
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RecordStore:
    """Reads and writes the persisted JSON records.

    Args:
        data_dir: Directory holding the record files.
        tiers: Tier names seeded into timers.json and reset by reset-all.
        clock: Returns the current time in seconds since the epoch.
    """

    def __init__(
        self,
        data_dir: str,
        tiers: Iterable[str],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._data_dir = Path(data_dir)
        self._tiers = list(tiers)
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _path(self, name: str) -> Path:
        return self._data_dir / name

    def _read_json(self, name: str) -> Any:
        path = self._path(name)
        try:
            with path.open(encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as e:
            raise RecordStoreError(f"Failed to read {path}: {e}") from e

    def _write_json(self, name: str, data: Any) -> None:
        path = self._path(name)
        try:
            path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise RecordStoreError(f"Failed to write {path}: {e}") from e

    def _default_timers(self, now: int) -> Dict[str, Dict[str, int]]:
        return {tier: {"startedAt": now} for tier in self._tiers}

    # -----------------------------------------------------------------------
    # Setup
    # -----------------------------------------------------------------------

    def ensure_defaults(self) -> None:
        """Create the data directory and any missing record files."""
        self._data_dir.mkdir(parents=True, exist_ok=True)
        defaults = {
            TIMERS_FILE: lambda: self._default_timers(self._now_ms()),
            WINNERS_FILE: list,
            CONTRACT_FILE: lambda: {"address": ""},
        }
        for name, factory in defaults.items():
            if not self._path(name).exists():
                self._write_json(name, factory())
                logger.info("[Records] Created default %s", self._path(name))

    # -----------------------------------------------------------------------
    # Timers
    # -----------------------------------------------------------------------

    def get_timers(self) -> Dict[str, Any]:
        return self._read_json(TIMERS_FILE)

    def reset_timer(self, tier: str) -> int:
        """Restart one tier's timer. Returns the new startedAt."""
        timers = self.get_timers()
        started_at = self._now_ms()
        timers[tier] = {"startedAt": started_at}
        self._write_json(TIMERS_FILE, timers)
        logger.info("[Records] Reset timer for %s", tier)
        return started_at

    def reset_all_timers(self) -> int:
        """Replace timers.json with every default tier started now."""
        now = self._now_ms()
        self._write_json(TIMERS_FILE, self._default_timers(now))
        logger.info("[Records] All timers reset")
        return now

    # -----------------------------------------------------------------------
    # Winners
    # -----------------------------------------------------------------------

    def _load_winners(self) -> List[Dict[str, Any]]:
        # An unreadable or malformed winners file is treated as empty
        try:
            winners = self._read_json(WINNERS_FILE)
        except RecordStoreError:
            return []
        if not isinstance(winners, list):
            return []
        return [w for w in winners if isinstance(w, dict)]

    def get_winners(self) -> Any:
        return self._read_json(WINNERS_FILE)

    def get_recent_winners(self) -> Any:
        return self._read_json(RECENT_WINNERS_FILE)

    def add_winner(
        self,
        tier: str,
        wallet: str,
        amount: Any,
        vrf: Optional[str] = None,
        txid: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Record a new winner and refresh recent-winners.json.

        Returns:
            The stored entry, or None if it duplicates an existing winner
            (same tier and same txid or same wallet, case-insensitive).
        """
        winners = self._load_winners()
        wallet_lower = wallet.lower()
        for existing in winners:
            if existing.get("tier") != tier:
                continue
            same_tx = bool(txid) and existing.get("txid") == txid
            same_wallet = str(existing.get("wallet", "")).lower() == wallet_lower
            if same_tx or same_wallet:
                logger.warning("[Records] Duplicate winner skipped for %s (%s)", tier, wallet)
                return None

        entry = {
            "tier": tier,
            "wallet": wallet,
            "vrf": vrf or "—",
            "amount": amount,
            "txid": txid or "—",
            "date": _iso_now(),
        }
        winners.append(entry)
        winners.sort(key=_date_key, reverse=True)
        self._write_json(WINNERS_FILE, winners)
        self._write_json(RECENT_WINNERS_FILE, self._recent(winners))
        logger.info("[Records] Added %s winner: %s", tier, wallet)
        return entry

    def sync_winner(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the entry for a tier with ``entry`` and put it first.

        The tier is read from ``tier`` or, failing that, ``pool``.

        Raises:
            ValueError: If the entry names no tier.
        """
        tier = entry.get("tier") or entry.get("pool")
        if not tier:
            raise ValueError("Missing tier/pool field")

        winners = [
            w for w in self._load_winners()
            if w.get("tier") != tier and w.get("pool") != tier
        ]
        stored = {**entry, "date": entry.get("date") or _iso_now()}
        winners.insert(0, stored)
        self._write_json(WINNERS_FILE, winners)
        logger.info("[Records] Synced %s", tier)
        return stored

    @staticmethod
    def _recent(winners: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        by_tier: Dict[str, List[Dict[str, Any]]] = {}
        for winner in winners:
            bucket = by_tier.setdefault(str(winner.get("tier", "")).lower(), [])
            if len(bucket) < RECENT_PER_TIER:
                bucket.append(winner)
        return [w for bucket in by_tier.values() for w in bucket]

    # -----------------------------------------------------------------------
    # Contract address
    # -----------------------------------------------------------------------

    def get_contract(self) -> Any:
        return self._read_json(CONTRACT_FILE)

    def set_contract(self, address: str) -> None:
        """Persist a new contract address.

        Raises:
            ValueError: If the address is not 0x-prefixed and 42 chars long.
        """
        if not is_valid_contract_address(address):
            raise ValueError("Invalid contract address format")
        self._write_json(CONTRACT_FILE, {"address": address})
        logger.info("[Records] Updated contract address: %s", address)
