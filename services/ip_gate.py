"""
IP authorization gate for the print relay.

The relay listens on the operator's LAN. Any machine that can reach it
could otherwise print, so unknown client IPs are held as "pending" until
an operator approves them on the relay's management page.

State per IP:
    (none) --record_unknown--> PENDING --approve--> APPROVED
                                       --reject---> REJECTED
    APPROVED <--approve/reject--> REJECTED

Trusted IPs (the dashboard server forwarding jobs) are always authorized
and never stored.

Every mutation runs read-modify-persist under one lock, so concurrent
request threads cannot lose each other's updates. The store is loaded
once at construction.

File format:
    {"ips": [AuthorizedIPEntry...], "lastUpdated": "<iso timestamp>"}

This is a convenience gate, not authentication.
"""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from core.exceptions import IPNotFoundError
from logging_config import get_logger
from models.authorized_ip import AuthorizedIPEntry, IPStatus

logger = get_logger(__name__)

UNKNOWN_LABEL = "Usuário não identificado"


class IPGate:
    """
    Thread-safe allow-list of client IPs, persisted to JSON.
    """

    def __init__(
        self,
        store_path: Optional[Path] = None,
        trusted_ips: Optional[Iterable[str]] = None,
        clock: Callable[[], datetime] = None,
    ):
        """
        Args:
            store_path: JSON file; None keeps entries in memory only
            trusted_ips: IPs that are always authorized
            clock: Returns the current time; injectable for tests
        """
        self._store_path = Path(store_path) if store_path else None
        self._trusted = frozenset(ip.strip() for ip in (trusted_ips or []) if ip.strip())
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._entries: Dict[str, AuthorizedIPEntry] = {}
        self._lock = threading.RLock()
        self._load()

    # =========================================================================
    # Queries
    # =========================================================================

    def is_trusted(self, ip: str) -> bool:
        return ip in self._trusted

    def is_authorized(self, ip: str) -> bool:
        """True for trusted IPs and for stored entries with status APPROVED."""
        if self.is_trusted(ip):
            return True
        with self._lock:
            entry = self._entries.get(ip)
            return entry is not None and entry.status == IPStatus.APPROVED

    def get(self, ip: str) -> Optional[AuthorizedIPEntry]:
        with self._lock:
            entry = self._entries.get(ip)
            return replace(entry) if entry else None

    def list_entries(self, status: Optional[IPStatus] = None) -> List[AuthorizedIPEntry]:
        """Copies of all entries, most recently active first."""
        with self._lock:
            entries = [replace(e) for e in self._entries.values()]
        if status is not None:
            entries = [e for e in entries if e.status == status]
        entries.sort(key=lambda e: e.last_activity_at, reverse=True)
        return entries

    def stats(self) -> Dict[str, int]:
        with self._lock:
            statuses = [e.status for e in self._entries.values()]
        return {
            "authorizedIPs": statuses.count(IPStatus.APPROVED),
            "pendingIPs": statuses.count(IPStatus.PENDING),
            "rejectedIPs": statuses.count(IPStatus.REJECTED),
            "trustedIPs": len(self._trusted),
        }

    # =========================================================================
    # Mutations
    # =========================================================================

    def record_unknown(self, ip: str, label: Optional[str] = None) -> AuthorizedIPEntry:
        """
        Note a print attempt from an IP that is not authorized.

        Creates a PENDING entry on first contact; afterwards only bumps
        last_activity_at. An existing entry keeps its status and label.

        Returns:
            Copy of the stored entry
        """
        with self._lock:
            now = self._clock()
            current = self._entries.get(ip)
            if current is None:
                entry = AuthorizedIPEntry(
                    ip=ip,
                    label=(label or "").strip() or UNKNOWN_LABEL,
                    status=IPStatus.PENDING,
                    first_seen_at=now,
                    last_activity_at=now,
                )
            else:
                entry = replace(current, last_activity_at=now)
            self._commit(entry)
            if current is None:
                logger.warning(f"New IP waiting for approval: {ip} ({entry.label})")
            return replace(entry)

    def approve(self, ip: str) -> AuthorizedIPEntry:
        """
        Raises:
            IPNotFoundError: If the IP has never been recorded
        """
        with self._lock:
            entry = replace(self._require(ip), status=IPStatus.APPROVED, approved_at=self._clock())
            self._commit(entry)
            logger.info(f"IP approved: {ip} ({entry.label})")
            return replace(entry)

    def reject(self, ip: str) -> AuthorizedIPEntry:
        """
        Raises:
            IPNotFoundError: If the IP has never been recorded
        """
        with self._lock:
            entry = replace(self._require(ip), status=IPStatus.REJECTED, rejected_at=self._clock())
            self._commit(entry)
            logger.info(f"IP rejected: {ip} ({entry.label})")
            return replace(entry)

    def _require(self, ip: str) -> AuthorizedIPEntry:
        entry = self._entries.get(ip)
        if entry is None:
            raise IPNotFoundError(ip)
        return entry

    # =========================================================================
    # Persistence
    # =========================================================================

    def _commit(self, entry: AuthorizedIPEntry) -> None:
        """Persist the table with ``entry`` in it, then make it live. Caller holds the lock."""
        entries = dict(self._entries)
        entries[entry.ip] = entry
        self._persist(entries)
        self._entries = entries

    def _persist(self, entries: Dict[str, AuthorizedIPEntry]) -> None:
        """Write all entries to disk. Write errors propagate and leave memory unchanged."""
        if self._store_path is None:
            return
        document = {
            "ips": [entry.to_dict() for entry in entries.values()],
            "lastUpdated": self._clock().isoformat(),
        }
        self._store_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._store_path.with_suffix(self._store_path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(self._store_path)

    def _load(self) -> None:
        if self._store_path is None or not self._store_path.exists():
            return
        try:
            document = json.loads(self._store_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Could not read IP store {self._store_path}: {e}")
            return

        for item in document.get("ips", []):
            try:
                entry = AuthorizedIPEntry.from_dict(item)
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed IP entry {item!r}: {e}")
                continue
            # A duplicated IP in a hand-edited file: the last one wins
            self._entries[entry.ip] = entry

        logger.info(
            f"Loaded {len(self._entries)} IP entries "
            f"({self.stats()['authorizedIPs']} approved)"
        )
