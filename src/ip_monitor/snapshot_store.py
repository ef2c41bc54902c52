"""
Snapshot Store module for persisted tab state.

Serializes the registry's tabs to an HMAC-protected JSON file so they can
be rebuilt after a restart. Snapshots older than the configured maximum
age are discarded on load.
"""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .exceptions import PersistenceError, TamperingError
from .models import TabState


class SnapshotStore:
    """
    Persistent tab snapshots with HMAC protection.

    File layout: {"version", "tabs": {tab_id: TabState-dict},
    "last_updated", "hmac"}. Request type sets are stored as sorted lists.
    """

    VERSION = 1
    DEFAULT_MAX_AGE_SECONDS = 1800.0

    def __init__(
        self,
        file_path: Path,
        hmac_secret: str,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the snapshot store.

        Args:
            file_path: Path to the snapshot file (JSON format)
            hmac_secret: Secret key for HMAC computation
            max_age_seconds: Tab snapshots older than this are dropped on load
            clock: Source of the current time in epoch seconds
        """
        self._file_path = Path(file_path)
        self._hmac_secret = hmac_secret.encode("utf-8")
        self._max_age = max_age_seconds
        self._clock = clock

    def load(self) -> dict[int, TabState]:
        """
        Load tab snapshots and validate the HMAC.

        Returns:
            Mapping of tab id to TabState, without stale tabs; empty if the
            file does not exist

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            return {}

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse snapshot file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read snapshot file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(raw_data, dict):
            raise PersistenceError(
                code="parse_error",
                message="Snapshot file does not contain an object",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac({
            "version": raw_data.get("version"),
            "tabs": raw_data.get("tabs", {}),
            "last_updated": raw_data.get("last_updated"),
        })
        if not self.validate_hmac(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - snapshot may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        now = self._clock()
        tabs: dict[int, TabState] = {}
        for tab_id, tab_data in raw_data.get("tabs", {}).items():
            timestamp = tab_data.get("timestamp")
            if timestamp and now - float(timestamp) > self._max_age:
                continue
            try:
                tabs[int(tab_id)] = TabState.from_dict(tab_data)
            except (KeyError, TypeError, ValueError) as e:
                raise PersistenceError(
                    code="parse_error",
                    message=f"Invalid snapshot for tab {tab_id}: {e}",
                    details={"file_path": str(self._file_path), "tab_id": tab_id},
                )
        return tabs

    def save(self, tabs: dict[int, TabState]) -> None:
        """
        Write all tabs with HMAC protection.

        Raises:
            PersistenceError: If the file cannot be written
        """
        now = datetime.now(timezone.utc).isoformat()
        tabs_dict = {str(tab_id): state.to_dict() for tab_id, state in tabs.items()}

        data_for_hmac = {
            "version": self.VERSION,
            "tabs": tabs_dict,
            "last_updated": now,
        }
        output_data = dict(data_for_hmac, hmac=self.compute_hmac(data_for_hmac))

        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output_data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write snapshot file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def compute_hmac(self, data: dict) -> str:
        """Compute HMAC-SHA256 over canonically serialized data."""
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        """Validate HMAC using constant-time comparison."""
        if not isinstance(stored_hmac, str):
            return False
        return hmac.compare_digest(stored_hmac, computed_hmac)

    @property
    def file_path(self) -> Path:
        return self._file_path
