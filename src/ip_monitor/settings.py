"""
User settings for DNS behavior.

Two boolean keys, both defaulting to true:

- ``dnsResolveEnabled``: resolve domains at all
- ``dnsExcludeLocal``: never resolve local domains

Values are optionally persisted to a small JSON file. Listeners are
notified after a value actually changes.
"""

import json
from pathlib import Path
from typing import Callable, Optional

from .exceptions import InvalidInputError, PersistenceError


DNS_RESOLVE_ENABLED = "dnsResolveEnabled"
DNS_EXCLUDE_LOCAL = "dnsExcludeLocal"

DEFAULT_SETTINGS = {
    DNS_RESOLVE_ENABLED: True,
    DNS_EXCLUDE_LOCAL: True,
}

SettingsListener = Callable[[str, bool, bool], None]


class SettingsStore:
    """Boolean user settings with change notification."""

    def __init__(self, file_path: Optional[Path] = None) -> None:
        """
        Initialize the store.

        Args:
            file_path: Optional JSON file backing the settings
        """
        self._file_path = Path(file_path) if file_path else None
        self._values: dict[str, bool] = dict(DEFAULT_SETTINGS)
        self._listeners: list[SettingsListener] = []

    def load(self) -> None:
        """
        Read persisted values; unknown keys are ignored and missing keys
        keep their defaults.

        Raises:
            PersistenceError: If the file exists but cannot be read
        """
        if self._file_path is None or not self._file_path.exists():
            return
        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse settings file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read settings file: {e}",
                details={"file_path": str(self._file_path)},
            )

        if isinstance(data, dict):
            for key in DEFAULT_SETTINGS:
                if isinstance(data.get(key), bool):
                    self._values[key] = data[key]

    def save(self) -> None:
        if self._file_path is None:
            return
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(self._values, f, indent=2)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write settings file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def get(self, key: str) -> bool:
        if key not in DEFAULT_SETTINGS:
            raise InvalidInputError(
                code="unknown_setting",
                message=f"Unknown setting: {key}",
            )
        return self._values[key]

    def set(self, key: str, value: bool) -> None:
        """
        Change a setting, persist it and notify listeners.

        Raises:
            InvalidInputError: For unknown keys or non-boolean values
        """
        if key not in DEFAULT_SETTINGS:
            raise InvalidInputError(
                code="unknown_setting",
                message=f"Unknown setting: {key}",
            )
        if not isinstance(value, bool):
            raise InvalidInputError(
                code="invalid_value",
                message=f"Setting {key} must be a boolean",
                details={"value": repr(value)},
            )

        old = self._values[key]
        if old == value:
            return
        self._values[key] = value
        self.save()
        for listener in list(self._listeners):
            listener(key, old, value)

    def on_change(self, listener: SettingsListener) -> None:
        self._listeners.append(listener)

    @property
    def dns_resolve_enabled(self) -> bool:
        return self._values[DNS_RESOLVE_ENABLED]

    @property
    def dns_exclude_local(self) -> bool:
        return self._values[DNS_EXCLUDE_LOCAL]

    def to_dict(self) -> dict:
        return dict(self._values)
