from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from setup_wizard.application.ports.session_store import SessionStorePort
from setup_wizard.core.config import settings
from setup_wizard.domain.entities.session import OnboardingSession
from setup_wizard.infrastructure.store.session_codec import session_from_record, session_to_record


class JsonSessionStore(SessionStorePort):
    """One JSON file per session, written atomically."""

    def __init__(self, data_dir: str | None = None) -> None:
        self._data_dir = Path(data_dir or settings.SESSION_DATA_DIR)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, threading.Lock] = {}
        self._lock_lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def _get_lock(self, session_id: str) -> threading.Lock:
        with self._lock_lock:
            if session_id not in self._locks:
                self._locks[session_id] = threading.Lock()
            return self._locks[session_id]

    def _get_file_path(self, session_id: str) -> Path:
        return self._data_dir / f"{session_id}.json"

    def load(self, session_id: str) -> OnboardingSession | None:
        with self._get_lock(session_id):
            record = self._read(session_id)
        if record is None:
            return None
        return session_from_record(record)

    def save(self, session: OnboardingSession) -> None:
        with self._get_lock(session.session_id):
            self._write(session.session_id, session_to_record(session))

    def clear(self, session_id: str) -> None:
        with self._get_lock(session_id):
            self._get_file_path(session_id).unlink(missing_ok=True)

    def _read(self, session_id: str) -> dict[str, Any] | None:
        file_path = self._get_file_path(session_id)
        if not file_path.exists():
            return None
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            # Corrupted file: treat as no saved progress
            self._logger.warning("Unreadable session file", extra={"session_id": session_id, "reason": str(e)})
            return None
        return data if isinstance(data, dict) else None

    def _write(self, session_id: str, data: dict[str, Any]) -> None:
        file_path = self._get_file_path(session_id)
        temp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            # Atomic rename
            temp_path.replace(file_path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
