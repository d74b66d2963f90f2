from __future__ import annotations

import copy
from typing import Any

from setup_wizard.application.ports.session_store import SessionStorePort
from setup_wizard.domain.entities.session import OnboardingSession
from setup_wizard.infrastructure.store.session_codec import session_from_record, session_to_record


class MemorySessionStore(SessionStorePort):
    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    def load(self, session_id: str) -> OnboardingSession | None:
        record = self._records.get(session_id)
        if record is None:
            return None
        return session_from_record(copy.deepcopy(record))

    def save(self, session: OnboardingSession) -> None:
        self._records[session.session_id] = session_to_record(session)

    def clear(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    def raw(self, session_id: str) -> dict[str, Any] | None:
        record = self._records.get(session_id)
        return copy.deepcopy(record) if record is not None else None
