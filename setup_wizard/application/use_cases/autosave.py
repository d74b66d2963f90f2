from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from setup_wizard.application.exceptions import AuthError, BackendRejection, NetworkError
from setup_wizard.application.ports.onboarding_backend import OnboardingBackendPort
from setup_wizard.application.ports.scheduler import ScheduledTask, SchedulerPort
from setup_wizard.application.ports.session_store import SessionStorePort
from setup_wizard.application.use_cases.step_flow import entity_for
from setup_wizard.application.utils.payload import clean_payload, content_hash
from setup_wizard.core.config import settings
from setup_wizard.domain.entities.plan import StepPosition, SubStep
from setup_wizard.domain.entities.session import OnboardingSession
from setup_wizard.domain.entities.validation import SaveResult


LOCAL_ONLY_WARNING = "Saved locally; changes will sync once the server is reachable again."

# Sub-steps whose backend section name differs from the sub-step name.
SECTION_ENDPOINTS: dict[SubStep, str] = {
    SubStep.services: "services-capacity",
}


def endpoint_for(session: OnboardingSession, step_key: str) -> tuple[str, str]:
    position = StepPosition.from_key(step_key)
    entity = entity_for(session.plan_type, position.step)
    return entity.value, SECTION_ENDPOINTS.get(position.sub_step, position.sub_step.value)


class ProgressiveSaveCoordinator:
    """Debounced, deduplicated persistence of sub-step payloads.

    The session's ``form_data`` is updated before any network call, so a
    failed remote save never loses the draft; it only delays persistence.
    """

    def __init__(
        self,
        session: OnboardingSession,
        backend: OnboardingBackendPort,
        scheduler: SchedulerPort,
        store: SessionStorePort | None = None,
        debounce_ms: int | None = None,
    ) -> None:
        self._session = session
        self._backend = backend
        self._scheduler = scheduler
        self._store = store
        self._debounce = (debounce_ms if debounce_ms is not None else settings.AUTOSAVE_DEBOUNCE_MS) / 1000.0
        self._timers: dict[str, ScheduledTask] = {}
        self._pending: dict[str, dict[str, Any]] = {}
        self._in_flight: dict[str, asyncio.Future[SaveResult]] = {}
        self._saved_hashes: dict[str, str] = {}
        self.last_results: dict[str, SaveResult] = {}
        self._logger = logging.getLogger(__name__)

    def last_saved_hash(self, step_key: str) -> str | None:
        return self._saved_hashes.get(step_key)

    def is_in_flight(self, step_key: str) -> bool:
        return step_key in self._in_flight

    def autosave(self, step_key: str, payload: Mapping[str, Any]) -> None:
        payload = clean_payload(payload)
        self._store_locally(step_key, payload)

        if step_key in self._in_flight:
            self._logger.debug("Autosave dropped; save already in flight", extra={"step_key": step_key})
            return

        self._pending[step_key] = payload
        timer = self._timers.pop(step_key, None)
        if timer is not None:
            timer.cancel()
        self._timers[step_key] = self._scheduler.call_later(self._debounce, lambda: self._fire_autosave(step_key))

    async def save_now(self, step_key: str, payload: Mapping[str, Any]) -> SaveResult:
        payload = clean_payload(payload)
        timer = self._timers.pop(step_key, None)
        if timer is not None:
            timer.cancel()
        self._pending.pop(step_key, None)
        self._store_locally(step_key, payload)

        running = self._in_flight.get(step_key)
        if running is not None:
            await asyncio.shield(running)
        return await self._save(step_key, payload)

    def cancel_all(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        self._pending.clear()

    async def _fire_autosave(self, step_key: str) -> SaveResult | None:
        self._timers.pop(step_key, None)
        payload = self._pending.pop(step_key, None)
        if payload is None:
            return None
        if step_key in self._in_flight:
            self._logger.debug("Autosave dropped; save already in flight", extra={"step_key": step_key})
            return None
        if content_hash(payload) == self._saved_hashes.get(step_key):
            self._logger.debug("Autosave skipped; payload unchanged", extra={"step_key": step_key})
            return SaveResult(ok=True, step_key=step_key, skipped=True)
        return await self._save(step_key, payload)

    async def _save(self, step_key: str, payload: dict[str, Any]) -> SaveResult:
        future: asyncio.Future[SaveResult] = asyncio.get_running_loop().create_future()
        self._in_flight[step_key] = future
        try:
            result = await self._call_backend(step_key, payload)
        finally:
            self._in_flight.pop(step_key, None)
        future.set_result(result)
        self.last_results[step_key] = result
        return result

    async def _call_backend(self, step_key: str, payload: dict[str, Any]) -> SaveResult:
        entity, section = endpoint_for(self._session, step_key)
        digest = content_hash(payload)
        try:
            response = await self._backend.save_section(entity, section, payload)
        except BackendRejection as e:
            self._logger.info("Save rejected by backend", extra={"step_key": step_key, "reason": str(e)})
            return SaveResult(
                ok=False, step_key=step_key, message=str(e), can_proceed=e.can_proceed, error=e, blocking=True
            )
        except AuthError as e:
            self._logger.warning("Save failed: not authenticated", extra={"step_key": step_key})
            return SaveResult(ok=False, step_key=step_key, message=str(e), can_proceed=False, error=e, blocking=True)
        except NetworkError as e:
            self._logger.warning("Save failed; keeping local draft", extra={"step_key": step_key, "reason": str(e)})
            return SaveResult(ok=False, step_key=step_key, message=str(e), error=e, warning=LOCAL_ONLY_WARNING)
        except Exception as e:
            self._logger.exception("Unexpected error while saving", extra={"step_key": step_key})
            return SaveResult(ok=False, step_key=step_key, message=str(e), error=e, warning=LOCAL_ONLY_WARNING)

        self._saved_hashes[step_key] = digest
        self._logger.info("Sub-step saved", extra={"step_key": step_key, "session_id": self._session.session_id})
        data = response.get("data") if isinstance(response, dict) else None
        return SaveResult(
            ok=True,
            step_key=step_key,
            message=str((response or {}).get("message") or ""),
            data=data if isinstance(data, dict) else {},
            can_proceed=bool((response or {}).get("canProceed", True)),
        )

    def _store_locally(self, step_key: str, payload: dict[str, Any]) -> None:
        self._session.form_data[step_key] = payload
        if self._store is not None:
            self._store.save(self._session)
