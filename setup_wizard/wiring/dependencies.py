from functools import lru_cache
import logging

from setup_wizard.core.config import settings
from setup_wizard.application.ports.onboarding_backend import OnboardingBackendPort
from setup_wizard.application.ports.scheduler import SchedulerPort
from setup_wizard.application.ports.session_store import SessionStorePort
from setup_wizard.application.use_cases.wizard import OnboardingWizard
from setup_wizard.infrastructure.backend.http_backend import HttpOnboardingBackend
from setup_wizard.infrastructure.backend.mock_backend import MockOnboardingBackend
from setup_wizard.infrastructure.scheduler.asyncio_scheduler import AsyncioScheduler
from setup_wizard.infrastructure.store.json_store import JsonSessionStore
from setup_wizard.infrastructure.store.memory_store import MemorySessionStore


_wizards: dict[str, OnboardingWizard] = {}


@lru_cache
def get_backend() -> OnboardingBackendPort:
    logger = logging.getLogger(__name__)
    if settings.BACKEND_PROVIDER.lower() == "mock":
        logger.info("Using MockOnboardingBackend")
        return MockOnboardingBackend()
    if not settings.API_TOKEN and settings.ENV.lower() not in {"dev", "local"}:
        raise ValueError("API_TOKEN is required to reach the onboarding backend.")
    logger.info("Using HttpOnboardingBackend", extra={"reason": settings.API_BASE_URL})
    return HttpOnboardingBackend()


@lru_cache
def get_session_store() -> SessionStorePort:
    if settings.STORE_PROVIDER.lower() == "json":
        return JsonSessionStore(data_dir=settings.SESSION_DATA_DIR)
    return MemorySessionStore()


@lru_cache
def get_scheduler() -> SchedulerPort:
    return AsyncioScheduler()


def new_wizard() -> OnboardingWizard:
    return OnboardingWizard(
        backend=get_backend(),
        scheduler=get_scheduler(),
        store=get_session_store(),
        uniqueness_debounce_ms=settings.UNIQUENESS_DEBOUNCE_MS,
        autosave_debounce_ms=settings.AUTOSAVE_DEBOUNCE_MS,
    )


def register_wizard(wizard: OnboardingWizard) -> None:
    _wizards[wizard.session.session_id] = wizard


def drop_wizard(session_id: str) -> None:
    _wizards.pop(session_id, None)


async def get_wizard(session_id: str) -> OnboardingWizard | None:
    """Active wizard for ``session_id``, resumed from storage when not in memory."""
    wizard = _wizards.get(session_id)
    if wizard is not None:
        return wizard
    wizard = new_wizard()
    if await wizard.resume(session_id) is None:
        return None
    register_wizard(wizard)
    return wizard


async def close_resources() -> None:
    """Forget live wizards and close the backend's HTTP client on shutdown."""
    _wizards.clear()
    if get_backend.cache_info().currsize:
        backend = get_backend()
        if isinstance(backend, HttpOnboardingBackend):
            await backend.aclose()
    get_backend.cache_clear()
