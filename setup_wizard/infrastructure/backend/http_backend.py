from __future__ import annotations

import logging
from typing import Any

import httpx

from setup_wizard.application.exceptions import AuthError, BackendRejection, NetworkError
from setup_wizard.application.ports.onboarding_backend import OnboardingBackendPort
from setup_wizard.core.config import settings


class HttpOnboardingBackend(OnboardingBackendPort):
    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        locale: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "Content-Type": "application/json",
            "Accept-Language": locale or settings.API_LOCALE,
        }
        token = token if token is not None else settings.API_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            headers=headers,
            timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )
        self._logger = logging.getLogger(__name__)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check_unique(self, field_kind: str, value: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        query = {"value": value}
        query.update({k: v for k, v in (params or {}).items() if v})
        return await self._request("GET", f"/validation/{field_kind}", context=f"validate {field_kind}", params=query)

    async def save_section(self, entity: str, section: str, payload: dict[str, Any]) -> dict[str, Any]:
        data = await self._request(
            "POST", f"/onboarding/{entity}/{section}", context=f"save {entity}/{section}", json=payload
        )
        self._ensure_success(data, f"Failed to save {entity} {section}")
        return data

    async def complete_entity(self, entity: str) -> dict[str, Any]:
        data = await self._request("POST", f"/onboarding/{entity}/complete", context=f"complete {entity}")
        self._ensure_success(data, f"Failed to complete {entity} setup")
        return data

    async def get_progress(self) -> dict[str, Any]:
        data = await self._request("GET", "/onboarding/progress", context="get progress")
        self._ensure_success(data, "Failed to fetch progress")
        progress = data.get("data")
        return progress if isinstance(progress, dict) else data

    async def get_plans(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/subscriptions/plans", context="get plans")
        plans = data.get("data", data.get("plans")) if isinstance(data, dict) else data
        return [p for p in (plans or []) if isinstance(p, dict)]

    async def _request(self, method: str, url: str, context: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            self._logger.warning("Backend request timed out", extra={"reason": context})
            raise NetworkError(f"{context}: request timed out") from e
        except httpx.TransportError as e:
            self._logger.warning("Backend unreachable", extra={"reason": context, "error": str(e)})
            raise NetworkError(f"{context}: cannot connect to backend server") from e

        if resp.status_code in (401, 403):
            self._logger.warning("Backend rejected credentials", extra={"reason": context, "status": resp.status_code})
            raise AuthError("Your session has expired. Please log in again.")

        body = self._json_or_none(resp)

        if resp.status_code >= 500:
            self._logger.error("Backend server error", extra={"reason": context, "status": resp.status_code})
            raise NetworkError(f"{context}: server error {resp.status_code}")

        if resp.status_code >= 400:
            message = (body or {}).get("message") if isinstance(body, dict) else None
            errors = (body or {}).get("errors") if isinstance(body, dict) else None
            raise BackendRejection(
                _as_text(message) or f"{context}: validation failed",
                can_proceed=bool(isinstance(body, dict) and body.get("canProceed")),
                errors=errors or [],
            )

        if body is None:
            raise NetworkError(f"{context}: backend returned a non-JSON response")
        return body

    @staticmethod
    def _json_or_none(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return None

    @staticmethod
    def _ensure_success(data: Any, fallback: str) -> None:
        if isinstance(data, dict) and data.get("success") is False:
            raise BackendRejection(
                _as_text(data.get("message")) or fallback,
                can_proceed=bool(data.get("canProceed")),
                errors=data.get("errors") or [],
            )


def _as_text(message: Any) -> str:
    # NestJS-style backends send a list of messages on validation failures.
    if isinstance(message, list):
        return "; ".join(str(m) for m in message if m)
    return str(message or "")
