from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger("hrms.government")


class GovernmentApiError(Exception):
    """Transport-level failure talking to a government platform (no HTTP response)."""


@dataclass(frozen=True)
class GovernmentResponse:
    ok: bool
    status_code: int
    data: dict[str, Any] = field(default_factory=dict)

    def error_message(self, default: str) -> str:
        value = self.data.get("error") or self.data.get("message")
        return str(value) if value else default


class GovernmentApiClient:
    """Thin synchronous JSON client for the QIWA / SINAD REST APIs.

    Requests are sent once; there is no retry. ``transport`` lets callers
    substitute an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        name: str,
        base_url: str,
        api_key: str,
        timeout: float = 20.0,
        extra_headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.extra_headers = dict(extra_headers or {})
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            **self.extra_headers,
        }

    def request(self, method: str, path: str, *, payload: dict[str, Any] | None = None) -> GovernmentResponse:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method.upper(), url, headers=self._headers(), json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("government_api_timeout", extra={"api": self.name, "method": method, "path": path})
            raise GovernmentApiError(f"Request timeout - {self.name} API did not respond in time") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "government_api_network_error",
                extra={"api": self.name, "method": method, "path": path, "error": str(exc)},
            )
            raise GovernmentApiError(f"Network error: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        data = body if isinstance(body, dict) else {"data": body}

        logger.info(
            "government_api_call",
            extra={
                "api": self.name,
                "method": method.upper(),
                "path": path,
                "status_code": response.status_code,
            },
        )
        return GovernmentResponse(ok=response.is_success, status_code=response.status_code, data=data)

    def get(self, path: str) -> GovernmentResponse:
        return self.request("GET", path)

    def post(self, path: str, payload: dict[str, Any]) -> GovernmentResponse:
        return self.request("POST", path, payload=payload)
