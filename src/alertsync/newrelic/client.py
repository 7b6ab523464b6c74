"""HTTP client for the New Relic REST v2 and Infrastructure APIs.

Responses are mapped onto the error taxonomy in one place so repositories
only deal with parsed JSON or typed errors:

    2xx             → parsed JSON body (``None`` when empty)
    404             → ExternalNotFoundError
    other non-2xx   → ExternalAPIError(status_code, body)
    network failure → TransportError
"""

from __future__ import annotations

from typing import Any

import httpx

from alertsync.core.errors import ExternalAPIError, ExternalNotFoundError, TransportError
from alertsync.core.logging import get_logger
from alertsync.core.settings import OperatorSettings

logger = get_logger(__name__)


class NewRelicClient:
    """Thin JSON wrapper over an ``httpx.Client``.

    Args:
        api_url: REST v2 base URL
        infra_api_url: Infrastructure API base URL
        api_key: Admin API key sent as ``X-Api-Key``
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        api_url: str,
        infra_api_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._api_url = api_url.rstrip("/")
        self._infra_api_url = infra_api_url.rstrip("/")
        self._http = httpx.Client(
            headers={"X-Api-Key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: OperatorSettings,
        transport: httpx.BaseTransport | None = None,
    ) -> NewRelicClient:
        return cls(
            settings.newrelic_api_url,
            settings.newrelic_infra_api_url,
            settings.require_admin_key(),
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> NewRelicClient:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Verbs
    # ------------------------------------------------------------------ #

    def get(self, endpoint: str, *, params: dict[str, Any] | None = None, infra: bool = False) -> Any:
        return self._request("GET", endpoint, params=params, infra=infra)

    def post(self, endpoint: str, payload: dict[str, Any], *, infra: bool = False) -> Any:
        return self._request("POST", endpoint, json=payload, infra=infra)

    def put(
        self,
        endpoint: str,
        payload: dict[str, Any] | None = None,
        *,
        params: dict[str, Any] | None = None,
        infra: bool = False,
    ) -> Any:
        return self._request("PUT", endpoint, json=payload, params=params, infra=infra)

    def delete(self, endpoint: str, *, params: dict[str, Any] | None = None, infra: bool = False) -> Any:
        return self._request("DELETE", endpoint, params=params, infra=infra)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _url(self, endpoint: str, infra: bool) -> str:
        base = self._infra_api_url if infra else self._api_url
        return f"{base}/{endpoint.lstrip('/')}"

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        infra: bool = False,
    ) -> Any:
        url = self._url(endpoint, infra)
        logger.debug("newrelic_request", method=method, url=url, params=params)
        try:
            response = self._http.request(method, url, json=json, params=params)
        except httpx.TransportError as e:
            raise TransportError(f"{method} {url} failed: {e}", cause=e).with_context(url=url) from e

        if response.status_code == 404:
            raise ExternalNotFoundError(response.text, url=url)
        if not response.is_success:
            logger.warning(
                "newrelic_request_failed",
                method=method,
                url=url,
                status_code=response.status_code,
            )
            raise ExternalAPIError(response.status_code, response.text, url=url)

        if not response.content:
            return None
        return response.json()
