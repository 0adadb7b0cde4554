"""Async client for the Jira REST endpoints used by the feasibility ETL."""

from __future__ import annotations

import base64
from types import TracebackType
from typing import Any

import httpx

from ..exceptions import ProtocolError, SubFetchFailure, TransportError
from ..utils.logging import setup_logger
from ..utils.transcript import RunTranscript


def encode_authorization(username: str, password: str) -> str:
    """Return a basic access authentication header value for the Jira API."""

    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class JiraApiClient:
    """Thin wrapper over ``httpx.AsyncClient`` for search, issue and worklog calls.

    One client is shared by every request of a run so connections are pooled.
    Use it as an async context manager, or call :meth:`aclose` when done.
    """

    logger = setup_logger(__name__, context={"stage": "http"})

    def __init__(
        self,
        base_url: str,
        *,
        username: str,
        password: str,
        api_version: str = "2",
        timeout: float = 30.0,
        transcript: RunTranscript | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.transcript = transcript

        client_kwargs: dict[str, Any] = {
            "timeout": timeout,
            "headers": {
                "Authorization": encode_authorization(username, password),
                "Accept": "application/json",
            },
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def __aenter__(self) -> JiraApiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def api_root(self) -> str:
        return f"{self.base_url}/rest/api/{self.api_version}"

    def search_uri(self) -> str:
        return f"{self.api_root}/search"

    def issue_uri(self, key: str) -> str:
        return f"{self.api_root}/issue/{key}"

    def worklog_uri(self, key: str) -> str:
        return f"{self.api_root}/issue/{key}/worklog"

    async def search(self, jql: str, max_results: int | None = None) -> list[dict[str, Any]]:
        """Run a JQL search and return the raw issues.

        Raises:
            TransportError: If the API cannot be reached.
            ProtocolError: If the API answers with a non-success status.
        """

        uri = self.search_uri()
        body: dict[str, Any] = {"jql": jql}
        if max_results:
            body["maxResults"] = max_results

        try:
            response = await self._client.post(uri, json=body)
        except httpx.HTTPError as exc:
            self._record(uri, None)
            raise TransportError(f"Search request to {uri} failed: {exc}") from exc

        self._record(uri, response.status_code)
        if not response.is_success:
            raise ProtocolError(response.status_code, uri)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"Search response from {uri} is not valid JSON") from exc

        issues = payload.get("issues") if isinstance(payload, dict) else None
        return list(issues or [])

    async def fetch_issue(self, key: str) -> dict[str, Any]:
        """Return the full issue document for ``key``."""

        return await self._get_json(self.issue_uri(key))

    async def fetch_worklog(self, key: str) -> dict[str, Any]:
        """Return the worklog document (``{"worklogs": [...]}``) for ``key``."""

        return await self._get_json(self.worklog_uri(key))

    async def _get_json(self, uri: str) -> dict[str, Any]:
        try:
            response = await self._client.get(uri)
        except httpx.HTTPError as exc:
            self._record(uri, None)
            raise SubFetchFailure(uri, f"Request failed: {exc}") from exc

        self._record(uri, response.status_code)
        if not response.is_success:
            raise SubFetchFailure(
                uri,
                f"Status code not 200 OK. Status code: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise SubFetchFailure(
                uri, "Response body is not valid JSON", status_code=response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise SubFetchFailure(
                uri, "Response body is not a JSON object", status_code=response.status_code
            )
        return payload

    def _record(self, uri: str, status: int | None) -> None:
        self.logger.debug("%s -> %s", uri, status if status is not None else "no response")
        if self.transcript is not None:
            self.transcript.record_network(uri, status)
