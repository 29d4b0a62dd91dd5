"""
Jira Client
===========
Thin async HTTP boundary for the Jira Cloud REST v3 API.

Endpoints used:
    GET /myself                                 — connection / credential check
    GET /filter/{id}?expand=jql                 — saved filter → stored JQL
    GET /filter/search?filterName=&maxResults=  — saved filter discovery
    GET /search/jql?jql=&maxResults=&nextPageToken=
                                                — IDs-only paginated search
    GET /issue/{id}?fields=*all                 — full issue payload

Only the IDs-only search is used; every search page is followed by
per-issue hydration.

Auth:
    Email + API token as HTTP Basic auth on every request.

Error mapping:
    httpx transport errors      → ConnectivityError
    401 / 403                   → AuthError
    other non-2xx on search     → SearchPageError
    any failure on hydration    → HydrationSkip (caller logs and continues)
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import quote

import httpx

from bug_analyzer.core.config import HTTP_TIMEOUT_SECONDS
from bug_analyzer.core.constants import JIRA_API_PATH
from bug_analyzer.core.errors import (
    AuthError,
    ConnectivityError,
    HydrationSkip,
    SearchPageError,
)

logger = logging.getLogger(__name__)

_AUTH_STATUSES = (401, 403)


# ---------------------------------------------------------------------------
# Search Page
# ---------------------------------------------------------------------------
@dataclass
class SearchPage:
    """One page of the IDs-only search."""
    issue_ids: list[str] = field(default_factory=list)
    next_page_token: Optional[str] = None
    is_last: bool = False


# ---------------------------------------------------------------------------
# Jira Client
# ---------------------------------------------------------------------------
class JiraClient:
    """
    Async client for the handful of Jira endpoints the analyzer needs.

    Usage:
        client = JiraClient(host, email, token)
        await client.test_connection()
        page = await client.search_issue_ids("type = Bug", 50)
        await client.close()
    """

    def __init__(
        self,
        host: str,
        email: str,
        api_token: str,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = host.rstrip("/") + JIRA_API_PATH
        self._auth = httpx.BasicAuth(email, api_token)
        self._timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def _get_http(self) -> httpx.AsyncClient:
        """Lazy-initialise the HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                auth=self._auth,
                headers={"Accept": "application/json"},
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        http = await self._get_http()
        try:
            return await http.get(path, params=params)
        except httpx.TimeoutException as e:
            raise ConnectivityError(f"Timed out calling Jira {path}: {e}") from e
        except httpx.RequestError as e:
            raise ConnectivityError(f"Could not reach Jira at {self.base_url}: {e}") from e

    @staticmethod
    def _check_auth(response: httpx.Response) -> None:
        if response.status_code in _AUTH_STATUSES:
            raise AuthError(
                f"Jira rejected the credentials (HTTP {response.status_code}). "
                "Check JIRA_EMAIL and JIRA_API_TOKEN."
            )

    @staticmethod
    def _json_object(response: httpx.Response, what: str, error_cls: type[Exception]) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise error_cls(f"{what}: response was not JSON ({e})") from e
        if not isinstance(data, dict):
            raise error_cls(f"{what}: expected a JSON object")
        return data

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def test_connection(self) -> bool:
        """
        Verify the tracker is reachable and the credentials are accepted.

        Returns
        -------
        bool
            True when GET /myself succeeds.

        Raises
        ------
        AuthError
            Credentials rejected.
        ConnectivityError
            Tracker unreachable or returned another failure.
        """
        response = await self._get("/myself")
        self._check_auth(response)
        if response.is_error:
            raise ConnectivityError(f"Jira connection check failed: HTTP {response.status_code}")
        logger.debug("Jira connection verified at %s", self.base_url)
        return True

    async def get_filter_jql(self, filter_id: str) -> str:
        """Resolve a saved filter id to its stored JQL."""
        path = f"/filter/{quote(str(filter_id), safe='')}"
        response = await self._get(path, params={"expand": "jql"})
        self._check_auth(response)
        if response.is_error:
            raise SearchPageError(
                f"Could not load saved filter {filter_id}: HTTP {response.status_code}"
            )
        data = self._json_object(response, f"Saved filter {filter_id}", SearchPageError)
        jql = data.get("jql")
        if not isinstance(jql, str) or not jql.strip():
            raise SearchPageError(f"Saved filter {filter_id} has no JQL")
        return jql

    async def search_filters(self, name: str = "", max_results: int = 50) -> list[dict[str, str]]:
        """
        Find saved filters whose name contains the given substring.

        Returns
        -------
        list[dict]
            [{"id": ..., "name": ...}, ...]
        """
        params: dict[str, Any] = {"maxResults": max_results}
        if name:
            params["filterName"] = name
        response = await self._get("/filter/search", params=params)
        self._check_auth(response)
        if response.is_error:
            raise ConnectivityError(f"Filter search failed: HTTP {response.status_code}")
        data = self._json_object(response, "Filter search", ConnectivityError)
        filters = []
        for item in data.get("values") or []:
            if isinstance(item, dict) and item.get("id") is not None:
                filters.append({"id": str(item["id"]), "name": str(item.get("name", ""))})
        return filters

    async def search_issue_ids(
        self,
        jql: str,
        max_results: int,
        next_page_token: Optional[str] = None,
    ) -> SearchPage:
        """
        Fetch one page of issue ids matching the JQL.

        Raises
        ------
        SearchPageError
            Non-success status or a malformed body.
        """
        params: dict[str, Any] = {"jql": jql, "maxResults": max_results}
        if next_page_token:
            params["nextPageToken"] = next_page_token
        response = await self._get("/search/jql", params=params)
        self._check_auth(response)
        if response.is_error:
            raise SearchPageError(f"Issue search failed: HTTP {response.status_code}")
        data = self._json_object(response, "Issue search", SearchPageError)

        ids: list[str] = []
        for issue in data.get("issues") or []:
            if isinstance(issue, dict) and issue.get("id") is not None:
                ids.append(str(issue["id"]))

        token = data.get("nextPageToken")
        return SearchPage(
            issue_ids=ids,
            next_page_token=token if isinstance(token, str) and token else None,
            is_last=bool(data.get("isLast", False)),
        )

    async def get_issue(self, issue_id: str) -> dict:
        """
        Fetch the full field set of one issue.

        Raises
        ------
        HydrationSkip
            On any failure; the issue should be skipped, not the retrieval.
        """
        path = f"/issue/{quote(str(issue_id), safe='')}"
        try:
            response = await self._get(path, params={"fields": "*all"})
        except ConnectivityError as e:
            raise HydrationSkip(issue_id, str(e)) from e
        if response.is_error:
            raise HydrationSkip(issue_id, f"HTTP {response.status_code}")
        try:
            data = response.json()
        except (ValueError, RecursionError) as e:
            raise HydrationSkip(issue_id, f"malformed JSON ({e})") from e
        if not isinstance(data, dict):
            raise HydrationSkip(issue_id, "expected a JSON object")
        return data
