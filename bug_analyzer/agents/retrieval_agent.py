"""
Retrieval Agent
===============
Turns a RetrievalQuery into a bounded list of BugRecords.

Per-call state machine:
    1. Resolve query source: saved filter (one lookup) > explicit JQL >
       project-derived JQL > all bugs.
    2. Paginated ID search: request min(50, remaining) ids per page,
       following nextPageToken.
    3. Per-ID hydration: fetch each issue and run it through the record
       mapper. Runs concurrently under a semaphore; results keep page order.
    4. Terminate: max_results reached, isLast, no token, or empty page.

Failure semantics:
    - Search page failure is fatal. Records already collected are dropped:
      the caller gets everything or an error, never a silent partial list.
    - Hydration failure for one id is logged and skipped.
    - The connection check runs once per agent, before the first fetch.
"""
import asyncio
import logging
from typing import Optional

from bug_analyzer.core.config import HYDRATION_CONCURRENCY
from bug_analyzer.core.constants import SEARCH_PAGE_SIZE
from bug_analyzer.core.errors import HydrationSkip
from bug_analyzer.models.bug_record import BugRecord, RetrievalQuery
from bug_analyzer.parser.record_mapper import map_issue
from bug_analyzer.services.jira_client import JiraClient

logger = logging.getLogger(__name__)


class RetrievalAgent:
    """
    Fetches bug records from Jira.

    Parameters
    ----------
    client : JiraClient
        Tracker boundary (credentials already resolved).
    concurrency : int
        Maximum number of issues hydrated in parallel.
    """

    def __init__(self, client: JiraClient, concurrency: int = HYDRATION_CONCURRENCY) -> None:
        self.client = client
        self.concurrency = max(1, concurrency)
        self._connection_verified = False

    async def close(self) -> None:
        await self.client.close()

    async def ensure_connection(self) -> None:
        """Run the tracker connection check once per agent."""
        if self._connection_verified:
            return
        await self.client.test_connection()
        self._connection_verified = True

    async def resolve_jql(self, query: RetrievalQuery) -> str:
        """Pick the JQL to run: saved filter > explicit JQL > project/all bugs."""
        if query.filter_id:
            logger.info("Resolving saved filter %s", query.filter_id)
            return await self.client.get_filter_jql(query.filter_id)
        if query.jql:
            return query.jql
        return query.project_jql()

    async def _hydrate(self, issue_id: str, semaphore: asyncio.Semaphore) -> Optional[BugRecord]:
        async with semaphore:
            try:
                raw = await self.client.get_issue(issue_id)
            except HydrationSkip as skip:
                logger.warning("Skipping issue %s: %s", skip.issue_id, skip.reason)
                return None
        try:
            return map_issue(raw)
        except (RecursionError, ValueError) as e:
            logger.warning("Skipping issue %s: could not map payload (%s)", issue_id, e)
            return None

    async def fetch(self, query: RetrievalQuery) -> list[BugRecord]:
        """
        Retrieve up to query.max_results bug records.

        Returns
        -------
        list[BugRecord]
            Possibly empty; an empty list means the query matched nothing.

        Raises
        ------
        AuthError, ConnectivityError
            Connection check failed.
        SearchPageError
            A search page (or the saved-filter lookup) failed.
        """
        await self.ensure_connection()
        jql = await self.resolve_jql(query)
        logger.info("Fetching bugs (%s) with JQL: %s", query.describe(), jql)

        semaphore = asyncio.Semaphore(self.concurrency)
        records: list[BugRecord] = []
        seen_keys: set[str] = set()
        next_token: Optional[str] = None
        page_number = 0

        while len(records) < query.max_results:
            remaining = query.max_results - len(records)
            page = await self.client.search_issue_ids(
                jql, min(SEARCH_PAGE_SIZE, remaining), next_token
            )
            page_number += 1
            ids = page.issue_ids[:remaining]
            logger.info(
                "Search page %d: %d ids (last=%s)", page_number, len(page.issue_ids), page.is_last
            )
            if not ids:
                break

            hydrated = await asyncio.gather(*(self._hydrate(i, semaphore) for i in ids))
            for record in hydrated:
                if record is None:
                    continue
                if not record.key:
                    logger.warning("Skipping issue %s: payload has no key", record.id or "?")
                    continue
                if record.key in seen_keys:
                    logger.debug("Dropping duplicate issue %s", record.key)
                    continue
                seen_keys.add(record.key)
                records.append(record)

            if page.is_last or not page.next_page_token:
                break
            next_token = page.next_page_token

        logger.info("Fetched %d bugs from Jira", len(records))
        return records[:query.max_results]
