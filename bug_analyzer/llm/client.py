"""
LLM Client
==========
Async client for the Anthropic Messages API.

One analysis = one call:
    - a single user-role message carrying the full prompt
    - model and max output tokens fixed by configuration
    - no retries; a failed call surfaces to the caller

Error mapping:
    transport error / timeout          → ConnectivityError
    401 / 403                          → AuthError
    other non-2xx                      → ConnectivityError
    reply without a text block         → AnalysisError
"""
import logging
from typing import Optional

import httpx

from bug_analyzer.core.config import (
    ANALYSIS_MAX_TOKENS,
    ANALYSIS_MODEL,
    ANALYSIS_TIMEOUT_SECONDS,
    ANTHROPIC_BASE_URL,
)
from bug_analyzer.core.errors import AnalysisError, AuthError, ConnectivityError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class LLMClient:
    """
    Async HTTP client for the analysis model.

    Usage:
        client = LLMClient(api_key)
        text = await client.complete("Analyze these bugs...")
        await client.close()
    """

    def __init__(
        self,
        api_key: str,
        model: str = ANALYSIS_MODEL,
        max_tokens: int = ANALYSIS_MAX_TOKENS,
        base_url: str = ANTHROPIC_BASE_URL,
        timeout: float = ANALYSIS_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def _get_http(self) -> httpx.AsyncClient:
        """Lazy-initialise the HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._http

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def complete(self, prompt: str) -> str:
        """
        Send one prompt and return the reply text.

        Parameters
        ----------
        prompt : str
            Full user message.

        Returns
        -------
        str
            Text of the first content block.
        """
        http = await self._get_http()
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }

        logger.info("Requesting analysis from %s (%d prompt chars)", self.model, len(prompt))
        try:
            resp = await http.post(f"{self.base_url}/messages", json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ConnectivityError(f"Analysis request timed out: {e}") from e
        except httpx.RequestError as e:
            raise ConnectivityError(f"Could not reach the analysis service: {e}") from e

        if resp.status_code in (401, 403):
            raise AuthError(f"Analysis service rejected the API key (HTTP {resp.status_code})")
        if resp.is_error:
            raise ConnectivityError(
                f"Analysis service returned HTTP {resp.status_code}: {resp.text[:200]}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise AnalysisError(f"Analysis service returned a non-JSON envelope: {e}") from e

        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, list) or not content:
            raise AnalysisError("Analysis service returned no content")
        first = content[0]
        if not isinstance(first, dict) or first.get("type") != "text":
            raise AnalysisError("Unexpected response type from the analysis service")

        text = first.get("text") or ""
        usage = data.get("usage") or {}
        logger.info(
            "Analysis reply received (%d chars, %s output tokens)",
            len(text), usage.get("output_tokens", "?"),
        )
        return text
