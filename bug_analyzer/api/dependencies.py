"""
API Dependencies
================
Builds the agents each request needs from resolved credentials, and maps
core exceptions onto HTTP errors.

    AuthError                                   → 401
    ConnectivityError / SearchPageError /
    AnalysisError (incl. ParseError)            → 502
    ValueError / OSError (bad input, unreadable bug file,
    missing credentials)                        → 400
    asyncio.TimeoutError                        → 504
"""
import asyncio
import logging

from fastapi import HTTPException
from pydantic import ValidationError

from bug_analyzer.agents.analysis_agent import AnalysisAgent
from bug_analyzer.agents.retrieval_agent import RetrievalAgent
from bug_analyzer.core.config import Credentials, load_credentials, missing_credentials
from bug_analyzer.core.errors import (
    AnalysisError,
    AuthError,
    BugAnalyzerError,
    ConnectivityError,
    SearchPageError,
)
from bug_analyzer.llm.client import LLMClient
from bug_analyzer.services.jira_client import JiraClient

logger = logging.getLogger(__name__)


def resolve_credentials() -> Credentials:
    """Credentials or a 400 naming what is missing."""
    try:
        return load_credentials()
    except ValidationError:
        missing = missing_credentials()
        raise HTTPException(
            status_code=400,
            detail={"message": "Analyzer is not configured", "missing": missing},
        )


def make_jira_client() -> JiraClient:
    creds = resolve_credentials()
    return JiraClient(creds.jira_host, creds.jira_email, creds.jira_api_token)


def make_retrieval_agent() -> RetrievalAgent:
    return RetrievalAgent(make_jira_client())


def make_analysis_agent() -> AnalysisAgent:
    creds = resolve_credentials()
    return AnalysisAgent(LLMClient(creds.anthropic_api_key))


def to_http_error(exc: Exception) -> HTTPException:
    """Translate a core exception into the HTTPException to raise."""
    if isinstance(exc, HTTPException):
        return exc
    if isinstance(exc, AuthError):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, (ConnectivityError, SearchPageError, AnalysisError)):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, asyncio.TimeoutError):
        return HTTPException(status_code=504, detail="Analysis timed out")
    if isinstance(exc, (ValueError, OSError)):
        return HTTPException(status_code=400, detail=str(exc))
    logger.error("Unexpected analyzer error: %s", exc, exc_info=True)
    return HTTPException(status_code=500, detail=str(exc))


# Exceptions the endpoints translate; anything else propagates as a 500.
HANDLED_ERRORS = (BugAnalyzerError, ValueError, OSError, asyncio.TimeoutError)
