"""
Bug Analysis API
================
Endpoints for the fetch → analyze → report pipeline.

    POST /api/fetch    — retrieve bugs from Jira (optionally save them)
    GET  /api/filters  — list saved filters matching a name
    POST /api/analyze  — analyze a supplied (or saved) bug list
    POST /api/run      — fetch, cache, analyze and render in one call

Analysis is wrapped in a hard timeout; core exceptions are translated to
HTTP errors by dependencies.to_http_error.

File paths in a request (output_path, bugs_file) are relative to
OUTPUT_DIR; absolute paths and paths that leave it are rejected with 400.
"""
import asyncio
import logging
import time
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, model_validator

from bug_analyzer.api.dependencies import (
    HANDLED_ERRORS,
    make_analysis_agent,
    make_jira_client,
    make_retrieval_agent,
    to_http_error,
)
from bug_analyzer.core.config import ANALYSIS_TIMEOUT_SECONDS, DEFAULT_MAX_RESULTS
from bug_analyzer.core.constants import MODE_ESCAPE
from bug_analyzer.core.report_formatter import format_report, report_to_dict
from bug_analyzer.models.bug_record import BugRecord, RetrievalQuery
from bug_analyzer.models.pattern_report import PatternReport
from bug_analyzer.services.report_writer import ReportWriter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bug Analysis"])

writer = ReportWriter()


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------
class FetchRequest(BaseModel):
    jql: Optional[str] = None
    filter_id: Optional[str] = None
    project: Optional[str] = None
    max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=1)
    output_path: Optional[str] = None

    def to_query(self) -> RetrievalQuery:
        return RetrievalQuery(
            jql=self.jql,
            filter_id=self.filter_id,
            project=self.project,
            max_results=self.max_results,
        )


class FetchResponse(BaseModel):
    count: int
    bugs: list[dict]
    output_path: Optional[str] = None


class AnalyzeRequest(BaseModel):
    bugs: Optional[list[BugRecord]] = None
    bugs_file: Optional[str] = None
    mode: Literal["escape", "all"] = MODE_ESCAPE
    format: Literal["json", "markdown"] = "json"
    output_path: Optional[str] = None

    @model_validator(mode="after")
    def _one_source(self):
        if self.bugs is None and not self.bugs_file:
            raise ValueError("Provide either 'bugs' or 'bugs_file'")
        return self


class RunRequest(FetchRequest):
    mode: Literal["escape", "all"] = MODE_ESCAPE
    format: Literal["json", "markdown"] = "markdown"


class AnalyzeResponse(BaseModel):
    mode: str
    bug_count: int
    report: Optional[dict] = None
    rendered: Optional[str] = None
    output_path: Optional[str] = None
    cache_path: Optional[str] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
async def _fetch(query: RetrievalQuery) -> list[BugRecord]:
    agent = make_retrieval_agent()
    try:
        return await agent.fetch(query)
    finally:
        await agent.close()


async def _analyze(records: list[BugRecord], mode: str) -> PatternReport:
    agent = make_analysis_agent()
    try:
        return await asyncio.wait_for(agent.analyze(records, mode), timeout=ANALYSIS_TIMEOUT_SECONDS)
    finally:
        await agent.close()


def _report_response(
    report: PatternReport,
    mode: str,
    bug_count: int,
    fmt: str,
    output_path: Optional[str],
    cache_path: Optional[str] = None,
) -> AnalyzeResponse:
    written = writer.write_report(report, output_path, fmt) if output_path else None
    return AnalyzeResponse(
        mode=mode,
        bug_count=bug_count,
        report=report_to_dict(report),
        rendered=format_report(report, fmt) if fmt == "markdown" else None,
        output_path=written,
        cache_path=cache_path,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("/fetch", response_model=FetchResponse)
async def fetch_bugs(request: FetchRequest):
    """Retrieve bugs by saved filter, JQL or project."""
    query = request.to_query()
    logger.info("[API] Fetch request: %s", query.describe())
    try:
        target = writer.confine(request.output_path) if request.output_path else None
        records = await _fetch(query)
        saved = writer.write_records(records, target) if target else None
    except HANDLED_ERRORS as exc:
        raise to_http_error(exc) from exc

    return FetchResponse(
        count=len(records),
        bugs=[r.model_dump(by_alias=True) for r in records],
        output_path=saved,
    )


@router.get("/filters")
async def list_filters(name: str = "", max_results: int = 50):
    """Saved filters whose name matches `name` (all visible filters when empty)."""
    client = make_jira_client()
    try:
        filters = await client.search_filters(name, max_results)
    except HANDLED_ERRORS as exc:
        raise to_http_error(exc) from exc
    finally:
        await client.close()
    return {"count": len(filters), "filters": filters}


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_bugs(request: AnalyzeRequest):
    """Analyze a bug list passed inline or loaded from a saved bug file."""
    try:
        target = writer.confine(request.output_path) if request.output_path else None
        if request.bugs is not None:
            records = list(request.bugs)
        else:
            records = writer.load_records(writer.confine(request.bugs_file))
        if not records:
            raise HTTPException(status_code=400, detail="No bugs to analyze")

        logger.info("[API] Analyzing %d bugs (%s mode)", len(records), request.mode)
        start = time.time()
        report = await _analyze(records, request.mode)
        logger.info("[API] Analysis finished in %.1fs", time.time() - start)
        return _report_response(report, request.mode, len(records), request.format, target)
    except HANDLED_ERRORS as exc:
        raise to_http_error(exc) from exc


@router.post("/run", response_model=AnalyzeResponse)
async def run_pipeline(request: RunRequest):
    """Fetch, cache and analyze in one call."""
    query = request.to_query()
    logger.info("[API] Full run: %s (%s mode)", query.describe(), request.mode)
    try:
        target = writer.confine(request.output_path) if request.output_path else None
        records = await _fetch(query)
        if not records:
            logger.info("[API] No bugs matched; skipping analysis")
            return AnalyzeResponse(
                mode=request.mode,
                bug_count=0,
                message="No bugs found matching the criteria",
            )

        cache_path = writer.cache_records(records)
        start = time.time()
        report = await _analyze(records, request.mode)
        logger.info("[API] Analysis finished in %.1fs", time.time() - start)
        return _report_response(
            report, request.mode, len(records), request.format, target, cache_path
        )
    except HANDLED_ERRORS as exc:
        raise to_http_error(exc) from exc
