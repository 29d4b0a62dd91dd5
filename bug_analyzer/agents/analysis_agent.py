"""
Analysis Agent
==============
Glues the prompt builder, the LLM client and the report normalizer into
one operation:

    analyze(records, mode) -> PatternReport

Flow:
    1. Validate mode and input (empty input is a caller error)
    2. Build the mode-specific prompt
    3. One blocking call to the analysis model
    4. Normalize the reply against the input records

Either a complete report comes back or one error is raised
(ConnectivityError / AuthError / AnalysisError / ParseError). No partial
report is ever synthesized.

The AnalysisAgent does NOT:
    - Fetch bugs (that's the retrieval agent's job)
    - Render reports (that's report_formatter's job)
"""
import logging
from typing import Sequence

from bug_analyzer.core.constants import ANALYSIS_MODES, MODE_ESCAPE
from bug_analyzer.llm.client import LLMClient
from bug_analyzer.llm.prompts import build_analysis_prompt
from bug_analyzer.models.bug_record import BugRecord
from bug_analyzer.models.pattern_report import PatternReport
from bug_analyzer.parser.report_normalizer import normalize_report

logger = logging.getLogger(__name__)


class AnalysisAgent:
    """
    Produces a PatternReport for a list of bugs.

    Parameters
    ----------
    client : LLMClient
        Analysis model client (API key already resolved).
    """

    def __init__(self, client: LLMClient) -> None:
        self.client = client

    async def close(self) -> None:
        await self.client.close()

    async def analyze(self, records: Sequence[BugRecord], mode: str = MODE_ESCAPE) -> PatternReport:
        """
        Analyse bug records and return the normalized report.

        Raises
        ------
        ValueError
            Unknown mode or no records.
        ParseError
            The model's reply was not JSON.
        """
        if mode not in ANALYSIS_MODES:
            raise ValueError(f"Unknown analysis mode {mode!r}; expected one of {ANALYSIS_MODES}")
        if not records:
            raise ValueError("No bugs to analyze")

        prompt = build_analysis_prompt(records, mode)
        raw = await self.client.complete(prompt)
        report = normalize_report(raw, records, mode)

        logger.info(
            "Analysis complete (%s mode): %d clusters, %d recurring issues, "
            "%d hotspots, %d recommendations",
            mode,
            len(report.root_cause_clusters),
            len(report.recurring_issues),
            len(report.component_hotspots),
            len(report.recommendations),
        )
        return report
