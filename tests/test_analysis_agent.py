"""
Analysis Agent Tests
====================
Prompt → model → normalizer composition with the LLM client mocked.
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from bug_analyzer.agents.analysis_agent import AnalysisAgent
from bug_analyzer.core.errors import ConnectivityError, ParseError
from bug_analyzer.models.bug_record import BugRecord

RECORDS = [
    BugRecord(key="BUG-1", summary="Crash on save", failure_type="Positive Failure"),
    BugRecord(key="BUG-2", summary="Timeout on login"),
]


def _client(reply):
    client = MagicMock()
    client.complete = AsyncMock(return_value=reply)
    client.close = AsyncMock()
    return client


def test_analyze_returns_normalized_report():
    async def run_test():
        reply = "```json\n" + json.dumps({
            "rootCauseClusters": [{"id": "c1", "bugKeys": ["BUG-2", "BUG-7"], "severity": "high"}],
            "summary": "Timeouts dominate",
            "recommendations": ["Raise login timeout"],
        }) + "\n```"
        client = _client(reply)
        report = await AnalysisAgent(client).analyze(RECORDS, "escape")

        assert report.summary == "Timeouts dominate"
        assert [b.key for b in report.root_cause_clusters[0].bugs] == ["BUG-2"]
        assert report.recommendations[0].text == "Raise login timeout"
        client.complete.assert_awaited_once()

    asyncio.run(run_test())


def test_prompt_follows_mode():
    async def run_test():
        client = _client("{}")
        await AnalysisAgent(client).analyze(RECORDS, "all")

        prompt = client.complete.await_args.args[0]
        assert "Failure Type: Positive Failure" in prompt
        assert "ESCAPED SIT" not in prompt

    asyncio.run(run_test())


def test_mode_default_category():
    async def run_test():
        client = _client('{"escapePatterns": [{"category": "weird"}]}')
        report = await AnalysisAgent(client).analyze(RECORDS, "all")
        assert report.escape_patterns[0].category == "unconfirmed"

    asyncio.run(run_test())


def test_empty_input_rejected_without_calling_model():
    async def run_test():
        client = _client("{}")
        with pytest.raises(ValueError):
            await AnalysisAgent(client).analyze([], "escape")
        client.complete.assert_not_awaited()

    asyncio.run(run_test())


def test_unknown_mode_rejected():
    async def run_test():
        client = _client("{}")
        with pytest.raises(ValueError):
            await AnalysisAgent(client).analyze(RECORDS, "nightly")
        client.complete.assert_not_awaited()

    asyncio.run(run_test())


def test_unparseable_reply_raises():
    async def run_test():
        with pytest.raises(ParseError):
            await AnalysisAgent(_client("Sorry, I can't help")).analyze(RECORDS)

    asyncio.run(run_test())


def test_client_errors_propagate():
    async def run_test():
        client = MagicMock()
        client.complete = AsyncMock(side_effect=ConnectivityError("down"))
        with pytest.raises(ConnectivityError):
            await AnalysisAgent(client).analyze(RECORDS)

    asyncio.run(run_test())
