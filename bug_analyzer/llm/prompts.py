"""
LLM Prompts
===========
Builds the single user prompt sent for a bug pattern analysis.

Prompt Layout:
    - Role + mode framing ("escape": bugs that escaped SIT;
      "all": every bug, grouped by failure type)
    - Numbered list of analysis dimensions
    - One block per bug, separated by a "---" line
    - The exact JSON schema the reply must follow
    - "Return ONLY valid JSON" instruction

Record Block:
    [KEY] summary
    Status | Resolution | Priority
    Failure Type | Customer        ("all" mode only)
    Customer Impact | Severity
    Components / Labels
    Description (first 500 chars, "..." when cut)
    Recent comments (last 2, 200 chars each)

Schema Contract:
    report_schema() is the same structure the report normalizer reads.
    Its top-level keys must stay in lock-step with PatternReport's aliases;
    the test suite checks this.
"""
import json
import logging
from typing import Sequence

from bug_analyzer.core.constants import (
    ANALYSIS_MODES,
    COMMENT_MAX_CHARS,
    DESCRIPTION_MAX_CHARS,
    ELLIPSIS,
    ESCAPE_CATEGORIES,
    FAILURE_CATEGORIES,
    MODE_ALL,
    MODE_ESCAPE,
    NEGATIVE_FAILURE,
    POSITIVE_FAILURE,
    RECENT_COMMENT_COUNT,
    RECORD_SEPARATOR,
)
from bug_analyzer.models.bug_record import BugRecord

logger = logging.getLogger(__name__)


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


# ---------------------------------------------------------------------------
# Record serialisation
# ---------------------------------------------------------------------------
def format_record(bug: BugRecord, mode: str = MODE_ESCAPE) -> str:
    """Serialise one bug into a bounded-length prompt block."""
    parts = [
        f"[{bug.key}] {bug.summary}",
        f"Status: {bug.status} | Resolution: {bug.resolution or 'Unresolved'} | "
        f"Priority: {bug.priority or 'None'}",
    ]
    if mode == MODE_ALL:
        parts.append(
            f"Failure Type: {bug.failure_type or 'Unknown'} | Customer: {bug.customer or 'Unknown'}"
        )
    parts.append(
        f"Customer Impact: {bug.customer_impact or 'Unknown'} | Severity: {bug.severity or 'Unknown'}"
    )
    parts.append(f"Components: {', '.join(bug.components) or 'None'}")
    parts.append(f"Labels: {', '.join(bug.labels) or 'None'}")

    if bug.description:
        parts.append(f"Description: {_truncate(bug.description, DESCRIPTION_MAX_CHARS)}")

    if bug.comments:
        recent = bug.comments[-RECENT_COMMENT_COUNT:]
        parts.append(
            "Recent comments: "
            + " | ".join(_truncate(c.body, COMMENT_MAX_CHARS) for c in recent)
        )

    return "\n".join(parts)


def format_records(bugs: Sequence[BugRecord], mode: str = MODE_ESCAPE) -> str:
    return RECORD_SEPARATOR.join(format_record(b, mode) for b in bugs)


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------
def _failure_counts(bugs: Sequence[BugRecord]) -> dict[str, int]:
    return {
        "positive-failure": sum(1 for b in bugs if b.failure_type == POSITIVE_FAILURE),
        "negative-failure": sum(1 for b in bugs if b.failure_type == NEGATIVE_FAILURE),
        "unconfirmed": sum(1 for b in bugs if b.status == "Open"),
    }


def report_schema(mode: str, total_bugs: int, escapes_example: dict[str, int]) -> dict:
    """Example-valued JSON schema the analysis reply must match."""
    categories = ESCAPE_CATEGORIES if mode == MODE_ESCAPE else FAILURE_CATEGORIES
    return {
        "rootCauseClusters": [{
            "id": "cluster-1",
            "name": "Descriptive cluster name",
            "description": "What these bugs have in common",
            "rootCause": "The underlying cause",
            "bugKeys": ["BUG-1", "BUG-2"],
            "affectedComponents": ["component1"],
            "severity": "critical|high|medium|low",
            "suggestedFix": "How to address this",
        }],
        "recurringIssues": [{
            "pattern": "Description of recurring pattern",
            "occurrences": 3,
            "bugKeys": ["BUG-1", "BUG-2", "BUG-3"],
            "timespan": "Over 2 months",
        }],
        "componentHotspots": [{
            "component": "Component name",
            "bugCount": 5,
            "severity": "critical|high|medium|low",
            "trend": "increasing|stable|decreasing",
        }],
        "escapePatterns": [{
            "category": "|".join(categories),
            "description": (
                "Why these bugs escaped SIT testing" if mode == MODE_ESCAPE
                else "Pattern description for this failure type"
            ),
            "bugKeys": ["BUG-1", "BUG-2"],
            "frequency": 3,
        }],
        "suggestedTestScenarios": [{
            "name": "Test scenario name",
            "description": "What this test validates",
            "type": "unit|integration|e2e|performance|stress|environment",
            "targetBugs": ["BUG-1", "BUG-2"],
            "preconditions": ["Condition 1", "Condition 2"],
            "steps": ["Step 1", "Step 2", "Step 3"],
            "expectedOutcome": "What should happen",
            "priority": "critical|high|medium",
        }],
        "testingGaps": [{
            "area": "Area or type of testing",
            "description": "What is missing or insufficient",
            "currentCoverage": "Description of current state",
            "suggestedImprovement": "How to improve coverage",
            "impactedBugCount": 5,
        }],
        "defectInjectionPoints": [{
            "phase": "requirements|design|coding|integration|deployment",
            "description": "How defects were introduced at this phase",
            "bugKeys": ["BUG-1", "BUG-2"],
            "frequency": 3,
            "preventionStrategy": "How to prevent defects at this phase",
        }],
        "componentRiskScores": [{
            "component": "Component name",
            "riskScore": 8,
            "escapeHistory": 5,
            "complexityFactor": "low|medium|high",
            "changeFrequency": "low|medium|high",
            "recommendation": "Risk mitigation recommendation",
        }],
        "regressionAnalysis": [{
            "isRegression": True,
            "bugKey": "BUG-1",
            "relatedBugKeys": ["BUG-OLD-1"],
            "regressionType": "exact|similar|related-area",
            "likelyCause": "What likely caused the regression",
        }],
        "customerImpacts": [{
            "bugKey": "BUG-1",
            "impactLevel": "critical|high|medium|low",
            "affectedUsers": "all|many|some|few",
            "businessFunction": "What business function is affected",
            "workaroundAvailable": True,
            "estimatedCost": "high|medium|low",
        }],
        "testDataRecommendations": [{
            "category": "Category of test data",
            "description": "What data patterns to test",
            "dataPatterns": ["Pattern 1", "Pattern 2"],
            "edgeCases": ["Edge case 1", "Edge case 2"],
            "targetBugs": ["BUG-1", "BUG-2"],
            "priority": "critical|high|medium",
        }],
        "processImprovements": [{
            "area": "code-review|testing|deployment|requirements|environment",
            "suggestion": "Specific process improvement",
            "rationale": "Why this would help",
            "targetBugs": ["BUG-1", "BUG-2"],
            "effort": "low|medium|high",
            "impact": "low|medium|high",
        }],
        "trendMetrics": {
            "period": "Analysis period (e.g., Q1 2025)",
            "totalBugs": total_bugs,
            "escapesByCategory": escapes_example,
            "topComponents": ["Component1", "Component2"],
            "riskTrend": "improving|stable|worsening",
            "comparisonToPrevious": "Summary comparison to typical patterns",
        },
        "automationOpportunities": [{
            "area": "Area where automation would help",
            "description": "What to automate and how",
            "automationType": "unit|integration|e2e|performance|regression|monitoring",
            "targetBugs": ["BUG-1", "BUG-2"],
            "effort": "low|medium|high",
            "priority": "critical|high|medium",
        }],
        "platformPortAnalysis": {
            "sourcePlatform": "Platform the feature was ported from (empty if none)",
            "targetPlatform": "Platform the feature was ported to (empty if none)",
            "portRelatedBugKeys": ["BUG-1"],
            "commonIssues": ["Issue introduced by the port"],
            "riskLevel": "low|medium|high",
            "recommendations": ["How to de-risk future ports"],
        },
        "summary": "High-level summary of findings",
        "recommendations": [{
            "text": "Specific actionable recommendation",
            "reasoning": "Why this recommendation will help, based on the analysis",
            "targetBugs": ["BUG-1", "BUG-2"],
            "priority": "critical|high|medium",
        }],
    }


# ---------------------------------------------------------------------------
# Mode templates
# ---------------------------------------------------------------------------
_ESCAPE_DIMENSIONS = [
    "Group them into logical clusters based on root cause",
    "Identify recurring issues (same problem appearing multiple times)",
    "Identify component hotspots (areas with high bug density)",
    "Provide actionable recommendations",
    "Analyze WHY these bugs escaped SIT testing - categorize the escape patterns",
    "Suggest specific test scenarios that would have caught each bug cluster",
    "Identify testing methodology gaps (what types of tests are missing)",
    "Analyze defect injection points - where in the SDLC were bugs introduced",
    "Calculate risk scores for components based on escape patterns, complexity, and change frequency",
    "Identify regression bugs - issues that appear to be regressions of previously fixed problems",
    "Assess customer impact of each bug (business function, user impact, workaround availability)",
    "Recommend specific test data patterns that would catch these bugs",
    "Suggest process improvements for code review, testing, and deployment",
    "Provide trend analysis summary comparing to typical patterns",
    "Identify test automation opportunities that would catch these bugs earlier",
    "If any bugs relate to porting a feature between platforms, analyze the port-related risk",
]

_ALL_DIMENSIONS = [
    "Group them into logical clusters based on root cause",
    "Identify recurring issues (same problem appearing multiple times)",
    "Identify component hotspots (areas with high bug density)",
    "Analyze patterns by Failure Type (positive vs negative) in escapePatterns",
    "Analyze resolution patterns for resolved bugs",
    'Identify which "Open" bugs are likely real bugs vs configuration/user issues',
    "Assess customer impact of each bug",
    "Provide actionable recommendations",
    "Calculate risk scores for components",
    "Provide trend analysis",
    "Identify test automation opportunities",
    "If any bugs relate to porting a feature between platforms, analyze the port-related risk",
]

_JSON_ONLY = "Return ONLY valid JSON, no markdown code blocks or explanations."


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def build_escape_prompt(bugs: Sequence[BugRecord]) -> str:
    """Prompt for bugs that escaped system integration testing."""
    schema = report_schema(MODE_ESCAPE, len(bugs), {"edge-case": 3, "environment": 2})
    return (
        "You are an expert software engineer and QA specialist analyzing bug reports "
        "that ESCAPED SIT (System Integration Testing).\n\n"
        "These bugs were found in production or UAT after SIT was completed. Your goal is "
        "to understand WHY they escaped and HOW to prevent similar escapes.\n\n"
        f"Analyze the following {len(bugs)} bug reports and provide:\n"
        f"{_numbered(_ESCAPE_DIMENSIONS)}\n\n"
        f"Bug Reports:\n{format_records(bugs, MODE_ESCAPE)}\n\n"
        "Respond with a JSON object matching this exact structure:\n"
        f"{json.dumps(schema, indent=2)}\n\n"
        f"{_JSON_ONLY}"
    )


def build_all_prompt(bugs: Sequence[BugRecord]) -> str:
    """Prompt for every bug in a project, grouped by failure type."""
    counts = _failure_counts(bugs)
    schema = report_schema(MODE_ALL, len(bugs), counts)
    return (
        "You are an expert software engineer and QA specialist analyzing ALL bug reports "
        "from a project.\n\n"
        "This analysis includes all bugs, grouped by Failure Type:\n"
        f"- Positive Failure ({counts['positive-failure']} bugs): Feature works but not as expected\n"
        f"- Negative Failure ({counts['negative-failure']} bugs): Feature completely fails or "
        "missing functionality\n"
        f"- Open/Unconfirmed ({counts['unconfirmed']} bugs): Status is Open, may not be confirmed "
        "bugs yet (could be configuration, user error, etc.)\n\n"
        f"Analyze the following {len(bugs)} bug reports and provide:\n"
        f"{_numbered(_ALL_DIMENSIONS)}\n\n"
        f"Bug Reports:\n{format_records(bugs, MODE_ALL)}\n\n"
        "Respond with a JSON object matching this exact structure:\n"
        f"{json.dumps(schema, indent=2)}\n\n"
        f"{_JSON_ONLY}"
    )


def build_analysis_prompt(bugs: Sequence[BugRecord], mode: str = MODE_ESCAPE) -> str:
    """
    Build the analysis prompt for the given mode.

    Raises
    ------
    ValueError
        Unknown mode.
    """
    if mode not in ANALYSIS_MODES:
        raise ValueError(f"Unknown analysis mode {mode!r}; expected one of {ANALYSIS_MODES}")
    prompt = build_escape_prompt(bugs) if mode == MODE_ESCAPE else build_all_prompt(bugs)
    logger.debug("Built %s analysis prompt (%d chars, %d bugs)", mode, len(prompt), len(bugs))
    return prompt
