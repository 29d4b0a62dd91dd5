"""
Report Normalizer
=================
Turns the raw text reply of the analysis model into a PatternReport.

Pipeline:
    1. De-fence: strip a leading ```/```json fence and the closing fence
    2. Parse: json.loads; failure raises ParseError (no partial recovery)
    3. Default: every collection becomes a list, every field of every
       element gets a value from its allowed set
    4. Resolve: cluster bugKeys are joined back to the input BugRecords;
       bug_keys keeps the model's list (deduplicated), bugs only the keys
       that resolved; unknown keys are logged at DEBUG
    5. Legacy shapes: bare-string recommendations become structured ones

Contract:
    - DETERMINISTIC: same text + records → equal report.
    - The only error is ParseError. Every other anomaly is absorbed by
      defaulting.
"""
import json
import logging
import math
import re
from typing import Any, Callable, Sequence, TypeVar

from bug_analyzer.core.constants import (
    AFFECTED_USERS,
    AUTOMATION_TYPES,
    ESCAPE_CATEGORIES,
    FAILURE_CATEGORIES,
    INJECTION_PHASES,
    LEVELS,
    MODE_ALL,
    MODE_ESCAPE,
    PRIORITIES,
    PROCESS_AREAS,
    REGRESSION_TYPES,
    RISK_TRENDS,
    SEVERITIES,
    TEST_TYPES,
    TRENDS,
)
from bug_analyzer.core.errors import ParseError
from bug_analyzer.models.bug_record import BugRecord
from bug_analyzer.models.pattern_report import (
    AutomationOpportunity,
    BugCluster,
    ComponentHotspot,
    ComponentRiskScore,
    CustomerImpact,
    DefectInjectionPoint,
    EscapePattern,
    PatternReport,
    PlatformPortAnalysis,
    ProcessImprovement,
    Recommendation,
    RecurringIssue,
    RegressionFinding,
    TestDataRecommendation,
    TestingGap,
    TestScenario,
    TrendMetrics,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OPENING_FENCE_RE = re.compile(r"^```[\w-]*[ \t]*\n?")
_CLOSING_FENCE_RE = re.compile(r"\n?```\s*$")


# ---------------------------------------------------------------------------
# De-fence / parse
# ---------------------------------------------------------------------------
def strip_code_fence(raw: str) -> str:
    """Remove a surrounding markdown code fence (with optional language tag)."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        cleaned = _OPENING_FENCE_RE.sub("", cleaned, count=1)
        cleaned = _CLOSING_FENCE_RE.sub("", cleaned, count=1)
    return cleaned.strip()


def parse_reply(raw: str) -> Any:
    """
    Parse the model reply as JSON after de-fencing.

    Raises
    ------
    ParseError
        The text is not valid JSON.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise ParseError("Analysis reply was empty")
    cleaned = strip_code_fence(raw)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"Analysis reply is not valid JSON: {e}") from e


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------
def _str(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except (ValueError, OverflowError):
            return default
    return default


def _bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes")
    return default


def _enum(value: Any, allowed: Sequence[str], default: str) -> str:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in allowed:
            return lowered
    return default


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [s for s in (_str(v, None) for v in value) if s is not None]


def _objects(data: dict, key: str) -> list[dict]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _collect(data: dict, key: str, build: Callable[[dict], T]) -> list[T]:
    return [build(item) for item in _objects(data, key)]


# ---------------------------------------------------------------------------
# Entity builders
# ---------------------------------------------------------------------------
def _cluster(item: dict, bug_map: dict[str, BugRecord]) -> BugCluster:
    bug_keys: list[str] = []
    resolved: list[BugRecord] = []
    for key in _str_list(item.get("bugKeys")):
        if key in bug_keys:
            continue
        bug_keys.append(key)
        bug = bug_map.get(key)
        if bug is None:
            logger.debug("Cluster %r references unknown bug %s; not resolved", item.get("id"), key)
            continue
        resolved.append(bug)
    return BugCluster(
        id=_str(item.get("id")),
        name=_str(item.get("name")),
        description=_str(item.get("description")),
        root_cause=_str(item.get("rootCause")),
        bug_keys=bug_keys,
        bugs=resolved,
        affected_components=_str_list(item.get("affectedComponents")),
        severity=_enum(item.get("severity"), SEVERITIES, "medium"),
        suggested_fix=_str(item.get("suggestedFix")),
    )


def _recurring(item: dict) -> RecurringIssue:
    keys = item.get("bugKeys") if "bugKeys" in item else item.get("bugs")
    return RecurringIssue(
        pattern=_str(item.get("pattern")),
        occurrences=_int(item.get("occurrences")),
        bug_keys=_str_list(keys),
        timespan=_str(item.get("timespan")),
    )


def _hotspot(item: dict) -> ComponentHotspot:
    return ComponentHotspot(
        component=_str(item.get("component")),
        bug_count=_int(item.get("bugCount")),
        severity=_enum(item.get("severity"), SEVERITIES, "medium"),
        trend=_enum(item.get("trend"), TRENDS, "stable"),
    )


def _escape(item: dict, mode: str) -> EscapePattern:
    if mode == MODE_ALL:
        allowed, default = FAILURE_CATEGORIES + ESCAPE_CATEGORIES, "unconfirmed"
    else:
        allowed, default = ESCAPE_CATEGORIES + FAILURE_CATEGORIES, "edge-case"
    return EscapePattern(
        category=_enum(item.get("category"), allowed, default),
        description=_str(item.get("description")),
        bug_keys=_str_list(item.get("bugKeys")),
        frequency=_int(item.get("frequency")),
    )


def _scenario(item: dict) -> TestScenario:
    return TestScenario(
        name=_str(item.get("name")),
        description=_str(item.get("description")),
        type=_enum(item.get("type"), TEST_TYPES, "integration"),
        target_bugs=_str_list(item.get("targetBugs")),
        preconditions=_str_list(item.get("preconditions")),
        steps=_str_list(item.get("steps")),
        expected_outcome=_str(item.get("expectedOutcome")),
        priority=_enum(item.get("priority"), PRIORITIES, "medium"),
    )


def _gap(item: dict) -> TestingGap:
    return TestingGap(
        area=_str(item.get("area")),
        description=_str(item.get("description")),
        current_coverage=_str(item.get("currentCoverage")) or "Unknown",
        suggested_improvement=_str(item.get("suggestedImprovement")),
        impacted_bug_count=_int(item.get("impactedBugCount")),
    )


def _injection(item: dict) -> DefectInjectionPoint:
    return DefectInjectionPoint(
        phase=_enum(item.get("phase"), INJECTION_PHASES, "coding"),
        description=_str(item.get("description")),
        bug_keys=_str_list(item.get("bugKeys")),
        frequency=_int(item.get("frequency")),
        prevention_strategy=_str(item.get("preventionStrategy")),
    )


def _risk(item: dict) -> ComponentRiskScore:
    return ComponentRiskScore(
        component=_str(item.get("component")),
        risk_score=_int(item.get("riskScore")),
        escape_history=_int(item.get("escapeHistory")),
        complexity_factor=_enum(item.get("complexityFactor"), LEVELS, "medium"),
        change_frequency=_enum(item.get("changeFrequency"), LEVELS, "medium"),
        recommendation=_str(item.get("recommendation")),
    )


def _regression(item: dict) -> RegressionFinding:
    return RegressionFinding(
        is_regression=_bool(item.get("isRegression")),
        bug_key=_str(item.get("bugKey")),
        related_bug_keys=_str_list(item.get("relatedBugKeys")),
        regression_type=_enum(item.get("regressionType"), REGRESSION_TYPES, "similar"),
        likely_cause=_str(item.get("likelyCause")),
    )


def _impact(item: dict) -> CustomerImpact:
    return CustomerImpact(
        bug_key=_str(item.get("bugKey")),
        impact_level=_enum(item.get("impactLevel"), SEVERITIES, "medium"),
        affected_users=_enum(item.get("affectedUsers"), AFFECTED_USERS, "some"),
        business_function=_str(item.get("businessFunction")),
        workaround_available=_bool(item.get("workaroundAvailable")),
        estimated_cost=_enum(item.get("estimatedCost"), LEVELS, "medium"),
    )


def _test_data(item: dict) -> TestDataRecommendation:
    return TestDataRecommendation(
        category=_str(item.get("category")),
        description=_str(item.get("description")),
        data_patterns=_str_list(item.get("dataPatterns")),
        edge_cases=_str_list(item.get("edgeCases")),
        target_bugs=_str_list(item.get("targetBugs")),
        priority=_enum(item.get("priority"), PRIORITIES, "medium"),
    )


def _process(item: dict) -> ProcessImprovement:
    return ProcessImprovement(
        area=_enum(item.get("area"), PROCESS_AREAS, "testing"),
        suggestion=_str(item.get("suggestion")),
        rationale=_str(item.get("rationale")),
        target_bugs=_str_list(item.get("targetBugs")),
        effort=_enum(item.get("effort"), LEVELS, "medium"),
        impact=_enum(item.get("impact"), LEVELS, "medium"),
    )


def _automation(item: dict) -> AutomationOpportunity:
    return AutomationOpportunity(
        area=_str(item.get("area")),
        description=_str(item.get("description")),
        automation_type=_enum(item.get("automationType"), AUTOMATION_TYPES, "regression"),
        target_bugs=_str_list(item.get("targetBugs")),
        effort=_enum(item.get("effort"), LEVELS, "medium"),
        priority=_enum(item.get("priority"), PRIORITIES, "medium"),
    )


def _trend(value: Any, total_bugs: int) -> TrendMetrics:
    data = value if isinstance(value, dict) else {}
    by_category = data.get("escapesByCategory")
    escapes: dict[str, int] = {}
    if isinstance(by_category, dict):
        escapes = {str(k): _int(v) for k, v in by_category.items()}
    return TrendMetrics(
        period=_str(data.get("period")) or "Current Period",
        total_bugs=_int(data.get("totalBugs")) or total_bugs,
        escapes_by_category=escapes,
        top_components=_str_list(data.get("topComponents")),
        risk_trend=_enum(data.get("riskTrend"), RISK_TRENDS, "stable"),
        comparison_to_previous=_str(data.get("comparisonToPrevious")),
    )


def _port(value: Any) -> PlatformPortAnalysis:
    data = value if isinstance(value, dict) else {}
    return PlatformPortAnalysis(
        source_platform=_str(data.get("sourcePlatform")),
        target_platform=_str(data.get("targetPlatform")),
        port_related_bug_keys=_str_list(data.get("portRelatedBugKeys")),
        common_issues=_str_list(data.get("commonIssues")),
        risk_level=_enum(data.get("riskLevel"), LEVELS, "low"),
        recommendations=_str_list(data.get("recommendations")),
    )


def _recommendations(value: Any) -> list[Recommendation]:
    if not isinstance(value, list):
        return []
    result: list[Recommendation] = []
    for rec in value:
        if isinstance(rec, str):
            # Legacy shape: bare string
            result.append(Recommendation(text=rec))
        elif isinstance(rec, dict):
            result.append(Recommendation(
                text=_str(rec.get("text")),
                reasoning=_str(rec.get("reasoning")),
                target_bugs=_str_list(rec.get("targetBugs")),
                priority=_enum(rec.get("priority"), PRIORITIES, "medium"),
            ))
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def build_report(data: Any, records: Sequence[BugRecord], mode: str = MODE_ESCAPE) -> PatternReport:
    """
    Build a fully-populated PatternReport from an already-parsed reply.

    A value that is not a JSON object yields an empty report.
    """
    if not isinstance(data, dict):
        logger.warning(
            "Analysis reply is %s, not a JSON object; returning an empty report",
            type(data).__name__,
        )
        data = {}

    bug_map = {bug.key: bug for bug in records}

    return PatternReport(
        root_cause_clusters=_collect(data, "rootCauseClusters", lambda c: _cluster(c, bug_map)),
        recurring_issues=_collect(data, "recurringIssues", _recurring),
        component_hotspots=_collect(data, "componentHotspots", _hotspot),
        escape_patterns=_collect(data, "escapePatterns", lambda e: _escape(e, mode)),
        suggested_test_scenarios=_collect(data, "suggestedTestScenarios", _scenario),
        testing_gaps=_collect(data, "testingGaps", _gap),
        defect_injection_points=_collect(data, "defectInjectionPoints", _injection),
        component_risk_scores=_collect(data, "componentRiskScores", _risk),
        regression_analysis=_collect(data, "regressionAnalysis", _regression),
        customer_impacts=_collect(data, "customerImpacts", _impact),
        test_data_recommendations=_collect(data, "testDataRecommendations", _test_data),
        process_improvements=_collect(data, "processImprovements", _process),
        trend_metrics=_trend(data.get("trendMetrics"), len(records)),
        automation_opportunities=_collect(data, "automationOpportunities", _automation),
        platform_port_analysis=_port(data.get("platformPortAnalysis")),
        summary=_str(data.get("summary")),
        recommendations=_recommendations(data.get("recommendations")),
    )


def normalize_report(raw_text: str, records: Sequence[BugRecord], mode: str = MODE_ESCAPE) -> PatternReport:
    """
    Parse and normalize the analysis reply.

    Parameters
    ----------
    raw_text : str
        Raw reply text from the model.
    records : Sequence[BugRecord]
        The bugs that were analysed; used to resolve cluster bug keys.
    mode : str
        Analysis mode; selects the default escape-pattern category.

    Raises
    ------
    ParseError
        The reply is not JSON after de-fencing.
    """
    return build_report(parse_reply(raw_text), records, mode)
