"""
Pattern Report Model
====================
Typed output of one analysis call.

Every enumerated field is a Literal with a documented default, so a
report built by the normalizer can never carry free text where an
enumeration is expected. Root-cause clusters are the only entities that
hold resolved BugRecords; everything else references bugs by key.

Built once per analysis from an immutable list of BugRecords and never
mutated afterwards; safe to render any number of times.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .bug_record import BugRecord

Severity = Literal["critical", "high", "medium", "low"]
Priority = Literal["critical", "high", "medium"]
Level = Literal["low", "medium", "high"]
EscapeCategory = Literal[
    "edge-case", "environment", "timing", "data-driven", "integration",
    "configuration", "race-condition", "hardware-specific",
    "positive-failure", "negative-failure", "unconfirmed",
]


class _ReportModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class BugCluster(_ReportModel):
    id: str = ""
    name: str = ""
    description: str = ""
    root_cause: str = ""
    bug_keys: list[str] = Field(default_factory=list)
    bugs: list[BugRecord] = Field(default_factory=list)
    affected_components: list[str] = Field(default_factory=list)
    severity: Severity = "medium"
    suggested_fix: str = ""


class RecurringIssue(_ReportModel):
    pattern: str = ""
    occurrences: int = 0
    bug_keys: list[str] = Field(default_factory=list)
    timespan: str = ""


class ComponentHotspot(_ReportModel):
    component: str = ""
    bug_count: int = 0
    severity: Severity = "medium"
    trend: Literal["increasing", "stable", "decreasing"] = "stable"


class EscapePattern(_ReportModel):
    category: EscapeCategory = "edge-case"
    description: str = ""
    bug_keys: list[str] = Field(default_factory=list)
    frequency: int = 0


class TestScenario(_ReportModel):
    __test__ = False

    name: str = ""
    description: str = ""
    type: Literal["unit", "integration", "e2e", "performance", "stress", "environment"] = "integration"
    target_bugs: list[str] = Field(default_factory=list)
    preconditions: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    expected_outcome: str = ""
    priority: Priority = "medium"


class TestingGap(_ReportModel):
    __test__ = False

    area: str = ""
    description: str = ""
    current_coverage: str = "Unknown"
    suggested_improvement: str = ""
    impacted_bug_count: int = 0


class DefectInjectionPoint(_ReportModel):
    phase: Literal["requirements", "design", "coding", "integration", "deployment"] = "coding"
    description: str = ""
    bug_keys: list[str] = Field(default_factory=list)
    frequency: int = 0
    prevention_strategy: str = ""


class ComponentRiskScore(_ReportModel):
    component: str = ""
    risk_score: int = 0
    escape_history: int = 0
    complexity_factor: Level = "medium"
    change_frequency: Level = "medium"
    recommendation: str = ""


class RegressionFinding(_ReportModel):
    is_regression: bool = False
    bug_key: str = ""
    related_bug_keys: list[str] = Field(default_factory=list)
    regression_type: Literal["exact", "similar", "related-area"] = "similar"
    likely_cause: str = ""


class CustomerImpact(_ReportModel):
    bug_key: str = ""
    impact_level: Severity = "medium"
    affected_users: Literal["all", "many", "some", "few"] = "some"
    business_function: str = ""
    workaround_available: bool = False
    estimated_cost: Level = "medium"


class TestDataRecommendation(_ReportModel):
    __test__ = False

    category: str = ""
    description: str = ""
    data_patterns: list[str] = Field(default_factory=list)
    edge_cases: list[str] = Field(default_factory=list)
    target_bugs: list[str] = Field(default_factory=list)
    priority: Priority = "medium"


class ProcessImprovement(_ReportModel):
    area: Literal["code-review", "testing", "deployment", "requirements", "environment"] = "testing"
    suggestion: str = ""
    rationale: str = ""
    target_bugs: list[str] = Field(default_factory=list)
    effort: Level = "medium"
    impact: Level = "medium"


class TrendMetrics(_ReportModel):
    period: str = "Current Period"
    total_bugs: int = 0
    escapes_by_category: dict[str, int] = Field(default_factory=dict)
    top_components: list[str] = Field(default_factory=list)
    risk_trend: Literal["improving", "stable", "worsening"] = "stable"
    comparison_to_previous: str = ""


class Recommendation(_ReportModel):
    text: str = ""
    reasoning: str = ""
    target_bugs: list[str] = Field(default_factory=list)
    priority: Priority = "medium"


class AutomationOpportunity(_ReportModel):
    area: str = ""
    description: str = ""
    automation_type: Literal["unit", "integration", "e2e", "performance", "regression", "monitoring"] = "regression"
    target_bugs: list[str] = Field(default_factory=list)
    effort: Level = "medium"
    priority: Priority = "medium"


class PlatformPortAnalysis(_ReportModel):
    source_platform: str = ""
    target_platform: str = ""
    port_related_bug_keys: list[str] = Field(default_factory=list)
    common_issues: list[str] = Field(default_factory=list)
    risk_level: Level = "low"
    recommendations: list[str] = Field(default_factory=list)


class PatternReport(_ReportModel):
    root_cause_clusters: list[BugCluster] = Field(default_factory=list)
    recurring_issues: list[RecurringIssue] = Field(default_factory=list)
    component_hotspots: list[ComponentHotspot] = Field(default_factory=list)
    escape_patterns: list[EscapePattern] = Field(default_factory=list)
    suggested_test_scenarios: list[TestScenario] = Field(default_factory=list)
    testing_gaps: list[TestingGap] = Field(default_factory=list)
    defect_injection_points: list[DefectInjectionPoint] = Field(default_factory=list)
    component_risk_scores: list[ComponentRiskScore] = Field(default_factory=list)
    regression_analysis: list[RegressionFinding] = Field(default_factory=list)
    customer_impacts: list[CustomerImpact] = Field(default_factory=list)
    test_data_recommendations: list[TestDataRecommendation] = Field(default_factory=list)
    process_improvements: list[ProcessImprovement] = Field(default_factory=list)
    trend_metrics: TrendMetrics = Field(default_factory=TrendMetrics)
    automation_opportunities: list[AutomationOpportunity] = Field(default_factory=list)
    platform_port_analysis: PlatformPortAnalysis = Field(default_factory=PlatformPortAnalysis)
    summary: str = ""
    recommendations: list[Recommendation] = Field(default_factory=list)
