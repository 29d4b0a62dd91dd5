"""
Report Normalizer Tests
=======================
Raw model reply → PatternReport. No network; replies are literal strings.
"""
import json

import pytest

from bug_analyzer.core.errors import ParseError
from bug_analyzer.models.bug_record import BugRecord
from bug_analyzer.parser.report_normalizer import (
    build_report,
    normalize_report,
    parse_reply,
    strip_code_fence,
)

RECORDS = [BugRecord(key=f"BUG-{i}", summary=f"bug {i}") for i in (1, 2, 3)]


# ---------------------------------------------------------------------------
# De-fencing and parsing
# ---------------------------------------------------------------------------
class TestParseReply:

    @pytest.mark.parametrize("raw", [
        '{"summary": "s"}',
        '```json\n{"summary": "s"}\n```',
        '```\n{"summary": "s"}\n```',
        '  ```json\n{"summary": "s"}```  \n',
    ])
    def test_fences_stripped(self, raw):
        assert parse_reply(raw) == {"summary": "s"}

    def test_strip_leaves_unfenced_text_alone(self):
        assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'

    @pytest.mark.parametrize("raw", ["not json", "", "   ", '```json\n{"a": \n```'])
    def test_invalid_reply_raises(self, raw):
        with pytest.raises(ParseError):
            parse_reply(raw)


# ---------------------------------------------------------------------------
# Cluster resolution
# ---------------------------------------------------------------------------
class TestClusters:

    def test_fenced_reply_with_unknown_key_and_bad_severity(self):
        reply = (
            "```json\n"
            + json.dumps({
                "rootCauseClusters": [{
                    "id": "c1",
                    "name": "Null handling",
                    "bugKeys": ["BUG-1", "BUG-9"],
                    "severity": "urgent",
                }],
                "summary": "One cluster",
            })
            + "\n```"
        )
        report = normalize_report(reply, RECORDS)

        cluster = report.root_cause_clusters[0]
        assert [b.key for b in cluster.bugs] == ["BUG-1"]
        assert cluster.bug_keys == ["BUG-1", "BUG-9"]
        assert cluster.severity == "medium"
        assert report.summary == "One cluster"

    def test_resolved_bugs_are_the_input_records(self):
        data = {"rootCauseClusters": [{"bugKeys": ["BUG-2", "BUG-2", "BUG-3"]}]}
        report = build_report(data, RECORDS)

        bugs = report.root_cause_clusters[0].bugs
        assert [b.key for b in bugs] == ["BUG-2", "BUG-3"]
        assert report.root_cause_clusters[0].bug_keys == ["BUG-2", "BUG-3"]
        assert bugs[0] is RECORDS[1]

    def test_cluster_bugs_always_subset_of_input(self):
        data = {"rootCauseClusters": [
            {"bugKeys": ["X-1", "BUG-1"]},
            {"bugKeys": "BUG-2"},
            {"bugKeys": [1, None, "BUG-3"]},
        ]}
        report = build_report(data, RECORDS)
        input_keys = {r.key for r in RECORDS}
        for cluster in report.root_cause_clusters:
            assert {b.key for b in cluster.bugs} <= input_keys
            assert {b.key for b in cluster.bugs} <= set(cluster.bug_keys)


# ---------------------------------------------------------------------------
# Defaulting
# ---------------------------------------------------------------------------
class TestDefaults:

    def test_empty_object_gives_fully_populated_report(self):
        report = normalize_report("{}", RECORDS)

        assert report.root_cause_clusters == []
        assert report.recurring_issues == []
        assert report.escape_patterns == []
        assert report.automation_opportunities == []
        assert report.recommendations == []
        assert report.summary == ""
        assert report.trend_metrics.period == "Current Period"
        assert report.trend_metrics.total_bugs == 3
        assert report.trend_metrics.risk_trend == "stable"
        assert report.platform_port_analysis.risk_level == "low"

    def test_non_object_json_gives_empty_report(self):
        report = normalize_report("[1, 2, 3]", RECORDS)
        assert report.root_cause_clusters == []
        assert report.trend_metrics.total_bugs == 3

    def test_collections_with_wrong_types_become_lists(self):
        data = {
            "recurringIssues": "many",
            "componentHotspots": [None, "x", {"component": "auth"}],
        }
        report = build_report(data, RECORDS)
        assert report.recurring_issues == []
        assert [h.component for h in report.component_hotspots] == ["auth"]

    def test_enum_defaults_per_entity(self):
        data = {
            "componentHotspots": [{"trend": "sideways"}],
            "suggestedTestScenarios": [{"type": "manual", "priority": "low"}],
            "testingGaps": [{}],
            "defectInjectionPoints": [{"phase": "planning"}],
            "componentRiskScores": [{"complexityFactor": "extreme"}],
            "regressionAnalysis": [{"regressionType": "maybe"}],
            "customerImpacts": [{"affectedUsers": "nobody"}],
            "processImprovements": [{"area": "hr"}],
            "automationOpportunities": [{"automationType": "manual"}],
        }
        report = build_report(data, RECORDS)

        assert report.component_hotspots[0].trend == "stable"
        assert report.suggested_test_scenarios[0].type == "integration"
        assert report.suggested_test_scenarios[0].priority == "medium"
        assert report.testing_gaps[0].current_coverage == "Unknown"
        assert report.defect_injection_points[0].phase == "coding"
        assert report.component_risk_scores[0].complexity_factor == "medium"
        assert report.regression_analysis[0].regression_type == "similar"
        assert report.customer_impacts[0].affected_users == "some"
        assert report.process_improvements[0].area == "testing"
        assert report.automation_opportunities[0].automation_type == "regression"

    def test_enum_values_are_case_insensitive(self):
        report = build_report({"componentHotspots": [{"severity": "HIGH"}]}, RECORDS)
        assert report.component_hotspots[0].severity == "high"

    @pytest.mark.parametrize("mode, expected", [("escape", "edge-case"), ("all", "unconfirmed")])
    def test_escape_category_default_depends_on_mode(self, mode, expected):
        report = build_report({"escapePatterns": [{"category": "???"}]}, RECORDS, mode)
        assert report.escape_patterns[0].category == expected

    def test_numbers_coerced(self):
        data = {
            "recurringIssues": [{"occurrences": "4"}],
            "componentHotspots": [{"bugCount": 2.9}],
            "componentRiskScores": [{"riskScore": True, "escapeHistory": "lots"}],
            "testingGaps": [{"impactedBugCount": "1e999"}],
        }
        report = build_report(data, RECORDS)

        assert report.recurring_issues[0].occurrences == 4
        assert report.component_hotspots[0].bug_count == 2
        assert report.component_risk_scores[0].risk_score == 0
        assert report.component_risk_scores[0].escape_history == 0
        assert report.testing_gaps[0].impacted_bug_count == 0

    def test_recurring_issue_accepts_bugs_key(self):
        report = build_report({"recurringIssues": [{"bugs": ["BUG-1"]}]}, RECORDS)
        assert report.recurring_issues[0].bug_keys == ["BUG-1"]


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------
class TestRecommendations:

    def test_bare_string_recommendation(self):
        report = normalize_report('{"recommendations": ["Add null checks"]}', RECORDS)

        rec = report.recommendations[0]
        assert rec.text == "Add null checks"
        assert rec.reasoning == ""
        assert rec.target_bugs == []
        assert rec.priority == "medium"

    def test_structured_and_bare_mixed(self):
        data = {"recommendations": [
            {"text": "Fuzz inputs", "priority": "critical", "targetBugs": ["BUG-2"]},
            "Review configs",
            42,
        ]}
        report = build_report(data, RECORDS)

        assert [r.text for r in report.recommendations] == ["Fuzz inputs", "Review configs"]
        assert report.recommendations[0].priority == "critical"


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------
def test_same_reply_same_report():
    reply = json.dumps({
        "rootCauseClusters": [{"id": "c1", "bugKeys": ["BUG-1"]}],
        "trendMetrics": {"escapesByCategory": {"timing": "2"}},
    })
    first = normalize_report(reply, RECORDS)
    assert first == normalize_report(reply, RECORDS)
    assert first.trend_metrics.escapes_by_category == {"timing": 2}
