"""
Report Formatter
================
Renders a PatternReport (or a bug list) into output text.

DETERMINISM CONTRACT:
  - This module NEVER calls an LLM or the tracker.
  - This module NEVER reads environment variables.
  - Given the same report and the same `generated_at`, it ALWAYS returns
    the exact same string.

Formats:
    json      → machine-readable export; clusters carry bug keys, not bugs
    markdown  → human-readable report with one section per dimension
"""
import json
from datetime import datetime, timezone
from typing import Optional, Sequence

from bug_analyzer.models.bug_record import BugRecord
from bug_analyzer.models.pattern_report import BugCluster, PatternReport

REPORT_FORMATS = ("json", "markdown")

FORMAT_EXTENSIONS: dict[str, str] = {
    "json": ".json",
    "markdown": ".md",
}

REPORT_TITLE = "Jira Bug Analysis Report"


def _timestamp(generated_at: Optional[datetime]) -> datetime:
    return generated_at or datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------
def _cluster_summary(cluster: BugCluster) -> dict:
    return {
        "id": cluster.id,
        "name": cluster.name,
        "description": cluster.description,
        "rootCause": cluster.root_cause,
        "severity": cluster.severity,
        "bugCount": len(cluster.bugs),
        "bugKeys": [b.key for b in cluster.bugs],
        "affectedComponents": list(cluster.affected_components),
        "suggestedFix": cluster.suggested_fix,
    }


def report_to_dict(report: PatternReport, generated_at: Optional[datetime] = None) -> dict:
    """
    Export shape of a report.

    Full bug records are replaced by their keys inside clusters; every
    other collection is dumped with its camelCase aliases.
    """
    body = report.model_dump(by_alias=True, exclude={"root_cause_clusters", "summary"})
    return {
        "generatedAt": _timestamp(generated_at).isoformat(),
        "summary": report.summary,
        "statistics": {
            "totalClusters": len(report.root_cause_clusters),
            "totalRecurringIssues": len(report.recurring_issues),
            "totalHotspots": len(report.component_hotspots),
            "totalEscapePatterns": len(report.escape_patterns),
            "totalTestScenarios": len(report.suggested_test_scenarios),
        },
        "rootCauseClusters": [_cluster_summary(c) for c in report.root_cause_clusters],
        **body,
    }


def format_report_json(report: PatternReport, generated_at: Optional[datetime] = None) -> str:
    return json.dumps(report_to_dict(report, generated_at), indent=2)


def format_bug_list_json(bugs: Sequence[BugRecord]) -> str:
    """Bug list in the same camelCase shape the bug cache uses."""
    return json.dumps([b.model_dump(by_alias=True) for b in bugs], indent=2)


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------
def _cell(value) -> str:
    # Pipes and newlines would break the table row.
    return str(value).replace("|", "\\|").replace("\n", " ")


def _table(headers: Sequence[str], rows: Sequence[Sequence]) -> list[str]:
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("-" * (len(h) + 2) for h in headers) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(_cell(v) for v in row) + " |")
    return lines


def _keys(keys: Sequence[str]) -> str:
    return ", ".join(f"`{k}`" for k in keys) or "N/A"


def _clusters_section(report: PatternReport) -> str:
    clusters = report.root_cause_clusters
    if not clusters:
        return "## Root Cause Clusters\n\n*No clusters identified.*"

    lines = [f"## Root Cause Clusters ({len(clusters)})"]
    for cluster in clusters:
        lines.append(f"### {cluster.name or cluster.id or 'Unnamed cluster'}")
        lines.append(f"**Severity:** {cluster.severity.upper()}\n")
        if cluster.description:
            lines.append(cluster.description)
        lines.append(f"\n**Root Cause:** {cluster.root_cause or 'Unknown'}")
        lines.append(f"\n**Affected Bugs:** {_keys([b.key for b in cluster.bugs])}")
        lines.append(f"\n**Components:** {', '.join(cluster.affected_components) or 'N/A'}")
        lines.append(f"\n**Suggested Fix:** {cluster.suggested_fix or 'N/A'}")
        lines.append("")
    return "\n".join(lines)


def _recurring_section(report: PatternReport) -> str:
    if not report.recurring_issues:
        return "## Recurring Issues\n\n*No recurring issues detected.*"
    rows = [
        (i.pattern, i.occurrences, ", ".join(i.bug_keys), i.timespan)
        for i in report.recurring_issues
    ]
    return "\n".join(["## Recurring Issues"] + _table(("Pattern", "Occurrences", "Bugs", "Timespan"), rows))


def _hotspots_section(report: PatternReport) -> str:
    if not report.component_hotspots:
        return "## Component Hotspots\n\n*No hotspots identified.*"
    rows = [(h.component, h.bug_count, h.severity, h.trend) for h in report.component_hotspots]
    return "\n".join(["## Component Hotspots"] + _table(("Component", "Bug Count", "Severity", "Trend"), rows))


def _escape_section(report: PatternReport) -> str:
    if not report.escape_patterns:
        return ""
    rows = [
        (p.category, p.frequency, ", ".join(p.bug_keys), p.description)
        for p in report.escape_patterns
    ]
    return "\n".join(["## Escape Patterns"] + _table(("Category", "Frequency", "Bugs", "Description"), rows))


def _scenarios_section(report: PatternReport) -> str:
    scenarios = report.suggested_test_scenarios
    if not scenarios:
        return ""
    lines = [f"## Suggested Test Scenarios ({len(scenarios)})"]
    for s in scenarios:
        lines.append(f"### {s.name or 'Unnamed scenario'}")
        lines.append(f"**Type:** {s.type} | **Priority:** {s.priority.upper()}\n")
        if s.description:
            lines.append(s.description)
        if s.target_bugs:
            lines.append(f"\n**Targets:** {_keys(s.target_bugs)}")
        if s.preconditions:
            lines.append("\n**Preconditions:**")
            lines.extend(f"- {p}" for p in s.preconditions)
        if s.steps:
            lines.append("\n**Steps:**")
            lines.extend(f"{n}. {step}" for n, step in enumerate(s.steps, 1))
        if s.expected_outcome:
            lines.append(f"\n**Expected Outcome:** {s.expected_outcome}")
        lines.append("")
    return "\n".join(lines)


def _gaps_section(report: PatternReport) -> str:
    if not report.testing_gaps:
        return ""
    rows = [
        (g.area, g.current_coverage, g.impacted_bug_count, g.suggested_improvement)
        for g in report.testing_gaps
    ]
    return "\n".join(
        ["## Testing Gaps"]
        + _table(("Area", "Current Coverage", "Impacted Bugs", "Suggested Improvement"), rows)
    )


def _recommendations_section(report: PatternReport) -> str:
    if not report.recommendations:
        return ""
    lines = ["## Recommendations"]
    for n, rec in enumerate(report.recommendations, 1):
        line = f"{n}. **[{rec.priority.upper()}]** {rec.text}"
        if rec.target_bugs:
            line += f" ({', '.join(rec.target_bugs)})"
        lines.append(line)
        if rec.reasoning:
            lines.append(f"   - {rec.reasoning}")
    return "\n".join(lines)


def format_report_markdown(report: PatternReport, generated_at: Optional[datetime] = None) -> str:
    """
    Render a report as markdown.

    Empty optional sections (escape patterns, scenarios, gaps,
    recommendations) are omitted; the three core sections always appear
    with a placeholder line when empty.
    """
    sections = [
        f"# {REPORT_TITLE}",
        f"*Generated: {_timestamp(generated_at).strftime('%Y-%m-%d %H:%M:%S %Z').strip()}*\n",
        "## Summary",
        report.summary or "*No summary provided.*",
        _clusters_section(report),
        _recurring_section(report),
        _hotspots_section(report),
        _escape_section(report),
        _scenarios_section(report),
        _gaps_section(report),
        _recommendations_section(report),
    ]
    return "\n\n".join(s for s in sections if s)


def format_report(report: PatternReport, fmt: str = "markdown", generated_at: Optional[datetime] = None) -> str:
    """
    Dispatch on output format.

    Raises
    ------
    ValueError
        Unknown format.
    """
    if fmt == "json":
        return format_report_json(report, generated_at)
    if fmt == "markdown":
        return format_report_markdown(report, generated_at)
    raise ValueError(f"Unknown report format '{fmt}'. Allowed values: {list(REPORT_FORMATS)}")
