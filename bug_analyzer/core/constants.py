"""
Constants
Centralised storage for tracker limits, prompt truncation lengths and
the closed enumerations used by the pattern report.
"""
# Tracker
SEARCH_PAGE_SIZE = 50
JIRA_API_PATH = "/rest/api/3"
CUSTOM_FIELD_PREFIX = "customfield_"
BUG_JQL_BASE = "type = Bug"
BUG_JQL_ORDER = "ORDER BY created DESC"

# Prompt shaping
DESCRIPTION_MAX_CHARS = 500
COMMENT_MAX_CHARS = 200
RECENT_COMMENT_COUNT = 2
RECORD_SEPARATOR = "\n\n---\n\n"
ELLIPSIS = "..."

# Analysis modes
MODE_ESCAPE = "escape"
MODE_ALL = "all"
ANALYSIS_MODES = (MODE_ESCAPE, MODE_ALL)

# Failure types carried on BugRecord.failure_type
POSITIVE_FAILURE = "Positive Failure"
NEGATIVE_FAILURE = "Negative Failure"
FAILURE_TYPES = (POSITIVE_FAILURE, NEGATIVE_FAILURE)

# Report enumerations
SEVERITIES = ("critical", "high", "medium", "low")
PRIORITIES = ("critical", "high", "medium")
LEVELS = ("low", "medium", "high")
TRENDS = ("increasing", "stable", "decreasing")
RISK_TRENDS = ("improving", "stable", "worsening")
ESCAPE_CATEGORIES = (
    "edge-case", "environment", "timing", "data-driven",
    "integration", "configuration", "race-condition", "hardware-specific",
)
FAILURE_CATEGORIES = ("positive-failure", "negative-failure", "unconfirmed")
TEST_TYPES = ("unit", "integration", "e2e", "performance", "stress", "environment")
INJECTION_PHASES = ("requirements", "design", "coding", "integration", "deployment")
REGRESSION_TYPES = ("exact", "similar", "related-area")
AFFECTED_USERS = ("all", "many", "some", "few")
PROCESS_AREAS = ("code-review", "testing", "deployment", "requirements", "environment")
AUTOMATION_TYPES = ("unit", "integration", "e2e", "performance", "regression", "monitoring")
