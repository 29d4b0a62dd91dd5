"""
Errors
======
Failure taxonomy for retrieval and analysis.

    ConnectivityError — tracker or LLM unreachable, or an unexpected HTTP failure
    AuthError         — credentials rejected (401 / 403)
    SearchPageError   — a paginated ID search (or its saved-filter lookup) failed;
                        retrieval aborts and discards what it had collected
    HydrationSkip     — one issue could not be fetched; caught inside the
                        retrieval loop and logged, never surfaced
    AnalysisError     — the LLM call produced no usable reply
    ParseError        — the reply was not JSON after code-fence stripping
"""


class BugAnalyzerError(Exception):
    """Base class for all errors raised by the analyzer core."""


class ConnectivityError(BugAnalyzerError):
    pass


class AuthError(BugAnalyzerError):
    pass


class SearchPageError(BugAnalyzerError):
    pass


class HydrationSkip(BugAnalyzerError):
    """One issue failed to hydrate. Never escapes RetrievalAgent.fetch."""

    def __init__(self, issue_id: str, reason: str) -> None:
        super().__init__(f"Issue {issue_id} skipped: {reason}")
        self.issue_id = issue_id
        self.reason = reason


class AnalysisError(BugAnalyzerError):
    pass


class ParseError(AnalysisError):
    pass
