"""
Bug Record Model
================
Pydantic models for one normalized issue-tracker bug and for the query
that drives retrieval.

BugRecord is built once per retrieval by the record mapper and never
mutated afterwards; the report normalizer only references it.

JSON I/O uses camelCase aliases (failureType, isEscapeBug, customFields)
so bug files written by the fetch endpoint load back unchanged.
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from bug_analyzer.core.constants import BUG_JQL_BASE, BUG_JQL_ORDER


class Comment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    author: str = "Unknown"
    body: str = ""
    created: Optional[str] = None


class BugRecord(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    # --- Identity ---
    key: str
    id: str = ""

    # --- Descriptive ---
    summary: str = ""
    description: Optional[str] = None
    status: str = "Unknown"
    resolution: Optional[str] = None
    priority: Optional[str] = None
    components: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)

    # --- Temporal (opaque, preserved verbatim) ---
    created: Optional[str] = None
    updated: Optional[str] = None

    # --- People ---
    reporter: Optional[str] = None
    assignee: Optional[str] = None

    comments: list[Comment] = Field(default_factory=list)

    # --- Analysis-relevant custom fields ---
    failure_type: Optional[Literal["Positive Failure", "Negative Failure"]] = None
    is_escape_bug: Optional[bool] = None
    customer_impact: Optional[str] = None
    customer: Optional[str] = None
    severity: Optional[str] = None

    custom_fields: dict[str, Any] = Field(default_factory=dict)


class RetrievalQuery(BaseModel):
    """
    Normalized retrieval request.

    Precedence: filter_id > jql > project-derived JQL ("all bugs" when
    project is also absent).
    """
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    jql: Optional[str] = None
    filter_id: Optional[str] = None
    project: Optional[str] = None
    max_results: int = Field(default=100, ge=1)

    @field_validator("jql", "filter_id", "project", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def project_jql(self) -> str:
        """JQL synthesized from the project key (or all bugs if none)."""
        conditions = [BUG_JQL_BASE]
        if self.project:
            conditions.append(f'project = "{self.project}"')
        return " AND ".join(conditions) + f" {BUG_JQL_ORDER}"

    def describe(self) -> str:
        """Short human-readable label for logs."""
        if self.filter_id:
            return f"Filter: {self.filter_id}"
        if self.jql:
            return f"JQL: {self.jql}"
        if self.project:
            return f"Project: {self.project}"
        return "All bugs"
