"""
Record Mapper
=============
Converts one raw Jira issue payload into a normalized BugRecord.

Contract:
    - PURE: no I/O, same payload → equal BugRecord, always.
    - Never raises on malformed input. Tracker payloads are heterogeneous
      and partial data is expected; missing pieces become None / [] /
      "Unknown" per field.

Rich-Document Flattening:
    Jira Cloud v3 returns descriptions and comment bodies as Atlassian
    Document Format trees. A "text" node contributes its text, any node
    with a "content" list contributes its children concatenated, and any
    other node kind contributes "". Top-level blocks are joined by "\n".
"""
import logging
from typing import Any, Mapping, Optional

from bug_analyzer.core.config import CUSTOM_FIELD_MAP
from bug_analyzer.core.constants import CUSTOM_FIELD_PREFIX, FAILURE_TYPES
from bug_analyzer.models.bug_record import BugRecord, Comment

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rich document flattening
# ---------------------------------------------------------------------------
def _node_text(node: Any) -> str:
    """Concatenate the text nodes under `node` in document order."""
    parts: list[str] = []
    # Explicit stack; documents can nest deeper than the recursion limit
    stack = [node]
    while stack:
        current = stack.pop()
        if not isinstance(current, dict):
            continue
        if current.get("type") == "text":
            text = current.get("text")
            if isinstance(text, str):
                parts.append(text)
            continue
        children = current.get("content")
        if isinstance(children, list):
            stack.extend(reversed(children))
    return "".join(parts)


def flatten_document(value: Any) -> Optional[str]:
    """
    Flatten a description/comment body to plain text.

    Parameters
    ----------
    value : Any
        An ADF document (dict), a plain string, or None.

    Returns
    -------
    str or None
        Plain text, or None when there is no usable body.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        return None
    if value.get("type") == "text":
        return _node_text(value)
    blocks = value.get("content")
    if not isinstance(blocks, list):
        return ""
    return "\n".join(_node_text(block) for block in blocks)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------
def _name_of(value: Any, attr: str = "name") -> Optional[str]:
    """Return value[attr] when value is an object carrying a string there."""
    if isinstance(value, dict):
        inner = value.get(attr)
        if isinstance(inner, str) and inner:
            return inner
    return None


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _names(values: Any) -> list[str]:
    if not isinstance(values, list):
        return []
    names: list[str] = []
    for item in values:
        if isinstance(item, str):
            names.append(item)
        else:
            name = _name_of(item)
            if name:
                names.append(name)
    return names


def _option_value(value: Any) -> Any:
    """Unwrap a select/option custom field ({"value": ...} or {"name": ...})."""
    if isinstance(value, dict):
        for attr in ("value", "name", "displayName"):
            if attr in value:
                return value[attr]
        return None
    if isinstance(value, list):
        unwrapped = [_option_value(v) for v in value]
        unwrapped = [u for u in unwrapped if u is not None]
        return ", ".join(str(u) for u in unwrapped) if unwrapped else None
    return value


def _as_failure_type(value: Any) -> Optional[str]:
    raw = _option_value(value)
    if not isinstance(raw, str):
        return None
    for failure_type in FAILURE_TYPES:
        if raw.strip().lower() == failure_type.lower():
            return failure_type
    return None


def _as_bool(value: Any) -> Optional[bool]:
    raw = _option_value(value)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in ("yes", "true", "y", "1"):
            return True
        if lowered in ("no", "false", "n", "0"):
            return False
    return None


def _as_text(value: Any) -> Optional[str]:
    return _str_or_none(_option_value(value))


_NAMED_FIELD_CONVERTERS = {
    "failure_type": _as_failure_type,
    "is_escape_bug": _as_bool,
    "customer_impact": _as_text,
    "customer": _as_text,
    "severity": _as_text,
}


def extract_custom_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Copy every non-null customfield_* entry verbatim."""
    return {
        key: value
        for key, value in fields.items()
        if key.startswith(CUSTOM_FIELD_PREFIX) and value is not None
    }


def extract_named_fields(
    custom_fields: Mapping[str, Any],
    field_map: Mapping[str, str] = CUSTOM_FIELD_MAP,
) -> dict[str, Any]:
    """Pull the analysis-relevant custom fields out into BugRecord attributes."""
    named: dict[str, Any] = {}
    for field_id, attribute in field_map.items():
        if field_id in custom_fields:
            named[attribute] = _NAMED_FIELD_CONVERTERS[attribute](custom_fields[field_id])
    return named


def _map_comments(fields: Mapping[str, Any]) -> list[Comment]:
    container = fields.get("comment")
    raw_comments = container.get("comments") if isinstance(container, dict) else None
    if not isinstance(raw_comments, list):
        return []
    comments: list[Comment] = []
    for c in raw_comments:
        if not isinstance(c, dict):
            continue
        comments.append(Comment(
            id=_str_or_none(c.get("id")) or "",
            author=_name_of(c.get("author"), "displayName") or "Unknown",
            body=flatten_document(c.get("body")) or "",
            created=_str_or_none(c.get("created")),
        ))
    return comments


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def map_issue(raw_issue: Any, field_map: Mapping[str, str] = CUSTOM_FIELD_MAP) -> BugRecord:
    """
    Map a raw Jira issue payload to a BugRecord.

    Parameters
    ----------
    raw_issue : Any
        Decoded JSON of GET /issue/{id}. Non-dict input yields an
        all-default record with an empty key.
    field_map : Mapping[str, str]
        customfield id → BugRecord attribute for the named custom fields.

    Returns
    -------
    BugRecord
    """
    issue = raw_issue if isinstance(raw_issue, dict) else {}
    fields = issue.get("fields")
    if not isinstance(fields, dict):
        fields = {}

    custom_fields = extract_custom_fields(fields)

    return BugRecord(
        key=_str_or_none(issue.get("key")) or "",
        id=_str_or_none(issue.get("id")) or "",
        summary=_str_or_none(fields.get("summary")) or "",
        description=flatten_document(fields.get("description")) or None,
        status=_name_of(fields.get("status")) or "Unknown",
        resolution=_name_of(fields.get("resolution")),
        priority=_name_of(fields.get("priority")),
        components=_names(fields.get("components")),
        labels=_names(fields.get("labels")),
        created=_str_or_none(fields.get("created")),
        updated=_str_or_none(fields.get("updated")),
        reporter=_name_of(fields.get("reporter"), "displayName"),
        assignee=_name_of(fields.get("assignee"), "displayName"),
        comments=_map_comments(fields),
        custom_fields=custom_fields,
        **extract_named_fields(custom_fields, field_map),
    )
