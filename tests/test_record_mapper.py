"""
Record Mapper Tests
===================
Raw Jira issue payloads → BugRecord. Pure functions, no I/O.
"""
import pytest

from bug_analyzer.parser.record_mapper import (
    extract_custom_fields,
    flatten_document,
    map_issue,
)

FIELD_MAP = {
    "customfield_10100": "failure_type",
    "customfield_10101": "is_escape_bug",
    "customfield_10102": "customer_impact",
    "customfield_10103": "customer",
    "customfield_10104": "severity",
}


def _adf(*paragraphs):
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": p} for p in para]}
            for para in paragraphs
        ],
    }


def _issue(**fields):
    return {"id": "10001", "key": "BUG-1", "fields": fields}


# ---------------------------------------------------------------------------
# Rich document flattening
# ---------------------------------------------------------------------------
class TestFlattenDocument:

    def test_paragraphs_joined_by_newline(self):
        doc = _adf(["Crash on ", "save"], ["Steps: open file"])
        assert flatten_document(doc) == "Crash on save\nSteps: open file"

    def test_plain_string_passes_through(self):
        assert flatten_document("already text") == "already text"

    def test_none_stays_none(self):
        assert flatten_document(None) is None

    def test_unknown_nodes_contribute_nothing(self):
        doc = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [
                    {"type": "text", "text": "see "},
                    {"type": "mention", "attrs": {"id": "abc"}},
                    {"type": "text", "text": "log"},
                ]},
                {"type": "rule"},
            ],
        }
        assert flatten_document(doc) == "see log\n"

    def test_nested_lists_are_walked(self):
        doc = {
            "type": "doc",
            "content": [{
                "type": "bulletList",
                "content": [
                    {"type": "listItem", "content": [
                        {"type": "paragraph", "content": [{"type": "text", "text": "a"}]},
                    ]},
                    {"type": "listItem", "content": [
                        {"type": "paragraph", "content": [{"type": "text", "text": "b"}]},
                    ]},
                ],
            }],
        }
        assert flatten_document(doc) == "ab"

    def test_non_document_value(self):
        assert flatten_document(42) is None

    def test_very_deep_nesting(self):
        node = {"type": "text", "text": "bottom"}
        for _ in range(2000):
            node = {"type": "paragraph", "content": [node]}
        doc = {"type": "doc", "content": [node, {"type": "paragraph", "content": [
            {"type": "text", "text": "next"},
        ]}]}

        assert flatten_document(doc) == "bottom\nnext"

    def test_deep_description_maps(self):
        node = {"type": "text", "text": "deep"}
        for _ in range(2000):
            node = {"type": "bulletList", "content": [node]}

        record = map_issue(_issue(summary="s", description={"type": "doc", "content": [node]}))
        assert record.description == "deep"


# ---------------------------------------------------------------------------
# Standard fields
# ---------------------------------------------------------------------------
class TestMapIssue:

    def test_full_issue(self):
        raw = _issue(
            summary="Login fails",
            description=_adf(["Users cannot log in"]),
            status={"name": "Open"},
            resolution={"name": "Fixed"},
            priority={"name": "High"},
            components=[{"name": "auth"}, {"name": "api"}],
            labels=["regression", "sso"],
            created="2024-01-02T10:00:00.000+0000",
            updated="2024-01-03T10:00:00.000+0000",
            reporter={"displayName": "Alex"},
            assignee={"displayName": "Sam"},
        )
        bug = map_issue(raw, FIELD_MAP)

        assert bug.key == "BUG-1"
        assert bug.id == "10001"
        assert bug.summary == "Login fails"
        assert bug.description == "Users cannot log in"
        assert bug.status == "Open"
        assert bug.resolution == "Fixed"
        assert bug.priority == "High"
        assert bug.components == ["auth", "api"]
        assert bug.labels == ["regression", "sso"]
        assert bug.created == "2024-01-02T10:00:00.000+0000"
        assert bug.reporter == "Alex"
        assert bug.assignee == "Sam"

    def test_missing_fields_get_defaults(self):
        bug = map_issue({"key": "BUG-2", "fields": {}}, FIELD_MAP)

        assert bug.key == "BUG-2"
        assert bug.summary == ""
        assert bug.description is None
        assert bug.status == "Unknown"
        assert bug.priority is None
        assert bug.components == []
        assert bug.labels == []
        assert bug.assignee is None
        assert bug.comments == []
        assert bug.custom_fields == {}
        assert bug.failure_type is None

    @pytest.mark.parametrize("raw", [None, "nope", 7, [], {"key": "X", "fields": "broken"}])
    def test_malformed_payload_never_raises(self, raw):
        bug = map_issue(raw, FIELD_MAP)
        assert bug.status == "Unknown"

    def test_comments_flattened_with_authors(self):
        raw = _issue(comment={"comments": [
            {"id": "1", "author": {"displayName": "Kim"}, "body": _adf(["first"]), "created": "2024-01-05"},
            {"id": "2", "body": "second"},
        ]})
        bug = map_issue(raw, FIELD_MAP)

        assert [c.body for c in bug.comments] == ["first", "second"]
        assert bug.comments[0].author == "Kim"
        assert bug.comments[1].author == "Unknown"
        assert bug.comments[0].created == "2024-01-05"

    def test_same_payload_same_record(self):
        raw = _issue(summary="x", labels=["a"], customfield_10104={"value": "S1"})
        assert map_issue(raw, FIELD_MAP) == map_issue(raw, FIELD_MAP)


# ---------------------------------------------------------------------------
# Custom fields
# ---------------------------------------------------------------------------
class TestCustomFields:

    def test_null_custom_fields_dropped(self):
        fields = {"customfield_1": "a", "customfield_2": None, "summary": "s"}
        assert extract_custom_fields(fields) == {"customfield_1": "a"}

    def test_named_fields_extracted(self):
        raw = _issue(
            customfield_10100={"value": "Positive Failure"},
            customfield_10101={"value": "Yes"},
            customfield_10102="Data loss for tenant",
            customfield_10103={"value": "Acme"},
            customfield_10104={"value": "S1"},
            customfield_20000={"value": "other"},
        )
        bug = map_issue(raw, FIELD_MAP)

        assert bug.failure_type == "Positive Failure"
        assert bug.is_escape_bug is True
        assert bug.customer_impact == "Data loss for tenant"
        assert bug.customer == "Acme"
        assert bug.severity == "S1"
        assert bug.custom_fields["customfield_20000"] == {"value": "other"}
        assert "customfield_10100" in bug.custom_fields

    def test_unrecognized_failure_type_is_none(self):
        bug = map_issue(_issue(customfield_10100={"value": "Sideways Failure"}), FIELD_MAP)
        assert bug.failure_type is None

    def test_escape_flag_no(self):
        bug = map_issue(_issue(customfield_10101={"value": "No"}), FIELD_MAP)
        assert bug.is_escape_bug is False

    def test_custom_field_map_is_configurable(self):
        raw = _issue(customfield_555={"value": "Negative Failure"})
        bug = map_issue(raw, {"customfield_555": "failure_type"})
        assert bug.failure_type == "Negative Failure"

    def test_camel_case_dump(self):
        bug = map_issue(_issue(customfield_10101={"value": "yes"}), FIELD_MAP)
        dumped = bug.model_dump(by_alias=True)
        assert dumped["isEscapeBug"] is True
        assert "customFields" in dumped
