"""Tests for schema compatibility checks."""

import os

from protolite.schema import check_compatibility, load_schema, load_schema_file
from protolite.schema.compat import IssueKind, Severity, has_breaking_changes

FILE_DIR = os.path.dirname(os.path.realpath(__file__))


def compare(old_text, new_text):
    return check_compatibility(load_schema(old_text), load_schema(new_text))


def describe_check_compatibility():
    def accepts_added_fields(expect):
        old = load_schema_file(f"{FILE_DIR}/board_v1.proto")
        new = load_schema_file(f"{FILE_DIR}/board_v2.proto")

        expect(check_compatibility(old, new)) == []

    def accepts_identical_schemas(expect):
        schema = load_schema_file(f"{FILE_DIR}/board_v1.proto")
        expect(check_compatibility(schema, schema)) == []

    def reports_renumbered_fields(expect):
        old = load_schema_file(f"{FILE_DIR}/board_v1.proto")
        new = load_schema_file(f"{FILE_DIR}/board_renumbered.proto")

        issues = check_compatibility(old, new)

        expect([(i.field, i.kind) for i in issues]) == [
            ("x", IssueKind.RENUMBERED),
            ("x", IssueKind.RENAMED),
            ("y", IssueKind.RENUMBERED),
            ("y", IssueKind.RENAMED),
        ]
        expect(str(issues[0])) == "BREAKING Square.x: field number changed from 1 to 2"
        expect(has_breaking_changes(issues)) == True

    def accepts_removed_field_with_reserved_number(expect):
        issues = compare(
            "message M { int32 a = 1; int32 b = 2; }",
            "message M { int32 a = 1; reserved 2; }",
        )
        expect(issues) == []

    def warns_about_removed_unreserved_field(expect):
        issues = compare("message M { int32 a = 1; int32 b = 2; }", "message M { int32 a = 1; }")

        expect([(i.field, i.kind, i.severity) for i in issues]) == [
            ("b", IssueKind.REMOVED_UNRESERVED, Severity.WARNING)
        ]
        expect(has_breaking_changes(issues)) == False

    def reports_incompatible_type_changes(expect):
        issues = compare("message M { int32 a = 1; }", "message M { string a = 1; }")

        expect([(i.kind, i.severity) for i in issues]) == [
            (IssueKind.TYPE_CHANGED, Severity.BREAKING)
        ]
        expect("from int32 to string" in issues[0].detail) == True

    def warns_about_wire_compatible_type_changes(expect):
        issues = compare("message M { int32 a = 1; }", "message M { int64 a = 1; }")
        expect([(i.kind, i.severity) for i in issues]) == [
            (IssueKind.TYPE_CHANGED, Severity.WARNING)
        ]

        zigzag = compare("message M { sint32 a = 1; }", "message M { int32 a = 1; }")
        expect(zigzag[0].severity) == Severity.BREAKING

    def reports_changed_message_types(expect):
        issues = compare(
            "message A { int32 x = 1; } message B { int32 x = 1; } message M { A a = 1; }",
            "message A { int32 x = 1; } message B { int32 x = 1; } message M { B a = 1; }",
        )
        expect([(i.message, i.kind, i.severity) for i in issues]) == [
            ("M", IssueKind.TYPE_CHANGED, Severity.BREAKING)
        ]

    def reports_cardinality_changes(expect):
        issues = compare("message M { string a = 1; }", "message M { repeated string a = 1; }")
        expect([(i.kind, i.severity) for i in issues]) == [
            (IssueKind.CARDINALITY_CHANGED, Severity.BREAKING)
        ]

    def reports_reuse_of_reserved_numbers(expect):
        issues = compare(
            "message M { int32 a = 1; reserved 2; }",
            "message M { int32 a = 1; int32 b = 2; }",
        )
        expect([(i.field, i.kind, i.severity) for i in issues]) == [
            ("b", IssueKind.RESERVED_REUSED, Severity.BREAKING)
        ]

    def warns_about_removed_messages(expect):
        issues = compare(
            "message A { int32 x = 1; } message B { int32 x = 1; }",
            "message A { int32 x = 1; }",
        )
        expect([(i.message, i.kind) for i in issues]) == [("B", IssueKind.MESSAGE_REMOVED)]

    def checks_nested_messages(expect):
        issues = compare(
            "message A { message B { int32 x = 1; } B b = 1; }",
            "message A { message B { string x = 1; } B b = 1; }",
        )
        expect([(i.message, i.field) for i in issues]) == [("A.B", "x")]

    def serializes_issues_to_dicts(expect):
        issues = compare("message M { int32 a = 1; }", "message M { string a = 1; }")
        data = issues[0].to_dict()
        expect(data["kind"]) == "type_changed"
        expect(data["severity"]) == "breaking"
        expect(data["field"]) == "a"
