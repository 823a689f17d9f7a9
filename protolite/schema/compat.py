"""Wire-compatibility checks between two versions of a schema."""

from dataclasses import dataclass
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin

from .descriptors import FieldDescriptor, FieldType, MessageDescriptor, Schema


class Severity(StrEnum):
    """How an issue affects data written with the old schema."""

    BREAKING = auto()  # Old data decodes wrongly or fails to decode
    WARNING = auto()  # Wire compatible, but likely a mistake


class IssueKind(StrEnum):
    RENUMBERED = auto()
    TYPE_CHANGED = auto()
    RENAMED = auto()
    CARDINALITY_CHANGED = auto()
    REMOVED_UNRESERVED = auto()
    RESERVED_REUSED = auto()
    MESSAGE_REMOVED = auto()


@dataclass(frozen=True)
class CompatibilityIssue(DataClassJsonMixin):
    """A single difference between two schema versions."""

    message: str
    field: str | None
    kind: IssueKind
    severity: Severity
    detail: str

    def __str__(self) -> str:
        where = f"{self.message}.{self.field}" if self.field else self.message
        return f"{self.severity.upper()} {where}: {self.detail}"


# Types that can read each other's values off the wire
_WIRE_COMPATIBLE: list[frozenset[FieldType]] = [
    frozenset(
        [
            FieldType.INT32,
            FieldType.INT64,
            FieldType.UINT32,
            FieldType.UINT64,
            FieldType.BOOL,
            FieldType.ENUM,
        ]
    ),
    frozenset([FieldType.SINT32, FieldType.SINT64]),
    frozenset([FieldType.FIXED32, FieldType.SFIXED32]),
    frozenset([FieldType.FIXED64, FieldType.SFIXED64]),
    frozenset([FieldType.STRING, FieldType.BYTES]),
]


def _type_label(fd: FieldDescriptor) -> str:
    return fd.type_name if fd.type_name else str(fd.type)


def _compare_types(old: FieldDescriptor, new: FieldDescriptor) -> Severity | None:
    if old.type == new.type:
        if old.type in (FieldType.MESSAGE, FieldType.ENUM) and old.type_name != new.type_name:
            return Severity.BREAKING if old.type == FieldType.MESSAGE else Severity.WARNING
        return None
    if any(old.type in group and new.type in group for group in _WIRE_COMPATIBLE):
        return Severity.WARNING
    return Severity.BREAKING


def _check_message(old: MessageDescriptor, new: MessageDescriptor) -> list[CompatibilityIssue]:
    issues: list[CompatibilityIssue] = []

    def report(field_name: str | None, kind: IssueKind, severity: Severity, detail: str) -> None:
        issues.append(CompatibilityIssue(old.full_name, field_name, kind, severity, detail))

    for old_field in old.fields_in_wire_order:
        new_by_name = new.field_by_name(old_field.name)
        new_by_number = new.field_by_number(old_field.number)

        if new_by_name is not None and new_by_name.number != old_field.number:
            report(
                old_field.name,
                IssueKind.RENUMBERED,
                Severity.BREAKING,
                f"field number changed from {old_field.number} to {new_by_name.number}",
            )

        if new_by_number is None:
            if new_by_name is None and not new.is_reserved(old_field.number):
                report(
                    old_field.name,
                    IssueKind.REMOVED_UNRESERVED,
                    Severity.WARNING,
                    f"field {old_field.number} removed without reserving its number",
                )
            continue

        if new_by_number.name != old_field.name:
            report(
                old_field.name,
                IssueKind.RENAMED,
                Severity.WARNING,
                f"field {old_field.number} renamed to {new_by_number.name}",
            )

        if new_by_number.repeated != old_field.repeated:
            report(
                old_field.name,
                IssueKind.CARDINALITY_CHANGED,
                Severity.BREAKING,
                f"field {old_field.number} changed from {old_field.cardinality} "
                f"to {new_by_number.cardinality}",
            )

        severity = _compare_types(old_field, new_by_number)
        if severity is not None:
            report(
                old_field.name,
                IssueKind.TYPE_CHANGED,
                severity,
                f"field {old_field.number} changed type from {_type_label(old_field)} "
                f"to {_type_label(new_by_number)}",
            )

    for new_field in new.fields_in_wire_order:
        if old.field_by_number(new_field.number) is None and old.is_reserved(new_field.number):
            report(
                new_field.name,
                IssueKind.RESERVED_REUSED,
                Severity.BREAKING,
                f"field number {new_field.number} was reserved",
            )

    return issues


def check_compatibility(old: Schema, new: Schema) -> list[CompatibilityIssue]:
    """Compare two schema versions and list what breaks old data.

    Adding fields with new numbers is always compatible and never reported.
    """
    issues: list[CompatibilityIssue] = []
    for old_message in old.all_messages():
        new_message = new.find(old_message.full_name)
        if not isinstance(new_message, MessageDescriptor):
            issues.append(
                CompatibilityIssue(
                    old_message.full_name,
                    None,
                    IssueKind.MESSAGE_REMOVED,
                    Severity.WARNING,
                    "message removed",
                )
            )
            continue
        issues.extend(_check_message(old_message, new_message))
    return issues


def has_breaking_changes(issues: list[CompatibilityIssue]) -> bool:
    return any(issue.severity == Severity.BREAKING for issue in issues)
