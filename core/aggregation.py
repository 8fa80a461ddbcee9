"""
Line-item aggregation.

Turns selected time entries and expenses into line drafts. Pure functions, no
I/O: the invoice service persists whatever comes out of here.

Policy:
- Time lines precede expense lines.
- Expenses are never grouped: one line each at quantity 1.
- Hours arrive pre-rounded to 0.1 and are never re-rounded here.
- Money is rounded to cents on each line, then lines are summed.
"""

from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from core.models import (
    Expense,
    ExpenseLineDraft,
    LineDraft,
    ManualLineDraft,
    Project,
    TimeEntry,
    TimeLineDraft,
)
from core.selection import BillableItems
from utils.money import round_to_cents
from utils.timezone import local_date


def dedupe_notes(notes: Iterable[str | None]) -> list[str]:
    """
    Unique non-empty notes, case-insensitively, in first-seen order.

    The first spelling encountered is the one kept.
    """
    unique: "OrderedDict[str, str]" = OrderedDict()
    for note in notes:
        if not note or not note.strip():
            continue
        cleaned = note.strip()
        unique.setdefault(cleaned.lower(), cleaned)
    return list(unique.values())


def _with_notes(base: str, notes: Sequence[str]) -> str:
    return f"{base} - {', '.join(notes)}" if notes else base


def _sum_hours(entries: Iterable[TimeEntry]) -> Decimal:
    return sum((e.total_hours for e in entries), Decimal("0"))


def bucket_by_day(entries: Iterable[TimeEntry], tz_name: str) -> "OrderedDict[date, list[TimeEntry]]":
    """Group entries by the business-timezone calendar date of start_at."""
    buckets: "OrderedDict[date, list[TimeEntry]]" = OrderedDict()
    for entry in sorted(entries, key=lambda e: (e.start_at, e.id)):
        buckets.setdefault(local_date(entry.start_at, tz_name), []).append(entry)
    return buckets


def time_lines_per_entry(
    entries: Iterable[TimeEntry],
    rate: Decimal,
    tz_name: str,
    include_notes: bool = True,
    label: str | None = None,
) -> list[TimeLineDraft]:
    """One line per entry."""
    lines = []
    for entry in entries:
        day = local_date(entry.start_at, tz_name).isoformat()
        note = entry.note.strip() if entry.note else ""
        if include_notes and note:
            description = f"{day} - {note}"
        else:
            description = f"Time entry - {day}"
        if label:
            description = f"{label} - {description}"

        lines.append(TimeLineDraft(
            description=description,
            quantity=entry.total_hours,
            unit_price=rate,
            time_entry_ids=(entry.id,),
            linked_time_entry_id=entry.id,
        ))
    return lines


def time_lines_by_day(
    entries: Iterable[TimeEntry],
    rate: Decimal,
    tz_name: str,
    include_notes: bool = True,
    label: str | None = None,
) -> list[TimeLineDraft]:
    """One line per calendar day, covering every entry that started that day."""
    lines = []
    for day, bucket in bucket_by_day(entries, tz_name).items():
        description = f"Time entries for {day.isoformat()}"
        if label:
            description = f"{label} - {description}"
        if include_notes:
            description = _with_notes(description, dedupe_notes(e.note for e in bucket))

        lines.append(TimeLineDraft(
            description=description,
            quantity=_sum_hours(bucket),
            unit_price=rate,
            time_entry_ids=tuple(e.id for e in bucket),
        ))
    return lines


def project_time_line(
    project: Project,
    entries: Sequence[TimeEntry],
    include_notes: bool = True,
) -> list[TimeLineDraft]:
    """All of a project's entries as a single line labelled with the project name."""
    if not entries:
        return []

    hours = _sum_hours(entries)
    description = f"{project.name} - {hours:.1f} hours"
    if include_notes:
        description = _with_notes(description, dedupe_notes(e.note for e in entries))

    return [TimeLineDraft(
        description=description,
        quantity=hours,
        unit_price=project.hourly_rate,
        time_entry_ids=tuple(e.id for e in entries),
        linked_time_entry_id=entries[0].id if len(entries) == 1 else None,
    )]


def expense_lines(expenses: Iterable[Expense], label: str | None = None) -> list[ExpenseLineDraft]:
    """One line per expense, billed at its recorded amount."""
    lines = []
    for expense in expenses:
        description = (expense.description or "").strip()
        if not description:
            description = f"Expense - {expense.expense_date.isoformat()}"
        if label:
            description = f"{label} - {description}"

        lines.append(ExpenseLineDraft(
            description=description,
            quantity=Decimal("1"),
            unit_price=round_to_cents(expense.amount),
            linked_expense_id=expense.id,
        ))
    return lines


def aggregate_project(
    project: Project,
    items: BillableItems,
    tz_name: str,
    group_by_day: bool = False,
    include_notes: bool = True,
) -> list[LineDraft]:
    """Line drafts for a single-project invoice: time lines, then expenses."""
    build = time_lines_by_day if group_by_day else time_lines_per_entry
    lines: list[LineDraft] = []
    lines.extend(build(items.time_entries, project.hourly_rate, tz_name, include_notes))
    lines.extend(expense_lines(items.expenses))
    return lines


def aggregate_client(
    projects: Sequence[Project],
    items: BillableItems,
    tz_name: str,
    group_by_day: bool = False,
    include_notes: bool = True,
) -> list[LineDraft]:
    """
    Line drafts for a multi-project invoice.

    Projects are billed in the given order, each at its own rate, each line
    labelled with the project name. Ungrouped time collapses to one line per
    project; grouped time gives one line per project per day.
    """
    lines: list[LineDraft] = []
    for project in projects:
        project_items = items.for_project(project.id)
        if group_by_day:
            lines.extend(time_lines_by_day(
                project_items.time_entries, project.hourly_rate, tz_name,
                include_notes, label=project.name,
            ))
        else:
            lines.extend(project_time_line(project, project_items.time_entries, include_notes))
        lines.extend(expense_lines(project_items.expenses, label=project.name))
    return lines


def invoiced_source_ids(lines: Iterable[LineDraft]) -> tuple[list[int], list[int]]:
    """
    Every time entry id and expense id the drafts bill.

    Returns:
        (time_entry_ids, expense_ids)
    """
    time_entry_ids: list[int] = []
    expense_ids: list[int] = []
    for line in lines:
        if isinstance(line, TimeLineDraft):
            time_entry_ids.extend(line.time_entry_ids)
        elif isinstance(line, ExpenseLineDraft):
            expense_ids.append(line.linked_expense_id)
        elif isinstance(line, ManualLineDraft):
            continue
        else:
            raise TypeError(f"Unknown line draft type: {type(line).__name__}")
    return time_entry_ids, expense_ids
