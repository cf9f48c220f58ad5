"""
Mapping of parsed voice instructions onto schedule operations.

Employees are resolved by bidirectional substring containment: the spoken
name is found inside an employee's name, or an employee's name is found
inside the spoken name. Matching is case-sensitive and the first employee in
display order wins. Several matches are logged, not rejected.
"""

import logging
from collections.abc import Sequence
from datetime import date
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

from shiftboard.errors import ConfirmationRequired, EmployeeNotFound
from shiftboard.models import (
    DEFAULT_END_TIME,
    DEFAULT_START_TIME,
    Employee,
    ShiftDraft,
    ShiftKind,
    VoiceShiftRecord,
)

if TYPE_CHECKING:
    from shiftboard.session import SessionState

logger = logging.getLogger(__name__)


class VoiceOutcome(BaseModel):
    action: Literal["draft", "deleted"]
    employee_id: str
    employee_name: str
    draft: ShiftDraft | None = None
    dates: list[date] = []
    deleted: int = 0


def name_matches(employee_name: str, spoken: str) -> bool:
    return spoken in employee_name or employee_name in spoken


def resolve_employee(spoken: str, employees: Sequence[Employee]) -> Employee:
    matches = [e for e in employees if name_matches(e.name, spoken)]
    if not matches:
        raise EmployeeNotFound(f"employee not found: {spoken}")
    if len(matches) > 1:
        logger.warning(
            "voice name %r matches %d employees, using %r",
            spoken,
            len(matches),
            matches[0].name,
        )
    return matches[0]


def draft_from_record(record: VoiceShiftRecord, employee: Employee) -> ShiftDraft:
    if record.is_off:
        return ShiftDraft(
            employee_id=employee.id, dates=record.dates, kind=ShiftKind.OFF
        )
    return ShiftDraft(
        employee_id=employee.id,
        dates=record.dates,
        kind=ShiftKind.WORK,
        start_time=record.start_time or DEFAULT_START_TIME,
        end_time=record.end_time or DEFAULT_END_TIME,
    )


async def apply_voice_record(
    session: "SessionState",
    record: VoiceShiftRecord,
    *,
    confirmed: bool = False,
) -> VoiceOutcome:
    """
    Carry out a parsed voice instruction against the session.

    An "add" only returns a draft for the entry form; nothing is saved. A
    "delete" with dates removes that employee's shifts on those dates. A
    "delete" without dates removes all of the employee's shifts and needs
    ``confirmed=True``, otherwise ConfirmationRequired is raised untouched.
    """
    employee = resolve_employee(record.employee_name, session.employees)

    if record.action == "add":
        return VoiceOutcome(
            action="draft",
            employee_id=employee.id,
            employee_name=employee.name,
            draft=draft_from_record(record, employee),
        )

    if not record.dates and not confirmed:
        raise ConfirmationRequired(
            f"delete all shifts of {employee.name}? confirm to proceed"
        )

    deleted = await session.delete_employee_shifts(
        employee.id, record.dates or None
    )
    return VoiceOutcome(
        action="deleted",
        employee_id=employee.id,
        employee_name=employee.name,
        dates=record.dates,
        deleted=deleted,
    )
