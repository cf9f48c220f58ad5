"""
Domain models shared by the store, the session state and the API.
"""

import re
from datetime import date, datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NAME_MAX_LENGTH = 50
NOTES_MAX_LENGTH = 2000

DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


class ShiftKind(StrEnum):
    WORK = "work"
    OFF = "off"


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for an "HH:MM" string. Raises ValueError."""
    match = _TIME_RE.match(value or "")
    if match is None:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    return hours * 60 + minutes


def check_time_range(start_time: str, end_time: str) -> None:
    if time_to_minutes(start_time) >= time_to_minutes(end_time):
        raise ValueError("end time must be after start time")


class Employee(BaseModel):
    id: str
    name: str
    position: int = 0


class EmployeeCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def _trimmed_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("employee name must not be empty")
        if len(value) > NAME_MAX_LENGTH:
            raise ValueError(
                f"employee name must be at most {NAME_MAX_LENGTH} characters"
            )
        return value


class Shift(BaseModel):
    """
    A stored shift. Mirrors whatever the store holds, so times are not
    re-validated on read; write paths go through ShiftCandidate.
    """

    id: str
    employee_id: str
    date: date
    kind: ShiftKind = ShiftKind.WORK
    start_time: str = ""
    end_time: str = ""


class ShiftCandidate(BaseModel):
    """One day of one employee's schedule, as submitted by a caller."""

    employee_id: str
    date: datetime | date
    kind: ShiftKind = ShiftKind.WORK
    start_time: str = ""
    end_time: str = ""

    @model_validator(mode="after")
    def _times_match_kind(self) -> "ShiftCandidate":
        if self.kind == ShiftKind.OFF:
            self.start_time = ""
            self.end_time = ""
        else:
            check_time_range(self.start_time, self.end_time)
        return self


class Notes(BaseModel):
    id: str | None = None
    content: str = Field(default="", max_length=NOTES_MAX_LENGTH)
    updated_at: datetime | None = None


class VoiceShiftRecord(BaseModel):
    """Structured result of parsing one spoken instruction."""

    model_config = ConfigDict(populate_by_name=True)

    action: Literal["add", "delete"] = "add"
    employee_name: str = Field(alias="employeeName", min_length=1)
    dates: list[date]
    start_time: str | None = Field(default=None, alias="startTime")
    end_time: str | None = Field(default=None, alias="endTime")
    is_off: bool = Field(default=False, alias="isOff")


class ShiftDraft(BaseModel):
    """Entry-form state a voice "add" fills in for human review."""

    employee_id: str
    dates: list[date]
    kind: ShiftKind = ShiftKind.WORK
    start_time: str = DEFAULT_START_TIME
    end_time: str = DEFAULT_END_TIME
