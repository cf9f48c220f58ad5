import logging
from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime
from typing import Literal

from pydantic import ValidationError

from shiftboard.database import ShiftStore
from shiftboard.errors import (
    EmployeeNotFound,
    ShiftNotFound,
    StoreError,
    ValidationFailed,
)
from shiftboard.models import (
    Employee,
    EmployeeCreate,
    Notes,
    Shift,
    ShiftCandidate,
    ShiftKind,
    check_time_range,
)
from shiftboard.reconcile import reconcile_shifts

logger = logging.getLogger(__name__)

NowFn = Callable[[], datetime]


def _first_error(exc: ValidationError) -> str:
    return exc.errors()[0]["msg"]


class SessionState:
    """
    The one local copy of employees, shifts and notes.

    Writes go to the store first; local collections only change once the
    store has confirmed. Any change event from the store replaces all three
    collections with a fresh read.
    """

    def __init__(self, store: ShiftStore, *, now_fn: NowFn | None = None) -> None:
        self.store = store
        self.now_fn: NowFn = now_fn or (lambda: datetime.now(UTC))
        self.employees: list[Employee] = []
        self.shifts: list[Shift] = []
        self.notes: Notes = Notes()
        self._unsubscribe: Callable[[], None] | None = None

    # -- loading ----------------------------------------------------------

    async def load(self) -> None:
        try:
            employees = await self.store.list_employees()
            shifts = await self.store.list_shifts()
            notes = await self.store.get_notes()
        except StoreError:
            logger.exception("failed to load data")
            raise
        self.employees = sorted(employees, key=lambda e: e.position)
        self.shifts = shifts
        self.notes = notes or Notes()

    def watch(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_change)

    def unwatch(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_change(self, table: str) -> None:
        logger.debug("store change on %s, reloading", table)
        await self.load()

    # -- employees --------------------------------------------------------

    def get_employee(self, employee_id: str) -> Employee:
        for employee in self.employees:
            if employee.id == employee_id:
                return employee
        raise EmployeeNotFound(f"employee {employee_id} not found")

    async def add_employee(self, name: str) -> Employee:
        try:
            valid = EmployeeCreate(name=name)
        except ValidationError as exc:
            raise ValidationFailed(_first_error(exc)) from exc

        employee = await self.store.insert_employee(
            valid.name, position=len(self.employees)
        )
        if all(e.id != employee.id for e in self.employees):
            self.employees = [*self.employees, employee]
        logger.info("added employee %s (%s)", employee.id, employee.name)
        return employee

    async def delete_employee(self, employee_id: str) -> None:
        employee = self.get_employee(employee_id)
        await self.store.delete_employee(employee_id)
        self.employees = [e for e in self.employees if e.id != employee_id]
        self.shifts = [s for s in self.shifts if s.employee_id != employee_id]
        logger.info("deleted employee %s (%s)", employee.id, employee.name)

    async def move_employee(
        self, employee_id: str, direction: Literal["up", "down"]
    ) -> list[Employee]:
        ordered = list(self.employees)
        index = next(
            (i for i, e in enumerate(ordered) if e.id == employee_id), None
        )
        if index is None:
            raise EmployeeNotFound(f"employee {employee_id} not found")

        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(ordered):
            return self.employees

        ordered[index], ordered[target] = ordered[target], ordered[index]
        positions = {e.id: i for i, e in enumerate(ordered)}
        await self.store.set_positions(positions)
        self.employees = [
            e.model_copy(update={"position": positions[e.id]}) for e in ordered
        ]
        return self.employees

    # -- shifts -----------------------------------------------------------

    def _check_employees(self, employee_ids: set[str]) -> None:
        known = {e.id for e in self.employees}
        missing = sorted(employee_ids - known)
        if missing:
            raise EmployeeNotFound(f"employee {missing[0]} not found")

    async def add_shifts(self, candidates: Sequence[ShiftCandidate]) -> list[Shift]:
        self._check_employees({c.employee_id for c in candidates})
        self.shifts = await reconcile_shifts(self.store, self.shifts, candidates)
        return self.shifts

    async def update_shift(self, shift: Shift) -> Shift:
        if all(s.id != shift.id for s in self.shifts):
            raise ShiftNotFound(f"shift {shift.id} not found")
        self._check_employees({shift.employee_id})
        if shift.kind == ShiftKind.OFF:
            shift = shift.model_copy(update={"start_time": "", "end_time": ""})
        else:
            try:
                check_time_range(shift.start_time, shift.end_time)
            except ValueError as exc:
                raise ValidationFailed(str(exc)) from exc

        saved = await self.store.update_shift(shift)
        # the store drops any other shift already on the target pair
        self.shifts = [
            saved if s.id == saved.id else s
            for s in self.shifts
            if s.id == saved.id
            or (s.employee_id, s.date) != (saved.employee_id, saved.date)
        ]
        return saved

    async def delete_shift(self, shift_id: str) -> None:
        if all(s.id != shift_id for s in self.shifts):
            raise ShiftNotFound(f"shift {shift_id} not found")
        await self.store.delete_shift(shift_id)
        self.shifts = [s for s in self.shifts if s.id != shift_id]

    async def delete_employee_shifts(
        self, employee_id: str, dates: Sequence[date] | None = None
    ) -> int:
        """Delete an employee's shifts on ``dates``, or all of them for None."""
        employee = self.get_employee(employee_id)
        wanted = None if dates is None else list(dates)
        count = await self.store.delete_shifts_for(employee_id, wanted)
        self.shifts = [
            s
            for s in self.shifts
            if not (
                s.employee_id == employee_id
                and (wanted is None or s.date in wanted)
            )
        ]
        logger.info("deleted %d shifts of %s", count, employee.name)
        return count

    def shifts_on(self, day: date) -> list[Shift]:
        return [s for s in self.shifts if s.date == day]

    def shift_for(self, employee_id: str, day: date) -> Shift | None:
        return next(
            (
                s
                for s in self.shifts
                if s.employee_id == employee_id and s.date == day
            ),
            None,
        )

    def upcoming_shift_count(self, today: date) -> int:
        return sum(1 for s in self.shifts if s.date >= today)

    # -- notes ------------------------------------------------------------

    async def save_notes(self, content: str) -> Notes:
        try:
            Notes(content=content)
        except ValidationError as exc:
            raise ValidationFailed(_first_error(exc)) from exc
        self.notes = await self.store.save_notes(content, self.now_fn())
        return self.notes
