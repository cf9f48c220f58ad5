import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable, Iterator, MutableMapping
from datetime import date, datetime
from typing import Generic, Protocol, TypeVar

from shiftboard.errors import ShiftNotFound, StoreError
from shiftboard.models import Employee, Notes, Shift, ShiftKind

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

EMPLOYEES = "employees"
SHIFTS = "shifts"
NOTES = "notes"

ChangeListener = Callable[[str], Awaitable[None]]
ShiftKey = tuple[str, date]


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value table.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}

    def put(self, key: K, value: V) -> None:
        self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def delete(self, key: K) -> None:
        self._store.pop(key, None)

    def all(self) -> list[V]:
        return list(self._store.values())

    def clear(self) -> None:
        self._store.clear()

    def snapshot(self) -> dict[K, V]:
        return dict(self._store)

    def restore(self, snapshot: dict[K, V]) -> None:
        self._store = dict(snapshot)

    def __iter__(self) -> Iterator[V]:
        return iter(self._store.values())

    def __len__(self) -> int:
        return len(self._store)


class ShiftStore(Protocol):
    """Backing store for the three tables, with change notifications."""

    async def list_employees(self) -> list[Employee]: ...

    async def insert_employee(self, name: str, position: int) -> Employee: ...

    async def set_positions(self, positions: dict[str, int]) -> None: ...

    async def delete_employee(self, employee_id: str) -> None: ...

    async def list_shifts(self) -> list[Shift]: ...

    async def replace_shifts(
        self, keys: Iterable[ShiftKey], rows: list[Shift]
    ) -> list[Shift]: ...

    async def update_shift(self, shift: Shift) -> Shift: ...

    async def delete_shift(self, shift_id: str) -> None: ...

    async def delete_shifts_for(
        self, employee_id: str, dates: list[date] | None
    ) -> int: ...

    async def get_notes(self) -> Notes | None: ...

    async def save_notes(self, content: str, updated_at: datetime) -> Notes: ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]: ...


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemoryShiftStore:
    """
    ShiftStore kept in process memory.

    Every successful write notifies subscribers with the table name.
    replace_shifts applies its whole batch or nothing.
    """

    def __init__(self) -> None:
        self.employees: InMemoryKeyValueDatabase[str, Employee] = (
            InMemoryKeyValueDatabase()
        )
        self.shifts: InMemoryKeyValueDatabase[str, Shift] = (
            InMemoryKeyValueDatabase()
        )
        self.notes: InMemoryKeyValueDatabase[str, Notes] = (
            InMemoryKeyValueDatabase()
        )
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def _notify(self, table: str) -> None:
        for listener in list(self._listeners):
            await listener(table)

    async def list_employees(self) -> list[Employee]:
        return sorted(self.employees.all(), key=lambda e: e.position)

    async def insert_employee(self, name: str, position: int) -> Employee:
        employee = Employee(id=_new_id(), name=name, position=position)
        self.employees.put(employee.id, employee)
        await self._notify(EMPLOYEES)
        return employee

    async def set_positions(self, positions: dict[str, int]) -> None:
        for employee_id, position in positions.items():
            employee = self.employees.get(employee_id)
            if employee is None:
                raise StoreError(f"employee {employee_id} does not exist")
            self.employees.put(
                employee_id, employee.model_copy(update={"position": position})
            )
        await self._notify(EMPLOYEES)

    async def delete_employee(self, employee_id: str) -> None:
        self.employees.delete(employee_id)
        # shifts reference employees with ON DELETE CASCADE
        for shift in self.shifts.all():
            if shift.employee_id == employee_id:
                self.shifts.delete(shift.id)
        await self._notify(EMPLOYEES)

    async def list_shifts(self) -> list[Shift]:
        return self.shifts.all()

    async def replace_shifts(
        self, keys: Iterable[ShiftKey], rows: list[Shift]
    ) -> list[Shift]:
        replaced = set(keys)
        for row in rows:
            if self.employees.get(row.employee_id) is None:
                raise StoreError(f"employee {row.employee_id} does not exist")

        before = self.shifts.snapshot()
        try:
            for shift in self.shifts.all():
                if (shift.employee_id, shift.date) in replaced:
                    self.shifts.delete(shift.id)
            created = []
            for row in rows:
                stored = row.model_copy(update={"id": _new_id()})
                self.shifts.put(stored.id, stored)
                created.append(stored)
        except Exception:
            logger.warning("shift batch failed, rolling back %d keys", len(replaced))
            self.shifts.restore(before)
            raise
        await self._notify(SHIFTS)
        return created

    async def update_shift(self, shift: Shift) -> Shift:
        """Save ``shift`` and drop any other shift on its (employee, date)."""
        if self.shifts.get(shift.id) is None:
            raise ShiftNotFound(f"shift {shift.id} not found")
        if self.employees.get(shift.employee_id) is None:
            raise StoreError(f"employee {shift.employee_id} does not exist")
        for other in self.shifts.all():
            if (
                other.id != shift.id
                and other.employee_id == shift.employee_id
                and other.date == shift.date
            ):
                self.shifts.delete(other.id)
        self.shifts.put(shift.id, shift)
        await self._notify(SHIFTS)
        return shift

    async def delete_shift(self, shift_id: str) -> None:
        self.shifts.delete(shift_id)
        await self._notify(SHIFTS)

    async def delete_shifts_for(
        self, employee_id: str, dates: list[date] | None
    ) -> int:
        wanted = None if dates is None else set(dates)
        doomed = [
            s.id
            for s in self.shifts.all()
            if s.employee_id == employee_id
            and (wanted is None or s.date in wanted)
        ]
        for shift_id in doomed:
            self.shifts.delete(shift_id)
        await self._notify(SHIFTS)
        return len(doomed)

    async def get_notes(self) -> Notes | None:
        notes = self.notes.all()
        return notes[0] if notes else None

    async def save_notes(self, content: str, updated_at: datetime) -> Notes:
        current = await self.get_notes()
        notes = Notes(
            id=current.id if current else _new_id(),
            content=content,
            updated_at=updated_at,
        )
        self.notes.put(notes.id, notes)
        await self._notify(NOTES)
        return notes


def shift_row(
    employee_id: str,
    day: date,
    kind: ShiftKind,
    start_time: str,
    end_time: str,
) -> Shift:
    """A shift row ready for insertion; the store assigns the real id."""
    return Shift(
        id="",
        employee_id=employee_id,
        date=day,
        kind=kind,
        start_time=start_time,
        end_time=end_time,
    )
