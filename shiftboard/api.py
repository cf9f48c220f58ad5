import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from shiftboard.auth import AuthService, User
from shiftboard.calendar_layout import month_grid, month_table, week_days
from shiftboard.config import Settings, configure_logging
from shiftboard.database import InMemoryShiftStore, ShiftStore
from shiftboard.dates import DateSelection, to_calendar_date
from shiftboard.errors import ShiftboardError, StoreError, ValidationFailed
from shiftboard.gateway import transcribe_audio
from shiftboard.hours import monthly_work_hours
from shiftboard.intent import parse_voice_shift
from shiftboard.models import (
    DEFAULT_END_TIME,
    DEFAULT_START_TIME,
    Employee,
    Notes,
    Shift,
    ShiftCandidate,
    ShiftKind,
    VoiceShiftRecord,
)
from shiftboard.session import SessionState
from shiftboard.voice import VoiceOutcome, apply_voice_record

logger = logging.getLogger(__name__)

router = APIRouter()


class Credentials(BaseModel):
    email: str
    password: str


class EmployeeRequest(BaseModel):
    name: str


class MoveRequest(BaseModel):
    direction: Literal["up", "down"]


class ShiftEntryRequest(BaseModel):
    """
    The shift entry form. ``dates`` falls back to the caller's current date
    selection when omitted.
    """

    employee_id: str
    dates: list[date] | None = None
    kind: ShiftKind = ShiftKind.WORK
    start_time: str = DEFAULT_START_TIME
    end_time: str = DEFAULT_END_TIME


class ShiftUpdateRequest(BaseModel):
    employee_id: str
    date: date
    kind: ShiftKind = ShiftKind.WORK
    start_time: str = ""
    end_time: str = ""


class NotesRequest(BaseModel):
    content: str


class ToggleRequest(BaseModel):
    date: date


class AudioRequest(BaseModel):
    audio: str


class TranscriptRequest(BaseModel):
    text: str


class VoiceApplyRequest(BaseModel):
    text: str | None = None
    record: VoiceShiftRecord | None = None
    confirmed: bool = False


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def current_user(
    request: Request, authorization: Annotated[str | None, Header()] = None
) -> User:
    return request.app.state.auth.get_session(_bearer_token(authorization))


CurrentUser = Annotated[User, Depends(current_user)]


def _session(request: Request) -> SessionState:
    return request.app.state.session


def _selection(request: Request, user: User) -> DateSelection:
    selections: dict[str, DateSelection] = request.app.state.selections
    return selections.setdefault(user.id, DateSelection())


def _today(request: Request) -> date:
    return request.app.state.today_fn()


def _zero_based(month: int) -> int:
    if not 1 <= month <= 12:
        raise ValidationFailed(f"month must be 1..12, got {month}")
    return month - 1


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


# -- auth -----------------------------------------------------------------


@router.post("/auth/signup")
async def sign_up(body: Credentials, request: Request) -> dict:
    return request.app.state.auth.sign_up(body.email, body.password).model_dump()


@router.post("/auth/signin")
async def sign_in(body: Credentials, request: Request) -> dict:
    return request.app.state.auth.sign_in(body.email, body.password).model_dump()


@router.post("/auth/signout")
async def sign_out(
    request: Request,
    user: CurrentUser,
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    request.app.state.auth.sign_out(_bearer_token(authorization))
    request.app.state.selections.pop(user.id, None)
    return {"status": "signed_out"}


@router.get("/auth/session")
async def get_auth_session(user: CurrentUser) -> dict:
    return {"user": user.model_dump()}


@router.delete("/auth/account")
async def delete_account(
    request: Request, authorization: Annotated[str | None, Header()] = None
) -> dict:
    user = request.app.state.auth.delete_account(_bearer_token(authorization))
    request.app.state.selections.pop(user.id, None)
    return {"status": "deleted", "user_id": user.id}


# -- employees ------------------------------------------------------------


@router.get("/employees")
async def list_employees(request: Request, _user: CurrentUser) -> list[Employee]:
    return _session(request).employees


@router.post("/employees", status_code=201)
async def add_employee(
    body: EmployeeRequest, request: Request, _user: CurrentUser
) -> Employee:
    return await _session(request).add_employee(body.name)


@router.delete("/employees/{employee_id}")
async def delete_employee(
    employee_id: str, request: Request, _user: CurrentUser
) -> dict:
    await _session(request).delete_employee(employee_id)
    return {"status": "deleted", "employee_id": employee_id}


@router.post("/employees/{employee_id}/move")
async def move_employee(
    employee_id: str, body: MoveRequest, request: Request, _user: CurrentUser
) -> list[Employee]:
    return await _session(request).move_employee(employee_id, body.direction)


# -- shifts ---------------------------------------------------------------


@router.get("/shifts")
async def list_shifts(request: Request, _user: CurrentUser) -> list[Shift]:
    return _session(request).shifts


@router.post("/shifts", status_code=201)
async def add_shifts(
    body: ShiftEntryRequest, request: Request, user: CurrentUser
) -> dict:
    selection = _selection(request, user)
    dates = body.dates if body.dates is not None else list(selection.dates)
    if not dates:
        raise ValidationFailed("select at least one date")

    candidates = [
        ShiftCandidate(
            employee_id=body.employee_id,
            date=d,
            kind=body.kind,
            start_time=body.start_time,
            end_time=body.end_time,
        )
        for d in dates
    ]
    session = _session(request)
    await session.add_shifts(candidates)
    selection.clear()

    saved = {to_calendar_date(c.date) for c in candidates}
    return {
        "status": "saved",
        "count": len(saved),
        "shifts": [
            s
            for s in session.shifts
            if s.employee_id == body.employee_id and s.date in saved
        ],
    }


@router.get("/shifts/on/{day}")
async def shifts_on_day(day: date, request: Request, _user: CurrentUser) -> dict:
    session = _session(request)
    names = {e.id: e.name for e in session.employees}
    return {
        "date": day,
        "shifts": [
            {**s.model_dump(), "employee_name": names.get(s.employee_id)}
            for s in session.shifts_on(day)
        ],
    }


@router.put("/shifts/{shift_id}")
async def update_shift(
    shift_id: str, body: ShiftUpdateRequest, request: Request, _user: CurrentUser
) -> Shift:
    shift = Shift(id=shift_id, **body.model_dump())
    return await _session(request).update_shift(shift)


@router.delete("/shifts/{shift_id}")
async def delete_shift(shift_id: str, request: Request, _user: CurrentUser) -> dict:
    await _session(request).delete_shift(shift_id)
    return {"status": "deleted", "shift_id": shift_id}


# -- notes ----------------------------------------------------------------


@router.get("/notes")
async def get_notes(request: Request, _user: CurrentUser) -> Notes:
    return _session(request).notes


@router.put("/notes")
async def save_notes(body: NotesRequest, request: Request, _user: CurrentUser) -> Notes:
    return await _session(request).save_notes(body.content)


# -- date selection -------------------------------------------------------


@router.get("/selection")
async def get_selection(request: Request, user: CurrentUser) -> DateSelection:
    return _selection(request, user)


@router.post("/selection/weekdays")
async def select_weekdays(request: Request, user: CurrentUser) -> DateSelection:
    selection = _selection(request, user)
    selection.select_weekdays(_today(request))
    return selection


@router.post("/selection/weekend")
async def select_weekend(request: Request, user: CurrentUser) -> DateSelection:
    selection = _selection(request, user)
    selection.select_weekend(_today(request))
    return selection


@router.post("/selection/toggle")
async def toggle_date(
    body: ToggleRequest, request: Request, user: CurrentUser
) -> DateSelection:
    selection = _selection(request, user)
    selection.toggle(body.date)
    return selection


@router.delete("/selection")
async def clear_selection(request: Request, user: CurrentUser) -> DateSelection:
    selection = _selection(request, user)
    selection.clear()
    return selection


# -- voice ----------------------------------------------------------------


@router.post("/voice/transcribe")
async def transcribe(body: AudioRequest, request: Request, _user: CurrentUser) -> dict:
    text = await transcribe_audio(body.audio, request.app.state.settings)
    return {"text": text}


@router.post("/voice/parse")
async def parse_voice(
    body: TranscriptRequest, request: Request, _user: CurrentUser
) -> dict:
    record = await parse_voice_shift(
        body.text, _today(request), request.app.state.settings
    )
    return record.model_dump(mode="json", by_alias=True)


@router.post("/voice/apply")
async def apply_voice(
    body: VoiceApplyRequest, request: Request, user: CurrentUser
) -> VoiceOutcome:
    record = body.record
    if record is None:
        if body.text is None:
            raise ValidationFailed("send either text or record")
        record = await parse_voice_shift(
            body.text, _today(request), request.app.state.settings
        )

    outcome = await apply_voice_record(
        _session(request), record, confirmed=body.confirmed
    )
    if outcome.draft is not None:
        # the entry form shows the voice dates as its current selection
        selection = _selection(request, user)
        selection.clear()
        selection.dates = sorted(set(outcome.draft.dates))
    return outcome


# -- views ----------------------------------------------------------------


@router.get("/calendar/{year}/{month}/grid")
async def calendar_grid(year: int, month: int, _user: CurrentUser) -> dict:
    cells = month_grid(year, _zero_based(month))
    return {
        "year": year,
        "month": month,
        "weeks": [cells[i : i + 7] for i in range(0, len(cells), 7)],
    }


@router.get("/calendar/{year}/{month}/table")
async def calendar_table(
    year: int, month: int, request: Request, _user: CurrentUser
) -> dict:
    slots = month_table(year, _zero_based(month))
    session = _session(request)
    rows = []
    for employee in session.employees:
        cells = []
        for slot in slots:
            shift = session.shift_for(employee.id, slot) if slot else None
            cells.append(shift.model_dump(mode="json") if shift else None)
        rows.append({"employee": employee.model_dump(), "cells": cells})
    return {"year": year, "month": month, "days": slots, "rows": rows}


@router.get("/calendar/week/{day}")
async def calendar_week(day: date, request: Request, _user: CurrentUser) -> dict:
    session = _session(request)
    return {
        "days": [
            {"date": d, "shifts": session.shifts_on(d)} for d in week_days(day)
        ]
    }


@router.get("/hours/{year}/{month}")
async def work_hours(
    year: int, month: int, request: Request, _user: CurrentUser
) -> dict:
    session = _session(request)
    hours = monthly_work_hours(
        session.employees, session.shifts, year, _zero_based(month)
    )
    return {"year": year, "month": month, "hours": hours}


@router.get("/summary")
async def summary(request: Request, _user: CurrentUser) -> dict:
    session = _session(request)
    today = _today(request)
    return {
        "employee_count": len(session.employees),
        "shifts_today": len(session.shifts_on(today)),
        "upcoming_shifts": session.upcoming_shift_count(today),
    }


# -- app ------------------------------------------------------------------


async def _shiftboard_error(request: Request, exc: ShiftboardError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error("store error on %s %s: %s", request.method, request.url.path, exc)
        detail = "could not save or load data, please retry"
    else:
        logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
        detail = exc.detail
    return JSONResponse(status_code=exc.status_code, content={"detail": detail})


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422, content={"detail": exc.errors()[0]["msg"]}
    )


def create_app(
    store: ShiftStore | None = None, settings: Settings | None = None
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    store = store or InMemoryShiftStore()
    session = SessionState(store, now_fn=lambda: datetime.now(UTC))

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await session.load()
        yield
        session.unwatch()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.session = session
    app.state.auth = AuthService()
    app.state.selections = {}
    app.state.today_fn = lambda: date.today()

    session.watch()

    app.add_exception_handler(ShiftboardError, _shiftboard_error)
    app.add_exception_handler(ValidationError, _validation_error)
    app.include_router(router)
    return app
