import logging
from collections.abc import Sequence

from shiftboard.database import ShiftKey, ShiftStore, shift_row
from shiftboard.dates import format_local_date, to_calendar_date
from shiftboard.errors import StoreError, ValidationFailed
from shiftboard.models import Shift, ShiftCandidate

logger = logging.getLogger(__name__)


def latest_per_key(
    candidates: Sequence[ShiftCandidate],
) -> dict[ShiftKey, ShiftCandidate]:
    """One candidate per (employee, day); later entries overwrite earlier ones."""
    by_key: dict[ShiftKey, ShiftCandidate] = {}
    for candidate in candidates:
        key = (candidate.employee_id, to_calendar_date(candidate.date))
        by_key.pop(key, None)
        by_key[key] = candidate
    return by_key


async def reconcile_shifts(
    store: ShiftStore,
    current: Sequence[Shift],
    candidates: Sequence[ShiftCandidate],
) -> list[Shift]:
    """
    Upsert candidates by (employee, day) and return the new shift collection.

    Any stored shift on a submitted (employee, day) is replaced, not merged.
    The store receives the whole batch in one replace_shifts call; ``current``
    is only recombined after the store confirms, so a failure leaves the
    caller's collection as it was.
    """
    if not candidates:
        raise ValidationFailed("select at least one date")

    by_key = latest_per_key(candidates)
    rows = [
        shift_row(employee_id, day, c.kind, c.start_time, c.end_time)
        for (employee_id, day), c in by_key.items()
    ]

    try:
        created = await store.replace_shifts(by_key.keys(), rows)
    except StoreError:
        logger.exception(
            "failed to save %d shifts (%s)",
            len(rows),
            ", ".join(f"{e}@{format_local_date(d)}" for e, d in by_key),
        )
        raise

    replaced = set(by_key)
    survivors = [s for s in current if (s.employee_id, s.date) not in replaced]
    logger.info(
        "saved %d shifts, replaced %d",
        len(created),
        len(current) - len(survivors),
    )
    return survivors + created
