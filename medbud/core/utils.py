from datetime import date, datetime, time, timezone
from typing import Iterable, Optional


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def utcnow() -> datetime:
    # Naive UTC; timestamp columns are stored without a zone
    return datetime.now(timezone.utc).replace(tzinfo=None)


def combine_slot(slot_date: date, slot_time: Optional[time]) -> Optional[datetime]:
    if slot_time is None:
        return None
    return datetime.combine(slot_date, slot_time)


def token_display(token_number: int, token_type: str, priority: bool = False) -> str:
    # Waiting-room board labels: E for priority, W for walk-ins, bare number otherwise
    if priority:
        return f"E{token_number}"
    if token_type == "walk_in":
        return f"W{token_number}"
    return str(token_number)


def constraint_violated(exc: Exception, markers: Iterable[str]) -> bool:
    """
    Tell whether an IntegrityError was raised by one of the given constraints.

    Postgres reports the constraint name, SQLite only the table.column list,
    so markers should carry both forms.
    """
    message = str(getattr(exc, "orig", exc))
    return any(marker in message for marker in markers)
