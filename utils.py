"""Pure helpers deriving stand state from plain data.

Nothing in this module touches the database: callers pass a snapshot of the
rows they already loaded together with the organization policy, and get back
plain values they can render or persist.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta


def coerce_datetime(value):
    """Return ``value`` as a naive :class:`datetime`, or ``None``.

    Accepts datetimes, dates and ISO-8601 strings.  Anything that cannot be
    interpreted is treated as missing rather than raised.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.replace(tzinfo=None) - (value.utcoffset() or timedelta(0))
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return coerce_datetime(parsed)
    return None


# --- Reservations


class ReservationError(Enum):
    INVALID_RANGE = "InvalidRange"
    INSUFFICIENT_NOTICE = "InsufficientNotice"
    DURATION_EXCEEDED = "DurationExceeded"

    @property
    def message(self):
        return _RESERVATION_MESSAGES[self]


_RESERVATION_MESSAGES = {
    ReservationError.INVALID_RANGE: "La date de fin doit être postérieure à la date de début",
    ReservationError.INSUFFICIENT_NOTICE: "La réservation doit être faite suffisamment à l'avance",
    ReservationError.DURATION_EXCEEDED: "La durée maximale de réservation est dépassée",
}


@dataclass(frozen=True)
class ReservationPolicy:
    max_duration_days: int = 30
    min_advance_hours: int = 24

    @classmethod
    def from_organization(cls, organization):
        return cls(
            max_duration_days=organization.max_reservation_days,
            min_advance_hours=organization.min_advance_hours,
        )


def validate_reservation_period(
    start, end, now, policy: ReservationPolicy
) -> Optional[ReservationError]:
    """Return ``None`` when the period is acceptable, else the first failed rule.

    Rules are checked in order: range, advance notice, duration.  Overlap with
    other reservations is the caller's business.
    """

    start = coerce_datetime(start)
    end = coerce_datetime(end)
    now = coerce_datetime(now)
    if start is None or end is None or end <= start:
        return ReservationError.INVALID_RANGE
    # Without a reference time the notice cannot be proven.
    if now is None or start < now + timedelta(hours=policy.min_advance_hours):
        return ReservationError.INSUFFICIENT_NOTICE
    duration_days = (end - start).total_seconds() / 86400
    if duration_days > policy.max_duration_days:
        return ReservationError.DURATION_EXCEEDED
    return None


def is_reserved(reservations, now) -> bool:
    """True iff the latest reservation (by start) ends after ``now``."""
    now = coerce_datetime(now)
    latest = None
    for reservation in reservations:
        start = coerce_datetime(reservation.start_at)
        if start is None:
            continue
        if latest is None or start >= coerce_datetime(latest.start_at):
            latest = reservation
    if latest is None or now is None:
        return False
    end = coerce_datetime(latest.end_at)
    return end is not None and end > now


# --- Stand lifecycle

AGE_UNKNOWN = "unknown"
AGE_NEW = "new"
AGE_GOOD = "good"
AGE_AGING = "aging"
AGE_OLD = "old"

AGE_STATUSES = (AGE_NEW, AGE_GOOD, AGE_AGING, AGE_OLD, AGE_UNKNOWN)

AGE_STATUS_LABELS = {
    AGE_NEW: "Neuf (<2 ans)",
    AGE_GOOD: "Bon état (2-4 ans)",
    AGE_AGING: "Vieillissant (4-6 ans)",
    AGE_OLD: "À remplacer (>6 ans)",
    AGE_UNKNOWN: "Âge inconnu",
}


def stand_age_years(installed_at, now):
    installed_at = coerce_datetime(installed_at)
    now = coerce_datetime(now)
    if installed_at is None or now is None:
        return None
    return max(relativedelta(now, installed_at).years, 0)


def age_status(installed_at, now) -> str:
    years = stand_age_years(installed_at, now)
    if years is None:
        return AGE_UNKNOWN
    if years < 2:
        return AGE_NEW
    if years < 4:
        return AGE_GOOD
    if years < 6:
        return AGE_AGING
    return AGE_OLD


def stand_age_label(installed_at, now) -> str:
    installed_at = coerce_datetime(installed_at)
    now = coerce_datetime(now)
    if installed_at is None or now is None:
        return "Inconnu"
    delta = relativedelta(now, installed_at)
    if delta.years >= 1:
        return "1 an" if delta.years == 1 else f"{delta.years} ans"
    if delta.months >= 1:
        return f"{delta.months} mois"
    return "Moins d'un mois"


def next_maintenance_date(last_maintenance, installed_at, interval_months):
    base = coerce_datetime(last_maintenance) or coerce_datetime(installed_at)
    if base is None:
        return None
    return base + relativedelta(months=interval_months)


def maintenance_due(maintenance_dates, installed_at, now, interval_months) -> bool:
    dates = [d for d in (coerce_datetime(v) for v in maintenance_dates) if d]
    if not dates:
        return True
    now = coerce_datetime(now)
    due_at = next_maintenance_date(max(dates), installed_at, interval_months)
    return now is not None and due_at < now


@dataclass(frozen=True)
class StandLifecycle:
    age_status: str
    age_label: str
    maintenance_due: bool
    next_maintenance_at: Optional[datetime]

    @property
    def age_status_label(self):
        return AGE_STATUS_LABELS[self.age_status]


def classify_stand(installed_at, maintenance_dates, now, interval_months) -> StandLifecycle:
    dates = [d for d in (coerce_datetime(v) for v in maintenance_dates) if d]
    last = max(dates) if dates else None
    return StandLifecycle(
        age_status=age_status(installed_at, now),
        age_label=stand_age_label(installed_at, now),
        maintenance_due=maintenance_due(dates, installed_at, now, interval_months),
        next_maintenance_at=next_maintenance_date(last, installed_at, interval_months),
    )


# --- Publication stock


@dataclass(frozen=True)
class CatalogEntry:
    title: str
    min_stock: int


@dataclass(frozen=True)
class StockDeficiency:
    publication_id: object
    title: str
    current: int
    required: int

    @property
    def missing(self):
        return self.required - self.current


def low_stock_publications(entries, catalog):
    """Return a :class:`StockDeficiency` per entry below its catalog minimum.

    ``catalog`` maps publication ids to objects exposing ``title`` and
    ``min_stock``.  Entries referencing an unknown publication are skipped.
    """

    deficient = []
    for entry in entries:
        publication = catalog.get(entry.publication_id)
        if publication is None:
            continue
        if entry.quantity < publication.min_stock:
            deficient.append(
                StockDeficiency(
                    publication_id=entry.publication_id,
                    title=publication.title,
                    current=entry.quantity,
                    required=publication.min_stock,
                )
            )
    return deficient
