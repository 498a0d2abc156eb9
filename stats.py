"""Dashboard figures computed from already loaded stands."""

from dataclasses import dataclass

from utils import AGE_STATUSES, age_status, coerce_datetime, maintenance_due

CURATIVE = "curative"
PREVENTIVE = "preventive"


def age_distribution(stands, now):
    counts = {status: 0 for status in AGE_STATUSES}
    for stand in stands:
        counts[age_status(stand.installed_at, now)] += 1
    return counts


def _curative_dates(records):
    dates = [
        coerce_datetime(r.performed_at) for r in records if r.kind == CURATIVE
    ]
    return sorted(d for d in dates if d)


def average_days_between_failures(records_by_stand):
    """Mean gap in days between consecutive curative interventions.

    ``records_by_stand`` is an iterable of per-stand record lists; gaps are
    never computed across two different stands.
    """

    total_days = 0
    count = 0
    for records in records_by_stand:
        dates = _curative_dates(records)
        for previous, current in zip(dates, dates[1:]):
            total_days += (current - previous).days
            count += 1
    return round(total_days / count) if count else 0


def failure_risk(installed_at, reservations, records, now):
    """Return an indicative 0-100 failure risk score."""
    now = coerce_datetime(now)
    installed_at = coerce_datetime(installed_at) or now
    age_days = max((now - installed_at).days, 0)

    usage_days = 0
    for reservation in reservations:
        start = coerce_datetime(reservation.start_at)
        end = coerce_datetime(reservation.end_at)
        if start and end and end > start:
            usage_days += (end - start).days
    curative_count = sum(1 for r in records if r.kind == CURATIVE)

    age_risk = min(age_days / 365, 1) * 0.3
    usage_risk = min(usage_days / 180, 1) * 0.4
    maintenance_risk = min(curative_count / 5, 1) * 0.3
    return min(round((age_risk + usage_risk + maintenance_risk) * 100), 100)


@dataclass
class MaintenanceSummary:
    total: int = 0
    preventive: int = 0
    curative: int = 0
    upcoming: int = 0
    average_days_between_failures: int = 0


def maintenance_summary(stands, now, interval_months):
    """Totals shown on the maintenance dashboard.

    Only approved records count; pending public reports and rejected ones are
    ignored, both for the totals and for the due computation.
    """

    summary = MaintenanceSummary()
    per_stand = []
    for stand in stands:
        records = stand.approved_maintenance()
        per_stand.append(records)
        summary.total += len(records)
        summary.preventive += sum(1 for r in records if r.kind == PREVENTIVE)
        summary.curative += sum(1 for r in records if r.kind == CURATIVE)
        if maintenance_due(
            [r.performed_at for r in records], stand.installed_at, now, interval_months
        ):
            summary.upcoming += 1
    summary.average_days_between_failures = average_days_between_failures(per_stand)
    return summary
