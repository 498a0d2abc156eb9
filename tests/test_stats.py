from datetime import datetime
from types import SimpleNamespace

from stats import (
    age_distribution,
    average_days_between_failures,
    failure_risk,
    maintenance_summary,
)

NOW = datetime(2024, 6, 15)


def _record(kind, performed_at):
    return SimpleNamespace(kind=kind, performed_at=performed_at)


def _stand(installed_at, records=()):
    records = list(records)
    return SimpleNamespace(installed_at=installed_at, approved_maintenance=lambda: records)


def test_age_distribution_counts_every_bucket():
    stands = [
        _stand(datetime(2024, 1, 1)),
        _stand(datetime(2021, 1, 1)),
        _stand(datetime(2015, 1, 1)),
        _stand(None),
    ]
    assert age_distribution(stands, NOW) == {
        "new": 1, "good": 1, "aging": 0, "old": 1, "unknown": 1,
    }


def test_mean_gap_between_curative_interventions():
    first = [
        _record("curative", datetime(2024, 1, 1)),
        _record("preventive", datetime(2024, 1, 5)),
        _record("curative", datetime(2024, 1, 21)),
    ]
    second = [
        _record("curative", datetime(2024, 3, 1)),
        _record("curative", datetime(2024, 3, 11)),
    ]
    assert average_days_between_failures([first, second]) == 15


def test_mean_gap_is_zero_without_pairs():
    assert average_days_between_failures([]) == 0
    assert average_days_between_failures([[_record("curative", datetime(2024, 1, 1))]]) == 0


def test_failure_risk_is_capped():
    reservations = [SimpleNamespace(start_at=datetime(2020, 1, 1), end_at=datetime(2021, 1, 1))]
    records = [_record("curative", datetime(2023, 1, i)) for i in range(1, 8)]
    assert failure_risk(datetime(2015, 1, 1), reservations, records, NOW) == 100


def test_failure_risk_for_new_unused_stand():
    assert failure_risk(NOW, [], [], NOW) == 0
    # Unknown installation date counts as installed today.
    assert failure_risk(None, [], [], NOW) == 0


def test_failure_risk_weights():
    reservations = [SimpleNamespace(start_at=datetime(2024, 1, 1), end_at=datetime(2024, 3, 31))]
    risk = failure_risk(datetime(2023, 6, 16), reservations, [_record("curative", NOW)], NOW)
    # age 1 year -> 30, 90 days of use -> 20, one curative -> 6
    assert risk == 56


def test_maintenance_summary():
    stands = [
        _stand(datetime(2022, 1, 1), [
            _record("curative", datetime(2024, 5, 1)),
            _record("curative", datetime(2024, 5, 21)),
            _record("preventive", datetime(2024, 6, 1)),
        ]),
        _stand(datetime(2023, 1, 1)),
    ]
    summary = maintenance_summary(stands, NOW, 3)
    assert summary.total == 3
    assert summary.preventive == 1
    assert summary.curative == 2
    assert summary.upcoming == 1
    assert summary.average_days_between_failures == 20
