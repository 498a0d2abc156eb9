from datetime import date, datetime

import pytest

from utils import (
    AGE_AGING,
    AGE_GOOD,
    AGE_NEW,
    AGE_OLD,
    AGE_UNKNOWN,
    age_status,
    classify_stand,
    maintenance_due,
    next_maintenance_date,
    stand_age_label,
    stand_age_years,
)

NOW = datetime(2024, 6, 15, 10, 0)


@pytest.mark.parametrize(
    "installed_at, expected",
    [
        (datetime(2024, 1, 1), AGE_NEW),
        (datetime(2022, 6, 16), AGE_NEW),
        (datetime(2022, 6, 15, 10, 0), AGE_GOOD),
        (datetime(2020, 6, 16), AGE_GOOD),
        (datetime(2020, 6, 15), AGE_AGING),
        (datetime(2018, 6, 16), AGE_AGING),
        (datetime(2018, 6, 15), AGE_OLD),
        (datetime(2001, 1, 1), AGE_OLD),
    ],
)
def test_age_buckets(installed_at, expected):
    assert age_status(installed_at, NOW) == expected


def test_exactly_two_years_is_good():
    assert age_status(datetime(2022, 6, 15, 10, 0), NOW) == AGE_GOOD
    assert stand_age_years(date(2022, 6, 15), NOW) == 2


@pytest.mark.parametrize("installed_at", [None, "", "hier", 42])
def test_missing_or_malformed_installation_is_unknown(installed_at):
    assert age_status(installed_at, NOW) == AGE_UNKNOWN
    assert stand_age_label(installed_at, NOW) == "Inconnu"


def test_unknown_regardless_of_maintenance_history():
    lifecycle = classify_stand(None, [datetime(2024, 6, 1)], NOW, 3)
    assert lifecycle.age_status == AGE_UNKNOWN
    assert lifecycle.maintenance_due is False


def test_age_labels():
    assert stand_age_label(datetime(2024, 6, 1), NOW) == "Moins d'un mois"
    assert stand_age_label(datetime(2024, 1, 10), NOW) == "5 mois"
    assert stand_age_label(datetime(2023, 5, 1), NOW) == "1 an"
    assert stand_age_label("2019-01-01", NOW) == "5 ans"


def test_maintenance_due_without_records():
    assert maintenance_due([], datetime(2024, 6, 1), NOW, 3) is True


def test_maintenance_due_after_interval():
    assert maintenance_due([datetime(2024, 3, 14)], None, NOW, 3) is True
    assert maintenance_due([datetime(2024, 3, 16)], None, NOW, 3) is False


def test_maintenance_due_uses_latest_record():
    dates = [datetime(2024, 5, 1), datetime(2023, 1, 1)]
    assert maintenance_due(dates, datetime(2020, 1, 1), NOW, 3) is False


def test_next_maintenance_falls_back_to_installation():
    assert next_maintenance_date(None, datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert next_maintenance_date(None, None, 3) is None


def test_classify_stand():
    lifecycle = classify_stand(
        datetime(2019, 9, 1), ["2024-01-10", datetime(2023, 10, 1)], NOW, 3
    )
    assert lifecycle.age_status == AGE_AGING
    assert lifecycle.age_label == "4 ans"
    assert lifecycle.maintenance_due is True
    assert lifecycle.next_maintenance_at == datetime(2024, 4, 10)
    assert lifecycle.age_status_label == "Vieillissant (4-6 ans)"
