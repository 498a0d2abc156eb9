from datetime import datetime

import pytest

import app as app_module
from app import release_expired_reservations, reserve_stand
from conftest import reload
from models import db, Reservation

NOW = datetime(2024, 1, 1, 0, 0)


@pytest.fixture
def frozen_now(monkeypatch):
    monkeypatch.setattr("app._utcnow", lambda: NOW)
    return NOW


def _reserve(client, stand, start, end, name="Jean Dupont"):
    return client.post(
        f"/stands/{stand.id}/reserve",
        data={"name": name, "start_at": start, "end_at": end},
        follow_redirects=True,
    )


def test_reserve_form_prefills_user_name(client, stand):
    resp = client.get(f"/stands/{stand.id}/reserve")
    assert resp.status_code == 200
    assert "Camille Martin" in resp.data.decode("utf-8")


def test_reservation_success_marks_stand_reserved(client, stand, frozen_now):
    resp = _reserve(client, stand, "2024-01-03T09:00", "2024-01-20T18:00")
    html = resp.data.decode("utf-8")
    assert "Présentoir réservé avec succès pour Jean Dupont" in html

    reservation = Reservation.query.one()
    assert reservation.start_at == datetime(2024, 1, 3, 9, 0)
    stand = reload(stand)
    assert stand.is_reserved is True
    assert stand.reserved_by == "Jean Dupont"
    assert stand.reserved_until == datetime(2024, 1, 20, 18, 0)


@pytest.mark.parametrize(
    "start, end, message",
    [
        ("2024-01-01T12:00", "2024-01-05T12:00", "suffisamment"),
        ("2024-01-03T00:00", "2024-02-10T00:00", "La durée maximale de réservation est dépassée"),
        ("2024-01-10T00:00", "2024-01-05T00:00", "La date de fin doit être postérieure"),
    ],
)
def test_reservation_rejections(client, stand, frozen_now, start, end, message):
    resp = _reserve(client, stand, start, end)
    assert resp.status_code == 200
    assert message in resp.data.decode("utf-8")
    assert Reservation.query.count() == 0
    assert reload(stand).is_reserved is False


def test_overlapping_reservation_is_refused(client, stand, frozen_now):
    _reserve(client, stand, "2024-01-03T00:00", "2024-01-10T00:00")
    resp = _reserve(client, stand, "2024-01-08T00:00", "2024-01-12T00:00", name="Lucie")
    assert "Le présentoir est déjà réservé sur cette période" in resp.data.decode("utf-8")
    assert Reservation.query.count() == 1


def test_back_to_back_reservations_are_allowed(app_ctx, stand):
    first, error = reserve_stand(
        stand, "Jean", datetime(2024, 1, 3), datetime(2024, 1, 10), now=NOW
    )
    assert error is None
    second, error = reserve_stand(
        stand, "Lucie", datetime(2024, 1, 10), datetime(2024, 1, 15), now=NOW
    )
    assert error is None
    assert stand.is_reserved is True
    assert stand.reserved_by == "Lucie"
    assert [r.reserved_by for r in stand.reservations] == ["Jean", "Lucie"]


def test_reservation_uses_organization_policy(app_ctx, stand):
    stand.organization.max_reservation_days = 5
    stand.organization.min_advance_hours = 0
    db.session.commit()
    reservation, error = reserve_stand(
        stand, "Jean", NOW, datetime(2024, 1, 7), now=NOW
    )
    assert reservation is None
    assert error == "La durée maximale de réservation est dépassée"
    reservation, error = reserve_stand(
        stand, "Jean", NOW, datetime(2024, 1, 5), now=NOW
    )
    assert error is None


def test_release_future_reservation_cancels_it(client, stand, frozen_now):
    _reserve(client, stand, "2024-01-03T00:00", "2024-01-10T00:00")
    resp = client.post(f"/stands/{stand.id}/release", follow_redirects=True)
    assert "Réservation annulée" in resp.data.decode("utf-8")
    assert Reservation.query.count() == 0
    assert reload(stand).is_reserved is False


def test_release_running_reservation_ends_it_now(client, stand, monkeypatch):
    reserve_stand(stand, "Jean", datetime(2024, 1, 3), datetime(2024, 1, 10), now=NOW)
    during = datetime(2024, 1, 5, 14, 30)
    monkeypatch.setattr("app._utcnow", lambda: during)
    resp = client.post(f"/stands/{stand.id}/release", follow_redirects=True)
    assert "Présentoir libéré" in resp.data.decode("utf-8")
    reservation = Reservation.query.one()
    assert reservation.end_at == during
    assert reload(stand).is_reserved is False


def test_release_available_stand_warns(client, stand):
    resp = client.post(f"/stands/{stand.id}/release", follow_redirects=True)
    assert "pas réservé" in resp.data.decode("utf-8")


def test_release_expired_reservations(app_ctx, stand):
    reserve_stand(stand, "Jean", datetime(2024, 1, 3), datetime(2024, 1, 10), now=NOW)
    assert release_expired_reservations(now=datetime(2024, 1, 9)) == 0
    assert stand.is_reserved is True
    assert release_expired_reservations(now=datetime(2024, 1, 11)) == 1
    assert reload(stand).is_reserved is False
    assert release_expired_reservations(now=datetime(2024, 1, 12)) == 0


def test_release_expired_reservations_cli(app_ctx, stand):
    reserve_stand(stand, "Jean", datetime(2020, 1, 3), datetime(2020, 1, 10), now=datetime(2020, 1, 1))
    runner = app_module.app.test_cli_runner()
    result = runner.invoke(args=["release-expired-reservations"])
    assert "Released 1 stand(s)" in result.output


AFTER_END = datetime(2024, 2, 1)


@pytest.fixture
def ended_reservation(app_ctx, stand, monkeypatch):
    reservation, error = reserve_stand(
        stand, "Jean", datetime(2024, 1, 3), datetime(2024, 1, 10), now=NOW
    )
    assert error is None
    monkeypatch.setattr("app._utcnow", lambda: AFTER_END)
    return reservation


def test_api_reports_stand_free_once_reservation_ended(client, stand, ended_reservation):
    resp = client.get("/api/stands")
    data = resp.get_json()["stands"][0]
    assert data["is_reserved"] is False
    assert data["reserved_by"] is None
    assert data["reserved_until"] is None
    assert reload(stand).is_reserved is False


def test_dashboard_shows_stand_available_once_reservation_ended(client, stand, ended_reservation):
    html = client.get("/").data.decode("utf-8")
    assert "Disponible" in html
    assert "Réservé par" not in html


def test_stand_page_shows_stand_available_once_reservation_ended(client, stand, ended_reservation):
    html = client.get(f"/stands/{stand.id}").data.decode("utf-8")
    assert "Disponible" in html
    assert "Réservé par" not in html


def test_public_page_shows_stand_available_once_reservation_ended(stand, ended_reservation):
    public_client = app_module.app.test_client()
    html = public_client.get(f"/p/{stand.public_token()}").data.decode("utf-8")
    assert "Disponible" in html
    assert "Réservé par" not in html


def test_release_leaves_ended_reservation_untouched(client, stand, ended_reservation):
    resp = client.post(f"/stands/{stand.id}/release", follow_redirects=True)
    assert "pas réservé" in resp.data.decode("utf-8")
    reservation = reload(ended_reservation)
    assert reservation.end_at == datetime(2024, 1, 10)
    assert reload(stand).is_reserved is False


def test_release_ends_running_reservation_and_keeps_later_booking(client, stand, monkeypatch):
    reserve_stand(stand, "Jean", datetime(2024, 1, 3), datetime(2024, 1, 10), now=NOW)
    reserve_stand(stand, "Lucie", datetime(2024, 1, 20), datetime(2024, 1, 25), now=NOW)
    during = datetime(2024, 1, 5)
    monkeypatch.setattr("app._utcnow", lambda: during)

    resp = client.post(f"/stands/{stand.id}/release", follow_redirects=True)
    assert "Présentoir libéré" in resp.data.decode("utf-8")

    db.session.expire_all()
    reservations = Reservation.query.order_by(Reservation.start_at).all()
    assert [(r.reserved_by, r.end_at) for r in reservations] == [
        ("Jean", during),
        ("Lucie", datetime(2024, 1, 25)),
    ]
    # Lucie's booking still ends in the future.
    stand = reload(stand)
    assert stand.is_reserved is True
    assert stand.reserved_by == "Lucie"


def test_release_without_running_reservation_cancels_next_booking(client, stand, frozen_now):
    reserve_stand(stand, "Jean", datetime(2024, 1, 3), datetime(2024, 1, 10), now=NOW)
    reserve_stand(stand, "Lucie", datetime(2024, 1, 20), datetime(2024, 1, 25), now=NOW)

    resp = client.post(f"/stands/{stand.id}/release", follow_redirects=True)
    assert "Réservation annulée" in resp.data.decode("utf-8")

    db.session.expire_all()
    assert [r.reserved_by for r in Reservation.query.all()] == ["Lucie"]
    assert reload(stand).reserved_by == "Lucie"
