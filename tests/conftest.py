import os
import sys
from datetime import datetime

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["DATABASE_URL"] = "sqlite://"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import app as flask_app
from models import db, Organization, User, Stand, Publication


def make_organization(name="Mairie de Tomer", **kwargs):
    org = Organization(
        name=name,
        max_reservation_days=kwargs.pop("max_reservation_days", 30),
        min_advance_hours=kwargs.pop("min_advance_hours", 24),
        preventive_interval_months=kwargs.pop("preventive_interval_months", 3),
        **kwargs,
    )
    db.session.add(org)
    db.session.commit()
    return org


def make_user(organization, email, role=User.ROLE_ADMIN, password="password123", status="active"):
    user = User(
        organization=organization,
        name=email.split("@")[0],
        first_name="Camille",
        last_name="Martin",
        email=email,
        role=role,
        status=status,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def make_stand(organization, name="Présentoir Entrée", installed_at=datetime(2022, 3, 1)):
    stand = Stand(
        organization=organization,
        name=name,
        location="Hall Principal",
        installed_at=installed_at,
    )
    db.session.add(stand)
    db.session.commit()
    return stand


def login(client, user):
    with client.session_transaction() as sess:
        sess["uid"] = user.id


@pytest.fixture
def app_ctx():
    flask_app.config["TESTING"] = True
    flask_app.config["WTF_CSRF_ENABLED"] = False
    flask_app.config["SESSION_TIMEOUT_MINUTES"] = 30
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def organization(app_ctx):
    return make_organization()


@pytest.fixture
def admin(organization):
    return make_user(organization, "admin@example.com")


@pytest.fixture
def stand(organization):
    return make_stand(organization)


@pytest.fixture
def publication(organization):
    pub = Publication(
        organization=organization, title="Guide Visiteur", min_stock=10
    )
    db.session.add(pub)
    db.session.commit()
    return pub


@pytest.fixture
def client(app_ctx, admin):
    client = flask_app.test_client()
    login(client, admin)
    return client


def reload(obj):
    """Re-read ``obj`` from the database after a request changed it."""
    model, obj_id = type(obj), obj.id
    db.session.expire_all()
    return db.session.get(model, obj_id)


@pytest.fixture(autouse=True)
def mail_outbox(monkeypatch):
    sent = []

    def fake_send(subject, body, to_addrs, sender=None):
        sent.append({"subject": subject, "body": body, "to": list(to_addrs)})
        return True, "sent"

    monkeypatch.setattr("app.send_mail", fake_send)
    return sent
