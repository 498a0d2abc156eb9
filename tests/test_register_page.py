from app import app
from models import Organization, User


def _form(**overrides):
    data = {
        "organization_name": "Office de Tourisme",
        "domain": "tourisme.example.com",
        "first_name": "Alice",
        "last_name": "Bernard",
        "email": "Alice@Example.com",
        "password": "motdepasse1",
        "password2": "motdepasse1",
    }
    data.update(overrides)
    return data


def test_register_page_renders(app_ctx):
    resp = app.test_client().get("/register")
    assert resp.status_code == 200
    assert "Créer une organisation" in resp.data.decode("utf-8")


def test_register_creates_organization_and_admin(app_ctx):
    client = app.test_client()
    resp = client.post("/register", data=_form())
    assert resp.status_code == 302
    assert resp.headers["Location"] in ("/", "/home")

    organization = Organization.query.one()
    assert organization.name == "Office de Tourisme"
    assert organization.max_reservation_days == app.config["DEFAULT_MAX_RESERVATION_DAYS"]
    assert organization.min_advance_hours == app.config["DEFAULT_MIN_ADVANCE_HOURS"]
    user = User.query.one()
    assert user.email == "alice@example.com"
    assert user.is_admin
    assert user.organization_id == organization.id
    with client.session_transaction() as sess:
        assert sess["uid"] == user.id


def test_register_duplicate_email(app_ctx):
    client = app.test_client()
    client.post("/register", data=_form())
    client.get("/logout")
    resp = client.post("/register", data=_form(organization_name="Autre"))
    assert resp.status_code == 200
    assert "Adresse e‑mail déjà utilisée" in resp.data.decode("utf-8")
    assert Organization.query.count() == 1


def test_register_password_mismatch(app_ctx):
    resp = app.test_client().post("/register", data=_form(password2="different1"))
    assert resp.status_code == 200
    assert "Les mots de passe doivent correspondre." in resp.data.decode("utf-8")
    assert User.query.count() == 0
