#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import sys
import tempfile
from urllib.parse import quote as _urlquote
from functools import wraps
from flask import (
    Flask,
    request,
    redirect,
    render_template,
    flash,
    session,
    url_for,
    abort,
    send_file,
    jsonify,
)
from datetime import datetime, timedelta, time
from io import BytesIO

import qrcode
from sqlalchemy.exc import IntegrityError
from flask_migrate import Migrate
from flask_wtf import FlaskForm
from flask_wtf.csrf import CSRFProtect

from config import Config
from forms import (
    LoginForm,
    RegisterForm,
    MemberForm,
    StandForm,
    ReservationForm,
    MaintenanceForm,
    MaintenanceRequestForm,
    PublicationForm,
    PosterForm,
    PosterChangeForm,
    PosterRequestForm,
    StockForm,
    PublicStockForm,
    OrganizationSettingsForm,
)
from models import (
    db,
    Organization,
    User,
    Stand,
    Reservation,
    MaintenanceRecord,
    Publication,
    PublicationStock,
    Poster,
    PosterRequest,
    Notification,
)
from notify import send_mail
from events import stand_feed
from utils import (
    AGE_STATUS_LABELS,
    ReservationPolicy,
    classify_stand,
    low_stock_publications,
    validate_reservation_period,
)
from stats import age_distribution, failure_risk, maintenance_summary

try:
    from weasyprint import HTML
    WEASY_OK = True
except Exception:
    HTML = None
    WEASY_OK = False

# --- Bootstrap sys.path sûr (utile si lancé hors du dépôt)
_here = os.path.dirname(__file__) or "."
if _here not in sys.path:
    sys.path.append(_here)

app = Flask(__name__)
app.config.from_object(Config)
csrf = CSRFProtect(app)

_storage_root = app.instance_path
try:
    os.makedirs(_storage_root, exist_ok=True)
except PermissionError:
    _fallback_root = os.path.join(tempfile.gettempdir(), "presentoirs-instance")
    os.makedirs(_fallback_root, exist_ok=True)
    app.logger.warning(
        "Instance path '%s' is not writable. Using fallback '%s' instead.",
        _storage_root,
        _fallback_root,
    )
    _storage_root = _fallback_root

_database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
if _database_uri and _database_uri.startswith("sqlite:///"):
    _db_path = _database_uri.replace("sqlite:///", "", 1)
    if _db_path and not _db_path.startswith(":"):
        if not os.path.isabs(_db_path):
            _db_path = os.path.join(_storage_root, os.path.basename(_db_path))
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{_db_path}"
db.init_app(app)
Migrate(app, db)

MAIL_SWITCHES = {
    "reservation": "notify_new_reservation",
    "maintenance": "notify_maintenance",
    "poster": "notify_poster_request",
}


def _utcnow():
    return datetime.utcnow()


# simple datetime formatters for templates
@app.template_filter("dt")
def _fmt_dt(v):
    return v.strftime("%d/%m/%Y %H:%M") if v else ""


@app.template_filter("d")
def _fmt_date(v):
    return v.strftime("%d/%m/%Y") if v else ""


def current_user():
    uid = session.get("uid")
    return db.session.get(User, uid) if uid else None


@app.context_processor
def _inject_user():
    u = current_user()
    unread = 0
    if u is not None:
        unread = Notification.query.filter_by(
            organization_id=u.organization_id, read=False
        ).count()
    return {"user": u, "unread_notifications": unread}


def role_required(*roles):
    def wrapper(fn):
        @wraps(fn)
        def decorated(*args, **kwargs):
            u = current_user()
            if not u or u.role not in roles:
                abort(403)
            return fn(*args, **kwargs)
        return decorated
    return wrapper


admin_required = role_required(User.ROLE_ADMIN)


def _owner_organization_id(obj):
    org_id = getattr(obj, "organization_id", None)
    if org_id is None and getattr(obj, "stand", None) is not None:
        org_id = obj.stand.organization_id
    return org_id


def _org_get_or_404(model, obj_id):
    """Return the row if it belongs to the current user's organization."""
    obj = db.session.get(model, obj_id)
    u = current_user()
    if obj is None or u is None or _owner_organization_id(obj) != u.organization_id:
        abort(404)
    return obj


def _public_url(stand):
    base = app.config.get("PUBLIC_BASE_URL") or request.url_root
    return base.rstrip("/") + url_for("public_stand", token=stand.public_token())


# --- Dérivations par présentoir


def stand_overview(stand, now, catalog=None):
    org = stand.organization
    if catalog is None:
        catalog = org.publication_catalog()
    lifecycle = classify_stand(
        stand.installed_at,
        [m.performed_at for m in stand.approved_maintenance()],
        now,
        org.preventive_interval_months,
    )
    return {
        "stand": stand,
        "lifecycle": lifecycle,
        "low_stock": low_stock_publications(stand.stocks, catalog),
    }


def stand_snapshot(stand, now, catalog=None):
    """Plain-data view of a stand, used by the JSON API and the feed."""
    overview = stand_overview(stand, now, catalog)
    lifecycle = overview["lifecycle"]
    return {
        "id": stand.id,
        "name": stand.name,
        "location": stand.location,
        "current_poster": stand.current_poster.name if stand.current_poster else None,
        "is_reserved": stand.is_reserved,
        "reserved_by": stand.reserved_by,
        "reserved_until": stand.reserved_until.isoformat() if stand.reserved_until else None,
        "installed_at": stand.installed_at.isoformat() if stand.installed_at else None,
        "age_status": lifecycle.age_status,
        "age_label": lifecycle.age_label,
        "maintenance_due": lifecycle.maintenance_due,
        "next_maintenance_at": (
            lifecycle.next_maintenance_at.isoformat()
            if lifecycle.next_maintenance_at
            else None
        ),
        "low_stock": [
            {
                "publication_id": d.publication_id,
                "title": d.title,
                "current": d.current,
                "required": d.required,
            }
            for d in overview["low_stock"]
        ],
    }


def sync_reservation_state(stands, now):
    """Align the stored reserved flag of ``stands`` with their history.

    Pages read ``Stand.is_reserved`` directly, so every read path calls this
    first; changed rows are committed.
    """
    changed = 0
    for stand in stands:
        before = (stand.is_reserved, stand.reserved_by, stand.reserved_until)
        stand.refresh_reservation_state(now)
        if (stand.is_reserved, stand.reserved_by, stand.reserved_until) != before:
            changed += 1
    if changed:
        db.session.commit()
    return changed


def organization_snapshot(organization, now=None):
    now = now or _utcnow()
    sync_reservation_state(organization.stands, now)
    catalog = organization.publication_catalog()
    return [stand_snapshot(s, now, catalog) for s in organization.stands]


def publish_stands(organization):
    """Push the organization's stand snapshots to feed subscribers."""
    if not stand_feed.has_subscribers(organization.id):
        return 0
    return stand_feed.publish(organization.id, organization_snapshot(organization))


def _notify(organization, kind, title, message):
    """Record an in-app notification and e-mail members when enabled."""
    db.session.add(
        Notification(
            organization_id=organization.id,
            kind=kind,
            title=title,
            message=message,
        )
    )
    db.session.commit()
    switch = MAIL_SWITCHES.get(kind)
    if not switch or not getattr(organization, switch):
        return
    recipients = sorted(
        {
            u.email.lower()
            for u in organization.users
            if u.status == "active" and u.email
        }
    )
    if not recipients:
        return
    try:
        ok, detail = send_mail(f"[Présentoirs] {title}", message, recipients)
    except Exception:
        app.logger.exception("Impossible d'envoyer la notification '%s'", title)
        return
    if not ok:
        app.logger.warning("Notification '%s' non envoyée: %s", title, detail)


def has_conflict(stand_id, start, end, exclude_reservation_id=None):
    q = Reservation.query.filter(
        Reservation.stand_id == stand_id,
        Reservation.start_at < end,
        Reservation.end_at > start,
    )
    if exclude_reservation_id:
        q = q.filter(Reservation.id != exclude_reservation_id)
    return db.session.query(q.exists()).scalar()


def reserve_stand(stand, reserved_by, start, end, now=None):
    """Validate and store a reservation.

    Returns ``(reservation, None)`` on success or ``(None, message)`` when
    the period is rejected.
    """
    now = now or _utcnow()
    policy = ReservationPolicy.from_organization(stand.organization)
    error = validate_reservation_period(start, end, now, policy)
    if error is not None:
        return None, error.message
    if has_conflict(stand.id, start, end):
        return None, "Le présentoir est déjà réservé sur cette période"
    reservation = Reservation(
        stand=stand,
        reserved_by=reserved_by.strip(),
        start_at=start,
        end_at=end,
    )
    db.session.add(reservation)
    stand.refresh_reservation_state(now)
    stand.updated_at = now
    db.session.commit()
    app.logger.info(
        "Stand %s reserved by %s from %s to %s", stand.id, reserved_by, start, end
    )
    _notify(
        stand.organization,
        "reservation",
        f"Nouvelle réservation : {stand.name}",
        f"{reservation.reserved_by} a réservé {stand.name} "
        f"du {_fmt_dt(start)} au {_fmt_dt(end)}.",
    )
    publish_stands(stand.organization)
    return reservation, None


def update_stock(stand, publication, quantity, now=None):
    now = now or _utcnow()
    entry = PublicationStock.query.filter_by(
        stand_id=stand.id, publication_id=publication.id
    ).first()
    if entry is None:
        entry = PublicationStock(stand=stand, publication=publication)
        db.session.add(entry)
    entry.quantity = quantity
    entry.updated_at = now
    return entry


def _notify_low_stock(stand):
    deficient = low_stock_publications(
        stand.stocks, stand.organization.publication_catalog()
    )
    if not deficient:
        return
    lines = [f"- {d.title} : {d.current}/{d.required}" for d in deficient]
    _notify(
        stand.organization,
        "stock",
        f"Stock faible : {stand.name}",
        "\n".join(lines),
    )


def release_expired_reservations(now=None):
    """Clear the reserved flag of stands whose reservation has ended."""
    now = now or _utcnow()
    stands = Stand.query.filter(
        Stand.is_reserved.is_(True),
        Stand.reserved_until <= now,
    ).all()
    organizations = {}
    released = 0
    for stand in stands:
        if not stand.refresh_reservation_state(now):
            released += 1
            organizations[stand.organization_id] = stand.organization
    if released:
        db.session.commit()
        for organization in organizations.values():
            publish_stands(organization)
    return released


def purge_read_notifications(max_age_days=None):
    if max_age_days is None:
        max_age_days = app.config.get("NOTIFICATION_RETENTION_DAYS", 90)
    cutoff = _utcnow() - timedelta(days=max_age_days)
    deleted = Notification.query.filter(
        Notification.read.is_(True),
        Notification.created_at < cutoff,
    ).delete(synchronize_session=False)
    if deleted:
        db.session.commit()
    return deleted


@app.cli.command("release-expired-reservations")
def release_expired_reservations_command():
    """Mark stands whose reservation has ended as available.

    Usage: ``flask release-expired-reservations``
    """
    released = release_expired_reservations()
    print("Released {} stand(s) with an expired reservation.".format(released))


@app.cli.command("purge-read-notifications")
def purge_read_notifications_command():
    """Delete read notifications older than the retention period."""
    deleted = purge_read_notifications()
    print("Purged {} read notification(s).".format(deleted))


# --- Santé
@app.route("/__ping__", methods=["GET"])
def __ping__():
    return "OK", 200


# --- Gestion de l'expiration de session
@app.before_request
def _check_session_timeout():
    timeout = app.config.get("SESSION_TIMEOUT_MINUTES")
    if not timeout:
        return None
    uid = session.get("uid")
    if not uid:
        return None
    last_activity = session.get("last_activity")
    if not last_activity:
        session["last_activity"] = datetime.utcnow().isoformat()
        session.permanent = True
        return None
    try:
        last_dt = datetime.fromisoformat(last_activity)
    except (TypeError, ValueError):
        session["last_activity"] = datetime.utcnow().isoformat()
        session.permanent = True
        return None
    if datetime.utcnow() - last_dt > timedelta(minutes=timeout):
        session.pop("uid", None)
        session.pop("last_activity", None)
        flash("Session expirée pour inactivité", "warning")
        return redirect(url_for("login"))
    session["last_activity"] = datetime.utcnow().isoformat()
    session.permanent = True
    return None


# --- Garde: force /login pour les non-connectés (sans boucle)
@app.before_request
def _force_login():
    p = request.path or "/"
    public = {"/login", "/register", "/logout", "/__ping__"}
    if p in public or p.startswith("/static/") or p.startswith("/p/"):
        return None
    if not session.get("uid"):
        nxt = request.full_path if request.query_string else p
        return redirect(
            "/login" + (f"?next={_urlquote(nxt)}" if nxt and nxt != "/" else "")
        )
    u = current_user()
    if not u or u.status != "active":
        session.pop("uid", None)
        flash("Compte désactivé", "danger")
        return redirect(url_for("login"))
    return None


@app.errorhandler(403)
def forbidden(_):
    return render_template("403.html"), 403


@app.errorhandler(404)
def not_found(_):
    return render_template("404.html"), 404


# --- Routes de connexion
@app.route("/login", methods=["GET", "POST"])
def login():
    form = LoginForm()
    if form.validate_on_submit():
        u = User.query.filter_by(email=form.email.data.strip().lower()).first()
        if u and u.check_password(form.password.data):
            if u.status != "active":
                flash("Compte désactivé", "danger")
                return render_template("login.html", form=form), 200
            session["uid"] = u.id
            session["last_activity"] = datetime.utcnow().isoformat()
            session.permanent = True
            nxt = request.args.get("next") or ""
            if not nxt.startswith("/") or nxt.startswith("//"):
                nxt = url_for("home")
            return redirect(nxt)
        flash("Identifiants invalides", "danger")
    return render_template("login.html", form=form), 200


@app.route("/logout")
def logout():
    session.pop("uid", None)
    session.pop("last_activity", None)
    flash("Déconnecté", "info")
    return redirect(url_for("login"))


@app.route("/register", methods=["GET", "POST"])
def register():
    form = RegisterForm()
    if form.validate_on_submit():
        email = form.email.data.strip().lower()
        organization = Organization(
            name=form.organization_name.data.strip(),
            domain=(form.domain.data or "").strip() or None,
            max_reservation_days=app.config["DEFAULT_MAX_RESERVATION_DAYS"],
            min_advance_hours=app.config["DEFAULT_MIN_ADVANCE_HOURS"],
            preventive_interval_months=app.config["DEFAULT_PREVENTIVE_INTERVAL_MONTHS"],
        )
        user = User(
            organization=organization,
            name=f"{form.last_name.data} {form.first_name.data}",
            first_name=form.first_name.data,
            last_name=form.last_name.data,
            email=email,
            role=User.ROLE_ADMIN,
            status="active",
        )
        user.set_password(form.password.data)
        db.session.add_all([organization, user])
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            flash("Adresse e‑mail déjà utilisée", "danger")
            return render_template("register.html", form=form), 200
        app.logger.info("Organization %s registered by %s", organization.id, email)
        session["uid"] = user.id
        session["last_activity"] = datetime.utcnow().isoformat()
        return redirect(url_for("home"))
    return render_template("register.html", form=form), 200


# --- Tableau de bord
@app.route("/home")
@app.route("/")
def home():
    u = current_user()
    organization = u.organization
    now = _utcnow()
    sync_reservation_state(organization.stands, now)
    catalog = organization.publication_catalog()
    rows = [stand_overview(s, now, catalog) for s in organization.stands]
    stats = {
        "total": len(rows),
        "reserved": sum(1 for r in rows if r["stand"].is_reserved),
        "low_stock": sum(1 for r in rows if r["low_stock"]),
        "maintenance_due": sum(1 for r in rows if r["lifecycle"].maintenance_due),
    }
    stats["available"] = stats["total"] - stats["reserved"]
    return render_template(
        "dashboard.html", organization=organization, rows=rows, stats=stats
    )


@app.route("/api/stands")
def api_stands():
    u = current_user()
    return jsonify({"stands": organization_snapshot(u.organization)})


# --- Présentoirs
def _poster_choices(organization):
    return [(0, "— Aucune —")] + [
        (p.id, p.name) for p in organization.posters if p.is_active
    ]


@app.route("/stands/new", methods=["GET", "POST"])
@admin_required
def stand_new():
    u = current_user()
    form = StandForm()
    form.current_poster_id.choices = _poster_choices(u.organization)
    if form.validate_on_submit():
        stand = Stand(
            organization_id=u.organization_id,
            name=form.name.data.strip(),
            location=(form.location.data or "").strip() or None,
            installed_at=(
                datetime.combine(form.installed_at.data, time())
                if form.installed_at.data
                else None
            ),
            current_poster_id=form.current_poster_id.data or None,
        )
        db.session.add(stand)
        db.session.commit()
        flash("Présentoir créé", "success")
        publish_stands(u.organization)
        return redirect(url_for("stand_detail", stand_id=stand.id))
    return render_template("stand_form.html", form=form, stand=None)


@app.route("/stands/<int:stand_id>")
def stand_detail(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    now = _utcnow()
    sync_reservation_state([stand], now)
    overview = stand_overview(stand, now)
    poster_form = PosterChangeForm()
    poster_form.poster_id.choices = _poster_choices(stand.organization)
    poster_form.poster_id.data = stand.current_poster_id or 0
    return render_template(
        "stand_detail.html",
        stand=stand,
        overview=overview,
        risk=failure_risk(
            stand.installed_at, stand.reservations, stand.approved_maintenance(), now
        ),
        public_url=_public_url(stand),
        poster_form=poster_form,
        action_form=FlaskForm(),
    )


@app.route("/stands/<int:stand_id>/edit", methods=["GET", "POST"])
@admin_required
def stand_edit(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    form = StandForm(obj=stand)
    form.current_poster_id.choices = _poster_choices(stand.organization)
    if request.method == "GET":
        form.current_poster_id.data = stand.current_poster_id or 0
        form.installed_at.data = stand.installed_at.date() if stand.installed_at else None
    if form.validate_on_submit():
        stand.name = form.name.data.strip()
        stand.location = (form.location.data or "").strip() or None
        stand.installed_at = (
            datetime.combine(form.installed_at.data, time())
            if form.installed_at.data
            else None
        )
        stand.current_poster_id = form.current_poster_id.data or None
        stand.updated_at = _utcnow()
        db.session.commit()
        flash("Présentoir mis à jour", "success")
        publish_stands(stand.organization)
        return redirect(url_for("stand_detail", stand_id=stand.id))
    return render_template("stand_form.html", form=form, stand=stand)


@app.route("/stands/<int:stand_id>/delete", methods=["POST"])
@admin_required
def stand_delete(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    if stand.has_history:
        flash(
            "Impossible de supprimer un présentoir possédant un historique",
            "danger",
        )
        return redirect(url_for("stand_detail", stand_id=stand.id))
    organization = stand.organization
    db.session.delete(stand)
    db.session.commit()
    flash("Présentoir supprimé", "info")
    publish_stands(organization)
    return redirect(url_for("home"))


@app.route("/stands/<int:stand_id>/qrcode.png")
def stand_qrcode(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(_public_url(stand))
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)
    return send_file(
        buffer,
        mimetype="image/png",
        download_name=f"presentoir-{stand.id}.png",
    )


@app.route("/stands/<int:stand_id>/reserve", methods=["GET", "POST"])
def stand_reserve(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    u = current_user()
    form = ReservationForm()
    if request.method == "GET":
        tomorrow = datetime.combine(_utcnow().date() + timedelta(days=2), time(8, 0))
        form.name.data = f"{u.first_name or ''} {u.last_name or ''}".strip() or u.name
        form.start_at.data = tomorrow
        form.end_at.data = tomorrow + timedelta(days=7)
    if form.validate_on_submit():
        reservation, error = reserve_stand(
            stand, form.name.data, form.start_at.data, form.end_at.data
        )
        if error:
            flash(error, "danger")
            return render_template("reserve.html", form=form, stand=stand), 200
        flash(f"Présentoir réservé avec succès pour {reservation.reserved_by}", "success")
        return redirect(url_for("stand_detail", stand_id=stand.id))
    return render_template("reserve.html", form=form, stand=stand)


@app.route("/stands/<int:stand_id>/release", methods=["POST"])
def stand_release(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    now = _utcnow()
    sync_reservation_state([stand], now)
    # Ended reservations are history and are never modified.
    reservation = stand.active_reservation(now)
    if reservation is not None:
        reservation.end_at = now
        message = "Présentoir libéré"
    else:
        reservation = stand.upcoming_reservation(now)
        if reservation is None:
            flash("Ce présentoir n'est pas réservé", "warning")
            return redirect(url_for("stand_detail", stand_id=stand.id))
        stand.reservations.remove(reservation)
        db.session.delete(reservation)
        message = "Réservation annulée"
    stand.refresh_reservation_state(now)
    stand.updated_at = now
    db.session.commit()
    flash(message, "info")
    publish_stands(stand.organization)
    return redirect(url_for("stand_detail", stand_id=stand.id))


@app.route("/stands/<int:stand_id>/poster", methods=["POST"])
def stand_change_poster(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    form = PosterChangeForm()
    form.poster_id.choices = _poster_choices(stand.organization)
    if form.validate_on_submit():
        stand.current_poster_id = form.poster_id.data or None
        stand.updated_at = _utcnow()
        db.session.commit()
        flash("Affiche mise à jour", "success")
        publish_stands(stand.organization)
    else:
        flash("Affiche invalide", "danger")
    return redirect(url_for("stand_detail", stand_id=stand.id))


@app.route("/stands/<int:stand_id>/stock", methods=["GET", "POST"])
def stand_stock(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    publications = [p for p in stand.organization.publications if p.is_active]
    current = {s.publication_id: s.quantity for s in stand.stocks}
    form = StockForm()
    if form.validate_on_submit():
        quantities = {}
        for publication in publications:
            raw = (request.form.get(f"qty_{publication.id}") or "").strip()
            if not raw:
                continue
            try:
                quantity = int(raw)
            except ValueError:
                quantity = -1
            if quantity < 0:
                flash(f"Quantité invalide pour {publication.title}", "danger")
                return render_template(
                    "stock.html", form=form, stand=stand,
                    publications=publications, current=current,
                ), 200
            quantities[publication] = quantity
        now = _utcnow()
        for publication, quantity in quantities.items():
            update_stock(stand, publication, quantity, now)
        db.session.commit()
        flash("Stock mis à jour", "success")
        _notify_low_stock(stand)
        publish_stands(stand.organization)
        return redirect(url_for("stand_detail", stand_id=stand.id))
    return render_template(
        "stock.html", form=form, stand=stand,
        publications=publications, current=current,
    )


@app.route("/stands/<int:stand_id>/maintenance/new", methods=["GET", "POST"])
def maintenance_new(stand_id):
    stand = _org_get_or_404(Stand, stand_id)
    kind = request.args.get("kind", MaintenanceRecord.KIND_PREVENTIVE)
    if kind not in (MaintenanceRecord.KIND_PREVENTIVE, MaintenanceRecord.KIND_CURATIVE):
        abort(404)
    form = MaintenanceForm()
    if request.method == "GET":
        form.performed_at.data = _utcnow().date()
    if form.validate_on_submit() and form.validate_for_kind(kind):
        record = MaintenanceRecord(
            stand=stand,
            kind=kind,
            performed_at=datetime.combine(form.performed_at.data, time()),
            performed_by=form.performed_by.data.strip(),
            description=form.description.data,
            issues=form.issues.data if kind == MaintenanceRecord.KIND_CURATIVE else None,
            resolution=(
                form.resolution.data if kind == MaintenanceRecord.KIND_CURATIVE else None
            ),
            status=MaintenanceRecord.STATUS_APPROVED,
        )
        db.session.add(record)
        stand.updated_at = _utcnow()
        db.session.commit()
        flash("Maintenance enregistrée avec succès", "success")
        _notify(
            stand.organization,
            "maintenance",
            f"Maintenance {record.kind_label.lower()} : {stand.name}",
            f"Intervention du {_fmt_date(record.performed_at)} "
            f"par {record.performed_by}.",
        )
        publish_stands(stand.organization)
        return redirect(url_for("stand_detail", stand_id=stand.id))
    return render_template(
        "maintenance_form.html", form=form, stand=stand, kind=kind
    )


# --- Maintenance
@app.route("/maintenance")
def maintenance_dashboard():
    u = current_user()
    organization = u.organization
    now = _utcnow()
    kind = request.args.get("kind", "all")
    if kind not in ("all", MaintenanceRecord.KIND_PREVENTIVE, MaintenanceRecord.KIND_CURATIVE):
        kind = "all"
    rows = []
    for stand in organization.stands:
        records = stand.approved_maintenance()
        if kind != "all":
            records = [r for r in records if r.kind == kind]
        rows.append({
            "stand": stand,
            "lifecycle": stand_overview(stand, now)["lifecycle"],
            "risk": failure_risk(
                stand.installed_at, stand.reservations, stand.approved_maintenance(), now
            ),
            "records": sorted(records, key=lambda r: r.performed_at, reverse=True),
        })
    pending = (
        MaintenanceRecord.query.join(Stand)
        .filter(
            Stand.organization_id == organization.id,
            MaintenanceRecord.status == MaintenanceRecord.STATUS_PENDING,
        )
        .order_by(MaintenanceRecord.created_at.asc())
        .all()
    )
    return render_template(
        "maintenance_dashboard.html",
        rows=rows,
        pending=pending,
        kind=kind,
        summary=maintenance_summary(
            organization.stands, now, organization.preventive_interval_months
        ),
        action_form=FlaskForm(),
    )


def _review_maintenance(record_id, status, message):
    record = _org_get_or_404(MaintenanceRecord, record_id)
    if record.status != MaintenanceRecord.STATUS_PENDING:
        flash("Cette demande a déjà été traitée", "warning")
        return redirect(url_for("maintenance_dashboard"))
    record.status = status
    db.session.commit()
    flash(message, "success" if status == MaintenanceRecord.STATUS_APPROVED else "warning")
    publish_stands(record.stand.organization)
    return redirect(url_for("maintenance_dashboard"))


@app.route("/maintenance/<int:record_id>/approve", methods=["POST"])
def maintenance_approve(record_id):
    return _review_maintenance(
        record_id, MaintenanceRecord.STATUS_APPROVED, "Intervention validée."
    )


@app.route("/maintenance/<int:record_id>/reject", methods=["POST"])
def maintenance_reject(record_id):
    return _review_maintenance(
        record_id, MaintenanceRecord.STATUS_REJECTED, "Demande refusée."
    )


@app.route("/export/pdf/maintenance")
def export_pdf_maintenance():
    if not WEASY_OK:
        flash("WeasyPrint non installé.", "warning")
        return redirect(url_for("maintenance_dashboard"))
    u = current_user()
    organization = u.organization
    now = _utcnow()
    rows = [stand_overview(s, now) for s in organization.stands]
    html = render_template(
        "pdf_maintenance.html",
        organization=organization,
        rows=rows,
        now=now,
        summary=maintenance_summary(
            organization.stands, now, organization.preventive_interval_months
        ),
    )
    pdf = HTML(string=html, base_url=request.host_url).write_pdf()
    return send_file(
        BytesIO(pdf),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"maintenance_{now:%Y%m%d}.pdf",
    )


# --- Catalogue
def _apply_publication_form(publication, form):
    publication.title = form.title.data.strip()
    publication.description = form.description.data or None
    publication.category = (form.category.data or "").strip() or None
    publication.image_url = (form.image_url.data or "").strip() or None
    publication.min_stock = form.min_stock.data
    publication.is_active = form.is_active.data


@app.route("/publications", methods=["GET", "POST"])
def publications():
    u = current_user()
    form = PublicationForm()
    if form.validate_on_submit():
        if not u.is_admin:
            abort(403)
        publication = Publication(organization_id=u.organization_id)
        _apply_publication_form(publication, form)
        db.session.add(publication)
        db.session.commit()
        flash("Publication ajoutée", "success")
        return redirect(url_for("publications"))
    return render_template(
        "publications.html",
        form=form,
        publications=u.organization.publications,
        action_form=FlaskForm(),
    )


@app.route("/publications/<int:publication_id>/edit", methods=["GET", "POST"])
@admin_required
def publication_edit(publication_id):
    publication = _org_get_or_404(Publication, publication_id)
    form = PublicationForm(obj=publication)
    if form.validate_on_submit():
        _apply_publication_form(publication, form)
        publication.updated_at = _utcnow()
        db.session.commit()
        flash("Publication mise à jour", "success")
        publish_stands(publication.organization)
        return redirect(url_for("publications"))
    return render_template("publication_form.html", form=form, publication=publication)


@app.route("/publications/<int:publication_id>/delete", methods=["POST"])
@admin_required
def publication_delete(publication_id):
    publication = _org_get_or_404(Publication, publication_id)
    organization = publication.organization
    PublicationStock.query.filter_by(publication_id=publication.id).delete(
        synchronize_session=False
    )
    db.session.delete(publication)
    db.session.commit()
    flash("Publication supprimée", "info")
    publish_stands(organization)
    return redirect(url_for("publications"))


@app.route("/posters", methods=["GET", "POST"])
def posters():
    u = current_user()
    form = PosterForm()
    if form.validate_on_submit():
        if not u.is_admin:
            abort(403)
        poster = Poster(
            organization_id=u.organization_id,
            name=form.name.data.strip(),
            image_url=(form.image_url.data or "").strip() or None,
        )
        db.session.add(poster)
        db.session.commit()
        flash("Affiche ajoutée", "success")
        return redirect(url_for("posters"))
    requests_ = (
        PosterRequest.query.join(Stand)
        .filter(Stand.organization_id == u.organization_id)
        .order_by(PosterRequest.created_at.desc())
        .all()
    )
    return render_template(
        "posters.html",
        form=form,
        posters=u.organization.posters,
        poster_requests=requests_,
        action_form=FlaskForm(),
    )


@app.route("/posters/<int:poster_id>/delete", methods=["POST"])
@admin_required
def poster_delete(poster_id):
    poster = _org_get_or_404(Poster, poster_id)
    in_use = (
        Stand.query.filter_by(current_poster_id=poster.id).first()
        or PosterRequest.query.filter_by(poster_id=poster.id).first()
    )
    if in_use:
        poster.is_active = False
        flash("Affiche utilisée : elle a été archivée", "warning")
    else:
        db.session.delete(poster)
        flash("Affiche supprimée", "info")
    db.session.commit()
    return redirect(url_for("posters"))


def _review_poster_request(request_id, approve):
    poster_request = _org_get_or_404(PosterRequest, request_id)
    if poster_request.status != "pending":
        flash("Cette demande a déjà été traitée", "warning")
        return redirect(url_for("posters"))
    stand = poster_request.stand
    if approve:
        poster_request.status = "approved"
        stand.current_poster_id = poster_request.poster_id
        stand.updated_at = _utcnow()
        flash("Demande approuvée, affiche changée.", "success")
    else:
        poster_request.status = "rejected"
        flash("Demande refusée.", "warning")
    db.session.commit()
    publish_stands(stand.organization)
    return redirect(url_for("posters"))


@app.route("/poster-requests/<int:request_id>/approve", methods=["POST"])
def poster_request_approve(request_id):
    return _review_poster_request(request_id, True)


@app.route("/poster-requests/<int:request_id>/reject", methods=["POST"])
def poster_request_reject(request_id):
    return _review_poster_request(request_id, False)


# --- Organisation
def _apply_settings_form(organization, form):
    organization.name = form.name.data.strip()
    for name in ("domain", "address", "city", "postal_code", "country", "phone", "email"):
        setattr(organization, name, (getattr(form, name).data or "").strip() or None)
    organization.max_reservation_days = form.max_reservation_days.data
    organization.min_advance_hours = form.min_advance_hours.data
    organization.preventive_interval_months = form.preventive_interval_months.data
    organization.notify_new_reservation = form.notify_new_reservation.data
    organization.notify_poster_request = form.notify_poster_request.data
    organization.notify_maintenance = form.notify_maintenance.data


@app.route("/settings", methods=["GET", "POST"])
@admin_required
def settings():
    u = current_user()
    organization = u.organization
    form = OrganizationSettingsForm(obj=organization)
    if form.validate_on_submit():
        _apply_settings_form(organization, form)
        organization.updated_at = _utcnow()
        db.session.commit()
        flash("Organisation mise à jour avec succès", "success")
        publish_stands(organization)
        return redirect(url_for("settings"))
    return render_template("settings.html", form=form, organization=organization)


@app.route("/statistics")
def statistics():
    u = current_user()
    organization = u.organization
    now = _utcnow()
    distribution = age_distribution(organization.stands, now)
    rows = [stand_overview(s, now) for s in organization.stands]
    rows.sort(key=lambda r: r["stand"].installed_at or now)
    return render_template(
        "statistics.html",
        distribution=[
            (status, AGE_STATUS_LABELS[status], count)
            for status, count in distribution.items()
        ],
        rows=rows,
    )


@app.route("/notifications")
def notifications():
    u = current_user()
    items = (
        Notification.query.filter_by(organization_id=u.organization_id)
        .order_by(Notification.created_at.desc())
        .limit(100)
        .all()
    )
    return render_template(
        "notifications.html", notifications=items, action_form=FlaskForm()
    )


@app.route("/notifications/<int:notification_id>/read", methods=["POST"])
def notification_read(notification_id):
    notification = _org_get_or_404(Notification, notification_id)
    notification.read = True
    db.session.commit()
    return redirect(url_for("notifications"))


@app.route("/notifications/read-all", methods=["POST"])
def notifications_read_all():
    u = current_user()
    Notification.query.filter_by(
        organization_id=u.organization_id, read=False
    ).update({"read": True}, synchronize_session=False)
    db.session.commit()
    flash("Toutes les notifications ont été lues", "info")
    return redirect(url_for("notifications"))


@app.route("/users")
@admin_required
def users():
    u = current_user()
    members = (
        User.query.filter_by(organization_id=u.organization_id)
        .order_by(User.last_name.asc(), User.first_name.asc())
        .all()
    )
    return render_template(
        "users.html", members=members, form=MemberForm(), action_form=FlaskForm()
    )


@app.route("/users/new", methods=["POST"])
@admin_required
def user_new():
    u = current_user()
    form = MemberForm()
    if not form.validate_on_submit():
        for errors in form.errors.values():
            for error in errors:
                flash(error, "danger")
        return redirect(url_for("users"))
    member = User(
        organization_id=u.organization_id,
        name=f"{form.last_name.data} {form.first_name.data}",
        first_name=form.first_name.data,
        last_name=form.last_name.data,
        email=form.email.data.strip().lower(),
        role=form.role.data,
        status="active",
    )
    member.set_password(form.password.data)
    db.session.add(member)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        flash("Adresse e‑mail déjà utilisée", "danger")
        return redirect(url_for("users"))
    flash("Utilisateur ajouté", "success")
    return redirect(url_for("users"))


@app.route("/users/<int:user_id>/toggle", methods=["POST"])
@admin_required
def user_toggle(user_id):
    member = _org_get_or_404(User, user_id)
    if member.id == current_user().id:
        flash("Vous ne pouvez pas désactiver votre propre compte", "danger")
        return redirect(url_for("users"))
    member.status = "inactive" if member.status == "active" else "active"
    db.session.commit()
    flash(
        "Utilisateur activé" if member.status == "active" else "Utilisateur désactivé",
        "info",
    )
    return redirect(url_for("users"))


# --- Vue publique (QR code)
def _public_stand_or_404(token):
    stand = Stand.from_public_token(token)
    if stand is None:
        abort(404)
    return stand


def _public_forms(stand):
    organization = stand.organization
    stock_form = PublicStockForm(prefix="stock")
    stock_form.publication_id.choices = [
        (p.id, p.title) for p in organization.publications if p.is_active
    ]
    poster_form = PosterRequestForm(prefix="poster")
    poster_form.poster_id.choices = [
        (p.id, p.name) for p in organization.posters if p.is_active
    ]
    return {
        "reservation_form": ReservationForm(prefix="reservation"),
        "stock_form": stock_form,
        "poster_form": poster_form,
        "maintenance_form": MaintenanceRequestForm(prefix="maintenance"),
    }


def _flash_form_errors(form):
    for errors in form.errors.values():
        for error in errors:
            flash(error, "danger")


@app.route("/p/<token>")
def public_stand(token):
    stand = _public_stand_or_404(token)
    sync_reservation_state([stand], _utcnow())
    forms = _public_forms(stand)
    if not forms["reservation_form"].start_at.data:
        start = datetime.combine(_utcnow().date() + timedelta(days=2), time(8, 0))
        forms["reservation_form"].start_at.data = start
        forms["reservation_form"].end_at.data = start + timedelta(days=7)
    catalog = stand.organization.publication_catalog()
    stocks = {s.publication_id: s for s in stand.stocks}
    return render_template(
        "public_stand.html",
        stand=stand,
        token=token,
        overview=stand_overview(stand, _utcnow(), catalog),
        catalog=catalog,
        stocks=stocks,
        **forms,
    )


@app.route("/p/<token>/reserve", methods=["POST"])
def public_reserve(token):
    stand = _public_stand_or_404(token)
    form = _public_forms(stand)["reservation_form"]
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for("public_stand", token=token))
    reservation, error = reserve_stand(
        stand, form.name.data, form.start_at.data, form.end_at.data
    )
    if error:
        flash(error, "danger")
    else:
        flash("Réservation effectuée avec succès", "success")
    return redirect(url_for("public_stand", token=token))


@app.route("/p/<token>/stock", methods=["POST"])
def public_stock(token):
    stand = _public_stand_or_404(token)
    form = _public_forms(stand)["stock_form"]
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for("public_stand", token=token))
    publication = db.session.get(Publication, form.publication_id.data)
    update_stock(stand, publication, form.quantity.data)
    db.session.commit()
    flash("Stock mis à jour", "success")
    _notify_low_stock(stand)
    publish_stands(stand.organization)
    return redirect(url_for("public_stand", token=token))


@app.route("/p/<token>/poster-request", methods=["POST"])
def public_poster_request(token):
    stand = _public_stand_or_404(token)
    form = _public_forms(stand)["poster_form"]
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for("public_stand", token=token))
    poster_request = PosterRequest(
        stand=stand,
        poster_id=form.poster_id.data,
        requested_by=form.requested_by.data.strip(),
        notes=form.notes.data,
    )
    db.session.add(poster_request)
    db.session.commit()
    flash("Demande de changement d'affiche envoyée", "success")
    _notify(
        stand.organization,
        "poster",
        f"Demande de changement d'affiche : {stand.name}",
        f"{poster_request.requested_by} demande l'affiche "
        f"« {poster_request.poster.name} ».",
    )
    return redirect(url_for("public_stand", token=token))


@app.route("/p/<token>/maintenance-request", methods=["POST"])
def public_maintenance_request(token):
    stand = _public_stand_or_404(token)
    form = _public_forms(stand)["maintenance_form"]
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for("public_stand", token=token))
    record = MaintenanceRecord(
        stand=stand,
        kind=MaintenanceRecord.KIND_CURATIVE,
        performed_at=_utcnow(),
        performed_by=form.reported_by.data.strip(),
        description=form.description.data,
        issues=form.issues.data,
        status=MaintenanceRecord.STATUS_PENDING,
    )
    db.session.add(record)
    db.session.commit()
    flash("Demande de maintenance envoyée", "success")
    _notify(
        stand.organization,
        "maintenance",
        f"Signalement : {stand.name}",
        f"{record.performed_by} signale : {record.issues}",
    )
    return redirect(url_for("public_stand", token=token))


if __name__ == "__main__":
    app.run(debug=os.environ.get("FLASK_DEBUG") == "1")
