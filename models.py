from datetime import datetime
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash
from flask import current_app
from itsdangerous import URLSafeSerializer, BadSignature

from utils import is_reserved

db = SQLAlchemy()


class Organization(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    domain = db.Column(db.String(120), nullable=True)
    address = db.Column(db.String(200), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(80), nullable=True)
    phone = db.Column(db.String(40), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    max_reservation_days = db.Column(db.Integer, default=30, nullable=False)
    min_advance_hours = db.Column(db.Integer, default=24, nullable=False)
    preventive_interval_months = db.Column(db.Integer, default=3, nullable=False)
    notify_new_reservation = db.Column(db.Boolean, default=True)
    notify_poster_request = db.Column(db.Boolean, default=True)
    notify_maintenance = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True)

    users = db.relationship("User", back_populates="organization")
    stands = db.relationship(
        "Stand", back_populates="organization", order_by="Stand.name"
    )
    publications = db.relationship(
        "Publication", back_populates="organization", order_by="Publication.title"
    )
    posters = db.relationship(
        "Poster", back_populates="organization", order_by="Poster.name"
    )

    def publication_catalog(self):
        """Return the active catalog keyed by publication id."""
        return {p.id: p for p in self.publications if p.is_active}


class User(db.Model):
    ROLE_ADMIN = "admin"
    ROLE_MEMBER = "member"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organization.id"), nullable=False
    )
    name = db.Column(db.String(120), nullable=False)
    first_name = db.Column(db.String(60), nullable=True)
    last_name = db.Column(db.String(60), nullable=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    role = db.Column(db.String(50), default=ROLE_MEMBER)
    password_hash = db.Column(db.String(255), nullable=False, default="")
    status = db.Column(db.String(20), default="active")

    organization = db.relationship("Organization", back_populates="users")

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    def set_password(self, pwd):
        self.password_hash = generate_password_hash(pwd)

    def check_password(self, pwd):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, pwd)


class Poster(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organization.id"), nullable=False
    )
    name = db.Column(db.String(120), nullable=False)
    image_url = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    organization = db.relationship("Organization", back_populates="posters")


class Stand(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organization.id"), nullable=False
    )
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(200), nullable=True)
    installed_at = db.Column(db.DateTime, nullable=True)
    current_poster_id = db.Column(
        db.Integer, db.ForeignKey("poster.id"), nullable=True
    )
    # Denormalized from the reservation history, see refresh_reservation_state.
    is_reserved = db.Column(db.Boolean, default=False, nullable=False)
    reserved_by = db.Column(db.String(120), nullable=True)
    reserved_until = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True)

    organization = db.relationship("Organization", back_populates="stands")
    current_poster = db.relationship("Poster")
    reservations = db.relationship(
        "Reservation",
        back_populates="stand",
        order_by="Reservation.start_at",
    )
    maintenance_records = db.relationship(
        "MaintenanceRecord",
        back_populates="stand",
        order_by="MaintenanceRecord.performed_at",
    )
    stocks = db.relationship(
        "PublicationStock",
        back_populates="stand",
        cascade="all, delete-orphan",
    )
    poster_requests = db.relationship(
        "PosterRequest",
        back_populates="stand",
        cascade="all, delete-orphan",
        order_by="PosterRequest.created_at.desc()",
    )

    @property
    def has_history(self):
        return bool(self.reservations) or bool(self.maintenance_records)

    @property
    def current_reservation(self):
        if not self.reservations:
            return None
        return max(self.reservations, key=lambda r: r.start_at)

    def active_reservation(self, now):
        """Reservation running at ``now`` (``start_at <= now < end_at``)."""
        for reservation in self.reservations:
            if reservation.start_at <= now < reservation.end_at:
                return reservation
        return None

    def upcoming_reservation(self, now):
        future = [r for r in self.reservations if r.start_at > now]
        return min(future, key=lambda r: r.start_at) if future else None

    def approved_maintenance(self):
        return [
            m for m in self.maintenance_records
            if m.status == MaintenanceRecord.STATUS_APPROVED
        ]

    def refresh_reservation_state(self, now=None):
        """Sync ``is_reserved``/``reserved_by``/``reserved_until`` from history."""
        now = now or datetime.utcnow()
        if is_reserved(self.reservations, now):
            holder = self.active_reservation(now) or self.current_reservation
            self.is_reserved = True
            self.reserved_by = holder.reserved_by
            self.reserved_until = holder.end_at
        else:
            self.is_reserved = False
            self.reserved_by = None
            self.reserved_until = None
        return self.is_reserved

    def public_token(self):
        s = URLSafeSerializer(
            current_app.config["SECRET_KEY"],
            salt=current_app.config.get("PUBLIC_LINK_SALT", "public-stand"),
        )
        return s.dumps({"stand_id": self.id})

    @staticmethod
    def from_public_token(token):
        """Return the stand designated by a public token, or ``None``."""
        s = URLSafeSerializer(
            current_app.config["SECRET_KEY"],
            salt=current_app.config.get("PUBLIC_LINK_SALT", "public-stand"),
        )
        try:
            data = s.loads(token)
        except BadSignature:
            return None
        if not isinstance(data, dict):
            return None
        return db.session.get(Stand, data.get("stand_id"))


class Reservation(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    stand_id = db.Column(db.Integer, db.ForeignKey("stand.id"), nullable=False)
    reserved_by = db.Column(db.String(120), nullable=False)
    start_at = db.Column(db.DateTime, nullable=False)
    end_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    stand = db.relationship("Stand", back_populates="reservations")


class MaintenanceRecord(db.Model):
    KIND_PREVENTIVE = "preventive"
    KIND_CURATIVE = "curative"
    STATUS_PENDING = "pending"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"

    id = db.Column(db.Integer, primary_key=True)
    stand_id = db.Column(db.Integer, db.ForeignKey("stand.id"), nullable=False)
    performed_at = db.Column(db.DateTime, nullable=False)
    kind = db.Column(db.String(20), nullable=False, default=KIND_PREVENTIVE)
    performed_by = db.Column(db.String(120), nullable=True)
    description = db.Column(db.Text, nullable=True)
    issues = db.Column(db.Text, nullable=True)
    resolution = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default=STATUS_APPROVED)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    stand = db.relationship("Stand", back_populates="maintenance_records")

    @property
    def kind_label(self):
        if self.kind == self.KIND_CURATIVE:
            return "Curative"
        return "Préventive"


class Publication(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organization.id"), nullable=False
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(80), nullable=True)
    image_url = db.Column(db.String(500), nullable=True)
    min_stock = db.Column(db.Integer, default=10, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True)

    organization = db.relationship("Organization", back_populates="publications")


class PublicationStock(db.Model):
    __table_args__ = (
        db.UniqueConstraint("stand_id", "publication_id", name="uq_stand_publication"),
    )

    id = db.Column(db.Integer, primary_key=True)
    stand_id = db.Column(db.Integer, db.ForeignKey("stand.id"), nullable=False)
    publication_id = db.Column(
        db.Integer, db.ForeignKey("publication.id"), nullable=False
    )
    quantity = db.Column(db.Integer, default=0, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    stand = db.relationship("Stand", back_populates="stocks")
    publication = db.relationship("Publication")


class PosterRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    stand_id = db.Column(db.Integer, db.ForeignKey("stand.id"), nullable=False)
    poster_id = db.Column(db.Integer, db.ForeignKey("poster.id"), nullable=False)
    requested_by = db.Column(db.String(120), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), default="pending")  # pending/approved/rejected
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    stand = db.relationship("Stand", back_populates="poster_requests")
    poster = db.relationship("Poster")


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organization.id"), nullable=False
    )
    kind = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=True)
    read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
