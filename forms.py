from flask_wtf import FlaskForm
from wtforms import (
    StringField,
    PasswordField,
    SubmitField,
    BooleanField,
    DateField,
    DateTimeLocalField,
    IntegerField,
    TextAreaField,
    SelectField,
)
from wtforms.validators import (
    DataRequired,
    Email,
    Length,
    EqualTo,
    InputRequired,
    NumberRange,
    Optional,
    URL,
)
from models import MaintenanceRecord, User

DATETIME_FORMATS = ["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S"]


class LoginForm(FlaskForm):
    email = StringField("Email", validators=[DataRequired(), Email()])
    password = PasswordField("Mot de passe", validators=[DataRequired()])
    submit = SubmitField("Se connecter")


class RegisterForm(FlaskForm):
    organization_name = StringField(
        "Nom de l'organisation", validators=[DataRequired(), Length(max=120)]
    )
    domain = StringField("Domaine", validators=[Optional(), Length(max=120)])
    first_name = StringField("Prénom", validators=[DataRequired(), Length(max=60)])
    last_name = StringField("Nom", validators=[DataRequired(), Length(max=60)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField(
        "Mot de passe", validators=[DataRequired(), Length(min=8)]
    )
    password2 = PasswordField(
        "Confirmer le mot de passe",
        validators=[
            DataRequired(),
            EqualTo(
                "password",
                message="Les mots de passe doivent correspondre.",
            ),
        ],
    )
    submit = SubmitField("Créer mon organisation")


class MemberForm(FlaskForm):
    first_name = StringField("Prénom", validators=[DataRequired(), Length(max=60)])
    last_name = StringField("Nom", validators=[DataRequired(), Length(max=60)])
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=120)])
    password = PasswordField(
        "Mot de passe provisoire", validators=[DataRequired(), Length(min=8)]
    )
    role = SelectField(
        "Rôle",
        choices=[
            (User.ROLE_MEMBER, "Membre"),
            (User.ROLE_ADMIN, "Administrateur"),
        ],
        default=User.ROLE_MEMBER,
    )
    submit = SubmitField("Ajouter")


class StandForm(FlaskForm):
    name = StringField("Nom", validators=[DataRequired(), Length(max=120)])
    location = StringField("Emplacement", validators=[Optional(), Length(max=200)])
    installed_at = DateField(
        "Date d'installation", format="%Y-%m-%d", validators=[Optional()]
    )
    current_poster_id = SelectField("Affiche actuelle", coerce=int, choices=[])
    submit = SubmitField("Enregistrer")


class ReservationForm(FlaskForm):
    name = StringField(
        "Votre nom", validators=[DataRequired(), Length(min=2, max=120)]
    )
    start_at = DateTimeLocalField(
        "Début", format=DATETIME_FORMATS, validators=[DataRequired()]
    )
    end_at = DateTimeLocalField(
        "Fin", format=DATETIME_FORMATS, validators=[DataRequired()]
    )
    submit = SubmitField("Réserver")


class MaintenanceForm(FlaskForm):
    performed_at = DateField(
        "Date de maintenance", format="%Y-%m-%d", validators=[DataRequired()]
    )
    performed_by = StringField(
        "Effectuée par", validators=[DataRequired(), Length(min=2, max=120)]
    )
    description = TextAreaField("Description", validators=[Length(max=2000)])
    issues = TextAreaField("Problèmes constatés", validators=[Length(max=2000)])
    resolution = TextAreaField("Résolution", validators=[Length(max=2000)])
    submit = SubmitField("Enregistrer")

    def validate_for_kind(self, kind):
        """Curative interventions must describe the issue."""
        if kind == MaintenanceRecord.KIND_CURATIVE and not (self.issues.data or "").strip():
            self.issues.errors.append("Décrivez le problème constaté.")
            return False
        return True


class MaintenanceRequestForm(FlaskForm):
    reported_by = StringField(
        "Votre nom", validators=[DataRequired(), Length(min=2, max=120)]
    )
    description = TextAreaField(
        "Description", validators=[DataRequired(), Length(max=2000)]
    )
    issues = TextAreaField(
        "Problème constaté", validators=[DataRequired(), Length(max=2000)]
    )
    submit = SubmitField("Signaler")


class PublicationForm(FlaskForm):
    title = StringField("Titre", validators=[DataRequired(), Length(max=200)])
    description = TextAreaField("Description", validators=[Length(max=2000)])
    category = StringField("Catégorie", validators=[Optional(), Length(max=80)])
    image_url = StringField("Image (URL)", validators=[Optional(), URL(), Length(max=500)])
    min_stock = IntegerField(
        "Stock minimum", default=10, validators=[DataRequired(), NumberRange(min=1)]
    )
    is_active = BooleanField("Active", default=True)
    submit = SubmitField("Enregistrer")


class PosterForm(FlaskForm):
    name = StringField("Nom", validators=[DataRequired(), Length(max=120)])
    image_url = StringField("Image (URL)", validators=[Optional(), URL(), Length(max=500)])
    submit = SubmitField("Ajouter")


class PosterChangeForm(FlaskForm):
    poster_id = SelectField("Affiche", coerce=int, choices=[])
    submit = SubmitField("Changer l'affiche")


class PosterRequestForm(FlaskForm):
    requested_by = StringField(
        "Votre nom", validators=[DataRequired(), Length(min=2, max=120)]
    )
    poster_id = SelectField("Affiche souhaitée", coerce=int, choices=[])
    notes = TextAreaField("Remarques", validators=[Length(max=1000)])
    submit = SubmitField("Envoyer la demande")


class StockForm(FlaskForm):
    """Quantities are read from ``qty_<publication id>`` fields."""

    submit = SubmitField("Mettre à jour")


class PublicStockForm(FlaskForm):
    publication_id = SelectField("Publication", coerce=int, choices=[])
    quantity = IntegerField(
        "Quantité", validators=[InputRequired(message="Quantité requise"), NumberRange(min=0)]
    )
    submit = SubmitField("Mettre à jour")


class OrganizationSettingsForm(FlaskForm):
    name = StringField(
        "Nom de l'organisation", validators=[DataRequired(), Length(max=120)]
    )
    domain = StringField("Domaine", validators=[Optional(), Length(max=120)])
    address = StringField("Adresse", validators=[Optional(), Length(max=200)])
    city = StringField("Ville", validators=[Optional(), Length(max=120)])
    postal_code = StringField("Code postal", validators=[Optional(), Length(max=20)])
    country = StringField("Pays", validators=[Optional(), Length(max=80)])
    phone = StringField("Téléphone", validators=[Optional(), Length(max=40)])
    email = StringField("Email", validators=[Optional(), Email(), Length(max=120)])
    max_reservation_days = IntegerField(
        "Durée maximale de réservation (jours)",
        validators=[DataRequired(), NumberRange(min=1, max=365)],
    )
    min_advance_hours = IntegerField(
        "Délai de prévenance minimum (heures)",
        validators=[InputRequired(), NumberRange(min=0, max=24 * 60)],
    )
    preventive_interval_months = IntegerField(
        "Intervalle de maintenance préventive (mois)",
        validators=[DataRequired(), NumberRange(min=1, max=60)],
    )
    notify_new_reservation = BooleanField("Nouvelle réservation")
    notify_poster_request = BooleanField("Demande de changement d'affiche")
    notify_maintenance = BooleanField("Maintenance")
    submit = SubmitField("Enregistrer")
