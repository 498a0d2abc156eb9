from datetime import datetime
from getpass import getpass
from app import app, db
from models import Organization, User, Stand, Poster, Publication
from flask_migrate import upgrade


def demander_mot_de_passe():
    """Demande un mot de passe avec confirmation."""
    while True:
        mdp = getpass("  Mot de passe : ")
        if len(mdp) < 8:
            print("  ⚠ Le mot de passe doit contenir au moins 8 caractères.")
            continue
        mdp_confirm = getpass("  Confirmer : ")
        if mdp != mdp_confirm:
            print("  ⚠ Les mots de passe ne correspondent pas. Réessayez.")
            continue
        return mdp


def initial_data(organization):
    """Return the demo posters, publications and stands of a new organization."""
    welcome = Poster(organization=organization, name="Affiche Bienvenue")
    menu = Poster(organization=organization, name="Menu du Jour")
    publications = [
        Publication(
            organization=organization,
            title="Guide Visiteur",
            description="Guide complet pour les visiteurs",
            category="Guides",
            min_stock=10,
        ),
        Publication(
            organization=organization,
            title="Programme Mensuel",
            description="Programme des activités du mois",
            category="Programmes",
            min_stock=15,
        ),
    ]
    stands = [
        Stand(
            organization=organization,
            name="Présentoir Entrée",
            location="Hall Principal",
            current_poster=welcome,
            installed_at=datetime(2024, 1, 1),
        ),
        Stand(
            organization=organization,
            name="Présentoir Cafétéria",
            location="Zone de Restauration",
            current_poster=menu,
            installed_at=datetime(2023, 6, 1),
        ),
    ]
    return [welcome, menu] + publications + stands


if __name__ == "__main__":
    with app.app_context():
        print("\n=== Initialisation de l'application ===\n")

        upgrade()

        nom = input("Nom de l'organisation : ").strip() or "Mon organisation"
        organization = Organization(
            name=nom,
            max_reservation_days=app.config["DEFAULT_MAX_RESERVATION_DAYS"],
            min_advance_hours=app.config["DEFAULT_MIN_ADVANCE_HOURS"],
            preventive_interval_months=app.config["DEFAULT_PREVENTIVE_INTERVAL_MONTHS"],
        )
        db.session.add(organization)

        print("Création des données de démonstration...")
        db.session.add_all(initial_data(organization))
        print("✓ Présentoirs, affiches et publications créés\n")

        email = input("Email de l'administrateur : ").strip().lower()
        mdp = demander_mot_de_passe()
        admin = User(
            organization=organization,
            name="Administrateur",
            email=email,
            role=User.ROLE_ADMIN,
            status="active",
        )
        admin.set_password(mdp)
        db.session.add(admin)
        db.session.commit()
        print(f"✓ Compte administrateur {email} créé\n")

        print("=== Initialisation terminée ===\n")
