#!/usr/bin/env python3
"""Create or promote the administrator of an organization.

Usage:
    python tools/create_admin.py admin@mairie.fr --organization "Mairie de Tomer"
    python tools/create_admin.py membre@mairie.fr --role member

An existing account only has its role changed (and is reactivated); a new
account is created in the given organization after prompting for a password.
"""

import argparse
import importlib
import os
import sys
from getpass import getpass


def _load_app_and_models():
    """Return ``(app, db, models)`` after ensuring the repository root is importable."""

    root_dir = os.path.dirname(os.path.dirname(__file__))
    if root_dir not in sys.path:
        sys.path.insert(0, root_dir)

    app_module = importlib.import_module("app")
    models_module = importlib.import_module("models")
    return app_module.app, models_module.db, models_module


app, db, models = _load_app_and_models()


def _prompt_password():
    while True:
        pwd = getpass("Mot de passe : ")
        if len(pwd) < 8:
            print("Le mot de passe doit contenir au moins 8 caractères.")
            continue
        if pwd != getpass("Confirmer : "):
            print("Les mots de passe ne correspondent pas.")
            continue
        return pwd


def _find_organization(name):
    query = models.Organization.query
    if name:
        return query.filter_by(name=name).first()
    organizations = query.all()
    return organizations[0] if len(organizations) == 1 else None


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Crée ou promeut un administrateur d'organisation"
    )
    parser.add_argument("email", help="Email du compte")
    parser.add_argument(
        "--organization", "-o",
        help="Nom de l'organisation (obligatoire s'il en existe plusieurs)",
    )
    parser.add_argument(
        "--role",
        choices=[models.User.ROLE_ADMIN, models.User.ROLE_MEMBER],
        default=models.User.ROLE_ADMIN,
    )
    args = parser.parse_args()
    email = args.email.strip().lower()

    with app.app_context():
        user = models.User.query.filter_by(email=email).first()
        if user is not None:
            user.role = args.role
            user.status = "active"
            db.session.commit()
            print(f"{user.email} est maintenant '{user.role}' dans {user.organization.name}")
            return 0

        organization = _find_organization(args.organization)
        if organization is None:
            print("Organisation introuvable, précisez --organization")
            return 1
        user = models.User(
            organization=organization,
            name=email.split("@")[0],
            email=email,
            role=args.role,
            status="active",
        )
        user.set_password(_prompt_password())
        db.session.add(user)
        db.session.commit()
        print(f"Compte {user.email} créé dans {organization.name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
