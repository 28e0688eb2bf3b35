"""
Seed Users - default administrators plus optional extra analysts.

Usage:
    python scripts/seed_users.py                         # Uses development DB
    python scripts/seed_users.py --env production        # Uses production DB
    python scripts/seed_users.py --user ABC "Ana Costa"  # Also add an analyst (password = acronym)

This script is idempotent - safe to run multiple times.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from qa_evidence import create_app  # noqa: E402
from qa_evidence.models import db  # noqa: E402
from qa_evidence.services import user_service  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Seed QA Evidence Hub users")
    parser.add_argument("--env", default="development", choices=["development", "production"])
    parser.add_argument(
        "--user", nargs=2, action="append", metavar=("ACRONYM", "NAME"), default=[],
        help="Extra analyst to create with role USER",
    )
    args = parser.parse_args()

    app = create_app(args.env)
    with app.app_context():
        db.create_all()
        created = user_service.seed_default_admins()
        print(f"  Default administrators: {created} created")

        for acronym, name in args.user:
            if user_service.find_by_acronym(acronym):
                print(f"  User {acronym.upper()}: already exists")
                continue
            user_service.create_user({"acronym": acronym, "name": name, "password": acronym, "role": "USER"})
            print(f"  User {acronym.upper()}: created")

        db.session.commit()
        print(f"  Users in total: {len(user_service.list_users())}")


if __name__ == "__main__":
    main()
