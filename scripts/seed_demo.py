"""
Seed Roles, Members & Skills: default RBAC plus a small demo crew.

Usage:
    python scripts/seed_demo.py                # Uses development DB
    python scripts/seed_demo.py --env prod     # Roles only, no demo data
    python scripts/seed_demo.py --roles-only

This script is idempotent and safe to run multiple times.
"""

import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from app.models import db
from app.models.auth import Member
from app.models.skill import Skill
from app.services import member_service, skill_service


# ═══════════════════════════════════════════════════════════════
# DEMO DATA
# ═══════════════════════════════════════════════════════════════
MEMBERS = [
    # (name, email, roles)
    ("Training Officer", "training@bts-crew.com", ["training_officer"]),
    ("Alex Rigger", "alex@bts-crew.com", ["member"]),
    ("Sam Lighting", "sam@bts-crew.com", ["member"]),
]

SKILLS = [
    {
        "name": "Rigging",
        "category": "Stage",
        "description": "Flying, truss and hoist work",
        "levels": {
            "1": {"requirements": "Assist with truss assembly under supervision"},
            "2": {"requirements": "Plan and lead a ground-supported truss build"},
            "3": {"requirements": "Sign off hoist rigs; train others", "capacity": 2},
        },
    },
    {
        "name": "Lighting Desk",
        "category": "Lighting",
        "description": "Programming and operating the lighting console",
        "levels": {
            "1": {"requirements": "Run a pre-programmed show"},
            "2": {"requirements": "Program cues and palettes for a simple show"},
            "3": {"requirements": "Design and program a full production", "prerequisite_level": 2},
        },
    },
]


def seed(with_demo=True):
    roles = member_service.seed_roles()
    print(f"  ✓ Roles: {', '.join(sorted(roles))}")
    if not with_demo:
        return

    for name, email, role_names in MEMBERS:
        if Member.query.filter_by(email=email).first():
            print(f"  · Member exists: {email}")
            continue
        member_service.create_member({"name": name, "email": email}, roles=role_names)
        print(f"  ✓ Member: {email} ({', '.join(role_names)})")

    for data in SKILLS:
        if Skill.query.filter_by(name=data["name"]).first():
            print(f"  · Skill exists: {data['name']}")
            continue
        skill_service.create_skill(data)
        print(f"  ✓ Skill: {data['name']}")


def main():
    parser = argparse.ArgumentParser(description="Seed roles and demo crew data")
    parser.add_argument("--env", default="development", choices=["development", "prod", "production"])
    parser.add_argument("--roles-only", action="store_true", help="Skip demo members and skills")
    args = parser.parse_args()

    env = "production" if args.env in ("prod", "production") else args.env
    app = create_app(env)
    with app.app_context():
        db.create_all()
        print(f"Seeding ({env})...")
        seed(with_demo=not args.roles_only and env != "production")
        print("Done.")


if __name__ == "__main__":
    main()
