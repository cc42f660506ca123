#!/usr/bin/env python3
"""
Donor Oversight Platform — Demo Data Seed Script.

Creates one user per role, three investment objectives across Nigerian
regions, a dozen activities with annual estimates, actual spend entries
(some over budget) and a few approvals at different workflow stages.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --password "Demo#2026x"
    python scripts/seed_demo_data.py --verbose

Run from the repository root after ``pip install -e .``.
"""

import argparse

from oversight import create_app
from oversight.models import db
from oversight.services import (
    activity_service,
    actual_service,
    approval_service,
    objective_service,
    settings_service,
    user_service,
)

DEFAULT_PASSWORD = "Oversight2026"

USERS = [
    ("admin@oversight.org", "Amaka Nwosu", "Admin"),
    ("pm@oversight.org", "Ada Obi", "ProjectManager"),
    ("finance@oversight.org", "Bola Adeyemi", "Finance"),
    ("committee@oversight.org", "Chidi Eze", "CommitteeMember"),
    ("auditor@oversight.org", "Dayo Bello", "Auditor"),
]

OBJECTIVES = [
    {
        "title": "Primary Health Care Expansion",
        "short_description": "Rural clinic network in the north",
        "states": ["Kano", "Kaduna", "Jigawa"],
        "tags": ["health", "rural"],
        "overall_start_year": 2024,
        "overall_end_year": 2027,
        "activities": [
            ("Clinic refurbishment", "2024-02-01", "2025-06-30", "InProgress", 45, 120000,
             {"2024": 70000, "2025": 50000}, [(2024, 68000), (2025, 61000)]),
            ("Community health worker training", "2024-05-01", "2024-12-15", "Completed", 100, 35000,
             {"2024": 35000}, [(2024, 33500)]),
            ("Cold-chain equipment", "2025-01-10", "2026-03-31", "Planned", 0, 80000,
             {"2025": 50000, "2026": 30000}, []),
            ("Maternal health outreach", "2025-03-01", "2027-02-28", "InProgress", 20, 95000,
             {"2025": 30000, "2026": 35000, "2027": 30000}, [(2025, 12000)]),
        ],
    },
    {
        "title": "Clean Water Access",
        "short_description": "Boreholes and sanitation in the south",
        "states": ["Lagos", "Ogun", "Anambra"],
        "tags": ["water", "WASH"],
        "overall_start_year": 2024,
        "overall_end_year": 2026,
        "activities": [
            ("Borehole drilling", "2024-01-15", "2025-06-30", "InProgress", 60, 200000,
             {"2024": 120000, "2025": 80000}, [(2024, 125000), (2025, 98000)]),
            ("Water committee formation", "2024-03-01", "2024-08-31", "Completed", 100, 15000,
             {"2024": 15000}, [(2024, 14200)]),
            ("School latrines", "2025-02-01", "2026-01-31", "OnHold", 10, 60000,
             {"2025": 40000, "2026": 20000}, [(2025, 5000)]),
        ],
    },
    {
        "title": "Girls' Secondary Education",
        "short_description": "Scholarships and mentoring support",
        "states": ["Borno", "Yobe", "Oyo"],
        "tags": ["education"],
        "overall_start_year": 2025,
        "overall_end_year": 2027,
        "activities": [
            ("Scholarship round one", "2025-09-01", "2026-07-31", "InProgress", 30, 150000,
             {"2025": 50000, "2026": 100000}, [(2025, 52000)]),
            ("Learning materials", "2025-08-01", "2025-12-31", "Planned", 0, 25000,
             {"2025": 25000}, []),
        ],
    },
]


def log(msg, verbose=True):
    if verbose:
        print(msg)


def seed_users(password, verbose):
    users = {}
    for email, full_name, role in USERS:
        user = user_service.get_user_by_email(email)
        if user is None:
            user = user_service.create_user(
                {"email": email, "password": password, "full_name": full_name, "role": role},
                audit=False,
            )
            log(f"   + {role:<16} {email}", verbose)
        users[role] = user
    return users


def seed_portfolio(users, verbose):
    pm, finance = users["ProjectManager"], users["Finance"]
    activities = []
    for spec in OBJECTIVES:
        spec = dict(spec)
        rows = spec.pop("activities")
        objective = objective_service.create_objective(spec, pm)
        log(f"   + {objective.code} {objective.title}", verbose)

        for title, start, end, status, progress, total, estimates, actuals in rows:
            activity = activity_service.create_activity({
                "objective_id": objective.id,
                "title": title,
                "start_date": start,
                "end_date": end,
                "status": status,
                "progress_percent": progress,
                "lead": pm.full_name,
                "estimated_spend_usd_total": total,
                "annual_estimates": estimates,
            }, pm)
            for year, amount in actuals:
                actual_service.create_actual({
                    "activity_id": activity.id,
                    "entry_date": f"{year}-06-30",
                    "amount_usd": amount,
                    "category": "Disbursement",
                }, finance)
            activities.append(activity)
            log(f"      · {activity.code} {title}", verbose)
    return activities


def seed_approvals(users, activities, verbose):
    pm, finance = users["ProjectManager"], users["Finance"]

    # Small change: auto-approved at the finance stage
    small = activities[1]
    approval_service.submit_approval({
        "target_type": "EstimateChange", "target_id": small.id,
        "old_value": 35000, "new_value": 36000, "comment": "Venue cost increase",
    }, pm)

    # Large change awaiting finance
    large = activities[0]
    approval_service.submit_approval({
        "target_type": "EstimateChange", "target_id": large.id,
        "old_value": 120000, "new_value": 150000, "comment": "Two additional clinics",
    }, pm)

    # Large change already past finance, awaiting committee
    third = activities[7]
    pending = approval_service.submit_approval({
        "target_type": "EstimateChange", "target_id": third.id,
        "old_value": 150000, "new_value": 190000, "comment": "Second scholarship cohort",
    }, pm)
    approval_service.finance_approve(pending.id, finance, "Within the education envelope")
    log("   + 3 approvals (FinanceApproved ×2, Submitted ×1)", verbose)


def seed_all(app, password, verbose=False):
    with app.app_context():
        db.create_all()
        created = settings_service.seed_defaults()
        log(f"⚙️  Settings: {created} defaults created", True)

        print("👤 Users")
        users = seed_users(password, verbose)

        if objective_service.list_objectives(limit=1)["total"]:
            print("ℹ️  Portfolio already seeded — skipping objectives and activities.")
            return

        print("🎯 Objectives & activities")
        activities = seed_portfolio(users, verbose)

        print("✅ Approvals")
        seed_approvals(users, activities, verbose)

    print(f"\nDone. Log in as any of {', '.join(email for email, _, _ in USERS)} "
          f"with password {password!r}.")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--password", default=DEFAULT_PASSWORD,
                        help="Password for every demo user")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    app = create_app()
    print(f"🎯 DB: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
    seed_all(app, args.password, verbose=args.verbose)


if __name__ == "__main__":
    main()
