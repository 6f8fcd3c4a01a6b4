"""
Seed script for Civic Issue Hub demo data.

Usage:
  - Dry run (default): python scripts/seed_db.py --user-id <uuid>
  - Apply to the configured Supabase project: python scripts/seed_db.py --user-id <uuid> --apply
  - Seed from a file instead of the built-in issues: python scripts/seed_db.py --file db_seed.json --user-id <uuid>

Behavior:
  - Validates every issue with IssueCreate before writing anything.
  - Writes through IssueService with the service-role client from
    civic_hub.config.supabase.get_db(), so rows look exactly like API-created ones.
  - Each issue gets a deterministic idempotency key, so re-running --apply
    does not duplicate rows.

NOTE: --user-id must be an existing auth user; civic_issues.user_id references auth.users.
"""

import argparse
import json
import os
import sys

from pydantic import ValidationError as PydanticValidationError

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from civic_hub.core.errors import CivicHubError  # noqa: E402
from civic_hub.models.issue import IssueCreate  # noqa: E402

DEMO_ISSUES = [
    {
        "title": "Pothole on Main Street",
        "description": "Large pothole near the bus stop, cars are swerving into the cycle lane.",
        "category": "Infrastructure",
        "priority": "high",
        "location_description": "Main St & 3rd Ave",
        "location_coordinates": {"lat": 40.7128, "lng": -74.006},
    },
    {
        "title": "Streetlight out on Elm Street",
        "description": "The streetlight outside number 42 has been dark for over a week.",
        "category": "Safety",
        "priority": "medium",
        "location_description": "42 Elm Street",
    },
    {
        "title": "Overflowing recycling bins",
        "description": "Recycling bins at the park entrance have not been emptied in two weeks.",
        "category": "Environment",
        "priority": "low",
        "location_description": "Riverside Park, north gate",
    },
]


def load_seed(path: str) -> list:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def validate(raw_issues: list) -> list:
    issues = []
    for n, raw in enumerate(raw_issues):
        try:
            issues.append(IssueCreate(**raw))
        except PydanticValidationError as e:
            print(f"Skipping issue #{n}: {e.errors()[0]['msg']}")
    return issues


def write_to_db(issues: list, user_id: str, apply: bool = False):
    service = None
    if apply:
        from civic_hub.services.issue_service import IssueService
        service = IssueService()

    for n, issue in enumerate(issues):
        print(f"Preparing: [{issue.category.value}] {issue.title}")
        if not apply:
            continue
        try:
            created = service.create_issue(user_id, issue, idempotency_key=f"seed-{user_id}-{n}")
            print(f"Wrote: civic_issues/{created['id']}")
        except CivicHubError as e:
            print(f"Failed to write '{issue.title}': {e.message}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--file", help="JSON list of issues to seed instead of the built-in demo issues")
    parser.add_argument("--user-id", required=True, help="Auth user id that will own the seeded issues")
    args = parser.parse_args()

    if args.file:
        if not os.path.exists(args.file):
            print(f"Seed file not found: {args.file}")
            return
        raw = load_seed(args.file)
    else:
        raw = DEMO_ISSUES

    issues = validate(raw)
    write_to_db(issues, args.user_id, apply=args.apply)

    if args.apply:
        print("Seeding completed.")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
