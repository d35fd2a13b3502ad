"""Create homework DynamoDB tables and optionally seed a demo schedule.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566 --demo-tenant demo
"""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone
from typing import Any

import boto3

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "homework-items"},
    {"name": "homework-files"},
    {"name": "homework-sessions"},
]


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create all homework tables. Skips if table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def seed_demo_schedule(ddb: Any, tenant_id: str, suffix: str = "",
                       students: int = 3, sessions: int = 2) -> int:
    """Write sessions and roster rows for a demo tenant. Returns roster row count."""
    tbl = ddb.Table(f"homework-sessions{suffix}")
    pk = f"TENANT#{tenant_id}"
    start = datetime(2026, 1, 5, 16, 0, tzinfo=timezone.utc)
    count = 0
    with tbl.batch_writer() as batch:
        for s in range(sessions):
            session_id = f"demo-session-{s + 1}"
            batch.put_item(Item={
                "PK": pk, "SK": f"SESSION#{session_id}",
                "id": session_id, "tenant_id": tenant_id,
                "start_at": (start + timedelta(days=7 * s)).isoformat(),
                "center_id": "demo-center", "center_name": "Demo Center",
                "tutor_id": "demo-tutor", "tutor_name": "Demo Tutor",
            })
            for st in range(students):
                roster_id = f"{session_id}-student-{st + 1}"
                batch.put_item(Item={
                    "PK": pk, "SK": f"ROSTER#{roster_id}",
                    "id": roster_id, "tenant_id": tenant_id,
                    "session_id": session_id, "student_id": f"demo-student-{st + 1}",
                })
                count += 1
    print(f"  Seeded {sessions} sessions with {count} roster rows for tenant {tenant_id}")
    return count


def main() -> None:
    parser = argparse.ArgumentParser(description="Create DynamoDB tables for the homework engine")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--demo-tenant", default=None, help="Seed a demo schedule for this tenant id")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    if args.demo_tenant:
        print("Seeding demo schedule...")
        seed_demo_schedule(ddb, args.demo_tenant, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
