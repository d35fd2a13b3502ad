"""DynamoDB backend implementing IHomeworkStore.

Tables (suffix appended per environment):

- ``homework-items``    PK=TENANT#{tenant}  SK=ITEM#{id}
                        PK=TENANT#{tenant}  SK=PAIR#{session}#{student}  (uniqueness guard)
- ``homework-files``    PK=TENANT#{tenant}#ITEM#{item}  SK=SLOT#{slot}#V#{version:010d}
                        PK=TENANT#{tenant}  SK=FILE#{file_id}  (lookup by id)
- ``homework-sessions`` PK=TENANT#{tenant}  SK=SESSION#{id} | ROSTER#{id}  (read-only)

Multi-row writes go through TransactWriteItems so that conditional checks
and puts succeed or fail together.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterator

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
from pydantic import BaseModel

from homework_engine.core.exceptions import StoreError, WriteConflictError
from homework_engine.models.filters import RosterFilters
from homework_engine.models.homework import (
    HomeworkFile,
    HomeworkFileSlot,
    HomeworkItem,
    HomeworkStatus,
    ItemSnapshot,
    RosterEntry,
    SessionRecord,
)
from homework_engine.persistence.roster import order_roster, roster_matches

ITEMS_TABLE = "homework-items"
FILES_TABLE = "homework-files"
SESSIONS_TABLE = "homework-sessions"

CONDITION_FAILED = "ConditionalCheckFailed"
CREATE_ATTEMPTS = 3
CREATE_BACKOFF_SECONDS = 0.05

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    out: dict[str, Any] = {}
    for k, v in item.items():
        if isinstance(v, Decimal):
            out[k] = int(v) if v == int(v) else float(v)
        elif isinstance(v, dict):
            out[k] = _decode_decimals(v)
        else:
            out[k] = v
    return out


def _attrs(model: BaseModel) -> dict[str, Any]:
    return {k: v for k, v in model.model_dump(mode="json").items() if v is not None}


def _typed(item: dict[str, Any]) -> dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in item.items()}


def _strip_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in _decode_decimals(item).items() if k not in ("PK", "SK")}


def tenant_pk(tenant_id: str) -> str:
    return f"TENANT#{tenant_id}"


def item_sk(item_id: str) -> str:
    return f"ITEM#{item_id}"


def pair_sk(session_id: str, student_id: str) -> str:
    return f"PAIR#{session_id}#{student_id}"


def file_partition(tenant_id: str, item_id: str) -> str:
    return f"TENANT#{tenant_id}#ITEM#{item_id}"


def slot_prefix(slot: HomeworkFileSlot) -> str:
    return f"SLOT#{HomeworkFileSlot(slot).value}#V#"


def version_sk(slot: HomeworkFileSlot, version: int) -> str:
    return f"{slot_prefix(slot)}{version:010d}"


def file_sk(file_id: str) -> str:
    return f"FILE#{file_id}"


def _is_cancellation(exc: ClientError) -> bool:
    code = exc.response.get("Error", {}).get("Code", "")
    return code in ("TransactionCanceledException", "ConditionalCheckFailedException")


def _cancellation_codes(exc: ClientError) -> list[str]:
    """Per-operation reason codes of a cancelled TransactWriteItems call."""
    return [reason.get("Code", "None") for reason in exc.response.get("CancellationReasons", [])]


class DynamoDBHomeworkStore:
    """Production IHomeworkStore backed by DynamoDB."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._client = boto3.client("dynamodb", **kwargs)

    def _name(self, base: str) -> str:
        return f"{base}{self._table_suffix}"

    def _table(self, base: str):
        return self._ddb.Table(self._name(base))

    def _query_all(self, table_base: str, **kwargs: Any) -> Iterator[dict[str, Any]]:
        """Query with pagination over LastEvaluatedKey."""
        tbl = self._table(table_base)
        while True:
            resp = tbl.query(**kwargs)
            yield from resp.get("Items", [])
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return
            kwargs["ExclusiveStartKey"] = last_key

    def _get(self, table_base: str, pk: str, sk: str) -> dict[str, Any] | None:
        try:
            resp = self._table(table_base).get_item(Key={"PK": pk, "SK": sk})
        except ClientError as exc:
            raise StoreError(f"DynamoDB get failed for {pk}/{sk}: {exc}") from exc
        item = resp.get("Item")
        return _strip_keys(item) if item else None

    def _transact(self, items: list[dict[str, Any]], conflict_message: str) -> None:
        try:
            self._client.transact_write_items(TransactItems=items)
        except ClientError as exc:
            if _is_cancellation(exc):
                raise WriteConflictError(
                    f"{conflict_message}: {exc}", {"reasons": _cancellation_codes(exc)},
                ) from exc
            raise StoreError(f"DynamoDB transaction failed: {exc}") from exc

    # ---- items ----

    def get_item(self, tenant_id: str, item_id: str) -> HomeworkItem | None:
        row = self._get(ITEMS_TABLE, tenant_pk(tenant_id), item_sk(item_id))
        return HomeworkItem.model_validate(row) if row else None

    def get_items(self, tenant_id: str, item_ids: list[str]) -> list[HomeworkItem]:
        items = []
        for item_id in item_ids:
            item = self.get_item(tenant_id, item_id)
            if item is not None:
                items.append(item)
        return items

    def list_items(self, tenant_id: str) -> list[HomeworkItem]:
        rows = self._query_all(
            ITEMS_TABLE,
            KeyConditionExpression=Key("PK").eq(tenant_pk(tenant_id)) & Key("SK").begins_with("ITEM#"),
        )
        return [HomeworkItem.model_validate(_strip_keys(row)) for row in rows]

    def create_items_if_absent(self, items: list[HomeworkItem]) -> int:
        return sum(1 for item in items if self._create_item(item))

    def _create_item(self, item: HomeworkItem) -> bool:
        """Insert one item and its pair guard; False when the pair already exists.

        Cancellations for any other reason (transaction conflicts, throttling)
        are retried, then surfaced as StoreError.
        """
        pk = tenant_pk(item.tenant_id)
        guard = {"PK": pk, "SK": pair_sk(item.session_id, item.student_id), "item_id": item.id}
        row = {"PK": pk, "SK": item_sk(item.id), **_attrs(item)}
        ops = [
            {"Put": {
                "TableName": self._name(ITEMS_TABLE),
                "Item": _typed(guard),
                "ConditionExpression": "attribute_not_exists(PK)",
            }},
            {"Put": {
                "TableName": self._name(ITEMS_TABLE),
                "Item": _typed(row),
                "ConditionExpression": "attribute_not_exists(PK)",
            }},
        ]
        for attempt in range(1, CREATE_ATTEMPTS + 1):
            try:
                self._transact(ops, "Homework item insert cancelled")
            except WriteConflictError as exc:
                reasons = exc.details.get("reasons", [])
                if CONDITION_FAILED in reasons:
                    return False
                if attempt == CREATE_ATTEMPTS:
                    raise StoreError(
                        f"Could not create homework item for session={item.session_id!r} "
                        f"student={item.student_id!r} after {attempt} attempts: {reasons}",
                        {"reasons": reasons},
                    ) from exc
                logger.warning(
                    "Item insert cancelled for session=%s student=%s (attempt %d/%d): %s",
                    item.session_id, item.student_id, attempt, CREATE_ATTEMPTS, reasons,
                )
                time.sleep(CREATE_BACKOFF_SECONDS * attempt)
                continue
            return True
        return False

    def mark_reviewed(self, tenant_id: str, item_ids: list[str], reviewed_at: datetime) -> list[str]:
        tbl = self._table(ITEMS_TABLE)
        updated: list[str] = []
        for item_id in item_ids:
            try:
                tbl.update_item(
                    Key={"PK": tenant_pk(tenant_id), "SK": item_sk(item_id)},
                    UpdateExpression=(
                        "SET #status = :reviewed, reviewed_at = :at, updated_at = :at, "
                        "#rev = #rev + :one"
                    ),
                    ConditionExpression="attribute_exists(PK) AND #status = :submitted",
                    ExpressionAttributeNames={"#status": "status", "#rev": "revision"},
                    ExpressionAttributeValues={
                        ":reviewed": HomeworkStatus.REVIEWED.value,
                        ":submitted": HomeworkStatus.SUBMITTED.value,
                        ":at": reviewed_at.isoformat(),
                        ":one": 1,
                    },
                )
            except ClientError as exc:
                if _is_cancellation(exc):
                    continue
                raise StoreError(f"DynamoDB update failed for item {item_id!r}: {exc}") from exc
            updated.append(item_id)
        return updated

    # ---- files ----

    def latest_file_version(self, tenant_id: str, item_id: str, slot: HomeworkFileSlot) -> int:
        resp = self._table(FILES_TABLE).query(
            KeyConditionExpression=(
                Key("PK").eq(file_partition(tenant_id, item_id))
                & Key("SK").begins_with(slot_prefix(slot))
            ),
            ScanIndexForward=False,
            Limit=1,
        )
        rows = resp.get("Items", [])
        return int(rows[0]["version"]) if rows else 0

    def list_files(self, tenant_id: str, item_id: str) -> list[HomeworkFile]:
        rows = self._query_all(
            FILES_TABLE,
            KeyConditionExpression=Key("PK").eq(file_partition(tenant_id, item_id)),
        )
        return [HomeworkFile.model_validate(_strip_keys(row)) for row in rows]

    def get_file(self, tenant_id: str, file_id: str) -> HomeworkFile | None:
        row = self._get(FILES_TABLE, tenant_pk(tenant_id), file_sk(file_id))
        return HomeworkFile.model_validate(row) if row else None

    def item_ids_with_slot(
        self, tenant_id: str, item_ids: list[str], slot: HomeworkFileSlot
    ) -> set[str]:
        found: set[str] = set()
        tbl = self._table(FILES_TABLE)
        for item_id in dict.fromkeys(item_ids):
            resp = tbl.query(
                KeyConditionExpression=(
                    Key("PK").eq(file_partition(tenant_id, item_id))
                    & Key("SK").begins_with(slot_prefix(slot))
                ),
                Limit=1,
            )
            if resp.get("Items"):
                found.add(item_id)
        return found

    def commit_file_version(
        self,
        file: HomeworkFile,
        expected_revision: int,
        updated_item: HomeworkItem | None = None,
    ) -> None:
        attrs = _attrs(file)
        item_key = {"PK": tenant_pk(file.tenant_id), "SK": item_sk(file.homework_item_id)}
        revision_guard = {
            "ConditionExpression": "#rev = :expected",
            "ExpressionAttributeNames": {"#rev": "revision"},
            "ExpressionAttributeValues": {":expected": _serializer.serialize(expected_revision)},
        }

        ops: list[dict[str, Any]] = [
            {"Put": {
                "TableName": self._name(FILES_TABLE),
                "Item": _typed({
                    "PK": file_partition(file.tenant_id, file.homework_item_id),
                    "SK": version_sk(file.slot, file.version),
                    **attrs,
                }),
                "ConditionExpression": "attribute_not_exists(PK)",
            }},
            {"Put": {
                "TableName": self._name(FILES_TABLE),
                "Item": _typed({"PK": tenant_pk(file.tenant_id), "SK": file_sk(file.id), **attrs}),
                "ConditionExpression": "attribute_not_exists(PK)",
            }},
        ]
        if updated_item is not None:
            ops.append({"Put": {
                "TableName": self._name(ITEMS_TABLE),
                "Item": _typed({**item_key, **_attrs(updated_item)}),
                **revision_guard,
            }})
        else:
            ops.append({"ConditionCheck": {
                "TableName": self._name(ITEMS_TABLE),
                "Key": _typed(item_key),
                **revision_guard,
            }})

        self._transact(
            ops,
            f"Version {file.version} of slot {file.slot} rejected for item {file.homework_item_id!r}",
        )

    def rollback_file_version(
        self, file: HomeworkFile, snapshot: ItemSnapshot, expected_revision: int
    ) -> bool:
        set_parts = ["#status = :status", "#rev = #rev + :one"]
        remove_parts = []
        values: dict[str, Any] = {
            ":status": snapshot.status.value, ":one": 1, ":expected": expected_revision,
        }
        for field in ("assigned_at", "submitted_at"):
            value = getattr(snapshot, field)
            if value is None:
                remove_parts.append(field)
            else:
                set_parts.append(f"{field} = :{field}")
                values[f":{field}"] = value.isoformat()
        expression = "SET " + ", ".join(set_parts)
        if remove_parts:
            expression += " REMOVE " + ", ".join(remove_parts)

        deletes = [
            {"Delete": {
                "TableName": self._name(FILES_TABLE),
                "Key": _typed({
                    "PK": file_partition(file.tenant_id, file.homework_item_id),
                    "SK": version_sk(file.slot, file.version),
                }),
            }},
            {"Delete": {
                "TableName": self._name(FILES_TABLE),
                "Key": _typed({"PK": tenant_pk(file.tenant_id), "SK": file_sk(file.id)}),
            }},
        ]
        restore = {"Update": {
            "TableName": self._name(ITEMS_TABLE),
            "Key": _typed({
                "PK": tenant_pk(file.tenant_id), "SK": item_sk(file.homework_item_id),
            }),
            "UpdateExpression": expression,
            "ConditionExpression": "#rev = :expected",
            "ExpressionAttributeNames": {"#status": "status", "#rev": "revision"},
            "ExpressionAttributeValues": _typed(values),
        }}

        try:
            self._transact(deletes + [restore], f"Rollback of file {file.id!r} rejected")
        except WriteConflictError as exc:
            if CONDITION_FAILED not in exc.details.get("reasons", []):
                raise
            # item moved on since this upload committed; keep its newer state
            self._transact(deletes, f"Removal of file {file.id!r} rejected")
            return False
        return True

    # ---- read-only scheduling data ----

    def get_sessions(self, tenant_id: str, session_ids: list[str]) -> dict[str, SessionRecord]:
        sessions: dict[str, SessionRecord] = {}
        for session_id in dict.fromkeys(session_ids):
            row = self._get(SESSIONS_TABLE, tenant_pk(tenant_id), f"SESSION#{session_id}")
            if row:
                sessions[session_id] = SessionRecord.model_validate(row)
        return sessions

    def list_roster_entries(
        self, tenant_id: str, filters: RosterFilters, limit: int
    ) -> list[RosterEntry]:
        pk = Key("PK").eq(tenant_pk(tenant_id))
        sessions = {
            row["id"]: SessionRecord.model_validate(_strip_keys(row))
            for row in self._query_all(
                SESSIONS_TABLE, KeyConditionExpression=pk & Key("SK").begins_with("SESSION#"),
            )
        }
        pairs = []
        for row in self._query_all(
            SESSIONS_TABLE, KeyConditionExpression=pk & Key("SK").begins_with("ROSTER#"),
        ):
            entry = RosterEntry.model_validate(_strip_keys(row))
            session = sessions.get(entry.session_id)
            if session is not None and roster_matches(entry, session, filters):
                pairs.append((entry, session))
        return order_roster(pairs)[:limit]
