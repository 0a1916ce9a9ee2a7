"""Mongo-backed document store keyed by ``(userId, projectId)``.

Every write bumps a monotonic ``version`` counter. ``save`` only succeeds
against the version it read, so two writers racing on one project cannot
silently overwrite each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from avara.core.exceptions import ConflictError
from avara.core.utils import utcnow_iso

logger = logging.getLogger(__name__)

KEY_FIELDS: tuple[str, ...] = ("userId", "projectId")
SYSTEM_FIELDS: frozenset[str] = frozenset({"userId", "projectId", "version", "createdAt", "updatedAt"})


def _key(user_id: str, project_id: str) -> dict[str, str]:
    return {"userId": user_id, "projectId": project_id}


@dataclass
class DocumentStore:
    """One collection, one document per project."""

    database: Any
    collection_name: str
    _collection: Collection = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._collection = self.database.get_collection(self.collection_name)

    @property
    def collection(self) -> Collection:
        return self._collection

    def ensure_indexes(self) -> None:
        self._collection.create_index(
            [("userId", ASCENDING), ("projectId", ASCENDING)],
            unique=True,
            name="user_project_unique",
        )
        self._collection.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)], name="user_created")

    def get(self, user_id: str, project_id: str) -> dict[str, Any] | None:
        return self._collection.find_one(_key(user_id, project_id), {"_id": 0})

    def upsert(
        self,
        user_id: str,
        project_id: str,
        fields: Mapping[str, Any],
        *,
        on_insert: Mapping[str, Any] | None = None,
        unset: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        """Set `fields` on the project's document, creating it if needed."""
        now = utcnow_iso()
        set_fields = {k: v for k, v in fields.items() if k not in SYSTEM_FIELDS}
        set_fields["updatedAt"] = now

        insert_fields: dict[str, Any] = {"createdAt": now}
        for k, v in (on_insert or {}).items():
            if k not in set_fields and k not in SYSTEM_FIELDS:
                insert_fields[k] = v

        update: dict[str, Any] = {
            "$set": set_fields,
            "$setOnInsert": insert_fields,
            "$inc": {"version": 1},
        }
        unset_fields = {k: "" for k in (unset or []) if k not in set_fields}
        if unset_fields:
            update["$unset"] = unset_fields

        self._collection.update_one(_key(user_id, project_id), update, upsert=True)
        doc = self.get(user_id, project_id)
        return doc or {}

    def save(
        self,
        doc: Mapping[str, Any],
        *,
        unset: Iterable[str] | None = None,
        conditions: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Write back a document previously returned by `get`.

        Raises ConflictError when the stored version moved on since the read,
        or when extra `conditions` no longer hold.
        """
        user_id = doc["userId"]
        project_id = doc["projectId"]
        expected = doc.get("version")

        fields = {k: v for k, v in doc.items() if k not in SYSTEM_FIELDS and k != "_id"}
        fields["updatedAt"] = utcnow_iso()
        update: dict[str, Any] = {"$set": fields, "$inc": {"version": 1}}
        unset_fields = {k: "" for k in (unset or []) if k not in fields}
        if unset_fields:
            update["$unset"] = unset_fields

        query: dict[str, Any] = _key(user_id, project_id)
        query["version"] = expected
        query.update(conditions or {})
        result = self._collection.update_one(query, update)
        if result.matched_count == 0:
            logger.info(
                "Stale write rejected collection=%s project=%s version=%s",
                self.collection_name,
                project_id,
                expected,
            )
            raise ConflictError(
                "Document was modified concurrently; reload and retry",
                details={"projectId": project_id, "version": expected},
            )
        return self.get(user_id, project_id) or {}

    def update_fields(
        self,
        user_id: str,
        project_id: str,
        fields: Mapping[str, Any],
        *,
        conditions: Mapping[str, Any] | None = None,
    ) -> bool:
        """Partial update of an existing document. Returns False if nothing matched."""
        query: dict[str, Any] = _key(user_id, project_id)
        query.update(conditions or {})
        set_fields = dict(fields)
        set_fields["updatedAt"] = utcnow_iso()
        result = self._collection.update_one(query, {"$set": set_fields, "$inc": {"version": 1}})
        return result.matched_count > 0

    def list_for_user(self, user_id: str) -> list[dict[str, Any]]:
        cursor = self._collection.find({"userId": user_id}, {"_id": 0}).sort([("createdAt", DESCENDING)])
        return list(cursor)


__all__ = ["DocumentStore", "KEY_FIELDS", "SYSTEM_FIELDS"]
