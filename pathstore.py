"""
Path-addressed storage over MongoDB

Records are addressed by slash paths such as `users/{uid}/orders/{id}`.
The first segment names the collection, the second the document `_id`,
and any remaining segments a dotted field inside that document:

    products/p1                 -> products  {_id: "p1"}
    allOrders/LATHI_17          -> allOrders {_id: "LATHI_17"}
    users/u1/orders/LATHI_17    -> users     {_id: "u1"}.orders.LATHI_17
"""

from contextlib import contextmanager
from typing import Any, Dict, Optional, Tuple

import structlog
from bson import ObjectId
from pymongo.errors import PyMongoError

import config
from errors import InvalidInput, StaleWrite, StorageFailure

logger = structlog.get_logger(__name__)


def split_path(path: str) -> Tuple[str, Optional[str], Optional[str]]:
    parts = [p for p in str(path).strip("/").split("/") if p]
    if not parts:
        raise InvalidInput("Empty storage path")
    for part in parts:
        if "." in part or part.startswith("$"):
            raise InvalidInput(f"Invalid storage path segment: {part}")
    collection = parts[0]
    doc_id = parts[1] if len(parts) > 1 else None
    field = ".".join(parts[2:]) or None
    return collection, doc_id, field


def new_key() -> str:
    return str(ObjectId())


def _strip_id(doc: dict) -> dict:
    d = dict(doc)
    d.pop("_id", None)
    return d


def _walk(doc: Any, field: str) -> Any:
    node = doc
    for part in field.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


@contextmanager
def _storage_errors(op: str, path: str):
    try:
        yield
    except PyMongoError as e:
        logger.error("storage_failed", op=op, path=path, error=str(e))
        raise StorageFailure() from e


class PathStore:
    def __init__(self, database, use_transactions: bool = None):
        self.db = database
        self.use_transactions = config.MONGO_TRANSACTIONS if use_transactions is None else use_transactions

    def get(self, path: str) -> Any:
        collection, doc_id, field = split_path(path)
        with _storage_errors("get", path):
            if doc_id is None:
                return {str(d["_id"]): _strip_id(d) for d in self.db[collection].find()}
            doc = self.db[collection].find_one({"_id": doc_id})
        if doc is None:
            return None
        if field is None:
            return _strip_id(doc)
        return _walk(doc, field)

    def set(self, path: str, value: Any) -> None:
        collection, doc_id, field = split_path(path)
        if doc_id is None:
            raise InvalidInput("Cannot overwrite a whole collection")
        with _storage_errors("set", path):
            if field is None:
                if not isinstance(value, dict):
                    raise InvalidInput("Document value must be an object")
                self.db[collection].replace_one({"_id": doc_id}, {**value, "_id": doc_id}, upsert=True)
            else:
                self.db[collection].update_one({"_id": doc_id}, {"$set": {field: value}}, upsert=True)

    def push(self, path: str, value: Any) -> str:
        key = new_key()
        self.set(f"{path.rstrip('/')}/{key}", value)
        return key

    def update(self, path: str, fields: Dict[str, Any], expected_version: int = None, versioned: bool = False) -> None:
        """Merge `fields` into the record at `path`.

        With `versioned` the record's `version` is incremented. Passing
        `expected_version` makes the write conditional on the stored version
        (missing counts as 0) and raises StaleWrite when it no longer matches.
        """
        collection, doc_id, field = split_path(path)
        if doc_id is None:
            raise InvalidInput("Cannot update a whole collection")
        prefix = f"{field}." if field else ""
        version_key = prefix + "version"

        ops: Dict[str, Any] = {}
        values = {prefix + k: v for k, v in fields.items() if k != "version"}
        if values:
            ops["$set"] = values
        query: Dict[str, Any] = {"_id": doc_id}
        if versioned or expected_version is not None:
            ops["$inc"] = {version_key: 1}
        if not ops:
            return
        if expected_version is not None:
            if expected_version == 0:
                query["$or"] = [{version_key: {"$exists": False}}, {version_key: 0}]
            else:
                query[version_key] = expected_version

        with _storage_errors("update", path):
            result = self.db[collection].update_one(query, ops, upsert=expected_version is None)
        if expected_version is not None and result.matched_count == 0:
            logger.warning("conditional_write_lost", path=path, expected_version=expected_version)
            raise StaleWrite()

    def remove(self, path: str) -> bool:
        collection, doc_id, field = split_path(path)
        if doc_id is None:
            raise InvalidInput("Cannot remove a whole collection")
        with _storage_errors("remove", path):
            if field is None:
                return self.db[collection].delete_one({"_id": doc_id}).deleted_count > 0
            result = self.db[collection].update_one({"_id": doc_id}, {"$unset": {field: ""}})
            return result.modified_count > 0

    def update_paths(self, updates: Dict[str, Any]) -> None:
        """Apply several path writes as one batch.

        Writes are grouped per document. When transactions are enabled the
        whole batch commits or aborts together. Without them each document is
        written on its own, so a failure part way leaves the earlier documents
        written; those are logged as `batch_partially_applied`. A failed batch
        is reported to the caller as StorageFailure and never retried.
        """
        groups: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for path, value in updates.items():
            collection, doc_id, field = split_path(path)
            if doc_id is None:
                raise InvalidInput("Cannot update a whole collection")
            target = groups.setdefault((collection, doc_id), {})
            if field is None:
                if not isinstance(value, dict):
                    raise InvalidInput("Document value must be an object")
                target.update(value)
            else:
                target[field] = value

        written = []

        def apply(session=None):
            kwargs = {"session": session} if session is not None else {}
            for (collection, doc_id), fields in groups.items():
                self.db[collection].update_one({"_id": doc_id}, {"$set": fields}, upsert=True, **kwargs)
                written.append(f"{collection}/{doc_id}")

        try:
            with _storage_errors("update_paths", ",".join(updates)):
                if self.use_transactions:
                    with self.db.client.start_session() as session:
                        session.with_transaction(apply)
                else:
                    apply()
        except StorageFailure:
            if written and not self.use_transactions:
                pending = [f"{c}/{d}" for c, d in groups if f"{c}/{d}" not in written]
                logger.error("batch_partially_applied", written=written, pending=pending)
            raise
