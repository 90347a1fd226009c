"""Subscribers, feedback and saved addresses: append-only records."""

from datetime import datetime, timezone
from typing import List

import structlog

from aggregation import parse_timestamp
from pathstore import PathStore
from schemas import FeedbackIn, ShippingAddress

logger = structlog.get_logger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _newest_first(entries: dict, key: str) -> List[dict]:
    items = [{"id": k, **v} for k, v in (entries or {}).items() if isinstance(v, dict)]
    items.sort(key=lambda e: parse_timestamp(e.get(key) or 0), reverse=True)
    return items


def subscribe(store: PathStore, email: str) -> dict:
    email = email.strip().lower()
    for sid, entry in (store.get("subscribers") or {}).items():
        if isinstance(entry, dict) and (entry.get("email") or "").lower() == email:
            return {"id": sid, **entry, "created": False}
    record = {"email": email, "subscribedAt": _now_iso()}
    sid = store.push("subscribers", record)
    logger.info("subscriber_added", subscriber_id=sid)
    return {"id": sid, **record, "created": True}


def list_subscribers(store: PathStore) -> List[dict]:
    return _newest_first(store.get("subscribers"), "subscribedAt")


def submit_feedback(store: PathStore, feedback: FeedbackIn) -> dict:
    record = {
        "userId": feedback.user_id or "anonymous",
        "email": feedback.email or "anonymous",
        "rating": feedback.rating,
        "comment": feedback.comment,
        "createdAt": _now_iso(),
    }
    fid = store.push("feedback", record)
    logger.info("feedback_received", feedback_id=fid, rating=feedback.rating)
    return {"id": fid, **record}


def list_feedback(store: PathStore) -> List[dict]:
    return _newest_first(store.get("feedback"), "createdAt")


def save_address(store: PathStore, uid: str, address: ShippingAddress) -> dict:
    record = {**address.model_dump(by_alias=True), "createdAt": _now_iso()}
    aid = store.push(f"users/{uid}/addresses", record)
    return {"id": aid, **record}


def list_addresses(store: PathStore, uid: str) -> List[dict]:
    return _newest_first(store.get(f"users/{uid}/addresses"), "createdAt")
