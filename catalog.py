import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import parse_qs, urlparse

import structlog

from errors import InvalidInput, NotFound
from pathstore import PathStore
from schemas import Product, ProductUpdate, ordered_sizes

logger = structlog.get_logger(__name__)

PLACEHOLDER_IMAGE = "/placeholder.svg"

_IMGE_RE = re.compile(r"im\.ge/i/([^\s./]+)")


def normalize_image_url(url: Optional[str]) -> Optional[str]:
    """Turn share-page links from common image hosts into direct image links."""
    if not url:
        return url
    host = urlparse(url).netloc.lower()

    if host.endswith("im.ge") and not host.startswith("i."):
        match = _IMGE_RE.search(url)
        if match:
            return f"https://i.im.ge/{match.group(1)}.jpg"

    if host.endswith("ibb.co") and not host.startswith("i."):
        image_id = url.rstrip("/").split("/")[-1]
        return f"https://i.ibb.co/{image_id}.jpg"

    if host == "drive.google.com":
        file_id = None
        if "/file/d/" in url:
            file_id = url.split("/d/", 1)[1].split("/")[0]
        else:
            file_id = (parse_qs(urlparse(url).query).get("id") or [None])[0]
        if file_id:
            return f"https://drive.google.com/uc?export=view&id={file_id}"

    return url


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_record(data: dict) -> dict:
    if "images" in data and data["images"] is not None:
        data["images"] = [normalize_image_url(u) for u in data["images"]]
    return data


def create_product(store: PathStore, product: Product) -> dict:
    record = _to_record(product.model_dump(by_alias=True))
    now = _now_iso()
    record["createdAt"] = now
    record["updatedAt"] = now
    product_id = store.push("products", record)
    logger.info("product_created", product_id=product_id, name=record["name"])
    return {"id": product_id, **record}


def get_product(store: PathStore, product_id: str) -> dict:
    record = store.get(f"products/{product_id}")
    if record is None:
        raise NotFound("Product not found")
    return {"id": product_id, **record}


def list_products(store: PathStore, category: Optional[str] = None) -> list:
    products = store.get("products") or {}
    items = [{"id": pid, **p} for pid, p in products.items()]
    if category:
        items = [p for p in items if p.get("category") == category]
    items.sort(key=lambda p: p.get("createdAt") or "", reverse=True)
    return items


def update_product(store: PathStore, product_id: str, payload: ProductUpdate) -> dict:
    if store.get(f"products/{product_id}") is None:
        raise NotFound("Product not found")
    updates = payload.model_dump(by_alias=True, exclude_none=True)
    if not updates:
        raise InvalidInput("No fields to update")
    if "sizes" in updates:
        updates["sizes"] = ordered_sizes(updates["sizes"])
    updates = _to_record(updates)
    updates["updatedAt"] = _now_iso()
    store.update(f"products/{product_id}", updates)
    logger.info("product_updated", product_id=product_id, fields=sorted(updates))
    return get_product(store, product_id)


def delete_product(store: PathStore, product_id: str) -> None:
    if not store.remove(f"products/{product_id}"):
        raise NotFound("Product not found")
    logger.info("product_deleted", product_id=product_id)
