import pytest

from errors import InvalidInput, StaleWrite, UnknownStoragePath
from orders import delivery_progress, update_order_status


@pytest.fixture
def seeded(store):
    store.set("allOrders/o1", {"status": "processing", "total": 799})
    store.set("users/u1/orders/o1", {"status": "processing", "total": 799})
    store.writes.clear()
    return store


def test_status_written_only_to_source_path(seeded):
    result = update_order_status(seeded, "o1", "shipped", "users/u1/orders/o1", now=1700000000000)

    assert seeded.get("users/u1/orders/o1/status") == "shipped"
    assert seeded.get("users/u1/orders/o1/updatedAt") == 1700000000000
    assert seeded.get("allOrders/o1/status") == "processing"
    assert seeded.writes == [("update", "users/u1/orders/o1")]
    assert result["version"] == 1
    assert result["sourcePath"] == "users/u1/orders/o1"


def test_delivered_and_cancelled_get_their_own_stamps(seeded):
    update_order_status(seeded, "o1", "delivered", "allOrders/o1", now=10)
    assert seeded.get("allOrders/o1/deliveredAt") == 10
    update_order_status(seeded, "o1", "cancelled", "users/u1/orders/o1", now=20)
    assert seeded.get("users/u1/orders/o1/cancelledAt") == 20


@pytest.mark.parametrize("path", [None, "", "allOrders/o2", "orders/o1/extra", "users/u1/addresses/o1"])
def test_unknown_source_path_is_refused(seeded, path):
    with pytest.raises(UnknownStoragePath):
        update_order_status(seeded, "o1", "shipped", path)
    assert seeded.writes == []


def test_missing_record_at_source_path_is_refused(seeded):
    with pytest.raises(UnknownStoragePath):
        update_order_status(seeded, "o1", "shipped", "orders/o1")
    assert seeded.writes == []


def test_invalid_status(seeded):
    with pytest.raises(InvalidInput):
        update_order_status(seeded, "o1", "lost", "allOrders/o1")


def test_conditional_status_update(seeded):
    update_order_status(seeded, "o1", "shipped", "allOrders/o1", expected_version=0)
    with pytest.raises(StaleWrite):
        update_order_status(seeded, "o1", "cancelled", "allOrders/o1", expected_version=0)
    assert seeded.get("allOrders/o1/status") == "shipped"


def test_delivery_progress_for_shipped_order():
    progress = delivery_progress({"id": "o1", "status": "shipped", "createdAt": "2025-01-01T00:00:00+00:00"})

    assert progress["progress"] == 50
    assert [s["active"] for s in progress["steps"]] == [True, True, False, False]
    assert [s["current"] for s in progress["steps"]] == [False, True, False, False]
    assert progress["estimatedDelivery"] == "2025-01-04"
    assert progress["cancelled"] is False


def test_delivery_progress_for_pending_and_cancelled():
    pending = delivery_progress({"id": "o1"})
    assert pending["status"] == "pending"
    assert pending["progress"] == 0
    assert pending["estimatedDelivery"] is None

    cancelled = delivery_progress({"id": "o1", "status": "cancelled", "createdAt": "2025-01-01T00:00:00Z"})
    assert cancelled["cancelled"] is True
    assert cancelled["estimatedDelivery"] is None
    assert not any(s["active"] for s in cancelled["steps"])


def test_delivery_progress_for_delivered_order():
    progress = delivery_progress({"id": "o1", "status": "delivered", "deliveredAt": 1735689600000})
    assert progress["progress"] == 100
    assert progress["steps"][-1]["current"] is True
    assert progress["deliveredAt"] == 1735689600000


def test_delivery_progress_with_corrupt_timestamp():
    progress = delivery_progress({"id": "o1", "status": "shipped", "createdAt": 1e20})
    assert progress["estimatedDelivery"] is None
    assert progress["progress"] == 50
