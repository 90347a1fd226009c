import pytest

from cart import Cart, CartStorage
from pricing import format_inr, parse_price, to_minor_units


@pytest.mark.parametrize("raw, expected", [
    ("₹799", 799),
    ("₹1,598", 1598),
    ("Rs. 2,397/-", 2397),
    ("799.50", 79950),
    ("", 0),
    ("free", 0),
    (None, 0),
    (450, 450),
])
def test_parse_price_strips_non_digits(raw, expected):
    assert parse_price(raw) == expected


def test_format_inr_uses_indian_grouping():
    assert format_inr(799) == "₹799"
    assert format_inr(2397) == "₹2,397"
    assert format_inr(123456) == "₹1,23,456"
    assert format_inr(12345678) == "₹1,23,45,678"


def test_minor_units():
    assert to_minor_units(2397) == 239700


def test_same_product_and_size_merges_into_one_line():
    cart = Cart()
    product = {"id": "1", "name": "White Kurta", "price": "₹799", "images": ["/a.jpg"]}
    cart.add(product, "M", 2)
    cart.add(product, "M", 1)

    assert len(cart.lines) == 1
    assert cart.lines[0].quantity == 3
    assert cart.total() == 2397
    assert cart.count() == 3
    assert cart.lines[0].image == "/a.jpg"


def test_different_size_is_a_separate_line():
    cart = Cart()
    product = {"id": "1", "name": "White Kurta", "price": "₹799"}
    cart.add(product, "M", 1)
    cart.add(product, "L", 1)
    assert [l.size for l in cart.lines] == ["M", "L"]
    assert cart.total() == 1598


def test_total_sums_price_times_quantity():
    cart = Cart([
        {"id": "1", "size": "M", "quantity": 2, "price": "₹799"},
        {"id": "2", "size": "S", "quantity": 1, "price": "₹1,299"},
        {"id": "3", "size": "L", "quantity": 3, "price": 100},
    ])
    assert cart.total() == 799 * 2 + 1299 + 300


def test_update_quantity_ignores_values_below_one():
    cart = Cart([{"id": "1", "size": "M", "quantity": 2, "price": "₹10"}])
    cart.update_quantity("1", "M", 0)
    assert cart.lines[0].quantity == 2
    cart.update_quantity("1", "M", 5)
    assert cart.lines[0].quantity == 5


def test_remove_and_clear():
    cart = Cart([
        {"id": "1", "size": "M", "quantity": 1, "price": "₹10"},
        {"id": "1", "size": "L", "quantity": 1, "price": "₹10"},
    ])
    cart.remove("1", "M")
    assert [(l.id, l.size) for l in cart.lines] == [("1", "L")]
    cart.clear()
    assert cart.count() == 0
    assert cart.total() == 0


def test_add_floors_quantity_at_one():
    cart = Cart()
    cart.add({"id": "1", "price": "₹10"}, "M", 0)
    assert cart.lines[0].quantity == 1


def test_cart_storage_persists_between_loads(tmp_path):
    storage = CartStorage(tmp_path / "carts" / "cart.json")
    assert storage.load().lines == []

    cart = Cart()
    cart.add({"id": "1", "name": "Kurta", "price": "₹799"}, "M", 2)
    storage.save(cart)

    restored = storage.load()
    assert restored.total() == 1598
    assert restored.lines[0].name == "Kurta"


def test_from_json_rejects_non_list():
    with pytest.raises(ValueError):
        Cart.from_json('{"id": "1"}')
