"""
Shopping cart

The cart is an explicit object: callers create one, mutate it and persist it
through `to_json` / `from_json` (or a CartStorage). Nothing here touches the
database; the cart is only sent to the server at checkout.
"""

import json
from pathlib import Path
from typing import List, Optional, Union

from pricing import format_inr, parse_price
from schemas import CartLine, CartProduct


class Cart:
    def __init__(self, lines: Optional[List[CartLine]] = None):
        self.lines: List[CartLine] = [CartLine.model_validate(line) for line in (lines or [])]

    def _find(self, product_id: str, size: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.id == product_id and line.size == size:
                return line
        return None

    def add(self, product: Union[CartProduct, dict], size: str, quantity: int = 1) -> CartLine:
        if isinstance(product, dict):
            product = CartProduct.model_validate(product)
        quantity = max(int(quantity), 1)
        line = self._find(product.id, size)
        if line is not None:
            line.quantity += quantity
            return line
        line = CartLine(
            id=product.id,
            size=size,
            quantity=quantity,
            name=product.name,
            price=product.price,
            image=product.images[0] if product.images else None,
        )
        self.lines.append(line)
        return line

    def remove(self, product_id: str, size: str) -> None:
        self.lines = [l for l in self.lines if not (l.id == product_id and l.size == size)]

    def update_quantity(self, product_id: str, size: str, quantity: int) -> None:
        if quantity < 1:
            return
        line = self._find(product_id, size)
        if line is not None:
            line.quantity = quantity

    def clear(self) -> None:
        self.lines = []

    def count(self) -> int:
        return sum(l.quantity for l in self.lines)

    def total(self) -> int:
        return sum(parse_price(l.price) * l.quantity for l in self.lines)

    def quote(self) -> dict:
        total = self.total()
        return {
            "cart": self.to_list(),
            "count": self.count(),
            "total": total,
            "totalDisplay": format_inr(total),
        }

    def to_list(self) -> list:
        return [l.model_dump(by_alias=True) for l in self.lines]

    def to_json(self) -> str:
        return json.dumps(self.to_list(), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "Cart":
        if not raw:
            return cls()
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("Serialized cart must be a list of lines")
        return cls(data)


class CartStorage:
    """Keeps one serialized cart in a file between sessions."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Cart:
        if not self.path.exists():
            return Cart()
        return Cart.from_json(self.path.read_text(encoding="utf-8"))

    def save(self, cart: Cart) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(cart.to_json(), encoding="utf-8")
