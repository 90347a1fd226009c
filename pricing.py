import re

_NON_DIGITS = re.compile(r"[^0-9]")


def parse_price(value) -> int:
    """Whole-rupee amount from a display price such as "₹1,598".

    Every non-digit is dropped before parsing, so "799.50" reads as 79950.
    Blank or digit-free strings parse as 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    digits = _NON_DIGITS.sub("", str(value))
    return int(digits) if digits else 0


def format_inr(amount: int) -> str:
    sign = "-" if amount < 0 else ""
    digits = str(abs(int(amount)))
    # Indian grouping: last three digits, then pairs (1,23,456)
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return f"{sign}₹" + ",".join(groups + [tail])


def to_minor_units(amount: int) -> int:
    return int(amount) * 100
