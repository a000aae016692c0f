"""
Price computation for product selections and checkout totals.

All amounts are ``Decimal`` values quantized to two places. Callers convert
to ``float`` only when writing to MongoDB.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, NamedTuple, Optional, Union

Number = Union[int, float, str, Decimal]

CENT = Decimal("0.01")
TAX_RATE = Decimal("0.18")

SHIPPING_RATES: Dict[str, Decimal] = {
    "standard": Decimal("0"),
    "express": Decimal("99"),
    "next-day": Decimal("199"),
}

SHIPPING_LABELS: Dict[str, str] = {
    "standard": "Standard",
    "express": "Express",
    "next-day": "Next Day",
}


class PriceQuote(NamedTuple):
    unit_price: Decimal
    subtotal: Decimal
    discount: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    def as_dict(self) -> Dict[str, float]:
        return {k: float(v) for k, v in self._asdict().items()}


def to_money(value: Optional[Number]) -> Decimal:
    if value is None:
        return Decimal("0.00")
    # str() keeps floats like 98.82 from dragging binary noise into Decimal
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def has_offer(base_price: Number, offer_price: Optional[Number]) -> bool:
    return offer_price is not None and to_money(offer_price) < to_money(base_price)


def effective_price(base_price: Number, offer_price: Optional[Number] = None) -> Decimal:
    """Offer price when it undercuts the base price, otherwise the base price."""
    if has_offer(base_price, offer_price):
        return to_money(offer_price)
    return to_money(base_price)


def discount_percentage(base_price: Number, offer_price: Optional[Number]) -> int:
    if not has_offer(base_price, offer_price) or to_money(base_price) == 0:
        return 0
    base = to_money(base_price)
    pct = (base - to_money(offer_price)) / base * 100
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def shipping_cost(method: str) -> Decimal:
    try:
        return SHIPPING_RATES[method]
    except KeyError:
        raise ValueError(f"Unknown shipping method: {method}")


def shipping_label(method: str) -> str:
    shipping_cost(method)
    return SHIPPING_LABELS[method]


def quote(
    base_price: Number,
    offer_price: Optional[Number] = None,
    additional_price: Optional[Number] = None,
    shipping_method: str = "standard",
    quantity: int = 1,
) -> PriceQuote:
    """
    Price a selection.

    Tax is charged on goods plus shipping. ``subtotal`` is the undiscounted
    line value and ``discount`` the offer saving, so that
    ``total == subtotal + shipping + tax - discount``.
    """
    if quantity < 1:
        raise ValueError("quantity must be at least 1")
    extra = to_money(additional_price)
    unit = effective_price(base_price, offer_price) + extra
    list_unit = to_money(base_price) + extra
    goods = unit * quantity
    ship = shipping_cost(shipping_method)
    tax = ((goods + ship) * TAX_RATE).quantize(CENT, rounding=ROUND_HALF_UP)
    discount = (list_unit - unit) * quantity
    return PriceQuote(
        unit_price=unit,
        subtotal=list_unit * quantity,
        discount=discount,
        shipping_cost=ship,
        tax_amount=tax,
        total_amount=goods + ship + tax,
    )


def _find_option(options, key: str, label: str, kind: str) -> Dict[str, Any]:
    for option in options or []:
        if option.get(key) == label:
            return option
    raise ValueError(f"Unknown {kind}: {label}")


def product_quote(
    product: Dict[str, Any],
    size: Optional[str] = None,
    style: Optional[str] = None,
    shipping_method: str = "standard",
    quantity: int = 1,
) -> PriceQuote:
    """Quote a stored product; a chosen size carries its own price and offer."""
    base = product.get("base_price", 0)
    offer = product.get("offer_price")
    if size:
        option = _find_option(product.get("sizes"), "size", size, "size")
        base = option.get("price", base)
        offer = option.get("offer_price")
    additional = None
    if style:
        additional = _find_option(product.get("styles"), "name", style, "style").get("additional_price")
    return quote(base, offer, additional, shipping_method, quantity)


def order_total(subtotal: Number, shipping: Number, tax: Number, discount: Number = 0) -> Decimal:
    return to_money(subtotal) + to_money(shipping) + to_money(tax) - to_money(discount)
