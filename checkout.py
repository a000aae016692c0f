"""
Three-step checkout: customer details, shipping method, payment.

``CheckoutWizard`` keeps the state of all three steps; moving back never
discards anything. ``submit`` produces the single order-creation payload
accepted by ``POST /api/orders``. Card and UPI details are only checked for
shape; no payment gateway is involved and they are never part of the payload.
"""

import re
from enum import IntEnum
from typing import Any, Dict, Optional

from pricing import SHIPPING_RATES, product_quote, shipping_label
from settings import settings

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[0-9]{10}$")
PINCODE_RE = re.compile(r"^[0-9]{6}$")
CARD_RE = re.compile(r"^[0-9]{16}$")
EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$")
CVV_RE = re.compile(r"^[0-9]{3}$")

Errors = Dict[str, str]


class CheckoutValidationError(Exception):
    def __init__(self, errors: Errors):
        self.errors = errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


class Step(IntEnum):
    CUSTOMER = 1
    SHIPPING = 2
    PAYMENT = 3


def _text(data: Dict[str, Any], key: str) -> str:
    return str(data.get(key) or "").strip()


def validate_customer(data: Dict[str, Any]) -> Errors:
    errors: Errors = {}
    address = data.get("address") or {}

    if not _text(data, "name"):
        errors["name"] = "Name is required"
    email = _text(data, "email")
    if not email:
        errors["email"] = "Email is required"
    elif not EMAIL_RE.match(email):
        errors["email"] = "Invalid email format"
    phone = _text(data, "phone")
    if not phone:
        errors["phone"] = "Phone is required"
    elif not PHONE_RE.match(phone):
        errors["phone"] = "Invalid phone number (10 digits)"

    if not _text(address, "street"):
        errors["street"] = "Street address is required"
    if not _text(address, "city"):
        errors["city"] = "City is required"
    if not _text(address, "state"):
        errors["state"] = "State is required"
    pincode = _text(address, "pincode")
    if not pincode:
        errors["pincode"] = "Pincode is required"
    elif not PINCODE_RE.match(pincode):
        errors["pincode"] = "Invalid pincode (6 digits)"
    return errors


def validate_shipping(method: Optional[str]) -> Errors:
    if method not in SHIPPING_RATES:
        return {"shipping_method": "Choose standard, express or next-day shipping"}
    return {}


def validate_payment(data: Dict[str, Any]) -> Errors:
    method = data.get("method")
    if method == "COD":
        return {}
    if method != "Prepaid":
        return {"method": "Payment method must be COD or Prepaid"}

    if _text(data, "upi_id"):
        return {}
    errors: Errors = {}
    if not CARD_RE.match(_text(data, "card_number")):
        errors["card_number"] = "Valid 16-digit card number required"
    if not EXPIRY_RE.match(_text(data, "expiry")):
        errors["expiry"] = "MM/YY format required"
    if not CVV_RE.match(_text(data, "cvv")):
        errors["cvv"] = "3-digit CVV required"
    return errors


class CheckoutWizard:
    def __init__(self):
        self.step = Step.CUSTOMER
        self.customer: Dict[str, Any] = {
            "name": "",
            "email": "",
            "phone": "",
            "address": {"street": "", "city": "", "state": "", "pincode": "", "country": "India", "landmark": ""},
        }
        self.shipping_method = "standard"
        self.payment: Dict[str, Any] = {"method": "COD"}
        self.customer_notes = ""
        self.errors: Errors = {}

    def update_customer(self, data: Dict[str, Any]) -> None:
        address = {**self.customer["address"], **(data.get("address") or {})}
        self.customer = {**self.customer, **data, "address": address}

    def select_shipping(self, method: str) -> None:
        self.shipping_method = method

    def update_payment(self, data: Dict[str, Any]) -> None:
        self.payment = {**self.payment, **data}

    def validate_step(self, step: Step) -> Errors:
        if step == Step.CUSTOMER:
            return validate_customer(self.customer)
        if step == Step.SHIPPING:
            return validate_shipping(self.shipping_method)
        return validate_payment(self.payment)

    def next(self) -> bool:
        """Advance when the current step is valid; errors are kept on ``self.errors``."""
        self.errors = self.validate_step(self.step)
        if self.errors:
            return False
        if self.step < Step.PAYMENT:
            self.step = Step(self.step + 1)
        return True

    def back(self) -> None:
        if self.step > Step.CUSTOMER:
            self.step = Step(self.step - 1)

    def submit(
        self,
        product: Dict[str, Any],
        size: Optional[str] = None,
        style: Optional[str] = None,
        quantity: int = 1,
    ) -> Dict[str, Any]:
        errors: Errors = {}
        for step in Step:
            errors.update(self.validate_step(step))
        if errors:
            self.errors = errors
            raise CheckoutValidationError(errors)

        try:
            price = product_quote(product, size, style, self.shipping_method, quantity)
        except ValueError as e:
            raise CheckoutValidationError({"selection": str(e)})

        method = self.payment["method"]
        address = self.customer["address"]
        return {
            "customer": {
                "name": _text(self.customer, "name"),
                "email": _text(self.customer, "email").lower(),
                "phone": _text(self.customer, "phone"),
                "address": {
                    "street": _text(address, "street"),
                    "city": _text(address, "city"),
                    "state": _text(address, "state"),
                    "pincode": _text(address, "pincode"),
                    "country": _text(address, "country") or "India",
                    "landmark": _text(address, "landmark") or None,
                },
            },
            "items": [
                {
                    "product_id": str(product.get("_id") or product.get("id")),
                    "title": product["title"],
                    "price": float(price.unit_price),
                    "quantity": quantity,
                    "image": product.get("featured_image") or next(iter(product.get("images") or []), ""),
                    "size": size or "",
                    "style": style or "",
                    "sku": product["sku"],
                }
            ],
            "subtotal": float(price.subtotal),
            "shipping_charges": float(price.shipping_cost),
            "tax_amount": float(price.tax_amount),
            "discount_amount": float(price.discount),
            "total_amount": float(price.total_amount),
            "payment": {
                "method": method,
                # Stub: prepaid is treated as captured, there is no gateway.
                "status": "pending" if method == "COD" else "paid",
                "amount": float(price.total_amount),
                "currency": settings.CURRENCY,
            },
            "shipping_method": shipping_label(self.shipping_method),
            "customer_notes": self.customer_notes or None,
        }
