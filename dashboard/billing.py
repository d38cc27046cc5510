import random
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from decimal import InvalidOperation
from typing import Any
from typing import Iterable

from dashboard.models import DEFAULT_TAX_PERCENTAGE


class BillingError(ValueError):
    def __init__(self, code: str, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message
        self.details = details or {}


@dataclass(frozen=True)
class LineItem:
    item_name: str
    description: str
    quantity: Decimal
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price

    def as_row(self, parent_field: str, parent_id: Any) -> dict[str, Any]:
        return {
            parent_field: parent_id,
            "item_name": self.item_name,
            "description": self.description,
            "quantity": to_number(self.quantity),
            "unit_price": to_number(self.unit_price),
            "total": to_number(self.total),
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "item_name": self.item_name,
            "description": self.description,
            "quantity": to_number(self.quantity),
            "unit_price": to_number(self.unit_price),
            "total": to_number(self.total),
        }


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {
            "subtotal": to_number(self.subtotal),
            "tax_amount": to_number(self.tax_amount),
            "total": to_number(self.total),
        }


def to_decimal(value: Any, default: Decimal | None = Decimal("0")) -> Decimal | None:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    if not d.is_finite():
        return default
    return d


def to_number(value: Decimal | int | float | None) -> int | float:
    if value is None:
        return 0
    d = value if isinstance(value, Decimal) else to_decimal(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)


def clean_items(raw: Any) -> list[LineItem]:
    if not isinstance(raw, list):
        return []
    out: list[LineItem] = []
    for it in raw:
        if not isinstance(it, dict):
            continue
        out.append(
            LineItem(
                item_name=str(it.get("item_name") or "").strip(),
                description=str(it.get("description") or "").strip(),
                quantity=to_decimal(it.get("quantity"), Decimal("1")),
                unit_price=to_decimal(it.get("unit_price")),
            )
        )
    return out[:200]


def validate_items(items: list[LineItem]) -> None:
    if not items:
        raise BillingError("invalid_items", "Tambahkan minimal satu item.")
    for idx, item in enumerate(items):
        if not item.item_name or item.unit_price <= 0:
            raise BillingError(
                "invalid_items",
                "Semua item harus memiliki nama dan harga yang valid.",
                {"index": idx},
            )
        if item.quantity <= 0:
            raise BillingError(
                "invalid_items",
                "Jumlah item harus lebih dari nol.",
                {"index": idx},
            )


def compute_totals(items: Iterable[LineItem], tax_percentage: Decimal | int | float) -> Totals:
    pct = tax_percentage if isinstance(tax_percentage, Decimal) else to_decimal(tax_percentage)
    subtotal = sum((item.total for item in items), Decimal("0"))
    tax_amount = subtotal * pct / Decimal(100)
    return Totals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount)


def parse_tax_percentage(raw: Any, default: int = DEFAULT_TAX_PERCENTAGE) -> Decimal:
    if raw is None or raw == "":
        return Decimal(default)
    if isinstance(raw, bool):
        raise BillingError("invalid_tax_percentage")
    try:
        pct = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        raise BillingError("invalid_tax_percentage") from None
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise BillingError("invalid_tax_percentage", details={"min": 0, "max": 100})
    return pct


def document_number(prefix: str, today: date | None = None) -> str:
    today = today or date.today()
    suffix = random.randint(0, 999)
    return f"{prefix}-{today.year}{today.month:02d}-{suffix:03d}"
