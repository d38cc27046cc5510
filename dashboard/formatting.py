from datetime import date
from datetime import datetime
from decimal import ROUND_HALF_UP
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.utils.dateparse import parse_datetime

from dashboard.billing import to_decimal


MONTHS_ID = [
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
]

CURRENCY_SYMBOLS = {"IDR": "Rp"}


def _group_thousands(digits: str) -> str:
    parts: list[str] = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return ".".join(parts)


def format_currency(amount: Any, currency: str | None = None) -> str:
    """Indonesian style amount, e.g. ``Rp 1.250.000`` or ``Rp 12.345,5``."""
    currency = (currency or getattr(settings, "DASHBOARD_CURRENCY", "IDR") or "IDR").upper()
    value = to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.2f}".partition(".")
    fraction = fraction.rstrip("0")
    text = _group_thousands(whole)
    if fraction:
        text = f"{text},{fraction}"
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    return f"{sign}{symbol} {text}"


def format_estimate(amount: Any, currency: str | None = None) -> str:
    if to_decimal(amount) == 0:
        return "-"
    return format_currency(amount, currency)


def _as_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        dt = parse_datetime(text)
        if dt is not None:
            return _as_date(dt)
        return parse_date(text[:10])
    except ValueError:
        return None


def format_date(value: Any) -> str:
    d = _as_date(value)
    if not d:
        return ""
    return f"{d.day}/{d.month}/{d.year}"


def format_long_date(value: Any) -> str:
    d = _as_date(value)
    if not d:
        return ""
    return f"{d.day} {MONTHS_ID[d.month - 1]} {d.year}"


def format_datetime(value: Any) -> str:
    if isinstance(value, datetime):
        dt: datetime | None = value
    else:
        try:
            dt = parse_datetime(str(value or "").strip())
        except ValueError:
            dt = None
    if dt is None:
        return format_date(value)
    if timezone.is_aware(dt):
        dt = timezone.localtime(dt)
    return f"{dt.day}/{dt.month}/{dt.year} {dt.hour:02d}.{dt.minute:02d}"


def parse_tags(raw: Any) -> list[str]:
    if isinstance(raw, list):
        items = [str(x) for x in raw if x is not None]
    else:
        items = str(raw or "").split(",")
    out: list[str] = []
    for item in items:
        tag = item.strip()
        if tag and tag not in out:
            out.append(tag)
    return out


def tags_text(tags: Any) -> str:
    return ", ".join(parse_tags(tags))
