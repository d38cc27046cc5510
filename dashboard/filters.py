from typing import Any
from typing import Iterable


CONTACT_SEARCH_FIELDS = ("client_name", "client_email", "client_company")
QUOTATION_SEARCH_FIELDS = ("client_name", "quotation_number", "client_company")
INVOICE_SEARCH_FIELDS = ("client_name", "invoice_number", "client_company")
SUBMISSION_SEARCH_FIELDS = ("name", "email", "company", "message")
PROJECT_SEARCH_FIELDS = ("title", "description", "client", "category")
TESTIMONIAL_SEARCH_FIELDS = ("client_name", "client_company", "testimonial_text")

ALL = "all"


def search_rows(rows: Iterable[dict[str, Any]], query: str | None, fields: Iterable[str]) -> list[dict[str, Any]]:
    """Rows where any of ``fields`` contains ``query``, ignoring case."""
    rows = list(rows)
    needle = str(query or "").casefold()
    if not needle:
        return rows
    fields = tuple(fields)
    out: list[dict[str, Any]] = []
    for row in rows:
        for field in fields:
            value = row.get(field)
            if value is not None and needle in str(value).casefold():
                out.append(row)
                break
    return out


def filter_status(rows: Iterable[dict[str, Any]], status: str | None, field: str = "status") -> list[dict[str, Any]]:
    rows = list(rows)
    wanted = str(status or "").strip()
    if not wanted or wanted == ALL:
        return rows
    return [row for row in rows if row.get(field) == wanted]


def filter_rows(
    rows: Iterable[dict[str, Any]],
    *,
    query: str | None = None,
    fields: Iterable[str] = (),
    status: str | None = None,
    status_field: str = "status",
) -> list[dict[str, Any]]:
    return search_rows(filter_status(rows, status, status_field), query, fields)


def count_by(rows: Iterable[dict[str, Any]], field: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for row in rows:
        key = str(row.get(field) or "")
        counts[key] = counts.get(key, 0) + 1
    return counts
