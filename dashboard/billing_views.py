import logging
from decimal import Decimal
from typing import Any

from django.http import HttpRequest
from django.http import HttpResponse
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.http import require_GET
from django.views.decorators.http import require_POST

from dashboard.api_views import _api_error
from dashboard.api_views import _api_ok
from dashboard.api_views import _backend
from dashboard.api_views import _backend_error
from dashboard.api_views import _billing_error
from dashboard.api_views import _check_rate_limit
from dashboard.api_views import _now_iso
from dashboard.api_views import _optional_text
from dashboard.api_views import _read_json
from dashboard.api_views import _require_admin
from dashboard.api_views import _settings_map
from dashboard.api_views import _text
from dashboard.api_views import _user_id
from dashboard.backend import Backend
from dashboard.backend import BackendError
from dashboard.backend import eq
from dashboard.backend import is_in
from dashboard.billing import BillingError
from dashboard.billing import clean_items
from dashboard.billing import compute_totals
from dashboard.billing import document_number
from dashboard.billing import parse_tax_percentage
from dashboard.billing import to_decimal
from dashboard.billing import to_number
from dashboard.billing import validate_items
from dashboard.documents import INVOICE
from dashboard.documents import KINDS
from dashboard.documents import QUOTATION
from dashboard.documents import DocumentKind
from dashboard.documents import document_context
from dashboard.documents import document_pdf
from dashboard.documents import render_preview
from dashboard.filters import INVOICE_SEARCH_FIELDS
from dashboard.filters import QUOTATION_SEARCH_FIELDS
from dashboard.filters import filter_rows
from dashboard.formatting import format_currency
from dashboard.mail import send_document
from dashboard.models import InvoiceStatus
from dashboard.models import QuotationStatus
from dashboard.models import SettingCategory
from dashboard.models import Table


logger = logging.getLogger(__name__)

SEARCH_FIELDS = {QUOTATION.name: QUOTATION_SEARCH_FIELDS, INVOICE.name: INVOICE_SEARCH_FIELDS}


def _kind(name: str) -> DocumentKind:
    return KINDS[name]


def _iso_date(data: dict[str, Any], key: str, *, default_today: bool = False) -> str | None:
    raw = _text(data, key)
    if not raw:
        return timezone.localdate().isoformat() if default_today else None
    try:
        parsed = parse_date(raw[:10])
    except ValueError:
        parsed = None
    if not parsed:
        raise BillingError("invalid_date", details={"field": key})
    return parsed.isoformat()


def _document_values(kind: DocumentKind, data: dict[str, Any]) -> tuple[dict[str, Any], list[Any]]:
    """Validated header values and cleaned items for a create or update."""
    client_name = _text(data, "client_name")
    client_email = _text(data, "client_email")
    if not client_name or not client_email:
        raise BillingError("missing_fields", "Nama dan email klien harus diisi.")
    items = clean_items(data.get("items"))
    validate_items(items)
    pct = parse_tax_percentage(data.get("tax_percentage"))
    totals = compute_totals(items, pct)

    if "terms_conditions" in data:
        terms = _optional_text(data, "terms_conditions")
    else:
        terms = kind.default_terms

    header: dict[str, Any] = {
        "lead_id": _optional_text(data, "lead_id"),
        "client_name": client_name,
        "client_email": client_email,
        "client_company": _optional_text(data, "client_company"),
        "client_address": _optional_text(data, "client_address"),
        kind.date_field: _iso_date(data, kind.date_field, default_today=True),
        kind.second_date_field: _iso_date(data, kind.second_date_field),
        "subtotal": to_number(totals.subtotal),
        "tax_percentage": to_number(pct),
        "tax_amount": to_number(totals.tax_amount),
        "total_amount": to_number(totals.total),
        "status": kind.initial_status,
        "notes": _optional_text(data, "notes"),
        "terms_conditions": terms,
        "updated_at": _now_iso(),
    }
    if kind is INVOICE:
        header["quotation_id"] = _optional_text(data, "quotation_id")
    return header, items


def _load(backend: Backend, kind: DocumentKind, doc_id: str, user_id: str) -> tuple[dict[str, Any] | None, list[dict[str, Any]]]:
    header = backend.first(kind.table, filters=[eq("id", doc_id), eq("user_id", user_id)])
    if not header:
        return None, []
    items = backend.select(kind.items_table, filters=[eq(kind.parent_field, doc_id)])
    return header, items


def _stats(kind: DocumentKind, rows: list[dict[str, Any]]) -> dict[str, Any]:
    if kind is QUOTATION:
        value = sum((to_decimal(r.get("total_amount")) for r in rows), Decimal("0"))
        return {
            "total": len(rows),
            "sent": sum(1 for r in rows if r.get("status") == QuotationStatus.SENT),
            "accepted": sum(1 for r in rows if r.get("status") == QuotationStatus.ACCEPTED),
            "totalValue": to_number(value),
            "totalValueDisplay": format_currency(value),
        }
    paid = [r for r in rows if r.get("status") == InvoiceStatus.PAID]
    revenue = sum((to_decimal(r.get("total_amount")) for r in paid), Decimal("0"))
    return {
        "total": len(rows),
        "unpaid": sum(1 for r in rows if r.get("status") == InvoiceStatus.UNPAID),
        "paid": len(paid),
        "paidRevenue": to_number(revenue),
        "paidRevenueDisplay": format_currency(revenue),
    }


@require_GET
def admin_documents(request: HttpRequest, kind: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    doc_kind = _kind(kind)
    try:
        rows = _backend(request).select(
            doc_kind.table,
            filters=[eq("user_id", _user_id(request))],
            order="created_at",
            descending=True,
        )
    except BackendError as exc:
        return _backend_error(exc)
    items = filter_rows(
        rows,
        query=request.GET.get("q"),
        fields=SEARCH_FIELDS[doc_kind.name],
        status=request.GET.get("status"),
    )
    return _api_ok(
        {
            "items": items,
            "stats": _stats(doc_kind, rows),
            "statuses": [{"value": v, "label": str(label)} for v, label in doc_kind.statuses.choices],
        }
    )


@require_GET
def admin_document_detail(request: HttpRequest, kind: str, doc_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    doc_kind = _kind(kind)
    try:
        header, items = _load(_backend(request), doc_kind, doc_id, _user_id(request))
    except BackendError as exc:
        return _backend_error(exc)
    if not header:
        return _api_error("not_found", status=404)
    return _api_ok({"item": header, "items": items})


@require_POST
def admin_document_totals(request: HttpRequest, kind: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    data = _read_json(request)
    try:
        pct = parse_tax_percentage(data.get("tax_percentage"))
    except BillingError as exc:
        return _billing_error(exc)
    items = clean_items(data.get("items"))
    totals = compute_totals(items, pct)
    return _api_ok(
        {
            **totals.as_dict(),
            "tax_percentage": to_number(pct),
            "items": [it.as_dict() for it in items],
            "display": {
                "subtotal": format_currency(totals.subtotal),
                "tax_amount": format_currency(totals.tax_amount),
                "total": format_currency(totals.total),
            },
        }
    )


@require_GET
def admin_billing_prefill(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    backend = _backend(request)
    uid = _user_id(request)
    lead_id = str(request.GET.get("leadId") or "").strip()
    quotation_id = str(request.GET.get("quotationId") or "").strip()
    out: dict[str, Any] = {}
    try:
        if lead_id:
            lead = backend.first(Table.CONTACTS, filters=[eq("id", lead_id), eq("admin_user_id", uid)])
            if not lead:
                return _api_error("lead_not_found", status=404)
            out.update(
                {
                    "lead_id": lead_id,
                    "client_name": lead.get("client_name") or "",
                    "client_email": lead.get("client_email") or "",
                    "client_company": lead.get("client_company") or "",
                }
            )
        if quotation_id:
            quotation, items = _load(backend, QUOTATION, quotation_id, uid)
            if not quotation:
                return _api_error("quotation_not_found", status=404)
            out.update(
                {
                    "quotation_id": quotation_id,
                    "client_name": quotation.get("client_name") or "",
                    "client_email": quotation.get("client_email") or "",
                    "client_company": quotation.get("client_company") or "",
                }
            )
            if items:
                out["items"] = [
                    {
                        "item_name": it.get("item_name") or "",
                        "description": it.get("description") or "",
                        "quantity": it.get("quantity"),
                        "unit_price": it.get("unit_price"),
                    }
                    for it in items
                ]
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"prefill": out})


def _write_items(backend: Backend, kind: DocumentKind, doc_id: str, items: list[Any]) -> list[dict[str, Any]]:
    return backend.insert(kind.items_table, [it.as_row(kind.parent_field, doc_id) for it in items])


def _undo(label: str, step: Any, **context: Any) -> None:
    """Run one rollback step; a failure is logged and the original error is kept."""
    try:
        step()
    except BackendError as exc:
        logger.error("Rollback failed", extra={**context, "step": label, "error": exc.message})


@require_POST
def admin_document_create(request: HttpRequest, kind: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    doc_kind = _kind(kind)
    try:
        header, items = _document_values(doc_kind, _read_json(request))
    except BillingError as exc:
        return _billing_error(exc)
    header["user_id"] = _user_id(request)
    header[doc_kind.number_field] = document_number(doc_kind.number_prefix)
    backend = _backend(request)
    try:
        created = backend.insert(doc_kind.table, header)
    except BackendError as exc:
        return _backend_error(exc)
    if not created:
        return _api_error("backend_error", status=502)
    doc_id = str(created[0]["id"])
    try:
        _write_items(backend, doc_kind, doc_id, items)
    except BackendError as exc:
        _undo(
            "orphan header",
            lambda: backend.delete(doc_kind.table, filters=[eq("id", doc_id)]),
            documentId=doc_id,
        )
        return _backend_error(exc)
    return _api_ok({"item": created[0], "items": [it.as_dict() for it in items]})


@require_POST
def admin_document_update(request: HttpRequest, kind: str, doc_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    doc_kind = _kind(kind)
    try:
        header, items = _document_values(doc_kind, _read_json(request))
    except BillingError as exc:
        return _billing_error(exc)
    backend = _backend(request)
    uid = _user_id(request)
    owned = [eq("id", doc_id), eq("user_id", uid)]
    try:
        previous, old_items = _load(backend, doc_kind, doc_id, uid)
    except BackendError as exc:
        return _backend_error(exc)
    if not previous:
        return _api_error("not_found", status=404)
    old_ids = [str(r["id"]) for r in old_items]

    # New items go in first, the header follows, the old items leave last.
    try:
        new_ids = [str(r["id"]) for r in _write_items(backend, doc_kind, doc_id, items)]
    except BackendError as exc:
        return _backend_error(exc)
    def drop_new() -> None:
        backend.delete(doc_kind.items_table, filters=[is_in("id", new_ids)])

    try:
        updated = backend.update(doc_kind.table, header, filters=owned)
    except BackendError as exc:
        _undo("new items", drop_new, documentId=doc_id)
        return _backend_error(exc)
    if not updated:
        _undo("new items", drop_new, documentId=doc_id)
        return _api_error("not_found", status=404)
    try:
        if old_ids:
            backend.delete(doc_kind.items_table, filters=[is_in("id", old_ids)])
    except BackendError as exc:
        restore = {k: previous.get(k) for k in header}
        _undo("header", lambda: backend.update(doc_kind.table, restore, filters=owned), documentId=doc_id)
        _undo("new items", drop_new, documentId=doc_id)
        return _backend_error(exc)
    return _api_ok({"item": updated[0], "items": [it.as_dict() for it in items]})


@require_POST
def admin_document_status(request: HttpRequest, kind: str, doc_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    doc_kind = _kind(kind)
    status = _text(_read_json(request), "status")
    if status not in doc_kind.statuses.values:
        return _api_error("invalid_status", status=400)
    try:
        rows = _backend(request).update(
            doc_kind.table,
            {"status": status, "updated_at": _now_iso()},
            filters=[eq("id", doc_id), eq("user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_document_delete(request: HttpRequest, kind: str, doc_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    doc_kind = _kind(kind)
    backend = _backend(request)
    uid = _user_id(request)
    try:
        if not backend.first(doc_kind.table, columns="id", filters=[eq("id", doc_id), eq("user_id", uid)]):
            return _api_error("not_found", status=404)
        backend.delete(doc_kind.items_table, filters=[eq(doc_kind.parent_field, doc_id)])
        backend.delete(doc_kind.table, filters=[eq("id", doc_id), eq("user_id", uid)])
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok()


def _context_for(request: HttpRequest, doc_kind: DocumentKind, doc_id: str) -> dict[str, Any] | None:
    backend = _backend(request)
    uid = _user_id(request)
    header, items = _load(backend, doc_kind, doc_id, uid)
    if not header:
        return None
    brand = _settings_map(backend, uid, SettingCategory.BRAND)
    return document_context(doc_kind, header, items, brand)


@require_GET
def admin_document_preview(request: HttpRequest, kind: str, doc_id: str) -> HttpResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        context = _context_for(request, _kind(kind), doc_id)
    except BackendError as exc:
        return _backend_error(exc)
    if not context:
        return _api_error("not_found", status=404)
    return HttpResponse(render_preview(context), content_type="text/html; charset=utf-8")


@require_POST
def admin_document_pdf(request: HttpRequest, kind: str, doc_id: str) -> HttpResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    doc_kind = _kind(kind)
    try:
        context = _context_for(request, doc_kind, doc_id)
    except BackendError as exc:
        return _backend_error(exc)
    if not context:
        return _api_error("not_found", status=404)
    resp = HttpResponse(document_pdf(context), content_type="application/pdf")
    resp["Content-Disposition"] = f'attachment; filename="{doc_kind.filename(context["number"])}"'
    return resp


@require_POST
def admin_document_send(request: HttpRequest, kind: str, doc_id: str) -> JsonResponse:
    limited = _check_rate_limit(request, scope="admin_document_send", limit=20, window_seconds=600)
    if limited:
        return limited
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    doc_kind = _kind(kind)
    try:
        context = _context_for(request, doc_kind, doc_id)
    except BackendError as exc:
        return _backend_error(exc)
    if not context:
        return _api_error("not_found", status=404)
    if not context["client"]["email"]:
        return _api_error("missing_client_email", status=400)

    try:
        send_document(doc_kind, context, document_pdf(context))
    except OSError as exc:
        logger.warning(
            "Document email failed",
            extra={"kind": doc_kind.name, "number": context["number"], "error": str(exc)},
        )
        return _api_error("email_failed", status=502, message=str(exc))

    status = context["status"]
    if doc_kind is QUOTATION and status == QuotationStatus.DRAFT:
        try:
            _backend(request).update(
                doc_kind.table,
                {"status": QuotationStatus.SENT, "updated_at": _now_iso()},
                filters=[eq("id", doc_id), eq("user_id", _user_id(request))],
            )
        except BackendError as exc:
            return _backend_error(exc)
        status = QuotationStatus.SENT
    return _api_ok({"sentTo": context["client"]["email"], "status": status})
