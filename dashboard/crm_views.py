import csv
from io import StringIO
from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
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
from dashboard.api_views import _check_rate_limit
from dashboard.api_views import _now_iso
from dashboard.api_views import _optional_text
from dashboard.api_views import _read_json
from dashboard.api_views import _require_admin
from dashboard.api_views import _text
from dashboard.api_views import _user_id
from dashboard.backend import BackendError
from dashboard.backend import eq
from dashboard.billing import to_decimal
from dashboard.billing import to_number
from dashboard.filters import CONTACT_SEARCH_FIELDS
from dashboard.filters import SUBMISSION_SEARCH_FIELDS
from dashboard.filters import count_by
from dashboard.filters import filter_rows
from dashboard.filters import filter_status
from dashboard.formatting import format_datetime
from dashboard.formatting import format_estimate
from dashboard.formatting import parse_tags
from dashboard.formatting import tags_text
from dashboard.models import LEAD_SOURCES
from dashboard.models import LeadStatus
from dashboard.models import SubmissionStatus
from dashboard.models import Table


class _Invalid(Exception):
    def __init__(self, code: str, field: str = "") -> None:
        super().__init__(code)
        self.code = code
        self.field = field


def _contact_item(row: dict[str, Any]) -> dict[str, Any]:
    item = dict(row)
    item["tags"] = parse_tags(row.get("tags") or [])
    item["tags_text"] = tags_text(item["tags"])
    item["estimated_value_display"] = format_estimate(row.get("estimated_value"))
    return item


def _iso_date_or_none(data: dict[str, Any], key: str) -> str | None:
    raw = _text(data, key)
    if not raw:
        return None
    try:
        parsed = parse_date(raw[:10])
    except ValueError:
        parsed = None
    if not parsed:
        raise _Invalid("invalid_date", key)
    return parsed.isoformat()


def _contact_values(data: dict[str, Any]) -> dict[str, Any]:
    name = _text(data, "client_name")
    email = _text(data, "client_email")
    if not name or not email:
        raise _Invalid("missing_fields")

    status = _text(data, "lead_status") or LeadStatus.NEW
    if status not in LeadStatus.values:
        raise _Invalid("invalid_status", "lead_status")

    estimated_raw = data.get("estimated_value")
    estimated: int | float | None = None
    if estimated_raw is not None and str(estimated_raw).strip() != "":
        value = to_decimal(estimated_raw, default=None)
        if value is None or value < 0:
            raise _Invalid("invalid_estimated_value", "estimated_value")
        estimated = to_number(value)

    return {
        "client_name": name,
        "client_email": email,
        "client_phone": _optional_text(data, "client_phone"),
        "client_company": _optional_text(data, "client_company"),
        "client_position": _optional_text(data, "client_position"),
        "lead_source": _optional_text(data, "lead_source"),
        "lead_status": status,
        "notes": _optional_text(data, "notes"),
        "last_contact_date": _iso_date_or_none(data, "last_contact_date"),
        "next_follow_up": _iso_date_or_none(data, "next_follow_up"),
        "estimated_value": estimated,
        "tags": parse_tags(data.get("tags")),
    }


def _invalid_response(exc: _Invalid) -> JsonResponse:
    return _api_error(exc.code, status=400, details={"field": exc.field} if exc.field else None)


@require_GET
def admin_contacts(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).select(
            Table.CONTACTS,
            filters=[eq("admin_user_id", _user_id(request))],
            order="created_at",
            descending=True,
        )
    except BackendError as exc:
        return _backend_error(exc)
    items = filter_rows(
        rows,
        query=request.GET.get("q"),
        fields=CONTACT_SEARCH_FIELDS,
        status=request.GET.get("status"),
        status_field="lead_status",
    )
    return _api_ok(
        {
            "items": [_contact_item(r) for r in items],
            "counts": count_by(rows, "lead_status"),
            "total": len(rows),
            "statuses": [{"value": v, "label": str(label)} for v, label in LeadStatus.choices],
            "sources": LEAD_SOURCES,
        }
    )


@require_GET
def admin_contacts_options(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).select(
            Table.CONTACTS,
            columns="id, client_name, client_email, client_company, client_phone",
            filters=[eq("admin_user_id", _user_id(request))],
            order="client_name",
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"items": rows})


@require_POST
def admin_contacts_create(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        values = _contact_values(_read_json(request))
    except _Invalid as exc:
        return _invalid_response(exc)
    values["admin_user_id"] = _user_id(request)
    try:
        rows = _backend(request).insert(Table.CONTACTS, values)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": _contact_item(rows[0]) if rows else None})


@require_POST
def admin_contacts_update(request: HttpRequest, contact_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        values = _contact_values(_read_json(request))
    except _Invalid as exc:
        return _invalid_response(exc)
    values["updated_at"] = _now_iso()
    try:
        rows = _backend(request).update(
            Table.CONTACTS,
            values,
            filters=[eq("id", contact_id), eq("admin_user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": _contact_item(rows[0])})


@require_POST
def admin_contacts_delete(request: HttpRequest, contact_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).delete(
            Table.CONTACTS,
            filters=[eq("id", contact_id), eq("admin_user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok()


def _filter_submissions(request: HttpRequest, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    rows = filter_status(rows, request.GET.get("form_type"), "form_type")
    return filter_rows(
        rows,
        query=request.GET.get("q"),
        fields=SUBMISSION_SEARCH_FIELDS,
        status=request.GET.get("status"),
    )


@require_GET
def admin_submissions(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).select(Table.FORM_SUBMISSIONS, order="created_at", descending=True)
    except BackendError as exc:
        return _backend_error(exc)
    items = _filter_submissions(request, rows)
    return _api_ok(
        {
            "items": items,
            "counts": count_by(rows, "status"),
            "formTypes": sorted({str(r.get("form_type")) for r in rows if r.get("form_type")}),
            "total": len(rows),
        }
    )


@require_POST
def admin_submissions_status(request: HttpRequest, submission_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    status = _text(_read_json(request), "status")
    if status not in SubmissionStatus.values:
        return _api_error("invalid_status", status=400)
    try:
        rows = _backend(request).update(
            Table.FORM_SUBMISSIONS,
            {"status": status, "updated_at": _now_iso()},
            filters=[eq("id", submission_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_submissions_delete(request: HttpRequest, submission_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).delete(Table.FORM_SUBMISSIONS, filters=[eq("id", submission_id)])
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok()


@require_GET
def admin_submissions_export(request: HttpRequest) -> HttpResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).select(Table.FORM_SUBMISSIONS, order="created_at", descending=True)
    except BackendError as exc:
        return _backend_error(exc)
    out = StringIO()
    writer = csv.writer(out)
    rows = _filter_submissions(request, rows)
    writer.writerow(["Name", "Email", "Phone", "Company", "Service", "Status", "Created At"])
    for r in rows:
        writer.writerow(
            [
                r.get("name") or "",
                r.get("email") or "",
                r.get("phone") or "",
                r.get("company") or "",
                r.get("service") or "",
                r.get("status") or "",
                format_datetime(r.get("created_at")),
            ]
        )
    filename = f"form-submissions-{timezone.localdate().isoformat()}.csv"
    resp = HttpResponse(out.getvalue(), content_type="text/csv; charset=utf-8")
    resp["Content-Disposition"] = f'attachment; filename="{filename}"'
    return resp


@require_POST
def site_submission_create(request: HttpRequest) -> JsonResponse:
    limited = _check_rate_limit(request, scope="site_submission", limit=8, window_seconds=600)
    if limited:
        return limited
    data = _read_json(request)
    name = _text(data, "name")
    email = _text(data, "email")
    message = _text(data, "message")
    if not name or not email or not message:
        return _api_error("missing_fields", status=400)
    try:
        validate_email(email)
    except ValidationError:
        return _api_error("invalid_email", status=400)
    values = {
        "name": name,
        "email": email,
        "company": _optional_text(data, "company"),
        "phone": _optional_text(data, "phone"),
        "service": _optional_text(data, "service"),
        "message": message,
        "form_type": _text(data, "form_type") or "contact",
        "status": SubmissionStatus.NEW,
    }
    try:
        rows = _backend(request).insert(Table.FORM_SUBMISSIONS, values)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"id": rows[0]["id"] if rows else None})
