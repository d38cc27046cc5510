import logging
import uuid
from pathlib import Path
from typing import Any

from django.http import HttpRequest
from django.http import JsonResponse
from django.views.decorators.http import require_GET
from django.views.decorators.http import require_POST

from dashboard.api_views import _api_error
from dashboard.api_views import _api_ok
from dashboard.api_views import _backend
from dashboard.api_views import _backend_error
from dashboard.api_views import _check_rate_limit
from dashboard.api_views import _now_iso
from dashboard.api_views import _optional_text
from dashboard.api_views import _parse_bool
from dashboard.api_views import _read_json
from dashboard.api_views import _require_admin
from dashboard.api_views import _text
from dashboard.api_views import _upload_error
from dashboard.api_views import _user_id
from dashboard.backend import Backend
from dashboard.backend import BackendError
from dashboard.backend import eq
from dashboard.backend import is_in
from dashboard.billing import to_decimal
from dashboard.billing import to_number
from dashboard.filters import PROJECT_SEARCH_FIELDS
from dashboard.filters import TESTIMONIAL_SEARCH_FIELDS
from dashboard.filters import filter_rows
from dashboard.filters import filter_status
from dashboard.filters import search_rows
from dashboard.formatting import parse_tags
from dashboard.models import CONTACT_INFO_DEFAULTS
from dashboard.models import CONTACT_INFO_KEYS
from dashboard.models import DEFAULT_CURRENCY
from dashboard.models import HERO_DEFAULTS
from dashboard.models import HERO_SECTION
from dashboard.models import PORTFOLIO_DEFAULTS
from dashboard.models import PORTFOLIO_SECTION
from dashboard.models import SETTING_DEFAULTS
from dashboard.models import Bucket
from dashboard.models import SettingCategory
from dashboard.models import Table
from dashboard.uploads import BRAND_EXTS
from dashboard.uploads import BRAND_MIMES
from dashboard.uploads import UploadRejected
from dashboard.uploads import brand_storage_key
from dashboard.uploads import brand_upload_max_bytes
from dashboard.uploads import storage_path_from_url
from dashboard.uploads import store_upload
from dashboard.uploads import upload_max_bytes
from dashboard.uploads import validate_upload


logger = logging.getLogger(__name__)

PROJECT_TEXT_FIELDS = (
    "title",
    "description",
    "detailed_description",
    "image_url",
    "client",
    "category",
    "demo_url",
    "github_url",
    "project_duration",
    "team_size",
    "challenges",
    "solutions",
    "results",
)


def _form_or_json(request: HttpRequest) -> dict[str, Any]:
    if str(request.content_type or "").startswith("multipart/"):
        return request.POST.dict()
    return _read_json(request)


def _int_or_error(raw: Any, code: str, default: int = 0) -> int | JsonResponse:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return _api_error(code, status=400)


# Settings


def _settings_rows(backend: Backend, user_id: str, category: str) -> list[dict[str, Any]]:
    return backend.select(
        Table.APP_SETTINGS,
        filters=[eq("setting_category", category), eq("user_id", user_id)],
        order="created_at",
    )


def _merged_settings(category: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Defaults for ``category`` with stored values on top, then custom keys."""
    by_key = {str(r.get("setting_key") or ""): r for r in rows}
    out: list[dict[str, Any]] = []
    for key, default, description in SETTING_DEFAULTS.get(category, []):
        stored = by_key.pop(key, None)
        out.append(
            {
                "id": stored.get("id") if stored else None,
                "key": key,
                "value": (stored.get("setting_value") if stored else None) or default,
                "description": (stored.get("description") if stored else None) or description,
            }
        )
    for key, stored in by_key.items():
        out.append(
            {
                "id": stored.get("id"),
                "key": key,
                "value": stored.get("setting_value") or "",
                "description": stored.get("description") or "",
            }
        )
    return out


@require_GET
def admin_settings(request: HttpRequest, category: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    if category not in SettingCategory.values:
        return _api_error("unknown_category", status=404)
    try:
        rows = _settings_rows(_backend(request), _user_id(request), category)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"category": category, "settings": _merged_settings(category, rows)})


@require_POST
def admin_settings_update(request: HttpRequest, category: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    if category not in SettingCategory.values:
        return _api_error("unknown_category", status=404)
    entries = _read_json(request).get("settings")
    if not isinstance(entries, list):
        return _api_error("invalid_settings", status=400)
    backend = _backend(request)
    uid = _user_id(request)
    saved = 0
    try:
        existing = {str(r.get("setting_key") or ""): r for r in _settings_rows(backend, uid, category)}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            key = _text(entry, "key")
            if not key:
                continue
            values = {
                "setting_value": str(entry.get("value") if entry.get("value") is not None else ""),
                "description": _optional_text(entry, "description"),
                "setting_type": "text",
                "is_public": True,
                "updated_at": _now_iso(),
            }
            row_id = _text(entry, "id") or str((existing.get(key) or {}).get("id") or "")
            if row_id:
                backend.update(Table.APP_SETTINGS, values, filters=[eq("id", row_id), eq("user_id", uid)])
            else:
                backend.insert(
                    Table.APP_SETTINGS,
                    {**values, "setting_category": category, "setting_key": key, "user_id": uid},
                )
            saved += 1
        rows = _settings_rows(backend, uid, category)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"saved": saved, "settings": _merged_settings(category, rows)})


@require_POST
def admin_settings_delete(request: HttpRequest, category: str, setting_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    if category not in SettingCategory.values:
        return _api_error("unknown_category", status=404)
    try:
        rows = _backend(request).delete(
            Table.APP_SETTINGS,
            filters=[eq("id", setting_id), eq("setting_category", category), eq("user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok()


@require_POST
def admin_brand_upload(request: HttpRequest) -> JsonResponse:
    limited = _check_rate_limit(request, scope="admin_brand_upload", limit=24, window_seconds=300)
    if limited:
        return limited
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    f = request.FILES.get("file")
    if not f:
        return _api_error("missing_file", status=400)
    setting_key = str(request.POST.get("key") or "").strip()
    if not setting_key:
        return _api_error("missing_fields", status=400)
    ext = Path(str(f.name or "")).suffix.lower()
    try:
        url = store_upload(
            _backend(request),
            Bucket.BRAND_ASSETS,
            "",
            f,
            max_bytes=brand_upload_max_bytes(),
            key=brand_storage_key(setting_key, _user_id(request), ext),
            allowed_exts=BRAND_EXTS,
            allowed_mimes=BRAND_MIMES,
        )
    except UploadRejected as exc:
        return _upload_error(exc)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"key": setting_key, "url": url})


def _contact_info(backend: Backend) -> dict[str, str]:
    rows = backend.select(Table.SITE_SETTINGS, columns="key, value", filters=[is_in("key", CONTACT_INFO_KEYS)])
    stored = {str(r.get("key") or ""): r.get("value") for r in rows}
    return {key: str(stored.get(key) or default) for key, (default, _) in CONTACT_INFO_DEFAULTS.items()}


@require_GET
def admin_contact_info(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        info = _contact_info(_backend(request))
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"contactInfo": info})


@require_POST
def admin_contact_info_update(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    data = _read_json(request)
    rows = [
        {
            "key": key,
            "value": str(data.get(key) or "").strip(),
            "description": description,
            "updated_at": _now_iso(),
        }
        for key, (_, description) in CONTACT_INFO_DEFAULTS.items()
        if key in data
    ]
    if not rows:
        return _api_error("missing_fields", status=400)
    backend = _backend(request)
    try:
        backend.upsert(Table.SITE_SETTINGS, rows, on_conflict="key")
        info = _contact_info(backend)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"contactInfo": info})


@require_GET
def site_settings(request: HttpRequest, category: str) -> JsonResponse:
    if category not in SettingCategory.values:
        return _api_error("unknown_category", status=404)
    try:
        rows = _backend(request).select(
            Table.APP_SETTINGS,
            columns="setting_key, setting_value",
            filters=[eq("setting_category", category), eq("is_public", True)],
            order="updated_at",
        )
    except BackendError as exc:
        return _backend_error(exc)
    values = {key: default for key, default, _ in SETTING_DEFAULTS.get(category, [])}
    for r in rows:
        if r.get("setting_value"):
            values[str(r.get("setting_key") or "")] = r.get("setting_value")
    return _api_ok({"category": category, "settings": values})


@require_GET
def site_contact_info(request: HttpRequest) -> JsonResponse:
    try:
        info = _contact_info(_backend(request))
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"contactInfo": info})


# Portfolio


def _portfolio_row(backend: Backend, user_id: str) -> dict[str, Any] | None:
    return backend.first(
        Table.WEBSITE_CONTENT,
        filters=[eq("section", PORTFOLIO_SECTION), eq("user_id", user_id)],
    )


def _projects(row: dict[str, Any] | None) -> list[dict[str, Any]]:
    metadata = (row or {}).get("metadata")
    projects = metadata.get("projects") if isinstance(metadata, dict) else None
    return [p for p in projects if isinstance(p, dict)] if isinstance(projects, list) else []


def _save_portfolio(
    backend: Backend,
    user_id: str,
    row: dict[str, Any] | None,
    *,
    title: str,
    description: str,
    projects: list[dict[str, Any]],
) -> dict[str, Any]:
    values = {
        "title": title,
        "content": description,
        "metadata": {"projects": projects},
        "is_active": True,
        "updated_at": _now_iso(),
    }
    if row:
        rows = backend.update(
            Table.WEBSITE_CONTENT,
            values,
            filters=[eq("id", row["id"]), eq("user_id", user_id)],
        )
    else:
        rows = backend.insert(
            Table.WEBSITE_CONTENT,
            {**values, "section": PORTFOLIO_SECTION, "user_id": user_id},
        )
    return rows[0] if rows else {**values}


def _project_values(data: dict[str, Any], project_id: str) -> dict[str, Any]:
    project: dict[str, Any] = {"id": project_id}
    for field in PROJECT_TEXT_FIELDS:
        project[field] = str(data.get(field) or "").strip()
    project["technologies"] = parse_tags(data.get("technologies"))
    gallery = data.get("gallery_images")
    project["gallery_images"] = [str(u) for u in gallery if str(u or "").strip()] if isinstance(gallery, list) else []
    return project


def _portfolio_payload(row: dict[str, Any] | None, query: str | None = None, category: str | None = None) -> dict[str, Any]:
    projects = _projects(row)
    filtered = search_rows(filter_status(projects, category, "category"), query, PROJECT_SEARCH_FIELDS)
    return {
        "title": (row or {}).get("title") or PORTFOLIO_DEFAULTS["title"],
        "description": (row or {}).get("content") or PORTFOLIO_DEFAULTS["description"],
        "projects": filtered,
        "total": len(projects),
        "categories": sorted({str(p.get("category")) for p in projects if p.get("category")}),
    }


@require_GET
def admin_portfolio(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        row = _portfolio_row(_backend(request), _user_id(request))
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok(_portfolio_payload(row, request.GET.get("q"), request.GET.get("category")))


@require_POST
def admin_portfolio_update(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    data = _read_json(request)
    backend = _backend(request)
    uid = _user_id(request)
    try:
        row = _portfolio_row(backend, uid)
        saved = _save_portfolio(
            backend,
            uid,
            row,
            title=_text(data, "title") or PORTFOLIO_DEFAULTS["title"],
            description=_text(data, "description") or PORTFOLIO_DEFAULTS["description"],
            projects=_projects(row),
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok(_portfolio_payload(saved))


def _change_projects(request: HttpRequest, project_id: str | None, data: dict[str, Any] | None) -> JsonResponse:
    """Create (no id), update (id and data) or delete (id, no data) one project."""
    if data is not None and not _text(data, "title"):
        return _api_error("missing_title", status=400)
    backend = _backend(request)
    uid = _user_id(request)
    try:
        row = _portfolio_row(backend, uid)
        projects = _projects(row)
        if project_id is None:
            project = _project_values(data or {}, uuid.uuid4().hex)
            projects.append(project)
        else:
            idx = next((i for i, p in enumerate(projects) if str(p.get("id")) == project_id), None)
            if idx is None:
                return _api_error("not_found", status=404)
            if data is None:
                projects.pop(idx)
                project = None
            else:
                project = _project_values(data, project_id)
                projects[idx] = project
        _save_portfolio(
            backend,
            uid,
            row,
            title=(row or {}).get("title") or PORTFOLIO_DEFAULTS["title"],
            description=(row or {}).get("content") or PORTFOLIO_DEFAULTS["description"],
            projects=projects,
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"project": project, "total": len(projects)})


@require_POST
def admin_portfolio_projects_create(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    return _change_projects(request, None, _read_json(request))


@require_POST
def admin_portfolio_projects_update(request: HttpRequest, project_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    return _change_projects(request, project_id, _read_json(request))


@require_POST
def admin_portfolio_projects_delete(request: HttpRequest, project_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    return _change_projects(request, project_id, None)


@require_POST
def admin_portfolio_gallery_upload(request: HttpRequest) -> JsonResponse:
    limited = _check_rate_limit(request, scope="admin_gallery_upload", limit=60, window_seconds=300)
    if limited:
        return limited
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    files = request.FILES.getlist("files") or request.FILES.getlist("file")
    if not files:
        return _api_error("missing_file", status=400)
    backend = _backend(request)
    try:
        for f in files:
            validate_upload(f, max_bytes=upload_max_bytes())
    except UploadRejected as exc:
        return _upload_error(exc)
    urls: list[str] = []
    try:
        for f in files:
            urls.append(store_upload(backend, Bucket.PORTFOLIO_IMAGES, "portfolio", f))
    except (UploadRejected, BackendError) as exc:
        written = [p for p in (storage_path_from_url(u, Bucket.PORTFOLIO_IMAGES) for u in urls) if p]
        if written:
            try:
                backend.remove_files(Bucket.PORTFOLIO_IMAGES, written)
            except BackendError as cleanup_exc:
                logger.warning("Gallery uploads left in storage", extra={"paths": written, "error": cleanup_exc.message})
        if isinstance(exc, UploadRejected):
            return _upload_error(exc)
        return _backend_error(exc)
    return _api_ok({"urls": urls})


@require_POST
def admin_portfolio_gallery_remove(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    url = _text(_read_json(request), "url")
    if not url:
        return _api_error("missing_fields", status=400)
    backend = _backend(request)
    uid = _user_id(request)
    path = storage_path_from_url(url, Bucket.PORTFOLIO_IMAGES)
    try:
        if path:
            backend.remove_files(Bucket.PORTFOLIO_IMAGES, [path])
        row = _portfolio_row(backend, uid)
        projects = _projects(row)
        detached = 0
        for p in projects:
            gallery = p.get("gallery_images")
            if isinstance(gallery, list) and url in gallery:
                p["gallery_images"] = [u for u in gallery if u != url]
                detached += 1
        if detached:
            _save_portfolio(
                backend,
                uid,
                row,
                title=(row or {}).get("title") or PORTFOLIO_DEFAULTS["title"],
                description=(row or {}).get("content") or PORTFOLIO_DEFAULTS["description"],
                projects=projects,
            )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"removed": bool(path), "detached": detached})


# Services


def _service_values(data: dict[str, Any]) -> dict[str, Any] | JsonResponse:
    name = _text(data, "service_name")
    if not name:
        return _api_error("missing_fields", status=400)
    price_raw = data.get("price_starting_from")
    price: int | float | None = None
    if price_raw is not None and str(price_raw).strip() != "":
        value = to_decimal(price_raw, default=None)
        if value is None or value <= 0:
            return _api_error("invalid_price", status=400)
        price = to_number(value)
    order = _int_or_error(data.get("display_order"), "invalid_display_order")
    if isinstance(order, JsonResponse):
        return order
    features = data.get("service_features")
    if isinstance(features, list):
        feature_list = [str(x).strip() for x in features if str(x or "").strip()]
    else:
        feature_list = [x.strip() for x in str(features or "").splitlines() if x.strip()]
    active = _parse_bool(data.get("is_active"))
    return {
        "service_name": name,
        "service_description": _text(data, "service_description"),
        "service_category": _text(data, "service_category"),
        "price_starting_from": price,
        "price_currency": (_text(data, "price_currency") or DEFAULT_CURRENCY).upper(),
        "estimated_duration": _optional_text(data, "estimated_duration"),
        "service_image_url": _optional_text(data, "service_image_url"),
        "service_features": feature_list,
        "is_active": True if active is None else active,
        "display_order": order,
    }


@require_GET
def admin_services(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    filters = [eq("is_active", True)] if _parse_bool(request.GET.get("active")) else []
    try:
        rows = _backend(request).select(Table.SERVICES, filters=filters, order="display_order")
    except BackendError as exc:
        return _backend_error(exc)
    items = search_rows(
        filter_status(rows, request.GET.get("category"), "service_category"),
        request.GET.get("q"),
        ("service_name", "service_description", "service_category"),
    )
    return _api_ok(
        {
            "items": items,
            "categories": sorted({str(r.get("service_category")) for r in rows if r.get("service_category")}),
        }
    )


@require_POST
def admin_services_create(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    values = _service_values(_read_json(request))
    if isinstance(values, JsonResponse):
        return values
    values["user_id"] = _user_id(request)
    try:
        rows = _backend(request).insert(Table.SERVICES, values)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": rows[0] if rows else None})


@require_POST
def admin_services_update(request: HttpRequest, service_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    values = _service_values(_read_json(request))
    if isinstance(values, JsonResponse):
        return values
    values["updated_at"] = _now_iso()
    try:
        rows = _backend(request).update(Table.SERVICES, values, filters=[eq("id", service_id)])
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_services_delete(request: HttpRequest, service_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).delete(Table.SERVICES, filters=[eq("id", service_id)])
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok()


@require_POST
def admin_services_image_upload(request: HttpRequest) -> JsonResponse:
    limited = _check_rate_limit(request, scope="admin_service_upload", limit=24, window_seconds=300)
    if limited:
        return limited
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    f = request.FILES.get("file")
    if not f:
        return _api_error("missing_file", status=400)
    try:
        url = store_upload(_backend(request), Bucket.SERVICE_IMAGES, "services", f)
    except UploadRejected as exc:
        return _upload_error(exc)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"url": url})


# Testimonials


def _testimonial_values(data: dict[str, Any]) -> dict[str, Any] | JsonResponse:
    name = _text(data, "client_name")
    text = _text(data, "testimonial_text")
    if not name or not text:
        return _api_error("missing_fields", status=400)
    rating_raw = data.get("rating")
    rating = 5
    if rating_raw is not None and rating_raw != "":
        try:
            rating = int(rating_raw)
        except (TypeError, ValueError):
            return _api_error("invalid_rating", status=400)
        rating = max(1, min(5, rating))
    featured = _parse_bool(data.get("is_featured"))
    return {
        "client_name": name,
        "client_company": _optional_text(data, "client_company"),
        "client_position": _optional_text(data, "client_position"),
        "rating": rating,
        "testimonial_text": text,
        "client_photo_url": _optional_text(data, "client_photo_url"),
        "is_featured": bool(featured),
    }


@require_GET
def admin_testimonials(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).select(
            Table.TESTIMONIALS,
            filters=[eq("user_id", _user_id(request))],
            order="created_at",
            descending=True,
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"items": filter_rows(rows, query=request.GET.get("q"), fields=TESTIMONIAL_SEARCH_FIELDS)})


@require_POST
def admin_testimonials_create(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    values = _testimonial_values(_read_json(request))
    if isinstance(values, JsonResponse):
        return values
    values.update({"user_id": _user_id(request), "is_active": True})
    try:
        rows = _backend(request).insert(Table.TESTIMONIALS, values)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": rows[0] if rows else None})


@require_POST
def admin_testimonials_update(request: HttpRequest, item_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    values = _testimonial_values(_read_json(request))
    if isinstance(values, JsonResponse):
        return values
    values["updated_at"] = _now_iso()
    try:
        rows = _backend(request).update(
            Table.TESTIMONIALS,
            values,
            filters=[eq("id", item_id), eq("user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_testimonials_toggle(request: HttpRequest, item_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    data = _read_json(request)
    field = _text(data, "field")
    if field not in {"is_active", "is_featured"}:
        return _api_error("invalid_field", status=400)
    value = _parse_bool(data.get("value"))
    if value is None:
        return _api_error("invalid_value", status=400)
    try:
        rows = _backend(request).update(
            Table.TESTIMONIALS,
            {field: value, "updated_at": _now_iso()},
            filters=[eq("id", item_id), eq("user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_testimonials_delete(request: HttpRequest, item_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).delete(
            Table.TESTIMONIALS,
            filters=[eq("id", item_id), eq("user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok()


# Client logos


def _logo_values(request: HttpRequest, data: dict[str, Any], *, creating: bool) -> dict[str, Any] | JsonResponse:
    name = _text(data, "name")
    if not name:
        return _api_error("missing_fields", status=400)
    order = _int_or_error(data.get("display_order"), "invalid_display_order")
    if isinstance(order, JsonResponse):
        return order
    values: dict[str, Any] = {
        "name": name,
        "company_url": _optional_text(data, "company_url"),
        "display_order": order,
    }
    active = _parse_bool(data.get("is_active"))
    if active is not None or creating:
        values["is_active"] = True if active is None else active

    f = request.FILES.get("file")
    if f:
        try:
            values["logo_url"] = store_upload(_backend(request), Bucket.CLIENT_LOGOS, "logos", f)
        except UploadRejected as exc:
            return _upload_error(exc)
        except BackendError as exc:
            return _backend_error(exc)
    elif _text(data, "logo_url"):
        values["logo_url"] = _text(data, "logo_url")
    elif creating:
        return _api_error("missing_logo", status=400)
    return values


@require_GET
def admin_client_logos(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).select(Table.CLIENT_LOGOS, order="display_order")
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"items": rows})


@require_POST
def admin_client_logos_create(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    values = _logo_values(request, _form_or_json(request), creating=True)
    if isinstance(values, JsonResponse):
        return values
    try:
        rows = _backend(request).insert(Table.CLIENT_LOGOS, values)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": rows[0] if rows else None})


@require_POST
def admin_client_logos_update(request: HttpRequest, logo_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    values = _logo_values(request, _form_or_json(request), creating=False)
    if isinstance(values, JsonResponse):
        return values
    values["updated_at"] = _now_iso()
    try:
        rows = _backend(request).update(Table.CLIENT_LOGOS, values, filters=[eq("id", logo_id)])
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_client_logos_toggle(request: HttpRequest, logo_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    value = _parse_bool(_read_json(request).get("value"))
    if value is None:
        return _api_error("invalid_value", status=400)
    try:
        rows = _backend(request).update(
            Table.CLIENT_LOGOS,
            {"is_active": value, "updated_at": _now_iso()},
            filters=[eq("id", logo_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_client_logos_delete(request: HttpRequest, logo_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).delete(Table.CLIENT_LOGOS, filters=[eq("id", logo_id)])
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    path = storage_path_from_url(str(rows[0].get("logo_url") or ""), Bucket.CLIENT_LOGOS)
    if path:
        try:
            _backend(request).remove_files(Bucket.CLIENT_LOGOS, [path])
        except BackendError as exc:
            logger.warning("Logo file left in storage", extra={"path": path, "error": exc.message})
    return _api_ok()


# Website content


def _content_metadata(section: str, raw: Any) -> dict[str, Any]:
    metadata = dict(raw) if isinstance(raw, dict) else {}
    if section == HERO_SECTION:
        merged = {k: v for k, v in HERO_DEFAULTS.items() if k != "title"}
        merged.update({k: v for k, v in metadata.items() if v not in (None, "")})
        return merged
    return metadata


@require_GET
def admin_content(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    filters = [eq("user_id", _user_id(request))]
    section = str(request.GET.get("section") or "").strip()
    if section:
        filters.append(eq("section", section))
    try:
        rows = _backend(request).select(Table.WEBSITE_CONTENT, filters=filters, order="section")
    except BackendError as exc:
        return _backend_error(exc)
    items = [{**r, "metadata": _content_metadata(str(r.get("section") or ""), r.get("metadata"))} for r in rows]
    if section == HERO_SECTION and not items:
        items = [{"id": None, "section": HERO_SECTION, "title": HERO_DEFAULTS["title"], "metadata": _content_metadata(HERO_SECTION, {})}]
    return _api_ok({"items": items})


@require_POST
def admin_content_save(request: HttpRequest, section: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    section = section.strip()
    if not section:
        return _api_error("missing_fields", status=400)
    data = _read_json(request)
    active = _parse_bool(data.get("is_active"))
    values = {
        "title": _optional_text(data, "title"),
        "content": _optional_text(data, "content"),
        "image_url": _optional_text(data, "image_url"),
        "is_active": True if active is None else active,
        "updated_at": _now_iso(),
    }
    if section == HERO_SECTION and not values["title"]:
        values["title"] = HERO_DEFAULTS["title"]
    backend = _backend(request)
    uid = _user_id(request)
    try:
        existing = backend.first(
            Table.WEBSITE_CONTENT,
            columns="id, metadata",
            filters=[eq("section", section), eq("user_id", uid)],
        )
        stored = (existing or {}).get("metadata")
        values["metadata"] = _content_metadata(section, data["metadata"] if "metadata" in data else stored)
        if section == PORTFOLIO_SECTION:
            # Projects are only edited through the portfolio endpoints.
            values["metadata"]["projects"] = _projects(existing)
        if existing:
            rows = backend.update(
                Table.WEBSITE_CONTENT,
                values,
                filters=[eq("id", existing["id"]), eq("user_id", uid)],
            )
        else:
            rows = backend.insert(Table.WEBSITE_CONTENT, {**values, "section": section, "user_id": uid})
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": rows[0] if rows else None})


@require_POST
def admin_content_delete(request: HttpRequest, content_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).delete(
            Table.WEBSITE_CONTENT,
            filters=[eq("id", content_id), eq("user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok()
