import json
import logging
import time
from datetime import timedelta
from typing import Any

from django.core.cache import cache
from django.http import HttpRequest
from django.http import HttpResponse
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET
from django.views.decorators.http import require_POST

from consultant_site.middleware import SESSION_KEY
from consultant_site.middleware import forget_token
from dashboard.backend import Backend
from dashboard.backend import BackendError
from dashboard.backend import eq
from dashboard.backend import get_backend
from dashboard.backend import gte
from dashboard.backend import is_in
from dashboard.billing import BillingError
from dashboard.models import HERO_SECTION
from dashboard.models import PORTFOLIO_SECTION
from dashboard.models import InvoiceStatus
from dashboard.models import QuotationStatus
from dashboard.models import SettingCategory
from dashboard.models import Table
from dashboard.uploads import UploadRejected


logger = logging.getLogger(__name__)


def _read_json(request: HttpRequest) -> dict[str, Any]:
    try:
        raw = request.body.decode("utf-8") if request.body else "{}"
        data = json.loads(raw)
        return data if isinstance(data, dict) else {}
    except Exception:
        return {}


def _api_ok(payload: dict[str, Any] | None = None, *, status: int = 200) -> JsonResponse:
    result: dict[str, Any] = payload or {}
    return JsonResponse({"ok": True, "result": result, "data": result}, status=status)


def _api_error(
    code: str,
    *,
    status: int = 400,
    message: str | None = None,
    details: dict[str, Any] | None = None,
) -> JsonResponse:
    error_obj: dict[str, Any] = {"code": code}
    if message:
        error_obj["message"] = message
    if details:
        error_obj["details"] = details
    return JsonResponse({"ok": False, "error": error_obj, "errorCode": code}, status=status)


def _backend_error(exc: BackendError) -> JsonResponse:
    return _api_error(exc.code or "backend_error", status=502, message=exc.message)


def _billing_error(exc: BillingError) -> JsonResponse:
    return _api_error(exc.code, status=400, message=exc.message or None, details=exc.details or None)


def _upload_error(exc: UploadRejected) -> JsonResponse:
    return _api_error(exc.code, status=exc.status, details=exc.details or None)


def _rate_limit_key(request: HttpRequest, *, scope: str, window_seconds: int) -> str:
    user = getattr(request, "admin_user", None)
    user_id = user.get("id") if user else None
    ip = str(request.META.get("REMOTE_ADDR") or "").strip() or "unknown"
    ident = f"u:{user_id}" if user_id else f"ip:{ip}"
    bucket = int(time.time() // max(1, int(window_seconds)))
    return f"rl:{scope}:{ident}:{bucket}"


def _check_rate_limit(
    request: HttpRequest,
    *,
    scope: str,
    limit: int,
    window_seconds: int,
) -> JsonResponse | None:
    lim = max(1, int(limit))
    win = max(1, int(window_seconds))
    key = _rate_limit_key(request, scope=scope, window_seconds=win)
    try:
        added = cache.add(key, 1, timeout=win)
        if added:
            return None
        current = cache.incr(key)
        if int(current) <= lim:
            return None
    except ValueError:
        return None

    now = int(time.time())
    retry_after = win - (now % win)
    return _api_error(
        "rate_limited",
        status=429,
        message="Terlalu banyak percobaan. Silakan coba lagi nanti.",
        details={"retryAfterSeconds": retry_after},
    )


def _require_admin(request: HttpRequest) -> JsonResponse | None:
    if not getattr(request, "admin_user", None):
        return _api_error("unauthorized", status=401)
    return None


def _user_id(request: HttpRequest) -> str:
    return str(request.admin_user["id"])


def _backend(request: HttpRequest) -> Backend:
    return getattr(request, "backend", None) or get_backend()


def _text(data: dict[str, Any], key: str) -> str:
    return str(data.get(key) or "").strip()


def _optional_text(data: dict[str, Any], key: str) -> str | None:
    value = _text(data, key)
    return value or None


def _parse_bool(raw: Any) -> bool | None:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return None
    text = str(raw).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return None


def _now_iso() -> str:
    return timezone.now().isoformat()


def _settings_map(backend: Backend, user_id: str, category: str) -> dict[str, str]:
    rows = backend.select(
        Table.APP_SETTINGS,
        filters=[eq("setting_category", category), eq("user_id", user_id)],
    )
    return {str(r.get("setting_key") or ""): str(r.get("setting_value") or "") for r in rows}


def csrf_failure(request: HttpRequest, reason: str = "") -> JsonResponse | HttpResponse:
    if str(getattr(request, "path", "") or "").startswith("/api/"):
        msg = "Verifikasi keamanan gagal. Muat ulang halaman lalu coba lagi."
        if reason:
            return _api_error("csrf_failed", status=403, message=msg, details={"reason": reason})
        return _api_error("csrf_failed", status=403, message=msg)
    return HttpResponse("CSRF Failed", status=403, content_type="text/plain; charset=utf-8")


@require_POST
def auth_login(request: HttpRequest) -> JsonResponse:
    limited = _check_rate_limit(request, scope="auth_login", limit=12, window_seconds=300)
    if limited:
        return limited
    data = _read_json(request)
    email = _text(data, "email")
    password = str(data.get("password") or "")
    if not email or not password:
        return _api_error("missing_fields", status=400)
    try:
        session = get_backend().sign_in(email, password)
    except BackendError as exc:
        if exc.code == "invalid_credentials":
            logger.info("Rejected dashboard login", extra={"ip": request.META.get("REMOTE_ADDR")})
            return _api_error("invalid_credentials", status=401, message=exc.message)
        return _backend_error(exc)
    request.session.cycle_key()
    request.session[SESSION_KEY] = session.to_dict()
    return _api_ok({"user": session.user})


@ensure_csrf_cookie
@require_GET
def auth_me(request: HttpRequest) -> JsonResponse:
    user = getattr(request, "admin_user", None)
    if not user:
        return _api_ok({"authenticated": False, "user": None})
    return _api_ok({"authenticated": True, "user": user})


@require_POST
def auth_logout(request: HttpRequest) -> JsonResponse:
    session = getattr(request, "auth_session", None)
    if session:
        try:
            get_backend().sign_out(session)
        except BackendError as exc:
            logger.warning("Remote sign out failed", extra={"error": exc.message})
        forget_token(session.access_token)
    request.session.flush()
    return _api_ok()


@require_POST
def admin_client_errors(request: HttpRequest) -> JsonResponse:
    limited = _check_rate_limit(
        request, scope="admin_client_errors", limit=60, window_seconds=300
    )
    if limited:
        return limited
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    data = _read_json(request)
    message = _text(data, "message")
    if not message:
        return _api_error("missing_fields", status=400)
    route = _text(data, "route")
    stack = _text(data, "stack")
    component_stack = _text(data, "componentStack")
    ua = str(request.META.get("HTTP_USER_AGENT") or "").strip()

    logger.error(
        "Client runtime error",
        extra={
            "path": str(getattr(request, "path", "") or ""),
            "route": route,
            "clientMessage": message,
            "stack": stack,
            "componentStack": component_stack,
            "userAgent": ua,
            "userId": _user_id(request),
        },
    )
    return _api_ok()


@require_GET
def admin_summary(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    backend = _backend(request)
    uid = _user_id(request)
    since = (timezone.now() - timedelta(hours=24)).isoformat()
    try:
        contacts = backend.select(Table.CONTACTS, columns="id", filters=[eq("admin_user_id", uid)])
        quotations = backend.select(
            Table.QUOTATIONS,
            columns="id",
            filters=[eq("user_id", uid), is_in("status", [QuotationStatus.DRAFT, QuotationStatus.SENT])],
        )
        invoices = backend.select(
            Table.INVOICES,
            columns="id",
            filters=[eq("user_id", uid), eq("status", InvoiceStatus.UNPAID)],
        )
        submissions = backend.select(Table.FORM_SUBMISSIONS, columns="id", filters=[gte("created_at", since)])
        logos = backend.select(Table.CLIENT_LOGOS, columns="id", filters=[eq("is_active", True)])
        portfolio = backend.first(
            Table.WEBSITE_CONTENT,
            filters=[eq("section", PORTFOLIO_SECTION), eq("user_id", uid), eq("is_active", True)],
        )
        testimonials = backend.select(
            Table.TESTIMONIALS,
            columns="id",
            filters=[eq("user_id", uid), eq("is_active", True)],
        )
        hero = backend.first(
            Table.WEBSITE_CONTENT,
            filters=[eq("section", HERO_SECTION), eq("user_id", uid)],
        )
        brand = _settings_map(backend, uid, SettingCategory.BRAND)
    except BackendError as exc:
        return _backend_error(exc)

    metadata = (portfolio or {}).get("metadata")
    projects = metadata.get("projects") if isinstance(metadata, dict) else None

    warnings: list[str] = []
    if not brand.get("company_logo"):
        warnings.append("Logo perusahaan belum diatur.")
    if not brand.get("company_phone"):
        warnings.append("Nomor telepon perusahaan belum diatur.")
    if not brand.get("company_email"):
        warnings.append("Email perusahaan belum diatur.")
    if not hero:
        warnings.append("Konten hero belum diatur.")

    counts = {
        "contacts": len(contacts),
        "openQuotations": len(quotations),
        "unpaidInvoices": len(invoices),
        "newSubmissions": len(submissions),
        "clientLogos": len(logos),
        "portfolioProjects": len(projects) if isinstance(projects, list) else 0,
        "testimonials": len(testimonials),
    }
    return _api_ok({"warnings": warnings, "counts": counts})
