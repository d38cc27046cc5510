import json
import logging
import queue
import time
from datetime import timedelta
from typing import Any
from typing import Iterator

from django.conf import settings
from django.http import HttpRequest
from django.http import JsonResponse
from django.http import StreamingHttpResponse
from django.utils import timezone
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
from dashboard.api_views import _user_id
from dashboard.backend import Backend
from dashboard.backend import BackendError
from dashboard.backend import Subscription
from dashboard.backend import eq
from dashboard.backend import gte
from dashboard.backend import is_in
from dashboard.filters import count_by
from dashboard.mail import render_transcript
from dashboard.mail import send_transcript
from dashboard.models import DEFAULT_MAX_CONCURRENT_CHATS
from dashboard.models import TRANSCRIPT_TEMPLATE_TYPE
from dashboard.models import ChatPlatform
from dashboard.models import ConversationStatus
from dashboard.models import DeviceStatus
from dashboard.models import LeadStatus
from dashboard.models import QrAction
from dashboard.models import SenderType
from dashboard.models import Table


logger = logging.getLogger(__name__)

FEED_TABLES = (Table.CHAT_CONVERSATIONS, Table.CHAT_MESSAGES)


class ChangeFeed:
    """Server-sent events fed by backend change notifications.

    Every change is forwarded as an ``invalidate`` event so the browser refetches;
    nothing is replayed. Subscriptions are released when the response is closed.
    """

    def __init__(
        self,
        backend: Backend,
        tables: tuple[str, ...] = FEED_TABLES,
        *,
        keepalive_seconds: float = 15.0,
        max_seconds: float = 300.0,
    ) -> None:
        self.keepalive_seconds = keepalive_seconds
        self.max_seconds = max_seconds
        self._changes: queue.Queue[dict[str, Any]] = queue.Queue()
        self._subscriptions: list[Subscription] = []
        try:
            for table in tables:
                self._subscriptions.append(backend.subscribe(table, self._changes.put))
        except BackendError:
            self.close()
            raise

    def close(self) -> None:
        while self._subscriptions:
            self._subscriptions.pop().unsubscribe()

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield b"event: ready\ndata: {}\n\n"
            deadline = time.monotonic() + self.max_seconds
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    change = self._changes.get(timeout=min(self.keepalive_seconds, remaining))
                except queue.Empty:
                    yield b": keep-alive\n\n"
                    continue
                payload = json.dumps(
                    {
                        "type": "invalidate",
                        "table": change.get("table"),
                        "event": change.get("eventType"),
                    }
                )
                yield f"data: {payload}\n\n".encode("utf-8")
        finally:
            self.close()


def _agent_values(data: dict[str, Any]) -> dict[str, Any] | JsonResponse:
    name = _text(data, "agent_name")
    email = _text(data, "agent_email")
    if not name or not email:
        return _api_error("missing_fields", status=400)
    raw = data.get("max_concurrent_chats")
    max_chats = DEFAULT_MAX_CONCURRENT_CHATS
    if raw is not None and raw != "":
        try:
            max_chats = int(raw)
        except (TypeError, ValueError):
            return _api_error("invalid_max_concurrent_chats", status=400)
        if max_chats < 1:
            return _api_error("invalid_max_concurrent_chats", status=400)
    return {"agent_name": name, "agent_email": email, "max_concurrent_chats": max_chats}


@require_GET
def admin_chat_stats(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    backend = _backend(request)
    since = (timezone.now() - timedelta(hours=24)).isoformat()
    try:
        conversations = backend.select(Table.CHAT_CONVERSATIONS, columns="id, status, platform")
        messages = backend.select(Table.CHAT_MESSAGES, columns="id", filters=[gte("message_time", since)])
        agents = backend.select(Table.CHAT_AGENTS, columns="id, is_active, is_online")
    except BackendError as exc:
        return _backend_error(exc)
    by_status = count_by(conversations, "status")
    by_platform = count_by(conversations, "platform")
    return _api_ok(
        {
            "totalConversations": len(conversations),
            "activeConversations": by_status.get(ConversationStatus.ACTIVE, 0),
            "pendingConversations": by_status.get(ConversationStatus.PENDING, 0),
            "unassignedConversations": by_status.get(ConversationStatus.UNASSIGNED, 0),
            "closedConversations": by_status.get(ConversationStatus.CLOSED, 0),
            "websiteChats": by_platform.get(ChatPlatform.WEBSITE, 0),
            "whatsappChats": by_platform.get(ChatPlatform.WHATSAPP, 0),
            "messagesLast24h": len(messages),
            "totalAgents": len(agents),
            "activeAgents": sum(1 for a in agents if a.get("is_active")),
            "onlineAgents": sum(1 for a in agents if a.get("is_online")),
        }
    )


@require_GET
def admin_chat_agents(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    filters = []
    if _parse_bool(request.GET.get("active")):
        filters.append(eq("is_active", True))
    try:
        rows = _backend(request).select(Table.CHAT_AGENTS, filters=filters, order="agent_name")
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"items": rows})


@require_POST
def admin_chat_agents_create(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    values = _agent_values(_read_json(request))
    if isinstance(values, JsonResponse):
        return values
    values.update({"is_active": True, "is_online": False})
    try:
        rows = _backend(request).insert(Table.CHAT_AGENTS, values)
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": rows[0] if rows else None})


@require_POST
def admin_chat_agents_update(request: HttpRequest, agent_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    values = _agent_values(_read_json(request))
    if isinstance(values, JsonResponse):
        return values
    values["updated_at"] = _now_iso()
    try:
        rows = _backend(request).update(Table.CHAT_AGENTS, values, filters=[eq("id", agent_id)])
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_chat_agents_toggle(request: HttpRequest, agent_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    data = _read_json(request)
    field = _text(data, "field")
    if field not in {"is_active", "is_online"}:
        return _api_error("invalid_field", status=400)
    value = _parse_bool(data.get("value"))
    if value is None:
        return _api_error("invalid_value", status=400)
    try:
        rows = _backend(request).update(
            Table.CHAT_AGENTS,
            {field: value, "updated_at": _now_iso()},
            filters=[eq("id", agent_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_chat_agents_delete(request: HttpRequest, agent_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).delete(Table.CHAT_AGENTS, filters=[eq("id", agent_id)])
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok()


@require_GET
def admin_chat_conversations(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    filters = []
    status = str(request.GET.get("status") or "").strip()
    platform = str(request.GET.get("platform") or "").strip()
    if status and status != "all":
        filters.append(eq("status", status))
    if platform and platform != "all":
        filters.append(eq("platform", platform))
    backend = _backend(request)
    try:
        rows = backend.select(Table.CHAT_CONVERSATIONS, filters=filters, order="updated_at", descending=True)
        agent_ids = sorted({str(r["agent_id"]) for r in rows if r.get("agent_id")})
        agents = (
            backend.select(Table.CHAT_AGENTS, columns="id, agent_name, agent_email", filters=[is_in("id", agent_ids)])
            if agent_ids
            else []
        )
    except BackendError as exc:
        return _backend_error(exc)
    by_id = {str(a.get("id")): a for a in agents}
    items = []
    for r in rows:
        agent = by_id.get(str(r.get("agent_id") or ""))
        items.append(
            {
                **r,
                "agent_name": agent.get("agent_name") if agent else None,
                "agent_email": agent.get("agent_email") if agent else None,
            }
        )
    return _api_ok({"items": items})


def _conversation(backend: Backend, conversation_id: str) -> dict[str, Any] | None:
    return backend.first(Table.CHAT_CONVERSATIONS, filters=[eq("id", conversation_id)])


@require_GET
def admin_chat_messages(request: HttpRequest, conversation_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    backend = _backend(request)
    try:
        conversation = _conversation(backend, conversation_id)
        if not conversation:
            return _api_error("not_found", status=404)
        rows = backend.select(
            Table.CHAT_MESSAGES,
            filters=[eq("conversation_id", conversation_id)],
            order="message_time",
        )
        if conversation.get("unread_count"):
            backend.update(
                Table.CHAT_CONVERSATIONS,
                {"unread_count": 0},
                filters=[eq("id", conversation_id)],
            )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"conversation": conversation, "items": rows})


@require_POST
def admin_chat_messages_send(request: HttpRequest, conversation_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    content = _text(_read_json(request), "content")
    if not content:
        return _api_error("missing_fields", status=400)
    backend = _backend(request)
    now = _now_iso()
    try:
        if not _conversation(backend, conversation_id):
            return _api_error("not_found", status=404)
        rows = backend.insert(
            Table.CHAT_MESSAGES,
            {
                "conversation_id": conversation_id,
                "sender_type": SenderType.AGENT,
                "sender_name": request.admin_user.get("email") or "Agent",
                "message_content": content,
                "message_type": "text",
                "message_time": now,
            },
        )
        backend.update(
            Table.CHAT_CONVERSATIONS,
            {
                "last_message_content": content,
                "last_message_time": now,
                "unread_count": 0,
                "status": ConversationStatus.ACTIVE,
                "updated_at": now,
            },
            filters=[eq("id", conversation_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": rows[0] if rows else None})


def admin_chat_conversation_messages(request: HttpRequest, conversation_id: str) -> JsonResponse:
    if request.method == "POST":
        return admin_chat_messages_send(request, conversation_id)
    return admin_chat_messages(request, conversation_id)


@require_POST
def admin_chat_assign(request: HttpRequest, conversation_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    agent_id = _text(_read_json(request), "agentId")
    if not agent_id:
        return _api_error("missing_fields", status=400)
    backend = _backend(request)
    try:
        agent = backend.first(Table.CHAT_AGENTS, filters=[eq("id", agent_id)])
        if not agent or not agent.get("is_active"):
            return _api_error("invalid_agent", status=400)
        rows = backend.update(
            Table.CHAT_CONVERSATIONS,
            {
                "agent_id": agent_id,
                "status": ConversationStatus.ACTIVE,
                "assigned_to": _user_id(request),
                "updated_at": _now_iso(),
            },
            filters=[eq("id", conversation_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


@require_POST
def admin_chat_close(request: HttpRequest, conversation_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    now = _now_iso()
    try:
        rows = _backend(request).update(
            Table.CHAT_CONVERSATIONS,
            {"status": ConversationStatus.CLOSED, "chat_ended_at": now, "updated_at": now},
            filters=[eq("id", conversation_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok({"item": rows[0]})


def _email_transcript(backend: Backend, conversation_id: str) -> list[str] | JsonResponse:
    """Send the transcript and mark the conversation; recipients or an error response."""
    try:
        conversation = _conversation(backend, conversation_id)
        if not conversation:
            return _api_error("not_found", status=404)
        messages = backend.select(
            Table.CHAT_MESSAGES,
            filters=[eq("conversation_id", conversation_id)],
            order="message_time",
        )
        template = backend.first(
            Table.EMAIL_TEMPLATES,
            filters=[eq("template_type", TRANSCRIPT_TEMPLATE_TYPE), eq("is_active", True)],
        )
        agent = (
            backend.first(Table.CHAT_AGENTS, filters=[eq("id", conversation["agent_id"])])
            if conversation.get("agent_id")
            else None
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not template:
        return _api_error("template_not_found", status=404)

    subject, body = render_transcript(template, conversation, messages, agent)
    try:
        sent = send_transcript(subject, body, conversation.get("customer_email"))
    except OSError as exc:
        logger.warning(
            "Chat transcript email failed",
            extra={"conversationId": conversation_id, "error": str(exc)},
        )
        return _api_error("email_failed", status=502, message=str(exc))
    if not sent:
        return _api_error("no_recipients", status=400)
    try:
        backend.update(Table.CHAT_CONVERSATIONS, {"email_sent": True}, filters=[eq("id", conversation_id)])
    except BackendError as exc:
        return _backend_error(exc)
    return sent


@require_POST
def admin_chat_transcript(request: HttpRequest, conversation_id: str) -> JsonResponse:
    limited = _check_rate_limit(request, scope="admin_chat_transcript", limit=20, window_seconds=600)
    if limited:
        return limited
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    sent = _email_transcript(_backend(request), conversation_id)
    if isinstance(sent, JsonResponse):
        return sent
    return _api_ok({"sentTo": sent})


@require_GET
def admin_chat_feed(request: HttpRequest) -> StreamingHttpResponse | JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        feed = ChangeFeed(
            _backend(request),
            keepalive_seconds=float(getattr(settings, "DASHBOARD_FEED_KEEPALIVE_SECONDS", 15)),
            max_seconds=float(getattr(settings, "DASHBOARD_FEED_MAX_SECONDS", 300)),
        )
    except BackendError as exc:
        return _backend_error(exc)
    resp = StreamingHttpResponse(feed, content_type="text/event-stream; charset=utf-8")
    resp["Cache-Control"] = "no-cache"
    resp["X-Accel-Buffering"] = "no"
    return resp


@require_GET
def admin_whatsapp_devices(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).select(
            Table.WHATSAPP_DEVICES,
            filters=[eq("user_id", _user_id(request))],
            order="created_at",
            descending=True,
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"items": rows})


@require_POST
def admin_whatsapp_devices_create(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    data = _read_json(request)
    name = _text(data, "device_name")
    phone = _text(data, "phone_number")
    if not name or not phone:
        return _api_error("missing_fields", status=400)
    try:
        rows = _backend(request).insert(
            Table.WHATSAPP_DEVICES,
            {
                "device_name": name,
                "phone_number": phone,
                "user_id": _user_id(request),
                "connection_status": DeviceStatus.PENDING,
            },
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": rows[0] if rows else None})


@require_POST
def admin_whatsapp_devices_delete(request: HttpRequest, device_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        rows = _backend(request).delete(
            Table.WHATSAPP_DEVICES,
            filters=[eq("id", device_id), eq("user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    return _api_ok()


@require_POST
def admin_whatsapp_devices_qr(request: HttpRequest, device_id: str) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    action = _text(_read_json(request), "action")
    now = timezone.now()
    if action == QrAction.GENERATE:
        qr_data = f"whatsapp://qr/{device_id}/{int(now.timestamp() * 1000)}"
        values: dict[str, Any] = {"qr_code_data": qr_data, "connection_status": DeviceStatus.CONNECTING}
    elif action == QrAction.CONNECT:
        values = {"connection_status": DeviceStatus.CONNECTED, "last_connected_at": now.isoformat()}
    elif action == QrAction.DISCONNECT:
        values = {"connection_status": DeviceStatus.DISCONNECTED, "qr_code_data": None}
    else:
        return _api_error("invalid_action", status=400)
    values["updated_at"] = now.isoformat()
    try:
        rows = _backend(request).update(
            Table.WHATSAPP_DEVICES,
            values,
            filters=[eq("id", device_id), eq("user_id", _user_id(request))],
        )
    except BackendError as exc:
        return _backend_error(exc)
    if not rows:
        return _api_error("not_found", status=404)
    result: dict[str, Any] = {"item": rows[0]}
    if action == QrAction.GENERATE:
        result["qrCode"] = values["qr_code_data"]
    return _api_ok(result)


def _masked_config(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if not row:
        return None
    out = dict(row)
    key = str(row.get("api_key") or "")
    out["api_key"] = ("*" * max(0, len(key) - 4) + key[-4:]) if key else ""
    out["has_api_key"] = bool(key)
    return out


@require_GET
def admin_whatsapp_config(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    try:
        row = _backend(request).first(Table.WHATSAPP_CONFIGS, filters=[eq("user_id", _user_id(request))])
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"config": _masked_config(row)})


@require_POST
def admin_whatsapp_config_update(request: HttpRequest) -> JsonResponse:
    forbidden = _require_admin(request)
    if forbidden:
        return forbidden
    data = _read_json(request)
    values: dict[str, Any] = {
        "config_type": _text(data, "config_type") or "whatsapp_business",
        "base_url": _optional_text(data, "base_url"),
        "webhook_url": _optional_text(data, "webhook_url"),
        "is_configured": True,
    }
    api_key = _text(data, "api_key")
    backend = _backend(request)
    uid = _user_id(request)
    try:
        existing = backend.first(Table.WHATSAPP_CONFIGS, columns="id, api_key", filters=[eq("user_id", uid)])
        # The masked key echoed back by the form means "unchanged".
        if api_key and api_key != (_masked_config(existing) or {}).get("api_key"):
            values["api_key"] = api_key
        if existing:
            rows = backend.update(Table.WHATSAPP_CONFIGS, values, filters=[eq("id", existing["id"])])
        else:
            rows = backend.insert(Table.WHATSAPP_CONFIGS, {**values, "user_id": uid})
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"config": _masked_config(rows[0] if rows else None)})


# Website visitors. A visitor may only touch conversations started from their own session.

SITE_CHAT_SESSION_KEY = "site_chat_conversations"
WELCOME_MESSAGE = "Halo {name}! Selamat datang di {company}. Tim CS kami akan segera merespons pesan Anda."


def _visitor_conversation(request: HttpRequest, backend: Backend, conversation_id: str) -> dict[str, Any] | None:
    if conversation_id not in request.session.get(SITE_CHAT_SESSION_KEY, []):
        return None
    return _conversation(backend, conversation_id)


def _lead_from_chat(backend: Backend, data: dict[str, Any]) -> None:
    owner = str(getattr(settings, "DASHBOARD_LEAD_OWNER_ID", "") or "")
    if not owner:
        logger.info("No lead owner configured; chat visitor not added to contacts")
        return
    try:
        backend.insert(
            Table.CONTACTS,
            {
                "admin_user_id": owner,
                "client_name": data["customer_name"],
                "client_email": data["customer_email"] or "",
                "client_phone": data["customer_phone"],
                "client_company": data["customer_company"],
                "lead_source": "Live Chat",
                "lead_status": LeadStatus.NEW,
                "notes": "Lead dari Live Chat website",
            },
        )
    except BackendError as exc:
        logger.warning("Chat lead not saved", extra={"error": exc.message})


@require_POST
def site_chat_start(request: HttpRequest) -> JsonResponse:
    limited = _check_rate_limit(request, scope="site_chat_start", limit=6, window_seconds=600)
    if limited:
        return limited
    data = _read_json(request)
    name = _text(data, "name")
    phone = _text(data, "phone")
    if not name or not phone:
        return _api_error("missing_fields", status=400, message="Nama dan nomor telepon wajib diisi")
    now = _now_iso()
    values = {
        "customer_name": name,
        "customer_phone": phone,
        "customer_email": _optional_text(data, "email"),
        "customer_company": _optional_text(data, "company"),
        "platform": ChatPlatform.WEBSITE,
        "status": ConversationStatus.UNASSIGNED,
        "unread_count": 0,
        "last_message_content": "Percakapan dimulai",
        "last_message_time": now,
        "chat_started_at": now,
    }
    company = str(getattr(settings, "DASHBOARD_COMPANY_NAME", "") or "") or "kami"
    backend = _backend(request)
    try:
        created = backend.insert(Table.CHAT_CONVERSATIONS, values)
        if not created:
            return _api_error("backend_error", status=502)
        conversation_id = str(created[0]["id"])
        welcome = backend.insert(
            Table.CHAT_MESSAGES,
            {
                "conversation_id": conversation_id,
                "sender_type": SenderType.SYSTEM,
                "sender_name": "System",
                "message_content": WELCOME_MESSAGE.format(name=name, company=company),
                "message_type": "text",
                "message_time": now,
            },
        )
    except BackendError as exc:
        return _backend_error(exc)
    _lead_from_chat(backend, values)

    request.session[SITE_CHAT_SESSION_KEY] = [*request.session.get(SITE_CHAT_SESSION_KEY, [])[-9:], conversation_id]
    return _api_ok({"conversationId": conversation_id, "items": welcome})


@require_GET
def site_chat_messages(request: HttpRequest, conversation_id: str) -> JsonResponse:
    backend = _backend(request)
    try:
        conversation = _visitor_conversation(request, backend, conversation_id)
        if not conversation:
            return _api_error("not_found", status=404)
        rows = backend.select(
            Table.CHAT_MESSAGES,
            filters=[eq("conversation_id", conversation_id)],
            order="message_time",
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"status": conversation.get("status"), "items": rows})


@require_POST
def site_chat_messages_send(request: HttpRequest, conversation_id: str) -> JsonResponse:
    limited = _check_rate_limit(request, scope="site_chat_message", limit=60, window_seconds=300)
    if limited:
        return limited
    content = _text(_read_json(request), "content")
    if not content:
        return _api_error("missing_fields", status=400)
    backend = _backend(request)
    now = _now_iso()
    try:
        conversation = _visitor_conversation(request, backend, conversation_id)
        if not conversation:
            return _api_error("not_found", status=404)
        if conversation.get("status") == ConversationStatus.CLOSED:
            return _api_error("conversation_closed", status=409)
        rows = backend.insert(
            Table.CHAT_MESSAGES,
            {
                "conversation_id": conversation_id,
                "sender_type": SenderType.CUSTOMER,
                "sender_name": conversation.get("customer_name") or "",
                "message_content": content,
                "message_type": "text",
                "message_time": now,
            },
        )
        backend.update(
            Table.CHAT_CONVERSATIONS,
            {
                "last_message_content": content,
                "last_message_time": now,
                "unread_count": int(conversation.get("unread_count") or 0) + 1,
                "status": ConversationStatus.ACTIVE,
                "updated_at": now,
            },
            filters=[eq("id", conversation_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"item": rows[0] if rows else None})


def site_chat_conversation_messages(request: HttpRequest, conversation_id: str) -> JsonResponse:
    if request.method == "POST":
        return site_chat_messages_send(request, conversation_id)
    return site_chat_messages(request, conversation_id)


@require_POST
def site_chat_end(request: HttpRequest, conversation_id: str) -> JsonResponse:
    backend = _backend(request)
    now = _now_iso()
    try:
        if not _visitor_conversation(request, backend, conversation_id):
            return _api_error("not_found", status=404)
        rows = backend.update(
            Table.CHAT_CONVERSATIONS,
            {"status": ConversationStatus.CLOSED, "chat_ended_at": now, "updated_at": now},
            filters=[eq("id", conversation_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)
    return _api_ok({"status": (rows[0] if rows else {}).get("status")})


@require_POST
def site_chat_feedback(request: HttpRequest, conversation_id: str) -> JsonResponse:
    limited = _check_rate_limit(request, scope="site_chat_feedback", limit=6, window_seconds=600)
    if limited:
        return limited
    data = _read_json(request)
    try:
        rating = int(data.get("rating"))
    except (TypeError, ValueError):
        return _api_error("invalid_rating", status=400)
    if rating < 1 or rating > 5:
        return _api_error("invalid_rating", status=400)
    backend = _backend(request)
    try:
        if not _visitor_conversation(request, backend, conversation_id):
            return _api_error("not_found", status=404)
        backend.update(
            Table.CHAT_CONVERSATIONS,
            {"chat_rating": rating, "chat_feedback": _optional_text(data, "feedback"), "updated_at": _now_iso()},
            filters=[eq("id", conversation_id)],
        )
    except BackendError as exc:
        return _backend_error(exc)

    sent = _email_transcript(backend, conversation_id)
    if isinstance(sent, JsonResponse):
        logger.warning(
            "Transcript not sent after feedback",
            extra={"conversationId": conversation_id, "statusCode": sent.status_code},
        )
        sent = []
    return _api_ok({"transcriptSent": bool(sent)})
