import logging
from typing import Any

from django.conf import settings
from django.core.mail import EmailMessage
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.utils.html import escape

from dashboard.documents import DocumentKind
from dashboard.formatting import format_date
from dashboard.models import SenderType


logger = logging.getLogger(__name__)

TRANSCRIPT_PLACEHOLDERS = (
    "customer_name",
    "customer_email",
    "customer_phone",
    "customer_company",
    "agent_name",
    "chat_date",
    "chat_messages",
)


def send_document(kind: DocumentKind, context: dict[str, Any], pdf_bytes: bytes) -> None:
    company = context["company"]
    client = context["client"]
    subject = f"{kind.filename_prefix} {context['number']} - {company['name']}"
    body = "\n".join(
        [
            f"Yth. {client['name']},",
            "",
            f"Terlampir {kind.filename_prefix.lower()} #{context['number']} dengan total {context['total']}.",
            "",
            "Terima kasih,",
            company["name"],
        ]
    )
    msg = EmailMessage(
        subject=subject,
        body=body,
        to=[client["email"]],
        reply_to=[company["email"]] if company.get("email") else None,
    )
    msg.attach(kind.filename(context["number"]), pdf_bytes, "application/pdf")
    msg.send()
    logger.info(
        "Document emailed",
        extra={"kind": kind.name, "number": context["number"]},
    )


def _message_time(value: Any) -> str:
    try:
        dt = parse_datetime(str(value or ""))
    except ValueError:
        dt = None
    if dt is None:
        return ""
    if timezone.is_aware(dt):
        dt = timezone.localtime(dt)
    return f"{dt.hour:02d}.{dt.minute:02d}.{dt.second:02d}"


def transcript_messages_html(conversation: dict[str, Any], messages: list[dict[str, Any]]) -> str:
    out: list[str] = []
    for msg in messages:
        if msg.get("sender_type") == SenderType.CUSTOMER:
            sender = conversation.get("customer_name") or "Customer"
        else:
            sender = msg.get("sender_name") or "Agent"
        out.append(
            "<p><strong>[%s] %s:</strong> %s</p>"
            % (
                _message_time(msg.get("message_time")),
                escape(str(sender)),
                escape(str(msg.get("message_content") or "")),
            )
        )
    return "".join(out)


def fill_placeholders(text: str, values: dict[str, str]) -> str:
    for key, value in values.items():
        text = text.replace("{{%s}}" % key, value)
    return text


def render_transcript(
    template: dict[str, Any],
    conversation: dict[str, Any],
    messages: list[dict[str, Any]],
    agent: dict[str, Any] | None,
) -> tuple[str, str]:
    values = {
        "customer_name": escape(str(conversation.get("customer_name") or "")),
        "customer_email": escape(str(conversation.get("customer_email") or "")),
        "customer_phone": escape(str(conversation.get("customer_phone") or "")),
        "customer_company": escape(str(conversation.get("customer_company") or "")),
        "agent_name": escape(str((agent or {}).get("agent_name") or "System")),
        "chat_date": format_date(conversation.get("created_at")),
        "chat_messages": transcript_messages_html(conversation, messages),
    }
    subject_values = {
        "customer_name": str(conversation.get("customer_name") or ""),
        "chat_date": values["chat_date"],
    }
    subject = fill_placeholders(str(template.get("subject_template") or ""), subject_values)
    body = fill_placeholders(str(template.get("body_template") or ""), values)
    return subject, body


def send_transcript(subject: str, body: str, customer_email: str | None) -> list[str]:
    """Send to the admin address and, when known, to the customer. Returns recipients."""
    sent: list[str] = []
    admin_email = str(getattr(settings, "DASHBOARD_ADMIN_EMAIL", "") or "").strip()
    if admin_email:
        msg = EmailMessage(subject=f"[ADMIN] {subject}", body=body, to=[admin_email])
        msg.content_subtype = "html"
        msg.send()
        sent.append(admin_email)
    if customer_email:
        msg = EmailMessage(subject=subject, body=body, to=[customer_email])
        msg.content_subtype = "html"
        msg.send()
        sent.append(customer_email)
    logger.info("Chat transcript sent", extra={"recipients": len(sent)})
    return sent
