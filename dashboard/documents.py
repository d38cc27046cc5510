"""
Quotation and invoice documents.

``document_context`` builds one dictionary that feeds both the on-screen HTML
preview and the PDF export, so the two never disagree on numbers or wording.
"""

import logging
import urllib.request
from dataclasses import dataclass
from io import BytesIO
from typing import Any
from urllib.parse import urlparse

from django.conf import settings
from django.template.loader import render_to_string
from PIL import Image

from dashboard.billing import to_decimal
from dashboard.billing import to_number
from dashboard.formatting import format_currency
from dashboard.formatting import format_date
from dashboard.formatting import format_long_date
from dashboard.models import INVOICE_TERMS
from dashboard.models import QUOTATION_TERMS
from dashboard.models import InvoiceStatus
from dashboard.models import QuotationStatus
from dashboard.models import Table


logger = logging.getLogger(__name__)

Logo = tuple[bytes, int, int]

PAGE_WIDTH = 595.0
PAGE_HEIGHT = 842.0
LINES_PER_PAGE = 45


@dataclass(frozen=True)
class DocumentKind:
    name: str
    title: str
    table: str
    items_table: str
    parent_field: str
    number_field: str
    number_prefix: str
    date_field: str
    date_label: str
    second_date_field: str
    second_date_label: str
    details_heading: str
    items_heading: str
    filename_prefix: str
    initial_status: str
    statuses: Any
    default_terms: str

    def filename(self, number: str) -> str:
        safe = _pdf_sanitize_text(number).replace(" ", "-").replace("/", "-") or "dokumen"
        return f"{self.filename_prefix}-{safe}.pdf"


QUOTATION = DocumentKind(
    name="quotation",
    title="PENAWARAN",
    table=Table.QUOTATIONS,
    items_table=Table.QUOTATION_ITEMS,
    parent_field="quotation_id",
    number_field="quotation_number",
    number_prefix="QUO",
    date_field="quotation_date",
    date_label="Tanggal Penawaran",
    second_date_field="valid_until",
    second_date_label="Berlaku Hingga",
    details_heading="Detail Penawaran",
    items_heading="Rincian Penawaran",
    filename_prefix="Penawaran",
    initial_status=QuotationStatus.DRAFT,
    statuses=QuotationStatus,
    default_terms=QUOTATION_TERMS,
)

INVOICE = DocumentKind(
    name="invoice",
    title="INVOICE",
    table=Table.INVOICES,
    items_table=Table.INVOICE_ITEMS,
    parent_field="invoice_id",
    number_field="invoice_number",
    number_prefix="INV",
    date_field="invoice_date",
    date_label="Tanggal Invoice",
    second_date_field="due_date",
    second_date_label="Jatuh Tempo",
    details_heading="Detail Invoice",
    items_heading="Rincian Tagihan",
    filename_prefix="Invoice",
    initial_status=InvoiceStatus.UNPAID,
    statuses=InvoiceStatus,
    default_terms=INVOICE_TERMS,
)

KINDS = {QUOTATION.name: QUOTATION, INVOICE.name: INVOICE}


def company_info(brand: dict[str, Any] | None) -> dict[str, str]:
    """Company block from brand settings, falling back to configured defaults."""
    brand = brand or {}

    def pick(key: str, setting_name: str) -> str:
        value = str(brand.get(key) or "").strip()
        return value or str(getattr(settings, setting_name, "") or "").strip()

    return {
        "name": pick("company_name", "DASHBOARD_COMPANY_NAME") or "Nama Perusahaan",
        "address": pick("company_address", "DASHBOARD_COMPANY_ADDRESS"),
        "phone": pick("company_phone", "DASHBOARD_COMPANY_PHONE"),
        "email": pick("company_email", "DASHBOARD_COMPANY_EMAIL"),
        "logo": pick("company_logo", "DASHBOARD_COMPANY_LOGO"),
    }


def _status_label(kind: DocumentKind, status: Any) -> str:
    try:
        return str(kind.statuses(status).label)
    except ValueError:
        return str(status or "")


def document_context(
    kind: DocumentKind,
    header: dict[str, Any],
    items: list[dict[str, Any]],
    company: dict[str, Any] | None = None,
) -> dict[str, Any]:
    currency = str(header.get("currency") or getattr(settings, "DASHBOARD_CURRENCY", "IDR"))
    rows: list[dict[str, Any]] = []
    for idx, it in enumerate(items, start=1):
        quantity = to_decimal(it.get("quantity"))
        unit_price = to_decimal(it.get("unit_price"))
        total = to_decimal(it.get("total"), quantity * unit_price)
        rows.append(
            {
                "no": idx,
                "name": str(it.get("item_name") or ""),
                "description": str(it.get("description") or ""),
                "quantity": to_number(quantity),
                "unit_price": format_currency(unit_price, currency),
                "total": format_currency(total, currency),
            }
        )
    status = str(header.get("status") or kind.initial_status)
    return {
        "kind": kind.name,
        "title": kind.title,
        "number": str(header.get(kind.number_field) or ""),
        "company": company_info(company),
        "client": {
            "name": str(header.get("client_name") or ""),
            "email": str(header.get("client_email") or ""),
            "company": str(header.get("client_company") or ""),
            "address": str(header.get("client_address") or ""),
        },
        "details_heading": kind.details_heading,
        "items_heading": kind.items_heading,
        "date_label": kind.date_label,
        "date": format_date(header.get(kind.date_field)),
        "date_long": format_long_date(header.get(kind.date_field)),
        "second_date_label": kind.second_date_label,
        "second_date": format_date(header.get(kind.second_date_field)),
        "items": rows,
        "subtotal": format_currency(header.get("subtotal"), currency),
        "tax_percentage": to_number(to_decimal(header.get("tax_percentage"))),
        "tax_amount": format_currency(header.get("tax_amount"), currency),
        "total": format_currency(header.get("total_amount"), currency),
        "notes": str(header.get("notes") or ""),
        "terms": str(header.get("terms_conditions") or ""),
        "status": status,
        "status_label": _status_label(kind, status),
    }


def render_preview(context: dict[str, Any]) -> str:
    return render_to_string("dashboard/document_preview.html", context)


def document_lines(context: dict[str, Any]) -> list[str]:
    company = context["company"]
    client = context["client"]
    lines: list[str] = [company["name"]]
    lines.extend(x for x in company["address"].splitlines() if x.strip())
    if company["phone"] or company["email"]:
        lines.append(f"Telp: {company['phone']} | Email: {company['email']}")
    lines.append("")
    lines.append(f"{context['title']} #{context['number']}")
    lines.append(f"{context['date_label']}: {context['date']}")
    if context["second_date"]:
        lines.append(f"{context['second_date_label']}: {context['second_date']}")
    lines.append(f"Status: {context['status_label']}")
    lines.append("")
    lines.append("Kepada:")
    lines.append(client["name"])
    lines.append(client["email"])
    if client["company"]:
        lines.append(client["company"])
    lines.extend(x for x in client["address"].splitlines() if x.strip())
    lines.append("")
    lines.append(f"{context['items_heading']}:")
    for it in context["items"]:
        lines.append(f"{it['no']}. {it['name']} | {it['quantity']} x {it['unit_price']} = {it['total']}")
        if it["description"]:
            lines.append(f"    {it['description']}")
    lines.append("")
    lines.append(f"Subtotal: {context['subtotal']}")
    lines.append(f"PPN ({context['tax_percentage']}%): {context['tax_amount']}")
    lines.append(f"Total: {context['total']}")
    if context["notes"]:
        lines.append("")
        lines.append("Catatan:")
        lines.extend(context["notes"].splitlines())
    if context["terms"]:
        lines.append("")
        lines.append("Syarat & Ketentuan:")
        lines.extend(context["terms"].splitlines())
    return lines


def _pdf_sanitize_text(val: Any) -> str:
    s = str(val or "")
    out = []
    for ch in s:
        code = ord(ch)
        if ch in {"\n", "\r", "\t"}:
            out.append(" ")
            continue
        if 32 <= code <= 126:
            if ch in {"(", ")", "\\"}:
                out.append("\\" + ch)
            else:
                out.append(ch)
    return "".join(out).strip()


def logo_as_jpeg(raw: bytes) -> Logo | None:
    try:
        img = Image.open(BytesIO(raw))
        img.load()
        img_rgba = img.convert("RGBA")
        img_rgba.thumbnail((700, 300))
        bg = Image.new("RGBA", img_rgba.size, (255, 255, 255, 255))
        bg.alpha_composite(img_rgba)
        img_rgb = bg.convert("RGB")
        out = BytesIO()
        img_rgb.save(out, format="JPEG", quality=82, optimize=True)
    except Exception:
        logger.info("Company logo could not be decoded")
        return None
    jpg = out.getvalue()
    if not jpg:
        return None
    return jpg, img_rgb.width, img_rgb.height


def fetch_logo(url: str, *, timeout: float = 5.0, max_bytes: int = 5 * 1024 * 1024) -> Logo | None:
    """Download the brand logo for the PDF; any failure means no logo."""
    if urlparse(str(url or "")).scheme not in {"http", "https"}:
        return None
    req = urllib.request.Request(url, headers={"User-Agent": "consultant-dashboard/1.0"})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read(max_bytes + 1)
    except Exception:
        logger.info("Company logo download failed", extra={"url": url})
        return None
    if not raw or len(raw) > max_bytes:
        return None
    return logo_as_jpeg(raw)


def _page_content(lines: list[str], logo_px: tuple[int, int] | None) -> bytes:
    content_lines: list[str] = []
    if logo_px and logo_px[0] > 0 and logo_px[1] > 0:
        px_w, px_h = logo_px
        max_w = 130.0
        max_h = 64.0
        ratio = float(px_h) / float(px_w)
        draw_w = max_w
        draw_h = draw_w * ratio
        if draw_h > max_h:
            draw_h = max_h
            draw_w = draw_h / ratio if ratio else max_w
        x = PAGE_WIDTH - 50.0 - draw_w
        y = PAGE_HEIGHT - 50.0 - draw_h
        content_lines.extend(
            [
                "q",
                f"{draw_w:.2f} 0 0 {draw_h:.2f} {x:.2f} {y:.2f} cm",
                "/Im1 Do",
                "Q",
            ]
        )

    content_lines.extend(["BT", "/F1 12 Tf", "50 800 Td"])
    for i, line in enumerate(lines):
        if i:
            content_lines.append("0 -16 Td")
        content_lines.append(f"({line}) Tj")
    content_lines.append("ET")
    return "\n".join(content_lines).encode("ascii", "ignore")


def render_pdf(context: dict[str, Any], logo: Logo | None = None) -> bytes:
    safe_lines = [(_pdf_sanitize_text(line) or " ")[:160] for line in document_lines(context)]
    pages = [safe_lines[i:i + LINES_PER_PAGE] for i in range(0, len(safe_lines), LINES_PER_PAGE)] or [["-"]]
    if logo and (logo[1] <= 0 or logo[2] <= 0):
        logo = None

    # 1 catalog, 2 pages, 3 font, then a page and content object per page, image last.
    page_ids = [4 + 2 * i for i in range(len(pages))]
    image_id = 4 + 2 * len(pages)

    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        (
            "<< /Type /Pages /Kids [%s] /Count %d >>"
            % (" ".join(f"{pid} 0 R" for pid in page_ids), len(pages))
        ).encode("ascii"),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for idx, page_lines in enumerate(pages):
        with_logo = bool(logo) and idx == 0
        resources = "<< /Font << /F1 3 0 R >>"
        if with_logo:
            resources += f" /XObject << /Im1 {image_id} 0 R >>"
        resources += " >>"
        objects.append(
            (
                f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {int(PAGE_WIDTH)} {int(PAGE_HEIGHT)}] "
                f"/Resources {resources} /Contents {page_ids[idx] + 1} 0 R >>"
            ).encode("ascii")
        )
        content = _page_content(page_lines, (logo[1], logo[2]) if with_logo and logo else None)
        objects.append(b"<< /Length %d >>\nstream\n%s\nendstream" % (len(content), content))

    if logo:
        logo_jpeg, px_w, px_h = logo
        img_obj = (
            f"<< /Type /XObject /Subtype /Image /Width {int(px_w)} /Height {int(px_h)} "
            f"/ColorSpace /DeviceRGB /BitsPerComponent 8 /Filter /DCTDecode /Length {len(logo_jpeg)} >>\nstream\n"
        ).encode("ascii")
        img_obj += logo_jpeg + b"\nendstream"
        objects.append(img_obj)

    parts: list[bytes] = [b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n"]
    offsets = [0]
    for i, obj in enumerate(objects, start=1):
        offsets.append(sum(len(p) for p in parts))
        parts.append(f"{i} 0 obj\n".encode("ascii"))
        parts.append(obj)
        parts.append(b"\nendobj\n")

    xref_start = sum(len(p) for p in parts)
    xref_lines = ["xref", f"0 {len(objects)+1}", "0000000000 65535 f "]
    for off in offsets[1:]:
        xref_lines.append(f"{off:010d} 00000 n ")
    parts.append(("\n".join(xref_lines) + "\n").encode("ascii"))
    parts.append(f"trailer\n<< /Size {len(objects)+1} /Root 1 0 R >>\nstartxref\n{xref_start}\n%%EOF\n".encode("ascii"))
    return b"".join(parts)


def document_pdf(context: dict[str, Any]) -> bytes:
    logo_url = context["company"].get("logo") or ""
    logo = fetch_logo(logo_url) if logo_url else None
    return render_pdf(context, logo)
