from io import BytesIO

from PIL import Image

from dashboard.documents import INVOICE
from dashboard.documents import QUOTATION
from dashboard.documents import company_info
from dashboard.documents import document_context
from dashboard.documents import document_lines
from dashboard.documents import fetch_logo
from dashboard.documents import logo_as_jpeg
from dashboard.documents import render_pdf
from dashboard.documents import render_preview


HEADER = {
    "quotation_number": "QUO-202610-042",
    "client_name": "PT Maju (Jaya)",
    "client_email": "finance@maju.id",
    "client_company": "PT Maju Jaya",
    "quotation_date": "2026-10-19",
    "valid_until": "2026-11-18",
    "subtotal": 300000,
    "tax_percentage": 11,
    "tax_amount": 33000,
    "total_amount": 333000,
    "status": "draft",
    "terms_conditions": "Berlaku 30 hari.",
}
ITEMS = [{"item_name": "Audit", "description": "Audit sistem", "quantity": 2, "unit_price": 150000, "total": 300000}]


def test_context_formats_numbers_and_labels():
    ctx = document_context(QUOTATION, HEADER, ITEMS, {"company_name": "Konsultan AI"})
    assert ctx["number"] == "QUO-202610-042"
    assert ctx["company"]["name"] == "Konsultan AI"
    assert ctx["items"][0]["unit_price"] == "Rp 150.000"
    assert ctx["total"] == "Rp 333.000"
    assert ctx["date_long"] == "19 Oktober 2026"
    assert ctx["second_date"] == "18/11/2026"
    assert ctx["status_label"] == "Draft"


def test_company_falls_back_to_settings():
    assert company_info({})["name"] == "PT Contoh Konsultan"
    assert company_info({"company_name": "  "})["name"] == "PT Contoh Konsultan"


def test_preview_and_pdf_agree_on_totals():
    ctx = document_context(QUOTATION, HEADER, ITEMS)
    html = render_preview(ctx)
    lines = document_lines(ctx)
    assert "Rp 333.000" in html
    assert "Total: Rp 333.000" in lines
    assert "PPN (11%): Rp 33.000" in lines


def test_pdf_is_well_formed_and_escapes_text():
    pdf = render_pdf(document_context(QUOTATION, HEADER, ITEMS))
    assert pdf.startswith(b"%PDF-1.4")
    assert pdf.rstrip().endswith(b"%%EOF")
    assert b"/Count 1" in pdf
    assert b"PT Maju \\(Jaya\\)" in pdf


def test_long_documents_span_pages():
    items = [{"item_name": f"Item {i}", "quantity": 1, "unit_price": 1000} for i in range(80)]
    pdf = render_pdf(document_context(INVOICE, {"invoice_number": "INV-1", "client_name": "A"}, items))
    assert b"/Count 3" in pdf
    assert pdf.count(b"/Type /Page ") == 3


def test_logo_is_embedded_on_first_page_only():
    buf = BytesIO()
    Image.new("RGBA", (40, 20), (0, 0, 255, 128)).save(buf, format="PNG")
    logo = logo_as_jpeg(buf.getvalue())
    assert logo is not None
    assert logo[1:] == (40, 20)
    items = [{"item_name": f"Item {i}", "quantity": 1, "unit_price": 1000} for i in range(60)]
    pdf = render_pdf(document_context(QUOTATION, HEADER, items), logo)
    assert pdf.count(b"/XObject << /Im1") == 1
    assert b"/Filter /DCTDecode" in pdf


def test_bad_logo_sources_are_ignored():
    assert logo_as_jpeg(b"not an image") is None
    assert fetch_logo("file:///etc/passwd") is None
    assert fetch_logo("") is None


def test_filename_per_kind():
    assert QUOTATION.filename("QUO-202610-042") == "Penawaran-QUO-202610-042.pdf"
    assert INVOICE.filename("INV/1") == "Invoice-INV-1.pdf"
