"""
Remote tables, storage buckets and the fixed enumerations used by the dashboard.

Rows live in the hosted backend; nothing here is backed by a local database.
"""

from django.db import models


class Table:
    CONTACTS = "user_management"
    QUOTATIONS = "quotations"
    QUOTATION_ITEMS = "quotation_items"
    INVOICES = "invoices"
    INVOICE_ITEMS = "invoice_items"
    CHAT_AGENTS = "chat_agents"
    CHAT_CONVERSATIONS = "chat_conversations"
    CHAT_MESSAGES = "chat_messages"
    WHATSAPP_DEVICES = "whatsapp_devices"
    WHATSAPP_CONFIGS = "whatsapp_configs"
    APP_SETTINGS = "app_settings"
    SITE_SETTINGS = "site_settings"
    WEBSITE_CONTENT = "website_content"
    SERVICES = "services"
    TESTIMONIALS = "testimonials"
    CLIENT_LOGOS = "client_logos"
    FORM_SUBMISSIONS = "form_submissions"
    EMAIL_TEMPLATES = "email_templates"


class Bucket:
    BRAND_ASSETS = "brand-assets"
    PORTFOLIO_IMAGES = "portfolio-images"
    CLIENT_LOGOS = "client-logos"
    SERVICE_IMAGES = "service-images"


class LeadStatus(models.TextChoices):
    NEW = "new", "Baru"
    CONTACTED = "contacted", "Sudah Dihubungi"
    QUALIFIED = "qualified", "Berkualitas"
    PROPOSAL = "proposal", "Proposal Sent"
    NEGOTIATION = "negotiation", "Negosiasi"
    CLOSED_WON = "closed-won", "Deal Sukses"
    CLOSED_LOST = "closed-lost", "Deal Gagal"
    ON_HOLD = "on-hold", "Ditunda"


LEAD_SOURCES = [
    "Website",
    "Referral",
    "Social Media",
    "Google Ads",
    "Email Campaign",
    "Phone Call",
    "Event",
    "Partner",
    "Direct",
    "Other",
]


class QuotationStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Terkirim"
    ACCEPTED = "accepted", "Diterima"
    REJECTED = "rejected", "Ditolak"
    EXPIRED = "expired", "Kedaluwarsa"


class InvoiceStatus(models.TextChoices):
    UNPAID = "unpaid", "Belum Lunas"
    PAID = "paid", "Lunas"
    OVERDUE = "overdue", "Terlambat"
    CANCELLED = "cancelled", "Dibatalkan"


class ConversationStatus(models.TextChoices):
    UNASSIGNED = "unassigned", "Belum Ditugaskan"
    PENDING = "pending", "Menunggu"
    ACTIVE = "active", "Aktif"
    CLOSED = "closed", "Selesai"


class ChatPlatform(models.TextChoices):
    WEBSITE = "website", "Website"
    WHATSAPP = "whatsapp", "WhatsApp"


class SenderType(models.TextChoices):
    CUSTOMER = "customer", "Customer"
    AGENT = "agent", "Agent"
    SYSTEM = "system", "System"


class DeviceStatus(models.TextChoices):
    PENDING = "pending", "Menunggu"
    CONNECTING = "connecting", "Menghubungkan"
    CONNECTED = "connected", "Terhubung"
    DISCONNECTED = "disconnected", "Terputus"


class QrAction(models.TextChoices):
    GENERATE = "generate", "Generate"
    CONNECT = "connect", "Connect"
    DISCONNECT = "disconnect", "Disconnect"


class SubmissionStatus(models.TextChoices):
    NEW = "new", "New"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    ARCHIVED = "archived", "Archived"


class SettingCategory(models.TextChoices):
    SEO = "seo_config", "SEO & Meta"
    BRAND = "brand_config", "Brand Settings"
    ANALYTICS = "analytics_config", "Analytics"
    SOCIAL_MEDIA = "social_media", "Social Media"
    COPYRIGHT = "copyright", "Copyright"


# (key, default value, description)
SETTING_DEFAULTS: dict[str, list[tuple[str, str, str]]] = {
    SettingCategory.SEO: [
        ("site_title", "", "Judul Website"),
        ("site_description", "", "Deskripsi Website"),
        ("site_keywords", "", "Keywords (pisahkan dengan koma)"),
        ("og_title", "", "Open Graph Title"),
        ("og_description", "", "Open Graph Description"),
        ("og_image", "", "Open Graph Image URL"),
        ("twitter_title", "", "Twitter Card Title"),
        ("twitter_description", "", "Twitter Card Description"),
        ("canonical_url", "", "Canonical URL"),
        ("robots_txt", "", "Robots.txt Content"),
    ],
    SettingCategory.BRAND: [
        ("company_logo", "", "Logo Perusahaan"),
        ("company_favicon", "", "Favicon (16x16px)"),
        ("company_name", "", "Nama Perusahaan"),
        ("company_address", "", "Alamat Perusahaan"),
        ("company_phone", "", "Nomor Telepon"),
        ("company_email", "", "Email Perusahaan"),
        ("primary_color", "#3B82F6", "Warna Utama"),
        ("secondary_color", "#1E40AF", "Warna Sekunder"),
        ("accent_color", "#10B981", "Warna Aksen"),
        ("font_family", "Inter", "Font Utama"),
        ("company_tagline", "", "Tagline Perusahaan"),
    ],
    SettingCategory.ANALYTICS: [
        ("google_analytics_id", "", "Google Analytics Measurement ID"),
        ("google_tag_manager_id", "", "Google Tag Manager ID"),
        ("facebook_pixel_id", "", "Facebook Pixel ID"),
        ("hotjar_id", "", "Hotjar Site ID"),
        ("google_search_console", "", "Google Search Console Verification"),
        ("custom_head_code", "", "Custom Head Code"),
        ("custom_body_code", "", "Custom Body Code"),
    ],
    SettingCategory.SOCIAL_MEDIA: [
        ("facebook_url", "", "Facebook"),
        ("instagram_url", "", "Instagram"),
        ("youtube_url", "", "YouTube"),
        ("twitter_url", "", "Twitter/X"),
        ("linkedin_url", "", "LinkedIn"),
        ("tiktok_url", "", "TikTok"),
        ("whatsapp_url", "", "WhatsApp"),
        ("telegram_url", "", "Telegram"),
    ],
    SettingCategory.COPYRIGHT: [
        ("copyright_year", "", "Tahun Copyright"),
        ("copyright_company", "", "Nama Perusahaan"),
        ("copyright_text", "", "Teks Copyright Lengkap"),
        ("privacy_policy_url", "", "URL Privacy Policy"),
        ("terms_of_service_url", "", "URL Terms of Service"),
    ],
}

# Keys of the flat key/value ``site_settings`` table edited by the contact info screen.
CONTACT_INFO_DEFAULTS: dict[str, tuple[str, str]] = {
    "company_phone": ("", "Nomor telepon perusahaan"),
    "company_email": ("", "Email perusahaan"),
    "company_address": ("", "Alamat perusahaan"),
    "whatsapp_number": ("085674722278", "Nomor WhatsApp"),
    "whatsapp_message": (
        "Halo, saya tertarik untuk konsultasi gratis mengenai layanan AI dan digital "
        "transformation. Bisakah kita berdiskusi lebih lanjut?",
        "Pesan default WhatsApp",
    ),
}

CONTACT_INFO_KEYS = list(CONTACT_INFO_DEFAULTS)

DEFAULT_TAX_PERCENTAGE = 11
DEFAULT_CURRENCY = "IDR"
QUOTATION_TERMS = "Penawaran ini berlaku selama 30 hari dari tanggal penerbitan."
INVOICE_TERMS = "Pembayaran dalam 30 hari setelah tanggal invoice."
DEFAULT_MAX_CONCURRENT_CHATS = 5

PORTFOLIO_SECTION = "portfolio"
HERO_SECTION = "hero"

PORTFOLIO_DEFAULTS = {
    "title": "Portfolio Proyek Terbaik",
    "description": (
        "Lihat hasil karya terbaik kami dalam mengembangkan solusi AI dan aplikasi "
        "untuk berbagai industri."
    ),
}

HERO_DEFAULTS = {
    "title": "AI Consultant Pro",
    "subtitle": "Transformasi Digital dengan Teknologi AI",
    "cta_primary": "Konsultasi Gratis",
    "cta_secondary": "Lihat Portfolio",
    "cta_primary_url": "https://wa.me/6281234567890",
    "dynamic_headlines": ["Revolusi Bisnis dengan Kekuatan AI"],
    "stats": [{"icon": "Users", "label": "Klien Terpercaya", "value": "150+"}],
}

TRANSCRIPT_TEMPLATE_TYPE = "chat_transcript"

TRANSCRIPT_TEMPLATE_DEFAULT = {
    "template_name": "Chat Transcript",
    "template_type": TRANSCRIPT_TEMPLATE_TYPE,
    "subject_template": "Transkrip Chat dengan {{customer_name}} - {{chat_date}}",
    "body_template": (
        "<h2>Transkrip Live Chat</h2>"
        "<p><strong>Nama:</strong> {{customer_name}}<br>"
        "<strong>Email:</strong> {{customer_email}}<br>"
        "<strong>Telepon:</strong> {{customer_phone}}<br>"
        "<strong>Perusahaan:</strong> {{customer_company}}<br>"
        "<strong>Agent:</strong> {{agent_name}}<br>"
        "<strong>Tanggal:</strong> {{chat_date}}</p>"
        "<hr>{{chat_messages}}"
    ),
    "is_active": True,
}
