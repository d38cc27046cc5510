from django.urls import path

from dashboard import api_views
from dashboard import billing_views
from dashboard import chat_views
from dashboard import content_views
from dashboard import crm_views


def _document_urls(prefix: str, kind: str) -> list:
    k = {"kind": kind}
    return [
        path(f"api/admin/{prefix}", billing_views.admin_documents, k),
        path(f"api/admin/{prefix}/totals", billing_views.admin_document_totals, k),
        path(f"api/admin/{prefix}/create", billing_views.admin_document_create, k),
        path(f"api/admin/{prefix}/<str:doc_id>", billing_views.admin_document_detail, k),
        path(f"api/admin/{prefix}/<str:doc_id>/update", billing_views.admin_document_update, k),
        path(f"api/admin/{prefix}/<str:doc_id>/status", billing_views.admin_document_status, k),
        path(f"api/admin/{prefix}/<str:doc_id>/delete", billing_views.admin_document_delete, k),
        path(f"api/admin/{prefix}/<str:doc_id>/preview", billing_views.admin_document_preview, k),
        path(f"api/admin/{prefix}/<str:doc_id>/pdf", billing_views.admin_document_pdf, k),
        path(f"api/admin/{prefix}/<str:doc_id>/send", billing_views.admin_document_send, k),
    ]


urlpatterns = [
    path("api/auth/login", api_views.auth_login),
    path("api/auth/me", api_views.auth_me),
    path("api/auth/logout", api_views.auth_logout),
    path("api/admin/summary", api_views.admin_summary),
    path("api/admin/client-errors", api_views.admin_client_errors),
    # CRM
    path("api/admin/contacts", crm_views.admin_contacts),
    path("api/admin/contacts/options", crm_views.admin_contacts_options),
    path("api/admin/contacts/create", crm_views.admin_contacts_create),
    path("api/admin/contacts/<str:contact_id>/update", crm_views.admin_contacts_update),
    path("api/admin/contacts/<str:contact_id>/delete", crm_views.admin_contacts_delete),
    path("api/admin/submissions", crm_views.admin_submissions),
    path("api/admin/submissions/export", crm_views.admin_submissions_export),
    path("api/admin/submissions/<str:submission_id>/status", crm_views.admin_submissions_status),
    path("api/admin/submissions/<str:submission_id>/delete", crm_views.admin_submissions_delete),
    # Billing
    path("api/admin/billing/prefill", billing_views.admin_billing_prefill),
    *_document_urls("quotations", "quotation"),
    *_document_urls("invoices", "invoice"),
    # Chat
    path("api/admin/chat/stats", chat_views.admin_chat_stats),
    path("api/admin/chat/feed", chat_views.admin_chat_feed),
    path("api/admin/chat/agents", chat_views.admin_chat_agents),
    path("api/admin/chat/agents/create", chat_views.admin_chat_agents_create),
    path("api/admin/chat/agents/<str:agent_id>/update", chat_views.admin_chat_agents_update),
    path("api/admin/chat/agents/<str:agent_id>/toggle", chat_views.admin_chat_agents_toggle),
    path("api/admin/chat/agents/<str:agent_id>/delete", chat_views.admin_chat_agents_delete),
    path("api/admin/chat/conversations", chat_views.admin_chat_conversations),
    path("api/admin/chat/conversations/<str:conversation_id>/messages", chat_views.admin_chat_conversation_messages),
    path("api/admin/chat/conversations/<str:conversation_id>/assign", chat_views.admin_chat_assign),
    path("api/admin/chat/conversations/<str:conversation_id>/close", chat_views.admin_chat_close),
    path("api/admin/chat/conversations/<str:conversation_id>/transcript", chat_views.admin_chat_transcript),
    # WhatsApp
    path("api/admin/whatsapp/devices", chat_views.admin_whatsapp_devices),
    path("api/admin/whatsapp/devices/create", chat_views.admin_whatsapp_devices_create),
    path("api/admin/whatsapp/devices/<str:device_id>/qr", chat_views.admin_whatsapp_devices_qr),
    path("api/admin/whatsapp/devices/<str:device_id>/delete", chat_views.admin_whatsapp_devices_delete),
    path("api/admin/whatsapp/config", chat_views.admin_whatsapp_config),
    path("api/admin/whatsapp/config/update", chat_views.admin_whatsapp_config_update),
    # Settings
    path("api/admin/settings/contact-info", content_views.admin_contact_info),
    path("api/admin/settings/contact-info/update", content_views.admin_contact_info_update),
    path("api/admin/settings/brand_config/upload", content_views.admin_brand_upload),
    path("api/admin/settings/<str:category>", content_views.admin_settings),
    path("api/admin/settings/<str:category>/update", content_views.admin_settings_update),
    path("api/admin/settings/<str:category>/<str:setting_id>/delete", content_views.admin_settings_delete),
    # Portfolio
    path("api/admin/portfolio", content_views.admin_portfolio),
    path("api/admin/portfolio/update", content_views.admin_portfolio_update),
    path("api/admin/portfolio/projects/create", content_views.admin_portfolio_projects_create),
    path("api/admin/portfolio/projects/<str:project_id>/update", content_views.admin_portfolio_projects_update),
    path("api/admin/portfolio/projects/<str:project_id>/delete", content_views.admin_portfolio_projects_delete),
    path("api/admin/portfolio/gallery/upload", content_views.admin_portfolio_gallery_upload),
    path("api/admin/portfolio/gallery/remove", content_views.admin_portfolio_gallery_remove),
    # Services, testimonials, logos, content
    path("api/admin/services", content_views.admin_services),
    path("api/admin/services/create", content_views.admin_services_create),
    path("api/admin/services/image/upload", content_views.admin_services_image_upload),
    path("api/admin/services/<str:service_id>/update", content_views.admin_services_update),
    path("api/admin/services/<str:service_id>/delete", content_views.admin_services_delete),
    path("api/admin/testimonials", content_views.admin_testimonials),
    path("api/admin/testimonials/create", content_views.admin_testimonials_create),
    path("api/admin/testimonials/<str:item_id>/update", content_views.admin_testimonials_update),
    path("api/admin/testimonials/<str:item_id>/toggle", content_views.admin_testimonials_toggle),
    path("api/admin/testimonials/<str:item_id>/delete", content_views.admin_testimonials_delete),
    path("api/admin/client-logos", content_views.admin_client_logos),
    path("api/admin/client-logos/create", content_views.admin_client_logos_create),
    path("api/admin/client-logos/<str:logo_id>/update", content_views.admin_client_logos_update),
    path("api/admin/client-logos/<str:logo_id>/toggle", content_views.admin_client_logos_toggle),
    path("api/admin/client-logos/<str:logo_id>/delete", content_views.admin_client_logos_delete),
    path("api/admin/content", content_views.admin_content),
    path("api/admin/content/<str:section>/save", content_views.admin_content_save),
    path("api/admin/content/<str:content_id>/delete", content_views.admin_content_delete),
    # Public
    path("api/site/settings/<str:category>", content_views.site_settings),
    path("api/site/contact-info", content_views.site_contact_info),
    path("api/site/submissions", crm_views.site_submission_create),
    path("api/site/chat/start", chat_views.site_chat_start),
    path("api/site/chat/<str:conversation_id>/messages", chat_views.site_chat_conversation_messages),
    path("api/site/chat/<str:conversation_id>/end", chat_views.site_chat_end),
    path("api/site/chat/<str:conversation_id>/feedback", chat_views.site_chat_feedback),
]
