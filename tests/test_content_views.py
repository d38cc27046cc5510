from django.core.files.uploadedfile import SimpleUploadedFile

from dashboard.models import HERO_DEFAULTS


def _post(client, url, payload=None):
    return client.post(url, payload or {}, content_type="application/json")


# Settings


def test_settings_merge_defaults_with_stored(admin_client, admin_user, backend):
    backend.insert(
        "app_settings",
        [
            {"user_id": admin_user["id"], "setting_category": "brand_config", "setting_key": "primary_color", "setting_value": "#000000"},
            {"user_id": admin_user["id"], "setting_category": "brand_config", "setting_key": "custom_badge", "setting_value": "Baru"},
            {"user_id": "other", "setting_category": "brand_config", "setting_key": "company_name", "setting_value": "Lain"},
        ],
    )
    settings = admin_client.get("/api/admin/settings/brand_config").json()["result"]["settings"]
    by_key = {s["key"]: s for s in settings}
    assert by_key["primary_color"]["value"] == "#000000"
    assert by_key["secondary_color"]["value"] == "#1E40AF"
    assert by_key["company_name"]["value"] == ""
    assert settings[-1]["key"] == "custom_badge"

    resp = admin_client.get("/api/admin/settings/unknown")
    assert resp.status_code == 404
    assert resp.json()["errorCode"] == "unknown_category"


def test_settings_update_inserts_then_updates(admin_client, admin_user, backend):
    payload = {"settings": [{"key": "site_title", "value": "Konsultan AI"}, {"key": " ", "value": "x"}]}
    result = _post(admin_client, "/api/admin/settings/seo_config/update", payload).json()["result"]
    assert result["saved"] == 1
    (row,) = backend.rows("app_settings")
    assert row["setting_type"] == "text"
    assert row["is_public"] is True
    assert row["user_id"] == admin_user["id"]

    _post(admin_client, "/api/admin/settings/seo_config/update", {"settings": [{"key": "site_title", "value": "Baru"}]})
    (row,) = backend.rows("app_settings")
    assert row["setting_value"] == "Baru"

    assert _post(admin_client, "/api/admin/settings/seo_config/update", {"settings": "x"}).status_code == 400
    assert _post(admin_client, f"/api/admin/settings/seo_config/{row['id']}/delete").status_code == 200
    assert backend.rows("app_settings") == []


def test_public_settings_only_expose_public_rows(client, backend):
    backend.insert(
        "app_settings",
        [
            {"setting_category": "social_media", "setting_key": "instagram_url", "setting_value": "https://ig/x", "is_public": True},
            {"setting_category": "social_media", "setting_key": "tiktok_url", "setting_value": "https://tt/x", "is_public": False},
        ],
    )
    values = client.get("/api/site/settings/social_media").json()["result"]["settings"]
    assert values["instagram_url"] == "https://ig/x"
    assert values["tiktok_url"] == ""


def test_contact_info_upsert(admin_client, client, backend):
    info = admin_client.get("/api/admin/settings/contact-info").json()["result"]["contactInfo"]
    assert info["whatsapp_number"] == "085674722278"

    _post(admin_client, "/api/admin/settings/contact-info/update", {"company_phone": "021-555", "whatsapp_number": "0899"})
    _post(admin_client, "/api/admin/settings/contact-info/update", {"company_phone": "021-777"})
    rows = {r["key"]: r["value"] for r in backend.rows("site_settings")}
    assert rows == {"company_phone": "021-777", "whatsapp_number": "0899"}

    public = client.get("/api/site/contact-info").json()["result"]["contactInfo"]
    assert public["company_phone"] == "021-777"
    assert _post(admin_client, "/api/admin/settings/contact-info/update", {"unrelated": "x"}).status_code == 400


def test_brand_upload(admin_client, admin_user, backend, image_upload):
    resp = admin_client.post("/api/admin/settings/brand_config/upload", {"file": image_upload("favicon.ico", "ICO", "image/x-icon"), "key": "company_favicon"})
    assert resp.status_code == 200
    url = resp.json()["result"]["url"]
    assert "/brand-assets/company_favicon_" + admin_user["id"] in url

    resp = admin_client.post("/api/admin/settings/brand_config/upload", {"file": image_upload(), "key": ""})
    assert resp.json()["errorCode"] == "missing_fields"
    assert admin_client.post("/api/admin/settings/brand_config/upload", {"key": "company_logo"}).json()["errorCode"] == "missing_file"


# Portfolio

PROJECT = {
    "title": "Chatbot Bank",
    "description": "Asisten virtual",
    "category": "AI",
    "client": "Bank ABC",
    "technologies": "Python, NLP",
    "gallery_images": [],
}


def test_portfolio_projects(admin_client, admin_user, backend):
    empty = admin_client.get("/api/admin/portfolio").json()["result"]
    assert empty["projects"] == [] and empty["title"] == "Portfolio Proyek Terbaik"

    assert _post(admin_client, "/api/admin/portfolio/projects/create", {"description": "tanpa judul"}).json()["errorCode"] == "missing_title"

    project = _post(admin_client, "/api/admin/portfolio/projects/create", PROJECT).json()["result"]["project"]
    assert project["id"]
    assert project["technologies"] == ["Python", "NLP"]
    _post(admin_client, "/api/admin/portfolio/projects/create", {**PROJECT, "title": "Website Toko", "category": "Web"})

    (row,) = backend.rows("website_content")
    assert row["section"] == "portfolio" and row["user_id"] == admin_user["id"]
    assert len(row["metadata"]["projects"]) == 2

    result = admin_client.get("/api/admin/portfolio?category=AI").json()["result"]
    assert [p["title"] for p in result["projects"]] == ["Chatbot Bank"]
    assert result["categories"] == ["AI", "Web"]
    assert result["total"] == 2
    assert [p["title"] for p in admin_client.get("/api/admin/portfolio?q=toko").json()["result"]["projects"]] == ["Website Toko"]

    updated = _post(admin_client, f"/api/admin/portfolio/projects/{project['id']}/update", {**PROJECT, "title": "Chatbot Bank v2"}).json()["result"]["project"]
    assert updated["id"] == project["id"]
    assert _post(admin_client, "/api/admin/portfolio/projects/missing/update", PROJECT).status_code == 404

    _post(admin_client, "/api/admin/portfolio/update", {"title": "Karya Kami", "description": "Pilihan"})
    assert _post(admin_client, f"/api/admin/portfolio/projects/{project['id']}/delete").json()["result"]["total"] == 1
    (row,) = backend.rows("website_content")
    assert row["title"] == "Karya Kami"
    assert [p["title"] for p in row["metadata"]["projects"]] == ["Website Toko"]


def test_gallery_upload_and_remove(admin_client, backend, image_upload):
    resp = admin_client.post("/api/admin/portfolio/gallery/upload", {"files": [image_upload("a.png"), image_upload("b.png")]})
    urls = resp.json()["result"]["urls"]
    assert len(urls) == 2 and all("/portfolio-images/portfolio/" in u for u in urls)

    project = _post(admin_client, "/api/admin/portfolio/projects/create", {**PROJECT, "gallery_images": urls}).json()["result"]["project"]
    result = _post(admin_client, "/api/admin/portfolio/gallery/remove", {"url": urls[0]}).json()["result"]
    assert result == {"removed": True, "detached": 1}
    path = urls[0].split("/portfolio-images/", 1)[1]
    assert backend.stored_object("portfolio-images", path) is None
    (row,) = backend.rows("website_content")
    assert row["metadata"]["projects"][0]["gallery_images"] == [urls[1]]
    assert row["metadata"]["projects"][0]["id"] == project["id"]

    result = _post(admin_client, "/api/admin/portfolio/gallery/remove", {"url": "https://cdn.example.com/x.png"}).json()["result"]
    assert result == {"removed": False, "detached": 0}


def test_gallery_rejects_non_images(admin_client, backend, image_upload):
    bad = SimpleUploadedFile("x.png", b"not really", content_type="image/png")
    resp = admin_client.post("/api/admin/portfolio/gallery/upload", {"files": [image_upload(), bad]})
    assert resp.status_code == 400
    assert resp.json()["errorCode"] == "invalid_image"
    assert backend.objects("portfolio-images") == []


# Services, testimonials, logos


def test_services_crud(admin_client, backend):
    for payload, code in (
        ({}, "missing_fields"),
        ({"service_name": "AI", "price_starting_from": 0}, "invalid_price"),
        ({"service_name": "AI", "display_order": "satu"}, "invalid_display_order"),
    ):
        assert _post(admin_client, "/api/admin/services/create", payload).json()["errorCode"] == code

    a = _post(admin_client, "/api/admin/services/create", {"service_name": "AI Audit", "price_starting_from": "5000000", "display_order": 2, "service_features": "Analisis\nLaporan"}).json()["result"]["item"]
    assert a["service_features"] == ["Analisis", "Laporan"]
    assert a["price_currency"] == "IDR"
    b = _post(admin_client, "/api/admin/services/create", {"service_name": "Web", "display_order": 1, "is_active": False}).json()["result"]["item"]

    assert [s["service_name"] for s in admin_client.get("/api/admin/services").json()["result"]["items"]] == ["Web", "AI Audit"]
    assert [s["id"] for s in admin_client.get("/api/admin/services?active=1").json()["result"]["items"]] == [a["id"]]

    assert _post(admin_client, f"/api/admin/services/{b['id']}/update", {"service_name": "Web Dev", "is_active": True}).json()["result"]["item"]["service_name"] == "Web Dev"
    assert _post(admin_client, f"/api/admin/services/{b['id']}/delete").status_code == 200
    assert len(backend.rows("services")) == 1


def test_service_image_upload(admin_client, image_upload):
    url = admin_client.post("/api/admin/services/image/upload", {"file": image_upload()}).json()["result"]["url"]
    assert "/service-images/services/" in url


def test_testimonials(admin_client, backend):
    assert _post(admin_client, "/api/admin/testimonials/create", {"client_name": "A"}).json()["errorCode"] == "missing_fields"
    assert _post(admin_client, "/api/admin/testimonials/create", {"client_name": "A", "testimonial_text": "Oke", "rating": "lima"}).json()["errorCode"] == "invalid_rating"

    item = _post(admin_client, "/api/admin/testimonials/create", {"client_name": "Sinta", "testimonial_text": "Sangat membantu", "rating": 9}).json()["result"]["item"]
    assert item["rating"] == 5
    assert item["is_active"] is True and item["is_featured"] is False

    low = _post(admin_client, f"/api/admin/testimonials/{item['id']}/update", {"client_name": "Sinta", "testimonial_text": "Cukup", "rating": -3}).json()["result"]["item"]
    assert low["rating"] == 1

    toggled = _post(admin_client, f"/api/admin/testimonials/{item['id']}/toggle", {"field": "is_featured", "value": True}).json()["result"]["item"]
    assert toggled["is_featured"] is True
    assert _post(admin_client, f"/api/admin/testimonials/{item['id']}/toggle", {"field": "rating", "value": True}).status_code == 400

    assert [t["client_name"] for t in admin_client.get("/api/admin/testimonials?q=cukup").json()["result"]["items"]] == ["Sinta"]
    assert _post(admin_client, f"/api/admin/testimonials/{item['id']}/delete").status_code == 200
    assert backend.rows("testimonials") == []


def test_client_logos(admin_client, backend, image_upload):
    assert _post(admin_client, "/api/admin/client-logos/create", {"name": "Acme"}).json()["errorCode"] == "missing_logo"

    uploaded = admin_client.post("/api/admin/client-logos/create", {"name": "Acme", "display_order": "2", "file": image_upload()}).json()["result"]["item"]
    assert "/client-logos/logos/" in uploaded["logo_url"]
    linked = _post(admin_client, "/api/admin/client-logos/create", {"name": "Beta", "logo_url": "https://cdn.example.com/beta.png", "display_order": 1}).json()["result"]["item"]

    assert [l["name"] for l in admin_client.get("/api/admin/client-logos").json()["result"]["items"]] == ["Beta", "Acme"]

    toggled = _post(admin_client, f"/api/admin/client-logos/{linked['id']}/toggle", {"value": False}).json()["result"]["item"]
    assert toggled["is_active"] is False

    updated = _post(admin_client, f"/api/admin/client-logos/{linked['id']}/update", {"name": "Beta Corp"}).json()["result"]["item"]
    assert updated["logo_url"] == "https://cdn.example.com/beta.png"
    assert updated["is_active"] is False

    path = uploaded["logo_url"].split("/client-logos/", 1)[1]
    assert _post(admin_client, f"/api/admin/client-logos/{uploaded['id']}/delete").status_code == 200
    assert backend.stored_object("client-logos", path) is None


# Website content


def test_hero_content_merges_defaults(admin_client, backend):
    items = admin_client.get("/api/admin/content?section=hero").json()["result"]["items"]
    assert items[0]["id"] is None
    assert items[0]["metadata"]["cta_primary"] == HERO_DEFAULTS["cta_primary"]

    saved = _post(admin_client, "/api/admin/content/hero/save", {"metadata": {"subtitle": "Solusi AI", "cta_primary": ""}}).json()["result"]["item"]
    assert saved["title"] == HERO_DEFAULTS["title"]
    assert saved["metadata"]["subtitle"] == "Solusi AI"
    assert saved["metadata"]["cta_primary"] == HERO_DEFAULTS["cta_primary"]

    again = _post(admin_client, "/api/admin/content/hero/save", {"title": "Judul Baru"}).json()["result"]["item"]
    assert again["id"] == saved["id"]
    assert len(backend.rows("website_content")) == 1

    _post(admin_client, "/api/admin/content/about/save", {"title": "Tentang", "content": "Kami"})
    assert [c["section"] for c in admin_client.get("/api/admin/content").json()["result"]["items"]] == ["about", "hero"]

    assert _post(admin_client, f"/api/admin/content/{saved['id']}/delete").status_code == 200
    assert _post(admin_client, f"/api/admin/content/{saved['id']}/delete").status_code == 404


def test_content_save_keeps_portfolio_projects(admin_client, backend):
    _post(admin_client, "/api/admin/portfolio/projects/create", PROJECT)

    _post(admin_client, "/api/admin/content/portfolio/save", {"title": "Karya", "content": "Pilihan kami"})
    _post(admin_client, "/api/admin/content/portfolio/save", {"title": "Karya", "metadata": {"projects": [], "layout": "grid"}})

    (row,) = backend.rows("website_content")
    assert row["title"] == "Karya"
    assert [p["title"] for p in row["metadata"]["projects"]] == ["Chatbot Bank"]
    assert row["metadata"]["layout"] == "grid"
    assert admin_client.get("/api/admin/portfolio").json()["result"]["total"] == 1


def test_content_save_without_metadata_keeps_stored_metadata(admin_client, backend):
    _post(admin_client, "/api/admin/content/about/save", {"title": "Tentang", "metadata": {"team": 12}})
    _post(admin_client, "/api/admin/content/about/save", {"title": "Tentang Kami"})
    (row,) = backend.rows("website_content")
    assert row["title"] == "Tentang Kami"
    assert row["metadata"] == {"team": 12}
