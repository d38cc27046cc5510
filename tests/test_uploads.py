import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings

from dashboard.uploads import BRAND_EXTS
from dashboard.uploads import BRAND_MIMES
from dashboard.uploads import UploadRejected
from dashboard.uploads import brand_storage_key
from dashboard.uploads import storage_key
from dashboard.uploads import storage_path_from_url
from dashboard.uploads import store_upload
from dashboard.uploads import upload_max_bytes
from dashboard.uploads import validate_upload


def test_accepts_real_images(image_upload):
    assert validate_upload(image_upload(), max_bytes=1024 * 1024) == ".png"
    assert validate_upload(image_upload("foto.JPG", "JPEG", "image/jpeg"), max_bytes=1024 * 1024) == ".jpg"


def test_rejections(image_upload):
    with pytest.raises(UploadRejected) as exc:
        validate_upload(SimpleUploadedFile("x.png", b"", content_type="image/png"), max_bytes=10)
    assert exc.value.code == "empty_file"

    with pytest.raises(UploadRejected) as exc:
        validate_upload(image_upload(), max_bytes=10)
    assert (exc.value.code, exc.value.status) == ("file_too_large", 413)

    with pytest.raises(UploadRejected) as exc:
        validate_upload(SimpleUploadedFile("x.pdf", b"%PDF", content_type="application/pdf"), max_bytes=100)
    assert exc.value.code == "invalid_file_type"

    with pytest.raises(UploadRejected) as exc:
        validate_upload(SimpleUploadedFile("x.png", b"plain text", content_type="image/png"), max_bytes=100)
    assert exc.value.code == "invalid_image"


def test_ico_only_for_brand_assets(image_upload):
    ico = image_upload("favicon.ico", "ICO", "image/x-icon")
    with pytest.raises(UploadRejected):
        validate_upload(ico, max_bytes=1024 * 1024)
    assert validate_upload(ico, max_bytes=1024 * 1024, allowed_exts=BRAND_EXTS, allowed_mimes=BRAND_MIMES) == ".ico"


def test_keys():
    key = storage_key("/portfolio/", ".png")
    assert key.startswith("portfolio/") and key.endswith(".png")
    assert storage_key("", ".gif").count("/") == 0
    brand = brand_storage_key("company_logo", "user-1", ".png")
    assert brand.startswith("company_logo_user-1_") and brand.endswith(".png")


def test_store_and_locate(backend, image_upload):
    url = store_upload(backend, "portfolio-images", "portfolio", image_upload())
    path = storage_path_from_url(url, "portfolio-images")
    assert path and path.startswith("portfolio/")
    content, content_type = backend.stored_object("portfolio-images", path)
    assert content_type == "image/png"
    assert content.startswith(b"\x89PNG")
    assert storage_path_from_url("https://cdn.example.com/a.png", "portfolio-images") is None


@override_settings(DASHBOARD_UPLOAD_MAX_BYTES=1234)
def test_upload_ceiling_from_settings():
    assert upload_max_bytes() == 1234
