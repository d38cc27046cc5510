from io import BytesIO

import pytest
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from PIL import Image

from dashboard.backend import InMemoryBackend
from dashboard.backend import use_backend


ADMIN_EMAIL = "admin@konsultan.id"
ADMIN_PASSWORD = "rahasia-123"


@pytest.fixture(autouse=True)
def backend():
    cache.clear()
    be = InMemoryBackend()
    use_backend(be)
    yield be
    use_backend(None)


@pytest.fixture
def admin_user(backend):
    return backend.add_user(ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def admin_client(client, admin_user):
    resp = client.post(
        "/api/auth/login",
        {"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
        content_type="application/json",
    )
    assert resp.status_code == 200
    return client


@pytest.fixture
def image_upload():
    def make(name="gambar.png", fmt="PNG", content_type="image/png"):
        buf = BytesIO()
        Image.new("RGB", (32, 32), (200, 30, 30)).save(buf, format=fmt)
        return SimpleUploadedFile(name, buf.getvalue(), content_type=content_type)

    return make
