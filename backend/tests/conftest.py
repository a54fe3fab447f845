import base64
import io

import pytest
import requests
from fastapi.testclient import TestClient
from PIL import Image
from postgrest.exceptions import APIError

from app.core.database import SupabaseSceneStore, get_scene_store
from app.core.storage import AssetStore, get_asset_store
from app.core.supabase_client import SupabaseClient
from app.main import app

PUBLIC_PREFIX = "https://fake.supabase.co/storage/v1/object/public"


class FakeResponse:
    def __init__(self, data):
        self.data = data
        self.count = len(data)


class FakeQuery:
    def __init__(self, rows):
        self._rows = rows
        self._insert = None
        self._filters = []
        self._limit = None

    def insert(self, row):
        self._insert = row
        return self

    def select(self, *columns, **kwargs):
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def limit(self, n):
        self._limit = n
        return self

    def execute(self):
        if self._insert is not None:
            if any(r["unique_id"] == self._insert["unique_id"] for r in self._rows):
                raise APIError({
                    "code": "23505",
                    "message": "duplicate key value violates unique constraint",
                    "details": "",
                    "hint": "",
                })
            self._rows.append(dict(self._insert))
            return FakeResponse([dict(self._insert)])

        rows = [r for r in self._rows if all(r.get(c) == v for c, v in self._filters)]
        if self._limit is not None:
            rows = rows[:self._limit]
        return FakeResponse(rows)


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, file, file_options=None):
        if self.storage.fail_uploads:
            self.storage.fail_uploads -= 1
            raise RuntimeError("storage unavailable")
        self.storage.uploads.append({
            "bucket": self.name,
            "path": path,
            "data": file,
            "content_type": (file_options or {}).get("content-type"),
        })

    def get_public_url(self, path):
        return f"{PUBLIC_PREFIX}/{self.name}/{path}"


class FakeStorage:
    def __init__(self):
        self.uploads = []
        self.fail_uploads = 0

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeSupabase:
    """Just enough of the Supabase client for the scene table and asset bucket."""

    def __init__(self):
        self.tables = {}
        self.storage = FakeStorage()

    def table(self, name):
        return FakeQuery(self.tables.setdefault(name, []))


def make_image_bytes(fmt="PNG", size=(4, 2), color=(255, 0, 0, 255)):
    mode = "RGBA" if fmt == "PNG" else "RGB"
    img = Image.new(mode, size, color=color[:len(mode)])
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def make_data_url(fmt="PNG", size=(4, 2)):
    mime = "jpeg" if fmt == "JPEG" else fmt.lower()
    payload = base64.b64encode(make_image_bytes(fmt, size)).decode("ascii")
    return f"data:image/{mime};base64,{payload}"


@pytest.fixture
def fake_supabase():
    fake = FakeSupabase()
    SupabaseClient.set_client(fake)
    yield fake
    SupabaseClient.reset()


class FakeHttpResponse:
    def __init__(self, status_code=200, content=b""):
        self.status_code = status_code
        self.content = content

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]


class FakeWeb:
    """Remote images served to the asset store in place of `requests.get`."""

    def __init__(self):
        self.pages = {}
        self.requested = []

    def get(self, url, timeout=None, stream=False):
        self.requested.append(url)
        page = self.pages.get(url)
        if page is None:
            raise requests.ConnectionError(f"cannot reach {url}")
        if isinstance(page, int):
            return FakeHttpResponse(status_code=page)
        return FakeHttpResponse(content=page)


@pytest.fixture
def remote_images(monkeypatch):
    web = FakeWeb()
    monkeypatch.setattr("app.core.storage.requests.get", web.get)
    return web


@pytest.fixture
def png_data_url():
    return make_data_url("PNG")


@pytest.fixture
def asset_store(fake_supabase):
    return AssetStore(bucket="ar-viewer", folder="ar_viewer", allow_local_fallback=False)


@pytest.fixture
def scene_store(fake_supabase):
    return SupabaseSceneStore(table="ar_experiences")


@pytest.fixture
def api_app(asset_store, scene_store):
    app.dependency_overrides[get_asset_store] = lambda: asset_store
    app.dependency_overrides[get_scene_store] = lambda: scene_store
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app):
    return TestClient(api_app)
