import re

import pytest
import requests

from app.core.storage import StorageClient, StorageError, object_path, safe_filename


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400


class FakeSession:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append((method, url, kwargs))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        pass


def make_client(*outcomes):
    client = StorageClient(base_url="http://supabase.test/", service_key="key", max_retries=2, base_delay=0)
    client.session = FakeSession(*outcomes)
    return client


def test_upload_returns_public_url():
    client = make_client(FakeResponse(200))

    url = client.upload("properties", "dev-1/p 1/photo.png", b"data", "image/png")

    assert url == "http://supabase.test/storage/v1/object/public/properties/dev-1/p%201/photo.png"
    method, called, kwargs = client.session.requests[0]
    assert method == "POST"
    assert called == "http://supabase.test/storage/v1/object/properties/dev-1/p%201/photo.png"
    assert kwargs["headers"]["x-upsert"] == "false"


def test_upload_retries_transient_failures():
    client = make_client(requests.ConnectionError("reset"), FakeResponse(503, "busy"), FakeResponse(200))

    client.upload("avatars", "u/a.png", b"x")

    assert len(client.session.requests) == 3


def test_upload_gives_up_after_retries():
    client = make_client(*[FakeResponse(500, "boom")] * 3)

    with pytest.raises(StorageError) as exc:
        client.upload("avatars", "u/a.png", b"x")
    assert exc.value.status_code == 500
    assert len(client.session.requests) == 3


def test_client_errors_are_not_retried():
    client = make_client(FakeResponse(400, "Duplicate"))

    with pytest.raises(StorageError, match="Duplicate"):
        client.upload("avatars", "u/a.png", b"x")
    assert len(client.session.requests) == 1


def test_delete_sends_prefixes():
    client = make_client(FakeResponse(200))

    assert client.delete("properties", ["a/b.png", "", "c/d.png"]) == ["a/b.png", "c/d.png"]
    method, url, kwargs = client.session.requests[0]
    assert method == "DELETE"
    assert url == "http://supabase.test/storage/v1/object/properties"
    assert kwargs["json"] == {"prefixes": ["a/b.png", "c/d.png"]}


def test_delete_nothing_makes_no_request():
    client = make_client()
    assert client.delete("properties", []) == []
    assert client.session.requests == []


def test_path_from_url_reverses_public_url():
    client = make_client()
    url = client.public_url("properties", "dev-1/p 1/photo.png")

    assert client.path_from_url("properties", url) == "dev-1/p 1/photo.png"
    assert client.path_from_url("avatars", url) is None


def test_object_path_and_safe_filename():
    assert safe_filename("My Contract (final).pdf") == "My-Contract-final-.pdf"
    assert safe_filename(None) == "file"

    path = object_path("agency-1", "dev-1", filename="license.pdf", prefix="agency-license")
    assert re.fullmatch(r"agency-1/dev-1/agency-license-\d+-[0-9a-f]{8}-license\.pdf", path)
