import json

import httpx
import pytest

from portal.client import PortalClient, PortalError

ITEMS = [{"id": "1", "type": "student", "user_id": "STU250001", "name": "Ravi", "email": "", "password": "********"}]


def _client(tmp_path, handler, token="t0ken"):
    return PortalClient(
        "http://portal.test",
        token=token,
        cache_path=str(tmp_path / "cache.json"),
        transport=httpx.MockTransport(handler),
    )


def test_requests_bypass_caches(tmp_path):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": {"items": ITEMS}, "message": None})

    with _client(tmp_path, handler) as client:
        client.fetch_credentials()

    request = seen[0]
    assert request.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert request.headers["authorization"] == "Bearer t0ken"
    assert "_t" in request.url.params


def test_successful_fetch_writes_cache(tmp_path):
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": {"items": ITEMS}, "message": None})

    with _client(tmp_path, handler) as client:
        result = client.fetch_credentials()

    assert result == {"items": ITEMS, "from_cache": False}
    assert json.loads((tmp_path / "cache.json").read_text())["items"] == ITEMS


def test_failure_falls_back_to_cache(tmp_path):
    (tmp_path / "cache.json").write_text(json.dumps({"saved_at": 0, "items": ITEMS}))

    def handler(request):
        return httpx.Response(500, json={"success": False, "data": None, "message": "Internal server error"})

    with _client(tmp_path, handler) as client:
        result = client.fetch_credentials()

    assert result == {"items": ITEMS, "from_cache": True}


def test_cached_fallback_applies_search(tmp_path):
    anita = {"id": "2", "type": "subcenter", "user_id": "KR0000001", "name": "North", "email": "anita@example.com"}
    (tmp_path / "cache.json").write_text(json.dumps({"saved_at": 0, "items": ITEMS + [anita]}))

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(tmp_path, handler) as client:
        assert client.fetch_credentials(search="ANITA")["items"] == [anita]
        assert client.fetch_credentials(search="stu2500")["items"] == ITEMS


def test_non_envelope_body_is_an_error(tmp_path):
    def handler(request):
        return httpx.Response(200, json=[1, 2, 3])

    with _client(tmp_path, handler) as client:
        with pytest.raises(PortalError) as exc:
            client.fetch_credentials()
    assert str(exc.value) == "HTTP 200"


def test_failure_without_cache_raises(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _client(tmp_path, handler) as client:
        with pytest.raises(PortalError):
            client.fetch_credentials()


def test_login_keeps_token(tmp_path):
    def handler(request):
        body = json.loads(request.content)
        assert body == {"type": "admin", "identifier": "admin", "password": "admin123"}
        return httpx.Response(
            200,
            json={"success": True, "data": {"access_token": "abc", "token_type": "bearer", "role": "admin"}},
        )

    with _client(tmp_path, handler, token=None) as client:
        client.login("admin", "admin", "admin123")
        assert client.token == "abc"


def test_error_envelope_message_is_raised(tmp_path):
    def handler(request):
        return httpx.Response(401, json={"success": False, "data": None, "message": "Invalid credentials"})

    with _client(tmp_path, handler, token=None) as client:
        with pytest.raises(PortalError) as exc:
            client.login("admin", "admin", "bad")
    assert str(exc.value) == "Invalid credentials"
    assert exc.value.status_code == 401
