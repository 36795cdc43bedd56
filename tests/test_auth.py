import httpx
import pytest
from starlette.testclient import TestClient

import core.config as config
from core.errors import AuthenticationError
from app.auth import IdentityProvider, bearer_token
from app.main import attach_services, create_app

USER_ID = "7f1c2d3e-0000-4000-8000-000000000001"


def _identity_handler(request: httpx.Request) -> httpx.Response:
    if request.headers.get("authorization") == "Bearer good-token":
        return httpx.Response(200, json={"id": USER_ID, "email": "ada@example.com"})
    if request.headers.get("authorization") == "Bearer broken-token":
        return httpx.Response(500, text="upstream exploded")
    return httpx.Response(401, json={"msg": "invalid JWT"})


def _provider():
    return IdentityProvider(
        "https://auth.test",
        api_key="anon-key",
        http_client=httpx.Client(transport=httpx.MockTransport(_identity_handler)),
    )


def _client(service, mode):
    app = create_app()
    attach_services(app, service, identity=_provider(), auth_mode=mode)
    return TestClient(app)


@pytest.mark.parametrize(
    "header,expected",
    [
        (None, None),
        ("", None),
        ("Basic abc", None),
        ("Bearer ", None),
        ("Bearer abc.def", "abc.def"),
    ],
)
def test_bearer_token(header, expected):
    assert bearer_token(header) == expected


def test_identity_provider_sends_token_and_key():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["apikey"] = request.headers.get("apikey")
        return httpx.Response(200, json={"id": USER_ID})

    provider = IdentityProvider(
        "https://auth.test/",
        api_key="anon-key",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )

    assert provider.get_user("tok")["id"] == USER_ID
    assert seen == {"url": "https://auth.test/auth/v1/user", "apikey": "anon-key"}


def test_identity_provider_errors():
    provider = _provider()

    with pytest.raises(AuthenticationError, match="Invalid or expired token"):
        provider.get_user("bad-token")
    with pytest.raises(AuthenticationError, match="Authentication failed"):
        provider.get_user("broken-token")


def test_required_mode_rejects_missing_header(service):
    client = _client(service, config.AUTH_REQUIRED)

    response = client.get("/api/knowledge")

    assert response.status_code == 401
    assert response.json() == {"error": "Missing or invalid Authorization header"}


def test_required_mode_rejects_bad_token(service):
    client = _client(service, config.AUTH_REQUIRED)

    response = client.get("/api/knowledge", headers={"Authorization": "Bearer bad-token"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or expired token"}


def test_authenticated_user_owns_entries(service):
    client = _client(service, config.AUTH_REQUIRED)
    headers = {"Authorization": "Bearer good-token"}

    created = client.post("/api/knowledge", json={"title": "T", "content": "C"}, headers=headers).json()
    me = client.get("/api/auth/me", headers=headers).json()

    assert created["user_id"] == USER_ID
    assert me == {"id": USER_ID, "email": "ada@example.com", "authenticated": True}


def test_optional_mode_falls_back_to_anonymous(service):
    client = _client(service, config.AUTH_OPTIONAL)

    anonymous = client.post("/api/knowledge", json={"title": "T", "content": "C"}).json()
    bad_token = client.post(
        "/api/knowledge",
        json={"title": "T2", "content": "C"},
        headers={"Authorization": "Bearer bad-token"},
    ).json()

    assert anonymous["user_id"] == config.ANONYMOUS_USER_ID
    assert bad_token["user_id"] == config.ANONYMOUS_USER_ID
