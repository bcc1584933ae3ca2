import httpx
import pytest
from httpx import AsyncClient

from app.services import url_check_service
from app.services.url_check_service import check_url, probe_url

pytestmark = pytest.mark.asyncio


@pytest.fixture
def public_dns(monkeypatch):
    """Pretend every hostname resolves to a public address."""
    async def never_blocked(host):
        return False
    monkeypatch.setattr(url_check_service, "resolves_to_blocked_address", never_blocked)


@pytest.fixture
def probe_status(monkeypatch, public_dns):
    def set_status(status_code=None, error=None):
        async def fake_probe(url):
            if error is not None:
                raise error
            return status_code
        monkeypatch.setattr(url_check_service, "probe_url", fake_probe)
    return set_status


@pytest.mark.parametrize("url", [
    None,
    "",
    "not a url",
    "ftp://example.com/file",
    "javascript:alert(1)",
    "http://localhost:8000/admin",
    "http://127.0.0.1/",
    "http://10.0.0.5/",
    "http://192.168.1.1/",
    "http://169.254.169.254/latest/meta-data",
    "http://[::1]/",
    "http://0.0.0.0/",
    "http://224.0.0.1/",
])
async def test_rejected_without_probing(url, monkeypatch):
    async def fail_probe(url):
        raise AssertionError("must not probe")
    monkeypatch.setattr(url_check_service, "probe_url", fail_probe)

    result = await check_url(url)
    assert result.ok is False
    assert result.reason


async def test_hostname_resolving_to_private_address_is_rejected(monkeypatch):
    async def blocked(host):
        return True
    monkeypatch.setattr(url_check_service, "resolves_to_blocked_address", blocked)

    result = await check_url("http://intranet.agency.io/")
    assert result.ok is False
    assert result.reason == "Blocked host"


async def test_localhost_name_resolves_to_loopback():
    assert await url_check_service.resolves_to_blocked_address("localhost") is True


@pytest.mark.parametrize("status_code, ok", [
    (200, True),
    (301, True),
    (401, True),
    (403, True),
    (404, False),
    (500, False),
])
async def test_probe_status_mapping(probe_status, status_code, ok):
    probe_status(status_code)
    result = await check_url("https://example.com/page")
    assert result.ok is ok
    if not ok:
        assert result.reason == f"HTTP {status_code}"


async def test_network_errors_are_not_ok(probe_status):
    probe_status(error=httpx.ConnectTimeout("timed out"))
    result = await check_url("https://example.com/slow")
    assert result.ok is False
    assert result.reason == "Unreachable"


def use_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(url_check_service.httpx, "AsyncClient", client_factory)


async def test_probe_falls_back_to_get(monkeypatch):
    methods = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append(request.method)
        return httpx.Response(405 if request.method == "HEAD" else 200)

    use_transport(monkeypatch, handler)

    assert await probe_url("https://example.com/") == 200
    assert methods == ["HEAD", "GET"]


async def test_endpoint_requires_session(async_client: AsyncClient, seed):
    resp = await async_client.get("/utils/validate-url", params={"url": "https://example.com"})
    assert resp.status_code == 401


async def test_endpoint_status_codes(async_client: AsyncClient, agent_headers: dict, probe_status):
    resp = await async_client.get(
        "/utils/validate-url", params={"url": "http://127.0.0.1/"}, headers=agent_headers
    )
    assert resp.status_code == 400
    assert resp.json() == {"ok": False, "reason": "Blocked host"}

    probe_status(200)
    resp = await async_client.get(
        "/utils/validate-url", params={"url": "https://example.com"}, headers=agent_headers
    )
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}


@pytest.mark.parametrize("location", [
    "http://127.0.0.1:8080/admin",
    "http://169.254.169.254/latest/meta-data",
    "http://[::1]/",
    "http://localhost/",
    "http://metadata.internal/",
    "file:///etc/passwd",
])
async def test_redirect_to_internal_target_is_blocked(monkeypatch, location):
    async def fake_dns(host):
        return host == "metadata.internal"
    monkeypatch.setattr(url_check_service, "resolves_to_blocked_address", fake_dns)

    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.host)
        if request.url.host == "93.184.215.14":
            return httpx.Response(302, headers={"Location": location})
        return httpx.Response(200)

    use_transport(monkeypatch, handler)

    result = await check_url("http://93.184.215.14/")
    assert result.ok is False
    assert result.reason == "Blocked host"
    # the internal target is never contacted
    assert requested == ["93.184.215.14"]


async def test_public_redirects_are_followed(monkeypatch):
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append((request.method, request.url.path))
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "/new"})
        if request.method == "HEAD":
            return httpx.Response(405)
        return httpx.Response(200)

    use_transport(monkeypatch, handler)

    result = await check_url("http://93.184.215.14/old")
    assert result.ok is True
    assert requested == [("HEAD", "/old"), ("HEAD", "/new"), ("GET", "/new")]


async def test_redirect_loop_is_unreachable(monkeypatch):
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        return httpx.Response(302, headers={"Location": "/again"})

    use_transport(monkeypatch, handler)

    result = await check_url("http://93.184.215.14/start")
    assert result.ok is False
    assert result.reason == "Unreachable"
    assert len(requested) == url_check_service.MAX_REDIRECTS + 1
