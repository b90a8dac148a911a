import aiohttp
import pytest

from detailbooking.exceptions import AuthError, NetworkError, ProviderError, ValidationError
from detailbooking.transport import HttpAdapter


class _Reply:
    """Stands in for an aiohttp response inside ``async with``."""

    def __init__(self, status: int = 200, body: object = None, text: str = "") -> None:
        self.status = status
        self._body = body
        self._text = text

    async def __aenter__(self) -> "_Reply":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def json(self) -> object:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    async def text(self) -> str:
        return self._text


class _ScriptedSession:
    """Plays back replies or raises exceptions in call order."""

    def __init__(self, *script: object) -> None:
        self._script = list(script)
        self.sent: list[tuple[str, str, dict]] = []

    def request(self, method: str, url: str, **kwargs) -> _Reply:
        self.sent.append((method, url, kwargs))
        step = self._script[len(self.sent) - 1]
        if isinstance(step, BaseException):
            raise step
        return step


class _MessageAdapter(HttpAdapter):
    async def _error_message_from_response(self, response) -> str | None:
        body = await response.json()
        return body.get("message") if isinstance(body, dict) else None


def _adapter(session: _ScriptedSession, **kwargs) -> HttpAdapter:
    kwargs.setdefault("base_url", "https://api.example.com/")
    return HttpAdapter(session, provider_name="Example", **kwargs)


def test_session_is_required() -> None:
    with pytest.raises(ValidationError):
        HttpAdapter(None, provider_name="Example")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("api_uri", "path", "expected"),
    [
        (None, "/vehicles", "https://api.example.com/vehicles"),
        ("/v1/", "vehicles", "https://api.example.com/v1/vehicles"),
        (" v2 ", "/orders/1", "https://api.example.com/v2/orders/1"),
        ("/", "/orders", "https://api.example.com/orders"),
    ],
)
def test_build_url_joins_base_uri_and_path(api_uri, path, expected) -> None:
    adapter = _adapter(_ScriptedSession(), api_uri=api_uri)
    assert adapter._build_url(path) == expected


@pytest.mark.parametrize("path", ["", "https://elsewhere.example.com/orders"])
def test_build_url_rejects_bad_paths(path: str) -> None:
    adapter = _adapter(_ScriptedSession())
    with pytest.raises(ValidationError):
        adapter._build_url(path)


def test_build_url_without_base_url() -> None:
    adapter = HttpAdapter(_ScriptedSession(), provider_name="Example")
    with pytest.raises(ValidationError):
        adapter._build_url("/orders")


@pytest.mark.parametrize(("base_url", "api_uri"), [("  ", None), (None, 5)])
def test_invalid_url_parts(base_url, api_uri) -> None:
    with pytest.raises(ValidationError):
        HttpAdapter(_ScriptedSession(), provider_name="Example", base_url=base_url, api_uri=api_uri)


@pytest.mark.asyncio
async def test_get_is_retried_after_transport_failure() -> None:
    session = _ScriptedSession(aiohttp.ClientConnectionError("reset"), _Reply(body={"ok": True}))
    adapter = _adapter(session, retry_count=1)

    assert await adapter._request_json("GET", "/status") == {"ok": True}
    assert len(session.sent) == 2
    assert session.sent[0][2]["timeout"].total == 30


@pytest.mark.asyncio
async def test_post_is_never_retried() -> None:
    session = _ScriptedSession(aiohttp.ClientConnectionError("reset"))
    adapter = _adapter(session, retry_count=3)

    with pytest.raises(NetworkError) as excinfo:
        await adapter._request_json("POST", "/orders", json={})

    assert len(session.sent) == 1
    assert excinfo.value.provider == "Example"
    assert isinstance(excinfo.value.__cause__, aiohttp.ClientConnectionError)


@pytest.mark.asyncio
async def test_retries_exhausted() -> None:
    session = _ScriptedSession(TimeoutError(), TimeoutError())
    adapter = _adapter(session, retry_count=1)
    with pytest.raises(NetworkError):
        await adapter._request_json("GET", "/status")
    assert len(session.sent) == 2


@pytest.mark.asyncio
async def test_explicit_timeout_is_passed_through() -> None:
    session = _ScriptedSession(_Reply(body={}))
    adapter = _adapter(session)
    await adapter._request_json("GET", "/status", timeout=aiohttp.ClientTimeout(total=5))
    assert session.sent[0][2]["timeout"].total == 5


@pytest.mark.asyncio
async def test_non_json_body_is_provider_error() -> None:
    session = _ScriptedSession(_Reply(body=ValueError("not json")))
    adapter = _adapter(session)
    with pytest.raises(ProviderError) as excinfo:
        await adapter._request_json("GET", "/status")
    assert not isinstance(excinfo.value, NetworkError)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_auth_statuses(status: int) -> None:
    adapter = _adapter(_ScriptedSession(_Reply(status=status)))
    with pytest.raises(AuthError):
        await adapter._request("GET", "https://api.example.com/status", expect_json=False)


@pytest.mark.asyncio
async def test_other_statuses_carry_the_code() -> None:
    adapter = _adapter(_ScriptedSession(_Reply(status=502)))
    with pytest.raises(ProviderError) as excinfo:
        await adapter._request("GET", "https://api.example.com/status", expect_json=False)
    assert str(excinfo.value) == "Example: Request failed with status 502."
    assert excinfo.value.detail == "status 502"


@pytest.mark.asyncio
async def test_error_message_hook_is_used() -> None:
    session = _ScriptedSession(_Reply(status=422, body={"message": "Bad amount"}))
    adapter = _MessageAdapter(session, provider_name="Example", base_url="https://api.example.com")
    with pytest.raises(ProviderError) as excinfo:
        await adapter._request_json("POST", "/orders")
    assert str(excinfo.value) == "Example: Bad amount"
    assert excinfo.value.detail == "status 422"


@pytest.mark.asyncio
async def test_not_found_can_be_allowed() -> None:
    adapter = _adapter(_ScriptedSession(_Reply(status=404), _Reply(status=404)))
    assert await adapter._request_json("GET", "/vehicles/1", allow_not_found=True) is None
    with pytest.raises(ProviderError):
        await adapter._request_json("GET", "/vehicles/1")


@pytest.mark.asyncio
async def test_text_body() -> None:
    adapter = _adapter(_ScriptedSession(_Reply(text="pong")))
    assert await adapter._request("GET", "https://api.example.com/ping", expect_json=False) == "pong"
