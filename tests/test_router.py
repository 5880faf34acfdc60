import httpx
import pytest

from fnrun.errors import FunctionNotFound, FunctionNotRunning, InvocationError
from fnrun.router import Router, normalize_path

from conftest import echo_handler


@pytest.fixture
def router(table, events):
    r = Router(table, events, transport=httpx.MockTransport(echo_handler))
    yield r
    r.close()


def test_unknown_function_is_not_found(router, table):
    with pytest.raises(FunctionNotFound):
        router.invoke("unknown-name", "/x")

    table.mark_running("echo", "c1", "127.0.0.1", 49153)
    with pytest.raises(FunctionNotFound):
        router.invoke("unknown-name", "/x")


def test_known_function_before_start_is_not_running(router):
    with pytest.raises(FunctionNotRunning):
        router.invoke("echo", "/")


def test_not_running_is_distinct_from_not_found():
    assert not issubclass(FunctionNotRunning, FunctionNotFound)
    assert not issubclass(FunctionNotFound, FunctionNotRunning)


def test_invoke_returns_function_response(router, table):
    table.mark_running("echo", "c1", "127.0.0.1", 49153)

    assert router.invoke_bytes("echo", "/") == b"echo /"
    result = router.invoke("echo", "hello/world")
    assert result.status_code == 200
    assert result.content == b"echo /hello/world"
    assert result.headers["content-type"] == "text/plain"


def test_invoke_targets_the_function_endpoint(table, events):
    seen = []

    def handler(request):
        seen.append((request.method, str(request.url), request.content))
        return httpx.Response(201, content=b"created")

    table.mark_running("hello", "c2", "127.0.0.1", 50001)
    router = Router(table, events, transport=httpx.MockTransport(handler))
    result = router.invoke("hello", "/items", method="POST", body=b"{}", params="a=1")

    assert seen == [("POST", "http://127.0.0.1:50001/items?a=1", b"{}")]
    assert result.status_code == 201
    assert result.content == b"created"


def test_function_error_status_is_passed_through(table, events):
    table.mark_running("echo", "c1", "127.0.0.1", 49153)
    router = Router(table, events, transport=httpx.MockTransport(lambda r: httpx.Response(500, content=b"boom")))

    result = router.invoke("echo", "/")
    assert result.status_code == 500
    assert result.content == b"boom"


def test_transport_failure_is_an_invocation_error(table, events):
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    table.mark_running("echo", "c1", "127.0.0.1", 49153)
    router = Router(table, events, transport=httpx.MockTransport(refuse))

    with pytest.raises(InvocationError) as exc:
        router.invoke("echo", "/")
    assert type(exc.value) is InvocationError
    assert isinstance(exc.value.__cause__, httpx.ConnectError)
    assert any(e["level"] == "ERROR" for e in events.latest())


def test_stopped_function_is_not_running_again(router, table):
    table.mark_running("echo", "c1", "127.0.0.1", 49153)
    router.invoke("echo", "/")
    table.mark_stopped("echo")

    with pytest.raises(FunctionNotRunning):
        router.invoke("echo", "/")


@pytest.mark.parametrize(
    "raw,expected",
    [("", "/"), ("/", "/"), ("a/b", "/a/b"), ("/a/b.txt", "/a/b.txt"), ("/x..y", "/x..y")],
)
def test_normalize_path(raw, expected):
    assert normalize_path(raw) == expected


@pytest.mark.parametrize("raw", ["/../etc/passwd", "/a/../b", "http://evil/", "/x?u=http://evil"])
def test_normalize_path_rejects_escapes(raw):
    with pytest.raises(ValueError):
        normalize_path(raw)
