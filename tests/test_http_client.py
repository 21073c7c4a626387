"""
Unit tests for HTTPClient retries, breaker and async mode
"""

import threading

import pytest
from requests_mock import Mocker

from mongoapi_sdk import ClientConfig, HTTPClient
from mongoapi_sdk.cb import create_circuit_breaker
from mongoapi_sdk.exceptions import ConfigurationError, HTTPStatusError, TransportError, ValidationError
from mongoapi_sdk.models import RawResponse, Request
from mongoapi_sdk.transport import Transport


class DummyTransport(Transport):
    """Replays canned responses; the last one repeats forever"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def send(self, request, url, timeout):
        self.calls.append((request, url, timeout))
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def ok(text='{"success":true,"data":null}'):
    return RawResponse(status_code=200, text=text)


def status(code, error="failed"):
    return RawResponse(status_code=code, text='{"success":false,"error":"%s"}' % error)


def make_client(transport, sleeps=None, **overrides):
    values = {"api_key": "test-key", "base_url": "http://mongoapi.test/", "max_retries": 3}
    values.update(overrides)
    sleep = sleeps.append if sleeps is not None else (lambda seconds: None)
    return HTTPClient(ClientConfig(**values), transport=transport, sleep=sleep)


def test_url_and_headers():
    transport = DummyTransport(ok())
    client = make_client(transport)

    client.execute(client.build_request("get", "health"))

    request, url, timeout = transport.calls[0]
    assert url == "http://mongoapi.test/health"
    assert request.method == "GET"
    assert request.headers["X-API-Key"] == "test-key"
    assert timeout == 30.0


def test_server_errors_retried_until_exhausted():
    """Test always-503 makes max_retries + 1 attempts with growing delays"""
    sleeps = []
    transport = DummyTransport(status(503, "unavailable"))
    client = make_client(transport, sleeps)

    with pytest.raises(HTTPStatusError) as exc_info:
        client.execute(client.build_request("POST", "/x", body="{}"))

    assert exc_info.value.status_code == 503
    assert exc_info.value.message == "unavailable"
    assert len(transport.calls) == 4
    assert sleeps == [0.1, 0.2, 0.4]
    assert sleeps == sorted(sleeps)

    stats = client.get_stats()
    assert stats.total_operations == 1
    assert stats.failed_operations == 1
    assert stats.retry_count == 3
    assert client.get_last_error().code == "http_error"


def test_client_errors_not_retried():
    """Test a 4xx response is attempted exactly once"""
    sleeps = []
    transport = DummyTransport(status(400, "bad filter"))
    client = make_client(transport, sleeps)

    with pytest.raises(HTTPStatusError):
        client.execute(client.build_request("POST", "/x"))

    assert len(transport.calls) == 1
    assert sleeps == []


def test_transport_error_then_success():
    transport = DummyTransport(TransportError("refused", code="connection_error"), ok())
    client = make_client(transport)

    response = client.execute(client.build_request("GET", "/health"))

    assert response.status_code == 200
    assert len(transport.calls) == 2
    assert client.get_stats().successful_operations == 1
    assert client.get_last_error() is None


def test_backoff_capped():
    sleeps = []
    client = make_client(
        DummyTransport(TransportError("down")),
        sleeps,
        max_retries=4,
        retry_backoff_base=1.0,
        retry_backoff_cap=2.0,
    )

    with pytest.raises(TransportError):
        client.execute(client.build_request("GET", "/health"))

    assert sleeps == [1.0, 2.0, 2.0, 2.0]


def test_zero_retries():
    transport = DummyTransport(status(500))
    client = make_client(transport, max_retries=0)

    with pytest.raises(HTTPStatusError):
        client.execute(client.build_request("GET", "/health"))

    assert len(transport.calls) == 1


def test_circuit_breaker_opens():
    """Test repeated transport failures open the breaker"""
    transport = DummyTransport(TransportError("down"))
    client = HTTPClient(
        ClientConfig(base_url="http://mongoapi.test", max_retries=0),
        transport=transport,
        circuit_breaker=create_circuit_breaker("test_http", fail_max=2),
    )
    request = client.build_request("GET", "/health")

    with pytest.raises(TransportError) as first:
        client.execute(request)
    with pytest.raises(TransportError) as second:
        client.execute(request)
    with pytest.raises(TransportError) as third:
        client.execute(request)

    assert first.value.code == "transport_error"
    assert second.value.code == "circuit_open"
    assert third.value.code == "circuit_open"
    assert len(transport.calls) == 2


def test_circuit_breaker_ignores_client_errors():
    transport = DummyTransport(status(404))
    client = HTTPClient(
        ClientConfig(base_url="http://mongoapi.test", max_retries=0),
        transport=transport,
        circuit_breaker=create_circuit_breaker("test_http_4xx", fail_max=1),
    )

    for _ in range(3):
        with pytest.raises(HTTPStatusError):
            client.execute(client.build_request("GET", "/missing"))

    assert len(transport.calls) == 3


def test_send_async_callback_once():
    """Test async request invokes its callback exactly once"""
    client = make_client(DummyTransport(ok()))
    calls = []
    done = threading.Event()

    def on_done(result):
        calls.append(result)
        done.set()

    future = client.send_async(client.build_request("GET", "/health"), on_done)

    assert future.result(timeout=5).value.status_code == 200
    assert done.wait(timeout=5)
    assert len(calls) == 1
    client.close()


def test_send_async_failure():
    client = make_client(DummyTransport(status(400, "nope")))
    calls = []

    result = client.send_async(client.build_request("GET", "/health"), calls.append).result(timeout=5)

    assert not result.success
    assert result.error.message == "nope"
    assert calls == [result]
    client.close()


def test_callback_exception_does_not_break_future():
    client = make_client(DummyTransport(ok()))

    def broken(result):
        raise RuntimeError("callback bug")

    assert client.send_async(client.build_request("GET", "/health"), broken).result(timeout=5).success
    client.close()


def test_runtime_setters():
    client = make_client(DummyTransport(ok()))

    client.set_api_key("other-key")
    client.set_user_agent("game-server/2.0")
    client.add_header("X-Trace", "abc")
    client.set_retry_count(1)
    client.set_timeout(5)

    assert client.headers["Authorization"] == "Bearer other-key"
    assert client.headers["User-Agent"] == "game-server/2.0"
    assert client.headers["X-Trace"] == "abc"
    assert client.config.max_retries == 1
    assert client.config.timeout == 5

    with pytest.raises(ConfigurationError):
        client.set_timeout(0)


def test_request_id_header_case_insensitive():
    """Test the request id is found whatever the header name casing"""
    response = RawResponse(status_code=404, text='{"success":false,"error":"missing"}', headers={"x-request-id": "r1"})
    client = make_client(DummyTransport(response), max_retries=0)

    with pytest.raises(HTTPStatusError) as exc_info:
        client.execute(client.build_request("GET", "/missing"))

    assert exc_info.value.request_id == "r1"
    assert RawResponse(status_code=200, headers={"X-Request-Id": "r2"}).header("x-REQUEST-id") == "r2"


def test_unencodable_body_is_validation_error():
    """Test a body with a lone surrogate fails before the network and is recorded"""
    client = HTTPClient(ClientConfig(base_url="http://mongoapi.test", max_retries=2))

    # built without model validation so the body reaches the transport as-is
    request = Request.model_construct(method="POST", path="/x", body='{"name":"bad\ud800"}', headers={})

    with Mocker() as m:
        with pytest.raises(ValidationError):
            client.execute(request)
        assert m.call_count == 0

    stats = client.get_stats()
    assert stats.total_operations == 1
    assert stats.failed_operations == 1
    assert stats.retry_count == 0
    assert client.get_last_error().code == "validation_error"


def test_unexpected_transport_exception_recorded():
    """Test failures outside the error hierarchy still update stats before propagating"""
    client = make_client(DummyTransport(RuntimeError("transport bug")))

    with pytest.raises(RuntimeError):
        client.execute(client.build_request("GET", "/health"))

    assert client.get_stats().failed_operations == 1
    assert client.get_last_error().code == "internal_error"


def test_executor_created_once_under_concurrency():
    client = make_client(DummyTransport(ok()))
    barrier = threading.Barrier(8)
    executors = []

    def grab():
        barrier.wait()
        executors.append(client._get_executor())

    threads = [threading.Thread(target=grab) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(executors) == 8
    assert all(e is executors[0] for e in executors)
    client.close()
    assert client._executor is None


def test_build_request_rejects_invalid_input():
    client = make_client(DummyTransport(ok()))

    with pytest.raises(ValidationError):
        client.build_request("BREW", "/x")
