"""Unit tests for the WakaTime client: classification, TTL cache, stale fallback."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from wakawars.provider.client import WakaTimeClient, extract_error_message

BASE_URL = "https://wakatime.test/api/v1"


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class Recorder:
    """MockTransport handler that replays queued responses and counts calls."""

    def __init__(self, *responses) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _make_client(recorder: Recorder, clock: FakeClock) -> WakaTimeClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return WakaTimeClient(http, base_url=BASE_URL, ttl_seconds=120, clock=clock)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 2, 23, 12, 0, 0, tzinfo=timezone.utc))


DAILY_OK = {
    "data": {
        "grand_total": {"total_seconds": 5400},
        "range": {"date": "2026-02-23", "timezone": "Europe/Berlin"},
    }
}


class TestClassification:
    """Test mapping of responses onto stat statuses."""

    @pytest.mark.asyncio
    async def test_ok_daily(self, clock):
        recorder = Recorder(httpx.Response(200, json=DAILY_OK))
        async with _make_client(recorder, clock) as client:
            result = await client.get_daily_total("key-1")
        assert result.status == "ok"
        assert result.total_seconds == 5400
        assert result.range_date == "2026-02-23"
        assert result.range_timezone == "Europe/Berlin"
        assert result.response_status == 200
        assert result.payload == DAILY_OK
        assert result.is_fresh
        request = recorder.requests[0]
        assert request.url.path == "/api/v1/users/current/status_bar/today"
        assert request.headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_weekly_url_and_fields(self, clock):
        body = {"data": {"total_seconds": 100000, "daily_average": 14285}}
        recorder = Recorder(httpx.Response(200, json=body))
        async with _make_client(recorder, clock) as client:
            result = await client.get_weekly_stats("last_7_days", "key-1")
        assert result.status == "ok"
        assert result.daily_average_seconds == 14285
        assert recorder.requests[0].url.path == "/api/v1/users/current/stats/last_7_days"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [401, 403])
    async def test_unauthorized_is_private(self, clock, code):
        recorder = Recorder(httpx.Response(code, json={"error": "Unauthorized"}))
        async with _make_client(recorder, clock) as client:
            result = await client.get_daily_total("key-1")
        assert result.status == "private"
        assert result.error

    @pytest.mark.asyncio
    async def test_private_404(self, clock):
        recorder = Recorder(httpx.Response(404, json={"error": "This user's stats are private"}))
        async with _make_client(recorder, clock) as client:
            result = await client.get_daily_total("key-1")
        assert result.status == "private"

    @pytest.mark.asyncio
    async def test_plain_404_is_not_found(self, clock):
        recorder = Recorder(httpx.Response(404, json={"error": "Not found"}))
        async with _make_client(recorder, clock) as client:
            result = await client.get_daily_total("key-1")
        assert result.status == "not_found"

    @pytest.mark.asyncio
    async def test_server_error_message(self, clock):
        recorder = Recorder(httpx.Response(500, json={"errors": ["upstream", "timeout"]}))
        async with _make_client(recorder, clock) as client:
            result = await client.get_daily_total("key-1")
        assert result.status == "error"
        assert result.error == "upstream; timeout"
        assert not result.response_ok

    @pytest.mark.asyncio
    async def test_malformed_body(self, clock):
        recorder = Recorder(httpx.Response(200, text="<html>"))
        async with _make_client(recorder, clock) as client:
            result = await client.get_daily_total("key-1")
        assert result.status == "error"
        assert result.error == "Malformed provider payload"


class TestCache:
    """Test TTL caching and stale-on-error fallback."""

    @pytest.mark.asyncio
    async def test_private_result_cached(self, clock):
        recorder = Recorder(httpx.Response(403, json={"error": "Unauthorized"}))
        async with _make_client(recorder, clock) as client:
            first = await client.get_daily_total("key-1")
            clock.advance(60)
            second = await client.get_daily_total("key-1")
        assert first.status == second.status == "private"
        assert second.from_cache
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, clock):
        recorder = Recorder(httpx.Response(200, json=DAILY_OK))
        async with _make_client(recorder, clock) as client:
            await client.get_daily_total("key-1")
            clock.advance(121)
            result = await client.get_daily_total("key-1")
        assert not result.from_cache
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_bypass_cache(self, clock):
        recorder = Recorder(httpx.Response(200, json=DAILY_OK))
        async with _make_client(recorder, clock) as client:
            await client.get_daily_total("key-1")
            result = await client.get_daily_total("key-1", bypass_cache=True)
        assert not result.from_cache
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_credentials_cached_separately(self, clock):
        recorder = Recorder(httpx.Response(200, json=DAILY_OK))
        async with _make_client(recorder, clock) as client:
            await client.get_daily_total("key-1")
            await client.get_daily_total("key-2")
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_daily_cache_rolls_over_at_local_midnight(self, clock):
        clock.now = datetime(2026, 2, 23, 22, 59, 0, tzinfo=timezone.utc)
        recorder = Recorder(httpx.Response(200, json=DAILY_OK))
        async with _make_client(recorder, clock) as client:
            await client.get_daily_total("key-1", timezone="Europe/Berlin")
            clock.advance(120 - 1)  # 00:00:59 in Berlin, still inside the TTL
            await client.get_daily_total("key-1", timezone="Europe/Berlin")
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_stale_fallback_on_network_error(self, clock):
        recorder = Recorder(
            httpx.Response(200, json=DAILY_OK),
            httpx.ConnectError("connection refused"),
        )
        async with _make_client(recorder, clock) as client:
            await client.get_daily_total("key-1")
            clock.advance(121)
            result = await client.get_daily_total("key-1")
        assert result.status == "ok"
        assert result.total_seconds == 5400
        assert result.from_cache
        assert result.network_error == "connection refused"
        assert not result.is_fresh

    @pytest.mark.asyncio
    async def test_network_error_without_cache(self, clock):
        recorder = Recorder(httpx.ConnectError("connection refused"))
        async with _make_client(recorder, clock) as client:
            result = await client.get_daily_total("key-1")
        assert result.status == "error"
        assert result.network_error == "connection refused"
        assert not result.from_cache

    @pytest.mark.asyncio
    async def test_network_error_not_cached(self, clock):
        recorder = Recorder(
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json=DAILY_OK),
        )
        async with _make_client(recorder, clock) as client:
            await client.get_daily_total("key-1")
            result = await client.get_daily_total("key-1")
        assert result.status == "ok"
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_clear_cache_forces_refetch(self, clock):
        recorder = Recorder(httpx.Response(200, json=DAILY_OK))
        async with _make_client(recorder, clock) as client:
            await client.get_daily_total("key-1")
            client.clear_cache()
            result = await client.get_daily_total("key-1")
        assert not result.from_cache
        assert len(recorder.requests) == 2


class TestExtractErrorMessage:
    def test_plain_text(self):
        assert extract_error_message(httpx.Response(502, text=" bad gateway ")) == "bad gateway"

    def test_empty(self):
        assert extract_error_message(httpx.Response(502)) is None
