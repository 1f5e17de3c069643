import httpx
import pytest

from postaltracker import service
from postaltracker.client import CarrierClient
from postaltracker.config import Settings
from postaltracker.errors import (
    BatchTooLargeError,
    InvalidTrackingCodeError,
    MissingCredentialsError,
)


def _mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _carrier(settings):
    return CarrierClient(settings, backoff_base=0)


@pytest.mark.asyncio
async def test_track_normalizes_upstream_payload(settings, delivered_payload):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=delivered_payload)

    async with _mock_client(handler) as client:
        record = await service.track("aa123456789br", carrier=_carrier(settings), client=client)

    assert record.code == "AA123456789BR"
    assert record.delivered is True
    req = seen[0]
    assert req.url.path == "/correios"
    assert req.url.params["tracking_code"] == "AA123456789BR"
    assert req.headers["X-RapidAPI-Key"] == "test-key"
    assert req.headers["X-RapidAPI-Host"] == settings.rapidapi_host


@pytest.mark.asyncio
async def test_track_empty_payload_is_not_found(settings):
    async with _mock_client(lambda r: httpx.Response(200, json={})) as client:
        record = await service.track("AA123456789BR", carrier=_carrier(settings), client=client)
    assert record is None


@pytest.mark.asyncio
async def test_track_rejects_invalid_code_before_calling_upstream(settings):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    async with _mock_client(handler) as client:
        with pytest.raises(InvalidTrackingCodeError):
            await service.track("AA1234567BR", carrier=_carrier(settings), client=client)
    assert calls == []


@pytest.mark.asyncio
async def test_track_without_api_key(tmp_path):
    carrier = CarrierClient(Settings(rapidapi_key=None, history_file=tmp_path / "h.json"))
    with pytest.raises(MissingCredentialsError):
        await service.track("AA123456789BR", carrier=carrier)


@pytest.mark.asyncio
async def test_track_propagates_upstream_status(settings):
    async with _mock_client(lambda r: httpx.Response(429, json={"message": "quota"})) as client:
        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await service.track("AA123456789BR", carrier=_carrier(settings), client=client)
    assert exc_info.value.response.status_code == 429


@pytest.mark.asyncio
async def test_track_retries_transient_errors(settings, delivered_payload):
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json=delivered_payload)

    async with _mock_client(handler) as client:
        record = await service.track("AA123456789BR", carrier=_carrier(settings), client=client)
    assert len(attempts) == 2
    assert record is not None


@pytest.mark.asyncio
async def test_track_batch_keeps_input_order(settings, delivered_payload):
    def handler(request):
        code = request.url.params["tracking_code"]
        if code == "CC000000000BR":
            return httpx.Response(200, json={})
        payload = dict(delivered_payload, codObjeto=code)
        return httpx.Response(200, json=payload)

    codes = ["lb987654321us", "CC000000000BR", "AA123456789BR"]
    async with _mock_client(handler) as client:
        records = await service.track_batch(codes, carrier=_carrier(settings), client=client)

    assert records[0].code == "LB987654321US"
    assert records[0].is_import is True
    assert records[1] is None
    assert records[2].code == "AA123456789BR"


@pytest.mark.asyncio
async def test_track_batch_fails_as_a_whole(settings, delivered_payload):
    def handler(request):
        if request.url.params["tracking_code"] == "BB111111111BR":
            return httpx.Response(401, json={"message": "invalid key"})
        return httpx.Response(200, json=delivered_payload)

    async with _mock_client(handler) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await service.track_batch(
                ["AA123456789BR", "BB111111111BR"], carrier=_carrier(settings), client=client
            )


@pytest.mark.asyncio
async def test_track_batch_validates_size(settings):
    with pytest.raises(BatchTooLargeError):
        await service.track_batch(["AA123456789BR"] * 11, carrier=_carrier(settings))
