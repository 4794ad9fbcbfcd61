import asyncio

import httpx

from kdp_cover.ai.image_client import (
    IdeogramClient,
    ImageGenerationError,
    ImageRequest,
    PredictionClient,
    generate_cover_image,
    placeholder_image_url,
)
from kdp_cover.config.settings import Settings
from kdp_cover.fallback import JobStatus


def _ideogram(handler, api_key="secret"):
    settings = Settings(ideogram_api_key=api_key, ideogram_api_url="https://ideogram.test/generate")

    async def run(request):
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await generate_cover_image(request, [IdeogramClient(settings, client=client)])

    return run


def test_ideogram_request_is_scaled_multipart():
    seen = {}

    def handler(request: httpx.Request):
        seen["key"] = request.headers["Api-Key"]
        seen["body"] = request.read().decode()
        seen["type"] = request.headers["content-type"]
        return httpx.Response(200, json={"data": [{"url": "https://cdn.test/cover.png"}]})

    result = asyncio.run(_ideogram(handler)(ImageRequest("a lighthouse at dusk", 1800, 2700, seed=7)))
    assert result.strategy == "ideogram"
    assert result.value.url == "https://cdn.test/cover.png"
    assert seen["key"] == "secret"
    assert seen["type"].startswith("multipart/form-data")
    assert "a lighthouse at dusk" in seen["body"]
    assert "683" in seen["body"] and "1024" in seen["body"]


def test_provider_failure_falls_back_to_placeholder():
    def handler(request: httpx.Request):
        return httpx.Response(500)

    result = asyncio.run(_ideogram(handler)(ImageRequest("storm", 1800, 2700)))
    assert result.strategy == "placeholder"
    assert result.value.url.startswith("https://placehold.co/683x1024/")
    assert "HTTP 500" in result.errors[0][1]


def test_missing_api_key_falls_back():
    def handler(request: httpx.Request):
        raise AssertionError("no request expected")

    result = asyncio.run(_ideogram(handler, api_key="")(ImageRequest("storm", 600, 900)))
    assert result.strategy == "placeholder"


def test_empty_prompt_is_an_error():
    client = IdeogramClient(Settings(ideogram_api_key="k"))
    try:
        asyncio.run(client.generate(ImageRequest("  ", 600, 900)))
    except ImageGenerationError as e:
        assert "Prompt" in str(e)
    else:
        raise AssertionError("expected ImageGenerationError")


def test_placeholder_url_encodes_text():
    assert placeholder_image_url(600, 900, "My Book").endswith("png?text=My+Book")


def test_prediction_polling():
    statuses = iter(["starting", "processing", "succeeded"])

    def handler(request: httpx.Request):
        assert request.headers["Authorization"] == "Token t0k"
        status = next(statuses)
        body = {"status": status}
        if status == "succeeded":
            body["output"] = ["https://cdn.test/upscaled.png"]
        return httpx.Response(200, json=body)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await PredictionClient("t0k", base_url="https://api.test/v1", client=client).wait(
                "abc", base_delay=0,
            )

    state = asyncio.run(run())
    assert state.status is JobStatus.COMPLETED
    assert state.result == "https://cdn.test/upscaled.png"
    assert state.attempts == 3


def test_prediction_failure():
    def handler(request: httpx.Request):
        return httpx.Response(200, json={"status": "failed", "error": "bad input"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await PredictionClient("t", client=client).wait("abc", base_delay=0)

    state = asyncio.run(run())
    assert state.status is JobStatus.FAILED
    assert state.reason == "bad input"


def test_non_object_response_falls_back_to_placeholder():
    for payload in ([{"url": "https://cdn.test/x.png"}], "ok", 42):
        def handler(request: httpx.Request, payload=payload):
            return httpx.Response(200, json=payload)

        result = asyncio.run(_ideogram(handler)(ImageRequest("storm", 600, 900)))
        assert result.strategy == "placeholder"
        assert "not a JSON object" in result.errors[0][1]


def test_prediction_non_object_status_fails():
    def handler(request: httpx.Request):
        return httpx.Response(200, json=["succeeded"])

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await PredictionClient("t", client=client).wait("abc", base_delay=0)

    state = asyncio.run(run())
    assert state.status is JobStatus.FAILED
    assert "unexpected payload" in state.reason


def test_prediction_without_client_closes_its_connections(monkeypatch):
    created = []
    real_client = httpx.AsyncClient
    statuses = iter(["processing", "succeeded"])

    def handler(request: httpx.Request):
        status = next(statuses)
        body = {"status": status}
        if status == "succeeded":
            body["output"] = "https://cdn.test/upscaled.png"
        return httpx.Response(200, json=body)

    def tracking_client(**kwargs):
        client = real_client(transport=httpx.MockTransport(handler), **kwargs)
        created.append(client)
        return client

    monkeypatch.setattr(httpx, "AsyncClient", tracking_client)
    predictions = PredictionClient("t", base_url="https://api.test/v1")
    assert predictions.client is None

    state = asyncio.run(predictions.wait("abc", base_delay=0))
    assert state.status is JobStatus.COMPLETED
    assert len(created) == 2
    assert all(client.is_closed for client in created)
