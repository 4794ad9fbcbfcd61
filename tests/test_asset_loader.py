import asyncio

import httpx
import pytest
from PIL import Image

from kdp_cover.assets.loader import AssetLoader, decode_data_uri, is_local_reference, to_data_uri
from kdp_cover.config.settings import Settings
from kdp_cover.errors import AssetLoadError

from tests.conftest import make_png, write_png

REMOTE = "https://images.example.com/cover art.png"


def _load(loader_kwargs, source, handler=None, **kwargs):
    async def run():
        if handler is None:
            return await AssetLoader(**loader_kwargs).load_bitmap(source, **kwargs)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await AssetLoader(client=client, **loader_kwargs).load_bitmap(source, **kwargs)

    return asyncio.run(run())


def test_data_uri_round_trip():
    png = make_png()
    assert decode_data_uri(to_data_uri(png)) == png
    img = _load({}, to_data_uri(png))
    assert img.size == (120, 180)


def test_malformed_data_uri():
    with pytest.raises(AssetLoadError):
        decode_data_uri("data:image/png;base64")


def test_local_path_and_file_url(tmp_path):
    path = write_png(tmp_path / "front.png")
    assert _load({}, str(path)).size == (120, 180)
    assert _load({}, path.as_uri()).size == (120, 180)


def test_pil_image_passes_through():
    img = Image.new("RGB", (10, 10))
    assert _load({}, img) is img


def test_remote_urls_go_through_proxy():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request.url)
        return httpx.Response(200, content=make_png(), headers={"content-type": "image/png"})

    settings = Settings(api_base_url="http://api.test/")
    img = _load({"settings": settings}, REMOTE, handler)
    assert img.size == (120, 180)
    assert seen[0].host == "api.test"
    assert seen[0].path == "/proxy-image"
    assert seen[0].params["url"] == REMOTE


def test_direct_fetch_without_base_url():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request.url)
        return httpx.Response(200, content=make_png())

    _load({"settings": Settings()}, REMOTE, handler)
    assert seen[0].host == "images.example.com"


def test_http_error_becomes_asset_load_error():
    def handler(request: httpx.Request):
        return httpx.Response(404)

    with pytest.raises(AssetLoadError) as exc:
        _load({}, REMOTE, handler)
    assert "HTTP 404" in str(exc.value)


def test_network_error_becomes_asset_load_error():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(AssetLoadError):
        _load({}, REMOTE, handler)


def test_undecodable_bytes():
    with pytest.raises(AssetLoadError) as exc:
        _load({}, b"not an image")
    assert "not a decodable image" in str(exc.value)


def test_size_limit(tmp_path):
    path = write_png(tmp_path / "big.png", size=(400, 400))
    with pytest.raises(AssetLoadError) as exc:
        _load({}, str(path), max_bytes=10)
    assert "exceeds limit" in str(exc.value)


def test_missing_file(tmp_path):
    with pytest.raises(AssetLoadError):
        _load({}, str(tmp_path / "nope.png"))


def test_local_files_can_be_refused(tmp_path):
    path = write_png(tmp_path / "front.png")
    for ref in (str(path), path.as_uri(), path):
        with pytest.raises(AssetLoadError) as exc:
            _load({"allow_local": False}, ref)
        assert "local files are not accepted" in str(exc.value)
    assert _load({"allow_local": False}, to_data_uri(make_png())).size == (120, 180)


def test_is_local_reference(tmp_path):
    assert is_local_reference("/etc/passwd")
    assert is_local_reference("file:///etc/passwd")
    assert is_local_reference("relative/cover.png")
    assert is_local_reference(tmp_path)
    assert not is_local_reference(REMOTE)
    assert not is_local_reference(to_data_uri(b"x"))
    assert not is_local_reference(b"raw")
