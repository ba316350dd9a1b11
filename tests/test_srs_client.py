import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from app.services.srs_client import SrsClient, SrsUnavailableError, client_count, is_publishing

STREAMS = {
    "code": 0,
    "server": "vid-0",
    "streams": [
        {"name": "abc", "clients": 3, "publish": {"active": True, "cid": "1"}},
        {"name": "idle", "clients": 0, "publish": {"active": False}},
    ],
}


async def _streams(request):
    return web.json_response(STREAMS)


async def _broken(request):
    return web.Response(status=500, text="boom")


async def _garbage(request):
    return web.Response(text="<html>not json</html>", content_type="text/html")


async def _numeric_streams(request):
    return web.json_response({"code": 0, "streams": 5})


async def _mapping_streams(request):
    return web.json_response({"code": 0, "streams": {"abc": {"clients": 1}}})


async def _slow(request):
    await asyncio.sleep(1)
    return web.json_response(STREAMS)


@pytest.fixture
async def srs_server():
    app = web.Application()
    app.router.add_get("/api/v1/streams/", _streams)
    app.router.add_get("/broken", _broken)
    app.router.add_get("/garbage", _garbage)
    app.router.add_get("/slow", _slow)
    app.router.add_get("/numeric-streams", _numeric_streams)
    app.router.add_get("/mapping-streams", _mapping_streams)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


async def test_list_streams(srs_server):
    client = SrsClient(str(srs_server.make_url("/api/v1/streams/")), timeout_sec=2)
    try:
        streams = await client.list_streams()
    finally:
        await client.close()
    assert [s["name"] for s in streams] == ["abc", "idle"]
    assert is_publishing(streams[0])
    assert not is_publishing(streams[1])
    assert client_count(streams[0]) == 3


@pytest.mark.parametrize("path", ["/broken", "/garbage", "/missing", "/numeric-streams", "/mapping-streams"])
async def test_bad_responses_raise(srs_server, path):
    client = SrsClient(str(srs_server.make_url(path)), timeout_sec=2)
    try:
        with pytest.raises(SrsUnavailableError):
            await client.list_streams()
    finally:
        await client.close()


async def test_timeout_raises(srs_server):
    client = SrsClient(str(srs_server.make_url("/slow")), timeout_sec=0.1)
    try:
        with pytest.raises(SrsUnavailableError, match="timed out"):
            await client.list_streams()
    finally:
        await client.close()


async def test_unreachable_raises():
    client = SrsClient("http://127.0.0.1:9/api/v1/streams/", timeout_sec=1)
    try:
        with pytest.raises(SrsUnavailableError):
            await client.list_streams()
    finally:
        await client.close()


def test_helpers_tolerate_missing_fields():
    assert not is_publishing(None)
    assert not is_publishing({"name": "x"})
    assert not is_publishing({"name": "x", "publish": {"active": "yes"}})
    assert not is_publishing({"name": "x", "publish": True})
    assert not is_publishing({"name": "x", "publish": "active"})
    assert client_count({"name": "x", "clients": None}) == 0
    assert client_count({"name": "x", "clients": "bad"}) == 0
