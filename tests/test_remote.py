"""Tests for the remote fetcher against a local aiohttp server."""
import pytest
from aiohttp import web
from aiohttp import test_utils

from stage_proxy.errors import RemoteUnavailableError
from stage_proxy.remote import RemoteFetcher, RemoteResponse
from tests.fixtures.images import make_image

IMAGE = make_image(40, 30)


@pytest.fixture
async def origin():
    async def image(request):
        return web.Response(body=IMAGE, content_type="image/jpeg")

    async def missing(request):
        return web.Response(status=404, text="not found")

    app = web.Application()
    app.router.add_get("/wp-content/uploads/a.jpg", image)
    app.router.add_get("/wp-content/uploads/missing.jpg", missing)

    server = test_utils.TestServer(app)
    await server.start_server()
    yield server
    await server.close()


async def test_get_returns_body(origin):
    response = await RemoteFetcher(timeout=5).get(str(origin.make_url("/wp-content/uploads/a.jpg")))

    assert response == RemoteResponse(status=200, body=IMAGE)


async def test_error_status_is_returned_not_raised(origin):
    response = await RemoteFetcher(timeout=5).get(str(origin.make_url("/wp-content/uploads/missing.jpg")))

    assert response.status == 404


async def test_connection_failure_raises(origin):
    url = str(origin.make_url("/wp-content/uploads/a.jpg"))
    await origin.close()

    with pytest.raises(RemoteUnavailableError):
        await RemoteFetcher(timeout=5).get(url)
