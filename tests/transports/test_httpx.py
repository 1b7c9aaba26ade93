"""Tests for HttpxTransport using mocked HTTP responses."""

import json

import httpx
import pytest
import respx

from reqcache import DataStatus, HttpxTransport, RequestError, ResourceAPI


@pytest.fixture
async def httpx_transport():
    """Create an HttpxTransport with test configuration."""
    transport = HttpxTransport("https://api.test.dev", timeout=5000)
    yield transport
    await transport.close()


class TestHttpxTransport:
    """Tests for HttpxTransport with mocked responses."""

    @respx.mock
    async def test_get_sends_query_and_headers(
        self, httpx_transport: HttpxTransport
    ) -> None:
        """Test that query params and headers reach the wire."""
        route = respx.get("https://api.test.dev/users/dase").mock(
            return_value=httpx.Response(200, json={"name": "Peter"})
        )

        response = await httpx_transport.request(
            "get",
            "/users/dase",
            query={"expand": "teams"},
            headers={"Authorization": "Bearer abc"},
        )

        assert response.status == 200
        assert json.loads(response.body) == {"name": "Peter"}
        request = route.calls[0].request
        assert request.method == "GET"
        assert request.url.params["expand"] == "teams"
        assert request.headers["Authorization"] == "Bearer abc"

    @respx.mock
    async def test_post_sends_json_body(self, httpx_transport: HttpxTransport) -> None:
        """Test that bodies are sent as JSON."""
        route = respx.post("https://api.test.dev/users").mock(
            return_value=httpx.Response(201, json={"id": 7})
        )

        response = await httpx_transport.request(
            "post", "/users", body={"name": "Peter"}
        )

        assert response.status == 201
        assert json.loads(route.calls[0].request.content) == {"name": "Peter"}

    @respx.mock
    async def test_error_status_is_returned_not_raised(
        self, httpx_transport: HttpxTransport
    ) -> None:
        """Test that non-2xx responses come back as plain responses."""
        respx.get("https://api.test.dev/users/ghost").mock(
            return_value=httpx.Response(404, json={"message": "not found"})
        )

        response = await httpx_transport.request("get", "/users/ghost")

        assert response.status == 404
        assert json.loads(response.body) == {"message": "not found"}

    @respx.mock
    async def test_empty_body_is_none(self, httpx_transport: HttpxTransport) -> None:
        """Test that an empty response body is reported as None."""
        respx.delete("https://api.test.dev/users/dase").mock(
            return_value=httpx.Response(204)
        )

        response = await httpx_transport.request("delete", "/users/dase")

        assert response.status == 204
        assert response.body is None

    @respx.mock
    async def test_timeout_raises(self, httpx_transport: HttpxTransport) -> None:
        """Test that transport failures propagate as httpx exceptions."""
        respx.get("https://api.test.dev/slow").mock(
            side_effect=httpx.ReadTimeout("timed out")
        )

        with pytest.raises(httpx.TimeoutException):
            await httpx_transport.request("get", "/slow", timeout=10)

    async def test_close_leaves_borrowed_client_open(self) -> None:
        """Test that a client passed in is not closed by the transport."""
        client = httpx.AsyncClient(base_url="https://api.test.dev")
        transport = HttpxTransport(client=client)

        await transport.close()

        assert not client.is_closed
        await client.aclose()


class TestResourceAPIOverHttpx:
    """End-to-end queries through the default transport."""

    @respx.mock
    async def test_query_fetches_and_caches(self) -> None:
        """Test that a GET goes over the wire once and is then served FRESH."""
        route = respx.get("https://api.test.dev/users/dase").mock(
            return_value=httpx.Response(200, json={"name": "Peter"})
        )

        async with ResourceAPI("https://api.test.dev") as api:
            api.add_resource("USER", endpoint="/users/:username", model={})

            first = api.query("USER", params={"username": "dase"})
            assert first.status is DataStatus.EMPTY
            assert await first == {"name": "Peter"}

            second = api.query("USER", params={"username": "dase"})
            assert second.status is DataStatus.FRESH
            assert second.data == {"name": "Peter"}

        assert route.call_count == 1

    @respx.mock
    async def test_timeout_surfaces_as_request_error(self) -> None:
        """Test that a transport timeout becomes a normalized error."""
        respx.get("https://api.test.dev/users/dase").mock(
            side_effect=httpx.ConnectTimeout("timed out")
        )

        async with ResourceAPI("https://api.test.dev", timeout="1s") as api:
            api.add_resource("USER", endpoint="/users/:username", model={})

            payload = api.query("USER", params={"username": "dase"})
            with pytest.raises(RequestError) as exc_info:
                await payload

        assert isinstance(exc_info.value.cause, httpx.TimeoutException)
        assert exc_info.value.status == -1
