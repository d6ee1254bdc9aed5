"""Unit tests for the coordination server."""

import asyncio
from unittest.mock import patch

import pytest
from aiohttp import test_utils

from specstorm.core.errors import ServerError
from specstorm.payloads import server


def run_with_client(app, scenario):
    """Run ``scenario(client)`` against ``app`` on a local test server."""

    async def go():
        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            return await scenario(client)

    return asyncio.run(go())


class TestServerApp:
    """Test request handling."""

    def test_health(self):
        """Test health endpoint."""

        async def scenario(client):
            resp = await client.get("/health")
            return resp.status, await resp.json()

        status, body = run_with_client(server.create_app(), scenario)

        assert status == 200
        assert body["status"] == "ok"

    def test_seed_and_pop_in_order(self):
        """Test examples are handed out first in, first out."""
        app = server.create_app([{"id": 1}])

        async def scenario(client):
            seeded = await client.post("/examples", json={"examples": [{"id": 2}]})
            first = await client.post("/examples/next")
            second = await client.post("/examples/next")
            empty = await client.post("/examples/next")
            remaining = await client.get("/examples")
            return (
                await seeded.json(),
                await first.json(),
                await second.json(),
                empty.status,
                await remaining.json(),
            )

        seeded, first, second, empty_status, remaining = run_with_client(app, scenario)

        assert seeded == {"remaining": 2}
        assert first == {"id": 1}
        assert second == {"id": 2}
        assert empty_status == 204
        assert remaining == {"remaining": 0}

    @pytest.mark.parametrize(
        "payload", [b"not json", b'{"examples": 3}', b"[1, 2]"]
    )
    def test_bad_seed_request(self, payload):
        """Test malformed seed requests are rejected."""

        async def scenario(client):
            resp = await client.post(
                "/examples", data=payload, headers={"Content-Type": "application/json"}
            )
            return resp.status

        assert run_with_client(server.create_app(), scenario) == 400


class TestSeed:
    """Test queue seeding."""

    def test_seed_returns_count(self):
        """Test seed appends and reports the queue length."""
        app = server.create_app()

        assert server.seed(app, [{"id": 1}, {"id": 2}]) == 2
        assert server.seed(app, [{"id": 3}]) == 3


class TestServe:
    """Test serve()."""

    def test_serve_runs_app(self):
        """Test serve hands the app to aiohttp."""
        with patch("specstorm.payloads.server.web.run_app") as run_app:
            assert server.serve(6003) == 0

        assert run_app.call_args.kwargs == {"host": "127.0.0.1", "port": 6003}

    def test_listen_failure(self):
        """Test socket errors become ServerError."""
        with patch(
            "specstorm.payloads.server.web.run_app", side_effect=OSError("in use")
        ):
            with pytest.raises(ServerError) as exc_info:
                server.serve(6004)

        assert exc_info.value.details == {"port": 6004}
