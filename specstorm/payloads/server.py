"""Coordination server, run as the infrastructure process.

Holds the queue of examples that workers pull from. Only the HTTP surface
needed for coordination is provided:

* ``GET /health``
* ``GET /examples``: number of queued examples
* ``POST /examples``: seed the queue with ``{"examples": [...]}``
* ``POST /examples/next``: pop the next example (204 when empty)
"""

import os
from typing import Any, Dict, Iterable, List, Optional

from aiohttp import web

from ..core.errors import ServerError
from ..core.log import get_logger

logger = get_logger(__name__)

EXAMPLES = web.AppKey("examples", list)


def seed(app: web.Application, examples: Iterable[Dict[str, Any]]) -> int:
    """Append examples to the queue; returns the queue length."""
    queue: List[Dict[str, Any]] = app[EXAMPLES]
    queue.extend(examples)
    return len(queue)


async def health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "pid": os.getpid()})


async def list_examples(request: web.Request) -> web.Response:
    return web.json_response({"remaining": len(request.app[EXAMPLES])})


async def add_examples(request: web.Request) -> web.Response:
    try:
        body = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(text="request body must be JSON")
    examples = body.get("examples") if isinstance(body, dict) else None
    if not isinstance(examples, list):
        raise web.HTTPBadRequest(text="'examples' must be a list")
    count = seed(request.app, examples)
    logger.debug("Seeded %d examples, %d queued", len(examples), count)
    return web.json_response({"remaining": count})


async def next_example(request: web.Request) -> web.Response:
    queue = request.app[EXAMPLES]
    if not queue:
        return web.Response(status=204)
    return web.json_response(queue.pop(0))


def create_app(examples: Optional[Iterable[Dict[str, Any]]] = None) -> web.Application:
    app = web.Application()
    app[EXAMPLES] = []
    if examples:
        seed(app, examples)
    app.router.add_get("/health", health)
    app.router.add_get("/examples", list_examples)
    app.router.add_post("/examples", add_examples)
    app.router.add_post("/examples/next", next_example)
    return app


def serve(port: int, host: str = "127.0.0.1") -> int:
    """Serve until SIGINT/SIGTERM.

    Raises:
        ServerError: if the server cannot listen on ``host:port``
    """
    logger.info("Serving on %s:%s", host, port)
    try:
        web.run_app(create_app(), host=host, port=port)
    except OSError as e:
        raise ServerError(
            f"Could not serve on {host}:{port}: {e}", details={"port": port}
        ) from e
    return 0
