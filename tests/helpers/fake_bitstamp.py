"""Fake Bitstamp HTTP API for testing.

This helper serves a small ``aiohttp.web`` application on a local port.
Tests register canned responses per ``(method, path)`` and inspect the
recorded requests afterwards: the path, headers and decoded form body.
Unregistered routes answer 404 with a Bitstamp-style error body.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl

from aiohttp import web
from aiohttp.test_utils import TestServer

API_PREFIX = "/api/v2/"

# Fixed wall clock used to seed the nonce in adapter tests.
CLOCK_SECONDS = 1_700_000_000


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: Dict[str, str]
    form: Dict[str, str]


class FakeBitstamp:
    """A minimal Bitstamp stand-in used for exercising the transport and adapter."""

    def __init__(self) -> None:
        self.requests: List[RecordedRequest] = []
        self._responses: Dict[Tuple[str, str], Tuple[int, str, float]] = {}
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self._handle)
        self.server: Optional[TestServer] = None

    def respond(self, method: str, api_method: str, payload: str, status: int = 200, delay: float = 0.0) -> None:
        """Register a response for ``{API_PREFIX}{api_method}``."""
        self._responses[(method.upper(), API_PREFIX + api_method)] = (status, payload, delay)

    @property
    def base_url(self) -> str:
        assert self.server is not None
        return str(self.server.make_url(API_PREFIX))

    async def start(self) -> None:
        self.server = TestServer(self.app)
        await self.server.start_server()

    async def close(self) -> None:
        if self.server is not None:
            await self.server.close()

    async def _handle(self, request: web.Request) -> web.Response:
        body = await request.text()
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                headers=dict(request.headers),
                form=dict(parse_qsl(body)),
            )
        )
        status, payload, delay = self._responses.get(
            (request.method, request.path),
            (404, '{"status": "error", "reason": "Not found", "code": "API0001"}', 0.0),
        )
        if delay:
            await asyncio.sleep(delay)
        return web.Response(status=status, text=payload, content_type="application/json")
