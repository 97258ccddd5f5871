"""
Tests for LocationSession against a local fake of the Find My iPhone
endpoint: URLs, auth schemes, headers, the rotating session pair and the
mapping of HTTP failures onto error types.
"""

from __future__ import annotations

import json
import unittest

import aiohttp
from aiohttp import web
from aiohttp import test_utils

from device_locator.const import DEFAULT_HEADERS
from device_locator.errors import AuthError, DecodeError, SessionStateError, TransportError
from device_locator.models import ServerContext
from device_locator.session import LocationSession, get_standard_headers

from .test_common import make_response_json


class FakeFmipService:
    """Records every request and answers with queued (status, body) pairs."""

    def __init__(self) -> None:
        self.requests: list[dict] = []
        self.responses: list[tuple[int, object]] = []

    def queue(self, status: int, body) -> None:
        self.responses.append((status, body))

    async def handle(self, request: web.Request) -> web.Response:
        self.requests.append(
            dict(
                login=request.match_info["login"],
                action=request.match_info["action"],
                headers=dict(request.headers),
                auth=aiohttp.BasicAuth.decode(request.headers["Authorization"]),
                body=await request.read(),
            )
        )
        status, body = self.responses.pop(0) if self.responses else (200, make_response_json())
        text = body if isinstance(body, str) else json.dumps(body)
        return web.Response(status=status, text=text, content_type="text/plain")


class TestLocationSession(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.service = FakeFmipService()
        app = web.Application()
        app.router.add_post("/fmipservice/device/{login}/{action}", self.service.handle)
        self.server = test_utils.TestServer(app)
        await self.server.start_server()
        self.http = aiohttp.ClientSession()
        self.session = LocationSession("alice", self.http, base_url=str(self.server.make_url("/")))

    async def asyncTearDown(self):
        await self.http.close()
        await self.server.close()

    # ------------------------------------------------------------------
    # authenticate
    # ------------------------------------------------------------------

    async def test_authenticate_request_shape(self):
        await self.session.authenticate("alice@example.com", "pa55")

        request = self.service.requests[0]
        self.assertEqual(request["login"], "alice@example.com")
        self.assertEqual(request["action"], "initClient")
        self.assertEqual(request["auth"].login, "alice@example.com")
        self.assertEqual(request["auth"].password, "pa55")
        self.assertEqual(request["headers"]["X-Apple-AuthScheme"], "UserIDGuest")
        self.assertEqual(json.loads(request["body"]), {"accountName": "alice@example.com"})

    async def test_fixed_headers_sent_verbatim(self):
        await self.session.authenticate("alice", "pa55")

        headers = self.service.requests[0]["headers"]
        for name, value in DEFAULT_HEADERS.items():
            self.assertEqual(headers[name], value, name)

    async def test_authenticate_returns_response_and_stores_pair(self):
        self.service.queue(200, make_response_json(prs_id=555, auth_token="first"))

        response = await self.session.authenticate("alice", "pa55")

        self.assertEqual(response.context, ServerContext(555, "first"))
        self.assertEqual(self.session.context, ServerContext(555, "first"))
        self.assertEqual(len(response.devices), 1)

    # ------------------------------------------------------------------
    # refresh
    # ------------------------------------------------------------------

    async def test_refresh_request_shape(self):
        await self.session.refresh(555, "first")

        request = self.service.requests[0]
        self.assertEqual(request["login"], "555")
        self.assertEqual(request["action"], "refreshClient")
        self.assertEqual(request["auth"].login, "555")
        self.assertEqual(request["auth"].password, "first")
        self.assertEqual(request["headers"]["X-Apple-AuthScheme"], "Forever")
        self.assertEqual(json.loads(request["body"]), {})

    async def test_refresh_uses_pair_from_previous_response(self):
        self.service.queue(200, make_response_json(prs_id=555, auth_token="first"))
        self.service.queue(200, make_response_json(prs_id=555, auth_token="second"))
        self.service.queue(200, make_response_json(prs_id=556, auth_token="third"))

        await self.session.authenticate("alice", "pa55")
        await self.session.refresh(self.session.context.prs_id, self.session.context.auth_token)
        await self.session.refresh(self.session.context.prs_id, self.session.context.auth_token)

        pairs = [(r["auth"].login, r["auth"].password) for r in self.service.requests[1:]]
        self.assertEqual(pairs, [("555", "first"), ("555", "second")])
        self.assertEqual(self.session.context, ServerContext(556, "third"))

    async def test_refresh_without_session_id_is_rejected(self):
        with self.assertRaises(SessionStateError):
            await self.session.refresh(0, "token")
        self.assertEqual(self.service.requests, [])

    # ------------------------------------------------------------------
    # errors
    # ------------------------------------------------------------------

    async def test_unauthorized_raises_auth_error(self):
        self.service.queue(401, "")
        with self.assertRaises(AuthError) as ctx:
            await self.session.authenticate("alice", "wrong")
        self.assertEqual(ctx.exception.status, 401)

    async def test_forbidden_raises_auth_error(self):
        self.service.queue(403, "")
        with self.assertRaises(AuthError):
            await self.session.refresh(555, "stale")

    async def test_auth_error_not_retried(self):
        session = LocationSession("alice", self.http, base_url=str(self.server.make_url("/")), max_retries=3)
        self.service.queue(401, "")
        with self.assertRaises(AuthError):
            await session.authenticate("alice", "wrong")
        self.assertEqual(len(self.service.requests), 1)

    async def test_failed_call_keeps_previous_pair(self):
        self.service.queue(200, make_response_json(prs_id=555, auth_token="first"))
        self.service.queue(403, "")

        await self.session.authenticate("alice", "pa55")
        with self.assertRaises(AuthError):
            await self.session.refresh(555, "first")

        self.assertEqual(self.session.context, ServerContext(555, "first"))

    async def test_server_error_raises_transport_error(self):
        self.service.queue(500, "oops")
        with self.assertRaises(TransportError):
            await self.session.authenticate("alice", "pa55")

    async def test_server_error_retried_when_configured(self):
        session = LocationSession("alice", self.http, base_url=str(self.server.make_url("/")), max_retries=1)
        self.service.queue(503, "busy")
        self.service.queue(200, make_response_json(prs_id=9, auth_token="ok"))

        response = await session.authenticate("alice", "pa55")

        self.assertEqual(response.context, ServerContext(9, "ok"))
        self.assertEqual(len(self.service.requests), 2)

    async def test_invalid_json_raises_decode_error(self):
        self.service.queue(200, "<html>maintenance</html>")
        with self.assertRaises(DecodeError):
            await self.session.authenticate("alice", "pa55")

    async def test_missing_server_context_raises_decode_error(self):
        self.service.queue(200, {"content": []})
        with self.assertRaises(DecodeError):
            await self.session.authenticate("alice", "pa55")


class TestStandardHeaders(unittest.TestCase):

    def test_scheme_added(self):
        headers = get_standard_headers("Forever")
        self.assertEqual(headers["X-Apple-AuthScheme"], "Forever")
        self.assertEqual(headers["User-Agent"], "FindMyiPhone/500 CFNetwork/758.4.3 Darwin/15.5.0")

    def test_constant_table_not_modified(self):
        get_standard_headers("Forever")
        self.assertNotIn("X-Apple-AuthScheme", DEFAULT_HEADERS)
