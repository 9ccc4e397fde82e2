"""OAuth consent URL, loopback callback capture, and code-for-token exchange."""

from __future__ import annotations

import asyncio
import unittest
from urllib.parse import parse_qs

import httpx

from quicksync.errors import BackendError, CapabilityError
from quicksync.oauth import (
    CallbackServer,
    OAuthTokens,
    authorization_url,
    exchange_code,
    redirect_uri,
    start_oauth_flow,
)


class AuthorizationUrlTests(unittest.TestCase):
    def test_google_url_asks_for_offline_drive_access(self) -> None:
        url = httpx.URL(authorization_url("google", "cid", redirect_uri(3456)))
        self.assertEqual(url.host, "accounts.google.com")
        self.assertEqual(url.params["client_id"], "cid")
        self.assertEqual(url.params["redirect_uri"], "http://localhost:3456/oauth/callback")
        self.assertEqual(url.params["response_type"], "code")
        self.assertEqual(url.params["access_type"], "offline")
        self.assertEqual(url.params["scope"], "https://www.googleapis.com/auth/drive.file")

    def test_dropbox_url_requests_offline_tokens(self) -> None:
        url = httpx.URL(authorization_url("dropbox", "cid", redirect_uri(3456)))
        self.assertEqual(url.host, "www.dropbox.com")
        self.assertEqual(url.params["token_access_type"], "offline")

    def test_unknown_provider_is_rejected(self) -> None:
        with self.assertRaises(CapabilityError):
            authorization_url("onedrive", "cid", redirect_uri(3456))

    def test_tokens_become_a_cloud_connection(self) -> None:
        tokens = OAuthTokens(access_token="at", refresh_token="rt", expires_in=3600)
        connection = tokens.to_connection("c9", "google", "me@example.com", "cid", "secret")
        self.assertEqual(connection.access_token, "at")
        self.assertEqual(connection.refresh_token, "rt")
        self.assertEqual((connection.client_id, connection.client_secret), ("cid", "secret"))
        self.assertEqual(connection.label, "google: me@example.com")


class ExchangeCodeTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder = None

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.responder(request)

        self.http = httpx.AsyncClient(transport=httpx.MockTransport(handler))

    async def asyncTearDown(self) -> None:
        await self.http.aclose()

    async def test_code_is_posted_as_form_and_tokens_parsed(self) -> None:
        self.responder = lambda request: httpx.Response(
            200,
            json={"access_token": "at", "refresh_token": "rt", "expires_in": 3599},
        )

        tokens = await exchange_code("google", "cid", "secret", "abc", "http://localhost:1/cb", http_client=self.http)

        self.assertEqual(tokens, OAuthTokens("at", "rt", 3599))
        request = self.requests[0]
        self.assertEqual(str(request.url), "https://oauth2.googleapis.com/token")
        form = parse_qs(request.content.decode())
        self.assertEqual(form["code"], ["abc"])
        self.assertEqual(form["grant_type"], ["authorization_code"])
        self.assertEqual(form["client_secret"], ["secret"])
        self.assertEqual(form["redirect_uri"], ["http://localhost:1/cb"])

    async def test_rejected_exchange_becomes_backend_error(self) -> None:
        self.responder = lambda request: httpx.Response(400, text="invalid_grant")
        with self.assertRaisesRegex(BackendError, "Failed to exchange token: invalid_grant"):
            await exchange_code("dropbox", "cid", "secret", "abc", "http://localhost:1/cb", http_client=self.http)

    async def test_response_without_access_token_is_reported(self) -> None:
        self.responder = lambda request: httpx.Response(200, json={"token_type": "bearer"})
        with self.assertRaisesRegex(BackendError, "Failed to parse token response"):
            await exchange_code("google", "cid", "secret", "abc", "http://localhost:1/cb", http_client=self.http)


class LoopbackFlowTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.token_requests: list[httpx.Request] = []

        def token_endpoint(request: httpx.Request) -> httpx.Response:
            self.token_requests.append(request)
            return httpx.Response(200, json={"access_token": "fresh", "refresh_token": "keep"})

        self.token_http = httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint))
        self.browser = httpx.AsyncClient(trust_env=False)
        self.redirects: list[httpx.Response] = []
        self._visits: list[asyncio.Task] = []

    async def asyncTearDown(self) -> None:
        await self.token_http.aclose()
        await self.browser.aclose()

    def _open_browser(self, *paths: str):
        """Stand-in for ``webbrowser.open`` that follows the redirect back to the callback server."""

        def open_url(url: str) -> bool:
            port = httpx.URL(httpx.URL(url).params["redirect_uri"]).port

            async def visit() -> None:
                for path in paths:
                    self.redirects.append(await self.browser.get(f"http://127.0.0.1:{port}{path}"))

            self._visits.append(asyncio.ensure_future(visit()))
            return True

        return open_url

    async def test_flow_captures_code_and_exchanges_it(self) -> None:
        tokens = await start_oauth_flow(
            "google",
            "cid",
            "secret",
            port=0,
            open_browser=self._open_browser("/favicon.ico", "/oauth/callback?code=xyz"),
            http_client=self.token_http,
            timeout=10.0,
        )
        await asyncio.gather(*self._visits)

        self.assertEqual(tokens.access_token, "fresh")
        self.assertEqual(tokens.refresh_token, "keep")
        self.assertEqual([response.status_code for response in self.redirects], [404, 200])
        self.assertIn("Authentication Successful", self.redirects[1].text)
        self.assertEqual(parse_qs(self.token_requests[0].content.decode())["code"], ["xyz"])

    async def test_provider_error_on_callback_aborts_the_flow(self) -> None:
        with self.assertRaisesRegex(BackendError, "OAuth error from provider: access_denied"):
            await start_oauth_flow(
                "google",
                "cid",
                "secret",
                port=0,
                open_browser=self._open_browser("/oauth/callback?error=access_denied"),
                http_client=self.token_http,
                timeout=10.0,
            )
        await asyncio.gather(*self._visits)
        self.assertEqual(self.token_requests, [])

    async def test_browser_that_fails_to_open_is_reported(self) -> None:
        with self.assertRaisesRegex(BackendError, "Failed to open browser"):
            await start_oauth_flow("google", "cid", "secret", port=0, open_browser=lambda url: False)

    async def test_waiting_gives_up_after_timeout(self) -> None:
        server = CallbackServer(0)
        try:
            with self.assertRaisesRegex(BackendError, "Failed to capture authorization code"):
                await asyncio.to_thread(server.wait_for_code, 0.0)
        finally:
            server.server_close()


if __name__ == "__main__":
    unittest.main()
