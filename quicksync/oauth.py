"""Browser-based OAuth authorization for cloud connections.

The flow opens the provider's consent page, waits for the redirect on a
loopback callback server, and trades the authorization code for tokens.
The resulting tokens become a saved ``CloudConnection``.
"""

from __future__ import annotations

import asyncio
import logging
import time
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer

import httpx

from .connection import CloudConnection
from .errors import BackendError, CapabilityError

logger = logging.getLogger(__name__)

CALLBACK_HOST = "127.0.0.1"
CALLBACK_PORT = 3456
CALLBACK_PATH = "/oauth/callback"
AUTHORIZATION_TIMEOUT = 300.0

SUCCESS_PAGE = (
    "<html><body><h1>Authentication Successful!</h1>"
    "<p>You can close this window and return to QuickSync.</p></body></html>"
)
FAILURE_PAGE = "Authentication Failed. You can close this window."


@dataclass(frozen=True)
class OAuthProvider:
    authorize_url: str
    token_url: str
    extra_params: tuple[tuple[str, str], ...] = ()


PROVIDERS: dict[str, OAuthProvider] = {
    "google": OAuthProvider(
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        extra_params=(
            ("scope", "https://www.googleapis.com/auth/drive.file"),
            ("access_type", "offline"),
            ("prompt", "consent"),
        ),
    ),
    "dropbox": OAuthProvider(
        authorize_url="https://www.dropbox.com/oauth2/authorize",
        token_url="https://api.dropboxapi.com/oauth2/token",
        extra_params=(("token_access_type", "offline"),),
    ),
}


@dataclass(frozen=True)
class OAuthTokens:
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None

    def to_connection(
        self,
        connection_id: str,
        provider: str,
        account_name: str,
        client_id: str,
        client_secret: str,
    ) -> CloudConnection:
        return CloudConnection(
            id=connection_id,
            provider=provider,
            account_name=account_name,
            access_token=self.access_token,
            client_id=client_id,
            client_secret=client_secret,
            refresh_token=self.refresh_token,
        )


def provider_for(name: str) -> OAuthProvider:
    try:
        return PROVIDERS[name]
    except KeyError:
        raise CapabilityError(f"Unsupported provider: {name}") from None


def redirect_uri(port: int) -> str:
    return f"http://localhost:{port}{CALLBACK_PATH}"


def authorization_url(provider: str, client_id: str, redirect_to: str) -> str:
    """Build the consent-page URL asking for an authorization code."""
    endpoints = provider_for(provider)
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_to,
        "response_type": "code",
        **dict(endpoints.extra_params),
    }
    return str(httpx.URL(endpoints.authorize_url, params=params))


class _CallbackHandler(BaseHTTPRequestHandler):
    server: CallbackServer

    def do_GET(self) -> None:
        url = httpx.URL(self.path)
        if url.path == CALLBACK_PATH:
            error = url.params.get("error")
            if error:
                self.server.error = error
                self._respond(200, FAILURE_PAGE, "text/plain")
                return
            code = url.params.get("code")
            if code:
                self.server.code = code
                self._respond(200, SUCCESS_PAGE, "text/html")
                return
        self._respond(404, "Not Found", "text/plain")

    def _respond(self, status: int, body: str, content_type: str) -> None:
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", f"{content_type}; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args) -> None:
        logger.debug("OAuth callback: " + format, *args)


class CallbackServer(HTTPServer):
    """Loopback server that captures one authorization redirect."""

    def __init__(self, port: int = CALLBACK_PORT, host: str = CALLBACK_HOST) -> None:
        super().__init__((host, port), _CallbackHandler)
        self.code: str | None = None
        self.error: str | None = None
        self.timeout = 0.5

    @property
    def port(self) -> int:
        return self.server_address[1]

    def wait_for_code(self, timeout: float = AUTHORIZATION_TIMEOUT) -> str:
        """Serve requests until the redirect arrives; blocking."""
        deadline = time.monotonic() + timeout
        while self.code is None and self.error is None:
            if time.monotonic() >= deadline:
                raise BackendError("Failed to capture authorization code")
            self.handle_request()
        if self.error is not None:
            raise BackendError(f"OAuth error from provider: {self.error}")
        return self.code


async def exchange_code(
    provider: str,
    client_id: str,
    client_secret: str,
    code: str,
    redirect_to: str,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> OAuthTokens:
    """Trade an authorization code for access and refresh tokens."""
    endpoints = provider_for(provider)
    data = {
        "client_id": client_id,
        "client_secret": client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": redirect_to,
    }
    client = http_client or httpx.AsyncClient(timeout=30.0)
    try:
        response = await client.post(endpoints.token_url, data=data)
    except httpx.HTTPError as exc:
        raise BackendError(f"Token request failed: {exc}") from exc
    finally:
        if http_client is None:
            await client.aclose()
    if not response.is_success:
        raise BackendError(f"Failed to exchange token: {response.text}")

    try:
        payload = response.json()
        access_token = payload["access_token"]
    except (ValueError, KeyError, TypeError) as exc:
        raise BackendError(f"Failed to parse token response: {exc}") from exc
    return OAuthTokens(
        access_token=access_token,
        refresh_token=payload.get("refresh_token"),
        expires_in=payload.get("expires_in"),
    )


async def start_oauth_flow(
    provider: str,
    client_id: str,
    client_secret: str,
    *,
    port: int = CALLBACK_PORT,
    open_browser: Callable[[str], bool] = webbrowser.open,
    http_client: httpx.AsyncClient | None = None,
    timeout: float = AUTHORIZATION_TIMEOUT,
) -> OAuthTokens:
    """Run the full authorization-code flow for ``provider``."""
    provider_for(provider)
    try:
        server = CallbackServer(port)
    except OSError as exc:
        raise BackendError(f"Failed to start local server: {exc}") from exc

    try:
        redirect_to = redirect_uri(server.port)
        url = authorization_url(provider, client_id, redirect_to)
        logger.info("Opening browser for %s authorization", provider)
        if not open_browser(url):
            raise BackendError("Failed to open browser")
        code = await asyncio.to_thread(server.wait_for_code, timeout)
    finally:
        server.server_close()

    return await exchange_code(provider, client_id, client_secret, code, redirect_to, http_client=http_client)


__all__ = [
    "CALLBACK_PORT",
    "CallbackServer",
    "OAuthProvider",
    "OAuthTokens",
    "PROVIDERS",
    "authorization_url",
    "exchange_code",
    "redirect_uri",
    "start_oauth_flow",
]
