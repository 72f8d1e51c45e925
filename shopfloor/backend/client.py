"""HTTP client for the backend-as-a-service."""

import logging
from typing import Any

import httpx

from shopfloor.config.settings import BackendConfig
from shopfloor.storage import TokenStore
from .errors import (
    BackendError,
    NetworkError,
    RecordNotFound,
    RemoteRejection,
    NO_ROWS_CODE,
)

logger = logging.getLogger(__name__)


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_message(body: dict[str, Any]) -> str | None:
    # PostgREST and edge functions use "message"; the auth server uses
    # "msg" or "error_description" depending on its version.
    for field in ("message", "msg", "error_description", "error"):
        value = body.get(field)
        if isinstance(value, str) and value:
            return value
    return None


def _error_code(body: dict[str, Any]) -> str | None:
    for field in ("error_code", "code", "error"):
        value = body.get(field)
        if isinstance(value, str) and value:
            return value
    return None


class BackendClient:
    """Authenticated request primitive shared by the auth, table and function APIs.

    Every request carries the project API key. Requests that act on behalf of
    the user also carry the bearer token from the token store.
    """

    def __init__(
        self,
        config: BackendConfig,
        token_store: TokenStore,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.token_store = token_store
        self.http = httpx.AsyncClient(
            base_url=config.url,
            timeout=config.request_timeout,
            transport=transport,
        )

    def _headers(
        self, authenticated: bool, extra: dict[str, str] | None = None
    ) -> dict[str, str]:
        headers = {
            "apikey": self.config.anon_key,
            "Content-Type": "application/json",
        }
        token = self.token_store.access_token() if authenticated else None
        headers["Authorization"] = f"Bearer {token or self.config.anon_key}"
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        authenticated: bool = True,
        error_cls: type[RemoteRejection] = RemoteRejection,
    ) -> Any:
        """Make a request and return the parsed JSON body.

        Returns None for empty responses.

        Raises:
            NetworkError: If no response was received.
            RecordNotFound: If a single-row read matched no row.
            RemoteRejection: (or `error_cls`) for any other non-2xx response.
        """
        try:
            response = await self.http.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._headers(authenticated, headers),
            )
        except httpx.TransportError as e:
            logger.error(
                f"Network failure on {method} {path}: "
                f"exception_type={type(e).__name__}, error={e}"
            )
            raise NetworkError() from e

        if not response.is_success:
            body = _error_body(response)
            message = _error_message(body) or f"HTTP {response.status_code}"
            code = _error_code(body)
            if code == NO_ROWS_CODE:
                raise RecordNotFound(message, response.status_code, code)
            logger.warning(
                f"Backend rejected {method} {path}: "
                f"status_code={response.status_code}, code={code}, message={message}"
            )
            raise error_cls(message, response.status_code, code)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(
                f"Invalid JSON from {method} {path}", response.status_code
            ) from e

    async def aclose(self) -> None:
        await self.http.aclose()
