"""Explicitly constructed session context for one running dashboard.

Consumers receive the context (or the pieces of it they need) instead of
reaching for process-wide globals.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx

from shopfloor.backend import (
    AuthApi,
    BackendClient,
    ChannelTransport,
    Database,
    Functions,
    RealtimeSubscriptions,
    RealtimeTransport,
)
from shopfloor.config.settings import BackendConfig
from shopfloor.session import Navigator, Page, SessionManager
from shopfloor.storage import LocalStore, TokenStore

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    config: BackendConfig
    store: LocalStore
    client: BackendClient
    auth: AuthApi
    database: Database
    functions: Functions
    realtime: RealtimeSubscriptions
    navigator: Navigator
    session: SessionManager

    async def close(self) -> None:
        await self.session.close()
        await self.realtime.transport.close()
        await self.client.aclose()


def reset_password_url(config: BackendConfig) -> str | None:
    if not config.public_app_base_url:
        return None
    return f"{config.public_app_base_url.rstrip('/')}{Page.RESET_PASSWORD.path}"


def build_session_context(
    config: BackendConfig,
    navigator: Navigator | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
    realtime_transport: RealtimeTransport | None = None,
) -> SessionContext:
    """Wire the backend facade and the session manager for `config`.

    The transports can be replaced, e.g. to run against a mock backend.
    """
    store = LocalStore(config.local_store_path)
    token_store = TokenStore(store, config.auth_storage_key)
    client = BackendClient(config, token_store, transport=http_transport)
    auth = AuthApi(client, token_store)
    database = Database(client)
    realtime = RealtimeSubscriptions(
        realtime_transport or ChannelTransport(config.realtime_url, config.anon_key)
    )
    navigator = navigator or Navigator()
    session = SessionManager(
        auth=auth,
        database=database,
        realtime=realtime,
        store=store,
        navigator=navigator,
        token_refresh_interval=config.token_refresh_interval,
        reset_password_url=reset_password_url(config),
    )
    return SessionContext(
        config=config,
        store=store,
        client=client,
        auth=auth,
        database=database,
        functions=Functions(client),
        realtime=realtime,
        navigator=navigator,
        session=session,
    )


@asynccontextmanager
async def open_session_context(
    config: BackendConfig | None = None, **kwargs
) -> AsyncIterator[SessionContext]:
    """Build a context, restore any saved session, and tear down on exit."""
    config = config or BackendConfig.from_env()
    logger.info(
        f"Opening session context: environment={config.environment}, backend={config.url}"
    )
    context = build_session_context(config, **kwargs)
    try:
        result = await context.session.initialize()
        if not result.success:
            logger.warning(f"Session could not be restored: {result.error}")
        yield context
    finally:
        await context.close()
