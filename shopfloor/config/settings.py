"""Client settings read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path

from .env_loader import (
    EnvironmentName,
    get_current_environment,
    validate_required_env_vars,
)

DEFAULT_AUTH_STORAGE_KEY = "shopfloor_auth"
DEFAULT_TOKEN_REFRESH_INTERVAL = 15 * 60
DEFAULT_DASHBOARD_REFRESH_INTERVAL = 30
DEFAULT_REQUEST_TIMEOUT = 10.0

# Keys in the local store that survive a logout.
PRESERVED_LOCAL_KEYS = ("language", "theme")


@dataclass(frozen=True)
class BackendConfig:
    """Connection and timing settings for the backend-as-a-service."""

    url: str
    anon_key: str
    auth_storage_key: str = DEFAULT_AUTH_STORAGE_KEY
    local_store_path: Path | None = None
    token_refresh_interval: float = DEFAULT_TOKEN_REFRESH_INTERVAL
    dashboard_refresh_interval: float = DEFAULT_DASHBOARD_REFRESH_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    public_app_base_url: str | None = None
    environment: EnvironmentName = "dev"

    def __post_init__(self) -> None:
        # Normalize so path joins never produce a double slash.
        object.__setattr__(self, "url", self.url.rstrip("/"))

    @property
    def realtime_url(self) -> str:
        return f"{self.url}/realtime/v1"

    @classmethod
    def from_env(cls) -> "BackendConfig":
        """Build the config from environment variables.

        Exits with a clear message if a required variable is missing.
        """
        validate_required_env_vars()
        store_path = os.getenv("LOCAL_STORE_PATH")
        return cls(
            url=os.environ["BACKEND_URL"],
            anon_key=os.environ["BACKEND_ANON_KEY"],
            auth_storage_key=os.getenv("AUTH_STORAGE_KEY", DEFAULT_AUTH_STORAGE_KEY),
            local_store_path=Path(store_path).expanduser() if store_path else None,
            token_refresh_interval=float(
                os.getenv(
                    "TOKEN_REFRESH_INTERVAL_SECONDS", DEFAULT_TOKEN_REFRESH_INTERVAL
                )
            ),
            dashboard_refresh_interval=float(
                os.getenv(
                    "DASHBOARD_REFRESH_INTERVAL_SECONDS",
                    DEFAULT_DASHBOARD_REFRESH_INTERVAL,
                )
            ),
            request_timeout=float(
                os.getenv("REQUEST_TIMEOUT_SECONDS", DEFAULT_REQUEST_TIMEOUT)
            ),
            public_app_base_url=os.getenv("PUBLIC_APP_BASE_URL"),
            environment=get_current_environment(),
        )
