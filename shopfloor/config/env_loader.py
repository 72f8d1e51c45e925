"""Load environment variables early for the dashboard client.

For local dev, loads a .env file based on ENV ("dev" or "prod").
On deployed kiosks (ENV="staging" or "prod"), env vars are injected by the
provisioning tooling, so no .env file is loaded.
"""

import os
import sys
from typing import Literal
from dotenv import load_dotenv

EnvironmentName = Literal["dev", "staging", "prod"]

# Required environment variables that must be set for the client to run.
# If any are missing, startup fails with a clear error message.
REQUIRED_ENV_VARS = [
    "BACKEND_URL",
    "BACKEND_ANON_KEY",
]


def validate_required_env_vars() -> None:
    """Validate that all required environment variables are set.

    Raises:
        SystemExit: If any required environment variables are missing.
    """
    missing = [var for var in REQUIRED_ENV_VARS if not os.getenv(var)]
    if missing:
        print(
            f"ERROR: Missing required environment variables: {', '.join(missing)}",
            file=sys.stderr,
        )
        print(
            "Please set these variables in your .env file or environment.",
            file=sys.stderr,
        )
        sys.exit(1)


def load_environment() -> EnvironmentName:
    """Load the .env file for the current environment, if there is one.

    Returns:
        The environment name that was loaded.
    """
    env = os.getenv("ENV", "dev")
    if env in ("staging", "prod"):
        return env  # type: ignore[return-value]
    if env == "dev":
        load_dotenv(".env.dev")
        return "dev"
    raise ValueError(f"Invalid ENV value: {env}. Must be 'dev', 'staging', or 'prod'.")


# Load env vars before any client code runs.
load_environment()


def get_current_environment() -> EnvironmentName:
    """Get the current environment (dev, staging, or prod)."""
    env = os.getenv("ENV", "dev")
    if env in ("dev", "staging", "prod"):
        return env  # type: ignore[return-value]
    raise ValueError(f"Invalid ENV value: {env}. Must be 'dev', 'staging', or 'prod'.")
