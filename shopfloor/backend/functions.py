"""Edge function invocation."""

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from shopfloor.models import RemoteResponse
from .client import BackendClient
from .errors import BackendError

logger = logging.getLogger(__name__)

FUNCTIONS_PATH = "/functions/v1"

# Edge functions deployed for the dashboard.
EDGE_FUNCTIONS = frozenset(
    {
        "create-user",
        "update-user",
        "assign-lines",
        "get-dashboard-data",
        "clock-in-out",
        "get-clock-status",
        "report-production",
        "report-issue",
        "start-production",
        "get-team-data",
        "get-supervisor-data",
        "get-director-data",
        "get-agent-dashboard",
        "get-chef-dashboard",
        "get-supervisor-dashboard",
        "get-director-dashboard",
        "get-production-data",
        "get-quality-data",
        "get-tasks",
        "get-reports",
    }
)


def function_path(name: str) -> str:
    return f"{FUNCTIONS_PATH}/{name}"


class Functions:
    """Client for edge functions.

    Every call is an authenticated POST with a JSON body, answered with a
    `{success, data?, message?}` envelope.
    """

    def __init__(self, client: BackendClient):
        self.client = client

    async def call(
        self, name: str, data: Mapping[str, Any] | None = None
    ) -> RemoteResponse:
        """Invoke an edge function.

        Raises:
            BackendError: On network failure, a non-2xx response (carrying the
                response's message or `HTTP <status>`), or a malformed envelope.
        """
        if name not in EDGE_FUNCTIONS:
            logger.warning(f"Calling unregistered edge function {name}")
        try:
            body = await self.client.request(
                "POST", function_path(name), json=dict(data or {})
            )
        except BackendError as e:
            logger.error(f"Edge function {name} error: {e.message}")
            raise
        try:
            return RemoteResponse.model_validate(body or {})
        except ValidationError as e:
            raise BackendError(f"Malformed response from edge function {name}") from e
