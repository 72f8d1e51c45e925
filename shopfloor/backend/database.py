"""Table and RPC access through the backend's REST interface."""

import logging
from datetime import date, datetime, timezone
from typing import Any, Mapping

from shopfloor.models import Profile
from .client import BackendClient
from .errors import RecordNotFound

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"
RETURN_REPRESENTATION = "return=representation"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _today_utc() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _eq(value: Any) -> str:
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    if isinstance(value, (date, datetime)):
        return f"eq.{value.isoformat()}"
    return f"eq.{value}"


class Table:
    """Query helper for a single table.

    Filters are equality filters: `{"agent_id": "u1"}` becomes `agent_id=eq.u1`.
    Filters whose value is None are ignored.
    """

    def __init__(self, client: BackendClient, name: str):
        self.client = client
        self.name = name

    @property
    def path(self) -> str:
        return f"{REST_PATH}/{self.name}"

    @staticmethod
    def _params(
        filters: Mapping[str, Any] | None,
        columns: str | None = None,
        order: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> dict[str, str]:
        params: dict[str, str] = {}
        if columns is not None:
            params["select"] = columns
        for key, value in (filters or {}).items():
            if value is not None:
                params[key] = _eq(value)
        if order is not None:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return params

    async def select(
        self,
        filters: Mapping[str, Any] | None = None,
        columns: str = "*",
        order: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        rows = await self.client.request(
            "GET",
            self.path,
            params=self._params(filters, columns, order, ascending, limit),
        )
        return rows or []

    async def select_single(
        self, filters: Mapping[str, Any], columns: str = "*"
    ) -> dict[str, Any]:
        """Fetch exactly one row.

        Raises:
            RecordNotFound: If no row matches.
        """
        return await self.client.request(
            "GET",
            self.path,
            params=self._params(filters, columns),
            headers={"Accept": SINGLE_OBJECT},
        )

    async def maybe_single(
        self, filters: Mapping[str, Any], columns: str = "*"
    ) -> dict[str, Any] | None:
        """Fetch one row, or None if no row matches."""
        try:
            return await self.select_single(filters, columns)
        except RecordNotFound:
            return None

    async def insert(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return await self.client.request(
            "POST",
            self.path,
            params={"select": "*"},
            json=dict(row),
            headers={"Prefer": RETURN_REPRESENTATION, "Accept": SINGLE_OBJECT},
        )

    async def upsert(
        self, row: Mapping[str, Any], on_conflict: str | None = None
    ) -> dict[str, Any]:
        params = {"select": "*"}
        if on_conflict:
            params["on_conflict"] = on_conflict
        return await self.client.request(
            "POST",
            self.path,
            params=params,
            json=dict(row),
            headers={
                "Prefer": f"resolution=merge-duplicates,{RETURN_REPRESENTATION}",
                "Accept": SINGLE_OBJECT,
            },
        )

    async def update(
        self, values: Mapping[str, Any], filters: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Update the single row matching `filters` and return it.

        Raises:
            RecordNotFound: If no row matches.
        """
        return await self.client.request(
            "PATCH",
            self.path,
            params=self._params(filters, "*"),
            json=dict(values),
            headers={"Prefer": RETURN_REPRESENTATION, "Accept": SINGLE_OBJECT},
        )

    async def delete(self, filters: Mapping[str, Any]) -> None:
        if not filters:
            raise ValueError(f"Refusing to delete from {self.name} without filters")
        await self.client.request(
            "DELETE", self.path, params=self._params(filters)
        )


class Database:
    """Typed access to the tables and RPCs the dashboard uses."""

    def __init__(self, client: BackendClient):
        self.client = client

    def table(self, name: str) -> Table:
        return Table(self.client, name)

    async def rpc(self, name: str, params: Mapping[str, Any] | None = None) -> Any:
        """Call a database function by name."""
        return await self.client.request(
            "POST", f"{REST_PATH}/rpc/{name}", json=dict(params or {})
        )

    # Profiles

    async def get_profile(self, user_id: str) -> Profile:
        """Fetch a profile.

        Raises:
            RecordNotFound: If the user has no profile row yet.
        """
        row = await self.table("profiles").select_single({"id": user_id})
        return Profile.model_validate(row)

    async def create_profile(self, profile: Profile) -> Profile:
        row = await self.table("profiles").insert(profile.to_row())
        logger.info(f"Created profile for user id={profile.id}")
        return Profile.model_validate(row)

    async def update_profile(
        self, user_id: str, updates: Mapping[str, Any]
    ) -> Profile:
        row = await self.table("profiles").update(
            {**updates, "updated_at": _now_iso()}, {"id": user_id}
        )
        return Profile.model_validate(row)

    # Production data

    async def get_production_data(
        self, agent_id: str, day: date | str
    ) -> list[dict[str, Any]]:
        return await self.table("production_data").select(
            {"agent_id": agent_id, "date": day},
            order="created_at",
            ascending=False,
        )

    async def add_production_record(
        self, record: Mapping[str, Any]
    ) -> dict[str, Any]:
        return await self.table("production_data").insert(
            {**record, "created_at": _now_iso()}
        )

    # Attendance

    async def get_attendance(
        self, user_id: str, day: date | str
    ) -> dict[str, Any] | None:
        """Attendance for a day, or None if the user has not clocked in."""
        return await self.table("attendance").maybe_single(
            {"user_id": user_id, "date": day}
        )

    async def clock_in(
        self, user_id: str, data: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self.table("attendance").upsert(
            {
                "user_id": user_id,
                "date": _today_utc(),
                "clock_in": _now_iso(),
                **(data or {}),
            }
        )

    async def clock_out(self, user_id: str) -> dict[str, Any]:
        now = _now_iso()
        return await self.table("attendance").update(
            {"clock_out": now, "updated_at": now},
            {"user_id": user_id, "date": _today_utc()},
        )

    # Team management

    async def get_team_members(self, chef_id: str) -> list[dict[str, Any]]:
        return await self.table("team_assignments").select(
            {"chef_id": chef_id, "active": True},
            columns="agent:profiles(*),assignment_data",
        )

    async def assign_agent_to_team(
        self, chef_id: str, agent_id: str, data: Mapping[str, Any]
    ) -> dict[str, Any]:
        return await self.table("team_assignments").upsert(
            {
                "chef_id": chef_id,
                "agent_id": agent_id,
                "assignment_data": dict(data),
                "assigned_at": _now_iso(),
                "active": True,
            }
        )

    # Issues

    async def report_issue(self, issue: Mapping[str, Any]) -> dict[str, Any]:
        return await self.table("issues").insert(
            {**issue, "status": "open", "created_at": _now_iso()}
        )

    async def get_issues(
        self, filters: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        return await self.table("issues").select(
            filters, order="created_at", ascending=False
        )

    # Analytics

    async def get_department_stats(self, department: str, period: str = "today") -> Any:
        return await self.rpc(
            "get_department_stats", {"p_department": department, "p_period": period}
        )

    async def get_production_stats(self, params: Mapping[str, Any]) -> Any:
        return await self.rpc("get_production_stats", params)
