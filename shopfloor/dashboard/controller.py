"""Presentation controller for the role dashboards.

Holds the dashboard view model, fetches it from the role's edge function,
polls while the page is visible and runs the dashboard actions.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, assert_never

from shopfloor.backend import BackendError, Functions
from shopfloor.config.settings import DEFAULT_DASHBOARD_REFRESH_INTERVAL
from shopfloor.models import Profile, RemoteResponse, Role
from shopfloor.session.events import SessionEvent
from shopfloor.session.manager import SessionManager
from .widgets import (
    ChartHandle,
    DashboardView,
    NotificationItem,
    NotificationsView,
    ProductionRow,
    StatsView,
    Toast,
    ToastKind,
    UserHeader,
)

logger = logging.getLogger(__name__)

INIT_ERROR = "Erreur d'initialisation du tableau de bord"
REFRESH_SUCCESS = "Données actualisées"
REFRESH_ERROR = "Erreur lors de l'actualisation"
CLOCK_IN_SUCCESS = "Pointage d'entrée enregistré"
CLOCK_OUT_SUCCESS = "Pointage de sortie enregistré"
CLOCK_ERROR = "Erreur lors du pointage"
ISSUE_SUCCESS = "Problème signalé avec succès"
ISSUE_ERROR = "Erreur lors du signalement"
PRODUCTION_SUCCESS = "Production démarrée"
PRODUCTION_ERROR = "Erreur lors du démarrage"


class Tab(str, Enum):
    OVERVIEW = "overview"
    PRODUCTION = "production"
    QUALITY = "quality"
    TASKS = "tasks"
    REPORTS = "reports"


def dashboard_request(profile: Profile) -> tuple[str, dict[str, Any]]:
    """The edge function and payload that load `profile`'s dashboard.

    Raises:
        ValueError: If the profile's role is unknown.
    """
    role = profile.parsed_role
    if role is None:
        raise ValueError(f"Unknown role: {profile.role}")
    match role:
        case Role.AGENT:
            return "get-agent-dashboard", {"agent_id": profile.id}
        case Role.TEAM_LEAD:
            return "get-chef-dashboard", {"chef_id": profile.id}
        case Role.SUPERVISOR:
            return "get-supervisor-dashboard", {"supervisor_id": profile.id}
        case Role.DEPUTY_DIRECTOR | Role.DIRECTOR:
            return "get-director-dashboard", {"director_id": profile.id}
        case _:
            assert_never(role)


def tab_request(tab: Tab, profile: Profile) -> tuple[str, dict[str, Any]] | None:
    match tab:
        case Tab.PRODUCTION:
            return "get-production-data", {"user_id": profile.id, "period": "today"}
        case Tab.QUALITY:
            return "get-quality-data", {"user_id": profile.id}
        case Tab.TASKS:
            return "get-tasks", {"user_id": profile.id}
        case Tab.REPORTS:
            return "get-reports", {"user_id": profile.id}
        case Tab.OVERVIEW:
            return None
        case _:
            assert_never(tab)


class DashboardController:
    def __init__(
        self,
        session: SessionManager,
        functions: Functions,
        refresh_interval: float = DEFAULT_DASHBOARD_REFRESH_INTERVAL,
        on_toast: Callable[[Toast], None] | None = None,
    ):
        self.session = session
        self.functions = functions
        self.refresh_interval = refresh_interval
        self.on_toast = on_toast

        self.view = DashboardView()
        self.charts: dict[str, ChartHandle] = {}
        self.toasts: list[Toast] = []
        self.current_tab = Tab.OVERVIEW
        self.visible = True
        self.is_initialized = False
        self._poll_task: asyncio.Task | None = None

    @property
    def profile(self) -> Profile:
        profile = self.session.profile
        if profile is None:
            raise RuntimeError("User profile not found")
        return profile

    async def init(self) -> None:
        if self.is_initialized:
            return
        try:
            self.view.header = UserHeader.from_profile(self.profile)
            await self.load_dashboard_data()
        except (BackendError, RuntimeError, ValueError) as e:
            logger.error(f"Dashboard initialization error: {e}")
            self._toast(INIT_ERROR, ToastKind.ERROR)
            return

        self.session.add_listener(SessionEvent.PROFILE_UPDATED, self._on_profile_updated)
        self.start_auto_refresh()
        self.is_initialized = True

    def destroy(self) -> None:
        self.stop_auto_refresh()
        self.session.remove_listener(
            SessionEvent.PROFILE_UPDATED, self._on_profile_updated
        )
        for chart in self.charts.values():
            chart.destroy()
        self.charts.clear()
        self.is_initialized = False

    def _on_profile_updated(self, profile: Profile) -> None:
        self.view.header = UserHeader.from_profile(profile)

    # Data loading

    async def load_dashboard_data(self) -> None:
        """Fetch the role dashboard and apply it to the view.

        Raises:
            BackendError: If the edge function call fails.
        """
        name, payload = dashboard_request(self.profile)
        response = await self.functions.call(name, payload)
        if response.success and isinstance(response.data, dict):
            self.apply_dashboard(response.data)

    def apply_dashboard(self, data: dict[str, Any]) -> None:
        if data.get("stats"):
            self.view.stats = StatsView.from_payload(data["stats"])
        for name, chart_data in (data.get("charts") or {}).items():
            self.update_chart(name, chart_data)
        tables = data.get("tables") or {}
        if "production" in tables:
            self.view.production_history = [
                ProductionRow.model_validate(row) for row in tables["production"]
            ]
        if "tasks" in tables:
            self.view.tasks = list(tables["tasks"])
        if "issues" in tables:
            self.view.issues = list(tables["issues"])
        if "notifications" in data:
            self.view.notifications = NotificationsView(
                items=[NotificationItem.model_validate(n) for n in data["notifications"]]
            )

    def register_chart(self, name: str, chart: ChartHandle) -> None:
        self.charts[name] = chart

    def update_chart(self, name: str, data: Any) -> None:
        chart = self.charts.get(name)
        if chart is None:
            return
        chart.data = data
        chart.update()

    async def switch_tab(self, tab: Tab | str) -> None:
        tab = Tab(tab)
        if tab is self.current_tab:
            return
        self.current_tab = tab
        await self.load_tab_data(tab)

    async def load_tab_data(self, tab: Tab) -> None:
        request = tab_request(tab, self.profile)
        if request is None:
            return
        name, payload = request
        try:
            response = await self.functions.call(name, payload)
        except BackendError as e:
            logger.error(f"Error loading {tab.value} data: {e.message}")
            return
        if response.success and isinstance(response.data, dict):
            self.apply_tab(tab, response.data)

    def apply_tab(self, tab: Tab, data: dict[str, Any]) -> None:
        match tab:
            case Tab.PRODUCTION:
                if data.get("history"):
                    self.view.production_history = [
                        ProductionRow.model_validate(row) for row in data["history"]
                    ]
                if data.get("chart"):
                    self.update_chart("production-detail", data["chart"])
            case Tab.QUALITY:
                if data.get("checks"):
                    self.view.quality_checks = list(data["checks"])
                if data.get("chart"):
                    self.update_chart("quality-detail", data["chart"])
            case Tab.TASKS:
                if data.get("tasks"):
                    self.view.tasks = list(data["tasks"])
            case _:
                pass

    async def refresh_data(self) -> None:
        try:
            await self.load_dashboard_data()
        except (BackendError, RuntimeError, ValueError) as e:
            logger.error(f"Refresh error: {e}")
            self._toast(REFRESH_ERROR, ToastKind.ERROR)
            return
        self._toast(REFRESH_SUCCESS, ToastKind.SUCCESS)

    # Polling

    def start_auto_refresh(self) -> None:
        self.stop_auto_refresh()
        self._poll_task = asyncio.get_running_loop().create_task(self._poll())

    def stop_auto_refresh(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            if not self.visible:
                continue
            try:
                await self.load_dashboard_data()
            except (BackendError, RuntimeError, ValueError) as e:
                logger.warning(f"Dashboard poll failed: {e}")

    # Actions

    async def check_clock_status(self) -> bool:
        try:
            response = await self.functions.call(
                "get-clock-status", {"user_id": self.profile.id}
            )
        except BackendError as e:
            logger.error(f"Clock status check error: {e.message}")
            return False
        data = response.data if isinstance(response.data, dict) else {}
        return bool(data.get("is_clocked_in", False))

    async def clock_in_out(self, confirm_clock_out: Callable[[], bool] = lambda: True) -> None:
        """Clock in, or clock out after confirmation if already clocked in."""
        profile = self.profile
        try:
            if await self.check_clock_status():
                if not confirm_clock_out():
                    return
                self._require_success(
                    await self.functions.call(
                        "clock-in-out", {"action": "clock_out", "user_id": profile.id}
                    )
                )
                self.view.is_clocked_in = False
                self._toast(CLOCK_OUT_SUCCESS, ToastKind.SUCCESS)
            else:
                self._require_success(
                    await self.functions.call(
                        "clock-in-out",
                        {
                            "action": "clock_in",
                            "user_id": profile.id,
                            "shift": profile.shift,
                            "department": profile.department,
                        },
                    )
                )
                self.view.is_clocked_in = True
                self._toast(CLOCK_IN_SUCCESS, ToastKind.SUCCESS)
        except BackendError as e:
            logger.error(f"Clock in/out error: {e.message}")
            self._toast(CLOCK_ERROR, ToastKind.ERROR)

    async def report_issue(self, issue_type: str, description: str) -> None:
        if not issue_type or not description:
            return
        profile = self.profile
        try:
            self._require_success(
                await self.functions.call(
                    "report-issue",
                    {
                        "user_id": profile.id,
                        "type": issue_type,
                        "description": description,
                        "department": profile.department,
                        "production_line": profile.production_line,
                    },
                )
            )
        except BackendError as e:
            logger.error(f"Issue report error: {e.message}")
            self._toast(ISSUE_ERROR, ToastKind.ERROR)
            return
        self._toast(ISSUE_SUCCESS, ToastKind.SUCCESS)

    async def start_production(self, reference: str, quantity: int) -> None:
        """Start producing `quantity` units of `reference`, then refresh.

        Blank references and quantities below one are ignored.
        """
        if not reference or quantity < 1:
            return
        profile = self.profile
        try:
            self._require_success(
                await self.functions.call(
                    "start-production",
                    {
                        "user_id": profile.id,
                        "reference": reference,
                        "quantity": quantity,
                        "production_line": profile.production_line,
                    },
                )
            )
        except BackendError as e:
            logger.error(f"Start production error: {e.message}")
            self._toast(PRODUCTION_ERROR, ToastKind.ERROR)
            return
        self._toast(PRODUCTION_SUCCESS, ToastKind.SUCCESS)
        await self.refresh_data()

    async def logout(self) -> None:
        self.destroy()
        await self.session.logout()

    @staticmethod
    def _require_success(response: RemoteResponse) -> RemoteResponse:
        if not response.success:
            raise BackendError(response.message or "Edge function reported failure")
        return response

    def _toast(self, message: str, kind: ToastKind) -> None:
        toast = Toast(message=message, kind=kind)
        self.toasts.append(toast)
        if self.on_toast is not None:
            self.on_toast(toast)
