"""View models rendered by the role dashboards."""

from __future__ import annotations
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from shopfloor.models import Profile

DEFAULT_USER_NAME = "Utilisateur"
DEFAULT_NOTIFICATION_ICON = "bell"

NOTIFICATION_ICONS = {
    "info": "info-circle",
    "success": "check-circle",
    "warning": "exclamation-triangle",
    "danger": "exclamation-circle",
    "production": "industry",
    "quality": "clipboard-check",
    "maintenance": "tools",
    "shift": "clock",
}


def notification_icon(notification_type: str | None) -> str:
    return NOTIFICATION_ICONS.get(notification_type or "", DEFAULT_NOTIFICATION_ICON)


class ChartHandle(Protocol):
    """A rendered chart that can be updated in place."""

    data: Any

    def update(self) -> None: ...

    def destroy(self) -> None: ...


class ToastKind(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Toast(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    kind: ToastKind = ToastKind.INFO


class UserHeader(BaseModel):
    name: str
    role: str
    role_badge_class: str
    department: str | None = None
    shift: str | None = None

    @classmethod
    def from_profile(cls, profile: Profile) -> UserHeader:
        return cls(
            name=profile.full_name or DEFAULT_USER_NAME,
            role=profile.role,
            role_badge_class="role-badge " + "-".join(profile.role.lower().split()),
            department=profile.department,
            shift=profile.shift,
        )


class StatsView(BaseModel):
    """Formatted stat widgets. Sections absent from the payload stay None."""

    production_today: int | float | None = None
    production_target_label: str | None = None
    production_progress: float | None = None
    quality_rate_label: str | None = None
    quality_trend_label: str | None = None
    quality_trend_positive: bool | None = None
    efficiency_rate_label: str | None = None
    productive_time: str | None = None
    ranking_label: str | None = None
    ranking_total: int | None = None

    @classmethod
    def from_payload(cls, stats: dict[str, Any]) -> StatsView:
        view = cls()

        production = stats.get("production")
        if production:
            today = production.get("today") or 0
            target = production.get("target") or 0
            view.production_today = today
            view.production_target_label = f"Objectif: {target}"
            if today and target:
                view.production_progress = min(today / target * 100, 100)

        quality = stats.get("quality")
        if quality:
            view.quality_rate_label = f"{quality.get('rate') or 0}%"
            trend = quality.get("trend")
            if trend:
                view.quality_trend_label = f"{'+' if trend > 0 else ''}{trend}%"
                view.quality_trend_positive = trend >= 0

        efficiency = stats.get("efficiency")
        if efficiency:
            view.efficiency_rate_label = f"{efficiency.get('rate') or 0}%"
            view.productive_time = efficiency.get("productive_time") or None

        ranking = stats.get("ranking")
        if ranking:
            view.ranking_label = f"#{ranking.get('position') or 0}"
            view.ranking_total = ranking.get("total") or 0

        return view


PRODUCTION_STATUSES = {
    "completed": ("Terminé", "status-success"),
    "in_progress": ("En cours", "status-warning"),
    "defect": ("Défaut", "status-danger"),
}
PLANNED_STATUS = ("Planifié", "status-info")


class ProductionRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | int | None = None
    time: str | None = None
    reference: str | None = None
    quantity: int | float | None = None
    cycle_time: str | int | float | None = None
    status: str | None = None

    @property
    def status_label(self) -> str:
        return PRODUCTION_STATUSES.get(self.status or "", PLANNED_STATUS)[0]

    @property
    def status_class(self) -> str:
        return PRODUCTION_STATUSES.get(self.status or "", PLANNED_STATUS)[1]


class NotificationItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | int | None = None
    title: str = ""
    message: str = ""
    type: str = "info"
    read: bool = False
    time: str | None = None

    @property
    def icon(self) -> str:
        return notification_icon(self.type)


class NotificationsView(BaseModel):
    items: list[NotificationItem] = Field(default_factory=list)

    @property
    def unread_count(self) -> int:
        return sum(1 for item in self.items if not item.read)

    @property
    def badge_visible(self) -> bool:
        return self.unread_count > 0


class DashboardView(BaseModel):
    """Everything a dashboard page shows, rebuilt on every refresh."""

    header: UserHeader | None = None
    stats: StatsView | None = None
    production_history: list[ProductionRow] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)
    issues: list[dict[str, Any]] = Field(default_factory=list)
    quality_checks: list[dict[str, Any]] = Field(default_factory=list)
    notifications: NotificationsView = Field(default_factory=NotificationsView)
    is_clocked_in: bool = False

    @property
    def clock_status_label(self) -> str:
        return "En production" if self.is_clocked_in else "Hors production"
