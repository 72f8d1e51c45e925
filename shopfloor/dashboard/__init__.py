from .controller import DashboardController, Tab, dashboard_request, tab_request
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
    notification_icon,
)

__all__ = [
    "DashboardController",
    "Tab",
    "dashboard_request",
    "tab_request",
    "ChartHandle",
    "DashboardView",
    "NotificationItem",
    "NotificationsView",
    "ProductionRow",
    "StatsView",
    "Toast",
    "ToastKind",
    "UserHeader",
    "notification_icon",
]
