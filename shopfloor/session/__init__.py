from .events import EventRegistry, SessionEvent
from .manager import NotAuthenticatedError, SessionManager, SessionState
from .permissions import can_manage_department, can_manage_user, has_permission
from .routing import Navigator, Page, dashboard_page_for, guard_page, landing_page
from .error_messages import AuthFailure, auth_error_message

__all__ = [
    "EventRegistry",
    "SessionEvent",
    "NotAuthenticatedError",
    "SessionManager",
    "SessionState",
    "can_manage_department",
    "can_manage_user",
    "has_permission",
    "Navigator",
    "Page",
    "dashboard_page_for",
    "guard_page",
    "landing_page",
    "AuthFailure",
    "auth_error_message",
]
