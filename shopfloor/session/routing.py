"""Page routing by role.

Each role has a single dashboard page. Deputy directors may also open the
director dashboard page (`sousdir` lists both roles).
"""

import logging
from enum import Enum
from typing import assert_never

from shopfloor.models import Profile, Role

logger = logging.getLogger(__name__)


class Page(str, Enum):
    INDEX = "index"
    LOGIN = "login"
    SETUP = "setup"
    RESET_PASSWORD = "reset-password"
    AGENT = "agent"
    CHEF = "chef"
    SUPERVISEUR = "superviseur"
    SOUSDIR = "sousdir"
    DIRECTEUR = "directeur"

    @property
    def path(self) -> str:
        return f"/{self.value}.html"


# Pages that never require an authenticated session.
PUBLIC_PAGES = frozenset({Page.LOGIN, Page.SETUP, Page.RESET_PASSWORD})

PAGE_ROLES: dict[Page, frozenset[Role]] = {
    Page.AGENT: frozenset({Role.AGENT}),
    Page.CHEF: frozenset({Role.TEAM_LEAD}),
    Page.SUPERVISEUR: frozenset({Role.SUPERVISOR}),
    Page.SOUSDIR: frozenset({Role.DEPUTY_DIRECTOR, Role.DIRECTOR}),
    Page.DIRECTEUR: frozenset({Role.DIRECTOR}),
}


def dashboard_page_for(role: Role) -> Page:
    match role:
        case Role.AGENT:
            return Page.AGENT
        case Role.TEAM_LEAD:
            return Page.CHEF
        case Role.SUPERVISOR:
            return Page.SUPERVISEUR
        case Role.DEPUTY_DIRECTOR:
            return Page.SOUSDIR
        case Role.DIRECTOR:
            return Page.DIRECTEUR
        case _:
            assert_never(role)


def landing_page(profile: Profile | None) -> Page:
    """Where a user lands after sign-in."""
    if profile is None:
        return Page.LOGIN
    if profile.needs_setup:
        return Page.SETUP
    role = profile.parsed_role
    if role is None:
        logger.error(f"Unknown role: {profile.role}")
        return Page.LOGIN
    return dashboard_page_for(role)


def guard_page(page: Page, profile: Profile | None) -> Page | None:
    """Check whether the current user may view `page`.

    Returns:
        None if access is allowed, otherwise the page to redirect to.
    """
    if page in PUBLIC_PAGES:
        return None
    if profile is None:
        return Page.LOGIN
    if profile.needs_setup:
        return Page.SETUP
    if page is Page.INDEX:
        return None
    role = profile.parsed_role
    if role is not None and role in PAGE_ROLES.get(page, frozenset()):
        return None
    return landing_page(profile)


class Navigator:
    """Tracks the current page and the per-tab scratch state.

    `scratch` is cleared on logout; it holds the page to return to after the
    next sign-in.
    """

    RETURN_TO_KEY = "returnTo"

    def __init__(self, current_page: Page = Page.INDEX, query: str = ""):
        self.current_page = current_page
        self.query = query
        self.scratch: dict[str, str] = {}
        self.history: list[Page] = []

    @property
    def current_path(self) -> str:
        return f"{self.current_page.path}{self.query}"

    def go_to(self, page: Page, query: str = "") -> None:
        logger.debug(f"Navigating from {self.current_path} to {page.path}{query}")
        self.history.append(self.current_page)
        self.current_page = page
        self.query = query

    def redirect_to_login(self) -> None:
        if self.current_page is Page.LOGIN:
            return
        self.scratch[self.RETURN_TO_KEY] = self.current_path
        self.go_to(Page.LOGIN)

    def redirect_to_dashboard(self, profile: Profile | None) -> None:
        page = landing_page(profile)
        if page is Page.LOGIN:
            self.redirect_to_login()
        else:
            self.go_to(page)

    def pop_return_to(self) -> str | None:
        return self.scratch.pop(self.RETURN_TO_KEY, None)

    def clear_scratch(self) -> None:
        self.scratch.clear()
