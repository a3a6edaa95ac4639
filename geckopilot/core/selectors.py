"""Selector candidates for the Geckoboard UI, most specific first.

The hashed class names (``name---_8bc6``) come from the application's CSS
modules and change between releases; every list ends with structural or
text-based fallbacks.
"""

from __future__ import annotations

import re

from geckopilot.core.contracts import SelectorCandidates


def quote(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _exact_text(text: str) -> str:
    return f"text=/^\\s*{re.escape(text)}\\s*$/i"


LOGIN_EMAIL = SelectorCandidates(
    "login email field",
    ('input[type="email"]', 'input[name="email"]', "#email"),
)

LOGIN_PASSWORD = SelectorCandidates(
    "login password field",
    ('input[type="password"]', 'input[name="password"]', "#password"),
)

LOGIN_SUBMIT = SelectorCandidates(
    "login button",
    ('button[type="submit"]', 'input[type="submit"]', ".login-button", '[data-testid="login-button"]'),
)

DASHBOARD_NAMES = SelectorCandidates(
    "sidebar dashboard names",
    (
        "a.sidebarListLink---e8cba span.name---_8bc6",
        "span.name---_8bc6",
        'nav a[href*="/dashboards/"] span[class^="name"]',
    ),
)

ACTIVE_DASHBOARD_NAME = SelectorCandidates(
    "active dashboard name",
    (
        "a.sidebarListLink---e8cba.active span.name---_8bc6",
        'a.active span[class^="name"]',
        'a[aria-current="page"] span[class^="name"]',
    ),
)

NEW_DASHBOARD = SelectorCandidates(
    "new dashboard button",
    (
        'button:has-text("New dashboard")',
        'a:has-text("Create Dashboard")',
        '[data-testid="create-dashboard"]',
        'button:has-text("Add Dashboard")',
    ),
)

CONTEXT_MENU_BUTTON = SelectorCandidates(
    "dashboard context menu button",
    (
        "button.openContextMenuButton---_8f4e",
        'button[aria-label*="menu" i]',
        'button[aria-label*="options" i]',
        '[data-testid*="menu"]',
        "button.more-options",
    ),
)

MENU_RENAME = SelectorCandidates(
    "rename menu item",
    (
        'span.menuItemLabel---f5516:text-is("Rename")',
        'role=menuitem[name="Rename"]',
        'button:text-is("Rename")',
        'a:text-is("Rename")',
        '[data-testid*="rename"]',
    ),
)

MENU_DELETE = SelectorCandidates(
    "delete menu item",
    (
        'span.menuItemLabel---f5516:text-is("Delete")',
        'role=menuitem[name="Delete"]',
        '[data-testid*="delete"]',
    ),
)

CONFIRM_DELETE = SelectorCandidates(
    "delete confirmation button",
    (
        '[role="dialog"] button:has-text("Delete")',
        '[role="alertdialog"] button:has-text("Delete")',
        'button:text-is("Delete")',
    ),
)

TITLE_FIELD = SelectorCandidates(
    "editable dashboard title",
    (
        "a.sidebarListLink---e8cba.active input",
        'input[value*="Dashboard"]',
        'input[placeholder*="dashboard" i]',
        '[contenteditable="true"]',
        'input[type="text"]',
        "textarea",
    ),
)

ADD_WIDGET = SelectorCandidates(
    "add widget button",
    (
        'button:has-text("Add widget")',
        ".add-widget",
        '[data-testid="add-widget"]',
    ),
)

ADD_FILTER = SelectorCandidates(
    "add filter button",
    (
        'button:has-text("Add filter")',
        ".add-filter",
        '[data-testid*="filter"] button',
        'button:text-is("+")',
    ),
)


def dashboard_link(name: str) -> SelectorCandidates:
    safe = quote(name)
    return SelectorCandidates(
        f"sidebar link for {name!r}",
        (
            f'a.sidebarListLink---e8cba:has(span.name---_8bc6:text-is("{safe}"))',
            f'a:has(span[class^="name"]:text-is("{safe}"))',
            f'a[href*="/dashboards/"]:text-is("{safe}")',
        ),
    )


def context_menu_button(name: str, allow_unscoped: bool = False) -> SelectorCandidates:
    """Context menu button belonging to one sidebar entry.

    Unscoped fallbacks rely on the active-container rule, so they are only
    offered when the entry is the active dashboard.
    """
    safe = quote(name)
    selectors = [
        f'a.sidebarListLink---e8cba:has(span.name---_8bc6:text-is("{safe}")) button.openContextMenuButton---_8f4e',
        f'li:has(span.name---_8bc6:text-is("{safe}")) button.openContextMenuButton---_8f4e',
        f'li:has(a:text-is("{safe}")) button[aria-label*="menu" i]',
    ]
    if allow_unscoped:
        selectors.extend(CONTEXT_MENU_BUTTON.selectors)
    return SelectorCandidates(f"context menu for {name!r}", tuple(selectors))


def widget_source(service_name: str, label: str) -> SelectorCandidates:
    safe = quote(label)
    return SelectorCandidates(
        f"{label} integration",
        (
            f'a[data-service-name="{service_name}"]',
            f'a[href*="{service_name}"]',
            f'a:has-text("{safe}")',
            f'button:has-text("{safe}")',
        ),
    )


def widget_metric(label: str) -> SelectorCandidates:
    safe = quote(label)
    return SelectorCandidates(
        f"{label} metric",
        (
            f'span.title---_3e44:text-is("{safe}")',
            f'button:has-text("{safe}")',
            f'a:has-text("{safe}")',
            _exact_text(label),
        ),
    )


def option(label: str) -> SelectorCandidates:
    safe = quote(label)
    return SelectorCandidates(
        f"{label} option",
        (
            f'[role="option"]:text-is("{safe}")',
            f'button:text-is("{safe}")',
            f'option:text-is("{safe}")',
            _exact_text(label),
        ),
    )
