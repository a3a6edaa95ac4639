"""In-memory stand-ins for the browser driver used across the test suite."""

from __future__ import annotations

from typing import Callable, Optional

from geckopilot.core import selectors
from geckopilot.core.driver import ActionDriver, ElementHandle
from geckopilot.core.errors import DriverError

APP_URL = "https://app.geckoboard.com/"


class FakeElement(ElementHandle):
    def __init__(
        self,
        driver: "FakeDriver",
        selector: str,
        text: str = "",
        visible: bool = True,
        active: Optional[bool] = False,
        on_click: Callable[[], None] | None = None,
        on_hover: Callable[[], None] | None = None,
        on_fill: Callable[[str], None] | None = None,
        on_press: Callable[[str], None] | None = None,
        error: DriverError | None = None,
    ) -> None:
        self._driver = driver
        self.selector = selector
        self._text = text
        self._visible = visible
        self._active = active
        self._on_click = on_click
        self._on_hover = on_hover
        self._on_fill = on_fill
        self._on_press = on_press
        self._error = error

    def _act(self, action: str) -> None:
        self._driver.calls.append((action, self.selector))
        if self._error is not None:
            raise self._error

    async def click(self) -> None:
        self._act("click")
        if self._on_click:
            self._on_click()

    async def hover(self) -> None:
        self._act("hover")
        if self._on_hover:
            self._on_hover()

    async def fill(self, text: str) -> None:
        self._act("fill")
        if self._on_fill:
            self._on_fill(text)

    async def press(self, key: str) -> None:
        self._act("press")
        if self._on_press:
            self._on_press(key)

    async def text(self) -> str:
        self._driver.calls.append(("text", self.selector))
        return self._text

    async def is_visible(self) -> bool:
        return self._visible

    async def in_active_container(self) -> bool:
        if self._active is None:
            raise DriverError("active marker unreadable")
        return self._active


class FakeDriver(ActionDriver):
    """Driver whose page is a fixed selector -> elements table."""

    def __init__(self, elements: dict[str, list[FakeElement]] | None = None, url: str = APP_URL) -> None:
        self.elements: dict[str, list[FakeElement]] = dict(elements or {})
        self.calls: list[tuple[str, str]] = []
        self.url = url
        self.screenshots: list[str] = []
        self.fail_navigation = False
        self.closed = False

    def element(self, selector: str, **kwargs) -> FakeElement:
        return FakeElement(self, selector, **kwargs)

    def add(self, selector: str, count: int = 1, **kwargs) -> list[FakeElement]:
        handles = [self.element(selector, **kwargs) for _ in range(count)]
        self.elements.setdefault(selector, []).extend(handles)
        return handles

    def _match(self, selector: str) -> list[FakeElement]:
        return list(self.elements.get(selector, []))

    def queried(self) -> list[str]:
        return [selector for action, selector in self.calls if action in ("wait_for", "query_all")]

    async def navigate(self, url: str) -> None:
        self.calls.append(("navigate", url))
        if self.fail_navigation:
            raise DriverError(f"navigate {url} failed: net::ERR_CONNECTION_REFUSED")
        self.url = url

    async def query(self, selector: str) -> Optional[ElementHandle]:
        self.calls.append(("query", selector))
        matches = self._match(selector)
        return matches[0] if matches else None

    async def query_all(self, selector: str) -> list[ElementHandle]:
        self.calls.append(("query_all", selector))
        return list(self._match(selector))

    async def wait_for(self, selector: str, timeout_ms: int, state: str = "attached") -> None:
        self.calls.append(("wait_for", selector))
        if not self._match(selector):
            raise DriverError(f"wait_for {selector} timed out after {timeout_ms}ms", timeout=True)

    async def settle(self, timeout_ms: int) -> None:
        self.calls.append(("settle", ""))

    async def screenshot(self, path: str) -> None:
        self.calls.append(("screenshot", path))
        self.screenshots.append(path)

    async def current_url(self) -> str:
        return self.url

    async def close(self) -> None:
        self.closed = True


class FakeGeckoboard(FakeDriver):
    """A tiny model of the Geckoboard sidebar, dashboard menus and widget panel.

    Only the first (most specific) candidate of each selector group is
    rendered, so fallbacks are exercised by the resolver tests instead.
    """

    def __init__(
        self,
        dashboards: tuple[str, ...] | list[str] = (),
        active: str | None = None,
        logged_in: bool = True,
        email: str = "pilot@example.com",
        password: str = "secret",
        url: str = APP_URL,
        show_active_marker: bool = True,
    ) -> None:
        super().__init__(url=url)
        self.dashboards = list(dashboards)
        self.active = active
        self.logged_in = logged_in
        self.show_active_marker = show_active_marker
        self._credentials = (email, password)
        self._typed_email = ""
        self._typed_password = ""
        self._counter = len(self.dashboards)
        self.hovered: str | None = None
        self.menu_for: str | None = None
        self.renaming: str | None = None
        self.pending_delete: str | None = None
        self._title_buffer = ""
        self.widget_panel_open = False
        self.widget_source: str | None = None
        self.widget_metric: str | None = None
        self.widget_options: list[str] = []
        self.filter_open = False

    # -- state changes ---------------------------------------------------

    def _submit_login(self) -> None:
        if (self._typed_email, self._typed_password) == self._credentials:
            self.logged_in = True
            self.url = APP_URL

    def _new_dashboard(self) -> None:
        self._counter += 1
        name = f"Dashboard {self._counter}"
        while name in self.dashboards:
            self._counter += 1
            name = f"Dashboard {self._counter}"
        self.dashboards.append(name)
        self.active = name
        self.url = f"{APP_URL}edit/dashboards/{1000 + self._counter}"

    def _open(self, name: str) -> None:
        self.active = name
        self.url = f"{APP_URL}edit/dashboards/{1000 + self.dashboards.index(name)}"

    def _choose_rename(self) -> None:
        self.renaming, self.menu_for = self.menu_for, None

    def _choose_delete(self) -> None:
        self.pending_delete, self.menu_for = self.menu_for, None

    def _type_title(self, text: str) -> None:
        self._title_buffer = text

    def _commit_title(self, key: str) -> None:
        if key != "Enter" or self.renaming is None:
            return
        index = self.dashboards.index(self.renaming)
        self.dashboards[index] = self._title_buffer
        if self.active == self.renaming:
            self.active = self._title_buffer
        self.renaming = None

    def _confirm_delete(self) -> None:
        name, self.pending_delete = self.pending_delete, None
        self.dashboards.remove(name)
        if self.active == name:
            self.active = None

    def _pick_source(self, label: str) -> None:
        self.widget_source = label
        self.widget_panel_open = False

    def _pick_option(self, label: str) -> None:
        self.widget_options.append(label)
        self.filter_open = False

    # -- rendering -------------------------------------------------------

    def _active_flag(self, name: str) -> Optional[bool]:
        if not self.show_active_marker:
            return None
        return name == self.active

    def _match(self, selector: str) -> list[FakeElement]:
        explicit = super()._match(selector)
        if explicit:
            return explicit

        if not self.logged_in:
            if selector == selectors.LOGIN_EMAIL.selectors[0]:
                return [self.element(selector, on_fill=lambda text: setattr(self, "_typed_email", text))]
            if selector == selectors.LOGIN_PASSWORD.selectors[0]:
                return [self.element(selector, on_fill=lambda text: setattr(self, "_typed_password", text))]
            if selector == selectors.LOGIN_SUBMIT.selectors[0]:
                return [self.element(selector, on_click=self._submit_login)]
            return []

        if selector == selectors.DASHBOARD_NAMES.selectors[0]:
            return [self.element(selector, text=name, active=self._active_flag(name)) for name in self.dashboards]
        if selector == selectors.ACTIVE_DASHBOARD_NAME.selectors[0]:
            if self.show_active_marker and self.active:
                return [self.element(selector, text=self.active, active=True)]
            return []
        if selector == selectors.NEW_DASHBOARD.selectors[0]:
            return [self.element(selector, on_click=self._new_dashboard)]

        for name in self.dashboards:
            if selector == selectors.dashboard_link(name).selectors[0]:
                return [
                    self.element(
                        selector,
                        text=name,
                        active=self._active_flag(name),
                        on_click=lambda name=name: self._open(name),
                        on_hover=lambda name=name: setattr(self, "hovered", name),
                    )
                ]
            if selector == selectors.context_menu_button(name).selectors[0] and self.hovered == name:
                return [self.element(selector, on_click=lambda name=name: setattr(self, "menu_for", name))]

        if self.menu_for is not None:
            if selector == selectors.MENU_RENAME.selectors[0]:
                return [self.element(selector, on_click=self._choose_rename)]
            if selector == selectors.MENU_DELETE.selectors[0]:
                return [self.element(selector, on_click=self._choose_delete)]
        if self.renaming is not None and selector == selectors.TITLE_FIELD.selectors[0]:
            return [self.element(selector, on_fill=self._type_title, on_press=self._commit_title)]
        if self.pending_delete is not None and selector == selectors.CONFIRM_DELETE.selectors[0]:
            return [self.element(selector, on_click=self._confirm_delete)]

        if "/edit/dashboards/" in self.url:
            return self._match_widget_panel(selector)
        return []

    def _match_widget_panel(self, selector: str) -> list[FakeElement]:
        if selector == selectors.ADD_WIDGET.selectors[0]:
            return [self.element(selector, on_click=lambda: setattr(self, "widget_panel_open", True))]
        if self.widget_panel_open:
            source = selectors.widget_source("zendesk3", "Zendesk Support").selectors[0]
            if selector == source:
                return [self.element(selector, on_click=lambda: self._pick_source("Zendesk Support"))]
            return []
        if self.widget_source is None:
            return []
        metric = selectors.widget_metric("First reply time").selectors[0]
        if selector == metric:
            return [self.element(selector, on_click=lambda: setattr(self, "widget_metric", "First reply time"))]
        if self.widget_metric is None:
            return []
        if selector == selectors.option("Today").selectors[0]:
            return [self.element(selector, on_click=lambda: self._pick_option("Today"))]
        if selector == selectors.ADD_FILTER.selectors[0]:
            return [self.element(selector, on_click=lambda: setattr(self, "filter_open", True))]
        if self.filter_open and selector == selectors.option("Solved").selectors[0]:
            return [self.element(selector, on_click=lambda: self._pick_option("Solved"))]
        return []
