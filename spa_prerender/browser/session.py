"""Headless browser session used to capture rendered routes."""
from __future__ import annotations

from dataclasses import dataclass, field

import psutil
import structlog
from playwright.sync_api import Browser, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from spa_prerender.config.settings import settings
from spa_prerender.errors import NavigationFailure, NavigationTimeout

logger = structlog.get_logger()


@dataclass
class BrowserSession:
    """One browser process and the single page reused for every route."""

    playwright: Playwright
    browser: Browser
    page: Page
    pids: tuple[int, ...] = field(default_factory=tuple)
    closed: bool = False


class RenderSession:
    """Opens, drives and closes the headless browser."""

    def __init__(
        self,
        headless: bool | None = None,
        launch_args: list[str] | None = None,
        timeout_ms: int | None = None,
    ):
        self.headless = settings.playwright.headless if headless is None else headless
        self.launch_args = launch_args if launch_args is not None else list(settings.playwright.launch_args)
        self.timeout_ms = timeout_ms or settings.playwright.navigation_timeout
        self.session: BrowserSession | None = None
        self._log = logger.bind(component="render_session")

    def open(self) -> BrowserSession:
        """Launch the browser and open the page."""
        before = _descendant_pids()
        playwright = sync_playwright().start()
        try:
            browser = playwright.chromium.launch(headless=self.headless, args=self.launch_args)
            page = browser.new_page()
        except Exception:
            playwright.stop()
            raise

        # Driver and browser processes spawned by this launch.
        pids = tuple(sorted(_descendant_pids() - before))
        self.session = BrowserSession(playwright=playwright, browser=browser, page=page, pids=pids)
        self._log.info("browser_launched", pids=list(pids), headless=self.headless)
        return self.session

    def render(self, session: BrowserSession, url: str, timeout_ms: int | None = None) -> str:
        """Navigate to url, wait for network idle and return the serialized DOM.

        Raises:
            NavigationTimeout: If network idle is not reached within timeout_ms.
            NavigationFailure: For any other navigation or serialization error.
        """
        timeout = timeout_ms or self.timeout_ms
        try:
            response = session.page.goto(url, wait_until="networkidle", timeout=timeout)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeout(url, timeout) from exc
        except PlaywrightError as exc:
            raise NavigationFailure(url, exc.message) from exc

        if response is not None and not response.ok:
            self._log.warning("route_status_not_ok", url=url, status=response.status)

        try:
            return session.page.content()
        except PlaywrightError as exc:
            raise NavigationFailure(url, exc.message) from exc

    def close(self, session: BrowserSession | None = None, force: bool = False) -> None:
        """Close the browser once.

        The graceful path closes through Playwright. ``force`` kills the
        recorded process tree directly and leaves the Playwright connection
        alone, for use from a signal handler.
        """
        session = session or self.session
        if session is None or session.closed:
            return
        session.closed = True

        if force:
            _kill_pids(session.pids)
            self._log.info("browser_killed", pids=list(session.pids))
            return

        try:
            session.browser.close()
        except PlaywrightError as e:
            self._log.warning("browser_close_failed", error=str(e))
        try:
            session.playwright.stop()
        except PlaywrightError as e:
            self._log.warning("playwright_stop_failed", error=str(e))
        self._log.info("browser_closed")


def _descendant_pids() -> set[int]:
    return {proc.pid for proc in psutil.Process().children(recursive=True)}


def _kill_pids(pids: tuple[int, ...]) -> None:
    for pid in pids:
        try:
            psutil.Process(pid).kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
