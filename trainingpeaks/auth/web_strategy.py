"""
Web Browser Authentication Strategy
===================================
Playwright-based login for TrainingPeaks.

The platform exposes no stable token-issuance API for end users, so this
strategy drives the real login form and passively intercepts the network
responses that carry the access token and the user id.

Flow (one fresh browser per call):
    1. Launch     — browser is closed on every exit path
    2. Navigate   — open the login page (navigation timeout, fatal)
    3. Consent    — best-effort cookie banner dismissal
    4. Fill       — username / password (step timeout, fatal)
    5. Submit     — click, wait for network idle, probe the error banner
    6. Redirect   — wait for the app URL; the authoritative success signal
    7. Intercept  — runs concurrently with 2–6 (listener registered first)
    8. Assemble   — both token and user id must have been captured

Interception is modelled as two tasks: the login sequence, and a watcher
draining a queue of matching responses.  The watcher's result is read
only after the login sequence has finished and the watcher was joined;
the join is bounded by the step timeout, after which whatever was
captured so far is final.

Security:
    - Credentials and tokens are never logged.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Optional

from playwright.async_api import Browser, Page, Response, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from ..config import AuthenticationConfig, SDKConfig, WebAuthConfig
from ..errors import (
    NETWORK_TIMEOUT,
    AuthenticationError,
    InvalidCredentialsError,
    NetworkError,
    SDKError,
)
from .base_strategy import BaseAuthStrategy
from .models import AuthToken, Credentials, Session, User, create_auth_token
from .user_agent import generate_user_agent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Intercepted endpoints
# ---------------------------------------------------------------------------

TOKEN_RESPONSE_PATH = "/users/v3/token"
USER_RESPONSE_PATH = "/users/v3/user"


# ---------------------------------------------------------------------------
# Login form selectors (brittle by nature — kept in one place)
# ---------------------------------------------------------------------------

_CONSENT_SELECTOR = "#onetrust-accept-btn-handler"
_USERNAME_SELECTOR = '[data-cy="username"]'
_PASSWORD_SELECTOR = '[data-cy="password"]'
_SUBMIT_SELECTOR = "#btnSubmit"
_ERROR_SELECTOR = (
    '[data-cy="invalid_credentials_message"], .error-message, .alert-danger'
)

_LOGIN_FINISHED = object()


@dataclass
class InterceptedAuthData:
    """Artifacts captured from network traffic during one login."""
    token: Optional[AuthToken] = None
    user_id: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.token is not None and bool(self.user_id)


BrowserLauncher = Callable[[WebAuthConfig], AsyncContextManager[Browser]]


def make_chromium_launcher(launch_timeout_ms: int) -> BrowserLauncher:
    """Default launcher: a Chromium instance inside its own Playwright driver."""

    @asynccontextmanager
    async def _launch(web_auth: WebAuthConfig) -> AsyncIterator[Browser]:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(
                headless=web_auth.headless,
                executable_path=web_auth.executable_path or None,
                timeout=launch_timeout_ms,
            )
            yield browser

    return _launch


class WebBrowserAuthStrategy(BaseAuthStrategy):
    """Logs in through the web UI and intercepts the token responses."""

    supports_refresh = False

    def __init__(
        self,
        sdk_config: Optional[SDKConfig] = None,
        browser_launcher: Optional[BrowserLauncher] = None,
    ):
        self.sdk_config = sdk_config or SDKConfig()
        self._launch_browser = browser_launcher or make_chromium_launcher(
            self.sdk_config.browser.launch_timeout
        )

    @property
    def name(self) -> str:
        return "web"

    def can_handle(self, config: AuthenticationConfig) -> bool:
        return config.web_auth is not None

    # ── Public API ────────────────────────────────────────────────

    async def authenticate(
        self, credentials: Credentials, config: AuthenticationConfig
    ) -> Session:
        if config.web_auth is None:
            raise AuthenticationError(
                "Web authentication requires a web_auth configuration block"
            )

        try:
            async with self._launch_browser(config.web_auth) as browser:
                logger.info("[BROWSER] Browser launched")
                try:
                    page = await self._setup_page(browser, config)
                    intercepted = await self._perform_login(page, credentials, config)
                finally:
                    await browser.close()
                    logger.info("[BROWSER] Browser closed")
        except SDKError:
            raise
        except PlaywrightError as exc:
            raise AuthenticationError(
                f"Web authentication failed: {exc.message}", original_error=exc
            ) from exc

        if not intercepted.is_complete:
            raise AuthenticationError(
                "Failed to retrieve authentication data from login flow",
                context={
                    "token_captured": intercepted.token is not None,
                    "user_id_captured": bool(intercepted.user_id),
                },
            )

        # The login UI does not expose a display name
        user = User(
            id=intercepted.user_id,
            name=credentials.username,
            username=credentials.username,
        )
        logger.info(f"[AUTH] ✅ Web login succeeded for user id {user.id}")
        return Session(token=intercepted.token, user=user)

    # The platform offers no non-interactive refresh; the base class raises
    # UnsupportedOperationError so callers can fall back to the API strategy.

    # ── Browser setup ─────────────────────────────────────────────

    async def _setup_page(self, browser: Browser, config: AuthenticationConfig) -> Page:
        context = await browser.new_context(user_agent=generate_user_agent())
        page = await context.new_page()

        if config.debug:
            page.on(
                "console",
                lambda msg: logger.debug(f"[BROWSER] console: {msg.text}"),
            )
        return page

    # ── Login orchestration ───────────────────────────────────────

    async def _perform_login(
        self, page: Page, credentials: Credentials, config: AuthenticationConfig
    ) -> InterceptedAuthData:
        queue: "asyncio.Queue[Any]" = asyncio.Queue()
        intercepted = InterceptedAuthData()

        def _on_response(response: Response) -> None:
            url = response.url
            if TOKEN_RESPONSE_PATH in url or USER_RESPONSE_PATH in url:
                queue.put_nowait(response)

        # Registered before navigation so no response is missed
        page.on("response", _on_response)
        watcher = asyncio.create_task(
            self._watch_responses(queue, intercepted, config)
        )

        try:
            await self._run_login_steps(page, credentials, config)
        except BaseException:
            watcher.cancel()
            try:
                await watcher
            except asyncio.CancelledError:
                pass
            raise

        queue.put_nowait(_LOGIN_FINISHED)
        # A response body that never arrives must not outlive the step timeout
        try:
            await asyncio.wait_for(watcher, timeout=config.web_auth.timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning("[AUTH] Timed out processing intercepted responses")
        return intercepted

    async def _run_login_steps(
        self, page: Page, credentials: Credentials, config: AuthenticationConfig
    ) -> None:
        step_timeout = config.web_auth.timeout_ms

        await self._navigate(page, step_timeout)
        await self._dismiss_consent(page)
        await self._fill_credentials(page, credentials, step_timeout)
        await self._submit(page, step_timeout)
        await self._check_login_error(page)
        await self._wait_for_redirect(page, step_timeout)

    async def _navigate(self, page: Page, timeout_ms: int) -> None:
        login_url = self.sdk_config.urls.login_url
        logger.info(f"[AUTH] Navigating to login page: {login_url[:80]}")
        try:
            await page.goto(login_url, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            raise NetworkError(
                "Timeout navigating to login page",
                code=NETWORK_TIMEOUT,
                context={"url": login_url},
                original_error=exc,
            ) from exc
        except PlaywrightError as exc:
            raise NetworkError(
                f"Failed to open login page: {exc.message}",
                context={"url": login_url},
                original_error=exc,
            ) from exc

    async def _dismiss_consent(self, page: Page) -> None:
        """Best-effort: a missing banner is not an error."""
        try:
            await page.wait_for_selector(
                _CONSENT_SELECTOR,
                state="visible",
                timeout=self.sdk_config.timeouts.element_wait,
            )
            await page.click(_CONSENT_SELECTOR)
            logger.debug("[BROWSER] Accepted cookies")
        except PlaywrightError:
            logger.debug("[BROWSER] No cookie banner found, continuing")

    async def _fill_credentials(
        self, page: Page, credentials: Credentials, timeout_ms: int
    ) -> None:
        logger.debug("[AUTH] Entering credentials")
        for selector, value, field_name in (
            (_USERNAME_SELECTOR, credentials.username, "username"),
            (_PASSWORD_SELECTOR, credentials.password, "password"),
        ):
            try:
                await page.wait_for_selector(selector, state="visible", timeout=timeout_ms)
            except PlaywrightTimeout as exc:
                raise AuthenticationError(
                    f"Login form {field_name} field did not appear",
                    context={"step": "fill_credentials"},
                    original_error=exc,
                ) from exc
            await page.fill(selector, value, timeout=timeout_ms)

    async def _submit(self, page: Page, timeout_ms: int) -> None:
        logger.debug("[AUTH] Submitting login form")
        try:
            await page.click(_SUBMIT_SELECTOR, timeout=timeout_ms)
            await page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            raise AuthenticationError(
                "Timeout submitting login form",
                context={"step": "submit"},
                original_error=exc,
            ) from exc

    async def _check_login_error(self, page: Page) -> None:
        try:
            element = await page.wait_for_selector(
                _ERROR_SELECTOR,
                state="visible",
                timeout=self.sdk_config.timeouts.element_wait,
            )
        except PlaywrightTimeout:
            return

        if element is None:
            return
        text = ((await element.text_content()) or "").strip()[:200]
        logger.error(f"[AUTH] Login error detected: {text or 'no message'}")
        raise InvalidCredentialsError(f"Login failed: {text or 'Invalid credentials'}")

    async def _wait_for_redirect(self, page: Page, timeout_ms: int) -> None:
        pattern = self.sdk_config.urls.app_url.rstrip("/") + "/**"
        logger.debug(f"[AUTH] Waiting for app URL pattern: {pattern}")
        try:
            await page.wait_for_url(pattern, timeout=timeout_ms)
        except PlaywrightTimeout as exc:
            raise AuthenticationError(
                "Login did not redirect to the application",
                context={"step": "redirect", "url": page.url[:120]},
                original_error=exc,
            ) from exc

        # Let in-flight API calls land before reading intercepted state
        await page.wait_for_timeout(self.sdk_config.browser.page_wait_timeout)
        logger.info(f"[AUTH] Post-login URL: {page.url[:120]}")

    # ── Interception ──────────────────────────────────────────────

    async def _watch_responses(
        self,
        queue: "asyncio.Queue[Any]",
        intercepted: InterceptedAuthData,
        config: AuthenticationConfig,
    ) -> None:
        while True:
            response = await queue.get()
            if response is _LOGIN_FINISHED:
                return
            try:
                await self._handle_response(response, intercepted, config)
            except Exception as exc:
                logger.warning(f"[AUTH] Error processing intercepted response: {exc}")

    async def _handle_response(
        self,
        response: Response,
        intercepted: InterceptedAuthData,
        config: AuthenticationConfig,
    ) -> None:
        url = response.url
        if not response.ok:
            logger.warning(f"[AUTH] Intercepted response failed: HTTP {response.status} {url[:100]}")
            return

        data = await self._parse_json(response, config)
        if not isinstance(data, dict):
            return

        if TOKEN_RESPONSE_PATH in url:
            token_data = data.get("token")
            if not isinstance(token_data, dict) or not token_data.get("access_token"):
                return
            intercepted.token = create_auth_token(
                access_token=token_data["access_token"],
                expires_in=self.sdk_config.tokens.default_expiration_delta,
                token_type=token_data.get("token_type") or "Bearer",
                refresh_token=token_data.get("refresh_token"),
            )
            logger.info("[AUTH] Intercepted auth token")

        elif USER_RESPONSE_PATH in url:
            user_data = data.get("user")
            if not isinstance(user_data, dict) or user_data.get("userId") in (None, ""):
                return
            intercepted.user_id = str(user_data["userId"])
            logger.info("[AUTH] Intercepted user id")

    @staticmethod
    async def _parse_json(response: Response, config: AuthenticationConfig) -> Any:
        try:
            return await response.json()
        except Exception as exc:
            if config.debug:
                try:
                    text = (await response.text())[:200]
                except Exception:
                    text = ""
                logger.warning(
                    f"[AUTH] Failed to parse response as JSON: {response.url[:100]} "
                    f"(HTTP {response.status}): {exc} {text}"
                )
            else:
                logger.warning(f"[AUTH] Failed to parse response as JSON: {response.url[:100]}")
            return None
