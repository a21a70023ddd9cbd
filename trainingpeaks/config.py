"""
SDK Configuration
=================
Single source of truth for URLs, timeouts, token windows and browser
defaults used by the auth subsystem.

Every value can be overridden through ``TRAININGPEAKS_*`` environment
variables (``SDKConfig.from_env()``) or by constructing the dataclasses
directly.  ``AuthenticationConfig`` is the per-call description a
strategy's ``can_handle`` inspects.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from datetime import timedelta
from typing import Dict, Mapping, Optional
from urllib.parse import urlparse

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical defaults — the ONLY place these numbers live
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "base_url": "https://www.trainingpeaks.com",
    "api_base_url": "https://api.trainingpeaks.com",
    "login_url": "https://home.trainingpeaks.com/login",
    "app_url": "https://app.trainingpeaks.com",
    "default_timeout_ms": 30_000,
    "web_auth_timeout_ms": 30_000,
    "api_auth_timeout_ms": 30_000,
    "element_wait_ms": 5_000,        # consent banner / error banner probes
    "page_load_ms": 2_000,
    "error_detection_ms": 15_000,
    "refresh_window_ms": 300_000,    # 5 minutes before expiry
    "validation_window_ms": 60_000,  # 1 minute
    "default_expiration_ms": 82_800_000,  # 23 hours
    "headless": True,
    "executable_path": "",
    "launch_timeout_ms": 30_000,
    "page_wait_ms": 2_000,           # settle time after redirect
    "user_agent": "TrainingPeaks-SDK/1.0.0",
}

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    value = env.get(name)
    return value if value else default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"[CONFIG] Ignoring non-integer {name}={value!r}")
        return default


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# SDK-wide settings
# ---------------------------------------------------------------------------

@dataclass
class UrlSettings:
    base_url: str = _DEFAULTS["base_url"]
    api_base_url: str = _DEFAULTS["api_base_url"]
    login_url: str = _DEFAULTS["login_url"]
    app_url: str = _DEFAULTS["app_url"]
    """After a successful web login the browser lands under this URL."""


@dataclass
class TimeoutSettings:
    """All values in milliseconds."""
    default: int = _DEFAULTS["default_timeout_ms"]
    web_auth: int = _DEFAULTS["web_auth_timeout_ms"]
    api_auth: int = _DEFAULTS["api_auth_timeout_ms"]
    element_wait: int = _DEFAULTS["element_wait_ms"]
    page_load: int = _DEFAULTS["page_load_ms"]
    error_detection: int = _DEFAULTS["error_detection_ms"]


@dataclass
class TokenSettings:
    """Token lifecycle windows (milliseconds)."""
    refresh_window: int = _DEFAULTS["refresh_window_ms"]
    validation_window: int = _DEFAULTS["validation_window_ms"]
    default_expiration: int = _DEFAULTS["default_expiration_ms"]

    @property
    def refresh_window_delta(self) -> timedelta:
        return timedelta(milliseconds=self.refresh_window)

    @property
    def validation_window_delta(self) -> timedelta:
        return timedelta(milliseconds=self.validation_window)

    @property
    def default_expiration_delta(self) -> timedelta:
        return timedelta(milliseconds=self.default_expiration)


@dataclass
class BrowserSettings:
    headless: bool = _DEFAULTS["headless"]
    executable_path: str = _DEFAULTS["executable_path"]
    launch_timeout: int = _DEFAULTS["launch_timeout_ms"]
    page_wait_timeout: int = _DEFAULTS["page_wait_ms"]


@dataclass
class DebugSettings:
    enabled: bool = False
    log_auth: bool = False
    log_network: bool = False
    log_browser: bool = False


@dataclass
class RequestSettings:
    default_headers: Dict[str, str] = field(default_factory=lambda: {
        "User-Agent": _DEFAULTS["user_agent"],
        "Accept": "application/json",
        "Content-Type": "application/json",
    })
    client_id: str = ""
    client_secret: str = ""


@dataclass
class SDKConfig:
    """
    Aggregated SDK configuration.

    Populate via:
      - ``SDKConfig()``            → all defaults
      - ``SDKConfig.from_env()``   → defaults overridden by TRAININGPEAKS_* vars
    """

    urls: UrlSettings = field(default_factory=UrlSettings)
    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    tokens: TokenSettings = field(default_factory=TokenSettings)
    browser: BrowserSettings = field(default_factory=BrowserSettings)
    debug: DebugSettings = field(default_factory=DebugSettings)
    requests: RequestSettings = field(default_factory=RequestSettings)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SDKConfig":
        """Build config from environment variables and validate it."""
        env = os.environ if env is None else env
        d = _DEFAULTS
        cfg = cls(
            urls=UrlSettings(
                base_url=_env_str(env, "TRAININGPEAKS_BASE_URL", d["base_url"]),
                api_base_url=_env_str(env, "TRAININGPEAKS_API_BASE_URL", d["api_base_url"]),
                login_url=_env_str(env, "TRAININGPEAKS_LOGIN_URL", d["login_url"]),
                app_url=_env_str(env, "TRAININGPEAKS_APP_URL", d["app_url"]),
            ),
            timeouts=TimeoutSettings(
                default=_env_int(env, "TRAININGPEAKS_TIMEOUT", d["default_timeout_ms"]),
                web_auth=_env_int(env, "TRAININGPEAKS_WEB_AUTH_TIMEOUT", d["web_auth_timeout_ms"]),
                api_auth=_env_int(env, "TRAININGPEAKS_API_AUTH_TIMEOUT", d["api_auth_timeout_ms"]),
                element_wait=_env_int(env, "TRAININGPEAKS_ELEMENT_WAIT_TIMEOUT", d["element_wait_ms"]),
                page_load=_env_int(env, "TRAININGPEAKS_PAGE_LOAD_TIMEOUT", d["page_load_ms"]),
                error_detection=_env_int(env, "TRAININGPEAKS_ERROR_DETECTION_TIMEOUT", d["error_detection_ms"]),
            ),
            tokens=TokenSettings(
                refresh_window=_env_int(env, "TRAININGPEAKS_TOKEN_REFRESH_WINDOW", d["refresh_window_ms"]),
                validation_window=_env_int(env, "TRAININGPEAKS_TOKEN_VALIDATION_WINDOW", d["validation_window_ms"]),
                default_expiration=_env_int(env, "TRAININGPEAKS_TOKEN_DEFAULT_EXPIRATION", d["default_expiration_ms"]),
            ),
            browser=BrowserSettings(
                headless=_env_bool(env, "TRAININGPEAKS_BROWSER_HEADLESS", d["headless"]),
                executable_path=_env_str(env, "TRAININGPEAKS_BROWSER_EXECUTABLE_PATH", d["executable_path"]),
                launch_timeout=_env_int(env, "TRAININGPEAKS_BROWSER_LAUNCH_TIMEOUT", d["launch_timeout_ms"]),
                page_wait_timeout=_env_int(env, "TRAININGPEAKS_BROWSER_PAGE_WAIT_TIMEOUT", d["page_wait_ms"]),
            ),
            debug=DebugSettings(
                enabled=_env_bool(env, "TRAININGPEAKS_DEBUG", False),
                log_auth=_env_bool(env, "TRAININGPEAKS_DEBUG_AUTH", False),
                log_network=_env_bool(env, "TRAININGPEAKS_DEBUG_NETWORK", False),
                log_browser=_env_bool(env, "TRAININGPEAKS_DEBUG_BROWSER", False),
            ),
            requests=RequestSettings(
                client_id=_env_str(env, "TRAININGPEAKS_CLIENT_ID", ""),
                client_secret=_env_str(env, "TRAININGPEAKS_CLIENT_SECRET", ""),
            ),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        """Raise ``ConfigurationError`` on malformed URLs or negative numbers."""
        for f in fields(self.urls):
            url = getattr(self.urls, f.name)
            parsed = urlparse(url) if isinstance(url, str) else None
            if not parsed or parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(
                    f"Invalid URL format for {f.name}: {url!r}",
                    context={"setting": f"urls.{f.name}"},
                )

        for group_name in ("timeouts", "tokens"):
            group = getattr(self, group_name)
            for f in fields(group):
                value = getattr(group, f.name)
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise ConfigurationError(
                        f"Invalid {group_name} configuration for {f.name}: {value!r}",
                        context={"setting": f"{group_name}.{f.name}"},
                    )

        for name in ("launch_timeout", "page_wait_timeout"):
            value = getattr(self.browser, name)
            if value < 0:
                raise ConfigurationError(
                    f"Invalid browser configuration for {name}: {value!r}",
                    context={"setting": f"browser.{name}"},
                )


# ---------------------------------------------------------------------------
# Per-call authentication configuration (strategy selection input)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WebAuthConfig:
    """Presence of this block selects the browser-automation strategy."""
    headless: bool = _DEFAULTS["headless"]
    executable_path: str = _DEFAULTS["executable_path"]
    timeout_ms: int = _DEFAULTS["web_auth_timeout_ms"]
    """Per-step bound: navigation, field waits, submit, redirect."""


@dataclass(frozen=True)
class AuthenticationConfig:
    """Describes which strategy applies and how it should behave."""
    base_url: str = _DEFAULTS["api_base_url"]
    timeout_ms: int = _DEFAULTS["api_auth_timeout_ms"]
    debug: bool = False
    headers: Dict[str, str] = field(default_factory=dict)
    web_auth: Optional[WebAuthConfig] = None

    @classmethod
    def from_sdk_config(
        cls, sdk_config: SDKConfig, *, use_browser: bool = True
    ) -> "AuthenticationConfig":
        web_auth = None
        if use_browser:
            web_auth = WebAuthConfig(
                headless=sdk_config.browser.headless,
                executable_path=sdk_config.browser.executable_path,
                timeout_ms=sdk_config.timeouts.web_auth,
            )
        return cls(
            base_url=sdk_config.urls.api_base_url,
            timeout_ms=sdk_config.timeouts.api_auth,
            debug=sdk_config.debug.enabled,
            headers=dict(sdk_config.requests.default_headers),
            web_auth=web_auth,
        )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def setup_logging(debug: Optional[DebugSettings] = None) -> None:
    """Configure root logging for host applications and scripts."""
    level = logging.DEBUG if debug and debug.enabled else logging.INFO
    logging.basicConfig(level=level, format=_LOG_FORMAT, datefmt="%H:%M:%S")

    # Component loggers can be turned up individually
    if debug:
        if debug.log_auth:
            logging.getLogger("trainingpeaks.auth").setLevel(logging.DEBUG)
        if debug.log_network:
            logging.getLogger("trainingpeaks.auth.api_strategy").setLevel(logging.DEBUG)
        if debug.log_browser:
            logging.getLogger("trainingpeaks.auth.web_strategy").setLevel(logging.DEBUG)
