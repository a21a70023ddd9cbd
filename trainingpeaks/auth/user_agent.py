"""Random desktop User-Agent strings for browser contexts."""

from __future__ import annotations

import random
from typing import Optional

_CHROME_VERSIONS = ["120.0.0.0", "121.0.0.0", "122.0.0.0", "123.0.0.0", "124.0.0.0"]
_FIREFOX_VERSIONS = ["120.0", "121.0", "122.0", "123.0", "124.0"]
_SAFARI_VERSIONS = ["17.0", "17.1", "17.2", "17.3", "17.4"]

_OPERATING_SYSTEMS = [
    "Macintosh; Intel Mac OS X 10_15_7",
    "Macintosh; Intel Mac OS X 14_0_0",
    "Macintosh; Intel Mac OS X 14_1_0",
    "Windows NT 10.0; Win64; x64",
    "Windows NT 11.0; Win64; x64",
    "X11; Linux x86_64",
]


def generate_user_agent(rng: Optional[random.Random] = None) -> str:
    """Return a realistic Chrome, Firefox or Safari User-Agent."""
    rng = rng or random
    os_name = rng.choice(_OPERATING_SYSTEMS)
    browser = rng.choice(("chrome", "firefox", "safari"))

    if browser == "firefox":
        version = rng.choice(_FIREFOX_VERSIONS)
        return f"Mozilla/5.0 ({os_name}; rv:{version}) Gecko/20100101 Firefox/{version}"
    if browser == "safari":
        version = rng.choice(_SAFARI_VERSIONS)
        return (
            f"Mozilla/5.0 ({os_name}) AppleWebKit/605.1.15 "
            f"(KHTML, like Gecko) Version/{version} Safari/605.1.15"
        )
    version = rng.choice(_CHROME_VERSIONS)
    return (
        f"Mozilla/5.0 ({os_name}) AppleWebKit/537.36 "
        f"(KHTML, like Gecko) Chrome/{version} Safari/537.36"
    )
