"""Browser session on top of a playwright page (sync API).

```python
from playwright.sync_api import sync_playwright

from signon.browser import PlaywrightBrowserSession
from signon.flow import execute_oidc_flow

with sync_playwright() as playwright:
    browser = playwright.chromium.launch()
    page = browser.new_page()
    result = execute_oidc_flow(PlaywrightBrowserSession(page), config, credentials, role='admin')
```

Timeouts from playwright are raised as the builtin `TimeoutError`, which is what the flow engine and the identity
provider handlers expects.
"""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Optional

from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Generator, Mapping

    from playwright.sync_api import Page

    from signon.types import StorageState

logger = logging.getLogger(__name__)

RESTORE_LOCAL_STORAGE_SCRIPT = """(() => {{
    const origins = {origins};
    const items = origins[window.location.origin];
    if (items === undefined) {{
        return;
    }}
    for (const [name, value] of Object.entries(items)) {{
        window.localStorage.setItem(name, value);
    }}
}})();"""


@contextmanager
def _translate_timeout() -> Generator[None, None, None]:
    try:
        yield
    except PlaywrightTimeoutError as e:
        raise TimeoutError(str(e)) from e


class PlaywrightBrowserSession:
    page: Page

    def __init__(self, page: Page) -> None:
        self.page = page

    def navigate(self, url: str, *, timeout: float) -> None:
        with _translate_timeout():
            self.page.goto(url, wait_until='domcontentloaded', timeout=timeout)

    def wait_for_visible(self, selector: str, *, timeout: float) -> None:
        with _translate_timeout():
            self.page.wait_for_selector(selector, state='visible', timeout=timeout)

    def is_visible(self, selector: str, *, timeout: float = 0) -> bool:
        if timeout <= 0:
            return self.page.locator(selector).first.is_visible()

        try:
            self.page.wait_for_selector(selector, state='visible', timeout=timeout)
        except PlaywrightTimeoutError:
            return False

        return True

    def fill(self, selector: str, value: str) -> None:
        with _translate_timeout():
            self.page.fill(selector, value)

    def click(self, selector: str) -> None:
        with _translate_timeout():
            self.page.click(selector)

    def text_content(self, selector: str) -> Optional[str]:
        with _translate_timeout():
            return self.page.locator(selector).first.text_content()

    def input_value(self, selector: str) -> str:
        with _translate_timeout():
            return self.page.locator(selector).first.input_value()

    def wait_for_url(self, predicate: Callable[[str], bool], *, timeout: float) -> None:
        with _translate_timeout():
            self.page.wait_for_url(predicate, timeout=timeout)

    def wait_for_load_state(self, state: str, *, timeout: float) -> None:
        with _translate_timeout():
            self.page.wait_for_load_state(state, timeout=timeout)  # type: ignore[arg-type]

    def current_url(self) -> str:
        return self.page.url

    def reload(self, *, timeout: float) -> None:
        with _translate_timeout():
            self.page.reload(wait_until='networkidle', timeout=timeout)

    def clear_cookies(self) -> None:
        self.page.context.clear_cookies()

    def serialize_state(self) -> StorageState:
        return dict(self.page.context.storage_state())

    def restore_state(self, state: Mapping[str, Any]) -> None:
        """Add stored cookies to the browser context, local storage is restored when an origin is visited."""
        cookies = state.get('cookies', [])

        if len(cookies) > 0:
            self.page.context.add_cookies(cookies)

        origins = {
            origin['origin']: {item['name']: item['value'] for item in origin.get('localStorage', [])}
            for origin in state.get('origins', [])
        }

        if len(origins) > 0:
            self.page.context.add_init_script(RESTORE_LOCAL_STORAGE_SCRIPT.format(origins=json.dumps(origins)))

        logger.debug('restored %d cookies and local storage for %d origins', len(cookies), len(origins))


__all__ = [
    'PlaywrightBrowserSession',
]
