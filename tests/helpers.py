"""Useful helper stuff for tests."""
from __future__ import annotations

from abc import ABCMeta
from os import utime
from time import time
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping
    from pathlib import Path

    from signon.types import StorageState


def ANY(*cls: type, message: Optional[str] = None) -> object:  # noqa: N802
    """Compare equal to everything of the specified types, optionally containing `message` when converted to a string."""
    class WrappedAny(metaclass=ABCMeta):  # noqa: B024
        def __eq__(self, other: object) -> bool:
            if len(cls) < 1:
                return True

            return isinstance(other, cls) and (message is None or message in str(other))

        def __ne__(self, other: object) -> bool:
            return not self.__eq__(other)

        def __repr__(self) -> str:
            c = cls[0] if len(cls) == 1 else cls
            representation: list[str] = [f'<ANY({c})', '>']

            if message is not None:
                representation.insert(-1, f", message='{message}'")

            return ''.join(representation)

    for c in cls:
        WrappedAny.register(c)

    return WrappedAny()


def set_age(path: Path, age_ms: float) -> None:
    """Change modification time of `path` so it is `age_ms` milliseconds old."""
    timestamp = time() - (age_ms / 1000)
    utime(path, (timestamp, timestamp))


class FakeBrowserSession:
    """Scripted, in-memory browser session.

    The page is described by `url`, a set of `visible` selectors and `texts` of elements. A selector union
    (`a, b, c`) matches if any of its parts is visible. Every call is recorded in `calls`, as a tuple of method
    name and arguments, so tests can assert what the flow did (and did not) do.

    `redirects` maps a navigated url to the url the page ends up on, and `on_click` maps a selector to a callable
    that changes the page, e.g. revealing the password field of a two step login page. Any method name in `errors`
    raises that exception instead of doing anything.
    """

    url: str
    visible: set[str]
    texts: dict[str, str]
    values: dict[str, str]
    redirects: dict[str, str]
    on_click: dict[str, Callable[[FakeBrowserSession], None]]
    errors: dict[str, Exception]
    timeout_load_states: set[str]
    calls: list[tuple[Any, ...]]
    state: StorageState
    restored: Optional[StorageState]
    cookies_cleared: int

    def __init__(
        self,
        url: str = 'about:blank',
        *,
        visible: Optional[set[str]] = None,
        texts: Optional[dict[str, str]] = None,
        redirects: Optional[dict[str, str]] = None,
        on_click: Optional[dict[str, Callable[[FakeBrowserSession], None]]] = None,
        errors: Optional[dict[str, Exception]] = None,
        timeout_load_states: Optional[set[str]] = None,
        state: Optional[StorageState] = None,
    ) -> None:
        self.url = url
        self.visible = visible if visible is not None else set()
        self.texts = texts if texts is not None else {}
        self.values = {}
        self.redirects = redirects if redirects is not None else {}
        self.on_click = on_click if on_click is not None else {}
        self.errors = errors if errors is not None else {}
        self.timeout_load_states = timeout_load_states if timeout_load_states is not None else set()
        self.calls = []
        self.state = state if state is not None else {'cookies': [], 'origins': []}
        self.restored = None
        self.cookies_cleared = 0

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))

        error = self.errors.get(name, None)
        if error is not None:
            raise error

    def _match(self, selector: str) -> Optional[str]:
        if selector in self.visible:
            return selector

        for part in selector.split(','):
            part = part.strip()
            if part in self.visible:
                return part

        return None

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    def navigate(self, url: str, *, timeout: float) -> None:
        self._record('navigate', url, timeout)
        self.url = self.redirects.get(url, url)

    def wait_for_visible(self, selector: str, *, timeout: float) -> None:
        self._record('wait_for_visible', selector, timeout)

        if self._match(selector) is None:
            message = f'waiting for {selector} to be visible exceeded {timeout} ms'
            raise TimeoutError(message)

    def is_visible(self, selector: str, *, timeout: float = 0) -> bool:
        self._record('is_visible', selector, timeout)

        return self._match(selector) is not None

    def fill(self, selector: str, value: str) -> None:
        self._record('fill', selector, value)

        if self._match(selector) is None:
            message = f'element {selector} is not visible'
            raise TimeoutError(message)

        self.values.update({selector: value})

    def click(self, selector: str) -> None:
        self._record('click', selector)

        matched = self._match(selector)
        if matched is None:
            message = f'element {selector} is not visible'
            raise TimeoutError(message)

        callback = self.on_click.get(selector, None) or self.on_click.get(matched, None)
        if callback is not None:
            callback(self)

    def text_content(self, selector: str) -> Optional[str]:
        self._record('text_content', selector)

        matched = self._match(selector)

        return self.texts.get(matched, None) if matched is not None else None

    def input_value(self, selector: str) -> str:
        self._record('input_value', selector)

        return self.values.get(selector, '')

    def wait_for_url(self, predicate: Callable[[str], bool], *, timeout: float) -> None:
        self._record('wait_for_url', timeout)

        if not predicate(self.url):
            message = f'waiting for url exceeded {timeout} ms, current url {self.url}'
            raise TimeoutError(message)

    def wait_for_load_state(self, state: str, *, timeout: float) -> None:
        self._record('wait_for_load_state', state, timeout)

        if state in self.timeout_load_states:
            message = f'waiting for load state {state} exceeded {timeout} ms'
            raise TimeoutError(message)

    def current_url(self) -> str:
        return self.url

    def reload(self, *, timeout: float) -> None:
        self._record('reload', timeout)

    def clear_cookies(self) -> None:
        self._record('clear_cookies')
        self.cookies_cleared += 1

    def serialize_state(self) -> StorageState:
        self._record('serialize_state')

        return self.state

    def restore_state(self, state: Mapping[str, Any]) -> None:
        self._record('restore_state')
        self.restored = dict(state)
