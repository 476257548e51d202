"""Types shared between the flow engine, the identity provider handlers and the session state cache."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

Selectors = dict[str, str]
StorageState = dict[str, Any]


class AuthPhase(Enum):
    NAVIGATION = 'navigation'
    IDP_REDIRECT = 'idp-redirect'
    CREDENTIALS = 'credentials'
    MFA = 'mfa'
    CALLBACK = 'callback'

    def __str__(self) -> str:
        return self.value


class MfaType(Enum):
    TOTP = 'totp'
    PUSH = 'push'
    SMS = 'sms'
    NONE = 'none'

    @classmethod
    def from_string(cls, value: str) -> MfaType:
        try:
            return cls(value.strip().lower())
        except ValueError as e:
            message = f'"{value}" is not a valid value of {cls.__name__}'
            raise ValueError(message) from e


@dataclass(frozen=True)
class Credentials:
    """Username and password for one flow invocation, never persisted."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(username={self.username!r}, password=***)'


@runtime_checkable
class BrowserSession(Protocol):
    """Capability the flow engine and the session state cache consume.

    All timeouts are in milliseconds, and an expired timeout must raise the builtin `TimeoutError`.
    `signon.browser.PlaywrightBrowserSession` implements it on top of a playwright page.
    """

    def navigate(self, url: str, *, timeout: float) -> None: ...

    def wait_for_visible(self, selector: str, *, timeout: float) -> None: ...

    def is_visible(self, selector: str, *, timeout: float = 0) -> bool: ...

    def fill(self, selector: str, value: str) -> None: ...

    def click(self, selector: str) -> None: ...

    def text_content(self, selector: str) -> str | None: ...

    def input_value(self, selector: str) -> str: ...

    def wait_for_url(self, predicate: Callable[[str], bool], *, timeout: float) -> None: ...

    def wait_for_load_state(self, state: str, *, timeout: float) -> None: ...

    def current_url(self) -> str: ...

    def reload(self, *, timeout: float) -> None: ...

    def clear_cookies(self) -> None: ...

    def serialize_state(self) -> StorageState: ...

    def restore_state(self, state: Mapping[str, Any]) -> None: ...
