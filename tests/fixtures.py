"""Fixtures used in tests."""
from __future__ import annotations

import json
from shutil import rmtree
from typing import TYPE_CHECKING, Any, Literal, Optional

from pytest_mock.plugin import MockerFixture

from signon.config import MfaConfig, OidcAuthProviderConfig, SuccessConfig
from signon.storage import StorageOptions, get_storage_state_path

from .helpers import FakeBrowserSession, set_age

if TYPE_CHECKING:  # pragma: no cover
    from pathlib import Path
    from types import TracebackType

    from _pytest.tmpdir import TempPathFactory


__all__ = [
    'MockerFixture',
    'OidcFixture',
    'StorageFixture',
]


class StorageFixture:
    """Project root in a temporary directory, with helpers to create stored session states of a specific age."""

    _tmp_path_factory: TempPathFactory

    project_root: Path
    options: StorageOptions

    def __init__(self, tmp_path_factory: TempPathFactory) -> None:
        self._tmp_path_factory = tmp_path_factory

    def __enter__(self) -> StorageFixture:
        self.project_root = self._tmp_path_factory.mktemp('project')
        self.options = StorageOptions(project_root=self.project_root)

        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> Literal[True]:
        rmtree(self.project_root, ignore_errors=True)

        if exc is not None:
            raise exc

        return True

    @property
    def directory(self) -> Path:
        return self.options.base_dir

    def write(
        self,
        role: str,
        content: Optional[Any] = None,
        *,
        age_ms: Optional[float] = None,
        options: Optional[StorageOptions] = None,
    ) -> Path:
        path = get_storage_state_path(role, options or self.options)
        path.parent.mkdir(parents=True, exist_ok=True)

        if content is None:
            content = {'cookies': [{'name': 'session', 'value': role, 'domain': 'app.example.com'}], 'origins': []}

        path.write_text(content if isinstance(content, str) else json.dumps(content))

        if age_ms is not None:
            set_age(path, age_ms)

        return path


class OidcFixture:
    """Provider configuration and a browser session where a generic identity provider login page is shown after
    navigating to the login url, and where submitting the form signs in the user."""

    login_url = 'https://app.example.com/login'
    idp_url = 'https://idp.example.com/authorize?client_id=app'
    success_url = 'https://app.example.com/dashboard'

    username_selector = 'input[name="username"]'
    password_selector = 'input[type="password"]'
    submit_selector = 'button[type="submit"]'

    def config(self, *, mfa: Optional[MfaConfig] = None, **kwargs: Any) -> OidcAuthProviderConfig:
        kwargs.setdefault('success', SuccessConfig(url='/dashboard'))

        return OidcAuthProviderConfig(login_url=self.login_url, mfa=mfa, **kwargs)

    def session(self, *, signs_in: bool = True) -> FakeBrowserSession:
        def submit(session: FakeBrowserSession) -> None:
            if signs_in:
                session.url = self.success_url

        return FakeBrowserSession(
            visible={self.username_selector, self.password_selector, self.submit_selector},
            redirects={self.login_url: self.idp_url},
            on_click={self.submit_selector: submit},
        )
