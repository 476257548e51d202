"""OIDC authentication provider, a retrying wrapper around `signon.flow.execute_oidc_flow`.

A failed login is retried with exponential backoff, each retry is logged at warning level. When all attempts
has failed, an `AuthFlowError` with the phase and identity provider response of the last attempt is raised.

The provider never reads or writes stored session states, that is up to the caller:

```python
from signon.provider import OidcAuthProvider
from signon.storage import is_storage_state_valid, save_storage_state

if not is_storage_state_valid('admin', options):
    provider = OidcAuthProvider(config)
    provider.set_role('admin')
    provider.login(session, credentials)
    save_storage_state(session, 'admin', options)
```
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlparse

from gevent import sleep as gsleep

from signon.exceptions import AuthFlowError
from signon.flow import execute_oidc_flow, is_oidc_session_valid
from signon.idp import get_idp_handler
from signon.types import AuthPhase

if TYPE_CHECKING:  # pragma: no cover
    from signon.config import OidcAuthProviderConfig
    from signon.idp import IdpHandler
    from signon.types import BrowserSession, Credentials


logger = logging.getLogger(__name__)

LOGOUT_TIMEOUT_MS = 5000
IDP_LOGOUT_TIMEOUT_MS = 10000
REFRESH_TIMEOUT_MS = 10000

LOGOUT_PATHS = ['/logout', '/api/logout', '/auth/logout']


@dataclass(frozen=True)
class AuthRetryOptions:
    max_retries: int = 2
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2
    retry_on_timeout: bool = True
    retry_on_network_error: bool = True


class OidcAuthProvider:
    _config: OidcAuthProviderConfig
    _idp_handler: IdpHandler
    _role: str

    retry_options: AuthRetryOptions

    def __init__(
        self,
        config: OidcAuthProviderConfig,
        retry_options: Optional[AuthRetryOptions] = None,
        idp_handler: Optional[IdpHandler] = None,
    ) -> None:
        self._config = config
        self._idp_handler = idp_handler if idp_handler is not None else get_idp_handler(config.idp_type)
        self._role = 'unknown'
        self.retry_options = retry_options if retry_options is not None else AuthRetryOptions()

    @property
    def config(self) -> OidcAuthProviderConfig:
        return self._config

    @property
    def idp_handler(self) -> IdpHandler:
        return self._idp_handler

    @property
    def role(self) -> str:
        return self._role

    def set_role(self, role: str) -> None:
        self._role = role

    def calculate_retry_delay(self, attempt: int) -> float:
        """Delay in milliseconds before retry number `attempt` (zero based)."""
        delay = self.retry_options.initial_delay_ms * (self.retry_options.backoff_multiplier ** attempt)

        return min(delay, self.retry_options.max_delay_ms)

    def should_retry(self, error: Exception) -> bool:
        """Only errors that looks like timeouts or network problems are worth retrying."""
        if self.retry_options.retry_on_timeout and isinstance(error, TimeoutError):
            return True

        message = str(error).lower()

        if self.retry_options.retry_on_timeout and ('timeout' in message or 'timed out' in message):
            return True

        return self.retry_options.retry_on_network_error and any(
            fragment in message for fragment in ['network', 'net::', 'econnrefused', 'enotfound']
        )

    def login(self, session: BrowserSession, credentials: Credentials) -> None:
        max_retries = self.retry_options.max_retries
        last_error: Optional[AuthFlowError] = None

        for attempt in range(max_retries + 1):
            try:
                result = execute_oidc_flow(session, self._config, credentials, self._idp_handler, role=self._role)
            except Exception as e:
                last_error = AuthFlowError(str(e), self._role, AuthPhase.CREDENTIALS)

                if attempt >= max_retries or not self.should_retry(e):
                    break

                delay = self.calculate_retry_delay(attempt)
                logger.warning('oidc login for %s raised an error, retrying in %d ms: %s', self._role, delay, str(e))
                gsleep(delay / 1000)
                continue

            if result.success:
                logger.info(
                    'oidc login for %s with %s succeeded in %d ms after %d attempt(s)',
                    self._role,
                    self._config.idp_type,
                    result.duration_ms,
                    attempt + 1,
                )
                return

            last_error = result.error or AuthFlowError(
                'OIDC login failed',
                self._role,
                result.phase,
                remediation='Check credentials and OIDC configuration',
            )

            if attempt < max_retries:
                delay = self.calculate_retry_delay(attempt)
                logger.warning(
                    'oidc login attempt %d of %d for %s failed, retrying in %d ms: %s',
                    attempt + 1,
                    max_retries + 1,
                    self._role,
                    delay,
                    last_error.message,
                )
                gsleep(delay / 1000)

        last_message = last_error.message if last_error is not None else 'Unknown error'

        logger.error('oidc login for %s failed after all retries: %s', self._role, last_message)

        message = f'OIDC login failed after {max_retries + 1} attempts: {last_message}'
        raise AuthFlowError(
            message,
            self._role,
            last_error.phase if last_error is not None else AuthPhase.CREDENTIALS,
            last_error.idp_response if last_error is not None else None,
            remediation=f'Verify credentials for role "{self._role}" are correct. Check OIDC configuration and IdP status.',
        )

    def is_session_valid(self, session: BrowserSession) -> bool:
        try:
            if self._config.login_url in session.current_url():
                return False

            return is_oidc_session_valid(session, self._config)
        except Exception:
            logger.debug('session validation failed', exc_info=True)
            return False

    def refresh_session(self, session: BrowserSession) -> bool:
        """Reload the current page to trigger any token refresh, and check if the session is still valid."""
        logger.debug('refreshing oidc session for %s', self._role)

        try:
            session.reload(timeout=REFRESH_TIMEOUT_MS)

            if self._config.login_url in session.current_url():
                logger.debug('session refresh failed, redirected to login')
                return False

            valid = self.is_session_valid(session)
        except Exception as e:
            logger.warning('session refresh for %s failed: %s', self._role, str(e))
            return False

        logger.debug('session refresh for %s, valid=%r', self._role, valid)

        return valid

    def logout(self, session: BrowserSession) -> None:
        """Logout via the configured logout url, or try common logout urls of the application and as a last resort
        clear all cookies."""
        logger.debug('logging out %s', self._role)

        logout = self._config.logout

        try:
            if logout is not None and logout.url is not None:
                session.navigate(logout.url, timeout=LOGOUT_TIMEOUT_MS)

                if logout.idp_logout:
                    try:
                        session.wait_for_load_state('networkidle', timeout=IDP_LOGOUT_TIMEOUT_MS)
                    except TimeoutError:
                        # the identity provider logout page might keep connections open
                        logger.debug('idp logout did not go idle')

                return

            parsed = urlparse(self._config.login_url)
            base_url = f'{parsed.scheme}://{parsed.netloc}'

            for path in LOGOUT_PATHS:
                url = f'{base_url}{path}'

                try:
                    session.navigate(url, timeout=LOGOUT_TIMEOUT_MS)
                except Exception:  # noqa: PERF203
                    logger.debug('logout via %s failed', url)
                    continue

                logger.debug('logged out via %s', url)
                return

            session.clear_cookies()
            logger.debug('cleared cookies as logout fallback')
        except Exception as e:
            logger.warning('logout for %s failed, clearing cookies: %s', self._role, str(e))
            session.clear_cookies()


def create_oidc_auth_provider(config: OidcAuthProviderConfig, retry_options: Optional[AuthRetryOptions] = None) -> OidcAuthProvider:
    return OidcAuthProvider(config, retry_options)


__all__ = [
    'AuthRetryOptions',
    'OidcAuthProvider',
    'create_oidc_auth_provider',
]
