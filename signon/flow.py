"""Drive a browser session through an OIDC login, from the application login page, via the identity provider, back
to the application.

The flow is executed in phases, each bounded by its own timeout. Any failure is tagged with the phase it happened
in and a remediation hint, so it is obvious in test output if it was the application, the identity provider page
or the MFA challenge that did not behave as expected:

1. `navigation`, open `login_url`
2. `idp-redirect`, wait for the application to redirect to the identity provider
3. `credentials`, fill username and password, and submit the form
4. `mfa`, if enabled, answer the MFA challenge
5. post login prompts, e.g. "Stay signed in?", best effort
6. `callback`, wait for the application to show that the user is signed in

`execute_oidc_flow` never raises, the outcome is always returned as an `OidcFlowResult`.

When there is no `idp_login_url`, the redirect is detected by waiting for any change of the URL. That is a best
effort guess, a single page application might render the identity provider page without changing the URL, which is
why a timeout in that case is not an error.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlparse

from gevent import sleep as gsleep

from signon.exceptions import AuthFlowError, SignonError
from signon.idp import detect_error_message, detect_idp_type, get_idp_handler
from signon.totp import await_fresh_window, generate_code
from signon.types import AuthPhase, MfaType
from signon.utils import elapsed_ms

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from signon.config import MfaConfig, OidcAuthProviderConfig
    from signon.idp import IdpHandler
    from signon.types import BrowserSession, Credentials


logger = logging.getLogger(__name__)

TOTP_INPUT_TIMEOUT_MS = 10000
TOTP_FRESH_WINDOW_THRESHOLD = 5
SESSION_CHECK_TIMEOUT_MS = 1000
SUCCESS_POLL_INTERVAL = 0.1

DEFAULT_TOTP_INPUT_SELECTOR = 'input[name*="otp"], input[name*="totp"], input[name*="code"]'
DEFAULT_TOTP_SUBMIT_SELECTOR = 'button[type="submit"]'

FLOW_ERROR_SELECTORS: list[str] = [
    '.error-message',
    '.alert-danger',
    '.error',
    '[role="alert"]',
    '.login-error',
    '#error-message',
]


@dataclass(frozen=True)
class OidcFlowResult:
    success: bool
    final_url: str
    duration_ms: int
    phase: AuthPhase
    error: Optional[AuthFlowError] = None


def _current_url(session: BrowserSession) -> str:
    try:
        return session.current_url()
    except Exception:
        logger.debug('could not get current url of session')
        return ''


def _navigate(session: BrowserSession, config: OidcAuthProviderConfig, role: str) -> None:
    logger.debug('navigating to login url %s', config.login_url)

    try:
        session.navigate(config.login_url, timeout=config.timeouts.login_flow_ms)
    except Exception as e:
        message = f'Failed to navigate to login URL: {e!s}'
        raise AuthFlowError(
            message,
            role,
            AuthPhase.NAVIGATION,
            remediation=f'Verify the login URL is correct and accessible: {config.login_url}',
        ) from e


def _wait_for_idp_redirect(session: BrowserSession, config: OidcAuthProviderConfig, role: str) -> None:
    timeout = config.timeouts.idp_redirect_ms

    if config.idp_login_url is not None:
        host = urlparse(config.idp_login_url).netloc or config.idp_login_url
        logger.debug('waiting for redirect to %s', host)

        try:
            session.wait_for_url(lambda url: host in url, timeout=timeout)
        except Exception as e:
            message = f'Timeout waiting for IdP redirect: {e!s}'
            raise AuthFlowError(
                message,
                role,
                AuthPhase.IDP_REDIRECT,
                remediation='The application may not have redirected to the IdP login page',
            ) from e

        return

    original_url = _current_url(session)
    logger.debug('waiting for url to change from %s', original_url)

    try:
        session.wait_for_url(lambda url: url != original_url, timeout=timeout)
    except TimeoutError:
        # single page applications might not change url
        logger.debug('url did not change, might be a single page application')


def _fill_credentials(
    session: BrowserSession,
    config: OidcAuthProviderConfig,
    credentials: Credentials,
    idp_handler: IdpHandler,
    role: str,
) -> None:
    try:
        idp_handler.fill_credentials(session, credentials, config.idp_selectors)
    except Exception as e:
        message = f'Failed to fill credentials on IdP page: {e!s}'
        raise AuthFlowError(
            message,
            role,
            AuthPhase.CREDENTIALS,
            remediation='Check if the IdP selectors are correct for username/password fields',
        ) from e


def _submit_form(session: BrowserSession, config: OidcAuthProviderConfig, idp_handler: IdpHandler, role: str) -> None:
    try:
        idp_handler.submit_form(session, config.idp_selectors)
    except Exception as e:
        message = f'Failed to submit login form: {e!s}'
        raise AuthFlowError(
            message,
            role,
            AuthPhase.CREDENTIALS,
            remediation='Check if the submit button selector is correct',
        ) from e


def _handle_totp(
    session: BrowserSession,
    mfa: MfaConfig,
    selectors: Mapping[str, str],
    idp_handler: IdpHandler,
    role: str,
    env: Optional[Mapping[str, str]],
) -> None:
    if mfa.totp_secret_env is None:
        message = 'TOTP secret environment variable not configured'
        raise AuthFlowError(
            message,
            role,
            AuthPhase.MFA,
            remediation='Configure mfa.totp_secret_env in the auth configuration',
        )

    # fail on a missing or invalid secret before touching the page
    _generate_totp_code(mfa.totp_secret_env, role, env)

    input_selector = mfa.totp_input_selector or selectors.get('totp_input', None) or DEFAULT_TOTP_INPUT_SELECTOR
    submit_selector = mfa.totp_submit_selector or selectors.get('totp_submit', None) or DEFAULT_TOTP_SUBMIT_SELECTOR
    remediation = 'Check TOTP input selector configuration and verify the secret is correct'

    try:
        idp_handler.prepare_totp(session, selectors)
        session.wait_for_visible(input_selector, timeout=TOTP_INPUT_TIMEOUT_MS)
    except Exception as e:
        message = f'Failed to complete TOTP MFA: {e!s}'
        raise AuthFlowError(message, role, AuthPhase.MFA, remediation=remediation) from e

    # the input is ready, the code used must be valid long enough to be submitted
    await_fresh_window(TOTP_FRESH_WINDOW_THRESHOLD)
    code = _generate_totp_code(mfa.totp_secret_env, role, env)

    try:
        session.fill(input_selector, code)
        session.click(submit_selector)
    except Exception as e:
        message = f'Failed to complete TOTP MFA: {e!s}'
        raise AuthFlowError(message, role, AuthPhase.MFA, remediation=remediation) from e

    logger.debug('totp code submitted')


def _generate_totp_code(secret_env: str, role: str, env: Optional[Mapping[str, str]]) -> str:
    try:
        return generate_code(secret_env, env)
    except SignonError as e:
        raise AuthFlowError(e.message, role, AuthPhase.MFA, remediation=e.remediation) from e


def _handle_push(session: BrowserSession, mfa: MfaConfig, role: str) -> None:
    timeout = mfa.push_timeout_ms

    logger.info('waiting for push notification approval, timeout %d ms', timeout)

    try:
        session.wait_for_url(lambda url: 'mfa' not in url and '2fa' not in url, timeout=timeout)
    except Exception as e:
        message = f'Push MFA approval timeout after {timeout}ms'
        raise AuthFlowError(
            message,
            role,
            AuthPhase.MFA,
            remediation='Approve the push notification on your device or configure TOTP instead',
        ) from e


def _handle_mfa(
    session: BrowserSession,
    config: OidcAuthProviderConfig,
    mfa: MfaConfig,
    idp_handler: IdpHandler,
    role: str,
    env: Optional[Mapping[str, str]],
) -> None:
    logger.info('handling mfa challenge of type %s', mfa.type)

    mfa_type = mfa.mfa_type

    if mfa_type == MfaType.SMS:
        message = 'SMS-based MFA is not supported for automated testing'
        raise AuthFlowError(
            message,
            role,
            AuthPhase.MFA,
            remediation='Configure TOTP-based MFA for the test account instead',
        )

    if mfa_type == MfaType.TOTP:
        _handle_totp(session, mfa, idp_handler.selectors(config.idp_selectors), idp_handler, role, env)
    elif mfa_type == MfaType.PUSH:
        _handle_push(session, mfa, role)
    elif mfa_type == MfaType.NONE:
        logger.debug('mfa type is none, skipping')
    else:
        try:
            idp_handler.handle_mfa(session, mfa)
        except Exception as e:
            message = f'Failed to complete {mfa.type} MFA: {e!s}'
            raise AuthFlowError(message, role, AuthPhase.MFA) from e


def _wait_for_success_condition(session: BrowserSession, url: Optional[str], selector: Optional[str], timeout: float) -> None:
    if url is not None and selector is None:
        session.wait_for_url(lambda current_url: url in current_url, timeout=timeout)
        return

    if url is None and selector is not None:
        session.wait_for_visible(selector, timeout=timeout)
        return

    # both are configured, poll until one of them is fulfilled
    deadline = perf_counter() + (timeout / 1000)

    while True:
        if url is not None and url in session.current_url():
            return

        if selector is not None and session.is_visible(selector):
            return

        if perf_counter() >= deadline:
            message = f'neither url "{url}" or selector "{selector}" matched within {timeout} ms'
            raise TimeoutError(message)

        gsleep(SUCCESS_POLL_INTERVAL)


def _wait_for_success(session: BrowserSession, config: OidcAuthProviderConfig, idp_handler: IdpHandler, role: str) -> None:
    success = config.success
    timeout = success.timeout if success.timeout is not None else config.timeouts.callback_ms

    logger.debug('waiting for authentication success')

    if success.url is None and success.selector is None:
        try:
            session.wait_for_load_state('networkidle', timeout=timeout)
        except TimeoutError:
            # applications with polling or websockets never goes idle
            logger.debug('network did not go idle within %d ms', timeout)
        return

    try:
        _wait_for_success_condition(session, success.url, success.selector, timeout)
    except Exception as e:
        error_selectors = list(FLOW_ERROR_SELECTORS)
        handler_error_selector = idp_handler.selectors(config.idp_selectors).get('error', None)

        if handler_error_selector is not None:
            error_selectors.insert(0, handler_error_selector)

        idp_response = detect_error_message(session, error_selectors)

        message = 'Authentication callback failed'
        raise AuthFlowError(
            message,
            role,
            AuthPhase.CALLBACK,
            idp_response,
            remediation='Verify credentials are correct and the success URL/selector configuration',
        ) from e


def execute_oidc_flow(
    session: BrowserSession,
    config: OidcAuthProviderConfig,
    credentials: Credentials,
    idp_handler: Optional[IdpHandler] = None,
    *,
    skip_idp_redirect: bool = False,
    role: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> OidcFlowResult:
    """Sign in with `credentials` in `session`, as described by `config`.

    Args:
        session: browser session that the flow is executed in
        config: OIDC provider configuration
        credentials: username and password of the user that should be signed in
        idp_handler: handler for the identity provider login page, created from `config.idp_type` if not specified
        skip_idp_redirect: `login_url` is the identity provider login page
        role: name of the role, used in errors and logs
        env: where to look up the TOTP secret, defaults to `os.environ`
    """
    start = perf_counter()
    role = role or 'unknown'

    logger.info('starting oidc flow for %s, idp type %s, login url %s', role, config.idp_type, config.login_url)

    try:
        _navigate(session, config, role)

        if not skip_idp_redirect and config.login_url != config.idp_login_url:
            _wait_for_idp_redirect(session, config, role)

        if idp_handler is None:
            idp_type = config.idp_type

            if idp_type == 'auto':
                idp_type = detect_idp_type(_current_url(session))
                logger.debug('detected idp type %s', idp_type)

            idp_handler = get_idp_handler(idp_type)

        _fill_credentials(session, config, credentials, idp_handler, role)
        _submit_form(session, config, idp_handler, role)

        if config.mfa is not None and config.mfa.enabled:
            _handle_mfa(session, config, config.mfa, idp_handler, role, env)

        try:
            idp_handler.handle_post_login_prompts(session, config.idp_selectors)
        except Exception:
            logger.warning('%s: failed to handle post login prompts', idp_handler.idp_type, exc_info=True)

        _wait_for_success(session, config, idp_handler, role)
    except Exception as e:
        duration = elapsed_ms(start, perf_counter())
        error = e if isinstance(e, AuthFlowError) else AuthFlowError(str(e), role, AuthPhase.CREDENTIALS)

        logger.error('oidc flow for %s failed in phase %s after %d ms: %s', role, error.phase, duration, error.message)  # noqa: TRY400

        return OidcFlowResult(
            success=False,
            final_url=_current_url(session),
            duration_ms=duration,
            phase=error.phase,
            error=error,
        )

    duration = elapsed_ms(start, perf_counter())
    final_url = _current_url(session)

    logger.info('oidc flow for %s completed in %d ms, final url %s', role, duration, final_url)

    return OidcFlowResult(
        success=True,
        final_url=final_url,
        duration_ms=duration,
        phase=AuthPhase.CALLBACK,
    )


def is_oidc_session_valid(session: BrowserSession, config: OidcAuthProviderConfig) -> bool:
    """Check if the current page of `session` fulfills the success criteria of `config`."""
    url, selector = config.success.url, config.success.selector

    if url is not None and url not in _current_url(session):
        return False

    if selector is not None:
        try:
            session.wait_for_visible(selector, timeout=SESSION_CHECK_TIMEOUT_MS)
        except TimeoutError:
            return False

    return True


__all__ = [
    'OidcFlowResult',
    'execute_oidc_flow',
    'is_oidc_session_valid',
]
