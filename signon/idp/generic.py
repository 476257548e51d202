"""Generic identity provider handler.

Used for identity providers without a specific handler. The default selectors are unions of the most common
patterns for username, password, submit and one time code inputs, so most login pages works without any
configuration. Override the selectors in the provider configuration when they do not.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar, Optional

from signon.totp import await_fresh_window, generate_code

from . import IdpHandler, detect_error_message, merge_selectors

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from signon.config import MfaConfig
    from signon.types import BrowserSession, Selectors

logger = logging.getLogger(__name__)

TOTP_INPUT_TIMEOUT_MS = 10000

ERROR_SELECTORS: list[str] = [
    '.error',
    '.error-message',
    '.alert-danger',
    '.alert-error',
    '[role="alert"]',
    '.form-error',
    '.login-error',
]


class GenericIdpHandler(IdpHandler):
    idp_type = 'generic'

    __default_selectors__: ClassVar[Selectors] = {
        'username': ', '.join([
            'input[type="email"]',
            'input[name="username"]',
            'input[name="email"]',
            'input[id*="username"]',
            'input[id*="email"]',
            'input[autocomplete="username"]',
        ]),
        'password': ', '.join([
            'input[type="password"]',
            'input[name="password"]',
            'input[id*="password"]',
            'input[autocomplete="current-password"]',
        ]),
        'submit': ', '.join([
            'button[type="submit"]',
            'input[type="submit"]',
            'button:has-text("Sign in")',
            'button:has-text("Log in")',
            'button:has-text("Login")',
            'button:has-text("Submit")',
        ]),
        'totp_input': ', '.join([
            'input[name*="otp"]',
            'input[name*="totp"]',
            'input[name*="code"]',
            'input[name*="token"]',
            'input[type="tel"][maxlength="6"]',
            'input[autocomplete="one-time-code"]',
        ]),
        'totp_submit': ', '.join([
            'button[type="submit"]',
            'input[type="submit"]',
            'button:has-text("Verify")',
            'button:has-text("Submit")',
        ]),
        'error': ', '.join(ERROR_SELECTORS),
    }

    def handle_mfa(self, session: BrowserSession, mfa: MfaConfig) -> None:
        """Fill a one time code for MFA types that are TOTP compatible but not known by the flow engine."""
        if mfa.totp_secret_env is None:
            logger.warning('generic: no totp secret configured for mfa type %s, skipping', mfa.type)
            return

        merged = self.selectors({
            'totp_input': mfa.totp_input_selector,
            'totp_submit': mfa.totp_submit_selector,
        })

        session.wait_for_visible(merged['totp_input'], timeout=TOTP_INPUT_TIMEOUT_MS)

        # a code about to expire might be rejected before it reaches the identity provider
        await_fresh_window()
        code = generate_code(mfa.totp_secret_env)
        session.fill(merged['totp_input'], code)
        session.click(merged['totp_submit'])

        logger.debug('generic: totp code submitted')


def create_generic_handler(selectors: Mapping[str, Optional[str]]) -> GenericIdpHandler:
    """Create a generic handler where `selectors` replaces the built in defaults."""
    return GenericIdpHandler(merge_selectors(GenericIdpHandler.__default_selectors__, selectors))


def get_generic_error_message(session: BrowserSession) -> Optional[str]:
    return detect_error_message(session, ERROR_SELECTORS)
