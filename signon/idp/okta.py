"""Okta identity provider handler, supports both the classic sign-in widget and Okta Identity Engine."""
from __future__ import annotations

from typing import ClassVar

from signon.types import Selectors

from . import IdpHandler

OKTA_DOMAINS = ('.okta.com', '.oktapreview.com', '.okta-emea.com')


def is_okta_login_page(url: str) -> bool:
    url = url.lower()
    return any(domain in url for domain in OKTA_DOMAINS)


class OktaIdpHandler(IdpHandler):
    idp_type = 'okta'

    __default_selectors__: ClassVar[Selectors] = {
        'username': '#okta-signin-username, input[name="identifier"], input[name="username"]',
        'password': '#okta-signin-password, input[name="credentials.passcode"], input[name="password"]',
        'next': 'input[type="submit"][value="Next"], #okta-signin-submit',
        'submit': '#okta-signin-submit, input[type="submit"]',
        'totp_input': 'input[name="credentials.passcode"], input[name="answer"], input[name="passCode"]',
        'totp_submit': 'input[type="submit"][value="Verify"], input[type="submit"]',
        'error': '.okta-form-infobox-error, .o-form-error-container, .o-form-input-error',
    }
