"""Azure AD (Microsoft Entra ID) identity provider handler.

The Azure AD login page is a two step page, the password field is in the DOM but hidden until the username has
been submitted with the "Next" button. After a successful login the "Stay signed in?" prompt is shown, which is
dismissed by answering "No", so no persistent cookie ends up in the stored session state.

If the user has more than one MFA method registered, Azure AD might suggest another method (e.g. an authenticator
app push notification) than one time codes. `prepare_totp` will switch to "Use a verification code" in that case.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar, Optional

from . import PROMPT_TIMEOUT_MS, IdpHandler

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from signon.types import BrowserSession, Selectors

logger = logging.getLogger(__name__)

AZURE_AD_HOSTS = ('login.microsoftonline.com', 'login.live.com')


def is_azure_ad_login_page(url: str) -> bool:
    url = url.lower()
    return any(host in url for host in AZURE_AD_HOSTS)


class AzureAdIdpHandler(IdpHandler):
    idp_type = 'azure-ad'

    __default_selectors__: ClassVar[Selectors] = {
        'username': 'input[name="loginfmt"], input[type="email"]',
        'password': 'input[name="passwd"], input[type="password"]',
        'next': '#idSIButton9',
        'submit': '#idSIButton9, input[type="submit"]',
        'totp_input': 'input[name="otc"], #idTxtBx_SAOTCC_OTC',
        'totp_submit': '#idSubmit_SAOTCC_Continue, input[type="submit"]',
        'other_mfa_method': '#signInAnotherWay',
        'totp_mfa_method': 'div[data-value="PhoneAppOTP"]',
        'stay_signed_in_no': '#idBtn_Back',
        'error': '#usernameError, #passwordError, #idTD_Error, .alert-error',
    }

    def prepare_totp(self, session: BrowserSession, selectors: Optional[Mapping[str, Optional[str]]] = None) -> None:
        merged = self.selectors(selectors)

        try:
            if session.is_visible(merged['totp_input'], timeout=PROMPT_TIMEOUT_MS):
                return

            if not session.is_visible(merged['other_mfa_method'], timeout=PROMPT_TIMEOUT_MS):
                return
        except TimeoutError:
            # neither the code input or the alternative methods link, let the flow fail on the missing code input
            return

        logger.debug('azure-ad: switching mfa method to verification code')

        session.click(merged['other_mfa_method'])
        session.wait_for_visible(merged['totp_mfa_method'], timeout=PROMPT_TIMEOUT_MS)
        session.click(merged['totp_mfa_method'])
        self._wait_for_dom(session)

    def handle_post_login_prompts(self, session: BrowserSession, selectors: Optional[Mapping[str, Optional[str]]] = None) -> None:
        merged = self.selectors(selectors)
        stay_signed_in_no = merged['stay_signed_in_no']

        try:
            if not session.is_visible(stay_signed_in_no, timeout=PROMPT_TIMEOUT_MS):
                logger.debug('azure-ad: no "stay signed in?" prompt')
                return
        except TimeoutError:
            # the prompt is only shown for some tenants and users
            logger.debug('azure-ad: no "stay signed in?" prompt')
            return

        session.click(stay_signed_in_no)
        self._wait_for_dom(session)

        logger.debug('azure-ad: dismissed "stay signed in?" prompt')
