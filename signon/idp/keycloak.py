"""Keycloak identity provider handler.

Keycloak renders username and password on the same page, unless the realm uses the "username form" flow,
which is covered by the two step detection in `IdpHandler.fill_credentials`. After login a realm might require
the user to accept updated terms, which is accepted if the prompt is shown.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar, Optional

from . import PROMPT_TIMEOUT_MS, IdpHandler

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from signon.types import BrowserSession, Selectors

logger = logging.getLogger(__name__)


def is_keycloak_login_page(url: str) -> bool:
    url = url.lower()
    return 'keycloak' in url or '/auth/realms/' in url or ('/realms/' in url and '/protocol/openid-connect/' in url)


class KeycloakIdpHandler(IdpHandler):
    idp_type = 'keycloak'

    __default_selectors__: ClassVar[Selectors] = {
        'username': '#username, input[name="username"]',
        'password': '#password, input[name="password"]',
        'submit': '#kc-login, input[type="submit"]',
        'totp_input': '#otp, input[name="otp"], #totp',
        'totp_submit': '#kc-login, input[type="submit"]',
        'accept_terms': '#kc-accept',
        'error': '#input-error, .alert-error, .kc-feedback-text, #kc-error-message',
    }

    def handle_post_login_prompts(self, session: BrowserSession, selectors: Optional[Mapping[str, Optional[str]]] = None) -> None:
        merged = self.selectors(selectors)

        try:
            if not session.is_visible(merged['accept_terms'], timeout=PROMPT_TIMEOUT_MS):
                return
        except TimeoutError:
            # terms are only shown when the realm requires it
            return

        session.click(merged['accept_terms'])
        self._wait_for_dom(session)

        logger.debug('keycloak: accepted terms and conditions')
