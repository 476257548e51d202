"""Core logic for handling different identity providers (IdP) login pages.

Each identity provider is a subclass of `IdpHandler`, with a table of default element selectors that reflects the
known DOM of that provider's login page. Selectors from the provider configuration always takes precedence over
the defaults, key by key, and the two layers are merged where they are used.

Register custom handlers with `register_idp_handler`, or refer to them by their full dotted class path as
`idp_type` (e.g. `my_project.auth.CustomIdpHandler`).
"""
from __future__ import annotations

import logging
from abc import ABCMeta
from importlib import import_module
from typing import TYPE_CHECKING, ClassVar, Optional, cast

from signon.exceptions import ConfigurationError, ConfigurationErrorKind

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable, Mapping

    from signon.config import MfaConfig
    from signon.types import BrowserSession, Credentials, Selectors


logger = logging.getLogger(__name__)

USERNAME_TIMEOUT_MS = 10000
PASSWORD_TIMEOUT_MS = 10000
LOAD_STATE_TIMEOUT_MS = 5000
PROMPT_TIMEOUT_MS = 3000
ERROR_PROBE_TIMEOUT_MS = 500


def merge_selectors(defaults: Mapping[str, str], overrides: Optional[Mapping[str, Optional[str]]] = None) -> Selectors:
    """Merge selector overrides on top of defaults, key by key. An override without value does not remove a default."""
    merged = dict(defaults)

    if overrides is not None:
        merged.update({key: value for key, value in overrides.items() if value is not None})

    return merged


def detect_error_message(session: BrowserSession, selectors: Iterable[str]) -> Optional[str]:
    """Return the text of the first visible error indicator, if any."""
    for selector in selectors:
        try:
            if session.is_visible(selector, timeout=ERROR_PROBE_TIMEOUT_MS):
                text = session.text_content(selector)
                if text is not None:
                    return text.strip()
        except Exception:  # noqa: PERF203
            # element might be detached while probing, try the next one
            logger.debug('failed to probe error selector %s', selector)

    return None


class IdpHandler(metaclass=ABCMeta):
    """Base class for identity provider login pages.

    Subclasses sets `idp_type` and `__default_selectors__`, and overrides behaviour where the provider has quirks.
    Known selector keys are `username`, `password`, `submit`, `next`, `totp_input`, `totp_submit`,
    `stay_signed_in_no` and `error`.
    """

    idp_type: ClassVar[str]
    __default_selectors__: ClassVar[Selectors] = {}

    _selectors: Selectors

    def __init__(self, selectors: Optional[Mapping[str, Optional[str]]] = None) -> None:
        self._selectors = merge_selectors(self.__default_selectors__, selectors)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(idp_type={self.idp_type!r})'

    def get_default_selectors(self) -> Selectors:
        return dict(self._selectors)

    def selectors(self, overrides: Optional[Mapping[str, Optional[str]]] = None) -> Selectors:
        return merge_selectors(self._selectors, overrides)

    def fill_credentials(self, session: BrowserSession, credentials: Credentials, selectors: Optional[Mapping[str, Optional[str]]] = None) -> None:
        """Fill username, and password.

        If the password field is not visible together with the username field, it is assumed to be a two step
        login page, where the username has to be submitted before the password field is shown.
        """
        merged = self.selectors(selectors)
        username_selector = merged['username']
        password_selector = merged['password']

        session.wait_for_visible(username_selector, timeout=USERNAME_TIMEOUT_MS)
        session.fill(username_selector, credentials.username)

        if session.is_visible(password_selector):
            session.fill(password_selector, credentials.password)
            logger.debug('%s: filled username and password', self.idp_type)
            return

        logger.debug('%s: password field not visible, submitting username first', self.idp_type)

        session.click(merged.get('next', merged['submit']))
        self._wait_for_dom(session)

        session.wait_for_visible(password_selector, timeout=PASSWORD_TIMEOUT_MS)
        session.fill(password_selector, credentials.password)
        logger.debug('%s: filled username and password in two steps', self.idp_type)

    def submit_form(self, session: BrowserSession, selectors: Optional[Mapping[str, Optional[str]]] = None) -> None:
        merged = self.selectors(selectors)

        session.click(merged['submit'])
        self._wait_for_dom(session)

        logger.debug('%s: login form submitted', self.idp_type)

    def prepare_totp(self, session: BrowserSession, selectors: Optional[Mapping[str, Optional[str]]] = None) -> None:
        """Make sure the TOTP input is the one presented, before the code is generated."""

    def handle_mfa(self, session: BrowserSession, mfa: MfaConfig) -> None:
        """Handle MFA types that the flow engine does not know about."""
        logger.debug('%s: no handling of mfa type %s', self.idp_type, mfa.type)

    def handle_post_login_prompts(self, session: BrowserSession, selectors: Optional[Mapping[str, Optional[str]]] = None) -> None:
        logger.debug('%s: no post login prompts to handle', self.idp_type)

    def _wait_for_dom(self, session: BrowserSession) -> None:
        try:
            session.wait_for_load_state('domcontentloaded', timeout=LOAD_STATE_TIMEOUT_MS)
        except TimeoutError:
            # single page applications does not always navigate after submit
            logger.debug('%s: no navigation after submit', self.idp_type)


from .azure_ad import AzureAdIdpHandler, is_azure_ad_login_page
from .generic import ERROR_SELECTORS, GenericIdpHandler, create_generic_handler, get_generic_error_message
from .keycloak import KeycloakIdpHandler, is_keycloak_login_page
from .okta import OktaIdpHandler, is_okta_login_page

IDP_HANDLERS: dict[str, type[IdpHandler]] = {
    'generic': GenericIdpHandler,
    'azure-ad': AzureAdIdpHandler,
    'keycloak': KeycloakIdpHandler,
    'okta': OktaIdpHandler,
    'auth0': GenericIdpHandler,
}


def register_idp_handler(idp_type: str, handler_class: type[IdpHandler]) -> None:
    if not issubclass(handler_class, IdpHandler):
        message = f'{handler_class.__name__} is not a subclass of {IdpHandler.__module__}.{IdpHandler.__name__}'
        raise ConfigurationError(message, ConfigurationErrorKind.INVALID_CONFIG)

    IDP_HANDLERS.update({idp_type: handler_class})


def _load_idp_handler_class(value: str) -> type[IdpHandler]:
    module_name, class_name = value.rsplit('.', 1)

    try:
        module = import_module(module_name)
        handler_class = getattr(module, class_name)
    except (ImportError, AttributeError) as e:
        message = f'could not load IdP handler {value}: {e!s}'
        raise ConfigurationError(
            message,
            ConfigurationErrorKind.INVALID_CONFIG,
            remediation='Verify that idp_type refers to an importable IdpHandler class',
        ) from e

    if not isinstance(handler_class, type) or not issubclass(handler_class, IdpHandler):
        message = f'{value} is not a subclass of {IdpHandler.__module__}.{IdpHandler.__name__}'
        raise ConfigurationError(message, ConfigurationErrorKind.INVALID_CONFIG)

    return cast('type[IdpHandler]', handler_class)


def get_idp_handler(idp_type: Optional[str], selectors: Optional[Mapping[str, Optional[str]]] = None) -> IdpHandler:
    """Create the handler for `idp_type`, unknown types gets the generic handler."""
    if idp_type is not None and '.' in idp_type:
        return _load_idp_handler_class(idp_type)(selectors)

    handler_class = IDP_HANDLERS.get(idp_type or 'generic', None)

    if handler_class is None:
        logger.debug('no handler registered for idp type %s, using generic', idp_type)
        handler_class = GenericIdpHandler

    return handler_class(selectors)


def detect_idp_type(url: str) -> str:
    """Guess the identity provider based on known domain fragments in `url`."""
    url = url.lower()

    if is_keycloak_login_page(url):
        return 'keycloak'

    if is_azure_ad_login_page(url):
        return 'azure-ad'

    if is_okta_login_page(url):
        return 'okta'

    if 'auth0.com' in url:
        return 'auth0'

    return 'generic'


__all__ = [
    'ERROR_SELECTORS',
    'IDP_HANDLERS',
    'AzureAdIdpHandler',
    'GenericIdpHandler',
    'IdpHandler',
    'KeycloakIdpHandler',
    'OktaIdpHandler',
    'create_generic_handler',
    'detect_error_message',
    'detect_idp_type',
    'get_generic_error_message',
    'get_idp_handler',
    'is_azure_ad_login_page',
    'is_keycloak_login_page',
    'is_okta_login_page',
    'merge_selectors',
    'register_idp_handler',
]
