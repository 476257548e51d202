"""Unit tests of signon.idp.keycloak."""
from __future__ import annotations

from signon.idp import KeycloakIdpHandler, is_keycloak_login_page
from signon.types import Credentials
from tests.helpers import FakeBrowserSession


def test_is_keycloak_login_page() -> None:
    assert is_keycloak_login_page('https://keycloak.example.com/')
    assert is_keycloak_login_page('https://sso.example.com/auth/realms/master/protocol/openid-connect/auth')
    assert is_keycloak_login_page('https://sso.example.com/realms/master/protocol/openid-connect/auth')
    assert not is_keycloak_login_page('https://sso.example.com/realms/master/account')


class TestKeycloakIdpHandler:
    def test_fill_credentials(self) -> None:
        session = FakeBrowserSession(visible={'#username', '#password', '#kc-login'})
        handler = KeycloakIdpHandler()

        handler.fill_credentials(session, Credentials('bob', 'secret'))
        handler.submit_form(session)

        selectors = KeycloakIdpHandler.__default_selectors__
        assert session.values == {selectors['username']: 'bob', selectors['password']: 'secret'}
        assert session.called('click') == [('click', selectors['submit'])]

    def test_handle_post_login_prompts(self) -> None:
        handler = KeycloakIdpHandler()

        session = FakeBrowserSession(visible={'#kc-accept'})
        handler.handle_post_login_prompts(session)
        assert session.called('click') == [('click', '#kc-accept')]
        assert session.called('wait_for_load_state') == [('wait_for_load_state', 'domcontentloaded', 5000)]

        session = FakeBrowserSession()
        handler.handle_post_login_prompts(session)
        assert session.called('click') == []
