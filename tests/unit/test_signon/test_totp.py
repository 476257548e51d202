"""Unit tests of signon.totp."""
from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from pyotp import TOTP

from signon.exceptions import ConfigurationError, ConfigurationErrorKind, GenerationError
from signon.totp import (
    await_fresh_window,
    generate_code,
    generate_code_from_secret,
    generate_totp_code,
    seconds_until_next_window,
    verify_code,
)

if TYPE_CHECKING:  # pragma: no cover
    from tests.fixtures import MockerFixture

SECRET = 'JBSWY3DPEHPK3PXP'


class TestGenerateCode:
    def test_missing_secret(self) -> None:
        with pytest.raises(ConfigurationError, match='TOTP secret environment variable "TEST_TOTP" is not set') as re:
            generate_code('TEST_TOTP', {})

        assert re.value.kind == ConfigurationErrorKind.MISSING_SECRET
        assert re.value.remediation == 'Set the TEST_TOTP environment variable with your TOTP secret'

        with pytest.raises(ConfigurationError) as re:
            generate_code('TEST_TOTP', {'TEST_TOTP': ''})

        assert re.value.kind == ConfigurationErrorKind.MISSING_SECRET

    def test_invalid_secret(self) -> None:
        with pytest.raises(GenerationError, match='Failed to generate TOTP code') as re:
            generate_code('TEST_TOTP', {'TEST_TOTP': 'not-base32!'})

        assert re.value.remediation == 'Verify that TEST_TOTP contains a valid base32 encoded TOTP secret'
        assert SECRET not in str(re.value)

        with pytest.raises(GenerationError, match='secret is empty'):
            generate_code('TEST_TOTP', {'TEST_TOTP': '   \n '})

    def test_deterministic(self) -> None:
        env = {'TEST_TOTP': SECRET}

        code = generate_code('TEST_TOTP', env, for_time=1_700_000_000)

        assert len(code) == 6
        assert code.isdigit()
        assert code == TOTP(SECRET).at(1_700_000_000)
        assert generate_code('TEST_TOTP', env, for_time=1_700_000_000) == code
        assert generate_totp_code is generate_code

    def test_normalized_secret(self) -> None:
        expected = TOTP(SECRET).at(1_700_000_000)

        assert generate_code('TEST_TOTP', {'TEST_TOTP': 'jbsw y3dp\tehpk 3pxp\n'}, for_time=1_700_000_000) == expected
        assert generate_code_from_secret(' jbswy3dp ehpk3pxp ', for_time=1_700_000_000) == expected

    def test_from_environment(self, mocker: MockerFixture) -> None:
        mocker.patch.dict('os.environ', {'TEST_TOTP': SECRET})

        assert generate_code('TEST_TOTP') == TOTP(SECRET).now()


def test_verify_code() -> None:
    env = {'TEST_TOTP': SECRET}

    code = generate_code('TEST_TOTP', env)

    assert verify_code(code, 'TEST_TOTP', env)
    assert not verify_code('000000' if code != '000000' else '111111', 'TEST_TOTP', env)
    assert verify_code(TOTP(SECRET).at(1_700_000_000), 'TEST_TOTP', env, for_time=1_700_000_000)

    # never raises
    assert not verify_code(code, 'TEST_TOTP', {})
    assert not verify_code(code, 'TEST_TOTP', {'TEST_TOTP': 'not-base32!'})
    assert not verify_code(code, 'TEST_TOTP', {'TEST_TOTP': '  '})


@pytest.mark.parametrize(('now', 'expected'), [
    (30000.0, 30),
    (30001.5, 29),
    (30029.9, 1),
    (30015.0, 15),
])
def test_seconds_until_next_window(mocker: MockerFixture, now: float, expected: int) -> None:
    mocker.patch('signon.totp.time', return_value=now)

    assert seconds_until_next_window() == expected


class TestAwaitFreshWindow:
    def test_wait(self, mocker: MockerFixture) -> None:
        time_mock = mocker.patch('signon.totp.time', side_effect=[30027.0, 30031.0])
        gsleep_mock = mocker.patch('signon.totp.gsleep', return_value=None)

        assert await_fresh_window()

        gsleep_mock.assert_called_once_with(4)

        # a new window has started, with more than threshold seconds left
        assert seconds_until_next_window() > 5
        assert time_mock.call_count == 2

    def test_no_wait(self, mocker: MockerFixture) -> None:
        mocker.patch('signon.totp.time', return_value=30010.0)
        gsleep_mock = mocker.patch('signon.totp.gsleep', return_value=None)

        assert not await_fresh_window()
        gsleep_mock.assert_not_called()

        assert await_fresh_window(threshold_seconds=25)
        gsleep_mock.assert_called_once_with(21)

    def test_boundary(self, mocker: MockerFixture) -> None:
        mocker.patch('signon.totp.time', return_value=30025.0)
        gsleep_mock = mocker.patch('signon.totp.gsleep', return_value=None)

        # exactly threshold seconds left, is fresh enough
        assert not await_fresh_window(threshold_seconds=5)
        gsleep_mock.assert_not_called()
