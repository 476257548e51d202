"""Tests for signon.cli.credentials."""
from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from signon.__main__ import _parse_arguments
from signon.cli.credentials import credentials
from signon.exceptions import ConfigurationError

if TYPE_CHECKING:  # pragma: no cover
    from pathlib import Path

    from _pytest.capture import CaptureFixture

    from tests.fixtures import MockerFixture


CONFIGURATION = """auth:
  roles:
    admin:
      credentials_env:
        username: ADMIN_USER
        password: ADMIN_PASS
    reader:
      credentials_env:
        username: READER_USER
        password: READER_PASS
"""


@pytest.fixture
def configuration_file(tmp_path: Path) -> Path:
    path = tmp_path / 'signon.yaml'
    path.write_text(CONFIGURATION)

    return path


def test_credentials(capsys: CaptureFixture, mocker: MockerFixture, configuration_file: Path) -> None:
    mocker.patch.dict('os.environ', {
        'SIGNON_CONFIGURATION_FILE': str(configuration_file),
        'ADMIN_USER': 'admin',
        'ADMIN_PASS': 'admin-password',
        'READER_USER': 'reader',
    }, clear=True)

    arguments = _parse_arguments(['credentials', 'admin'])

    assert credentials(arguments) == 0
    assert capsys.readouterr().out == 'credentials available for admin\n'

    arguments = _parse_arguments(['credentials'])

    assert credentials(arguments) == 1
    assert capsys.readouterr().out.splitlines() == [
        'Missing credentials:',
        '  Role "reader":',
        '    - password: READER_PASS (Environment variable "READER_PASS" not set)',
        '',
        'To fix, set the required environment variables:',
        '  export READER_PASS="<value>"',
    ]

    arguments = _parse_arguments(['credentials', 'admin', 'writer'])

    assert credentials(arguments) == 1
    assert '    - Role "writer" not found in configuration' in capsys.readouterr().out.splitlines()


def test_credentials_configuration_file(capsys: CaptureFixture, mocker: MockerFixture, configuration_file: Path) -> None:
    mocker.patch.dict('os.environ', {'READER_USER': 'reader', 'READER_PASS': 'reader-password'}, clear=True)

    arguments = _parse_arguments(['credentials', 'reader', '-c', str(configuration_file)])

    assert credentials(arguments) == 0
    assert capsys.readouterr().out == 'credentials available for reader\n'

    arguments = _parse_arguments(['credentials', '-c', str(configuration_file.with_name('missing.yaml'))])

    with pytest.raises(ConfigurationError, match='does not exist'):
        credentials(arguments)


def test_credentials_no_roles(mocker: MockerFixture) -> None:
    mocker.patch.dict('os.environ', {}, clear=True)

    arguments = _parse_arguments(['credentials'])

    with pytest.raises(ValueError, match='no roles specified, and there are no roles in the configuration'):
        credentials(arguments)
