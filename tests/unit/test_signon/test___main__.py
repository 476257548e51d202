"""Tests for signon.__main__."""
from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from signon import __version__
from signon.__main__ import _create_parser, _parse_arguments, main
from signon.exceptions import ConfigurationError, ConfigurationErrorKind

if TYPE_CHECKING:  # pragma: no cover
    from _pytest.capture import CaptureFixture

    from tests.fixtures import MockerFixture


def test__create_parser() -> None:
    parser = _create_parser()

    assert parser.prog == 'signon'
    assert parser.description is not None
    assert sorted([option_string for action in parser._actions for option_string in action.option_strings]) == sorted([
        '-h', '--help',
        '--version',
        '-v', '--verbose',
        '--log-file',
    ])

    subparsers = next(action for action in parser._actions if action.dest == 'command')
    assert list(subparsers.choices.keys()) == ['auth', 'states', 'credentials']

    states_parser = subparsers.choices['states']
    states_subparsers = next(action for action in states_parser._actions if action.dest == 'subcommand')
    assert list(states_subparsers.choices.keys()) == ['list', 'clear', 'cleanup']


def test__parse_arguments(capsys: CaptureFixture, mocker: MockerFixture) -> None:
    setup_logging_mock = mocker.patch('signon.__main__.setup_logging')

    with pytest.raises(SystemExit) as se:
        _parse_arguments(['--version'])
    assert se.value.code == 0
    assert capsys.readouterr().out == f'signon {__version__}\n'

    with pytest.raises(SystemExit) as se:
        _parse_arguments([])
    assert se.value.code == 2
    assert 'signon: error: no command specified' in capsys.readouterr().err

    with pytest.raises(SystemExit) as se:
        _parse_arguments(['states'])
    assert se.value.code == 2
    capture = capsys.readouterr()
    assert capture.err == 'signon: error: no subcommand for states specified\n'
    assert capture.out == ''

    setup_logging_mock.assert_not_called()

    arguments = _parse_arguments(['auth'])
    assert arguments.command == 'auth'
    setup_logging_mock.assert_called_once_with('WARNING', None)
    setup_logging_mock.reset_mock()

    arguments = _parse_arguments(['-v', '--log-file', 'signon.log', 'states', 'list'])
    assert arguments.command == 'states'
    assert arguments.subcommand == 'list'
    setup_logging_mock.assert_called_once_with('DEBUG', 'signon.log')


def test_main(capsys: CaptureFixture, mocker: MockerFixture) -> None:
    mocker.patch('signon.__main__.setup_logging')
    auth_mock = mocker.patch('signon.__main__.auth', return_value=0)
    states_mock = mocker.patch('signon.__main__.states', return_value=0)
    credentials_mock = mocker.patch('signon.__main__.credentials', return_value=1)

    assert main(['auth']) == 0
    auth_mock.assert_called_once()
    states_mock.assert_not_called()

    assert main(['states', 'cleanup']) == 0
    states_mock.assert_called_once()

    assert main(['credentials', 'admin']) == 1
    credentials_mock.assert_called_once()

    capsys.readouterr()

    auth_mock.side_effect = [ValueError('environment variable OTP_SECRET is not set')]
    assert main(['auth']) == 1
    assert capsys.readouterr().out == '\nenvironment variable OTP_SECRET is not set\n\n!! aborted signon\n'

    credentials_mock.side_effect = [ConfigurationError(
        'configuration file signon.yaml does not exist',
        ConfigurationErrorKind.INVALID_CONFIG,
        remediation='Check the path of the configuration file',
    )]
    assert main(['credentials']) == 1
    assert capsys.readouterr().out == (
        '\nconfiguration file signon.yaml does not exist\n'
        '-> Check the path of the configuration file\n'
        '\n!! aborted signon\n'
    )

    states_mock.side_effect = [KeyboardInterrupt]
    assert main(['states', 'list']) == 1
    assert capsys.readouterr().out == '\n\n!! aborted signon\n'


def test_main_verbose(capsys: CaptureFixture, mocker: MockerFixture) -> None:
    mocker.patch('signon.__main__.setup_logging')
    mocker.patch('signon.__main__.auth', side_effect=[ValueError('environment variable OTP_SECRET is not set')])

    assert main(['--verbose', 'auth']) == 1

    output = capsys.readouterr().out
    assert 'Traceback (most recent call last):' in output
    assert 'ValueError: environment variable OTP_SECRET is not set' in output
