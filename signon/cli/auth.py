"""Functionality for `signon auth ...`."""
from __future__ import annotations

import sys
from os import environ
from pathlib import Path
from typing import TYPE_CHECKING

from signon.cli import register_parser
from signon.exceptions import GenerationError
from signon.totp import generate_code_from_secret, seconds_until_next_window

if TYPE_CHECKING:  # pragma: no cover
    from argparse import Namespace as Arguments

    from signon.cli import ArgumentSubParser


@register_parser(order=1)
def create_parser(sub_parser: ArgumentSubParser) -> None:
    # signon auth
    auth_parser = sub_parser.add_parser('auth', description='print the current TOTP code for a secret')

    auth_parser.add_argument(
        'input',
        nargs='?',
        type=str,
        default=None,
        const=None,
        help=('where to read OTP secret, nothing specified means environment variable OTP_SECRET, `-` means stdin and anything else is considered a file'),
    )
    auth_parser.add_argument(
        '--remaining',
        action='store_true',
        default=False,
        required=False,
        help='also print the number of seconds the code is valid',
    )

    if auth_parser.prog != 'signon auth':  # pragma: no cover
        auth_parser.prog = 'signon auth'


def _read_secret(args: Arguments) -> str:
    if args.input is None:
        secret = environ.get('OTP_SECRET', None)
        if secret is None or len(secret.strip()) < 1:
            message = 'environment variable OTP_SECRET is not set'
            raise ValueError(message)

        return secret

    if args.input == '-':
        secret = sys.stdin.read().strip()

        if len(secret) < 1:
            message = 'OTP secret could not be read from stdin'
            raise ValueError(message)

        return secret

    input_file = Path(args.input)

    if not input_file.exists():
        message = f'file {input_file.as_posix()} does not exist'
        raise ValueError(message)

    secret = input_file.read_text().strip()

    if len(secret.split('\n')) > 1 or secret == '':
        message = f'file {input_file.as_posix()} does not seem to contain a single line with a valid OTP secret'
        raise ValueError(message)

    return secret


def auth(args: Arguments) -> int:
    secret = _read_secret(args)

    try:
        code = generate_code_from_secret(secret)
    except GenerationError as e:
        message = f'unable to generate TOTP code: {e!s}'
        raise ValueError(message) from e

    if args.remaining:
        print(f'{code} ({seconds_until_next_window()}s)')
    else:
        print(code)

    return 0
