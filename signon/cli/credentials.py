"""Functionality for `signon credentials ...`, check that credentials for roles are available before a test run."""
from __future__ import annotations

from typing import TYPE_CHECKING

from signon.cli import register_parser
from signon.config import format_missing_credentials_error, load_auth_config, validate_credentials

if TYPE_CHECKING:  # pragma: no cover
    from argparse import Namespace as Arguments

    from signon.cli import ArgumentSubParser


@register_parser(order=3)
def create_parser(sub_parser: ArgumentSubParser) -> None:
    # signon credentials
    credentials_parser = sub_parser.add_parser(
        'credentials',
        description='check that the environment variables with username and password are set for roles',
    )

    credentials_parser.add_argument(
        'roles',
        nargs='*',
        type=str,
        help='roles to check, nothing specified means all roles in the configuration file',
    )
    credentials_parser.add_argument(
        '-c', '--configuration-file',
        type=str,
        default=None,
        required=False,
        help='configuration file with roles in auth.roles, defaults to environment variable SIGNON_CONFIGURATION_FILE',
    )

    if credentials_parser.prog != 'signon credentials':  # pragma: no cover
        credentials_parser.prog = 'signon credentials'


def credentials(args: Arguments) -> int:
    auth_config = load_auth_config(args.configuration_file)
    roles = args.roles if len(args.roles) > 0 else list(auth_config.roles.keys())

    if len(roles) < 1:
        message = 'no roles specified, and there are no roles in the configuration'
        raise ValueError(message)

    missing = validate_credentials(roles, auth_config)

    if len(missing) > 0:
        print(format_missing_credentials_error(missing))
        return 1

    print(f'credentials available for {", ".join(roles)}')

    return 0
