"""Main entrypoint for the signon command line tool."""
from __future__ import annotations

import argparse
from traceback import format_exc
from typing import Optional

from signon import __version__
from signon.cli import ArgumentParser, register_parser
from signon.cli.auth import auth
from signon.cli.credentials import credentials
from signon.cli.states import states
from signon.exceptions import SignonError
from signon.log import setup_logging


def _create_parser() -> ArgumentParser:
    parser = ArgumentParser(
        description=(
            'command line tool for signon, generate TOTP codes, check credentials and manage stored session states.'
        ),
    )

    if parser.prog != 'signon':
        parser.prog = 'signon'

    parser.add_argument(
        '--version',
        action='store_true',
        default=False,
        help='print version of signon, and exit',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        default=False,
        help='log debug messages, and print tracebacks',
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=None,
        required=False,
        help='also write log messages to this file',
    )

    sub_parser = parser.add_subparsers(dest='command')

    for create_parser in register_parser.registered:
        create_parser(sub_parser)

    return parser


def _parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = _create_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f'signon {__version__}')
        raise SystemExit(0)

    if args.command is None:
        parser.error('no command specified')

    if args.command == 'states' and getattr(args, 'subcommand', None) is None:
        parser.error_no_help(f'no subcommand for {args.command} specified')

    setup_logging('DEBUG' if args.verbose else 'WARNING', args.log_file)

    return args


def main(argv: Optional[list[str]] = None) -> int:
    args: Optional[argparse.Namespace] = None

    try:
        args = _parse_arguments(argv)

        if args.command == 'auth':
            rc = auth(args)
        elif args.command == 'states':
            rc = states(args)
        elif args.command == 'credentials':
            rc = credentials(args)
        else:
            message = f'unknown command {args.command}'
            raise ValueError(message)
    except (KeyboardInterrupt, ValueError, SignonError) as e:
        print()
        if not isinstance(e, KeyboardInterrupt):
            exception = format_exc() if args is not None and getattr(args, 'verbose', False) else str(e)

            print(exception)

            remediation = getattr(e, 'remediation', None)
            if remediation is not None:
                print(f'-> {remediation}')

        print('\n!! aborted signon')
        return 1
    else:
        return rc


if __name__ == '__main__':  # pragma: no cover
    raise SystemExit(main())
