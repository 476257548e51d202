"""Functionality for `signon states ...`, inspect and clean up stored session states."""
from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from signon.cli import register_parser
from signon.config import load_auth_config
from signon.storage import (
    cleanup_expired_storage_states,
    cleanup_storage_states_older_than,
    clear_storage_state,
    list_storage_states,
)

if TYPE_CHECKING:  # pragma: no cover
    from argparse import ArgumentParser
    from argparse import Namespace as Arguments

    from signon.cli import ArgumentSubParser
    from signon.storage import StorageOptions


def _add_storage_arguments(parser: ArgumentParser) -> None:
    parser.add_argument(
        '-c', '--configuration-file',
        type=str,
        default=None,
        required=False,
        help='configuration file with storage options in auth.storage, defaults to environment variable SIGNON_CONFIGURATION_FILE',
    )
    parser.add_argument(
        '--directory',
        type=str,
        default=None,
        required=False,
        help='directory where session states are stored, relative to current working directory',
    )
    parser.add_argument(
        '--max-age',
        type=float,
        default=None,
        required=False,
        help='number of minutes a session state can be reused',
    )
    parser.add_argument(
        '--pattern',
        type=str,
        default=None,
        required=False,
        help='file name pattern of session states, e.g. `{role}-{env}.json`',
    )
    parser.add_argument(
        '--environment',
        type=str,
        default=None,
        required=False,
        help='environment name, replaces `{env}` in the file name pattern',
    )


@register_parser(order=2)
def create_parser(sub_parser: ArgumentSubParser) -> None:
    # signon states
    states_parser = sub_parser.add_parser('states', description='inspect and clean up stored session states')

    if states_parser.prog != 'signon states':  # pragma: no cover
        states_parser.prog = 'signon states'

    states_sub_parser = states_parser.add_subparsers(dest='subcommand')

    # signon states list
    list_parser = states_sub_parser.add_parser('list', description='list stored session states')
    _add_storage_arguments(list_parser)

    # signon states clear
    clear_parser = states_sub_parser.add_parser('clear', description='delete stored session states')
    clear_parser.add_argument(
        'role',
        nargs='?',
        type=str,
        default=None,
        help='only delete the session state of this role, nothing specified means all session states',
    )
    _add_storage_arguments(clear_parser)

    # signon states cleanup
    cleanup_parser = states_sub_parser.add_parser('cleanup', description='delete session states older than 24 hours, or a specified age')
    cleanup_parser.add_argument(
        '--older-than',
        type=float,
        default=None,
        required=False,
        help='delete session states older than this number of minutes',
    )
    _add_storage_arguments(cleanup_parser)

    for parser in [list_parser, clear_parser, cleanup_parser]:
        if not parser.prog.startswith('signon states'):  # pragma: no cover
            parser.prog = f'signon states {parser.prog.rsplit(" ", 1)[-1]}'


def get_storage_options(args: Arguments) -> StorageOptions:
    """Storage options from the configuration file, with command line arguments taking precedence."""
    options = load_auth_config(args.configuration_file).storage
    overrides = {
        key: value for key, value in {
            'directory': args.directory,
            'max_age_minutes': args.max_age,
            'file_pattern': args.pattern,
            'environment': args.environment,
        }.items() if value is not None
    }

    return replace(options, **overrides)


def states_list(args: Arguments) -> int:
    options = get_storage_options(args)
    states = list_storage_states(options)

    if len(states) < 1:
        print(f'no session states in {options.base_dir}')
        return 0

    rows = [('role', 'created', 'valid', 'path')] + [
        (state.role, state.created_at.isoformat(timespec='seconds'), 'yes' if state.is_valid else 'no', str(state.path))
        for state in states
    ]
    widths = [max(len(row[index]) for row in rows) for index in range(3)]

    for role, created, valid, path in rows:
        print(f'{role.ljust(widths[0])}  {created.ljust(widths[1])}  {valid.ljust(widths[2])}  {path}')

    return 0


def states_clear(args: Arguments) -> int:
    options = get_storage_options(args)
    deleted = clear_storage_state(args.role, options)

    print(f'deleted {deleted} session state(s) in {options.base_dir}')

    return 0


def states_cleanup(args: Arguments) -> int:
    options = get_storage_options(args)

    if args.older_than is not None:
        result = cleanup_storage_states_older_than(args.older_than * 60 * 1000, options)
    else:
        result = cleanup_expired_storage_states(options)

    for deleted_file in result.deleted_files:
        print(f'deleted {deleted_file}')

    for error in result.errors:
        print(f'!! {error}')

    print(f'deleted {result.deleted_count} session state(s) in {options.base_dir}')

    return 1 if len(result.errors) > 0 else 0


def states(args: Arguments) -> int:
    if args.subcommand == 'list':
        return states_list(args)

    if args.subcommand == 'clear':
        return states_clear(args)

    if args.subcommand == 'cleanup':
        return states_cleanup(args)

    message = f'unknown subcommand {args.subcommand}'
    raise ValueError(message)
