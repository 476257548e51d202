"""Persist the session state (cookies and local storage) of a signed in browser session, per role.

A stored session state is reused as long as it is younger than `StorageOptions.max_age_minutes`. Files are never
deleted because they are too old to be reused, that is done by `cleanup_expired_storage_states`, that removes
any state file older than 24 hours and should run once per test suite invocation, before any role is validated.

Nothing is cached in memory, every query stats and reads the file again. Concurrent writes for the same role
are not serialized, the last writer wins.

File format, one file per role:

```json
{
    "cookies": [{"name": "...", "value": "...", "domain": "..."}],
    "origins": [{"origin": "https://app.example.com", "localStorage": [{"name": "auth_token", "value": "..."}]}]
}
```

Role names (and environment names) are restricted to letters, digits, `_` and `-`, so that a file name can be
mapped back to a role without ambiguity.
"""
from __future__ import annotations

import json
import logging
import re
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from os import replace
from pathlib import Path
from time import time
from typing import TYPE_CHECKING, Any, Optional, Union

from signon.exceptions import ConfigurationError, ConfigurationErrorKind, StorageStateError, StorageStateErrorKind

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from signon.types import BrowserSession, StorageState


logger = logging.getLogger(__name__)

CLEANUP_MAX_AGE_MS = 24 * 60 * 60 * 1000

NAME_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

PLACEHOLDER_PATTERN = re.compile(r'(\{role\}|\{env\})')


@dataclass(frozen=True)
class StorageOptions:
    directory: str = '.auth-states'
    max_age_minutes: float = 60
    file_pattern: str = '{role}.json'
    project_root: Optional[Path] = None
    environment: Optional[str] = None

    @property
    def base_dir(self) -> Path:
        project_root = self.project_root if self.project_root is not None else Path.cwd()

        return Path(project_root) / self.directory

    @property
    def max_age_ms(self) -> float:
        return self.max_age_minutes * 60 * 1000

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StorageOptions:
        try:
            project_root = data.get('project_root', None)

            return cls(
                directory=str(data.get('directory', cls.directory)),
                max_age_minutes=float(data.get('max_age_minutes', cls.max_age_minutes)),
                file_pattern=str(data.get('file_pattern', cls.file_pattern)),
                project_root=Path(project_root) if project_root is not None else None,
                environment=data.get('environment', None),
            )
        except (TypeError, ValueError) as e:
            message = f'invalid storage configuration: {e!s}'
            raise ConfigurationError(message, ConfigurationErrorKind.INVALID_CONFIG) from e


@dataclass(frozen=True)
class StorageStateMetadata:
    role: str
    created_at: datetime
    path: Path
    is_valid: bool


@dataclass
class CleanupResult:
    deleted_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_files)


def _resolve(options: Optional[StorageOptions]) -> StorageOptions:
    return options if options is not None else StorageOptions()


def _age_ms(path: Path) -> float:
    return (time() - path.stat().st_mtime) * 1000


def get_storage_state_path(role: str, options: Optional[StorageOptions] = None) -> Path:
    """Path of the state file for `role`, `{role}` and `{env}` in the file pattern are replaced."""
    options = _resolve(options)
    environment = options.environment or 'default'

    for name, value in [('role', role), ('environment', environment)]:
        if NAME_PATTERN.match(value) is None:
            message = f'{name} "{value}" contains characters that are not allowed in a storage state file name'
            raise StorageStateError(
                message,
                role,
                options.file_pattern,
                StorageStateErrorKind.INVALID,
                remediation='Only use letters, digits, "_" and "-" in role and environment names',
            )

    file_name = options.file_pattern.replace('{role}', role).replace('{env}', environment)

    if not file_name.endswith('.json'):
        file_name = f'{file_name}.json'

    return options.base_dir / file_name


def get_role_from_path(path: Union[str, Path], pattern: str = '{role}.json', environment: Optional[str] = None) -> Optional[str]:
    """Map a state file name back to the role it belongs to, using the same pattern that created it.

    Without `environment`, any `{env}` part matches letters, digits and `_` only. A role name may contain `-`, so
    the environment is taken to be what follows the last `-`, and a file written for a hyphenated environment
    (`admin-eu-west.json`) is mapped to the wrong role (`admin-eu`). Pass `environment` to match it exactly.
    """
    if not pattern.endswith('.json'):
        pattern = f'{pattern}.json'

    regex: list[str] = []
    has_role = False

    for part in PLACEHOLDER_PATTERN.split(pattern):
        if part == '{role}':
            regex.append('(?P=role)' if has_role else '(?P<role>[A-Za-z0-9_-]+)')
            has_role = True
        elif part == '{env}':
            regex.append(re.escape(environment) if environment is not None else '[A-Za-z0-9_]+')
        else:
            regex.append(re.escape(part))

    if not has_role:
        return None

    match = re.fullmatch(''.join(regex), Path(path).name)

    if match is None:
        return None

    return match.group('role')


def save_storage_state(session: BrowserSession, role: str, options: Optional[StorageOptions] = None) -> Path:
    """Write the current state of `session` to the file of `role`, returns the absolute path of the file."""
    path = get_storage_state_path(role, options)
    # written first, so a reader never sees a half written file
    temporary_path = path.with_name(f'.{path.name}.tmp')

    try:
        state = session.serialize_state()

        if not isinstance(state.get('cookies', None), list) or not isinstance(state.get('origins', None), list):
            message = 'session state must contain lists "cookies" and "origins"'
            raise TypeError(message)

        path.parent.mkdir(parents=True, exist_ok=True)

        temporary_path.write_text(json.dumps(state, indent=2))
        replace(temporary_path, path)
    except Exception as e:
        logger.exception('failed to save storage state for %s to %s', role, path)
        with suppress(OSError):
            temporary_path.unlink(missing_ok=True)

        message = f'Failed to save storage state for role "{role}": {e!s}'
        raise StorageStateError(
            message,
            role,
            str(path),
            StorageStateErrorKind.INVALID,
            remediation='Verify that the storage state directory is writable',
        ) from e

    logger.info('saved storage state for %s to %s', role, path)

    return path.resolve()


def is_storage_state_valid(role: str, options: Optional[StorageOptions] = None) -> bool:
    """Check if there is a reusable state for `role`: not older than `max_age_minutes` and valid JSON."""
    options = _resolve(options)

    try:
        path = get_storage_state_path(role, options)
    except StorageStateError:
        return False

    if not path.exists():
        logger.debug('no storage state for %s at %s', role, path)
        return False

    try:
        age = _age_ms(path)

        if age > options.max_age_ms:
            logger.debug('storage state for %s is expired, %d ms old', role, age)
            return False

        json.loads(path.read_text())
    except (OSError, ValueError):
        logger.debug('storage state for %s at %s is not readable', role, path)
        return False

    return True


def load_storage_state(role: str, options: Optional[StorageOptions] = None) -> Optional[Path]:
    """Path to the state of `role` if it can be reused, otherwise `None`."""
    if not is_storage_state_valid(role, options):
        return None

    return get_storage_state_path(role, options)


def read_storage_state(role: str, options: Optional[StorageOptions] = None) -> StorageState:
    path = get_storage_state_path(role, options)

    try:
        content = path.read_text()
    except FileNotFoundError as e:
        message = f'Storage state for role "{role}" does not exist'
        raise StorageStateError(
            message,
            role,
            str(path),
            StorageStateErrorKind.MISSING,
            remediation=f'Run the authentication setup for role "{role}" first',
        ) from e

    try:
        state = json.loads(content)
    except ValueError as e:
        message = f'Storage state for role "{role}" is not valid JSON: {e!s}'
        raise StorageStateError(
            message,
            role,
            str(path),
            StorageStateErrorKind.CORRUPTED,
            remediation=f'Delete {path} and authenticate again',
        ) from e

    if not isinstance(state, dict) or not isinstance(state.get('cookies', None), list) or not isinstance(state.get('origins', None), list):
        message = f'Storage state for role "{role}" does not contain lists "cookies" and "origins"'
        raise StorageStateError(
            message,
            role,
            str(path),
            StorageStateErrorKind.INVALID,
            remediation=f'Delete {path} and authenticate again',
        )

    return state


def restore_storage_state(session: BrowserSession, role: str, options: Optional[StorageOptions] = None) -> None:
    """Push the stored state of `role` into `session`."""
    state = read_storage_state(role, options)
    session.restore_state(state)

    logger.debug('restored storage state for %s', role)


def get_storage_state_metadata(role: str, options: Optional[StorageOptions] = None) -> Optional[StorageStateMetadata]:
    options = _resolve(options)

    try:
        path = get_storage_state_path(role, options)
        stat = path.stat()
    except (StorageStateError, OSError):
        return None

    age = (time() - stat.st_mtime) * 1000

    return StorageStateMetadata(
        role=role,
        created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        path=path,
        is_valid=age <= options.max_age_ms,
    )


def clear_storage_state(role: Optional[str] = None, options: Optional[StorageOptions] = None) -> int:
    """Delete the state of `role`, or all states if no role is specified. Returns the number of deleted files."""
    options = _resolve(options)

    if role is not None:
        path = get_storage_state_path(role, options)

        try:
            path.unlink()
        except FileNotFoundError:
            return 0

        logger.info('cleared storage state for %s', role)

        return 1

    directory = options.base_dir

    if not directory.is_dir():
        return 0

    deleted = 0

    for path in sorted(directory.glob('*.json')):
        try:
            path.unlink()
            deleted += 1
        except FileNotFoundError:  # noqa: PERF203
            continue
        except OSError:
            logger.warning('failed to delete storage state %s', path, exc_info=True)

    logger.info('cleared %d storage states in %s', deleted, directory)

    return deleted


def cleanup_storage_states_older_than(max_age_ms: float, options: Optional[StorageOptions] = None) -> CleanupResult:
    options = _resolve(options)
    result = CleanupResult()
    directory = options.base_dir

    if not directory.is_dir():
        return result

    for path in sorted(directory.glob('*.json')):
        try:
            if not path.is_file() or _age_ms(path) <= max_age_ms:
                continue

            path.unlink()
            result.deleted_files.append(str(path))
        except OSError as e:  # noqa: PERF203
            logger.warning('failed to clean up storage state %s: %s', path, str(e))
            result.errors.append(f'{path}: {e!s}')

    if result.deleted_count > 0:
        logger.info('cleaned up %d storage states older than %d ms in %s', result.deleted_count, max_age_ms, directory)

    return result


def cleanup_expired_storage_states(options: Optional[StorageOptions] = None) -> CleanupResult:
    """Delete state files older than 24 hours, regardless of `max_age_minutes`."""
    return cleanup_storage_states_older_than(CLEANUP_MAX_AGE_MS, options)


def list_storage_states(options: Optional[StorageOptions] = None) -> list[StorageStateMetadata]:
    """Metadata for every state file whose name can be mapped back to a role.

    File names are matched with `options.environment` when it is set. If it is not set, states of environments
    with `-` in their name are listed with the wrong role, see `get_role_from_path`.
    """
    options = _resolve(options)
    directory = options.base_dir

    if not directory.is_dir():
        return []

    states: list[StorageStateMetadata] = []

    for path in sorted(directory.glob('*.json')):
        role = get_role_from_path(path, options.file_pattern, options.environment)

        if role is None:
            continue

        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue

        states.append(StorageStateMetadata(
            role=role,
            created_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
            path=path,
            is_valid=(time() - mtime) * 1000 <= options.max_age_ms,
        ))

    return states


__all__ = [
    'CLEANUP_MAX_AGE_MS',
    'CleanupResult',
    'StorageOptions',
    'StorageStateMetadata',
    'cleanup_expired_storage_states',
    'cleanup_storage_states_older_than',
    'clear_storage_state',
    'get_role_from_path',
    'get_storage_state_metadata',
    'get_storage_state_path',
    'is_storage_state_valid',
    'list_storage_states',
    'load_storage_state',
    'read_storage_state',
    'restore_storage_state',
    'save_storage_state',
]
