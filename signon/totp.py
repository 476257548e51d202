"""Time based one time codes (TOTP) for identity providers that require MFA.

The shared secret is never part of any configuration, only the name of the environment variable that holds it.
The secret is normalized (all whitespace removed, upper cased) before it is handed to `pyotp`, so secrets copied
from an authenticator setup page in groups of four characters work as is.

Codes generated late in a time window risks expiring while they are submitted, `await_fresh_window` should be
called before generating a code that is going to be used right away.
"""
from __future__ import annotations

import logging
import re
from os import environ
from time import time
from typing import TYPE_CHECKING, Optional, Union

from gevent import sleep as gsleep
from pyotp import TOTP

from signon.exceptions import ConfigurationError, ConfigurationErrorKind, GenerationError

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping
    from datetime import datetime

logger = logging.getLogger(__name__)

TOTP_INTERVAL = 30
TOTP_DIGITS = 6


def _normalize_secret(secret: str) -> str:
    return re.sub(r'\s+', '', secret).upper()


def _lookup_secret(secret_env_name: str, env: Optional[Mapping[str, str]]) -> Optional[str]:
    if env is None:
        env = environ

    secret = env.get(secret_env_name, None)

    if secret is None or len(secret) < 1:
        return None

    return _normalize_secret(secret)


def _generate(secret: str, source: str, for_time: Optional[Union[datetime, int]]) -> str:
    try:
        if len(secret) < 1:
            message = 'secret is empty'
            raise ValueError(message)

        totp = TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL)
        code = totp.now() if for_time is None else totp.at(for_time)
    except Exception as e:
        logger.error('failed to generate totp code from %s: %s', source, str(e))  # noqa: TRY400
        message = f'Failed to generate TOTP code: {e!s}'
        raise GenerationError(
            message,
            remediation=f'Verify that {source} contains a valid base32 encoded TOTP secret',
        ) from e

    logger.debug('generated totp code from %s, length %d', source, len(code))

    return code


def generate_code(secret_env_name: str, env: Optional[Mapping[str, str]] = None, *, for_time: Optional[Union[datetime, int]] = None) -> str:
    """Generate the current code for the secret found in environment variable `secret_env_name`."""
    secret = _lookup_secret(secret_env_name, env)

    if secret is None:
        logger.error('totp secret environment variable %s is not set', secret_env_name)
        message = f'TOTP secret environment variable "{secret_env_name}" is not set'
        raise ConfigurationError(
            message,
            ConfigurationErrorKind.MISSING_SECRET,
            remediation=f'Set the {secret_env_name} environment variable with your TOTP secret',
        )

    return _generate(secret, secret_env_name, for_time)


def generate_code_from_secret(secret: str, *, for_time: Optional[Union[datetime, int]] = None) -> str:
    """Generate the current code for a secret that is not read from the environment, e.g. from a file."""
    return _generate(_normalize_secret(secret), 'the secret', for_time)


generate_totp_code = generate_code


def verify_code(code: str, secret_env_name: str, env: Optional[Mapping[str, str]] = None, *, for_time: Optional[Union[datetime, int]] = None) -> bool:
    """Verify `code` against the secret in `secret_env_name`, any problem with the secret means the code is not valid."""
    secret = _lookup_secret(secret_env_name, env)

    if secret is None or len(secret) < 1:
        return False

    try:
        totp = TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL)

        if for_time is None:
            return totp.verify(code)

        return totp.verify(code, for_time=for_time)
    except Exception:
        logger.debug('failed to verify totp code with secret from %s', secret_env_name)
        return False


def seconds_until_next_window() -> int:
    """Number of seconds left of the current code window."""
    now = int(time())

    return TOTP_INTERVAL - (now % TOTP_INTERVAL)


def await_fresh_window(threshold_seconds: float = 5) -> bool:
    """Wait for the next code window if less than `threshold_seconds` is left of the current one.

    Returns `True` if it had to wait.
    """
    remaining = seconds_until_next_window()

    if remaining < threshold_seconds:
        logger.debug('waiting %d seconds for a fresh totp window, threshold is %d seconds', remaining + 1, threshold_seconds)
        gsleep(remaining + 1)
        return True

    return False


__all__ = [
    'TOTP_INTERVAL',
    'await_fresh_window',
    'generate_code',
    'generate_code_from_secret',
    'generate_totp_code',
    'seconds_until_next_window',
    'verify_code',
]
