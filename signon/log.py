"""Logging configuration for the signon command line tool.

Library code only creates module level loggers, it is up to the application (or test suite) to configure
handlers. `setup_logging` is what the `signon` command uses.
"""
from __future__ import annotations

import logging
import logging.config
from re import sub
from socket import gethostname
from typing import Any, Optional, Union


def setup_logging(loglevel: Union[str, int], logfile: Optional[str] = None) -> None:
    if isinstance(loglevel, str):
        loglevel = loglevel.upper()

    hostname = sub(r'\..*', '', gethostname())

    config: dict[str, Any] = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'default': {
                'format': f'[%(asctime)s] {hostname}/%(levelname)s/%(name)s: %(message)s',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
                'stream': 'ext://sys.stderr',
            },
        },
        'loggers': {
            'signon': {
                'handlers': ['console'],
                'level': loglevel,
                'propagate': False,
            },
        },
        'root': {
            'handlers': ['console'],
            'level': 'WARNING',
        },
    }

    if logfile:
        # if a file has been specified, signon and root loggers should log to it as well
        config['handlers']['file'] = {
            'class': 'logging.FileHandler',
            'filename': logfile,
            'formatter': 'default',
        }
        config['loggers']['signon']['handlers'] = ['file', 'console']
        config['root']['handlers'] = ['file', 'console']

    logging.config.dictConfig(config)
