"""Sub commands of the `signon` command line tool, each module registers its own parser."""
from __future__ import annotations

import sys
from argparse import ArgumentParser as CoreArgumentParser
from argparse import _SubParsersAction
from typing import Any, Callable, ClassVar, Optional

ArgumentSubParser = _SubParsersAction


class ArgumentParser(CoreArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)

        self._optionals.title = 'optional arguments'

    def error_no_help(self, message: str) -> None:
        sys.stderr.write(f'{self.prog}: error: {message}\n')
        sys.exit(2)


class register_parser:  # noqa: N801
    registered: ClassVar[list[Callable[[ArgumentSubParser], None]]] = []
    order: Optional[int]

    def __init__(self, order: Optional[int] = None) -> None:
        self.order = order

    def __call__(self, func: Callable[[ArgumentSubParser], None]) -> Callable[[ArgumentSubParser], None]:
        if self.order is not None:
            self.registered.insert(self.order - 1, func)
        else:
            self.registered.append(func)

        return func


__all__ = [
    'ArgumentParser',
    'ArgumentSubParser',
    'register_parser',
]
