"""Configuration of pytest, for command line tests."""
from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:  # pragma: no cover
    from tests.fixtures import MockerFixture


@pytest.fixture(autouse=True)
def _no_logging_setup(mocker: MockerFixture) -> None:
    # parsing arguments would otherwise replace the handlers of the signon logger
    mocker.patch('signon.__main__.setup_logging')
