"""Configuration of pytest."""
from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from .fixtures import OidcFixture, StorageFixture

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Generator

    from _pytest.tmpdir import TempPathFactory


def _storage_fixture(tmp_path_factory: TempPathFactory) -> Generator[StorageFixture, None, None]:
    with StorageFixture(tmp_path_factory) as fixture:
        yield fixture


def _oidc_fixture() -> Generator[OidcFixture, None, None]:
    yield OidcFixture()


storage_fixture = pytest.fixture()(_storage_fixture)
oidc_fixture = pytest.fixture()(_oidc_fixture)
