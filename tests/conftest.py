from __future__ import annotations

from pathlib import Path

import pytest

from tests.support import write_self_signed


@pytest.fixture(scope="session")
def certificate_pair(tmp_path_factory: pytest.TempPathFactory) -> tuple[Path, Path]:
    """A real self-signed certificate and key, generated once per session."""

    return write_self_signed(tmp_path_factory.mktemp("tls"))
