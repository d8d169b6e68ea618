import logging
import os
import sys
from pathlib import Path

import pytest

from ccmusic.models.config import Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep CCMUSIC_* variables from the outer environment out of tests."""
    for key in list(os.environ):
        if key.startswith("CCMUSIC_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def logger():
    """Propagating logger so caplog sees every record."""
    log = logging.getLogger("tests.ccmusic")
    log.setLevel(logging.DEBUG)
    log.propagate = True
    return log


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        tools_dir=tmp_path / "ffmpeg",
        log_file=tmp_path / "latest.log",
        payload_release_grace=0,
    )


@pytest.fixture
def make_package(tmp_path: Path, monkeypatch):
    """Create an importable resource package, optionally holding files."""

    def _make(name: str, files: dict[str, bytes] | None = None) -> Path:
        root = tmp_path / "pkgs"
        package_dir = root / name
        package_dir.mkdir(parents=True)
        (package_dir / "__init__.py").write_text("")
        for filename, data in (files or {}).items():
            (package_dir / filename).write_bytes(data)
        monkeypatch.syspath_prepend(str(root))
        sys.modules.pop(name, None)
        return package_dir

    return _make
