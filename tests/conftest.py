"""Shared test fixtures."""

from __future__ import annotations

import os

import pytest

from capacity.settings import Settings


@pytest.fixture(autouse=True)
def isolate_settings(tmp_path, monkeypatch):
    """Point the settings singleton at a temp file."""
    settings_file = tmp_path / "config" / "capacity" / "settings.json"
    monkeypatch.setattr(Settings, "_instance", Settings(settings_file))
    return settings_file


@pytest.fixture
def usage_tree(tmp_path):
    """Root with one file, one nested directory and one empty file.

    Layout::

        root/
          f          4096 bytes
          b/
            g        8192 bytes
            c/h      4096 bytes
          empty      0 bytes
    """
    root = tmp_path / "root"
    root.mkdir()
    (root / "f").write_bytes(os.urandom(4096))
    (root / "b" / "c").mkdir(parents=True)
    (root / "b" / "g").write_bytes(os.urandom(8192))
    (root / "b" / "c" / "h").write_bytes(os.urandom(4096))
    (root / "empty").touch()
    return root
