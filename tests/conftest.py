from __future__ import annotations

import importlib
import json
import sys

import pytest


@pytest.fixture
def load_settings(tmp_path, monkeypatch):
    """Import a fresh ``settings`` module backed by a temporary config.json."""

    def _load(config: dict):
        config.setdefault("storage", {}).setdefault("db_path", str(tmp_path / "channelwatch.db"))
        path = tmp_path / "config.json"
        path.write_text(json.dumps(config), encoding="utf-8")
        monkeypatch.setenv("CHANNELWATCH_CONFIG", str(path))
        monkeypatch.delitem(sys.modules, "settings", raising=False)
        monkeypatch.delitem(sys.modules, "app", raising=False)
        return importlib.import_module("settings")

    return _load
