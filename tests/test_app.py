from __future__ import annotations

import importlib
import logging

import pytest

from core.errors import FetchError, MarkError


@pytest.fixture
def app(load_settings, monkeypatch):
    load_settings({"sources": ["@ops"], "keywords": ["urgent"], "logging": {"enabled": False}})
    module = importlib.import_module("app")
    monkeypatch.setattr(module, "_print_banner", lambda: None)
    return module


@pytest.mark.parametrize(
    "command, target, error",
    [
        (["crawl"], "_crawl_once", FetchError("history(offset=0): FLOOD_WAIT")),
        (["notify"], "_notify_once", MarkError("mark delivered failed for 2 sent hits")),
    ],
)
def test_pipeline_error_exits_non_zero(app, monkeypatch, caplog, command, target, error) -> None:
    async def failing(*args) -> None:
        raise error

    monkeypatch.setattr(app, target, failing)

    with caplog.at_level(logging.ERROR, logger="app"):
        with pytest.raises(SystemExit) as excinfo:
            app.main(command)

    assert excinfo.value.code == 1
    assert f"{command[0]} failed" in caplog.text


def test_login_method_flag_is_forwarded(app, monkeypatch) -> None:
    methods: list[str] = []

    async def login(method: str) -> None:
        methods.append(method)

    monkeypatch.setattr(app, "_login", login)

    app.main(["login", "--method", "phone"])

    assert methods == ["phone"]
