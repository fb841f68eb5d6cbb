"""Tests for couchview publish."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from couchview.cli.main import app
from couchview.db.connection import CouchDBConnection

from conftest import FakeCouch

runner = CliRunner()

MODELS = '''
from couchview import Model, view_by


class Post(Model):
    views = (view_by("date"), view_by("user_id", "date"))
'''


@pytest.fixture
def models_module(tmp_path: Path, monkeypatch, request) -> str:
    name = f"publish_models_{request.node.name}".replace("[", "_").replace("]", "_").replace("-", "_")
    (tmp_path / f"{name}.py").write_text(MODELS, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.delenv("COUCHVIEW_URL", raising=False)
    monkeypatch.delenv("COUCHVIEW_DATABASE", raising=False)
    yield name
    sys.modules.pop(name, None)


@pytest.fixture
def opened(monkeypatch):
    """Replace the real server connection with a FakeCouch; record the arguments."""
    calls: list[tuple[str, str]] = []
    fake = FakeCouch()

    def _open(url: str, database: str) -> FakeCouch:
        calls.append((url, database))
        return fake

    monkeypatch.setattr(CouchDBConnection, "from_config", staticmethod(_open))
    return fake, calls


def test_publish_writes_design_document(models_module, opened, tmp_path) -> None:
    fake, calls = opened
    result = runner.invoke(
        app, ["publish", models_module, "--database", "blog", "--project-dir", str(tmp_path)]
    )
    assert result.exit_code == 0, result.output
    assert calls == [("http://localhost:5984/", "blog")]
    assert set(fake.design["_design/Post"]) == {"by_date", "by_user_id_and_date"}
    assert "_design/Post" in result.output
    assert "2 views" in result.output


def test_publish_uses_project_config(models_module, opened, tmp_path) -> None:
    _, calls = opened
    (tmp_path / "couchview.yaml").write_text(
        yaml.dump({"server": {"url": "http://db:5984/", "database": "blog"}}), encoding="utf-8"
    )
    result = runner.invoke(app, ["publish", models_module, "--project-dir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert calls == [("http://db:5984/", "blog")]


def test_publish_flags_override_config(models_module, opened, tmp_path) -> None:
    _, calls = opened
    (tmp_path / "couchview.yaml").write_text(
        yaml.dump({"server": {"url": "http://db:5984/", "database": "blog"}}), encoding="utf-8"
    )
    result = runner.invoke(
        app,
        ["publish", models_module, "--url", "http://other:5984/", "-d", "shop",
         "--project-dir", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    assert calls == [("http://other:5984/", "shop")]


def test_publish_without_database_exits_1(models_module, opened, tmp_path) -> None:
    result = runner.invoke(app, ["publish", models_module, "--project-dir", str(tmp_path)])
    assert result.exit_code == 1
    assert "No database" in result.output


def test_publish_conflict_raise_exits_1(models_module, opened, tmp_path) -> None:
    fake, _ = opened
    fake.design["_design/Post"] = {"by_old": {"map": "function(doc) {}"}}
    result = runner.invoke(
        app,
        ["publish", models_module, "-d", "blog", "--on-conflict", "raise",
         "--project-dir", str(tmp_path)],
    )
    assert result.exit_code == 1
    assert "differs" in result.output
    assert fake.design["_design/Post"] == {"by_old": {"map": "function(doc) {}"}}


def test_publish_conflict_overwrite(models_module, opened, tmp_path) -> None:
    fake, _ = opened
    fake.design["_design/Post"] = {"by_old": {"map": "function(doc) {}"}}
    result = runner.invoke(
        app, ["publish", models_module, "-d", "blog", "--project-dir", str(tmp_path)]
    )
    assert result.exit_code == 0, result.output
    assert "by_old" not in fake.design["_design/Post"]


def test_publish_invalid_policy_exits_1(models_module, opened, tmp_path) -> None:
    result = runner.invoke(
        app,
        ["publish", models_module, "-d", "blog", "--on-conflict", "merge",
         "--project-dir", str(tmp_path)],
    )
    assert result.exit_code == 1
    assert "overwrite" in result.output


def test_publish_bad_config_exits_1(models_module, opened, tmp_path) -> None:
    (tmp_path / "couchview.yaml").write_text(
        yaml.dump({"server": {"password": "hunter2"}}), encoding="utf-8"
    )
    result = runner.invoke(app, ["publish", models_module, "--project-dir", str(tmp_path)])
    assert result.exit_code == 1
    assert "forbidden" in result.output


def test_publish_store_unreachable_exits_1(models_module, monkeypatch, tmp_path) -> None:
    def _refuse(url: str, database: str):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(CouchDBConnection, "from_config", staticmethod(_refuse))
    result = runner.invoke(
        app, ["publish", models_module, "-d", "blog", "--project-dir", str(tmp_path)]
    )
    assert result.exit_code == 1
    assert "failed" in result.output
