from __future__ import annotations

import json
import logging
import textwrap

import pytest
from typer.testing import CliRunner

from recordmapper.main import app

runner = CliRunner()

BLOG_SCHEMAS = textwrap.dedent(
    """
    POST = {
        "className": "Post",
        "source": "posts",
        "keys": {
            "viewable": ["title", "author"],
            "actionable": ["title", "author"],
            "pointers": {"author": {"className": "User"}},
        },
    }

    BROKEN = {"className": "Post"}
    """
)


@pytest.fixture
def schema_module(tmp_path, monkeypatch):
    (tmp_path / "blog_schemas.py").write_text(BLOG_SCHEMAS, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    return "blog_schemas"


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def test_info_prints_effective_settings():
    result = runner.invoke(app, ["info"])

    assert result.exit_code == 0
    assert "schema=" in result.output
    assert "pool=" in result.output


def test_describe_prints_keys_joins_and_projection(schema_module):
    result = runner.invoke(app, ["describe", f"{schema_module}:POST", "--include", "title", "--include", "author.name"])

    assert result.exit_code == 0
    described = json.loads(result.stdout)
    assert described["className"] == "Post"
    assert described["source"] == "posts"
    assert described["keys"]["pointers"] == {"author": {"className": "User"}}
    assert described["joins"] == [{"className": "User", "alias": "author", "via": "author_id", "to": "id"}]
    assert described["view"] == {
        "title": "title",
        "id": "id",
        "created_at": "created_at",
        "updated_at": "updated_at",
        "author.name": "author.name",
    }


def test_describe_reports_compile_errors(schema_module):
    result = runner.invoke(app, ["describe", f"{schema_module}:BROKEN"])

    assert result.exit_code == 1
    assert "MissingConfiguration" in result.output


def test_describe_rejects_malformed_targets():
    result = runner.invoke(app, ["describe", "no-colon-here"])

    assert result.exit_code != 0


def test_describe_table_output(schema_module):
    result = runner.invoke(app, ["describe", f"{schema_module}:POST", "--table"])

    assert result.exit_code == 0
    assert "author ← User via author_id" in result.output
