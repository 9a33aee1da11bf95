# tests/cli/test_cli.py
import json

import httpx
import pytest
from typer.testing import CliRunner

from evalhub.cli.main import app

runner = CliRunner()

SEED_YAML = """
users:
  - name: Alice
    email: alice@example.com
  - name: Bob
    email: bob@example.com
workspaces:
  - name: Acme
    members:
      - email: alice@example.com
        role: owner
      - email: bob@example.com
    projects:
      - name: Chatbot
      - name: Search
"""


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


def test_db_init_and_seed_is_idempotent(tmp_path, db_url):
    result = runner.invoke(app, ["db", "init", "--database-url", db_url])
    assert result.exit_code == 0, result.output
    assert "Created" in result.output

    seed_file = tmp_path / "seed.yaml"
    seed_file.write_text(SEED_YAML)

    first = runner.invoke(app, ["db", "seed", "-i", str(seed_file), "--database-url", db_url])
    assert first.exit_code == 0, first.output
    assert "2 users, 1 workspaces, 2 members, 2 projects" in first.output

    second = runner.invoke(app, ["db", "seed", "-i", str(seed_file), "--database-url", db_url])
    assert second.exit_code == 0, second.output
    assert "0 users, 0 workspaces, 0 members, 0 projects" in second.output


def test_seed_unknown_member_fails(tmp_path, db_url):
    runner.invoke(app, ["db", "init", "--database-url", db_url])
    seed_file = tmp_path / "seed.yaml"
    seed_file.write_text(
        "workspaces:\n  - name: Acme\n    members:\n      - email: ghost@example.com\n"
    )

    result = runner.invoke(app, ["db", "seed", "-i", str(seed_file), "--database-url", db_url])
    assert result.exit_code == 1


def test_seed_invalid_yaml_shape(tmp_path, db_url):
    seed_file = tmp_path / "seed.yaml"
    seed_file.write_text("users:\n  - name: NoEmail\n")

    result = runner.invoke(app, ["db", "seed", "-i", str(seed_file), "--database-url", db_url])
    assert result.exit_code == 1


def test_upload_rejects_missing_and_unsupported_files(tmp_path):
    common = ["--api-url", "http://api", "--project", "p", "--dataset", "d"]

    result = runner.invoke(app, ["datapoints", "upload", str(tmp_path / "nope.json"), *common])
    assert result.exit_code == 1

    bad = tmp_path / "points.xlsx"
    bad.write_bytes(b"x")
    result = runner.invoke(app, ["datapoints", "upload", str(bad), *common])
    assert result.exit_code == 1


def test_upload_posts_each_file(tmp_path, monkeypatch):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, request.headers.get("authorization")))
        return httpx.Response(201, json={"inserted": 2, "datapoints": []})

    real_client = httpx.Client
    monkeypatch.setattr(
        httpx,
        "Client",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    files = []
    for name in ("a.jsonl", "b.json"):
        path = tmp_path / name
        path.write_text(json.dumps([{"data": 1}]))
        files.append(str(path))

    result = runner.invoke(
        app,
        [
            "datapoints",
            "upload",
            *files,
            "--api-url",
            "http://api/",
            "--project",
            "p1",
            "--dataset",
            "d1",
            "--token",
            "secret",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Uploaded 4 datapoints from 2 file(s)." in result.output
    assert seen == [("/projects/p1/datasets/d1/file-upload", "Bearer secret")] * 2


def test_upload_reports_server_errors(tmp_path, monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"detail": "Not a member of this project"})

    real_client = httpx.Client
    monkeypatch.setattr(
        httpx,
        "Client",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )

    path = tmp_path / "a.json"
    path.write_text("[]")
    result = runner.invoke(
        app,
        ["datapoints", "upload", str(path), "--api-url", "http://api", "--project", "p", "--dataset", "d"],
    )
    assert result.exit_code == 1
