"""Tests for the blogsync CLI."""

from pathlib import Path
from unittest.mock import patch

import pytest
from blogsync.broker import read_local
from blogsync.cli import app
from blogsync.errors import TransportError
from fakes import COLLECTION_URL, REMOTE_ROOT, FakeAtomPubClient, make_entry
from typer.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner(env={"NO_COLOR": "1", "FORCE_COLOR": None})


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        f"{REMOTE_ROOT}:\n"
        f"  local_root: {tmp_path / 'blogs'}\n"
        f"  username: alice\n"
        f"  password: secret\n"
        f"  collection_url: {COLLECTION_URL}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def client():
    fake = FakeAtomPubClient([[make_entry(1), make_entry(2)]])
    with patch("blogsync.broker.AtomPubClient", return_value=fake):
        yield fake


class TestCLIBasics:
    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("pull", "push", "post"):
            assert command in result.output

    def test_main_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "blogsync" in result.output

    def test_missing_config(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--config", str(tmp_path / "none.yaml"), "pull", REMOTE_ROOT])
        assert result.exit_code == 1
        assert "Cannot read config" in result.output

    def test_collection_url_without_scheme(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            f"{REMOTE_ROOT}:\n  local_root: {tmp_path}\n  collection_url: blog.example.com/atom/entry\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["--config", str(path), "pull", REMOTE_ROOT])
        assert result.exit_code == 1
        assert "collection_url must be an http(s) URL" in result.output
        assert "Traceback" not in result.output

    def test_config_from_env(self, runner: CliRunner, config_file: Path, client) -> None:
        result = runner.invoke(app, ["pull", REMOTE_ROOT], env={"BLOGSYNC_CONFIG": str(config_file)})
        assert result.exit_code == 0


class TestPull:
    def test_pull_creates_files(self, runner, config_file, client, tmp_path):
        result = runner.invoke(app, ["--config", str(config_file), "pull", REMOTE_ROOT])
        assert result.exit_code == 0, result.output
        assert result.output.count("created") == 2
        assert "Created: 2, updated: 0, conflicts: 0" in result.output
        assert (tmp_path / "blogs" / REMOTE_ROOT / "1.md").exists()

    def test_conflict_does_not_fail(self, runner, config_file, client, tmp_path):
        runner.invoke(app, ["--config", str(config_file), "pull", REMOTE_ROOT])
        path = tmp_path / "blogs" / REMOTE_ROOT / "1.md"
        path.write_text(path.read_text(encoding="utf-8") + "local addition\n", encoding="utf-8")

        result = runner.invoke(app, ["--config", str(config_file), "pull", REMOTE_ROOT, "--workers", "2"])

        assert result.exit_code == 0, result.output
        assert "conflicts: 1" in result.output
        assert "left untouched" in result.output

    def test_unknown_blog(self, runner, config_file, client):
        result = runner.invoke(app, ["--config", str(config_file), "pull", "bob.example.com"])
        assert result.exit_code == 1
        assert "Blog not found: bob.example.com" in result.output

    def test_transport_error(self, runner, config_file, client):
        def offline(url):
            raise TransportError("GET failed: connection refused")

        client.fetch_collection = offline
        result = runner.invoke(app, ["--config", str(config_file), "pull", REMOTE_ROOT])
        assert result.exit_code == 1
        assert "connection refused" in result.output
        assert "Traceback" not in result.output


class TestPush:
    def test_push(self, runner, config_file, client, tmp_path):
        runner.invoke(app, ["--config", str(config_file), "pull", REMOTE_ROOT])
        path = tmp_path / "blogs" / REMOTE_ROOT / "2.md"
        entry = read_local(path)
        path.write_text(path.read_text(encoding="utf-8").replace(entry.content, "new words\n"), encoding="utf-8")

        result = runner.invoke(app, ["--config", str(config_file), "push", str(path)])

        assert result.exit_code == 0, result.output
        assert "Pushed" in result.output
        assert client.updated[-1][1].content == "new words\n"

    def test_push_outside_blogs(self, runner, config_file, client, tmp_path):
        stray = tmp_path / "stray.md"
        stray.write_text("Title: t\nEditURL: https://x/1\n\nbody", encoding="utf-8")
        result = runner.invoke(app, ["--config", str(config_file), "push", str(stray)])
        assert result.exit_code == 1
        assert "Cannot find blog" in result.output

    def test_push_malformed_file(self, runner, config_file, client, tmp_path):
        path = tmp_path / "blogs" / REMOTE_ROOT / "broken.md"
        path.parent.mkdir(parents=True)
        path.write_text("just text", encoding="utf-8")
        result = runner.invoke(app, ["--config", str(config_file), "push", str(path)])
        assert result.exit_code == 1
        assert "Unterminated header" in result.output


class TestPost:
    def test_post_draft_from_stdin(self, runner, config_file, client):
        result = runner.invoke(
            app,
            ["--config", str(config_file), "post", REMOTE_ROOT, "--draft", "--title", "First"],
            input="Hello",
        )
        assert result.exit_code == 0, result.output
        (_, sent), = client.created
        assert sent.is_draft is True
        assert sent.content == "Hello"
        assert sent.title == "First"
        assert f"{COLLECTION_URL}/1001" in result.output

    def test_post_custom_path(self, runner, config_file, client):
        result = runner.invoke(
            app,
            ["--config", str(config_file), "post", REMOTE_ROOT, "--custom-path", "2024/hello"],
            input="Body",
        )
        assert result.exit_code == 0, result.output
        assert client.created[0][1].custom_path == "2024/hello"
