import json
import os

import pytest
from click.testing import CliRunner

from funcrun import __version__
from funcrun.cli.main import funcrun as cli

CODE = "function handle(event) { return event; }"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def source_file(tmp_path) -> str:
    path = tmp_path / "handler.js"
    path.write_text(CODE)
    return str(path)


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "invoke" in result.output
    assert "config" in result.output


def test_config_show_plain(runner):
    result = runner.invoke(cli, ["config", "show", "--format", "plain"])
    assert result.exit_code == 0
    assert "BOOT_TIMEOUT=" in result.output
    assert "DENO_PATH=" in result.output


def test_config_show_json(runner):
    result = runner.invoke(cli, ["config", "show", "--format", "json"])
    assert result.exit_code == 0
    values = json.loads(result.output)
    assert "READINESS_MAX_ATTEMPTS" in values
    assert "PORT_RANGE_START" in values


def test_config_show_table(runner):
    result = runner.invoke(cli, ["config", "show"])
    assert result.exit_code == 0
    assert "WORK_DIR" in result.output


class TestInvoke:
    def _invoke(self, runner, fake_engine, tmp_path, source_file, *args):
        work_dir = str(tmp_path / "work")
        return runner.invoke(
            cli,
            ["invoke", source_file, "--engine", fake_engine, "--work-dir", work_dir, *args],
        )

    def test_invoke(self, runner, fake_engine, tmp_path, source_file):
        result = self._invoke(
            runner, fake_engine, tmp_path, source_file, "--event", '{"name": "Pete"}'
        )

        assert result.exit_code == 0, result.output
        assert '"name": "Pete"' in result.output
        # the function folder is removed on exit
        assert not os.listdir(tmp_path / "work" / ".cache")

    def test_invoke_repeat(self, runner, fake_engine, tmp_path, source_file):
        result = self._invoke(
            runner, fake_engine, tmp_path, source_file, "--event", '"ping"', "--repeat", "3"
        )

        assert result.exit_code == 0, result.output
        results = [line for line in result.output.splitlines() if line.strip() == '"ping"']
        assert len(results) == 3

    def test_runtime_error(self, runner, fake_engine, tmp_path, source_file):
        result = self._invoke(
            runner, fake_engine, tmp_path, source_file, "--event", '{"raise": "kaputt"}'
        )

        assert result.exit_code == 1
        assert "ERROR" in result.output
        assert "kaputt" in result.output

    def test_invalid_event(self, runner, fake_engine, tmp_path, source_file):
        result = self._invoke(runner, fake_engine, tmp_path, source_file, "--event", "{not json")

        assert result.exit_code == 2
        assert "invalid JSON" in result.output

    def test_unknown_engine(self, runner, tmp_path, source_file):
        engine = str(tmp_path / "no-such-engine")
        result = self._invoke(runner, engine, tmp_path, source_file)

        assert result.exit_code == 1
        assert "could not start function" in result.output
