"""Tests for the command line interface."""

import json
import logging

import pytest

from src import cli


class _ExitImmediately:
    """Stands in for GracefulShutdown with the signal already received."""

    def __init__(self):
        self.should_exit = True


@pytest.fixture(autouse=True)
def no_signal_handlers(monkeypatch):
    monkeypatch.setattr(cli.signal, "signal", lambda signum, handler: None)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def _write_config(path, entries):
    path.write_text(json.dumps({"configs": entries}))


def _entry(source, archive, action="COPY"):
    return {
        "sourceFolder": str(source),
        "archiveFolder": str(archive),
        "action": action,
        "delay": 5,
        "timeUnit": "SECONDS",
    }


class TestParser:
    """Tests for build_parser."""

    def test_run_defaults(self, monkeypatch):
        monkeypatch.delenv("ARCHIVER_CONFIG", raising=False)
        args = cli.build_parser().parse_args(["run"])

        assert args.config == "Config.json"
        assert args.polling is False
        assert args.grace == 5.0
        assert args.func is cli.cmd_run

    def test_config_from_environment(self, monkeypatch):
        monkeypatch.setenv("ARCHIVER_CONFIG", "/etc/archiver.json")
        args = cli.build_parser().parse_args(["run"])

        assert args.config == "/etc/archiver.json"

    def test_global_options(self):
        args = cli.build_parser().parse_args(["--log-level", "DEBUG", "run", "--polling", "--grace", "1.5"])

        assert args.log_level == "DEBUG"
        assert args.polling is True
        assert args.grace == 1.5


class TestInit:
    """Tests for the init command."""

    def test_writes_template(self, tmp_path):
        path = tmp_path / "Config.json"

        assert cli.main(["init", "--config", str(path)]) == 0

        data = json.loads(path.read_text())
        assert len(data["configs"]) == 2

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "Config.json"
        path.write_text("keep me")

        assert cli.main(["init", "--config", str(path)]) == 1
        assert path.read_text() == "keep me"

    def test_force_overwrites(self, tmp_path):
        path = tmp_path / "Config.json"
        path.write_text("replace me")

        assert cli.main(["init", "--config", str(path), "--force"]) == 0
        assert "configs" in json.loads(path.read_text())


class TestRun:
    """Tests for the run command."""

    def test_missing_config_writes_template(self, tmp_path):
        path = tmp_path / "Config.json"

        assert cli.main(["run", "--config", str(path)]) == 1
        assert path.exists()

    def test_malformed_config(self, tmp_path):
        path = tmp_path / "Config.json"
        path.write_text("{broken")

        assert cli.main(["run", "--config", str(path)]) == 1

    def test_no_configs(self, tmp_path):
        path = tmp_path / "Config.json"
        _write_config(path, [])

        assert cli.main(["run", "--config", str(path)]) == 1

    def test_no_valid_directories(self, tmp_path):
        path = tmp_path / "Config.json"
        _write_config(path, [_entry(tmp_path / "missing", tmp_path / "arch")])

        assert cli.main(["run", "--config", str(path), "--polling"]) == 1

    def test_runs_until_signalled(self, tmp_path, monkeypatch):
        source = tmp_path / "src"
        source.mkdir()
        archive = tmp_path / "arch"
        path = tmp_path / "Config.json"
        _write_config(path, [_entry(source, archive)])
        monkeypatch.setattr(cli, "GracefulShutdown", _ExitImmediately)

        assert cli.main(["run", "--config", str(path), "--polling", "--grace", "0.1"]) == 0
        assert archive.is_dir()

    def test_no_subcommand_runs(self, tmp_path, monkeypatch):
        path = tmp_path / "Config.json"
        monkeypatch.setenv("ARCHIVER_CONFIG", str(path))

        assert cli.main([]) == 1
        assert path.exists()


class TestSetupLogging:
    """Tests for setup_logging."""

    def _added_handlers(self, root, before):
        return [h for h in root.handlers if h not in before]

    def test_console_level(self, restore_root_logger):
        root = restore_root_logger
        before = list(root.handlers)

        cli.setup_logging("WARNING")

        added = self._added_handlers(root, before)
        assert len(added) == 1
        assert added[0].level == logging.WARNING
        assert root.level == logging.WARNING

    def test_file_log_keeps_console_level(self, tmp_path, restore_root_logger):
        root = restore_root_logger
        before = list(root.handlers)
        log_file = tmp_path / "logs" / "archiver.log"

        cli.setup_logging("WARNING", log_file)

        added = self._added_handlers(root, before)
        file_handlers = [h for h in added if isinstance(h, logging.FileHandler)]
        console_handlers = [h for h in added if not isinstance(h, logging.FileHandler)]
        assert root.level == logging.DEBUG
        assert [h.level for h in file_handlers] == [logging.DEBUG]
        assert [h.level for h in console_handlers] == [logging.WARNING]
        assert log_file.exists()

    def test_debug_written_to_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "archiver.log"
        cli.setup_logging("WARNING", log_file)

        logging.getLogger("src.archiver.test").debug("debug detail")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert "debug detail" in log_file.read_text(encoding="utf-8")

    def test_unknown_level_defaults_to_info(self, restore_root_logger):
        root = restore_root_logger
        before = list(root.handlers)

        cli.setup_logging("chatty")

        added = self._added_handlers(root, before)
        assert added[0].level == logging.INFO
