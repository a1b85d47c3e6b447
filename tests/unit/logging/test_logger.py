"""
Tests for the logger: file output, templates and level filtering.
"""

import os

import msgspec

from hyperstress.logging import DEFAULT_TEMPLATE, Entry, Logger, LogLevel
from hyperstress.logging.hyperstress_logging_models import WorkerFault


def read_lines(path) -> list:
    with open(path, "rb") as logfile:
        return [msgspec.json.decode(line) for line in logfile if line.strip()]


class TestLoggerFileOutput:
    """Tests for JSON line output."""

    def test_entries_written_as_json_lines(self, tmp_path, quiet_logging):
        """Every logged entry becomes one decoded JSON object."""
        quiet_logging.update(log_level="info")
        logfile = tmp_path / "supervisor.json"
        logger = Logger()

        with logger.context(name="supervisor", path=str(logfile)) as ctx:
            ctx.log(Entry(message="first", level=LogLevel.INFO))
            ctx.log(
                WorkerFault(
                    message="worker 1 killed",
                    stressor="atomic",
                    ordinal=1,
                    pid=1234,
                    outcome="killed",
                    signal=9,
                )
            )

        lines = read_lines(logfile)

        assert [line["entry"]["message"] for line in lines] == ["first", "worker 1 killed"]
        assert lines[1]["entry"]["level"] == "WARN"
        assert lines[1]["entry"]["signal"] == 9
        assert lines[0]["pid"] == os.getpid()
        assert lines[0]["function_name"] == "test_entries_written_as_json_lines"

    def test_level_filtering(self, tmp_path, quiet_logging):
        """Entries below the configured level are dropped."""
        quiet_logging.update(log_level="warn")
        logfile = tmp_path / "filtered.json"
        logger = Logger()

        with logger.context(name="filtered", path=str(logfile)) as ctx:
            ctx.log(Entry(message="debug", level=LogLevel.DEBUG))
            ctx.log(Entry(message="error", level=LogLevel.ERROR))

        assert [line["entry"]["message"] for line in read_lines(logfile)] == ["error"]

    def test_disabled_logger(self, tmp_path, quiet_logging):
        """A disabled logger name writes nothing."""
        quiet_logging.update(log_level="info")
        quiet_logging.disable("muted")
        logger = Logger()

        try:
            with logger.context(name="muted", path=str(tmp_path / "muted.json")) as ctx:
                ctx.log(Entry(message="hidden", level=LogLevel.ERROR))

        finally:
            quiet_logging.enable("muted")

        assert not (tmp_path / "muted.json").exists()


class TestLoggerTemplates:
    """Tests for console output."""

    def test_template_output(self, capsys, quiet_logging):
        """Console lines follow the template with caller context filled in."""
        quiet_logging.update(log_level="info", log_output="stdout")

        try:
            Logger().log(
                Entry(message="hello", level=LogLevel.INFO),
                template="{level}:{function_name}:{message}",
            )

        finally:
            quiet_logging.update(log_output="stderr")

        assert capsys.readouterr().out.strip() == "INFO:test_template_output:hello"

    def test_default_template_fields(self):
        """The default template carries process and thread identifiers."""
        assert "{pid}" in DEFAULT_TEMPLATE
        assert "{thread_id}" in DEFAULT_TEMPLATE
