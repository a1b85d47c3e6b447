import io
import os
import pathlib
import sys
import threading
import weakref
from typing import Callable, Dict, TypeVar

import msgspec

from hyperstress.logging.config.logging_config import LoggingConfig
from hyperstress.logging.config.stream_type import StreamType
from hyperstress.logging.models import Entry, Log

T = TypeVar("T", bound=Entry)

DEFAULT_TEMPLATE = "{timestamp} - {level} - {pid}:{thread_id} - {filename}:{function_name}.{line_number} - {message}"

_live_streams: "weakref.WeakSet[LoggerStream]" = weakref.WeakSet()


def _reset_streams_after_fork():
    for stream in list(_live_streams):
        stream._after_fork()


os.register_at_fork(after_in_child=_reset_streams_after_fork)


class LoggerStream:
    """
    Synchronous log stream shared by the supervisor, forked workers and
    their probe threads.

    Template output goes to stdout/stderr as configured by ``LoggingConfig``.
    When a filename is set, entries are appended as msgspec-encoded JSON
    lines instead. File handles belong to the process that opened them; a
    forked child drops the inherited handles and reopens on first write.
    """

    def __init__(
        self,
        name: str | None = None,
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
    ) -> None:
        if name is None:
            name = "default"

        self._name = name
        self._default_template = template
        self._default_logfile = filename
        self._default_log_directory = directory

        self._config = LoggingConfig()
        self._encoder = msgspec.json.Encoder()
        self._files: Dict[str, io.BufferedWriter] = {}
        self._owner_pid = os.getpid()
        self._write_lock = threading.Lock()
        self._closed = False

        _live_streams.add(self)

    @property
    def name(self):
        return self._name

    def _after_fork(self):
        self._write_lock = threading.Lock()
        self._files = {}
        self._owner_pid = os.getpid()

    def log(
        self,
        entry: T | Log[T],
        template: str | None = None,
        path: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        filename: str | None = None
        directory: str | None = None

        if path:
            logfile_path = pathlib.Path(path)
            is_logfile = len(logfile_path.suffix) > 0

            filename = logfile_path.name if is_logfile else None
            directory = (
                str(logfile_path.parent.absolute())
                if is_logfile
                else str(logfile_path.absolute())
            )

        if template is None:
            template = self._default_template

        if filename is None:
            filename = self._default_logfile

        if directory is None:
            directory = self._default_log_directory

        if filename:
            self._log_to_file(
                entry,
                filename,
                directory=directory,
                filter=filter,
            )

        else:
            self._log(
                entry,
                template=template,
                filter=filter,
            )

    def _to_log(self, entry_or_log: T | Log[T]) -> Log[T]:
        if isinstance(entry_or_log, Log):
            return entry_or_log

        filename, function_name, line_number = self._find_caller()

        return Log(
            entry=entry_or_log,
            filename=filename,
            function_name=function_name,
            line_number=line_number,
        )

    def _log(
        self,
        entry_or_log: T | Log[T],
        template: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        log = self._to_log(entry_or_log)
        entry = log.entry

        if self._closed or self._config.enabled(self._name, entry.level) is False:
            return

        if filter and filter(entry) is False:
            return

        if template is None:
            template = DEFAULT_TEMPLATE

        stream = sys.stdout if self._config.output == StreamType.STDOUT else sys.stderr

        line = entry.to_template(
            template,
            context={
                "filename": log.filename,
                "function_name": log.function_name,
                "line_number": log.line_number,
                "pid": log.pid,
                "thread_id": log.thread_id,
                "timestamp": log.timestamp,
            },
        )

        with self._write_lock:
            stream.write(line + "\n")
            stream.flush()

    def _log_to_file(
        self,
        entry_or_log: T | Log[T],
        filename: str,
        directory: str | None = None,
        filter: Callable[[T], bool] | None = None,
    ):
        log = self._to_log(entry_or_log)
        entry = log.entry

        if self._closed or self._config.enabled(self._name, entry.level) is False:
            return

        if filter and filter(entry) is False:
            return

        logfile_path = self._to_logfile_path(filename, directory=directory)

        with self._write_lock:
            if self._owner_pid != os.getpid():
                self._after_fork()

            logfile = self._files.get(logfile_path)
            if logfile is None or logfile.closed:
                pathlib.Path(logfile_path).parent.mkdir(parents=True, exist_ok=True)
                logfile = open(logfile_path, "ab")
                self._files[logfile_path] = logfile

            logfile.write(self._encoder.encode(log) + b"\n")
            logfile.flush()

    def _to_logfile_path(
        self,
        filename: str,
        directory: str | None = None,
    ):
        if directory is None:
            directory = self._config.directory or os.getcwd()

        return os.path.join(directory, filename)

    def _find_caller(self):
        frame = sys._getframe(1)
        this_file = os.path.normcase(__file__)

        while frame is not None:
            code = frame.f_code
            if os.path.normcase(code.co_filename) not in (
                this_file,
                _CONTEXT_FILE,
                _LOGGER_FILE,
            ):
                return code.co_filename, code.co_name, frame.f_lineno

            frame = frame.f_back

        return "(unknown file)", "(unknown function)", 0

    def close(self):
        with self._write_lock:
            for logfile in self._files.values():
                if not logfile.closed:
                    logfile.close()

            self._files.clear()


_CONTEXT_FILE = os.path.normcase(
    os.path.join(os.path.dirname(__file__), "logger_context.py")
)
_LOGGER_FILE = os.path.normcase(os.path.join(os.path.dirname(__file__), "logger.py"))
