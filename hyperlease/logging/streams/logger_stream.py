import asyncio
import datetime
import io
import os
import pathlib
import sys
import threading
from collections import defaultdict
from typing import (
    Any,
    Dict,
    TypeVar,
)

import msgspec

from hyperlease.logging.config.logging_config import LoggingConfig
from hyperlease.logging.config.stream_type import StreamType
from hyperlease.logging.models import Entry, Log, LogLevel


T = TypeVar('T', bound=Entry)

DEFAULT_TEMPLATE = "{timestamp} - {level} - {thread_id} - {filename}:{function_name}.{line_number} - {message}"
ERROR_TEMPLATE = "{timestamp} - {level} - {thread_id}.{filename}:{function_name}.{line_number} - {error}"


class LoggerStream:
    def __init__(
        self,
        name: str | None = None,
        template: str | None = None,
        filename: str | None = None,
        directory: str | None = None,
        models: dict[
            str,
            tuple[
                type[T],
                dict[str, Any],
            ]
        ] | None = None,
    ) -> None:
        if name is None:
            name = "default"

        self._name = name
        self._default_template = template
        self._default_logfile = filename
        self._default_log_directory = directory

        self._init_lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

        self._files: Dict[str, io.FileIO] = {}
        self._file_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._cwd: str | None = None
        self._default_logfile_path: str | None = None

        self._config = LoggingConfig()
        self._initialized: bool = False
        self._closed = False

        self._models: Dict[str, tuple[type[Entry], dict[str, Any]]] = {}

        if models is None:
            models = {}

        for model_name, config in models.items():
            model, defaults = config
            self._models[model_name] = (
                model,
                defaults,
            )

        self._models.update({
            'default': (
                Entry,
                {
                    'level': LogLevel.INFO
                }
            )
        })

    @property
    def name(self):
        return self._name

    async def initialize(self):

        async with self._init_lock:

            if self._initialized:
                return

            if self._loop is None:
                self._loop = asyncio.get_running_loop()

            if self._cwd is None:
                self._cwd = await self._loop.run_in_executor(
                    None,
                    os.getcwd,
                )

            self._initialized = True
            self._closed = False

    async def open_file(
        self,
        filename: str,
        directory: str | None = None,
        is_default: bool = False,
    ):
        if self._loop is None:
            await self.initialize()

        logfile_path = self._to_logfile_path(
            filename,
            directory=directory,
        )

        await self._loop.run_in_executor(
            None,
            self._open_file,
            logfile_path,
        )

        if is_default:
            self._default_logfile_path = logfile_path

        return logfile_path

    def _open_file(self, logfile_path: str):
        resolved_path = pathlib.Path(logfile_path).absolute().resolve()
        resolved_path.parent.mkdir(parents=True, exist_ok=True)

        self._files[logfile_path] = open(resolved_path, "ab+")

    def _to_logfile_path(
        self,
        filename: str,
        directory: str | None = None,
    ):
        filename_path = pathlib.Path(filename)

        if filename_path.suffix != ".json":
            filename = f"{filename_path.stem}.json"

        if directory is None:
            directory = os.path.join(self._cwd or os.getcwd(), "logs")

        return os.path.join(directory, filename)

    async def close(self):
        if self._closed:
            return

        for logfile_path in list(self._files.keys()):
            await self.close_file(logfile_path)

        self._closed = True
        self._initialized = False

    async def close_file(self, logfile_path: str):
        file_lock = self._file_locks[logfile_path]

        async with file_lock:
            logfile = self._files.pop(logfile_path, None)
            if logfile and logfile.closed is False:
                await self._loop.run_in_executor(
                    None,
                    logfile.close,
                )

    async def log(
        self,
        entry: T | Log[T],
        template: str | None = None,
        path: str | None = None,
    ):
        filename: str | None = None
        directory: str | None = None

        if path:
            logfile_path = pathlib.Path(path)
            is_logfile = len(logfile_path.suffix) > 0

            filename = logfile_path.name if is_logfile else None
            directory = str(logfile_path.parent.absolute()) if is_logfile else str(logfile_path.absolute())

        if template is None:
            template = self._default_template

        if filename is None:
            filename = self._default_logfile

        if directory is None:
            directory = self._default_log_directory

        if filename or directory:
            await self._log_to_file(
                entry,
                filename=filename,
                directory=directory,
            )

        else:
            await self._log(
                entry,
                template=template,
            )

    async def log_message(
        self,
        message: str,
        name: str = 'default',
    ):
        model, defaults = self._models.get(
            name,
            self._models['default'],
        )

        await self.log(
            model(
                message=message,
                **defaults
            )
        )

    async def _log(
        self,
        entry_or_log: T | Log[T],
        template: str | None = None,
    ):
        entry: Entry = None
        if isinstance(entry_or_log, Log):
            entry = entry_or_log.entry

        else:
            entry = entry_or_log

        if self._config.enabled(self._name, entry.level) is False:
            return

        if self._initialized is False:
            await self.initialize()

        if template is None:
            template = DEFAULT_TEMPLATE

        if isinstance(entry_or_log, Log):
            log_file = entry_or_log.filename
            line_number = entry_or_log.line_number
            function_name = entry_or_log.function_name

        else:
            log_file, line_number, function_name = self._find_caller()

        context = {
            "filename": log_file,
            "function_name": function_name,
            "line_number": line_number,
            "thread_id": threading.get_native_id(),
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }

        try:
            await self._loop.run_in_executor(
                None,
                self._write_to_stream,
                entry.to_template(
                    template,
                    context=context,
                ) + "\n",
                self._config.output,
            )

        except Exception as err:
            context["error"] = str(err)
            await self._loop.run_in_executor(
                None,
                self._write_to_stream,
                entry.to_template(
                    ERROR_TEMPLATE,
                    context=context,
                ) + "\n",
                StreamType.STDERR,
            )

    def _write_to_stream(
        self,
        line: str,
        stream_type: StreamType,
    ):
        stream = sys.stdout if stream_type == StreamType.STDOUT else sys.stderr
        if stream is None or stream.closed:
            return

        stream.write(line)
        stream.flush()

    async def _log_to_file(
        self,
        entry_or_log: T | Log[T],
        filename: str | None = None,
        directory: str | None = None,
    ):
        entry: Entry = None
        if isinstance(entry_or_log, Log):
            entry = entry_or_log.entry

        else:
            entry = entry_or_log

        if self._config.enabled(self._name, entry.level) is False:
            return

        if self._initialized is False:
            await self.initialize()

        if filename:
            logfile_path = self._to_logfile_path(
                filename,
                directory=directory,
            )

        elif self._default_logfile_path:
            logfile_path = self._default_logfile_path

        else:
            filename = "logs.json"
            logfile_path = self._to_logfile_path(
                filename,
                directory=directory,
            )

        if self._files.get(logfile_path) is None or self._files[logfile_path].closed:
            await self.open_file(
                pathlib.Path(logfile_path).name,
                directory=str(pathlib.Path(logfile_path).parent),
            )

        if isinstance(entry_or_log, Log):
            log = entry_or_log

        else:
            log_file, line_number, function_name = self._find_caller()

            log = Log(
                entry=entry,
                filename=log_file,
                function_name=function_name,
                line_number=line_number,
            )

        async with self._file_locks[logfile_path]:
            await self._loop.run_in_executor(
                None,
                self._write_to_file,
                log,
                logfile_path,
            )

    def _write_to_file(
        self,
        log: Log,
        logfile_path: str,
    ):
        if (
            logfile := self._files.get(logfile_path)
        ) and (
            logfile.closed is False
        ):
            logfile.write(msgspec.json.encode(log) + b"\n")
            logfile.flush()

    def _find_caller(self):
        """
        Find the stack frame of the caller so that we can note the source
        file name, line number and function name.
        """
        frame = sys._getframe(3)
        code = frame.f_code

        return (
            code.co_filename,
            frame.f_lineno,
            code.co_name,
        )
