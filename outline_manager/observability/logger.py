"""Loguru-style logger facade over stdlib logging + rich.

Usage::

    from outline_manager.observability.logger import logger

    log = logger.bind(component="firewall")
    log.info("Creating firewall rule {name}", name="outline")

Records are routed through the ``outline_manager`` stdlib logger, which has no
handlers until :func:`outline_manager.observability.logging.setup_logging`
attaches them.
"""

from __future__ import annotations

import inspect
import logging
import logging.handlers
import os
import sys
from typing import TextIO

from rich.logging import RichHandler

_root = logging.getLogger("outline_manager")


def _caller() -> inspect.FrameInfo:
    return inspect.stack()[3]


def _format_message(msg: str, args: tuple[object, ...], kwargs: dict[str, object]) -> str:
    if kwargs:
        return msg.format(**kwargs)
    if args:
        return msg.format(*args)
    return msg


def _format_context(extras: dict[str, object]) -> str:
    if not extras:
        return ""
    return " [" + " ".join(f"{k}={v}" for k, v in extras.items()) + "]"


class BoundLogger:
    __slots__ = ("_extras",)

    def __init__(self, extras: dict[str, object] | None = None) -> None:
        self._extras = extras or {}

    def bind(self, **kwargs: object) -> BoundLogger:
        return BoundLogger({**self._extras, **kwargs})

    def _log(self, level: int, message: str, /, *args: object, **kwargs: object) -> None:
        exc_info = kwargs.pop("exc_info", False)
        frame = _caller()
        module = frame.frame.f_globals.get("__name__", "outline_manager")
        lib_logger = logging.getLogger(module)
        if not lib_logger.isEnabledFor(level):
            return
        text = _format_message(message, args, kwargs) + _format_context(self._extras)
        record = lib_logger.makeRecord(
            name=lib_logger.name,
            level=level,
            fn=frame.filename,
            lno=frame.lineno,
            msg=text,
            args=(),
            exc_info=sys.exc_info() if exc_info else None,
            func=frame.function,
        )
        record.filename = os.path.basename(frame.filename)
        record.extras = self._extras  # type: ignore[attr-defined]
        lib_logger.handle(record)

    def debug(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._log(logging.ERROR, message, *args, **kwargs)

    def exception(self, message: str, /, *args: object, **kwargs: object) -> None:
        kwargs["exc_info"] = True
        self._log(logging.ERROR, message, *args, **kwargs)


def _make_file_handler(path: str, *, level: int, max_bytes: int, backup_count: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(levelname)-8s | "
        "%(name)s:%(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    return handler


def _make_console_handler(level: int, stream: TextIO | None) -> logging.Handler:
    from rich.console import Console

    handler = RichHandler(
        level=level,
        console=Console(file=stream) if stream is not None else None,
        show_time=True,
        show_level=True,
        show_path=True,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setLevel(level)
    return handler


class _Logger(BoundLogger):
    """The module-level logger: a root ``BoundLogger`` that also manages sinks."""

    __slots__ = ("_handlers", "_counter")

    def __init__(self) -> None:
        super().__init__()
        self._handlers: dict[int, logging.Handler] = {}
        self._counter = 0

    def add(
        self,
        sink: str | TextIO,
        *,
        level: str = "DEBUG",
        max_bytes: int = 50 * 1024 * 1024,
        backup_count: int = 10,
    ) -> int:
        numeric_level = getattr(logging, level.upper(), logging.DEBUG)

        match sink:
            case str() as path:
                handler = _make_file_handler(
                    path, level=numeric_level, max_bytes=max_bytes, backup_count=backup_count,
                )
            case stream:
                handler = _make_console_handler(numeric_level, stream)

        _root.addHandler(handler)
        self._counter += 1
        self._handlers[self._counter] = handler
        return self._counter

    def remove(self, handler_id: int | None = None) -> None:
        if handler_id is None:
            for h in list(self._handlers.values()):
                _root.removeHandler(h)
                h.close()
            self._handlers.clear()
            return
        if h := self._handlers.pop(handler_id, None):
            _root.removeHandler(h)
            h.close()


logger = _Logger()

_root.setLevel(logging.DEBUG)
_root.propagate = False
_root.addHandler(logging.NullHandler())
