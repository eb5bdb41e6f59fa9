"""Logging setup shared by the generator CLI, the bundle layer and tests.

Every record can carry contextual fields describing which bundle and which
generation stage produced it. Fields live in a ContextVar so that nested
stages (``generate`` → ``std_lut`` → ``save``) restore cleanly.

Public API:
    setup_logging(log_level="INFO", context={"app": "film_grain"})
    get_logger(name)
    push_context(bundle="FilmGrain") / pop_context(["bundle"]) / get_context()
    log_context(stage="noise")        # scoped push, restored on exit
    install_excepthook() / route_warnings()

Line formats:
    human  2026-10-16T13:45:12.345Z | INFO     | app=film_grain stage=noise | Noise field ready
    json   {"t": "2026-10-16T13:45:12.345000+00:00", "lvl": "INFO", "name": "...",
            "pid": 4242, "msg": "Noise field ready", "app": "film_grain", "stage": "noise"}

The console handler is always human-readable; ``json=True`` only affects
the log file, which build tooling may ingest.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional


_fields: contextvars.ContextVar = contextvars.ContextVar('film_grain_log_fields', default={})

_configured = False

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Base formatter: resolves the timestamp and the current context fields.

    Subclasses implement ``render()``; ``format()`` only gathers inputs.
    """

    def __init__(self, tz: str = "UTC"):
        super().__init__()
        self.tz = tz

    def stamp(self, record: logging.LogRecord) -> datetime:
        if self.tz == "UTC":
            return datetime.fromtimestamp(record.created, tz=timezone.utc)
        return datetime.fromtimestamp(record.created)

    def format(self, record: logging.LogRecord) -> str:
        return self.render(record, self.stamp(record), get_context())

    def render(self, record: logging.LogRecord, when: datetime, fields: Dict[str, Any]) -> str:
        raise NotImplementedError


class HumanFormatter(ContextFormatter):
    """``time | LEVEL | k=v ... | message`` lines, optionally colored."""

    def __init__(self, tz: str = "UTC", use_color: bool = False):
        super().__init__(tz)
        self.use_color = use_color

    def _level(self, name: str) -> str:
        padded = f"{name:8s}"
        if not self.use_color:
            return padded
        return f"{_LEVEL_COLORS.get(name, '')}{padded}{_RESET}"

    def render(self, record, when, fields):
        head = f"{when.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3]}Z | {self._level(record.levelname)} |"
        if fields:
            head += " " + " ".join(f"{key}={value}" for key, value in fields.items()) + " |"
        line = f"{head} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonFormatter(ContextFormatter):
    """One JSON object per line; context fields are merged at top level."""

    def render(self, record, when, fields):
        entry: Dict[str, Any] = {
            't': when.isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'pid': os.getpid(),
            'msg': record.getMessage(),
        }
        entry.update(fields)
        if record.exc_info:
            entry['exc'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _size_rotating(path: Path, opts: Dict[str, Any]) -> logging.Handler:
    return logging.handlers.RotatingFileHandler(
        path,
        maxBytes=opts.get('max_bytes', 10_000_000),
        backupCount=opts.get('backup_count', 3),
    )


def _time_rotating(path: Path, opts: Dict[str, Any]) -> logging.Handler:
    return logging.handlers.TimedRotatingFileHandler(
        path,
        when=opts.get('when', 'D'),
        interval=opts.get('interval', 1),
        backupCount=opts.get('backup_count', 7),
    )


_ROTATIONS: Dict[str, Callable[[Path, Dict[str, Any]], logging.Handler]] = {
    'size': _size_rotating,
    'time': _time_rotating,
}


def _file_handler(log_file: str, rotate: Optional[Dict[str, Any]]) -> logging.Handler:
    path = Path(log_file)
    if not rotate:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path)

    mode = rotate.get('mode', 'size')
    factory = _ROTATIONS.get(mode)
    if factory is None:
        raise ValueError(f"Unknown rotation mode: {mode}. Use one of {sorted(_ROTATIONS)}.")
    path.parent.mkdir(parents=True, exist_ok=True)
    return factory(path, rotate)


def _drop_own_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        if isinstance(handler.formatter, ContextFormatter):
            root.removeHandler(handler)
            handler.close()


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate: Optional[Dict[str, Any]] = None,
    tz: str = "UTC",
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Attach console and/or file handlers to the root logger.

    Calling it again replaces the handlers installed by the previous call,
    so a CLI may configure a bootstrap logger before its config is parsed
    and reconfigure afterwards.

    Parameters
    ----------
    log_level : str
        Root level name ("DEBUG" ... "CRITICAL")
    log_file : str, optional
        Also write records to this file (parent directories are created)
    json : bool
        Write the file as JSON lines instead of human lines
    color : bool
        Color the console level column when stderr is a terminal
    to_stderr : bool
        Attach a console handler
    rotate : dict, optional
        ``{"mode": "size", "max_bytes": ..., "backup_count": ...}`` or
        ``{"mode": "time", "when": "D", "interval": 1, "backup_count": ...}``
    tz : str
        "UTC" or "local" timestamps
    capture_warnings : bool
        Route ``warnings.warn`` through logging
    quiet_libs : list[str], optional
        Logger names raised to WARNING (e.g. ["PIL"])
    context : dict, optional
        Fields pushed before returning (e.g. {"app": "film_grain"})

    Returns
    -------
    dict
        ``{"handlers": [...]}`` in installation order

    Raises
    ------
    ValueError
        Unknown rotation mode
    """
    global _configured

    root = logging.getLogger()
    if _configured:
        _drop_own_handlers(root)

    handlers: List[logging.Handler] = []
    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(HumanFormatter(tz, use_color=color and sys.stderr.isatty()))
        handlers.append(console)
    if log_file:
        file_handler = _file_handler(log_file, rotate)
        file_handler.setFormatter(JsonFormatter(tz) if json else HumanFormatter(tz))
        handlers.append(file_handler)

    root.setLevel(getattr(logging, log_level.upper()))
    for handler in handlers:
        root.addHandler(handler)

    for lib in quiet_libs or []:
        logging.getLogger(lib).setLevel(logging.WARNING)
    if capture_warnings:
        route_warnings()
    if context:
        push_context(**context)

    _configured = True
    return {'handlers': handlers}


def get_logger(name: str) -> logging.Logger:
    """Get logger by name (typically __name__)."""
    return logging.getLogger(name)


def push_context(**fields) -> None:
    """Merge fields into the context attached to subsequent records."""
    _fields.set({**_fields.get(), **fields})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Remove the named fields, or every field when keys is None."""
    if keys is None:
        _fields.set({})
        return
    _fields.set({k: v for k, v in _fields.get().items() if k not in keys})


def get_context() -> Dict[str, Any]:
    """Copy of the fields currently attached to records."""
    return dict(_fields.get())


@contextmanager
def log_context(**fields) -> Iterator[None]:
    """Push fields for the duration of a block, then restore the previous set.

    Examples
    --------
    >>> with log_context(stage="std_lut"):
    ...     lut = generate_std_lut(...)
    """
    token = _fields.set({**_fields.get(), **fields})
    try:
        yield
    finally:
        _fields.reset(token)


def install_excepthook() -> None:
    """Report uncaught exceptions (other than Ctrl+C) as CRITICAL records."""
    def _report(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = _report


def route_warnings() -> None:
    """Send Python warnings to the ``py.warnings`` logger."""
    logging.captureWarnings(True)
    logging.getLogger('py.warnings').setLevel(logging.WARNING)
