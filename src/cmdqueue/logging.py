"""
Logging for queue engines, runners and the CLI.

Everything logs through the ``cmdqueue`` logger. Nothing is printed until
:meth:`QueueLogger.setup` attaches handlers, which the CLI does once per run.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any

LOGGER_NAME = "cmdqueue"

CONSOLE_FORMAT = "%(asctime)s \033[0;36m%(levelname)-8s\033[0m %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s\n%(context)s\n"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class QueueLogger:
    """Handle on the shared ``cmdqueue`` logger."""

    def __init__(self):
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging.DEBUG)

    @property
    def is_setup(self) -> bool:
        return any(
            getattr(handler, "_cmdqueue_handler", False)
            for handler in self.logger.handlers
        )

    def _attach(self, handler: logging.Handler, level: int, fmt: str) -> None:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
        handler._cmdqueue_handler = True
        self.logger.addHandler(handler)

    def setup(self, debug: bool = False, log_dir: Optional[str] = None) -> None:
        """Attach a stderr handler and, with ``log_dir``, a rotating log file.

        Queue progress goes to stdout through the reporter, so the console
        handler only shows warnings unless ``debug`` is set. Calling this again
        after handlers exist does nothing.
        """
        if self.is_setup:
            return

        self._attach(
            logging.StreamHandler(sys.stderr),
            logging.DEBUG if debug else logging.WARNING,
            CONSOLE_FORMAT,
        )

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
            log_file = os.path.join(log_dir, f"cmdqueue-{stamp}.log")
            self._attach(
                RotatingFileHandler(
                    log_file,
                    maxBytes=LOG_FILE_MAX_BYTES,
                    backupCount=LOG_FILE_BACKUPS,
                ),
                logging.DEBUG,
                FILE_FORMAT,
            )
            self.logger.debug("Writing queue log to %s", log_file, extra={"context": ""})

    def get_context_logger(self, **context) -> "ContextLogger":
        """Logger that tags records with ``context`` (engine name, component...)."""
        return ContextLogger(self.logger, context)


class ContextLogger:
    """Adds fixed key/value context to every record.

    The context ends up in the ``context`` record attribute, which only the
    file format prints.
    """

    def __init__(self, logger: logging.Logger, context: Dict[str, Any]):
        self.logger = logger
        self.context = context

    def _log(
        self,
        level: int,
        msg: str,
        args: tuple,
        extra: Optional[Dict[str, Any]],
        **kwargs,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        merged = dict(self.context, **(extra or {}))
        lines = "\n".join(f"{key}: {value}" for key, value in merged.items())
        self.logger.log(
            level,
            msg,
            *args,
            extra={"context": f"Context:\n{lines}" if lines else ""},
            **kwargs,
        )

    def debug(self, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs):
        self._log(logging.DEBUG, msg, args, extra, **kwargs)

    def info(self, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs):
        self._log(logging.INFO, msg, args, extra, **kwargs)

    def warning(
        self, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs
    ):
        self._log(logging.WARNING, msg, args, extra, **kwargs)

    def error(self, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs):
        self._log(logging.ERROR, msg, args, extra, **kwargs)

    def exception(
        self, msg: str, *args, extra: Optional[Dict[str, Any]] = None, **kwargs
    ):
        """Error-level record carrying the active exception's traceback."""
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, args, extra, **kwargs)
