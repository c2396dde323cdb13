import logging
import os
import sys
from logging import Handler
from typing import Optional, TextIO

from tqdm import tqdm

# Parent of every module logger in the package (`getx_locale.<module>`).
LOGGER_NAME = "getx_locale"

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(levelname)s [%(module)s] %(message)s'


class TqdmLoggingHandler(Handler):
    """
    Writes records through `tqdm.write`, so warnings about rejected translations or
    provider failures appear above the per-locale progress bar instead of splitting it.

    Args:
        level: Minimum level handled.
        stream: Where records go; stderr unless given.
    """
    def __init__(self, level=logging.NOTSET, stream: Optional[TextIO] = None):
        super().__init__(level)
        self.stream = stream

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=self.stream or sys.stderr)
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            self.handleError(record)


def setup_logger(log_level_str: str, log_file_path: Optional[str] = None, log_to_console: bool = True) -> logging.Logger:
    """
    Configure the `getx_locale` logger once per process; calling it again replaces the handlers.

    The log file, when configured, gets timestamps and full logger names; the console
    only gets level, module and message.

    Returns:
        The configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level_str.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = False

    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    if log_to_console:
        console_handler = TqdmLoggingHandler()
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console_handler)

    return logger
