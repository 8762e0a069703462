"""Logging for cgunit: rich console output plus an optional log file."""
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from cgunit.core.config import get_config

console = Console()

FALLBACK_LOG_FILE = Path("/tmp/cgunit.log")

_file_handler: Optional[logging.FileHandler] = None


def _open_handler(target: Path) -> logging.FileHandler:
    target.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(target)


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> Path:
    """Send cgunit log records to a file as well as the console.

    Args:
        log_file: Path to log file (default: config log_file, CGUNIT_LOG_FILE)
        verbose: Enable debug-level logging, e.g. every subtree_control write

    Returns:
        Path of the file records are written to

    Note:
        Unit setup usually runs as root; when the target cannot be opened the
        log goes to /tmp/cgunit.log instead.
    """
    global _file_handler

    if _file_handler is not None:
        return Path(_file_handler.baseFilename)

    target = Path(log_file or get_config().log_file)
    try:
        handler = _open_handler(target)
    except OSError:
        target = FALLBACK_LOG_FILE
        handler = _open_handler(target)

    level = logging.DEBUG if verbose else logging.INFO
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    root_logger = logging.getLogger("cgunit")
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    _file_handler = handler

    root_logger.info(f"cgunit logging initialized: {target}")
    return target


def teardown_file_logging() -> None:
    """Detach and close the handler installed by setup_file_logging()."""
    global _file_handler

    if _file_handler is None:
        return
    logging.getLogger("cgunit").removeHandler(_file_handler)
    _file_handler.close()
    _file_handler = None


def get_logger(name: str) -> logging.Logger:
    """Get a logger that prints through the shared rich console.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger with a RichHandler attached

    Note:
        The console shows INFO and above. The level of the "cgunit" logger
        decides what reaches the log file, so --verbose adds debug records
        there without flooding the terminal.
    """
    logger = logging.getLogger(name)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    package_logger = logging.getLogger("cgunit")
    if package_logger.level == logging.NOTSET:
        package_logger.setLevel(logging.INFO)

    return logger
