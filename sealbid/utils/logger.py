"""
Centralized logging configuration for Sealbid.

Two channels share the "sealbid" logger tree:

- sealbid.<subsystem>  operational logs (house, ledger, clock, identity,
  storage, cli), colored on the console and optionally in sealbid.log
- sealbid.audit        one line per escrow fund movement, also written to
  audit.log when file logging is enabled
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog

CONSOLE_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

AUDIT_LOGGER = "sealbid.audit"


class SealbidLogger:
    """Owns the handlers of the sealbid logger tree"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
        force: bool = False,
    ):
        """
        Setup logging configuration.

        Args:
            level: Logging level for operational logs
            log_dir: Directory for log files. If None, uses ./logs
            log_to_file: Also write sealbid.log and audit.log
            force: Replace handlers installed by an earlier call
        """
        if cls._initialized and not force:
            return

        root_logger = logging.getLogger("sealbid")
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = colorlog.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            colorlog.ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS)
        )
        root_logger.addHandler(console_handler)

        # Fund movements are recorded whatever the operational level
        audit_logger = logging.getLogger(AUDIT_LOGGER)
        audit_logger.setLevel(logging.INFO)
        audit_logger.handlers.clear()

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(parents=True, exist_ok=True)
            root_logger.addHandler(cls._file_handler("sealbid.log", level))
            audit_logger.addHandler(cls._file_handler("audit.log", logging.INFO))

        cls._initialized = True

    @classmethod
    def _file_handler(cls, filename: str, level: int) -> logging.Handler:
        handler = logging.FileHandler(cls._log_dir / filename)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        return handler

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'house', 'ledger', 'storage')

        Returns:
            Logger instance
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"sealbid.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return SealbidLogger.get_logger(name)


def get_audit_logger() -> logging.Logger:
    """Logger for escrow fund movements"""
    return SealbidLogger.get_logger("audit")


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """Setup logging configuration, replacing any earlier setup"""
    SealbidLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file, force=True)
