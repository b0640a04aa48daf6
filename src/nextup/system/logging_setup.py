# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/system/logging_setup.py

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from nextup.config.manager import Config

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
NON_INTERACTIVE_LOG = "updater.log"


def console_level(verbose: bool = False, debug: bool = False) -> str:
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    return "WARNING"


def setup_logging(config: Optional[Config] = None, verbose: bool = False, debug: bool = False) -> list[Path]:
    """Setup loguru logging for the entire application.

    Configures:
    - Console output: WARNING+ (INFO+ with --verbose, DEBUG+ with --debug)
    - File output: DEBUG+ to nextup.log if local_log is configured
    - File output: updater.log in the installation root for non-interactive runs,
      which have nobody watching the console

    Returns:
        Paths of the file logs that were enabled
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=console_level(verbose, debug),
        format="<level>{level}</level>: {message}",
        colorize=True,
    )

    log_files: list[Path] = []
    if config is None:
        return log_files

    try:
        if config.updater.local_log:
            log_dir = Path(config.updater.local_log)
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / "nextup.log"
            logger.add(
                log_file,
                level="DEBUG",
                format=FILE_FORMAT,
                rotation="10 MB",
                retention="30 days",
                compression="gz",
            )
            log_files.append(log_file)

        if config.options.non_interactive:
            log_file = config.install_root / NON_INTERACTIVE_LOG
            logger.add(log_file, level="INFO", format=FILE_FORMAT, rotation="10 MB", retention=3)
            log_files.append(log_file)

    except OSError as e:
        # Don't fail the entire application if logging setup fails
        logger.warning(f"Failed to setup file logging: {e}")

    for log_file in log_files:
        logger.debug(f"File logging enabled: {log_file}")
    return log_files
