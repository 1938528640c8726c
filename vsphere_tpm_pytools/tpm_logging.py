# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Logging utilities - Console and log file setup for the TPM query CLI.

"""
Logging utilities for vsphere_tpm_pytools

Library modules log through ``get_logger(__name__)`` and never configure
handlers. ``setup_cli_logging`` is called once by the command-line tool.
"""

import logging
import sys
from typing import Optional

CONSOLE_FORMAT = "%(name)s - %(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"

# Transport libraries that log every request and retry below WARNING
NOISY_LOGGERS = ("urllib3", "requests")


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name for terminal output."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        # Color a copy so the log file handler still sees the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname)
        if color:
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def get_logger(name: str = "vsphere_tpm_pytools") -> logging.Logger:
    return logging.getLogger(name)


def setup_cli_logging(
    verbose: bool = False, quiet: bool = False, log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the root logger for the vsphere-tpm-query command.

    Console output goes to stdout, next to the report sections, so that both
    can be redirected together.

    Args:
        verbose: Log at DEBUG, including every remote vSphere call
        quiet: Log warnings and errors only
        log_file: Optional path that also receives uncolored log lines

    Returns:
        The package logger
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)

    if not verbose:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return get_logger()


logger = get_logger(__name__)

LOGIN_FAILURE_HINTS = (
    "1. Provided username/password credentials are incorrect",
    "2. If username/password or other fields contain special characters, surround them "
    "with double quotes (single quotes on non-windows shells)",
    "3. vCenter Server/ESXi server might not be reachable",
    "4. vCenter Server service is configured with a custom port (other than 443); "
    'if so specify the address as "serverip:customport"',
)


def log_query_step(step: str, status: str, details: str = "") -> None:
    """Log a query step with status."""
    status_upper = status.upper()
    suffix = f" - {details}" if details else ""
    if status_upper in ["PASS", "SUCCESS", "OK"]:
        logger.info(f"✓ {step}: {status}{suffix}")
    elif status_upper in ["FAIL", "FAILED", "ERROR"]:
        logger.error(f"! {step}: {status}{suffix}")
    elif status_upper in ["SKIP", "SKIPPED", "ABSENT"]:
        logger.warning(f"- {step}: {status}{suffix}")
    else:
        logger.info(f"  {step}: {status}{suffix}")


def log_remote_call(target: str, call: str, detail: Optional[str] = None) -> None:
    """Log a remote vSphere API call."""
    msg = f"{call} -> {target}"
    if detail:
        msg += f" - {detail}"
    logger.debug(msg)


def log_login_failure_reasons(reason: Optional[str] = None) -> None:
    """Log the list of likely causes for a failed login."""
    if reason:
        logger.error(f"Login failure classified as: {reason}")
    logger.error("Possible reasons:\n" + "\n".join(LOGIN_FAILURE_HINTS))


def log_section_header(title: str) -> None:
    """Log a section header (for logging only, no console output)."""
    logger.debug(f"Section: {title}")
