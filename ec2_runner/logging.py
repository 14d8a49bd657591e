"""Logging configuration for ec2-github-runner.

Logging goes through loguru. It is disabled by default (library behavior) and
enabled by the CLI, or by anyone embedding the orchestrator, via
``setup_logging``.

When running inside GitHub Actions (``GITHUB_ACTIONS=true``) the console sink
speaks the workflow-command protocol, so error lines show up as annotations:

    ::error::AWS EC2 instance starting error

Example:
    from ec2_runner.logging import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", file="runner.log"))
    ...
    teardown_logging(handler_ids)
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Record

logger.disable("ec2_runner")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{name}:{function}:{line} - {message}"
)

# Workflow command prefix per loguru level name
_WORKFLOW_COMMANDS: dict[str, str] = {
    "TRACE": "::debug::",
    "DEBUG": "::debug::",
    "WARNING": "::warning::",
    "ERROR": "::error::",
    "CRITICAL": "::error::",
}


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        file: Path to log file. If provided, logs are also written there.
        console: Whether to log to stderr. Defaults to True.
        rotation: File rotation policy (e.g., "50 MB", "1 day").
        retention: Number of old log files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def in_github_actions(env: Mapping[str, str] | None = None) -> bool:
    """Whether the process runs inside a GitHub Actions job."""
    env = os.environ if env is None else env
    return env.get("GITHUB_ACTIONS", "").lower() == "true"


def workflow_format(record: Record) -> str:
    """loguru format function emitting GitHub workflow commands."""
    prefix = _WORKFLOW_COMMANDS.get(record["level"].name, "")
    return prefix + "{message}\n{exception}"


def setup_logging(config: LogConfig, env: Mapping[str, str] | None = None) -> list[int]:
    """Configure logging and return handler IDs for cleanup.

    Args:
        config: Logging configuration.
        env: Environment used to detect GitHub Actions. Defaults to os.environ.

    Returns:
        List of handler IDs that were added (for later removal).
    """
    logger.enable("ec2_runner")
    handler_ids: list[int] = []

    if config.console:
        if in_github_actions(env):
            hid = logger.add(
                sys.stderr,
                level=config.level,
                format=workflow_format,
                colorize=False,
                filter="ec2_runner",
            )
        else:
            hid = logger.add(
                sys.stderr,
                level=config.level,
                format=CONSOLE_FORMAT,
                colorize=True,
                filter="ec2_runner",
            )
        handler_ids.append(hid)

    if config.file:
        hid = logger.add(
            config.file,
            level="DEBUG",
            format=FILE_FORMAT,
            rotation=config.rotation,
            retention=config.retention,
            diagnose=False,  # tracebacks would otherwise include the registration token
            filter="ec2_runner",
        )
        handler_ids.append(hid)

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove handlers and disable logging again."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("ec2_runner")


__all__ = [
    "CONSOLE_FORMAT",
    "FILE_FORMAT",
    "LogConfig",
    "LogLevel",
    "in_github_actions",
    "setup_logging",
    "teardown_logging",
    "workflow_format",
]
