"""Action entry point: ``python -m ec2_runner`` or ``ec2-github-runner``.

Reads the action inputs, then performs the step selected by ``mode``:

    start      launch a new runner instance and wait for the runner to register
    resume     start a stopped runner instance and start its runner over SSM
    stop       stop the runner instance
    terminate  terminate the runner instance and remove the runner from GitHub
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Mapping, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from injector import Injector
from loguru import logger

from .action import generate_unique_label, set_output
from .aws import InstanceOrchestrator
from .clients import AWSModule, RunnerModule
from .config import MODES, RunnerConfig
from .exceptions import RunnerError
from .github import GitHubClient
from .logging import LogConfig, setup_logging, teardown_logging


async def start(
    config: RunnerConfig,
    orchestrator: InstanceOrchestrator,
    github: GitHubClient,
    env: Mapping[str, str] | None = None,
) -> str:
    label = config.label or generate_unique_label()
    token = await github.get_registration_token()
    instance_id = await orchestrator.launch(label, token)

    set_output("label", label, env)
    set_output("ec2-instance-id", instance_id, env)

    await orchestrator.wait_for_running(instance_id)
    await github.wait_for_runner_registered(label)
    return instance_id


async def resume(
    config: RunnerConfig,
    orchestrator: InstanceOrchestrator,
    env: Mapping[str, str] | None = None,
) -> str:
    assert config.ec2_instance_id is not None
    instance_id = await orchestrator.resume(config.ec2_instance_id)
    set_output("ec2-instance-id", instance_id, env)

    await orchestrator.wait_for_running(instance_id)
    await orchestrator.start_runner(instance_id)
    return instance_id


async def stop(config: RunnerConfig, orchestrator: InstanceOrchestrator) -> None:
    assert config.ec2_instance_id is not None
    await orchestrator.stop()
    await orchestrator.wait_for_stopped(config.ec2_instance_id)


async def terminate(
    config: RunnerConfig,
    orchestrator: InstanceOrchestrator,
    github: GitHubClient,
) -> None:
    assert config.label is not None
    await orchestrator.terminate()
    await github.remove_runner(config.label)


async def run(
    config: RunnerConfig,
    orchestrator: InstanceOrchestrator,
    github: GitHubClient,
    env: Mapping[str, str] | None = None,
) -> None:
    """Perform the lifecycle step selected by ``config.mode``."""
    match config.mode:
        case "start":
            await start(config, orchestrator, github, env)
        case "resume":
            await resume(config, orchestrator, env)
        case "stop":
            await stop(config, orchestrator)
        case "terminate":
            await terminate(config, orchestrator, github)
        case _:
            raise ValueError(f"Unknown mode {config.mode!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ec2-github-runner",
        description="Run a GitHub Actions self-hosted runner on an on-demand EC2 instance",
    )
    parser.add_argument(
        "--mode", choices=MODES, default=None,
        help="Overrides the 'mode' action input",
    )
    parser.add_argument(
        "--log-level", default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    return parser


def main(argv: Sequence[str] | None = None, env: Mapping[str, str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    env = os.environ if env is None else env

    logger.remove()
    handler_ids = setup_logging(
        LogConfig(level=args.log_level, file=args.log_file), env
    )
    try:
        if args.mode is not None:
            env = {**env, "INPUT_MODE": args.mode}
        config = RunnerConfig.from_env(env)
        config.validate()

        injector = Injector([RunnerModule(config), AWSModule()])
        asyncio.run(
            run(
                config,
                injector.get(InstanceOrchestrator),
                injector.get(GitHubClient),
                env,
            )
        )
    except (RunnerError, ClientError, BotoCoreError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        teardown_logging(handler_ids)
    return 0


if __name__ == "__main__":
    sys.exit(main())
