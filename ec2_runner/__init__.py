"""ec2-github-runner - GitHub Actions self-hosted runners on on-demand EC2.

Example:

    from injector import Injector

    from ec2_runner import AWSModule, InstanceOrchestrator, RunnerConfig, RunnerModule

    config = RunnerConfig.from_env()
    injector = Injector([RunnerModule(config), AWSModule()])
    orchestrator = injector.get(InstanceOrchestrator)

    instance_id = await orchestrator.launch(label, registration_token)
    await orchestrator.wait_for_running(instance_id)
"""

from ec2_runner.aws import InstanceId, InstanceOrchestrator
from ec2_runner.clients import AWSModule, EC2ClientFactory, RunnerModule, SSMClientFactory
from ec2_runner.config import Mode, RunnerConfig
from ec2_runner.exceptions import (
    ConfigurationError,
    GitHubAPIError,
    RunnerError,
    RunnerRegistrationError,
)
from ec2_runner.github import GitHubClient, Runner
from ec2_runner.logging import LogConfig, setup_logging, teardown_logging
from ec2_runner.policy import best_effort
from ec2_runner.user_data import build_user_data

__all__ = [
    "AWSModule",
    "ConfigurationError",
    "EC2ClientFactory",
    "GitHubAPIError",
    "GitHubClient",
    "InstanceId",
    "InstanceOrchestrator",
    "LogConfig",
    "Mode",
    "Runner",
    "RunnerConfig",
    "RunnerError",
    "RunnerModule",
    "RunnerRegistrationError",
    "SSMClientFactory",
    "best_effort",
    "build_user_data",
    "setup_logging",
    "teardown_logging",
]
