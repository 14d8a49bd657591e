"""Runner configuration.

Immutable configuration read once from the GitHub Action inputs and passed
explicitly to the orchestrator and the GitHub client.

Example:
    >>> from ec2_runner.config import RunnerConfig
    >>> config = RunnerConfig(
    ...     mode="start",
    ...     owner="octo-org",
    ...     repo="octo-repo",
    ...     github_token="ghp_xxx",
    ...     ec2_image_id="ami-123",
    ...     ec2_instance_type="t3.micro",
    ...     subnet_id="subnet-123",
    ...     security_group_id="sg-123",
    ... )
    >>> config.validate()
"""

from __future__ import annotations

import json
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, get_args

from .action import get_input
from .exceptions import ConfigurationError

type Mode = Literal["start", "resume", "stop", "terminate"]

type TagSpecification = dict[str, Any]

MODES: tuple[str, ...] = get_args(Mode.__value__)

DEFAULT_RUNNER_VERSION = "2.313.0"
DEFAULT_WAIT_TIMEOUT = 300
DEFAULT_WAIT_DELAY = 15
DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_GITHUB_SERVER_URL = "https://github.com"

# Resource types that receive the aws-resource-tags
TAGGED_RESOURCE_TYPES = ("instance", "volume")

_REQUIRED_BY_MODE: dict[str, tuple[str, ...]] = {
    "start": (
        "github_token",
        "ec2_image_id",
        "ec2_instance_type",
        "subnet_id",
        "security_group_id",
    ),
    "resume": ("ec2_instance_id",),
    "stop": ("ec2_instance_id",),
    "terminate": ("github_token", "label", "ec2_instance_id"),
}


def _input_name(field_name: str) -> str:
    return field_name.replace("_", "-")


def tag_specifications_from(tags: list[dict[str, str]]) -> tuple[TagSpecification, ...]:
    """Build EC2 TagSpecifications for every tagged resource type."""
    if not tags:
        return ()
    return tuple(
        {"ResourceType": resource_type, "Tags": list(tags)}
        for resource_type in TAGGED_RESOURCE_TYPES
    )


def _parse_tags(raw: str) -> list[dict[str, str]]:
    if not raw:
        return []
    try:
        tags = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"aws-resource-tags is not valid JSON: {e}") from e

    if not isinstance(tags, list) or not all(
        isinstance(t, dict) and "Key" in t and "Value" in t for t in tags
    ):
        raise ConfigurationError(
            'aws-resource-tags must be a JSON array of {"Key": ..., "Value": ...} objects'
        )
    return tags


def _parse_positive_int(name: str, raw: str, default: int) -> int:
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    """Configuration of one action invocation.

    Args:
        mode: Lifecycle step to perform.
        owner: Repository owner the runner registers against.
        repo: Repository name the runner registers against.
        github_token: Token used for the GitHub REST API.
        ec2_image_id: AMI to launch.
        ec2_instance_type: Instance type to launch.
        subnet_id: Subnet for the instance.
        security_group_id: Security group for the instance.
        iam_role_name: IAM instance profile name. Needs SSM permissions for resume.
        tag_specifications: EC2 TagSpecifications applied at launch.
        label: Runner label. Generated on start when empty.
        ec2_instance_id: Existing instance for resume, stop and terminate.
        runner_home_dir: Directory with a pre-installed runner. Skips the download.
        pre_runner_script: Shell snippet sourced before the runner is configured.
        region: AWS region. None lets the SDK resolve it.
        runner_version: actions/runner release downloaded by the boot script.
        wait_timeout: Ceiling in seconds for the running/stopped waits.
        wait_delay: Seconds between waiter polls.
        registration_timeout: Ceiling in seconds for the runner to come online.
        registration_interval: Seconds between runner registration polls.
        github_api_url: GitHub REST API base URL.
        github_server_url: GitHub server URL used for the registration URL.
    """

    mode: Mode = "start"
    owner: str = ""
    repo: str = ""
    github_token: str = ""
    ec2_image_id: str = ""
    ec2_instance_type: str = ""
    subnet_id: str = ""
    security_group_id: str = ""
    iam_role_name: str | None = None
    tag_specifications: tuple[TagSpecification, ...] = ()
    label: str | None = None
    ec2_instance_id: str | None = None
    runner_home_dir: str | None = None
    pre_runner_script: str | None = None
    region: str | None = None
    runner_version: str = DEFAULT_RUNNER_VERSION
    wait_timeout: int = DEFAULT_WAIT_TIMEOUT
    wait_delay: int = DEFAULT_WAIT_DELAY
    registration_timeout: int = 300
    registration_interval: float = 10.0
    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_server_url: str = DEFAULT_GITHUB_SERVER_URL

    @property
    def repository_url(self) -> str:
        return f"{self.github_server_url.rstrip('/')}/{self.owner}/{self.repo}"

    @property
    def wait_max_attempts(self) -> int:
        """Waiter attempts so that attempts * delay covers wait_timeout."""
        return max(1, math.ceil(self.wait_timeout / self.wait_delay))

    def validate(self) -> None:
        """Check the inputs the selected mode needs.

        Raises:
            ConfigurationError: Listing every problem found.
        """
        if self.mode not in MODES:
            raise ConfigurationError(
                f"Unknown mode {self.mode!r}. Valid: {', '.join(MODES)}"
            )

        missing = [
            _input_name(name)
            for name in _REQUIRED_BY_MODE[self.mode]
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                f"Not all the required inputs are provided for the '{self.mode}' mode: "
                f"{', '.join(missing)}"
            )

        if not self.owner or not self.repo:
            raise ConfigurationError(
                "Repository is unknown: set GITHUB_REPOSITORY to owner/repo"
            )

        if self.wait_timeout <= 0 or self.wait_delay <= 0:
            raise ConfigurationError("wait-timeout and wait-delay must be positive")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> RunnerConfig:
        """Load configuration from GitHub Action inputs and context variables."""
        env = os.environ if env is None else env

        def optional(name: str) -> str | None:
            return get_input(name, env) or None

        repository = env.get("GITHUB_REPOSITORY", "")
        owner, _, repo = repository.partition("/")

        return cls(
            mode=get_input("mode", env, required=True),  # type: ignore[arg-type]
            owner=owner,
            repo=repo,
            github_token=get_input("github-token", env),
            ec2_image_id=get_input("ec2-image-id", env),
            ec2_instance_type=get_input("ec2-instance-type", env),
            subnet_id=get_input("subnet-id", env),
            security_group_id=get_input("security-group-id", env),
            iam_role_name=optional("iam-role-name"),
            tag_specifications=tag_specifications_from(
                _parse_tags(get_input("aws-resource-tags", env))
            ),
            label=optional("label"),
            ec2_instance_id=optional("ec2-instance-id"),
            runner_home_dir=optional("runner-home-dir"),
            pre_runner_script=optional("pre-runner-script"),
            region=optional("aws-region"),
            runner_version=get_input("runner-version", env) or DEFAULT_RUNNER_VERSION,
            wait_timeout=_parse_positive_int(
                "wait-timeout", get_input("wait-timeout", env), DEFAULT_WAIT_TIMEOUT
            ),
            github_api_url=env.get("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL,
            github_server_url=env.get("GITHUB_SERVER_URL") or DEFAULT_GITHUB_SERVER_URL,
        )
