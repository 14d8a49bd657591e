from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ec2_runner.aws import InstanceOrchestrator
from ec2_runner.clients import EC2ClientFactory, SSMClientFactory
from ec2_runner.config import RunnerConfig


def client_factory(client: Any) -> Callable[[], AbstractAsyncContextManager[Any]]:
    """Factory yielding the same fake client, counting how often it is opened."""

    @asynccontextmanager
    async def factory() -> AsyncIterator[Any]:
        factory.opened += 1  # type: ignore[attr-defined]
        yield client

    factory.opened = 0  # type: ignore[attr-defined]
    return factory


def make_ec2(instance_id: str = "i-abc") -> MagicMock:
    ec2 = MagicMock(name="ec2")
    ec2.run_instances = AsyncMock(return_value={"Instances": [{"InstanceId": instance_id}]})
    ec2.start_instances = AsyncMock(return_value={})
    ec2.stop_instances = AsyncMock(return_value={})
    ec2.terminate_instances = AsyncMock(return_value={})
    waiter = MagicMock(name="waiter")
    waiter.wait = AsyncMock(return_value=None)
    ec2.get_waiter = MagicMock(return_value=waiter)
    return ec2


def make_ssm() -> MagicMock:
    ssm = MagicMock(name="ssm")
    ssm.send_command = AsyncMock(return_value={"Command": {"CommandId": "cmd-1"}})
    return ssm


@pytest.fixture
def config() -> RunnerConfig:
    return RunnerConfig(
        mode="start",
        owner="octo-org",
        repo="octo-repo",
        github_token="ghp_test",
        ec2_image_id="ami-123",
        ec2_instance_type="t3.micro",
        subnet_id="subnet-123",
        security_group_id="sg-123",
        iam_role_name="runner-role",
        ec2_instance_id="i-configured",
    )


@pytest.fixture
def ec2() -> MagicMock:
    return make_ec2()


@pytest.fixture
def ssm() -> MagicMock:
    return make_ssm()


@pytest.fixture
def orchestrator(config: RunnerConfig, ec2: MagicMock, ssm: MagicMock) -> InstanceOrchestrator:
    return InstanceOrchestrator(
        config=config,
        ec2=EC2ClientFactory(client_factory(ec2)),
        ssm=SSMClientFactory(client_factory(ssm)),
    )
