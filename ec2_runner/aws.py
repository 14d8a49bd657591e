"""EC2 instance lifecycle for the GitHub runner.

Thin wrappers over EC2 and SSM. Each operation opens a fresh client, issues
its request, optionally waits through the SDK waiter, and returns. Errors are
logged and re-raised, except for ``start_runner`` which is best-effort.

Flow (driven by the caller):
    launch → wait_for_running            (new runner)
    resume → wait_for_running → start_runner
    stop → wait_for_stopped
    terminate
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from injector import inject
from loguru import logger

from .clients import EC2ClientFactory, SSMClientFactory
from .config import RunnerConfig
from .policy import best_effort
from .user_data import RUNNER_DIR_NAME, build_user_data, cd_home_dir

type InstanceId = str

RUN_SHELL_SCRIPT_DOCUMENT = "AWS-RunShellScript"


def instance_filter(instance_id: InstanceId) -> list[dict[str, Any]]:
    """Describe filter scoped to a single instance."""
    return [{"Name": "instance-id", "Values": [instance_id]}]


@inject
@dataclass
class InstanceOrchestrator:
    """Issues lifecycle requests for the runner instance.

    The instance id produced by ``launch`` belongs to the caller, which must
    pass it back unchanged to the later calls. ``stop`` and ``terminate`` act
    on ``config.ec2_instance_id``.
    """

    config: RunnerConfig
    ec2: EC2ClientFactory
    ssm: SSMClientFactory

    # -------------------------------------------------------------------------
    # Lifecycle requests
    # -------------------------------------------------------------------------

    def run_instances_params(self, label: str, registration_token: str) -> dict[str, Any]:
        """RunInstances parameters for a new runner instance."""
        config = self.config
        params: dict[str, Any] = {
            "ImageId": config.ec2_image_id,
            "InstanceType": config.ec2_instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "SecurityGroupIds": [config.security_group_id],
            "SubnetId": config.subnet_id,
            # Plain text: botocore base64-encodes UserData for RunInstances
            "UserData": build_user_data(config, registration_token, label),
        }
        if config.iam_role_name:
            params["IamInstanceProfile"] = {"Name": config.iam_role_name}
        if config.tag_specifications:
            params["TagSpecifications"] = list(config.tag_specifications)
        return params

    async def launch(self, label: str, registration_token: str) -> InstanceId:
        """Create the runner instance and return its id."""
        params = self.run_instances_params(label, registration_token)

        try:
            async with self.ec2() as ec2:
                result = await ec2.run_instances(**params)
            instance_id: InstanceId = result["Instances"][0]["InstanceId"]
        except Exception:
            logger.error("AWS EC2 instance starting error")
            raise

        logger.info(f"AWS EC2 instance {instance_id} is started")
        return instance_id

    async def resume(self, instance_id: InstanceId) -> InstanceId:
        """Start an existing, stopped instance."""
        try:
            async with self.ec2() as ec2:
                await ec2.start_instances(InstanceIds=[instance_id])
        except Exception:
            logger.error("AWS EC2 instance starting error")
            raise

        logger.info(f"AWS EC2 instance {instance_id} is started")
        return instance_id

    async def stop(self) -> None:
        """Stop the configured instance."""
        instance_id = self.config.ec2_instance_id
        try:
            logger.info(f"AWS EC2 instance {instance_id} stopping")
            async with self.ec2() as ec2:
                await ec2.stop_instances(InstanceIds=[instance_id])
        except Exception:
            logger.error(f"AWS EC2 instance {instance_id} stop error")
            raise

        logger.info(f"AWS EC2 instance {instance_id} is stopped")

    async def terminate(self) -> None:
        """Terminate the configured instance."""
        instance_id = self.config.ec2_instance_id
        try:
            async with self.ec2() as ec2:
                await ec2.terminate_instances(InstanceIds=[instance_id])
        except Exception:
            logger.error(f"AWS EC2 instance {instance_id} termination error")
            raise

        logger.info(f"AWS EC2 instance {instance_id} is terminated")

    # -------------------------------------------------------------------------
    # Waits
    # -------------------------------------------------------------------------

    async def _wait(self, waiter_name: str, instance_id: InstanceId) -> None:
        async with self.ec2() as ec2:
            waiter = ec2.get_waiter(waiter_name)
            await waiter.wait(
                Filters=instance_filter(instance_id),
                WaiterConfig={
                    "Delay": self.config.wait_delay,
                    "MaxAttempts": self.config.wait_max_attempts,
                },
            )

    async def wait_for_running(self, instance_id: InstanceId) -> None:
        """Wait until the instance is running, up to ``config.wait_timeout``."""
        try:
            logger.info(f"Checking for instance {instance_id} to be up and running")
            await self._wait("instance_running", instance_id)
        except Exception:
            logger.error(f"AWS EC2 instance {instance_id} initialization error")
            raise

        logger.info(f"AWS EC2 instance {instance_id} is up and running")

    async def wait_for_stopped(self, instance_id: InstanceId) -> None:
        """Wait until the instance is stopped, up to ``config.wait_timeout``."""
        try:
            await self._wait("instance_stopped", instance_id)
        except Exception:
            logger.error(f"AWS EC2 instance {instance_id} stopped error")
            raise

        logger.info(f"AWS EC2 instance {instance_id} is stopped")

    # -------------------------------------------------------------------------
    # Remote commands
    # -------------------------------------------------------------------------

    def runner_commands(self) -> list[str]:
        """Shell lines that start the installed runner."""
        if self.config.runner_home_dir:
            cd = cd_home_dir(self.config.runner_home_dir)
        else:
            cd = f"cd ~/{RUNNER_DIR_NAME}/"
        return [cd, "./run.sh"]

    @best_effort("Could not send command to instance")
    async def start_runner(self, instance_id: InstanceId) -> None:
        """Ask the instance, through SSM, to start the runner.

        Fire-and-forget: the command outcome is never polled, and a failed
        submission is only logged.
        """
        logger.info("Sending command to start GitHub runner")
        async with self.ssm() as ssm:
            await ssm.send_command(
                DocumentName=RUN_SHELL_SCRIPT_DOCUMENT,
                Targets=[{"Key": "InstanceIds", "Values": [instance_id]}],
                Parameters={"commands": self.runner_commands()},
            )


__all__ = [
    "InstanceId",
    "InstanceOrchestrator",
    "RUN_SHELL_SCRIPT_DOCUMENT",
    "instance_filter",
]
