from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from botocore.exceptions import WaiterError

from ec2_runner import cli
from ec2_runner.aws import InstanceOrchestrator
from ec2_runner.config import RunnerConfig
from ec2_runner.exceptions import GitHubAPIError, RunnerRegistrationError
from ec2_runner.github import GitHubClient, Runner


def _orchestrator() -> AsyncMock:
    orchestrator = AsyncMock(spec=InstanceOrchestrator)
    orchestrator.launch.return_value = "i-abc"
    orchestrator.resume.side_effect = lambda instance_id: instance_id
    return orchestrator


def _github() -> AsyncMock:
    github = AsyncMock(spec=GitHubClient)
    github.get_registration_token.return_value = "tok123"
    github.wait_for_runner_registered.return_value = Runner(
        id=1, name="runner-1", status="online", labels=("abcde",),
    )
    return github


class TestRunModes:
    @pytest.mark.asyncio
    async def test_start(self, config: RunnerConfig, tmp_path: Path) -> None:
        output = tmp_path / "output"
        orchestrator, github = _orchestrator(), _github()
        config = replace(config, label="abcde")

        await cli.run(config, orchestrator, github, {"GITHUB_OUTPUT": str(output)})

        orchestrator.launch.assert_awaited_once_with("abcde", "tok123")
        orchestrator.wait_for_running.assert_awaited_once_with("i-abc")
        github.wait_for_runner_registered.assert_awaited_once_with("abcde")
        assert output.read_text() == "label=abcde\nec2-instance-id=i-abc\n"

    @pytest.mark.asyncio
    async def test_start_generates_label(self, config: RunnerConfig) -> None:
        orchestrator, github = _orchestrator(), _github()

        await cli.run(config, orchestrator, github, {})

        label, token = orchestrator.launch.await_args.args
        assert len(label) == 5
        assert token == "tok123"
        github.wait_for_runner_registered.assert_awaited_once_with(label)

    @pytest.mark.asyncio
    async def test_resume(self, config: RunnerConfig, tmp_path: Path) -> None:
        output = tmp_path / "output"
        orchestrator, github = _orchestrator(), _github()
        config = replace(config, mode="resume", ec2_instance_id="i-stopped")

        await cli.run(config, orchestrator, github, {"GITHUB_OUTPUT": str(output)})

        orchestrator.resume.assert_awaited_once_with("i-stopped")
        orchestrator.wait_for_running.assert_awaited_once_with("i-stopped")
        orchestrator.start_runner.assert_awaited_once_with("i-stopped")
        github.get_registration_token.assert_not_awaited()
        assert output.read_text() == "ec2-instance-id=i-stopped\n"

    @pytest.mark.asyncio
    async def test_stop(self, config: RunnerConfig) -> None:
        orchestrator, github = _orchestrator(), _github()

        await cli.run(replace(config, mode="stop"), orchestrator, github, {})

        orchestrator.stop.assert_awaited_once_with()
        orchestrator.wait_for_stopped.assert_awaited_once_with("i-configured")

    @pytest.mark.asyncio
    async def test_terminate(self, config: RunnerConfig) -> None:
        orchestrator, github = _orchestrator(), _github()
        config = replace(config, mode="terminate", label="abcde")

        await cli.run(config, orchestrator, github, {})

        orchestrator.terminate.assert_awaited_once_with()
        github.remove_runner.assert_awaited_once_with("abcde")

    @pytest.mark.asyncio
    async def test_start_stops_on_wait_failure(self, config: RunnerConfig) -> None:
        orchestrator, github = _orchestrator(), _github()
        orchestrator.wait_for_running.side_effect = WaiterError(
            name="InstanceRunning", reason="Max attempts exceeded", last_response={},
        )

        with pytest.raises(WaiterError):
            await cli.run(config, orchestrator, github, {})
        github.wait_for_runner_registered.assert_not_awaited()


class TestMain:
    ENV = {
        "GITHUB_REPOSITORY": "octo-org/octo-repo",
        "INPUT_MODE": "stop",
        "INPUT_EC2-INSTANCE-ID": "i-configured",
    }

    def test_dispatches_configured_mode(self) -> None:
        with patch.object(cli, "run", new=AsyncMock()) as run:
            assert cli.main([], env=self.ENV) == 0

        config = run.await_args.args[0]
        assert config.mode == "stop"
        assert config.ec2_instance_id == "i-configured"
        assert isinstance(run.await_args.args[1], InstanceOrchestrator)
        assert isinstance(run.await_args.args[2], GitHubClient)

    def test_mode_flag_overrides_input(self) -> None:
        with patch.object(cli, "run", new=AsyncMock()) as run:
            assert cli.main(["--mode", "resume"], env=self.ENV) == 0

        assert run.await_args.args[0].mode == "resume"

    def test_invalid_configuration_exits_non_zero(self) -> None:
        env = {**self.ENV, "INPUT_MODE": "start"}
        with patch.object(cli, "run", new=AsyncMock()) as run:
            assert cli.main([], env=env) == 1
        run.assert_not_called()

    def test_runner_error_exits_non_zero(self) -> None:
        failing = AsyncMock(side_effect=RunnerRegistrationError("abcde", 300))
        with patch.object(cli, "run", new=failing):
            assert cli.main([], env=self.ENV) == 1

    def test_github_unreachable_exits_non_zero(self) -> None:
        failing = AsyncMock(side_effect=GitHubAPIError(None, "Connection refused"))
        with patch.object(cli, "run", new=failing):
            assert cli.main([], env=self.ENV) == 1

    def test_unexpected_errors_propagate(self) -> None:
        failing = AsyncMock(side_effect=KeyError("bug"))
        with patch.object(cli, "run", new=failing), pytest.raises(KeyError):
            cli.main([], env=self.ENV)


class TestParser:
    def test_rejects_unknown_mode(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--mode", "restart"])

    def test_defaults(self) -> None:
        args = cli.build_parser().parse_args([])
        assert args.mode is None
        assert args.log_level == "INFO"
        assert args.log_file is None

