from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

from ec2_runner.action import set_output
from ec2_runner.logging import (
    LogConfig,
    in_github_actions,
    setup_logging,
    teardown_logging,
    workflow_format,
)


def _record(level: str) -> dict:
    return {"level": SimpleNamespace(name=level)}


class TestWorkflowFormat:
    def test_error_annotation(self) -> None:
        assert workflow_format(_record("ERROR")).startswith("::error::{message}")  # type: ignore[arg-type]

    def test_warning_and_debug(self) -> None:
        assert workflow_format(_record("WARNING")).startswith("::warning::")  # type: ignore[arg-type]
        assert workflow_format(_record("DEBUG")).startswith("::debug::")  # type: ignore[arg-type]

    def test_info_is_plain(self) -> None:
        assert workflow_format(_record("INFO")) == "{message}\n{exception}"  # type: ignore[arg-type]


class TestSetup:
    def test_detects_actions(self) -> None:
        assert in_github_actions({"GITHUB_ACTIONS": "true"})
        assert not in_github_actions({})

    def test_file_sink(self, tmp_path: Path) -> None:
        log_file = tmp_path / "runner.log"
        handler_ids = setup_logging(
            LogConfig(console=False, file=str(log_file)), env={}
        )
        try:
            assert len(handler_ids) == 1
            set_output("ec2-instance-id", "i-abc", {})
        finally:
            teardown_logging(handler_ids)

        assert "Output ec2-instance-id=i-abc" in log_file.read_text()

    def test_console_sink(self) -> None:
        handler_ids = setup_logging(LogConfig(), env={"GITHUB_ACTIONS": "true"})
        try:
            assert len(handler_ids) == 1
        finally:
            teardown_logging(handler_ids)
